# allocgov/api/__init__.py
"""API routes package."""

from .routes_applications import router as applications_router

__all__ = [
    "applications_router",
]
