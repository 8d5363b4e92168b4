# allocgov/main.py
"""
Allocation Governance Service - Main Application

Runs governance applications through review and notary sign-off, with every
application stored as a versioned document in a GitHub repository.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .api import applications_router
from .errors import ErrorKind, LifecycleError
from .logging import get_logger
from .services import build_services
from .settings import settings

logger = get_logger(__name__)

# HTTP status for each error kind
ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 400,
    ErrorKind.VERSION_CONFLICT: 409,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.CORRUPT_DOCUMENT: 422,
    ErrorKind.ADAPTER_ERROR: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Wires the store, engine and directory on startup and closes the store
    on shutdown.
    """
    logger.info("service_starting", backend=settings.store_backend)
    services = build_services(settings)
    app.state.services = services

    yield

    logger.info("service_stopping")
    await services.close()


# Create FastAPI app
app = FastAPI(
    title="Allocation Governance Service",
    description="""
    Governance application lifecycle over versioned GitHub documents.

    Key features:
    - GovernanceReview -> ReadyToSign -> StartSignDatacap -> Granted state machine
    - 2-of-2 notary sign-off per allocation request, refills numbered in sequence
    - Optimistic concurrency: every commit is conditional on the version read
    - Active (staged) and merged application listings
    """,
    version="0.1.0",
    lifespan=lifespan,
)

allowed_origins = settings.allowed_origins.split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add basic security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Server"] = "Allocation Governance Service"
        return response


app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    """Structured error body with a status derived from the error kind."""
    status_code = ERROR_STATUS.get(exc.kind, 500)
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, kind=exc.kind.value, reason=exc.reason)
    else:
        logger.info("request_rejected", path=request.url.path, kind=exc.kind.value, reason=exc.reason)
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


# Include API routers
app.include_router(applications_router)


@app.get("/health")
async def health_check():
    """Basic health check."""
    return {"status": "ok", "service": "allocation-governance-service"}


def run():
    """Run the server (entry point for CLI)."""
    import uvicorn
    uvicorn.run(
        "allocgov.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    run()
