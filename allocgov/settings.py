# allocgov/settings.py
"""
Application settings.
"""

import os
from dataclasses import dataclass
from typing import Optional

# Load .env file
from dotenv import load_dotenv
load_dotenv()


@dataclass
class Settings:
    """Application configuration."""

    # Hosting service holding the application documents
    github_api_url: str = os.getenv("GITHUB_API_URL", "https://api.github.com")
    github_owner: str = os.getenv("GITHUB_OWNER", "")
    github_repo: str = os.getenv("GITHUB_REPO", "")
    github_token: Optional[str] = os.getenv("GITHUB_TOKEN")

    # Document layout
    main_branch: str = os.getenv("MAIN_BRANCH", "main")
    applications_dir: str = os.getenv("APPLICATIONS_DIR", "applications")
    staging_branch_prefix: str = os.getenv("STAGING_BRANCH_PREFIX", "Application")

    # "github" or "memory"
    store_backend: str = os.getenv("STORE_BACKEND", "github")

    # Remote I/O
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT", "15"))
    directory_concurrency: int = int(os.getenv("DIRECTORY_CONCURRENCY", "8"))

    # API settings
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8080"))
    allowed_origins: str = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:8080")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "true").lower() == "true"
    # JSON lines are also appended here when set
    log_file: Optional[str] = os.getenv("LOG_FILE") or None


# Global settings instance
settings = Settings()
