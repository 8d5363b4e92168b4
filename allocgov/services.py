# allocgov/services.py
"""
Service wiring.

Builds the document store, ticket source, lifecycle engine and directory
from settings. STORE_BACKEND=memory swaps the hosting service for
in-process adapters, for local development.
"""

from dataclasses import dataclass
from typing import Optional

from .lifecycle.directory import ApplicationDirectory
from .lifecycle.engine import LifecycleEngine
from .lifecycle.locations import ApplicationLocations
from .logging import get_logger
from .settings import Settings, settings as default_settings
from .store.base import DocumentStore
from .store.github import GitHubDocumentStore
from .store.http import GitHubClient
from .store.memory import InMemoryDocumentStore
from .tickets import GitHubTicketSource, InMemoryTicketSource, TicketSource

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything the API needs, built once per process."""
    store: DocumentStore
    tickets: TicketSource
    engine: LifecycleEngine
    directory: ApplicationDirectory

    async def close(self) -> None:
        await self.store.close()


def build_services(config: Optional[Settings] = None) -> Services:
    """
    Build services from settings.

    Raises:
        ValueError: Unknown backend, or GitHub backend without owner/repo
    """
    config = config or default_settings
    locations = ApplicationLocations(
        applications_dir=config.applications_dir,
        staging_branch_prefix=config.staging_branch_prefix,
        main_branch=config.main_branch,
    )

    if config.store_backend == "memory":
        store: DocumentStore = InMemoryDocumentStore(
            main_branch=config.main_branch,
            applications_dir=config.applications_dir,
        )
        tickets: TicketSource = InMemoryTicketSource()
    elif config.store_backend == "github":
        if not config.github_owner or not config.github_repo:
            raise ValueError("GITHUB_OWNER and GITHUB_REPO must be set for the github backend")
        client = GitHubClient(
            owner=config.github_owner,
            repo=config.github_repo,
            token=config.github_token,
            api_url=config.github_api_url,
            timeout=config.http_timeout_seconds,
        )
        store = GitHubDocumentStore(
            client,
            main_branch=config.main_branch,
            applications_dir=config.applications_dir,
        )
        tickets = GitHubTicketSource(client)
    else:
        raise ValueError(f"Unknown STORE_BACKEND: {config.store_backend}")

    logger.info(
        "services_built",
        backend=config.store_backend,
        main_branch=config.main_branch,
        applications_dir=config.applications_dir,
    )
    return Services(
        store=store,
        tickets=tickets,
        engine=LifecycleEngine(store, tickets, locations),
        directory=ApplicationDirectory(store, locations, concurrency=config.directory_concurrency),
    )
