# allocgov/lifecycle/directory.py
"""
Application directory.

Two read views over the store:
- active: one application per open staging pull request
- merged: active applications on the main line that are not staged again

Both views fan out one read per candidate under a concurrency bound and
join all of them. A single failed read fails the whole listing: a partial
active set could make a staged application look merged.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from ..errors import AdapterError, CorruptDocument, LifecycleError, NotFound
from ..logging import get_logger
from ..store.base import DocumentStore
from .application import Application
from .locations import ApplicationLocations

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 8


class ApplicationDirectory:
    """
    Lists staged and merged applications.

    Usage:
        directory = ApplicationDirectory(store, ApplicationLocations())
        active = await directory.list_active()
        merged = await directory.list_merged()
    """

    def __init__(
        self,
        store: DocumentStore,
        locations: ApplicationLocations,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self.store = store
        self.locations = locations
        self.concurrency = max(1, concurrency)

    async def _fan_out(
        self,
        items: Sequence[T],
        fetch: Callable[[T], Awaitable[R]],
        what: str,
    ) -> List[R]:
        """Run fetch over items concurrently; all succeed or one error is raised."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(item: T) -> R:
            async with semaphore:
                return await fetch(item)

        results = await asyncio.gather(*(worker(i) for i in items), return_exceptions=True)
        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            if not isinstance(failure, Exception):
                raise failure
        if failures:
            reasons = [f.reason if isinstance(f, LifecycleError) else repr(f) for f in failures]
            logger.error("directory_fetch_failed", listing=what, failed=len(failures), total=len(items))
            raise AdapterError(
                f"Failed to load {len(failures)} of {len(items)} {what} applications: "
                + "; ".join(reasons)
            )
        return list(results)

    async def _read(self, path: str, ref: str) -> Application:
        document = await self.store.read(path, ref)
        application = Application.from_json(document.content)
        expected = self.locations.id_from_path(path)
        if application.id != expected:
            raise CorruptDocument(f"{path}@{ref} holds application {application.id}, expected {expected}")
        return application

    async def list_active(self, filter_id: Optional[str] = None) -> List[Application]:
        """
        Applications staged on open pull requests.

        Args:
            filter_id: Only return the application with this id

        Raises:
            AdapterError: Listing or any single read failed
        """
        pulls = await self.store.list_pull_requests()
        candidates = []
        for pull in pulls:
            application_id = self.locations.id_from_branch(pull.head_branch)
            if application_id is None:
                continue
            if filter_id is not None and application_id != filter_id:
                continue
            candidates.append(self.locations.staging(application_id))

        applications = await self._fan_out(
            candidates, lambda loc: self._read(loc.path, loc.ref), "active"
        )
        if filter_id is not None:
            applications = [a for a in applications if a.id == filter_id]
        return applications

    async def list_merged(self) -> List[Application]:
        """
        Active applications on the main line, minus those staged again.

        Raises:
            AdapterError: Listing or any single read failed
        """
        files = [
            f for f in await self.store.list_merged_files()
            if self.locations.id_from_path(f.path) is not None
        ]
        merged, active = await asyncio.gather(
            self._fan_out(files, lambda f: self._read(f.path, f.download_ref), "merged"),
            self.list_active(),
        )
        staged_ids = {a.id for a in active}
        return [a for a in merged if a.lifecycle.is_active and a.id not in staged_ids]

    async def find_active(self, application_id: str) -> Application:
        return _find(await self.list_active(filter_id=application_id), application_id, "active")

    async def find_merged(self, application_id: str) -> Application:
        return _find(await self.list_merged(), application_id, "merged")


def _find(applications: List[Application], application_id: str, what: str) -> Application:
    for application in applications:
        if application.id == application_id:
            return application
    raise NotFound(f"No {what} application {application_id}")
