# allocgov/store/base.py
"""
Document store interface.

The lifecycle core depends only on this narrow set of primitives over the
hosting service. The single concurrency primitive is the conditional
write: content is replaced only if the caller's version token still
matches the stored one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class VersionedDocument:
    """Document bytes with the version token they were read at."""
    content: bytes
    version: str


@dataclass(frozen=True)
class PullRequestRef:
    """An open pull request and the branch it stages."""
    number: int
    head_branch: str


@dataclass(frozen=True)
class MergedFile:
    """A file committed to the main line."""
    path: str
    download_ref: str


class DocumentStore(ABC):
    """Remote document store with optimistic concurrency."""

    @abstractmethod
    async def read(self, path: str, ref: str) -> VersionedDocument:
        """
        Read a document.

        Raises:
            NotFound: No such file on that ref
            AdapterError: Remote failure
        """

    @abstractmethod
    async def write(
        self,
        path: str,
        ref: str,
        content: bytes,
        expected_version: Optional[str],
        message: str,
    ) -> str:
        """
        Conditionally write a document and return its new version token.

        expected_version None means the file must not exist yet.

        Raises:
            VersionConflict: Stored version differs from expected_version
            NotFound: The ref does not exist
            AdapterError: Remote failure
        """

    @abstractmethod
    async def create_branch(self, name: str, base_ref: str) -> None:
        """
        Create a branch from base_ref.

        Raises:
            AlreadyExists: Branch exists
            NotFound: base_ref does not exist
        """

    @abstractmethod
    async def open_pull_request(self, branch: str, title: str, body: str) -> int:
        """Open a pull request from branch into the main line; returns its number."""

    @abstractmethod
    async def list_pull_requests(self) -> List[PullRequestRef]:
        """All open pull requests."""

    @abstractmethod
    async def list_merged_files(self) -> List[MergedFile]:
        """Application files on the main line."""

    async def close(self) -> None:
        """Release any held resources."""
