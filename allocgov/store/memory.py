# allocgov/store/memory.py
"""
In-memory document store.

Used for local development (STORE_BACKEND=memory) and tests. Every
operation yields to the event loop once before touching state, so
concurrent callers interleave the way they would against a remote store.
Check-and-set inside one operation runs without a suspension point, which
makes write() an atomic compare-and-swap.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..errors import AlreadyExists, NotFound, VersionConflict
from .base import DocumentStore, MergedFile, PullRequestRef, VersionedDocument
from .hashing import compute_blob_sha


@dataclass(frozen=True)
class CommitRecord:
    """A successful write, kept for inspection."""
    path: str
    ref: str
    message: str
    version: str


class InMemoryDocumentStore(DocumentStore):
    """
    Branches of files held in dictionaries.

    Usage:
        store = InMemoryDocumentStore()
        await store.create_branch("Application/42", "main")
    """

    def __init__(self, main_branch: str = "main", applications_dir: str = "applications"):
        self.main_branch = main_branch
        self.applications_dir = applications_dir.strip("/")
        self._branches: Dict[str, Dict[str, bytes]] = {main_branch: {}}
        self._pulls: Dict[int, PullRequestRef] = {}
        self._next_pull = 1
        self.commits: List[CommitRecord] = []

    async def read(self, path: str, ref: str) -> VersionedDocument:
        await asyncio.sleep(0)
        content = self._branches.get(ref, {}).get(path)
        if content is None:
            raise NotFound(f"{path} does not exist on {ref}")
        return VersionedDocument(content=content, version=compute_blob_sha(content))

    async def write(
        self,
        path: str,
        ref: str,
        content: bytes,
        expected_version: Optional[str],
        message: str,
    ) -> str:
        await asyncio.sleep(0)
        files = self._branches.get(ref)
        if files is None:
            raise NotFound(f"Branch {ref} does not exist")
        current = files.get(path)
        if expected_version is None and current is not None:
            raise VersionConflict(f"{path} already exists on {ref}")
        if expected_version is not None:
            if current is None or compute_blob_sha(current) != expected_version:
                raise VersionConflict(f"{path} on {ref} changed since version {expected_version}")
        files[path] = content
        version = compute_blob_sha(content)
        self.commits.append(CommitRecord(path=path, ref=ref, message=message, version=version))
        return version

    async def create_branch(self, name: str, base_ref: str) -> None:
        await asyncio.sleep(0)
        if name in self._branches:
            raise AlreadyExists(f"Branch {name} already exists")
        if base_ref not in self._branches:
            raise NotFound(f"Branch {base_ref} does not exist")
        self._branches[name] = dict(self._branches[base_ref])

    async def open_pull_request(self, branch: str, title: str, body: str) -> int:
        await asyncio.sleep(0)
        if branch not in self._branches:
            raise NotFound(f"Branch {branch} does not exist")
        if any(pr.head_branch == branch for pr in self._pulls.values()):
            raise AlreadyExists(f"A pull request for {branch} is already open")
        number = self._next_pull
        self._next_pull += 1
        self._pulls[number] = PullRequestRef(number=number, head_branch=branch)
        return number

    async def list_pull_requests(self) -> List[PullRequestRef]:
        await asyncio.sleep(0)
        return sorted(self._pulls.values(), key=lambda pr: pr.number)

    async def list_merged_files(self) -> List[MergedFile]:
        await asyncio.sleep(0)
        prefix = f"{self.applications_dir}/" if self.applications_dir else ""
        return [
            MergedFile(path=path, download_ref=self.main_branch)
            for path in sorted(self._branches[self.main_branch])
            if path.startswith(prefix)
        ]

    async def merge_pull_request(self, number: int) -> None:
        """Fold a pull request's branch into the main line and delete it."""
        await asyncio.sleep(0)
        pull = self._pulls.pop(number, None)
        if pull is None:
            raise NotFound(f"Pull request {number} is not open")
        files = self._branches.pop(pull.head_branch)
        self._branches[self.main_branch].update(files)

    def branches(self) -> List[str]:
        return sorted(self._branches)
