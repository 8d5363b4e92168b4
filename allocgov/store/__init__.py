# Document store - versioned documents over branches and pull requests
from .base import DocumentStore, MergedFile, PullRequestRef, VersionedDocument
from .github import GitHubDocumentStore
from .http import GitHubClient
from .memory import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "MergedFile",
    "PullRequestRef",
    "VersionedDocument",
    "GitHubClient",
    "GitHubDocumentStore",
    "InMemoryDocumentStore",
]
