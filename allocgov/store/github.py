# allocgov/store/github.py
"""
GitHub-backed document store.

Application documents are files in a repository. The version token of a
file is its blob SHA as reported by the contents API, and the contents API
rejects an update whose "sha" no longer matches with 409 Conflict.

Endpoints used:
- GET  /repos/{o}/{r}/contents/{path}?ref=   read / list a directory
- PUT  /repos/{o}/{r}/contents/{path}        conditional write
- GET  /repos/{o}/{r}/git/ref/heads/{base}   branch head
- POST /repos/{o}/{r}/git/refs               create branch
- GET  /repos/{o}/{r}/git/blobs/{sha}        files above the contents API limit
- GET  /repos/{o}/{r}/pulls, POST /pulls     list / open pull requests
"""

import base64
import binascii
from typing import List, Optional

from ..errors import AdapterError, AlreadyExists, NotFound, VersionConflict
from ..logging import get_logger
from .base import DocumentStore, MergedFile, PullRequestRef, VersionedDocument
from .http import GitHubClient, error_message

logger = get_logger(__name__)

PAGE_SIZE = 100


def _decode(content: str) -> bytes:
    try:
        return base64.b64decode(content.replace("\n", ""), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AdapterError(f"Undecodable file content from GitHub: {e}")


class GitHubDocumentStore(DocumentStore):
    """DocumentStore over one GitHub repository."""

    def __init__(
        self,
        client: GitHubClient,
        main_branch: str = "main",
        applications_dir: str = "applications",
    ):
        self.client = client
        self.main_branch = main_branch
        self.applications_dir = applications_dir.strip("/")

    async def read(self, path: str, ref: str) -> VersionedDocument:
        response = await self.client.get(f"contents/{path}", params={"ref": ref})
        if response.status_code == 404:
            raise NotFound(f"{path} does not exist on {ref}")
        if response.status_code != 200:
            raise AdapterError(f"Reading {path}@{ref}: HTTP {response.status_code} {error_message(response)}")
        body = response.json()
        if not isinstance(body, dict) or body.get("type") != "file":
            raise NotFound(f"{path} on {ref} is not a file")
        sha = body["sha"]
        if body.get("encoding") == "base64" and body.get("content") is not None:
            return VersionedDocument(content=_decode(body["content"]), version=sha)
        # Large files come back without inline content
        return VersionedDocument(content=await self._read_blob(sha), version=sha)

    async def _read_blob(self, sha: str) -> bytes:
        response = await self.client.get(f"git/blobs/{sha}")
        if response.status_code != 200:
            raise AdapterError(f"Reading blob {sha}: HTTP {response.status_code} {error_message(response)}")
        return _decode(response.json().get("content", ""))

    async def write(
        self,
        path: str,
        ref: str,
        content: bytes,
        expected_version: Optional[str],
        message: str,
    ) -> str:
        payload = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": ref,
        }
        if expected_version is not None:
            payload["sha"] = expected_version

        response = await self.client.send("PUT", f"contents/{path}", json=payload)
        if response.status_code in (200, 201):
            version = response.json()["content"]["sha"]
            logger.info("document_written", path=path, ref=ref, version=version)
            return version
        if response.status_code == 409:
            raise VersionConflict(f"{path} on {ref} changed since version {expected_version}")
        if response.status_code == 422 and expected_version is None:
            # GitHub wants a sha because the file already exists
            raise VersionConflict(f"{path} already exists on {ref}")
        if response.status_code == 404:
            raise NotFound(f"Branch {ref} does not exist")
        raise AdapterError(f"Writing {path}@{ref}: HTTP {response.status_code} {error_message(response)}")

    async def create_branch(self, name: str, base_ref: str) -> None:
        response = await self.client.get(f"git/ref/heads/{base_ref}")
        if response.status_code == 404:
            raise NotFound(f"Branch {base_ref} does not exist")
        if response.status_code != 200:
            raise AdapterError(f"Resolving {base_ref}: HTTP {response.status_code} {error_message(response)}")
        base_sha = response.json()["object"]["sha"]

        response = await self.client.send(
            "POST", "git/refs", json={"ref": f"refs/heads/{name}", "sha": base_sha}
        )
        if response.status_code == 201:
            logger.info("branch_created", branch=name, base=base_ref)
            return
        if response.status_code == 422:
            raise AlreadyExists(f"Branch {name} already exists")
        raise AdapterError(f"Creating branch {name}: HTTP {response.status_code} {error_message(response)}")

    async def open_pull_request(self, branch: str, title: str, body: str) -> int:
        response = await self.client.send(
            "POST",
            "pulls",
            json={"title": title, "head": branch, "base": self.main_branch, "body": body},
        )
        if response.status_code == 201:
            number = response.json()["number"]
            logger.info("pull_request_opened", branch=branch, number=number)
            return number
        message = error_message(response)
        if response.status_code == 422 and "already exists" in message:
            raise AlreadyExists(f"A pull request for {branch} is already open")
        raise AdapterError(f"Opening pull request for {branch}: HTTP {response.status_code} {message}")

    async def list_pull_requests(self) -> List[PullRequestRef]:
        pulls: List[PullRequestRef] = []
        page = 1
        while True:
            response = await self.client.get(
                "pulls",
                params={"state": "open", "base": self.main_branch, "per_page": PAGE_SIZE, "page": page},
            )
            if response.status_code != 200:
                raise AdapterError(f"Listing pull requests: HTTP {response.status_code} {error_message(response)}")
            batch = response.json()
            pulls.extend(
                PullRequestRef(number=pr["number"], head_branch=pr["head"]["ref"])
                for pr in batch
            )
            if len(batch) < PAGE_SIZE:
                return pulls
            page += 1

    async def list_merged_files(self) -> List[MergedFile]:
        path = f"contents/{self.applications_dir}" if self.applications_dir else "contents/"
        response = await self.client.get(path, params={"ref": self.main_branch})
        if response.status_code == 404:
            return []
        if response.status_code != 200:
            raise AdapterError(f"Listing merged files: HTTP {response.status_code} {error_message(response)}")
        return [
            MergedFile(path=item["path"], download_ref=self.main_branch)
            for item in response.json()
            if item.get("type") == "file"
        ]

    async def close(self) -> None:
        await self.client.aclose()
