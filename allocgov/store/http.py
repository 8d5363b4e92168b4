# allocgov/store/http.py
"""
Async HTTP client for the GitHub REST API.

Uses httpx for async HTTP and tenacity for retries. Only reads are retried:
a conditional write that timed out may or may not have landed, and
retrying it would report a conflict with our own earlier attempt.
"""

from typing import Any, Dict, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import AdapterError
from ..logging import get_logger

logger = get_logger(__name__)

# Default timeout for HTTP requests (seconds)
DEFAULT_TIMEOUT = 15.0

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_WAIT_MIN = 1
DEFAULT_WAIT_MAX = 10

GITHUB_API_VERSION = "2022-11-28"


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


@retry(
    stop=stop_after_attempt(DEFAULT_MAX_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=DEFAULT_WAIT_MIN, max=DEFAULT_WAIT_MAX),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)
async def _get_with_retry(
    client: httpx.AsyncClient,
    url: str,
    params: Optional[Dict[str, Any]] = None,
) -> httpx.Response:
    """
    Inner retry function - lets exceptions bubble for tenacity to catch and retry.

    4xx responses are returned to the caller, which decides what they mean.
    """
    response = await client.get(url, params=params)
    if response.status_code >= 500:
        response.raise_for_status()
    return response


class GitHubClient:
    """
    Thin wrapper over httpx.AsyncClient scoped to one repository.

    Usage:
        client = GitHubClient(owner="org", repo="applications", token="...")
        response = await client.get("contents/applications/42.json", params={"ref": "main"})
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: Optional[str] = None,
        api_url: str = "https://api.github.com",
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.owner = owner
        self.repo = repo
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def url(self, path: str) -> str:
        return f"/repos/{self.owner}/{self.repo}/{path.lstrip('/')}"

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """
        GET a repository resource with retry on transient failures.

        Raises:
            AdapterError: After all retries are exhausted
        """
        url = self.url(path)
        try:
            return await _get_with_retry(self._client, url, params)
        except httpx.HTTPStatusError as e:
            logger.error("github_request_failed", method="GET", url=url, status=e.response.status_code)
            raise AdapterError(f"GET {url} failed after {DEFAULT_MAX_ATTEMPTS} attempts: HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error("github_request_failed", method="GET", url=url, error=str(e))
            raise AdapterError(f"GET {url} failed after {DEFAULT_MAX_ATTEMPTS} attempts: {e}")

    async def send(self, method: str, path: str, json: Dict[str, Any]) -> httpx.Response:
        """
        Send a write request once.

        Raises:
            AdapterError: On transport failure
        """
        url = self.url(path)
        try:
            return await self._client.request(method, url, json=json)
        except httpx.HTTPError as e:
            logger.error("github_request_failed", method=method, url=url, error=str(e))
            raise AdapterError(f"{method} {url} failed: {e}")

    async def aclose(self) -> None:
        await self._client.aclose()


def error_message(response: httpx.Response) -> str:
    """Best-effort message from a GitHub error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        message = str(body.get("message", ""))
        details = [str(e.get("message", "")) for e in body.get("errors", []) if isinstance(e, dict)]
        return "; ".join(m for m in [message, *details] if m)
    return str(body)[:200]
