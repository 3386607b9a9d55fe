"""
Minimal GitHub REST client for importing issues as tasks.
"""

from typing import Any, Optional

import httpx
import structlog

from taskquest.models.enums import Priority

logger = structlog.get_logger()

GITHUB_API_VERSION = "2022-11-28"

LABEL_PRIORITY_RULES: list[tuple[tuple[str, ...], Priority]] = [
    (("urgent", "critical"), Priority.URGENT),
    (("high", "important"), Priority.HIGH),
    (("low", "minor"), Priority.LOW),
]


class GitHubAPIError(Exception):
    """Raised when the GitHub API returns an error or cannot be reached."""

    pass


def labels_to_priority(labels: Optional[list[Any]]) -> Priority:
    """First matching rule wins; a label matches when it contains a keyword."""
    if not isinstance(labels, list):
        return Priority.MEDIUM
    names = [
        (label.get("name") or "").lower() if isinstance(label, dict) else str(label).lower()
        for label in labels
    ]
    for keywords, priority in LABEL_PRIORITY_RULES:
        if any(keyword in name for name in names for keyword in keywords):
            return priority
    return Priority.MEDIUM


class GitHubClient:
    """
    Reads issues from the GitHub REST API.

    Use as an async context manager; the underlying ``httpx.AsyncClient``
    is closed on exit.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._http_client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def list_issues(self, repository: str, state: str = "all") -> list[dict]:
        """
        Issues of ``owner/name``; pull requests are skipped.

        Raises:
            GitHubAPIError: On transport failure or a non-2xx response
        """
        if self._http_client is None:
            raise GitHubAPIError("GitHubClient must be used inside 'async with'")
        try:
            response = await self._http_client.get(
                f"/repos/{repository}/issues",
                params={"state": state, "per_page": 100},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "github_issues_fetch_failed",
                repository=repository,
                status_code=e.response.status_code,
            )
            raise GitHubAPIError(f"HTTP {e.response.status_code}: {e.response.text}")
        except httpx.HTTPError as e:
            logger.warning("github_issues_fetch_error", repository=repository, error=str(e))
            raise GitHubAPIError(str(e))

        issues = response.json()
        if not isinstance(issues, list):
            return []
        return [issue for issue in issues if "pull_request" not in issue]
