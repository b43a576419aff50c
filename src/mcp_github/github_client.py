"""GitHub REST client wrapper.

Provides:
- one coroutine per supported GitHub action
- a single execute-and-classify routine shared by all of them
- strict host allowlist, no redirects, finite timeouts
- safe error translation with per-operation remediation hints

Every call is single-shot: no retry, no backoff, no pagination beyond `per_page`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from .config import LimitsConfig
from .errors import CONFIG, GITHUB_API_ERROR, NETWORK_ERROR, RATE_LIMITED, SafeError, unauthorized_error

logger = logging.getLogger(__name__)

GITHUB_API_BASE_URL = "https://api.github.com"
USER_AGENT = "mcp-github-reference"

RATE_LIMIT_HINT = "Rate limit exceeded. Please retry later."
DEFAULT_HINT = "Check your token permissions and repository access."

_READ_DENIED = "Access denied. Check repository permissions."
_WRITE_DENIED = "Access denied. Check repository permissions and token scopes."
_REPO_NOT_FOUND = "Repository not found or access denied."
_ISSUE_NOT_FOUND = "Issue not found or access denied."
_PR_NOT_FOUND = "Pull request not found or access denied."
_INVALID_LABEL = "Invalid label name or label does not exist in repository."

# Per-operation hint tables, keyed by upstream status code.
READ_REPO_HINTS: Mapping[int, str] = {403: _READ_DENIED, 404: _REPO_NOT_FOUND}
SEARCH_HINTS: Mapping[int, str] = {
    403: "Search access denied. Check repository permissions.",
    422: "Invalid search query. Try adding 'is:issue' or 'is:pr' qualifiers.",
}
CREATE_ISSUE_HINTS: Mapping[int, str] = {403: _WRITE_DENIED, 404: _REPO_NOT_FOUND}
ISSUE_WRITE_HINTS: Mapping[int, str] = {403: _WRITE_DENIED, 404: _ISSUE_NOT_FOUND}
ISSUE_LABEL_HINTS: Mapping[int, str] = {403: _WRITE_DENIED, 404: _ISSUE_NOT_FOUND, 422: _INVALID_LABEL}
PR_LABEL_HINTS: Mapping[int, str] = {403: _WRITE_DENIED, 404: _PR_NOT_FOUND, 422: _INVALID_LABEL}
REVIEW_HINTS: Mapping[int, str] = {
    403: _WRITE_DENIED,
    404: _PR_NOT_FOUND,
    422: "Invalid reviewer username or user is not a collaborator.",
}
MERGE_HINTS: Mapping[int, str] = {
    403: _WRITE_DENIED,
    404: _PR_NOT_FOUND,
    405: "Pull request cannot be merged. Check merge requirements.",
    409: "Merge conflict detected. Resolve conflicts before merging.",
}


@dataclass(frozen=True, slots=True)
class ToleratedStatus:
    """Marker returned for a non-2xx status the caller asked to treat as success."""

    status: int


def classify_error_response(
    *,
    operation: str,
    status_code: int,
    headers: Mapping[str, str],
    body_text: str,
    hints: Mapping[int, str],
) -> SafeError:
    """Translate a non-success upstream response into an error descriptor."""
    message = f"GitHub {operation} failed: {status_code} {body_text}".rstrip()
    if status_code == 403 and headers.get("X-RateLimit-Remaining") == "0":
        return SafeError(kind=RATE_LIMITED, message=message, hint=RATE_LIMIT_HINT, status=status_code)
    return SafeError(
        kind=GITHUB_API_ERROR,
        message=message,
        hint=hints.get(status_code, DEFAULT_HINT),
        status=status_code,
    )


class GitHubClient:
    """Minimal GitHub REST client for issues, labels, milestones and pull requests."""

    def __init__(
        self,
        *,
        token: str | None,
        limits: LimitsConfig,
        api_base_url: str = GITHUB_API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a GitHub REST client.

        Args:
            token: Optional bearer token. Without it only read operations are possible.
            limits: Network timeouts.
            api_base_url: Must be https://api.github.com (enforced).
            transport: Optional httpx transport for tests.
        """
        self._token = token
        self._limits = limits
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport

        if self._api_base_url != GITHUB_API_BASE_URL:
            raise SafeError(kind=CONFIG, message=f"Only {GITHUB_API_BASE_URL} is allowed")

    @property
    def has_token(self) -> bool:
        """Return whether a bearer token is configured."""
        return bool(self._token)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def execute(
        self,
        *,
        operation: str,
        method: str,
        path: str,
        hints: Mapping[int, str],
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        write: bool = False,
        tolerated_statuses: frozenset[int] = frozenset(),
    ) -> object:
        """Make one request and return decoded JSON, or raise a classified SafeError.

        Responses whose status is in `tolerated_statuses` are treated as success and
        return a ToleratedStatus marker.
        """
        if write and not self._token:
            raise unauthorized_error(operation)

        url = f"{self._api_base_url}{path}"
        timeout = httpx.Timeout(
            timeout=self._limits.total_timeout_s,
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

        try:
            async with httpx.AsyncClient(
                follow_redirects=False,
                timeout=timeout,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, url, headers=self._headers(), params=params, json=json_body)
        except httpx.HTTPError as exc:
            logger.warning("GitHub %s transport failure: %s", operation, type(exc).__name__)
            raise SafeError(
                kind=NETWORK_ERROR,
                message=f"Network request to GitHub failed during {operation}",
                hint="Check network connectivity and retry",
            ) from exc

        if resp.status_code in tolerated_statuses:
            return ToleratedStatus(resp.status_code)

        if not resp.is_success:
            raise classify_error_response(
                operation=operation,
                status_code=resp.status_code,
                headers=resp.headers,
                body_text=resp.text,
                hints=hints,
            )

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except json.JSONDecodeError as exc:
            raise SafeError(kind=GITHUB_API_ERROR, message="GitHub returned invalid JSON", status=resp.status_code) from exc

    # Read operations

    async def list_issues(self, owner: str, repo: str, *, state: str = "open", per_page: int = 20) -> object:
        """List issues (and PRs, as GitHub does) for a repository."""
        return await self.execute(
            operation="list_issues",
            method="GET",
            path=f"/repos/{owner}/{repo}/issues",
            params={"state": state, "per_page": str(per_page)},
            hints=READ_REPO_HINTS,
        )

    async def search_issues(self, owner: str, repo: str, query: str, *, per_page: int = 10) -> object:
        """Full-text search over a repository's issues."""
        return await self.execute(
            operation="search_issues",
            method="GET",
            path="/search/issues",
            params={"q": f"repo:{owner}/{repo} is:issue {query}", "per_page": str(per_page)},
            hints=SEARCH_HINTS,
        )

    async def list_labels(self, owner: str, repo: str, *, per_page: int = 100) -> object:
        """List the labels defined in a repository."""
        return await self.execute(
            operation="list_labels",
            method="GET",
            path=f"/repos/{owner}/{repo}/labels",
            params={"per_page": str(per_page)},
            hints=READ_REPO_HINTS,
        )

    async def list_milestones(self, owner: str, repo: str, *, state: str = "open", per_page: int = 100) -> object:
        """List milestones for a repository."""
        return await self.execute(
            operation="list_milestones",
            method="GET",
            path=f"/repos/{owner}/{repo}/milestones",
            params={"state": state, "per_page": str(per_page)},
            hints=READ_REPO_HINTS,
        )

    async def list_pull_requests(self, owner: str, repo: str, *, state: str = "open", per_page: int = 20) -> object:
        """List pull requests for a repository."""
        return await self.execute(
            operation="list_pull_requests",
            method="GET",
            path=f"/repos/{owner}/{repo}/pulls",
            params={"state": state, "per_page": str(per_page)},
            hints=READ_REPO_HINTS,
        )

    # Write operations

    async def create_issue(self, owner: str, repo: str, title: str, body: str) -> object:
        """Create an issue."""
        return await self.execute(
            operation="create_issue",
            method="POST",
            path=f"/repos/{owner}/{repo}/issues",
            json_body={"title": title, "body": body},
            hints=CREATE_ISSUE_HINTS,
            write=True,
        )

    async def comment_on_issue(self, owner: str, repo: str, issue_number: int, body: str) -> object:
        """Comment on an issue or pull request."""
        return await self.execute(
            operation="comment_on_issue",
            method="POST",
            path=f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json_body={"body": body},
            hints=ISSUE_WRITE_HINTS,
            write=True,
        )

    async def add_labels_to_issue(self, owner: str, repo: str, issue_number: int, labels: list[str]) -> object:
        """Add labels to an issue."""
        return await self.execute(
            operation="add_label_to_issue",
            method="POST",
            path=f"/repos/{owner}/{repo}/issues/{issue_number}/labels",
            json_body={"labels": labels},
            hints=ISSUE_LABEL_HINTS,
            write=True,
        )

    async def remove_label_from_issue(self, owner: str, repo: str, issue_number: int, label_name: str) -> bool:
        """Remove a label from an issue.

        Returns False when GitHub answers 404 (label already absent), True otherwise.
        """
        data = await self.execute(
            operation="remove_label_from_issue",
            method="DELETE",
            path=f"/repos/{owner}/{repo}/issues/{issue_number}/labels/{quote(label_name, safe='')}",
            hints=ISSUE_WRITE_HINTS,
            write=True,
            tolerated_statuses=frozenset({404}),
        )
        return not isinstance(data, ToleratedStatus)

    async def label_pr(self, owner: str, repo: str, number: int, labels: list[str]) -> object:
        """Add labels to a pull request (through the issues API)."""
        return await self.execute(
            operation="label_pr",
            method="POST",
            path=f"/repos/{owner}/{repo}/issues/{number}/labels",
            json_body={"labels": labels},
            hints=PR_LABEL_HINTS,
            write=True,
        )

    async def request_review(self, owner: str, repo: str, number: int, reviewers: list[str]) -> object:
        """Request reviews on a pull request."""
        return await self.execute(
            operation="request_review",
            method="POST",
            path=f"/repos/{owner}/{repo}/pulls/{number}/requested_reviewers",
            json_body={"reviewers": reviewers},
            hints=REVIEW_HINTS,
            write=True,
        )

    async def merge_pr(self, owner: str, repo: str, number: int, *, method: str = "squash") -> object:
        """Merge a pull request."""
        return await self.execute(
            operation="merge_pr",
            method="PUT",
            path=f"/repos/{owner}/{repo}/pulls/{number}/merge",
            json_body={"merge_method": method},
            hints=MERGE_HINTS,
            write=True,
        )
