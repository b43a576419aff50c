"""Safe error types and envelope helpers.

Errors returned to agents must be non-secret and stable. The configured GitHub token
must never appear in a message or hint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FORBIDDEN = "forbidden"
UNAUTHORIZED = "unauthorized"
RATE_LIMITED = "rate_limited"
GITHUB_API_ERROR = "github_api_error"

INVALID_INPUT = "invalid_input"
NETWORK_ERROR = "network_error"
INTERNAL = "internal"
CONFIG = "config"

# Kinds that mean the request was refused before reaching GitHub.
DENIED_KINDS: frozenset[str] = frozenset({FORBIDDEN, UNAUTHORIZED, INVALID_INPUT})


@dataclass(frozen=True, slots=True)
class SafeError(Exception):
    """An error descriptor safe to expose to agents."""

    kind: str
    message: str
    hint: str | None = None
    status: int | None = None


def unauthorized_error(operation: str) -> SafeError:
    """Return the error for a write attempted without a configured token."""
    return SafeError(
        kind=UNAUTHORIZED,
        message=f"GITHUB_TOKEN is required for {operation}",
        hint="Set GITHUB_TOKEN in the server environment to enable write operations",
    )


def forbidden_repo_error(owner: str, repo: str) -> SafeError:
    """Return the error for a repository outside the allowlist."""
    return SafeError(
        kind=FORBIDDEN,
        message=f"Repository {owner}/{repo} is not in the allowlist",
        hint="Add the repository to config/allowed_repos.json and restart the server",
    )


def safe_error_to_result(err: SafeError) -> dict[str, Any]:
    """Convert a SafeError into the standard tool envelope."""
    return to_error_result(kind=err.kind, message=err.message, hint=err.hint, status=err.status)


def to_error_result(
    *,
    kind: str,
    message: str,
    hint: str | None = None,
    status: int | None = None,
) -> dict[str, Any]:
    """Build a standard tool error envelope."""
    out: dict[str, Any] = {"ok": False, "kind": kind, "message": message}
    if status is not None:
        out["status"] = status
    if hint:
        out["hint"] = hint
    return out


def internal_error(message: str = "Internal error") -> dict[str, Any]:
    """Error for unexpected failures."""
    return to_error_result(kind=INTERNAL, message=message)
