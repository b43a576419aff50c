"""Repository allowlist.

The allowlist is loaded once at startup from a JSON file of the form
`{"allowedRepos": ["owner/repo", ...]}` and is immutable afterwards. Loading fails closed:
any problem yields an empty allowlist, which forbids every repository.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def normalize_repo(owner: str, repo: str) -> str:
    """Return the case-folded `owner/repo` key."""
    return f"{owner}/{repo}".lower()


def _parse_allowed_repos(document: Any) -> frozenset[str]:
    if not isinstance(document, dict):
        raise ValueError("Invalid config: top-level value must be an object")
    entries = document.get("allowedRepos")
    if not isinstance(entries, list):
        raise ValueError("Invalid config: allowedRepos must be an array")
    for entry in entries:
        if not isinstance(entry, str):
            raise ValueError("Invalid config: allowedRepos entries must be strings")
    return frozenset(entry.strip().lower() for entry in entries if entry.strip())


def load_allowed_repos(path: Path) -> frozenset[str]:
    """Load the allowlist file, returning an empty set on any failure."""
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
        repos = _parse_allowed_repos(document)
    except (OSError, ValueError) as exc:
        # json.JSONDecodeError and UnicodeDecodeError are ValueErrors.
        logger.error("Failed to load allowed repositories config: %s", exc)
        logger.error("Server will run in read-only mode with no repository access")
        return frozenset()

    logger.info("Loaded %s allowed repositories", len(repos))
    return repos


@dataclass(frozen=True, slots=True)
class RepoAllowlist:
    """Case-insensitive set of repositories the server may touch."""

    repos: frozenset[str] = frozenset()

    @classmethod
    def of(cls, *entries: str) -> RepoAllowlist:
        """Build an allowlist from `owner/repo` strings in any case."""
        return cls(frozenset(e.strip().lower() for e in entries if e.strip()))

    def is_allowed(self, owner: str, repo: str) -> bool:
        """Return True if `owner/repo` is allowlisted."""
        return normalize_repo(owner, repo) in self.repos

    def __len__(self) -> int:
        return len(self.repos)

    def describe(self) -> dict[str, Any]:
        """Return a non-secret summary for status output."""
        return {"allowed_repos": sorted(self.repos), "total_count": len(self.repos)}
