"""Configuration loading for mcp-github.

Configuration is supplied by the host (environment, `.env`, allowlist file), never by the
agent. The GitHub token is a secret and must never be emitted to agents, logs, or audit
reasons.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .allowlist import RepoAllowlist, load_allowed_repos
from .errors import CONFIG, SafeError

logger = logging.getLogger(__name__)

DEFAULT_ALLOWLIST_PATH = Path("config") / "allowed_repos.json"
# Checkout root when running from the source tree (src/mcp_github/config.py).
PROJECT_ROOT = Path(__file__).resolve().parents[2]


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Network limits for a single upstream call."""

    total_timeout_s: float = 30.0
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 20.0


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Process-wide configuration, built once at start."""

    token: str | None = field(repr=False)
    allowlist: RepoAllowlist
    audit_log_path: Path | None = None
    audit_max_bytes: int = 5 * 1024 * 1024
    audit_max_backups: int = 2
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    @property
    def has_token(self) -> bool:
        """Return whether write operations are enabled."""
        return bool(self.token)


def _allowlist_path() -> Path:
    """Resolve the allowlist file.

    An explicit MCP_GITHUB_ALLOWED_REPOS_FILE wins. Otherwise `config/allowed_repos.json`
    under the working directory is used if it exists, then the one in the project root.
    """
    raw = os.getenv("MCP_GITHUB_ALLOWED_REPOS_FILE")
    if raw:
        return Path(raw)
    cwd_path = Path.cwd() / DEFAULT_ALLOWLIST_PATH
    if cwd_path.is_file():
        return cwd_path
    root_path = PROJECT_ROOT / DEFAULT_ALLOWLIST_PATH
    if root_path.is_file():
        return root_path
    return cwd_path


def load_config_from_env(*, dotenv: bool = True) -> AppConfig:
    """Load configuration from the environment and the allowlist file.

    A missing token or a broken allowlist file never fails startup; they restrict what the
    server may do instead.

    Raises:
        SafeError: If an optional setting is present but invalid.
    """
    if dotenv:
        load_dotenv()

    token = os.getenv("GITHUB_TOKEN") or None
    if token is None:
        logger.warning("GITHUB_TOKEN not set; running in read-only mode, write tools are disabled")
    else:
        logger.info("GITHUB_TOKEN set; read/write access enabled for allowlisted repositories")

    allowlist_path = _allowlist_path()
    logger.info("Using allowed repositories file %s", allowlist_path)
    allowlist = RepoAllowlist(load_allowed_repos(allowlist_path))

    audit_path_raw = os.getenv("MCP_GITHUB_AUDIT_LOG_PATH")
    audit_path: Path | None = None
    if audit_path_raw:
        p = Path(audit_path_raw)
        if not p.is_absolute():
            raise SafeError(kind=CONFIG, message="MCP_GITHUB_AUDIT_LOG_PATH must be an absolute path when set")
        audit_path = p

    return AppConfig(token=token, allowlist=allowlist, audit_log_path=audit_path)
