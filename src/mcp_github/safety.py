"""Safety helpers.

Agent-provided text ends up in public issues and comments, so anything that looks like a
GitHub credential is rejected before the request goes upstream. Suspected secret values are
never echoed back.
"""

from __future__ import annotations

import re
from typing import Any

from .errors import INVALID_INPUT, SafeError

_TOKEN_RE = re.compile(
    r"(?<![A-Za-z0-9_])(?:gh[pousr]_[A-Za-z0-9]{30,}|github_pat_[A-Za-z0-9_]{40,})(?![A-Za-z0-9_])"
)
_BEARER_RE = re.compile(r"\bbearer\s+[A-Za-z0-9._~+/-]{20,}=*", re.IGNORECASE)


def looks_like_secret_value(value: str) -> bool:
    """Return True if the value contains something shaped like a GitHub token.

    A bare prefix such as `ghp_` or the word "Bearer" in prose is not enough; the prefix
    must be followed by a token-length run, and "Bearer" by an opaque credential.
    """
    if not isinstance(value, str):
        return False
    return bool(_TOKEN_RE.search(value) or _BEARER_RE.search(value))


def validate_no_secrets(obj: Any) -> None:
    """Reject agent input that appears to contain credentials.

    Raises:
        SafeError: Without echoing the suspected value.
    """
    if isinstance(obj, dict):
        for v in obj.values():
            validate_no_secrets(v)
    elif isinstance(obj, list):
        for item in obj:
            validate_no_secrets(item)
    elif looks_like_secret_value(obj):
        raise SafeError(
            kind=INVALID_INPUT,
            message="Credential-like values are not allowed",
            hint="Remove tokens or Authorization headers from the request text",
        )


def redact_text(text: str, secret: str | None) -> str:
    """Return `text` with the configured secret masked, for logs."""
    if not isinstance(text, str):
        return "<non-string>"
    if secret and secret in text:
        return text.replace(secret, "<redacted>")
    return text
