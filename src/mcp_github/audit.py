"""Structured audit logging.

Exactly one audit event is written per operation attempt. Events are JSON lines on the
`mcp_github.audit` logger (stderr through the root handler) and, when configured, in a
rotating file. Events must never contain the GitHub token.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

AUDIT_LOGGER_NAME = "mcp_github.audit"

SUCCEEDED = "succeeded"
DENIED = "denied"
FAILED = "failed"
CONFIRMATION_REQUIRED = "confirmation_required"


def new_correlation_id() -> str:
    """Generate a random correlation id for traceability."""
    return uuid.uuid4().hex


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """A single audit event."""

    timestamp: str
    correlation_id: str
    operation: str
    target_repo: str
    write: bool
    outcome: str
    kind: str | None = None
    status: int | None = None
    duration_ms: int | None = None

    def to_json(self) -> str:
        payload = {k: v for k, v in asdict(self).items() if v is not None}
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class AuditLogger:
    """Writes audit events through stdlib logging."""

    def __init__(
        self,
        *,
        sink_path: Path | None = None,
        max_bytes: int = 5 * 1024 * 1024,
        max_backups: int = 2,
    ) -> None:
        """Create an audit logger, attaching a rotating file sink when a path is given."""
        self._logger = logging.getLogger(AUDIT_LOGGER_NAME)
        self._file_handler: RotatingFileHandler | None = None
        if sink_path is not None:
            try:
                sink_path.parent.mkdir(parents=True, exist_ok=True)
                handler = RotatingFileHandler(
                    sink_path,
                    maxBytes=max_bytes,
                    backupCount=max_backups,
                    encoding="utf-8",
                )
            except OSError as exc:
                # An unusable sink must not stop the server; stderr still carries events.
                logging.getLogger(__name__).error("Audit file sink disabled: %s", exc.strerror)
            else:
                handler.setFormatter(logging.Formatter("%(message)s"))
                self._logger.addHandler(handler)
                self._file_handler = handler

    def write_event(self, event: AuditEvent) -> None:
        """Emit one event."""
        self._logger.info(event.to_json())

    def close(self) -> None:
        """Detach and close the file sink, if any."""
        if self._file_handler is not None:
            self._logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def measure_start(self) -> float:
        """Return a monotonic start timestamp for duration measurement."""
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        """Convert a monotonic start timestamp into elapsed milliseconds."""
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    target_repo: str,
    write: bool,
    outcome: str,
    kind: str | None = None,
    status: int | None = None,
    duration_ms: int | None = None,
) -> AuditEvent:
    """Construct an audit event."""
    return AuditEvent(
        timestamp=_now_rfc3339(),
        correlation_id=correlation_id,
        operation=operation,
        target_repo=target_repo,
        write=write,
        outcome=outcome,
        kind=kind,
        status=status,
        duration_ms=duration_ms,
    )
