"""Audit sink implementations for access-denial records.

Sink selection (get_default_audit_sink):
  AUTH_AUDIT_DIR set → FileAuditSink (one JSON file per record in that directory)
  otherwise          → LoggingAuditSink (records emitted as structured log lines)

Writes are best effort from the caller's point of view: the authorization
layer logs a failing sink and keeps its decision.

Test helpers:
  FailingAuditSink → always raises RuntimeError
"""

import json
import logging
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from kpcrm_api.config.env import Settings

logger = logging.getLogger(__name__)


# ── Protocol ──────────────────────────────────────────────────────────────────

@runtime_checkable
class AuditSink(Protocol):
    """Minimal interface for all audit sinks."""

    def put_record(self, key: str, data: dict, *, content_type: str = "application/json") -> None:
        """Write an audit record.

        Args:
            key: Record key / file name (unique per record).
            data: Record payload dict (will be JSON-serialised).
            content_type: MIME type of the payload.

        Raises:
            RuntimeError: If the write fails.
        """
        ...


# ── Logging sink (default) ────────────────────────────────────────────────────

class LoggingAuditSink:
    """Emit audit records through the dedicated ``kpcrm_api.audit`` logger."""

    def __init__(self, logger_name: str = "kpcrm_api.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def put_record(self, key: str, data: dict, *, content_type: str = "application/json") -> None:
        self._logger.warning("AUDIT_RECORD", extra={"audit_key": key, "audit": data})


# ── File sink ─────────────────────────────────────────────────────────────────

class FileAuditSink:
    """Write audit records as JSON files on the local filesystem.

    Each record is written as a separate file named by key.
    """

    def __init__(self, directory: str) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    def put_record(self, key: str, data: dict, *, content_type: str = "application/json") -> None:
        # Sanitize key → safe filename (replace slashes / colons)
        filename = key.replace("/", "_").replace(":", "_") + ".json"
        filepath = self._dir / filename
        body = json.dumps(data, ensure_ascii=False, indent=2, default=str)
        try:
            filepath.write_text(body, encoding="utf-8")
        except OSError as exc:
            raise RuntimeError(f"File audit write failed: {exc}") from exc
        logger.info("AUDIT_FILE_WRITTEN", extra={"path": str(filepath)})


# ── Failing sink (test helper) ────────────────────────────────────────────────

class FailingAuditSink:
    """Always raises RuntimeError.  Used in tests to simulate sink failure."""

    def put_record(self, key: str, data: dict, *, content_type: str = "application/json") -> None:
        raise RuntimeError("FailingAuditSink: intentional failure for testing")


# ── Factory ───────────────────────────────────────────────────────────────────

def get_default_audit_sink(settings: Optional[Settings] = None) -> AuditSink:
    """Return the sink selected by configuration (file directory, else logging)."""
    directory = settings.auth_audit_dir if settings else None
    if directory:
        logger.info("AUDIT_SINK_FILE", extra={"directory": directory})
        return FileAuditSink(directory=directory)

    logger.info("AUDIT_SINK_LOGGING")
    return LoggingAuditSink()
