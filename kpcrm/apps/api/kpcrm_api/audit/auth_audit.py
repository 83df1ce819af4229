"""Audit record builder for authentication / authorization denials.

The record never contains the raw bearer token; only a short sha256
fingerprint, enough to correlate repeated attempts with the same token.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from kpcrm_api.audit.sinks import AuditSink
from kpcrm_api.utils.sanitize import fingerprint

logger = logging.getLogger(__name__)

EVENT_AUTHENTICATION_DENIED = "auth.authentication.denied"
EVENT_AUTHORIZATION_DENIED = "auth.authorization.denied"


def build_denial_record(
    *,
    event: str,
    reason: str,
    token: Optional[str],
    user_id: Optional[str] = None,
    role: Optional[str] = None,
    path: Optional[str] = None,
    method: Optional[str] = None,
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    """Build a structured denial record.

    Args:
        event: EVENT_AUTHENTICATION_DENIED or EVENT_AUTHORIZATION_DENIED
        reason: Stable reason code (missing_token, invalid_token, timeout, ...)
        token: Raw bearer token if one was presented (fingerprinted, never stored)
        user_id: Caller id when the identity was resolved
        role: Caller role (authorization denials only)
        path / method: Request line
        request_id: X-Request-ID of the request
    """
    return {
        "event": event,
        "reason": reason,
        "token_fingerprint": fingerprint(token) if token else None,
        "user_id": user_id,
        "role": role,
        "request": {"path": path, "method": method, "request_id": request_id},
        "ts": datetime.now(timezone.utc).isoformat(),
    }


def record_denial(sink: Optional[AuditSink], record: dict[str, Any]) -> None:
    """Hand a denial record to the sink; a sink failure is logged and never raised."""
    if sink is None:
        return
    key = f"auth/{record['ts'][:10]}/{record['event']}/{uuid.uuid4().hex}"
    try:
        sink.put_record(key, record)
    except Exception as exc:
        logger.error(
            "AUDIT_WRITE_FAILED",
            extra={"event": record.get("event"), "error_type": type(exc).__name__},
        )
