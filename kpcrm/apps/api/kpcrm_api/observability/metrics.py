"""Metric-style structured log events.

Usage:
    from kpcrm_api.observability.metrics import log_auth_failure, log_rate_limit_exceeded

    log_auth_failure(reason="invalid_token", path="/api/v1/contacts")
    log_rate_limit_exceeded(bucket="auth", client_key="ip:203.0.113.7")

Each event is a log line whose message equals its ``event`` field, so a log
aggregator can count them without a separate metrics backend.

Security:
- Bearer tokens and client identifiers are NEVER logged raw (hashed prefix only)
- user_id is logged in full (internal identifier, not PII)
"""

import hashlib
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def hash_identifier(value: Optional[str]) -> str:
    """SHA256 hash (first 16 chars) of a token, IP or other client identifier."""
    if not value:
        return "unknown"
    return hashlib.sha256(value.encode()).hexdigest()[:16]


# ============================================================================
# Auth Metrics
# ============================================================================


def log_auth_failure(reason: str, path: Optional[str] = None, user_id: Optional[str] = None) -> None:
    """Log an authentication failure (401).

    Args:
        reason: Stable reason code (missing_token, invalid_token, timeout,
            provider_error, profile_not_found, unknown_role)
        path: Request path
        user_id: Set when the token verified but a later step failed
    """
    # profile drift and provider outages are operator problems, not caller mistakes
    level = logging.ERROR if reason in {"provider_error", "profile_not_found", "timeout"} else logging.INFO
    logger.log(
        level,
        "auth.failure",
        extra={"event": "auth.failure", "reason": reason, "path": path, "user_id": user_id},
    )


def log_authorization_denied(user_id: str, role: str, required_roles: list[str], path: Optional[str] = None) -> None:
    """Log a role-gate denial (403)."""
    logger.warning(
        "auth.forbidden",
        extra={
            "event": "auth.forbidden",
            "user_id": user_id,
            "role": role,
            "required_roles": sorted(required_roles),
            "path": path,
        },
    )


# ============================================================================
# Validation Metrics
# ============================================================================


def log_validation_failure(entity: str, operation: str, fields: list[str]) -> None:
    """Log a rejected payload (400). Field names only, never values."""
    logger.info(
        "validation.failure",
        extra={
            "event": "validation.failure",
            "entity": entity,
            "operation": operation,
            "fields": fields,
            "error_count": len(fields),
        },
    )


# ============================================================================
# Rate Limit Metrics
# ============================================================================


def log_rate_limit_exceeded(bucket: str, client_key: str, limit: Optional[int] = None) -> None:
    """Log a rate limit hit (429).

    Args:
        bucket: Route group ("auth" or "api")
        client_key: Raw limiter key (hashed before logging)
        limit: Quota for the window
    """
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "event": "rate_limit.exceeded",
            "bucket": bucket,
            "client_key_hash": hash_identifier(client_key),
            "limit": limit,
        },
    )
