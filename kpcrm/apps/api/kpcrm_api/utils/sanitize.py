"""Credential / PII scrubbing for log output.

Applied by the JSON formatter to every message and ``extra`` value:
 - strings over MAX_STR_LOG are replaced by a length + sha256 marker
 - strings over MAX_STR_FOR_REGEX only get the cheap Bearer/Basic prefix check
 - shorter strings run through the pre-compiled credential patterns
 - dict keys naming secrets (passwords, tokens, contact details) are redacted,
   matched case- and separator-insensitively so ``newPassword`` and
   ``new_password`` are treated alike
"""

import hashlib
import re
import traceback
from typing import Any

MAX_STR_LOG: int = 2048
MAX_STR_FOR_REGEX: int = 512
MAX_DEPTH: int = 6

REDACTED = "[REDACTED]"

# Normalized form: lowercase, "_" and "-" removed
_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "authorization",
    "cookie",
    "token",
    "accesstoken",
    "refreshtoken",
    "apikey",
    "secret",
    "password",
    "currentpassword",
    "newpassword",
    "confirmpassword",
    "servicekey",
    "email",
    "phone",
    "mobile",
})

_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"Bearer \S+", re.IGNORECASE),
    re.compile(r"Basic \S+", re.IGNORECASE),
    re.compile(r"(access_token|refresh_token|apikey|api_key)=\S+"),
    re.compile(r"eyJ[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]+"),
)


def _normalize_key(key: str) -> str:
    return key.lower().replace("_", "").replace("-", "")


def is_sensitive_key(key: Any) -> bool:
    return isinstance(key, str) and _normalize_key(key) in _SENSITIVE_KEYS


def fingerprint(value: str) -> str:
    """Short stable digest for correlating a secret across logs without storing it."""
    return hashlib.sha256(value.encode("utf-8", errors="replace")).hexdigest()[:12]


def sanitize_str(s: str) -> str:
    if not isinstance(s, str):
        return s  # type: ignore[return-value]

    n = len(s)
    if n > MAX_STR_LOG:
        return f"[TRUNCATED len={n} sha256={fingerprint(s)}]"

    if n > MAX_STR_FOR_REGEX:
        lowered = s[:7].lower()
        if lowered.startswith("bearer ") or lowered.startswith("basic "):
            return REDACTED
        return s

    result = s
    for pattern in _PATTERNS:
        result = pattern.sub(REDACTED, result)
    return result


def sanitize_obj(obj: Any, depth: int = 0) -> Any:
    """Recursively sanitize a log ``extra`` value (dicts, lists, tuples, strings)."""
    if depth >= MAX_DEPTH:
        return "[DEPTH_LIMIT]"

    if isinstance(obj, dict):
        return {
            key: REDACTED if is_sensitive_key(key) else sanitize_obj(value, depth + 1)
            for key, value in obj.items()
        }

    if isinstance(obj, (list, tuple)):
        return [sanitize_obj(item, depth + 1) for item in obj]

    if isinstance(obj, str):
        return sanitize_str(obj)

    return obj


def sanitize_exc(exc_info: tuple) -> str:
    """Format exc_info into a sanitized traceback (locals are never captured)."""
    _type, value, _tb = exc_info
    if value is None:
        return ""
    try:
        te = traceback.TracebackException.from_exception(value, capture_locals=False)
        return sanitize_str("".join(te.format()))
    except Exception:
        return "[TRACEBACK_FORMAT_ERROR]"
