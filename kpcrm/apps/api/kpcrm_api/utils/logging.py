"""Structured JSON logging utilities.

- One JSON object per line for log aggregation
- Standard fields: timestamp, level, logger, message, module, func, line
- Request context (request_id, user_id, organization_id) pulled from contextvars
- Every message and extra value passes through the sanitizer
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from kpcrm_api.context import organization_id_var, request_id_var, user_id_var
from kpcrm_api.utils.sanitize import REDACTED, is_sensitive_key, sanitize_exc, sanitize_obj, sanitize_str

_RESERVED_ATTRS = frozenset(logging.makeLogRecord({}).__dict__.keys()) | {"message", "asctime"}

_CONTEXT_VARS = (
    ("request_id", request_id_var),
    ("user_id", user_id_var),
    ("organization_id", organization_id_var),
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter with request context.

    Context fields are omitted (not empty strings) outside a request, e.g. at
    startup or in CLI scripts.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_str(record.getMessage()),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }

        for field_name, var in _CONTEXT_VARS:
            value = var.get()
            if value:
                log_data[field_name] = value

        if record.exc_info:
            log_data["exc_info"] = sanitize_exc(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_") or key in log_data:
                continue
            log_data[key] = REDACTED if is_sensitive_key(key) else sanitize_obj(value)

        return json.dumps(log_data, default=str)


def configure_json_logging(log_level: str = "INFO") -> None:
    """Configure root logger with JSON formatter.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)
