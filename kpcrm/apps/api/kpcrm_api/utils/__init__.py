"""Utility functions and helpers."""

from kpcrm_api.utils.logging import JSONFormatter, configure_json_logging
from kpcrm_api.utils.sanitize import fingerprint, sanitize_obj, sanitize_str

__all__ = [
    "JSONFormatter",
    "configure_json_logging",
    "fingerprint",
    "sanitize_obj",
    "sanitize_str",
]
