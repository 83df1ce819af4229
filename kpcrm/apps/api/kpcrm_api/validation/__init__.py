"""Declarative payload schemas and the validate_payload() entry point."""

from kpcrm_api.validation.registry import SCHEMAS, get_schema, validate_payload

__all__ = ["SCHEMAS", "get_schema", "validate_payload"]
