"""Request helpers shared by the CRUD routers."""

import json
from typing import Any

from fastapi import Request
from supabase import Client

from kpcrm_api.errors import FieldError, MalformedBodyError, PayloadTooLargeError, ValidationError
from kpcrm_api.observability.metrics import log_validation_failure
from kpcrm_api.result import Err
from kpcrm_api.validation import validate_payload
from kpcrm_api.validation.common import UUID_PATTERN


def get_data_client(request: Request) -> Client:
    """Data store client for this app (injected in tests, lazy Supabase admin client otherwise)."""
    return request.app.state.data_client_factory()


async def read_json_body(request: Request) -> Any:
    """Decode the request body.

    Raises:
        PayloadTooLargeError: If the body is over the configured size limit
        MalformedBodyError: If the body is empty or not valid JSON
    """
    limit = request.app.state.settings.max_request_body_bytes
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError()

    raw = await request.body()
    if len(raw) > limit:
        raise PayloadTooLargeError()
    if not raw:
        raise MalformedBodyError("Request body is required")
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        raise MalformedBodyError() from None


def query_params(request: Request) -> dict[str, Any]:
    """Query string -> dict; repeated keys become lists."""
    params: dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key in params:
            existing = params[key]
            params[key] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            params[key] = value
    return params


def validated(entity: str, operation: str, payload: Any) -> dict[str, Any]:
    """Validate at the HTTP seam: Err becomes a raised ValidationError (400).

    Raises:
        ValidationError: With every violated field
    """
    result = validate_payload(entity, operation, payload)
    if isinstance(result, Err):
        log_validation_failure(entity, operation, result.error.fields)
        raise result.error
    return result.value


def require_uuid(record_id: str) -> str:
    """
    Raises:
        ValidationError: If the path id is not a UUID
    """
    if not UUID_PATTERN.match(record_id):
        raise ValidationError([FieldError(field="id", message="Invalid UUID format")])
    return record_id
