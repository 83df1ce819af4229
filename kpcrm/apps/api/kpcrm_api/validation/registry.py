"""Schema lookup and payload validation.

validate_payload() is the single entry point used by the routers: it returns
Ok(normalized_dict) or Err(ValidationError) carrying every violated field.
"""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from kpcrm_api.errors import FieldError, ValidationError
from kpcrm_api.result import Err, Ok, Result
from kpcrm_api.validation import schemas
from kpcrm_api.validation.common import SchemaModel

logger = logging.getLogger(__name__)

SCHEMAS: dict[str, dict[str, type[SchemaModel]]] = {
    "user": {
        "create": schemas.UserCreate,
        "update": schemas.UserUpdate,
        "search": schemas.UserSearch,
        "changePassword": schemas.ChangePassword,
        "login": schemas.Login,
    },
    "organization": {
        "create": schemas.OrganizationCreate,
        "update": schemas.OrganizationUpdate,
        "search": schemas.OrganizationSearch,
    },
    "contact": {
        "create": schemas.ContactCreate,
        "update": schemas.ContactUpdate,
        "search": schemas.ContactSearch,
    },
    "interaction": {
        "create": schemas.InteractionCreate,
        "update": schemas.InteractionUpdate,
        "search": schemas.InteractionSearch,
    },
    "opportunity": {
        "create": schemas.OpportunityCreate,
        "update": schemas.OpportunityUpdate,
        "search": schemas.OpportunitySearch,
    },
    "product": {
        "create": schemas.ProductCreate,
        "update": schemas.ProductUpdate,
        "search": schemas.ProductSearch,
    },
}

_MESSAGE_OVERRIDES = {
    "missing": "Required",
    "model_type": "Expected an object",
    "model_attributes_type": "Expected an object",
}


def get_schema(entity: str, operation: str) -> type[SchemaModel]:
    """Return the schema class for an (entity, operation) pair.

    Raises:
        LookupError: If the pair is not registered (a programming error)
    """
    try:
        return SCHEMAS[entity][operation]
    except KeyError:
        raise LookupError(f"No schema registered for {entity}.{operation}") from None


def _drop_nulls(value: Any) -> Any:
    """Explicit null is treated as an omitted field, at every nesting level."""
    if isinstance(value, dict):
        return {key: _drop_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [_drop_nulls(item) for item in value]
    return value


def _field_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) if loc else "body"


def to_field_errors(exc: PydanticValidationError) -> list[FieldError]:
    errors = []
    for error in exc.errors(include_url=False):
        message = _MESSAGE_OVERRIDES.get(error["type"], error["msg"])
        errors.append(FieldError(field=_field_path(error["loc"]), message=message))
    return errors


def validate_payload(
    entity: str, operation: str, payload: Any
) -> Result[dict[str, Any], ValidationError]:
    """Validate an untyped JSON-decoded payload against a registered schema.

    Args:
        entity: Entity name ("organization", "contact", ...)
        operation: "create", "update", "search" (users: "changePassword", "login")
        payload: Decoded request body or query-string mapping

    Returns:
        Ok with only recognized fields (camelCase keys, defaults applied), or
        Err with a ValidationError listing every violated field

    Raises:
        LookupError: If entity/operation is not registered
    """
    schema = get_schema(entity, operation)

    if not isinstance(payload, dict):
        return Err(ValidationError([FieldError(field="body", message="Expected an object")]))

    try:
        model = schema.model_validate(_drop_nulls(payload))
    except PydanticValidationError as exc:
        field_errors = to_field_errors(exc)
        logger.debug(
            "Payload validation failed",
            extra={"entity": entity, "operation": operation, "fields": [e.field for e in field_errors]},
        )
        return Err(ValidationError(field_errors))

    return Ok(model.model_dump(by_alias=True, exclude_none=True))
