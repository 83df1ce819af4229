"""Response envelope builders shared by routers and exception handlers."""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi.responses import JSONResponse

from kpcrm_api.errors import CrmError, ValidationError


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def success_body(data: Any, pagination: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    meta: dict[str, Any] = {"timestamp": utc_timestamp()}
    if pagination is not None:
        meta["pagination"] = pagination
    return {"success": True, "data": data, "meta": meta}


def validation_error_response(exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "errors": [error.to_dict() for error in exc.errors],
            "meta": {"timestamp": utc_timestamp()},
        },
    )


def error_response(
    status_code: int, message: str, headers: Optional[dict[str, str]] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"message": message, "statusCode": status_code},
        headers=headers,
    )


def crm_error_response(exc: CrmError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)
