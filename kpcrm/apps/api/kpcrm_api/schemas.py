"""Pydantic schemas for API responses.

Request payloads are validated by kpcrm_api.validation (entity schemas); the
models here document the response envelopes in OpenAPI.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Envelopes
# ============================================================================


class Pagination(BaseModel):
    """Pagination block for list responses."""

    limit: int
    offset: int
    total: int = Field(..., description="Total matching records")
    has_more: bool = Field(..., alias="hasMore")

    model_config = {"populate_by_name": True}


class Meta(BaseModel):
    timestamp: str = Field(..., description="ISO-8601 UTC timestamp")
    pagination: Optional[Pagination] = None


class SuccessResponse(BaseModel):
    """{success: true, data, meta} envelope."""

    success: bool = True
    data: Any
    meta: Meta


class FieldErrorModel(BaseModel):
    field: str = Field(..., description="Dotted path of the offending field, e.g. address.zipCode")
    message: str


class ValidationErrorResponse(BaseModel):
    """400 response for payloads that fail schema validation."""

    success: bool = False
    errors: list[FieldErrorModel]
    meta: Meta


class ErrorResponse(BaseModel):
    """{message, statusCode} body for 400 (malformed JSON), 401, 403, 404, 429 and 500."""

    message: str
    status_code: int = Field(..., alias="statusCode")

    model_config = {"populate_by_name": True}


# ============================================================================
# Auth
# ============================================================================


class SessionTokens(BaseModel):
    access_token: str = Field(..., alias="accessToken")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    expires_in: Optional[int] = Field(None, alias="expiresIn")

    model_config = {"populate_by_name": True}


class CurrentUser(BaseModel):
    """Response data for GET /api/v1/auth/me."""

    id: str
    email: str
    role: str
    organization_id: Optional[str] = Field(None, alias="organizationId")

    model_config = {"populate_by_name": True}


# ============================================================================
# Health
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    services: dict[str, str]


COMMON_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ValidationErrorResponse, "description": "Validation failed or malformed JSON"},
    401: {"model": ErrorResponse, "description": "Authentication required"},
    403: {"model": ErrorResponse, "description": "Insufficient permissions"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
}
