"""Auth endpoints.

Endpoints:
- POST /api/v1/auth/login: Email/password sign-in (returns session tokens + profile)
- GET /api/v1/auth/me: Current caller's identity
- POST /api/v1/auth/change-password: Re-verify current password, then set a new one

SECURITY:
- Passwords are never logged
- Sign-in failures return a generic "Invalid credentials" (no account enumeration)
- Sign-in has its own, stricter rate limit bucket (see rate_limiter.policy_for_path)
"""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from supabase import Client

from kpcrm_api.auth.session_auth import AuthContext, get_authenticator, require_auth
from kpcrm_api.errors import AuthenticationError, FieldError, ProfileNotFoundError, ValidationError
from kpcrm_api.responses import success_body
from kpcrm_api.routers.deps import get_data_client, read_json_body, validated
from kpcrm_api.schemas import COMMON_ERROR_RESPONSES, CurrentUser, SessionTokens, SuccessResponse

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={200: {"model": SuccessResponse}, **COMMON_ERROR_RESPONSES},
)
logger = logging.getLogger(__name__)

_REJECTED_STATUSES = (400, 401, 403)


def get_auth_client(request: Request) -> Client:
    """Publishable-key client for this request's password sign-in (never shared)."""
    return request.app.state.auth_client_factory()


def _sign_in(client: Client, email: str, password: str) -> Any:
    """
    Raises:
        AuthenticationError: If Supabase rejects the credentials
    """
    try:
        response = client.auth.sign_in_with_password({"email": email, "password": password})
    except Exception as exc:
        if getattr(exc, "status", None) in _REJECTED_STATUSES:
            raise AuthenticationError("Invalid credentials", reason="invalid_credentials") from exc
        raise

    if not response.user or not response.session:
        raise AuthenticationError("Invalid credentials", reason="invalid_credentials")
    return response


@router.post("/login")
async def login(
    request: Request,
    client: Client = Depends(get_auth_client),
) -> dict[str, Any]:
    """Sign in with email/password.

    Returns:
        200 with {user, session}

    Raises:
        ValidationError 400: Malformed email/password payload
        AuthenticationError 401: Invalid credentials or no application profile
    """
    credentials = validated("user", "login", await read_json_body(request))

    logger.info("auth.login.attempt", extra={"event": "auth.login.attempt"})
    response = await asyncio.to_thread(
        _sign_in, client, credentials["email"], credentials["password"]
    )

    user_id = str(response.user.id)
    authenticator = get_authenticator(request)
    profile = await asyncio.to_thread(authenticator.profile_store.get_profile, user_id)
    if profile is None:
        logger.error(
            "auth.login.profile_missing",
            extra={"event": "auth.login.profile_missing", "user_id": user_id},
        )
        raise ProfileNotFoundError(user_id)

    logger.info("auth.login.success", extra={"event": "auth.login.success", "user_id": user_id})

    user = CurrentUser(
        id=profile.id, email=profile.email, role=profile.role, organization_id=profile.organization_id
    )
    tokens = SessionTokens(
        access_token=response.session.access_token,
        refresh_token=response.session.refresh_token,
        expires_in=response.session.expires_in,
    )
    return success_body(
        {"user": user.model_dump(by_alias=True), "session": tokens.model_dump(by_alias=True)}
    )


@router.get("/me")
async def me(auth: AuthContext = Depends(require_auth)) -> dict[str, Any]:
    """Return the authenticated caller's identity."""
    user = CurrentUser(
        id=auth.user_id, email=auth.email, role=auth.role, organization_id=auth.organization_id
    )
    return success_body(user.model_dump(by_alias=True))


@router.post("/change-password")
async def change_password(
    request: Request,
    auth: AuthContext = Depends(require_auth),
    client: Client = Depends(get_auth_client),
) -> dict[str, Any]:
    """Change the caller's password.

    The current password is re-verified by signing in with it; the new
    password is then set through the admin API.

    Raises:
        ValidationError 400: Payload invalid, passwords do not match, or the
            current password is wrong (reported on currentPassword)
    """
    payload = validated("user", "changePassword", await read_json_body(request))

    try:
        await asyncio.to_thread(_sign_in, client, auth.email, payload["currentPassword"])
    except AuthenticationError:
        raise ValidationError(
            [FieldError(field="currentPassword", message="Current password is incorrect")]
        ) from None

    admin_client = get_data_client(request)
    await asyncio.to_thread(
        admin_client.auth.admin.update_user_by_id, auth.user_id, {"password": payload["newPassword"]}
    )
    logger.info(
        "auth.password.changed",
        extra={"event": "auth.password.changed", "user_id": auth.user_id},
    )
    return success_body({"message": "Password updated successfully"})
