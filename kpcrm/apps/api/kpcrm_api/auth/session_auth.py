"""Bearer-token authentication and role gating.

FLOW:
1. Client signs in via POST /api/v1/auth/login -> receives access_token
2. Client calls the API with Authorization: Bearer <token>
3. Authenticator verifies the token with the identity provider, then loads
   the application profile (users table, soft-deleted rows excluded)
4. Returns AuthContext(user_id, email, role, organization_id)

SECURITY:
- Fail closed: provider outage, timeout, missing profile or an unknown role
  all end in a generic 401, each logged with its own reason code
- Every 401/403 raised by the dependencies is handed to the audit sink
- Role gating is coarse; database RLS remains the system of record
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import Depends, Request

from kpcrm_api.audit.auth_audit import (
    EVENT_AUTHENTICATION_DENIED,
    EVENT_AUTHORIZATION_DENIED,
    build_denial_record,
    record_denial,
)
from kpcrm_api.audit.sinks import AuditSink
from kpcrm_api.auth.identity import IdentityProvider, ProfileStore
from kpcrm_api.auth.roles import KNOWN_ROLES, is_role_permitted
from kpcrm_api.context import organization_id_var, request_id_var, user_id_var
from kpcrm_api.errors import AuthenticationError, AuthorizationError, ProfileNotFoundError
from kpcrm_api.observability.metrics import log_auth_failure, log_authorization_denied
from kpcrm_api.result import Err, Ok, Result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Identity of an authenticated caller, attached to request.state.auth."""

    user_id: str
    email: str
    role: str
    organization_id: Optional[str] = None


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from "Bearer <token>" (scheme case-insensitive), else None."""
    if not authorization:
        return None
    parts = authorization.strip().split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


class Authenticator:
    """Resolves an Authorization header into an AuthContext.

    authenticate() never raises: it returns Ok(AuthContext) or
    Err(AuthenticationError) so the required and optional dependencies can
    apply their own policy to the same outcome.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        profile_store: ProfileStore,
        timeout_seconds: float = 5.0,
        audit_sink: Optional[AuditSink] = None,
    ):
        self.identity_provider = identity_provider
        self.profile_store = profile_store
        self.timeout_seconds = timeout_seconds
        self.audit_sink = audit_sink

    async def _call(self, fn: Callable[[str], Any], arg: str) -> Any:
        return await asyncio.wait_for(asyncio.to_thread(fn, arg), timeout=self.timeout_seconds)

    def _fail(
        self, reason: str, path: Optional[str], user_id: Optional[str] = None
    ) -> Err[AuthenticationError]:
        log_auth_failure(reason=reason, path=path, user_id=user_id)
        if reason == "profile_not_found" and user_id:
            return Err(ProfileNotFoundError(user_id))
        return Err(AuthenticationError(reason=reason))

    async def authenticate(
        self, authorization: Optional[str], path: Optional[str] = None
    ) -> Result[AuthContext, AuthenticationError]:
        """Authenticate a request from its Authorization header value.

        Args:
            authorization: Raw header value (may be None)
            path: Request path, for logging only

        Returns:
            Ok(AuthContext) or Err(AuthenticationError) with a reason code
        """
        token = extract_bearer_token(authorization)
        if token is None:
            return Err(AuthenticationError(reason="missing_token"))

        try:
            identity = await self._call(self.identity_provider.verify_token, token)
        except asyncio.TimeoutError:
            return self._fail("timeout", path)
        except Exception:
            logger.error("Token verification failed", exc_info=True)
            return self._fail("provider_error", path)

        if identity is None:
            return self._fail("invalid_token", path)

        try:
            profile = await self._call(self.profile_store.get_profile, identity.user_id)
        except asyncio.TimeoutError:
            return self._fail("timeout", path, identity.user_id)
        except Exception:
            logger.error("Profile lookup failed", exc_info=True, extra={"user_id": identity.user_id})
            return self._fail("provider_error", path, identity.user_id)

        if profile is None:
            return self._fail("profile_not_found", path, identity.user_id)

        if profile.role not in KNOWN_ROLES:
            logger.error(
                "Profile has an unrecognized role",
                extra={"event": "auth.unknown_role", "user_id": profile.id, "role": profile.role},
            )
            return self._fail("unknown_role", path, profile.id)

        logger.debug(
            "Request authenticated",
            extra={"event": "auth.success", "user_id": profile.id, "role": profile.role},
        )
        return Ok(
            AuthContext(
                user_id=profile.id,
                email=profile.email or identity.email or "",
                role=profile.role,
                organization_id=profile.organization_id,
            )
        )

    def audit_denial(
        self,
        request: Request,
        *,
        event: str,
        reason: str,
        user_id: Optional[str] = None,
        role: Optional[str] = None,
    ) -> None:
        record = build_denial_record(
            event=event,
            reason=reason,
            token=extract_bearer_token(request.headers.get("authorization")),
            user_id=user_id,
            role=role,
            path=request.url.path,
            method=request.method,
            request_id=request_id_var.get() or None,
        )
        record_denial(self.audit_sink, record)


# ============================================================================
# FastAPI dependencies
# ============================================================================


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def _attach(request: Request, auth: AuthContext) -> None:
    request.state.auth = auth
    user_id_var.set(auth.user_id)
    organization_id_var.set(auth.organization_id or "")


async def require_auth(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
) -> AuthContext:
    """Required mode: any authentication failure is a 401.

    Raises:
        AuthenticationError: 401 (ProfileNotFoundError when the profile is missing)
    """
    result = await authenticator.authenticate(
        request.headers.get("authorization"), path=request.url.path
    )
    if isinstance(result, Err):
        error = result.error
        if error.reason == "missing_token":
            # only a failure in required mode, so authenticate() leaves it unlogged
            log_auth_failure(reason=error.reason, path=request.url.path)
        authenticator.audit_denial(
            request,
            event=EVENT_AUTHENTICATION_DENIED,
            reason=error.reason,
            user_id=getattr(error, "user_id", None),
        )
        raise error

    _attach(request, result.value)
    return result.value


async def optional_auth(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
) -> Optional[AuthContext]:
    """Optional mode: proceed anonymously when authentication fails."""
    result = await authenticator.authenticate(
        request.headers.get("authorization"), path=request.url.path
    )
    if isinstance(result, Err):
        request.state.auth = None
        return None

    _attach(request, result.value)
    return result.value


def require_role(*roles: str) -> Callable[..., Any]:
    """Build a dependency granting access iff no roles are given or the caller holds one.

    Usage:
        @router.delete("/{id}", dependencies=[Depends(require_role(*ADMIN_OR_MANAGER))])

    Raises (from the dependency):
        AuthenticationError: 401 when unauthenticated
        AuthorizationError: 403 "Insufficient permissions"
    """
    allowed = frozenset(roles)

    async def role_dependency(
        request: Request,
        auth: AuthContext = Depends(require_auth),
        authenticator: Authenticator = Depends(get_authenticator),
    ) -> AuthContext:
        if not is_role_permitted(allowed, auth.role):
            log_authorization_denied(
                user_id=auth.user_id,
                role=auth.role,
                required_roles=list(allowed),
                path=request.url.path,
            )
            authenticator.audit_denial(
                request,
                event=EVENT_AUTHORIZATION_DENIED,
                reason="insufficient_role",
                user_id=auth.user_id,
                role=auth.role,
            )
            raise AuthorizationError()
        return auth

    return role_dependency
