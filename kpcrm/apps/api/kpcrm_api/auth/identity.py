"""Identity provider and profile store collaborators.

The Authenticator only sees the two protocols below; the Supabase-backed
implementations are wired in by the application factory and replaced by
fakes in tests. Both are synchronous (supabase-py is blocking) and are run
in worker threads by the caller.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from supabase import Client

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
_REJECTED_STATUSES = (401, 403)


class IdentityProviderError(Exception):
    """Identity provider or profile store could not answer (outage, bad response)."""


@dataclass(frozen=True)
class VerifiedIdentity:
    user_id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    id: str
    email: str
    role: str
    organization_id: Optional[str] = None


class IdentityProvider(Protocol):
    def verify_token(self, token: str) -> Optional[VerifiedIdentity]:
        """Return the identity for a valid token, None if the token is rejected."""
        ...


class ProfileStore(Protocol):
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """Return the active (not soft-deleted) profile, None if absent."""
        ...


class SupabaseIdentityProvider:
    """Verifies access tokens with Supabase Auth (signature + expiry checked server side)."""

    def __init__(self, client_factory: Callable[[], Client]):
        self._client_factory = client_factory

    def verify_token(self, token: str) -> Optional[VerifiedIdentity]:
        """
        Raises:
            IdentityProviderError: On anything other than an explicit token rejection
        """
        try:
            response = self._client_factory().auth.get_user(token)
        except Exception as exc:
            if getattr(exc, "status", None) in _REJECTED_STATUSES:
                return None
            raise IdentityProviderError(f"Identity provider call failed: {type(exc).__name__}") from exc

        if not response or not response.user:
            return None

        user = response.user
        if not getattr(user, "id", None):
            raise IdentityProviderError("Identity provider returned a user without an id")

        return VerifiedIdentity(user_id=str(user.id), email=getattr(user, "email", None))


class SupabaseProfileStore:
    """Reads application user records from the users table."""

    def __init__(self, client_factory: Callable[[], Client]):
        self._client_factory = client_factory

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """
        Raises:
            IdentityProviderError: If the query fails or a row is missing required columns
        """
        try:
            response = (
                self._client_factory()
                .table(USERS_TABLE)
                .select("id, email, role, organization_id")
                .eq("id", user_id)
                .is_("deleted_at", "null")
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise IdentityProviderError(f"Profile lookup failed: {type(exc).__name__}") from exc

        rows = response.data or []
        if not rows:
            return None

        row = rows[0]
        try:
            return UserProfile(
                id=str(row["id"]),
                email=row["email"],
                role=row["role"],
                organization_id=row.get("organization_id"),
            )
        except (KeyError, TypeError) as exc:
            raise IdentityProviderError("Profile row has an unexpected shape") from exc
