"""User administration endpoints.

Reads are open to admins and managers; every write is admin only. Creating a
user registers the account with Supabase Auth first, then inserts the
application profile row under the same id (the password never reaches the
users table).
"""

import logging
from typing import Any

from kpcrm_api.auth.roles import ADMIN_ONLY, ADMIN_OR_MANAGER
from kpcrm_api.errors import FieldError, ValidationError
from kpcrm_api.repositories.table_repository import USERS, TableRepository
from kpcrm_api.routers.entities import build_entity_router

logger = logging.getLogger(__name__)

_CONFLICT_STATUSES = (400, 409, 422)


def create_user_account(repo: TableRepository, payload: dict[str, Any]) -> dict[str, Any]:
    """Register the auth account, then insert the profile row.

    If the profile insert fails the auth account is deleted again before the
    error propagates.

    Raises:
        ValidationError: If the identity provider refuses the email (e.g. already registered)
    """
    profile = dict(payload)
    password = profile.pop("password")

    try:
        response = repo.client.auth.admin.create_user(
            {
                "email": profile["email"],
                "password": password,
                "email_confirm": True,
                "user_metadata": {"full_name": profile["fullName"], "role": profile["role"]},
            }
        )
    except Exception as exc:
        if getattr(exc, "status", None) in _CONFLICT_STATUSES:
            logger.warning(
                "user.create.rejected",
                extra={"event": "user.create.rejected", "error_type": type(exc).__name__},
            )
            raise ValidationError(
                [FieldError(field="email", message="A user with this email cannot be created")]
            ) from exc
        raise

    user_id = str(response.user.id)
    try:
        return repo.create(profile, extra_columns={"id": user_id})
    except Exception:
        # no auth account may outlive a failed profile insert
        logger.error(
            "user.create.profile_failed",
            extra={"event": "user.create.profile_failed", "user_id": user_id},
        )
        try:
            repo.client.auth.admin.delete_user(user_id)
        except Exception as cleanup_exc:
            logger.error(
                "user.create.rollback_failed",
                extra={
                    "event": "user.create.rollback_failed",
                    "user_id": user_id,
                    "error_type": type(cleanup_exc).__name__,
                },
            )
        raise


router = build_entity_router(
    USERS,
    prefix="/users",
    tag="users",
    read_roles=ADMIN_OR_MANAGER,
    write_roles=ADMIN_ONLY,
    delete_roles=ADMIN_ONLY,
    creator=create_user_account,
)
