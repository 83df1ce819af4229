"""Application roles and the role sets routes are gated on.

The role gate is coarse: database row level security remains the access
control system of record.
"""

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    SALES_REP = "sales_rep"
    READ_ONLY = "read_only"


KNOWN_ROLES: frozenset[str] = frozenset(role.value for role in Role)

ADMIN_ONLY: frozenset[str] = frozenset({Role.ADMIN.value})
ADMIN_OR_MANAGER: frozenset[str] = frozenset({Role.ADMIN.value, Role.MANAGER.value})
WRITER_ROLES: frozenset[str] = frozenset(
    {Role.ADMIN.value, Role.MANAGER.value, Role.SALES_REP.value}
)
ANY_ROLE: frozenset[str] = KNOWN_ROLES


def is_role_permitted(allowed_roles: frozenset[str], role: str) -> bool:
    """Access is granted iff no roles are declared or the caller's role is listed."""
    return not allowed_roles or role in allowed_roles
