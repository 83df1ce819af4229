"""Request context management for observability.

Context variables carry per-request identifiers across async boundaries so the
JSON log formatter can stamp every record without threading them through calls.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Authenticated caller (set by the authorization middleware)
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# Caller's organization (tenant) - empty for users without one
organization_id_var: ContextVar[str] = ContextVar("organization_id", default="")
