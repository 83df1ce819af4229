"""Error taxonomy for the CRM API.

Every error the service reports deliberately derives from CrmError and carries
the HTTP status it maps to. Exception handlers in main.py translate them into
the response envelopes:

- ValidationError      -> 400 {success: false, errors: [...], meta: {...}}
- MalformedBodyError   -> 400 {message, statusCode}
- AuthenticationError  -> 401 {message, statusCode}
- ProfileNotFoundError -> 401 (same body, logged distinctly)
- AuthorizationError   -> 403 {message, statusCode}
- NotFoundError        -> 404 {message, statusCode}
- RateLimitedError     -> 429 {message, statusCode} + Retry-After
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FieldError:
    """A single violated field: dotted path plus human-readable reason."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class CrmError(Exception):
    """Base class for errors translated into HTTP responses."""

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CrmError):
    """One or more payload fields failed schema constraints.

    Always recoverable by the caller: every violated field is reported at once
    so a form can highlight all problems in a single round trip.
    """

    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors: list[FieldError], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message)

    @property
    def fields(self) -> list[str]:
        return [error.field for error in self.errors]


class MalformedBodyError(CrmError):
    """Request body is not well-formed JSON (rejected before validation)."""

    status_code = 400
    default_message = "Malformed JSON request body"


class PayloadTooLargeError(CrmError):
    """Request body exceeds the configured size limit."""

    status_code = 413
    default_message = "Request body too large"


class AuthenticationError(CrmError):
    """Missing, malformed or unverifiable bearer token."""

    status_code = 401
    default_message = "Authentication required"

    def __init__(self, message: Optional[str] = None, reason: str = "unauthenticated"):
        # reason is a stable machine-readable code for logs/audit, never sent to clients
        self.reason = reason
        super().__init__(message)


class ProfileNotFoundError(AuthenticationError):
    """Token verified but no application user record exists for it.

    Indicates drift between the identity provider and the profile store.
    """

    default_message = "User not recognized"

    def __init__(self, user_id: str, message: Optional[str] = None):
        self.user_id = user_id
        super().__init__(message, reason="profile_not_found")


class AuthorizationError(CrmError):
    """Authenticated caller lacks a required role."""

    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(CrmError):
    """Requested record does not exist (or is not visible to the caller)."""

    status_code = 404
    default_message = "Resource not found"


class RateLimitedError(CrmError):
    """Caller exceeded the request quota for the current window."""

    status_code = 429
    default_message = "Too many requests, please try again later"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message)
