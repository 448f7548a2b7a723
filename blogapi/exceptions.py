"""
Domain exceptions for the blog API.

Every error a handler or service raises deliberately derives from
``BlogError``.  The exception handlers registered in ``blogapi.main`` turn
them into the response envelope, so services never build HTTP responses
themselves.

Credential failures are the only errors sent with a non-200 status (401,
envelope code 0).  Every other ``BlogError`` is sent as HTTP 200 with
envelope code 500 and its message.  ``log_as_error`` marks the ones the
handler logs at error level.
"""
from typing import Any, Optional


class BlogError(Exception):
    """Base exception for all blog API errors."""

    status_code: int = 200
    default_message: str = "Operation failed"
    log_as_error: bool = False

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.details = details or {}


# ---------------------------------------------------------------------------
# Credential errors (401, envelope code 0)
# ---------------------------------------------------------------------------

class CredentialError(BlogError):
    """The request's bearer credential could not be turned into an identity."""

    status_code = 401
    default_message = "Authentication failed"


class MissingCredential(CredentialError):
    default_message = "No authentication token provided"


class InvalidCredential(CredentialError):
    """Bad signature, unparseable token or unexpected claim shape."""

    default_message = "Invalid authentication token"


class ExpiredOrRevokedCredential(CredentialError):
    """Absent from the credential store, or its embedded expiry elapsed."""

    default_message = "Authentication token has expired"


# ---------------------------------------------------------------------------
# Business errors (HTTP 200, envelope code 500)
# ---------------------------------------------------------------------------

class ForbiddenAction(BlogError):
    """Wrong role, not the owner, or an action on oneself."""

    default_message = "Action not permitted"


class ObjectNotEligible(BlogError):
    """The target exists but is not in a state that allows the action."""

    default_message = "Target is not available for this action"


class NotFound(BlogError):
    default_message = "Resource not found"


class BusinessRuleViolation(BlogError):
    """Input is well-formed but breaks a rule (duplicate name, wrong password)."""

    default_message = "Request rejected"


class OperationFailed(BlogError):
    """A transaction failed and was rolled back; the caller may retry."""

    log_as_error = True


class CredentialStoreUnavailable(BlogError):
    log_as_error = True
    default_message = "Authentication service unavailable"
