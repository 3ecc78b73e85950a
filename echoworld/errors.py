"""Error types for the EchoWorld service.

Service functions raise these; the HTTP layer maps each one to a status code
and a stable machine-readable ``error`` code.
"""

from __future__ import annotations


class EchoWorldError(Exception):
    """Base error for all EchoWorld service exceptions."""

    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, message: str = "", *, code: str | None = None) -> None:
        super().__init__(message or self.code)
        if code:
            self.code = code


class ValidationFailed(EchoWorldError):
    """Raised when request input does not satisfy a business rule."""

    status_code = 400
    code = "VALIDATION_FAILED"


class AuthenticationRequired(EchoWorldError):
    """Raised when an operation needs a valid session and has none."""

    status_code = 401
    code = "UNAUTHENTICATED"


class InvalidCredentials(EchoWorldError):
    """Raised when an email/password pair does not match an account."""

    status_code = 401
    code = "INVALID_CREDENTIALS"


class PermissionDenied(EchoWorldError):
    """Raised when the caller does not own or belong to the target resource."""

    status_code = 403
    code = "FORBIDDEN"


class NotFound(EchoWorldError):
    """Raised when a requested resource does not exist or is not visible."""

    status_code = 404
    code = "NOT_FOUND"


class Conflict(EchoWorldError):
    """Raised when a write would violate a uniqueness rule."""

    status_code = 409
    code = "CONFLICT"


class StorageError(EchoWorldError):
    """Raised when object storage rejects an upload or download."""

    status_code = 502
    code = "STORAGE_ERROR"
