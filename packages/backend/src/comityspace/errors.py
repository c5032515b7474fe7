"""Error taxonomy shared by services, the request gate, and the API.

Learn: services raise these instead of HTTPException so they stay
usable outside a request (CLI, tests). main.py installs one handler
that renders every ComityError as {error, message, code}.
"""

from typing import Optional


class ComityError(Exception):
    """Base class. Subclasses pin the HTTP status and a stable code."""

    status_code = 500
    code = "INTERNAL_ERROR"
    error = "Internal server error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class AuthenticationError(ComityError):
    """Bad credentials, unwhitelisted email, or a vanished account."""

    status_code = 401
    code = "AUTHENTICATION_FAILED"
    error = "Access denied"


class InvalidTokenError(ComityError):
    """Missing, malformed, expired, or tampered bearer token."""

    status_code = 401
    code = "INVALID_TOKEN"
    error = "Access denied"


class AuthorizationError(ComityError):
    status_code = 403
    code = "FORBIDDEN"
    error = "Forbidden"


class ValidationError(ComityError):
    status_code = 400
    code = "VALIDATION_ERROR"
    error = "Validation error"


class NotFoundError(ComityError):
    status_code = 404
    code = "NOT_FOUND"
    error = "Not found"


class ConflictError(ComityError):
    status_code = 409
    code = "CONFLICT"
    error = "Conflict"
