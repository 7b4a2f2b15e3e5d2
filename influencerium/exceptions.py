"""Custom exception hierarchy for the Influencerium access layer.

Provides structured error types that the centralized error handler
translates into consistent JSON responses.
"""

from __future__ import annotations


class InfluenceriumError(Exception):
    """Base exception for all Influencerium errors."""

    status_code: int = 500
    error_type: str = "INTERNAL_ERROR"

    def __init__(self, message: str = "An internal error occurred") -> None:
        self.message = message
        super().__init__(message)


class ValidationError(InfluenceriumError):
    """Input validation failure beyond Pydantic constraints."""

    status_code = 400
    error_type = "VALIDATION_ERROR"


class AuthenticationError(InfluenceriumError):
    """No valid principal could be established for the request."""

    status_code = 401
    error_type = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class TokenExpiredError(AuthenticationError):
    """The presented access token is past its expiry."""

    error_type = "TOKEN_EXPIRED"

    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(message)


class AuthorizationError(InfluenceriumError):
    """An authenticated principal lacks the required permission or role.

    ``required`` names what the policy asked for. It never carries details
    about the resource or its owner.
    """

    status_code = 403
    error_type = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "Access denied", required: list[str] | None = None) -> None:
        self.required = list(required or [])
        super().__init__(message)


class NotFoundError(InfluenceriumError):
    """Requested resource was not found."""

    status_code = 404
    error_type = "NOT_FOUND"

    def __init__(self, resource: str = "Resource") -> None:
        super().__init__(f"{resource} not found")


class ConflictError(InfluenceriumError):
    """Write rejected because it collides with existing state."""

    status_code = 409
    error_type = "CONFLICT_ERROR"
