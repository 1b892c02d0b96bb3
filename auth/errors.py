"""
auth/errors.py -- Error taxonomy for the authentication flow.

Every failure the service reports is an AuthError subclass with a stable
``code`` and a human-readable ``message``. Nothing here knows about HTTP:
api/main.py owns the code -> status mapping.

Raw provider or database detail is never put in ``message``. The original
exception is kept on ``__cause__`` (raise ... from exc) for operators.
"""

from __future__ import annotations


class AuthError(Exception):
    code = "internal_error"
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Malformed or missing input. Raised before any store or provider call."""

    code = "validation_error"
    default_message = "Invalid request."


class AlreadyExistsError(AuthError):
    code = "already_exists"
    default_message = "An account with this email address already exists."


class NotFoundError(AuthError):
    code = "not_found"
    default_message = "No account found with this email address."


class UnauthorizedError(AuthError):
    """Unknown, orphaned, or expired session. Deliberately one kind."""

    code = "unauthorized"
    default_message = "Invalid session token."


class AuthProviderError(AuthError):
    """The magic-link provider rejected or failed the request."""

    code = "auth_provider_error"
    default_message = "Failed to send magic link."


class InvalidOrExpiredTokenError(AuthProviderError):
    code = "invalid_or_expired_token"
    default_message = "The magic link is invalid or has expired."


class ProviderDataError(AuthError):
    """The provider succeeded but returned data we cannot use."""

    code = "provider_data_error"
    default_message = "Unable to retrieve user email from verification."


class SessionPersistError(AuthError):
    code = "session_persist_error"
    default_message = "Failed to create user session."


class InternalError(AuthError):
    pass
