"""Exception hierarchy for the login and session pipeline.

Every error carries a stable machine-readable ``code``, the HTTP status the
error boundary should answer with, and whether the caller may retry.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base exception for all login and session errors."""

    code = "internal_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(AuthError):
    """Raised when a provider response matches no known schema.

    Fails closed. The raw body is never attached to the exception.
    """

    code = "validation_error"
    status_code = 502


class ProviderAuthError(AuthError):
    """Raised when the provider explicitly reports a failure."""

    code = "provider_auth_error"
    status_code = 401

    def __init__(self, error: str, error_description: str | None = None) -> None:
        super().__init__(f"Provider rejected the request ({error})")
        self.error = error
        self.error_description = error_description


class StateMismatchError(AuthError):
    """Raised when the echoed state is absent, mismatched or already consumed.

    Fatal to the callback. The user has to restart the login.
    """

    code = "state_mismatch"
    status_code = 400


class NetworkError(AuthError):
    """Raised on provider timeouts, connection failures and 5xx answers."""

    code = "network_error"
    status_code = 503
    retryable = True


class SessionError(AuthError):
    """Raised when the session store is unavailable."""

    code = "session_error"
    status_code = 500


class NotFoundError(AuthError):
    """Raised by the not-found stage when no route matched."""

    code = "not_found"
    status_code = 404


class ConfigError(Exception):
    """Raised when required runtime configuration is missing or malformed."""

    pass
