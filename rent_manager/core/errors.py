from __future__ import annotations

from typing import Any, Mapping

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."
SERVICE_UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again later."


class AccountSecurityError(Exception):
    """Base for errors rendered as ``{"success": false, "message": ...}``."""

    status_code = 400
    public = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = dict(extra or {})


class ValidationError(AccountSecurityError):
    status_code = 400


class AuthError(AccountSecurityError):
    status_code = 401


class NotFoundError(AccountSecurityError):
    status_code = 404


class StateConflictError(AccountSecurityError):
    status_code = 409


class RateLimitError(AccountSecurityError):
    status_code = 429

    def __init__(
        self,
        message: str,
        *,
        retry_after_seconds: int | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message, extra=extra)
        self.retry_after_seconds = retry_after_seconds


class DependencyError(AccountSecurityError):
    """Database/email failure. ``message`` is what the client sees; the cause stays in the log."""

    status_code = 500

    def __init__(
        self,
        message: str = GENERIC_ERROR_MESSAGE,
        *,
        status_code: int | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, extra=extra)


class AccountIntegrityError(AccountSecurityError):
    status_code = 500
    public = False
