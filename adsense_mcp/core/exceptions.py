"""Custom exception classes.

Upstream API errors are deliberately absent here: they propagate with
their original type so callers can inspect status codes themselves.
"""

from http import HTTPStatus
from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = int(status_code)
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for tool error payloads."""
        return {
            "error": {
                "type": type(self).__name__,
                "message": self.message,
                "details": self.details,
            }
        }


class NoAccountsFoundError(AppException):
    """No explicit, default, or discoverable AdSense account."""

    def __init__(self, message: str = "No AdSense accounts found"):
        super().__init__(message, HTTPStatus.NOT_FOUND)


class CredentialsNotFoundError(AppException):
    """No credential provider produced usable credentials."""

    def __init__(self, tried: list[str] | None = None):
        super().__init__(
            "No AdSense credentials found. Configure OAuth tokens or a service account.",
            HTTPStatus.UNAUTHORIZED,
            {"tried": tried or []},
        )


class ValidationError(AppException):
    """Invalid tool input."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, HTTPStatus.UNPROCESSABLE_ENTITY, details)


class CacheStorageError(AppException):
    """Cache store read or write failed (fatal, never treated as a miss)."""

    def __init__(self, operation: str, message: str = "Cache storage operation failed"):
        super().__init__(
            f"{message} ({operation})",
            HTTPStatus.SERVICE_UNAVAILABLE,
            {"operation": operation},
        )
