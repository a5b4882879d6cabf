"""Domain exceptions.

Services raise these; the API maps them to HTTP status codes and the CLI
prints them to stderr.
"""

from typing import Optional


class KimaiError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(KimaiError):
    """Raised when submitted data violates a business rule."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(KimaiError):
    """Raised when a requested record does not exist."""


class AccessDeniedError(KimaiError):
    """Raised when the current user lacks a permission."""


class AuthenticationError(KimaiError):
    """Raised when credentials are missing or invalid."""


class InvalidDurationError(ValidationError):
    """Raised when a duration string cannot be parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, field="duration")


class WidgetError(KimaiError):
    """Raised when dashboard widget data cannot be loaded."""
