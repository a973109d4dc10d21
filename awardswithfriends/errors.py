"""Custom exception classes for the application."""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class AuthenticationError(AppError):
    """Raised when a request carries no valid ID token."""

    def __init__(self, message="Authentication required."):
        """Initialize the error."""
        super().__init__(message, 401)


class PermissionDeniedError(AppError):
    """Raised when the signed-in user may not use a feature."""

    def __init__(self, message="Permission denied."):
        """Initialize the error."""
        super().__init__(message, 403)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class CommandError(AppError):
    """Raised when a callable function rejects a call or cannot be reached."""

    def __init__(
        self,
        function_name: str,
        message: str = "The request could not be completed.",
        status: Optional[str] = None,
    ):
        """Initialize the error."""
        super().__init__(message, 502)
        self.function_name = function_name
        self.status = status
