"""
Custom exceptions for the prompt app gateway.

This module provides a consistent exception hierarchy for error handling
across all providers, services and routes.

Exception Hierarchy:
    GatewayException (base, 500)
    ├── AuthMissingError (401)
    ├── AuthInvalidError (403)
    ├── ConfigError (400)
    ├── ValidationError (400)
    ├── NotFoundError (404)
    ├── ConflictError (409)
    ├── UnknownVendorError (500)
    ├── VendorError (502)
    └── DatabaseError (503)

Usage:
    from app.exceptions import VendorError

    raise VendorError("OpenAI API error: quota exceeded", vendor="openai")
"""
from __future__ import annotations

from typing import Any


class GatewayException(Exception):
    """
    Base exception for all gateway errors.

    All custom exceptions inherit from this class, enabling
    consistent error handling at the API layer.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code for API response
        details: Additional error details (optional)
        error_code: Machine-readable error code (optional)
    """

    default_message: str = "An error occurred"
    default_status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
        error_code: str | None = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message (uses default if not provided)
            status_code: HTTP status code (uses default if not provided)
            details: Additional details about the error
            error_code: Machine-readable error code
        """
        self.message = message or self.default_message
        self.status_code = status_code or self.default_status_code
        self.details = details
        self.error_code = error_code or self.__class__.__name__.upper()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dictionary with error details
        """
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


# =============================================================================
# Caller Errors (4xx)
# =============================================================================

class AuthMissingError(GatewayException):
    """Raised when a call to an app arrives without an API key."""

    default_message = "Missing API key. Provide X-API-Key header."
    default_status_code = 401


class AuthInvalidError(GatewayException):
    """Raised when the presented API key is unknown or scoped to another app."""

    default_message = "Invalid API key or key not authorized for this app"
    default_status_code = 403


class ConfigError(GatewayException):
    """
    Raised when an app cannot be executed as configured.

    Examples:
        - App does not exist
        - App is not active
        - App has no published prompt version
        - Requested prompt version does not exist

    No vendor call is made and no execution record is written.
    """

    default_message = "App configuration error"
    default_status_code = 400


class ValidationError(GatewayException):
    """
    Raised when input validation fails.

    Examples:
        - Activating an app that has never been published
        - Deleting the active prompt version
    """

    default_message = "Validation error"
    default_status_code = 400


class NotFoundError(GatewayException):
    """Raised when a requested app, prompt version, credential or log is missing."""

    default_message = "Resource not found"
    default_status_code = 404


class ConflictError(GatewayException):
    """Raised when a write would violate a uniqueness rule (app name, key digest)."""

    default_message = "Resource already exists"
    default_status_code = 409


# =============================================================================
# Server / Upstream Errors (5xx)
# =============================================================================

class UnknownVendorError(GatewayException):
    """
    Raised when a vendor id has no registered adapter.

    This is a deployment fault rather than a runtime one.
    """

    default_message = "Unknown vendor"
    default_status_code = 500


class VendorError(GatewayException):
    """
    Raised when a vendor call fails for any reason.

    Examples:
        - Vendor secret not configured
        - API call failure
        - Completion timeout

    Attributes:
        vendor: Name of the vendor whose call failed
    """

    default_message = "Vendor service error"
    default_status_code = 502

    def __init__(
        self,
        message: str | None = None,
        vendor: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.vendor = vendor

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.vendor:
            result["vendor"] = self.vendor
        return result


class DatabaseError(GatewayException):
    """
    Raised when database operations fail.

    Examples:
        - Connection failure
        - Query timeout
    """

    default_message = "Database service error"
    default_status_code = 503
