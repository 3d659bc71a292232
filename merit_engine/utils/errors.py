"""
Standardized error response utilities for the merit engine API.

Provides consistent error response format across all endpoints:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    }
}

Usage:
    from merit_engine.utils.errors import error_response, ErrorCode

    return error_response("Season not found", ErrorCode.NOT_FOUND, 404)
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

from .exceptions import (
    MeritEngineError,
    NotFoundError,
    ValidationError,
    InvalidStatusTransitionError,
    ConfigurationError,
    StorageError,
    InvariantViolationError,
    AuthorizationError,
)

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization (401, 403)
    AUTH_REQUIRED = "AUTH_REQUIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"
    SEASON_NOT_FOUND = "SEASON_NOT_FOUND"

    # Conflict (409)
    STATE_CONFLICT = "STATE_CONFLICT"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Server-side state problems (500)
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Transient (503)
    STORAGE_ERROR = "STORAGE_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum (or a raw code string)
        status_code: HTTP status code
        log_error: Whether to log the error
        details: Optional additional details (only logged, not returned)

    Returns:
        Tuple of (response, status_code) for Flask
    """
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code}]: {message}", extra={"details": details})
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code}]: {message}", extra={"details": details})

    response = {
        "error": {
            "message": message,
            "code": code.value if isinstance(code, ErrorCode) else code
        }
    }

    return jsonify(response), status_code


def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False)


def unauthorized(message: str = "Authentication required", code: ErrorCode = ErrorCode.AUTH_REQUIRED) -> tuple:
    """401 Unauthorized error."""
    return error_response(message, code, 401, log_error=False)


def forbidden(message: str = "Permission denied", code: ErrorCode = ErrorCode.PERMISSION_DENIED) -> tuple:
    """403 Forbidden error."""
    return error_response(message, code, 403, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def conflict(message: str, code: ErrorCode = ErrorCode.STATE_CONFLICT) -> tuple:
    """409 Conflict error."""
    return error_response(message, code, 409, log_error=False)


def service_unavailable(message: str, details: Optional[dict] = None) -> tuple:
    """503 for transient storage failures; the caller may retry."""
    return error_response(message, ErrorCode.STORAGE_ERROR, 503, log_error=True, details=details)


def internal_error(message: str = "An unexpected error occurred", details: Optional[dict] = None) -> tuple:
    """500 Internal Server Error."""
    return error_response(message, ErrorCode.INTERNAL_ERROR, 500, log_error=True, details=details)


def exception_response(error: MeritEngineError) -> tuple:
    """Map a merit engine exception onto its HTTP response."""
    if isinstance(error, ValidationError):
        return error_response(error.message, error.code, 400, log_error=False)
    if isinstance(error, AuthorizationError):
        return forbidden(error.message)
    if isinstance(error, NotFoundError):
        return error_response(error.message, error.code, 404, log_error=False)
    if isinstance(error, InvalidStatusTransitionError):
        return conflict(error.message, ErrorCode.INVALID_STATUS_TRANSITION)
    if isinstance(error, StorageError):
        return service_unavailable(error.message)
    if isinstance(error, InvariantViolationError):
        logger.critical(f"Invariant violation surfaced to API: {error.message}")
        return error_response(error.message, ErrorCode.INVARIANT_VIOLATION, 500)
    if isinstance(error, ConfigurationError):
        logger.critical(f"Configuration error surfaced to API: {error.message}")
        return error_response(error.message, error.code, 500)
    return internal_error(error.message)
