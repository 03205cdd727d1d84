"""
Standard Error Codes

Consistent error codes across catalog services with HTTP status mapping
for whichever request layer sits in front of them.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Catalog error codes."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Resource specific
    TRAINER_NOT_FOUND = "TRAINER_NOT_FOUND"
    POKEMON_NOT_FOUND = "POKEMON_NOT_FOUND"
    CAPTURE_NOT_FOUND = "CAPTURE_NOT_FOUND"
    TYPE_NOT_FOUND = "TYPE_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    DUPLICATE_TYPE_NAME = "DUPLICATE_TYPE_NAME"

    # Retryable
    PERSISTENCE_CONFLICT = "PERSISTENCE_CONFLICT"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CHANNEL_UNAVAILABLE = "CHANNEL_UNAVAILABLE"


# HTTP status code mapping
ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.TRAINER_NOT_FOUND: 404,
    ErrorCode.POKEMON_NOT_FOUND: 404,
    ErrorCode.CAPTURE_NOT_FOUND: 404,
    ErrorCode.TYPE_NOT_FOUND: 404,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.DUPLICATE_TYPE_NAME: 409,
    ErrorCode.PERSISTENCE_CONFLICT: 409,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.CHANNEL_UNAVAILABLE: 503,
}

RETRYABLE_CODES = {
    ErrorCode.PERSISTENCE_CONFLICT,
    ErrorCode.CHANNEL_UNAVAILABLE,
}


def get_status_code(error_code: ErrorCode) -> int:
    """
    Get HTTP status code for an error code.

    Args:
        error_code: The error code

    Returns:
        HTTP status code (defaults to 500 if not mapped)
    """
    return ERROR_STATUS_CODES.get(error_code, 500)


def is_retryable(error_code: ErrorCode) -> bool:
    """Check whether a caller may retry after this error."""
    return error_code in RETRYABLE_CODES
