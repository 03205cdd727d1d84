"""
Catalog Exception Classes

Domain errors raised by the catalog services and the outbox dispatcher.
Each carries an ErrorCode so a request layer can translate it into a
transport response (HTTP 404, 409, ...).
"""

from enum import Enum
from typing import Any, Optional, Union

from .error_codes import ErrorCode, get_status_code, is_retryable


class CatalogError(Exception):
    """
    Base exception for catalog errors.

    All custom catalog exceptions inherit from this class.
    """

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = get_status_code(code)
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.code)

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


class NotFoundError(CatalogError):
    """
    Referenced aggregate does not exist.

    Surfaced to the caller as a client error, never retried.
    """

    def __init__(self, resource: Union[str, Enum], resource_id: Any = None):
        kind = resource.value if isinstance(resource, Enum) else str(resource)
        message = f"{kind} not found"
        if resource_id is not None:
            message = f"{kind} not found with id: {resource_id}"

        # Use specific error code if available
        code_map = {
            "Trainer": ErrorCode.TRAINER_NOT_FOUND,
            "Pokemon": ErrorCode.POKEMON_NOT_FOUND,
            "Capture": ErrorCode.CAPTURE_NOT_FOUND,
            "TypeTag": ErrorCode.TYPE_NOT_FOUND,
            "AccountUser": ErrorCode.USER_NOT_FOUND,
        }
        super().__init__(code_map.get(kind, ErrorCode.NOT_FOUND), message)
        self.resource = kind
        self.resource_id = resource_id


class ValidationFailed(CatalogError):
    """Malformed input, rejected before any write."""

    def __init__(self, reason: str, field: Optional[str] = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, reason)
        self.reason = reason
        self.field = field


class ConflictError(CatalogError):
    """Write would violate a uniqueness rule."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CONFLICT):
        super().__init__(code, message)


class PersistenceConflict(CatalogError):
    """
    Concurrent modification detected at the Store.

    Retryable by the caller of the triggering write.
    """

    def __init__(self, resource: Union[str, Enum], resource_id: Any = None):
        kind = resource.value if isinstance(resource, Enum) else str(resource)
        super().__init__(
            ErrorCode.PERSISTENCE_CONFLICT,
            f"{kind} {resource_id} was modified concurrently",
        )
        self.resource = kind
        self.resource_id = resource_id


class TransientChannelFailure(CatalogError):
    """
    A publish attempt failed (timeout, unavailability, rejection).

    Handled by the dispatcher; never reaches the triggering request path.
    """

    def __init__(self, message: str, destination: Optional[str] = None):
        super().__init__(ErrorCode.CHANNEL_UNAVAILABLE, message)
        self.destination = destination
