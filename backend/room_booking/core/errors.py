"""
Typed error taxonomy for the booking core.

The core raises these and never deals in HTTP status codes; the API layer
maps ErrorKind to a transport code in a single exception handler.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


class BookingError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(BookingError):
    """Malformed input: bad pattern, interval bounds, non-positive counts."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.field = field


class GenerationSafetyError(ValidationError):
    """Recurrence expansion exceeded its iteration bound."""


class ConflictError(BookingError):
    """Resource is unavailable; the conflict set travels in `details`."""

    kind = ErrorKind.CONFLICT


class NotFoundError(BookingError):
    kind = ErrorKind.NOT_FOUND


class PermissionDeniedError(BookingError):
    kind = ErrorKind.FORBIDDEN
