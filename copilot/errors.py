"""
Error taxonomy for the booking and revenue memory layers.

Core code raises these; routes map them to HTTP responses with
error_to_http() so the mapping lives in one place.
"""
from typing import List, Tuple, Type

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# HTTP status codes for known error categories
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_UNPROCESSABLE = 422
STATUS_INTERNAL_ERROR = 500


class CopilotError(Exception):
    """Base class for errors raised by copilot core code."""


class InvalidConfiguration(CopilotError):
    """Non-positive slot duration, negative buffer, inverted rule window or unknown timezone."""


class InvalidTimeFormat(CopilotError):
    """A time-of-day value could not be parsed."""


class EmptyActionSequence(CopilotError):
    """A win record carries no critical-impact actions."""


class NotFoundError(CopilotError):
    pass


class BookingTypeNotFound(NotFoundError):
    pass


class PatternNotFound(NotFoundError):
    pass


class SlotUnavailable(CopilotError):
    """Requested booking window collides with an existing booking."""


# ---------------------------------------------------------------------------
# Error rules: (exception type, status_code). First match wins.
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

ERROR_RULES: List[Tuple[Type[Exception], int]] = [
    (NotFoundError, STATUS_NOT_FOUND),
    (SlotUnavailable, STATUS_CONFLICT),
    (EmptyActionSequence, STATUS_UNPROCESSABLE),
    (InvalidConfiguration, STATUS_BAD_REQUEST),
    (InvalidTimeFormat, STATUS_BAD_REQUEST),
]


def error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception from core code into an HTTPException.

    Uses ERROR_RULES for known error types; otherwise returns 500 with the
    exception message.
    """
    for error_type, status_code in ERROR_RULES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))
