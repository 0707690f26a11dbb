"""Error classification for persistence and lookup failures.

Services catch remote failures at their boundary and turn them into an
ErrorResponse the user interface can show as-is.
"""

from enum import Enum

import httpx
from pydantic import BaseModel

from planboard.core.db_client import DatabaseError, DuplicateRecordError, RecordNotFoundError


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_DUPLICATE_NAME = "ERR_DUPLICATE_NAME"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_PERSISTENCE_FAILED = "ERR_PERSISTENCE_FAILED"
    ERR_BUSY = "ERR_BUSY"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_NETWORK_PHRASES = ("connection", "timeout", "timed out", "network", "unreachable", "502", "503", "504")


def busy_error() -> ErrorResponse:
    """Error for a submission made while the previous one is still running."""
    return ErrorResponse(
        code=ErrorCode.ERR_BUSY,
        message="A task is already being added.",
        suggestion="Wait for the weather lookup to finish.",
        severity=ErrorSeverity.LOW,
    )


def classify_persistence_error(exception: Exception, *, action: str) -> ErrorResponse:
    """Classify a store failure and return a structured response.

    Args:
        exception: The exception raised by the DB client
        action: Short description of what failed (e.g. "create the task")

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, DuplicateRecordError):
        return ErrorResponse(
            code=ErrorCode.ERR_DUPLICATE_NAME,
            message="A profile with that name already exists.",
            suggestion="Pick a different name.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, RecordNotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message=f"Could not {action}: it no longer exists.",
            suggestion="Reload the board to see the latest data.",
            severity=ErrorSeverity.LOW,
        )

    error_str = str(exception).lower()
    if (
        isinstance(exception, httpx.TransportError | ConnectionError | TimeoutError)
        or any(phrase in error_str for phrase in _NETWORK_PHRASES)
    ):
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            message=f"Could not {action}: the store is unreachable.",
            suggestion="Check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, DatabaseError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERSISTENCE_FAILED,
            message=f"Could not {action}.",
            suggestion="Please try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later.",
        severity=ErrorSeverity.HIGH,
    )
