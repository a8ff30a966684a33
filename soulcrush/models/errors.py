"""
Error taxonomy for the application tracker.

Every failure that reaches a caller is a TrackerError carrying a structured
code. Deleting or updating an application that does not exist is not an
error and has no class here.
"""

import re
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Structured error codes."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    STORE_ERROR = "STORE_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TrackerError(Exception):
    """Base exception with structured error information."""

    code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize a tracker error.

        Args:
            message: Human-readable error message
            retryable: Whether the caller may retry the operation
            original_error: The original exception if this wraps another error
        """
        self.message = message
        self.retryable = retryable
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert error to dictionary format for responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "retryable": self.retryable
            }
        }


class ValidationError(TrackerError):
    """Input rejected before any write."""
    code = ErrorCode.VALIDATION_ERROR


class InvalidStatusError(ValidationError):
    """A status token that is not one of the five wire tokens."""

    def __init__(self, token: object):
        self.token = token
        super().__init__(f"Invalid status: {token}")


class StoreError(TrackerError):
    """The SQLite store failed (disk, constraint, lock, connection)."""
    code = ErrorCode.STORE_ERROR


class DecodeError(TrackerError):
    """A stored row does not match the expected shape."""
    code = ErrorCode.DECODE_ERROR


class InternalError(TrackerError):
    """Unexpected failure."""
    code = ErrorCode.INTERNAL_ERROR


def sanitize_sql_error(error_msg: str) -> str:
    """
    Remove SQL fragments and absolute paths from a database error message.

    Args:
        error_msg: The original error message

    Returns:
        Sanitized error message
    """
    sanitized = re.sub(r'SQL:.*', '', error_msg, flags=re.IGNORECASE)
    sanitized = re.sub(r'\b(SELECT|INSERT|UPDATE|DELETE)\b.*', '[SQL query]', sanitized, flags=re.IGNORECASE)
    sanitized = re.sub(r'/[^\s]+/', '[path]/', sanitized)
    # Only the first line is actionable
    return sanitized.split('\n')[0].strip()


def create_store_error(action: str, error: Exception) -> StoreError:
    """
    Wrap a sqlite3 or filesystem error raised while performing an action.

    Lock contention is reported as retryable; the tracker itself never retries.

    Args:
        action: What was being attempted, e.g. "create application"
        error: The original exception

    Returns:
        StoreError with a sanitized message
    """
    detail = sanitize_sql_error(str(error))
    retryable = "locked" in detail.lower() or "busy" in detail.lower()
    return StoreError(
        f"Failed to {action}: {detail}",
        retryable=retryable,
        original_error=error,
    )

