"""
Custom exceptions for the scheduling-conflict engine.

Provides structured error handling with retryable flags.
"""

from typing import Optional


class ConflictEngineError(Exception):
    """Base exception for conflict engine operations."""

    retryable: bool = False

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class DetectionError(ConflictEngineError):
    """
    Proposed event cannot be conflict-checked.

    Causes:
    - Start time at or after end time
    - Non-positive duration

    Raised before any detection runs.
    """

    retryable = False


class PersistenceUnavailable(ConflictEngineError):
    """
    Resolution Store backend is unreachable.

    Read operations swallow this and fail open (the conflict shows again).
    Write operations raise it to the caller.
    """

    retryable = True


class ActionFailure(ConflictEngineError):
    """
    The event repository rejected a delete or update.

    Recorded per item during a batch; never aborts sibling items.
    """

    def __init__(
        self,
        message: str,
        event_id: Optional[str] = None,
        original_error: Exception | None = None,
        retryable: bool = False,
    ):
        super().__init__(message, original_error)
        self.event_id = event_id
        self.retryable = retryable


class ConflictNotFound(ConflictEngineError):
    """A conflict id was not part of the session's detection result."""

    retryable = False
