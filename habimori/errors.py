"""Error taxonomy shared by services and routers.

Every error is a ``ValueError`` so callers that only care about "bad
request" can keep catching that, while routers map the subclasses to
distinct status codes.
"""
from typing import Optional

from pymongo.errors import PyMongoError


class HabimoriError(ValueError):
    """Base class for domain errors."""


class NotFoundError(HabimoriError):
    """Referenced goal, event, context or tag does not exist."""


class ValidationError(HabimoriError):
    """Malformed mutation input, rejected before any write."""


class ConflictError(HabimoriError):
    """Timer state invariant violated.

    ``signal`` lets the client tell a conflict apart from a generic failure
    and force a full state resync instead of retrying.
    """

    TIMER_ALREADY_RUNNING = "timerAlreadyRunning"
    TIMER_ALREADY_STOPPED = "timerAlreadyStopped"

    def __init__(self, message: str, signal: str):
        super().__init__(message)
        self.signal = signal


class TransientIOError(HabimoriError):
    """A persistence call failed. The message is passed through as-is."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    @classmethod
    def from_pymongo(cls, exc: PyMongoError) -> "TransientIOError":
        return cls(str(exc) or exc.__class__.__name__, cause=exc)
