from __future__ import annotations

from typing import Any


class TrackerError(Exception):
    """Base class for errors raised by the data-access layer."""


class TransportError(TrackerError):
    """Remote store or network failure.

    Caught at the gateway boundary, recorded as gateway error state and
    surfaced as a notification; callers receive a benign default instead.
    """

    def __init__(self, message: str, code: str | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def __repr__(self) -> str:
        return f"TransportError(code={self.code!r}, message={self.message!r})"


class ValidationError(TrackerError):
    """Field-level validation failure. Never reaches the network."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()) or "invalid")


class TransitionError(ValidationError):
    """Illegal sprint status change."""

    def __init__(self, original: str, new: str, errors: dict[str, str] | None = None):
        self.original = original
        self.new = new
        merged = dict(errors or {})
        merged.setdefault("status", f"Cannot change status from {original} to {new}")
        super().__init__(merged)


class OperationCancelled(TrackerError):
    """The owning session ended before the operation could apply its result."""


class UnknownOperatorError(ValueError):
    pass


class NotFoundResult:
    """Marker for "zero rows" responses. Not an error."""

    _instance: "NotFoundResult | None" = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NotFoundResult"


NOT_FOUND = NotFoundResult()


class DuplicateSubmissionRejected:
    """Returned (never raised) when the submission guard drops a submit."""

    WINDOW = "guard_window"
    IN_FLIGHT = "in_flight"
    ALREADY_SUBMITTED = "already_submitted"
    CLOSED = "session_closed"

    def __init__(self, reason: str):
        self.reason = reason

    def __eq__(self, other: object) -> bool:
        return isinstance(other, DuplicateSubmissionRejected) and other.reason == self.reason

    def __hash__(self) -> int:
        return hash(self.reason)

    def __repr__(self) -> str:
        return f"DuplicateSubmissionRejected({self.reason!r})"


class RollbackApplied:
    """Informational: an optimistic board move was reverted after a failed write."""

    def __init__(self, item_id: Any, cause: TransportError | None):
        self.item_id = item_id
        self.cause = cause

    def __repr__(self) -> str:
        return f"RollbackApplied(item_id={self.item_id!r}, cause={self.cause!r})"
