from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from ..errors import TrackerError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a gateway call: either a value or the error that replaced it."""

    value: T | None = None
    error: TrackerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: TrackerError) -> "Result[T]":
        return cls(error=error)

    def unwrap_or(self, default):
        return self.value if self.error is None else default

    def unwrap(self) -> T | None:
        if self.error is not None:
            raise self.error
        return self.value
