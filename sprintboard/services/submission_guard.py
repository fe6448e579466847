"""Collapse rapid or duplicate submits into at most one write per form session.

Rules, checked in order; the first that holds drops the submit silently:
1. the session was opened less than `guard_window` seconds ago
2. a submission is in flight
3. a submission already completed
A failed action resets the flags so the user can retry. A safety timer clears
the in-flight flag if the action never settles.
"""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..domain.result import Result
from ..errors import DuplicateSubmissionRejected
from .timing import LoopScheduler, Scheduler, TimerHandle, monotonic

logger = logging.getLogger(__name__)

GUARD_WINDOW = 0.5
SAFETY_TIMEOUT = 5.0


@dataclass
class GuardSession:
    opened_at: float
    attempt_count: int = 0
    has_submitted: bool = False
    is_submitting: bool = False
    closed: bool = False
    _timer: TimerHandle | None = field(default=None, repr=False)


@dataclass(frozen=True)
class SubmitOutcome:
    accepted: bool
    value: Any = None
    rejection: DuplicateSubmissionRejected | None = None

    @property
    def succeeded(self) -> bool:
        return self.accepted and _succeeded(self.value)


def _succeeded(value: Any) -> bool:
    if isinstance(value, Result):
        return value.ok and value.value is not None and value.value is not False
    return bool(value)


class SubmissionGuard:
    def __init__(
        self,
        clock: Callable[[], float] | None = None,
        scheduler: Scheduler | None = None,
        guard_window: float = GUARD_WINDOW,
        safety_timeout: float = SAFETY_TIMEOUT,
    ):
        self.clock = clock or monotonic
        self.scheduler = scheduler or LoopScheduler()
        self.guard_window = guard_window
        self.safety_timeout = safety_timeout

    def open(self) -> GuardSession:
        return GuardSession(opened_at=self.clock())

    def check(self, session: GuardSession) -> DuplicateSubmissionRejected | None:
        if session.closed:
            return DuplicateSubmissionRejected(DuplicateSubmissionRejected.CLOSED)
        if self.clock() - session.opened_at < self.guard_window:
            return DuplicateSubmissionRejected(DuplicateSubmissionRejected.WINDOW)
        if session.is_submitting:
            return DuplicateSubmissionRejected(DuplicateSubmissionRejected.IN_FLIGHT)
        if session.has_submitted:
            return DuplicateSubmissionRejected(DuplicateSubmissionRejected.ALREADY_SUBMITTED)
        return None

    def begin(self, session: GuardSession) -> None:
        session.is_submitting = True
        session.has_submitted = True
        self._arm(session)

    def _arm(self, session: GuardSession) -> None:
        self._disarm(session)

        def _force_reset():
            session._timer = None
            if session.is_submitting:
                logger.info("resetting submission state via safety timeout")
                session.is_submitting = False

        session._timer = self.scheduler.call_later(self.safety_timeout, _force_reset)

    def _disarm(self, session: GuardSession) -> None:
        if session._timer is not None:
            session._timer.cancel()
            session._timer = None

    def finish(self, session: GuardSession) -> None:
        session.is_submitting = False
        self._disarm(session)

    def release(self, session: GuardSession) -> None:
        """Error-triggered reset: the session may submit again."""
        session.has_submitted = False
        session.is_submitting = False
        session.attempt_count = 0
        self._disarm(session)

    def close(self, session: GuardSession) -> None:
        session.closed = True
        self._disarm(session)

    async def submit(self, session: GuardSession, action: Callable[[], Awaitable[Any] | Any]) -> SubmitOutcome:
        session.attempt_count += 1
        rejection = self.check(session)
        if rejection is not None:
            logger.debug("submission prevented (%s), attempt %d", rejection.reason, session.attempt_count)
            return SubmitOutcome(accepted=False, rejection=rejection)
        self.begin(session)
        try:
            value = action()
            if inspect.isawaitable(value):
                value = await value
        except BaseException:
            self.release(session)
            raise
        if _succeeded(value):
            self.finish(session)
        else:
            self.release(session)
        return SubmitOutcome(accepted=True, value=value)
