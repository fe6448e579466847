import asyncio

import pytest

from sprintboard.domain.result import Result
from sprintboard.errors import DuplicateSubmissionRejected, TransportError
from sprintboard.services.submission_guard import SubmissionGuard

from .fakes import ManualClock, ManualScheduler


def _guard():
    clock = ManualClock()
    scheduler = ManualScheduler(clock)
    return SubmissionGuard(clock=clock, scheduler=scheduler), clock, scheduler


def _action(calls, value=True):
    async def act():
        calls.append(1)
        return value
    return act


def test_window_then_single_accepted_submit():
    guard, clock, _ = _guard()
    session = guard.open()
    calls = []

    clock.advance(0.1)
    early = asyncio.run(guard.submit(session, _action(calls)))
    assert not early.accepted
    assert early.rejection == DuplicateSubmissionRejected(DuplicateSubmissionRejected.WINDOW)

    clock.advance(0.5)
    ok = asyncio.run(guard.submit(session, _action(calls)))
    assert ok.accepted and ok.succeeded

    again = asyncio.run(guard.submit(session, _action(calls)))
    assert again.rejection.reason == DuplicateSubmissionRejected.ALREADY_SUBMITTED
    assert calls == [1]
    assert session.attempt_count == 3
    assert session.has_submitted and not session.is_submitting


def test_failed_action_resets_flags():
    guard, clock, scheduler = _guard()
    session = guard.open()
    clock.advance(1)
    calls = []
    first = asyncio.run(guard.submit(session, _action(calls, Result.failure(TransportError("down")))))
    assert first.accepted and not first.succeeded
    assert not session.has_submitted and not session.is_submitting
    assert session.attempt_count == 0
    assert scheduler.pending() == []
    second = asyncio.run(guard.submit(session, _action(calls, {"id": 1})))
    assert second.succeeded
    assert calls == [1, 1]


def test_falsy_result_counts_as_failure():
    guard, clock, _ = _guard()
    session = guard.open()
    clock.advance(1)
    asyncio.run(guard.submit(session, _action([], None)))
    assert guard.check(session) is None


def test_in_flight_submit_is_dropped():
    guard, clock, _ = _guard()
    session = guard.open()
    clock.advance(1)
    calls = []

    async def run():
        gate = asyncio.Event()

        async def slow():
            calls.append(1)
            await gate.wait()
            return True

        first = asyncio.ensure_future(guard.submit(session, slow))
        await asyncio.sleep(0)
        second = await guard.submit(session, _action(calls))
        gate.set()
        return await first, second

    first, second = asyncio.run(run())
    assert first.succeeded
    assert second.rejection.reason == DuplicateSubmissionRejected.IN_FLIGHT
    assert calls == [1]


def test_safety_timeout_clears_in_flight():
    guard, clock, scheduler = _guard()
    session = guard.open()
    clock.advance(1)
    guard.begin(session)
    assert session.is_submitting
    scheduler.advance(4.9)
    assert session.is_submitting
    scheduler.advance(0.2)
    assert not session.is_submitting
    # the completed flag stays, so a resubmit is still dropped
    assert guard.check(session).reason == DuplicateSubmissionRejected.ALREADY_SUBMITTED


def test_exception_resets_and_propagates():
    guard, clock, scheduler = _guard()
    session = guard.open()
    clock.advance(1)

    async def boom():
        raise TransportError("connection reset")

    with pytest.raises(TransportError):
        asyncio.run(guard.submit(session, boom))
    assert not session.is_submitting and not session.has_submitted
    assert scheduler.pending() == []


def test_closed_session_rejects():
    guard, clock, _ = _guard()
    session = guard.open()
    clock.advance(1)
    guard.close(session)
    out = asyncio.run(guard.submit(session, _action([])))
    assert out.rejection.reason == DuplicateSubmissionRejected.CLOSED


def test_sync_action_is_accepted():
    guard, clock, _ = _guard()
    session = guard.open()
    clock.advance(1)
    out = asyncio.run(guard.submit(session, lambda: "saved"))
    assert out.value == "saved" and out.succeeded
