"""Test doubles: a scriptable store, a manual clock and a manual timer scheduler."""
from __future__ import annotations

import asyncio
from typing import Any, Callable

from sprintboard.repository.query_builder import RemoteQuery
from sprintboard.repository.store import RemoteStore, StoreResponse


class FakeStore(RemoteStore):
    """Records every query; answers from `handler`, then `responses`, then `[]`.

    A handler or scripted response that is an exception is raised from
    `execute`. Set `gate` to an asyncio.Event to hold calls until it is set.
    """

    def __init__(self, responses: list[Any] | None = None,
                 handler: Callable[[RemoteQuery], Any] | None = None):
        self.calls: list[RemoteQuery] = []
        self.responses = list(responses or [])
        self.handler = handler
        self.gate: asyncio.Event | None = None

    async def execute(self, query: RemoteQuery) -> StoreResponse:
        self.calls.append(query)
        if self.gate is not None:
            await self.gate.wait()
        if self.handler is not None:
            resp = self.handler(query)
        elif self.responses:
            resp = self.responses.pop(0)
        else:
            resp = StoreResponse(data=[])
        if isinstance(resp, BaseException):
            raise resp
        return resp

    def actions(self, action: str) -> list[RemoteQuery]:
        return [q for q in self.calls if q.action == action]


class ManualClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _Handle:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.handles: list[_Handle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Handle:
        h = _Handle(self.clock() + delay, callback)
        self.handles.append(h)
        return h

    def pending(self) -> list[_Handle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: float) -> None:
        self.clock.advance(seconds)
        for h in list(self.handles):
            if not h.cancelled and h.due <= self.clock():
                h.cancelled = True
                h.callback()
