from __future__ import annotations

import asyncio
from typing import Any, Callable, List

import pytest


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], Any]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock + timer queue; ``advance`` fires due callbacks in order."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: List[FakeTimer] = []

    def clock(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], Any]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted((t for t in self.pending() if t.when <= target), key=lambda t: t.when)
            if not due:
                break
            timer = due[0]
            self.timers.remove(timer)
            self.now = timer.when
            result = timer.callback()
            if asyncio.iscoroutine(result):
                await result
        self.now = target


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()
