"""Timer scheduling seam for the sync engine.

The engine never sleeps itself; it asks a ``Scheduler`` to call it back and
keeps the returned handle so the callback can be cancelled.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Protocol, Set


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...


class _AsyncioTimer:
    def __init__(self, owner: "AsyncioScheduler") -> None:
        self._owner = owner
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Future] = None
        self.cancelled = False

    def _fire(self, callback: Callable[[], Any]) -> None:
        if self.cancelled:
            return
        result = callback()
        if asyncio.iscoroutine(result):
            self._task = asyncio.ensure_future(result)
            self._owner._track(self._task)

    def cancel(self) -> None:
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()


class AsyncioScheduler:
    """Runs callbacks on the asyncio event loop; coroutine results become tasks."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._tasks: Set[asyncio.Future] = set()

    def _track(self, task: asyncio.Future) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        handle = _AsyncioTimer(self)
        handle._timer = loop.call_later(max(0.0, delay), handle._fire, callback)
        return handle
