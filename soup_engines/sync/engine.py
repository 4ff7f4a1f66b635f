"""Adaptive polling engine keeping one client's view of a room converged.

States::

    disconnected -> connecting -> connected | error | rate_limited

One fetch is in flight at a time; the next cycle is only scheduled once the
previous one settled. Every cycle carries the generation it was scheduled in,
and switching or stopping bumps the generation, so a fetch that completes for
a room nobody observes any more is dropped instead of delivered.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple

from soup_engines.common.errors import RateLimited
from soup_engines.sessions.models import SessionView
from soup_engines.sync.polling import (
    DEFAULT_POLLING_CONFIG,
    PollingConfig,
    calculate_backoff_delay,
    calculate_poll_interval,
)
from soup_engines.sync.timers import AsyncioScheduler, Scheduler, TimerHandle
from soup_engines.sync.transport import TransportError, mentions_rate_limit

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[SessionView]]


class ConnectionState(str, Enum):
    disconnected = "disconnected"
    connecting = "connecting"
    connected = "connected"
    error = "error"
    rate_limited = "rate_limited"


class SyncFailed(Exception):
    """Retry budget exhausted; polling stopped until restarted."""


@dataclass
class SyncState:
    session_id: Optional[str] = None
    last_known_turn_count: int = 0
    last_sync_time: Optional[float] = None
    connection_state: ConnectionState = ConnectionState.disconnected
    current_poll_interval: float = DEFAULT_POLLING_CONFIG.base_interval
    retry_count: int = 0
    is_polling: bool = False
    last_activity_time: float = field(default_factory=time.monotonic)

    @property
    def is_connected(self) -> bool:
        return self.connection_state == ConnectionState.connected


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, RateLimited):
        return True
    if isinstance(exc, TransportError):
        return exc.is_rate_limited
    return mentions_rate_limit(str(exc))


class PollingSyncEngine:
    def __init__(
        self,
        fetch: Fetcher,
        session_id: Optional[str] = None,
        config: Optional[PollingConfig] = None,
        on_update: Optional[Callable[[SessionView], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_new_turns: Optional[Callable[[SessionView, int], None]] = None,
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._fetch = fetch
        self.config = config or DEFAULT_POLLING_CONFIG
        self._on_update = on_update
        self._on_error = on_error
        self._on_new_turns = on_new_turns
        self._on_state_change = on_state_change
        self._scheduler = scheduler or AsyncioScheduler()
        self._clock = clock or time.monotonic

        self._generation = 0
        self._timer: Optional[TimerHandle] = None
        self._cooldown: Optional[TimerHandle] = None
        self._rate_limited = False
        self._exhausted = False
        self._hidden = False
        self._in_flight = False
        self._known_turns: Optional[List[Tuple[str, str]]] = None
        self._last_change_time = self._clock()
        self.state = self._fresh_state(session_id)

    # --- Public API ---
    @property
    def session_id(self) -> Optional[str]:
        return self.state.session_id

    @property
    def is_polling(self) -> bool:
        return self.state.is_polling

    def start(self) -> None:
        """Begin polling. No-op without a session id or when already polling."""
        if not self.state.session_id or self.state.is_polling:
            return
        if self._exhausted:
            self._exhausted = False
            self.state.retry_count = 0
        self.state.is_polling = True
        if self._rate_limited:
            # The cooldown timer resumes the loop.
            return
        self._schedule(0)

    def stop(self) -> None:
        self._halt()
        self._cancel_cooldown()
        self._set_connection_state(ConnectionState.disconnected)

    def set_session(self, session_id: Optional[str]) -> None:
        """Switch the observed room; ``None`` stops observing altogether."""
        if session_id == self.state.session_id:
            return
        self.stop()
        self._exhausted = False
        self._known_turns = None
        self._last_change_time = self._clock()
        self.state = self._fresh_state(session_id)
        if session_id and not self._hidden:
            self.start()

    def set_visibility(self, hidden: bool) -> None:
        self._hidden = hidden
        if hidden:
            self._halt()
            return
        if self.state.session_id and not self._exhausted:
            self.start()

    def mark_activity(self) -> None:
        self.state.last_activity_time = self._clock()

    async def force_sync(self) -> None:
        """Run the next cycle now.

        Only while polling: a stopped, hidden or exhausted engine stays as it is,
        and a fetch already in flight is not duplicated.
        """
        if not self.state.is_polling or self._in_flight or self._rate_limited:
            return
        self._cancel_timer()
        await self._run_cycle(self._generation)

    # --- Cycle ---
    async def _run_cycle(self, generation: int) -> None:
        if generation != self._generation or self._rate_limited:
            return
        session_id = self.state.session_id
        if not session_id:
            return
        self._timer = None
        if self._in_flight:
            # The outstanding fetch hands over to this generation when it settles.
            return
        self._set_connection_state(ConnectionState.connecting)
        self._in_flight = True
        try:
            snapshot = await self._fetch(session_id)
        except Exception as exc:
            self._in_flight = False
            if not self._deliverable(generation, session_id):
                return
            self._handle_failure(exc)
            return
        self._in_flight = False
        if not self._deliverable(generation, session_id):
            return
        self._handle_success(snapshot)

    def _deliverable(self, generation: int, session_id: str) -> bool:
        """Whether a settled fetch still belongs to the running loop.

        A fetch that outlived a stop/start or hide/show of the same session is
        handed to the resumed loop, whose own cycle was skipped while it was
        outstanding.
        """
        if generation == self._generation:
            return True
        resumed = self.state.is_polling and self._timer is None and not self._rate_limited
        if resumed and session_id == self.state.session_id:
            logger.debug("Handing in-flight result for %s to the resumed loop", session_id)
            return True
        logger.debug("Dropping result for superseded session %s", session_id)
        if resumed and self.state.session_id:
            self._schedule(0)
        return False

    def _handle_success(self, snapshot: SessionView) -> None:
        now = self._clock()
        state = self.state
        state.retry_count = 0
        self._set_connection_state(ConnectionState.connected)
        state.last_sync_time = now

        turns = [(turn.role.value, turn.content) for turn in snapshot.history]
        had_baseline = self._known_turns is not None
        changed = turns != self._known_turns
        added = len(turns) - state.last_known_turn_count
        if changed:
            self._last_change_time = now

        last_activity = max(self._last_change_time, state.last_activity_time)
        state.current_poll_interval = calculate_poll_interval(self.config, last_activity, changed, now)
        state.last_known_turn_count = len(turns)
        self._known_turns = turns

        generation = self._generation
        self._notify(self._on_update, snapshot)
        if generation != self._generation:
            return
        if had_baseline and added > 0:
            self._notify(self._on_new_turns, snapshot, added)
        if state.is_polling:
            self._schedule(state.current_poll_interval)

    def _handle_failure(self, exc: BaseException) -> None:
        state = self.state
        if is_rate_limit_error(exc):
            retry_after = getattr(exc, "retry_after", None)
            cooldown = max(self.config.rate_limit_cooldown, retry_after or 0)
            logger.warning("Rate limited on session %s; pausing %.0fs", state.session_id, cooldown)
            self._rate_limited = True
            self._cancel_timer()
            self._set_connection_state(ConnectionState.rate_limited)
            self._cooldown = self._scheduler.call_later(cooldown, self._end_cooldown)
            self._notify(self._on_error, RateLimited(retry_after=cooldown))
            return

        state.retry_count += 1
        if state.retry_count >= self.config.max_retries:
            logger.warning("Giving up on session %s after %d retries: %s", state.session_id, state.retry_count, exc)
            self._exhausted = True
            self._set_connection_state(ConnectionState.error)
            self._halt()
            self._notify(self._on_error, SyncFailed(f"Failed to connect after {self.config.max_retries} retries"))
            return

        delay = calculate_backoff_delay(self.config, state.retry_count)
        state.current_poll_interval = delay
        self._set_connection_state(ConnectionState.error)
        self._notify(self._on_error, exc)
        if state.is_polling:
            self._schedule(delay)

    def _end_cooldown(self) -> None:
        self._cooldown = None
        self._rate_limited = False
        if self.state.is_polling and not self._hidden:
            self._schedule(0)

    # --- Internal helpers ---
    def _fresh_state(self, session_id: Optional[str]) -> SyncState:
        return SyncState(
            session_id=session_id,
            current_poll_interval=self.config.base_interval,
            last_activity_time=self._clock(),
        )

    def _schedule(self, delay: float) -> None:
        self._cancel_timer()
        generation = self._generation
        self._timer = self._scheduler.call_later(delay, lambda: self._run_cycle(generation))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_cooldown(self) -> None:
        if self._cooldown is not None:
            self._cooldown.cancel()
            self._cooldown = None
        self._rate_limited = False

    def _halt(self) -> None:
        self._generation += 1
        self._cancel_timer()
        self.state.is_polling = False

    def _set_connection_state(self, new_state: ConnectionState) -> None:
        if self.state.connection_state == new_state:
            return
        logger.debug("Session %s: %s -> %s", self.state.session_id, self.state.connection_state.value, new_state.value)
        self.state.connection_state = new_state
        self._notify(self._on_state_change, new_state)

    @staticmethod
    def _notify(callback: Optional[Callable[..., None]], *args: object) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Sync subscriber callback failed")
