"""View-state helpers: scroll position, unread counting and debouncing.

These only track numbers a chat view reports; rendering is left to the view.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from soup_engines.sync.timers import Scheduler, TimerHandle

DEFAULT_BOTTOM_THRESHOLD = 100


@dataclass(frozen=True)
class ScrollPosition:
    scroll_top: float
    scroll_height: float
    client_height: float
    distance_from_bottom: float
    is_near_bottom: bool


def get_scroll_position(
    scroll_top: float,
    scroll_height: float,
    client_height: float,
    threshold: float = DEFAULT_BOTTOM_THRESHOLD,
) -> ScrollPosition:
    distance = scroll_height - scroll_top - client_height
    return ScrollPosition(
        scroll_top=scroll_top,
        scroll_height=scroll_height,
        client_height=client_height,
        distance_from_bottom=distance,
        is_near_bottom=distance <= threshold,
    )


def is_near_bottom(
    scroll_top: float,
    scroll_height: float,
    client_height: float,
    threshold: float = DEFAULT_BOTTOM_THRESHOLD,
) -> bool:
    return get_scroll_position(scroll_top, scroll_height, client_height, threshold).is_near_bottom


class UnreadTracker:
    """Counts turns that arrive while the viewer is scrolled away from the bottom."""

    def __init__(self, threshold: float = DEFAULT_BOTTOM_THRESHOLD, auto_scroll: bool = True) -> None:
        self.threshold = threshold
        self.auto_scroll_enabled = auto_scroll
        self.near_bottom = True
        self.unread_count = 0
        self.position: Optional[ScrollPosition] = None

    def on_scroll(self, scroll_top: float, scroll_height: float, client_height: float) -> ScrollPosition:
        self.position = get_scroll_position(scroll_top, scroll_height, client_height, self.threshold)
        self.near_bottom = self.position.is_near_bottom
        if self.near_bottom:
            self.unread_count = 0
        return self.position

    def on_new_turns(self, count: int) -> bool:
        """Record ``count`` new turns; returns True when the view should scroll to the bottom."""
        if count <= 0:
            return False
        if self.should_auto_scroll:
            self.unread_count = 0
            return True
        self.unread_count += count
        return False

    def jump_to_bottom(self) -> None:
        self.near_bottom = True
        self.unread_count = 0

    @property
    def should_auto_scroll(self) -> bool:
        return self.auto_scroll_enabled and self.near_bottom


def debounce(func: Callable[..., Any], wait: float, scheduler: Scheduler) -> Callable[..., None]:
    """Delay ``func`` until ``wait`` has passed without another call."""
    pending: dict[str, TimerHandle] = {}

    def executed(*args: Any, **kwargs: Any) -> None:
        handle = pending.pop("timer", None)
        if handle is not None:
            handle.cancel()

        def later() -> Any:
            pending.pop("timer", None)
            return func(*args, **kwargs)

        pending["timer"] = scheduler.call_later(wait, later)

    return executed
