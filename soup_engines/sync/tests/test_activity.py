from __future__ import annotations

import asyncio

from soup_engines.sync.activity import UnreadTracker, debounce, get_scroll_position, is_near_bottom


def test_scroll_position_distance():
    pos = get_scroll_position(scroll_top=400, scroll_height=1000, client_height=500)
    assert pos.distance_from_bottom == 100
    assert pos.is_near_bottom
    assert not is_near_bottom(0, 1000, 500)
    assert not is_near_bottom(400, 1000, 500, threshold=40)


def test_unread_counts_only_when_scrolled_away():
    tracker = UnreadTracker()
    assert tracker.on_new_turns(2) is True
    assert tracker.unread_count == 0

    tracker.on_scroll(scroll_top=0, scroll_height=2000, client_height=500)
    assert tracker.on_new_turns(2) is False
    assert tracker.on_new_turns(1) is False
    assert tracker.unread_count == 3

    tracker.on_scroll(scroll_top=1500, scroll_height=2000, client_height=500)
    assert tracker.unread_count == 0


def test_jump_to_bottom_clears_and_zero_is_ignored():
    tracker = UnreadTracker(auto_scroll=False)
    assert tracker.on_new_turns(0) is False
    tracker.on_new_turns(4)
    assert tracker.unread_count == 4
    tracker.jump_to_bottom()
    assert tracker.unread_count == 0


def test_debounce_fires_once_with_last_args(scheduler):
    calls = []
    debounced = debounce(calls.append, 0.5, scheduler)
    debounced(1)
    debounced(2)
    asyncio.run(scheduler.advance(0.4))
    debounced(3)
    asyncio.run(scheduler.advance(0.5))
    assert calls == [3]
