"""Tests for ThrottleManager: keyed channels driven by explicit timestamps."""

from __future__ import annotations

import pytest

from stepmatch.core.throttle import ThrottleManager

pytestmark = pytest.mark.timeout(5)


@pytest.fixture
def flushed():
    return []


@pytest.fixture
def tm():
    return ThrottleManager(clock=lambda: 0.0)


def test_leading_edge_fires_immediately(tm, flushed):
    assert tm.schedule('k', 1, 100, flushed.append, now=0)
    assert flushed == [[1]]
    assert not tm.has_pending()


def test_samples_inside_window_are_batched(tm, flushed):
    tm.schedule('k', 1, 100, flushed.append, now=0)
    tm.schedule('k', 2, 100, flushed.append, now=30)
    tm.schedule('k', 3, 100, flushed.append, now=60)
    assert flushed == [[1]]
    assert tm.has_pending('k')

    assert tm.poll(99) == 0
    assert tm.poll(100) == 1
    assert flushed == [[1], [2, 3]]
    assert not tm.has_pending('k')


def test_window_restarts_from_trailing_flush(tm, flushed):
    tm.schedule('k', 1, 100, flushed.append, now=0)
    tm.schedule('k', 2, 100, flushed.append, now=30)
    tm.poll(100)
    # 50 ms after the trailing flush: still inside the next window
    tm.schedule('k', 3, 100, flushed.append, now=150)
    assert flushed == [[1], [2]]
    tm.poll(200)
    assert flushed == [[1], [2], [3]]


def test_leading_disabled_waits_full_window(tm, flushed):
    tm.schedule('k', 1, 100, flushed.append, leading=False, now=0)
    assert flushed == []
    tm.poll(100)
    assert flushed == [[1]]
    # Window starts over on the next sample
    tm.schedule('k', 2, 100, flushed.append, leading=False, now=500)
    assert flushed == [[1]]
    tm.poll(600)
    assert flushed == [[1], [2]]


def test_trailing_disabled_drops_samples_inside_window(tm, flushed):
    assert tm.schedule('k', 1, 50, flushed.append, trailing=False, now=0)
    assert not tm.schedule('k', 2, 50, flushed.append, trailing=False, now=30)
    assert not tm.has_pending()
    assert tm.schedule('k', 3, 50, flushed.append, trailing=False, now=50)
    assert flushed == [[1], [3]]


def test_flush_all_fires_every_pending_channel_in_deadline_order(tm, flushed):
    tm.schedule('a', 'a0', 100, flushed.append, now=0)
    tm.schedule('b', 'b0', 100, flushed.append, now=5)
    tm.schedule('b', 'b1', 100, flushed.append, now=10)   # deadline 105
    tm.schedule('a', 'a1', 100, flushed.append, now=20)   # deadline 100
    assert tm.flush_all(now=40) == 2
    assert flushed == [['a0'], ['b0'], ['a1'], ['b1']]
    assert tm.flush_all(now=41) == 0


def test_channels_are_independent(tm, flushed):
    tm.schedule('a', 1, 100, flushed.append, now=0)
    tm.schedule('b', 2, 100, flushed.append, now=10)
    assert flushed == [[1], [2]]


def test_clear_discards_without_flushing(tm, flushed):
    tm.schedule('k', 1, 100, flushed.append, now=0)
    tm.schedule('k', 2, 100, flushed.append, now=10)
    tm.clear()
    assert not tm.has_pending()
    tm.poll(1000)
    assert flushed == [[1]]
    # A cleared channel starts fresh with a leading edge
    tm.schedule('k', 3, 100, flushed.append, now=1001)
    assert flushed == [[1], [3]]


def test_clock_going_backwards_counts_as_elapsed(tm, flushed):
    tm.schedule('k', 1, 100, flushed.append, now=1000)
    tm.schedule('k', 2, 100, flushed.append, now=400)
    assert flushed == [[1], [2]]


def test_default_clock_is_used_without_now(flushed):
    now = [0.0]
    tm = ThrottleManager(clock=lambda: now[0])
    tm.schedule('k', 1, 100, flushed.append)
    tm.schedule('k', 2, 100, flushed.append)
    now[0] = 150.0
    assert tm.poll() == 1
    assert flushed == [[1], [2]]


def test_discard_forgets_window_and_batch(tm, flushed):
    tm.schedule('k', 1, 100, flushed.append, trailing=False, now=0)
    tm.schedule('o', 'x', 100, flushed.append, now=0)
    tm.schedule('o', 'y', 100, flushed.append, now=10)
    tm.discard('k')
    tm.discard('missing')
    assert tm.schedule('k', 2, 100, flushed.append, trailing=False, now=20)
    assert tm.has_pending('o')
    assert flushed == [[1], ['x'], [2]]
