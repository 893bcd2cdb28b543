"""EventCoalescer: turns bursts of high-frequency input into composite events.

Three kinds of input go through here instead of straight to the matcher:

* pointer moves: sampled every ``mousemove_sample_ms`` (samples inside the
  window are dropped) and batched into one ``MousemoveEvent`` per
  ``mousemove_flush_ms`` window, target ``None``;
* scrolls: one channel per scrolled target, the composite carries the
  latest offsets;
* wheels: resolved to the scrollable ancestor, then one channel per resolved
  target, leading edge only.  The debounce only holds while the open step
  scrolls that same target; any other wheel is a boundary and gets through.
  A wheel that gets through flushes every other pending channel first.

Pointer and scroll composites are delivered without ``flush_all``: they are
the events being coalesced, not boundaries.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import stepmatch.log  # registers TRACE level and logger.trace()
from stepmatch.core.events import (
    EventKind,
    MousemoveEvent,
    MoveSample,
    RawEvent,
    ScrollEvent,
    WheelEvent,
)
from stepmatch.core.target import Target
from stepmatch.core.throttle import ThrottleManager

logger = logging.getLogger(__name__)

Deliver = Callable[[RawEvent, Optional[Target]], None]
Resolver = Callable[[Optional[Target]], Optional[Target]]
ScrollCheck = Callable[[Optional[Target]], bool]

# Fixed channel keys for the single pointer stream
MOVE_SAMPLE_CHANNEL = ("pointer", "sample")
MOVE_BATCH_CHANNEL = ("pointer", "batch")


class EventCoalescer:
    def __init__(
        self,
        throttle: ThrottleManager,
        deliver: Deliver,
        *,
        mousemove_sample_ms: float = 50,
        mousemove_flush_ms: float = 500,
        scroll_window_ms: float = 1000,
        wheel_debounce_ms: float = 500,
        resolve_scrollable: Resolver | None = None,
        is_scrolling: ScrollCheck | None = None,
    ):
        self._throttle = throttle
        self._deliver = deliver
        self.mousemove_sample_ms = mousemove_sample_ms
        self.mousemove_flush_ms = mousemove_flush_ms
        self.scroll_window_ms = scroll_window_ms
        self.wheel_debounce_ms = wheel_debounce_ms
        self._resolve_scrollable = resolve_scrollable
        self._is_scrolling = is_scrolling
        self._move_baseline: float | None = None

    def reset(self) -> None:
        self._move_baseline = None

    # -- pointer moves --------------------------------------------------

    def pointer_move(self, client_x: float, client_y: float, timestamp: float,
                     screen_x: float = 0, screen_y: float = 0) -> bool:
        self._throttle.poll(timestamp)
        return self._throttle.schedule(
            MOVE_SAMPLE_CHANNEL,
            (client_x, client_y, screen_x, screen_y, timestamp),
            self.mousemove_sample_ms,
            self._take_sample,
            trailing=False,
            now=timestamp,
        )

    def _take_sample(self, batch: list) -> None:
        client_x, client_y, screen_x, screen_y, timestamp = batch[-1]
        if self._move_baseline is None:
            self._move_baseline = timestamp
        sample = MoveSample(
            client_x=client_x,
            client_y=client_y,
            time_offset=timestamp - self._move_baseline,
            screen_x=screen_x,
            screen_y=screen_y,
        )
        self._throttle.schedule(
            MOVE_BATCH_CHANNEL, sample, self.mousemove_flush_ms, self._emit_moves, now=timestamp,
        )

    def _emit_moves(self, samples: list) -> None:
        baseline = self._move_baseline if self._move_baseline is not None else 0
        self._move_baseline = None
        logger.debug("Coalesced %d pointer sample(s)", len(samples))
        self._deliver(MousemoveEvent(EventKind.MOUSEMOVE, baseline, positions=tuple(samples)), None)

    # -- scrolling ------------------------------------------------------

    def scroll(self, target: Target | None, scroll_left: float, scroll_top: float, timestamp: float) -> bool:
        # Text fields scroll while typing; that is not a scroll step
        if target is not None and target.tag_name.upper() == "INPUT":
            logger.trace("Dropped scroll on input %r", target)  # type: ignore[attr-defined]
            return False
        self._throttle.poll(timestamp)
        event = ScrollEvent(EventKind.SCROLL, timestamp, scroll_left=scroll_left, scroll_top=scroll_top)

        def flush(batch: list, target: Target | None = target) -> None:
            self._deliver(batch[-1], target)

        return self._throttle.schedule(("scroll", target), event, self.scroll_window_ms, flush, now=timestamp)

    def wheel(self, target: Target | None, timestamp: float, delta_x: float = 0, delta_y: float = 0,
              delta_z: float = 0, delta_mode: int = 0) -> bool:
        self._throttle.poll(timestamp)
        if self._resolve_scrollable is not None:
            target = self._resolve_scrollable(target)
        if self._is_scrolling is not None and not self._is_scrolling(target):
            # Not scrolling this target yet: restart its debounce window
            self._throttle.discard(("wheel", target))
        event = WheelEvent(
            EventKind.WHEEL, timestamp,
            delta_x=delta_x, delta_y=delta_y, delta_z=delta_z, delta_mode=delta_mode,
        )

        def flush(batch: list, target: Target | None = target) -> None:
            # A wheel that gets through may open a step: earlier input goes first
            self._throttle.flush_all(batch[0].timestamp)
            self._deliver(batch[0], target)

        return self._throttle.schedule(
            ("wheel", target), event, self.wheel_debounce_ms, flush, trailing=False, now=timestamp,
        )
