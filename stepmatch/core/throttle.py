"""ThrottleManager: keyed coalescing channels.

Each channel batches samples scheduled under one key and hands the whole
batch to its flush callback, either on the leading edge or once its window
has elapsed.  Timing is poll-driven: nothing here starts a thread or a
timer.  The owner calls ``poll(now)`` to fire expired windows and
``flush_all()`` to force every pending batch out before a boundary event.

``now`` is in milliseconds.  Callers replaying a recording pass event
timestamps; live callers can rely on the default monotonic clock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable

import stepmatch.log  # registers TRACE level and logger.trace()

logger = logging.getLogger(__name__)

FlushHandler = Callable[[list], None]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class _Channel:
    wait: float
    on_flush: FlushHandler
    leading: bool = True
    batch: list = field(default_factory=list)
    previous: float | None = None     # time of the last flush, None before the first
    deadline: float | None = None     # pending trailing flush


class ThrottleManager:
    """Registry of independent channels, one per key."""

    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or monotonic_ms
        self._channels: dict[Hashable, _Channel] = {}

    def now(self) -> float:
        return self._clock()

    def schedule(
        self,
        key: Hashable,
        sample: Any,
        wait: float,
        on_flush: FlushHandler,
        *,
        leading: bool = True,
        trailing: bool = True,
        now: float | None = None,
    ) -> bool:
        """Add *sample* to the channel *key*.

        Returns False when the sample was dropped (inside the window of a
        channel with trailing disabled).
        """
        now = self._clock() if now is None else now
        channel = self._channels.get(key)
        if channel is None:
            channel = _Channel(wait=wait, on_flush=on_flush, leading=leading)
            self._channels[key] = channel
        channel.wait = wait
        channel.on_flush = on_flush
        channel.leading = leading

        if channel.previous is None:
            if leading:
                remaining = 0.0
            else:
                channel.previous = now
                remaining = wait
        else:
            remaining = wait - (now - channel.previous)

        # remaining > wait means the clock went backwards; treat as elapsed
        if remaining <= 0 or remaining > wait:
            channel.batch.append(sample)
            channel.previous = now
            self._fire(key, channel)
            return True
        if not trailing:
            logger.trace("Dropped sample on %r (%.0f ms left)", key, remaining)  # type: ignore[attr-defined]
            return False
        channel.batch.append(sample)
        if channel.deadline is None:
            channel.deadline = now + remaining
        return True

    def poll(self, now: float | None = None) -> int:
        """Fire every channel whose window has elapsed.  Returns the count."""
        now = self._clock() if now is None else now
        due = [
            (key, ch) for key, ch in self._channels.items()
            if ch.deadline is not None and ch.deadline <= now
        ]
        due.sort(key=lambda item: item[1].deadline)
        for key, channel in due:
            self._fire_trailing(key, channel, channel.deadline)
        return len(due)

    def flush_all(self, now: float | None = None) -> int:
        """Fire every pending channel regardless of its remaining window."""
        pending = [(key, ch) for key, ch in self._channels.items() if ch.deadline is not None]
        if not pending:
            return 0
        now = self._clock() if now is None else now
        pending.sort(key=lambda item: item[1].deadline)
        for key, channel in pending:
            self._fire_trailing(key, channel, now)
        return len(pending)

    def has_pending(self, key: Hashable | None = None) -> bool:
        if key is not None:
            channel = self._channels.get(key)
            return channel is not None and channel.deadline is not None
        return any(ch.deadline is not None for ch in self._channels.values())

    def discard(self, key: Hashable) -> None:
        """Forget channel *key*: its window and pending batch are dropped."""
        if self._channels.pop(key, None) is not None:
            logger.trace("Discarded channel %r", key)  # type: ignore[attr-defined]

    def clear(self) -> None:
        """Discard every channel and its pending batch without flushing."""
        if self._channels:
            logger.debug("Discarding %d coalescing channel(s)", len(self._channels))
        self._channels.clear()

    def _fire_trailing(self, key: Hashable, channel: _Channel, at: float) -> None:
        # A flush callback may already have fired this channel
        if channel.deadline is None:
            return
        channel.previous = at if channel.leading else None
        self._fire(key, channel)

    def _fire(self, key: Hashable, channel: _Channel) -> None:
        batch, channel.batch = channel.batch, []
        channel.deadline = None
        if batch:
            logger.trace("Flushing %d sample(s) on %r", len(batch), key)  # type: ignore[attr-defined]
            channel.on_flush(batch)
