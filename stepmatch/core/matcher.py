"""StepMatcher: drives the step state machine and notifies consumers.

One raw event is processed completely (coalescing flushed, transition
evaluated, step replaced, notifications fired) before the next one is
accepted.  Notifications are synchronous:

* ``new``    when a step is opened,
* ``update`` on every merge,
* ``end``    when a step is closed, always before the ``new`` of the step
  that replaces it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, Mapping

import stepmatch.log  # registers TRACE level and logger.trace()
from stepmatch.core.coalescer import EventCoalescer, Resolver
from stepmatch.core.event_bus import EventBus, StepHandler, StepNotice
from stepmatch.core.events import DRAG_OVER_FAMILY, DragEvent, RawEvent
from stepmatch.core.predicates import is_same_target
from stepmatch.core.states import Action, MatcherContext, State, Step
from stepmatch.core.target import Target
from stepmatch.core.throttle import ThrottleManager
from stepmatch.core.transitions import transition

logger = logging.getLogger(__name__)


class Lifecycle(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    SUSPENDED = "suspend"


def _index_secondary(secondary: tuple[Target, ...], target: Target) -> tuple[int, tuple[Target, ...]]:
    """Index of *target* among the visited targets, appending it on first visit."""
    for index, visited in enumerate(secondary):
        if is_same_target(visited, target):
            return index, secondary
    return len(secondary), secondary + (target,)


class StepMatcher:
    """Segments a stream of raw events into steps."""

    def __init__(
        self,
        dblclick_max_gap_ms: float = 350,
        mousemove_sample_ms: float = 50,
        mousemove_flush_ms: float = 500,
        scroll_window_ms: float = 1000,
        wheel_debounce_ms: float = 500,
        resolve_scrollable: Resolver | None = None,
        clock: Callable[[], float] | None = None,
        debug: bool = False,
    ):
        self.context = MatcherContext(dblclick_max_gap=float(dblclick_max_gap_ms))
        self.bus = EventBus()
        self.throttle = ThrottleManager(clock)
        self.coalescer = EventCoalescer(
            self.throttle,
            self._dispatch,
            mousemove_sample_ms=mousemove_sample_ms,
            mousemove_flush_ms=mousemove_flush_ms,
            scroll_window_ms=scroll_window_ms,
            wheel_debounce_ms=wheel_debounce_ms,
            resolve_scrollable=resolve_scrollable,
            is_scrolling=self._is_scrolling,
        )
        self.debug = debug
        self._lifecycle = Lifecycle.INACTIVE
        self._next_id = 1

    @classmethod
    def from_config(cls, config: Mapping, **kwargs) -> StepMatcher:
        """Build a matcher from a validated config dict (see ``stepmatch.config``)."""
        return cls(
            dblclick_max_gap_ms=config['dblclick_max_gap_ms'],
            mousemove_sample_ms=config['mousemove_sample_ms'],
            mousemove_flush_ms=config['mousemove_flush_ms'],
            scroll_window_ms=config['scroll_window_ms'],
            wheel_debounce_ms=config['wheel_debounce_ms'],
            debug=config.get('debug', False),
            **kwargs,
        )

    # -- introspection --------------------------------------------------

    @property
    def state(self) -> State:
        return self.context.state

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    @property
    def current_step(self) -> Step | None:
        return self.context.current_step

    @property
    def previous_step(self) -> Step | None:
        return self.context.previous_step

    # -- lifecycle ------------------------------------------------------

    def start(self) -> None:
        """inactive -> active, or resume suspend -> active without data loss."""
        if self._lifecycle != Lifecycle.ACTIVE:
            logger.debug("Matcher %s -> active", self._lifecycle.value)
        self._lifecycle = Lifecycle.ACTIVE

    def suspend(self) -> None:
        """Stop accepting events; the open step and pending batches are kept."""
        if self._lifecycle == Lifecycle.ACTIVE:
            logger.debug("Matcher active -> suspend")
            self._lifecycle = Lifecycle.SUSPENDED

    def stop(self) -> None:
        """Discard pending coalescing state and the open step without emitting it."""
        if self.context.current_step is not None:
            logger.debug("Discarding open %s step %d", self.context.state.value, self.context.current_step.id)
        self.throttle.clear()
        self.coalescer.reset()
        self.context.reset()
        self._lifecycle = Lifecycle.INACTIVE

    # -- consumer registration -------------------------------------------

    def on_new_step(self, handler: StepHandler) -> StepHandler:
        self.bus.subscribe(StepNotice.NEW, handler)
        return handler

    def on_update_step(self, handler: StepHandler) -> StepHandler:
        self.bus.subscribe(StepNotice.UPDATE, handler)
        return handler

    def on_end_step(self, handler: StepHandler) -> StepHandler:
        self.bus.subscribe(StepNotice.END, handler)
        return handler

    def off(self, handler: StepHandler) -> None:
        """Remove *handler* from every notification it was registered for."""
        for notice in StepNotice:
            self.bus.unsubscribe(notice, handler)

    # -- input ----------------------------------------------------------

    def _accepting(self, what: object) -> bool:
        if self._lifecycle == Lifecycle.ACTIVE:
            return True
        logger.trace("Matcher %s, rejected %s", self._lifecycle.value, what)  # type: ignore[attr-defined]
        return False

    def send(self, event: RawEvent, target: Target | None = None) -> bool:
        """Process a directly forwarded event.

        Every coalescing channel is flushed first so that batched input is
        attributed to the step it belongs to.
        """
        if not self._accepting(event.kind.value):
            return False
        self.throttle.flush_all(event.timestamp)
        self._dispatch(event, target)
        return True

    def pointer_move(self, client_x: float, client_y: float, timestamp: float,
                     screen_x: float = 0, screen_y: float = 0) -> bool:
        if not self._accepting("pointer move"):
            return False
        return self.coalescer.pointer_move(client_x, client_y, timestamp, screen_x, screen_y)

    def scroll(self, target: Target | None, scroll_left: float, scroll_top: float, timestamp: float) -> bool:
        if not self._accepting("scroll"):
            return False
        return self.coalescer.scroll(target, scroll_left, scroll_top, timestamp)

    def wheel(self, target: Target | None, timestamp: float, **deltas) -> bool:
        if not self._accepting("wheel"):
            return False
        return self.coalescer.wheel(target, timestamp, **deltas)

    def tick(self, now: float | None = None) -> int:
        """Timer hook: fire coalescing windows that have elapsed."""
        if self._lifecycle != Lifecycle.ACTIVE:
            return 0
        return self.throttle.poll(now)

    def finish(self, now: float | None = None) -> Step | None:
        """Flush coalescing and end the open step.  Returns the ended step."""
        if not self._accepting("finish"):
            return None
        self.throttle.flush_all(now)
        return self._close()

    # -- interpreter ----------------------------------------------------

    def _is_scrolling(self, target: Target | None) -> bool:
        """True while the open step is a SCROLL of *target*."""
        step = self.context.current_step
        if step is None or step.type != State.SCROLL:
            return False
        return step.target is target or is_same_target(step.target, target)

    def _dispatch(self, event: RawEvent, target: Target | None) -> None:
        logger.trace("RawEvent: %s t=%s target=%r state=%s",  # type: ignore[attr-defined]
                     event.kind.value, event.timestamp, target, self.context.state.value)
        result = transition(self.context, event, target)
        if result.action == Action.IGNORE:
            logger.trace("Ignored %s in %s (%s)",  # type: ignore[attr-defined]
                         event.kind.value, self.context.state.value, result.rule)
            return
        prior = self.context.state
        if result.action == Action.MERGE:
            self._merge(event, target, result.next_state)
        elif result.action == Action.CLOSE:
            self._close()
            if self.debug:
                logger.debug("State: %s → INIT (on %s)", prior.value, event.kind.value)
        else:
            self._close()
            self._open(event, target, result.next_state, prior)

    def _append(self, step: Step, event: RawEvent, target: Target | None, state: State) -> Step:
        secondary = None
        if event.kind in DRAG_OVER_FAMILY and target is not None:
            index, secondary = _index_secondary(step.secondary_targets, target)
            if isinstance(event, DragEvent):
                event = replace(event, target_index=index)
        return step.with_event(event, state, secondary)

    def _open(self, event: RawEvent, target: Target | None, state: State, prior: State = State.INIT) -> None:
        step = Step(id=self._next_id, type=state, target=target, events=())
        self._next_id += 1
        step = self._append(step, event, target, state)
        self.context.current_step = step
        self.context.state = state
        if self.debug:
            logger.debug("State: %s → %s (step %d opened by %s)", prior.value, state.value, step.id, event.kind.value)
        self.bus.publish(StepNotice.NEW, step)

    def _merge(self, event: RawEvent, target: Target | None, state: State) -> None:
        current = self.context.current_step
        step = self._append(current, event, target, state)
        if self.debug and state != current.type:
            logger.debug("State: %s → %s (step %d, on %s)", current.type.value, state.value, step.id, event.kind.value)
        self.context.current_step = step
        self.context.state = state
        self.bus.publish(StepNotice.UPDATE, step)

    def _close(self) -> Step | None:
        step = self.context.current_step
        if step is None:
            return None
        self.context.previous_step = step
        self.context.current_step = None
        self.context.state = State.INIT
        if self.debug:
            logger.debug("Step %d ended (%s, %d events)", step.id, step.type.value, len(step.events))
        if step.events:
            self.bus.publish(StepNotice.END, step)
        return step
