"""State definitions, Step snapshots and the MatcherContext dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from stepmatch.core.events import RawEvent
from stepmatch.core.target import Target


class State(str, Enum):
    INIT = "INIT"
    CLICK = "CLICK"
    RIGHT_CLICK = "RIGHT_CLICK"
    DOUBLE_CLICK = "DOUBLE_CLICK"
    DRAG = "DRAG"
    KEYPRESS = "KEYPRESS"
    TEXT = "TEXT"
    BROWSE_FILE = "BROWSE_FILE"
    DROP_FILE = "DROP_FILE"
    NAVIGATION = "NAVIGATION"
    SCROLL = "SCROLL"
    REFRESH = "REFRESH"
    RESIZE = "RESIZE"
    HOVER = "HOVER"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class Step:
    """Immutable snapshot of a step.

    Merging never mutates a snapshot: ``with_event`` returns the next one.
    All snapshots of one logical step share ``id``.
    """

    id: int
    type: State
    target: Target | None
    events: tuple[RawEvent, ...]
    secondary_targets: tuple[Target, ...] = ()

    def with_event(self, event: RawEvent, type: State | None = None,
                   secondary_targets: tuple[Target, ...] | None = None) -> Step:
        return replace(
            self,
            type=type or self.type,
            events=self.events + (event,),
            secondary_targets=self.secondary_targets if secondary_targets is None else secondary_targets,
        )

    @property
    def first_event(self) -> RawEvent:
        return self.events[0]

    @property
    def last_event(self) -> RawEvent:
        return self.events[-1]


@dataclass
class MatcherContext:
    state: State = State.INIT

    # At most one open step; previous_step is only read by guards
    current_step: Step | None = None
    previous_step: Step | None = None

    # Timing
    dblclick_max_gap: float = 350.0

    def reset(self) -> None:
        """Drop the open and previous step without emitting anything."""
        self.state = State.INIT
        self.current_step = None
        self.previous_step = None


class Action(str, Enum):
    IGNORE = "ignore"
    MERGE = "merge"
    OPEN = "open"      # close the current step (if any), then open a new one
    CLOSE = "close"    # close the current step, open nothing


@dataclass(frozen=True)
class Transition:
    """Result of evaluating one event against the tables."""

    action: Action
    next_state: State | None = None
    rule: str = field(default="", compare=False)
