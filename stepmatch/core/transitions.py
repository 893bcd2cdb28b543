"""Guarded transition tables and the pure ``transition()`` function.

Evaluation order for one event:

1. rules local to the current state, in table order;
2. global rules for the event kind;
3. the wildcard: ignore ``mousemove``/``blur``/``keyup``, otherwise close
   the current step and open an UNKNOWN one.

The first rule whose guard holds decides.  Nothing here mutates the
context; the matcher applies the returned ``Transition``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from stepmatch.core.events import (
    DRAG_FAMILY,
    EventKind,
    RawEvent,
)
from stepmatch.core.predicates import (
    count_kind,
    is_file_input,
    is_input_like_element,
    is_same_target,
    is_special_key,
)
from stepmatch.core.states import Action, MatcherContext, State, Transition
from stepmatch.core.target import Target

Guard = Callable[[MatcherContext, RawEvent, Optional[Target]], bool]

SECONDARY_BUTTON = 2

# Never open a step on their own
WILDCARD_IGNORED = frozenset({EventKind.MOUSEMOVE, EventKind.BLUR, EventKind.KEYUP})


@dataclass(frozen=True)
class Rule:
    action: Action
    target: Optional[State] = None    # None keeps the current state on MERGE
    guard: Optional[Guard] = None
    name: str = ""


# ------------------------------------------------------------------
# Guards
# ------------------------------------------------------------------

def _secondary_button(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    return getattr(event, "button", 0) == SECONDARY_BUTTON


def _file_input(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    return is_file_input(target)


def _typing(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    return is_input_like_element(target) and not is_special_key(getattr(event, "key", None))


def _has_items(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    return bool(getattr(event, "items", ()))


def _page_blur(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    # The file picker dialog blurs the window; that must not end BROWSE_FILE
    step = ctx.current_step
    return target is None and step is not None and step.type != State.BROWSE_FILE


def _double_click(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    step = ctx.current_step
    if step is None:
        return False
    previous = ctx.previous_step
    if previous is not None and previous.type == State.DOUBLE_CLICK:
        return False
    last = step.last_event
    return (
        last.kind == EventKind.CLICK
        and getattr(event, "button", 0) == getattr(last, "button", 0)
        and event.timestamp - last.timestamp <= ctx.dblclick_max_gap
        and is_same_target(step.target, target)
    )


def _button_held(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    events = ctx.current_step.events if ctx.current_step else ()
    return count_kind(events, EventKind.MOUSEDOWN) > count_kind(events, EventKind.MOUSEUP)


def _is_jitter(last: RawEvent, event: RawEvent) -> bool:
    positions = getattr(event, "positions", ())
    if last.kind != EventKind.MOUSEDOWN or len(positions) != 1:
        return False
    sample = positions[0]
    return sample.client_x == getattr(last, "client_x", None) and sample.client_y == getattr(last, "client_y", None)


def _drag_move(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    """Clean mousedown -> mousemove* chain, and not a zero-delta sample."""
    step = ctx.current_step
    if step is None:
        return False
    events = step.events
    if events[0].kind != EventKind.MOUSEDOWN:
        return False
    if not all(e.kind == EventKind.MOUSEMOVE for e in events[1:]):
        return False
    return not _is_jitter(events[-1], event)


def _not_released(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    events = ctx.current_step.events if ctx.current_step else ()
    return not any(e.kind in (EventKind.MOUSEUP, EventKind.DRAGEND) for e in events)


def _scrollbar_drag(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    """Button held on a scrollbar: mousedown followed only by scrolls."""
    step = ctx.current_step
    if step is None or step.events[0].kind != EventKind.MOUSEDOWN:
        return False
    return _button_held(ctx, event, target) and all(e.kind == EventKind.SCROLL for e in step.events[1:])


def _started_by_mousedown(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    step = ctx.current_step
    return step is not None and step.events[0].kind == EventKind.MOUSEDOWN


def _same_target(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    step = ctx.current_step
    return step is not None and is_same_target(step.target, target)


def _typing_same_target(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    return not is_special_key(getattr(event, "key", None)) and _same_target(ctx, event, target)


def _keys_held(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    events = ctx.current_step.events if ctx.current_step else ()
    return count_kind(events, EventKind.KEYDOWN) > count_kind(events, EventKind.KEYUP)


def _external_file_drop(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    step = ctx.current_step
    return _has_items(ctx, event, target) and step is not None and step.events[0].kind == EventKind.DRAGENTER


def _same_url_reload(ctx: MatcherContext, event: RawEvent, target: Target | None) -> bool:
    step = ctx.current_step
    if step is None:
        return False
    opening_url = getattr(step.first_event, "url", None)
    return opening_url is not None and getattr(event, "url", None) == opening_url


# ------------------------------------------------------------------
# Tables
# ------------------------------------------------------------------

MERGE = Rule(Action.MERGE, name="merge")

GLOBAL_RULES: Dict[EventKind, List[Rule]] = {
    EventKind.MOUSEDOWN: [
        Rule(Action.OPEN, State.RIGHT_CLICK, _secondary_button, "secondary button down"),
        Rule(Action.OPEN, State.CLICK, name="pointer down"),
    ],
    EventKind.CLICK: [
        Rule(Action.OPEN, State.BROWSE_FILE, _file_input, "file input click"),
        Rule(Action.OPEN, State.CLICK, name="lone click"),
    ],
    EventKind.KEYDOWN: [
        Rule(Action.OPEN, State.TEXT, _typing, "typing"),
        Rule(Action.OPEN, State.KEYPRESS, name="key press"),
    ],
    EventKind.TEXT_INPUT: [Rule(Action.OPEN, State.TEXT, name="text input")],
    EventKind.TEXT_CHANGE: [Rule(Action.OPEN, State.TEXT, name="text change")],
    EventKind.DROP: [Rule(Action.OPEN, State.DROP_FILE, _has_items, "file drop")],
    EventKind.WHEEL: [Rule(Action.OPEN, State.SCROLL, name="wheel")],
    EventKind.BLUR: [Rule(Action.CLOSE, guard=_page_blur, name="page blur")],
    EventKind.FILE: [Rule(Action.OPEN, State.BROWSE_FILE, name="file selection")],
    EventKind.HOVER: [Rule(Action.OPEN, State.HOVER, name="hover")],
    EventKind.DRAGENTER: [Rule(Action.OPEN, State.DRAG, name="drag enter")],
    EventKind.BEFORE_UNLOAD: [Rule(Action.OPEN, State.NAVIGATION, name="before unload")],
    EventKind.RESIZE: [Rule(Action.OPEN, State.RESIZE, name="resize")],
}

_DRAG_RULES: Dict[EventKind, List[Rule]] = {kind: [MERGE] for kind in DRAG_FAMILY}
_DRAG_RULES[EventKind.DROP] = [
    Rule(Action.MERGE, State.DROP_FILE, _external_file_drop, "external file drop"),
    MERGE,
]

LOCAL_RULES: Dict[State, Dict[EventKind, List[Rule]]] = {
    State.INIT: {},
    State.CLICK: {
        EventKind.MOUSEDOWN: [
            Rule(Action.MERGE, State.DOUBLE_CLICK, _double_click, "double click"),
            Rule(Action.MERGE, guard=_button_held, name="button held"),
        ],
        EventKind.MOUSEMOVE: [
            Rule(Action.MERGE, State.DRAG, _drag_move, "drag start"),
        ],
        EventKind.MOUSEUP: [MERGE],
        EventKind.CLICK: [
            Rule(Action.MERGE, State.BROWSE_FILE, _file_input, "file input click"),
            MERGE,
        ],
        EventKind.DBLCLICK: [MERGE],
        EventKind.AUXCLICK: [MERGE],
        EventKind.DRAGSTART: [Rule(Action.MERGE, State.DRAG, name="native drag")],
        EventKind.DRAG: [Rule(Action.MERGE, State.DRAG, name="native drag")],
        EventKind.SCROLL: [
            Rule(Action.MERGE, State.SCROLL, _scrollbar_drag, "scrollbar drag"),
        ],
    },
    State.RIGHT_CLICK: {
        EventKind.MOUSEUP: [MERGE],
        EventKind.CLICK: [MERGE],
        EventKind.AUXCLICK: [MERGE],
    },
    State.DOUBLE_CLICK: {
        EventKind.MOUSEUP: [MERGE],
        EventKind.CLICK: [MERGE],
        EventKind.DBLCLICK: [MERGE],
    },
    State.DRAG: {
        EventKind.MOUSEMOVE: [Rule(Action.MERGE, guard=_not_released, name="drag move")],
        EventKind.MOUSEUP: [MERGE],
        EventKind.CLICK: [MERGE],
        **_DRAG_RULES,
    },
    State.KEYPRESS: {
        EventKind.KEYDOWN: [Rule(Action.MERGE, guard=_keys_held, name="key combination")],
        EventKind.KEYPRESS: [MERGE],
        EventKind.KEYUP: [MERGE],
    },
    State.TEXT: {
        EventKind.KEYDOWN: [Rule(Action.MERGE, guard=_typing_same_target, name="typing")],
        EventKind.KEYPRESS: [MERGE],
        EventKind.KEYUP: [MERGE],
        EventKind.TEXT_INPUT: [Rule(Action.MERGE, guard=_same_target, name="same field")],
        EventKind.TEXT_CHANGE: [Rule(Action.MERGE, guard=_same_target, name="same field")],
    },
    State.SCROLL: {
        EventKind.SCROLL: [
            Rule(Action.MERGE, guard=_same_target, name="same scroller"),
            Rule(Action.MERGE, guard=_started_by_mousedown, name="scrollbar drag"),
            Rule(Action.IGNORE, name="other scroller"),
        ],
        EventKind.WHEEL: [Rule(Action.MERGE, guard=_same_target, name="same scroller")],
        EventKind.MOUSEUP: [Rule(Action.MERGE, guard=_started_by_mousedown, name="scrollbar release")],
    },
    State.NAVIGATION: {
        EventKind.LOAD: [
            Rule(Action.MERGE, State.REFRESH, _same_url_reload, "reload"),
            MERGE,
        ],
    },
    State.BROWSE_FILE: {
        EventKind.FILE: [MERGE],
    },
    State.RESIZE: {
        EventKind.RESIZE: [MERGE],
    },
}


# ------------------------------------------------------------------
# Evaluation
# ------------------------------------------------------------------

def _rules_for(state: State, kind: EventKind) -> list[list[Rule]]:
    return [LOCAL_RULES.get(state, {}).get(kind, []), GLOBAL_RULES.get(kind, [])]


def transition(context: MatcherContext, event: RawEvent, target: Target | None = None) -> Transition:
    """Decide what ``event`` does to the current step.  Pure."""
    state = context.state
    for rules in _rules_for(state, event.kind):
        for rule in rules:
            if rule.guard is not None and not rule.guard(context, event, target):
                continue
            if rule.action == Action.MERGE:
                return Transition(Action.MERGE, rule.target or state, rule.name)
            if rule.action == Action.IGNORE:
                return Transition(Action.IGNORE, state, rule.name)
            if rule.action == Action.CLOSE:
                return Transition(Action.CLOSE, State.INIT, rule.name)
            return Transition(Action.OPEN, rule.target, rule.name)

    if event.kind in WILDCARD_IGNORED:
        return Transition(Action.IGNORE, state, "not a step boundary")
    return Transition(Action.OPEN, State.UNKNOWN, "unclassified")
