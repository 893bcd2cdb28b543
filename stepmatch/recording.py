"""JSON-lines recordings of raw events.

One object per line::

    {"kind": "mousedown", "timestamp": 0, "target": {"uid": "ok", "tag": "button"}, "button": 0}

Payload keys are the event dataclass field names.  ``mousemove`` lines
carrying ``x``/``y`` (instead of ``positions``), ``scroll`` and ``wheel``
lines are fed through the matcher's coalescer like live input would be;
every other line is sent directly.  Blank lines and ``#`` comments are
skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, fields
from typing import IO, Callable, Iterator

from stepmatch.core.events import (
    DRAG_FAMILY,
    BrowseFileEvent,
    DragEvent,
    EventKind,
    HoverEvent,
    KeyboardEvent,
    Modifiers,
    MouseEvent,
    MousemoveEvent,
    MoveSample,
    PageEvent,
    RawEvent,
    ResizeEvent,
    ScrollEvent,
    TextChangeEvent,
    TextInputEvent,
    WheelEvent,
)
from stepmatch.core.matcher import StepMatcher
from stepmatch.core.predicates import key_combination
from stepmatch.core.states import State, Step
from stepmatch.core.target import ElementRef, Target

logger = logging.getLogger(__name__)


class RecordingError(ValueError):
    """Malformed recording line."""


_VARIANTS: dict[EventKind, type] = {
    EventKind.MOUSEDOWN: MouseEvent,
    EventKind.MOUSEUP: MouseEvent,
    EventKind.CLICK: MouseEvent,
    EventKind.DBLCLICK: MouseEvent,
    EventKind.AUXCLICK: MouseEvent,
    EventKind.MOUSEMOVE: MousemoveEvent,
    EventKind.SCROLL: ScrollEvent,
    EventKind.WHEEL: WheelEvent,
    EventKind.KEYDOWN: KeyboardEvent,
    EventKind.KEYPRESS: KeyboardEvent,
    EventKind.KEYUP: KeyboardEvent,
    EventKind.TEXT_INPUT: TextInputEvent,
    EventKind.TEXT_CHANGE: TextChangeEvent,
    EventKind.BLUR: PageEvent,
    EventKind.LOAD: PageEvent,
    EventKind.BEFORE_UNLOAD: PageEvent,
    EventKind.HOVER: HoverEvent,
    EventKind.RESIZE: ResizeEvent,
    EventKind.FILE: BrowseFileEvent,
}
_VARIANTS.update({kind: DragEvent for kind in DRAG_FAMILY})


# ------------------------------------------------------------------
# Decoding
# ------------------------------------------------------------------

def parse_target(obj: dict | None) -> ElementRef | None:
    if obj is None:
        return None
    if not isinstance(obj, dict) or 'uid' not in obj:
        raise RecordingError(f"Invalid target: {obj!r}")
    return ElementRef(obj['uid'], obj.get('tag', 'DIV'), obj.get('attributes'))


def _kind_of(record: dict) -> EventKind:
    try:
        return EventKind(record['kind'])
    except KeyError:
        raise RecordingError("Missing 'kind'")
    except ValueError:
        raise RecordingError(f"Unknown kind: {record['kind']!r}")


def decode_event(record: dict) -> RawEvent:
    """Build the RawEvent variant for *record* (target is not part of it)."""
    kind = _kind_of(record)
    cls = _VARIANTS[kind]
    payload = {}
    for f in fields(cls):
        if f.name in ('kind', 'timestamp') or f.name not in record:
            continue
        value = record[f.name]
        if f.name == 'modifiers':
            value = Modifiers(**value)
        elif f.name == 'positions':
            value = tuple(MoveSample(**p) for p in value)
        elif f.name in ('items', 'files'):
            value = tuple(value)
        payload[f.name] = value
    return cls(kind, float(record['timestamp']), **payload)


def iter_records(stream: IO[str]) -> Iterator[tuple[int, dict]]:
    for lineno, line in enumerate(stream, start=1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            raise RecordingError(f"line {lineno}: {exc}") from exc
        if not isinstance(record, dict):
            raise RecordingError(f"line {lineno}: expected an object")
        yield lineno, record


def feed(matcher: StepMatcher, record: dict) -> bool:
    """Route one decoded line to the matcher."""
    kind = _kind_of(record)
    target = parse_target(record.get('target'))
    timestamp = float(record['timestamp'])
    if kind == EventKind.MOUSEMOVE and 'positions' not in record:
        return matcher.pointer_move(
            record['x'], record['y'], timestamp,
            record.get('screen_x', 0), record.get('screen_y', 0),
        )
    if kind == EventKind.SCROLL:
        return matcher.scroll(target, record.get('scroll_left', 0), record.get('scroll_top', 0), timestamp)
    if kind == EventKind.WHEEL:
        deltas = {k: record[k] for k in ('delta_x', 'delta_y', 'delta_z', 'delta_mode') if k in record}
        return matcher.wheel(target, timestamp, **deltas)
    return matcher.send(decode_event(record), target)


def segment(stream: IO[str], matcher: StepMatcher,
            on_step: Callable[[Step], None] | None = None) -> list[Step]:
    """Run a recording through *matcher* and return the ended steps in order.

    The handlers registered here are removed again before returning.
    """
    ended: list[Step] = []
    handlers = [matcher.on_end_step(ended.append)]
    if on_step is not None:
        handlers.append(matcher.on_end_step(on_step))
    matcher.start()

    last_timestamp = None
    count = 0
    try:
        for lineno, record in iter_records(stream):
            try:
                feed(matcher, record)
            except RecordingError as exc:
                raise RecordingError(f"line {lineno}: {exc}") from exc
            except (KeyError, TypeError, ValueError) as exc:
                raise RecordingError(f"line {lineno}: {type(exc).__name__}: {exc}") from exc
            last_timestamp = float(record['timestamp'])
            count += 1

        matcher.finish(last_timestamp)
    finally:
        for handler in handlers:
            matcher.off(handler)
    logger.debug("Segmented %d raw event(s) into %d step(s)", count, len(ended))
    return ended


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------

def target_to_record(target: Target | None):
    if target is None:
        return None
    if isinstance(target, ElementRef):
        return target.to_dict()
    return {'tag': target.tag_name, 'repr': repr(target)}


def event_to_record(event: RawEvent) -> dict:
    record = asdict(event)
    record['kind'] = event.kind.value
    if 'modifiers' in record:
        record['modifiers'] = {k: v for k, v in record['modifiers'].items() if v}
    return record


def step_to_record(step: Step) -> dict:
    record = {
        'id': step.id,
        'type': step.type.value,
        'target': target_to_record(step.target),
        'secondary_targets': [target_to_record(t) for t in step.secondary_targets],
        'events': [event_to_record(e) for e in step.events],
    }
    if step.type == State.KEYPRESS:
        record['keys'] = key_combination(step.events)
    return record
