"""Predicate library: pure guards shared by the transition tables.

Keys are logical ``KeyboardEvent.key`` values, not physical codes.
Malformed input never raises; it simply does not match.
"""

from __future__ import annotations

from typing import Iterable

from stepmatch.core.events import EventKind, KeyboardEvent, RawEvent
from stepmatch.core.target import Target

MODIFIER_KEYS = frozenset({"Alt", "Control", "Shift", "Meta"})

SPECIAL_KEYS = frozenset({
    "Tab", "Enter",
    "ArrowUp", "ArrowDown", "ArrowLeft", "ArrowRight",
    "Insert", "Delete", "Home", "End", "PageUp", "PageDown",
    "F1", "F2", "F3", "F4", "F5", "F6", "F7", "F8", "F9", "F10", "F11", "F12",
})

# <input type=...> values that do not accept typed text
NON_TEXT_INPUT_TYPES = frozenset({
    "button", "checkbox", "color", "file", "image",
    "radio", "range", "reset", "submit",
})

CONTENT_EDITABLE_VALUES = frozenset({"true", "", "caret", "events", "plaintext", "typing", "plaintext-only"})


def is_special_key(key: object) -> bool:
    return isinstance(key, str) and key in SPECIAL_KEYS


def is_modifier_key(key: object) -> bool:
    return isinstance(key, str) and key in MODIFIER_KEYS


def _is_disabled(target: Target) -> bool:
    return target.has_attribute("disabled")


def is_input_like_element(target: Target | None) -> bool:
    """True for elements that accept typed text.

    Enabled ``<input>`` of a text-like type, enabled ``<textarea>``,
    or a content-editable element.
    """
    if target is None:
        return False
    try:
        tag = target.tag_name.upper()
        if tag == "INPUT":
            input_type = (target.get_attribute("type") or "text").lower()
            return not _is_disabled(target) and input_type not in NON_TEXT_INPUT_TYPES
        if tag == "TEXTAREA":
            return not _is_disabled(target)
        editable = target.get_attribute("contenteditable")
    except (AttributeError, TypeError):
        return False
    return editable is not None and editable.lower() in CONTENT_EDITABLE_VALUES


def is_file_input(target: Target | None) -> bool:
    if target is None:
        return False
    try:
        return target.tag_name.upper() == "INPUT" and (target.get_attribute("type") or "").lower() == "file"
    except (AttributeError, TypeError):
        return False


def is_same_target(a: Target | None, b: Target | None) -> bool:
    """Identity equality; ``None`` never equals anything, not even ``None``."""
    if a is None or b is None:
        return False
    return a is b or a.same_as(b)


def count_kind(events: Iterable[RawEvent], kind: EventKind) -> int:
    return sum(1 for e in events if e.kind == kind)


def key_combination(events: Iterable[RawEvent]) -> str:
    """Human-readable chord for a KEYPRESS step, e.g. ``Control+Shift+K``.

    Modifiers come first in press order, then the remaining keys; repeats
    (auto-repeat keydowns) are collapsed.
    """
    modifiers: list[str] = []
    keys: list[str] = []
    for event in events:
        if event.kind != EventKind.KEYDOWN or not isinstance(event, KeyboardEvent) or not event.key:
            continue
        bucket = modifiers if is_modifier_key(event.key) else keys
        if event.key not in bucket:
            bucket.append(event.key)
    return "+".join(modifiers + keys)
