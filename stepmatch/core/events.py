"""Typed raw-event definitions (frozen dataclasses).

Every variant carries ``kind`` and ``timestamp`` (milliseconds, monotonic).
Instances are immutable; use ``dataclasses.replace`` to derive a copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    # Pointer
    MOUSEDOWN = "mousedown"
    MOUSEUP = "mouseup"
    CLICK = "click"
    DBLCLICK = "dblclick"
    AUXCLICK = "auxclick"
    MOUSEMOVE = "mousemove"
    # Scrolling
    SCROLL = "scroll"
    WHEEL = "wheel"
    # Keyboard / text
    KEYDOWN = "keydown"
    KEYPRESS = "keypress"
    KEYUP = "keyup"
    TEXT_INPUT = "text_input"
    TEXT_CHANGE = "text_change"
    # Page lifecycle
    BLUR = "blur"
    LOAD = "load"
    BEFORE_UNLOAD = "before_unload"
    HOVER = "hover"
    RESIZE = "resize"
    # Drag and drop
    DRAG = "drag"
    DRAGSTART = "dragstart"
    DRAGENTER = "dragenter"
    DRAGOVER = "dragover"
    DRAGLEAVE = "dragleave"
    DRAGEND = "dragend"
    DROP = "drop"
    # File picker
    FILE = "file"


DRAG_FAMILY = frozenset({
    EventKind.DRAG,
    EventKind.DRAGSTART,
    EventKind.DRAGENTER,
    EventKind.DRAGOVER,
    EventKind.DRAGLEAVE,
    EventKind.DRAGEND,
    EventKind.DROP,
})

# Drag events that report the element currently under the pointer
DRAG_OVER_FAMILY = frozenset({
    EventKind.DRAGENTER,
    EventKind.DRAGOVER,
    EventKind.DRAGLEAVE,
    EventKind.DROP,
})


@dataclass(frozen=True)
class Modifiers:
    alt: bool = False
    ctrl: bool = False
    meta: bool = False
    shift: bool = False


@dataclass(frozen=True)
class RawEvent:
    kind: EventKind
    timestamp: float


@dataclass(frozen=True)
class MouseEvent(RawEvent):
    button: int = 0
    buttons: int = 0
    client_x: float = 0
    client_y: float = 0
    screen_x: float = 0
    screen_y: float = 0
    modifiers: Modifiers = field(default_factory=Modifiers)


@dataclass(frozen=True)
class MoveSample:
    client_x: float
    client_y: float
    time_offset: float = 0
    screen_x: float = 0
    screen_y: float = 0


@dataclass(frozen=True)
class MousemoveEvent(RawEvent):
    positions: tuple[MoveSample, ...] = ()


@dataclass(frozen=True)
class ScrollEvent(RawEvent):
    scroll_left: float = 0
    scroll_top: float = 0


@dataclass(frozen=True)
class WheelEvent(RawEvent):
    delta_x: float = 0
    delta_y: float = 0
    delta_z: float = 0
    delta_mode: int = 0


@dataclass(frozen=True)
class KeyboardEvent(RawEvent):
    key: str = ""
    code: str = ""
    key_code: int = 0
    modifiers: Modifiers = field(default_factory=Modifiers)


@dataclass(frozen=True)
class TextInputEvent(RawEvent):
    data: str = ""
    value: str = ""


@dataclass(frozen=True)
class TextChangeEvent(RawEvent):
    value: str = ""


@dataclass(frozen=True)
class PageEvent(RawEvent):
    """blur / load / before_unload; ``url`` is set for load and before_unload."""
    url: str | None = None


@dataclass(frozen=True)
class HoverEvent(RawEvent):
    client_x: float = 0
    client_y: float = 0


@dataclass(frozen=True)
class ResizeEvent(RawEvent):
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class DragEvent(MouseEvent):
    target_index: int = -1
    effect_allowed: str | None = None
    drop_effect: str | None = None
    items: tuple[Any, ...] = ()


@dataclass(frozen=True)
class BrowseFileEvent(RawEvent):
    files: tuple[Any, ...] = ()
