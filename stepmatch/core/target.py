"""Target: opaque reference to the element an event occurred on.

The matcher only needs identity comparison and a small capability surface
(tag name, attribute lookup).  ``None`` stands for page-level events.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping


class Target(ABC):
    """Capability surface consumed by the predicate library.

    Implementations must be hashable: coalescing channels are keyed by target.
    """

    @property
    @abstractmethod
    def tag_name(self) -> str:
        """Upper-cased tag name, e.g. ``INPUT``."""

    @abstractmethod
    def get_attribute(self, name: str) -> str | None: ...

    def has_attribute(self, name: str) -> bool:
        return self.get_attribute(name) is not None

    @abstractmethod
    def same_as(self, other: Target | None) -> bool: ...


class ElementRef(Target):
    """Value-type target resolved by a stable ``uid``."""

    __slots__ = ("uid", "_tag_name", "_attributes")

    def __init__(self, uid: str, tag_name: str = "DIV", attributes: Mapping[str, Any] | None = None):
        self.uid = str(uid)
        self._tag_name = tag_name.upper()
        self._attributes = {
            str(k).lower(): ("" if v is None or v is True else str(v))
            for k, v in (attributes or {}).items()
            if v is not False
        }

    @property
    def tag_name(self) -> str:
        return self._tag_name

    @property
    def attributes(self) -> dict[str, str]:
        return dict(self._attributes)

    def get_attribute(self, name: str) -> str | None:
        return self._attributes.get(name.lower())

    def same_as(self, other: Target | None) -> bool:
        return isinstance(other, ElementRef) and other.uid == self.uid

    def to_dict(self) -> dict:
        return {"uid": self.uid, "tag": self._tag_name, "attributes": dict(self._attributes)}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ElementRef):
            return NotImplemented
        return self.uid == other.uid

    def __hash__(self) -> int:
        return hash(("ElementRef", self.uid))

    def __repr__(self) -> str:
        return f"ElementRef({self.uid!r}, {self._tag_name!r})"
