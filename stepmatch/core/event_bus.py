"""EventBus: pub/sub delivering step notifications to consumers."""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Callable

from stepmatch.core.states import Step

logger = logging.getLogger(__name__)

StepHandler = Callable[[Step], None]


class StepNotice(str, Enum):
    NEW = "new"
    UPDATE = "update"
    END = "end"


class EventBus:
    """Lightweight synchronous pub/sub bus."""

    def __init__(self):
        self._handlers: dict[StepNotice, list[StepHandler]] = defaultdict(list)

    def subscribe(self, notice: StepNotice, handler: StepHandler) -> None:
        """Register a handler for a notification kind."""
        self._handlers[notice].append(handler)

    def unsubscribe(self, notice: StepNotice, handler: StepHandler) -> None:
        """Remove a previously registered handler."""
        try:
            self._handlers[notice].remove(handler)
        except ValueError:
            pass

    def publish(self, notice: StepNotice, step: Step) -> None:
        """Dispatch to all registered handlers synchronously, in registration order."""
        for handler in list(self._handlers.get(notice, [])):
            try:
                handler(step)
            except Exception:
                logger.exception("EventBus handler error for %s step %s", notice.value, step.id)
