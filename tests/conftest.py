import pytest

from stepmatch.core.events import (
    EventKind,
    KeyboardEvent,
    MouseEvent,
)
from stepmatch.core.matcher import StepMatcher
from stepmatch.core.target import ElementRef


class Collector:
    """Records every notification a matcher publishes, in order."""

    def __init__(self, matcher: StepMatcher):
        self.notices = []
        matcher.on_new_step(lambda step: self.notices.append(('new', step)))
        matcher.on_update_step(lambda step: self.notices.append(('update', step)))
        matcher.on_end_step(lambda step: self.notices.append(('end', step)))

    @property
    def ended(self):
        return [step for notice, step in self.notices if notice == 'end']

    def kinds(self):
        return [notice for notice, _ in self.notices]


@pytest.fixture
def button():
    return ElementRef('btn-ok', 'button')


@pytest.fixture
def other_button():
    return ElementRef('btn-cancel', 'button')


@pytest.fixture
def text_field():
    return ElementRef('name', 'input', {'type': 'text'})


@pytest.fixture
def file_field():
    return ElementRef('upload', 'input', {'type': 'file'})


@pytest.fixture
def matcher():
    m = StepMatcher()
    m.start()
    return m


@pytest.fixture
def collector(matcher):
    return Collector(matcher)


def mouse(kind, ts, button=0, x=0, y=0):
    return MouseEvent(EventKind(kind), ts, button=button, client_x=x, client_y=y)


def key(kind, ts, key_name):
    return KeyboardEvent(EventKind(kind), ts, key=key_name)
