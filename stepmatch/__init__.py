"""stepmatch: segments raw page-interaction events into user steps."""

from stepmatch.__version__ import __version__
from stepmatch.core.event_bus import StepNotice
from stepmatch.core.events import EventKind, Modifiers, MoveSample, RawEvent
from stepmatch.core.matcher import Lifecycle, StepMatcher
from stepmatch.core.states import State, Step
from stepmatch.core.target import ElementRef, Target

__all__ = [
    '__version__',
    'ElementRef',
    'EventKind',
    'Lifecycle',
    'Modifiers',
    'MoveSample',
    'RawEvent',
    'State',
    'Step',
    'StepMatcher',
    'StepNotice',
    'Target',
]
