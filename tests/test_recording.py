"""Tests for stepmatch.recording: JSON-lines decoding and step encoding."""

from __future__ import annotations

import io
import json

import pytest

from stepmatch.core.events import (
    DragEvent,
    EventKind,
    KeyboardEvent,
    Modifiers,
    MouseEvent,
    MousemoveEvent,
)
from stepmatch.core.matcher import StepMatcher
from stepmatch.core.states import State, Step
from stepmatch.core.target import ElementRef
from stepmatch.recording import (
    RecordingError,
    decode_event,
    event_to_record,
    iter_records,
    parse_target,
    segment,
    step_to_record,
)


def recording(*records):
    return io.StringIO("\n".join(json.dumps(r) for r in records) + "\n")


BUTTON = {"uid": "ok", "tag": "button"}


class TestDecode:

    def test_mouse_event(self):
        event = decode_event({
            "kind": "mousedown", "timestamp": 12, "button": 2,
            "client_x": 5, "modifiers": {"shift": True},
        })
        assert isinstance(event, MouseEvent)
        assert event.kind == EventKind.MOUSEDOWN
        assert event.timestamp == 12.0
        assert event.button == 2
        assert event.modifiers == Modifiers(shift=True)

    def test_mousemove_positions(self):
        event = decode_event({
            "kind": "mousemove", "timestamp": 0,
            "positions": [{"client_x": 1, "client_y": 2}, {"client_x": 3, "client_y": 4, "time_offset": 16}],
        })
        assert isinstance(event, MousemoveEvent)
        assert [p.time_offset for p in event.positions] == [0, 16]

    def test_drag_items_become_tuple(self):
        event = decode_event({"kind": "drop", "timestamp": 0, "items": ["a.txt"]})
        assert isinstance(event, DragEvent)
        assert event.items == ("a.txt",)

    def test_unknown_payload_keys_are_ignored(self):
        event = decode_event({"kind": "keydown", "timestamp": 0, "key": "a", "repeat": False})
        assert event == KeyboardEvent(EventKind.KEYDOWN, 0.0, key="a")

    def test_unknown_kind(self):
        with pytest.raises(RecordingError, match="Unknown kind"):
            decode_event({"kind": "pinch", "timestamp": 0})

    def test_missing_kind(self):
        with pytest.raises(RecordingError, match="kind"):
            decode_event({"timestamp": 0})

    def test_parse_target(self):
        target = parse_target({"uid": "q", "tag": "input", "attributes": {"type": "search"}})
        assert target.tag_name == "INPUT"
        assert target.get_attribute("type") == "search"
        assert parse_target(None) is None

    def test_parse_target_without_uid(self):
        with pytest.raises(RecordingError):
            parse_target({"tag": "div"})


class TestIterRecords:

    def test_skips_blank_lines_and_comments(self):
        stream = io.StringIO('# header\n\n{"kind": "blur", "timestamp": 1}\n')
        assert list(iter_records(stream)) == [(3, {"kind": "blur", "timestamp": 1})]

    def test_bad_json_names_line(self):
        stream = io.StringIO('{"kind": "blur", "timestamp": 1}\n{oops\n')
        with pytest.raises(RecordingError, match="line 2"):
            list(iter_records(stream))

    def test_non_object_line(self):
        with pytest.raises(RecordingError, match="line 1"):
            list(iter_records(io.StringIO('[1, 2]\n')))


class TestSegment:

    def test_click_recording(self):
        steps = segment(recording(
            {"kind": "mousedown", "timestamp": 0, "target": BUTTON},
            {"kind": "mouseup", "timestamp": 80, "target": BUTTON},
            {"kind": "click", "timestamp": 81, "target": BUTTON},
        ), StepMatcher())
        assert [s.type for s in steps] == [State.CLICK]
        assert len(steps[0].events) == 3

    def test_pointer_lines_go_through_coalescer(self):
        steps = segment(recording(
            {"kind": "mousedown", "timestamp": 0, "target": BUTTON, "client_x": 10, "client_y": 10},
            {"kind": "mousemove", "timestamp": 20, "x": 40, "y": 40},
            {"kind": "mouseup", "timestamp": 300, "target": BUTTON},
        ), StepMatcher())
        assert [s.type for s in steps] == [State.DRAG]
        assert [e.kind for e in steps[0].events] == [EventKind.MOUSEDOWN, EventKind.MOUSEMOVE, EventKind.MOUSEUP]

    def test_scroll_and_wheel_lines(self):
        feed = {"uid": "feed", "tag": "main"}
        steps = segment(recording(
            {"kind": "wheel", "timestamp": 0, "target": feed, "delta_y": 120},
            {"kind": "scroll", "timestamp": 10, "target": feed, "scroll_top": 120},
            {"kind": "scroll", "timestamp": 30, "target": feed, "scroll_top": 240},
        ), StepMatcher())
        (step,) = steps
        assert step.type == State.SCROLL
        assert step.events[-1].scroll_top == 240

    def test_on_step_callback(self):
        seen = []
        segment(recording(
            {"kind": "keydown", "timestamp": 0, "target": BUTTON, "key": "Enter"},
        ), StepMatcher(), on_step=seen.append)
        assert [s.type for s in seen] == [State.KEYPRESS]

    def test_missing_timestamp_names_line(self):
        with pytest.raises(RecordingError, match="line 2"):
            segment(recording(
                {"kind": "blur", "timestamp": 0},
                {"kind": "blur"},
            ), StepMatcher())

    def test_empty_recording(self):
        assert segment(io.StringIO(""), StepMatcher()) == []

    def test_handlers_are_removed_after_segmenting(self):
        matcher = StepMatcher()
        seen = []
        steps = segment(recording(
            {"kind": "keydown", "timestamp": 0, "target": BUTTON, "key": "Enter"},
        ), matcher, on_step=seen.append)

        matcher.send(KeyboardEvent(EventKind.KEYDOWN, 500, key="Tab"), ElementRef("ok", "button"))
        matcher.finish()
        assert len(steps) == 1
        assert len(seen) == 1

    def test_handlers_are_removed_when_a_line_fails(self):
        matcher = StepMatcher()
        seen = []
        with pytest.raises(RecordingError):
            segment(recording({"kind": "blur"}), matcher, on_step=seen.append)
        matcher.send(KeyboardEvent(EventKind.KEYDOWN, 0, key="Tab"), None)
        matcher.finish()
        assert seen == []


class TestEncode:

    def test_event_record_keeps_set_modifiers_only(self):
        record = event_to_record(KeyboardEvent(EventKind.KEYDOWN, 5, key="k", modifiers=Modifiers(ctrl=True)))
        assert record["kind"] == "keydown"
        assert record["modifiers"] == {"ctrl": True}

    def test_keypress_step_carries_combination(self):
        body = ElementRef("body", "body")
        step = Step(id=3, type=State.KEYPRESS, target=body, events=(
            KeyboardEvent(EventKind.KEYDOWN, 0, key="Control"),
            KeyboardEvent(EventKind.KEYDOWN, 10, key="s"),
        ))
        record = step_to_record(step)
        assert record["id"] == 3
        assert record["type"] == "KEYPRESS"
        assert record["target"] == {"uid": "body", "tag": "BODY", "attributes": {}}
        assert record["keys"] == "Control+s"
        json.dumps(record)

    def test_drag_step_is_json_serializable(self):
        zone = ElementRef("zone")
        step = Step(id=1, type=State.DROP_FILE, target=zone, secondary_targets=(zone,), events=(
            DragEvent(EventKind.DROP, 0, target_index=0, items=("a.txt",)),
        ))
        text = json.dumps(step_to_record(step))
        assert '"secondary_targets": [{"uid": "zone"' in text
