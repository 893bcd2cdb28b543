"""Tests for stepmatch.cli: argument parsing and the segment command."""

from __future__ import annotations

import io
import json
import logging

import pytest

from stepmatch.__version__ import __version__
from stepmatch.cli import main, parse_args

CLICK_RECORDING = "\n".join(json.dumps(r) for r in [
    {"kind": "mousedown", "timestamp": 0, "target": {"uid": "ok", "tag": "button"}},
    {"kind": "mouseup", "timestamp": 80, "target": {"uid": "ok", "tag": "button"}},
    {"kind": "click", "timestamp": 81, "target": {"uid": "ok", "tag": "button"}},
]) + "\n"


@pytest.fixture(autouse=True)
def fresh_logger(monkeypatch):
    """Each test gets its own handlers instead of the cached CLI logger."""
    monkeypatch.setattr('stepmatch.cli.logger', None)
    yield
    log = logging.getLogger('stepmatch')
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()


@pytest.fixture
def click_file(tmp_path):
    path = tmp_path / "click.jsonl"
    path.write_text(CLICK_RECORDING)
    return path


def run(capsys, tmp_path, *argv):
    code = main(['--logfile', str(tmp_path / 'stepmatch.log'), *argv])
    out = capsys.readouterr().out
    return code, [json.loads(line) for line in out.splitlines()]


class TestParseArgs:
    """parse_args() returns expected Namespace for various flags."""

    def test_segment_command(self):
        args = parse_args(['segment', 'rec.jsonl'])
        assert args.command == 'segment'
        assert args.recording == 'rec.jsonl'
        assert args.all is False
        assert args.debug is False
        assert args.config is None

    def test_global_flags(self):
        args = parse_args(['--debug', '--config', 'c.json', '--logfile', 'x.log', 'segment', '--all', '-'])
        assert args.debug is True
        assert args.config == 'c.json'
        assert args.logfile == 'x.log'
        assert args.all is True
        assert args.recording == '-'

    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(['--version'])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_command_is_required(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args([])
        assert exc_info.value.code == 2


class TestSegment:

    def test_prints_one_line_per_ended_step(self, capsys, tmp_path, click_file):
        code, lines = run(capsys, tmp_path, 'segment', str(click_file))
        assert code == 0
        assert len(lines) == 1
        assert lines[0]['type'] == 'CLICK'
        assert lines[0]['notice'] == 'end'
        assert lines[0]['target']['uid'] == 'ok'
        assert [e['kind'] for e in lines[0]['events']] == ['mousedown', 'mouseup', 'click']

    def test_all_prints_every_notification(self, capsys, tmp_path, click_file):
        code, lines = run(capsys, tmp_path, 'segment', '--all', str(click_file))
        assert code == 0
        assert [line['notice'] for line in lines] == ['new', 'update', 'update', 'end']
        assert {line['id'] for line in lines} == {1}

    def test_reads_stdin(self, capsys, tmp_path, monkeypatch):
        monkeypatch.setattr('sys.stdin', io.StringIO(CLICK_RECORDING))
        code, lines = run(capsys, tmp_path, 'segment', '-')
        assert code == 0
        assert [line['type'] for line in lines] == ['CLICK']

    def test_config_changes_segmentation(self, capsys, tmp_path, click_file):
        with open(click_file, 'a') as f:
            f.write(json.dumps({"kind": "mousedown", "timestamp": 281, "target": {"uid": "ok"}}) + "\n")
        config = tmp_path / "config.json"

        code, lines = run(capsys, tmp_path, 'segment', str(click_file))
        assert [line['type'] for line in lines] == ['DOUBLE_CLICK']

        config.write_text(json.dumps({"dblclick_max_gap_ms": 100}))
        code, lines = run(capsys, tmp_path, '--config', str(config), 'segment', str(click_file))
        assert [line['type'] for line in lines] == ['CLICK', 'CLICK']

    def test_malformed_recording_exits_1(self, capsys, tmp_path):
        bad = tmp_path / "bad.jsonl"
        bad.write_text('{"kind": "pinch", "timestamp": 0}\n')
        code, lines = run(capsys, tmp_path, 'segment', str(bad))
        assert code == 1
        assert lines == []

    def test_missing_file_exits_1(self, capsys, tmp_path):
        code, _ = run(capsys, tmp_path, 'segment', str(tmp_path / 'missing.jsonl'))
        assert code == 1

    def test_writes_log_file(self, capsys, tmp_path, click_file):
        run(capsys, tmp_path, 'segment', str(click_file))
        assert 'stepmatch shutdown' in (tmp_path / 'stepmatch.log').read_text()
