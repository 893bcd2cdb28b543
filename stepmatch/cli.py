#!/usr/bin/env python3
"""
stepmatch CLI entry point with file + console logging
"""

from __future__ import annotations

import argparse
import json
import logging
import logging.handlers
import os
import sys
import traceback
from pathlib import Path

import stepmatch.log  # registers TRACE level and logger.trace()
from stepmatch.__version__ import __version__

# Global logger instance
logger = None


def setup_logging(debug: bool = False, log_file: str | None = None) -> logging.Logger:
    """Setup logging to both console and file

    Args:
        debug: Enable debug level logging
        log_file: Path to log file (default: ~/.stepmatch.log)
    """
    global logger

    if logger is not None:
        return logger

    logger = logging.getLogger('stepmatch')
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    if log_file is None:
        log_file = os.path.expanduser('~/.stepmatch.log')

    fmt = logging.Formatter(
        '[%(asctime)s] %(levelname)-8s %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # File handler (rotate log file when it gets too large)
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10 MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)
    except OSError as e:
        print(f"Warning: Could not setup file logging: {e}", file=sys.stderr)

    # Console handler (only warnings in normal mode, everything in debug)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    console_handler.setFormatter(fmt)
    logger.addHandler(console_handler)

    return logger


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='stepmatch',
        description='Segment recorded page-interaction events into user steps',
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug mode with verbose logging'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to config file'
    )
    parser.add_argument(
        '--logfile',
        type=str,
        default=None,
        help='Path to log file (default: ~/.stepmatch.log)'
    )
    parser.add_argument(
        '--version',
        action='version',
        version='%(prog)s ' + __version__
    )

    sub = parser.add_subparsers(dest='command', required=True)
    seg = sub.add_parser('segment', help='Print the steps found in a JSON-lines recording')
    seg.add_argument('recording', help="Recording file, or '-' for stdin")
    seg.add_argument(
        '--all',
        action='store_true',
        help='Also print new/update notifications, not only ended steps'
    )
    return parser.parse_args(argv)


def _print_notice(notice: str, step, out) -> None:
    from stepmatch.recording import step_to_record

    record = step_to_record(step)
    record['notice'] = notice
    out.write(json.dumps(record, default=str) + '\n')
    out.flush()


def run_segment(args: argparse.Namespace, config: dict, log: logging.Logger, out=None) -> int:
    from stepmatch.core.matcher import StepMatcher
    from stepmatch.recording import RecordingError, segment

    out = out or sys.stdout
    matcher = StepMatcher.from_config(config)
    if args.all:
        matcher.on_new_step(lambda step: _print_notice('new', step, out))
        matcher.on_update_step(lambda step: _print_notice('update', step, out))

    try:
        if args.recording == '-':
            steps = segment(sys.stdin, matcher, on_step=lambda step: _print_notice('end', step, out))
        else:
            with open(args.recording, 'r', encoding='utf-8') as stream:
                steps = segment(stream, matcher, on_step=lambda step: _print_notice('end', step, out))
    except RecordingError as e:
        log.error(f"Invalid recording {args.recording}: {e}")
        return 1
    except OSError as e:
        log.error(f"Cannot read {args.recording}: {e}")
        log.debug(traceback.format_exc())
        return 1

    unknown = sum(1 for s in steps if s.type.value == 'UNKNOWN')
    log.info(f"Segmented {args.recording}: {len(steps)} step(s), {unknown} unknown")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for stepmatch"""
    args = parse_args(argv)

    log = setup_logging(debug=args.debug, log_file=args.logfile)
    log.info(f"stepmatch {__version__} started (pid {os.getpid()})")

    from stepmatch.config import load_config

    try:
        log.debug(f"Loading config from: {args.config or 'default'}")
        config = load_config(args.config, args.debug)
    except Exception as e:
        log.error(f"Failed to load config: {e}")
        log.debug(traceback.format_exc())
        return 1

    # Override debug flag if specified
    if args.debug:
        config['debug'] = True

    try:
        return run_segment(args, config, log)
    except KeyboardInterrupt:
        log.info("Interrupted by user (Ctrl+C)")
        return 130
    except BrokenPipeError:
        log.error("Broken pipe error - output was closed")
        return 1
    finally:
        log.info("stepmatch shutdown")


if __name__ == '__main__':
    sys.exit(main())
