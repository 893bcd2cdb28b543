"""Configuration loader and validator for stepmatch.

Provides ``load_config(path)`` which reads a JSON config (with
comment and trailing-comma tolerant sanitizer) and merges user
overrides from ``~/.config/stepmatch/config.json``.

Also provides ``validate_config(conf)`` which normalizes and
validates config keys, raising ``ValueError`` on invalid values.
"""

from __future__ import annotations

import json
import logging
import os
import re

logger = logging.getLogger(__name__)

USER_CONFIG_PATH = '~/.config/stepmatch/config.json'

# Single source of truth for default configuration (all timings in ms)
DEFAULT_CONFIG: dict = {
    'dblclick_max_gap_ms': 350,
    'mousemove_sample_ms': 50,
    'mousemove_flush_ms': 500,
    'scroll_window_ms': 1000,
    'wheel_debounce_ms': 500,
    'debug': False,
}

# key -> (min, max)
_TIMING_RANGES: dict = {
    'dblclick_max_gap_ms': (1, 5000),
    'mousemove_sample_ms': (1, 10000),
    'mousemove_flush_ms': (1, 10000),
    'scroll_window_ms': (1, 10000),
    'wheel_debounce_ms': (1, 10000),
}


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _sanitize_json_text(s: str) -> str:
    """Remove ``#``/``//`` comments and trailing commas from JSON-like text."""
    # Hash-style line comments
    s = re.sub(r"^[ \t]*#.*$", "", s, flags=re.MULTILINE)
    # C++-style line comments
    s = re.sub(r"//.*$", "", s, flags=re.MULTILINE)
    # Trailing commas before } or ]
    s = re.sub(r",[ \t\r\n]+(\}|\])", r"\1", s)
    return s


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------

def validate_config(conf: dict | None) -> dict:
    """Validate and normalize configuration dictionary.

    Returns a normalized dict with all expected keys.
    Raises ``ValueError`` on invalid values.
    """
    if conf is None:
        conf = {}

    out = dict(DEFAULT_CONFIG)

    for key, (low, high) in _TIMING_RANGES.items():
        raw = conf.get(key, DEFAULT_CONFIG[key])
        if isinstance(raw, bool):
            raise ValueError(f"Invalid '{key}': {raw}")
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid '{key}': {raw}")
        if not (low <= value <= high):
            raise ValueError(f"Invalid '{key}': {raw} (must be between {low} and {high})")
        out[key] = int(value) if value.is_integer() else value

    # debug: boolean
    dbg = conf.get('debug', DEFAULT_CONFIG['debug'])
    if not isinstance(dbg, bool):
        raise ValueError("Invalid 'debug' flag: must be boolean")
    out['debug'] = dbg

    return out


def _read_and_merge(path: str, target_config: dict, debug: bool = False) -> bool:
    """Read a JSON file, validate, and merge into *target_config*.

    Returns True on success, False on any error.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = f.read()
    except OSError:
        return False

    try:
        cfg = json.loads(raw)
    except json.JSONDecodeError:
        try:
            cfg = json.loads(_sanitize_json_text(raw))
        except json.JSONDecodeError as exc:
            if debug:
                logger.warning("JSON parse error in %s: %s", path, exc)
            return False

    if not isinstance(cfg, dict):
        if debug:
            logger.warning("Invalid config %s: top level must be an object", path)
        return False

    try:
        validated = validate_config(cfg)
        # Only override keys explicitly present in source
        for k in cfg:
            if k in validated:
                target_config[k] = validated[k]
        return True
    except ValueError as verr:
        if debug:
            logger.warning("Invalid config %s: %s", path, verr)
        return False


# ------------------------------------------------------------------
# Top-level loader
# ------------------------------------------------------------------

def load_config(config_path: str | None = None, debug: bool = False) -> dict:
    """Load and merge configuration.

    If *config_path* is given, uses only that file (returns defaults if
    the file does not exist).  Otherwise falls back to
    ``~/.config/stepmatch/config.json``.

    Returns the effective configuration dict (always has all default keys).
    """
    config = dict(DEFAULT_CONFIG)

    if config_path is not None:
        # Explicit path: use only it, no fallback
        if os.path.exists(config_path):
            _read_and_merge(config_path, config, debug=debug)
        return config

    user_cfg = os.path.expanduser(USER_CONFIG_PATH)
    if os.path.exists(user_cfg):
        _read_and_merge(user_cfg, config, debug=debug)

    return config
