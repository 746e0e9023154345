"""Configuration defaults, validation, and the persisted JSON config file.

Validation never raises: a bad value is logged and replaced by its default.
Missing or malformed config files fall back to the defaults as a whole.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path

from platformdirs import user_config_dir, user_data_dir

logger = logging.getLogger(__name__)

APP_NAME = "waymark"
CONFIG_FILENAME = "config.json"
BOOKMARKS_FILENAME = "waymark-bookmarks.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
DEFAULT_BOOKMARKS_PATH = Path(user_data_dir(APP_NAME, appauthor=False)) / BOOKMARKS_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH

MIN_IDLE_MS = 100

DEFAULT_IGNORED_FILETYPES: tuple[str, ...] = (
    "neo-tree",
    "diffview",
    "spectre",
    "telescope",
    "help",
    "qf",
    "fugitive",
    "git",
    "toggleterm",
    "",
    "netrw",
)

DEFAULT_IGNORED_PATTERNS: tuple[str, ...] = (
    r"neo-tree",
    r"diffview://",
    r"spectre_panel",
    r"Telescope",
    r"^term://",
    r"^fugitive://",
    r"COMMIT_EDITMSG",
    r"^oil://",
    r"\.local/share/nvim/scratch/.*Scratch",
)


@dataclass(frozen=True)
class WaymarkConfig:
    """Tunable thresholds for mark tracking plus filter and display options."""

    automark_limit: int = 15
    automark_idle_ms: float = 3000
    automark_min_lines: int = 5
    automark_min_interval_ms: float = 2000
    automark_cleanup_lines: int = 10
    automark_recent_ms: float = 30000
    ignored_filetypes: tuple[str, ...] = DEFAULT_IGNORED_FILETYPES
    ignored_patterns: tuple[str, ...] = DEFAULT_IGNORED_PATTERNS
    bookmarks_file: Path | None = None
    preview_style: str = "monokai"

    def resolved_bookmarks_file(self) -> Path:
        """Bookmark file in use: explicit override or the platform data dir."""
        return self.bookmarks_file if self.bookmarks_file is not None else DEFAULT_BOOKMARKS_PATH


DEFAULTS = WaymarkConfig()

_POSITIVE_INTS = ("automark_limit", "automark_min_lines", "automark_cleanup_lines")
_NON_NEGATIVE = ("automark_idle_ms", "automark_min_interval_ms", "automark_recent_ms")


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_positive_int(name: str, value: object) -> int:
    if _is_number(value) and value >= 1 and float(value).is_integer():
        return int(value)
    logger.warning("waymark: %s must be a positive integer (got %r), using default", name, value)
    return getattr(DEFAULTS, name)


def _check_non_negative(name: str, value: object) -> float:
    if _is_number(value) and value >= 0:
        return value
    logger.warning("waymark: %s must be a non-negative number (got %r), using default", name, value)
    return getattr(DEFAULTS, name)


def _check_string_list(name: str, value: object) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
        return tuple(value)
    logger.warning("waymark: %s must be a list of strings, using default", name)
    return getattr(DEFAULTS, name)


def _check_patterns(value: tuple[str, ...]) -> tuple[str, ...]:
    valid: list[str] = []
    for pattern in value:
        try:
            re.compile(pattern)
        except re.error:
            logger.warning("waymark: ignoring invalid ignored_patterns entry %r", pattern)
            continue
        valid.append(pattern)
    return tuple(valid)


def validate_config(raw: Mapping[str, object] | None = None) -> WaymarkConfig:
    """Merge ``raw`` over the defaults, correcting every invalid value."""
    if not raw:
        return DEFAULTS
    known = {f.name for f in fields(WaymarkConfig)}
    values: dict[str, object] = {}
    for key, value in raw.items():
        if key not in known:
            logger.debug("waymark: ignoring unknown config key %r", key)
            continue
        values[key] = value

    for name in _POSITIVE_INTS:
        if name in values:
            values[name] = _check_positive_int(name, values[name])
    for name in _NON_NEGATIVE:
        if name in values:
            values[name] = _check_non_negative(name, values[name])

    idle_ms = values.get("automark_idle_ms", DEFAULTS.automark_idle_ms)
    if idle_ms < MIN_IDLE_MS:
        logger.warning("waymark: automark_idle_ms must be >= %d (got %s), using %d", MIN_IDLE_MS, idle_ms, MIN_IDLE_MS)
        values["automark_idle_ms"] = MIN_IDLE_MS

    if "ignored_filetypes" in values:
        values["ignored_filetypes"] = _check_string_list("ignored_filetypes", values["ignored_filetypes"])
    if "ignored_patterns" in values:
        values["ignored_patterns"] = _check_patterns(
            _check_string_list("ignored_patterns", values["ignored_patterns"])
        )

    if "bookmarks_file" in values:
        raw_path = values["bookmarks_file"]
        if isinstance(raw_path, Path):
            values["bookmarks_file"] = raw_path.expanduser()
        elif isinstance(raw_path, str) and raw_path.strip():
            values["bookmarks_file"] = Path(raw_path).expanduser()
        else:
            if raw_path is not None:
                logger.warning("waymark: bookmarks_file must be a path string, using default")
            values["bookmarks_file"] = None

    if "preview_style" in values:
        style = values["preview_style"]
        if not isinstance(style, str) or not style.strip():
            logger.warning("waymark: preview_style must be a string, using default")
            values["preview_style"] = DEFAULTS.preview_style
        else:
            values["preview_style"] = style.strip()

    return replace(DEFAULTS, **values)


def load_config(path: Path | None = None) -> WaymarkConfig:
    """Load and validate the JSON config file.

    Missing, unreadable, malformed, or non-object files yield the defaults.
    """
    config_path = path if path is not None else CONFIG_PATH
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return DEFAULTS
    except (OSError, ValueError) as exc:
        logger.warning("waymark: could not read config %s: %s", config_path, exc)
        return DEFAULTS
    if not isinstance(data, dict):
        logger.warning("waymark: config %s is not a JSON object, using defaults", config_path)
        return DEFAULTS
    return validate_config(data)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "DEFAULT_BOOKMARKS_PATH",
    "DEFAULT_CONFIG_PATH",
    "DEFAULTS",
    "MIN_IDLE_MS",
    "WaymarkConfig",
    "load_config",
    "validate_config",
]
