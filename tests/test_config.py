"""Config validation and JSON config-file loading tests.

Invalid values must fall back to defaults with a warning, never raise.
"""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from waymark import config


class ValidateConfigTests(unittest.TestCase):
    def test_empty_input_returns_defaults(self) -> None:
        self.assertIs(config.validate_config(None), config.DEFAULTS)
        self.assertIs(config.validate_config({}), config.DEFAULTS)

    def test_defaults_match_documented_values(self) -> None:
        defaults = config.DEFAULTS
        self.assertEqual(defaults.automark_limit, 15)
        self.assertEqual(defaults.automark_idle_ms, 3000)
        self.assertEqual(defaults.automark_min_lines, 5)
        self.assertEqual(defaults.automark_min_interval_ms, 2000)
        self.assertEqual(defaults.automark_cleanup_lines, 10)
        self.assertEqual(defaults.automark_recent_ms, 30000)

    def test_valid_values_override_defaults(self) -> None:
        cfg = config.validate_config({"automark_limit": 4, "automark_recent_ms": 0})
        self.assertEqual(cfg.automark_limit, 4)
        self.assertEqual(cfg.automark_recent_ms, 0)
        self.assertEqual(cfg.automark_min_lines, 5)

    def test_invalid_numbers_fall_back_with_warning(self) -> None:
        with self.assertLogs("waymark.config", level="WARNING"):
            cfg = config.validate_config({"automark_limit": 0, "automark_min_lines": "five", "automark_recent_ms": -1})
        self.assertEqual(cfg.automark_limit, 15)
        self.assertEqual(cfg.automark_min_lines, 5)
        self.assertEqual(cfg.automark_recent_ms, 30000)

    def test_booleans_are_not_numbers(self) -> None:
        with self.assertLogs("waymark.config", level="WARNING"):
            cfg = config.validate_config({"automark_limit": True})
        self.assertEqual(cfg.automark_limit, 15)

    def test_idle_delay_is_clamped_to_minimum(self) -> None:
        with self.assertLogs("waymark.config", level="WARNING"):
            cfg = config.validate_config({"automark_idle_ms": 20})
        self.assertEqual(cfg.automark_idle_ms, config.MIN_IDLE_MS)

    def test_invalid_ignore_patterns_are_dropped(self) -> None:
        with self.assertLogs("waymark.config", level="WARNING"):
            cfg = config.validate_config({"ignored_patterns": ["(", r"\.log$"]})
        self.assertEqual(cfg.ignored_patterns, (r"\.log$",))

    def test_unknown_keys_are_ignored(self) -> None:
        cfg = config.validate_config({"not_a_setting": 1, "automark_limit": 3})
        self.assertEqual(cfg.automark_limit, 3)

    def test_bookmarks_file_expands_user(self) -> None:
        cfg = config.validate_config({"bookmarks_file": "~/marks.json"})
        self.assertEqual(cfg.resolved_bookmarks_file(), Path("~/marks.json").expanduser())

    def test_default_bookmarks_file_lives_in_data_dir(self) -> None:
        self.assertEqual(config.DEFAULTS.resolved_bookmarks_file(), config.DEFAULT_BOOKMARKS_PATH)
        self.assertEqual(config.DEFAULT_BOOKMARKS_PATH.name, "waymark-bookmarks.json")


class LoadConfigTests(unittest.TestCase):
    def test_missing_file_returns_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertIs(config.load_config(Path(tmp) / "missing.json"), config.DEFAULTS)

    def test_malformed_file_returns_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertLogs("waymark.config", level="WARNING"):
                self.assertIs(config.load_config(path), config.DEFAULTS)

    def test_non_object_file_returns_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text("[1, 2]", encoding="utf-8")
            with self.assertLogs("waymark.config", level="WARNING"):
                self.assertIs(config.load_config(path), config.DEFAULTS)

    def test_load_uses_module_config_path(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text(json.dumps({"automark_limit": 7, "preview_style": "native"}), encoding="utf-8")
            with mock.patch("waymark.config.CONFIG_PATH", path):
                cfg = config.load_config()
        self.assertEqual(cfg.automark_limit, 7)
        self.assertEqual(cfg.preview_style, "native")


if __name__ == "__main__":
    unittest.main()
