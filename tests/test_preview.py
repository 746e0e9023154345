"""Tests for highlighted one-line previews."""

from __future__ import annotations

import unittest

from waymark import preview


class HighlightLineTests(unittest.TestCase):
    def test_known_extension_is_colorized(self) -> None:
        rendered = preview.highlight_line("def run(): return 1", "job.py")
        self.assertIn("\x1b[", rendered)
        self.assertIn("run", rendered)
        self.assertFalse(rendered.endswith("\n"))

    def test_unknown_extension_falls_back_to_plain_text(self) -> None:
        rendered = preview.highlight_line("just words", "notes.unknownext")
        self.assertIn("just words", rendered)

    def test_unknown_style_falls_back(self) -> None:
        rendered = preview.highlight_line("x = 1", "a.py", style="no-such-style")
        self.assertIn("x", rendered)
        self.assertIn("no-such-style", preview._INVALID_STYLES)

    def test_control_bytes_are_escaped(self) -> None:
        self.assertEqual(preview.sanitize_terminal_text("a\x1b[2Jb\x07"), "a\\x1b[2Jb\\x07")


if __name__ == "__main__":
    unittest.main()
