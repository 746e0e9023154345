"""Syntax-highlighted one-line previews for terminal listings."""

from __future__ import annotations

import re

from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_FORMATTERS: dict[str, TerminalFormatter] = {}
_VALID_STYLES: set[str] = set()
_INVALID_STYLES: set[str] = set()
FALLBACK_STYLE = "monokai"


def sanitize_terminal_text(text: str) -> str:
    """Escape terminal control bytes so a preview cannot move the cursor or ring the bell."""
    return _CONTROL_RE.sub(lambda match: f"\\x{ord(match.group()):02x}", text)


def _normalize_style(style: str) -> str:
    if style in _VALID_STYLES:
        return style
    if style in _INVALID_STYLES:
        return FALLBACK_STYLE
    try:
        get_style_by_name(style)
    except ClassNotFound:
        _INVALID_STYLES.add(style)
        return FALLBACK_STYLE
    _VALID_STYLES.add(style)
    return style


def _formatter(style: str) -> TerminalFormatter:
    style = _normalize_style(style)
    formatter = _FORMATTERS.get(style)
    if formatter is None:
        formatter = TerminalFormatter(style=style)
        _FORMATTERS[style] = formatter
    return formatter


def highlight_line(text: str, fname: str, style: str = FALLBACK_STYLE) -> str:
    """Render ``text`` with the lexer guessed from ``fname``."""
    text = sanitize_terminal_text(text)
    try:
        lexer = get_lexer_for_filename(fname, stripnl=False)
    except ClassNotFound:
        lexer = TextLexer()
    return highlight(text, lexer, _formatter(style)).rstrip("\n")


__all__ = ["highlight_line", "sanitize_terminal_text"]
