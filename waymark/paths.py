"""Path normalization, display formatting, and one-line file previews."""

from __future__ import annotations

import os
from pathlib import Path

PREVIEW_MAX_LEN = 50
ELLIPSIS = "…"


class PathNormalizer:
    """Absolute-path normalizer with a bounded two-generation cache.

    When the active generation fills up it becomes the previous generation
    and a fresh one starts; hits in the previous generation are promoted.
    Memory stays bounded at roughly twice ``max_entries``.
    """

    def __init__(self, max_entries: int = 500) -> None:
        self.max_entries = max(1, max_entries)
        self._prev: dict[str, str] = {}
        self._curr: dict[str, str] = {}

    def __call__(self, fname: str | None) -> str:
        if not fname:
            return ""
        cached = self._curr.get(fname)
        if cached is not None:
            return cached
        cached = self._prev.pop(fname, None)
        if cached is None:
            cached = os.path.abspath(os.path.expanduser(fname))
        if len(self._curr) >= self.max_entries:
            self._prev = self._curr
            self._curr = {}
        self._curr[fname] = cached
        return cached

    def invalidate(self, fname: str) -> None:
        self._curr.pop(fname, None)
        self._prev.pop(fname, None)

    def __len__(self) -> int:
        return len(self._curr) + len(self._prev)


normalize_path = PathNormalizer()


def format_path(fname: str, cwd: Path | None = None) -> str:
    """Shorten ``fname`` to a cwd-relative or ``~``-relative display path."""
    path = Path(fname)
    base = cwd if cwd is not None else Path.cwd()
    try:
        return str(path.relative_to(base))
    except ValueError:
        pass
    home = Path.home()
    try:
        return str(Path("~") / path.relative_to(home))
    except ValueError:
        return fname


def _truncate(line: str, max_len: int) -> str | None:
    line = line.strip()
    if len(line) > max_len:
        return line[:max_len] + ELLIPSIS
    return line or None


def line_preview(fname: str, row: int, max_len: int = PREVIEW_MAX_LEN) -> str | None:
    """Return stripped, truncated text of line ``row`` or ``None``."""
    if row < 1:
        return None
    try:
        with open(fname, encoding="utf-8", errors="replace") as handle:
            for index, line in enumerate(handle, start=1):
                if index == row:
                    return _truncate(line.rstrip("\r\n"), max_len)
    except OSError:
        return None
    return None


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


__all__ = [
    "PathNormalizer",
    "ensure_parent_dir",
    "format_path",
    "line_preview",
    "normalize_path",
]
