"""Mark records shared by the automark, bookmark, and merged-timeline code.

Automarks and bookmarks draw ids from one counter, so an id identifies a mark
regardless of which list holds it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

MarkKind = Literal["automark", "bookmark"]


@dataclass(frozen=True)
class Position:
    """Cursor location inside a file (1-based row and column)."""

    fname: str
    row: int
    col: int = 1


@dataclass
class AutoMark:
    """Session-only breadcrumb; ``timestamp`` is monotonic milliseconds."""

    id: int
    fname: str
    row: int
    col: int
    timestamp: float
    window: object = None
    tab: object = None
    anchor: object = field(default=None, compare=False, repr=False)


@dataclass
class Bookmark:
    """User-placed persistent mark; ``timestamp`` is epoch seconds."""

    id: int
    fname: str
    row: int
    col: int
    timestamp: float
    anchor: object = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class MergedMark:
    """Read-only entry of the merged chronological view."""

    id: int
    fname: str
    row: int
    col: int
    sort_time: float
    kind: MarkKind
    window: object = None
    tab: object = None


def mark_key(fname: str, row: int) -> tuple[str, int]:
    """Return the (file, row) identity used for colocation checks."""
    return (fname, row)


def find_mark_index_by_id(marks, mark_id: int) -> int | None:
    """Return the 1-based index of ``mark_id`` in ``marks`` or ``None``."""
    for index, mark in enumerate(marks, start=1):
        if mark.id == mark_id:
            return index
    return None


def copy_mark(mark):
    """Detached copy of a mark without its live anchor reference."""
    if isinstance(mark, AutoMark):
        return AutoMark(
            id=mark.id,
            fname=mark.fname,
            row=mark.row,
            col=mark.col,
            timestamp=mark.timestamp,
            window=mark.window,
            tab=mark.tab,
        )
    return Bookmark(
        id=mark.id,
        fname=mark.fname,
        row=mark.row,
        col=mark.col,
        timestamp=mark.timestamp,
    )


__all__ = [
    "AutoMark",
    "Bookmark",
    "MarkKind",
    "MergedMark",
    "Position",
    "copy_mark",
    "find_mark_index_by_id",
    "mark_key",
]
