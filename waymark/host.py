"""Editor-facing collaborator interface and an in-process headless host.

``HostCallbacks`` is everything the mark engine asks of its environment:
live line anchors, cursor and window context, jumping, ignore policy,
transient messages, and filesystem checks. ``HeadlessHost`` implements it
without an editor, for the CLI and for tests.
"""

from __future__ import annotations

import itertools
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field

from .filter import BufferFilter, BufferInfo
from .marks import Position
from .paths import normalize_path

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"


@dataclass(frozen=True)
class JumpResult:
    ok: bool
    reason: str = ""
    row: int | None = None

    @classmethod
    def success(cls, row: int) -> JumpResult:
        return cls(ok=True, row=row)

    @classmethod
    def failure(cls, reason: str) -> JumpResult:
        return cls(ok=False, reason=reason)


def _file_readable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.R_OK)


@dataclass(frozen=True)
class HostCallbacks:
    """Operations the mark engine consumes from its host environment."""

    place_anchor: Callable[[str, int], object | None]
    release_anchor: Callable[[object], None]
    read_anchor_row: Callable[[object], int | None]
    jump: Callable[..., JumpResult]
    cursor_position: Callable[[], Position | None]
    current_window: Callable[[], object]
    current_tab: Callable[[], object]
    is_ignored: Callable[[], bool]
    echo: Callable[[str], None]
    notify: Callable[[str, int], None]
    file_exists: Callable[[str], bool] = field(default=_file_readable)
    is_directory: Callable[[str], bool] = field(default=os.path.isdir)


def _count_lines(fname: str) -> int | None:
    try:
        with open(fname, "rb") as handle:
            data = handle.read()
    except OSError:
        return None
    if not data:
        return 1
    return data.count(b"\n") + (0 if data.endswith(b"\n") else 1)


class HeadlessHost:
    """Host without an editor: files on disk, anchors tracked in memory.

    Anchors can only be placed in files opened with ``open_file`` or reached
    through ``jump``. ``insert_lines`` and ``delete_lines`` move anchors the
    way an editor keeps them attached to text while it is edited.
    """

    def __init__(self, buffer_filter: BufferFilter | None = None) -> None:
        self.buffer_filter = buffer_filter
        self.filetypes: dict[str, str] = {}
        self.loaded: set[str] = set()
        self._anchors: dict[int, list] = {}
        self._anchor_ids = itertools.count(1)
        self.cursor: Position | None = None
        self.window: object = 1000
        self.tab: object = 1
        self.ignored = False
        self.refuse_jumps = False
        self.messages: list[str] = []
        self.notifications: list[tuple[int, str]] = []
        self.jumps: list[Position] = []

    # Buffers ---------------------------------------------------------------

    def open_file(self, fname: str) -> str:
        path = normalize_path(fname)
        self.loaded.add(path)
        return path

    def close_file(self, fname: str) -> None:
        path = normalize_path(fname)
        self.loaded.discard(path)
        if self.buffer_filter is not None:
            self.buffer_filter.invalidate(path)

    def set_filetype(self, fname: str, filetype: str) -> None:
        path = normalize_path(fname)
        self.filetypes[path] = filetype
        if self.buffer_filter is not None:
            self.buffer_filter.invalidate(path)

    def set_cursor(self, fname: str, row: int, col: int = 1) -> Position:
        path = self.open_file(fname)
        self.cursor = Position(path, row, col)
        return self.cursor

    # Anchors ---------------------------------------------------------------

    def place_anchor(self, fname: str, row: int) -> int | None:
        if fname not in self.loaded:
            return None
        line_count = _count_lines(fname)
        if line_count is not None:
            row = min(row, line_count)
        row = max(1, row)
        anchor_id = next(self._anchor_ids)
        self._anchors[anchor_id] = [fname, row]
        return anchor_id

    def release_anchor(self, ref: object) -> None:
        self._anchors.pop(ref, None)

    def read_anchor_row(self, ref: object) -> int | None:
        anchor = self._anchors.get(ref)
        return anchor[1] if anchor is not None else None

    def anchor_count(self, fname: str | None = None) -> int:
        if fname is None:
            return len(self._anchors)
        return sum(1 for anchor in self._anchors.values() if anchor[0] == fname)

    def insert_lines(self, fname: str, at_row: int, count: int = 1) -> None:
        """Insert ``count`` lines above ``at_row``; anchors at or below move down."""
        for anchor in self._anchors.values():
            if anchor[0] == fname and anchor[1] >= at_row:
                anchor[1] += count

    def delete_lines(self, fname: str, start_row: int, count: int = 1) -> None:
        """Delete ``count`` lines from ``start_row``; anchors inside collapse onto it."""
        end_row = start_row + count
        for anchor in self._anchors.values():
            if anchor[0] != fname:
                continue
            if anchor[1] >= end_row:
                anchor[1] -= count
            elif anchor[1] >= start_row:
                anchor[1] = start_row

    # Navigation ------------------------------------------------------------

    def jump(self, fname: str, row: int, col: int = 1, window: object = None, tab: object = None) -> JumpResult:
        if self.refuse_jumps:
            return JumpResult.failure("refused")
        if not _file_readable(fname):
            return JumpResult.failure(NOT_FOUND)
        if tab is not None:
            self.tab = tab
            if window is not None:
                self.window = window
        line_count = _count_lines(fname) or 1
        landed = max(1, min(row, line_count))
        self.set_cursor(fname, landed, max(1, col))
        self.jumps.append(Position(normalize_path(fname), landed, max(1, col)))
        return JumpResult.success(landed)

    def filetype_for(self, fname: str) -> str:
        if fname in self.filetypes:
            return self.filetypes[fname]
        return os.path.splitext(fname)[1].lstrip(".") or "text"

    def is_ignored(self) -> bool:
        if self.ignored:
            return True
        if self.buffer_filter is None or self.cursor is None:
            return False
        buffer = BufferInfo(self.cursor.fname, self.filetype_for(self.cursor.fname))
        return self.buffer_filter.is_ignored(buffer)

    def cursor_position(self) -> Position | None:
        if self.cursor is None or not self.cursor.fname or self.is_ignored():
            return None
        return self.cursor

    # Messages --------------------------------------------------------------

    def echo(self, message: str) -> None:
        self.messages.append(message)

    def notify(self, message: str, level: int = logging.INFO) -> None:
        self.notifications.append((level, message))
        if level >= logging.WARNING:
            logger.warning("%s", message)

    def callbacks(self) -> HostCallbacks:
        return HostCallbacks(
            place_anchor=self.place_anchor,
            release_anchor=self.release_anchor,
            read_anchor_row=self.read_anchor_row,
            jump=self.jump,
            cursor_position=self.cursor_position,
            current_window=lambda: self.window,
            current_tab=lambda: self.tab,
            is_ignored=self.is_ignored,
            echo=self.echo,
            notify=self.notify,
        )


__all__ = ["HeadlessHost", "HostCallbacks", "JumpResult", "NOT_FOUND"]
