"""Merged chronological view over automarks and bookmarks.

The view is rebuilt on every request, so the cursor is the id of the last
visited mark rather than an index. Automark timestamps are mapped onto epoch
seconds through the session clock anchors before sorting.
"""

from __future__ import annotations

import logging
import os

from .anchors import AnchorBook
from .automark import AutoMarkTracker
from .bookmark import BookmarkStore
from .host import NOT_FOUND, HostCallbacks
from .marks import MergedMark, find_mark_index_by_id, mark_key
from .navigation import STAGING, NavigationGuard, step
from .paths import line_preview
from .state import MarkState

logger = logging.getLogger(__name__)

AUTOMARK_ICON = "¤"
BOOKMARK_ICON = "※"


def mono_to_epoch(state: MarkState, mono_ms: float) -> float:
    return state.clock.mono_to_epoch(mono_ms)


class MergedTimeline:
    def __init__(
        self,
        state: MarkState,
        host: HostCallbacks,
        anchors: AnchorBook,
        guard: NavigationGuard,
        automarks: AutoMarkTracker,
        bookmarks: BookmarkStore,
    ) -> None:
        self.state = state
        self.host = host
        self.anchors = anchors
        self.guard = guard
        self.automarks = automarks
        self.bookmarks = bookmarks

    def build_view(self) -> list[MergedMark]:
        """All marks oldest-first; an automark sharing a bookmark's line is dropped."""
        merged: list[MergedMark] = []
        bookmarked: set[tuple[str, int]] = set()
        for mark in self.state.bookmarks:
            self.anchors.sync(mark)
            bookmarked.add(mark_key(mark.fname, mark.row))
            merged.append(
                MergedMark(
                    id=mark.id,
                    fname=mark.fname,
                    row=mark.row,
                    col=mark.col,
                    sort_time=mark.timestamp or 0,
                    kind="bookmark",
                )
            )
        for mark in self.state.automarks:
            self.anchors.sync(mark)
            if mark_key(mark.fname, mark.row) in bookmarked:
                continue
            merged.append(
                MergedMark(
                    id=mark.id,
                    fname=mark.fname,
                    row=mark.row,
                    col=mark.col,
                    sort_time=mono_to_epoch(self.state, mark.timestamp or 0),
                    kind="automark",
                    window=mark.window,
                    tab=mark.tab,
                )
            )
        merged.sort(key=lambda entry: (entry.sort_time, entry.id))
        return merged

    def _current_index(self, merged: list[MergedMark]) -> int:
        if self.state.merged_last_mark is None:
            return STAGING
        index = find_mark_index_by_id(merged, self.state.merged_last_mark)
        return index if index is not None else STAGING

    def _goto(self, mark: MergedMark, index: int, total: int) -> bool:
        with self.guard.jumping():
            self.state.merged_last_mark = mark.id
            result = self.host.jump(mark.fname, mark.row, mark.col, mark.window, mark.tab)
            if result.ok:
                icon = BOOKMARK_ICON if mark.kind == "bookmark" else AUTOMARK_ICON
                landed = result.row if result.row is not None else mark.row
                message = f"{icon} [{index}/{total}] {os.path.basename(mark.fname)}:{landed}"
                preview = line_preview(mark.fname, landed, 40)
                if preview:
                    message += f"  │ {preview}"
                self.host.echo(message)
                return True

            if result.reason == NOT_FOUND or not self.host.file_exists(mark.fname):
                self.host.notify(
                    f"File no longer exists - removing mark: {os.path.basename(mark.fname)}",
                    logging.WARNING,
                )
                if mark.kind == "automark":
                    self.automarks.remove_by_id(mark.id)
                else:
                    self.bookmarks.remove_by_id(mark.id)
            else:
                self.host.notify("Could not jump to mark", logging.WARNING)
            self.state.reset_merged_cursor()
            return False

    def _navigate(self, toward_end: bool, count: int) -> bool:
        if self.host.is_ignored():
            return False
        merged = self.build_view()
        if not merged:
            self.host.echo("No marks saved")
            return False
        target = step(self._current_index(merged), len(merged), toward_end, count)
        return self._goto(merged[target - 1], target, len(merged))

    def prev(self, count: int = 1) -> bool:
        """Step toward older marks; staging enters at the newest."""
        return self._navigate(False, count)

    def next(self, count: int = 1) -> bool:
        """Step toward newer marks; staging enters at the oldest."""
        return self._navigate(True, count)


__all__ = ["MergedTimeline", "mono_to_epoch"]
