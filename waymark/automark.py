"""Automatic breadcrumbs: when to record one, pruning, eviction, and navigation.

Automarks live only for the session, ordered oldest-first. A new mark clears
out near-duplicates around it, never lands on a bookmarked line, and pushes
the oldest mark out once the list exceeds ``automark_limit``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable

from .anchors import AnchorBook
from .config import WaymarkConfig
from .host import NOT_FOUND, HostCallbacks
from .marks import AutoMark, Bookmark, copy_mark, find_mark_index_by_id
from .navigation import STAGING, NavigationGuard, adjust_index_after_removal, step
from .paths import line_preview
from .state import LastPosition, MarkState

logger = logging.getLogger(__name__)

# Marks this close to a new one are duplicates regardless of context or age.
NEAR_DUPLICATE_LINES = 2


class AutoMarkTracker:
    def __init__(
        self,
        state: MarkState,
        config: WaymarkConfig,
        host: HostCallbacks,
        anchors: AnchorBook,
        guard: NavigationGuard,
        refresh_bookmark: Callable[[Bookmark], None],
    ) -> None:
        self.state = state
        self.config = config
        self.host = host
        self.anchors = anchors
        self.guard = guard
        self.refresh_bookmark = refresh_bookmark

    # Heuristics ------------------------------------------------------------

    def should_record(self, row: int, fname: str, forced: bool = False) -> bool:
        """Decide whether ``(fname, row)`` is far enough from the last record."""
        last = self.state.last_position
        if forced:
            return not (fname == last.fname and row == last.row)

        if fname != last.fname:
            return True
        line_diff = abs(row - last.row)
        if line_diff >= self.config.automark_min_lines:
            return True
        elapsed = self.state.clock.now_ms() - last.time
        return elapsed >= self.config.automark_min_interval_ms and line_diff > 0

    # Creation --------------------------------------------------------------

    def _reset_cursors(self) -> None:
        self.state.automarks_idx = STAGING
        self.state.reset_merged_cursor()

    def _remove_at(self, index: int) -> AutoMark:
        """Remove the mark at 1-based ``index`` and fix up the cursor."""
        mark = self.state.automarks.pop(index - 1)
        self.anchors.release(mark)
        self.state.automarks_idx = adjust_index_after_removal(
            self.state.automarks_idx, index, len(self.state.automarks)
        )
        return mark

    def _touch_existing(self, row: int, fname: str) -> None:
        now = self.state.clock.now_ms()
        for mark in reversed(self.state.automarks):
            if mark.fname == fname and mark.row == row:
                mark.timestamp = now
                return
        for bookmark in self.state.bookmarks:
            if bookmark.fname == fname and bookmark.row == row:
                self.refresh_bookmark(bookmark)
                return

    def _cleanup_around(self, row: int, fname: str, window: object, tab: object, now: float) -> None:
        recent_ms = self.config.automark_recent_ms
        for index in range(len(self.state.automarks), 0, -1):
            mark = self.state.automarks[index - 1]
            self.anchors.sync(mark)
            if mark.fname != fname:
                continue
            distance = abs(mark.row - row)
            if distance <= NEAR_DUPLICATE_LINES:
                self._remove_at(index)
            elif distance <= self.config.automark_cleanup_lines and mark.window == window and mark.tab == tab:
                protected = recent_ms > 0 and (now - mark.timestamp) < recent_ms
                if not protected:
                    self._remove_at(index)

    def add(self, row: int, col: int, fname: str, forced: bool = False) -> AutoMark | None:
        """Record an automark at ``(fname, row, col)`` when the heuristics allow it."""
        if not fname or self.state.navigating:
            return None

        if not self.should_record(row, fname, forced):
            if forced:
                self._touch_existing(row, fname)
                self._reset_cursors()
            return None

        now = self.state.clock.now_ms()
        window = self.host.current_window()
        tab = self.host.current_tab()

        # Runs before cleanup so a bookmarked line never loses its nearby
        # automarks without a replacement.
        for bookmark in self.state.bookmarks:
            if bookmark.fname != fname:
                continue
            self.anchors.sync(bookmark)
            if bookmark.row == row:
                self.state.last_position = LastPosition(fname, row, now)
                if forced:
                    self.refresh_bookmark(bookmark)
                    self._reset_cursors()
                return None

        self._cleanup_around(row, fname, window, tab, now)

        mark = AutoMark(
            id=self.state.next_mark_id(),
            fname=fname,
            row=row,
            col=col,
            timestamp=now,
            window=window,
            tab=tab,
        )
        self.state.automarks.append(mark)
        self._reset_cursors()
        self.anchors.place(mark)

        while len(self.state.automarks) > self.config.automark_limit:
            evicted = self._remove_at(1)
            logger.debug("waymark: evicted automark %d (%s:%d)", evicted.id, evicted.fname, evicted.row)

        self.state.last_position = LastPosition(fname, row, now)
        return mark

    # Navigation ------------------------------------------------------------

    def _goto(self, toward_end: bool) -> bool:
        marks = self.state.automarks
        with self.guard.jumping():
            for _attempt in range(len(marks)):
                if not 1 <= self.state.automarks_idx <= len(marks):
                    self.state.automarks_idx = len(marks)
                index = self.state.automarks_idx
                mark = marks[index - 1]
                self.anchors.sync(mark)

                result = self.host.jump(mark.fname, mark.row, mark.col, mark.window, mark.tab)
                if result.ok:
                    landed = result.row if result.row is not None else mark.row
                    message = f"Automark {index}/{len(marks)}: {os.path.basename(mark.fname)}:{landed}"
                    preview = line_preview(mark.fname, landed, 40)
                    if preview:
                        message += f"  │ {preview}"
                    self.host.echo(message)
                    return True

                if result.reason != NOT_FOUND and self.host.file_exists(mark.fname):
                    self.host.notify("Could not jump to automark", logging.WARNING)
                    return False

                self.host.notify(
                    f"File no longer exists - removing automark: {os.path.basename(mark.fname)}",
                    logging.WARNING,
                )
                self.anchors.release(mark)
                del marks[index - 1]
                self.state.reset_merged_cursor()
                if not marks:
                    break
                if toward_end:
                    self.state.automarks_idx = index if index <= len(marks) else 1
                else:
                    self.state.automarks_idx = index - 1 if index > 1 else len(marks)

            self.host.echo("No valid automarks remaining")
            self.state.automarks_idx = STAGING
            return False

    def _navigate(self, toward_end: bool, count: int) -> bool:
        if self.host.is_ignored():
            return False
        if not self.state.automarks:
            self.host.echo("No automarks saved")
            return False
        self.state.automarks_idx = step(self.state.automarks_idx, len(self.state.automarks), toward_end, count)
        return self._goto(toward_end)

    def prev(self, count: int = 1) -> bool:
        """Step toward older automarks; staging enters at the newest."""
        return self._navigate(False, count)

    def next(self, count: int = 1) -> bool:
        """Step toward newer automarks; staging enters at the oldest."""
        return self._navigate(True, count)

    # Maintenance -----------------------------------------------------------

    def show(self) -> list[str]:
        """Report every automark, flagging the current cursor with an arrow."""
        if not self.state.automarks:
            self.host.echo("No automarks saved")
            return []
        lines = ["Automarks:"]
        for index, mark in enumerate(self.state.automarks, start=1):
            self.anchors.sync(mark)
            marker = "→ " if index == self.state.automarks_idx else "  "
            line = f"{marker}{index}. {os.path.basename(mark.fname)}:{mark.row}"
            preview = line_preview(mark.fname, mark.row, 40)
            if preview:
                line += f"  │ {preview}"
            lines.append(line)
        self.host.notify("\n".join(lines), logging.INFO)
        return lines

    def purge(self) -> int:
        """Drop automarks whose files are no longer readable."""
        cleaned = 0
        for index in range(len(self.state.automarks), 0, -1):
            if not self.host.file_exists(self.state.automarks[index - 1].fname):
                self._remove_at(index)
                cleaned += 1
        if cleaned:
            self.state.reset_merged_cursor()
            self.host.echo(f"Cleaned up {cleaned} automarks from deleted files")
        else:
            self.host.echo("All automarks are valid")
        return cleaned

    def remove_by_id(self, mark_id: int) -> bool:
        index = find_mark_index_by_id(self.state.automarks, mark_id)
        if index is None:
            return False
        self._remove_at(index)
        return True

    def rename_file(self, old_fname: str, new_fname: str) -> int:
        renamed = 0
        for mark in self.state.automarks:
            if mark.fname == old_fname:
                mark.fname = new_fname
                renamed += 1
        return renamed

    def clear(self) -> None:
        for mark in self.state.automarks:
            self.anchors.release(mark)
        self.state.automarks.clear()
        self._reset_cursors()
        self.host.echo("All automarks cleared")

    def get(self) -> list[AutoMark]:
        return [copy_mark(mark) for mark in self.state.automarks]


__all__ = ["AutoMarkTracker", "NEAR_DUPLICATE_LINES"]
