"""Persistent bookmarks: add, delete, toggle, jump, and list maintenance.

Bookmarks are kept newest-first. Every mutation schedules a debounced save;
shutdown performs a synchronous one. A bookmark always wins over an automark
on the same line.
"""

from __future__ import annotations

import logging
import os

from .anchors import AnchorBook
from .host import NOT_FOUND, HostCallbacks
from .marks import Bookmark, Position, copy_mark, find_mark_index_by_id, mark_key
from .navigation import STAGING, NavigationGuard, adjust_index_after_removal, step
from .paths import format_path, line_preview
from .persistence import BookmarkPersistence
from .state import MarkState

logger = logging.getLogger(__name__)


class BookmarkStore:
    def __init__(
        self,
        state: MarkState,
        host: HostCallbacks,
        anchors: AnchorBook,
        guard: NavigationGuard,
        persistence: BookmarkPersistence,
    ) -> None:
        self.state = state
        self.host = host
        self.anchors = anchors
        self.guard = guard
        self.persistence = persistence

    def save(self, sync: bool = False) -> None:
        if sync:
            self.persistence.save_now()
        else:
            self.persistence.request_save()

    def touch(self, bookmark: Bookmark) -> None:
        """Refresh a bookmark's timestamp to now and persist it."""
        bookmark.timestamp = self.state.clock.epoch_now()
        self.save()

    # Helpers ---------------------------------------------------------------

    def _position(self, position: Position | None) -> Position | None:
        return position if position is not None else self.host.cursor_position()

    def _remove_at(self, index: int) -> Bookmark:
        mark = self.state.bookmarks.pop(index - 1)
        self.anchors.release(mark)
        self.state.bookmarks_idx = adjust_index_after_removal(
            self.state.bookmarks_idx, index, len(self.state.bookmarks)
        )
        return mark

    def _remove_automark_at(self, index: int) -> None:
        mark = self.state.automarks.pop(index - 1)
        self.anchors.release(mark)
        self.state.automarks_idx = adjust_index_after_removal(
            self.state.automarks_idx, index, len(self.state.automarks)
        )

    def _indices_at(self, marks, fname: str, row: int) -> list[int]:
        found: list[int] = []
        for index, mark in enumerate(marks, start=1):
            self.anchors.sync(mark)
            if mark.fname == fname and mark.row == row:
                found.append(index)
        return found

    # CRUD ------------------------------------------------------------------

    def add(self, position: Position | None = None) -> Bookmark | None:
        """Bookmark the cursor line unless it is already bookmarked."""
        if position is None and self.host.is_ignored():
            return None
        pos = self._position(position)
        if pos is None or not pos.fname:
            self.host.notify("Cannot create bookmark in this buffer", logging.WARNING)
            return None

        if self._indices_at(self.state.bookmarks, pos.fname, pos.row):
            self.host.echo("Bookmark already exists at this location")
            return None

        mark = Bookmark(
            id=self.state.next_mark_id(),
            fname=pos.fname,
            row=pos.row,
            col=pos.col,
            timestamp=self.state.clock.epoch_now(),
        )
        for index in reversed(self._indices_at(self.state.automarks, pos.fname, pos.row)):
            self._remove_automark_at(index)

        self.state.bookmarks.insert(0, mark)
        self.state.bookmarks_idx = STAGING
        self.state.reset_merged_cursor()
        self.anchors.place(mark)
        self.save()
        self.host.echo(f"Bookmark added ({len(self.state.bookmarks)}): {format_path(pos.fname)}:{pos.row}")
        return mark

    def delete_at_cursor(self, position: Position | None = None) -> bool:
        pos = self._position(position)
        if pos is None:
            return False
        for index in self._indices_at(self.state.bookmarks, pos.fname, pos.row):
            self._remove_at(index)
            self.save()
            self.state.reset_merged_cursor()
            self.host.echo(f"Bookmark removed: {format_path(pos.fname)}:{pos.row}")
            return True
        self.host.echo("No bookmark found at current location")
        return False

    def delete(self) -> bool:
        if self.host.is_ignored():
            return False
        return self.delete_at_cursor()

    def toggle(self, position: Position | None = None) -> Bookmark | None:
        """Remove every mark on the cursor line, or bookmark it when there is none."""
        if position is None and self.host.is_ignored():
            return None
        pos = self._position(position)
        if pos is None:
            self.host.notify("Cannot toggle bookmark in this buffer", logging.WARNING)
            return None

        auto_indices = self._indices_at(self.state.automarks, pos.fname, pos.row)
        bookmark_indices = self._indices_at(self.state.bookmarks, pos.fname, pos.row)
        if not auto_indices and not bookmark_indices:
            return self.add(pos)

        for index in reversed(auto_indices):
            self._remove_automark_at(index)
        for index in reversed(bookmark_indices):
            self._remove_at(index)
        self.state.reset_merged_cursor()
        if bookmark_indices:
            self.save()

        parts = []
        if auto_indices:
            parts.append(f"{len(auto_indices)} automark" + ("s" if len(auto_indices) > 1 else ""))
        if bookmark_indices:
            parts.append(f"{len(bookmark_indices)} bookmark" + ("s" if len(bookmark_indices) > 1 else ""))
        self.host.echo(f"Deleted {' + '.join(parts)} at line {pos.row}")
        return None

    def remove_by_id(self, mark_id: int) -> bool:
        index = find_mark_index_by_id(self.state.bookmarks, mark_id)
        if index is None:
            return False
        self._remove_at(index)
        self.save()
        return True

    def clear(self) -> None:
        for mark in self.state.bookmarks:
            self.anchors.release(mark)
        self.state.bookmarks.clear()
        self.state.bookmarks_idx = STAGING
        self.state.reset_merged_cursor()
        self.save()
        self.host.echo("All bookmarks cleared")

    def get(self) -> list[Bookmark]:
        return [copy_mark(mark) for mark in self.state.bookmarks]

    # Navigation ------------------------------------------------------------

    def jump_to_index(self, index: int) -> bool:
        if not 1 <= index <= len(self.state.bookmarks):
            self.host.notify(f"Invalid bookmark index: {index}", logging.WARNING)
            return False

        with self.guard.jumping():
            mark = self.state.bookmarks[index - 1]
            self.anchors.sync(mark)
            result = self.host.jump(mark.fname, mark.row, mark.col)
            if result.ok:
                self.state.bookmarks_idx = index
                landed = result.row if result.row is not None else mark.row
                message = f"Bookmark {index}: {format_path(mark.fname)}:{landed}"
                preview = line_preview(mark.fname, landed, 40)
                if preview:
                    message += f"  │ {preview}"
                self.host.echo(message)
                return True

            if result.reason == NOT_FOUND or not self.host.file_exists(mark.fname):
                self.host.notify(
                    f"File no longer exists - removing bookmark: {format_path(mark.fname)}",
                    logging.WARNING,
                )
                self._remove_at(index)
                self.state.reset_merged_cursor()
                self.save()
            else:
                self.host.notify("Could not jump to bookmark", logging.WARNING)
            return False

    def goto(self, index: int) -> bool:
        if self.host.is_ignored():
            return False
        return self.jump_to_index(index)

    def _navigate(self, toward_end: bool, count: int) -> bool:
        if self.host.is_ignored():
            return False
        if not self.state.bookmarks:
            self.host.echo("No bookmarks saved")
            return False
        self.state.bookmarks_idx = step(self.state.bookmarks_idx, len(self.state.bookmarks), toward_end, count)
        return self.jump_to_index(self.state.bookmarks_idx)

    def prev(self, count: int = 1) -> bool:
        """Step toward older bookmarks; staging enters at the newest."""
        return self._navigate(True, count)

    def next(self, count: int = 1) -> bool:
        """Step toward newer bookmarks; staging enters at the oldest."""
        return self._navigate(False, count)

    def listing(self) -> list[str]:
        lines: list[str] = []
        for index, mark in enumerate(self.state.bookmarks, start=1):
            self.anchors.sync(mark)
            marker = "→ " if index == self.state.bookmarks_idx else "  "
            line = f"{marker}{index}. {format_path(mark.fname)}:{mark.row}"
            preview = line_preview(mark.fname, mark.row)
            if preview:
                line += f"  │ {preview}"
            lines.append(line)
        return lines

    # Persistence and maintenance ------------------------------------------

    def load(self) -> int:
        """Replace in-memory bookmarks with the persisted ones."""
        for mark in self.state.bookmarks:
            self.anchors.release(mark)
        self.state.bookmarks.clear()
        self.state.bookmarks.extend(self.persistence.load())
        self.state.bookmarks_idx = STAGING
        self.state.sync_mark_id_counter()
        return len(self.state.bookmarks)

    def cleanup(self) -> int:
        """Drop bookmarks whose file is gone while its directory still exists.

        A missing parent directory usually means an unmounted volume, so those
        bookmarks are kept.
        """
        cleaned = 0
        for index in range(len(self.state.bookmarks), 0, -1):
            fname = self.state.bookmarks[index - 1].fname
            if self.host.file_exists(fname):
                continue
            if self.host.is_directory(os.path.dirname(fname)):
                self._remove_at(index)
                cleaned += 1
        if cleaned:
            self.state.reset_merged_cursor()
            self.host.notify(f"Cleaned up {cleaned} bookmarks from deleted files", logging.INFO)
            self.save()
        return cleaned

    def deduplicate(self) -> int:
        """Keep only the newest bookmark per line after anchors have moved."""
        seen: dict[tuple[str, int], int] = {}
        duplicates: list[int] = []
        for index, mark in enumerate(self.state.bookmarks, start=1):
            key = mark_key(mark.fname, mark.row)
            if key in seen:
                duplicates.append(index)
            else:
                seen[key] = index
        if not duplicates:
            return 0

        for index in reversed(duplicates):
            mark = self.state.bookmarks[index - 1]
            survivor = seen[mark_key(mark.fname, mark.row)]
            self.anchors.release(mark)
            del self.state.bookmarks[index - 1]
            if self.state.bookmarks_idx > index:
                self.state.bookmarks_idx -= 1
            elif self.state.bookmarks_idx == index:
                self.state.bookmarks_idx = survivor
        if self.state.bookmarks_idx > len(self.state.bookmarks):
            self.state.bookmarks_idx = STAGING
        self.state.reset_merged_cursor()
        self.save()
        return len(duplicates)

    def rename_file(self, old_fname: str, new_fname: str) -> int:
        renamed = 0
        for mark in self.state.bookmarks:
            if mark.fname == old_fname:
                mark.fname = new_fname
                renamed += 1
        if renamed:
            self.save()
        return renamed


__all__ = ["BookmarkStore"]
