"""One waymark session: shared state, the three mark lists, and editor events.

Hosts create a ``Waymark`` with their ``HostCallbacks``, forward editor
events to the ``on_*`` methods, call ``scheduler.run_due()`` from their main
loop, and call ``startup``/``shutdown`` around the session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from .allmark import MergedTimeline
from .anchors import AnchorBook
from .automark import AutoMarkTracker
from .bookmark import BookmarkStore
from .config import DEFAULTS, WaymarkConfig
from .host import HostCallbacks
from .marks import AutoMark, Bookmark
from .navigation import NavigationGuard
from .paths import normalize_path
from .persistence import BookmarkPersistence
from .scheduler import DebounceTimer, Scheduler, spawn_daemon_thread
from .state import MarkState, SessionClock

logger = logging.getLogger(__name__)

NORMAL_MODE = "n"

# LSP requests that move the cursor somewhere else; the origin is recorded first.
LSP_JUMP_METHODS = frozenset(
    {
        "textDocument/definition",
        "textDocument/declaration",
        "textDocument/typeDefinition",
        "textDocument/implementation",
    }
)


class Waymark:
    def __init__(
        self,
        host: HostCallbacks,
        config: WaymarkConfig = DEFAULTS,
        *,
        scheduler: Scheduler | None = None,
        clock: SessionClock | None = None,
        spawn: Callable[[Callable[[], None]], None] = spawn_daemon_thread,
        bookmarks_path: Path | None = None,
    ) -> None:
        self.host = host
        self.config = config
        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.state = MarkState(clock=clock if clock is not None else SessionClock())
        self.anchors = AnchorBook(host)
        self.guard = NavigationGuard(self.state, self.scheduler)
        self.persistence = BookmarkPersistence(
            self.state,
            bookmarks_path if bookmarks_path is not None else config.resolved_bookmarks_file(),
            self.scheduler,
            host.notify,
            spawn=spawn,
        )
        self.bookmarks = BookmarkStore(self.state, host, self.anchors, self.guard, self.persistence)
        self.automarks = AutoMarkTracker(
            self.state,
            config,
            host,
            self.anchors,
            self.guard,
            refresh_bookmark=self.bookmarks.touch,
        )
        self.allmarks = MergedTimeline(
            self.state,
            host,
            self.anchors,
            self.guard,
            self.automarks,
            self.bookmarks,
        )
        self._idle_timer = DebounceTimer(self.scheduler)
        self._mode = NORMAL_MODE
        self.started = False

    @property
    def bookmarks_path(self) -> Path:
        return self.persistence.path

    # Lifecycle -------------------------------------------------------------

    def startup(self) -> int:
        """Load persisted bookmarks and prune those whose files were deleted."""
        loaded = self.bookmarks.load()
        self.bookmarks.cleanup()
        self.started = True
        logger.debug("waymark: loaded %d bookmarks from %s", loaded, self.bookmarks_path)
        return len(self.state.bookmarks)

    def shutdown(self) -> bool:
        """Sync anchor positions, collapse duplicates, and save synchronously."""
        self._idle_timer.stop()
        self.anchors.sync_all(self.state.bookmarks)
        self.bookmarks.deduplicate()
        saved = self.persistence.save_now()
        self.persistence.close()
        self.started = False
        return saved

    # Editor events ---------------------------------------------------------

    def record_cursor(self, forced: bool = False) -> AutoMark | None:
        position = self.host.cursor_position()
        if position is None:
            return None
        return self.automarks.add(position.row, position.col, position.fname, forced)

    def on_key(self, mode: str = NORMAL_MODE) -> None:
        """Restart the idle timer; an automark is recorded once keys stop."""
        self._mode = mode
        if mode != NORMAL_MODE or self.state.navigating or self.host.is_ignored():
            return
        self.state.last_key_time = self.state.clock.now_ms()
        self._idle_timer.restart(self.config.automark_idle_ms / 1000.0, self.on_idle)

    def on_idle(self) -> None:
        """Idle-timer expiry: record the cursor once keys have stopped long enough."""
        if self._mode != NORMAL_MODE or self.host.is_ignored():
            return
        if self.state.clock.now_ms() - self.state.last_key_time >= self.config.automark_idle_ms:
            self.record_cursor(forced=False)

    def on_insert_leave(self) -> None:
        self._mode = NORMAL_MODE
        self.record_cursor(forced=False)

    def on_buffer_leave(self) -> None:
        if self.state.navigating:
            return
        self.record_cursor(forced=True)

    def on_lsp_request(self, method: str, pending: bool = True) -> None:
        if pending and method in LSP_JUMP_METHODS:
            self.record_cursor(forced=True)

    def on_buffer_enter(self, fname: str) -> None:
        path = normalize_path(fname)
        self.anchors.restore_for_file(path, self.state.automarks)
        self.anchors.restore_for_file(path, self.state.bookmarks)

    def on_buffer_unload(self, fname: str) -> None:
        path = normalize_path(fname)
        self.anchors.detach_file(path, self.state.automarks)
        self.anchors.detach_file(path, self.state.bookmarks)

    def on_buffer_write(self, fname: str) -> None:
        """Re-anchor after a save, since formatting may have merged bookmarked lines."""
        self.on_buffer_unload(fname)
        self.bookmarks.deduplicate()
        self.on_buffer_enter(fname)

    def on_buffer_rename(self, old_fname: str, new_fname: str) -> None:
        old_path = normalize_path(old_fname)
        normalize_path.invalidate(old_fname)
        normalize_path.invalidate(new_fname)
        new_path = normalize_path(new_fname)
        if not new_path or old_path == new_path:
            return
        self.automarks.rename_file(old_path, new_path)
        self.bookmarks.rename_file(old_path, new_path)

    # Public API ------------------------------------------------------------

    def add_bookmark(self) -> Bookmark | None:
        return self.bookmarks.add()

    def delete_bookmark(self) -> bool:
        return self.bookmarks.delete()

    def toggle_bookmark(self) -> Bookmark | None:
        return self.bookmarks.toggle()

    def clear_bookmarks(self) -> None:
        self.bookmarks.clear()

    def get_bookmarks(self) -> list[Bookmark]:
        return self.bookmarks.get()

    def prev_bookmark(self, count: int = 1) -> bool:
        return self.bookmarks.prev(count)

    def next_bookmark(self, count: int = 1) -> bool:
        return self.bookmarks.next(count)

    def goto_bookmark(self, index: int) -> bool:
        return self.bookmarks.goto(index)

    def prev_automark(self, count: int = 1) -> bool:
        return self.automarks.prev(count)

    def next_automark(self, count: int = 1) -> bool:
        return self.automarks.next(count)

    def show_automarks(self) -> list[str]:
        return self.automarks.show()

    def purge_automarks(self) -> int:
        return self.automarks.purge()

    def clear_automarks(self) -> None:
        self.automarks.clear()

    def get_automarks(self) -> list[AutoMark]:
        return self.automarks.get()

    def prev_allmark(self, count: int = 1) -> bool:
        return self.allmarks.prev(count)

    def next_allmark(self, count: int = 1) -> bool:
        return self.allmarks.next(count)


__all__ = ["LSP_JUMP_METHODS", "Waymark"]
