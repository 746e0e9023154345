"""Bookmark file format plus crash-safe, debounced saving.

Every write goes to a temporary file that is flushed, fsynced, closed, and
then renamed over the bookmark file, so readers never see a partial file.

Asynchronous saves are debounced on the main loop and written on a background
thread. Each flush bumps ``bookmarks_save_generation`` and captures the new
value; the writer re-checks it before writing and again before renaming and
abandons its temporary file when a newer save has started. The synchronous
shutdown save bumps the generation first, so it always supersedes in-flight
writes.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from functools import partial
from collections.abc import Callable
from pathlib import Path

from .marks import Bookmark
from .paths import ensure_parent_dir, normalize_path
from .scheduler import DebounceTimer, Scheduler, spawn_daemon_thread
from .state import MarkState

logger = logging.getLogger(__name__)

SAVE_DEBOUNCE_SECONDS = 0.3
ORPHAN_TEMP_MAX_AGE_SECONDS = 10.0
SYNC_TEMP_SUFFIX = ".tmp.sync"
FILE_MODE = 0o644


class StaleWriteAbort(Exception):
    """A newer save superseded this asynchronous write."""


def serialize_bookmarks(bookmarks: list[Bookmark], saved_at: float) -> dict[str, object]:
    return {
        "bookmarks": [
            {
                "id": mark.id,
                "fname": mark.fname,
                "row": mark.row,
                "col": mark.col,
                "timestamp": mark.timestamp,
            }
            for mark in bookmarks
        ],
        "saved_at": int(saved_at),
    }


def encode_payload(payload: dict[str, object]) -> bytes:
    return json.dumps(payload, indent=2).encode("utf-8")


def _coerce_int(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not value.is_integer():
        return default
    return int(value) if value >= 1 else default


def _coerce_timestamp(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _parse_record(raw: object) -> tuple[int | None, str, int, int, float] | None:
    """Decode one stored bookmark in object or legacy ``[fname, row, col, ts]`` form."""
    if isinstance(raw, dict):
        fname = raw.get("fname")
        raw_id = raw.get("id")
        mark_id = raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) and raw_id > 0 else None
        row, col, timestamp = raw.get("row"), raw.get("col"), raw.get("timestamp")
    elif isinstance(raw, (list, tuple)) and raw:
        padded = list(raw) + [None] * (4 - len(raw))
        fname, row, col, timestamp = padded[:4]
        mark_id = None
    else:
        return None
    if not isinstance(fname, str) or not fname:
        return None
    return mark_id, fname, _coerce_int(row, 1), _coerce_int(col, 1), _coerce_timestamp(timestamp)


def parse_bookmarks(
    raw_marks: list[object],
    state: MarkState,
    normalize: Callable[[str | None], str] = normalize_path,
) -> list[Bookmark]:
    """Build bookmarks from decoded JSON, giving id-less records fresh ids.

    Fresh ids are only handed out after the counter has been advanced past
    every stored id, so they can never collide with a persisted one.
    """
    parsed = [record for record in map(_parse_record, raw_marks) if record is not None]
    for mark_id, *_rest in parsed:
        if mark_id is not None and mark_id > state.mark_id_counter:
            state.mark_id_counter = mark_id

    bookmarks: list[Bookmark] = []
    for mark_id, fname, row, col, timestamp in parsed:
        path = normalize(fname)
        if not path:
            continue
        bookmarks.append(
            Bookmark(
                id=mark_id if mark_id is not None else state.next_mark_id(),
                fname=path,
                row=row,
                col=col,
                timestamp=timestamp,
            )
        )
    return bookmarks


def remove_orphaned_temp_files(path: Path, now: float, max_age: float = ORPHAN_TEMP_MAX_AGE_SECONDS) -> int:
    """Delete temporary save files older than ``max_age`` left behind by a crash."""
    removed = 0
    try:
        candidates = list(path.parent.glob(f"{path.name}.tmp.*"))
    except OSError:
        return 0
    for candidate in candidates:
        try:
            if now - candidate.stat().st_mtime > max_age:
                candidate.unlink()
                removed += 1
        except OSError:
            continue
    if removed:
        logger.debug("waymark: removed %d orphaned bookmark temp files", removed)
    return removed


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


def write_atomic(path: Path, data: bytes, tmp_path: Path) -> None:
    """Blocking temp-file + fsync + rename write of ``data`` to ``path``."""
    ensure_parent_dir(path)
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
    try:
        _write_all(fd, data)
        os.fsync(fd)
    except OSError:
        os.close(fd)
        _unlink_quietly(tmp_path)
        raise
    os.close(fd)
    os.replace(tmp_path, path)


def _unlink_quietly(path: Path) -> None:
    try:
        os.unlink(path)
    except OSError:
        pass


class BookmarkPersistence:
    """Loads the bookmark file and saves it debounced or synchronously."""

    def __init__(
        self,
        state: MarkState,
        path: Path,
        scheduler: Scheduler,
        notify: Callable[[str, int], None],
        spawn: Callable[[Callable[[], None]], None] = spawn_daemon_thread,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.state = state
        self.path = path
        self.scheduler = scheduler
        self.notify = notify
        self.spawn = spawn
        self.wall_clock = wall_clock
        self._timer = DebounceTimer(scheduler)
        # Serializes the generation check with the rename that publishes a write.
        self._replace_lock = threading.Lock()

    @property
    def save_pending(self) -> bool:
        return self._timer.active

    def _encoded(self) -> bytes:
        return encode_payload(serialize_bookmarks(self.state.bookmarks, self.wall_clock()))

    # Saving ----------------------------------------------------------------

    def request_save(self) -> None:
        """Mark bookmarks dirty and (re)start the debounce timer."""
        self.state.bookmarks_dirty = True
        self._timer.restart(SAVE_DEBOUNCE_SECONDS, self._flush)

    def save_now(self) -> bool:
        """Synchronous save used at shutdown; supersedes any in-flight write."""
        self._timer.stop()
        self.state.bookmarks_dirty = False
        tmp_path = self.path.with_name(self.path.name + SYNC_TEMP_SUFFIX)
        with self._replace_lock:
            self.state.bookmarks_save_generation += 1
            try:
                write_atomic(self.path, self._encoded(), tmp_path)
            except (OSError, TypeError, ValueError) as exc:
                logger.warning("waymark: failed to save bookmarks to %s: %s", self.path, exc)
                return False
        return True

    def _flush(self) -> None:
        if not self.state.bookmarks_dirty:
            return
        self.state.bookmarks_dirty = False
        try:
            data = self._encoded()
            ensure_parent_dir(self.path)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("waymark: failed to prepare bookmark save: %s", exc)
            return

        with self._replace_lock:
            self.state.bookmarks_save_generation += 1
            generation = self.state.bookmarks_save_generation
        self.state.bookmarks_save_seq += 1
        tmp_path = self.path.with_name(f"{self.path.name}.tmp.{self.state.bookmarks_save_seq}")
        self.spawn(partial(self._write_generation, generation, tmp_path, data))

    def _check_generation(self, generation: int) -> None:
        if self.state.bookmarks_save_generation != generation:
            raise StaleWriteAbort(generation)

    def _write_generation(self, generation: int, tmp_path: Path, data: bytes) -> None:
        """Background half of an asynchronous save; never touches mark lists."""
        fd: int | None = None
        try:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
            self._check_generation(generation)
            _write_all(fd, data)
            os.fsync(fd)
            os.close(fd)
            fd = None
            with self._replace_lock:
                self._check_generation(generation)
                os.replace(tmp_path, self.path)
        except StaleWriteAbort:
            logger.debug("waymark: discarding superseded bookmark write (generation %d)", generation)
            self._discard(fd, tmp_path)
        except OSError as exc:
            logger.warning("waymark: failed to save bookmarks: %s", exc)
            self._discard(fd, tmp_path)
            self.scheduler.call_soon_threadsafe(partial(self._save_failed, generation, exc))

    def _discard(self, fd: int | None, tmp_path: Path) -> None:
        if fd is not None:
            try:
                os.close(fd)
            except OSError:
                pass
        _unlink_quietly(tmp_path)

    def _save_failed(self, generation: int, exc: OSError) -> None:
        if generation != self.state.bookmarks_save_generation:
            logger.debug("waymark: ignoring failure of superseded write (generation %d)", generation)
            return
        self.notify(f"Failed to save bookmarks: {exc}", logging.WARNING)
        self.request_save()

    def close(self) -> None:
        self._timer.stop()

    # Loading ---------------------------------------------------------------

    def _report_corrupted(self) -> None:
        self.notify(
            f"waymark: bookmarks file is corrupted, starting fresh. File: {self.path}",
            logging.WARNING,
        )

    def load(self) -> list[Bookmark]:
        """Read the bookmark file, yielding an empty list for any unusable content."""
        remove_orphaned_temp_files(self.path, self.wall_clock())
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except UnicodeDecodeError:
            self._report_corrupted()
            return []
        except OSError as exc:
            logger.warning("waymark: could not read bookmarks %s: %s", self.path, exc)
            return []
        if not text.strip():
            return []
        try:
            data = json.loads(text)
        except ValueError:
            self._report_corrupted()
            return []
        if not isinstance(data, dict):
            return []
        raw_marks = data.get("bookmarks")
        if not isinstance(raw_marks, list):
            return []
        return parse_bookmarks(raw_marks, self.state)


__all__ = [
    "BookmarkPersistence",
    "ORPHAN_TEMP_MAX_AGE_SECONDS",
    "SAVE_DEBOUNCE_SECONDS",
    "StaleWriteAbort",
    "encode_payload",
    "parse_bookmarks",
    "remove_orphaned_temp_files",
    "serialize_bookmarks",
    "write_atomic",
]
