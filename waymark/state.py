"""Shared mutable state owned by one ``Waymark`` session.

The automark tracker, bookmark store, and merged timeline all receive the same
``MarkState`` instance. Only the main loop mutates it.

Automark timestamps are monotonic milliseconds so session ordering survives
wall-clock adjustments; bookmark timestamps are epoch seconds so they stay
meaningful after a restart. ``SessionClock`` records one anchor in each clock
domain at startup to bridge the two.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from .marks import AutoMark, Bookmark
from .navigation import STAGING


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SessionClock:
    """Monotonic and wall clocks plus the anchors captured at session start."""

    def __init__(
        self,
        monotonic_ms: Callable[[], float] = _monotonic_ms,
        epoch: Callable[[], float] = time.time,
    ) -> None:
        self.monotonic_ms = monotonic_ms
        self.epoch = epoch
        self.session_start_mono = monotonic_ms()
        self.session_start_epoch = epoch()

    def now_ms(self) -> float:
        return self.monotonic_ms()

    def mono_to_epoch(self, mono_ms: float) -> float:
        """Map a session-relative timestamp onto epoch seconds (0 before the session)."""
        if not mono_ms or mono_ms < self.session_start_mono:
            return 0
        return self.session_start_epoch + (mono_ms - self.session_start_mono) / 1000.0

    def epoch_now(self) -> float:
        """Current epoch seconds derived from the monotonic clock."""
        return self.mono_to_epoch(self.now_ms())


@dataclass
class LastPosition:
    fname: str = ""
    row: int = 0
    time: float = 0.0


@dataclass
class MarkState:
    clock: SessionClock = field(default_factory=SessionClock)
    # Oldest-first.
    automarks: list[AutoMark] = field(default_factory=list)
    automarks_idx: int = STAGING
    # Newest-first.
    bookmarks: list[Bookmark] = field(default_factory=list)
    bookmarks_idx: int = STAGING
    merged_last_mark: int | None = None
    mark_id_counter: int = 0
    last_position: LastPosition = field(default_factory=LastPosition)
    last_key_time: float = 0.0
    navigating: bool = False
    nav_generation: int = 0
    bookmarks_dirty: bool = False
    bookmarks_save_generation: int = 0
    bookmarks_save_seq: int = 0

    def next_mark_id(self) -> int:
        self.mark_id_counter += 1
        return self.mark_id_counter

    def sync_mark_id_counter(self) -> None:
        """Advance the id counter past every id already held by a mark."""
        for mark in (*self.bookmarks, *self.automarks):
            if mark.id >= self.mark_id_counter:
                self.mark_id_counter = mark.id

    def reset_merged_cursor(self) -> None:
        self.merged_last_mark = None


__all__ = ["LastPosition", "MarkState", "SessionClock"]
