"""Cursor arithmetic shared by the automark, bookmark, and merged lists.

A cursor is ``STAGING`` (not positioned) or a 1-based index into its list.
Entering from staging picks an end of the list, stepping wraps around, and a
single-element list always resolves to index 1.

``NavigationGuard`` owns the ``navigating`` flag that keeps a programmatic
jump from recording an automark at its landing position.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .scheduler import Scheduler
    from .state import MarkState

logger = logging.getLogger(__name__)

STAGING = -1
NAVIGATION_FALLBACK_SECONDS = 2.0


def step_down(idx: int, length: int) -> int:
    """One step toward index 1; staging enters at the last index."""
    if length == 1:
        return 1
    if idx <= 1 or idx > length:
        return length
    return idx - 1


def step_up(idx: int, length: int) -> int:
    """One step toward the last index; staging enters at index 1."""
    if length == 1:
        return 1
    if idx == STAGING or idx >= length or idx < 1:
        return 1
    return idx + 1


def step(idx: int, length: int, toward_end: bool, count: int = 1) -> int:
    """Apply ``count`` steps in one direction; ``length`` must be positive."""
    mover = step_up if toward_end else step_down
    for _ in range(max(1, count)):
        idx = mover(idx, length)
    return idx


def adjust_index_after_removal(idx: int, removed: int, list_len: int) -> int:
    """Cursor value after removing element ``removed``; ``list_len`` is the new length."""
    if idx == removed:
        idx = STAGING
    elif idx > removed:
        idx -= 1
    if idx > list_len:
        return STAGING
    return idx


class NavigationGuard:
    """Generation-checked ``navigating`` flag with a fallback expiry timer."""

    def __init__(self, state: MarkState, scheduler: Scheduler) -> None:
        self.state = state
        self.scheduler = scheduler

    def begin(self) -> None:
        self.state.nav_generation += 1
        self.state.navigating = True

    def end(self) -> None:
        self.state.navigating = False

    def begin_with_fallback(self) -> None:
        """Begin navigating; clear the flag after a timeout if ``end`` never runs.

        The timer only clears the flag when no newer navigation has started
        since, so a stale timer cannot re-enable tracking mid-jump.
        """
        self.begin()
        generation = self.state.nav_generation

        def expire() -> None:
            if self.state.nav_generation == generation and self.state.navigating:
                logger.debug("waymark: navigation fallback expired (generation %d)", generation)
                self.state.navigating = False

        self.scheduler.call_later(NAVIGATION_FALLBACK_SECONDS, expire)

    @contextmanager
    def jumping(self) -> Iterator[None]:
        self.begin_with_fallback()
        try:
            yield
        finally:
            self.end()


__all__ = [
    "NAVIGATION_FALLBACK_SECONDS",
    "NavigationGuard",
    "STAGING",
    "adjust_index_after_removal",
    "step",
    "step_down",
    "step_up",
]
