"""Single-threaded timer queue drained by the host's main loop.

Timers never fire on their own thread: the host calls ``run_due`` from its
event loop, so every mark-list mutation stays on one thread. Background I/O
threads hand results back through ``call_soon_threadsafe``.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections.abc import Callable
from queue import Empty, Queue

logger = logging.getLogger(__name__)


class TimerHandle:
    """Pending callback; ``cancel`` prevents it from running."""

    __slots__ = ("deadline", "callback", "cancelled")

    def __init__(self, deadline: float, callback: Callable[[], None]) -> None:
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Deterministic monotonic clock for tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Scheduler:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._timers: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()
        self._posted: Queue[Callable[[], None]] = Queue()

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once ``delay_seconds`` have elapsed on the clock."""
        handle = TimerHandle(self.clock() + max(0.0, delay_seconds), callback)
        heapq.heappush(self._timers, (handle.deadline, next(self._seq), handle))
        return handle

    def call_soon_threadsafe(self, callback: Callable[[], None]) -> None:
        """Queue ``callback`` from any thread for the next ``run_due``."""
        self._posted.put(callback)

    def next_deadline(self) -> float | None:
        """Earliest live timer deadline, or ``None`` when idle."""
        while self._timers and self._timers[0][2].cancelled:
            heapq.heappop(self._timers)
        return self._timers[0][0] if self._timers else None

    def pending(self) -> int:
        return sum(1 for _deadline, _seq, handle in self._timers if not handle.cancelled)

    def _run(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("waymark: scheduled callback failed")

    def run_due(self) -> int:
        """Run posted callbacks and every timer whose deadline has passed."""
        ran = 0
        while True:
            try:
                callback = self._posted.get_nowait()
            except Empty:
                break
            self._run(callback)
            ran += 1

        now = self.clock()
        while self._timers and self._timers[0][0] <= now:
            _deadline, _seq, handle = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            handle.cancelled = True
            self._run(handle.callback)
            ran += 1
        return ran


class DebounceTimer:
    """Restartable one-shot timer: each ``restart`` replaces the pending run."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handle: TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def restart(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        self.stop()
        self._handle = self._scheduler.call_later(delay_seconds, callback)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


def spawn_daemon_thread(fn: Callable[[], None]) -> None:
    """Run ``fn`` on a background daemon thread."""
    worker = threading.Thread(target=fn, name="waymark-bookmark-save", daemon=True)
    worker.start()


__all__ = [
    "DebounceTimer",
    "ManualClock",
    "Scheduler",
    "TimerHandle",
    "spawn_daemon_thread",
]
