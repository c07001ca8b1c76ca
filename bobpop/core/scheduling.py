"""Cancelable deferred work on a single serialized timeline.

The app runs everything on the Qt event loop through :class:`QtScheduler`;
headless runs and tests drive a :class:`ManualScheduler` clock by hand.
"""

from __future__ import annotations

import heapq
import itertools
from typing import Callable, List, Optional, Protocol, Tuple

from PySide6.QtCore import QObject, QTimer


class PendingWork(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> PendingWork: ...


class _QtPendingWork:
    def __init__(self, timer: QTimer) -> None:
        self._timer: Optional[QTimer] = timer

    @property
    def active(self) -> bool:
        return self._timer is not None

    def cancel(self) -> None:
        if self._timer is None:
            return
        self._timer.stop()
        self._release()

    def _release(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.deleteLater()


class QtScheduler:
    """Single-shot ``QTimer`` per call, fired on the Qt event loop."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        self._parent = parent

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _QtPendingWork:
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        work = _QtPendingWork(timer)

        def _fire() -> None:
            if not work.active:
                return
            work._release()
            callback()

        timer.timeout.connect(_fire)
        timer.start(max(0, int(delay_ms)))
        return work


class _ManualWork:
    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False
        self.done = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler driven by explicit clock advances.

    Work scheduled for the same due time runs in scheduling order.
    """

    def __init__(self, start_time: float = 0.0, max_steps: int = 10_000) -> None:
        self._start_time = start_time
        self._now_ms = 0
        self._max_steps = max_steps
        self._seq = itertools.count()
        self._queue: List[Tuple[int, int, _ManualWork]] = []

    @property
    def now_ms(self) -> int:
        return self._now_ms

    def time(self) -> float:
        """Seconds on this clock, usable as an injected ``clock``."""
        return self._start_time + self._now_ms / 1000.0

    @property
    def pending_count(self) -> int:
        return sum(1 for _, _, work in self._queue if not work.cancelled)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _ManualWork:
        work = _ManualWork(callback)
        due = self._now_ms + max(0, int(delay_ms))
        heapq.heappush(self._queue, (due, next(self._seq), work))
        return work

    def advance(self, ms: int) -> int:
        """Move the clock forward by ``ms``, running everything that comes due."""
        target = self._now_ms + max(0, int(ms))
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            ran += self._run_next()
        self._now_ms = target
        return ran

    def run_all(self) -> int:
        """Run queued work, and any work it schedules, until nothing is left."""
        ran = 0
        while self._queue:
            if ran >= self._max_steps:
                raise RuntimeError(f"ManualScheduler exceeded {self._max_steps} steps")
            ran += self._run_next()
        return ran

    def _run_next(self) -> int:
        due, _, work = heapq.heappop(self._queue)
        self._now_ms = max(self._now_ms, due)
        if work.cancelled:
            return 0
        work.done = True
        work.callback()
        return 1
