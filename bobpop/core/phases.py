"""Delayed remove → gravity → refill → settle steps that follow a valid pop."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from bobpop.core.grid import GameGrid
from bobpop.core.scheduling import PendingWork, Scheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseTimings:
    """Delays in milliseconds, each measured from the previous step."""

    pop_ms: int = 400
    collapse_ms: int = 100
    gravity_ms: int = 250
    refill_ms: int = 300

    @property
    def total_ms(self) -> int:
        return self.pop_ms + self.collapse_ms + self.gravity_ms + self.refill_ms


Step = Tuple[str, int, Callable[[], None]]


class PhaseSequencer:
    """Runs the resolution steps for the grid, one pending step at a time.

    Each step is scheduled only after the previous one has run, so
    :meth:`cancel` drops the next step and everything after it, never a
    step that has already been applied. The sequencer refers to the grid;
    the grid knows nothing about the sequencer.
    """

    def __init__(
        self,
        grid: GameGrid,
        scheduler: Scheduler,
        timings: PhaseTimings = PhaseTimings(),
    ) -> None:
        self._grid = grid
        self._scheduler = scheduler
        self._timings = timings
        self._pending: Optional[PendingWork] = None

    @property
    def timings(self) -> PhaseTimings:
        return self._timings

    @property
    def busy(self) -> bool:
        return self._pending is not None

    def schedule(self) -> None:
        """Replace any unfinished sequence with a fresh one."""
        self.cancel()
        t = self._timings
        grid = self._grid
        steps: Sequence[Step] = (
            ("remove", t.pop_ms, grid.remove_popped_blocks),
            ("gravity", t.collapse_ms, grid.apply_gravity),
            ("refill", t.gravity_ms, self._refill_and_check),
            ("settle", t.refill_ms, grid.settle_blocks),
        )
        self._schedule_step(steps, 0)

    def cancel(self) -> None:
        pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()
            logger.debug("Cancelled pending phase step")

    def _schedule_step(self, steps: Sequence[Step], index: int) -> None:
        if index >= len(steps):
            return
        name, delay_ms, action = steps[index]

        def _run() -> None:
            self._pending = None
            logger.debug("Phase step: %s", name)
            action()
            self._schedule_step(steps, index + 1)

        self._pending = self._scheduler.call_later(delay_ms, _run)

    def _refill_and_check(self) -> None:
        self._grid.refill_empty_cells()
        self._grid.check_completion()
