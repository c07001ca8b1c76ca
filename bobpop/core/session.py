from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, List, Optional

from bobpop.core.blocks import PopEvent
from bobpop.core.economy import GemPackage, PlayerEconomy
from bobpop.core.grid import GameGrid
from bobpop.core.levels import BoosterType
from bobpop.core.phases import PhaseSequencer, PhaseTimings
from bobpop.core.scheduling import Scheduler

logger = logging.getLogger(__name__)

EXTRA_MOVES_COST = 15
EXTRA_MOVES_AMOUNT = 5
REFILL_LIVES_COST = 10


class RetryOutcome(Enum):
    RETRYING = "retrying"
    OUT_OF_LIVES = "out_of_lives"
    NOT_FAILED = "not_failed"


class GameSession:
    """Drives one player's play through the levels.

    Taps go to the grid; a valid pop starts (or restarts) the delayed
    resolution steps. Level transitions cancel any unfinished steps first.
    The out-of-moves and out-of-lives prompts of the game map onto
    :meth:`buy_extra_moves`, :meth:`decline_extra_moves` and
    :meth:`refill_lives_and_retry`.
    """

    def __init__(
        self,
        grid: GameGrid,
        economy: PlayerEconomy,
        scheduler: Scheduler,
        timings: PhaseTimings = PhaseTimings(),
    ) -> None:
        self._grid = grid
        self._economy = economy
        self._sequencer = PhaseSequencer(grid, scheduler, timings)

    @property
    def grid(self) -> GameGrid:
        return self._grid

    @property
    def economy(self) -> PlayerEconomy:
        return self._economy

    @property
    def resolving(self) -> bool:
        """True while removal, gravity or refill steps are still pending."""
        return self._sequencer.busy

    @property
    def offers_extra_moves(self) -> bool:
        return self._grid.level_failed and self._grid.moves_remaining <= 0

    def start_level(self, level_id: int, boosters: Iterable[BoosterType] = ()) -> bool:
        """Load a level, paying for the chosen boosters up front."""
        chosen = frozenset(boosters)
        if level_id not in self._grid.levels:
            logger.warning("Level %s not found", level_id)
            return False
        cost = sum(booster.gem_cost for booster in chosen)
        if cost and not self._economy.spend_gems(cost):
            logger.info("Cannot afford boosters (%d gems)", cost)
            return False
        self._sequencer.cancel()
        return self._grid.load_level(level_id, chosen)

    def tap(self, row: int, col: int) -> List[PopEvent]:
        events = self._grid.tap(row, col)
        if events:
            self._sequencer.schedule()
        return events

    def advance(self) -> bool:
        """Continue after the level resolved: next level on a win, retry on a loss."""
        if not self._grid.is_resolved:
            logger.info("Level still in progress; advance ignored")
            return False
        self._sequencer.cancel()
        return self._grid.advance()

    def buy_extra_moves(self) -> bool:
        if not self._grid.level_failed:
            logger.info("Extra moves are only offered after running out of moves")
            return False
        if not self._economy.spend_gems(EXTRA_MOVES_COST):
            return False
        return self._grid.add_extra_moves(EXTRA_MOVES_AMOUNT)

    def decline_extra_moves(self) -> RetryOutcome:
        """Spend a life on the failed attempt and retry if any lives remain."""
        if not self._grid.level_failed:
            return RetryOutcome.NOT_FAILED
        self._economy.use_life()
        if self._economy.lives > 0:
            self.advance()
            return RetryOutcome.RETRYING
        logger.info("Out of lives")
        return RetryOutcome.OUT_OF_LIVES

    def refill_lives_and_retry(self) -> bool:
        if not self._economy.refill_lives_with_gems(REFILL_LIVES_COST):
            return False
        if self._grid.level_failed:
            self.advance()
        return True

    def purchase_package(self, package: GemPackage) -> None:
        """Credit a store package. Level state is left as it is."""
        self._economy.credit_package(package)

    def next_life_in(self) -> Optional[float]:
        return self._economy.time_until_next_life()

    def close(self) -> None:
        self._sequencer.cancel()
        self._economy.close()
