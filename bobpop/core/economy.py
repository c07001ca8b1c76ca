from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from bobpop.core.scheduling import PendingWork, Scheduler

logger = logging.getLogger(__name__)

STARTING_GEMS = 25
MAX_LIVES = 5
LIFE_REGEN_INTERVAL = 30 * 60.0


@dataclass(frozen=True)
class GemPackage:
    gem_amount: int
    price: str
    description: str


# Simulated store; nothing is charged.
STORE_PACKAGES: Tuple[GemPackage, ...] = (
    GemPackage(50, "$0.99", "Starter Pack"),
    GemPackage(300, "$4.99", "Value Pack"),
    GemPackage(1000, "$9.99", "Big Gem Pack"),
    GemPackage(2500, "$19.99", "Super Gem Pack"),
)


def format_countdown(seconds: float) -> str:
    """Format a duration as ``MM:SS``, clamping negatives to zero."""
    total = max(0, int(math.ceil(seconds)))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


class PlayerEconomy:
    """Gem balance and a lives pool that refills over real time.

    ``clock`` returns seconds (``time.time`` by default). When a
    ``scheduler`` is given, a single pending timer grants the next life;
    without one, regeneration only happens when :meth:`start_regeneration`
    is called (for example when the app comes back to the foreground).
    """

    def __init__(
        self,
        gems: int = STARTING_GEMS,
        lives: int = MAX_LIVES,
        max_lives: int = MAX_LIVES,
        regen_interval: float = LIFE_REGEN_INTERVAL,
        last_regen_time: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        if gems < 0:
            raise ValueError("gems must not be negative")
        if max_lives <= 0 or not 0 <= lives <= max_lives:
            raise ValueError("lives must be within [0, max_lives]")
        if regen_interval <= 0:
            raise ValueError("regen_interval must be positive")
        self._gems = gems
        self._lives = lives
        self._max_lives = max_lives
        self._regen_interval = float(regen_interval)
        self._last_regen_time = last_regen_time
        self._clock = clock
        self._scheduler = scheduler
        self._regen_timer: Optional[PendingWork] = None

        if self._lives < self._max_lives and self._last_regen_time is None:
            self._last_regen_time = self._clock()
        self.start_regeneration()

    @property
    def gems(self) -> int:
        return self._gems

    @property
    def lives(self) -> int:
        return self._lives

    @property
    def max_lives(self) -> int:
        return self._max_lives

    @property
    def regen_interval(self) -> float:
        return self._regen_interval

    @property
    def last_regen_time(self) -> Optional[float]:
        return self._last_regen_time

    @property
    def regenerating(self) -> bool:
        return self._regen_timer is not None

    # ------------------------------------------------------------------
    # Gems
    # ------------------------------------------------------------------

    def add_gems(self, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must not be negative")
        self._gems += amount
        logger.info("Gems updated: %d", self._gems)

    def spend_gems(self, amount: int) -> bool:
        """Spend ``amount`` gems if the balance covers it; never partially."""
        if amount < 0:
            raise ValueError("amount must not be negative")
        if self._gems < amount:
            logger.info("Not enough gems. Current: %d, tried to spend: %d", self._gems, amount)
            return False
        self._gems -= amount
        logger.info("Gems updated: %d", self._gems)
        return True

    def credit_package(self, package: GemPackage) -> None:
        logger.info("Simulated purchase of %s (%d gems)", package.description, package.gem_amount)
        self.add_gems(package.gem_amount)

    # ------------------------------------------------------------------
    # Lives
    # ------------------------------------------------------------------

    def use_life(self) -> bool:
        if self._lives <= 0:
            logger.info("Attempted to use a life, but none remain")
            return False
        self._lives -= 1
        logger.info("Life used. Lives remaining: %d", self._lives)
        if self._last_regen_time is None:
            self._last_regen_time = self._clock()
        self.start_regeneration()
        return True

    def add_life(self) -> None:
        if self._lives >= self._max_lives:
            return
        self._lives += 1
        logger.info("Life added. Lives: %d", self._lives)
        if self._lives == self._max_lives:
            self._stop_regeneration()
            logger.info("Lives full; regeneration stopped")

    def refill_lives_with_gems(self, cost: int) -> bool:
        if not self.spend_gems(cost):
            logger.info("Not enough gems to refill lives")
            return False
        self._lives = self._max_lives
        self._stop_regeneration()
        logger.info("Lives refilled with gems")
        return True

    def time_until_next_life(self) -> Optional[float]:
        """Seconds until the next life, or None when lives are full."""
        if self._lives >= self._max_lives or self._last_regen_time is None:
            return None
        elapsed = self._clock() - self._last_regen_time
        return max(0.0, self._regen_interval - elapsed)

    # ------------------------------------------------------------------
    # Regeneration
    # ------------------------------------------------------------------

    def start_regeneration(self) -> None:
        """Grant every life already earned, then wait for the next one."""
        self._cancel_timer()
        if self._lives >= self._max_lives:
            self._last_regen_time = None
            return
        now = self._clock()
        if self._last_regen_time is None:
            self._last_regen_time = now

        elapsed = now - self._last_regen_time
        earned = int(elapsed // self._regen_interval)
        if earned > 0:
            granted = min(earned, self._max_lives - self._lives)
            logger.info("Regenerating %d lives", granted)
            self._last_regen_time += earned * self._regen_interval
            self._lives += granted
            if self._lives >= self._max_lives:
                self._last_regen_time = None
                logger.info("Lives full; regeneration stopped")
                return

        if self._scheduler is None:
            return
        remaining = self._regen_interval - (now - self._last_regen_time)
        logger.info("Next life in %s", format_countdown(remaining))
        self._regen_timer = self._scheduler.call_later(
            int(math.ceil(remaining * 1000)), self._on_regen_timer
        )

    def close(self) -> None:
        """Cancel the pending regeneration timer."""
        self._cancel_timer()

    def _on_regen_timer(self) -> None:
        self._regen_timer = None
        self.start_regeneration()

    def _stop_regeneration(self) -> None:
        self._last_regen_time = None
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        timer, self._regen_timer = self._regen_timer, None
        if timer is not None:
            timer.cancel()
