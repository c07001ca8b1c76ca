"""Tests for bobpop.core.session – taps, level flow and paid continues."""

from __future__ import annotations

import pytest

from bobpop.core.economy import STORE_PACKAGES, PlayerEconomy
from bobpop.core.levels import BoosterType, PopColorObjective
from bobpop.core.scheduling import ManualScheduler
from bobpop.core.session import (
    EXTRA_MOVES_AMOUNT,
    EXTRA_MOVES_COST,
    REFILL_LIVES_COST,
    GameSession,
    RetryOutcome,
)

from conftest import B, G, P, R, Y, make_grid

LAYOUT = [
    [B, B, R, G],
    [Y, B, R, G],
    [Y, B, B, R],
    [G, R, P, B],
]


@pytest.fixture()
def build(make_repo, scheduler: ManualScheduler):
    """Session factory over ``LAYOUT``; economy uses the manual clock but no timer."""

    def _build(*levels, gems: int = 25, lives: int = 5) -> GameSession:
        grid = make_grid(make_repo(*levels), LAYOUT)
        economy = PlayerEconomy(gems=gems, lives=lives, clock=scheduler.time)
        return GameSession(grid, economy, scheduler)

    return _build


def fail_level(session: GameSession, scheduler: ManualScheduler) -> None:
    session.grid.initialize_grid(LAYOUT)
    session.tap(0, 0)
    scheduler.run_all()
    assert session.grid.level_failed


# ---------------------------------------------------------------------------
# Starting levels
# ---------------------------------------------------------------------------

class TestStartLevel:
    def test_booster_charged(self, build):
        s = build((1, 10, [(B, 50)]))
        assert s.start_level(1, [BoosterType.EXTRA_INITIAL_MOVES]) is True
        assert s.economy.gems == 15
        assert s.grid.moves_remaining == 13

    def test_unaffordable_boosters(self, build):
        s = build((1, 10, [(B, 50)]), (2, 20, [(R, 5)]))
        boosters = [BoosterType.EXTRA_INITIAL_MOVES, BoosterType.STARTS_WITH_ROCKET]
        assert s.start_level(2, boosters) is False
        assert s.economy.gems == 25
        assert s.grid.current_level_id == 1

    def test_duplicate_boosters_charged_once(self, build):
        s = build((1, 10, [(B, 50)]))
        s.start_level(1, [BoosterType.EXTRA_INITIAL_MOVES, BoosterType.EXTRA_INITIAL_MOVES])
        assert s.economy.gems == 15

    def test_unknown_level_costs_nothing(self, build):
        s = build((1, 10, [(B, 50)]))
        assert s.start_level(9, [BoosterType.EXTRA_INITIAL_MOVES]) is False
        assert s.economy.gems == 25
        assert s.grid.current_level_id == 1

    def test_cancels_pending_steps(self, build, scheduler):
        s = build((1, 10, [(B, 50)]), (2, 20, [(R, 5)]))
        s.tap(0, 0)
        assert s.resolving
        s.start_level(2)
        assert not s.resolving
        assert scheduler.run_all() == 0
        assert all(b is not None for row in s.grid.blocks for b in row)


# ---------------------------------------------------------------------------
# Taps
# ---------------------------------------------------------------------------

class TestTap:
    def test_valid_pop_schedules_resolution(self, build, scheduler):
        s = build((1, 10, [(B, 50)]))
        assert len(s.tap(0, 0)) == 5
        assert s.resolving
        scheduler.run_all()
        assert not s.resolving
        assert all(b is not None for row in s.grid.blocks for b in row)

    def test_no_op_tap_schedules_nothing(self, build, scheduler):
        s = build((1, 10, [(B, 50)]))
        assert s.tap(3, 3) == []
        assert not s.resolving
        assert scheduler.pending_count == 0

    def test_tap_during_resolution(self, build, scheduler):
        s = build((1, 10, [(R, 50)]))
        s.tap(0, 0)
        scheduler.advance(100)
        assert len(s.tap(0, 2)) == 2
        scheduler.run_all()
        assert s.grid.objective_progress[PopColorObjective(R, 50)] == 2
        assert all(b is not None for row in s.grid.blocks for b in row)

    def test_win_through_scheduler(self, make_repo, scheduler, no_blue_rng):
        fill = [R, G, Y, P]
        layout = [[fill[(r + 2 * c) % 4] for c in range(8)] for r in range(10)]
        for c in (0, 2, 4, 6):
            for r in (7, 8, 9):
                layout[r][c] = B
        grid = make_grid(make_repo((1, 15, [(B, 10)])), layout, rng=no_blue_rng)
        s = GameSession(grid, PlayerEconomy(clock=scheduler.time), scheduler)

        for c in (0, 2, 4, 6):
            assert len(s.tap(9, c)) == 3
            scheduler.run_all()

        assert grid.level_complete
        assert not grid.level_failed
        assert grid.moves_remaining == 11


# ---------------------------------------------------------------------------
# Advancing
# ---------------------------------------------------------------------------

class TestAdvance:
    def test_in_progress(self, build):
        s = build((1, 10, [(B, 50)]))
        assert s.advance() is False

    def test_after_win(self, build, scheduler):
        s = build((1, 10, [(B, 2)]), (2, 20, [(R, 5)]))
        s.tap(0, 0)
        scheduler.run_all()
        assert s.advance() is True
        assert s.grid.current_level_id == 2

    def test_cancels_unfinished_steps(self, build, scheduler):
        s = build((1, 1, [(B, 2)]), (2, 20, [(R, 5)]))
        s.tap(0, 0)
        scheduler.advance(750)
        assert s.grid.level_complete
        assert s.resolving
        s.advance()
        assert not s.resolving
        assert scheduler.run_all() == 0


# ---------------------------------------------------------------------------
# Out of moves
# ---------------------------------------------------------------------------

class TestExtraMoves:
    def test_offered_only_when_failed(self, build, scheduler):
        s = build((1, 1, [(B, 50)]))
        assert not s.offers_extra_moves
        fail_level(s, scheduler)
        assert s.offers_extra_moves

    def test_buy(self, build, scheduler):
        s = build((1, 1, [(B, 50)]))
        fail_level(s, scheduler)
        assert s.buy_extra_moves() is True
        assert s.economy.gems == 25 - EXTRA_MOVES_COST
        assert s.grid.moves_remaining == EXTRA_MOVES_AMOUNT
        assert not s.grid.level_failed

    def test_buy_without_gems(self, build, scheduler):
        s = build((1, 1, [(B, 50)]), gems=10)
        fail_level(s, scheduler)
        assert s.buy_extra_moves() is False
        assert s.economy.gems == 10
        assert s.grid.level_failed

    def test_short_on_gems_keeps_lives_and_failure(self, build, scheduler):
        s = build((1, 1, [(B, 50)]), gems=0)
        fail_level(s, scheduler)
        assert s.buy_extra_moves() is False
        assert s.economy.lives == 5
        assert s.grid.level_failed

        s.purchase_package(STORE_PACKAGES[0])
        assert s.economy.gems == 50
        assert s.grid.level_failed
        assert s.buy_extra_moves() is True
        assert s.economy.gems == 50 - EXTRA_MOVES_COST

    def test_buy_while_playing(self, build):
        s = build((1, 1, [(B, 50)]))
        assert s.buy_extra_moves() is False
        assert s.economy.gems == 25


class TestDeclineExtraMoves:
    def test_not_failed(self, build):
        s = build((1, 1, [(B, 50)]))
        assert s.decline_extra_moves() is RetryOutcome.NOT_FAILED
        assert s.economy.lives == 5

    def test_retry_costs_a_life(self, build, scheduler):
        s = build((1, 1, [(B, 50)]))
        fail_level(s, scheduler)
        assert s.decline_extra_moves() is RetryOutcome.RETRYING
        assert s.economy.lives == 4
        assert not s.grid.level_failed
        assert s.grid.moves_remaining == 1

    def test_last_life(self, build, scheduler):
        s = build((1, 1, [(B, 50)]), lives=1)
        fail_level(s, scheduler)
        assert s.decline_extra_moves() is RetryOutcome.OUT_OF_LIVES
        assert s.economy.lives == 0
        assert s.grid.level_failed
        assert 0 < s.next_life_in() <= 1800.0


class TestRefillLives:
    def test_refill_and_retry(self, build, scheduler):
        s = build((1, 1, [(B, 50)]), lives=1)
        fail_level(s, scheduler)
        s.decline_extra_moves()
        assert s.refill_lives_and_retry() is True
        assert s.economy.lives == 5
        assert s.economy.gems == 25 - REFILL_LIVES_COST
        assert not s.grid.level_failed
        assert s.next_life_in() is None

    def test_refill_without_gems(self, build, scheduler):
        s = build((1, 1, [(B, 50)]), lives=1, gems=5)
        fail_level(s, scheduler)
        s.decline_extra_moves()
        assert s.refill_lives_and_retry() is False
        assert s.economy.lives == 0
        assert s.grid.level_failed


# ---------------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------------

class TestClose:
    def test_cancels_everything(self, make_repo, scheduler):
        grid = make_grid(make_repo((1, 10, [(B, 50)])), LAYOUT)
        economy = PlayerEconomy(lives=2, clock=scheduler.time, scheduler=scheduler)
        s = GameSession(grid, economy, scheduler)
        s.tap(0, 0)
        assert scheduler.pending_count == 2
        s.close()
        assert scheduler.pending_count == 0
        assert not s.resolving
        assert not economy.regenerating
