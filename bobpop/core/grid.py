from __future__ import annotations

import logging
import random
from collections import deque
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from bobpop.core.blocks import PALETTE, Block, BlockColor, BlockPhase, PopEvent
from bobpop.core.levels import (
    BoosterType,
    LevelDefinition,
    LevelRepository,
    Objective,
    PopColorObjective,
    default_levels,
)

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = 8
DEFAULT_ROWS = 10
MIN_GROUP_SIZE = 2
EXTRA_MOVES_BOOSTER_BONUS = 3

Board = List[List[Optional[Block]]]
PopListener = Callable[[List[PopEvent]], None]
ChangeListener = Callable[[], None]


class GameGrid:
    """Board state, block matching and level rules for one play session.

    All mutation goes through the public methods below; the presentation
    layer reads state through the properties and is told about changes via
    the change and pop listeners. The delayed remove/gravity/refill steps
    are driven from outside (see ``bobpop.core.phases.PhaseSequencer``).

    ``rng`` only needs a ``choice`` method, so tests can pass a seeded
    ``random.Random`` or a scripted stub.
    """

    def __init__(
        self,
        columns: int = DEFAULT_COLUMNS,
        rows: int = DEFAULT_ROWS,
        levels: Optional[LevelRepository] = None,
        rng: Optional[random.Random] = None,
        start_level: Optional[int] = None,
    ) -> None:
        if columns <= 0 or rows <= 0:
            raise ValueError("Grid needs at least one row and one column")
        self._columns = columns
        self._rows = rows
        self._levels = levels if levels is not None else default_levels()
        self._rng = rng if rng is not None else random.Random()
        self._board: Board = [[None] * columns for _ in range(rows)]

        self._current_level: Optional[LevelDefinition] = None
        self._current_level_id: int = 0
        self._moves_remaining = 0
        self._objective_progress: Dict[Objective, int] = {}
        self._level_complete = False
        self._level_failed = False
        self._active_boosters: FrozenSet[BoosterType] = frozenset()

        self._pop_listeners: List[PopListener] = []
        self._change_listeners: List[ChangeListener] = []

        first_id = self._levels.first().id
        if start_level is None or not self.load_level(start_level):
            self.load_level(first_id)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def columns(self) -> int:
        return self._columns

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def levels(self) -> LevelRepository:
        return self._levels

    @property
    def current_level(self) -> Optional[LevelDefinition]:
        return self._current_level

    @property
    def current_level_id(self) -> int:
        return self._current_level_id

    @property
    def moves_remaining(self) -> int:
        return self._moves_remaining

    @property
    def level_complete(self) -> bool:
        return self._level_complete

    @property
    def level_failed(self) -> bool:
        return self._level_failed

    @property
    def is_resolved(self) -> bool:
        return self._level_complete or self._level_failed

    @property
    def active_boosters(self) -> FrozenSet[BoosterType]:
        return self._active_boosters

    @property
    def objective_progress(self) -> Dict[Objective, int]:
        return dict(self._objective_progress)

    @property
    def blocks(self) -> Board:
        """Row-major copy of the board. Blocks themselves are shared."""
        return [list(row) for row in self._board]

    def block_at(self, row: int, col: int) -> Optional[Block]:
        if not self.in_bounds(row, col):
            return None
        return self._board[row][col]

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self._rows and 0 <= col < self._columns

    def color_layout(self) -> List[List[Optional[BlockColor]]]:
        return [[b.color if b is not None else None for b in row] for row in self._board]

    def iter_blocks(self) -> Iterable[Block]:
        for row in self._board:
            for block in row:
                if block is not None:
                    yield block

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_pop_listener(self, listener: PopListener) -> None:
        self._pop_listeners.append(listener)

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._change_listeners.append(listener)

    def _notify_changed(self) -> None:
        for listener in list(self._change_listeners):
            listener()

    def _notify_popped(self, events: List[PopEvent]) -> None:
        for listener in list(self._pop_listeners):
            listener(list(events))

    # ------------------------------------------------------------------
    # Level management
    # ------------------------------------------------------------------

    def load_level(self, level_id: int, boosters: Iterable[BoosterType] = ()) -> bool:
        """Reset the session for ``level_id``. Unknown ids leave state untouched."""
        level = self._levels.get(level_id)
        if level is None:
            logger.warning("Level %s not found; keeping level %s", level_id, self._current_level_id)
            return False

        self._current_level = level
        self._current_level_id = level.id
        self._moves_remaining = level.max_moves
        self._level_complete = False
        self._level_failed = False
        self._objective_progress = {objective: 0 for objective in level.objectives}
        self._active_boosters = frozenset(boosters)

        if BoosterType.EXTRA_INITIAL_MOVES in self._active_boosters:
            self._moves_remaining += EXTRA_MOVES_BOOSTER_BONUS
            logger.info(
                "Booster applied: +%d initial moves (%d total)",
                EXTRA_MOVES_BOOSTER_BONUS,
                self._moves_remaining,
            )

        self.initialize_grid()

        if BoosterType.STARTS_WITH_ROCKET in self._active_boosters:
            # TODO: place a rocket block once special blocks exist on the board.
            logger.info("Booster recorded: start with rocket (no rocket placed)")

        logger.info("Loaded level %d (%d moves)", level.id, self._moves_remaining)
        self._notify_changed()
        return True

    def initialize_grid(self, layout: Optional[Sequence[Sequence[BlockColor]]] = None) -> None:
        """Fill every cell with a fresh idle block.

        Colors come from the random source unless ``layout`` gives them row by
        row. Groups that happen to form are left on the board.
        """
        if layout is not None:
            if len(layout) != self._rows or any(len(row) != self._columns for row in layout):
                raise ValueError(f"Layout must be {self._rows}x{self._columns}")
        board: Board = [[None] * self._columns for _ in range(self._rows)]
        for r in range(self._rows):
            for c in range(self._columns):
                color = layout[r][c] if layout is not None else self._random_color()
                board[r][c] = Block(color=color, row=r, col=c)
        self._board = board

    def advance(self) -> bool:
        """Go to the next level after a win, or retry after a loss."""
        if self._level_complete:
            next_id = self._current_level_id + 1
            if next_id in self._levels:
                return self.load_level(next_id)
            first_id = self._levels.first().id
            logger.info("All levels complete; starting over from level %d", first_id)
            return self.load_level(first_id)
        if self._level_failed:
            logger.info("Retrying level %d", self._current_level_id)
            return self.load_level(self._current_level_id)
        logger.info("Level %d still in progress; nothing to advance", self._current_level_id)
        return False

    def add_extra_moves(self, count: int) -> bool:
        """Grant moves after running out, clearing the failed state."""
        if not self._level_failed:
            logger.info("Cannot add extra moves, level not in failed state")
            return False
        self._moves_remaining += count
        self._level_failed = False
        logger.info("%d extra moves added (%d remaining)", count, self._moves_remaining)
        self._notify_changed()
        return True

    # ------------------------------------------------------------------
    # Play
    # ------------------------------------------------------------------

    def tap(self, row: int, col: int) -> List[PopEvent]:
        """Pop the group containing (row, col).

        Returns the popped blocks in group order, or an empty list when the
        tap does nothing. Popped blocks stay on the board in the ``popping``
        phase until :meth:`remove_popped_blocks` runs.
        """
        if self._level_complete or self._level_failed:
            logger.info("Level already resolved; tap ignored")
            return []
        if self._moves_remaining <= 0:
            logger.info("No moves remaining; tap ignored")
            return []
        if not self.in_bounds(row, col):
            logger.warning("Tap outside the board at (%d, %d)", row, col)
            return []
        block = self._board[row][col]
        if block is None:
            logger.info("Tapped an empty cell at (%d, %d)", row, col)
            return []
        if block.phase is BlockPhase.POPPING:
            logger.info("Tapped a block that is already popping")
            return []

        group = self.find_connected_group(row, col)
        if len(group) < MIN_GROUP_SIZE:
            logger.info("Group too small to pop (need >= %d)", MIN_GROUP_SIZE)
            return []

        self._moves_remaining -= 1
        events: List[PopEvent] = []
        for member in group:
            member.phase = BlockPhase.POPPING
            self._record_pop(member.color)
            events.append(PopEvent(member.row, member.col, member.color))

        logger.info(
            "Popped %d %s blocks (%d moves left)",
            len(events),
            block.color.value,
            self._moves_remaining,
        )
        self._notify_popped(events)
        self._notify_changed()
        return events

    def find_connected_group(self, row: int, col: int) -> List[Block]:
        """Breadth-first search over orthogonal neighbours of the same color.

        Blocks already popping are not part of any group. The result is in
        visit order, starting with the block at (row, col).
        """
        start = self.block_at(row, col)
        if start is None or start.phase is BlockPhase.POPPING:
            return []

        group: List[Block] = []
        visited = {start.id}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            group.append(current)
            for r, c in (
                (current.row - 1, current.col),
                (current.row + 1, current.col),
                (current.row, current.col - 1),
                (current.row, current.col + 1),
            ):
                neighbor = self.block_at(r, c)
                if (
                    neighbor is not None
                    and neighbor.id not in visited
                    and neighbor.color is start.color
                    and neighbor.phase is not BlockPhase.POPPING
                ):
                    visited.add(neighbor.id)
                    queue.append(neighbor)
        return group

    def _record_pop(self, color: BlockColor) -> None:
        for objective, progress in self._objective_progress.items():
            if isinstance(objective, PopColorObjective) and objective.color is color:
                if progress < objective.count:
                    self._objective_progress[objective] = progress + 1

    # ------------------------------------------------------------------
    # Resolution steps
    # ------------------------------------------------------------------

    def remove_popped_blocks(self) -> int:
        removed = 0
        for r in range(self._rows):
            for c in range(self._columns):
                block = self._board[r][c]
                if block is not None and block.phase is BlockPhase.POPPING:
                    self._board[r][c] = None
                    removed += 1
        if removed:
            self._notify_changed()
        return removed

    def apply_gravity(self) -> int:
        """Compact every column toward the bottom row, keeping block order."""
        moved = 0
        for c in range(self._columns):
            write_row = self._rows - 1
            for r in range(self._rows - 1, -1, -1):
                block = self._board[r][c]
                if block is None:
                    continue
                if r != write_row:
                    self._board[write_row][c] = block
                    self._board[r][c] = None
                    block.move_to(write_row, c)
                    moved += 1
                write_row -= 1
        if moved:
            self._notify_changed()
        return moved

    def refill_empty_cells(self) -> List[Block]:
        """Drop new random blocks into every empty cell.

        New blocks start drawing above the board, stacked in the order they
        will land, and are marked ``appearing``.
        """
        created: List[Block] = []
        for c in range(self._columns):
            empties = [r for r in range(self._rows) if self._board[r][c] is None]
            for r in empties:
                block = Block(
                    color=self._random_color(),
                    row=r,
                    col=c,
                    visual_row=r - len(empties),
                    visual_col=c,
                    phase=BlockPhase.APPEARING,
                )
                self._board[r][c] = block
                created.append(block)
        if created:
            self._notify_changed()
        return created

    def settle_blocks(self) -> None:
        """Bring falling and appearing blocks to rest at their slots."""
        changed = False
        for block in self.iter_blocks():
            if block.phase is BlockPhase.POPPING:
                continue
            if block.phase is not BlockPhase.IDLE or not block.is_settled:
                block.settle()
                changed = True
        if changed:
            self._notify_changed()

    def check_completion(self) -> None:
        """Mark the level complete or failed. Completion wins ties."""
        if self._level_complete or self._current_level is None:
            return
        all_met = all(
            self._objective_progress.get(objective, 0) >= objective.count
            for objective in self._current_level.objectives
        )
        if all_met:
            self._level_complete = True
            self._level_failed = False
            logger.info("Level %d complete", self._current_level_id)
            self._notify_changed()
        elif self._moves_remaining <= 0 and not self._level_failed:
            self._level_failed = True
            logger.info("Level %d failed: out of moves", self._current_level_id)
            self._notify_changed()

    def _random_color(self) -> BlockColor:
        return self._rng.choice(PALETTE)
