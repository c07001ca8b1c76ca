from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional


class BlockColor(Enum):
    RED = "red"
    ORANGE = "orange"
    BLUE = "blue"
    GREEN = "green"
    YELLOW = "yellow"
    PURPLE = "purple"


PALETTE: tuple[BlockColor, ...] = tuple(BlockColor)


class BlockPhase(Enum):
    """Animation lifecycle of a block. Drives presentation only."""

    IDLE = "idle"
    POPPING = "popping"
    FALLING = "falling"
    APPEARING = "appearing"


_block_ids = itertools.count(1)


def _next_block_id() -> int:
    return next(_block_ids)


@dataclass(eq=False)
class Block:
    """A colored tile on the board.

    ``row``/``col`` is the logical slot the block occupies. ``visual_row``/
    ``visual_col`` is where the presentation layer should start drawing it;
    it lags the logical slot while the block is falling or appearing and is
    brought back in line by :meth:`settle`.

    Equality and hashing use ``id`` only, so a block keeps its identity
    while it moves around the board.
    """

    color: BlockColor
    row: int
    col: int
    visual_row: Optional[int] = None
    visual_col: Optional[int] = None
    phase: BlockPhase = BlockPhase.IDLE
    id: int = field(default_factory=_next_block_id)

    def __post_init__(self) -> None:
        if self.visual_row is None:
            self.visual_row = self.row
        if self.visual_col is None:
            self.visual_col = self.col

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Block):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_settled(self) -> bool:
        """True when the visual position matches the logical slot."""
        return self.visual_row == self.row and self.visual_col == self.col

    def move_to(self, row: int, col: int) -> None:
        """Move to a new logical slot; the visual position stays behind."""
        self.row = row
        self.col = col
        self.phase = BlockPhase.FALLING

    def settle(self) -> None:
        self.visual_row = self.row
        self.visual_col = self.col
        self.phase = BlockPhase.IDLE


class PopEvent(NamedTuple):
    """One popped block, as reported to presentation listeners."""

    row: int
    col: int
    color: BlockColor
