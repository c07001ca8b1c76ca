"""Board rendering: plain rounded cells, one per block."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from PySide6.QtCore import QElapsedTimer, QEasingCurve, QRectF, Qt, QVariantAnimation, Signal
from PySide6.QtGui import QColor, QPainter, QPen
from PySide6.QtWidgets import QSizePolicy, QWidget

from bobpop.core.blocks import Block, BlockPhase, PopEvent
from bobpop.core.grid import GameGrid
from bobpop.ui.colors import BoardColors, blend_hex, block_hex

logger = logging.getLogger(__name__)

MOVE_MS = 240


class BoardWidget(QWidget):
    """Draws the grid and turns clicks into ``tapped(row, col)``.

    Falling and appearing blocks glide from their visual slot to their
    board slot over ``MOVE_MS``. Each block keeps the time its move
    started, so a refill arriving mid-fall does not restart earlier moves.
    """

    tapped = Signal(int, int)

    def __init__(self, grid: GameGrid, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._grid = grid
        self._flashes: List[PopEvent] = []
        self._moving: Dict[int, int] = {}
        self._easing = QEasingCurve(QEasingCurve.OutCubic)
        self._clock = QElapsedTimer()
        self._clock.start()

        # Drives repaints only; per-block progress comes from the clock.
        self._motion = QVariantAnimation(self)
        self._motion.setStartValue(0.0)
        self._motion.setEndValue(1.0)
        self._motion.setDuration(MOVE_MS)
        self._motion.valueChanged.connect(lambda _value: self.update())

        self.setMinimumSize(grid.columns * 32, grid.rows * 32)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.setCursor(Qt.PointingHandCursor)
        grid.add_change_listener(self._on_grid_changed)
        grid.add_pop_listener(self._on_popped)

    def cell_size(self) -> float:
        return min(self.width() / self._grid.columns, self.height() / self._grid.rows)

    def board_rect(self) -> QRectF:
        size = self.cell_size()
        w = size * self._grid.columns
        h = size * self._grid.rows
        return QRectF((self.width() - w) / 2, (self.height() - h) / 2, w, h)

    def draw_position(self, block: Block) -> Tuple[float, float]:
        """(row, col) the block is drawn at right now, in cell units."""
        started = self._moving.get(block.id)
        if started is None:
            return float(block.visual_row), float(block.visual_col)
        t = min(1.0, (self._clock.elapsed() - started) / MOVE_MS)
        t = self._easing.valueForProgress(t)
        return (
            block.visual_row + (block.row - block.visual_row) * t,
            block.visual_col + (block.col - block.visual_col) * t,
        )

    def _on_grid_changed(self) -> None:
        now = self._clock.elapsed()
        moving: Dict[int, int] = {}
        started = False
        for block in self._grid.iter_blocks():
            if block.phase is BlockPhase.POPPING or block.is_settled:
                continue
            if block.id not in self._moving:
                started = True
            moving[block.id] = self._moving.get(block.id, now)
        self._moving = moving
        if started:
            self._motion.stop()
            self._motion.start()
        self.update()

    def _on_popped(self, events: List[PopEvent]) -> None:
        if self.cell_size() <= 0:
            logger.debug("Board has no geometry yet; skipping pop effect")
            return
        self._flashes = events
        self.update()

    def mousePressEvent(self, event) -> None:
        rect = self.board_rect()
        size = self.cell_size()
        pos = event.position()
        if size > 0 and rect.contains(pos):
            col = int((pos.x() - rect.x()) // size)
            row = int((pos.y() - rect.y()) // size)
            self.tapped.emit(row, col)
        super().mousePressEvent(event)

    def paintEvent(self, event) -> None:
        super().paintEvent(event)
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, True)

        rect = self.board_rect()
        size = self.cell_size()
        painter.setPen(Qt.NoPen)
        painter.setBrush(QColor(BoardColors.BOARD_BG))
        painter.drawRoundedRect(rect, 12, 12)

        pad = max(2.0, size * 0.06)
        radius = size * 0.2
        # Appearing blocks start above the board.
        painter.setClipRect(rect)
        painter.setPen(QPen(QColor(BoardColors.CELL_BORDER), 1))
        for block in self._grid.iter_blocks():
            color = block_hex(block.color)
            if block.phase is BlockPhase.POPPING:
                color = blend_hex(color, BoardColors.BOARD_BG, 0.6)
            painter.setBrush(QColor(color))
            row, col = self.draw_position(block)
            cell = QRectF(
                rect.x() + col * size + pad,
                rect.y() + row * size + pad,
                size - 2 * pad,
                size - 2 * pad,
            )
            painter.drawRoundedRect(cell, radius, radius)

        if self._flashes:
            painter.setBrush(Qt.NoBrush)
            for flash in self._flashes:
                painter.setPen(QPen(QColor(block_hex(flash.color)), 3))
                center_x = rect.x() + (flash.col + 0.5) * size
                center_y = rect.y() + (flash.row + 0.5) * size
                painter.drawEllipse(QRectF(center_x - size * 0.45, center_y - size * 0.45, size * 0.9, size * 0.9))
            self._flashes = []
        painter.end()
