from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QVBoxLayout,
    QWidget,
)

from bobpop.core.economy import STORE_PACKAGES, format_countdown
from bobpop.core.session import (
    EXTRA_MOVES_AMOUNT,
    EXTRA_MOVES_COST,
    REFILL_LIVES_COST,
    GameSession,
    RetryOutcome,
)
from bobpop.ui.board_widget import BoardWidget
from bobpop.ui.colors import BoardColors


class MainWindow(QMainWindow):
    def __init__(self, session: GameSession) -> None:
        super().__init__()
        self._session = session
        self._prompt_open = False
        self._prompt_scheduled = False

        self._level_label: Optional[QLabel] = None
        self._moves_label: Optional[QLabel] = None
        self._objectives_label: Optional[QLabel] = None
        self._lives_label: Optional[QLabel] = None
        self._gems_label: Optional[QLabel] = None
        self._board: Optional[BoardWidget] = None

        self.setWindowTitle("Bob Pop")
        self._build_ui()
        session.grid.add_change_listener(self._on_grid_changed)

        self._hud_timer = QTimer(self)
        self._hud_timer.timeout.connect(self._refresh_hud)
        self._hud_timer.start(1000)
        self._refresh_hud()

    def _build_ui(self) -> None:
        root = QWidget()
        root.setStyleSheet(
            f"""
            QWidget {{
                background: qlineargradient(x1:0, y1:0, x2:0, y2:1,
                    stop:0 {BoardColors.BG_TOP}, stop:1 {BoardColors.BG_BOTTOM});
            }}
            QLabel {{ background: transparent; color: {BoardColors.TEXT_PRIMARY}; }}
            """
        )
        layout = QVBoxLayout(root)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(12)

        hud = QHBoxLayout()
        left = QVBoxLayout()
        self._level_label = QLabel()
        self._level_label.setStyleSheet("font-size: 20px; font-weight: 900;")
        self._moves_label = QLabel()
        self._moves_label.setStyleSheet("font-size: 14px; font-weight: 700;")
        self._objectives_label = QLabel()
        self._objectives_label.setStyleSheet(f"font-size: 13px; color: {BoardColors.TEXT_SECONDARY};")
        left.addWidget(self._level_label)
        left.addWidget(self._moves_label)
        left.addWidget(self._objectives_label)

        right = QVBoxLayout()
        self._lives_label = QLabel()
        self._lives_label.setStyleSheet(f"font-size: 14px; font-weight: 800; color: {BoardColors.LIFE};")
        self._gems_label = QLabel()
        self._gems_label.setStyleSheet(f"font-size: 14px; font-weight: 800; color: {BoardColors.GEM};")
        right.addWidget(self._lives_label, 0, Qt.AlignRight)
        right.addWidget(self._gems_label, 0, Qt.AlignRight)

        hud.addLayout(left, 1)
        hud.addLayout(right)
        layout.addLayout(hud)

        self._board = BoardWidget(self._session.grid)
        self._board.tapped.connect(self._on_board_tapped)
        layout.addWidget(self._board, 1)

        self.setCentralWidget(root)

    def _on_board_tapped(self, row: int, col: int) -> None:
        if self._session.grid.is_resolved:
            self._schedule_prompt()
            return
        self._session.tap(row, col)

    def _on_grid_changed(self) -> None:
        self._refresh_hud()
        if self._session.grid.is_resolved:
            self._schedule_prompt()

    def _schedule_prompt(self) -> None:
        if self._prompt_scheduled or self._prompt_open:
            return
        self._prompt_scheduled = True
        # Prompts open outside the grid callback.
        QTimer.singleShot(0, self._show_prompt)

    def _refresh_hud(self) -> None:
        grid = self._session.grid
        economy = self._session.economy
        self._level_label.setText(f"Level {grid.current_level_id}")
        self._moves_label.setText(f"Moves: {grid.moves_remaining}")
        progress = grid.objective_progress
        lines = [
            f"{objective.describe()}: {progress.get(objective, 0)}/{objective.count}"
            for objective in (grid.current_level.objectives if grid.current_level else ())
        ]
        self._objectives_label.setText("\n".join(lines))

        lives_text = f"Lives: {economy.lives}/{economy.max_lives}"
        remaining = economy.time_until_next_life()
        if remaining is not None:
            lives_text += f"  (next in {format_countdown(remaining)})"
        self._lives_label.setText(lives_text)
        self._gems_label.setText(f"Gems: {economy.gems}")

    def _show_prompt(self) -> None:
        self._prompt_scheduled = False
        grid = self._session.grid
        self._prompt_open = True
        try:
            if grid.level_complete:
                QMessageBox.information(self, "Level Complete!", "On to the next level.")
                self._session.advance()
            elif self._session.offers_extra_moves:
                self._prompt_extra_moves()
        finally:
            self._prompt_open = False
        self._refresh_hud()

    def _prompt_extra_moves(self) -> None:
        answer = QMessageBox.question(
            self,
            "Out of Moves!",
            f"Get +{EXTRA_MOVES_AMOUNT} moves for {EXTRA_MOVES_COST} gems?",
            QMessageBox.Yes | QMessageBox.No,
        )
        if answer != QMessageBox.Yes:
            self._decline_extra_moves()
            return
        if self._session.buy_extra_moves():
            return
        if self._open_store(f"Extra moves cost {EXTRA_MOVES_COST} gems."):
            self._prompt_extra_moves()

    def _decline_extra_moves(self) -> None:
        if self._session.decline_extra_moves() is RetryOutcome.OUT_OF_LIVES:
            self._prompt_out_of_lives()

    def _prompt_out_of_lives(self) -> None:
        remaining = self._session.next_life_in()
        message = (
            f"Next life in: {format_countdown(remaining)}"
            if remaining is not None
            else "Wait for a life or refill."
        )
        answer = QMessageBox.question(
            self,
            "Out of Lives!",
            f"{message}\nRefill lives for {REFILL_LIVES_COST} gems?",
            QMessageBox.Yes | QMessageBox.No,
        )
        if answer != QMessageBox.Yes or self._session.refill_lives_and_retry():
            return
        if self._open_store(f"Refilling lives costs {REFILL_LIVES_COST} gems."):
            self._prompt_out_of_lives()

    def _open_store(self, reason: str) -> bool:
        """Offer the gem packs; True once one has been credited."""
        labels = [
            f"{package.description}: {package.gem_amount} gems ({package.price})"
            for package in STORE_PACKAGES
        ]
        choice, ok = QInputDialog.getItem(
            self,
            "Not Enough Gems",
            f"{reason}\nYou have {self._session.economy.gems}. Pick a gem pack:",
            labels,
            0,
            False,
        )
        if not ok or choice not in labels:
            return False
        self._session.purchase_package(STORE_PACKAGES[labels.index(choice)])
        self._refresh_hud()
        return True

    def closeEvent(self, event: QCloseEvent) -> None:
        """Stop pending timers before the window goes away."""
        self._hud_timer.stop()
        self._session.close()
        super().closeEvent(event)
