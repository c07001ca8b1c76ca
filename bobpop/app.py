"""Application entry point and setup for Bob Pop."""

import logging
import sys

from PySide6.QtWidgets import QApplication

from bobpop.core.economy import PlayerEconomy
from bobpop.core.grid import GameGrid
from bobpop.core.levels import default_levels
from bobpop.core.scheduling import QtScheduler
from bobpop.core.session import GameSession
from bobpop.ui.main_window import MainWindow


def configure_logging() -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_session(scheduler: QtScheduler) -> GameSession:
    """Wire the grid, economy and phase timing onto one scheduler."""
    grid = GameGrid(levels=default_levels())
    economy = PlayerEconomy(scheduler=scheduler)
    return GameSession(grid, economy, scheduler)


def run() -> None:
    """Initialize the application and start the main window."""
    configure_logging()
    app = QApplication(sys.argv)
    app.setApplicationName("Bob Pop")
    app.setApplicationDisplayName("Bob Pop")

    session = build_session(QtScheduler(app))
    window = MainWindow(session)
    window.resize(520, 760)
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    run()
