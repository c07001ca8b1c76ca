"""Shared fixtures: level data directories, scripted colors, manual clock."""

from __future__ import annotations

import itertools
import os
from pathlib import Path
from typing import Callable, Iterable, List, Sequence

import pytest
import yaml
from PySide6.QtWidgets import QApplication

from bobpop.core.blocks import BlockColor
from bobpop.core.grid import GameGrid
from bobpop.core.levels import LevelRepository
from bobpop.core.scheduling import ManualScheduler

R = BlockColor.RED
O = BlockColor.ORANGE
B = BlockColor.BLUE
G = BlockColor.GREEN
Y = BlockColor.YELLOW
P = BlockColor.PURPLE


class CycleRng:
    """Stands in for ``random.Random``; hands out colors in a fixed cycle."""

    def __init__(self, colors: Iterable[BlockColor]) -> None:
        self._colors = itertools.cycle(list(colors))

    def choice(self, seq: Sequence[BlockColor]) -> BlockColor:
        return next(self._colors)


def write_level(directory: Path, level_id: int, max_moves: int, objectives: List[dict]) -> Path:
    path = directory / f"level{level_id}.yaml"
    data = {"id": level_id, "max_moves": max_moves, "objectives": objectives}
    path.write_text(yaml.safe_dump(data, default_flow_style=False), encoding="utf-8")
    return path


@pytest.fixture()
def levels_dir(tmp_path: Path) -> Path:
    d = tmp_path / "data" / "levels"
    d.mkdir(parents=True)
    return d


@pytest.fixture()
def make_repo(levels_dir: Path) -> Callable[..., LevelRepository]:
    """Build a repository from ``(id, max_moves, [(color, count), ...])`` tuples."""

    def _make(*levels) -> LevelRepository:
        for level_id, max_moves, objectives in levels:
            write_level(
                levels_dir,
                level_id,
                max_moves,
                [{"pop_color": color.value, "count": count} for color, count in objectives],
            )
        return LevelRepository(base_dir=levels_dir)

    return _make


@pytest.fixture()
def no_blue_rng() -> CycleRng:
    return CycleRng([R, G, Y, P, O])


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler(start_time=1_000.0)


def make_grid(repo: LevelRepository, layout: Sequence[Sequence[BlockColor]], rng=None) -> GameGrid:
    """Grid sized to ``layout`` with its first level loaded and the layout applied."""
    grid = GameGrid(
        columns=len(layout[0]),
        rows=len(layout),
        levels=repo,
        rng=rng if rng is not None else CycleRng([R, G, Y, P, O]),
    )
    grid.initialize_grid(layout)
    return grid


@pytest.fixture(scope="session")
def qapp() -> QApplication:
    """One QApplication for every test that needs an event loop or widgets."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app
