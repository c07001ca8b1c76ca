from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from bobpop.core.blocks import BlockColor


@dataclass(frozen=True)
class PopColorObjective:
    """Pop ``count`` blocks of ``color``."""

    color: BlockColor
    count: int

    def describe(self) -> str:
        return f"Pop {self.count} {self.color.value}"


# Only one objective kind exists so far; new kinds join this alias.
Objective = PopColorObjective


@dataclass(frozen=True)
class LevelDefinition:
    id: int
    objectives: Tuple[Objective, ...]
    max_moves: int


class BoosterType(Enum):
    STARTS_WITH_ROCKET = "starts_with_rocket"
    EXTRA_INITIAL_MOVES = "extra_initial_moves"

    @property
    def gem_cost(self) -> int:
        return _BOOSTER_COSTS[self]

    @property
    def description(self) -> str:
        return _BOOSTER_DESCRIPTIONS[self]


_BOOSTER_COSTS = {
    BoosterType.STARTS_WITH_ROCKET: 20,
    BoosterType.EXTRA_INITIAL_MOVES: 10,
}

_BOOSTER_DESCRIPTIONS = {
    BoosterType.STARTS_WITH_ROCKET: "Start with Rocket",
    BoosterType.EXTRA_INITIAL_MOVES: "+3 Starting Moves",
}


def _default_levels_dir() -> Path:
    return Path(__file__).resolve().parent.parent / "data" / "levels"


class LevelRepository:
    """Read-only, ordered catalog of level definitions loaded from YAML."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = base_dir if base_dir is not None else _default_levels_dir()
        self._levels = self._load_levels()

    def all(self) -> List[LevelDefinition]:
        return list(self._levels.values())

    def get(self, level_id: int) -> Optional[LevelDefinition]:
        """Return the level with exactly this id, or None."""
        return self._levels.get(level_id)

    def first(self) -> LevelDefinition:
        return next(iter(self._levels.values()))

    def __contains__(self, level_id: object) -> bool:
        return level_id in self._levels

    def __len__(self) -> int:
        return len(self._levels)

    def _load_levels(self) -> Dict[int, LevelDefinition]:
        base_dir = self._base_dir
        if not base_dir.exists():
            raise FileNotFoundError(f"Levels directory not found: {base_dir}")

        levels: Dict[int, LevelDefinition] = {}

        def _sort_key(p: Path) -> tuple[int, str]:
            m = re.match(r"^level(\d+)$", p.stem)
            if m:
                return (int(m.group(1)), p.stem)
            return (10**9, p.stem)

        for level_path in sorted(base_dir.glob("level*.yaml"), key=_sort_key):
            raw = yaml.safe_load(level_path.read_text(encoding="utf-8"))
            level = _parse_level(level_path.name, raw)
            if level.id in levels:
                raise ValueError(f"{level_path.name}: duplicate level id {level.id}")
            levels[level.id] = level

        if not levels:
            raise ValueError("No level files (level*.yaml) found in data/levels")
        return levels


def _parse_level(name: str, raw: object) -> LevelDefinition:
    if not raw or not isinstance(raw, dict):
        raise ValueError(f"{name}: expected YAML with 'id', 'max_moves' and 'objectives'")
    level_id = raw.get("id")
    if not isinstance(level_id, int) or isinstance(level_id, bool):
        raise ValueError(f"{name}: missing or invalid 'id'")
    max_moves = raw.get("max_moves")
    if not isinstance(max_moves, int) or isinstance(max_moves, bool) or max_moves <= 0:
        raise ValueError(f"{name}: 'max_moves' must be a positive integer")
    entries = raw.get("objectives")
    if not isinstance(entries, list) or not entries:
        raise ValueError(f"{name}: 'objectives' must be a non-empty list")
    objectives = tuple(_parse_objective(name, entry) for entry in entries)
    return LevelDefinition(id=level_id, objectives=objectives, max_moves=max_moves)


def _parse_objective(name: str, entry: object) -> Objective:
    if not isinstance(entry, dict) or "pop_color" not in entry:
        raise ValueError(f"{name}: unsupported objective {entry!r}")
    try:
        color = BlockColor(str(entry["pop_color"]).strip().lower())
    except ValueError:
        raise ValueError(f"{name}: unknown color {entry['pop_color']!r}") from None
    count = entry.get("count")
    if not isinstance(count, int) or isinstance(count, bool) or count <= 0:
        raise ValueError(f"{name}: objective 'count' must be a positive integer")
    return PopColorObjective(color=color, count=count)


@functools.lru_cache(maxsize=1)
def default_levels() -> LevelRepository:
    """Process-wide catalog shipped with the package."""
    return LevelRepository()
