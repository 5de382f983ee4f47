from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from isohop.core.levels import (
    COMMON_BLOCKS,
    EMPTY,
    GOAL_CODE,
    NORMAL_CODE,
    SPECIAL_CODE,
    Cell,
    LevelModel,
    reachable_cells,
    required_score_for,
    validate_level,
)

logger = logging.getLogger(__name__)

MIN_TIME_LIMIT = 60
BASE_TIME_LIMIT = 120
TIME_LIMIT_STEP = 5


@dataclass(frozen=True)
class DifficultyParams:
    min_size: int
    max_size: int
    special_chance: float
    gap_chance: float
    max_gap: int


def difficulty_for(level_number: int) -> DifficultyParams:
    """Difficulty curve for the *level_number*-th generated level (1-based).

    Every parameter grows with the level number and is clamped: grids run
    from 4x4 up to 10x10, at most 40% special blocks, 30% gap chance and
    gap runs of three cells.
    """
    if level_number < 1:
        raise ValueError(f"level number must be >= 1, got {level_number}")
    return DifficultyParams(
        min_size=min(4 + level_number // 3, 8),
        max_size=min(5 + level_number // 2, 10),
        special_chance=min(0.1 + level_number * 0.05, 0.4),
        gap_chance=min(0.1 + level_number * 0.03, 0.3),
        max_gap=min(1 + level_number // 5, 3),
    )


def time_limit_for(level_number: int) -> int:
    return max(MIN_TIME_LIMIT, BASE_TIME_LIMIT - level_number * TIME_LIMIT_STEP)


class LevelGenerator:
    """Builds random, always-solvable levels that get harder with the level number.

    Pass a seeded ``random.Random`` to get reproducible levels.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng if rng is not None else random.Random()

    def generate(self, level_number: int) -> LevelModel:
        params = difficulty_for(level_number)
        size = self._rng.randint(params.min_size, params.max_size)
        logger.debug("Generating level %s: size=%s params=%s", level_number, size, params)

        layout = [[NORMAL_CODE] * size for _ in range(size)]
        self._carve_gaps(layout, params)
        self._add_specials(layout, params)

        path = self.safe_path(size)
        for x, y in self._with_corners(path):
            if layout[y][x] == EMPTY:
                layout[y][x] = NORMAL_CODE
        end_x, end_y = path[-1]
        layout[end_y][end_x] = GOAL_CODE
        self.connect_islands(layout, path[0])

        level = LevelModel(
            id=level_number,
            name=f"Level {level_number}",
            layout=layout,
            start_position=path[0],
            block_types=COMMON_BLOCKS,
            required_score=required_score_for(layout, COMMON_BLOCKS),
            time_limit=time_limit_for(level_number),
        )
        validate_level(level)
        return level

    def _carve_gaps(self, layout: List[List[int]], params: DifficultyParams) -> None:
        for row in layout:
            width = len(row)
            x = 0
            while x < width:
                if self._rng.random() < params.gap_chance:
                    gap = self._rng.randint(1, params.max_gap)
                    for gx in range(x, min(x + gap, width)):
                        row[gx] = EMPTY
                    # the cell right after a run stays solid
                    x += gap
                x += 1

    def _add_specials(self, layout: List[List[int]], params: DifficultyParams) -> None:
        for row in layout:
            for x, code in enumerate(row):
                if code == NORMAL_CODE and self._rng.random() < params.special_chance:
                    row[x] = SPECIAL_CODE

    def safe_path(self, size: int) -> List[Cell]:
        """Walk from a cell in the upper-left half to one in the lower-right half.

        Steps diagonally while both coordinates differ, then straight along
        the remaining axis. The first cell is the start and the last the goal;
        they coincide when both draws land on the same cell.
        """
        half = size // 2
        start = (self._rng.randint(0, half), self._rng.randint(0, half))
        end = (self._rng.randint(half, size - 1), self._rng.randint(half, size - 1))

        path = [start]
        x, y = start
        while (x, y) != end:
            if x != end[0]:
                x += 1 if x < end[0] else -1
            if y != end[1]:
                y += 1 if y < end[1] else -1
            path.append((x, y))
        return path

    @staticmethod
    def connect_islands(layout: List[List[int]], start: Cell) -> None:
        """Restore gap cells until the tiles reachable from *start* cover the required score.

        Each pass bridges the reachable region to the nearest cut-off tile
        through the fewest gap cells, so the required score, which counts
        every tile on the board, can always be collected.
        """
        while True:
            snapshot = LevelModel(id=1, name="", layout=layout, start_position=start, block_types=COMMON_BLOCKS)
            reached = reachable_cells(snapshot)
            points = sum(COMMON_BLOCKS[layout[y][x]].points for x, y in reached)
            if points >= required_score_for(layout, COMMON_BLOCKS):
                return
            for x, y in LevelGenerator._bridge(layout, reached):
                layout[y][x] = NORMAL_CODE

    @staticmethod
    def _bridge(layout: List[List[int]], reached: Set[Cell]) -> List[Cell]:
        """Gap cells on a shortest cardinal walk from *reached* to any other tile."""
        height, width = len(layout), len(layout[0])
        parents: Dict[Cell, Optional[Cell]] = {cell: None for cell in reached}
        queue = deque(reached)
        while queue:
            x, y = queue.popleft()
            for dx, dy in ((-1, 0), (1, 0), (0, -1), (0, 1)):
                nx, ny = x + dx, y + dy
                if not (0 <= nx < width and 0 <= ny < height) or (nx, ny) in parents:
                    continue
                parents[(nx, ny)] = (x, y)
                if layout[ny][nx] != EMPTY:
                    gaps = []
                    cell = parents[(nx, ny)]
                    while cell not in reached:
                        gaps.append(cell)
                        cell = parents[cell]
                    return gaps
                queue.append((nx, ny))
        return []

    @staticmethod
    def _with_corners(path: List[Cell]) -> List[Cell]:
        """The path plus the horizontal corner of each diagonal step."""
        cells = [path[0]]
        for (px, py), (x, y) in zip(path, path[1:]):
            if px != x and py != y:
                cells.append((x, py))
            cells.append((x, y))
        return cells


def generate_level(level_number: int, rng: Optional[random.Random] = None) -> LevelModel:
    return LevelGenerator(rng).generate(level_number)
