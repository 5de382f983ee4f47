from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

import yaml

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]

EMPTY = 0

# Share of the level's total points a player must collect before the goal counts.
REQUIRED_SCORE_NUMERATOR = 7
REQUIRED_SCORE_DENOMINATOR = 10


class InvalidLevel(ValueError):
    """Raised when level data cannot describe a playable puzzle."""


class BlockKind(Enum):
    NORMAL = "normal"
    SPECIAL = "special"
    GOAL = "goal"


@dataclass(frozen=True)
class BlockTypeDef:
    kind: BlockKind
    texture_key: str
    transformed_texture_key: str
    points: int = 0

    def __post_init__(self) -> None:
        if self.points < 0:
            raise InvalidLevel(f"block '{self.texture_key}' has negative points: {self.points}")


NORMAL_BLOCK = BlockTypeDef(BlockKind.NORMAL, "block_yellow", "block_pink", 10)
SPECIAL_BLOCK = BlockTypeDef(BlockKind.SPECIAL, "block_special", "block_special_active", 25)
GOAL_BLOCK = BlockTypeDef(BlockKind.GOAL, "block_goal", "block_goal_active", 50)

NORMAL_CODE = 1
SPECIAL_CODE = 2
GOAL_CODE = 3

COMMON_BLOCKS: Mapping[int, BlockTypeDef] = MappingProxyType(
    {NORMAL_CODE: NORMAL_BLOCK, SPECIAL_CODE: SPECIAL_BLOCK, GOAL_CODE: GOAL_BLOCK}
)

BLOCK_PRESETS: Mapping[str, BlockTypeDef] = MappingProxyType(
    {"normal": NORMAL_BLOCK, "special": SPECIAL_BLOCK, "goal": GOAL_BLOCK}
)


@dataclass(frozen=True)
class LevelModel:
    id: int
    name: str
    layout: Tuple[Tuple[int, ...], ...]
    start_position: Cell
    block_types: Mapping[int, BlockTypeDef] = field(default_factory=lambda: COMMON_BLOCKS)
    required_score: Optional[int] = None
    time_limit: Optional[int] = None

    def __post_init__(self) -> None:
        # Freeze whatever sequences the caller handed in.
        object.__setattr__(self, "layout", tuple(tuple(row) for row in self.layout))
        object.__setattr__(self, "start_position", tuple(self.start_position))
        object.__setattr__(self, "block_types", MappingProxyType(dict(self.block_types)))

    @property
    def width(self) -> int:
        return len(self.layout[0]) if self.layout else 0

    @property
    def height(self) -> int:
        return len(self.layout)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= y < self.height and 0 <= x < len(self.layout[y])

    def code_at(self, x: int, y: int) -> int:
        if not self.in_bounds(x, y):
            return EMPTY
        return self.layout[y][x]

    def block_at(self, x: int, y: int) -> Optional[BlockTypeDef]:
        return self.block_types.get(self.code_at(x, y))

    def cells(self) -> Iterator[Tuple[int, int, int]]:
        """Yield ``(x, y, code)`` for every non-empty cell, row by row."""
        for y, row in enumerate(self.layout):
            for x, code in enumerate(row):
                if code != EMPTY:
                    yield x, y, code

    def total_points(self) -> int:
        return _total_points(self.layout, self.block_types)

    def effective_required_score(self) -> int:
        if self.required_score is not None:
            return self.required_score
        return required_score_for(self.layout, self.block_types)


def _total_points(layout: Sequence[Sequence[int]], block_types: Mapping[int, BlockTypeDef]) -> int:
    total = 0
    for row in layout:
        for code in row:
            if code != EMPTY and code in block_types:
                total += block_types[code].points
    return total


def required_score_for(layout: Sequence[Sequence[int]], block_types: Mapping[int, BlockTypeDef]) -> int:
    """70% of every non-empty cell's points, rounded down."""
    total = _total_points(layout, block_types)
    return total * REQUIRED_SCORE_NUMERATOR // REQUIRED_SCORE_DENOMINATOR


def validate_level(model: LevelModel) -> None:
    """Raise :class:`InvalidLevel` unless *model* describes a playable grid.

    Checks run in order and stop at the first failure: rectangular non-empty
    grid, start inside the grid, start on a non-empty cell, every layout code
    defined in the block table.
    """
    layout = model.layout
    width = len(layout[0]) if layout else 0
    if width == 0:
        raise InvalidLevel(f"level {model.id}: layout is empty")
    for y, row in enumerate(layout):
        if len(row) != width:
            raise InvalidLevel(f"level {model.id}: row {y} has {len(row)} cells, expected {width}")

    x, y = model.start_position
    if not (0 <= x < width and 0 <= y < len(layout)):
        raise InvalidLevel(f"level {model.id}: start position {(x, y)} is outside the grid")
    if layout[y][x] == EMPTY:
        raise InvalidLevel(f"level {model.id}: start position {(x, y)} is an empty cell")

    used = {code for row in layout for code in row if code != EMPTY}
    undefined = sorted(used - set(model.block_types))
    if undefined:
        raise InvalidLevel(f"level {model.id}: undefined layout codes {undefined}")


def is_valid_level(model: LevelModel) -> bool:
    try:
        validate_level(model)
    except InvalidLevel as e:
        logger.debug("Level rejected: %s", e)
        return False
    return True


def reachable_cells(model: LevelModel, start: Optional[Cell] = None) -> Set[Cell]:
    """Cells the player can reach from *start* using single cardinal jumps."""
    origin = tuple(start) if start is not None else model.start_position
    if model.code_at(*origin) == EMPTY:
        return set()
    seen: Set[Cell] = {origin}
    queue = deque([origin])
    while queue:
        x, y = queue.popleft()
        for dx, dy in ((-1, 0), (1, 0), (0, -1), (0, 1)):
            nxt = (x + dx, y + dy)
            if nxt not in seen and model.code_at(*nxt) != EMPTY:
                seen.add(nxt)
                queue.append(nxt)
    return seen


def _parse_block(code: int, raw: Any, source: str) -> BlockTypeDef:
    if isinstance(raw, str):
        preset = BLOCK_PRESETS.get(raw.strip().lower())
        if preset is None:
            raise InvalidLevel(f"{source}: unknown block preset '{raw}' for code {code}")
        return preset
    if not isinstance(raw, dict):
        raise InvalidLevel(f"{source}: block {code} must be a preset name or a mapping")
    try:
        kind = BlockKind(str(raw.get("kind", "")).strip().lower())
    except ValueError:
        raise InvalidLevel(f"{source}: block {code} has invalid 'kind'") from None
    texture = raw.get("texture")
    transformed = raw.get("transformed_texture")
    if not texture or not transformed:
        raise InvalidLevel(f"{source}: block {code} needs 'texture' and 'transformed_texture'")
    points = raw.get("points", 0)
    if not isinstance(points, int):
        raise InvalidLevel(f"{source}: block {code} has invalid 'points'")
    return BlockTypeDef(kind, str(texture), str(transformed), points)


def _optional_int(raw: Dict[str, Any], key: str, source: str) -> Optional[int]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, int) or value < 0:
        raise InvalidLevel(f"{source}: '{key}' must be a non-negative integer")
    return value


def level_from_mapping(raw: Any, source: str = "<level>") -> LevelModel:
    """Build and validate a :class:`LevelModel` from a parsed YAML mapping."""
    if not raw or not isinstance(raw, dict):
        raise InvalidLevel(f"{source}: expected YAML mapping with 'id', 'layout' and 'start'")

    level_id = raw.get("id")
    if not isinstance(level_id, int) or level_id < 1:
        raise InvalidLevel(f"{source}: missing or invalid 'id'")
    name = raw.get("name") or f"Level {level_id}"

    layout = raw.get("layout")
    if not isinstance(layout, list) or not all(isinstance(row, list) for row in layout):
        raise InvalidLevel(f"{source}: 'layout' must be a list of rows")
    if not all(isinstance(code, int) and code >= 0 for row in layout for code in row):
        raise InvalidLevel(f"{source}: layout codes must be non-negative integers")

    start = raw.get("start")
    if not isinstance(start, (list, tuple)) or len(start) != 2 or not all(isinstance(v, int) for v in start):
        raise InvalidLevel(f"{source}: 'start' must be [x, y]")

    blocks = raw.get("blocks")
    if not blocks or not isinstance(blocks, dict):
        raise InvalidLevel(f"{source}: missing 'blocks'")
    block_types: Dict[int, BlockTypeDef] = {}
    for code, value in blocks.items():
        if not isinstance(code, int) or code <= EMPTY:
            raise InvalidLevel(f"{source}: block code {code!r} must be a positive integer")
        block_types[code] = _parse_block(code, value, source)

    model = LevelModel(
        id=level_id,
        name=str(name).strip(),
        layout=layout,
        start_position=(start[0], start[1]),
        block_types=block_types,
        required_score=_optional_int(raw, "required_score", source),
        time_limit=_optional_int(raw, "time_limit", source),
    )
    try:
        validate_level(model)
    except InvalidLevel as e:
        raise InvalidLevel(f"{source}: {e}") from e
    return model


def default_levels_dir() -> Path:
    return Path(__file__).resolve().parent.parent / "data" / "levels"


def load_levels(base_dir: Optional[Path] = None) -> List[LevelModel]:
    base_dir = base_dir if base_dir is not None else default_levels_dir()
    if not base_dir.exists():
        raise FileNotFoundError(f"Levels directory not found: {base_dir}")

    def _sort_key(p: Path) -> tuple[int, str]:
        m = re.match(r"^level(\d+)$", p.stem)
        if m:
            return (int(m.group(1)), p.stem)
        return (10**9, p.stem)

    levels: List[LevelModel] = []
    for level_path in sorted(base_dir.glob("level*.yaml"), key=_sort_key):
        raw = yaml.safe_load(level_path.read_text(encoding="utf-8"))
        levels.append(level_from_mapping(raw, level_path.name))

    if not levels:
        raise InvalidLevel(f"No level files (level*.yaml) found in {base_dir}")
    logger.debug("Loaded %d levels from %s", len(levels), base_dir)
    return levels
