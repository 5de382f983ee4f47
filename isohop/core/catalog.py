from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from isohop.core.levels import LevelModel, load_levels, validate_level

logger = logging.getLogger(__name__)


class LevelCatalog:
    """Hand-authored levels keyed by id, with a single linear progression cursor.

    The cursor starts at *start_id* when given, otherwise at the lowest id the
    catalog holds when it is built (``1`` for an empty catalog). Levels added
    later never move it. Progression only ever steps to ``cursor + 1``; gaps
    in the ids end the run.
    """

    def __init__(self, levels: Iterable[LevelModel] = (), start_id: Optional[int] = None) -> None:
        self._levels: Dict[int, LevelModel] = {}
        for level in levels:
            self.add(level)
        if start_id is None:
            start_id = min(self._levels) if self._levels else 1
        self._start_id = start_id
        self._cursor = start_id

    @classmethod
    def builtin(cls, base_dir: Optional[Path] = None) -> "LevelCatalog":
        """Catalog of the level files shipped in ``isohop/data/levels``."""
        return cls(load_levels(base_dir))

    @property
    def start_id(self) -> int:
        return self._start_id

    @property
    def cursor(self) -> int:
        return self._cursor

    def add(self, level: LevelModel) -> None:
        validate_level(level)
        if level.id in self._levels:
            logger.debug("Replacing level %s", level.id)
        self._levels[level.id] = level

    def get(self, level_id: int) -> Optional[LevelModel]:
        return self._levels.get(level_id)

    def all(self) -> List[LevelModel]:
        return [self._levels[key] for key in sorted(self._levels)]

    def current(self) -> Optional[LevelModel]:
        return self.get(self.cursor)

    def advance(self) -> Optional[LevelModel]:
        """Step to the next id and return its level, or ``None`` at the end."""
        next_id = self.cursor + 1
        if next_id not in self._levels:
            logger.info("No level after %s", self.cursor)
            return None
        self._cursor = next_id
        logger.info("Advanced to level %s", next_id)
        return self._levels[next_id]

    def reset(self) -> None:
        self._cursor = self._start_id

    def is_last(self) -> bool:
        return self.cursor + 1 not in self._levels

    def __len__(self) -> int:
        return len(self._levels)

    def __contains__(self, level_id: object) -> bool:
        return level_id in self._levels
