from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from isohop.core.catalog import LevelCatalog
from isohop.core.levels import BlockKind, Cell, LevelModel, validate_level

logger = logging.getLogger(__name__)


class Phase(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    WON = "won"


class Direction(Enum):
    """Cardinal grid steps as ``(dx, dy)``; the grid has no diagonal moves."""

    LEFT = (-1, 0)
    RIGHT = (1, 0)
    UP = (0, -1)
    DOWN = (0, 1)

    @property
    def dx(self) -> int:
        return self.value[0]

    @property
    def dy(self) -> int:
        return self.value[1]


@dataclass
class TileState:
    """Run-time state of one non-empty cell."""

    kind: BlockKind
    point_value: int
    texture_key: str
    transformed_texture_key: str
    transformed: bool = False

    @property
    def current_texture_key(self) -> str:
        return self.transformed_texture_key if self.transformed else self.texture_key


@dataclass(frozen=True)
class Move:
    """An accepted jump; the renderer animates from ``origin`` to ``destination``."""

    origin: Cell
    destination: Cell
    direction: Direction


@dataclass(frozen=True)
class TileTransformed:
    cell: Cell
    kind: BlockKind
    texture_key: str
    points: int
    score: int


@dataclass(frozen=True)
class LevelComplete:
    level_id: int
    score: int
    has_next_level: bool


@dataclass(frozen=True)
class MoveResult:
    """Outcome of resolving a move."""

    move: Move
    transformed: Optional[TileTransformed] = None
    complete: Optional[LevelComplete] = None


SessionEvent = Union[Move, TileTransformed, LevelComplete]
Listener = Callable[[SessionEvent], None]


class PuzzleSession:
    """One playthrough of a level.

    Moves are two-step. :meth:`request_move` validates the jump and puts the
    session in :attr:`Phase.RESOLVING`; :meth:`resolve` lands the player,
    transforms the tile and checks for the win. While a move is resolving,
    and once the level is won, further requests are ignored. Callers without
    an animation to wait for can use :meth:`move`, which does both steps.

    Scoring follows the level's ``required_score`` or, when the level has
    none, 70% of all points on the board. A level is won when the score
    reaches that threshold *and* the player stands on a goal tile.
    """

    def __init__(
        self,
        level: LevelModel,
        has_next_level: Optional[Callable[[], bool]] = None,
    ) -> None:
        """Start a session on *level*; raises ``InvalidLevel`` for bad level data."""
        validate_level(level)
        self._level = level
        self._has_next_level = has_next_level or (lambda: False)
        self._required_score = level.effective_required_score()
        self._tiles: List[List[Optional[TileState]]] = [
            [self._make_tile(level, x, y) for x in range(level.width)] for y in range(level.height)
        ]
        self._player: Cell = level.start_position
        self._score = 0
        self._phase = Phase.IDLE
        self._pending: Optional[Move] = None
        self._listeners: List[Listener] = []
        logger.debug(
            "Session started on level %s (%s), required score %s",
            level.id,
            level.name,
            self._required_score,
        )

    @staticmethod
    def _make_tile(level: LevelModel, x: int, y: int) -> Optional[TileState]:
        block = level.block_at(x, y)
        if block is None:
            return None
        return TileState(
            kind=block.kind,
            point_value=block.points,
            texture_key=block.texture_key,
            transformed_texture_key=block.transformed_texture_key,
        )

    @property
    def level(self) -> LevelModel:
        return self._level

    @property
    def player(self) -> Cell:
        """Grid cell the player currently occupies."""
        return self._player

    @property
    def score(self) -> int:
        return self._score

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def required_score(self) -> int:
        return self._required_score

    @property
    def time_limit(self) -> Optional[int]:
        """Advisory time limit in seconds; the session never enforces it."""
        return self._level.time_limit

    def tile_at(self, x: int, y: int) -> Optional[TileState]:
        if not self._level.in_bounds(x, y):
            return None
        return self._tiles[y][x]

    def tiles(self) -> Tuple[Tuple[Optional[TileState], ...], ...]:
        return tuple(tuple(row) for row in self._tiles)

    def remaining_points(self) -> int:
        """Points still available from tiles that have not been transformed."""
        return sum(
            tile.point_value for row in self._tiles for tile in row if tile is not None and not tile.transformed
        )

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def request_move(self, direction: Direction) -> Optional[Move]:
        """Accept a jump one cell in *direction*, or return ``None`` if it is not allowed."""
        if self._phase is not Phase.IDLE:
            logger.debug("Ignoring %s while %s", direction.name, self._phase.value)
            return None
        x, y = self._player
        target = (x + direction.dx, y + direction.dy)
        if self.tile_at(*target) is None:
            logger.debug("Rejected move %s from %s to %s", direction.name, self._player, target)
            return None

        move = Move(origin=self._player, destination=target, direction=direction)
        self._pending = move
        self._phase = Phase.RESOLVING
        self._publish(move)
        return move

    def resolve(self) -> Optional[MoveResult]:
        """Finish the move in flight. Does nothing unless a move is resolving."""
        if self._phase is not Phase.RESOLVING or self._pending is None:
            return None
        move = self._pending
        self._pending = None
        self._player = move.destination

        transformed = None
        tile = self._tiles[move.destination[1]][move.destination[0]]
        if tile is not None and not tile.transformed:
            tile.transformed = True
            self._score += tile.point_value
            transformed = TileTransformed(
                cell=move.destination,
                kind=tile.kind,
                texture_key=tile.transformed_texture_key,
                points=tile.point_value,
                score=self._score,
            )
            self._publish(transformed)

        complete = None
        if self.check_win():
            self._phase = Phase.WON
            complete = LevelComplete(
                level_id=self._level.id,
                score=self._score,
                has_next_level=self._has_next_level(),
            )
            logger.info("Level %s complete with score %s", self._level.id, self._score)
            self._publish(complete)
        else:
            self._phase = Phase.IDLE
        return MoveResult(move=move, transformed=transformed, complete=complete)

    def move(self, direction: Direction) -> Optional[MoveResult]:
        if self.request_move(direction) is None:
            return None
        return self.resolve()

    def check_win(self) -> bool:
        """True when the score meets the requirement and the player is on a goal tile."""
        tile = self.tile_at(*self._player)
        return self._score >= self._required_score and tile is not None and tile.kind is BlockKind.GOAL

    def is_won(self) -> bool:
        return self._phase is Phase.WON


def start_level(catalog: LevelCatalog) -> Optional[PuzzleSession]:
    """Open a session on the catalog's current level, or ``None`` if it has none."""
    level = catalog.current()
    if level is None:
        logger.warning("Level %s is unavailable", catalog.cursor)
        return None
    return PuzzleSession(level, has_next_level=lambda: not catalog.is_last())
