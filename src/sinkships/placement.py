# placement.py
"""
Fleet placement: randomized-with-spacing or manual, one ship at a time.

    ships = place_random(board)                       # all five, no touching
    ship  = place_manual(board, cursor, (0, 0), Orientation.HORIZONTAL)

Random placement keeps a one-square gap between ships so that generated
fleets never pack together; manual placement only forbids overlap, leaving
the human free to park ships side by side.  Both are all-or-nothing: a
failed call never leaves a half-placed ship or fleet behind.
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence, Set

from . import config as _cfg
from .battleship import (
    BOARD_SIZE,
    FLEET,
    Board,
    ExhaustionError,
    Orientation,
    Ship,
    ShipKind,
    ValidationError,
)
from .coord_utils import Coord, format_coord, in_bounds, neighbourhood

logger = logging.getLogger(__name__)


def _fits_spaced(cells: List[Coord], occupied: Set[Coord], size: int) -> bool:
    """In bounds, free, and not touching any occupied square (diagonals included)."""
    for rc in cells:
        if not in_bounds(rc, size):
            return False
        if any(n in occupied for n in neighbourhood(rc, size)):
            return False
    return True


def place_random(
    board: Board,
    fleet: Sequence[ShipKind] = FLEET,
    *,
    rng: Optional[random.Random] = None,
    trials: int = _cfg.PLACEMENT_TRIALS,
) -> List[Ship]:
    """Randomly position *fleet* on *board*, replacing whatever it held.

    The fleet is assembled on scratch state and committed only once every
    kind has found a spot; on ExhaustionError *board* is untouched.
    """
    rnd = rng or random
    occupied: Set[Coord] = set()
    ships: List[Ship] = []
    for kind in fleet:
        for _ in range(trials):
            orientation = Orientation.HORIZONTAL if rnd.random() < 0.5 else Orientation.VERTICAL
            anchor = (rnd.randrange(board.size), rnd.randrange(board.size))
            cells = orientation.cells(anchor, kind.length)
            if _fits_spaced(cells, occupied, board.size):
                ships.append(Ship(kind, frozenset(cells)))
                occupied.update(cells)
                break
        else:
            raise ExhaustionError(f"could not place {kind.value} after {trials} trials")

    board.reset()
    for ship in ships:
        board.add_ship(ship)
    return ships


def place_manual(
    board: Board,
    cursor: int,
    rc: Coord,
    orientation: Orientation,
    fleet: Sequence[ShipKind] = FLEET,
) -> Ship:
    """Place ``fleet[cursor]`` extending from *rc*; touching other ships is allowed."""
    if cursor >= len(fleet):
        raise ValidationError("all ships already placed")
    if cursor != len(board.ships):
        raise ValidationError(f"placement cursor {cursor} does not match {len(board.ships)} placed ships")
    kind = fleet[cursor]
    ship = Ship(kind, frozenset(orientation.cells(rc, kind.length)))
    board.add_ship(ship)
    return ship


class PlacementEngine:
    """Session-local placement state: the board being built, the cursor and the rotation."""

    def __init__(
        self,
        size: int = BOARD_SIZE,
        fleet: Sequence[ShipKind] = FLEET,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.size = size
        self.fleet = tuple(fleet)
        self._rng = rng
        self.board = Board(size)
        self.cursor = 0
        self.orientation = Orientation.HORIZONTAL

    @property
    def complete(self) -> bool:
        return self.cursor >= len(self.fleet)

    @property
    def next_kind(self) -> Optional[ShipKind]:
        return None if self.complete else self.fleet[self.cursor]

    def rotate(self) -> Orientation:
        """Flip the orientation used by the next manual placement."""
        self.orientation = self.orientation.toggled()
        return self.orientation

    def place(self, rc: Coord) -> Ship:
        ship = place_manual(self.board, self.cursor, rc, self.orientation, self.fleet)
        self.cursor += 1
        logger.debug("Placed %s at %s (%s)", ship.kind.value, format_coord(*rc), self.orientation.value)
        return ship

    def randomize(self, retries: int = _cfg.FLEET_RETRIES) -> Board:
        """Replace the board with a random fleet, restarting the whole fleet on exhaustion."""
        last_exc: Optional[ExhaustionError] = None
        for attempt in range(1, max(retries, 1) + 1):
            board = Board(self.size)
            try:
                place_random(board, self.fleet, rng=self._rng)
            except ExhaustionError as exc:
                logger.warning("Random placement attempt %d/%d failed: %s", attempt, retries, exc)
                last_exc = exc
                continue
            self.board = board
            self.cursor = len(self.fleet)
            return board
        raise ExhaustionError(f"random placement failed after {retries} attempts") from last_exc

    def clear(self) -> Board:
        """Start over with a fresh, empty board."""
        self.board = Board(self.size)
        self.cursor = 0
        return self.board
