"""
battleship.py

Contains core data structures and logic for SinkShips, including:
 - Board class storing ship positions, shots, hits and misses
 - ShipKind / Ship / Orientation value types
 - apply_shot() and all_sunk(), the shot resolver used by every game mode
 - parse_coordinate() for translating e.g. 'B5' -> (row, col)

A Board is always owned by exactly one side.  When a player fires at their
opponent, the owner of the target board calls ``apply_shot`` and reports the
outcome back; nobody else ever mutates it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from . import config as _cfg
from .coord_utils import COORD_RE, Coord, coord_to_rowcol, format_coord, in_bounds

BOARD_SIZE = _cfg.BOARD_SIZE


class ValidationError(Exception):
    """Raised when a placement or shot coordinate is rejected; the board is left unchanged."""


class ExhaustionError(Exception):
    """Raised when random placement runs out of trials for some ship kind."""


class ShipKind(str, enum.Enum):
    """The five hull types of the standard fleet."""

    CARRIER = "Carrier"
    BATTLESHIP = "Battleship"
    CRUISER = "Cruiser"
    SUBMARINE = "Submarine"
    DESTROYER = "Destroyer"

    @property
    def length(self) -> int:
        return _LENGTHS[self.value]

    @property
    def letter(self) -> str:
        return _cfg.SHIP_LETTERS[self.value]


_LENGTHS: Dict[str, int] = dict(_cfg.SHIPS)

# Placement always proceeds in this order.
FLEET: Tuple[ShipKind, ...] = tuple(ShipKind(name) for name, _ in _cfg.SHIPS)


class Orientation(str, enum.Enum):
    HORIZONTAL = "H"
    VERTICAL = "V"

    def toggled(self) -> "Orientation":
        return Orientation.VERTICAL if self is Orientation.HORIZONTAL else Orientation.HORIZONTAL

    def cells(self, anchor: Coord, length: int) -> List[Coord]:
        """Squares covered by a ship of *length* extending from *anchor* (may run off-board)."""
        r, c = anchor
        if self is Orientation.HORIZONTAL:
            return [(r, c + i) for i in range(length)]
        return [(r + i, c) for i in range(length)]


@dataclass(eq=False)
class Ship:
    kind: ShipKind
    cells: FrozenSet[Coord]
    hit_cells: Set[Coord] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.cells = frozenset(self.cells)
        if len(self.cells) != self.kind.length:
            raise ValidationError(f"{self.kind.value} needs {self.kind.length} cells, got {len(self.cells)}")
        if not self.hit_cells <= self.cells:
            raise ValidationError("hit cells must lie on the ship")

    @property
    def sunk(self) -> bool:
        return len(self.hit_cells) == len(self.cells)


class ShotResult(str, enum.Enum):
    DUPLICATE = "duplicate"
    MISS = "miss"
    HIT = "hit"


@dataclass(frozen=True)
class ShotOutcome:
    """What ``apply_shot`` reports back to the shooter."""

    result: ShotResult
    sunk_kind: Optional[ShipKind] = None

    @property
    def hit(self) -> bool:
        return self.result is ShotResult.HIT


class Board:
    """
    Represents a single board.
    We store:
      - self.ships: placed ships in placement order
      - self.occupied: union of all ship cells (ships never share a cell)
      - self.shots: every coordinate ever fired at this board
      - self.hits / self.misses: partition of shots into occupied / open water

    A Board with no ships doubles as a *view* of a board we cannot see:
    ``record()`` stores results learned from the owner without touching
    ships or occupied.
    """

    def __init__(self, size: int = BOARD_SIZE):
        """Initialise an empty *size*×*size* board with no ships placed."""
        self.size = size
        self.ships: List[Ship] = []
        self.occupied: Set[Coord] = set()
        self.shots: Set[Coord] = set()
        self.hits: Set[Coord] = set()
        self.misses: Set[Coord] = set()
        self._owner: Dict[Coord, Ship] = {}

    @classmethod
    def from_layout(cls, layout: Iterable[Tuple[ShipKind, Iterable[Coord]]], size: int = BOARD_SIZE) -> "Board":
        """Build a board from (kind, cells) pairs, e.g. a revealed fleet."""
        board = cls(size)
        for kind, cells in layout:
            board.add_ship(Ship(kind, frozenset(tuple(rc) for rc in cells)))
        return board

    def reset(self) -> None:
        """Drop every ship and shot."""
        self.ships = []
        self.occupied = set()
        self.shots = set()
        self.hits = set()
        self.misses = set()
        self._owner = {}

    def add_ship(self, ship: Ship) -> None:
        """Commit *ship*; raises ValidationError without mutating on out-of-bounds or overlap."""
        for rc in ship.cells:
            if not in_bounds(rc, self.size):
                raise ValidationError(f"{ship.kind.value} runs off the board at {format_coord(*rc)}")
            if rc in self.occupied:
                raise ValidationError(f"{ship.kind.value} overlaps another ship at {format_coord(*rc)}")
        self.ships.append(ship)
        self.occupied |= ship.cells
        for rc in ship.cells:
            self._owner[rc] = ship

    def ship_at(self, rc: Coord) -> Optional[Ship]:
        return self._owner.get(rc)

    def fire_at(self, rc: Coord) -> ShotOutcome:
        """Process a shot at *rc* and return its outcome."""
        if not in_bounds(rc, self.size):
            raise ValidationError(f"shot {rc!r} is off the board")
        if rc in self.shots:
            return ShotOutcome(ShotResult.DUPLICATE)
        self.shots.add(rc)
        ship = self._owner.get(rc)
        if ship is None:
            self.misses.add(rc)
            return ShotOutcome(ShotResult.MISS)
        ship.hit_cells.add(rc)
        self.hits.add(rc)
        return ShotOutcome(ShotResult.HIT, ship.kind if ship.sunk else None)

    def record(self, rc: Coord, hit: bool) -> bool:
        """Store a result learned from the board's owner. Returns False if *rc* was already known."""
        if rc in self.shots:
            return False
        self.shots.add(rc)
        (self.hits if hit else self.misses).add(rc)
        ship = self._owner.get(rc)
        if ship is not None and hit:
            ship.hit_cells.add(rc)
        return True

    def all_ships_sunk(self) -> bool:
        """Return True if every ship on this board has been sunk."""
        return all(ship.sunk for ship in self.ships)

    def sunk_kinds(self) -> List[ShipKind]:
        return [ship.kind for ship in self.ships if ship.sunk]


def apply_shot(board: Board, rc: Coord) -> ShotOutcome:
    """Resolve a shot against *board*; duplicates are reported, never applied twice."""
    return board.fire_at(rc)


def all_sunk(board: Board) -> bool:
    """True iff every ship on *board* is sunk (vacuously true for an empty fleet)."""
    return board.all_ships_sunk()


def parse_coordinate(coord_str: str) -> Coord:
    """Translate a coordinate like 'B7' into a zero-based (row,col) tuple."""
    coord_str = coord_str.strip().upper()
    if not COORD_RE.match(coord_str):
        raise ValueError(f"invalid coordinate {coord_str!r}")
    return coord_to_rowcol(coord_str)
