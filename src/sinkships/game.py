"""Game utilities re-exporting the core operations for front-ends.

Everything here is a thin call into battleship / placement / bot_logic /
session; none of it renders anything.  A front-end can drive a whole match
with these names alone:

    engine = PlacementEngine()
    place_random(engine)
    outcome = apply_shot(enemy_board, (3, 4))
    rc = ai_pick(ai); ai_mark(ai, rc, outcome.hit)
"""

from __future__ import annotations

from typing import List

from .battleship import (
    Board,
    Orientation,
    Ship,
    ShipKind,
    ShotOutcome,
    ShotResult,
    all_sunk,
    apply_shot,
    parse_coordinate,
)
from .bot_logic import Mode, TargetingAI
from .coord_utils import Coord
from .placement import PlacementEngine
from .session import Phase, Session, Step


def place_random(engine: PlacementEngine) -> List[Ship]:
    """Randomize the whole fleet; raises ExhaustionError and keeps the old board on failure."""
    return list(engine.randomize().ships)


def place_manual(engine: PlacementEngine, rc: Coord, orientation: Orientation | None = None) -> Ship:
    """Place the next fleet kind at *rc*; *orientation* overrides (and becomes) the current rotation."""
    if orientation is not None:
        engine.orientation = orientation
    return engine.place(rc)


def clear_placement(engine: PlacementEngine) -> Board:
    return engine.clear()


def is_game_over(target: Board | Session) -> bool:
    """A board is over once its fleet is gone; a session once it reached Finished."""
    if isinstance(target, Session):
        return target.is_game_over
    return all_sunk(target)


def ai_pick(ai: TargetingAI) -> Coord:
    return ai.pick()


def ai_mark(ai: TargetingAI, rc: Coord, hit: bool) -> None:
    ai.mark(rc, hit)


__all__ = [
    "Board",
    "Mode",
    "Orientation",
    "Phase",
    "PlacementEngine",
    "Session",
    "Ship",
    "ShipKind",
    "ShotOutcome",
    "ShotResult",
    "Step",
    "TargetingAI",
    "ai_mark",
    "ai_pick",
    "all_sunk",
    "apply_shot",
    "clear_placement",
    "is_game_over",
    "parse_coordinate",
    "place_manual",
    "place_random",
]
