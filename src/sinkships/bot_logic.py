from __future__ import annotations
import enum
import logging
import random
from collections import deque
from typing import Deque, Optional, Set

from . import config as _cfg
from .battleship import BOARD_SIZE
from .coord_utils import Coord, all_coords, orthogonal_neighbours

logger = logging.getLogger(__name__)

# Returned only if every square has already been fired at.
DEFAULT_SHOT: Coord = (0, 0)


class Mode(enum.Enum):
    HUNT = "hunt"  # no known hit to follow up, sample the board
    TARGET = "target"  # working through squares next to a hit


class TargetingAI:
    """
    Hunt/target opponent
    --------------------
    1. Target: squares queued next to earlier HITs are fired first, in the
       order they were queued.
    2. Hunt: random squares of one checkerboard colour (row+col even).  Every
       ship is at least two long, so it always covers one of them.
    3. If random hunting keeps landing on used squares, scan the board
       row by row for the first square never fired at.
    """

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    def __init__(
        self,
        size: int = BOARD_SIZE,
        *,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        hunt_samples: int = _cfg.HUNT_SAMPLES,
    ) -> None:
        self.size = size
        self.hunt_samples = hunt_samples
        self._rng = rng if rng is not None else random.Random(seed)

        # State
        self.visited: Set[Coord] = set()
        self.queue: Deque[Coord] = deque()
        self.mode = Mode.HUNT

    # ------------------------------------------------------------------ #
    # Shot selection
    # ------------------------------------------------------------------ #
    def pick(self) -> Coord:
        """Choose the next square to fire at; never one already marked."""
        while self.queue:
            rc = self.queue.popleft()
            if rc not in self.visited:
                self.mode = Mode.TARGET
                return rc

        self.mode = Mode.HUNT
        for _ in range(self.hunt_samples):
            r = self._rng.randrange(self.size)
            c = self._rng.randrange(self.size)
            if (r + c) % 2 != 0:
                continue
            if (r, c) not in self.visited:
                return (r, c)

        for rc in all_coords(self.size):
            if rc not in self.visited:
                return rc

        logger.warning("Every square already fired at; falling back to %s", DEFAULT_SHOT)
        return DEFAULT_SHOT

    # ------------------------------------------------------------------ #
    # Result handling
    # ------------------------------------------------------------------ #
    def mark(self, rc: Coord, hit: bool) -> None:
        """Record that *rc* was fired at; a HIT queues its unvisited orthogonal neighbours."""
        self.visited.add(rc)
        if not hit:
            return
        for nbr in orthogonal_neighbours(rc, self.size):
            if nbr not in self.visited:
                self.queue.append(nbr)
        if self.queue:
            self.mode = Mode.TARGET

    def reset(self) -> None:
        """Forget every shot and queued target."""
        self.visited.clear()
        self.queue.clear()
        self.mode = Mode.HUNT
