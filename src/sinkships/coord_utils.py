import re
from typing import Iterator, List, Tuple

from .config import BOARD_SIZE

Coord = Tuple[int, int]

# Regex for valid coordinates A1–J10
COORD_RE = re.compile(r"^[A-J](10|[1-9])$")

# Orthogonal steps: down, up, right, left
ORTHOGONAL: Tuple[Coord, ...] = ((1, 0), (-1, 0), (0, 1), (0, -1))


def in_bounds(rc: Coord, size: int = BOARD_SIZE) -> bool:
    r, c = rc
    return 0 <= r < size and 0 <= c < size


def orthogonal_neighbours(rc: Coord, size: int = BOARD_SIZE) -> List[Coord]:
    """In-bounds squares sharing an edge with *rc*."""
    r, c = rc
    return [(r + dr, c + dc) for dr, dc in ORTHOGONAL if in_bounds((r + dr, c + dc), size)]


def neighbourhood(rc: Coord, size: int = BOARD_SIZE) -> List[Coord]:
    """*rc* plus every in-bounds square touching it, diagonals included."""
    r, c = rc
    return [
        (r + dr, c + dc)
        for dr in (-1, 0, 1)
        for dc in (-1, 0, 1)
        if in_bounds((r + dr, c + dc), size)
    ]


def all_coords(size: int = BOARD_SIZE) -> Iterator[Coord]:
    """Every square in row-major order."""
    for r in range(size):
        for c in range(size):
            yield (r, c)


def coord_to_rowcol(coord: str) -> Coord:
    """
    Convert a coordinate like 'A1' through 'J10' to zero-based (row, col) tuple.
    """
    row = ord(coord[0]) - ord('A')
    col = int(coord[1:]) - 1
    return row, col


def format_coord(row: int, col: int) -> str:
    """
    Convert zero-based (row, col) to coordinate string like 'A1'.
    """
    return f"{chr(ord('A') + row)}{col + 1}"
