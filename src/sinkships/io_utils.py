# io_utils.py
"""
Low-level helpers shared by PeerNode, the router and the terminal client
–––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––––
• send()        – push an encoded message down a channel, never raising
• grid_rows()   – Board → ["A . . X …", …] helper (ships optionally revealed)
• fleet_lines() – Board → ["Carrier (5) - 2 hits", …] status list
"""

from typing import List

from .battleship import FLEET, Board
from .transport import Channel
import logging

logger = logging.getLogger(__name__)

WATER = "."
HIT = "X"
MISS = "o"


def send(channel: Channel, data: bytes) -> bool:
    logger.debug("send() start – channel=%s bytes=%d", channel.name, len(data))
    if not channel.is_open:
        logger.debug("send() skipped – %s is closed", channel.name)
        return False
    try:
        ok = channel.send(data)
    except (BrokenPipeError, ConnectionResetError):
        # peer closed or reset during send
        return False
    except Exception:
        logger.exception("send() failed – channel=%s", channel.name)
        return False
    logger.debug("send() %s – channel=%s", "success" if ok else "dropped", channel.name)
    return ok


def grid_rows(board: Board, *, reveal: bool = False) -> List[str]:
    """One space-separated string per row: '.' water, ship letter (when revealed), 'X' hit, 'o' miss."""
    rows: list[str] = []
    for r in range(board.size):
        cells = []
        for c in range(board.size):
            rc = (r, c)
            if rc in board.hits:
                cells.append(HIT)
            elif rc in board.misses:
                cells.append(MISS)
            elif reveal and board.ship_at(rc) is not None:
                cells.append(board.ship_at(rc).kind.letter)  # type: ignore[union-attr]
            else:
                cells.append(WATER)
        rows.append(" ".join(cells))
    return rows


def fleet_lines(board: Board) -> List[str]:
    """Status of every placed ship, e.g. 'Cruiser (3) - Sunk' or 'Carrier (5) - 1 hits'."""
    lines = []
    for ship in board.ships:
        status = "Sunk" if ship.sunk else f"{len(ship.hit_cells)} hits"
        lines.append(f"{ship.kind.value} ({ship.kind.length}) - {status}")
    return lines


def sunk_summary(kinds) -> str:
    """'2/5 sunk: Destroyer, Cruiser' for a list of sunk kinds."""
    names = ", ".join(k.value for k in kinds)
    return f"{len(kinds)}/{len(FLEET)} sunk" + (f": {names}" if names else "")
