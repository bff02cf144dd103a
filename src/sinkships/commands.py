from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .battleship import Orientation
from .coord_utils import COORD_RE, coord_to_rowcol


class CommandParseError(Exception):
    """Raised when a line cannot be parsed as a valid command."""


@dataclass(frozen=True)
class ChatCommand:
    text: str


@dataclass(frozen=True)
class FireCommand:
    row: int
    col: int


@dataclass(frozen=True)
class PlaceCommand:
    row: int
    col: int
    orientation: Optional[Orientation] = None  # None keeps the current rotation


@dataclass(frozen=True)
class RotateCommand:
    pass


@dataclass(frozen=True)
class AutoCommand:
    pass


@dataclass(frozen=True)
class ClearCommand:
    pass


@dataclass(frozen=True)
class ReadyCommand:
    pass


@dataclass(frozen=True)
class RevealCommand:
    pass


@dataclass(frozen=True)
class NewGameCommand:
    pass


@dataclass(frozen=True)
class QuitCommand:
    pass


Command = Union[
    ChatCommand,
    FireCommand,
    PlaceCommand,
    RotateCommand,
    AutoCommand,
    ClearCommand,
    ReadyCommand,
    RevealCommand,
    NewGameCommand,
    QuitCommand,
]

# Verbs that take no argument
_BARE = {
    "ROTATE": RotateCommand,
    "AUTO": AutoCommand,
    "CLEAR": ClearCommand,
    "READY": ReadyCommand,
    "START": ReadyCommand,
    "REVEAL": RevealCommand,
    "NEW": NewGameCommand,
    "QUIT": QuitCommand,
}


def _coord(arg: str) -> Tuple[int, int]:
    coord = arg.strip().upper()
    if not COORD_RE.match(coord):
        raise CommandParseError(f"Invalid coordinate: {coord}")
    return coord_to_rowcol(coord)


def parse_command(line: str) -> Command:
    if line is None:
        raise CommandParseError("No command to parse")
    raw = line.strip()
    if not raw:
        raise CommandParseError("Empty command")
    parts = raw.split(maxsplit=1)
    verb = parts[0].upper()
    if verb == "CHAT":
        if len(parts) < 2 or not parts[1].strip():
            raise CommandParseError("CHAT requires a non-empty message")
        return ChatCommand(text=parts[1])
    elif verb == "FIRE":
        if len(parts) < 2 or not parts[1].strip():
            raise CommandParseError("FIRE requires a coordinate")
        row, col = _coord(parts[1])
        return FireCommand(row=row, col=col)
    elif verb == "PLACE":
        if len(parts) < 2 or not parts[1].strip():
            raise CommandParseError("PLACE requires a coordinate")
        args = parts[1].split()
        if len(args) > 2:
            raise CommandParseError("Usage: PLACE <coord> [H|V]")
        row, col = _coord(args[0])
        orientation = None
        if len(args) == 2:
            try:
                orientation = Orientation(args[1].upper())
            except ValueError:
                raise CommandParseError(f"Orientation must be H or V, not {args[1]!r}") from None
        return PlaceCommand(row=row, col=col, orientation=orientation)
    elif verb in _BARE and len(parts) == 1:
        return _BARE[verb]()
    else:
        raise CommandParseError(f"Unknown command: {raw}")
