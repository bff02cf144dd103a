"""Wire messages exchanged between host, joiner and spectators.

Every message is a UTF-8 JSON object whose ``type`` field selects the kind:

ready   {type, who}                                  side finished placing
shot    {type, from, coordinate}                     fire request, resolved by the board owner
result  {type, from, coordinate, hit, sunkKind?}     board owner's verdict on a shot
turn    {type, who}                                  whose move it is now
win     {type, who}                                  match over
ships   {type, who, ships: [{kind, cells}]}          full fleet reveal, spectators only
chat    {type, from, name, text}                     free text, flows in every direction

Coordinates travel as ``[row, col]``; sides as ``"host"`` / ``"joiner"``.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .battleship import BOARD_SIZE, ShipKind
from .coord_utils import Coord, in_bounds


class ProtocolError(Exception):
    """Raised for malformed, misrouted or out-of-turn messages and actions."""


class Side(str, enum.Enum):
    """One of the two authoritative boards."""

    HOST = "host"
    JOINER = "joiner"

    @property
    def other(self) -> "Side":
        return Side.JOINER if self is Side.HOST else Side.HOST


class Role(str, enum.Enum):
    HOST = "host"
    JOINER = "joiner"
    SPECTATOR = "spectator"
    SOLO = "solo"


@dataclass(frozen=True)
class Ready:
    who: Side


@dataclass(frozen=True)
class Shot:
    sender: Side
    coord: Coord


@dataclass(frozen=True)
class Result:
    sender: Side
    coord: Coord
    hit: bool
    sunk_kind: Optional[ShipKind] = None


@dataclass(frozen=True)
class Turn:
    who: Side


@dataclass(frozen=True)
class Win:
    who: Side


@dataclass(frozen=True)
class Ships:
    who: Side
    ships: Tuple[Tuple[ShipKind, Tuple[Coord, ...]], ...]


@dataclass(frozen=True)
class Chat:
    sender: Role
    name: str
    text: str


Message = Union[Ready, Shot, Result, Turn, Win, Ships, Chat]


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def to_dict(msg: Message) -> Dict[str, Any]:
    if isinstance(msg, Ready):
        return {"type": "ready", "who": msg.who.value}
    if isinstance(msg, Shot):
        return {"type": "shot", "from": msg.sender.value, "coordinate": list(msg.coord)}
    if isinstance(msg, Result):
        obj: Dict[str, Any] = {
            "type": "result",
            "from": msg.sender.value,
            "coordinate": list(msg.coord),
            "hit": msg.hit,
        }
        if msg.sunk_kind is not None:
            obj["sunkKind"] = msg.sunk_kind.value
        return obj
    if isinstance(msg, Turn):
        return {"type": "turn", "who": msg.who.value}
    if isinstance(msg, Win):
        return {"type": "win", "who": msg.who.value}
    if isinstance(msg, Ships):
        return {
            "type": "ships",
            "who": msg.who.value,
            "ships": [{"kind": kind.value, "cells": [list(rc) for rc in cells]} for kind, cells in msg.ships],
        }
    if isinstance(msg, Chat):
        return {"type": "chat", "from": msg.sender.value, "name": msg.name, "text": msg.text}
    raise TypeError(f"not a message: {msg!r}")


def encode(msg: Message) -> bytes:
    return json.dumps(to_dict(msg), separators=(",", ":")).encode("utf-8")


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _field(obj: Dict[str, Any], key: str) -> Any:
    try:
        return obj[key]
    except KeyError:
        raise ProtocolError(f"{obj.get('type')} message missing {key!r}") from None


def _side(value: Any) -> Side:
    try:
        return Side(value)
    except ValueError:
        raise ProtocolError(f"unknown side {value!r}") from None


def _coord(value: Any) -> Coord:
    if (
        not isinstance(value, (list, tuple))
        or len(value) != 2
        or not all(isinstance(v, int) and not isinstance(v, bool) for v in value)
    ):
        raise ProtocolError(f"bad coordinate {value!r}")
    rc = (value[0], value[1])
    if not in_bounds(rc, BOARD_SIZE):
        raise ProtocolError(f"coordinate {rc!r} is off the board")
    return rc


def _kind(value: Any) -> ShipKind:
    try:
        return ShipKind(value)
    except ValueError:
        raise ProtocolError(f"unknown ship kind {value!r}") from None


def _text(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ProtocolError(f"{key} must be a string")
    return value


def _decode_result(obj: Dict[str, Any]) -> Result:
    hit = _field(obj, "hit")
    if not isinstance(hit, bool):
        raise ProtocolError("hit must be a boolean")
    sunk = obj.get("sunkKind")
    if sunk and not hit:
        raise ProtocolError("a miss cannot sink a ship")
    return Result(_side(_field(obj, "from")), _coord(_field(obj, "coordinate")), hit, _kind(sunk) if sunk else None)


def _decode_ships(obj: Dict[str, Any]) -> Ships:
    raw = _field(obj, "ships")
    if not isinstance(raw, list):
        raise ProtocolError("ships must be a list")
    fleet: List[Tuple[ShipKind, Tuple[Coord, ...]]] = []
    for entry in raw:
        if not isinstance(entry, dict) or not isinstance(entry.get("cells"), list):
            raise ProtocolError(f"bad ship entry {entry!r}")
        fleet.append((_kind(entry.get("kind")), tuple(_coord(rc) for rc in entry["cells"])))
    return Ships(_side(_field(obj, "who")), tuple(fleet))


def _decode_chat(obj: Dict[str, Any]) -> Chat:
    try:
        sender = Role(_field(obj, "from"))
    except ValueError:
        raise ProtocolError(f"unknown chat sender {obj.get('from')!r}") from None
    if sender is Role.SOLO:
        raise ProtocolError("solo games do not chat over the wire")
    return Chat(sender, _text(obj.get("name", "Anonymous"), "name"), _text(_field(obj, "text"), "text"))


_DECODERS: Dict[str, Callable[[Dict[str, Any]], Message]] = {
    "ready": lambda o: Ready(_side(_field(o, "who"))),
    "shot": lambda o: Shot(_side(_field(o, "from")), _coord(_field(o, "coordinate"))),
    "result": _decode_result,
    "turn": lambda o: Turn(_side(_field(o, "who"))),
    "win": lambda o: Win(_side(_field(o, "who"))),
    "ships": _decode_ships,
    "chat": _decode_chat,
}


def decode(data: Union[bytes, bytearray, str]) -> Message:
    """Parse one wire message; anything malformed raises ProtocolError."""
    try:
        obj = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"unparseable message: {exc}") from None
    if not isinstance(obj, dict):
        raise ProtocolError("message must be a JSON object")
    kind = obj.get("type")
    decoder = _DECODERS.get(kind) if isinstance(kind, str) else None
    if decoder is None:
        raise ProtocolError(f"unknown message type {obj.get('type')!r}")
    return decoder(obj)
