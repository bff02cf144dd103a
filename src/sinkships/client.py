"""CLI client: terminal front-end for solo, joiner and spectator play.

    sinkships solo                      # against the computer
    sinkships join --host 10.0.0.5      # the host runs ``sinkships-host``
    sinkships spectate --host 10.0.0.5

The console only renders what the core reports (events and board state);
all rules live in Session.
"""

from __future__ import annotations

import argparse
import logging
import select
import socket
import sys
import threading
import time
from typing import Callable, Dict, List, Optional, Union

from . import config as _cfg
from .battleship import ExhaustionError, ValidationError
from .commands import (
    AutoCommand,
    ChatCommand,
    ClearCommand,
    Command,
    CommandParseError,
    FireCommand,
    NewGameCommand,
    PlaceCommand,
    QuitCommand,
    ReadyCommand,
    RevealCommand,
    RotateCommand,
    parse_command,
)
from .coord_utils import format_coord
from .encryption import check_key
from .events import Category, Event
from .io_utils import fleet_lines, grid_rows, sunk_summary
from .messages import ProtocolError, Role, Side
from .node import PeerNode
from .session import Session
from .solo import SoloMatch
from .transport import SocketChannel

HOST = _cfg.DEFAULT_HOST
PORT = _cfg.DEFAULT_PORT

logger = logging.getLogger(__name__)

Target = Union[PeerNode, SoloMatch]


# ------------------------------------------------------------
# Dual-board renderer
# ------------------------------------------------------------


def _print_two_grids(
    left_rows: list[str],
    right_rows: list[str],
    *,
    header_left: str,
    header_right: str,
) -> None:
    """Helper to print two 10×10 boards side-by-side with custom headers."""

    if not left_rows or not right_rows:
        return

    columns = len(left_rows[0].split())
    numeric_header = "   " + " ".join(f"{i:>2}" for i in range(1, columns + 1))

    board_width = len(numeric_header)
    left_header = f"[{header_left}]".center(board_width)
    right_header = f"[{header_right}]".center(board_width)

    print(f"\n{left_header}   {right_header}")
    print(f"{numeric_header}   {numeric_header}")

    for idx in range(len(left_rows)):
        label = chr(ord("A") + idx)
        left = " ".join(f"{c:>2}" for c in left_rows[idx].split())
        right = " ".join(f"{c:>2}" for c in right_rows[idx].split())
        print(f"{label:2} {left}   {label:2} {right}")


# ------------------------------------------------------------
# Event → text
# ------------------------------------------------------------


def _at(payload: dict) -> str:
    return format_coord(*payload["coord"])


def _verdict(payload: dict) -> str:
    if not payload.get("hit"):
        return "MISS"
    sunk = payload.get("sunk")
    return f"HIT – {sunk} sunk" if sunk else "HIT"


_TEXT: Dict[str, Callable[[dict], str]] = {
    "randomized": lambda p: "Fleet placed at random.",
    "placed": lambda p: f"Placed {p['kind']}." + (f" Next: {p['next']}." if p.get("next") else " Fleet complete – type READY."),
    "rotated": lambda p: f"Orientation: {'horizontal' if p['orientation'] == 'H' else 'vertical'}.",
    "cleared": lambda p: "Board cleared.",
    "ready": lambda p: f"{p['who']} is ready.",
    "active": lambda p: f"Both sides ready – {p['turn']} fires first.",
    "shot": lambda p: f"{p['who']} fires at {_at(p)}…",
    "incoming": lambda p: f"{p['who']} fired at {_at(p)}: {_verdict(p)}",
    "result": lambda p: f"{p['who']} → {_at(p)}: {_verdict(p)}",
    "duplicate": lambda p: f"{_at(p)} was already fired at.",
    "turn": lambda p: f"Turn: {p['who']}",
    "win": lambda p: f"*** {p['who']} wins ***",
    "ships": lambda p: f"{p['who']} fleet revealed.",
    "rejected": lambda p: f"[WARN] {p['reason']}",
}

# Events after which the boards are redrawn
_REDRAW = {"randomized", "placed", "cleared", "active", "incoming", "result", "ships", "win"}


def describe(ev: Event) -> Optional[str]:
    """One console line for *ev*, or None."""
    if ev.category is Category.CHAT:
        p = ev.payload
        return f"[CHAT] {p['name']} ({p['sender']}): {p['text']}"
    fmt = _TEXT.get(ev.type)
    return fmt(ev.payload) if fmt else None


class ConsoleView:
    """Prints events as they arrive and redraws the boards when they change."""

    def __init__(self, *, verbose: int = 0) -> None:
        self.verbose = verbose
        self.target: Optional[Target] = None
        self._out = threading.Lock()

    def on_event(self, ev: Event) -> None:
        if ev.category.name.lower() in _cfg.QUIET_CATEGORIES or self.verbose < 0:
            return
        line = describe(ev)
        with self._out:
            if line:
                print(f"\r{line}")
            if ev.type in _REDRAW and self.target is not None:
                self.render(self.target)

    def on_reply(self, step) -> None:
        _prompt()

    def render(self, target: Target) -> None:
        session: Session = target.session
        if session.role is Role.SPECTATOR:
            _print_two_grids(
                grid_rows(session.views[Side.HOST], reveal=True),
                grid_rows(session.views[Side.JOINER], reveal=True),
                header_left="Host Fleet",
                header_right="Joiner Fleet",
            )
            if self.verbose >= 0:
                for side in (Side.HOST, Side.JOINER):
                    print(f"  {side.value.capitalize()}: {sunk_summary(session.views[side].sunk_kinds())}")
            return
        assert session.local_board is not None and session.remote_view is not None
        left = grid_rows(session.remote_view)
        header_left = "Opponent Fleet"
        if isinstance(target, SoloMatch) and target.revealed and session.opponent_board is not None:
            left = grid_rows(session.opponent_board, reveal=True)
            header_left = "Opponent Fleet (revealed)"
        _print_two_grids(left, grid_rows(session.local_board, reveal=True), header_left=header_left, header_right="Your Fleet")
        if self.verbose >= 0:
            for line in fleet_lines(session.local_board):
                print(f"  {line}")
            print(f"  Enemy: {sunk_summary(session.sunk_kinds)}")


# ------------------------------------------------------------
# Command execution
# ------------------------------------------------------------


def execute(cmd: Command, target: Target, *, name: str, view: Optional[ConsoleView] = None) -> bool:
    """Apply one parsed command. Returns False when the user asked to quit."""
    solo = isinstance(target, SoloMatch)
    if isinstance(cmd, QuitCommand):
        return False
    if isinstance(cmd, PlaceCommand):
        placement = target.session.placement
        if cmd.orientation is not None and placement is not None and placement.orientation is not cmd.orientation:
            target.rotate()
        target.place_manual((cmd.row, cmd.col))
    elif isinstance(cmd, RotateCommand):
        target.rotate()
    elif isinstance(cmd, AutoCommand):
        target.place_random()
    elif isinstance(cmd, ClearCommand):
        target.clear_placement()
    elif isinstance(cmd, ReadyCommand):
        if solo:
            target.start()  # type: ignore[union-attr]
        else:
            target.submit_ready()  # type: ignore[union-attr]
    elif isinstance(cmd, FireCommand):
        if solo:
            target.fire((cmd.row, cmd.col))  # type: ignore[union-attr]
        else:
            target.submit_shot((cmd.row, cmd.col))  # type: ignore[union-attr]
    elif isinstance(cmd, ChatCommand):
        if solo:
            raise ProtocolError("nobody to chat with in a solo match")
        target.submit_chat(cmd.text, name)  # type: ignore[union-attr]
    elif isinstance(cmd, RevealCommand):
        if not solo:
            raise ProtocolError("REVEAL only works in a solo match")
        shown = target.toggle_reveal()  # type: ignore[union-attr]
        print(f"AI fleet {'revealed' if shown else 'hidden'}.")
        if view is not None:
            view.render(target)
    elif isinstance(cmd, NewGameCommand):
        if not solo:
            raise ProtocolError("NEW only works in a solo match")
        target.reset()  # type: ignore[union-attr]
        print("New game – place your fleet (AUTO, PLACE <coord> [H|V], ROTATE, CLEAR), then START.")
    return True


def _prompt() -> None:
    """Display the user-input prompt."""
    print(">> ", end="", flush=True)


def run_console(
    target: Target, *, name: str, view: Optional[ConsoleView] = None, stop: Optional[threading.Event] = None
) -> None:  # pragma: no cover
    """Read commands from stdin until QUIT, EOF or *stop* is set."""
    prompt_shown = False
    try:
        while True:
            if stop is not None and stop.is_set():
                print("\rConnection closed.")
                break
            if not prompt_shown:
                _prompt()
                prompt_shown = True
            ready, _, _ = select.select([sys.stdin], [], [], 0.5)
            if not ready:
                continue
            line = sys.stdin.readline()
            prompt_shown = False
            if not line:
                break
            if not line.strip():
                continue
            try:
                if not execute(parse_command(line), target, name=name, view=view):
                    logger.info("Exiting client per user request.")
                    break
            except (CommandParseError, ProtocolError, ValidationError, ExhaustionError) as exc:
                print(f"ERR {exc}")
    except KeyboardInterrupt:
        logger.info("Client exiting")


# ----------------------------- main -------------------------------


def _connect(host: str, port: int) -> Optional[socket.socket]:  # pragma: no cover
    """Retry once per second until connected or interrupted."""
    addr = (host, port)
    while True:
        try:
            sock = socket.create_connection(addr)
            logger.info("Connected to %s:%d", host, port)
            return sock
        except KeyboardInterrupt:
            return None
        except OSError:
            logger.info("Host not ready at %s:%d, retrying in 1s…", host, port)
        try:
            time.sleep(1)
        except KeyboardInterrupt:
            return None


def configure_logging(args: argparse.Namespace) -> None:
    if args.quiet:
        level = logging.ERROR
    elif args.debug or _cfg.DEBUG:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", default=_cfg.DEFAULT_NAME, help="Display name for chat.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (stackable)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress most output")


def resolve_key(hex_key: Optional[str]) -> Optional[bytes]:
    if hex_key:
        return check_key(bytes.fromhex(hex_key))
    return _cfg.DEFAULT_KEY


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sinkships", description="SinkShips terminal client")
    sub = parser.add_subparsers(dest="mode", required=True)

    solo = sub.add_parser("solo", help="Play against the computer.")
    solo.add_argument("--delay", type=float, default=_cfg.AI_REPLY_DELAY, help="Seconds the AI waits before firing back.")
    add_common_flags(solo)

    for mode, port, text in (
        ("join", PORT, "Join a hosted match as the opponent."),
        ("spectate", _cfg.SPECTATE_PORT, "Watch a hosted match."),
    ):
        p = sub.add_parser(mode, help=text)
        p.add_argument("--host", default=HOST)
        p.add_argument("--port", type=int, default=port)
        p.add_argument("--key", help="Hex AES key; must match the host's.")
        add_common_flags(p)
    return parser


def main(argv: Optional[List[str]] = None) -> None:  # pragma: no cover – CLI entry
    """Interactive CLI client."""
    args = build_parser().parse_args(argv)
    configure_logging(args)
    view = ConsoleView(verbose=-1 if args.quiet else args.verbose)

    if args.mode == "solo":
        match = SoloMatch(delay=args.delay, notify=view.on_event, on_reply=view.on_reply)
        view.target = match
        print("Place your fleet (AUTO, PLACE <coord> [H|V], ROTATE, CLEAR), then START.")
        view.render(match)
        run_console(match, name=args.name, view=view)
        match.reset()
        return

    sock = _connect(args.host, args.port)
    if sock is None:
        return
    role = Role.JOINER if args.mode == "join" else Role.SPECTATOR
    node = PeerNode(Session(role, notify=view.on_event))
    view.target = node
    node.attach_peer(SocketChannel(sock, name="host", key=resolve_key(args.key)))
    if role is Role.JOINER:
        print("Connected. Place your fleet (AUTO, PLACE <coord> [H|V], ROTATE, CLEAR), then READY.")
        view.render(node)
    else:
        print("Spectating. CHAT <text> to talk, QUIT to leave.")
    try:
        run_console(node, name=args.name, view=view, stop=node.peer_closed)
    finally:
        node.close()


if __name__ == "__main__":  # pragma: no cover
    main()
