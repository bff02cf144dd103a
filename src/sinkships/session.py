"""Match state machine shared by every role (host, joiner, spectator, solo).

A Session owns one side of a match: its own board (built through a
PlacementEngine), its view of the opponent's board, the readiness flags,
the turn and the phase.  It never touches a socket.  Every operation
returns a :class:`Step` describing what happened (events) and what has to
be sent (outbound messages with a route); ``PeerNode`` hands the latter to
the transport.

Phases
------
SETUP                 placing ships; nothing has been declared
AWAITING_BOTH_READY   this side is ready, the other is not (yet)
ACTIVE                both ready; ``turn`` says who may fire, host first
FINISHED              someone's fleet is gone; every further shot is refused

Shot flow (network roles)
-------------------------
The side on turn sends ``shot``; only the owner of the target board can
resolve it, so the *receiver* calls ``apply_shot`` and answers ``result``.
The shooter records the result in its remote view, then either announces
``win`` (every kind sunk) or hands the turn over with ``turn``.

Relay
-----
The host is the hub: whatever it exchanges with the joiner is also fanned
out to every spectator, and spectator chat is passed on to the joiner and
the other spectators.  Spectators never inject gameplay messages.
"""

from __future__ import annotations

import enum
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import config as _cfg
from .battleship import (
    BOARD_SIZE,
    FLEET,
    Board,
    ShipKind,
    ShotOutcome,
    ShotResult,
    ValidationError,
    all_sunk,
    apply_shot,
)
from .bot_logic import TargetingAI
from .coord_utils import Coord, format_coord, in_bounds
from .events import Category, Event
from .messages import (
    Chat,
    Message,
    ProtocolError,
    Ready,
    Result,
    Role,
    Ships,
    Shot,
    Side,
    Turn,
    Win,
    decode,
)
from .placement import PlacementEngine

logger = logging.getLogger(__name__)


class Phase(str, enum.Enum):
    SETUP = "setup"
    AWAITING_BOTH_READY = "awaiting_both_ready"
    ACTIVE = "active"
    FINISHED = "finished"


class Route(enum.Enum):
    PEER = "peer"  # the one upstream channel: host<->joiner, spectator->host
    SPECTATORS = "spectators"  # every spectator channel attached to the host


class Origin(enum.Enum):
    """Which kind of channel an inbound message arrived on."""

    PEER = "peer"
    SPECTATOR = "spectator"


@dataclass(frozen=True)
class Outbound:
    route: Route
    message: Message
    exclude: Any = None  # spectator channel that must not receive its own chat back


@dataclass
class Step:
    """Result of one input-handling step."""

    events: List[Event] = field(default_factory=list)
    outbound: List[Outbound] = field(default_factory=list)
    outcome: Optional[ShotOutcome] = None
    error: Optional[ProtocolError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


_SIDE_OF_ROLE = {Role.HOST: Side.HOST, Role.SOLO: Side.HOST, Role.JOINER: Side.JOINER}


class Session:
    """One match as seen from one role."""

    def __init__(
        self,
        role: Role | str,
        *,
        size: int = BOARD_SIZE,
        fleet: Sequence[ShipKind] = FLEET,
        rng: Optional[random.Random] = None,
        notify: Optional[Callable[[Event], None]] = None,
    ) -> None:
        self.role = Role(role)
        self.size = size
        self.fleet = tuple(fleet)
        self._rng = rng
        # None for spectators, who own no board
        self.side: Optional[Side] = _SIDE_OF_ROLE.get(self.role)

        spectator = self.side is None
        self.placement: Optional[PlacementEngine] = None if spectator else PlacementEngine(size, self.fleet, rng=rng)
        self.remote_view: Optional[Board] = None if spectator else Board(size)
        # Spectator mirrors: shots fired *at* each side's board
        self.views: Dict[Side, Board] = {Side.HOST: Board(size), Side.JOINER: Board(size)} if spectator else {}

        self.ready: Dict[Side, bool] = {Side.HOST: False, Side.JOINER: False}
        self.turn: Optional[Side] = None
        self.phase = Phase.SETUP
        self.winner: Optional[Side] = None
        self.sunk_kinds: List[ShipKind] = []
        self.pending_shot: Optional[Coord] = None
        # Host only: the joiner's fleet reveal, replayed to late spectators
        self.joiner_reveal: Optional[Ships] = None

        # Solo only: the AI's own fleet and its shot picker
        self.opponent_board: Optional[Board] = None
        self.ai: Optional[TargetingAI] = TargetingAI(size, rng=rng) if self.role is Role.SOLO else None

        self._subs: List[Callable[[Event], None]] = []
        if notify is not None:
            self.subscribe(notify)

        self._handlers: Dict[type, Callable[[Step, Any], None]] = {
            Ready: self._on_ready,
            Shot: self._on_shot,
            Result: self._on_result,
            Turn: self._on_turn,
            Win: self._on_win,
            Ships: self._on_ships,
            Chat: self._on_chat,
        }

    # -------------------- properties --------------------
    @property
    def local_board(self) -> Optional[Board]:
        return self.placement.board if self.placement is not None else None

    @property
    def is_game_over(self) -> bool:
        return self.phase is Phase.FINISHED

    @property
    def awaiting_ai(self) -> bool:
        """Solo: the AI owes a reply shot."""
        return self.role is Role.SOLO and self.phase is Phase.ACTIVE and self.turn is Side.JOINER

    # -------------------- event bus --------------------
    def subscribe(self, cb: Callable[[Event], None]) -> None:
        """Register a notification sink for state-changed events."""
        self._subs.append(cb)

    def _emit(self, step: Step, category: Category, type_: str, **payload: Any) -> None:
        ev = Event(category, type_, payload)
        step.events.append(ev)
        for cb in tuple(self._subs):
            try:
                cb(ev)
            except Exception:  # noqa: BLE001
                # A misbehaving subscriber must not corrupt the match
                logger.exception("Event subscriber failed for %s", ev)

    def _send_pair(self, step: Step, msg: Message) -> None:
        """Queue *msg* for the opponent; the host mirrors it to spectators."""
        if self.role is Role.SOLO:
            return
        step.outbound.append(Outbound(Route.PEER, msg))
        if self.role is Role.HOST:
            step.outbound.append(Outbound(Route.SPECTATORS, msg))

    # -------------------- placement --------------------
    def _require_setup(self) -> PlacementEngine:
        if self.placement is None:
            raise ProtocolError("spectators have no fleet to place")
        if self.phase is not Phase.SETUP:
            raise ProtocolError("fleet is locked once you are ready")
        return self.placement

    def place_random(self) -> Step:
        """Replace the own fleet with a random, well-spaced one."""
        engine = self._require_setup()
        step = Step()
        board = engine.randomize()
        self._emit(step, Category.PLACEMENT, "randomized", ships=[s.kind.value for s in board.ships])
        return step

    def place_manual(self, rc: Coord) -> Step:
        """Place the next ship of the fleet at *rc* using the current orientation."""
        engine = self._require_setup()
        step = Step()
        ship = engine.place(tuple(rc))  # type: ignore[arg-type]
        next_kind = engine.next_kind
        self._emit(
            step,
            Category.PLACEMENT,
            "placed",
            kind=ship.kind.value,
            cells=sorted(ship.cells),
            next=next_kind.value if next_kind else None,
        )
        return step

    def rotate(self) -> Step:
        engine = self._require_setup()
        step = Step()
        self._emit(step, Category.PLACEMENT, "rotated", orientation=engine.rotate().value)
        return step

    def clear_placement(self) -> Step:
        engine = self._require_setup()
        step = Step()
        engine.clear()
        self._emit(step, Category.PLACEMENT, "cleared")
        return step

    # -------------------- readiness --------------------
    def submit_ready(self) -> Step:
        """Lock the own fleet and tell the other side."""
        if self.side is None:
            raise ProtocolError("spectators cannot declare readiness")
        if self.phase is not Phase.SETUP:
            raise ProtocolError("already ready")
        assert self.placement is not None
        if not self.placement.complete:
            raise ProtocolError(f"fleet incomplete: place the {self.placement.next_kind.value} first")  # type: ignore[union-attr]

        step = Step()
        if self.role is Role.SOLO:
            self.opponent_board = PlacementEngine(self.size, self.fleet, rng=self._rng).randomize()
            assert self.ai is not None
            self.ai.reset()
            self.ready[Side.JOINER] = True

        self.ready[self.side] = True
        self.phase = Phase.AWAITING_BOTH_READY
        logger.info("%s is ready", self.side.value)
        self._emit(step, Category.TURN, "ready", who=self.side.value)
        self._send_pair(step, Ready(self.side))
        self._maybe_activate(step)
        return step

    def _maybe_activate(self, step: Step) -> None:
        if not all(self.ready.values()) or self.phase in (Phase.ACTIVE, Phase.FINISHED):
            return
        self.phase = Phase.ACTIVE
        self.turn = Side.HOST
        logger.info("Both sides ready – %s fires first", self.turn.value)
        self._emit(step, Category.TURN, "active", turn=self.turn.value)

        if self.role in (Role.HOST, Role.JOINER):
            # Spectators hang off the host, so the joiner's reveal has to travel
            # through its opponent. The host only relays it and never reads it.
            route = Route.SPECTATORS if self.role is Role.HOST else Route.PEER
            step.outbound.append(Outbound(route, self._reveal()))

    def _reveal(self) -> Ships:
        board = self.local_board
        assert board is not None and self.side is not None
        return Ships(self.side, tuple((s.kind, tuple(sorted(s.cells))) for s in board.ships))

    def spectator_snapshot(self) -> List[Message]:
        """Host: messages that bring a freshly attached spectator up to the current state.

        Readiness, both fleet reveals, every resolved shot on either board,
        then the current turn or the winner.
        """
        if self.role is not Role.HOST:
            raise ProtocolError("only the host keeps spectators")
        msgs: List[Message] = [Ready(side) for side in (Side.HOST, Side.JOINER) if self.ready[side]]
        if self.phase not in (Phase.ACTIVE, Phase.FINISHED):
            return msgs
        msgs.append(self._reveal())
        if self.joiner_reveal is not None:
            msgs.append(self.joiner_reveal)
        board, view = self.local_board, self.remote_view
        assert board is not None and view is not None
        msgs += [Result(Side.HOST, rc, rc in board.hits) for rc in sorted(board.shots)]
        msgs += [Result(Side.JOINER, rc, rc in view.hits) for rc in sorted(view.shots)]
        if self.phase is Phase.FINISHED:
            assert self.winner is not None
            msgs.append(Win(self.winner))
        elif self.turn is not None:
            msgs.append(Turn(self.turn))
        return msgs

    # -------------------- shooting --------------------
    def submit_shot(self, rc: Coord) -> Step:
        """Fire at *rc* on the opponent's board."""
        if self.side is None:
            raise ProtocolError("spectators cannot fire")
        rc = (int(rc[0]), int(rc[1]))
        if not in_bounds(rc, self.size):
            raise ProtocolError(f"{rc!r} is off the board")
        if self.phase is Phase.FINISHED:
            raise ProtocolError("match is finished")
        if self.phase is not Phase.ACTIVE:
            raise ProtocolError("match has not started – both sides must be ready")
        if self.turn is not self.side:
            raise ProtocolError("not your turn")
        if self.pending_shot is not None:
            raise ProtocolError(f"still waiting for the result at {format_coord(*self.pending_shot)}")

        step = Step()
        assert self.remote_view is not None
        if rc in self.remote_view.shots:
            step.outcome = ShotOutcome(ShotResult.DUPLICATE)
            self._emit(step, Category.TURN, "duplicate", coord=rc)
            return step

        if self.role is Role.SOLO:
            assert self.opponent_board is not None
            outcome = apply_shot(self.opponent_board, rc)
            step.outcome = outcome
            self._apply_result(step, rc, outcome.hit, outcome.sunk_kind)
            return step

        self.pending_shot = rc
        self._emit(step, Category.TURN, "shot", who=self.side.value, coord=rc)
        self._send_pair(step, Shot(self.side, rc))
        return step

    def _apply_result(self, step: Step, rc: Coord, hit: bool, sunk_kind: Optional[ShipKind]) -> None:
        """Shooter side: store the verdict, then announce the win or pass the turn."""
        assert self.remote_view is not None and self.side is not None
        self.remote_view.record(rc, hit)
        if sunk_kind is not None and sunk_kind not in self.sunk_kinds:
            self.sunk_kinds.append(sunk_kind)
        self._emit(
            step,
            Category.TURN,
            "result",
            who=self.side.value,
            coord=rc,
            hit=hit,
            sunk=sunk_kind.value if sunk_kind else None,
        )
        if len(self.sunk_kinds) >= len(set(self.fleet)):
            self._finish(step, self.side)
            self._send_pair(step, Win(self.side))
            return
        self.turn = self.side.other
        self._emit(step, Category.TURN, "turn", who=self.turn.value)
        self._send_pair(step, Turn(self.turn))

    def ai_reply(self) -> Step:
        """Solo: let the AI fire back at the human's board."""
        if self.role is not Role.SOLO:
            raise ProtocolError("only solo matches have an AI opponent")
        if not self.awaiting_ai:
            raise ProtocolError("it is not the AI's turn")
        assert self.ai is not None and self.local_board is not None

        step = Step()
        rc = self.ai.pick()
        outcome = apply_shot(self.local_board, rc)
        self.ai.mark(rc, outcome.hit)
        step.outcome = outcome
        self._emit(
            step,
            Category.TURN,
            "incoming",
            who=Side.JOINER.value,
            coord=rc,
            hit=outcome.hit,
            sunk=outcome.sunk_kind.value if outcome.sunk_kind else None,
            mode=self.ai.mode.value,
        )
        if all_sunk(self.local_board):
            self._finish(step, Side.JOINER)
            return step
        self.turn = Side.HOST
        self._emit(step, Category.TURN, "turn", who=self.turn.value)
        return step

    def _finish(self, step: Step, winner: Side) -> None:
        self.phase = Phase.FINISHED
        self.winner = winner
        self.turn = None
        self.pending_shot = None
        logger.info("Match finished – %s wins", winner.value)
        self._emit(step, Category.TURN, "win", who=winner.value)

    # -------------------- chat --------------------
    def submit_chat(self, text: str, name: str = _cfg.DEFAULT_NAME) -> Step:
        text = text.strip()
        if not text:
            raise ProtocolError("empty chat message")
        step = Step()
        msg = Chat(self.role, name or "Anonymous", text)
        self._emit(step, Category.CHAT, "line", sender=self.role.value, name=msg.name, text=text)
        if self.role is Role.SPECTATOR:
            step.outbound.append(Outbound(Route.PEER, msg))
        else:
            self._send_pair(step, msg)
        return step

    # -------------------- inbound --------------------
    def handle_inbound(self, data: bytes | str, *, origin: Origin = Origin.PEER, source: Any = None) -> Step:
        """Apply one message from a channel. Never raises; problems land in ``Step.error``."""
        step = Step()
        try:
            msg = decode(data)
        except ProtocolError as exc:
            # Unparseable input is dropped outright, not relayed
            return self._reject(step, exc)

        if self.role is Role.SOLO:
            return self._reject(step, ProtocolError("solo matches have no peers"))

        if origin is Origin.SPECTATOR:
            if self.role is not Role.HOST:
                return self._reject(step, ProtocolError("only the host accepts spectator traffic"))
            if not isinstance(msg, Chat) or msg.sender is not Role.SPECTATOR:
                return self._reject(step, ProtocolError("spectators may only chat"))
            step.outbound.append(Outbound(Route.PEER, msg))
            step.outbound.append(Outbound(Route.SPECTATORS, msg, exclude=source))
            self._emit(step, Category.CHAT, "line", sender=msg.sender.value, name=msg.name, text=msg.text)
            return step

        if self.role is Role.HOST:
            if isinstance(msg, Ships):
                # Joiner's fleet reveal: forward to spectators, never look at it
                if msg.who is not Side.JOINER:
                    return self._reject(step, ProtocolError("joiner may only reveal its own fleet"))
                self.joiner_reveal = msg
                step.outbound.append(Outbound(Route.SPECTATORS, msg))
                return step
            step.outbound.append(Outbound(Route.SPECTATORS, msg))

        try:
            self._handlers[type(msg)](step, msg)
        except ProtocolError as exc:
            self._reject(step, exc)
        return step

    def _reject(self, step: Step, exc: ProtocolError) -> Step:
        logger.warning("Rejected inbound message: %s", exc)
        step.error = exc
        self._emit(step, Category.SYSTEM, "rejected", reason=str(exc))
        return step

    def _on_ready(self, step: Step, msg: Ready) -> None:
        if self.side is None:
            self.ready[msg.who] = True
            if self.phase is Phase.SETUP:
                self.phase = Phase.AWAITING_BOTH_READY
            self._emit(step, Category.TURN, "ready", who=msg.who.value)
            self._maybe_activate(step)
            return
        if msg.who is not self.side.other:
            raise ProtocolError(f"peer announced readiness for {msg.who.value}")
        if self.phase in (Phase.ACTIVE, Phase.FINISHED):
            raise ProtocolError("ready after the match started")
        if self.ready[msg.who]:
            logger.debug("Repeated ready from %s ignored", msg.who.value)
            return
        self.ready[msg.who] = True
        logger.info("%s is ready", msg.who.value)
        self._emit(step, Category.TURN, "ready", who=msg.who.value)
        self._maybe_activate(step)

    def _on_shot(self, step: Step, msg: Shot) -> None:
        if self.side is None:
            self._emit(step, Category.TURN, "shot", who=msg.sender.value, coord=msg.coord)
            return
        if msg.sender is not self.side.other:
            raise ProtocolError(f"shot claims to come from {msg.sender.value}")
        if self.phase is Phase.FINISHED:
            raise ProtocolError("shot after the match finished")
        if self.phase is not Phase.ACTIVE:
            raise ProtocolError("shot before both sides are ready")
        if self.turn is not msg.sender:
            raise ProtocolError(f"out-of-turn shot from {msg.sender.value}")

        board = self.local_board
        assert board is not None
        outcome = apply_shot(board, msg.coord)
        step.outcome = outcome
        if outcome.result is ShotResult.DUPLICATE:
            # No reply and no turn change. submit_shot never repeats a square, so only a
            # faulty peer gets here, and it stays blocked on its own pending shot.
            self._emit(step, Category.TURN, "duplicate", who=msg.sender.value, coord=msg.coord)
            return

        self._emit(
            step,
            Category.TURN,
            "incoming",
            who=msg.sender.value,
            coord=msg.coord,
            hit=outcome.hit,
            sunk=outcome.sunk_kind.value if outcome.sunk_kind else None,
        )
        self._send_pair(step, Result(self.side, msg.coord, outcome.hit, outcome.sunk_kind))
        if all_sunk(board):
            self._finish(step, msg.sender)
        else:
            # The shooter will hand the turn over; no second shot until then
            self.turn = self.side

    def _on_result(self, step: Step, msg: Result) -> None:
        if self.side is None:
            # Results come from the owner of the board that was hit
            self.views[msg.sender].record(msg.coord, msg.hit)
            self._emit(
                step,
                Category.TURN,
                "result",
                who=msg.sender.other.value,
                coord=msg.coord,
                hit=msg.hit,
                sunk=msg.sunk_kind.value if msg.sunk_kind else None,
            )
            return
        if msg.sender is not self.side.other:
            raise ProtocolError(f"result claims to come from {msg.sender.value}")
        if self.phase is not Phase.ACTIVE:
            raise ProtocolError("result outside an active match")
        if self.pending_shot != msg.coord:
            raise ProtocolError(f"unexpected result for {format_coord(*msg.coord)}")
        self.pending_shot = None
        step.outcome = ShotOutcome(ShotResult.HIT if msg.hit else ShotResult.MISS, msg.sunk_kind)
        self._apply_result(step, msg.coord, msg.hit, msg.sunk_kind)

    def _on_turn(self, step: Step, msg: Turn) -> None:
        if self.phase is not Phase.ACTIVE:
            raise ProtocolError("turn change outside an active match")
        if self.side is not None and msg.who is not self.side:
            raise ProtocolError(f"peer handed the turn to {msg.who.value}")
        self.turn = msg.who
        self._emit(step, Category.TURN, "turn", who=msg.who.value)

    def _on_win(self, step: Step, msg: Win) -> None:
        if self.phase is Phase.FINISHED:
            if self.winner is not msg.who:
                raise ProtocolError(f"conflicting win for {msg.who.value}")
            return
        if self.phase is not Phase.ACTIVE:
            raise ProtocolError("win before the match started")
        if self.side is not None and msg.who is not self.side.other:
            raise ProtocolError("peer announced a win on our behalf")
        self._finish(step, msg.who)

    def _on_ships(self, step: Step, msg: Ships) -> None:
        if self.side is not None:
            raise ProtocolError("fleet reveals are for spectators only")
        try:
            revealed = Board.from_layout(msg.ships, self.size)
        except ValidationError as exc:
            raise ProtocolError(f"bad fleet reveal: {exc}") from None
        # Keep results that arrived before the reveal
        old = self.views[msg.who]
        for rc in sorted(old.shots):
            revealed.record(rc, rc in old.hits)
        self.views[msg.who] = revealed
        self._emit(step, Category.TURN, "ships", who=msg.who.value, ships=[kind.value for kind, _ in msg.ships])

    def _on_chat(self, step: Step, msg: Chat) -> None:
        if self.side is not None and msg.sender not in (Role(self.side.other.value), Role.SPECTATOR):
            raise ProtocolError(f"chat claims to come from {msg.sender.value}")
        self._emit(step, Category.CHAT, "line", sender=msg.sender.value, name=msg.name, text=msg.text)
