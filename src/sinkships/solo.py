"""Single-player match against the TargetingAI.

The human always plays the host side and fires first.  After every human
shot that does not end the match, the AI replies once; the reply is delayed
by ``delay`` seconds on a timer thread purely for pacing.  With ``delay <= 0``
the reply is computed before ``fire()`` returns, which is what tests use.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Callable, Optional, Sequence

from . import config as _cfg
from .battleship import BOARD_SIZE, FLEET, ShipKind
from .coord_utils import Coord
from .events import Event
from .messages import Role
from .session import Session, Step

logger = logging.getLogger(__name__)


class SoloMatch:
    def __init__(
        self,
        *,
        delay: float = _cfg.AI_REPLY_DELAY,
        rng: Optional[random.Random] = None,
        notify: Optional[Callable[[Event], None]] = None,
        on_reply: Optional[Callable[[Step], None]] = None,
        size: int = BOARD_SIZE,
        fleet: Sequence[ShipKind] = FLEET,
    ) -> None:
        self.delay = delay
        self._rng = rng
        self._notify = notify
        self._on_reply = on_reply
        self._size = size
        self._fleet = tuple(fleet)
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self.last_reply: Optional[Step] = None
        # Whether the AI's fleet is drawn uncovered
        self.revealed = False
        self.session = self._new_session()

    def _new_session(self) -> Session:
        return Session(Role.SOLO, size=self._size, fleet=self._fleet, rng=self._rng, notify=self._notify)

    # -------------------- placement --------------------
    def place_random(self) -> Step:
        with self._lock:
            return self.session.place_random()

    def place_manual(self, rc: Coord) -> Step:
        with self._lock:
            return self.session.place_manual(rc)

    def rotate(self) -> Step:
        with self._lock:
            return self.session.rotate()

    def clear_placement(self) -> Step:
        with self._lock:
            return self.session.clear_placement()

    def start(self) -> Step:
        """Lock the fleet and begin. An unfinished fleet is replaced by a random one first."""
        with self._lock:
            session = self.session
            step = Step()
            assert session.placement is not None
            if not session.placement.complete:
                step.events.extend(session.place_random().events)
            ready = session.submit_ready()
            step.events.extend(ready.events)
            return step

    # -------------------- play --------------------
    def fire(self, rc: Coord) -> Step:
        """Fire at the AI's board; schedules (or with no delay, runs) the AI's answer."""
        with self._lock:
            session = self.session
            step = session.submit_shot(rc)
            if not session.awaiting_ai:
                return step
            if self.delay <= 0:
                reply = self._reply(session)
                if reply is not None:
                    step.events.extend(reply.events)
                return step
            self._timer = threading.Timer(self.delay, self._on_timer, args=(session,))
            self._timer.daemon = True
            self._timer.start()
            return step

    def _on_timer(self, session: Session) -> None:
        reply = self._reply(session)
        if reply is not None and self._on_reply is not None:
            try:
                self._on_reply(reply)
            except Exception:  # noqa: BLE001
                logger.exception("AI reply callback failed")

    def _reply(self, session: Session) -> Optional[Step]:
        with self._lock:
            self._timer = None
            if session is not self.session or not session.awaiting_ai:
                logger.debug("Discarding stale AI reply")
                return None
            reply = session.ai_reply()
            self.last_reply = reply
            return reply

    @property
    def thinking(self) -> bool:
        """True while a delayed AI reply is scheduled."""
        with self._lock:
            return self._timer is not None

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until a scheduled AI reply (if any) has run."""
        timer = self._timer
        if timer is not None:
            timer.join(timeout)

    def toggle_reveal(self) -> bool:
        with self._lock:
            self.revealed = not self.revealed
            return self.revealed

    def reset(self) -> Session:
        """Abandon the current match (a pending AI reply is cancelled) and start a fresh one."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self.session = self._new_session()
            self.last_reply = None
            self.revealed = False
            logger.info("New solo match")
            return self.session
