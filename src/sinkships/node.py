"""Glue between one Session and the channels it talks over.

PeerNode serialises every input (local commands and inbound messages from
any channel thread) through one lock, runs it through the Session and hands
the resulting outbound messages to the MessageRouter.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from .coord_utils import Coord
from .io_utils import send as io_send
from .messages import ProtocolError, Role, encode
from .router import MessageRouter
from .session import Origin, Session, Step
from .spectator_hub import SpectatorHub
from .transport import Channel

logger = logging.getLogger(__name__)


class PeerNode:
    def __init__(
        self,
        session: Session,
        *,
        peer: Optional[Channel] = None,
        hub: Optional[SpectatorHub] = None,
        on_step: Optional[Callable[[Step], None]] = None,
    ) -> None:
        self.session = session
        if hub is None and session.role is Role.HOST:
            hub = SpectatorHub()
        self.hub = hub
        self.router = MessageRouter(hub)
        self.peer: Optional[Channel] = None
        self.peer_closed = threading.Event()
        self._on_step = on_step
        self._lock = threading.RLock()
        if peer is not None:
            self.attach_peer(peer)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------
    def attach_peer(self, channel: Channel) -> None:
        """Bind the single upstream channel (opponent, or the host for a spectator)."""
        if self.session.role is Role.SOLO:
            raise ProtocolError("solo matches have no peer")
        with self._lock:
            self.peer = channel
            self.peer_closed.clear()
            channel.bind(self._on_peer_message, on_close=self._on_peer_close)
            # Anything sent before the peer existed (e.g. an early READY) goes out first
            self.router.attach_peer(channel)

    def attach_spectator(self, channel: Channel) -> None:
        if self.hub is None:
            raise ProtocolError("only the host accepts spectators")
        with self._lock:
            # Catch-up goes out before the first broadcast can reach this channel
            snapshot = self.session.spectator_snapshot()
            for msg in snapshot:
                io_send(channel, encode(msg))
            if snapshot:
                logger.info("Sent %d catch-up message(s) to %s", len(snapshot), channel.name)
            self.hub.add(channel)
            channel.bind(self._on_spectator_message, on_close=self.hub.remove)

    def close(self, timeout: float = 1.0) -> None:
        if self.peer is not None:
            self.peer.close()
            self.peer.join(timeout)
        if self.hub is not None:
            for ch in self.hub.channels():
                ch.close()

    # ------------------------------------------------------------------
    # Local commands
    # ------------------------------------------------------------------
    def place_random(self) -> Step:
        return self._run(self.session.place_random)

    def place_manual(self, rc: Coord) -> Step:
        return self._run(self.session.place_manual, rc)

    def rotate(self) -> Step:
        return self._run(self.session.rotate)

    def clear_placement(self) -> Step:
        return self._run(self.session.clear_placement)

    def submit_ready(self) -> Step:
        return self._run(self.session.submit_ready)

    def submit_shot(self, rc: Coord) -> Step:
        return self._run(self.session.submit_shot, rc)

    def submit_chat(self, text: str, name: Optional[str] = None) -> Step:
        if name is None:
            return self._run(self.session.submit_chat, text)
        return self._run(self.session.submit_chat, text, name)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def _on_peer_message(self, channel: Channel, data: bytes) -> None:
        self._run(self.session.handle_inbound, data)

    def _on_spectator_message(self, channel: Channel, data: bytes) -> None:
        self._run(lambda: self.session.handle_inbound(data, origin=Origin.SPECTATOR, source=channel))

    def _on_peer_close(self, channel: Channel) -> None:
        logger.info("Connection to %s closed", channel.name)
        self.peer_closed.set()

    # ------------------------------------------------------------------
    def _run(self, fn: Callable[..., Step], *args: Any) -> Step:
        with self._lock:
            step = fn(*args)
            self.router(step)
        if self._on_step is not None:
            try:
                self._on_step(step)
            except Exception:  # noqa: BLE001
                logger.exception("Step callback failed")
        return step
