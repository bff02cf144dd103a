"""Deliver a Session's outbound messages to the right channels.

The router lives *outside* Session so that delivery rules are declared in a
single place and the state machine never sees a socket.  It is also
straight-forward to unit-test by feeding synthetic Step objects.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .io_utils import send as io_send
from .messages import encode
from .session import Outbound, Route, Step
from .spectator_hub import SpectatorHub
from .transport import Channel

logger = logging.getLogger(__name__)


class MessageRouter:
    """Encode outbound messages and hand them to the peer channel or the spectator hub."""

    def __init__(self, hub: Optional[SpectatorHub] = None, peer: Optional[Channel] = None) -> None:
        self.hub = hub
        self.peer = peer
        # Peer-bound messages produced before any peer attached, in order
        self.held: List[bytes] = []

    def attach_peer(self, peer: Channel) -> int:
        """Route to *peer* from now on and flush what was held for it. Returns the flushed count."""
        self.peer = peer
        held, self.held = self.held, []
        for data in held:
            io_send(peer, data)
        if held:
            logger.info("Flushed %d held message(s) to %s", len(held), peer.name)
        return len(held)

    # ------------------------------------------------------------------
    # Public dispatch entry
    # ------------------------------------------------------------------
    def __call__(self, step: Step) -> None:
        try:
            self.deliver(step.outbound)
        except Exception:  # noqa: BLE001
            logger.exception("Message routing failed for %s", step)

    def deliver(self, outbound: Iterable[Outbound]) -> None:
        for out in outbound:
            data = encode(out.message)
            if out.route is Route.PEER:
                if self.peer is None:
                    logger.debug("No peer attached yet; holding %s", type(out.message).__name__)
                    self.held.append(data)
                    continue
                io_send(self.peer, data)
            elif out.route is Route.SPECTATORS:
                if self.hub is None or self.hub.empty():
                    continue
                self.hub.broadcast(data, exclude=out.exclude)
            else:  # pragma: no cover – unknown route
                logger.debug("Ignoring outbound %s", out)
