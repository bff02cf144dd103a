import logging
import random
from typing import Callable, List

import pytest

from sinkships.battleship import Board, Orientation, ShipKind
from sinkships.messages import Role
from sinkships.node import PeerNode
from sinkships.session import Session
from sinkships.transport import LoopbackChannel, loopback_pair, pump, socket_pair

# Suppress INFO & DEBUG logs from session and channel threads during tests
logging.basicConfig(level=logging.WARNING)


# Hand-packed fleet used wherever a test needs to know where the ships are:
# one ship per row, starting in column 0.
FIXED_LAYOUT = [
    (ShipKind.CARRIER, [(0, c) for c in range(5)]),
    (ShipKind.BATTLESHIP, [(2, c) for c in range(4)]),
    (ShipKind.CRUISER, [(4, c) for c in range(3)]),
    (ShipKind.SUBMARINE, [(6, c) for c in range(3)]),
    (ShipKind.DESTROYER, [(8, c) for c in range(2)]),
]

FIXED_CELLS = [rc for _, cells in FIXED_LAYOUT for rc in cells]


def place_fixed(session: Session) -> None:
    """Place FIXED_LAYOUT through the manual placement path."""
    assert session.placement is not None
    if session.placement.orientation is not Orientation.HORIZONTAL:
        session.rotate()
    for _, cells in FIXED_LAYOUT:
        session.place_manual(cells[0])


@pytest.fixture
def fixed_board() -> Board:
    return Board.from_layout(FIXED_LAYOUT)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


class Match:
    """Host, joiner and spectators wired together over loopback channels."""

    def __init__(self, n_spectators: int = 1) -> None:
        self.events: dict = {}
        self.host = PeerNode(self._session(Role.HOST, "host"))
        self.joiner = PeerNode(self._session(Role.JOINER, "joiner"))
        self.channels: List[LoopbackChannel] = []

        h_side, j_side = loopback_pair("host->joiner", "joiner->host")
        self.host.attach_peer(h_side)
        self.joiner.attach_peer(j_side)
        self.channels += [h_side, j_side]

        self.spectators: List[PeerNode] = []
        self.spectator_links: List[LoopbackChannel] = []
        for i in range(n_spectators):
            self.add_spectator(f"spectator{i}")

    def _session(self, role: Role, key: str) -> Session:
        log: list = []
        self.events[key] = log
        return Session(role, notify=log.append)

    def add_spectator(self, key: str) -> PeerNode:
        node = PeerNode(self._session(Role.SPECTATOR, key))
        host_end, spec_end = loopback_pair(f"host->{key}", f"{key}->host")
        self.host.attach_spectator(host_end)
        node.attach_peer(spec_end)
        self.spectators.append(node)
        self.spectator_links.append(host_end)
        self.channels += [host_end, spec_end]
        return node

    def pump(self) -> int:
        return pump(*self.channels)

    def ready_both(self) -> None:
        place_fixed(self.host.session)
        place_fixed(self.joiner.session)
        self.host.submit_ready()
        self.joiner.submit_ready()
        self.pump()

    def fire(self, node: PeerNode, rc) -> None:
        node.submit_shot(rc)
        self.pump()


@pytest.fixture
def match_factory() -> Callable[..., Match]:
    return Match


@pytest.fixture
def match() -> Match:
    return Match()


@pytest.fixture
def sockets():
    """Connected SocketChannel pair; closed after the test."""
    left, right = socket_pair()
    yield left, right
    left.close()
    right.close()
