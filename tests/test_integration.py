"""Integration test: host server, joiner and spectator over real TCP sockets."""

from __future__ import annotations

import socket
import time
from typing import Callable

import pytest

from sinkships.messages import Role, Side
from sinkships.node import PeerNode
from sinkships.server import HostServer
from sinkships.session import Phase, Session
from sinkships.transport import SocketChannel

from conftest import place_fixed

KEY = bytes.fromhex("00112233445566778899aabbccddeeff")


def wait_until(pred: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not pred():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.01)


def _connect(addr, role: Role, name: str, key=None) -> PeerNode:
    node = PeerNode(Session(role))
    node.attach_peer(SocketChannel(socket.create_connection(addr), name=name, key=key))
    return node


@pytest.fixture(params=[None, KEY], ids=["crc", "aes"])
def hosted(request):
    key = request.param
    host = PeerNode(Session(Role.HOST))
    server = HostServer(host, host="127.0.0.1", port=0, spectate_port=0, key=key)
    server.start()
    nodes = []

    def connect(role: Role, name: str) -> PeerNode:
        addr = server.address if role is Role.JOINER else server.spectate_address
        node = _connect(addr, role, name, key)
        nodes.append(node)
        return node

    yield host, server, connect
    for node in nodes:
        node.close()
    server.close()


@pytest.mark.timeout(20)  # type: ignore[arg-type]
def test_match_over_sockets_reaches_spectator(hosted) -> None:
    host, server, connect = hosted
    spectator = connect(Role.SPECTATOR, "spectator")
    wait_until(lambda: len(host.hub) == 1)
    joiner = connect(Role.JOINER, "joiner")
    assert server.joined.wait(5)

    place_fixed(host.session)
    place_fixed(joiner.session)
    host.submit_ready()
    joiner.submit_ready()
    wait_until(lambda: host.session.phase is Phase.ACTIVE and joiner.session.phase is Phase.ACTIVE)
    assert host.session.turn is joiner.session.turn is Side.HOST

    host.submit_shot((1, 0))
    wait_until(lambda: host.session.turn is Side.JOINER and joiner.session.turn is Side.JOINER)
    joiner.submit_shot((0, 0))
    wait_until(lambda: host.session.turn is Side.HOST and joiner.session.turn is Side.HOST)

    assert host.session.remote_view.misses == {(1, 0)}
    assert joiner.session.remote_view.hits == {(0, 0)}

    views = spectator.session.views
    wait_until(lambda: (1, 0) in views[Side.JOINER].misses and (0, 0) in views[Side.HOST].hits)
    wait_until(lambda: len(views[Side.HOST].ships) == 5 and len(views[Side.JOINER].ships) == 5)


@pytest.mark.timeout(20)  # type: ignore[arg-type]
def test_chat_over_sockets(hosted) -> None:
    host, server, connect = hosted
    first = connect(Role.SPECTATOR, "spectator1")
    second = connect(Role.SPECTATOR, "spectator2")
    wait_until(lambda: len(host.hub) == 2)
    joiner = connect(Role.JOINER, "joiner")
    assert server.joined.wait(5)

    lines = {"host": [], "joiner": [], "first": [], "second": []}
    for key, node in (("host", host), ("joiner", joiner), ("first", first), ("second", second)):
        node.session.subscribe(lambda ev, key=key: ev.type == "line" and lines[key].append(ev.payload["text"]))

    first.submit_chat("hello", "Eve")
    wait_until(lambda: lines["host"] and lines["joiner"] and lines["second"])
    assert lines["host"] == lines["joiner"] == lines["second"] == ["hello"]
    time.sleep(0.1)
    # only the local echo, never relayed back to its author
    assert lines["first"] == ["hello"]


@pytest.mark.timeout(20)  # type: ignore[arg-type]
def test_second_player_is_refused(hosted) -> None:
    host, server, connect = hosted
    connect(Role.JOINER, "joiner")
    assert server.joined.wait(5)
    extra = socket.create_connection(server.address)
    extra.settimeout(5)
    try:
        assert extra.recv(1) == b""
    finally:
        extra.close()
    assert host.peer is not None and host.peer.name == "joiner"


@pytest.mark.timeout(20)  # type: ignore[arg-type]
def test_peer_disconnect_sets_event(hosted) -> None:
    host, server, connect = hosted
    joiner = connect(Role.JOINER, "joiner")
    assert server.joined.wait(5)
    wait_until(lambda: host.peer is not None)
    joiner.close()
    assert host.peer_closed.wait(5)
