"""Channels, the spectator hub and the message router."""

import socket
import threading

import pytest

from sinkships.common import PacketType, pack
from sinkships.messages import Chat, Ready, Role, Side, decode
from sinkships.router import MessageRouter
from sinkships.session import Outbound, Route, Step
from sinkships.spectator_hub import SpectatorHub
from sinkships.transport import SocketChannel, loopback_pair, pump, socket_pair

KEY = bytes(range(32))


class Inbox:
    """Collects delivered payloads and lets a test wait for a given count."""

    def __init__(self) -> None:
        self.items = []
        self.closed = threading.Event()
        self._cond = threading.Condition()

    def on_message(self, channel, data: bytes) -> None:
        with self._cond:
            self.items.append(data)
            self._cond.notify_all()

    def on_close(self, channel) -> None:
        self.closed.set()

    def wait_for(self, n: int, timeout: float = 3.0) -> list:
        with self._cond:
            self._cond.wait_for(lambda: len(self.items) >= n, timeout)
            return list(self.items)


# ---------------------------------------------------------------------------
# Loopback
# ---------------------------------------------------------------------------


def test_loopback_delivers_in_order_on_pump():
    a, b = loopback_pair()
    got = Inbox()
    b.bind(got.on_message)
    a.bind(lambda ch, data: None)
    for i in range(3):
        assert a.send(b"m%d" % i)
    assert got.items == []
    assert pump(a, b) == 3
    assert got.items == [b"m0", b"m1", b"m2"]


def test_loopback_close_closes_both_ends():
    a, b = loopback_pair()
    closes = []
    a.bind(lambda ch, d: None, on_close=closes.append)
    b.bind(lambda ch, d: None, on_close=closes.append)
    a.close()
    assert not a.is_open and not b.is_open
    assert closes == [a, b]
    assert a.send(b"late") is False


def test_loopback_handler_exception_does_not_stop_pump():
    a, b = loopback_pair()
    got = []

    def handler(ch, data):
        if data == b"bad":
            raise RuntimeError("boom")
        got.append(data)

    b.bind(handler)
    a.send(b"bad")
    a.send(b"good")
    pump(a, b)
    assert got == [b"good"]


# ---------------------------------------------------------------------------
# Sockets
# ---------------------------------------------------------------------------


@pytest.mark.timeout(10)
def test_socket_channel_roundtrip(sockets):
    left, right = sockets
    left_in, right_in = Inbox(), Inbox()
    left.bind(left_in.on_message)
    right.bind(right_in.on_message)
    assert left.send(b'{"type":"ready","who":"host"}')
    assert right.send(b"pong")
    assert right_in.wait_for(1) == [b'{"type":"ready","who":"host"}']
    assert left_in.wait_for(1) == [b"pong"]


@pytest.mark.timeout(10)
def test_socket_channel_with_key():
    left, right = socket_pair(key=KEY)
    got = Inbox()
    try:
        left.bind(lambda ch, d: None)
        right.bind(got.on_message)
        for i in range(5):
            left.send(b"secret-%d" % i)
        assert got.wait_for(5) == [b"secret-%d" % i for i in range(5)]
    finally:
        left.close()
        right.close()


@pytest.mark.timeout(10)
def test_corrupt_frame_is_skipped():
    raw, wrapped = socket.socketpair()
    channel = SocketChannel(wrapped, name="victim")
    got = Inbox()
    channel.bind(got.on_message)
    try:
        corrupt = bytearray(pack(PacketType.MESSAGE, 1, b"lost"))
        corrupt[-1] ^= 0xFF
        raw.sendall(bytes(corrupt) + pack(PacketType.MESSAGE, 2, b"kept"))
        assert got.wait_for(1) == [b"kept"]
        assert channel.is_open
    finally:
        raw.close()
        channel.close()


@pytest.mark.timeout(10)
def test_bad_magic_closes_channel():
    raw, wrapped = socket.socketpair()
    channel = SocketChannel(wrapped, name="victim")
    got = Inbox()
    channel.bind(got.on_message, on_close=got.on_close)
    try:
        raw.sendall(b"\x00" * 32)
        assert got.closed.wait(3)
        assert not channel.is_open
        assert got.items == []
    finally:
        raw.close()


@pytest.mark.timeout(10)
def test_close_notifies_both_sides(sockets):
    left, right = sockets
    left_in, right_in = Inbox(), Inbox()
    left.bind(left_in.on_message, on_close=left_in.on_close)
    right.bind(right_in.on_message, on_close=right_in.on_close)
    left.close()
    assert left_in.closed.wait(3)
    assert right_in.closed.wait(3)
    right.join(3)
    assert right.send(b"late") is False


# ---------------------------------------------------------------------------
# Spectator hub
# ---------------------------------------------------------------------------


def _spectators(n):
    hub = SpectatorHub()
    host_ends, inboxes = [], []
    for i in range(n):
        host_end, spec_end = loopback_pair(f"host->s{i}", f"s{i}->host")
        inbox = Inbox()
        spec_end.bind(inbox.on_message)
        hub.add(host_end)
        host_ends.append((host_end, spec_end))
        inboxes.append(inbox)
    return hub, host_ends, inboxes


def test_hub_broadcast_reaches_everyone_but_excluded():
    hub, ends, inboxes = _spectators(3)
    assert hub.broadcast(b"hello", exclude=ends[1][0]) == 2
    pump(*(ch for pair in ends for ch in pair))
    assert [len(i.items) for i in inboxes] == [1, 0, 1]


def test_hub_drops_broken_channels():
    hub, ends, inboxes = _spectators(2)
    ends[0][1].close()
    assert hub.broadcast(b"hello") == 1
    assert len(hub) == 1
    assert hub.channels() == [ends[1][0]]


def test_hub_add_is_idempotent_and_remove_unknown_is_noop():
    hub, ends, _ = _spectators(1)
    hub.add(ends[0][0])
    assert len(hub) == 1
    hub.remove(object())
    hub.remove(ends[0][0])
    assert hub.empty()


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


def test_router_sends_peer_and_spectator_routes():
    hub, ends, inboxes = _spectators(2)
    peer, far = loopback_pair("host->joiner", "joiner->host")
    peer_in = Inbox()
    far.bind(peer_in.on_message)
    router = MessageRouter(hub, peer)
    chat = Chat(Role.SPECTATOR, "Eve", "hi")
    router(
        Step(
            outbound=[
                Outbound(Route.PEER, Ready(Side.HOST)),
                Outbound(Route.SPECTATORS, Ready(Side.HOST)),
                Outbound(Route.SPECTATORS, chat, exclude=ends[0][0]),
            ]
        )
    )
    pump(peer, far, *(ch for pair in ends for ch in pair))
    assert [decode(d) for d in peer_in.items] == [Ready(Side.HOST)]
    assert [decode(d) for d in inboxes[0].items] == [Ready(Side.HOST)]
    assert [decode(d) for d in inboxes[1].items] == [Ready(Side.HOST), chat]


def test_router_holds_peer_messages_until_a_peer_attaches():
    router = MessageRouter()
    router(Step(outbound=[Outbound(Route.PEER, Ready(Side.HOST)), Outbound(Route.SPECTATORS, Ready(Side.HOST))]))
    router(Step(outbound=[Outbound(Route.PEER, Chat(Role.HOST, "Ann", "anyone?"))]))
    assert len(router.held) == 2

    peer, far = loopback_pair("host->joiner", "joiner->host")
    got = Inbox()
    far.bind(got.on_message)
    assert router.attach_peer(peer) == 2
    assert router.held == []
    router(Step(outbound=[Outbound(Route.PEER, Ready(Side.HOST))]))
    pump(peer, far)
    assert [decode(d) for d in got.items] == [Ready(Side.HOST), Chat(Role.HOST, "Ann", "anyone?"), Ready(Side.HOST)]
