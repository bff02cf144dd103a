"""Message channels between the participants of a match.

A channel moves opaque byte strings (encoded wire messages) in both
directions, in order, and reports when it opens and closes.  Two
implementations:

* ``LoopbackChannel`` – in-process pair with an explicit ``pump()``; used by
  tests and anything that wants deterministic delivery.
* ``SocketChannel`` – framed TCP stream (see ``common``) with a reader thread.
"""

from __future__ import annotations

import collections
import contextlib
import itertools
import logging
import socket
import threading
from typing import Callable, Deque, List, Optional, Tuple

from .common import CrcError, FrameError, IncompleteError, PacketType, recv_pkt, send_pkt

logger = logging.getLogger(__name__)

MessageCallback = Callable[["Channel", bytes], None]
StateCallback = Callable[["Channel"], None]


class Channel:
    """Base class: callback plumbing shared by every transport."""

    name = "channel"

    def __init__(self) -> None:
        self._on_message: Optional[MessageCallback] = None
        self._on_open: Optional[StateCallback] = None
        self._on_close: Optional[StateCallback] = None
        self._closed = False

    def bind(
        self,
        on_message: MessageCallback,
        *,
        on_open: Optional[StateCallback] = None,
        on_close: Optional[StateCallback] = None,
    ) -> None:
        """Attach callbacks and start delivering."""
        self._on_message = on_message
        self._on_open = on_open
        self._on_close = on_close
        self._start()

    def _start(self) -> None:  # pragma: no cover – overridden
        pass

    @property
    def is_open(self) -> bool:
        return not self._closed

    def send(self, data: bytes) -> bool:  # pragma: no cover – overridden
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover – overridden
        raise NotImplementedError

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for any background reader to finish. In-process channels have none."""

    # ------------------------------------------------------------------
    def _deliver(self, data: bytes) -> None:
        if self._on_message is None:
            logger.debug("%s: no receiver bound, dropping %d bytes", self.name, len(data))
            return
        try:
            self._on_message(self, data)
        except Exception:  # noqa: BLE001
            logger.exception("%s: message handler failed", self.name)

    def _fire(self, cb: Optional[StateCallback]) -> None:
        if cb is None:
            return
        try:
            cb(self)
        except Exception:  # noqa: BLE001
            logger.exception("%s: state callback failed", self.name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}{' closed' if self._closed else ''}>"


# ---------------------------------------------------------------------------
# Loopback
# ---------------------------------------------------------------------------


class LoopbackChannel(Channel):
    """One end of an in-process channel pair. Messages wait in the peer's inbox until pumped."""

    def __init__(self, name: str = "loopback") -> None:
        super().__init__()
        self.name = name
        self.peer: Optional["LoopbackChannel"] = None
        self.inbox: Deque[bytes] = collections.deque()
        self._opened = False

    def _start(self) -> None:
        if not self._opened and not self._closed:
            self._opened = True
            self._fire(self._on_open)

    def send(self, data: bytes) -> bool:
        if self._closed or self.peer is None or self.peer._closed:
            logger.debug("%s: send on closed channel dropped", self.name)
            return False
        self.peer.inbox.append(bytes(data))
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.inbox.clear()
        self._fire(self._on_close)
        peer = self.peer
        if peer is not None and not peer._closed:
            peer.close()

    def pump_once(self) -> bool:
        """Deliver one queued message. Returns False when the inbox is empty."""
        if self._closed or not self.inbox:
            return False
        self._deliver(self.inbox.popleft())
        return True


def loopback_pair(a: str = "a", b: str = "b") -> Tuple[LoopbackChannel, LoopbackChannel]:
    left, right = LoopbackChannel(a), LoopbackChannel(b)
    left.peer, right.peer = right, left
    return left, right


def pump(*channels: LoopbackChannel, limit: int = 10_000) -> int:
    """Deliver queued messages round-robin until every inbox is empty. Returns the count."""
    delivered = 0
    while delivered < limit:
        progressed = False
        for ch in channels:
            if ch.pump_once():
                delivered += 1
                progressed = True
        if not progressed:
            break
    return delivered


# ---------------------------------------------------------------------------
# Sockets
# ---------------------------------------------------------------------------


class SocketChannel(Channel):
    """Framed TCP stream. A daemon thread reads frames and invokes the message callback."""

    _ids = itertools.count(1)

    def __init__(self, sock: socket.socket, *, name: Optional[str] = None, key: Optional[bytes] = None) -> None:
        super().__init__()
        self.sock = sock
        self.name = name or f"sock{next(self._ids)}"
        self.key = key
        self._rfile = sock.makefile("rb")
        self._wfile = sock.makefile("wb")
        self._send_lock = threading.Lock()
        self._seq = 0
        self._thread: Optional[threading.Thread] = None

    def _start(self) -> None:
        self._fire(self._on_open)
        self._thread = threading.Thread(target=self._reader, name=f"{self.name}-reader", daemon=True)
        self._thread.start()

    def _reader(self) -> None:
        try:
            while not self._closed:
                try:
                    ptype, seq, payload = recv_pkt(self._rfile, key=self.key)
                except CrcError as exc:
                    # Frame boundaries are intact, only this frame is lost
                    logger.warning("%s: dropping corrupt frame: %s", self.name, exc)
                    continue
                except IncompleteError:
                    logger.debug("%s: peer closed the stream", self.name)
                    break
                except FrameError as exc:
                    logger.warning("%s: unrecoverable framing error: %s", self.name, exc)
                    break
                except (OSError, ValueError) as exc:
                    if not self._closed:
                        logger.debug("%s: read failed: %s", self.name, exc)
                    break
                if ptype is PacketType.CLOSE:
                    logger.debug("%s: received CLOSE", self.name)
                    break
                logger.debug("%s: <- frame %d (%d bytes)", self.name, seq, len(payload))
                self._deliver(payload)
        finally:
            self._shutdown(send_close=False)

    def send(self, data: bytes) -> bool:
        return self._send(PacketType.MESSAGE, data)

    def _send(self, ptype: PacketType, data: bytes) -> bool:
        with self._send_lock:
            if self._closed:
                return False
            self._seq = (self._seq + 1) & 0xFFFFFFFF
            try:
                send_pkt(self._wfile, ptype, self._seq, data, key=self.key)
            except (OSError, ValueError) as exc:
                logger.debug("%s: send failed: %s", self.name, exc)
                return False
            return True

    def close(self) -> None:
        self._shutdown(send_close=True)

    def _shutdown(self, *, send_close: bool) -> None:
        if send_close and not self._closed:
            self._send(PacketType.CLOSE, b"")
        with self._send_lock:
            if self._closed:
                return
            self._closed = True
        with contextlib.suppress(OSError):
            self.sock.shutdown(socket.SHUT_RDWR)
        for f in (self._rfile, self._wfile):
            with contextlib.suppress(OSError, ValueError):
                f.close()
        with contextlib.suppress(OSError):
            self.sock.close()
        self._fire(self._on_close)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the reader thread to exit."""
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)


def socket_pair(*, key: Optional[bytes] = None) -> List[SocketChannel]:
    """Connected ``SocketChannel`` pair over ``socket.socketpair()``."""
    a, b = socket.socketpair()
    return [SocketChannel(a, name="left", key=key), SocketChannel(b, name="right", key=key)]
