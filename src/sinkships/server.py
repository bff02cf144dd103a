"""Host entry-point: listen for one opponent and any number of spectators.

The host plays from this terminal; ``HostServer`` only establishes channels
and attaches them to the host's PeerNode.  Everything after that is the
same Session/router path a loopback test exercises.
"""

from __future__ import annotations

import argparse
import contextlib
import itertools
import logging
import signal
import socket
import sys
import threading
from typing import List, Optional, Tuple

from . import config as _cfg
from .client import ConsoleView, add_common_flags, configure_logging, resolve_key, run_console
from .messages import Role
from .node import PeerNode
from .session import Session
from .transport import SocketChannel

HOST = _cfg.DEFAULT_HOST
PORT = _cfg.DEFAULT_PORT

# Initialize module-level logger
logger = logging.getLogger(__name__)


class HostServer:
    """Accept the joiner on *port* and spectators on *spectate_port* for one match."""

    def __init__(
        self,
        node: PeerNode,
        *,
        host: str = HOST,
        port: int = PORT,
        spectate_port: int = _cfg.SPECTATE_PORT,
        key: Optional[bytes] = None,
    ) -> None:
        if node.session.role is not Role.HOST:
            raise ValueError("HostServer needs a host session")
        self.node = node
        self.key = key
        self.joined = threading.Event()
        self._spectator_ids = itertools.count(1)
        self._listeners: List[socket.socket] = []
        self._threads: List[threading.Thread] = []
        self._closed = False
        self._player_sock = self._listen(host, port)
        self._spectate_sock = self._listen(host, spectate_port)

    def _listen(self, host: str, port: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen()
        self._listeners.append(sock)
        return sock

    @property
    def address(self) -> Tuple[str, int]:
        return self._player_sock.getsockname()[:2]

    @property
    def spectate_address(self) -> Tuple[str, int]:
        return self._spectate_sock.getsockname()[:2]

    def start(self) -> None:
        for target, name in ((self._accept_player, "accept-player"), (self._accept_spectators, "accept-spectators")):
            t = threading.Thread(target=target, name=name, daemon=True)
            t.start()
            self._threads.append(t)
        logger.info("Listening for an opponent on %s:%d, spectators on %s:%d", *self.address, *self.spectate_address)

    def _accept(self, listener: socket.socket) -> Optional[Tuple[socket.socket, tuple]]:
        try:
            return listener.accept()
        except OSError:
            if not self._closed:
                logger.exception("accept() failed")
            return None

    def _accept_player(self) -> None:
        while not self._closed:
            accepted = self._accept(self._player_sock)
            if accepted is None:
                return
            conn, addr = accepted
            if self.joined.is_set():
                # Only one opponent per match
                logger.warning("Refusing extra player connection from %s", addr)
                with contextlib.suppress(OSError):
                    conn.close()
                continue
            logger.info("Opponent connected from %s", addr)
            self.node.attach_peer(SocketChannel(conn, name="joiner", key=self.key))
            self.joined.set()

    def _accept_spectators(self) -> None:
        while not self._closed:
            accepted = self._accept(self._spectate_sock)
            if accepted is None:
                return
            conn, addr = accepted
            logger.info("Spectator connected from %s", addr)
            self.node.attach_spectator(SocketChannel(conn, name=f"spectator{next(self._spectator_ids)}", key=self.key))

    def close(self) -> None:
        self._closed = True
        for sock in self._listeners:
            with contextlib.suppress(OSError):
                sock.close()
        self.node.close()


def main(argv: Optional[List[str]] = None) -> None:  # pragma: no cover – side-effect entrypoint
    """Host a match and play it from this terminal."""
    parser = argparse.ArgumentParser(prog="sinkships-host", description="SinkShips host")
    parser.add_argument("--host", default=HOST, help="Address to listen on.")
    parser.add_argument("--port", type=int, default=PORT, help="Port the opponent joins on.")
    parser.add_argument("--spectate-port", type=int, default=_cfg.SPECTATE_PORT, help="Port spectators join on.")
    parser.add_argument("--key", help="Hex AES key shared with the opponent and spectators.")
    add_common_flags(parser)
    args = parser.parse_args(argv)
    configure_logging(args)

    view = ConsoleView(verbose=-1 if args.quiet else args.verbose)
    node = PeerNode(Session(Role.HOST, notify=view.on_event))
    view.target = node
    server = HostServer(
        node, host=args.host, port=args.port, spectate_port=args.spectate_port, key=resolve_key(args.key)
    )

    def _shutdown(signum, frame):
        # ensure the "C" echo doesn't get stuck on our log line
        sys.stderr.write("\n")
        logger.info("Received signal %s, shutting down", signum)
        server.close()
        sys.exit(0)

    signal.signal(signal.SIGTERM, _shutdown)

    server.start()
    print(f"Hosting on {args.host}:{args.port} (spectators on port {args.spectate_port}).")
    print("Place your fleet (AUTO, PLACE <coord> [H|V], ROTATE, CLEAR), then READY.")
    view.render(node)
    try:
        run_console(node, name=args.name, view=view, stop=node.peer_closed)
    finally:
        server.close()


if __name__ == "__main__":  # pragma: no cover
    main()
