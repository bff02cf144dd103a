import contextlib
import logging
import threading
from typing import Any, List

from .transport import Channel

logger = logging.getLogger(__name__)


class SpectatorHub:
    """Manage spectators attached to the host: add, remove and broadcast messages."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: List[Channel] = []

    def add(self, channel: Channel) -> None:
        """Register a new spectator channel."""
        with self._lock:
            if channel not in self._channels:
                self._channels.append(channel)
        logger.info("Spectator %s joined (%d watching)", channel.name, len(self))

    def remove(self, channel: Channel) -> None:
        with self._lock:
            if channel not in self._channels:
                return
            self._channels.remove(channel)
        logger.info("Spectator %s left (%d watching)", channel.name, len(self))

    def broadcast(self, data: bytes, exclude: Any = None) -> int:
        """Send *data* to every spectator except *exclude*. Returns the number reached."""
        with self._lock:
            targets = [ch for ch in self._channels if ch is not exclude]
        reached = 0
        for ch in targets:
            if ch.send(data):
                reached += 1
                continue
            # Remove broken spectator
            self.remove(ch)
            with contextlib.suppress(Exception):
                ch.close()
        return reached

    def channels(self) -> List[Channel]:
        with self._lock:
            return list(self._channels)

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def empty(self) -> bool:
        """Return True if nobody is watching."""
        return len(self) == 0
