"""Lightweight event model used by Session to notify front-ends of state changes.

The goal is to emit strongly-typed events that a terminal or any other UI can
render, and that loggers can consume, without the core ever calling into a
rendering layer or anyone parsing free-text strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict


class Category(Enum):
    """High-level event categories."""

    PLACEMENT = auto()  # fleet editing before the match
    TURN = auto()  # readiness, shots, results, turn changes, win
    CHAT = auto()  # chat lines from anyone
    SYSTEM = auto()  # rejected input, closed channels, relays


@dataclass(slots=True)
class Event:
    """Immutable event emitted by Session."""

    category: Category
    type: str  # finer-grained identifier, e.g. "shot", "result", "win"
    payload: Dict[str, Any] = field(default_factory=dict)
