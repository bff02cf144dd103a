"""Central configuration for runtime-tunable parameters.

All constants can be overridden via environment variables so that the
interactive game runs with human-friendly pacing by default, while the
automated test-suite can speed specific components up if necessary.
"""

from __future__ import annotations

import os


# ===========================================================================
# Game Constants
# ===========================================================================
# The grid is fixed at 10x10; coordinates run A1..J10.
BOARD_SIZE: int = 10

# Standard ship roster: list of (name, size) tuples, in placement order.
SHIPS = [
    ("Carrier", 5),
    ("Battleship", 4),
    ("Cruiser", 3),
    ("Submarine", 3),
    ("Destroyer", 2),
]

# Unique single-letter representations for each ship on the board.
SHIP_LETTERS = {
    "Carrier": "A",  # "A" for Aircraft carrier to avoid clash with Cruiser's "C"
    "Battleship": "B",
    "Cruiser": "C",
    "Submarine": "S",
    "Destroyer": "D",
}


# ===========================================================================
# Placement Budget
# ===========================================================================
# SINKSHIPS_PLACEMENT_TRIALS: random (orientation, anchor) trials allowed per ship
#   kind before random placement gives up with ExhaustionError.
#   Defaults to 1000.
PLACEMENT_TRIALS: int = int(os.getenv("SINKSHIPS_PLACEMENT_TRIALS", "1000"))

# SINKSHIPS_FLEET_RETRIES: how many times PlacementEngine.randomize() restarts the
#   whole fleet on a fresh board after an ExhaustionError before surfacing it.
#   Defaults to 3.
FLEET_RETRIES: int = int(os.getenv("SINKSHIPS_FLEET_RETRIES", "3"))


# ===========================================================================
# Opponent AI
# ===========================================================================
# SINKSHIPS_HUNT_SAMPLES: random samples drawn in hunt mode before the AI falls
#   back to a row-major scan of the board.
#   Defaults to 2000.
HUNT_SAMPLES: int = int(os.getenv("SINKSHIPS_HUNT_SAMPLES", "2000"))

# SINKSHIPS_AI_DELAY: seconds the solo opponent "thinks" before replying.
#   Purely cosmetic pacing; 0 makes the AI reply synchronously.
#   Example: export SINKSHIPS_AI_DELAY=0.5
AI_REPLY_DELAY: float = float(os.getenv("SINKSHIPS_AI_DELAY", "2.0"))


# ===========================================================================
# Network Defaults
# ===========================================================================
# SINKSHIPS_HOST: address the host listens on and clients connect to.
#   Defaults to "127.0.0.1".
DEFAULT_HOST: str = os.getenv("SINKSHIPS_HOST", "127.0.0.1")

# SINKSHIPS_PORT: port the host accepts its opponent on.
#   Defaults to 61337.
DEFAULT_PORT: int = int(os.getenv("SINKSHIPS_PORT", "61337"))

# SINKSHIPS_SPECTATE_PORT: port the host accepts spectators on.
#   Defaults to 61338.
SPECTATE_PORT: int = int(os.getenv("SINKSHIPS_SPECTATE_PORT", "61338"))


# ===========================================================================
# Player Identity
# ===========================================================================
# SINKSHIPS_NAME: display name attached to chat lines. Never persisted.
DEFAULT_NAME: str = os.getenv("SINKSHIPS_NAME", "Anonymous")


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# SINKSHIPS_DEBUG: If "1", enables detailed debug logging across modules.
#   Defaults to "0" (disabled).
DEBUG: bool = os.getenv("SINKSHIPS_DEBUG", "0") == "1"

# SINKSHIPS_QUIET: Comma-separated list of event categories (placement, turn,
#   chat, system) that the terminal client should *not* print.
#   Example: export SINKSHIPS_QUIET="chat,system"
QUIET_CATEGORIES: list[str] = os.getenv("SINKSHIPS_QUIET", "").split(",") if os.getenv("SINKSHIPS_QUIET") else []


# ===========================================================================
# Cryptography Defaults
# ===========================================================================
# SINKSHIPS_KEY: AES key as a hex string (16/24/32 bytes). When set, socket
#   channels use AES-GCM frames instead of plain CRC-32 frames.
DEFAULT_KEY_HEX: str = os.getenv("SINKSHIPS_KEY", "")
DEFAULT_KEY: bytes | None = bytes.fromhex(DEFAULT_KEY_HEX) if DEFAULT_KEY_HEX else None
