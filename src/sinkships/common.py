"""Low-level packet framing utilities.

Frame layout (16-byte header + payload):
0-1  : 0x53 0x53    magic bytes ("SS")
2    : version (1)
3    : PacketType (enum)
4-7  : seq u32 (big-endian)
8-11 : len u32 (payload length)
12-15: CRC-32 over header[0:12]+payload
16-  : payload, one UTF-8 JSON wire message

When a channel carries an AES key the frame is instead sealed with AES-GCM
(see ``encryption.HEADER_STRUCT``); magic, version, type and seq sit in the
clear header, which is authenticated along with the ciphertext.
"""

from __future__ import annotations

import enum
import struct
import zlib
from io import BufferedReader, BufferedWriter, BytesIO
from typing import Final, Optional, Tuple, Union

from .encryption import (
    HEADER_STRUCT as AEAD_HEADER_STRUCT,
    MAX_PAYLOAD,
    TAG_LEN,
    InvalidTag,
    pack as aead_pack,
    unpack as aead_unpack,
)

MAGIC: Final[int] = 0x5353
VERSION: Final[int] = 1

_HEADER = struct.Struct(">HBBII")
HEADER_LEN: Final[int] = _HEADER.size + 4


class PacketType(int, enum.Enum):
    """Enumerate wire-protocol packet categories."""

    MESSAGE = 0  # one encoded wire message
    CLOSE = 1  # orderly shutdown, empty payload


class FrameError(Exception):
    """Base for framing problems."""


class CrcError(FrameError):
    """Raised when a CRC-32 check (or the AES-GCM tag) fails while decoding a frame."""


class IncompleteError(FrameError):
    """Raised when the stream closes before a full frame could be read."""


Frame = Tuple[PacketType, int, bytes]


def _ptype(value: int) -> PacketType:
    try:
        return PacketType(value)
    except ValueError:
        raise FrameError(f"unknown packet type {value}") from None


def _check(magic: int, version: int) -> None:
    if magic != MAGIC or version != VERSION:
        raise FrameError("magic/version mismatch")


def _check_length(length: int, limit: int) -> None:
    if length > limit:
        raise FrameError(f"declared length {length} exceeds {limit}")


# ---------------------------------------------------------------------------
# Public pack / unpack
# ---------------------------------------------------------------------------


def pack(ptype: PacketType, seq: int, payload: bytes, *, key: Optional[bytes] = None) -> bytes:
    """Serialize one frame; AES-GCM sealed when *key* is given, CRC-32 otherwise."""
    if key is not None:
        return aead_pack(key, MAGIC, VERSION, int(ptype), seq, bytes(payload))
    if len(payload) > MAX_PAYLOAD:
        raise ValueError("Payload too large")
    header = _HEADER.pack(MAGIC, VERSION, int(ptype), seq & 0xFFFFFFFF, len(payload))
    crc = zlib.crc32(header + payload) & 0xFFFFFFFF
    return header + struct.pack(">I", crc) + payload


def _read_exact(r: BufferedReader, n: int, what: str) -> bytes:
    data = r.read(n)
    if data is None or len(data) < n:
        raise IncompleteError(f"Incomplete {what}")
    return data


def recv_pkt(r: BufferedReader, *, key: Optional[bytes] = None) -> Frame:
    """Blocking helper that returns the next ``(ptype, seq, payload)`` tuple from *r*."""
    if key is not None:
        header = _read_exact(r, AEAD_HEADER_STRUCT.size, "header")
        magic, version, _ptype_val, _seq, _nonce, length = AEAD_HEADER_STRUCT.unpack(header)
        _check(magic, version)
        _check_length(length, MAX_PAYLOAD + TAG_LEN)
        body = _read_exact(r, length, "payload")
        try:
            _, _, ptype_val, seq, plaintext = aead_unpack(key, header + body)
        except InvalidTag:
            raise CrcError("AEAD authentication failed") from None
        return _ptype(ptype_val), seq, plaintext

    raw = _read_exact(r, HEADER_LEN, "header")
    header = raw[: _HEADER.size]
    magic, version, ptype_val, seq, length = _HEADER.unpack(header)
    _check(magic, version)
    _check_length(length, MAX_PAYLOAD)
    (crc_expected,) = struct.unpack(">I", raw[_HEADER.size :])
    payload = _read_exact(r, length, "payload")
    if zlib.crc32(header + payload) & 0xFFFFFFFF != crc_expected:
        raise CrcError(f"CRC mismatch on frame {seq}")
    return _ptype(ptype_val), seq, payload


def unpack(buf: Union[bytes, bytearray, BufferedReader], *, key: Optional[bytes] = None) -> Frame:
    """Decode one frame from raw bytes or a file-like reader."""
    if isinstance(buf, (bytes, bytearray)):
        buf = BytesIO(bytes(buf))  # type: ignore[assignment]
    return recv_pkt(buf, key=key)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Convenience wrappers for file-like objects
# ---------------------------------------------------------------------------


def send_pkt(w: BufferedWriter, ptype: PacketType, seq: int, payload: bytes, *, key: Optional[bytes] = None) -> None:
    """Write a single framed packet to buffered writer *w* and flush."""
    w.write(pack(ptype, seq, payload, key=key))
    w.flush()


__all__ = [
    "MAGIC",
    "VERSION",
    "HEADER_LEN",
    "PacketType",
    "FrameError",
    "CrcError",
    "IncompleteError",
    "pack",
    "unpack",
    "send_pkt",
    "recv_pkt",
]
