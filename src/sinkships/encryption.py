# encryption abstraction module

import os
import struct

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

# AEAD header format: magic (2 bytes), version (1 byte), packet type (1 byte), sequence (4 bytes), nonce (12 bytes), length (4 bytes)
HEADER_STRUCT = struct.Struct(">HBBI12sI")

# Reject excessively large payloads (e.g., >10 MiB)
MAX_PAYLOAD = 10 * 1024 * 1024

# GCM appends a 16-byte tag
TAG_LEN = 16


def check_key(key: bytes) -> bytes:
    """Validate an AES key length and return it unchanged."""
    if len(key) not in (16, 24, 32):
        raise ValueError("AES key must be 16/24/32 bytes")
    return key


def pack(key: bytes, magic: int, version: int, ptype: int, seq: int, payload: bytes) -> bytes:
    """AEAD pack: header + ciphertext+tag. The header is bound as associated data."""
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(f"Payload too large: {len(payload)} bytes")
    nonce = os.urandom(12)
    length = len(payload) + TAG_LEN
    header = HEADER_STRUCT.pack(magic, version, ptype, seq, nonce, length)
    ciphertext = AESGCM(check_key(key)).encrypt(nonce, payload, header)
    return header + ciphertext


def unpack(key: bytes, frame: bytes) -> tuple[int, int, int, int, bytes]:
    """AEAD unpack: returns (magic, version, ptype, seq, plaintext).

    Raises ``InvalidTag`` when the frame was tampered with or sealed under
    another key, and ``ValueError`` when it is shorter than its header claims.
    """
    header_size = HEADER_STRUCT.size
    if len(frame) < header_size:
        raise ValueError("frame shorter than AEAD header")
    hdr = frame[:header_size]
    magic, version, ptype, seq, nonce, length = HEADER_STRUCT.unpack(hdr)
    ciphertext = frame[header_size : header_size + length]
    if len(ciphertext) < length:
        raise ValueError("frame shorter than its declared length")
    plaintext = AESGCM(check_key(key)).decrypt(nonce, ciphertext, hdr)
    return magic, version, ptype, seq, plaintext


__all__ = ["HEADER_STRUCT", "MAX_PAYLOAD", "TAG_LEN", "InvalidTag", "check_key", "pack", "unpack"]
