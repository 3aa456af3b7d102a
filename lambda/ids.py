from __future__ import annotations

import secrets
import struct
import time
import uuid

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ID_BYTES = 16
ID_LENGTH = 22


def encode_base58_22(raw: bytes) -> str:
    if not isinstance(raw, (bytes, bytearray)) or len(raw) != ID_BYTES:
        raise ValueError("resource ids are built from exactly 16 bytes")
    n = int.from_bytes(raw, "big")
    chars: list[str] = []
    while n > 0:
        n, rem = divmod(n, 58)
        chars.append(BASE58_ALPHABET[rem])
    encoded = "".join(reversed(chars))
    # Left-pad with the zero digit so every id has the same width.
    return encoded.rjust(ID_LENGTH, BASE58_ALPHABET[0])


def _uuid7_bytes() -> bytes:
    ts_ms = int(time.time() * 1000)
    raw = bytearray(struct.pack(">Q", ts_ms)[2:] + secrets.token_bytes(10))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return bytes(raw)


def random_id() -> str:
    return encode_base58_22(uuid.uuid4().bytes)


def time_ordered_id() -> str:
    """Ids minted later sort later."""
    return encode_base58_22(_uuid7_bytes())


def is_resource_id(value: str) -> bool:
    if not isinstance(value, str) or len(value) != ID_LENGTH:
        return False
    return all(ch in BASE58_ALPHABET for ch in value)
