"""ULID conversion and generation helpers.

Canonical string form is 26 Crockford Base32 characters representing exactly
128 bits. The high 48 bits are a millisecond timestamp, so byte-wise ordering of
ULIDs follows creation time at millisecond granularity.
"""

from __future__ import annotations

import secrets
import threading
import time

_ULID_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DECODE_TABLE = {char: index for index, char in enumerate(_ULID_ALPHABET)}
_MAX_ULID_INT = (1 << 128) - 1
_MAX_ENTROPY = (1 << 80) - 1
_MONOTONIC_LOCK = threading.Lock()
_last_ts_ms = -1
_last_entropy = 0


def ulid_str_to_bytes(value: str) -> bytes:
    """Decode canonical 26-char ULID string into 16-byte big-endian form."""
    candidate = value.strip().upper()
    if len(candidate) != 26:
        raise ValueError("ULID string must be exactly 26 characters")

    number = 0
    for char in candidate:
        if char not in _DECODE_TABLE:
            raise ValueError(f"Invalid ULID character: {char!r}")
        number = (number << 5) | _DECODE_TABLE[char]

    # 26 base32 chars carry 130 bits; only the low 128 are valid.
    if number > _MAX_ULID_INT:
        raise ValueError("ULID value exceeds 128-bit range")
    return number.to_bytes(16, byteorder="big", signed=False)


def ulid_bytes_to_str(value: bytes) -> str:
    """Encode 16-byte big-endian ULID into canonical 26-char Base32 string."""
    if len(value) != 16:
        raise ValueError("ULID bytes must be exactly 16 bytes")

    number = int.from_bytes(value, byteorder="big", signed=False)
    chars: list[str] = []
    for _ in range(26):
        number, remainder = divmod(number, 32)
        chars.append(_ULID_ALPHABET[remainder])
    return "".join(reversed(chars))


def generate_ulid_bytes(*, timestamp_ms: int | None = None) -> bytes:
    """Generate a new ULID as canonical 16-byte big-endian binary.

    Without an explicit timestamp, ids generated in the same millisecond are
    monotonic: the entropy of the previous id is incremented instead of drawn.
    """
    if timestamp_ms is not None:
        ts_ms = int(timestamp_ms)
        _check_timestamp(ts_ms)
        return _pack(ts_ms, _fresh_entropy())

    global _last_ts_ms, _last_entropy
    with _MONOTONIC_LOCK:
        ts_ms = int(time.time() * 1000)
        _check_timestamp(ts_ms)
        if ts_ms <= _last_ts_ms:
            ts_ms = _last_ts_ms
            entropy = _last_entropy + 1
            if entropy > _MAX_ENTROPY:
                ts_ms += 1
                entropy = _fresh_entropy()
        else:
            entropy = _fresh_entropy()
        _last_ts_ms, _last_entropy = ts_ms, entropy
    return _pack(ts_ms, entropy)


def _check_timestamp(ts_ms: int) -> None:
    if ts_ms < 0 or ts_ms >= (1 << 48):
        raise ValueError("timestamp_ms out of ULID 48-bit range")


def _fresh_entropy() -> int:
    return int.from_bytes(secrets.token_bytes(10), byteorder="big", signed=False)


def _pack(ts_ms: int, entropy: int) -> bytes:
    return ((ts_ms << 80) | entropy).to_bytes(16, byteorder="big", signed=False)


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    """Generate a new ULID in canonical 26-char string format."""
    return ulid_bytes_to_str(generate_ulid_bytes(timestamp_ms=timestamp_ms))


def parse_ulid_or_none(value: str) -> bytes | None:
    """Decode one ULID string, returning ``None`` for malformed input."""
    try:
        return ulid_str_to_bytes(value)
    except ValueError:
        return None
