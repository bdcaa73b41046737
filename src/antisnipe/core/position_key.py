"""
Position identity derivation.

A position is identified by (owner, tick_lower, tick_upper, salt). The key is
the SHA3-256 digest of the packed encoding: 20-byte owner address, lower and
upper tick as big-endian signed 3-byte integers, 32-byte salt.
"""

from __future__ import annotations

import hashlib

from .constants import (
    ADDRESS_BYTES,
    MAX_INT24,
    MIN_INT24,
    SALT_BYTES,
    TICK_BYTES,
    ZERO_SALT,
)


def _encode_address(owner: str) -> bytes:
    value = owner[2:] if owner.lower().startswith("0x") else owner
    try:
        raw = bytes.fromhex(value)
    except ValueError as exc:
        raise ValueError(f"Invalid owner address: {owner!r}") from exc
    if len(raw) != ADDRESS_BYTES:
        raise ValueError(f"Owner address must be {ADDRESS_BYTES} bytes, got {len(raw)}")
    return raw


def _encode_tick(tick: int) -> bytes:
    if not MIN_INT24 <= tick <= MAX_INT24:
        raise ValueError(f"Tick {tick} does not fit in int24")
    return tick.to_bytes(TICK_BYTES, "big", signed=True)


def normalize_salt(salt: bytes | int | None) -> bytes:
    """Left-pad a salt to 32 bytes. Integers are encoded big-endian."""
    if salt is None:
        return ZERO_SALT
    if isinstance(salt, int):
        if salt < 0:
            raise ValueError("Salt must be non-negative")
        return salt.to_bytes(SALT_BYTES, "big")
    if len(salt) > SALT_BYTES:
        raise ValueError(f"Salt longer than {SALT_BYTES} bytes")
    return bytes(salt).rjust(SALT_BYTES, b"\x00")


def position_key(
    owner: str,
    tick_lower: int,
    tick_upper: int,
    salt: bytes | int | None = None,
) -> str:
    """
    Derive the stable key of a liquidity position.

    Args:
        owner: 0x-prefixed 20-byte hex address
        tick_lower: Lower tick of the range
        tick_upper: Upper tick of the range
        salt: Disambiguating salt (bytes up to 32 long, or a non-negative int)

    Returns:
        0x-prefixed hex digest identifying the position
    """
    packed = (
        _encode_address(owner)
        + _encode_tick(tick_lower)
        + _encode_tick(tick_upper)
        + normalize_salt(salt)
    )
    return "0x" + hashlib.sha3_256(packed).hexdigest()
