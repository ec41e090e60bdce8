"""
Scalar type aliases and range checks shared by the state snapshots.

On-chain amounts are unsigned 64-bit integers; intermediate products are
computed with arbitrary precision and checked against the 128-bit range.
"""

from __future__ import annotations


# Type aliases
PubKey = bytes  # 32-byte account address
Amount = int  # u64 token amount in base units
Slot = int  # u64 slot height
Rate = int  # parts-per-million (1_000_000 == 100%)

U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1

PUBKEY_LEN = 32
ZERO_PUBKEY: PubKey = bytes(PUBKEY_LEN)


def require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def require_u64(name: str, value: int) -> None:
    require_int(name, value)
    if not (0 <= value <= U64_MAX):
        raise ValueError(f"{name} must be in [0, 2^64): {value}")


def require_pubkey(name: str, value: bytes) -> None:
    if not isinstance(value, (bytes, bytearray)):
        raise TypeError(f"{name} must be bytes")
    if len(value) != PUBKEY_LEN:
        raise ValueError(f"{name} must be {PUBKEY_LEN} bytes, got {len(value)}")
