"""
Order commitments.

A trader binds their minimum acceptable output (`threshold`) to an order
without revealing it:

    commitment = Poseidon(threshold, u64_le(salt))

The hash is produced in Montgomery limb form by native field code, so the
value placed on chain and fed to the circuits is the canonical integer
recovered from those limbs, encoded as 32 bytes big-endian.
"""

from __future__ import annotations

import secrets

from ..state.amounts import require_u64
from .field import field_to_bytes, montgomery_limbs, montgomery_to_field
from .poseidon import poseidon_hash


SALT_LEN = 8


def salt_to_field(salt: bytes) -> int:
    """Interpret the 8 salt bytes as a little-endian u64."""
    if not isinstance(salt, (bytes, bytearray)):
        raise TypeError("salt must be bytes")
    if len(salt) != SALT_LEN:
        raise ValueError(f"salt must be {SALT_LEN} bytes, got {len(salt)}")
    return int.from_bytes(salt, "little")


def commitment_limbs(threshold: int, salt: bytes) -> bytes:
    """Native Montgomery-form output of the commitment hash (4 x u64 LE)."""
    require_u64("threshold", threshold)
    return montgomery_limbs(poseidon_hash([threshold, salt_to_field(salt)]))


def commitment_value(threshold: int, salt: bytes) -> int:
    """Canonical field integer of the commitment (the circuit's public input)."""
    return montgomery_to_field(commitment_limbs(threshold, salt))


def commit(threshold: int, salt: bytes) -> bytes:
    """32-byte big-endian commitment for (threshold, salt)."""
    return field_to_bytes(commitment_value(threshold, salt))


def generate_salt() -> bytes:
    return secrets.token_bytes(SALT_LEN)
