"""
BN254 scalar-field encodings.

Two encodings of the same field element cross this boundary:

- *Montgomery limbs*: `x * R mod p` with `R = 2^256 mod p`, stored as four
  u64 limbs, little-endian. This is what native field libraries hand out.
- *Canonical big-endian*: the plain integer `x < p` as 32 bytes, most
  significant byte first. This is what circuits and the verifier consume.
"""

from __future__ import annotations

from py_ecc.optimized_bn128 import curve_order

from .errors import SerializationFailure


FIELD_MODULUS = curve_order
FIELD_BYTES = 32

MONTGOMERY_R = pow(2, 256, FIELD_MODULUS)
# R^-1 mod p; fixed by the deployed circuits.
MONTGOMERY_R_INV = 9915499612839321149637521777990102151350674507940716049588462388200839649614

def montgomery_limbs(x: int) -> bytes:
    """Encode canonical `x` as Montgomery-form limbs (4 x u64, little-endian)."""
    if not (0 <= x < FIELD_MODULUS):
        raise ValueError("field element out of range")
    return ((x * MONTGOMERY_R) % FIELD_MODULUS).to_bytes(FIELD_BYTES, "little")


def montgomery_to_field(limb_bytes: bytes) -> int:
    """Convert Montgomery-form limb bytes to the canonical field integer."""
    if len(limb_bytes) != FIELD_BYTES:
        raise ValueError(f"expected {FIELD_BYTES} limb bytes, got {len(limb_bytes)}")
    return (int.from_bytes(limb_bytes, "little") * MONTGOMERY_R_INV) % FIELD_MODULUS


def field_to_bytes(x: int) -> bytes:
    """Canonical integer to 32 bytes big-endian."""
    return bigint_to_bytes_be(x)


def bytes_to_field(data: bytes) -> int:
    """Inverse of `field_to_bytes`; rejects anything but a canonical 32-byte element."""
    if len(data) != FIELD_BYTES:
        raise ValueError(f"expected {FIELD_BYTES} bytes, got {len(data)}")
    value = int.from_bytes(data, "big")
    if value >= FIELD_MODULUS:
        raise ValueError("value is not a canonical field element")
    return value


def bigint_to_bytes_be(value: int, width: int = FIELD_BYTES) -> bytes:
    """Left-pad a non-negative integer to `width` big-endian bytes."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise SerializationFailure(f"expected an int, got {type(value).__name__}")
    if value < 0:
        raise SerializationFailure("negative values have no unsigned encoding")
    try:
        return value.to_bytes(width, "big")
    except OverflowError as exc:
        raise SerializationFailure(f"value does not fit in {width} bytes") from exc


def bytes_be_to_bigint(data: bytes) -> int:
    return int.from_bytes(data, "big")
