"""
Readers for the circom/snarkjs binary container formats.

All three share one container layout:

    magic[4] | version u32 | n_sections u32 | (type u32 | size u64 | body)*

- `.zkey` (Groth16 proving key): curve points are stored affine with each
  coordinate in Montgomery form, little-endian. Constraint coefficients are
  stored multiplied by R^2.
- `.wtns` (witness): field elements in standard form, little-endian.
- `.r1cs` (constraint system): linear combinations of (wire, coefficient).

Anything that does not parse cleanly raises `ArtifactError`.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import FQ, FQ2, Z1, Z2, b, b2, curve_order, field_modulus, is_on_curve

from ..core.errors import ArtifactError


ZKEY_MAGIC = b"zkey"
WTNS_MAGIC = b"wtns"
R1CS_MAGIC = b"r1cs"

GROTH16_PROTOCOL_ID = 1

Q_MONT_R_INV = pow(pow(2, 256, field_modulus), -1, field_modulus)
R_MONT_R2_INV = pow(pow(2, 512, curve_order), -1, curve_order)

LinearCombination = Dict[int, int]


class _Cursor:
    def __init__(self, data: bytes, offset: int = 0, end: Optional[int] = None) -> None:
        self._data = data
        self.pos = offset
        self.end = len(data) if end is None else end

    def take(self, n: int) -> bytes:
        if n < 0 or self.pos + n > self.end:
            raise ArtifactError("truncated section")
        out = self._data[self.pos : self.pos + n]
        self.pos += n
        return out

    def u32(self) -> int:
        return struct.unpack("<I", self.take(4))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self.take(8))[0]

    def uint(self, n8: int) -> int:
        return int.from_bytes(self.take(n8), "little")


def read_sections(data: bytes, magic: bytes) -> Tuple[int, Dict[int, List[Tuple[int, int]]]]:
    """Return (version, {section_type: [(offset, size), ...]})."""
    if len(data) < 12 or data[:4] != magic:
        raise ArtifactError(f"not a {magic.decode()} file")
    cur = _Cursor(data, 4)
    version = cur.u32()
    n_sections = cur.u32()
    sections: Dict[int, List[Tuple[int, int]]] = {}
    for _ in range(n_sections):
        s_type = cur.u32()
        s_size = cur.u64()
        offset = cur.pos
        cur.take(s_size)
        sections.setdefault(s_type, []).append((offset, s_size))
    return version, sections


def _unique_section(data: bytes, sections: Dict[int, List[Tuple[int, int]]], s_type: int) -> _Cursor:
    found = sections.get(s_type)
    if not found:
        raise ArtifactError(f"missing section {s_type}")
    if len(found) != 1:
        raise ArtifactError(f"section {s_type} appears {len(found)} times")
    offset, size = found[0]
    return _Cursor(data, offset, offset + size)


# -- Curve points ------------------------------------------------------------


def _fq_mont(cur: _Cursor, n8q: int) -> int:
    return (cur.uint(n8q) * Q_MONT_R_INV) % field_modulus


def read_g1(cur: _Cursor, n8q: int):
    x = _fq_mont(cur, n8q)
    y = _fq_mont(cur, n8q)
    if x == 0 and y in (0, 1):
        return Z1
    point = (FQ(x), FQ(y), FQ.one())
    if not is_on_curve(point, b):
        raise ArtifactError("G1 point is not on the curve")
    return point


def read_g2(cur: _Cursor, n8q: int):
    x0 = _fq_mont(cur, n8q)
    x1 = _fq_mont(cur, n8q)
    y0 = _fq_mont(cur, n8q)
    y1 = _fq_mont(cur, n8q)
    if x0 == 0 and x1 == 0 and y1 == 0 and y0 in (0, 1):
        return Z2
    point = (FQ2([x0, x1]), FQ2([y0, y1]), FQ2.one())
    if not is_on_curve(point, b2):
        raise ArtifactError("G2 point is not on the curve")
    return point


# -- zkey --------------------------------------------------------------------


@dataclass(frozen=True)
class Coefficient:
    matrix: int  # 0 = A, 1 = B
    constraint: int
    signal: int
    value: int


@dataclass(frozen=True)
class ProvingKey:
    """Groth16 proving key as laid out by snarkjs."""

    n8q: int
    q: int
    n8r: int
    r: int
    n_vars: int
    n_public: int
    domain_size: int
    alpha_1: tuple
    beta_1: tuple
    beta_2: tuple
    gamma_2: tuple
    delta_1: tuple
    delta_2: tuple
    ic: tuple
    coefficients: Tuple[Coefficient, ...]
    a_points: tuple
    b1_points: tuple
    b2_points: tuple
    c_points: tuple
    h_points: tuple

    @property
    def power(self) -> int:
        return self.domain_size.bit_length() - 1


def parse_zkey(data: bytes) -> ProvingKey:
    _, sections = read_sections(data, ZKEY_MAGIC)

    cur = _unique_section(data, sections, 1)
    protocol = cur.u32()
    if protocol != GROTH16_PROTOCOL_ID:
        raise ArtifactError(f"unsupported zkey protocol id {protocol}")

    cur = _unique_section(data, sections, 2)
    n8q = cur.u32()
    q = cur.uint(n8q)
    n8r = cur.u32()
    r = cur.uint(n8r)
    if q != field_modulus or r != curve_order:
        raise ArtifactError("zkey is not over BN254")
    n_vars = cur.u32()
    n_public = cur.u32()
    domain_size = cur.u32()
    if domain_size == 0 or domain_size & (domain_size - 1):
        raise ArtifactError(f"domain size {domain_size} is not a power of two")
    alpha_1 = read_g1(cur, n8q)
    beta_1 = read_g1(cur, n8q)
    beta_2 = read_g2(cur, n8q)
    gamma_2 = read_g2(cur, n8q)
    delta_1 = read_g1(cur, n8q)
    delta_2 = read_g2(cur, n8q)

    cur = _unique_section(data, sections, 3)
    ic = tuple(read_g1(cur, n8q) for _ in range(n_public + 1))

    cur = _unique_section(data, sections, 4)
    n_coefs = cur.u32()
    coefficients = []
    for _ in range(n_coefs):
        matrix = cur.u32()
        constraint = cur.u32()
        signal = cur.u32()
        value = (cur.uint(n8r) * R_MONT_R2_INV) % curve_order
        if matrix not in (0, 1) or constraint >= domain_size or signal >= n_vars:
            raise ArtifactError("coefficient out of range")
        coefficients.append(Coefficient(matrix, constraint, signal, value))

    def _g1s(s_type: int, count: int) -> tuple:
        c = _unique_section(data, sections, s_type)
        return tuple(read_g1(c, n8q) for _ in range(count))

    a_points = _g1s(5, n_vars)
    b1_points = _g1s(6, n_vars)
    c2 = _unique_section(data, sections, 7)
    b2_points = tuple(read_g2(c2, n8q) for _ in range(n_vars))
    c_points = _g1s(8, n_vars - n_public - 1)
    h_points = _g1s(9, domain_size)

    return ProvingKey(
        n8q=n8q,
        q=q,
        n8r=n8r,
        r=r,
        n_vars=n_vars,
        n_public=n_public,
        domain_size=domain_size,
        alpha_1=alpha_1,
        beta_1=beta_1,
        beta_2=beta_2,
        gamma_2=gamma_2,
        delta_1=delta_1,
        delta_2=delta_2,
        ic=ic,
        coefficients=tuple(coefficients),
        a_points=a_points,
        b1_points=b1_points,
        b2_points=b2_points,
        c_points=c_points,
        h_points=h_points,
    )


# -- wtns --------------------------------------------------------------------


def parse_wtns(data: bytes) -> List[int]:
    _, sections = read_sections(data, WTNS_MAGIC)
    cur = _unique_section(data, sections, 1)
    n8 = cur.u32()
    q = cur.uint(n8)
    if q != curve_order:
        raise ArtifactError("witness is not over the BN254 scalar field")
    n_witness = cur.u32()

    cur = _unique_section(data, sections, 2)
    values = [cur.uint(n8) for _ in range(n_witness)]
    if any(v >= q for v in values):
        raise ArtifactError("witness value out of range")
    return values


def encode_wtns(values: Sequence[int]) -> bytes:
    """Write a version-2 `.wtns` file, the form `snarkjs groth16 prove` reads."""
    n8 = 32
    if any(not (0 <= v < curve_order) for v in values):
        raise ArtifactError("witness value out of range")
    header = struct.pack("<I", n8) + curve_order.to_bytes(n8, "little") + struct.pack("<I", len(values))
    body = b"".join(v.to_bytes(n8, "little") for v in values)
    out = WTNS_MAGIC + struct.pack("<II", 2, 2)
    for s_type, section in ((1, header), (2, body)):
        out += struct.pack("<IQ", s_type, len(section)) + section
    return out


# -- r1cs --------------------------------------------------------------------


@dataclass(frozen=True)
class R1cs:
    n_wires: int
    n_pub_out: int
    n_pub_in: int
    n_prv_in: int
    n_labels: int
    constraints: Tuple[Tuple[LinearCombination, LinearCombination, LinearCombination], ...]

    @property
    def n_public(self) -> int:
        return self.n_pub_out + self.n_pub_in


def parse_r1cs(data: bytes) -> R1cs:
    _, sections = read_sections(data, R1CS_MAGIC)
    cur = _unique_section(data, sections, 1)
    n8 = cur.u32()
    prime = cur.uint(n8)
    if prime != curve_order:
        raise ArtifactError("r1cs is not over the BN254 scalar field")
    n_wires = cur.u32()
    n_pub_out = cur.u32()
    n_pub_in = cur.u32()
    n_prv_in = cur.u32()
    n_labels = cur.u64()
    n_constraints = cur.u32()

    cur = _unique_section(data, sections, 2)

    def _lc() -> LinearCombination:
        out: LinearCombination = {}
        for _ in range(cur.u32()):
            wire = cur.u32()
            if wire >= n_wires:
                raise ArtifactError("constraint references an unknown wire")
            out[wire] = cur.uint(n8)
        return out

    constraints = tuple((_lc(), _lc(), _lc()) for _ in range(n_constraints))
    return R1cs(
        n_wires=n_wires,
        n_pub_out=n_pub_out,
        n_pub_in=n_pub_in,
        n_prv_in=n_prv_in,
        n_labels=n_labels,
        constraints=constraints,
    )


def _eval_lc(lc: LinearCombination, witness: Sequence[int]) -> int:
    return sum(coef * witness[wire] for wire, coef in lc.items()) % curve_order


def first_unsatisfied(r1cs: R1cs, witness: Sequence[int]) -> Optional[int]:
    """
    Index of the first constraint with (A.w)(B.w) != C.w, or None.

    A witness shorter than the wire count, or not starting with the constant
    one, is reported as -1.
    """
    if len(witness) < r1cs.n_wires or witness[0] != 1:
        return -1
    for i, (a, b_lc, c) in enumerate(r1cs.constraints):
        if (_eval_lc(a, witness) * _eval_lc(b_lc, witness) - _eval_lc(c, witness)) % curve_order:
            return i
    return None
