# [TESTER] v1

"""
Shared zk fixtures: small settle/cancel circuits with a test-only trusted setup.

The circuits keep the production signal order

    [1, realOut, commitment, minOut, salt, bits...]

and prove the threshold relation with a RANGE_BITS-bit decomposition of the
output gap (settle: realOut - minOut, cancel: minOut - realOut - 1). The
commitment is a public passthrough; its Poseidon binding is checked by the
prover before the witness is computed.

Setup material is written as real .zkey / .r1cs files so the artifact store,
the file parsers and the prover all run against the same bytes, and proofs
are checked with the Groth16 pairing equation.
"""

from __future__ import annotations

import random
import struct
from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Mapping, Sequence, Tuple

import pytest
from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    G1,
    G2,
    Z1,
    Z2,
    add,
    curve_order,
    field_modulus,
    is_inf,
    multiply,
    normalize,
    pairing,
)

from shadeswap.integration.artifacts import (
    CANCEL,
    IN_PROCESS_BACKEND,
    SETTLE,
    FilesystemArtifactStore,
    ProofArtifactConfig,
)
from shadeswap.integration.groth16 import root_of_unity
from shadeswap.integration.witness import WitnessCalculator


R = curve_order
Q = field_modulus

RANGE_BITS = 16
N_PUBLIC = 2
FIRST_BIT_WIRE = 5
N_VARS = FIRST_BIT_WIRE + RANGE_BITS

Lc = Dict[int, int]
Constraint = Tuple[Lc, Lc, Lc]


# -- Circuit -----------------------------------------------------------------


def build_constraints(variant: str) -> List[Constraint]:
    out: List[Constraint] = []
    for i in range(RANGE_BITS):
        w = FIRST_BIT_WIRE + i
        out.append(({w: 1}, {w: 1}, {w: 1}))
    bits = {FIRST_BIT_WIRE + i: 1 << i for i in range(RANGE_BITS)}
    if variant == SETTLE:
        gap = {1: 1, 3: R - 1}
    else:
        gap = {3: 1, 1: R - 1, 0: R - 1}
    out.append((bits, {0: 1}, gap))
    out.append(({4: 1}, {0: 1}, {4: 1}))
    return out


def circuit_witness(variant: str, inputs: Mapping[str, int]) -> List[int]:
    real_out = int(inputs["realOut"])
    min_out = int(inputs["minOut"])
    gap = real_out - min_out if variant == SETTLE else min_out - real_out - 1
    bits = [(gap >> i) & 1 for i in range(RANGE_BITS)]
    return [1, real_out, int(inputs["commitment"]), min_out, int(inputs["salt"]), *bits]


class CircuitWitness(WitnessCalculator):
    """In-process stand-in for the compiled witness generator."""

    def __init__(self, variant: str) -> None:
        self.variant = variant
        self.calls = 0

    def calculate(self, inputs: Mapping[str, int]) -> List[int]:
        self.calls += 1
        return circuit_witness(self.variant, inputs)


# -- Binary writers ----------------------------------------------------------


def _n(c) -> int:
    return c if isinstance(c, int) else c.n


def container(magic: bytes, sections: Sequence[Tuple[int, bytes]], version: int = 1) -> bytes:
    out = magic + struct.pack("<II", version, len(sections))
    for s_type, body in sections:
        out += struct.pack("<IQ", s_type, len(body)) + body
    return out


def fq_mont(v: int) -> bytes:
    return ((v * pow(2, 256, Q)) % Q).to_bytes(32, "little")


def g1_bytes(point: tuple) -> bytes:
    if is_inf(point):
        return bytes(64)
    x, y = normalize(point)
    return fq_mont(_n(x)) + fq_mont(_n(y))


def g2_bytes(point: tuple) -> bytes:
    if is_inf(point):
        return bytes(128)
    x, y = normalize(point)
    return b"".join(fq_mont(_n(c)) for c in (*x.coeffs, *y.coeffs))


def r1cs_bytes(constraints: Sequence[Constraint], *, n_wires: int = N_VARS, n_pub_in: int = N_PUBLIC) -> bytes:
    header = struct.pack("<I", 32) + R.to_bytes(32, "little")
    header += struct.pack("<IIIIQI", n_wires, 0, n_pub_in, 2, n_wires, len(constraints))
    body = b""
    for lcs in constraints:
        for lc in lcs:
            body += struct.pack("<I", len(lc))
            for wire, coef in sorted(lc.items()):
                body += struct.pack("<I", wire) + (coef % R).to_bytes(32, "little")
    return container(b"r1cs", [(1, header), (2, body)])


def wtns_bytes(values: Sequence[int]) -> bytes:
    header = struct.pack("<I", 32) + R.to_bytes(32, "little") + struct.pack("<I", len(values))
    body = b"".join(v.to_bytes(32, "little") for v in values)
    return container(b"wtns", [(1, header), (2, body)], version=2)


# -- Test-only trusted setup -------------------------------------------------


@dataclass(frozen=True)
class VerifyingKey:
    alpha_1: tuple
    beta_2: tuple
    gamma_2: tuple
    delta_2: tuple
    ic: tuple


@dataclass(frozen=True)
class ZkCircuit:
    variant: str
    zkey: bytes
    r1cs: bytes
    vk: VerifyingKey
    constraints: List[Constraint] = field(default_factory=list)


def _lagrange_at(tau: int, n: int) -> List[int]:
    omega = root_of_unity(n.bit_length() - 1)
    z = (pow(tau, n, R) - 1) % R
    n_inv = pow(n, -1, R)
    out = []
    w = 1
    for _ in range(n):
        out.append(w * z * n_inv * pow((tau - w) % R, -1, R) % R)
        w = (w * omega) % R
    return out


def _g1(s: int) -> tuple:
    s %= R
    return Z1 if s == 0 else multiply(G1, s)


def _g2(s: int) -> tuple:
    s %= R
    return Z2 if s == 0 else multiply(G2, s)


def trusted_setup(variant: str, seed: int) -> ZkCircuit:
    rng = random.Random(seed)
    tau, alpha, beta, gamma, delta = (rng.randrange(2, R) for _ in range(5))

    constraints = build_constraints(variant)
    rows: List[Constraint] = list(constraints)
    rows += [({i: 1}, {}, {}) for i in range(N_PUBLIC + 1)]
    domain = 1
    while domain < len(rows):
        domain <<= 1

    lag = _lagrange_at(tau, domain)
    a_t = [0] * N_VARS
    b_t = [0] * N_VARS
    c_t = [0] * N_VARS
    coefs = b""
    n_coefs = 0
    for j, (a_lc, b_lc, c_lc) in enumerate(rows):
        for matrix, lc, acc in ((0, a_lc, a_t), (1, b_lc, b_t), (2, c_lc, c_t)):
            for wire, coef in lc.items():
                acc[wire] = (acc[wire] + coef * lag[j]) % R
                if matrix < 2:
                    coefs += struct.pack("<III", matrix, j, wire)
                    coefs += ((coef * pow(2, 512, R)) % R).to_bytes(32, "little")
                    n_coefs += 1

    gamma_inv = pow(gamma, -1, R)
    delta_inv = pow(delta, -1, R)
    combined = [(beta * a_t[k] + alpha * b_t[k] + c_t[k]) % R for k in range(N_VARS)]
    ic = tuple(_g1(combined[k] * gamma_inv) for k in range(N_PUBLIC + 1))
    c_points = [_g1(combined[k] * delta_inv) for k in range(N_PUBLIC + 1, N_VARS)]

    lag2 = _lagrange_at(tau, 2 * domain)
    h_points = [_g1(lag2[2 * i + 1] * delta_inv) for i in range(domain)]

    alpha_1, beta_1, beta_2 = _g1(alpha), _g1(beta), _g2(beta)
    gamma_2, delta_1, delta_2 = _g2(gamma), _g1(delta), _g2(delta)

    header = struct.pack("<I", 32) + Q.to_bytes(32, "little") + struct.pack("<I", 32) + R.to_bytes(32, "little")
    header += struct.pack("<III", N_VARS, N_PUBLIC, domain)
    header += g1_bytes(alpha_1) + g1_bytes(beta_1) + g2_bytes(beta_2)
    header += g2_bytes(gamma_2) + g1_bytes(delta_1) + g2_bytes(delta_2)

    zkey = container(
        b"zkey",
        [
            (1, struct.pack("<I", 1)),
            (2, header),
            (3, b"".join(g1_bytes(p) for p in ic)),
            (4, struct.pack("<I", n_coefs) + coefs),
            (5, b"".join(g1_bytes(_g1(v)) for v in a_t)),
            (6, b"".join(g1_bytes(_g1(v)) for v in b_t)),
            (7, b"".join(g2_bytes(_g2(v)) for v in b_t)),
            (8, b"".join(g1_bytes(p) for p in c_points)),
            (9, b"".join(g1_bytes(p) for p in h_points)),
        ],
    )
    vk = VerifyingKey(alpha_1=alpha_1, beta_2=beta_2, gamma_2=gamma_2, delta_2=delta_2, ic=ic)
    return ZkCircuit(variant=variant, zkey=zkey, r1cs=r1cs_bytes(constraints), vk=vk, constraints=constraints)


def verify(vk: VerifyingKey, proof, public_signals: Sequence[int]) -> bool:
    """Groth16 check: e(A, B) == e(alpha, beta) * e(vk_x, gamma) * e(C, delta)."""
    vk_x = vk.ic[0]
    for s, point in zip(public_signals, vk.ic[1:]):
        vk_x = add(vk_x, multiply(point, s % R))
    a = (proof.a[0], proof.a[1], FQ.one())
    b = (proof.b[0], proof.b[1], FQ2.one())
    c = (proof.c[0], proof.c[1], FQ.one())
    lhs = pairing(b, a)
    rhs = pairing(vk.beta_2, vk.alpha_1) * pairing(vk.gamma_2, vk_x) * pairing(vk.delta_2, c)
    return lhs == rhs


# -- Fixtures ----------------------------------------------------------------


@pytest.fixture(scope="session")
def zk_circuits() -> Dict[str, ZkCircuit]:
    return {
        SETTLE: trusted_setup(SETTLE, seed=0x5E77),
        CANCEL: trusted_setup(CANCEL, seed=0xCA9C),
    }


@pytest.fixture(scope="session")
def circuits_dir(tmp_path_factory, zk_circuits) -> Path:
    root = tmp_path_factory.mktemp("circuits")
    for variant, circuit in zk_circuits.items():
        (root / f"{variant}_final.zkey").write_bytes(circuit.zkey)
        (root / f"{variant}.r1cs").write_bytes(circuit.r1cs)
        (root / f"{variant}.wasm").write_bytes(b"\x00asm")
    return root


@pytest.fixture(scope="session")
def artifact_store(circuits_dir) -> FilesystemArtifactStore:
    config = ProofArtifactConfig(circuits_dir=str(circuits_dir), prover_backend=IN_PROCESS_BACKEND)
    return FilesystemArtifactStore(config, witness_factory=lambda variant, _wasm: CircuitWitness(variant))


@pytest.fixture(scope="session")
def groth16_verify(zk_circuits):
    def _verify(variant: str, proof, public_signals: Sequence[int]) -> bool:
        return verify(zk_circuits[variant].vk, proof, public_signals)

    return _verify


@pytest.fixture
def circom_writers() -> SimpleNamespace:
    return SimpleNamespace(
        container=container,
        wtns_bytes=wtns_bytes,
        r1cs_bytes=r1cs_bytes,
        g1_bytes=g1_bytes,
        g2_bytes=g2_bytes,
        build_constraints=build_constraints,
        circuit_witness=circuit_witness,
        circuit_witness_calculator=CircuitWitness,
        n_vars=N_VARS,
        range_bits=RANGE_BITS,
    )
