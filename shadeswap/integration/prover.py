"""
Proof pipeline: circuit inputs -> witness -> Groth16 proof -> wire bytes.

Both circuits take the same four signals:

    minOut (private)      the trader's threshold
    salt (private)        commitment blinding, as a u64 field element
    realOut (public)      realized order output
    commitment (public)   Poseidon(minOut, salt)

`settle` proves `minOut <= realOut`, `cancel` proves `minOut > realOut`.
Relations and the commitment are checked before any artifact is touched so
an unsatisfiable request never reaches the prover.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import field_modulus

from ..core.commitment import commitment_value, salt_to_field
from ..core.errors import ProofGenerationFailure, SerializationFailure
from ..core.field import FIELD_MODULUS, bigint_to_bytes_be, bytes_to_field
from ..state.amounts import require_u64
from .artifacts import CANCEL, SETTLE, ArtifactStore
from .circom_files import first_unsatisfied
from .groth16 import Proof


logger = logging.getLogger(__name__)

PUBLIC_SIGNAL_COUNT = 2
G1_WIRE_LEN = 64
G2_WIRE_LEN = 128


@dataclass(frozen=True)
class PrivateInputs:
    threshold: int
    salt: bytes

    def __post_init__(self) -> None:
        require_u64("threshold", self.threshold)
        salt_to_field(self.salt)

    def __repr__(self) -> str:
        return "PrivateInputs(<redacted>)"


@dataclass(frozen=True)
class PublicInputs:
    realized_output: int
    commitment: bytes

    def __post_init__(self) -> None:
        require_u64("realized_output", self.realized_output)
        bytes_to_field(self.commitment)

    @property
    def commitment_int(self) -> int:
        return int.from_bytes(self.commitment, "big")


@dataclass(frozen=True)
class WireProof:
    proof_a: bytes  # 64
    proof_b: bytes  # 128
    proof_c: bytes  # 64
    public_signals: Tuple[bytes, ...]  # 2 x 32

    def to_bytes(self) -> bytes:
        return self.proof_a + self.proof_b + self.proof_c + b"".join(self.public_signals)


def _relation_holds(variant: str, threshold: int, realized_output: int) -> bool:
    if variant == SETTLE:
        return threshold <= realized_output
    if variant == CANCEL:
        return threshold > realized_output
    raise ProofGenerationFailure(f"unknown proof variant {variant!r}")


def circuit_inputs(private: PrivateInputs, public: PublicInputs) -> dict:
    return {
        "minOut": private.threshold,
        "salt": salt_to_field(private.salt),
        "realOut": public.realized_output,
        "commitment": public.commitment_int,
    }


def generate_proof(
    private: PrivateInputs,
    public: PublicInputs,
    variant: str,
    store: ArtifactStore,
) -> Tuple[Proof, List[int]]:
    """
    Prove that `public.commitment` hides a threshold satisfying the variant.

    Returns:
        (proof, public_signals) where public_signals == [realized_output, commitment]

    Raises:
        ProofGenerationFailure: Inconsistent inputs, an unsatisfiable witness,
            or a prover failure; `ArtifactError` (a subclass) for missing or
            corrupt circuit artifacts
    """
    if not _relation_holds(variant, private.threshold, public.realized_output):
        raise ProofGenerationFailure(f"{variant} relation does not hold for this output")
    if commitment_value(private.threshold, private.salt) != public.commitment_int:
        raise ProofGenerationFailure("commitment does not match (threshold, salt)")

    artifacts = store.load(variant)
    pk = artifacts.proving_key
    started = time.monotonic()

    witness = artifacts.witness_calculator.calculate(circuit_inputs(private, public))
    if len(witness) != pk.n_vars:
        raise ProofGenerationFailure(f"witness has {len(witness)} values, circuit expects {pk.n_vars}")
    if artifacts.r1cs is not None:
        failed = first_unsatisfied(artifacts.r1cs, witness)
        if failed is not None:
            raise ProofGenerationFailure(f"witness violates constraint {failed}")

    expected = [public.realized_output, public.commitment_int]
    if pk.n_public != PUBLIC_SIGNAL_COUNT or witness[1 : pk.n_public + 1] != expected:
        raise ProofGenerationFailure("witness public signals disagree with the requested inputs")

    proof, signals = artifacts.prover.prove(pk, witness)
    logger.info(
        "%s proof generated by %s in %.3fs",
        variant,
        type(artifacts.prover).__name__,
        time.monotonic() - started,
    )
    return proof, signals


async def prove_in_executor(
    private: PrivateInputs,
    public: PublicInputs,
    variant: str,
    store: ArtifactStore,
) -> Tuple[Proof, List[int]]:
    """Run `generate_proof` on the loop's default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, functools.partial(generate_proof, private, public, variant, store)
    )


# -- Wire format -------------------------------------------------------------


def _coeff_int(c) -> int:
    return c if isinstance(c, int) else int(c.n)


def _g1_coords(point: tuple) -> Tuple[int, int]:
    x, y = point[0], point[1]
    return _coeff_int(x), _coeff_int(y)


def _g2_coords(point: tuple) -> Tuple[int, int, int, int]:
    x, y = point[0], point[1]
    x0, x1 = (_coeff_int(c) for c in x.coeffs)
    y0, y1 = (_coeff_int(c) for c in y.coeffs)
    return x0, x1, y0, y1


def _encode_coords(coords: Sequence[int]) -> bytes:
    out = b""
    for v in coords:
        if not (0 <= v < field_modulus):
            raise SerializationFailure("curve coordinate out of range")
        out += bigint_to_bytes_be(v)
    return out


def negate_g1_affine(point: tuple) -> Tuple[int, int]:
    x, y = _g1_coords(point)
    return x, (field_modulus - y) % field_modulus


def convert_to_wire_format(proof: Proof, public_inputs: Sequence[int]) -> WireProof:
    """
    Encode a proof for the on-chain verifier.

    - A is negated, then `x || y` (big-endian, 32 bytes each)
    - B is `x1 || x0 || y1 || y0` (imaginary part first)
    - C is `x || y`
    - each public signal is a 32-byte big-endian integer

    Raises:
        SerializationFailure: Wrong signal count or a value out of range
    """
    if len(public_inputs) != PUBLIC_SIGNAL_COUNT:
        raise SerializationFailure(
            f"expected {PUBLIC_SIGNAL_COUNT} public signals, got {len(public_inputs)}"
        )
    signals = []
    for v in public_inputs:
        if not isinstance(v, int) or isinstance(v, bool) or not (0 <= v < FIELD_MODULUS):
            raise SerializationFailure(f"public signal out of range: {v!r}")
        signals.append(bigint_to_bytes_be(v))

    x0, x1, y0, y1 = _g2_coords(proof.b)
    return WireProof(
        proof_a=_encode_coords(negate_g1_affine(proof.a)),
        proof_b=_encode_coords((x1, x0, y1, y0)),
        proof_c=_encode_coords(_g1_coords(proof.c)),
        public_signals=tuple(signals),
    )


def proof_for_finalize(
    private: PrivateInputs,
    public: PublicInputs,
    variant: str,
    store: ArtifactStore,
) -> WireProof:
    """`generate_proof` followed by `convert_to_wire_format`."""
    proof, signals = generate_proof(private, public, variant, store)
    return convert_to_wire_format(proof, signals)


def wire_proof_from_bytes(data: bytes) -> Optional[WireProof]:
    """Split a 320-byte proof blob back into its parts; None on a length mismatch."""
    expected = 2 * G1_WIRE_LEN + G2_WIRE_LEN + PUBLIC_SIGNAL_COUNT * 32
    if len(data) != expected:
        return None
    a = data[:G1_WIRE_LEN]
    b_part = data[G1_WIRE_LEN : G1_WIRE_LEN + G2_WIRE_LEN]
    c = data[G1_WIRE_LEN + G2_WIRE_LEN : 2 * G1_WIRE_LEN + G2_WIRE_LEN]
    rest = data[2 * G1_WIRE_LEN + G2_WIRE_LEN :]
    return WireProof(a, b_part, c, (rest[:32], rest[32:]))
