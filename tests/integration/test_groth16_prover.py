# [TESTER] v1

from __future__ import annotations

import asyncio
import random

import pytest
from py_ecc.optimized_bn128 import G1, Z1, add, curve_order, eq, multiply

from shadeswap.core.commitment import commit
from shadeswap.core.errors import ArtifactError, ProofGenerationFailure
from shadeswap.integration.artifacts import CANCEL, SETTLE, ProofArtifactConfig, make_artifact_store
from shadeswap.integration.groth16 import fft, ifft, msm, prove, root_of_unity
from shadeswap.integration.prover import (
    PrivateInputs,
    PublicInputs,
    circuit_inputs,
    convert_to_wire_format,
    generate_proof,
    proof_for_finalize,
    prove_in_executor,
)


SALT = bytes([3, 1, 4, 1, 5, 9, 2, 6])


def _inputs(threshold: int, output: int, salt: bytes = SALT):
    return PrivateInputs(threshold=threshold, salt=salt), PublicInputs(output, commit(threshold, salt))


def test_root_of_unity_orders() -> None:
    for power in (1, 5, 28):
        w = root_of_unity(power)
        assert pow(w, 1 << power, curve_order) == 1
        assert pow(w, 1 << (power - 1), curve_order) == curve_order - 1
    with pytest.raises(ValueError):
        root_of_unity(29)


def test_fft_inverts() -> None:
    rng = random.Random(7)
    coeffs = [rng.randrange(curve_order) for _ in range(16)]
    assert ifft(fft(coeffs)) == coeffs
    # Constant polynomial evaluates to itself everywhere.
    assert fft([5] + [0] * 7) == [5] * 8
    with pytest.raises(ValueError):
        fft([1, 2, 3])


def test_msm_matches_naive_sum() -> None:
    points = [multiply(G1, k) for k in (2, 3, 5, 7, 11)]
    scalars = [9, 0, curve_order - 1, 123_456_789, 1]
    expected = Z1
    for p, s in zip(points, scalars):
        expected = add(expected, multiply(p, s))
    assert eq(msm(points, scalars, Z1), expected)
    assert msm([], [], Z1) == Z1


def test_circuit_inputs_names_and_values() -> None:
    private, public = _inputs(400, 500, bytes([1, 0, 0, 0, 0, 0, 0, 0]))
    inputs = circuit_inputs(private, public)
    assert inputs["minOut"] == 400
    assert inputs["salt"] == 1
    assert inputs["realOut"] == 500
    assert inputs["commitment"] == int.from_bytes(public.commitment, "big")


def test_private_inputs_are_redacted() -> None:
    private, _ = _inputs(424_242, 500_000)
    assert "424242" not in repr(private)


def test_settle_proof_verifies(artifact_store, groth16_verify) -> None:
    private, public = _inputs(40_000, 41_000)
    proof, signals = generate_proof(private, public, SETTLE, artifact_store)
    assert signals == [41_000, public.commitment_int]
    assert groth16_verify(SETTLE, proof, signals)
    assert not groth16_verify(CANCEL, proof, signals)
    assert not groth16_verify(SETTLE, proof, [41_001, public.commitment_int])


def test_cancel_proof_verifies(artifact_store, groth16_verify) -> None:
    private, public = _inputs(41_000, 40_000)
    proof, signals = generate_proof(private, public, CANCEL, artifact_store)
    assert groth16_verify(CANCEL, proof, signals)
    assert not groth16_verify(SETTLE, proof, signals)


def test_equal_output_settles(artifact_store, groth16_verify) -> None:
    private, public = _inputs(7, 7)
    proof, signals = generate_proof(private, public, SETTLE, artifact_store)
    assert groth16_verify(SETTLE, proof, signals)
    with pytest.raises(ProofGenerationFailure):
        generate_proof(private, public, CANCEL, artifact_store)


def test_proofs_are_randomized(artifact_store) -> None:
    private, public = _inputs(10, 20)
    first, _ = generate_proof(private, public, SETTLE, artifact_store)
    second, _ = generate_proof(private, public, SETTLE, artifact_store)
    assert first.a != second.a


def test_prove_with_fixed_randomness_is_deterministic(artifact_store) -> None:
    private, public = _inputs(10, 20)
    artifacts = artifact_store.load(SETTLE)
    witness = artifacts.witness_calculator.calculate(circuit_inputs(private, public))
    one, _ = prove(artifacts.proving_key, witness, randomness=lambda: 5)
    two, _ = prove(artifacts.proving_key, witness, randomness=lambda: 5)
    assert one == two


def test_relation_is_checked_before_proving(artifact_store) -> None:
    calculator = artifact_store.load(SETTLE).witness_calculator
    calls = calculator.calls
    private, public = _inputs(501, 500)
    with pytest.raises(ProofGenerationFailure, match="relation"):
        generate_proof(private, public, SETTLE, artifact_store)
    assert calculator.calls == calls


def test_commitment_mismatch_is_rejected(artifact_store) -> None:
    private = PrivateInputs(threshold=400, salt=SALT)
    public = PublicInputs(500, commit(401, SALT))
    with pytest.raises(ProofGenerationFailure, match="commitment"):
        generate_proof(private, public, SETTLE, artifact_store)


def test_unknown_variant_is_rejected(artifact_store) -> None:
    private, public = _inputs(1, 2)
    with pytest.raises(ProofGenerationFailure):
        generate_proof(private, public, "refund", artifact_store)


def test_gap_outside_the_circuit_range_fails(artifact_store) -> None:
    # The test circuit range-checks the gap to 16 bits.
    private, public = _inputs(0, 1 << 16)
    with pytest.raises(ProofGenerationFailure, match="constraint"):
        generate_proof(private, public, SETTLE, artifact_store)


def test_proof_for_finalize_emits_wire_bytes(artifact_store) -> None:
    private, public = _inputs(100, 150)
    wire = proof_for_finalize(private, public, SETTLE, artifact_store)
    assert len(wire.to_bytes()) == 320
    assert wire.public_signals == ((150).to_bytes(32, "big"), public.commitment)


def test_prove_in_executor(artifact_store, groth16_verify) -> None:
    private, public = _inputs(9, 3)
    proof, signals = asyncio.run(prove_in_executor(private, public, CANCEL, artifact_store))
    assert groth16_verify(CANCEL, proof, signals)
    assert len(convert_to_wire_format(proof, signals).to_bytes()) == 320


def test_missing_artifacts_surface_as_proof_generation_failure(tmp_path) -> None:
    private, public = _inputs(10, 20)
    for store in (
        make_artifact_store(ProofArtifactConfig(circuits_dir=str(tmp_path))),
        make_artifact_store(ProofArtifactConfig()),
    ):
        with pytest.raises(ProofGenerationFailure) as excinfo:
            generate_proof(private, public, SETTLE, store)
        assert isinstance(excinfo.value, ArtifactError)
