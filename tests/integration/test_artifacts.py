# [TESTER] v1

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from shadeswap.core.errors import ArtifactError, ProofGenerationFailure
from shadeswap.integration.artifacts import (
    CANCEL,
    SETTLE,
    FilesystemArtifactStore,
    MisconfiguredArtifactStore,
    ProofArtifactConfig,
    make_artifact_store,
)
from shadeswap.integration.backends import SubprocessGroth16Prover
from shadeswap.integration.witness import SubprocessWitnessCalculator, encode_inputs


def test_missing_circuits_dir_fails_closed(tmp_path: Path) -> None:
    for config in (ProofArtifactConfig(), ProofArtifactConfig(circuits_dir=str(tmp_path / "absent"))):
        store = make_artifact_store(config)
        assert isinstance(store, MisconfiguredArtifactStore)
        with pytest.raises(ArtifactError):
            store.load(SETTLE)


def test_config_validation() -> None:
    with pytest.raises(ValueError):
        ProofArtifactConfig(witness_cmd=())
    with pytest.raises(ValueError):
        ProofArtifactConfig(witness_timeout_s=0)
    with pytest.raises(ValueError):
        ProofArtifactConfig(prover_backend="gpu")
    with pytest.raises(ValueError):
        ProofArtifactConfig(prove_cmd=())
    with pytest.raises(ValueError):
        ProofArtifactConfig(prove_timeout_s=0)


def test_store_loads_and_caches(circuits_dir: Path) -> None:
    store = make_artifact_store(ProofArtifactConfig(circuits_dir=str(circuits_dir)))
    assert isinstance(store, FilesystemArtifactStore)
    first = store.load(SETTLE)
    assert store.load(SETTLE) is first
    assert first.variant == SETTLE
    assert first.r1cs is not None
    assert first.proving_key.n_vars == first.r1cs.n_wires
    assert first.zkey_digest.startswith("0x") and len(first.zkey_digest) == 66
    assert isinstance(first.witness_calculator, SubprocessWitnessCalculator)
    assert isinstance(first.prover, SubprocessGroth16Prover)
    assert store.load(CANCEL).zkey_digest != first.zkey_digest


def test_unknown_variant(circuits_dir: Path) -> None:
    store = make_artifact_store(ProofArtifactConfig(circuits_dir=str(circuits_dir)))
    with pytest.raises(ArtifactError):
        store.load("refund")


def test_missing_zkey(tmp_path: Path) -> None:
    store = make_artifact_store(ProofArtifactConfig(circuits_dir=str(tmp_path)))
    with pytest.raises(ArtifactError, match="proving key"):
        store.load(CANCEL)


def test_mismatched_r1cs_is_rejected(tmp_path: Path, circuits_dir: Path, circom_writers) -> None:
    shutil.copy(circuits_dir / "settle_final.zkey", tmp_path / "settle_final.zkey")
    constraints = circom_writers.build_constraints(SETTLE)
    (tmp_path / "settle.r1cs").write_bytes(circom_writers.r1cs_bytes(constraints, n_wires=circom_writers.n_vars + 1))
    store = make_artifact_store(ProofArtifactConfig(circuits_dir=str(tmp_path)))
    with pytest.raises(ArtifactError, match="does not match"):
        store.load(SETTLE)

    unchecked = make_artifact_store(ProofArtifactConfig(circuits_dir=str(tmp_path), verify_witness=False))
    assert unchecked.load(SETTLE).r1cs is None


def test_relative_witness_cmd_needs_path_lookup(circuits_dir: Path) -> None:
    config = ProofArtifactConfig(circuits_dir=str(circuits_dir), allow_path_lookup=False)
    with pytest.raises(ArtifactError, match="absolute"):
        make_artifact_store(config).load(SETTLE)


def test_encode_inputs_is_canonical() -> None:
    assert encode_inputs({"salt": 2, "minOut": 10}) == b'{"minOut":"10","salt":"2"}'
    with pytest.raises(ProofGenerationFailure):
        encode_inputs({"minOut": -1})
    with pytest.raises(ProofGenerationFailure):
        encode_inputs({"minOut": True})


def test_subprocess_calculator_missing_binary(tmp_path: Path) -> None:
    calc = SubprocessWitnessCalculator(
        cmd=[str(tmp_path / "no-such-generator"), "{wasm}", "{input}", "{output}"],
        wasm_path=tmp_path / "settle.wasm",
        timeout_s=5,
    )
    with pytest.raises(ProofGenerationFailure, match="could not|error"):
        calc.calculate({"minOut": 1})


def test_subprocess_calculator_nonzero_exit(tmp_path: Path) -> None:
    false_cmd = shutil.which("false")
    if false_cmd is None:
        pytest.skip("no `false` binary available")
    calc = SubprocessWitnessCalculator(cmd=[false_cmd], wasm_path=tmp_path / "x.wasm", timeout_s=5)
    with pytest.raises(ProofGenerationFailure, match="exited with 1"):
        calc.calculate({"minOut": 1})


def test_subprocess_calculator_without_output_file(tmp_path: Path) -> None:
    true_cmd = shutil.which("true")
    if true_cmd is None:
        pytest.skip("no `true` binary available")
    calc = SubprocessWitnessCalculator(cmd=[true_cmd, "{input}"], wasm_path=tmp_path / "x.wasm", timeout_s=5)
    with pytest.raises(ProofGenerationFailure, match="no witness file"):
        calc.calculate({"minOut": 1})


def test_subprocess_calculator_bad_template(tmp_path: Path) -> None:
    calc = SubprocessWitnessCalculator(cmd=["gen", "{zkey}"], wasm_path=tmp_path / "x.wasm", timeout_s=5)
    with pytest.raises(ArtifactError):
        calc.calculate({"minOut": 1})
