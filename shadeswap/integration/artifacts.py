"""
Circuit artifact store.

Each proof variant ("settle", "cancel") is a compiled circom circuit with
three files in one directory:

    <variant>.wasm          witness generator input
    <variant>_final.zkey    Groth16 proving key (snarkjs)
    <variant>.r1cs          constraint system (optional, enables witness checks)

Locations are configuration, never process-wide state: callers build a
`ProofArtifactConfig` and hand the resulting store to the prover.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from ..core.errors import ArtifactError
from ..state.canonical import sha256_hex
from .backends import DEFAULT_PROVE_CMD, Groth16Prover, InProcessGroth16Prover, SubprocessGroth16Prover
from .circom_files import ProvingKey, R1cs, parse_r1cs, parse_zkey
from .witness import SubprocessWitnessCalculator, WitnessCalculator


logger = logging.getLogger(__name__)

SETTLE = "settle"
CANCEL = "cancel"
CIRCUIT_VARIANTS = (SETTLE, CANCEL)

DEFAULT_WITNESS_CMD = ("snarkjs", "wtns", "calculate", "{wasm}", "{input}", "{output}")

SNARKJS_BACKEND = "snarkjs"
IN_PROCESS_BACKEND = "in_process"
PROVER_BACKENDS = (SNARKJS_BACKEND, IN_PROCESS_BACKEND)


@dataclass(frozen=True)
class ProofArtifactConfig:
    circuits_dir: Optional[str] = None
    # Witness generator command template; see `SubprocessWitnessCalculator`.
    witness_cmd: Sequence[str] = DEFAULT_WITNESS_CMD
    # "snarkjs" runs prove_cmd; "in_process" uses the pure-Python prover.
    prover_backend: str = SNARKJS_BACKEND
    prove_cmd: Sequence[str] = DEFAULT_PROVE_CMD
    # If False, witness_cmd[0] and prove_cmd[0] must be absolute paths (fail-closed).
    allow_path_lookup: bool = True
    witness_timeout_s: float = 60.0
    prove_timeout_s: float = 300.0
    # Check every R1CS constraint before proving when the .r1cs is present.
    verify_witness: bool = True

    def __post_init__(self) -> None:
        if not self.witness_cmd:
            raise ValueError("witness_cmd must be non-empty")
        if self.witness_timeout_s <= 0:
            raise ValueError("witness_timeout_s must be positive")
        if self.prover_backend not in PROVER_BACKENDS:
            raise ValueError(f"prover_backend must be one of {PROVER_BACKENDS}")
        if not self.prove_cmd:
            raise ValueError("prove_cmd must be non-empty")
        if self.prove_timeout_s <= 0:
            raise ValueError("prove_timeout_s must be positive")


@dataclass(frozen=True)
class CircuitArtifacts:
    variant: str
    proving_key: ProvingKey
    witness_calculator: WitnessCalculator
    prover: Groth16Prover
    r1cs: Optional[R1cs] = None
    zkey_digest: str = ""


class ArtifactStore:
    """Interface for loading a circuit variant's artifacts."""

    def load(self, variant: str) -> CircuitArtifacts:
        raise NotImplementedError


class MisconfiguredArtifactStore(ArtifactStore):
    def __init__(self, reason: str) -> None:
        self._reason = str(reason)

    def load(self, variant: str) -> CircuitArtifacts:
        raise ArtifactError(self._reason)


WitnessCalculatorFactory = Callable[[str, Path], WitnessCalculator]
ProverFactory = Callable[[str, Path], Groth16Prover]


class FilesystemArtifactStore(ArtifactStore):
    """
    Load artifacts from `circuits_dir`, parsing each proving key once.

    `witness_factory(variant, wasm_path)` builds the witness calculator and
    `prover_factory(variant, zkey_path)` the Groth16 backend; by default both
    follow the configured external commands.
    """

    def __init__(
        self,
        config: ProofArtifactConfig,
        *,
        witness_factory: Optional[WitnessCalculatorFactory] = None,
        prover_factory: Optional[ProverFactory] = None,
    ) -> None:
        if not config.circuits_dir:
            raise ValueError("circuits_dir must be set")
        self._config = config
        self._root = Path(config.circuits_dir)
        self._witness_factory = witness_factory or self._subprocess_calculator
        self._prover_factory = prover_factory or self._configured_prover
        self._cache: Dict[str, CircuitArtifacts] = {}
        self._lock = threading.Lock()

    def _subprocess_calculator(self, variant: str, wasm_path: Path) -> WitnessCalculator:
        cmd = list(self._config.witness_cmd)
        if not self._config.allow_path_lookup and not os.path.isabs(cmd[0]):
            raise ArtifactError("witness_cmd[0] must be an absolute path when path lookup is disabled")
        return SubprocessWitnessCalculator(
            cmd=cmd,
            wasm_path=wasm_path,
            timeout_s=self._config.witness_timeout_s,
        )

    def _configured_prover(self, variant: str, zkey_path: Path) -> Groth16Prover:
        if self._config.prover_backend == IN_PROCESS_BACKEND:
            return InProcessGroth16Prover()
        cmd = list(self._config.prove_cmd)
        if not self._config.allow_path_lookup and not os.path.isabs(cmd[0]):
            raise ArtifactError("prove_cmd[0] must be an absolute path when path lookup is disabled")
        return SubprocessGroth16Prover(
            cmd=cmd,
            zkey_path=zkey_path,
            timeout_s=self._config.prove_timeout_s,
        )

    def paths(self, variant: str) -> Dict[str, Path]:
        if variant not in CIRCUIT_VARIANTS:
            raise ArtifactError(f"unknown circuit variant {variant!r}")
        return {
            "wasm": self._root / f"{variant}.wasm",
            "zkey": self._root / f"{variant}_final.zkey",
            "r1cs": self._root / f"{variant}.r1cs",
        }

    def load(self, variant: str) -> CircuitArtifacts:
        with self._lock:
            cached = self._cache.get(variant)
            if cached is not None:
                return cached

            paths = self.paths(variant)
            try:
                zkey_bytes = paths["zkey"].read_bytes()
            except OSError as exc:
                raise ArtifactError(f"cannot read proving key for {variant}: {exc}") from exc
            proving_key = parse_zkey(zkey_bytes)

            r1cs: Optional[R1cs] = None
            if self._config.verify_witness and paths["r1cs"].exists():
                try:
                    r1cs = parse_r1cs(paths["r1cs"].read_bytes())
                except OSError as exc:
                    raise ArtifactError(f"cannot read constraint system for {variant}: {exc}") from exc
                if r1cs.n_wires != proving_key.n_vars or r1cs.n_public != proving_key.n_public:
                    raise ArtifactError(f"{variant}.r1cs does not match {variant}_final.zkey")

            artifacts = CircuitArtifacts(
                variant=variant,
                proving_key=proving_key,
                witness_calculator=self._witness_factory(variant, paths["wasm"]),
                prover=self._prover_factory(variant, paths["zkey"]),
                r1cs=r1cs,
                zkey_digest=sha256_hex(zkey_bytes),
            )
            logger.info(
                "loaded %s circuit: vars=%d domain=%d zkey=%s",
                variant,
                proving_key.n_vars,
                proving_key.domain_size,
                artifacts.zkey_digest[:18],
            )
            self._cache[variant] = artifacts
            return artifacts


def make_artifact_store(
    config: ProofArtifactConfig,
    *,
    witness_factory: Optional[WitnessCalculatorFactory] = None,
    prover_factory: Optional[ProverFactory] = None,
) -> ArtifactStore:
    if not config.circuits_dir:
        return MisconfiguredArtifactStore("circuits_dir is not configured")
    root = Path(config.circuits_dir)
    if not root.is_dir():
        return MisconfiguredArtifactStore(f"circuits_dir does not exist: {root}")
    return FilesystemArtifactStore(config, witness_factory=witness_factory, prover_factory=prover_factory)
