"""
Client settings loaded from YAML.

    schema: shadeswap/client-settings/v1
    label: shadeswap
    unwrap_wsol: false
    proof:
      circuits_dir: ./circuits
      witness_cmd: [snarkjs, wtns, calculate, "{wasm}", "{input}", "{output}"]
      prover_backend: snarkjs        # or in_process
      prove_cmd: [snarkjs, groth16, prove, "{zkey}", "{witness}", "{proof}", "{public}"]
      allow_path_lookup: true
      witness_timeout_s: 60
      prove_timeout_s: 300
      verify_witness: true

`SHADESWAP_CIRCUITS_DIR` overrides `proof.circuits_dir`. Relative circuit
paths resolve against the settings file's directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .artifacts import DEFAULT_WITNESS_CMD, PROVER_BACKENDS, SNARKJS_BACKEND, ProofArtifactConfig
from .backends import DEFAULT_PROVE_CMD


SETTINGS_SCHEMA = "shadeswap/client-settings/v1"
CIRCUITS_DIR_ENV = "SHADESWAP_CIRCUITS_DIR"
MAX_LABEL_LEN = 10


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class ClientSettings:
    proof: ProofArtifactConfig = field(default_factory=ProofArtifactConfig)
    label: str = "shadeswap"
    unwrap_wsol: bool = False

    def __post_init__(self) -> None:
        if not self.label or len(self.label) > MAX_LABEL_LEN or not self.label.isascii():
            raise SettingsError(f"label must be 1..{MAX_LABEL_LEN} ASCII characters")


def _require_mapping(obj: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(obj, dict):
        raise SettingsError(f"{name} must be a mapping")
    return obj


def _optional_str(obj: Any, *, name: str) -> Optional[str]:
    if obj is None:
        return None
    if not isinstance(obj, str) or not obj.strip():
        raise SettingsError(f"{name} must be a non-empty string")
    return obj.strip()


def _optional_bool(obj: Any, default: bool, *, name: str) -> bool:
    if obj is None:
        return default
    if not isinstance(obj, bool):
        raise SettingsError(f"{name} must be a bool")
    return obj


def _command(obj: Any, default: Any, *, name: str) -> tuple:
    cmd = list(default) if obj is None else obj
    if not isinstance(cmd, list) or not cmd or not all(isinstance(p, str) for p in cmd):
        raise SettingsError(f"{name} must be a non-empty list of strings")
    return tuple(cmd)


def _positive_number(obj: Any, default: float, *, name: str) -> float:
    if obj is None:
        return default
    if isinstance(obj, bool) or not isinstance(obj, (int, float)) or obj <= 0:
        raise SettingsError(f"{name} must be a positive number")
    return float(obj)


def settings_from_mapping(root: Mapping[str, Any], *, base_dir: Optional[Path] = None) -> ClientSettings:
    schema = root.get("schema", SETTINGS_SCHEMA)
    if schema != SETTINGS_SCHEMA:
        raise SettingsError(f"unsupported settings schema: {schema}")

    proof_obj = _require_mapping(root.get("proof", {}), name="proof")

    circuits_dir = os.environ.get(CIRCUITS_DIR_ENV) or _optional_str(
        proof_obj.get("circuits_dir"), name="proof.circuits_dir"
    )
    if circuits_dir is not None and base_dir is not None and not os.path.isabs(circuits_dir):
        circuits_dir = str((base_dir / circuits_dir).resolve())

    backend = proof_obj.get("prover_backend", SNARKJS_BACKEND)
    if backend not in PROVER_BACKENDS:
        raise SettingsError(f"proof.prover_backend must be one of {', '.join(PROVER_BACKENDS)}")

    proof = ProofArtifactConfig(
        circuits_dir=circuits_dir,
        witness_cmd=_command(proof_obj.get("witness_cmd"), DEFAULT_WITNESS_CMD, name="proof.witness_cmd"),
        prover_backend=backend,
        prove_cmd=_command(proof_obj.get("prove_cmd"), DEFAULT_PROVE_CMD, name="proof.prove_cmd"),
        allow_path_lookup=_optional_bool(proof_obj.get("allow_path_lookup"), True, name="proof.allow_path_lookup"),
        witness_timeout_s=_positive_number(proof_obj.get("witness_timeout_s"), 60.0, name="proof.witness_timeout_s"),
        prove_timeout_s=_positive_number(proof_obj.get("prove_timeout_s"), 300.0, name="proof.prove_timeout_s"),
        verify_witness=_optional_bool(proof_obj.get("verify_witness"), True, name="proof.verify_witness"),
    )
    label = _optional_str(root.get("label"), name="label") or "shadeswap"
    return ClientSettings(
        proof=proof,
        label=label,
        unwrap_wsol=_optional_bool(root.get("unwrap_wsol"), False, name="unwrap_wsol"),
    )


def load_settings(path: Path) -> ClientSettings:
    path = Path(path)
    raw = path.read_text(encoding="utf-8")
    root = yaml.safe_load(raw)
    if root is None:
        root = {}
    return settings_from_mapping(_require_mapping(root, name="settings"), base_dir=path.parent)
