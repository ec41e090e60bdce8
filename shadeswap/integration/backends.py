"""
Groth16 proving backends.

`SubprocessGroth16Prover` is the production path: the witness is written as
a `.wtns` file and handed, with the circuit's `.zkey`, to
`snarkjs groth16 prove`; the resulting `proof.json` / `public.json` are read
back and checked. `InProcessGroth16Prover` runs the pure-Python prover in
`groth16.py` and needs no external tooling, at a large cost in latency.

snarkjs `proof.json` carries projective coordinates as decimal strings:

    pi_a: [x, y, "1"]
    pi_b: [[x0, x1], [y0, y1], ["1", "0"]]
    pi_c: [x, y, "1"]
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import FQ, FQ2, b, b2, curve_order, field_modulus, is_on_curve

from ..core.errors import ProofGenerationFailure
from .circom_files import ProvingKey, encode_wtns
from .external import expand_command, private_workdir, run_tool
from .groth16 import Proof, prove


logger = logging.getLogger(__name__)

DEFAULT_PROVE_CMD = ("snarkjs", "groth16", "prove", "{zkey}", "{witness}", "{proof}", "{public}")


class Groth16Prover:
    """Interface: full witness in, (proof, public signals) out."""

    def prove(self, proving_key: ProvingKey, witness: Sequence[int]) -> Tuple[Proof, List[int]]:
        raise NotImplementedError


class InProcessGroth16Prover(Groth16Prover):
    def __init__(self, *, randomness: Optional[Callable[[], int]] = None) -> None:
        self._randomness = randomness

    def prove(self, proving_key: ProvingKey, witness: Sequence[int]) -> Tuple[Proof, List[int]]:
        if self._randomness is None:
            return prove(proving_key, witness)
        return prove(proving_key, witness, randomness=self._randomness)


def _decimal(value: Any, what: str, bound: int) -> int:
    if not isinstance(value, str) or not (value.isascii() and value.isdigit()):
        raise ProofGenerationFailure(f"{what} is not a decimal string")
    n = int(value)
    if n >= bound:
        raise ProofGenerationFailure(f"{what} is out of range")
    return n


def _pair(value: Any, what: str) -> Sequence[Any]:
    if not isinstance(value, list) or len(value) != 2:
        raise ProofGenerationFailure(f"{what} must be a pair")
    return value


def _g1(value: Any, what: str) -> tuple:
    if not isinstance(value, list) or len(value) != 3:
        raise ProofGenerationFailure(f"{what} must have three coordinates")
    x, y, z = (_decimal(v, what, field_modulus) for v in value)
    if z != 1:
        raise ProofGenerationFailure(f"{what} is not an affine point")
    point = (FQ(x), FQ(y), FQ.one())
    if not is_on_curve(point, b):
        raise ProofGenerationFailure(f"{what} is not on the curve")
    return point[0], point[1]


def _g2(value: Any, what: str) -> tuple:
    if not isinstance(value, list) or len(value) != 3:
        raise ProofGenerationFailure(f"{what} must have three coordinates")
    x0, x1 = (_decimal(v, what, field_modulus) for v in _pair(value[0], what))
    y0, y1 = (_decimal(v, what, field_modulus) for v in _pair(value[1], what))
    z0, z1 = (_decimal(v, what, field_modulus) for v in _pair(value[2], what))
    if (z0, z1) != (1, 0):
        raise ProofGenerationFailure(f"{what} is not an affine point")
    point = (FQ2([x0, x1]), FQ2([y0, y1]), FQ2.one())
    if not is_on_curve(point, b2):
        raise ProofGenerationFailure(f"{what} is not on the curve")
    return point[0], point[1]


def proof_from_snarkjs(obj: Any) -> Proof:
    """Parse a snarkjs Groth16 `proof.json` document."""
    if not isinstance(obj, dict):
        raise ProofGenerationFailure("proof.json must be an object")
    if obj.get("protocol", "groth16") != "groth16":
        raise ProofGenerationFailure(f"unexpected proof protocol {obj.get('protocol')!r}")
    missing = [k for k in ("pi_a", "pi_b", "pi_c") if k not in obj]
    if missing:
        raise ProofGenerationFailure(f"proof.json is missing {', '.join(missing)}")
    return Proof(a=_g1(obj["pi_a"], "pi_a"), b=_g2(obj["pi_b"], "pi_b"), c=_g1(obj["pi_c"], "pi_c"))


def signals_from_snarkjs(obj: Any) -> List[int]:
    """Parse a snarkjs `public.json` document (decimal strings)."""
    if not isinstance(obj, list):
        raise ProofGenerationFailure("public.json must be a list")
    return [_decimal(v, "public signal", curve_order) for v in obj]


class SubprocessGroth16Prover(Groth16Prover):
    """Prove with an external snarkjs-compatible command against one `.zkey`."""

    def __init__(
        self,
        *,
        cmd: Sequence[str],
        zkey_path: Path,
        timeout_s: float,
        max_stderr_bytes: int = 8_000,
    ) -> None:
        if not cmd:
            raise ValueError("cmd must be non-empty")
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self._cmd = list(cmd)
        self._zkey_path = Path(zkey_path)
        self._timeout_s = float(timeout_s)
        self._max_stderr = int(max_stderr_bytes)

    def prove(self, proving_key: ProvingKey, witness: Sequence[int]) -> Tuple[Proof, List[int]]:
        if len(witness) != proving_key.n_vars:
            raise ProofGenerationFailure(
                f"witness has {len(witness)} values, key expects {proving_key.n_vars}"
            )
        wtns = encode_wtns(witness)
        with private_workdir("shadeswap-prove-") as tmp:
            witness_path = tmp / "witness.wtns"
            proof_path = tmp / "proof.json"
            public_path = tmp / "public.json"
            witness_path.write_bytes(wtns)
            values = {
                "zkey": str(self._zkey_path),
                "witness": str(witness_path),
                "proof": str(proof_path),
                "public": str(public_path),
            }
            cmd = expand_command(self._cmd, values, "prover")

            started = time.monotonic()
            run_tool(cmd, tool="prover", timeout_s=self._timeout_s, max_stderr_bytes=self._max_stderr)
            try:
                proof_doc = json.loads(proof_path.read_bytes())
                public_doc = json.loads(public_path.read_bytes())
            except FileNotFoundError as exc:
                raise ProofGenerationFailure("prover produced no proof file") from exc
            except ValueError as exc:
                raise ProofGenerationFailure(f"malformed prover output: {exc}") from exc

        proof = proof_from_snarkjs(proof_doc)
        signals = signals_from_snarkjs(public_doc)
        if signals != list(witness[1 : proving_key.n_public + 1]):
            raise ProofGenerationFailure("prover public signals disagree with the witness")
        logger.debug("external prover finished in %.3fs", time.monotonic() - started)
        return proof, signals
