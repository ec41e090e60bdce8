"""
Witness calculation (imperative shell).

A witness calculator turns named circuit inputs into the full satisfying
assignment `[1, outputs..., public inputs..., private inputs..., internals...]`.
Production witnesses come from an external circom witness generator (the
compiled native binary, or `snarkjs wtns calculate` over the circuit wasm):

- inputs are written as canonical JSON (decimal strings) to a private temp dir,
- the command template is expanded with `{wasm}`, `{input}` and `{output}`,
- the resulting `.wtns` file is parsed and returned.

Any spawn/timeout/exit/parse error fails closed with `ProofGenerationFailure`.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import List, Mapping, Sequence

from ..core.errors import ArtifactError, ProofGenerationFailure
from ..state.canonical import canonical_json_bytes
from .circom_files import parse_wtns
from .external import expand_command, private_workdir, run_tool


logger = logging.getLogger(__name__)


class WitnessCalculator:
    """Interface for computing a full witness from named inputs."""

    def calculate(self, inputs: Mapping[str, int]) -> List[int]:
        raise NotImplementedError


def encode_inputs(inputs: Mapping[str, int]) -> bytes:
    """Circuit inputs as canonical JSON with decimal-string values."""
    body = {}
    for name, value in inputs.items():
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ProofGenerationFailure(f"circuit input {name!r} must be a non-negative int")
        body[name] = str(value)
    return canonical_json_bytes(body)


class SubprocessWitnessCalculator(WitnessCalculator):
    """Run an external witness generator for one compiled circuit."""

    def __init__(
        self,
        *,
        cmd: Sequence[str],
        wasm_path: Path,
        timeout_s: float,
        max_stderr_bytes: int = 8_000,
    ) -> None:
        if not cmd:
            raise ValueError("cmd must be non-empty")
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        if max_stderr_bytes <= 0:
            raise ValueError("max_stderr_bytes must be positive")
        self._cmd = list(cmd)
        self._wasm_path = Path(wasm_path)
        self._timeout_s = float(timeout_s)
        self._max_stderr = int(max_stderr_bytes)

    def _expand(self, input_path: Path, output_path: Path) -> List[str]:
        values = {
            "wasm": str(self._wasm_path),
            "input": str(input_path),
            "output": str(output_path),
        }
        return expand_command(self._cmd, values, "witness")

    def calculate(self, inputs: Mapping[str, int]) -> List[int]:
        payload = encode_inputs(inputs)
        with private_workdir("shadeswap-wtns-") as tmp:
            input_path = tmp / "input.json"
            output_path = tmp / "witness.wtns"
            input_path.write_bytes(payload)
            cmd = self._expand(input_path, output_path)

            started = time.monotonic()
            run_tool(cmd, tool="witness generator", timeout_s=self._timeout_s, max_stderr_bytes=self._max_stderr)

            try:
                witness = parse_wtns(output_path.read_bytes())
            except FileNotFoundError as exc:
                raise ProofGenerationFailure("witness generator produced no witness file") from exc
            except ArtifactError as exc:
                raise ProofGenerationFailure(f"malformed witness file: {exc}") from exc

        logger.info("witness computed: %d values in %.3fs", len(witness), time.monotonic() - started)
        return witness
