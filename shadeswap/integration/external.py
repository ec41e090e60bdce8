"""
Running external zk tooling (witness generators, snarkjs) fail-closed.

Commands are argv templates; `{name}` placeholders are filled from a fixed
mapping and the process runs without a shell, stdin closed, in its own
session. Every spawn, timeout or exit failure raises
`ProofGenerationFailure`.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Mapping, Sequence

from ..core.errors import ArtifactError, ProofGenerationFailure


logger = logging.getLogger(__name__)


def expand_command(template: Sequence[str], values: Mapping[str, str], tool: str) -> List[str]:
    try:
        return [part.format(**values) for part in template]
    except (KeyError, IndexError, ValueError) as exc:
        raise ArtifactError(f"invalid {tool} command template: {exc}") from exc


@contextmanager
def private_workdir(prefix: str) -> Iterator[Path]:
    """Temporary directory readable by the current user only."""
    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        os.chmod(tmp, 0o700)
        yield Path(tmp)


def run_tool(cmd: Sequence[str], *, tool: str, timeout_s: float, max_stderr_bytes: int) -> None:
    try:
        proc = subprocess.run(
            list(cmd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout_s,
            start_new_session=True,
            close_fds=True,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        logger.warning("%s timed out after %.1fs", tool, timeout_s)
        raise ProofGenerationFailure(f"{tool} timed out") from exc
    except OSError as exc:
        logger.warning("%s could not be started: %s", tool, exc)
        raise ProofGenerationFailure(f"{tool} error: {exc}") from exc

    if proc.returncode != 0:
        stderr = proc.stderr[:max_stderr_bytes].decode("utf-8", errors="replace").strip()
        logger.warning("%s exited with %d", tool, proc.returncode)
        raise ProofGenerationFailure(f"{tool} exited with {proc.returncode}: {stderr or 'no output'}")
