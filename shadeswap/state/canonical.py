"""
Deterministic encodings for witness-generator input and artifact fingerprints.
"""

from __future__ import annotations

import hashlib
import json
from typing import Mapping


def canonical_json_bytes(fields: Mapping[str, str]) -> bytes:
    """Flat string mapping as compact JSON with sorted keys."""
    for key, value in fields.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise TypeError("canonical JSON holds str keys and str values only")
    return json.dumps(dict(fields), sort_keys=True, separators=(",", ":")).encode("ascii")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()
