"""
Proof pipeline, circuit artifacts and client-facing payloads
"""

from .artifacts import ProofArtifactConfig, make_artifact_store
from .prover import (
    PrivateInputs,
    PublicInputs,
    WireProof,
    convert_to_wire_format,
    generate_proof,
    prove_in_executor,
)
from .instructions import (
    decode_instruction,
    encode_cancel,
    encode_settle,
    encode_slash,
    encode_swap,
)
from .settings import ClientSettings, load_settings
from .amm import Amm, ConfidentialAmm, FinalizeOutcome, Quote, QuoteParams, make_amm

__all__ = [
    "ProofArtifactConfig",
    "make_artifact_store",
    "PrivateInputs",
    "PublicInputs",
    "WireProof",
    "convert_to_wire_format",
    "generate_proof",
    "prove_in_executor",
    "decode_instruction",
    "encode_cancel",
    "encode_settle",
    "encode_slash",
    "encode_swap",
    "ClientSettings",
    "load_settings",
    "Amm",
    "ConfidentialAmm",
    "FinalizeOutcome",
    "Quote",
    "QuoteParams",
    "make_amm",
]
