"""
Core pricing, commitment and order lifecycle
"""

from .fees import TransferFee, TransferFeeConfig, protocol_fee, trade_fee, transfer_fee
from .cpmm import (
    quote,
    quote_pool,
    quote_with_transfer_fees,
    rebalance_pool_ratio,
    swap,
)
from .commitment import commit, commitment_value, generate_salt
from .poseidon import poseidon_hash
from .lifecycle import (
    FinalizePath,
    FinalizeRequest,
    StepResult,
    SwapSubmission,
    expire,
    release_lock,
    select_finalize_path,
    step,
    step_or_raise,
    submit_swap,
)

__all__ = [
    "TransferFee",
    "TransferFeeConfig",
    "protocol_fee",
    "trade_fee",
    "transfer_fee",
    "quote",
    "quote_pool",
    "quote_with_transfer_fees",
    "rebalance_pool_ratio",
    "swap",
    "commit",
    "commitment_value",
    "generate_salt",
    "poseidon_hash",
    "FinalizePath",
    "FinalizeRequest",
    "StepResult",
    "SwapSubmission",
    "expire",
    "release_lock",
    "select_finalize_path",
    "step",
    "step_or_raise",
    "submit_swap",
]
