"""
State snapshots and account layouts
"""

from .config import AmmConfig, RATE_DENOM
from .orders import Order
from .pools import PoolState, reserve_violations
from .layouts import (
    PoolAccount,
    decode_amm_config,
    decode_order,
    decode_pool,
    encode_amm_config,
    encode_order,
    encode_pool,
)

__all__ = [
    "AmmConfig",
    "RATE_DENOM",
    "Order",
    "PoolState",
    "reserve_violations",
    "PoolAccount",
    "decode_amm_config",
    "decode_order",
    "decode_pool",
    "encode_amm_config",
    "encode_order",
    "encode_pool",
]
