"""
Binary account layouts (version 1).

Accounts are an 8-byte account discriminator followed by the fields below,
packed little-endian with no alignment. Every layout ends with a block of
reserved u64 words; new optional fields are carved out of that block so the
total size and existing offsets never change.

    AmmConfig  6 x u64 | bump u8 | halted bool | reserved 16 x u64
    Pool       6 x pubkey | 7 x u64 | bump u8 | reserved 4 x u64
    Order      3 x pubkey | 9 x u64 | c_min[32] | is_x_to_y bool | bump u8 | reserved 4 x u64
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

from .amounts import PubKey
from .config import AmmConfig
from .orders import Order
from .pools import PoolState


ACCOUNT_DISCRIMINATOR_LEN = 8
LAYOUT_VERSION = 1

# field kind -> (struct format, size)
_KINDS: Dict[str, Tuple[str, int]] = {
    "pubkey": ("32s", 32),
    "bytes32": ("32s", 32),
    "u64": ("Q", 8),
    "u8": ("B", 1),
    "bool": ("?", 1),
}


@dataclass(frozen=True)
class Layout:
    name: str
    fields: Tuple[Tuple[str, str], ...]
    reserved_words: int

    @property
    def _format(self) -> str:
        return "<" + "".join(_KINDS[kind][0] for _, kind in self.fields) + f"{self.reserved_words}Q"

    @property
    def size(self) -> int:
        """Body size, excluding the account discriminator."""
        return struct.calcsize(self._format)

    def decode(self, data: bytes) -> Dict[str, Any]:
        body = data[ACCOUNT_DISCRIMINATOR_LEN:]
        if len(body) < self.size:
            raise ValueError(f"{self.name} account too short: {len(body)} < {self.size}")
        values = struct.unpack_from(self._format, body)
        out = {name: values[i] for i, (name, _) in enumerate(self.fields)}
        out["reserved"] = tuple(values[len(self.fields) :])
        return out

    def encode(self, values: Dict[str, Any], discriminator: bytes = bytes(ACCOUNT_DISCRIMINATOR_LEN)) -> bytes:
        if len(discriminator) != ACCOUNT_DISCRIMINATOR_LEN:
            raise ValueError("discriminator must be 8 bytes")
        reserved: Sequence[int] = values.get("reserved", (0,) * self.reserved_words)
        if len(reserved) != self.reserved_words:
            raise ValueError(f"{self.name} expects {self.reserved_words} reserved words")
        ordered = [values[name] for name, _ in self.fields]
        return bytes(discriminator) + struct.pack(self._format, *ordered, *reserved)


AMM_CONFIG_LAYOUT = Layout(
    name="AmmConfig",
    fields=(
        ("trade_fee_rate", "u64"),
        ("create_pool_fee", "u64"),
        ("protocol_fee_rate", "u64"),
        ("wsol_trade_deposit", "u64"),
        ("deadline_slot_duration", "u64"),
        ("ratio_change_tolerance_rate", "u64"),
        ("bump", "u8"),
        ("halted", "bool"),
    ),
    reserved_words=16,
)

POOL_LAYOUT = Layout(
    name="Pool",
    fields=(
        ("creator", "pubkey"),
        ("amm_config", "pubkey"),
        ("token_mint_x", "pubkey"),
        ("token_mint_y", "pubkey"),
        ("reserve_x", "pubkey"),
        ("reserve_y", "pubkey"),
        ("token_lp_supply", "u64"),
        ("protocol_fee_x", "u64"),
        ("protocol_fee_y", "u64"),
        ("locked_x", "u64"),
        ("locked_y", "u64"),
        ("user_locked_x", "u64"),
        ("user_locked_y", "u64"),
        ("bump", "u8"),
    ),
    reserved_words=4,
)

ORDER_LAYOUT = Layout(
    name="Order",
    fields=(
        ("trader", "pubkey"),
        ("token_mint_x", "pubkey"),
        ("token_mint_y", "pubkey"),
        ("actual_in", "u64"),
        ("exchange_in", "u64"),
        ("actual_out", "u64"),
        ("from_to_lock", "u64"),
        ("d_in", "u64"),
        ("d_out", "u64"),
        ("deadline", "u64"),
        ("protocol_fee", "u64"),
        ("wsol_deposit", "u64"),
        ("c_min", "bytes32"),
        ("is_x_to_y", "bool"),
        ("bump", "u8"),
    ),
    reserved_words=4,
)


@dataclass(frozen=True)
class PoolAccount:
    """Pool account as stored; reserve balances live in the reserve token accounts."""

    creator: PubKey
    amm_config: PubKey
    token_mint_x: PubKey
    token_mint_y: PubKey
    reserve_x: PubKey
    reserve_y: PubKey
    token_lp_supply: int
    protocol_fee_x: int
    protocol_fee_y: int
    locked_x: int
    locked_y: int
    user_locked_x: int
    user_locked_y: int
    bump: int

    def to_state(self, *, reserve_x_balance: int, reserve_y_balance: int) -> PoolState:
        return PoolState(
            reserve_x=reserve_x_balance,
            reserve_y=reserve_y_balance,
            protocol_fee_x=self.protocol_fee_x,
            protocol_fee_y=self.protocol_fee_y,
            locked_x=self.locked_x,
            locked_y=self.locked_y,
            user_locked_x=self.user_locked_x,
            user_locked_y=self.user_locked_y,
            lp_supply=self.token_lp_supply,
            token_mint_x=self.token_mint_x,
            token_mint_y=self.token_mint_y,
        )


def decode_amm_config(data: bytes) -> AmmConfig:
    values = AMM_CONFIG_LAYOUT.decode(data)
    values.pop("reserved")
    return AmmConfig(**values)


def encode_amm_config(config: AmmConfig) -> bytes:
    return AMM_CONFIG_LAYOUT.encode({name: getattr(config, name) for name, _ in AMM_CONFIG_LAYOUT.fields})


def decode_pool(data: bytes) -> PoolAccount:
    values = POOL_LAYOUT.decode(data)
    values.pop("reserved")
    return PoolAccount(**values)


def encode_pool(pool: PoolAccount) -> bytes:
    return POOL_LAYOUT.encode({name: getattr(pool, name) for name, _ in POOL_LAYOUT.fields})


def decode_order(data: bytes) -> Order:
    values = ORDER_LAYOUT.decode(data)
    values.pop("reserved")
    values["commitment"] = values.pop("c_min")
    return Order(**values)


def encode_order(order: Order) -> bytes:
    values = {name: getattr(order, name) for name, _ in ORDER_LAYOUT.fields if name != "c_min"}
    values["c_min"] = bytes(order.commitment)
    return ORDER_LAYOUT.encode(values)
