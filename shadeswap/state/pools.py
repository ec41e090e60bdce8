"""
Pool state snapshot.

A pool holds two reserves. Part of each reserve is not tradable:

    total     = reserve - protocol_fee - user_locked
    available = total - locked

`locked` is held against pending orders; `user_locked` is already owed to
traders whose orders settled but who have not withdrawn yet.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple

from .amounts import ZERO_PUBKEY, Amount, PubKey, require_pubkey, require_u64


@dataclass(frozen=True)
class PoolState:
    """Immutable pool snapshot; every amount is a u64."""

    reserve_x: Amount
    reserve_y: Amount
    protocol_fee_x: Amount = 0
    protocol_fee_y: Amount = 0
    locked_x: Amount = 0
    locked_y: Amount = 0
    user_locked_x: Amount = 0
    user_locked_y: Amount = 0
    lp_supply: Amount = 0
    token_mint_x: PubKey = ZERO_PUBKEY
    token_mint_y: PubKey = ZERO_PUBKEY

    def __post_init__(self) -> None:
        for name in (
            "reserve_x",
            "reserve_y",
            "protocol_fee_x",
            "protocol_fee_y",
            "locked_x",
            "locked_y",
            "user_locked_x",
            "user_locked_y",
            "lp_supply",
        ):
            require_u64(name, getattr(self, name))
        require_pubkey("token_mint_x", self.token_mint_x)
        require_pubkey("token_mint_y", self.token_mint_y)

    @property
    def total_x(self) -> int:
        return self.reserve_x - self.protocol_fee_x - self.user_locked_x

    @property
    def total_y(self) -> int:
        return self.reserve_y - self.protocol_fee_y - self.user_locked_y

    @property
    def available_x(self) -> int:
        return self.total_x - self.locked_x

    @property
    def available_y(self) -> int:
        return self.total_y - self.locked_y

    def source_destination(self, is_x_to_y: bool) -> Tuple[int, int, int, int]:
        """Return (available_src, available_dst, total_src, total_dst) for a direction."""
        if is_x_to_y:
            return self.available_x, self.available_y, self.total_x, self.total_y
        return self.available_y, self.available_x, self.total_y, self.total_x

    def with_lock(self, *, is_x_to_y: bool, delta: int) -> "PoolState":
        """Return a copy with `delta` added to the source side's locked bucket."""
        if is_x_to_y:
            return replace(self, locked_x=self.locked_x + delta)
        return replace(self, locked_y=self.locked_y + delta)

    def __repr__(self) -> str:
        return (
            f"PoolState(reserves=({self.reserve_x}, {self.reserve_y}), "
            f"available=({self.available_x}, {self.available_y}), "
            f"locked=({self.locked_x}, {self.locked_y}))"
        )


def reserve_violations(pool: PoolState) -> list[str]:
    """List every side whose total or available reserve is negative."""
    out: list[str] = []
    if pool.total_x < 0:
        out.append("total_x")
    if pool.total_y < 0:
        out.append("total_y")
    if pool.available_x < 0:
        out.append("available_x")
    if pool.available_y < 0:
        out.append("available_y")
    return out
