"""
Pending order snapshot.

An order is created by a swap and removed by exactly one of settle, cancel or
slash. The trader's minimum output is never stored; only its commitment is.
"""

from __future__ import annotations

from dataclasses import dataclass

from .amounts import ZERO_PUBKEY, Amount, PubKey, Slot, require_pubkey, require_u64


COMMITMENT_LEN = 32


@dataclass(frozen=True)
class Order:
    trader: PubKey
    actual_in: Amount
    exchange_in: Amount
    actual_out: Amount
    from_to_lock: Amount
    deadline: Slot
    commitment: bytes
    is_x_to_y: bool
    d_in: Amount = 0
    d_out: Amount = 0
    protocol_fee: Amount = 0
    wsol_deposit: Amount = 0
    token_mint_x: PubKey = ZERO_PUBKEY
    token_mint_y: PubKey = ZERO_PUBKEY
    bump: int = 0

    def __post_init__(self) -> None:
        require_pubkey("trader", self.trader)
        require_pubkey("token_mint_x", self.token_mint_x)
        require_pubkey("token_mint_y", self.token_mint_y)
        for name in (
            "actual_in",
            "exchange_in",
            "actual_out",
            "from_to_lock",
            "deadline",
            "d_in",
            "d_out",
            "protocol_fee",
            "wsol_deposit",
        ):
            require_u64(name, getattr(self, name))
        if not isinstance(self.commitment, (bytes, bytearray)):
            raise TypeError("commitment must be bytes")
        if len(self.commitment) != COMMITMENT_LEN:
            raise ValueError(f"commitment must be {COMMITMENT_LEN} bytes")
        if not isinstance(self.is_x_to_y, bool):
            raise TypeError("is_x_to_y must be a bool")
        if not isinstance(self.bump, int) or isinstance(self.bump, bool) or not (0 <= self.bump <= 0xFF):
            raise ValueError("bump must be a u8")

    def is_expired(self, current_slot: Slot) -> bool:
        """An order expires once the current slot is strictly past its deadline."""
        return self.deadline < current_slot

    def __repr__(self) -> str:
        direction = "x->y" if self.is_x_to_y else "y->x"
        return (
            f"Order({direction}, in={self.actual_in}, out={self.actual_out}, "
            f"lock={self.from_to_lock}, deadline={self.deadline})"
        )
