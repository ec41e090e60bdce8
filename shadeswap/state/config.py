"""
AMM-wide configuration snapshot.

All rates are parts-per-million of ``RATE_DENOM``. The protocol fee rate is a
fraction of the trade fee, not of the traded amount.
"""

from __future__ import annotations

from dataclasses import dataclass

from .amounts import Rate, require_u64


RATE_DENOM = 1_000_000


@dataclass(frozen=True)
class AmmConfig:
    trade_fee_rate: Rate
    protocol_fee_rate: Rate
    ratio_change_tolerance_rate: Rate
    deadline_slot_duration: int
    create_pool_fee: int = 0
    wsol_trade_deposit: int = 0
    bump: int = 0
    halted: bool = False

    def __post_init__(self) -> None:
        for name, v in (
            ("trade_fee_rate", self.trade_fee_rate),
            ("protocol_fee_rate", self.protocol_fee_rate),
            ("ratio_change_tolerance_rate", self.ratio_change_tolerance_rate),
        ):
            require_u64(name, v)
            if v > RATE_DENOM:
                raise ValueError(f"{name} must be in [0, {RATE_DENOM}]: {v}")
        require_u64("deadline_slot_duration", self.deadline_slot_duration)
        require_u64("create_pool_fee", self.create_pool_fee)
        require_u64("wsol_trade_deposit", self.wsol_trade_deposit)
        if not isinstance(self.bump, int) or isinstance(self.bump, bool) or not (0 <= self.bump <= 0xFF):
            raise ValueError("bump must be a u8")
        if not isinstance(self.halted, bool):
            raise TypeError("halted must be a bool")

    @property
    def is_active(self) -> bool:
        return not self.halted
