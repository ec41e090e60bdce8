"""
Fee kernels (integer-only, checked).

Three fees apply to a trade:
- the trade fee, charged on the gross input with ceil rounding,
- the protocol fee, a floor-rounded share of the trade fee,
- the token transfer fee, charged by the token program itself whenever a
  fee-bearing mint moves (epoch-scheduled, basis points, capped).

Every intermediate value is checked against the unsigned 128-bit range; any
result outside it raises `MathOverflow`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..state.amounts import U128_MAX, require_int, require_u64
from ..state.config import RATE_DENOM
from .errors import MathOverflow


MAX_PERCENTAGE = RATE_DENOM
BPS_DENOM = 10_000


def checked_add(a: int, b: int) -> int:
    out = a + b
    if not (0 <= out <= U128_MAX):
        raise MathOverflow(f"add out of range: {a} + {b}")
    return out


def checked_sub(a: int, b: int) -> int:
    out = a - b
    if not (0 <= out <= U128_MAX):
        raise MathOverflow(f"sub out of range: {a} - {b}")
    return out


def checked_mul(a: int, b: int) -> int:
    out = a * b
    if not (0 <= out <= U128_MAX):
        raise MathOverflow(f"mul out of range: {a} * {b}")
    return out


def checked_div(a: int, b: int) -> int:
    if b == 0:
        raise MathOverflow("division by zero")
    out = a // b
    if not (0 <= out <= U128_MAX):
        raise MathOverflow(f"div out of range: {a} / {b}")
    return out


def checked_ceil_div(a: int, b: int) -> int:
    if b == 0:
        raise MathOverflow("division by zero")
    if a < 0 or b < 0:
        raise MathOverflow("ceil_div operands must be non-negative")
    return checked_div(checked_add(a, b - 1), b)


def trade_fee(amount: int, trade_fee_rate: int) -> int:
    """`ceil(amount * trade_fee_rate / 1_000_000)`."""
    require_int("amount", amount)
    require_int("trade_fee_rate", trade_fee_rate)
    return checked_ceil_div(checked_mul(amount, trade_fee_rate), MAX_PERCENTAGE)


def protocol_fee(trade_fee_amount: int, protocol_fee_rate: int) -> int:
    """`floor(trade_fee_amount * protocol_fee_rate / 1_000_000)`."""
    require_int("trade_fee_amount", trade_fee_amount)
    require_int("protocol_fee_rate", protocol_fee_rate)
    return checked_div(checked_mul(trade_fee_amount, protocol_fee_rate), MAX_PERCENTAGE)


@dataclass(frozen=True)
class TransferFee:
    """One scheduled transfer fee, effective from `epoch` onwards."""

    epoch: int
    maximum_fee: int
    transfer_fee_basis_points: int

    def __post_init__(self) -> None:
        require_u64("epoch", self.epoch)
        require_u64("maximum_fee", self.maximum_fee)
        require_int("transfer_fee_basis_points", self.transfer_fee_basis_points)
        if not (0 <= self.transfer_fee_basis_points <= BPS_DENOM):
            raise ValueError(f"transfer_fee_basis_points must be in [0, {BPS_DENOM}]")

    def calculate_fee(self, amount: int) -> int:
        require_u64("amount", amount)
        bps = self.transfer_fee_basis_points
        if bps == 0 or amount == 0:
            return 0
        raw = checked_ceil_div(checked_mul(amount, bps), BPS_DENOM)
        return min(raw, self.maximum_fee)


@dataclass(frozen=True)
class TransferFeeConfig:
    """The mint's fee schedule: an older fee and a newer one taking over at its epoch."""

    older_transfer_fee: TransferFee
    newer_transfer_fee: TransferFee

    def get_epoch_fee(self, epoch: int) -> TransferFee:
        if epoch >= self.newer_transfer_fee.epoch:
            return self.newer_transfer_fee
        return self.older_transfer_fee

    def calculate_epoch_fee(self, epoch: int, amount: int) -> int:
        return self.get_epoch_fee(epoch).calculate_fee(amount)


def transfer_fee(config: Optional[TransferFeeConfig], amount: int, epoch: int) -> int:
    """Fee withheld by the token program when `amount` moves; 0 for plain mints."""
    if config is None:
        return 0
    return config.calculate_epoch_fee(epoch, amount)
