"""
Constant Product Market Maker (CPMM) pricing with order-window liquidity locks.

Algorithm Design:
- Exact-in only: fees are charged on the input side (ceil), the remainder
  is priced against the *available* reserves with `x * y = k`.
- Each pending order reserves `from_to_lock` source units so that the pool's
  source:destination ratio, with the order's output already removed, stays as
  close as possible to the ratio of the untouched totals.
- The rebalance search works on an f64 estimate and then tests the integer
  neighbours of that estimate. Both the estimate and the comparisons use
  binary64 floats so results match the on-chain program bit for bit.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..state.amounts import U64_MAX, require_int
from ..state.config import AmmConfig
from ..state.pools import PoolState, reserve_violations
from .errors import (
    InputTooSmall,
    InsufficientReserve,
    MathOverflow,
    OutputZero,
    ReserveInvariantError,
    TradeTooLarge,
)
from .fees import (
    MAX_PERCENTAGE,
    TransferFeeConfig,
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    protocol_fee,
    trade_fee,
    transfer_fee,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwapResult:
    from_amount: int  # input after the trade fee
    to_amount: int
    trade_fee: int
    protocol_fee: int


@dataclass(frozen=True)
class SwapResultWithLock:
    from_amount: int
    to_amount: int
    trade_fee: int
    protocol_fee: int
    from_to_lock: int


@dataclass(frozen=True)
class RebalanceResult:
    from_to_lock: int
    is_rate_tolerance_exceeded: bool


def _to_u64(name: str, value: int) -> int:
    if not (0 <= value <= U64_MAX):
        raise MathOverflow(f"{name} does not fit in u64: {value}")
    return value


def swap_base_input_without_fees(source_amount: int, swap_source_amount: int, swap_destination_amount: int) -> int:
    """
    `(x + dx) * (y - dy) = x * y`  =>  `dy = dx * y / (x + dx)`, floor rounded.
    """
    numerator = checked_mul(source_amount, swap_destination_amount)
    denominator = checked_add(swap_source_amount, source_amount)
    return checked_div(numerator, denominator)


def swap(
    source_amount: int,
    pool_source_amount: int,
    pool_destination_amount: int,
    trade_fee_rate: int,
    protocol_fee_rate: int,
) -> SwapResult:
    """
    Price an exact-in swap against the given pool amounts.

    Args:
        source_amount: Gross input (after any token transfer fee)
        pool_source_amount: Available source reserve
        pool_destination_amount: Available destination reserve
        trade_fee_rate: Trade fee in parts-per-million
        protocol_fee_rate: Protocol share of the trade fee in parts-per-million

    Returns:
        SwapResult with the post-fee input and the destination amount

    Raises:
        MathOverflow: On any checked-arithmetic failure
    """
    for name, v in (
        ("source_amount", source_amount),
        ("pool_source_amount", pool_source_amount),
        ("pool_destination_amount", pool_destination_amount),
    ):
        require_int(name, v)
        if v < 0:
            raise ValueError(f"{name} must be non-negative")

    fee = trade_fee(source_amount, trade_fee_rate)
    proto = protocol_fee(fee, protocol_fee_rate)
    post_fee_in = checked_sub(source_amount, fee)
    to_amount = swap_base_input_without_fees(post_fee_in, pool_source_amount, pool_destination_amount)

    return SwapResult(
        from_amount=_to_u64("from_amount", post_fee_in),
        to_amount=_to_u64("to_amount", to_amount),
        trade_fee=_to_u64("trade_fee", fee),
        protocol_fee=_to_u64("protocol_fee", proto),
    )


def rebalance_pool_ratio(
    to_amount_swapped: int,
    current_source_amount: int,
    current_destination_amount: int,
    original_source_amount: int,
    original_destination_amount: int,
    ratio_change_tolerance_rate: int,
) -> RebalanceResult:
    """
    Choose how much of the source reserve to lock against a pending order.

    With `remaining = current_destination - to_amount_swapped`, pick the
    integer `from_to_lock` in `[0, current_source]` that makes
    `(current_source - from_to_lock) / remaining` closest to
    `original_source / original_destination`. Candidates are the integers
    between `floor(exact - 1)` and `floor(exact + 1)` where `exact` is the
    real-valued solution; the first strictly better candidate wins and
    candidates giving a zero ratio are skipped.

    The tolerance is exceeded when the remaining relative drift, in percent,
    is larger than `ratio_change_tolerance_rate / 1e6 * 100`.

    Degenerate inputs (nothing left in the destination, an empty side)
    report the tolerance as exceeded instead of raising.
    """
    if (
        to_amount_swapped >= current_destination_amount
        or current_source_amount == 0
        or current_destination_amount == 0
        or original_source_amount == 0
        or original_destination_amount == 0
    ):
        return RebalanceResult(from_to_lock=0, is_rate_tolerance_exceeded=True)

    remaining_destination = current_destination_amount - to_amount_swapped
    original_ratio = float(original_source_amount) / float(original_destination_amount)

    exact_from_to_lock = float(current_source_amount) - float(remaining_destination) * original_ratio

    best_from_to_lock = 0
    best_ratio_diff = math.inf

    start_val = int(max(exact_from_to_lock - 1.0, 0.0))
    end_val = int(min(exact_from_to_lock + 1.0, float(current_source_amount)))

    for candidate in range(start_val, end_val + 1):
        if candidate > current_source_amount:
            continue
        new_ratio = float(current_source_amount - candidate) / float(remaining_destination)
        ratio_diff = abs(new_ratio - original_ratio)
        if ratio_diff < best_ratio_diff and new_ratio != 0.0:
            best_ratio_diff = ratio_diff
            best_from_to_lock = candidate

    new_ratio = float(current_source_amount - best_from_to_lock) / float(remaining_destination)
    percentage_change = abs(new_ratio - original_ratio) / original_ratio * 100.0
    tolerance_percentage = (float(ratio_change_tolerance_rate) / float(MAX_PERCENTAGE)) * 100.0

    exceeded = percentage_change > tolerance_percentage
    logger.debug(
        "rebalance: swapped=%d lock=%d drift=%.6f%% tolerance=%.6f%% exceeded=%s",
        to_amount_swapped,
        best_from_to_lock,
        percentage_change,
        tolerance_percentage,
        exceeded,
    )
    return RebalanceResult(from_to_lock=best_from_to_lock, is_rate_tolerance_exceeded=exceeded)


def quote(
    exchange_in: int,
    is_x_to_y: bool,
    config: AmmConfig,
    *,
    protocol_fee_x: int,
    protocol_fee_y: int,
    user_locked_x: int,
    user_locked_y: int,
    locked_x: int,
    locked_y: int,
    reserve_x: int,
    reserve_y: int,
) -> SwapResultWithLock:
    """
    Price a swap and compute the liquidity it must lock until finalize.

    Raises:
        ReserveInvariantError: Snapshot has negative total/available reserves
        TradeTooLarge: Locking would drift the pool ratio past tolerance
        InsufficientReserve: The lock would consume the whole available source
        MathOverflow: On any checked-arithmetic failure
    """
    pool = PoolState(
        reserve_x=reserve_x,
        reserve_y=reserve_y,
        protocol_fee_x=protocol_fee_x,
        protocol_fee_y=protocol_fee_y,
        locked_x=locked_x,
        locked_y=locked_y,
        user_locked_x=user_locked_x,
        user_locked_y=user_locked_y,
    )
    return quote_pool(pool, config, exchange_in=exchange_in, is_x_to_y=is_x_to_y)


def quote_pool(pool: PoolState, config: AmmConfig, *, exchange_in: int, is_x_to_y: bool) -> SwapResultWithLock:
    """Same as `quote`, reading the reserve buckets from a `PoolState`."""
    violations = reserve_violations(pool)
    if violations:
        raise ReserveInvariantError(violations)

    available_src, available_dst, total_src, total_dst = pool.source_destination(is_x_to_y)

    result = swap(
        exchange_in,
        available_src,
        available_dst,
        config.trade_fee_rate,
        config.protocol_fee_rate,
    )
    rebalance = rebalance_pool_ratio(
        result.to_amount,
        available_src,
        available_dst,
        total_src,
        total_dst,
        config.ratio_change_tolerance_rate,
    )
    if rebalance.is_rate_tolerance_exceeded:
        raise TradeTooLarge(f"trade of {exchange_in} drifts the pool ratio past tolerance")
    if rebalance.from_to_lock >= available_src:
        raise InsufficientReserve(
            f"lock of {rebalance.from_to_lock} leaves no available source reserve ({available_src})"
        )

    logger.debug(
        "quote: in=%d out=%d fee=%d protocol_fee=%d lock=%d x_to_y=%s",
        exchange_in,
        result.to_amount,
        result.trade_fee,
        result.protocol_fee,
        rebalance.from_to_lock,
        is_x_to_y,
    )
    return SwapResultWithLock(
        from_amount=result.from_amount,
        to_amount=result.to_amount,
        trade_fee=result.trade_fee,
        protocol_fee=result.protocol_fee,
        from_to_lock=rebalance.from_to_lock,
    )


@dataclass(frozen=True)
class TransferAdjustedQuote:
    amount_in: int  # what the trader sends
    exchange_in: int  # what the pool receives after the input transfer fee
    swap: SwapResultWithLock
    output_transfer_fee: int
    actual_out: int  # what the trader receives after the output transfer fee


def quote_with_transfer_fees(
    pool: PoolState,
    config: AmmConfig,
    *,
    amount_in: int,
    is_x_to_y: bool,
    input_fee_config: Optional[TransferFeeConfig] = None,
    output_fee_config: Optional[TransferFeeConfig] = None,
    epoch: int = 0,
) -> TransferAdjustedQuote:
    """
    Full exact-in quote including the token program's transfer fees.

    The input transfer fee is taken before pricing (saturating at zero), the
    output transfer fee after it.

    Raises:
        InputTooSmall: Nothing reaches the pool after the input transfer fee
        OutputZero: Nothing reaches the trader after the output transfer fee
        (plus everything `quote_pool` raises)
    """
    require_int("amount_in", amount_in)
    input_fee = transfer_fee(input_fee_config, amount_in, epoch)
    exchange_in = max(amount_in - input_fee, 0)
    if exchange_in == 0:
        raise InputTooSmall(f"input {amount_in} is consumed by a transfer fee of {input_fee}")

    result = quote_pool(pool, config, exchange_in=exchange_in, is_x_to_y=is_x_to_y)

    output_fee = transfer_fee(output_fee_config, result.to_amount, epoch)
    actual_out = checked_sub(result.to_amount, output_fee)
    if actual_out == 0:
        raise OutputZero(f"output {result.to_amount} is zero after a transfer fee of {output_fee}")

    return TransferAdjustedQuote(
        amount_in=amount_in,
        exchange_in=exchange_in,
        swap=result,
        output_transfer_fee=output_fee,
        actual_out=actual_out,
    )
