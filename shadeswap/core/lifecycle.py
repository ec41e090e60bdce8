"""Order lifecycle: swap submission and the three finalize paths.

    NoOrder --swap--> PendingOrder --settle|cancel|slash--> (terminal)

Finalize precedence is fixed:

1. ``current_slot > deadline``   => SLASH (no proof, releases the lock)
2. ``threshold <= output``       => SETTLE (settle proof)
3. otherwise                     => CANCEL (cancel proof)

``step(order, pool, request)`` validates a finalize request and applies it to
the pool snapshot without raising; ``step_or_raise`` maps rejections to the
typed errors in ``errors.py``. Both run before any proving work starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import Callable, Optional, Tuple

from ..state.amounts import U64_MAX, PubKey, Slot, require_u64
from ..state.config import AmmConfig
from ..state.orders import Order
from ..state.pools import PoolState, reserve_violations
from .commitment import commit
from .cpmm import TransferAdjustedQuote, quote_with_transfer_fees
from .errors import (
    AmmHalted,
    MathOverflow,
    OrderExpired,
    OrderNotExpired,
    ReserveInvariantError,
    WrongFinalizePath,
)
from .fees import TransferFeeConfig, checked_add


logger = logging.getLogger(__name__)


@unique
class FinalizePath(Enum):
    SETTLE = "settle"
    CANCEL = "cancel"
    SLASH = "slash"

    @property
    def needs_proof(self) -> bool:
        return self is not FinalizePath.SLASH


@unique
class Event(Enum):
    ORDER_SETTLED = "OrderSettled"
    ORDER_CANCELLED = "OrderCancelled"
    ORDER_SLASHED = "OrderSlashed"


@dataclass(frozen=True)
class FinalizeRequest:
    path: FinalizePath
    realized_output: int
    current_slot: Slot
    # Private; required for settle/cancel, ignored for slash.
    threshold: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.path, FinalizePath):
            raise TypeError("path must be a FinalizePath")
        require_u64("realized_output", self.realized_output)
        require_u64("current_slot", self.current_slot)
        if self.path.needs_proof:
            if self.threshold is None:
                raise ValueError(f"{self.path.value} requires the order threshold")
            require_u64("threshold", self.threshold)

    def __repr__(self) -> str:
        # Never render the threshold.
        return (
            f"FinalizeRequest(path={self.path.value}, realized_output={self.realized_output}, "
            f"current_slot={self.current_slot})"
        )


@dataclass(frozen=True)
class StepResult:
    accepted: bool
    rejection: Optional[str] = None
    pool: Optional[PoolState] = None
    event: Optional[Event] = None

    def accepted_state(self) -> Tuple[PoolState, Event]:
        """The post-finalize pool and event of an accepted step."""
        if not self.accepted or self.pool is None or self.event is None:
            raise ValueError(f"step was rejected: {self.rejection}")
        return self.pool, self.event


@dataclass(frozen=True)
class SwapSubmission:
    order: Order
    pool: PoolState
    commitment: bytes
    quote: TransferAdjustedQuote


def select_finalize_path(order: Order, threshold: int, realized_output: int, current_slot: Slot) -> FinalizePath:
    """The one valid finalize path for an order at `current_slot`."""
    if order.is_expired(current_slot):
        return FinalizePath.SLASH
    if threshold <= realized_output:
        return FinalizePath.SETTLE
    return FinalizePath.CANCEL


def release_lock(pool: PoolState, order: Order) -> PoolState:
    """Return the pool with the order's `from_to_lock` removed from its locked bucket."""
    locked = pool.locked_x if order.is_x_to_y else pool.locked_y
    if locked < order.from_to_lock:
        side = "locked_x" if order.is_x_to_y else "locked_y"
        raise ReserveInvariantError([side])
    return pool.with_lock(is_x_to_y=order.is_x_to_y, delta=-order.from_to_lock)


# -- Guards ------------------------------------------------------------------
# Each returns a rejection reason, or None when the path is allowed.


def guard_settle(order: Order, request: FinalizeRequest) -> Optional[str]:
    if order.is_expired(request.current_slot):
        return "order_expired"
    if request.threshold is None:
        return "missing_threshold"
    if request.threshold > request.realized_output:
        return "wrong_path:cancel"
    return None


def guard_cancel(order: Order, request: FinalizeRequest) -> Optional[str]:
    if order.is_expired(request.current_slot):
        return "order_expired"
    if request.threshold is None:
        return "missing_threshold"
    if request.threshold <= request.realized_output:
        return "wrong_path:settle"
    return None


def guard_slash(order: Order, request: FinalizeRequest) -> Optional[str]:
    if not order.is_expired(request.current_slot):
        return "order_not_expired"
    return None


GuardFn = Callable[[Order, FinalizeRequest], Optional[str]]

_DISPATCH: dict[FinalizePath, tuple[GuardFn, Event]] = {
    FinalizePath.SETTLE: (guard_settle, Event.ORDER_SETTLED),
    FinalizePath.CANCEL: (guard_cancel, Event.ORDER_CANCELLED),
    FinalizePath.SLASH: (guard_slash, Event.ORDER_SLASHED),
}


def step(order: Order, pool: PoolState, request: FinalizeRequest) -> StepResult:
    """Validate a finalize request and release the order's lock.

    Returns ``StepResult`` with ``accepted=True`` and the post-finalize pool,
    or ``accepted=False`` with a ``rejection`` reason string.
    """
    guard_fn, event = _DISPATCH[request.path]
    reason = guard_fn(order, request)
    if reason is not None:
        return StepResult(accepted=False, rejection=reason)

    try:
        new_pool = release_lock(pool, order)
    except ReserveInvariantError as exc:
        return StepResult(accepted=False, rejection=f"invariant:{','.join(exc.violations)}")

    violations = reserve_violations(new_pool)
    if violations:
        return StepResult(accepted=False, rejection=f"invariant:{','.join(violations)}")
    return StepResult(accepted=True, pool=new_pool, event=event)


def step_or_raise(order: Order, pool: PoolState, request: FinalizeRequest) -> StepResult:
    """Like ``step()`` but raises on rejection instead of returning a result.

    Raises:
        OrderExpired: Settle/cancel after the deadline.
        OrderNotExpired: Slash before the deadline.
        WrongFinalizePath: Threshold/output relation selects the other proof path.
        ReserveInvariantError: The pool snapshot cannot release the lock.
    """
    result = step(order, pool, request)
    if result.accepted:
        return result

    reason = result.rejection or ""
    if reason == "order_expired":
        raise OrderExpired(f"order deadline {order.deadline} passed at slot {request.current_slot}")
    if reason == "order_not_expired":
        raise OrderNotExpired(f"order deadline {order.deadline} not passed at slot {request.current_slot}")
    if reason.startswith("wrong_path:"):
        raise WrongFinalizePath(request.path.value, reason.removeprefix("wrong_path:"))
    if reason.startswith("invariant:"):
        raise ReserveInvariantError(reason.removeprefix("invariant:").split(","))
    if reason == "missing_threshold":
        raise ValueError(f"{request.path.value} requires the order threshold")
    raise AssertionError(f"unmapped rejection: {reason}")


def submit_swap(
    pool: PoolState,
    config: AmmConfig,
    *,
    trader: PubKey,
    amount_in: int,
    is_x_to_y: bool,
    threshold: int,
    salt: bytes,
    current_slot: Slot,
    epoch: int = 0,
    input_fee_config: Optional[TransferFeeConfig] = None,
    output_fee_config: Optional[TransferFeeConfig] = None,
) -> SwapSubmission:
    """
    Price a swap, commit to the trader's threshold and lock liquidity.

    Args:
        pool: Pool snapshot before the swap
        config: AMM config (rates, deadline duration, halt flag)
        trader: Order owner
        amount_in: Tokens sent by the trader (before transfer fees)
        is_x_to_y: Direction
        threshold: Private minimum acceptable output; only its commitment is kept
        salt: 8 secret bytes blinding the commitment
        current_slot: Slot at submission; the deadline is measured from it

    Returns:
        SwapSubmission with the new order and the pool holding its lock

    Raises:
        AmmHalted: The config is halted
        InputTooSmall, OutputZero, TradeTooLarge, InsufficientReserve, MathOverflow
    """
    if config.halted:
        raise AmmHalted("swaps are disabled while the AMM is halted")
    require_u64("amount_in", amount_in)
    require_u64("current_slot", current_slot)

    quoted = quote_with_transfer_fees(
        pool,
        config,
        amount_in=amount_in,
        is_x_to_y=is_x_to_y,
        input_fee_config=input_fee_config,
        output_fee_config=output_fee_config,
        epoch=epoch,
    )
    deadline = checked_add(current_slot, config.deadline_slot_duration)
    if deadline > U64_MAX:
        raise MathOverflow(f"deadline overflows u64: {current_slot} + {config.deadline_slot_duration}")
    commitment = commit(threshold, salt)
    result = quoted.swap

    order = Order(
        trader=trader,
        token_mint_x=pool.token_mint_x,
        token_mint_y=pool.token_mint_y,
        actual_in=amount_in,
        exchange_in=quoted.exchange_in,
        actual_out=quoted.actual_out,
        from_to_lock=result.from_to_lock,
        d_in=result.from_amount,
        d_out=result.to_amount,
        deadline=deadline,
        protocol_fee=result.protocol_fee,
        wsol_deposit=config.wsol_trade_deposit,
        commitment=commitment,
        is_x_to_y=is_x_to_y,
    )
    new_pool = pool.with_lock(is_x_to_y=is_x_to_y, delta=result.from_to_lock)
    violations = reserve_violations(new_pool)
    if violations:
        raise ReserveInvariantError(violations)

    logger.info(
        "swap submitted: in=%d out=%d lock=%d deadline=%d x_to_y=%s",
        amount_in,
        quoted.actual_out,
        result.from_to_lock,
        order.deadline,
        is_x_to_y,
    )
    return SwapSubmission(order=order, pool=new_pool, commitment=commitment, quote=quoted)


def expire(order: Order, pool: PoolState, current_slot: Slot) -> StepResult:
    """Slash shortcut: no proof and no private inputs involved."""
    request = FinalizeRequest(
        path=FinalizePath.SLASH,
        realized_output=order.d_out,
        current_slot=current_slot,
    )
    return step_or_raise(order, pool, request)