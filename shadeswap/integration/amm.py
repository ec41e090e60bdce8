"""
AMM facade: one confidential CPMM pool behind a small router-facing interface.

`Amm` is the interface a router programs against; `ConfidentialAmm` is the
only production implementation. It composes pricing (`core.cpmm`), the order
lifecycle (`core.lifecycle`), proving (`prover`) and the instruction codecs
(`instructions`):

    quote(params)              -> Quote
    swap_instruction(...)      -> (SwapSubmission, payload)
    finalize(order, ...)       -> FinalizeOutcome(path, pool, payload)

Finalize validation always runs before any proving work, so a request on the
wrong path or past the deadline fails fast without touching the artifacts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, unique
from typing import List, Optional, Tuple

from ..core.cpmm import quote_with_transfer_fees
from ..core.errors import AmmHalted
from ..core.fees import TransferFeeConfig
from ..core.lifecycle import (
    Event,
    FinalizePath,
    FinalizeRequest,
    SwapSubmission,
    select_finalize_path,
    step_or_raise,
    submit_swap,
)
from ..state.amounts import PubKey, Slot, require_pubkey
from ..state.config import AmmConfig
from ..state.layouts import PoolAccount, decode_amm_config, decode_order, decode_pool
from ..state.orders import Order
from ..state.pools import PoolState
from .artifacts import ArtifactStore, make_artifact_store
from .instructions import encode_cancel, encode_settle, encode_slash, encode_swap
from .prover import PrivateInputs, PublicInputs, proof_for_finalize
from .settings import ClientSettings


logger = logging.getLogger(__name__)


@unique
class SwapMode(Enum):
    EXACT_IN = "ExactIn"
    EXACT_OUT = "ExactOut"


@dataclass(frozen=True)
class QuoteParams:
    input_mint: PubKey
    amount: int
    swap_mode: SwapMode = SwapMode.EXACT_IN


@dataclass(frozen=True)
class Quote:
    in_amount: int  # input after the trade fee
    out_amount: int  # output after the output transfer fee
    fee_amount: int
    fee_mint: PubKey
    fee_pct: Decimal  # trade fee rate, parts-per-million


@dataclass(frozen=True)
class FinalizeOutcome:
    path: FinalizePath
    pool: PoolState
    payload: bytes
    event: Event


class Amm:
    """Interface for a routable AMM market."""

    @property
    def label(self) -> str:
        raise NotImplementedError

    @property
    def program_id(self) -> PubKey:
        raise NotImplementedError

    @property
    def key(self) -> PubKey:
        raise NotImplementedError

    def get_reserve_mints(self) -> List[PubKey]:
        raise NotImplementedError

    @property
    def supports_exact_out(self) -> bool:
        return False

    def is_active(self) -> bool:
        raise NotImplementedError

    def quote(self, params: QuoteParams) -> Quote:
        raise NotImplementedError


class ConfidentialAmm(Amm):
    def __init__(
        self,
        *,
        key: PubKey,
        program_id: PubKey,
        pool: PoolState,
        config: AmmConfig,
        settings: Optional[ClientSettings] = None,
        store: Optional[ArtifactStore] = None,
        token_x_fee_config: Optional[TransferFeeConfig] = None,
        token_y_fee_config: Optional[TransferFeeConfig] = None,
    ) -> None:
        require_pubkey("key", key)
        require_pubkey("program_id", program_id)
        self._key = bytes(key)
        self._program_id = bytes(program_id)
        self.pool = pool
        self.config = config
        self.settings = settings or ClientSettings()
        self._store = store
        self.token_x_fee_config = token_x_fee_config
        self.token_y_fee_config = token_y_fee_config

    @classmethod
    def from_accounts(
        cls,
        *,
        key: PubKey,
        program_id: PubKey,
        pool_data: bytes,
        config_data: bytes,
        reserve_x_balance: int,
        reserve_y_balance: int,
        settings: Optional[ClientSettings] = None,
        store: Optional[ArtifactStore] = None,
    ) -> "ConfidentialAmm":
        """Build from raw account data (8-byte discriminator included)."""
        account = decode_pool(pool_data)
        return cls(
            key=key,
            program_id=program_id,
            pool=account.to_state(reserve_x_balance=reserve_x_balance, reserve_y_balance=reserve_y_balance),
            config=decode_amm_config(config_data),
            settings=settings,
            store=store,
        )

    def update(
        self,
        account: PoolAccount,
        config: AmmConfig,
        *,
        reserve_x_balance: int,
        reserve_y_balance: int,
        token_x_fee_config: Optional[TransferFeeConfig] = None,
        token_y_fee_config: Optional[TransferFeeConfig] = None,
    ) -> None:
        """Replace the cached snapshot with freshly fetched account state."""
        self.pool = account.to_state(reserve_x_balance=reserve_x_balance, reserve_y_balance=reserve_y_balance)
        self.config = config
        self.token_x_fee_config = token_x_fee_config
        self.token_y_fee_config = token_y_fee_config

    # -- Amm ---------------------------------------------------------------

    @property
    def label(self) -> str:
        return self.settings.label

    @property
    def program_id(self) -> PubKey:
        return self._program_id

    @property
    def key(self) -> PubKey:
        return self._key

    def get_reserve_mints(self) -> List[PubKey]:
        return [self.pool.token_mint_x, self.pool.token_mint_y]

    def is_active(self) -> bool:
        return self.config.is_active

    def _direction(self, input_mint: PubKey) -> bool:
        if input_mint == self.pool.token_mint_x:
            return True
        if input_mint == self.pool.token_mint_y:
            return False
        raise ValueError("input mint is not one of the pool's reserve mints")

    def _fee_configs(self, is_x_to_y: bool) -> Tuple[Optional[TransferFeeConfig], Optional[TransferFeeConfig]]:
        if is_x_to_y:
            return self.token_x_fee_config, self.token_y_fee_config
        return self.token_y_fee_config, self.token_x_fee_config

    def quote(self, params: QuoteParams, *, epoch: int = 0) -> Quote:
        """
        Exact-in quote for `params.amount` of `params.input_mint`.

        Raises:
            ValueError: Exact-out requested or an unknown input mint
            InputTooSmall, OutputZero, TradeTooLarge, InsufficientReserve, MathOverflow
        """
        if params.swap_mode is not SwapMode.EXACT_IN:
            raise ValueError("exact out is not supported")
        is_x_to_y = self._direction(params.input_mint)
        input_fee_config, output_fee_config = self._fee_configs(is_x_to_y)
        quoted = quote_with_transfer_fees(
            self.pool,
            self.config,
            amount_in=params.amount,
            is_x_to_y=is_x_to_y,
            input_fee_config=input_fee_config,
            output_fee_config=output_fee_config,
            epoch=epoch,
        )
        return Quote(
            in_amount=quoted.swap.from_amount,
            out_amount=quoted.actual_out,
            fee_amount=quoted.swap.trade_fee,
            fee_mint=self.pool.token_mint_x if is_x_to_y else self.pool.token_mint_y,
            fee_pct=Decimal(self.config.trade_fee_rate),
        )

    # -- Order lifecycle -----------------------------------------------------

    def swap_instruction(
        self,
        *,
        trader: PubKey,
        input_mint: PubKey,
        amount_in: int,
        threshold: int,
        salt: bytes,
        current_slot: Slot,
        epoch: int = 0,
    ) -> Tuple[SwapSubmission, bytes]:
        """
        Submit a swap: returns the pending order, the locked pool and the payload.

        The caller keeps `(threshold, salt)`; only their commitment leaves here.
        """
        is_x_to_y = self._direction(input_mint)
        input_fee_config, output_fee_config = self._fee_configs(is_x_to_y)
        submission = submit_swap(
            self.pool,
            self.config,
            trader=trader,
            amount_in=amount_in,
            is_x_to_y=is_x_to_y,
            threshold=threshold,
            salt=salt,
            current_slot=current_slot,
            epoch=epoch,
            input_fee_config=input_fee_config,
            output_fee_config=output_fee_config,
        )
        payload = encode_swap(amount_in, is_x_to_y, submission.commitment)
        return submission, payload

    def _artifact_store(self) -> ArtifactStore:
        if self._store is None:
            self._store = make_artifact_store(self.settings.proof)
        return self._store

    def finalize(
        self,
        order: Order,
        *,
        current_slot: Slot,
        threshold: Optional[int] = None,
        salt: Optional[bytes] = None,
        realized_output: Optional[int] = None,
        path: Optional[FinalizePath] = None,
        unwrap_wsol: Optional[bool] = None,
    ) -> FinalizeOutcome:
        """
        Finalize a pending order on the path its state selects.

        Args:
            order: The pending order
            current_slot: Slot the finalize lands in
            threshold: Private minimum output (settle/cancel only)
            salt: Private commitment salt (settle/cancel only)
            realized_output: Output to prove against; defaults to `order.d_out`
            path: Force a path; it is still validated against the order
            unwrap_wsol: Settle only; defaults to the client settings

        Returns:
            FinalizeOutcome with the post-finalize pool and the instruction payload

        Raises:
            AmmHalted: The config is halted
            OrderExpired, OrderNotExpired, WrongFinalizePath: Before any proving
            ProofGenerationFailure, ArtifactError: From the proof pipeline
        """
        if self.config.halted:
            raise AmmHalted("finalize is disabled while the AMM is halted")
        output = order.d_out if realized_output is None else realized_output

        if path is None:
            if order.is_expired(current_slot):
                path = FinalizePath.SLASH
            else:
                if threshold is None:
                    raise ValueError("threshold is required to finalize an unexpired order")
                path = select_finalize_path(order, threshold, output, current_slot)

        request = FinalizeRequest(
            path=path,
            realized_output=output,
            current_slot=current_slot,
            threshold=threshold if path.needs_proof else None,
        )
        new_pool, event = step_or_raise(order, self.pool, request).accepted_state()

        if path is FinalizePath.SLASH:
            payload = encode_slash()
        else:
            if threshold is None or salt is None:
                raise ValueError(f"{path.value} requires the order threshold and commitment salt")
            wire = proof_for_finalize(
                PrivateInputs(threshold=threshold, salt=salt),
                PublicInputs(realized_output=output, commitment=order.commitment),
                path.value,
                self._artifact_store(),
            )
            if path is FinalizePath.SETTLE:
                unwrap = self.settings.unwrap_wsol if unwrap_wsol is None else unwrap_wsol
                payload = encode_settle(wire, unwrap)
            else:
                payload = encode_cancel(wire)

        logger.info("order finalized: path=%s slot=%d deadline=%d", path.value, current_slot, order.deadline)
        return FinalizeOutcome(path=path, pool=new_pool, payload=payload, event=event)

    def is_order_expired(self, order_data: bytes, current_slot: Slot) -> bool:
        return decode_order(order_data).is_expired(current_slot)


def make_amm(
    *,
    key: PubKey,
    program_id: PubKey,
    pool: PoolState,
    config: AmmConfig,
    settings: Optional[ClientSettings] = None,
    store: Optional[ArtifactStore] = None,
) -> Amm:
    settings = settings or ClientSettings()
    if store is None:
        store = make_artifact_store(settings.proof)
    return ConfidentialAmm(
        key=key,
        program_id=program_id,
        pool=pool,
        config=config,
        settings=settings,
        store=store,
    )
