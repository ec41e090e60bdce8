"""
Instruction payloads for the order and liquidity operations.

    swap              disc[8] | amount_in u64 LE | is_x_to_y u8 | commitment[32]
    settle            disc[8] | a[64] | b[128] | c[64] | signal0[32] | signal1[32] | unwrap u8
    cancel            disc[8] | a[64] | b[128] | c[64] | signal0[32] | signal1[32]
    slash             disc[8]
    add_liquidity     disc[8] | amount_lp u64 | max_amount_x u64 | max_amount_y u64
    remove_liquidity  disc[8] | amount_lp u64 | min_amount_x u64 | min_amount_y u64
    initialize_pool   disc[8] | amount_x u64 | amount_y u64

Discriminators are the first 8 bytes of sha256("global:<instruction name>").

Scalars are little-endian; proof points and signals are big-endian as
produced by `prover.convert_to_wire_format`.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum, unique
from typing import Optional, Union

from ..core.errors import SerializationFailure
from ..state.amounts import require_u64
from .prover import WireProof, wire_proof_from_bytes


@unique
class InstructionKind(Enum):
    SWAP = bytes([248, 198, 158, 145, 225, 117, 135, 200])
    SETTLE = bytes([175, 42, 185, 87, 144, 131, 102, 212])
    CANCEL = bytes([232, 219, 223, 41, 219, 236, 220, 190])
    SLASH = bytes([204, 141, 18, 161, 8, 177, 92, 142])
    ADD_LIQUIDITY = bytes([181, 157, 89, 67, 143, 182, 52, 72])
    REMOVE_LIQUIDITY = bytes([80, 85, 209, 72, 24, 206, 177, 108])
    INITIALIZE_POOL = bytes([95, 180, 10, 172, 84, 174, 232, 40])

    @property
    def discriminator(self) -> bytes:
        return self.value


PROOF_PAYLOAD_LEN = 64 + 128 + 64 + 32 + 32
SWAP_LEN = 8 + 8 + 1 + 32
SETTLE_LEN = 8 + PROOF_PAYLOAD_LEN + 1
CANCEL_LEN = 8 + PROOF_PAYLOAD_LEN
SLASH_LEN = 8
ADD_LIQUIDITY_LEN = 8 + 3 * 8
REMOVE_LIQUIDITY_LEN = 8 + 3 * 8
INITIALIZE_POOL_LEN = 8 + 2 * 8


@dataclass(frozen=True)
class SwapInstruction:
    amount_in: int
    is_x_to_y: bool
    commitment: bytes


@dataclass(frozen=True)
class SettleInstruction:
    proof: WireProof
    unwrap_wsol: bool


@dataclass(frozen=True)
class CancelInstruction:
    proof: WireProof


@dataclass(frozen=True)
class SlashInstruction:
    pass


@dataclass(frozen=True)
class AddLiquidityInstruction:
    amount_lp: int
    max_amount_x: int
    max_amount_y: int


@dataclass(frozen=True)
class RemoveLiquidityInstruction:
    amount_lp: int
    min_amount_x: int
    min_amount_y: int


@dataclass(frozen=True)
class InitializePoolInstruction:
    amount_x: int
    amount_y: int


Instruction = Union[
    SwapInstruction,
    SettleInstruction,
    CancelInstruction,
    SlashInstruction,
    AddLiquidityInstruction,
    RemoveLiquidityInstruction,
    InitializePoolInstruction,
]


def _check_proof(proof: WireProof) -> bytes:
    body = proof.to_bytes()
    if len(body) != PROOF_PAYLOAD_LEN:
        raise SerializationFailure(f"proof payload must be {PROOF_PAYLOAD_LEN} bytes, got {len(body)}")
    return body


def encode_swap(amount_in: int, is_x_to_y: bool, commitment: bytes) -> bytes:
    require_u64("amount_in", amount_in)
    if len(commitment) != 32:
        raise SerializationFailure("commitment must be 32 bytes")
    return InstructionKind.SWAP.discriminator + struct.pack("<QB", amount_in, int(bool(is_x_to_y))) + bytes(commitment)


def encode_settle(proof: WireProof, unwrap_wsol: bool) -> bytes:
    return InstructionKind.SETTLE.discriminator + _check_proof(proof) + bytes([int(bool(unwrap_wsol))])


def encode_cancel(proof: WireProof) -> bytes:
    return InstructionKind.CANCEL.discriminator + _check_proof(proof)


def encode_slash() -> bytes:
    return InstructionKind.SLASH.discriminator


def _u64s(kind: InstructionKind, **values: int) -> bytes:
    for name, value in values.items():
        require_u64(name, value)
    return kind.discriminator + struct.pack(f"<{len(values)}Q", *values.values())


def encode_add_liquidity(amount_lp: int, max_amount_x: int, max_amount_y: int) -> bytes:
    return _u64s(
        InstructionKind.ADD_LIQUIDITY, amount_lp=amount_lp, max_amount_x=max_amount_x, max_amount_y=max_amount_y
    )


def encode_remove_liquidity(amount_lp: int, min_amount_x: int, min_amount_y: int) -> bytes:
    return _u64s(
        InstructionKind.REMOVE_LIQUIDITY, amount_lp=amount_lp, min_amount_x=min_amount_x, min_amount_y=min_amount_y
    )


def encode_initialize_pool(amount_x: int, amount_y: int) -> bytes:
    return _u64s(InstructionKind.INITIALIZE_POOL, amount_x=amount_x, amount_y=amount_y)


def encode_instruction(ix: Instruction) -> bytes:
    if isinstance(ix, SwapInstruction):
        return encode_swap(ix.amount_in, ix.is_x_to_y, ix.commitment)
    if isinstance(ix, SettleInstruction):
        return encode_settle(ix.proof, ix.unwrap_wsol)
    if isinstance(ix, CancelInstruction):
        return encode_cancel(ix.proof)
    if isinstance(ix, SlashInstruction):
        return encode_slash()
    if isinstance(ix, AddLiquidityInstruction):
        return encode_add_liquidity(ix.amount_lp, ix.max_amount_x, ix.max_amount_y)
    if isinstance(ix, RemoveLiquidityInstruction):
        return encode_remove_liquidity(ix.amount_lp, ix.min_amount_x, ix.min_amount_y)
    if isinstance(ix, InitializePoolInstruction):
        return encode_initialize_pool(ix.amount_x, ix.amount_y)
    raise TypeError(f"unsupported instruction: {type(ix).__name__}")


def _proof(blob: bytes) -> WireProof:
    proof = wire_proof_from_bytes(blob)
    if proof is None:
        raise SerializationFailure(f"proof payload must be {PROOF_PAYLOAD_LEN} bytes")
    return proof


def _flag(byte: int) -> bool:
    if byte not in (0, 1):
        raise SerializationFailure(f"invalid bool byte {byte}")
    return byte == 1


def decode_instruction(data: bytes) -> Instruction:
    """Parse a payload produced by `encode_instruction`."""
    kind: Optional[InstructionKind] = None
    for candidate in InstructionKind:
        if data[:8] == candidate.discriminator:
            kind = candidate
            break
    if kind is None:
        raise SerializationFailure("unknown instruction discriminator")

    body = data[8:]
    if kind is InstructionKind.SWAP:
        if len(data) != SWAP_LEN:
            raise SerializationFailure(f"swap payload must be {SWAP_LEN} bytes")
        amount_in, direction = struct.unpack_from("<QB", body)
        return SwapInstruction(amount_in=amount_in, is_x_to_y=_flag(direction), commitment=body[9:])
    if kind is InstructionKind.SETTLE:
        if len(data) != SETTLE_LEN:
            raise SerializationFailure(f"settle payload must be {SETTLE_LEN} bytes")
        return SettleInstruction(proof=_proof(body[:PROOF_PAYLOAD_LEN]), unwrap_wsol=_flag(body[-1]))
    if kind is InstructionKind.CANCEL:
        if len(data) != CANCEL_LEN:
            raise SerializationFailure(f"cancel payload must be {CANCEL_LEN} bytes")
        return CancelInstruction(proof=_proof(body))
    if kind is InstructionKind.SLASH:
        if len(data) != SLASH_LEN:
            raise SerializationFailure(f"slash payload must be {SLASH_LEN} bytes")
        return SlashInstruction()
    if kind is InstructionKind.INITIALIZE_POOL:
        if len(data) != INITIALIZE_POOL_LEN:
            raise SerializationFailure(f"initialize_pool payload must be {INITIALIZE_POOL_LEN} bytes")
        amount_x, amount_y = struct.unpack("<2Q", body)
        return InitializePoolInstruction(amount_x=amount_x, amount_y=amount_y)
    expected = ADD_LIQUIDITY_LEN if kind is InstructionKind.ADD_LIQUIDITY else REMOVE_LIQUIDITY_LEN
    if len(data) != expected:
        raise SerializationFailure(f"{kind.name.lower()} payload must be {expected} bytes")
    amount_lp, limit_x, limit_y = struct.unpack("<3Q", body)
    if kind is InstructionKind.ADD_LIQUIDITY:
        return AddLiquidityInstruction(amount_lp=amount_lp, max_amount_x=limit_x, max_amount_y=limit_y)
    return RemoveLiquidityInstruction(amount_lp=amount_lp, min_amount_x=limit_x, min_amount_y=limit_y)
