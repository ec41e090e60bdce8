"""
Poseidon hash over the BN254 scalar field, circomlib parameters.

Parameters for width t (t = inputs + 1): x^5 S-box, 8 full rounds and the
circomlib partial-round count for t. Round constants and the Cauchy MDS
matrix are regenerated from the Grain LFSR of the Poseidon reference
parameter script, so no constant tables are shipped:

    state = [0, in_1, ..., in_{t-1}]
    for r in rounds:
        state += C[r]                   # add round constants
        state = sbox(state)             # full rounds: all cells; partial: cell 0
        state = M @ state               # MDS mix
    return state[0]
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator, Sequence

from .field import FIELD_MODULUS


FIELD_BITS = 254
FULL_ROUNDS = 8
# circomlib partial round counts, indexed by t - 2.
PARTIAL_ROUNDS = (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68)

_GRAIN_STATE_BITS = 80
_GRAIN_WARMUP = 160


class _GrainLfsr:
    """Self-shrinking Grain LFSR seeded with the Poseidon instance parameters."""

    def __init__(self, *, t: int, full_rounds: int, partial_rounds: int) -> None:
        bits: list[int] = []
        for value, width in (
            (1, 2),  # prime field
            (0, 4),  # x^alpha S-box
            (FIELD_BITS, 12),
            (t, 12),
            (full_rounds, 10),
            (partial_rounds, 10),
        ):
            bits.extend(int(b) for b in format(value, f"0{width}b"))
        bits.extend([1] * 30)
        if len(bits) != _GRAIN_STATE_BITS:
            raise ValueError(f"grain seed must be {_GRAIN_STATE_BITS} bits, got {len(bits)}")
        self._state = deque(bits, maxlen=_GRAIN_STATE_BITS)
        for _ in range(_GRAIN_WARMUP):
            self._clock()
        self._bits = self._output_bits()

    def _clock(self) -> int:
        s = self._state
        new_bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.append(new_bit)
        return new_bit

    def _output_bits(self) -> Iterator[int]:
        while True:
            selector = self._clock()
            while selector == 0:
                self._clock()
                selector = self._clock()
            yield self._clock()

    def random_int(self, nbits: int = FIELD_BITS) -> int:
        """Next `nbits` output bits, most significant first."""
        value = 0
        for _ in range(nbits):
            value = (value << 1) | next(self._bits)
        return value


@dataclass(frozen=True)
class PoseidonParams:
    t: int
    full_rounds: int
    partial_rounds: int
    round_constants: tuple[int, ...]
    mds: tuple[tuple[int, ...], ...]


@lru_cache(maxsize=None)
def poseidon_params(t: int) -> PoseidonParams:
    """Generate (and cache) the circomlib parameter set for width `t`."""
    if not (2 <= t <= len(PARTIAL_ROUNDS) + 1):
        raise ValueError(f"unsupported Poseidon width: {t}")
    partial_rounds = PARTIAL_ROUNDS[t - 2]
    grain = _GrainLfsr(t=t, full_rounds=FULL_ROUNDS, partial_rounds=partial_rounds)
    constants: list[int] = []
    for _ in range((FULL_ROUNDS + partial_rounds) * t):
        value = grain.random_int()
        while value >= FIELD_MODULUS:
            value = grain.random_int()
        constants.append(value)

    while True:
        draws = [grain.random_int() % FIELD_MODULUS for _ in range(2 * t)]
        while len(set(draws)) != len(draws):
            draws = [grain.random_int() % FIELD_MODULUS for _ in range(2 * t)]
        xs, ys = draws[:t], draws[t:]
        if any((x + y) % FIELD_MODULUS == 0 for x in xs for y in ys):
            continue
        mds = tuple(tuple(pow(x + y, -1, FIELD_MODULUS) for y in ys) for x in xs)
        break

    return PoseidonParams(
        t=t,
        full_rounds=FULL_ROUNDS,
        partial_rounds=partial_rounds,
        round_constants=tuple(constants),
        mds=mds,
    )


def _sbox(x: int) -> int:
    x2 = (x * x) % FIELD_MODULUS
    return (x2 * x2 * x) % FIELD_MODULUS


def poseidon_permutation(state: Sequence[int], params: PoseidonParams) -> list[int]:
    t = params.t
    if len(state) != t:
        raise ValueError(f"state must have {t} cells")
    s = [v % FIELD_MODULUS for v in state]
    half_full = params.full_rounds // 2
    n_rounds = params.full_rounds + params.partial_rounds
    c = params.round_constants
    m = params.mds

    for r in range(n_rounds):
        s = [(v + c[r * t + i]) % FIELD_MODULUS for i, v in enumerate(s)]
        if r < half_full or r >= half_full + params.partial_rounds:
            s = [_sbox(v) for v in s]
        else:
            s[0] = _sbox(s[0])
        s = [sum(m[i][j] * s[j] for j in range(t)) % FIELD_MODULUS for i in range(t)]
    return s


def poseidon_hash(inputs: Sequence[int]) -> int:
    """circomlib `Poseidon(n)` over field elements; returns the canonical integer."""
    if not inputs:
        raise ValueError("poseidon_hash needs at least one input")
    for v in inputs:
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError("poseidon inputs must be ints")
        if not (0 <= v < FIELD_MODULUS):
            raise ValueError("poseidon inputs must be canonical field elements")
    params = poseidon_params(len(inputs) + 1)
    return poseidon_permutation([0, *inputs], params)[0]
