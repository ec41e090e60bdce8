"""
Groth16 prover over BN254 (snarkjs-compatible).

Given a snarkjs proving key and a full witness `w`:

1. Evaluate the A and B constraint polynomials on the n-point domain from
   the key's sparse coefficients; C is their pointwise product (it equals
   C.w exactly when the witness satisfies the system).
2. Interpolate (iFFT), shift to the odd coset `g * w_n^i` with `g` a
   primitive 2n-th root of unity, evaluate there (FFT) and form
   `P = A * B - C` on the coset. The key's H points are pre-divided by the
   vanishing polynomial, so `P` feeds the H multi-exponentiation directly.
3. Combine multi-scalar multiplications with fresh blinding factors r, s:

       A = alpha + sum(w_i A_i) + r delta
       B = beta  + sum(w_i B_i) + s delta
       C = sum(w_i C_i) + h + s A + r B1 - r s delta

Curve arithmetic is py_ecc's optimized (Jacobian) BN254.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, List, Optional, Sequence

from py_ecc.optimized_bn128 import Z1, Z2, add, curve_order, double, is_inf, normalize

from ..core.errors import ProofGenerationFailure
from .circom_files import ProvingKey


logger = logging.getLogger(__name__)

R = curve_order
TWO_ADICITY = 28


@dataclass(frozen=True)
class Proof:
    """Affine Groth16 proof; coordinates are FQ (A, C) and FQ2 (B)."""

    a: tuple
    b: tuple
    c: tuple


def _find_nqr() -> int:
    candidate = 2
    while pow(candidate, (R - 1) // 2, R) != R - 1:
        candidate += 1
    return candidate


@lru_cache(maxsize=None)
def _max_root() -> int:
    t = (R - 1) >> TWO_ADICITY
    return pow(_find_nqr(), t, R)


@lru_cache(maxsize=None)
def root_of_unity(power: int) -> int:
    """Primitive 2^power-th root of unity, derived by squaring down from 2^28."""
    if not (0 <= power <= TWO_ADICITY):
        raise ValueError(f"no 2^{power}-th root of unity in the scalar field")
    w = _max_root()
    for _ in range(TWO_ADICITY - power):
        w = (w * w) % R
    return w


def _fft_in_place(values: List[int], root: int) -> List[int]:
    n = len(values)
    if n == 1:
        return values
    # Bit-reversal permutation
    j = 0
    for i in range(1, n):
        bit = n >> 1
        while j & bit:
            j ^= bit
            bit >>= 1
        j |= bit
        if i < j:
            values[i], values[j] = values[j], values[i]
    length = 2
    while length <= n:
        w_len = pow(root, n // length, R)
        half = length // 2
        for start in range(0, n, length):
            w = 1
            for k in range(start, start + half):
                u = values[k]
                v = (values[k + half] * w) % R
                values[k] = (u + v) % R
                values[k + half] = (u - v) % R
                w = (w * w_len) % R
        length <<= 1
    return values


def fft(coeffs: Sequence[int]) -> List[int]:
    """Evaluate a polynomial on the domain of size len(coeffs)."""
    n = len(coeffs)
    power = n.bit_length() - 1
    if n & (n - 1):
        raise ValueError("fft size must be a power of two")
    return _fft_in_place(list(coeffs), root_of_unity(power))


def ifft(evals: Sequence[int]) -> List[int]:
    """Interpolate from evaluations on the domain of size len(evals)."""
    n = len(evals)
    power = n.bit_length() - 1
    if n & (n - 1):
        raise ValueError("ifft size must be a power of two")
    out = _fft_in_place(list(evals), pow(root_of_unity(power), -1, R))
    n_inv = pow(n, -1, R)
    return [(v * n_inv) % R for v in out]


def _window_bits(n: int) -> int:
    if n < 4:
        return 1
    if n < 32:
        return 3
    return max(4, (n.bit_length() * 69) // 100)


def msm(points: Sequence[tuple], scalars: Sequence[int], zero: tuple) -> tuple:
    """
    Multi-scalar multiplication `sum(s_i * P_i)` with Pippenger buckets.

    Returns a Jacobian point; `zero` is the group identity (Z1 or Z2).
    """
    if len(points) != len(scalars):
        raise ValueError("points and scalars differ in length")
    pairs = [(p, s % R) for p, s in zip(points, scalars) if s % R and not is_inf(p)]
    if not pairs:
        return zero

    c = _window_bits(len(pairs))
    mask = (1 << c) - 1
    n_windows = (R.bit_length() + c - 1) // c

    result = zero
    for window in reversed(range(n_windows)):
        if not is_inf(result):
            for _ in range(c):
                result = double(result)
        buckets: List[Optional[tuple]] = [None] * (1 << c)
        shift = window * c
        for p, s in pairs:
            idx = (s >> shift) & mask
            if idx:
                current = buckets[idx]
                buckets[idx] = p if current is None else add(current, p)
        running = zero
        acc = zero
        for idx in range(mask, 0, -1):
            bucket = buckets[idx]
            if bucket is not None:
                running = add(running, bucket)
            acc = add(acc, running)
        result = add(result, acc)
    return result


def _scale(point: tuple, scalar: int, zero: tuple) -> tuple:
    return msm([point], [scalar], zero)


def _evaluations(pk: ProvingKey, witness: Sequence[int]) -> tuple[List[int], List[int], List[int]]:
    n = pk.domain_size
    a_t = [0] * n
    b_t = [0] * n
    for coef in pk.coefficients:
        target = a_t if coef.matrix == 0 else b_t
        target[coef.constraint] = (target[coef.constraint] + coef.value * witness[coef.signal]) % R
    c_t = [(x * y) % R for x, y in zip(a_t, b_t)]
    return a_t, b_t, c_t


def _odd_coset(evals: List[int], power: int) -> List[int]:
    coeffs = ifft(evals)
    inc = root_of_unity(power + 1)
    shift = 1
    for i in range(len(coeffs)):
        coeffs[i] = (coeffs[i] * shift) % R
        shift = (shift * inc) % R
    return fft(coeffs)


def h_evaluations(pk: ProvingKey, witness: Sequence[int]) -> List[int]:
    """`A*B - C` evaluated on the odd coset of the key's domain."""
    if pk.power >= TWO_ADICITY:
        raise ProofGenerationFailure(f"domain 2^{pk.power} is too large")
    a_t, b_t, c_t = _evaluations(pk, witness)
    a_odd = _odd_coset(a_t, pk.power)
    b_odd = _odd_coset(b_t, pk.power)
    c_odd = _odd_coset(c_t, pk.power)
    return [(a * b - c) % R for a, b, c in zip(a_odd, b_odd, c_odd)]


def _random_scalar() -> int:
    return secrets.randbelow(R - 1) + 1


def prove(
    pk: ProvingKey,
    witness: Sequence[int],
    *,
    randomness: Callable[[], int] = _random_scalar,
) -> tuple[Proof, List[int]]:
    """
    Produce a Groth16 proof for a full witness.

    Args:
        pk: Parsed proving key
        witness: Full assignment, `witness[0] == 1`
        randomness: Source of the blinding scalars r and s

    Returns:
        (proof, public_signals) with `public_signals = witness[1 : n_public + 1]`

    Raises:
        ProofGenerationFailure: Witness size does not match the key
    """
    if len(witness) != pk.n_vars:
        raise ProofGenerationFailure(f"witness has {len(witness)} values, key expects {pk.n_vars}")
    if witness[0] != 1:
        raise ProofGenerationFailure("witness[0] must be the constant one")
    w = [v % R for v in witness]
    logger.debug("groth16 prove: vars=%d public=%d domain=%d", pk.n_vars, pk.n_public, pk.domain_size)

    h = h_evaluations(pk, w)
    r = randomness()
    s = randomness()

    pi_a = msm(pk.a_points, w, Z1)
    pi_a = add(pi_a, pk.alpha_1)
    pi_a = add(pi_a, _scale(pk.delta_1, r, Z1))

    pi_b = msm(pk.b2_points, w, Z2)
    pi_b = add(pi_b, pk.beta_2)
    pi_b = add(pi_b, _scale(pk.delta_2, s, Z2))

    pi_b1 = msm(pk.b1_points, w, Z1)
    pi_b1 = add(pi_b1, pk.beta_1)
    pi_b1 = add(pi_b1, _scale(pk.delta_1, s, Z1))

    res_h = msm(pk.h_points, h, Z1)
    res_c = msm(pk.c_points, w[pk.n_public + 1 :], Z1)

    pi_c = add(res_c, res_h)
    pi_c = add(pi_c, _scale(pi_a, s, Z1))
    pi_c = add(pi_c, _scale(pi_b1, r, Z1))
    pi_c = add(pi_c, _scale(pk.delta_1, (-r * s) % R, Z1))

    proof = Proof(a=normalize(pi_a), b=normalize(pi_b), c=normalize(pi_c))
    return proof, w[1 : pk.n_public + 1]
