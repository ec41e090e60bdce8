# [TESTER] v1

from __future__ import annotations

import pytest

from shadeswap.core.commitment import (
    SALT_LEN,
    commit,
    commitment_limbs,
    commitment_value,
    generate_salt,
    salt_to_field,
)
from shadeswap.core.poseidon import poseidon_hash, poseidon_params
from shadeswap.state.amounts import U64_MAX


ZERO_SALT = bytes(SALT_LEN)

# Native Montgomery limb output (4 x u64 LE) and the canonical value behind it.
GOLDEN = [
    (
        0,
        ZERO_SALT,
        bytes(
            [130, 154, 1, 250, 228, 248, 226, 43, 27, 76, 165, 173, 91, 84, 165, 131,
             78, 224, 152, 167, 123, 115, 91, 213, 116, 49, 167, 101, 109, 41, 161, 8]
        ),
        14744269619966411208579211824598458697587494354926760081771325075741142829156,
    ),
    (
        1,
        ZERO_SALT,
        bytes(
            [153, 228, 180, 254, 17, 76, 70, 85, 144, 220, 166, 91, 235, 153, 101, 2,
             209, 78, 60, 87, 166, 84, 127, 81, 221, 96, 78, 137, 198, 139, 168, 47]
        ),
        18423194802802147121294641945063302532319431080857859605204660473644265519999,
    ),
    (
        0,
        bytes([100, 0, 0, 0, 0, 0, 0, 0]),
        bytes(
            [1, 81, 179, 227, 61, 198, 154, 248, 208, 143, 160, 176, 87, 254, 14, 196,
             209, 124, 218, 27, 125, 233, 182, 32, 41, 138, 181, 91, 71, 156, 157, 9]
        ),
        8495383626315836305837861875604061881947184042460352587383381292552921449,
    ),
]


@pytest.mark.parametrize("threshold,salt,limbs,value", GOLDEN)
def test_commitment_golden_vectors(threshold: int, salt: bytes, limbs: bytes, value: int) -> None:
    assert commitment_limbs(threshold, salt) == limbs
    assert commitment_value(threshold, salt) == value
    assert commit(threshold, salt) == value.to_bytes(32, "big")


def test_poseidon_matches_circomlib_reference() -> None:
    assert poseidon_hash([1, 2]) == 7853200120776062878684798364095072458815029376092732009249414926327459813530
    assert poseidon_hash([0, 0]) == GOLDEN[0][3]


def test_poseidon_parameter_shape() -> None:
    params = poseidon_params(3)
    assert params.full_rounds == 8
    assert params.partial_rounds == 57
    assert len(params.round_constants) == (8 + 57) * 3
    assert len(params.mds) == 3 and all(len(row) == 3 for row in params.mds)


def test_poseidon_rejects_non_field_inputs() -> None:
    with pytest.raises(ValueError):
        poseidon_hash([])
    with pytest.raises(ValueError):
        poseidon_hash([-1, 0])
    with pytest.raises(TypeError):
        poseidon_hash([True, 0])


def test_salt_is_little_endian_u64() -> None:
    assert salt_to_field(bytes([1, 0, 0, 0, 0, 0, 0, 0])) == 1
    assert salt_to_field(bytes([0, 0, 0, 0, 0, 0, 0, 1])) == 1 << 56
    assert salt_to_field(b"\xff" * 8) == U64_MAX


def test_salt_length_is_enforced() -> None:
    with pytest.raises(ValueError):
        commit(1, b"\x00" * 7)
    with pytest.raises(TypeError):
        commit(1, "00000000")  # type: ignore[arg-type]


def test_threshold_must_be_u64() -> None:
    with pytest.raises(ValueError):
        commit(U64_MAX + 1, ZERO_SALT)


def test_commit_is_deterministic() -> None:
    salt = bytes(range(8))
    assert commit(42, salt) == commit(42, salt)


def test_distinct_salts_give_distinct_commitments() -> None:
    salts = {generate_salt() for _ in range(16)}
    assert all(len(s) == SALT_LEN for s in salts)
    commitments = {commit(1_000, s) for s in salts}
    assert len(commitments) == len(salts)
