# [TESTER] v1

from __future__ import annotations

import struct

import pytest
from py_ecc.optimized_bn128 import curve_order, eq

from shadeswap.core.errors import ArtifactError
from shadeswap.integration.artifacts import CANCEL, SETTLE
from shadeswap.integration.circom_files import (
    first_unsatisfied,
    parse_r1cs,
    parse_wtns,
    parse_zkey,
    read_sections,
)


def test_zkey_header_matches_the_setup(zk_circuits) -> None:
    circuit = zk_circuits[SETTLE]
    pk = parse_zkey(circuit.zkey)
    assert pk.n_public == 2
    assert pk.n_vars == 21
    assert pk.domain_size == 32
    assert pk.power == 5
    assert len(pk.ic) == 3
    assert len(pk.c_points) == pk.n_vars - pk.n_public - 1
    assert len(pk.h_points) == pk.domain_size
    assert eq(pk.alpha_1, circuit.vk.alpha_1)
    assert eq(pk.delta_2, circuit.vk.delta_2)


def test_zkey_coefficients_come_back_in_standard_form(zk_circuits) -> None:
    pk = parse_zkey(zk_circuits[CANCEL].zkey)
    # Public binding rows sit after the circuit constraints.
    binding = [c for c in pk.coefficients if c.matrix == 0 and c.constraint >= 18]
    assert [(c.constraint, c.signal, c.value) for c in binding] == [(18, 0, 1), (19, 1, 1), (20, 2, 1)]
    assert {c.value for c in pk.coefficients if c.matrix == 1} == {1}


def test_zkey_rejects_foreign_files(zk_circuits, circom_writers) -> None:
    with pytest.raises(ArtifactError):
        parse_zkey(b"zkex" + zk_circuits[SETTLE].zkey[4:])
    with pytest.raises(ArtifactError):
        parse_zkey(zk_circuits[SETTLE].zkey[:-1])
    plonk = circom_writers.container(b"zkey", [(1, struct.pack("<I", 2))])
    with pytest.raises(ArtifactError):
        parse_zkey(plonk)


def test_read_sections_indexes_bodies(circom_writers) -> None:
    data = circom_writers.container(b"test", [(1, b"ab"), (3, b"cde"), (1, b"f")], version=7)
    version, sections = read_sections(data, b"test")
    assert version == 7
    assert [data[o : o + n] for o, n in sections[1]] == [b"ab", b"f"]
    assert [data[o : o + n] for o, n in sections[3]] == [b"cde"]


def test_wtns_values(circom_writers) -> None:
    values = [1, 2, 3, curve_order - 1]
    assert parse_wtns(circom_writers.wtns_bytes(values)) == values


def test_wtns_rejects_bad_input(circom_writers) -> None:
    with pytest.raises(ArtifactError):
        parse_wtns(b"wtnx" + circom_writers.wtns_bytes([1])[4:])
    with pytest.raises(ArtifactError):
        parse_wtns(circom_writers.wtns_bytes([1, curve_order]))


def test_r1cs_accepts_a_satisfying_witness(circom_writers) -> None:
    r1cs = parse_r1cs(circom_writers.r1cs_bytes(circom_writers.build_constraints(SETTLE)))
    assert r1cs.n_wires == circom_writers.n_vars
    assert r1cs.n_public == 2
    assert len(r1cs.constraints) == circom_writers.range_bits + 2
    witness = circom_writers.circuit_witness(
        SETTLE, {"realOut": 500, "minOut": 400, "commitment": 77, "salt": 3}
    )
    assert first_unsatisfied(r1cs, witness) is None


def test_r1cs_reports_the_failing_constraint(circom_writers) -> None:
    r1cs = parse_r1cs(circom_writers.r1cs_bytes(circom_writers.build_constraints(CANCEL)))
    witness = circom_writers.circuit_witness(
        CANCEL, {"realOut": 400, "minOut": 500, "commitment": 77, "salt": 3}
    )
    assert first_unsatisfied(r1cs, witness) is None
    witness[5] = 2
    assert first_unsatisfied(r1cs, witness) == 0
    assert first_unsatisfied(r1cs, witness[:-1]) == -1
    assert first_unsatisfied(r1cs, [0] + witness[1:]) == -1


def test_r1cs_rejects_unknown_wires(circom_writers) -> None:
    bad = [({99: 1}, {0: 1}, {0: 1})]
    with pytest.raises(ArtifactError):
        parse_r1cs(circom_writers.r1cs_bytes(bad))
