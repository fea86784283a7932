"""Cartesian expansion of inputs into ensemble members."""

from __future__ import annotations

import pytest

from fcensemble.composition import MonteCarloBulkSet
from fcensemble.errors import ConfigurationError
from fcensemble.grid import (
    ParameterGrid,
    expand_grid,
    generate_output_filename,
    generate_output_filename_mc,
)
from fcensemble.inputs import prepare_inputs


def test_pressure_offset_grid_has_six_members() -> None:
    grid = expand_grid({"P": [0.0, 1.0, 2.0], "offset": [-1.0, 1.0]})

    members = list(grid)
    assert len(grid) == 6
    assert len(members) == 6
    identifiers = [member.identifier for member in members]
    assert len(set(identifiers)) == 6
    assert any("P=1.0" in ident and "offset=-1.0" in ident for ident in identifiers)
    for pressure in ("P=0.0", "P=1.0", "P=2.0"):
        for offset in ("offset=-1.0", "offset=1.0"):
            assert f"{pressure}_{offset}" in identifiers


def test_right_most_key_varies_fastest() -> None:
    grid = expand_grid({"P": [1.0, 2.0], "offset": [-1.0, 0.0, 1.0]})
    assert grid.identifiers == [
        "P=1.0_offset=-1.0",
        "P=1.0_offset=0.0",
        "P=1.0_offset=1.0",
        "P=2.0_offset=-1.0",
        "P=2.0_offset=0.0",
        "P=2.0_offset=1.0",
    ]


def test_grid_is_restartable_and_indexable() -> None:
    grid = expand_grid({"P": [1.0, 2.0], "buffer": ["qfm", "nno"]}, {"T_start": 1100.0})
    first = [member.identifier for member in grid]
    second = [member.identifier for member in grid]
    assert first == second
    assert grid[2].identifier == first[2]
    assert grid[-1].identifier == first[-1]
    with pytest.raises(IndexError):
        grid[4]


def test_members_merge_constant_values() -> None:
    grid = expand_grid({"offset": [-1.0, 1.0]}, {"P": 2.0, "buffer": "qfm"})
    member = grid[1]
    assert member.pressure == 2.0
    assert member.buffer == "qfm"
    assert member.offset == 1.0
    assert member.temperatures == ()
    assert member.identifier == "offset=1.0"
    with pytest.raises(TypeError):
        member.values["P"] = 3.0  # type: ignore[index]


def test_empty_variable_partition_yields_one_member(cooling_constants) -> None:
    grid = ParameterGrid(prepare_inputs(cooling_constants, {}))
    members = list(grid)
    assert len(members) == 1
    assert members[0].identifier == ""
    assert members[0].temperatures == (1200.0, 1150.0, 1100.0, 1050.0, 1000.0)


def test_grid_bulk_identifier_uses_varying_oxides(cooling_constants) -> None:
    cooling_constants["bulk"].pop("H2O")
    cooling_constants["bulk"].pop("SiO2")
    variable = {"P": [1.0, 2.0], "bulk": {"SiO2": [48.0, 52.0], "H2O": [0.5, 2.0]}}
    grid = ParameterGrid(prepare_inputs(cooling_constants, variable))

    assert grid.identifiers == [
        "P=1.0_SiO2=48.0_H2O=0.5",
        "P=1.0_SiO2=52.0_H2O=2.0",
        "P=2.0_SiO2=48.0_H2O=0.5",
        "P=2.0_SiO2=52.0_H2O=2.0",
    ]
    member = grid[3]
    assert member.bulk is not None
    assert member.bulk["SiO2"] == 52.0
    assert member.bulk["MgO"] == 10.13


def test_monte_carlo_identifier_is_zero_padded_index(cooling_constants) -> None:
    bulk = cooling_constants.pop("bulk")
    samples = MonteCarloBulkSet(tuple(bulk), tuple(tuple(bulk.values()) for _ in range(12)))
    grid = ParameterGrid(prepare_inputs(cooling_constants, {"bulk_mc": samples}))

    identifiers = grid.identifiers
    assert identifiers[0] == "bulk=01"
    assert identifiers[8] == "bulk=09"
    assert identifiers[-1] == "bulk=12"


def test_members_own_independent_bulk_snapshots(cooling_constants) -> None:
    grid = ParameterGrid(prepare_inputs(cooling_constants, {"P": [1.0, 2.0]}))
    a, b = list(grid)
    assert a.bulk == b.bulk
    assert a.bulk is not b.bulk


def test_generate_output_filename_orders_by_declaration() -> None:
    variable = {"P": [1.0, 2.0], "bulk": {"SiO2": [50.0, 52.0], "FeO": 8.0}}
    name = generate_output_filename(variable, {"P": 2.0, "bulk": {"SiO2": 52.0, "FeO": 8.0}})
    assert name == "P=2.0_SiO2=52.0"


def test_generate_output_filename_mc_uses_sample_index() -> None:
    variable = {"bulk_mc": {"oxides": ["SiO2", "FeO"], "bulk": [[50.0, 8.0], [51.0, 7.5]]}, "P": [1.0]}
    assert generate_output_filename_mc(variable, {"bulk_mc": [51.0, 7.5], "P": 1.0}) == "bulk=2_P=1.0"
    with pytest.raises(ConfigurationError):
        generate_output_filename_mc(variable, {"bulk_mc": [49.0, 7.5], "P": 1.0})
