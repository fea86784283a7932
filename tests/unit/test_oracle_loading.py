"""Solver entrypoint resolution and result coercion."""

from __future__ import annotations

import pytest

from fcensemble.errors import ConfigurationError, OracleError
from fcensemble.oracle import OracleResult, load_oracle


def test_load_oracle_resolves_module_function() -> None:
    oracle = load_oracle("tests.oracle_stub:solve")
    payload = oracle(1.0, 1100.0, [1.0, 2.0], ["SiO2", "FeO"], "wt")
    assert payload["phases"][0] == "liq"


def test_load_oracle_resolves_nested_attributes() -> None:
    oracle = load_oracle("tests.oracle_stub:ScriptedOracle.__call__")
    assert callable(oracle)


@pytest.mark.parametrize(
    "entrypoint",
    ["tests.oracle_stub", "tests.oracle_stub:", ":solve", "tests.no_such_module:solve", "tests.oracle_stub:missing"],
)
def test_load_oracle_rejects_bad_entrypoints(entrypoint: str) -> None:
    with pytest.raises(ConfigurationError):
        load_oracle(entrypoint)


def test_load_oracle_rejects_non_callables() -> None:
    with pytest.raises(ConfigurationError, match="not callable"):
        load_oracle("tests.oracle_stub:LIQUIDUS_C")


def test_result_from_mapping_accepts_aliases() -> None:
    result = OracleResult.from_payload(
        {"ph": ["liq", "ol"], "ph_frac": [0.7, 0.3], "frac_M": 0.7, "bulk_M": [1.0, 2.0], "fO2": -9.1}
    )
    assert result.phases == ("liq", "ol")
    assert result.melt_fraction == 0.7
    assert result.melt_bulk == (1.0, 2.0)
    assert result.fugacity_log10 == -9.1


def test_result_from_object_attributes() -> None:
    class Solution:
        phases = ["ol"]
        phase_fraction = [1.0]
        melt_fraction = 0.0
        melt_bulk = [0.0, 0.0]

    result = OracleResult.from_payload(Solution())
    assert result.fugacity_log10 is None
    assert result.phase_fractions == (1.0,)


def test_result_rejects_mismatched_phase_fractions() -> None:
    with pytest.raises(OracleError, match="phase fractions"):
        OracleResult.from_payload(
            {"phases": ["liq", "ol"], "phase_fraction": [1.0], "melt_fraction": 1.0, "melt_bulk": [1.0]}
        )


def test_result_rejects_non_numeric_melt_fraction() -> None:
    with pytest.raises(OracleError, match="Malformed"):
        OracleResult.from_payload(
            {"phases": ["liq"], "phase_fraction": [1.0], "melt_fraction": "lots", "melt_bulk": [1.0]}
        )
