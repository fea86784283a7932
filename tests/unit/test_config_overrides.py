"""Run-file loading and dotted-path overrides."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from fcensemble import config_utils
from fcensemble.errors import ConfigurationError
from fcensemble.schema import EnsembleConfig

RUN_FILE = """\
mode: frac
units: wt
oracle:
  entrypoint: tests.oracle_stub:solve
constant_inputs:
  P: 2
  T_start: 1200
  T_stop: 1000
  T_step: 50
  buffer: qfm
  bulk: {SiO2: 48.43, TiO2: 1.19, Al2O3: 15.19, Cr2O3: 0.03, FeO: 8.57, MgO: 10.13,
         CaO: 11.44, Na2O: 2.34, K2O: 0.19, H2O: 0.5, O: 0.2}
variable_inputs:
  offset: [-1.0, 1.0]
io:
  outdir: out/sweep
"""


def _write(tmp_path: Path, text: str = RUN_FILE) -> Path:
    path = tmp_path / "run.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_reads_yaml(tmp_path: Path) -> None:
    cfg = config_utils.load_config(_write(tmp_path))

    assert isinstance(cfg, EnsembleConfig)
    assert cfg.mode == "fractional"
    assert cfg.oracle.entrypoint == "tests.oracle_stub:solve"
    assert cfg.oracle.liquid_phase == "liq"
    assert cfg.variable_inputs == {"offset": [-1.0, 1.0]}
    assert cfg.io.outdir == Path("out/sweep")
    assert cfg.jobs == 1


def test_overrides_replace_scalars_and_lists(tmp_path: Path) -> None:
    cfg = config_utils.load_config(
        _write(tmp_path),
        overrides=["constant_inputs.P=3.5", "variable_inputs.offset=[-2, 0, 2]", "io.format=parquet"],
    )
    assert cfg.constant_inputs["P"] == 3.5
    assert cfg.variable_inputs["offset"] == [-2, 0, 2]
    assert cfg.io.format == "parquet"


def test_parse_override_value() -> None:
    assert config_utils.parse_override_value("true") is True
    assert config_utils.parse_override_value("null") is None
    assert config_utils.parse_override_value("4") == 4
    assert config_utils.parse_override_value("1e-3") == 0.001
    assert config_utils.parse_override_value("'qfm'") == "qfm"
    assert config_utils.parse_override_value("nno") == "nno"
    assert config_utils.parse_override_value("{SiO2: [50, 52]}") == {"SiO2": [50, 52]}


def test_invalid_override_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="expected path=value"):
        config_utils.apply_overrides_dict({}, ["jobs"])
    with pytest.raises(ConfigurationError, match="not a mapping"):
        config_utils.apply_overrides_dict({"jobs": 2}, ["jobs.count=3"])


def test_overrides_file_skips_comments(tmp_path: Path) -> None:
    path = tmp_path / "overrides.txt"
    path.write_text("# sweep\nconstant_inputs.P=1.0\n\njobs=2\n", encoding="utf-8")
    assert config_utils.read_overrides_file(path) == ["constant_inputs.P=1.0", "jobs=2"]


def test_schema_rejects_bad_mode_and_entrypoint(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="mode"):
        config_utils.load_config(_write(tmp_path, RUN_FILE.replace("mode: frac", "mode: batch")))
    with pytest.raises(ValidationError):
        EnsembleConfig(oracle={"entrypoint": "no_colon"})


def test_schema_rejects_monte_carlo_with_variable_bulk() -> None:
    with pytest.raises(ValueError, match="monte_carlo"):
        EnsembleConfig(
            oracle={"entrypoint": "tests.oracle_stub:solve"},
            variable_inputs={"bulk": {"H2O": [0.1, 0.2]}},
            monte_carlo={"bulk": {"SiO2": 50.0}, "uncertainty": {"SiO2": 1.0}, "n_samples": 4},
        )


def test_top_level_must_be_mapping(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        config_utils.load_config(_write(tmp_path, "- just\n- a list\n"))
