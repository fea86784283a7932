"""Result tables, sidecars and the output directory pre-flight check."""

from __future__ import annotations

import json
import math
from pathlib import Path

import pandas as pd
import pyarrow.parquet as pq
import pytest

from fcensemble.composition import OxideComposition
from fcensemble.crystallisation import run_crystallisation
from fcensemble.errors import OutputConflictError
from fcensemble.io import writer
from tests.oracle_stub import ScriptedOracle


@pytest.fixture
def short_run(basalt):
    oracle = ScriptedOracle([0.8, 0.4], melt_scale=0.9)
    return run_crystallisation(oracle, 2.0, [1150.0, 1100.0], OxideComposition.from_mapping(basalt))


def test_directory_is_clean(tmp_path: Path) -> None:
    assert writer.directory_is_clean(tmp_path / "missing")
    assert writer.directory_is_clean(tmp_path)
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
    assert writer.directory_is_clean(tmp_path)
    (tmp_path / "old.csv").write_text("a\n1\n", encoding="utf-8")
    assert not writer.directory_is_clean(tmp_path)


def test_setup_output_directory_creates_and_refuses(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "out"
    assert writer.setup_output_directory(target) == target
    assert target.is_dir()

    (target / "P=1.0.parquet").write_bytes(b"")
    with pytest.raises(OutputConflictError) as excinfo:
        writer.setup_output_directory(target)
    assert excinfo.value.files == ("P=1.0.parquet",)
    assert isinstance(excinfo.value, FileExistsError)


def test_empty_path_means_working_directory(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert writer.setup_output_directory("") == tmp_path
    assert writer.setup_output_directory(None) == tmp_path


def test_frame_has_system_row_and_one_row_per_phase(short_run, basalt) -> None:
    frame = writer.results_to_frame(short_run)

    assert len(frame) == 2 * 3
    assert list(frame["phase"]) == ["system", "liq", "cpx"] * 2
    first_system = frame.iloc[0]
    assert first_system["SiO2"] == basalt["SiO2"]
    assert first_system["phase_fraction"] == 1.0
    first_liquid = frame.iloc[1]
    assert first_liquid["SiO2"] == pytest.approx(basalt["SiO2"] * 0.9)
    assert first_liquid["phase_fraction"] == pytest.approx(0.8)
    assert math.isnan(frame.iloc[2]["SiO2"])
    assert set(frame["T_C"]) == {1150.0, 1100.0}


def test_sink_writes_csv_and_sidecar(tmp_path: Path, short_run) -> None:
    sink = writer.ResultSink(tmp_path, provenance={"argv": ["pytest"]})
    path = sink.write("P=2.0_offset=-1.0", short_run, {"units": "wt"})

    assert path == tmp_path / "P=2.0_offset=-1.0.csv"
    frame = pd.read_csv(path)
    assert list(frame.columns[:5]) == ["step", "T_C", "P_kbar", "phase", "phase_fraction"]
    meta = json.loads((tmp_path / "P=2.0_offset=-1.0_metadata.json").read_text(encoding="utf-8"))
    assert meta["identifier"] == "P=2.0_offset=-1.0"
    assert meta["termination"] == "steps_exhausted"
    assert meta["n_steps"] == 2
    assert meta["units"] == "wt"
    assert meta["provenance"] == {"argv": ["pytest"]}
    assert not sink.directory_is_clean()


def test_sink_writes_parquet(tmp_path: Path, short_run) -> None:
    sink = writer.ResultSink(tmp_path, fmt="parquet", provenance={})
    path = sink.write("bulk=1", short_run)

    table = pq.read_table(path)
    assert table.num_rows == 6
    assert b"units" in table.schema.metadata


def test_sink_rejects_unknown_format(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        writer.ResultSink(tmp_path, fmt="xlsx")  # type: ignore[arg-type]
