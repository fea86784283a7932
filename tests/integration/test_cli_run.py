"""Command line runs driven by YAML run files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest
from ruamel.yaml import YAML

from fcensemble import run


def _write_run_file(path: Path, payload: Dict[str, Any]) -> Path:
    yaml = YAML()
    with path.open("w", encoding="utf-8") as fh:
        yaml.dump(payload, fh)
    return path


@pytest.fixture
def run_file(tmp_path: Path, basalt: Dict[str, float]) -> Path:
    payload = {
        "mode": "fractional",
        "units": "wt",
        "oracle": {"entrypoint": "tests.oracle_stub:solve"},
        "constant_inputs": {
            "T_start": 1200.0,
            "T_stop": 1100.0,
            "T_step": 50.0,
            "buffer": "nno",
            "offset": 0.0,
            "bulk": basalt,
        },
        "variable_inputs": {"P": [1.0, 3.0]},
        "io": {"outdir": str(tmp_path / "out"), "quiet": True},
    }
    return _write_run_file(tmp_path / "run.yml", payload)


def test_successful_run_exits_zero(run_file: Path, capsys) -> None:
    code = run.main(["--config", str(run_file)])

    assert code == run.EXIT_OK
    out_dir = run_file.parent / "out"
    assert (out_dir / "P=1.0.csv").exists()
    assert (out_dir / "P=3.0.csv").exists()
    assert "2 completed, 0 failed" in capsys.readouterr().out


def test_override_redirects_output(run_file: Path, tmp_path: Path) -> None:
    target = tmp_path / "elsewhere"
    code = run.main(
        [
            "--config",
            str(run_file),
            "--override",
            f"io.outdir={target}",
            "variable_inputs.P=[2.0]",
            "--jobs",
            "2",
        ]
    )

    assert code == run.EXIT_OK
    assert (target / "P=2.0.csv").exists()
    summary = json.loads((target / "summary.json").read_text(encoding="utf-8"))
    assert summary["completed"] == ["P=2.0"]


def test_member_failure_exits_one(run_file: Path, tmp_path: Path, capsys) -> None:
    overrides = tmp_path / "overrides.txt"
    overrides.write_text(
        "# swap in the failing solver\noracle.entrypoint=tests.oracle_stub:solve_fails_above_2kbar\n",
        encoding="utf-8",
    )
    code = run.main(["--config", str(run_file), "--overrides-file", str(overrides)])

    assert code == run.EXIT_MEMBER_FAILED
    out = capsys.readouterr().out
    assert "1 completed, 1 failed" in out
    assert "failed: P=3.0" in out


def test_existing_results_exit_two(run_file: Path) -> None:
    out_dir = run_file.parent / "out"
    out_dir.mkdir()
    (out_dir / "P=1.0.csv").write_text("step\n1\n", encoding="utf-8")

    assert run.main(["--config", str(run_file)]) == run.EXIT_REJECTED


def test_invalid_inputs_exit_two(run_file: Path) -> None:
    code = run.main(["--config", str(run_file), "--override", "constant_inputs.buffer=iw"])

    assert code == run.EXIT_REJECTED


def test_invalid_run_file_exit_two(tmp_path: Path) -> None:
    path = _write_run_file(tmp_path / "bad.yml", {"mode": "sideways", "oracle": {"entrypoint": "x:y"}})

    assert run.main(["--config", str(path)]) == run.EXIT_REJECTED


def test_unknown_oracle_exit_two(run_file: Path) -> None:
    code = run.main(["--config", str(run_file), "--override", "oracle.entrypoint=tests.oracle_stub:missing"])

    assert code == run.EXIT_REJECTED


def test_missing_run_file_exit_two(tmp_path: Path) -> None:
    assert run.main(["--config", str(tmp_path / "nope.yml")]) == run.EXIT_REJECTED
