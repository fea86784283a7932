"""Output helper utilities.

Each ensemble member is written as one table with a ``system`` row and one
row per phase for every step, plus a JSON sidecar holding the member inputs
and runtime provenance.  Tables are CSV by default; Parquet is written with
``pyarrow``.  A directory that already holds result tables is refused before
any member runs.
"""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from ..constants import LIQUID_PHASE
from ..crystallisation import CrystallisationResult
from ..errors import ConfigurationError, OutputConflictError
from ..provenance import gather_runtime_provenance

logger = logging.getLogger(__name__)

RESULT_SUFFIXES: tuple[str, ...] = (".csv", ".parquet")
SYSTEM_ROW = "system"
METADATA_SUFFIX = "_metadata.json"
SUMMARY_FILENAME = "summary.json"

ResultFormat = Literal["csv", "parquet"]


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _resolve_directory(path: str | Path | None) -> Path:
    if path is None or str(path) == "":
        return Path.cwd()
    return Path(path).expanduser()


def existing_results(path: str | Path | None) -> List[Path]:
    directory = _resolve_directory(path)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in RESULT_SUFFIXES)


def directory_is_clean(path: str | Path | None) -> bool:
    """Return ``True`` when ``path`` is missing or holds no result tables."""

    return not existing_results(path)


def setup_output_directory(path: str | Path | None) -> Path:
    """Create the output directory, refusing one that already holds results.

    An empty or ``None`` path means the current working directory.
    """

    directory = _resolve_directory(path)
    if directory.exists() and not directory.is_dir():
        raise ConfigurationError(f"Output path '{directory}' exists and is not a directory")
    conflicts = existing_results(directory)
    if conflicts:
        raise OutputConflictError(directory, [p.name for p in conflicts])
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def results_to_frame(
    result: CrystallisationResult,
    *,
    liquid_phase: str = LIQUID_PHASE,
) -> pd.DataFrame:
    """Flatten a crystallisation path into one row per phase per step.

    The ``system`` row of each step carries the bulk supplied to the solver;
    the liquid row carries the melt composition.  Other phases leave the
    oxide columns empty.
    """

    rows: List[Dict[str, Any]] = []
    oxides: Sequence[str] = result.steps[0].bulk.oxides if result.steps else ()
    for step in result.steps:
        base = {
            "step": step.step,
            "T_C": step.temperature,
            "P_kbar": step.pressure,
            "melt_fraction": step.melt_fraction,
            "log10_fO2": step.fugacity_log10 if step.fugacity_log10 is not None else math.nan,
            "buffer": step.buffer,
            "offset": step.offset if step.offset is not None else math.nan,
        }
        system = {**base, "phase": SYSTEM_ROW, "phase_fraction": 1.0}
        system.update(step.bulk.as_dict())
        rows.append(system)
        for phase, fraction in zip(step.phases, step.phase_fractions):
            row = {**base, "phase": phase, "phase_fraction": fraction}
            if phase == liquid_phase:
                row.update(step.melt_composition.as_dict())
            else:
                row.update({ox: math.nan for ox in oxides})
            rows.append(row)
    columns = [
        "step",
        "T_C",
        "P_kbar",
        "phase",
        "phase_fraction",
        "melt_fraction",
        "log10_fO2",
        "buffer",
        "offset",
        *oxides,
    ]
    return pd.DataFrame(rows, columns=columns)


def write_parquet(df: pd.DataFrame, path: Path, *, compression: str = "snappy") -> None:
    """Write a DataFrame to a Parquet file using ``pyarrow``.

    Parameters
    ----------
    df:
        Table to serialise.
    path:
        Destination file path.
    """
    _ensure_parent(path)
    table = pa.Table.from_pandas(df, preserve_index=False)
    units = {"T_C": "degC", "P_kbar": "kbar", "log10_fO2": "log10(bar)"}
    metadata = dict(table.schema.metadata or {})
    metadata[b"units"] = json.dumps({k: v for k, v in units.items() if k in df.columns}).encode()
    table = table.replace_schema_metadata(metadata)
    pq.write_table(table, path, compression=compression)


def write_csv(df: pd.DataFrame, path: Path) -> None:
    _ensure_parent(path)
    df.to_csv(path, index=False)


def write_metadata(metadata: Mapping[str, Any], path: Path) -> None:
    """Persist the per-member sidecar."""

    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(metadata, fh, indent=2, sort_keys=True, default=str)


def write_summary(summary: Mapping[str, Any], path: Path) -> None:
    """Write a summary dictionary to ``summary.json``.

    The JSON file is formatted with a small indentation for human
    readability.
    """
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(summary, fh, indent=2, sort_keys=True, default=str)


class ResultSink:
    """Writes one result table and sidecar per ensemble member."""

    def __init__(
        self,
        outdir: str | Path | None = None,
        *,
        fmt: ResultFormat = "csv",
        liquid_phase: str = LIQUID_PHASE,
        provenance: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if fmt not in ("csv", "parquet"):
            raise ConfigurationError(f"Unknown result format '{fmt}'; expected 'csv' or 'parquet'")
        self.outdir = _resolve_directory(outdir)
        self.fmt = fmt
        self.liquid_phase = liquid_phase
        self._provenance = dict(provenance) if provenance is not None else None

    def directory_is_clean(self) -> bool:
        return directory_is_clean(self.outdir)

    def prepare(self) -> Path:
        """Run the pre-flight check and create the directory."""

        self.outdir = setup_output_directory(self.outdir)
        return self.outdir

    @property
    def provenance(self) -> Dict[str, Any]:
        if self._provenance is None:
            self._provenance = gather_runtime_provenance()
        return self._provenance

    def table_path(self, identifier: str) -> Path:
        return self.outdir / f"{identifier or 'run'}.{self.fmt}"

    def metadata_path(self, identifier: str) -> Path:
        return self.outdir / f"{identifier or 'run'}{METADATA_SUFFIX}"

    def write(
        self,
        identifier: str,
        result: CrystallisationResult,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Path:
        """Write the table and sidecar for one member and return the table path."""

        table_path = self.table_path(identifier)
        frame = results_to_frame(result, liquid_phase=self.liquid_phase)
        if self.fmt == "parquet":
            write_parquet(frame, table_path)
        else:
            write_csv(frame, table_path)
        sidecar: Dict[str, Any] = {
            "identifier": identifier,
            "mode": result.mode,
            "termination": result.termination.value,
            "n_steps": len(result),
            "oxides": list(result.steps[0].bulk.oxides) if result.steps else [],
            "table": table_path.name,
            "provenance": self.provenance,
        }
        if metadata:
            sidecar.update(metadata)
        write_metadata(sidecar, self.metadata_path(identifier))
        logger.debug("Wrote %s (%d rows)", table_path, len(frame))
        return table_path

    def write_summary(self, summary: Mapping[str, Any]) -> Path:
        path = self.outdir / SUMMARY_FILENAME
        write_summary(summary, path)
        return path


__all__ = [
    "RESULT_SUFFIXES",
    "ResultSink",
    "directory_is_clean",
    "existing_results",
    "results_to_frame",
    "setup_output_directory",
    "write_csv",
    "write_metadata",
    "write_parquet",
    "write_summary",
]
