"""Ensemble driver.

``run_ensemble`` checks the output directory once, expands the grid and runs
every member through the crystallisation stepper.  Members share no state,
so they may run on a thread or process pool.  A solver failure marks only
that member as failed; the report lists completed and failed members by
identifier.
"""
from __future__ import annotations

import concurrent.futures
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional

from . import constants
from .crystallisation import carry_over_for, run_member
from .errors import ConfigurationError, OracleError, OutputConflictError
from .grid import EnsembleMember, ParameterGrid
from .inputs import NormalizedInputs, prepare_inputs
from .io.writer import ResultSink, existing_results
from .montecarlo import prepare_inputs_mc
from .provenance import gather_runtime_provenance
from .runtime.progress import ProgressReporter
from .schema import EnsembleConfig

logger = logging.getLogger(__name__)

Backend = Literal["thread", "process"]


@dataclass(frozen=True)
class MemberOutcome:
    index: int
    identifier: str
    status: Literal["completed", "failed"]
    n_steps: int
    termination: Optional[str] = None
    path: Optional[str] = None
    error: Optional[str] = None


@dataclass
class EnsembleReport:
    """Outcome of every ensemble member, ordered by member index."""

    outdir: Path
    outcomes: List[MemberOutcome] = field(default_factory=list)
    elapsed_s: float = 0.0

    @property
    def completed(self) -> List[str]:
        return [item.identifier for item in self.outcomes if item.status == "completed"]

    @property
    def failed(self) -> List[str]:
        return [item.identifier for item in self.outcomes if item.status == "failed"]

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outdir": str(self.outdir),
            "n_members": len(self.outcomes),
            "n_completed": len(self.completed),
            "n_failed": len(self.failed),
            "completed": self.completed,
            "failed": self.failed,
            "elapsed_s": round(self.elapsed_s, 3),
            "members": [asdict(item) for item in self.outcomes],
        }


@dataclass(frozen=True)
class _RunOptions:
    mode: str
    units: str
    liquid_phase: str


def _run_single_member(
    member: EnsembleMember,
    oracle: Callable[..., Any],
    sink: ResultSink,
    options: _RunOptions,
) -> MemberOutcome:
    identifier = member.identifier or "run"
    try:
        result = run_member(
            oracle,
            member,
            mode=options.mode,
            units=options.units,
            liquid_phase=options.liquid_phase,
        )
    except OracleError as exc:
        logger.warning("Ensemble member %s failed after %d step(s): %s", identifier, len(exc.steps), exc)
        return MemberOutcome(
            index=member.index,
            identifier=identifier,
            status="failed",
            n_steps=len(exc.steps),
            error=str(exc),
        )
    try:
        path = sink.write(identifier, result, {"member": member.describe(), "units": options.units})
    except OSError as exc:
        logger.warning("Ensemble member %s could not be written: %s", identifier, exc)
        return MemberOutcome(
            index=member.index,
            identifier=identifier,
            status="failed",
            n_steps=len(result),
            termination=result.termination.value,
            error=f"write failed: {exc}",
        )
    return MemberOutcome(
        index=member.index,
        identifier=identifier,
        status="completed",
        n_steps=len(result),
        termination=result.termination.value,
        path=str(path),
    )


def _run_indexed_member(
    inputs: NormalizedInputs,
    index: int,
    oracle: Callable[..., Any],
    sink: ResultSink,
    options: _RunOptions,
) -> MemberOutcome:
    # Process workers rebuild the member from the picklable inputs.
    return _run_single_member(ParameterGrid(inputs)[index], oracle, sink, options)


def run_ensemble(
    inputs: NormalizedInputs,
    oracle: Callable[..., Any],
    *,
    mode: str = "fractional",
    units: str = "wt",
    outdir: str | Path | None = None,
    fmt: Literal["csv", "parquet"] = "csv",
    jobs: int = 1,
    backend: Backend = "thread",
    progress: bool = False,
    liquid_phase: str = constants.LIQUID_PHASE,
    provenance: Optional[Mapping[str, Any]] = None,
) -> EnsembleReport:
    """Run every member of the ensemble and write one result set each.

    Raises
    ------
    OutputConflictError
        ``outdir`` already holds result tables; nothing is run.
    ConfigurationError
        Unknown mode, units, format or backend.
    """

    carry_over_for(mode)
    if units not in constants.COMPOSITION_UNITS:
        raise ConfigurationError(f"Unknown composition units '{units}'; expected 'wt' or 'mol'")
    if backend not in ("thread", "process"):
        raise ConfigurationError(f"Unknown backend '{backend}'; expected 'thread' or 'process'")
    sink = ResultSink(
        outdir,
        fmt=fmt,
        liquid_phase=liquid_phase,
        provenance=provenance if provenance is not None else gather_runtime_provenance(),
    )
    if not sink.directory_is_clean():
        raise OutputConflictError(sink.outdir, [p.name for p in existing_results(sink.outdir)])
    sink.prepare()

    grid = ParameterGrid(inputs)
    total = len(grid)
    options = _RunOptions(mode=mode, units=units, liquid_phase=liquid_phase)
    reporter = ProgressReporter(total, enabled=progress)
    logger.info("Running %d ensemble member(s) in %s mode into %s", total, mode, sink.outdir)
    start = time.perf_counter()
    outcomes: List[MemberOutcome] = []

    def _record(outcome: MemberOutcome) -> None:
        outcomes.append(outcome)
        reporter.update(len(outcomes), failed=sum(item.status == "failed" for item in outcomes))

    if jobs <= 1:
        for member in grid:
            _record(_run_single_member(member, oracle, sink, options))
    else:
        executor_cls = (
            concurrent.futures.ProcessPoolExecutor
            if backend == "process"
            else concurrent.futures.ThreadPoolExecutor
        )
        with executor_cls(max_workers=jobs) as pool:
            futures = [
                pool.submit(_run_indexed_member, inputs, index, oracle, sink, options)
                for index in range(total)
            ]
            for future in concurrent.futures.as_completed(futures):
                _record(future.result())
    reporter.finish(len(outcomes), failed=sum(item.status == "failed" for item in outcomes))

    outcomes.sort(key=lambda item: item.index)
    report = EnsembleReport(outdir=sink.outdir, outcomes=outcomes, elapsed_s=time.perf_counter() - start)
    sink.write_summary(report.to_dict())
    if report.failed:
        logger.warning(
            "%d of %d ensemble member(s) failed: %s",
            len(report.failed),
            total,
            ", ".join(report.failed),
        )
    else:
        logger.info("All %d ensemble member(s) completed", total)
    return report


def inputs_from_config(cfg: EnsembleConfig) -> NormalizedInputs:
    """Normalise the inputs of a run file, sampling the bulk when requested."""

    mc = cfg.monte_carlo
    if mc is None:
        return prepare_inputs(cfg.constant_inputs, cfg.variable_inputs)
    return prepare_inputs_mc(
        mc.bulk,
        mc.uncertainty,
        mc.n_samples,
        cfg.constant_inputs,
        cfg.variable_inputs,
        replace_negatives=mc.replace_negatives,
        seed=mc.seed,
    )


def run_from_config(
    cfg: EnsembleConfig,
    oracle: Callable[..., Any],
    *,
    progress: Optional[bool] = None,
    config_path: Optional[Path] = None,
) -> EnsembleReport:
    """Normalise, expand and run the ensemble described by ``cfg``."""

    inputs = inputs_from_config(cfg)
    return run_ensemble(
        inputs,
        oracle,
        mode=cfg.mode,
        units=cfg.units,
        outdir=cfg.io.outdir,
        fmt=cfg.io.format,
        jobs=cfg.jobs,
        backend=cfg.backend,
        progress=cfg.io.progress if progress is None else progress,
        liquid_phase=cfg.oracle.liquid_phase,
        provenance=gather_runtime_provenance(
            config_path=config_path,
            oracle_entrypoint=cfg.oracle.entrypoint,
        ),
    )


__all__ = [
    "MemberOutcome",
    "EnsembleReport",
    "run_ensemble",
    "inputs_from_config",
    "run_from_config",
]
