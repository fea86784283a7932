"""Temperature-stepped crystallisation of one ensemble member.

A single loop drives both regimes.  After each solver call a carry-over
strategy decides which bulk composition the next step sees:

* :class:`FractionalCarryOver` removes the crystals by passing on the melt
  composition only, with free oxygen restored to its initial content so the
  buffer never runs out of oxygen;
* :class:`BulkCarryOver` keeps the bulk unchanged so solids and melt stay in
  equilibrium.

The run ends when fractional mode finds no liquid, when the melt fraction
drops to zero, or when the temperature schedule is exhausted.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from . import constants
from .composition import OxideComposition
from .errors import ConfigurationError, OracleError
from .grid import EnsembleMember
from .oracle import OracleResult

logger = logging.getLogger(__name__)


class TerminationReason(str, enum.Enum):
    NO_LIQUID_PHASE = "no_liquid_phase"
    SOLIDUS_REACHED = "solidus_reached"
    STEPS_EXHAUSTED = "steps_exhausted"


@dataclass(frozen=True)
class StepResult:
    """Solver output for one temperature step."""

    step: int
    temperature: float
    pressure: float
    bulk: OxideComposition
    phases: Tuple[str, ...]
    phase_fractions: Tuple[float, ...]
    melt_fraction: float
    melt_composition: OxideComposition
    has_liquid: bool
    buffer: Optional[str] = None
    offset: Optional[float] = None
    fugacity_log10: Optional[float] = None


@dataclass
class SimulationState:
    bulk: OxideComposition
    melt_fraction: float
    step: int
    oxides: Tuple[str, ...]


@dataclass(frozen=True)
class CrystallisationResult:
    steps: Tuple[StepResult, ...]
    termination: TerminationReason
    mode: str

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def temperatures(self) -> Tuple[float, ...]:
        return tuple(step.temperature for step in self.steps)


# ===========================================================================
# Carry-over strategies
# ===========================================================================


class CarryOver(Protocol):
    name: str

    def next_bulk(
        self,
        state: SimulationState,
        result: StepResult,
        initial: OxideComposition,
    ) -> Optional[OxideComposition]:
        """Return the bulk for the next step, or ``None`` to stop."""


class FractionalCarryOver:
    name = "fractional"

    def next_bulk(
        self,
        state: SimulationState,
        result: StepResult,
        initial: OxideComposition,
    ) -> Optional[OxideComposition]:
        if not result.has_liquid:
            return None
        bulk = result.melt_composition
        if constants.FREE_OXYGEN in bulk:
            bulk = bulk.with_value(constants.FREE_OXYGEN, initial[constants.FREE_OXYGEN])
        return bulk


class BulkCarryOver:
    name = "bulk"

    def next_bulk(
        self,
        state: SimulationState,
        result: StepResult,
        initial: OxideComposition,
    ) -> Optional[OxideComposition]:
        return state.bulk


_MODE_ALIASES: Dict[str, Callable[[], CarryOver]] = {
    "fractional": FractionalCarryOver,
    "frac": FractionalCarryOver,
    "bulk": BulkCarryOver,
    "equilibrium": BulkCarryOver,
}


def carry_over_for(mode: str) -> CarryOver:
    """Return the carry-over strategy for a mode name."""

    try:
        factory = _MODE_ALIASES[str(mode).strip().lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown crystallisation mode '{mode}'; expected 'fractional' or 'bulk'"
        ) from None
    return factory()


# ===========================================================================
# Stepper
# ===========================================================================


def _solve_step(
    oracle: Callable[..., Any],
    state: SimulationState,
    temperature: float,
    pressure: float,
    units: str,
    buffer: Optional[str],
    offset: Optional[float],
    liquid_phase: str,
) -> StepResult:
    payload = oracle(
        pressure,
        temperature,
        list(state.bulk.values),
        list(state.oxides),
        units,
        buffer=buffer,
        offset=offset,
    )
    solution = OracleResult.from_payload(payload)
    if len(solution.melt_bulk) != len(state.oxides):
        raise OracleError(
            f"Solver returned {len(solution.melt_bulk)} melt values for {len(state.oxides)} oxides"
        )
    return StepResult(
        step=state.step,
        temperature=temperature,
        pressure=pressure,
        bulk=state.bulk,
        phases=solution.phases,
        phase_fractions=solution.phase_fractions,
        melt_fraction=solution.melt_fraction,
        melt_composition=state.bulk.with_values(solution.melt_bulk),
        has_liquid=liquid_phase in solution.phases,
        buffer=buffer,
        offset=offset,
        fugacity_log10=solution.fugacity_log10,
    )


def run_crystallisation(
    oracle: Callable[..., Any],
    pressure: float,
    temperatures: Sequence[float],
    bulk: OxideComposition,
    *,
    mode: str = "fractional",
    units: str = "wt",
    buffer: Optional[str] = None,
    offset: Optional[float] = None,
    liquid_phase: str = constants.LIQUID_PHASE,
    identifier: Optional[str] = None,
) -> CrystallisationResult:
    """Step through ``temperatures`` calling the solver once per step.

    Parameters
    ----------
    oracle:
        Solver callable, see :mod:`fcensemble.oracle`.
    pressure:
        Pressure in kbar, held constant along the path.
    temperatures:
        Ordered temperature schedule in degrees Celsius.
    bulk:
        Starting bulk composition.
    mode:
        ``"fractional"`` or ``"bulk"``.
    units:
        Composition units passed through to the solver (``"wt"`` or ``"mol"``).

    Returns
    -------
    CrystallisationResult
        The steps actually executed and why the run stopped.

    Raises
    ------
    OracleError
        The solver raised or returned a malformed result.  ``steps`` on the
        exception holds the results completed before the failure.
    """

    schedule = tuple(float(t) for t in temperatures)
    if not schedule:
        raise ConfigurationError("The temperature schedule is empty")
    if units not in constants.COMPOSITION_UNITS:
        raise ConfigurationError(f"Unknown composition units '{units}'; expected 'wt' or 'mol'")
    carry = carry_over_for(mode)
    label = identifier or "run"
    state = SimulationState(bulk=bulk, melt_fraction=1.0, step=0, oxides=bulk.oxides)
    steps: List[StepResult] = []
    termination = TerminationReason.STEPS_EXHAUSTED

    for step_no, temperature in enumerate(schedule, start=1):
        state.step = step_no
        try:
            result = _solve_step(oracle, state, temperature, float(pressure), units, buffer, offset, liquid_phase)
        except OracleError as exc:
            raise OracleError(
                f"{label}: step {step_no} at T={temperature} failed: {exc}",
                identifier=identifier,
                steps=steps,
            ) from exc
        except Exception as exc:
            raise OracleError(
                f"{label}: solver raised at step {step_no} (T={temperature}): {exc}",
                identifier=identifier,
                steps=steps,
            ) from exc
        steps.append(result)
        state.melt_fraction = result.melt_fraction
        logger.debug(
            "%s: step %d T=%.2f melt_fraction=%.4f phases=%s",
            label,
            step_no,
            temperature,
            result.melt_fraction,
            ",".join(result.phases),
        )
        next_bulk = carry.next_bulk(state, result, bulk)
        if next_bulk is None:
            termination = TerminationReason.NO_LIQUID_PHASE
            break
        state.bulk = next_bulk
        if result.melt_fraction <= 0.0:
            termination = TerminationReason.SOLIDUS_REACHED
            break

    logger.info(
        "%s: %s crystallisation stopped after %d/%d steps (%s)",
        label,
        carry.name,
        len(steps),
        len(schedule),
        termination.value,
    )
    return CrystallisationResult(steps=tuple(steps), termination=termination, mode=carry.name)


def run_member(
    oracle: Callable[..., Any],
    member: EnsembleMember,
    *,
    mode: str = "fractional",
    units: str = "wt",
    liquid_phase: str = constants.LIQUID_PHASE,
) -> CrystallisationResult:
    """Run :func:`run_crystallisation` for one ensemble member."""

    if member.bulk is None:
        raise ConfigurationError(f"Ensemble member '{member.identifier}' has no bulk composition")
    return run_crystallisation(
        oracle,
        member.pressure,
        member.temperatures,
        member.bulk,
        mode=mode,
        units=units,
        buffer=member.buffer,
        offset=member.offset,
        liquid_phase=liquid_phase,
        identifier=member.identifier,
    )


__all__ = [
    "TerminationReason",
    "StepResult",
    "SimulationState",
    "CrystallisationResult",
    "CarryOver",
    "FractionalCarryOver",
    "BulkCarryOver",
    "carry_over_for",
    "run_crystallisation",
    "run_member",
]
