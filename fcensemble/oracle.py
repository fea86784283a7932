"""Interface to the external equilibrium solver.

The solver is any callable with the signature::

    solve(pressure, temperature, bulk, oxides, units, buffer=None, offset=None)

returning either an :class:`OracleResult` or a mapping with the keys
``phases``, ``phase_fraction``, ``melt_fraction``, ``melt_bulk`` and
optionally ``fugacity_log10``.  Pressures are in kbar and temperatures in
degrees Celsius.  Each call must be an independent equilibrium solve.
"""
from __future__ import annotations

import importlib
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence, Tuple

from .errors import ConfigurationError, OracleError

logger = logging.getLogger(__name__)


class Oracle(Protocol):
    def __call__(
        self,
        pressure: float,
        temperature: float,
        bulk: Sequence[float],
        oxides: Sequence[str],
        units: str,
        buffer: Optional[str] = None,
        offset: Optional[float] = None,
    ) -> Any:
        ...


@dataclass(frozen=True)
class OracleResult:
    """One equilibrium solution."""

    phases: Tuple[str, ...]
    phase_fractions: Tuple[float, ...]
    melt_fraction: float
    melt_bulk: Tuple[float, ...]
    fugacity_log10: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "OracleResult":
        """Coerce a solver return value, raising :class:`OracleError` when malformed."""

        if isinstance(payload, cls):
            return payload

        def _get(name: str, *aliases: str, required: bool = True) -> Any:
            for key in (name, *aliases):
                if isinstance(payload, Mapping):
                    if key in payload:
                        return payload[key]
                elif hasattr(payload, key):
                    return getattr(payload, key)
            if required:
                raise OracleError(f"Solver result is missing '{name}'")
            return None

        try:
            phases = tuple(str(name) for name in _get("phases", "ph"))
            fractions = tuple(float(x) for x in _get("phase_fraction", "phase_fractions", "ph_frac"))
            melt_fraction = float(_get("melt_fraction", "frac_M"))
            melt_bulk = tuple(float(x) for x in _get("melt_bulk", "melt_composition", "bulk_M"))
            fugacity = _get("fugacity_log10", "fO2", required=False)
        except (TypeError, ValueError) as exc:
            raise OracleError(f"Malformed solver result: {exc}") from exc
        if len(phases) != len(fractions):
            raise OracleError(
                f"Solver returned {len(phases)} phases but {len(fractions)} phase fractions"
            )
        if not math.isfinite(melt_fraction):
            raise OracleError(f"Solver returned a non-finite melt fraction ({melt_fraction})")
        return cls(
            phases=phases,
            phase_fractions=fractions,
            melt_fraction=melt_fraction,
            melt_bulk=melt_bulk,
            fugacity_log10=None if fugacity is None else float(fugacity),
        )


def load_oracle(entrypoint: str) -> Callable[..., Any]:
    """Resolve a ``module:function`` string to the solver callable."""

    module_name, sep, func_name = str(entrypoint).partition(":")
    if not sep or not module_name or not func_name:
        raise ConfigurationError(f"Invalid oracle entrypoint '{entrypoint}' (expected 'module:function')")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Unable to import oracle module '{module_name}': {exc}") from exc
    target: Any = module
    for attr in func_name.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as exc:
            raise ConfigurationError(
                f"Oracle module '{module_name}' has no attribute '{func_name}'"
            ) from exc
    if not callable(target):
        raise ConfigurationError(f"Oracle entrypoint '{entrypoint}' is not callable")
    logger.info("Loaded oracle entrypoint %s", entrypoint)
    return target


__all__ = ["Oracle", "OracleResult", "load_oracle"]
