"""Configuration schema for crystallisation ensembles.

The Pydantic models mirror the YAML run files read by
:func:`fcensemble.config_utils.load_config`.  Only the outer structure is
checked here; the chemistry of ``constant_inputs``/``variable_inputs`` is
validated by :func:`fcensemble.inputs.prepare_inputs`.

Example::

    mode: fractional
    units: wt
    oracle:
      entrypoint: mysolver.bindings:solve
    constant_inputs:
      P: 2.0
      T_start: 1200.0
      T_stop: 800.0
      T_step: 10.0
      buffer: qfm
      bulk: {SiO2: 48.4, TiO2: 1.2, ...}
    variable_inputs:
      offset: [-1.0, 0.0, 1.0]
    io:
      outdir: out/qfm_sweep
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from . import constants
from .errors import ConfigurationError

_MODE_ALIASES = {
    "fractional": "fractional",
    "frac": "fractional",
    "bulk": "bulk",
    "equilibrium": "bulk",
}


class OracleConfig(BaseModel):
    """Where to find the equilibrium solver."""

    entrypoint: str = Field(..., description="Solver callable as 'module:function'")
    liquid_phase: str = Field(constants.LIQUID_PHASE, description="Phase label the solver uses for melt")

    @field_validator("entrypoint")
    def _check_entrypoint(cls, value: str) -> str:
        module_name, sep, func_name = value.partition(":")
        if not sep or not module_name.strip() or not func_name.strip():
            raise ConfigurationError(f"oracle.entrypoint '{value}' must look like 'module:function'")
        return value.strip()


class MonteCarloConfig(BaseModel):
    """Sample the bulk composition instead of listing it."""

    bulk: Dict[str, float] = Field(..., description="Nominal oxide contents")
    uncertainty: Dict[str, float] = Field(..., description="Absolute 1-sigma uncertainty per oxide")
    n_samples: int = Field(..., ge=1, description="Number of sampled compositions")
    seed: Optional[int] = Field(None, description="Seed for numpy.random.default_rng")
    replace_negatives: bool = True


class IOConfig(BaseModel):
    outdir: Optional[Path] = Field(None, description="Output directory; defaults to the working directory")
    format: Literal["csv", "parquet"] = "csv"
    quiet: bool = False
    progress: bool = False


class EnsembleConfig(BaseModel):
    """Top-level run file."""

    mode: Literal["fractional", "bulk"] = "fractional"
    units: Literal["wt", "mol"] = "wt"
    oracle: OracleConfig
    constant_inputs: Dict[str, Any] = Field(default_factory=dict)
    variable_inputs: Dict[str, Any] = Field(default_factory=dict)
    monte_carlo: Optional[MonteCarloConfig] = None
    io: IOConfig = Field(default_factory=IOConfig)
    jobs: int = Field(1, ge=1, description="Ensemble members run concurrently")
    backend: Literal["thread", "process"] = "thread"

    @model_validator(mode="before")
    def _normalise_mode(cls, data: Any) -> Any:
        """Accept ``frac``/``equilibrium`` as aliases of the two modes."""

        if not isinstance(data, dict) or "mode" not in data:
            return data
        text = str(data["mode"]).strip().lower()
        if text not in _MODE_ALIASES:
            raise ConfigurationError(f"mode must be 'fractional' or 'bulk', got '{data['mode']}'")
        return {**data, "mode": _MODE_ALIASES[text]}

    @model_validator(mode="after")
    def _check_monte_carlo(cls, model: "EnsembleConfig") -> "EnsembleConfig":
        if model.monte_carlo is None:
            return model
        clash = {constants.BULK, constants.BULK_MC} & set(model.variable_inputs)
        if clash:
            raise ConfigurationError(
                f"monte_carlo cannot be combined with variable_inputs.{sorted(clash)[0]}"
            )
        return model
