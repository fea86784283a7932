"""Temperature schedules for a crystallisation run."""
from __future__ import annotations

import math
from typing import Any, Mapping, Tuple

import numpy as np

from .constants import T_ARRAY, T_START, T_STEP, T_STOP
from .errors import MissingRequiredInput, ZeroTemperatureStep


def create_temperature_array(start: float, stop: float, step: float) -> np.ndarray:
    """Return the temperatures from ``start`` towards ``stop`` in increments of ``step``.

    The sign of ``step`` is taken from the direction ``start -> stop``, so a
    positive step with ``start > stop`` still produces a cooling path.
    ``stop`` is included when it lies on the grid.

    Raises
    ------
    ZeroTemperatureStep
        If ``step`` is exactly zero, whatever ``start`` and ``stop`` are.
    """

    start = float(start)
    stop = float(stop)
    step = float(step)
    if step == 0.0:
        raise ZeroTemperatureStep()
    if start == stop:
        return np.array([start])
    step = abs(step) if stop > start else -abs(step)
    # Guard against (stop - start) / step landing just below an integer.
    n_steps = int(math.floor((stop - start) / step + 1.0e-9)) + 1
    return start + step * np.arange(n_steps, dtype=float)


def resolve_temperatures(values: Mapping[str, Any]) -> Tuple[float, ...]:
    """Return the temperature schedule of one resolved input assignment."""

    if T_ARRAY in values:
        return tuple(float(t) for t in values[T_ARRAY])
    for key in (T_START, T_STOP, T_STEP):
        if key not in values:
            raise MissingRequiredInput(key)
    array = create_temperature_array(values[T_START], values[T_STOP], values[T_STEP])
    return tuple(float(t) for t in array)


__all__ = ["create_temperature_array", "resolve_temperatures"]
