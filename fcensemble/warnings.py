"""Structured warning classes for the :mod:`fcensemble` package."""
from __future__ import annotations


class FCEnsembleWarning(UserWarning):
    """Base warning class for fcensemble."""


class SamplingWarning(FCEnsembleWarning):
    """Monte Carlo sampling adjusted drawn values."""


__all__ = [
    "FCEnsembleWarning",
    "SamplingWarning",
]
