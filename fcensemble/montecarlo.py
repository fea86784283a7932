"""Monte Carlo sampling of bulk compositions.

Each oxide is drawn independently from a normal distribution centred on its
nominal content with its absolute 1-sigma uncertainty.  The resulting
:class:`~fcensemble.composition.MonteCarloBulkSet` is consumed through the
``bulk_mc`` variable input.
"""
from __future__ import annotations

import logging
import warnings
from numbers import Integral
from typing import Any, Mapping, Optional

import numpy as np

from .composition import MonteCarloBulkSet, OxideComposition, coerce_real
from .errors import ConfigurationError, ExtraUncertaintyError, MissingUncertaintyError, NegativeValue
from .inputs import NormalizedInputs, prepare_inputs
from .warnings import SamplingWarning

logger = logging.getLogger(__name__)

NEGATIVE_SAMPLES_MESSAGE = "Negative values replaced by zero."


def _as_mapping(bulk: Mapping[str, Any] | OxideComposition) -> Mapping[str, Any]:
    if isinstance(bulk, OxideComposition):
        return bulk.as_dict()
    if not isinstance(bulk, Mapping):
        raise ConfigurationError(f"Expected a mapping of oxide to value, got {type(bulk).__name__}")
    return bulk


def generate_bulk_mc(
    bulk: Mapping[str, Any] | OxideComposition,
    abs_unc: Mapping[str, Any],
    n_samples: int,
    *,
    replace_negatives: bool = True,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> MonteCarloBulkSet:
    """Draw ``n_samples`` bulk compositions around ``bulk``.

    Parameters
    ----------
    bulk:
        Nominal oxide contents.
    abs_unc:
        Absolute 1-sigma uncertainty per oxide; must cover exactly the oxides
        of ``bulk``.
    n_samples:
        Number of compositions to draw.
    replace_negatives:
        Clamp negative draws to zero.  One :class:`SamplingWarning` is emitted
        per call when any value was clamped.
    rng, seed:
        Random generator, or a seed for a fresh :func:`numpy.random.default_rng`.

    Notes
    -----
    An uncertainty of zero reproduces the nominal value exactly.
    """

    nominal = _as_mapping(bulk)
    uncertainty = _as_mapping(abs_unc)
    missing = [ox for ox in nominal if ox not in uncertainty]
    if missing:
        raise MissingUncertaintyError(missing)
    extra = [ox for ox in uncertainty if ox not in nominal]
    if extra:
        raise ExtraUncertaintyError(extra)
    if isinstance(n_samples, bool) or not isinstance(n_samples, Integral) or n_samples < 1:
        raise ConfigurationError(f"n_samples must be a positive integer, got {n_samples!r}")

    oxides = tuple(str(ox) for ox in nominal)
    means = np.array([coerce_real(nominal[ox], f"bulk[{ox}]") for ox in oxides], dtype=float)
    sigmas = np.array([coerce_real(uncertainty[ox], f"uncertainty[{ox}]") for ox in oxides], dtype=float)
    negative_sigma = [ox for ox, sigma in zip(oxides, sigmas) if sigma < 0.0]
    if negative_sigma:
        raise NegativeValue("uncertainty", negative_sigma)

    generator = rng if rng is not None else np.random.default_rng(seed)
    draws = np.empty((int(n_samples), len(oxides)), dtype=float)
    for col, (mean, sigma) in enumerate(zip(means, sigmas)):
        if sigma == 0.0:
            draws[:, col] = mean
        else:
            draws[:, col] = generator.normal(mean, sigma, int(n_samples))

    if replace_negatives:
        negative = draws < 0.0
        n_clamped = int(np.count_nonzero(negative))
        if n_clamped:
            draws[negative] = 0.0
            logger.warning(
                "generate_bulk_mc: clamped %d negative value(s) to zero across %d samples",
                n_clamped,
                int(n_samples),
            )
            warnings.warn(NEGATIVE_SAMPLES_MESSAGE, SamplingWarning, stacklevel=2)

    logger.debug("generate_bulk_mc: drew %d samples over oxides %s", int(n_samples), list(oxides))
    return MonteCarloBulkSet(oxides, tuple(tuple(row) for row in draws.tolist()))


def validate_bulk_mc_structure(payload: Any) -> MonteCarloBulkSet:
    """Return ``payload`` as a :class:`MonteCarloBulkSet` or raise ``TypeMismatch``."""

    return MonteCarloBulkSet.from_payload(payload)


def prepare_inputs_mc(
    bulk: Mapping[str, Any] | OxideComposition,
    abs_unc: Mapping[str, Any],
    n_samples: int,
    constant_inputs: Mapping[str, Any],
    variable_inputs: Optional[Mapping[str, Any]] = None,
    *,
    replace_negatives: bool = True,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> NormalizedInputs:
    """Sample a bulk set and normalise it together with the other inputs.

    The samples are declared as the last variable input, so they vary fastest.
    """

    samples = generate_bulk_mc(
        bulk,
        abs_unc,
        n_samples,
        replace_negatives=replace_negatives,
        rng=rng,
        seed=seed,
    )
    variable = dict(variable_inputs or {})
    variable.update(samples.to_variable_inputs())
    return prepare_inputs(constant_inputs, variable)


__all__ = [
    "NEGATIVE_SAMPLES_MESSAGE",
    "generate_bulk_mc",
    "validate_bulk_mc_structure",
    "prepare_inputs_mc",
]
