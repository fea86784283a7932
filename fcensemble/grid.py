"""Cartesian expansion of normalised inputs into ensemble members."""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from . import constants
from .composition import MonteCarloBulkSet, OxideComposition
from .errors import ConfigurationError
from .inputs import CompositionField, NormalizedInputs, coerce_inputs
from .temperature import resolve_temperatures

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnsembleMember:
    """One fully resolved input assignment and its output identifier."""

    index: int
    identifier: str
    values: Mapping[str, Any]
    bulk: Optional[OxideComposition]
    temperatures: Tuple[float, ...]

    @property
    def pressure(self) -> float:
        return float(self.values[constants.PRESSURE])

    @property
    def buffer(self) -> Optional[str]:
        return self.values.get(constants.BUFFER)

    @property
    def offset(self) -> Optional[float]:
        return self.values.get(constants.OFFSET)

    def describe(self) -> Dict[str, Any]:
        """Return a JSON-friendly view of the member."""

        payload: Dict[str, Any] = {
            "index": self.index,
            "identifier": self.identifier,
            "values": {key: value for key, value in self.values.items() if key != constants.T_ARRAY},
            "n_temperatures": len(self.temperatures),
        }
        if self.bulk is not None:
            payload["bulk"] = self.bulk.as_dict()
        return payload


def _format_value(value: Any) -> str:
    return str(value)


def _identifier_parts(field: Any, position: int) -> List[str]:
    if isinstance(field, CompositionField):
        if field.source == "monte_carlo":
            width = len(str(len(field)))
            return [f"{constants.BULK}={position + 1:0{width}d}"]
        sample = field.samples[position]
        return [
            f"{oxide}={_format_value(sample[field.oxides.index(oxide)])}"
            for oxide in field.variable_oxides
        ]
    return [f"{field.key}={_format_value(field.values[position])}"]


class ParameterGrid:
    """Lazy, restartable sequence of :class:`EnsembleMember`.

    The right-most variable field varies fastest.  Iterating twice yields the
    same members in the same order; each member owns its own bulk snapshot.
    """

    def __init__(self, inputs: NormalizedInputs) -> None:
        self.inputs = inputs
        self._constant = inputs.constant_fields
        self._variable = inputs.variable_fields
        logger.debug(
            "ParameterGrid: %d members over %d variable fields",
            inputs.n_members,
            len(self._variable),
        )

    def __len__(self) -> int:
        return self.inputs.n_members

    def __iter__(self) -> Iterator[EnsembleMember]:
        positions = itertools.product(*(range(len(field)) for field in self._variable))
        for index, combination in enumerate(positions):
            yield self._member(index, combination)

    def __getitem__(self, index: int) -> EnsembleMember:
        total = len(self)
        if index < 0:
            index += total
        if not 0 <= index < total:
            raise IndexError(f"Ensemble member {index} out of range for {total} members")
        combination: List[int] = []
        remainder = index
        for field in reversed(self._variable):
            remainder, position = divmod(remainder, len(field))
            combination.append(position)
        return self._member(index, tuple(reversed(combination)))

    @property
    def identifiers(self) -> List[str]:
        return [member.identifier for member in self]

    def _member(self, index: int, combination: Sequence[int]) -> EnsembleMember:
        values: Dict[str, Any] = {}
        bulk: Optional[OxideComposition] = None
        for field in self._constant:
            if isinstance(field, CompositionField):
                bulk = field.composition(0)
            else:
                values[field.key] = field.value
        parts: List[str] = []
        for field, position in zip(self._variable, combination):
            if isinstance(field, CompositionField):
                bulk = field.composition(position)
            else:
                values[field.key] = field.values[position]
            parts.extend(_identifier_parts(field, position))
        # expand_grid accepts partitions without a temperature schedule.
        try:
            temperatures = resolve_temperatures(values)
        except ConfigurationError:
            temperatures = ()
        return EnsembleMember(
            index=index,
            identifier="_".join(parts),
            values=MappingProxyType(values),
            bulk=bulk,
            temperatures=temperatures,
        )


def expand_grid(
    variable_inputs: Mapping[str, Any],
    constant_inputs: Optional[Mapping[str, Any]] = None,
) -> ParameterGrid:
    """Expand raw partitions into members without chemistry validation.

    Use :func:`fcensemble.inputs.prepare_inputs` followed by
    :class:`ParameterGrid` for inputs that feed the solver.
    """

    return ParameterGrid(coerce_inputs(constant_inputs or {}, variable_inputs))


def generate_output_filename(variable_inputs: Mapping[str, Any], combination: Mapping[str, Any]) -> str:
    """Return ``key=value`` parts for ``combination`` joined by ``_``.

    ``combination`` maps each variable key to its selected value; a selected
    bulk is a mapping of oxide to content and contributes one part per oxide
    that varies in ``variable_inputs``.
    """

    parts: List[str] = []
    for key, declared in variable_inputs.items():
        if key not in combination:
            raise ConfigurationError(f"Combination is missing variable input '{key}'")
        selected = combination[key]
        if key == constants.BULK and isinstance(declared, Mapping):
            for oxide, column in declared.items():
                if isinstance(column, (str, bytes)) or not isinstance(column, Sequence):
                    continue
                parts.append(f"{oxide}={_format_value(selected[oxide])}")
        else:
            parts.append(f"{key}={_format_value(selected)}")
    return "_".join(parts)


def generate_output_filename_mc(variable_inputs: Mapping[str, Any], combination: Mapping[str, Any]) -> str:
    """Like :func:`generate_output_filename`, naming the sampled bulk by index."""

    parts: List[str] = []
    for key, declared in variable_inputs.items():
        if key not in combination:
            raise ConfigurationError(f"Combination is missing variable input '{key}'")
        selected = combination[key]
        if key == constants.BULK_MC:
            samples = MonteCarloBulkSet.from_payload(declared)
            vector = tuple(float(v) for v in selected)
            if vector not in samples.samples:
                raise ConfigurationError("Selected bulk composition is not one of the Monte Carlo samples")
            width = len(str(len(samples)))
            parts.append(f"{constants.BULK}={samples.samples.index(vector) + 1:0{width}d}")
        else:
            parts.append(f"{key}={_format_value(selected)}")
    return "_".join(parts)


__all__ = [
    "EnsembleMember",
    "ParameterGrid",
    "expand_grid",
    "generate_output_filename",
    "generate_output_filename_mc",
]
