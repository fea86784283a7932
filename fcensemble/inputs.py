"""Normalisation of constant and variable simulation inputs.

``prepare_inputs`` turns the two user-facing partitions into one immutable
:class:`NormalizedInputs` value.  The checks run in a fixed order and each
one assumes the previous ones passed:

1. shapes (scalars in the constant partition, sequences in the variable one);
2. required keys (pressure, temperature schedule, bulk composition);
3. disjointness of the partitions, then merging of split bulk fragments;
4. oxide set of the merged bulk;
5. positivity of pressures and oxide contents;
6. substitution of exact zeros by :data:`~fcensemble.constants.ZERO_REPLACEMENT`;
7. buffer names;
8. an offset requires a buffer.

The input mappings are never modified.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from . import constants
from .composition import MonteCarloBulkSet, OxideComposition, coerce_real
from .errors import (
    ConflictingOxide,
    InvalidBuffer,
    InvalidOxide,
    KeyConflict,
    MissingBufferForOffset,
    MissingOxide,
    MissingRequiredInput,
    NegativeValue,
    TypeMismatch,
    UnknownInput,
    ZeroTemperatureStep,
)

logger = logging.getLogger(__name__)

BulkSource = Literal["constant", "grid", "monte_carlo"]


# ===========================================================================
# Field types
# ===========================================================================


@dataclass(frozen=True)
class ScalarField:
    """One scalar input; a constant field holds exactly one value."""

    key: str
    values: Tuple[Any, ...]
    variable: bool = False

    def __len__(self) -> int:
        return len(self.values)

    @property
    def value(self) -> Any:
        if self.variable:
            raise TypeError(f"Variable field '{self.key}' has no single value")
        return self.values[0]


@dataclass(frozen=True)
class CompositionField:
    """The bulk composition, as one or more vectors over a fixed oxide order.

    ``variable_oxides`` lists the oxides given as sequences in a grid-style
    variable bulk; they name the member identifiers.  Monte Carlo bulks are
    identified by sample index instead.
    """

    oxides: Tuple[str, ...]
    samples: Tuple[Tuple[float, ...], ...]
    variable_oxides: Tuple[str, ...] = ()
    source: BulkSource = "constant"

    key = constants.BULK

    @property
    def variable(self) -> bool:
        return self.source != "constant"

    def __len__(self) -> int:
        return len(self.samples)

    def composition(self, index: int) -> OxideComposition:
        return OxideComposition(self.oxides, self.samples[index])

    def compositions(self) -> Tuple[OxideComposition, ...]:
        return tuple(self.composition(idx) for idx in range(len(self.samples)))

    def column(self, oxide: str) -> Tuple[float, ...]:
        position = self.oxides.index(oxide)
        return tuple(sample[position] for sample in self.samples)

    def replace_zeros(self) -> "CompositionField":
        return CompositionField(
            self.oxides,
            tuple(self.composition(idx).replace_zeros().values for idx in range(len(self.samples))),
            self.variable_oxides,
            self.source,
        )


InputField = Union[ScalarField, CompositionField]


@dataclass(frozen=True)
class NormalizedInputs:
    """Validated, merged inputs ready for grid expansion."""

    fields: Tuple[InputField, ...]
    declared_keys: Tuple[str, ...]

    def keys(self) -> Tuple[str, ...]:
        """Union of the keys the caller supplied, in declaration order."""

        return self.declared_keys

    def field(self, key: str) -> InputField:
        for item in self.fields:
            if item.key == key:
                return item
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return key in self.declared_keys

    @property
    def constant_fields(self) -> Tuple[InputField, ...]:
        return tuple(item for item in self.fields if not item.variable)

    @property
    def variable_fields(self) -> Tuple[InputField, ...]:
        return tuple(item for item in self.fields if item.variable)

    @property
    def bulk(self) -> Optional[CompositionField]:
        for item in self.fields:
            if isinstance(item, CompositionField):
                return item
        return None

    @property
    def oxides(self) -> Tuple[str, ...]:
        bulk = self.bulk
        return bulk.oxides if bulk is not None else ()

    @property
    def n_members(self) -> int:
        return math.prod(len(item) for item in self.variable_fields)

    def constant_inputs(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for item in self.constant_fields:
            if isinstance(item, CompositionField):
                result[item.key] = item.composition(0)
            else:
                result[item.key] = item.value
        return result

    def variable_inputs(self) -> Dict[str, Tuple[Any, ...]]:
        result: Dict[str, Tuple[Any, ...]] = {}
        for item in self.variable_fields:
            if isinstance(item, CompositionField):
                result[item.key] = item.compositions()
            else:
                result[item.key] = item.values
        return result


# ===========================================================================
# Stage 1: shapes
# ===========================================================================


def _is_sequence(value: Any) -> bool:
    if isinstance(value, (str, bytes, Mapping)):
        return False
    return isinstance(value, (Sequence, np.ndarray))


def _real_sequence(value: Any, label: str) -> Tuple[float, ...]:
    if not _is_sequence(value):
        raise TypeMismatch(f"{label} must be a sequence of numbers, got {type(value).__name__}")
    items = value.tolist() if isinstance(value, np.ndarray) else list(value)
    if not items:
        raise TypeMismatch(f"{label} must not be empty")
    return tuple(coerce_real(item, f"{label}[{idx}]") for idx, item in enumerate(items))


def _coerce_constant(key: str, value: Any) -> Any:
    if key == constants.BULK_MC:
        raise TypeMismatch("'bulk_mc' can only be given as a variable input")
    if key == constants.T_ARRAY:
        return _real_sequence(value, constants.T_ARRAY)
    if key == constants.BULK:
        if not isinstance(value, Mapping) or not value:
            raise TypeMismatch("Constant input 'bulk' must be a non-empty mapping of oxide to value")
        return {str(ox): coerce_real(v, f"bulk[{ox}]") for ox, v in value.items()}
    if key == constants.BUFFER:
        if not isinstance(value, str):
            raise TypeMismatch(f"Constant input 'buffer' must be a string, got {value!r}")
        return value
    if _is_sequence(value) or isinstance(value, Mapping):
        raise TypeMismatch(
            f"Constant input '{key}' must be a scalar, got {type(value).__name__}; "
            "move it to the variable inputs to sweep over it"
        )
    return coerce_real(value, key)


def _coerce_variable(key: str, value: Any) -> Any:
    if key == constants.T_ARRAY:
        raise TypeMismatch("'T_array' can only be given as a constant input")
    if key == constants.BULK_MC:
        return MonteCarloBulkSet.from_payload(value)
    if key == constants.BULK:
        if not isinstance(value, Mapping) or not value:
            raise TypeMismatch("Variable input 'bulk' must be a non-empty mapping of oxide to sequence")
        fragment: Dict[str, Any] = {}
        lengths = set()
        for ox, item in value.items():
            if _is_sequence(item):
                column = _real_sequence(item, f"bulk[{ox}]")
                lengths.add(len(column))
                fragment[str(ox)] = column
            else:
                fragment[str(ox)] = coerce_real(item, f"bulk[{ox}]")
        if not lengths:
            raise TypeMismatch("Variable input 'bulk' needs at least one oxide given as a sequence")
        if len(lengths) > 1:
            raise TypeMismatch(
                f"All variable bulk sequences must have the same length, got lengths {sorted(lengths)}"
            )
        return fragment
    if not _is_sequence(value):
        raise TypeMismatch(f"Variable input '{key}' must be a sequence, got {type(value).__name__}")
    items = value.tolist() if isinstance(value, np.ndarray) else list(value)
    if not items:
        raise TypeMismatch(f"Variable input '{key}' must not be empty")
    if key == constants.BUFFER:
        if not all(isinstance(item, str) for item in items):
            raise TypeMismatch("Variable input 'buffer' must only contain strings")
        return tuple(items)
    return tuple(coerce_real(item, f"{key}[{idx}]") for idx, item in enumerate(items))


def _check_shapes(
    constant_inputs: Mapping[str, Any],
    variable_inputs: Mapping[str, Any],
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    for label, partition in (("constant_inputs", constant_inputs), ("variable_inputs", variable_inputs)):
        if not isinstance(partition, Mapping):
            raise TypeMismatch(f"{label} must be a mapping, got {type(partition).__name__}")
    unknown = {str(key) for key in (*constant_inputs, *variable_inputs) if key not in constants.INPUT_KEYS}
    if unknown:
        raise UnknownInput(unknown)
    constant = {key: _coerce_constant(key, value) for key, value in constant_inputs.items()}
    variable = {key: _coerce_variable(key, value) for key, value in variable_inputs.items()}
    return constant, variable


# ===========================================================================
# Stages 2 and 3: required keys, disjointness, bulk merge
# ===========================================================================


def _values_of(key: str, constant: Mapping[str, Any], variable: Mapping[str, Any]) -> Tuple[Any, ...]:
    if key in constant:
        return (constant[key],)
    if key in variable:
        return tuple(variable[key])
    return ()


def _check_required(constant: Mapping[str, Any], variable: Mapping[str, Any]) -> None:
    present = set(constant) | set(variable)
    if constants.PRESSURE not in present:
        raise MissingRequiredInput(constants.PRESSURE)
    if constants.T_ARRAY not in present:
        for key in constants.TEMPERATURE_RANGE_KEYS:
            if key not in present:
                raise MissingRequiredInput(key)
    if constants.BULK not in present and constants.BULK_MC not in present:
        raise MissingRequiredInput(constants.BULK)
    if any(step == 0.0 for step in _values_of(constants.T_STEP, constant, variable)):
        raise ZeroTemperatureStep()


def _check_disjoint(constant: Mapping[str, Any], variable: Mapping[str, Any]) -> None:
    shared = (set(constant) & set(variable)) - {constants.BULK}
    if shared:
        raise KeyConflict(shared)
    if constants.BULK in variable and constants.BULK_MC in variable:
        raise KeyConflict(
            (constants.BULK, constants.BULK_MC),
            "A variable bulk and a Monte Carlo bulk cannot be combined",
        )
    present = set(constant) | set(variable)
    if constants.T_ARRAY in present:
        clash = present & set(constants.TEMPERATURE_RANGE_KEYS)
        if clash:
            raise KeyConflict(clash | {constants.T_ARRAY}, "T_array cannot be combined with a start/stop/step range")
    fixed = constant.get(constants.BULK)
    if fixed:
        if constants.BULK in variable:
            varying = set(variable[constants.BULK])
        elif constants.BULK_MC in variable:
            varying = set(variable[constants.BULK_MC].oxides)
        else:
            varying = set()
        overlap = set(fixed) & varying
        if overlap:
            raise KeyConflict(overlap, "Oxides present in both constant and variable bulk")


def _merge_bulk(
    constant: Mapping[str, Any],
    variable: Mapping[str, Any],
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Fold the bulk fragments into a single :class:`CompositionField`.

    Constant oxides are broadcast across every variable bulk vector (or every
    Monte Carlo sample).  The merged field replaces the ``bulk``/``bulk_mc``
    entries in place, keeping the declaration order of the variable keys.
    """

    constant = dict(constant)
    fixed: Dict[str, float] = constant.get(constants.BULK) or {}
    variable_out: Dict[str, Any] = {}
    merged_variable = False
    for key, value in variable.items():
        if key == constants.BULK_MC:
            samples = value.broadcast(fixed)
            variable_out[constants.BULK] = CompositionField(samples.oxides, samples.samples, (), "monte_carlo")
            merged_variable = True
        elif key == constants.BULK:
            length = max(len(column) for column in value.values() if isinstance(column, tuple))
            varying = tuple(ox for ox, column in value.items() if isinstance(column, tuple))
            columns = {
                ox: column if isinstance(column, tuple) else (column,) * length
                for ox, column in value.items()
            }
            for ox, amount in fixed.items():
                columns[ox] = (amount,) * length
            oxides = tuple(columns)
            samples = tuple(tuple(columns[ox][idx] for ox in oxides) for idx in range(length))
            variable_out[constants.BULK] = CompositionField(oxides, samples, varying, "grid")
            merged_variable = True
        else:
            variable_out[key] = value
    if merged_variable:
        constant.pop(constants.BULK, None)
        if fixed:
            logger.debug("Broadcast constant oxides %s across the variable bulk", list(fixed))
    elif fixed:
        constant[constants.BULK] = CompositionField(tuple(fixed), (tuple(fixed.values()),))
    shared = set(constant) & set(variable_out)
    if shared:
        raise KeyConflict(shared)
    return constant, variable_out


def _bulk_field(constant: Mapping[str, Any], variable: Mapping[str, Any]) -> CompositionField:
    field = variable.get(constants.BULK, constant.get(constants.BULK))
    if not isinstance(field, CompositionField):
        raise MissingRequiredInput(constants.BULK)
    return field


# ===========================================================================
# Stages 4 to 8: chemistry rules
# ===========================================================================


def validate_oxides(oxides: Iterable[str]) -> None:
    """Check that ``oxides`` is the fixed oxide system with one oxygen carrier.

    Raises
    ------
    InvalidOxide
        An oxide is not part of the accepted vocabulary.
    ConflictingOxide
        Both ``O`` and ``Fe2O3`` are present, or neither is.
    MissingOxide
        One of the required oxides is absent.
    """

    present = list(oxides)
    invalid = [ox for ox in present if ox not in constants.ACCEPTED_OXIDES]
    if invalid:
        raise InvalidOxide(invalid)
    seen = set(present)
    if constants.OXYGEN_OXIDES <= seen:
        raise ConflictingOxide("Only one of 'O' and 'Fe2O3' may be given, not both")
    missing = [ox for ox in constants.CORE_OXIDES if ox not in seen]
    if missing:
        raise MissingOxide(missing)
    if not seen & constants.OXYGEN_OXIDES:
        raise ConflictingOxide("One of 'O' or 'Fe2O3' must be given")


def _check_positive(constant: Mapping[str, Any], variable: Mapping[str, Any]) -> None:
    pressures = _values_of(constants.PRESSURE, constant, variable)
    negative = [value for value in pressures if value < 0.0]
    if negative:
        raise NegativeValue(constants.PRESSURE, negative)
    bulk = _bulk_field(constant, variable)
    for oxide in bulk.oxides:
        negative = [value for value in bulk.column(oxide) if value < 0.0]
        if negative:
            raise NegativeValue(f"bulk.{oxide}", negative)


def _bump_pressure(value: float) -> float:
    return constants.ZERO_REPLACEMENT if value == 0.0 else value


def _replace_degenerate(
    constant: Mapping[str, Any],
    variable: Mapping[str, Any],
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    constant = dict(constant)
    variable = dict(variable)
    if constants.PRESSURE in constant:
        constant[constants.PRESSURE] = _bump_pressure(constant[constants.PRESSURE])
    if constants.PRESSURE in variable:
        variable[constants.PRESSURE] = tuple(_bump_pressure(p) for p in variable[constants.PRESSURE])
    for partition in (constant, variable):
        if constants.BULK in partition:
            partition[constants.BULK] = partition[constants.BULK].replace_zeros()
    return constant, variable


def _check_buffers(constant: Mapping[str, Any], variable: Mapping[str, Any]) -> None:
    buffers = _values_of(constants.BUFFER, constant, variable)
    invalid = [name for name in dict.fromkeys(buffers) if name not in constants.ACCEPTED_BUFFERS]
    if invalid:
        raise InvalidBuffer(invalid)


def _check_offset(constant: Mapping[str, Any], variable: Mapping[str, Any]) -> None:
    present = set(constant) | set(variable)
    if constants.OFFSET in present and constants.BUFFER not in present:
        raise MissingBufferForOffset()


# ===========================================================================
# Assembly
# ===========================================================================


def _assemble(
    constant: Mapping[str, Any],
    variable: Mapping[str, Any],
    declared_keys: Sequence[str],
) -> NormalizedInputs:
    fields: List[InputField] = []
    for key, value in constant.items():
        fields.append(value if isinstance(value, CompositionField) else ScalarField(key, (value,)))
    for key, value in variable.items():
        fields.append(value if isinstance(value, CompositionField) else ScalarField(key, tuple(value), True))
    return NormalizedInputs(tuple(fields), tuple(dict.fromkeys(declared_keys)))


def coerce_inputs(
    constant_inputs: Mapping[str, Any],
    variable_inputs: Mapping[str, Any],
) -> NormalizedInputs:
    """Shape-check and merge the partitions without any chemistry rules."""

    constant, variable = _check_shapes(constant_inputs, variable_inputs)
    _check_disjoint(constant, variable)
    constant, variable = _merge_bulk(constant, variable)
    return _assemble(constant, variable, (*constant_inputs, *variable_inputs))


def prepare_inputs(
    constant_inputs: Mapping[str, Any],
    variable_inputs: Mapping[str, Any],
) -> NormalizedInputs:
    """Validate and merge the constant and variable input partitions.

    Parameters
    ----------
    constant_inputs:
        Mapping of input key to a scalar (``bulk`` maps oxides to scalars).
    variable_inputs:
        Mapping of input key to a sequence of values.  ``bulk`` maps oxides to
        equal-length sequences; ``bulk_mc`` holds Monte Carlo samples.

    Returns
    -------
    NormalizedInputs
        A new value; neither argument is modified.

    Raises
    ------
    ConfigurationError
        Malformed, missing or conflicting keys.
    DomainError
        Oxide set, sign, buffer or offset rules are violated.
    """

    constant, variable = _check_shapes(constant_inputs, variable_inputs)
    _check_required(constant, variable)
    _check_disjoint(constant, variable)
    constant, variable = _merge_bulk(constant, variable)
    validate_oxides(_bulk_field(constant, variable).oxides)
    _check_positive(constant, variable)
    constant, variable = _replace_degenerate(constant, variable)
    _check_buffers(constant, variable)
    _check_offset(constant, variable)
    normalized = _assemble(constant, variable, (*constant_inputs, *variable_inputs))
    logger.debug(
        "prepare_inputs: %d constant and %d variable fields, %d ensemble members",
        len(normalized.constant_fields),
        len(normalized.variable_fields),
        normalized.n_members,
    )
    return normalized


__all__ = [
    "ScalarField",
    "CompositionField",
    "InputField",
    "NormalizedInputs",
    "coerce_inputs",
    "prepare_inputs",
    "validate_oxides",
]
