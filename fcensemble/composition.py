"""Immutable oxide composition containers.

:class:`OxideComposition` is the single-rock bulk handed to the solver and
:class:`MonteCarloBulkSet` the batch of sampled bulks produced by
:mod:`fcensemble.montecarlo`.  Neither is mutated after construction; every
update returns a new instance.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Iterator, List, Mapping, Sequence, Tuple

import numpy as np

from .constants import WATER, ZERO_REPLACEMENT
from .errors import TypeMismatch


def coerce_real(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (Real, np.number)):
        raise TypeMismatch(f"{label} must be a real number, got {value!r}")
    result = float(value)
    if not math.isfinite(result):
        raise TypeMismatch(f"{label} must be finite, got {value!r}")
    return result


@dataclass(frozen=True)
class OxideComposition:
    """Ordered mapping from oxide symbol to concentration."""

    oxides: Tuple[str, ...]
    values: Tuple[float, ...]

    def __post_init__(self) -> None:
        oxides = tuple(str(ox) for ox in self.oxides)
        raw = tuple(self.values)
        if len(oxides) != len(raw):
            raise TypeMismatch(f"Composition has {len(oxides)} oxides but {len(raw)} values")
        values = tuple(coerce_real(v, f"bulk[{ox}]") for ox, v in zip(oxides, raw))
        if len(set(oxides)) != len(oxides):
            raise TypeMismatch(f"Duplicate oxides in composition: {list(oxides)}")
        object.__setattr__(self, "oxides", oxides)
        object.__setattr__(self, "values", values)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "OxideComposition":
        return cls(tuple(mapping.keys()), tuple(mapping.values()))

    def __len__(self) -> int:
        return len(self.oxides)

    def __iter__(self) -> Iterator[str]:
        return iter(self.oxides)

    def __contains__(self, oxide: object) -> bool:
        return oxide in self.oxides

    def __getitem__(self, oxide: str) -> float:
        try:
            return self.values[self.oxides.index(oxide)]
        except ValueError:
            raise KeyError(oxide) from None

    def as_dict(self) -> Dict[str, float]:
        return dict(zip(self.oxides, self.values))

    def with_value(self, oxide: str, value: float) -> "OxideComposition":
        """Return a copy with ``oxide`` set to ``value``."""

        if oxide not in self.oxides:
            raise KeyError(oxide)
        values = list(self.values)
        values[self.oxides.index(oxide)] = value
        return OxideComposition(self.oxides, tuple(values))

    def with_values(self, values: Sequence[float]) -> "OxideComposition":
        """Return a copy holding ``values`` in the current oxide order."""

        if len(values) != len(self.oxides):
            raise TypeMismatch(
                f"Expected {len(self.oxides)} values for oxides {list(self.oxides)}, got {len(values)}"
            )
        return OxideComposition(self.oxides, tuple(values))

    def replace_zeros(self) -> "OxideComposition":
        """Return a copy with zero contents (water excepted) bumped to the floor value."""

        return OxideComposition(self.oxides, _replace_zero_values(self.oxides, self.values))


def _replace_zero_values(oxides: Sequence[str], values: Sequence[float]) -> Tuple[float, ...]:
    return tuple(
        ZERO_REPLACEMENT if value == 0.0 and oxide != WATER else value
        for oxide, value in zip(oxides, values)
    )


@dataclass(frozen=True)
class MonteCarloBulkSet:
    """Oxide list plus ``N`` sampled composition vectors in that oxide order."""

    oxides: Tuple[str, ...]
    samples: Tuple[Tuple[float, ...], ...]

    def __post_init__(self) -> None:
        oxides = tuple(str(ox) for ox in self.oxides)
        if not oxides:
            raise TypeMismatch("bulk_mc.oxides must not be empty")
        if len(set(oxides)) != len(oxides):
            raise TypeMismatch(f"Duplicate oxides in bulk_mc: {list(oxides)}")
        samples = tuple(tuple(sample) for sample in self.samples)
        if not samples:
            raise TypeMismatch("bulk_mc.bulk must hold at least one sample")
        cleaned: List[Tuple[float, ...]] = []
        for idx, sample in enumerate(samples, start=1):
            if len(sample) != len(oxides):
                raise TypeMismatch(
                    f"bulk_mc sample {idx} has {len(sample)} values for {len(oxides)} oxides"
                )
            cleaned.append(
                tuple(coerce_real(v, f"bulk_mc sample {idx} [{ox}]") for ox, v in zip(oxides, sample))
            )
        object.__setattr__(self, "oxides", oxides)
        object.__setattr__(self, "samples", tuple(cleaned))

    @classmethod
    def from_payload(cls, payload: Any) -> "MonteCarloBulkSet":
        """Validate a ``{"oxides": [...], "bulk": [[...], ...]}`` mapping."""

        if isinstance(payload, cls):
            return payload
        if not isinstance(payload, Mapping):
            raise TypeMismatch("bulk_mc must be a mapping with 'oxides' and 'bulk' keys")
        keys = set(payload.keys())
        if keys != {"oxides", "bulk"}:
            raise TypeMismatch(
                f"bulk_mc must contain exactly the keys 'oxides' and 'bulk', got {sorted(map(str, keys))}"
            )
        oxides = payload["oxides"]
        samples = payload["bulk"]
        if isinstance(oxides, (str, bytes)) or not isinstance(oxides, Sequence):
            raise TypeMismatch("bulk_mc.oxides must be a list of oxide names")
        if not all(isinstance(ox, str) for ox in oxides):
            raise TypeMismatch("bulk_mc.oxides must only contain strings")
        if isinstance(samples, np.ndarray):
            samples = samples.tolist()
        if isinstance(samples, (str, bytes)) or not isinstance(samples, Sequence):
            raise TypeMismatch("bulk_mc.bulk must be a list of composition vectors")
        for sample in samples:
            if isinstance(sample, (str, bytes)) or not isinstance(sample, (Sequence, np.ndarray)):
                raise TypeMismatch("bulk_mc.bulk must be a list of composition vectors")
        return cls(tuple(oxides), tuple(tuple(sample) for sample in samples))

    def __len__(self) -> int:
        return len(self.samples)

    def composition(self, index: int) -> OxideComposition:
        return OxideComposition(self.oxides, self.samples[index])

    def to_array(self) -> np.ndarray:
        return np.asarray(self.samples, dtype=float).reshape(len(self.samples), len(self.oxides))

    def to_dict(self) -> Dict[str, Any]:
        return {"oxides": list(self.oxides), "bulk": [list(sample) for sample in self.samples]}

    def to_variable_inputs(self) -> Dict[str, "MonteCarloBulkSet"]:
        return {"bulk_mc": self}

    def broadcast(self, constant: Mapping[str, float]) -> "MonteCarloBulkSet":
        """Append constant oxide contents to every sample."""

        if not constant:
            return self
        extra_oxides = tuple(constant.keys())
        extra_values = tuple(constant.values())
        return MonteCarloBulkSet(
            self.oxides + extra_oxides,
            tuple(sample + extra_values for sample in self.samples),
        )


__all__ = ["OxideComposition", "MonteCarloBulkSet", "coerce_real"]
