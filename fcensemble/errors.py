"""Custom exceptions for the :mod:`fcensemble` package.

Configuration and domain errors are raised while the inputs are normalised,
before any solver call is made.  Oracle errors are scoped to a single
ensemble member; output conflicts abort the whole ensemble up front.
"""
from __future__ import annotations

from typing import Any, Iterable, Sequence


class FCEnsembleError(Exception):
    """Base exception for crystallisation ensemble errors."""


class ConfigurationError(FCEnsembleError, ValueError):
    """Malformed or missing parameters."""


class MissingRequiredInput(ConfigurationError):
    """A required input key is absent from both partitions."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Missing required input '{key}'")


class ZeroTemperatureStep(MissingRequiredInput):
    """The temperature step is exactly zero."""

    def __init__(self) -> None:
        super().__init__("T_step", "The temperature step cannot be zero.")


class TypeMismatch(ConfigurationError):
    """A value does not have the shape expected for its partition."""


class KeyConflict(ConfigurationError):
    """The same key (or oxide) appears in both partitions."""

    def __init__(self, keys: Iterable[str], message: str | None = None) -> None:
        self.keys = tuple(sorted(keys))
        text = message or "Keys present in both constant and variable inputs"
        super().__init__(f"{text}: {', '.join(self.keys)}")


class UnknownInput(ConfigurationError):
    """An input key is not part of the accepted schema."""

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys = tuple(sorted(keys))
        super().__init__(f"Unknown input key(s): {', '.join(self.keys)}")


class DomainError(FCEnsembleError, ValueError):
    """A chemistry rule is violated."""


class InvalidOxide(DomainError):
    def __init__(self, oxides: Iterable[str]) -> None:
        self.oxides = tuple(oxides)
        super().__init__(f"Invalid oxide(s): {', '.join(self.oxides)}")


class MissingOxide(DomainError):
    def __init__(self, oxides: Iterable[str]) -> None:
        self.oxides = tuple(oxides)
        super().__init__(f"Missing oxide(s): {', '.join(self.oxides)}")


class ConflictingOxide(DomainError):
    """Both or neither of ``O`` and ``Fe2O3`` are present."""


class NegativeValue(DomainError):
    def __init__(self, field: str, values: Sequence[Any]) -> None:
        self.field = field
        self.values = tuple(values)
        rendered = ", ".join(str(v) for v in self.values)
        super().__init__(f"Negative value(s) for '{field}': {rendered}")


class InvalidBuffer(DomainError):
    def __init__(self, buffers: Iterable[str]) -> None:
        self.buffers = tuple(buffers)
        super().__init__(f"Invalid buffer(s): {', '.join(self.buffers)}")


class MissingBufferForOffset(DomainError):
    def __init__(self) -> None:
        super().__init__("An offset was given but no buffer was specified; add a 'buffer' input.")


class UncertaintyKeyError(DomainError):
    """Nominal composition and uncertainty map disagree on their oxides."""

    def __init__(self, oxides: Iterable[str], message: str) -> None:
        self.oxides = tuple(sorted(oxides))
        super().__init__(f"{message}: {', '.join(self.oxides)}")


class MissingUncertaintyError(UncertaintyKeyError):
    def __init__(self, oxides: Iterable[str]) -> None:
        super().__init__(oxides, "No uncertainty given for oxide(s)")


class ExtraUncertaintyError(UncertaintyKeyError):
    def __init__(self, oxides: Iterable[str]) -> None:
        super().__init__(oxides, "Uncertainty given for oxide(s) missing from the bulk")


class OracleError(FCEnsembleError, RuntimeError):
    """The external solver failed for one ensemble member.

    ``steps`` holds the step results completed before the failure.
    """

    def __init__(self, message: str, *, identifier: str | None = None, steps: Sequence[Any] = ()) -> None:
        self.identifier = identifier
        self.steps = tuple(steps)
        super().__init__(message)


class OutputConflictError(FCEnsembleError, FileExistsError):
    """The output directory already contains result files."""

    def __init__(self, path: Any, files: Iterable[Any] = ()) -> None:
        self.path = path
        self.files = tuple(str(f) for f in files)
        detail = f" ({', '.join(self.files)})" if self.files else ""
        super().__init__(
            f"The output directory '{path}' already contains result files{detail}. "
            "Choose another directory or remove them."
        )


__all__ = [
    "FCEnsembleError",
    "ConfigurationError",
    "MissingRequiredInput",
    "ZeroTemperatureStep",
    "TypeMismatch",
    "KeyConflict",
    "UnknownInput",
    "DomainError",
    "InvalidOxide",
    "MissingOxide",
    "ConflictingOxide",
    "NegativeValue",
    "InvalidBuffer",
    "MissingBufferForOffset",
    "UncertaintyKeyError",
    "MissingUncertaintyError",
    "ExtraUncertaintyError",
    "OracleError",
    "OutputConflictError",
]
