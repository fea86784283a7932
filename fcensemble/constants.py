"""Fixed vocabularies shared by the normaliser, stepper and sampler."""
from __future__ import annotations

# Oxide system accepted by the solver, in the order used for new compositions.
ACCEPTED_OXIDES: tuple[str, ...] = (
    "SiO2",
    "TiO2",
    "Al2O3",
    "Cr2O3",
    "FeO",
    "MgO",
    "CaO",
    "Na2O",
    "K2O",
    "H2O",
    "O",
    "Fe2O3",
)
OXYGEN_OXIDES: frozenset[str] = frozenset({"O", "Fe2O3"})
CORE_OXIDES: tuple[str, ...] = tuple(ox for ox in ACCEPTED_OXIDES if ox not in OXYGEN_OXIDES)
FREE_OXYGEN = "O"
WATER = "H2O"

OXYGEN_BUFFERS: tuple[str, ...] = ("qfm", "qif", "nno", "hm", "cco")
ACTIVITY_BUFFERS: tuple[str, ...] = ("aH2O", "aO2", "aMgO", "aFeO", "aAl2O3", "aTiO2", "aSiO2")
ACCEPTED_BUFFERS: frozenset[str] = frozenset(OXYGEN_BUFFERS + ACTIVITY_BUFFERS)

# Zero pressures and non-water oxide contents are bumped to this value.
ZERO_REPLACEMENT = 0.001

LIQUID_PHASE = "liq"
COMPOSITION_UNITS: tuple[str, ...] = ("wt", "mol")

# Input keys
PRESSURE = "P"
T_START = "T_start"
T_STOP = "T_stop"
T_STEP = "T_step"
T_ARRAY = "T_array"
BULK = "bulk"
BULK_MC = "bulk_mc"
BUFFER = "buffer"
OFFSET = "offset"

INPUT_KEYS: tuple[str, ...] = (
    PRESSURE,
    T_START,
    T_STOP,
    T_STEP,
    T_ARRAY,
    BULK,
    BULK_MC,
    BUFFER,
    OFFSET,
)
TEMPERATURE_RANGE_KEYS: tuple[str, ...] = (T_START, T_STOP, T_STEP)

__all__ = [
    "ACCEPTED_OXIDES",
    "OXYGEN_OXIDES",
    "CORE_OXIDES",
    "FREE_OXYGEN",
    "WATER",
    "OXYGEN_BUFFERS",
    "ACTIVITY_BUFFERS",
    "ACCEPTED_BUFFERS",
    "ZERO_REPLACEMENT",
    "LIQUID_PHASE",
    "COMPOSITION_UNITS",
    "PRESSURE",
    "T_START",
    "T_STOP",
    "T_STEP",
    "T_ARRAY",
    "BULK",
    "BULK_MC",
    "BUFFER",
    "OFFSET",
    "INPUT_KEYS",
    "TEMPERATURE_RANGE_KEYS",
]
