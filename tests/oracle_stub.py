"""Deterministic stand-ins for the equilibrium solver."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

LIQUIDUS_C = 1250.0
SOLIDUS_C = 950.0


def solve(
    pressure: float,
    temperature: float,
    bulk: Sequence[float],
    oxides: Sequence[str],
    units: str,
    buffer: Optional[str] = None,
    offset: Optional[float] = None,
) -> Dict[str, Any]:
    """Melt fraction falls linearly from the liquidus to the solidus."""

    melt = min(max((temperature - SOLIDUS_C) / (LIQUIDUS_C - SOLIDUS_C), 0.0), 1.0)
    if melt > 0.0:
        phases = ["liq", "ol"]
        fractions = [melt, 1.0 - melt]
        melt_bulk = [value * 1.01 if ox == "SiO2" else value for ox, value in zip(oxides, bulk)]
    else:
        phases = ["ol", "cpx"]
        fractions = [0.6, 0.4]
        melt_bulk = [0.0] * len(bulk)
    payload: Dict[str, Any] = {
        "phases": phases,
        "phase_fraction": fractions,
        "melt_fraction": melt,
        "melt_bulk": melt_bulk,
    }
    if buffer is not None:
        payload["fugacity_log10"] = -8.0 + (offset or 0.0)
    return payload


def solve_fails_above_2kbar(
    pressure: float,
    temperature: float,
    bulk: Sequence[float],
    oxides: Sequence[str],
    units: str,
    buffer: Optional[str] = None,
    offset: Optional[float] = None,
) -> Dict[str, Any]:
    if pressure > 2.0 and temperature < 1150.0:
        raise RuntimeError("minimisation did not converge")
    return solve(pressure, temperature, bulk, oxides, units, buffer=buffer, offset=offset)


class ScriptedOracle:
    """Replays per-step melt fractions and liquid presence, recording every call."""

    def __init__(
        self,
        melt_fractions: Sequence[float],
        *,
        liquid: Optional[Sequence[bool]] = None,
        melt_scale: float = 0.9,
    ) -> None:
        self.melt_fractions = list(melt_fractions)
        self.liquid = list(liquid) if liquid is not None else [True] * len(self.melt_fractions)
        self.melt_scale = melt_scale
        self.calls: List[Dict[str, Any]] = []

    def __call__(
        self,
        pressure: float,
        temperature: float,
        bulk: Sequence[float],
        oxides: Sequence[str],
        units: str,
        buffer: Optional[str] = None,
        offset: Optional[float] = None,
    ) -> Dict[str, Any]:
        index = len(self.calls)
        self.calls.append(
            {
                "pressure": pressure,
                "temperature": temperature,
                "bulk": list(bulk),
                "oxides": list(oxides),
                "units": units,
                "buffer": buffer,
                "offset": offset,
            }
        )
        melt = self.melt_fractions[index]
        phases = ["liq", "cpx"] if self.liquid[index] else ["cpx", "pl"]
        return {
            "phases": phases,
            "phase_fraction": [melt, 1.0 - melt],
            "melt_fraction": melt,
            "melt_bulk": [value * self.melt_scale for value in bulk],
        }
