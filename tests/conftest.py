from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

BASALT_WT: Dict[str, float] = {
    "SiO2": 48.43,
    "TiO2": 1.19,
    "Al2O3": 15.19,
    "Cr2O3": 0.03,
    "FeO": 8.57,
    "MgO": 10.13,
    "CaO": 11.44,
    "Na2O": 2.34,
    "K2O": 0.19,
    "H2O": 0.5,
    "O": 0.2,
}


@pytest.fixture
def basalt() -> Dict[str, float]:
    return dict(BASALT_WT)


@pytest.fixture
def cooling_constants(basalt: Dict[str, float]) -> Dict[str, Any]:
    """Constant inputs for a 1200 -> 1000 C path in 50 C steps."""

    return {
        "P": 2.0,
        "T_start": 1200.0,
        "T_stop": 1000.0,
        "T_step": 50.0,
        "bulk": basalt,
    }
