"""Ensembles of fractional and bulk crystallisation paths."""
from . import constants
from .composition import MonteCarloBulkSet, OxideComposition
from .crystallisation import TerminationReason, run_crystallisation
from .errors import FCEnsembleError
from .grid import ParameterGrid, expand_grid
from .inputs import prepare_inputs
from .montecarlo import generate_bulk_mc
from .orchestrator import run_ensemble

__all__ = [
    "constants",
    "FCEnsembleError",
    "MonteCarloBulkSet",
    "OxideComposition",
    "ParameterGrid",
    "TerminationReason",
    "expand_grid",
    "generate_bulk_mc",
    "prepare_inputs",
    "run_crystallisation",
    "run_ensemble",
]
