"""Runtime helpers used by the ensemble driver."""

from .progress import ProgressReporter

__all__ = ["ProgressReporter"]
