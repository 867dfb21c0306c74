"""User interaction helpers."""

from .progress import ProgressReporter

__all__ = ["ProgressReporter"]
