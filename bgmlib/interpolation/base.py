"""
Base class for one-dimensional interpolation on a time axis.
"""
from abc import ABC, abstractmethod
from typing import List, Sequence

import numpy as np


class Interpolator(ABC):
    """Base class for interpolation on sorted pillar times."""

    def __init__(self, pillars: Sequence[float], values: Sequence[float]):
        """
        Initialize interpolator.

        Args:
            pillars: Times in years
            values: Values at the pillars (discount factors, zero rates, vols)
        """
        if len(pillars) != len(values):
            raise ValueError("Pillars and values must have same length")
        if len(pillars) < 1:
            raise ValueError("Need at least 1 point for interpolation")

        order = np.argsort(np.asarray(pillars, dtype=float), kind="stable")
        self.pillars = np.asarray(pillars, dtype=float)[order]
        self.values = np.asarray(values, dtype=float)[order]

        if len(np.unique(self.pillars)) != len(self.pillars):
            raise ValueError("Duplicate pillar times not allowed")

    @abstractmethod
    def interpolate(self, t: float) -> float:
        """Interpolate value at time t."""

    def interpolate_many(self, times: Sequence[float]) -> List[float]:
        """Interpolate values at multiple times."""
        return [self.interpolate(t) for t in times]

    def __call__(self, t: float) -> float:
        return self.interpolate(t)

    def _locate(self, t: float) -> int:
        """Index i of the interval [pillars[i], pillars[i+1]) holding t."""
        return int(np.searchsorted(self.pillars, t, side="right")) - 1
