"""
Step forward interpolation on discount factors.
"""
import math
from typing import Sequence

import numpy as np

from .base import Interpolator


class StepForwardContinuousInterpolator(Interpolator):
    """Piecewise constant continuously compounded forwards between pillars.

    Discount factors are exponential in time on each interval. The origin
    ``(0, 1)`` is implied when the first pillar is positive.
    """

    def __init__(self, pillars: Sequence[float], discount_factors: Sequence[float]):
        super().__init__(pillars, discount_factors)
        if np.any(self.values <= 0.0):
            raise ValueError("Discount factors must be positive")

        knots = self.pillars
        dfs = self.values
        if knots[0] > 0.0:
            knots = np.concatenate(([0.0], knots))
            dfs = np.concatenate(([1.0], dfs))
        self._knots = knots
        self._dfs = dfs
        self.forward_rates = np.log(dfs[:-1] / dfs[1:]) / np.diff(knots)

    def interpolate(self, t: float) -> float:
        return self.interpolate_discount_factor(t)

    def interpolate_discount_factor(self, t: float) -> float:
        if t <= self._knots[0]:
            return float(self._dfs[0])
        if len(self.forward_rates) == 0:
            return float(self._dfs[0])
        i = min(int(np.searchsorted(self._knots, t, side="right")) - 1,
                len(self.forward_rates) - 1)
        return float(self._dfs[i] * math.exp(-self.forward_rates[i] * (t - self._knots[i])))

    def interpolate_zero_rate(self, t: float) -> float:
        if t <= 0:
            return 0.0
        return -math.log(self.interpolate_discount_factor(t)) / t
