"""
Linear and piecewise constant interpolation.
"""
import math
from typing import Sequence

import numpy as np

from .base import Interpolator


class LinearInterpolator(Interpolator):
    """Linear interpolation with flat extrapolation."""

    def interpolate(self, t: float) -> float:
        if len(self.pillars) == 1:
            return float(self.values[0])
        return float(np.interp(t, self.pillars, self.values))


class LinearDiscountFactorInterpolator(LinearInterpolator):
    """Linear interpolation on discount factors."""


class LogLinearDiscountInterpolator(Interpolator):
    """Linear interpolation on log discount factors.

    Equivalent to piecewise flat continuously compounded forwards between
    pillars. Before the first pillar the first zero rate is extended to
    ``t = 0``; after the last pillar the last zero rate is held.
    """

    def __init__(self, pillars: Sequence[float], discount_factors: Sequence[float]):
        super().__init__(pillars, discount_factors)
        if np.any(self.values <= 0.0):
            raise ValueError("Discount factors must be positive")
        self.log_dfs = np.log(self.values)

    def interpolate(self, t: float) -> float:
        return math.exp(self.log_discount(t))

    def log_discount(self, t: float) -> float:
        if t <= 0.0:
            return 0.0
        first, last = self.pillars[0], self.pillars[-1]
        if t <= first:
            if first <= 0.0:
                return float(self.log_dfs[0])
            return float(self.log_dfs[0] * t / first)
        if t >= last:
            if last <= 0.0:
                return float(self.log_dfs[-1])
            return float(self.log_dfs[-1] * t / last)
        return float(np.interp(t, self.pillars, self.log_dfs))


class PiecewiseConstantInterpolator(Interpolator):
    """Piecewise constant (step function) interpolation.

    With ``left_continuous=True`` the value on ``(pillars[i-1], pillars[i]]``
    is ``values[i]``, which is how piecewise-flat volatility curves are
    quoted: the value at a pillar applies up to and including it.
    """

    def __init__(
        self,
        pillars: Sequence[float],
        values: Sequence[float],
        left_continuous: bool = False,
    ):
        super().__init__(pillars, values)
        self.left_continuous = left_continuous

    def interpolate(self, t: float) -> float:
        if t <= self.pillars[0]:
            return float(self.values[0])
        if t >= self.pillars[-1]:
            return float(self.values[-1])
        if self.left_continuous:
            i = int(np.searchsorted(self.pillars, t, side="left"))
        else:
            i = self._locate(t)
        return float(self.values[i])
