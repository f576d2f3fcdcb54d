"""
Shape-preserving monotone cubic interpolation (PCHIP).
"""
from typing import Sequence

from scipy.interpolate import PchipInterpolator

from .base import Interpolator


class MonotoneCubicInterpolator(Interpolator):
    """Piecewise cubic Hermite interpolation preserving monotonicity.

    Used to invert a monotone price/shift relation. Outside the pillar range
    the end cubics are extended when ``extrapolate`` is set, otherwise the
    end values are held flat.
    """

    def __init__(
        self,
        pillars: Sequence[float],
        values: Sequence[float],
        extrapolate: bool = True,
    ):
        super().__init__(pillars, values)
        if len(self.pillars) < 2:
            raise ValueError("Need at least 2 points for monotone interpolation")
        self.extrapolate = extrapolate
        self._spline = PchipInterpolator(self.pillars, self.values, extrapolate=True)

    def interpolate(self, t: float) -> float:
        if not self.extrapolate:
            if t <= self.pillars[0]:
                return float(self.values[0])
            if t >= self.pillars[-1]:
                return float(self.values[-1])
        return float(self._spline(t))
