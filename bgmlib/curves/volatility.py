"""
Piecewise-flat instantaneous volatility curves.
"""
import math
from typing import List, Sequence

import numpy as np

from bgmlib.errors import InvalidInputError


class VolatilityCurve:
    """Left-continuous piecewise-flat volatility in time.

    ``values[k]`` applies on ``(times[k-1], times[k]]`` with ``times[-1] = 0``.
    Beyond the last time the last value is held.
    """

    def __init__(self, times: Sequence[float], values: Sequence[float]):
        if len(times) != len(values) or not times:
            raise InvalidInputError("Volatility curve needs matching non-empty times and values")
        for k in range(1, len(times)):
            if times[k] <= times[k - 1]:
                raise InvalidInputError(f"Volatility curve time out of order at index {k}")
        if times[0] <= 0.0:
            raise InvalidInputError("Volatility curve times must be positive")
        self.times = np.asarray(times, dtype=float)
        self.values = np.asarray(values, dtype=float)
        self.times.setflags(write=False)
        self.values.setflags(write=False)

    @classmethod
    def flat(cls, volatility: float, horizon: float = 100.0) -> "VolatilityCurve":
        return cls([horizon], [volatility])

    def value(self, t: float) -> float:
        i = int(np.searchsorted(self.times, t, side="left"))
        return float(self.values[min(i, len(self.values) - 1)])

    __call__ = value

    def breakpoints(self, start: float, end: float) -> List[float]:
        inner = [float(t) for t in self.times if start < t < end]
        return [start] + inner + [end]

    def integrated_variance(self, start: float, end: float) -> float:
        """Integral of sigma(t)^2 over [start, end]."""
        return self.integrated_covariance(self, start, end)

    def integrated_covariance(self, other: "VolatilityCurve", start: float, end: float) -> float:
        """Integral of sigma(t) * other(t) over [start, end]."""
        if end <= start:
            return 0.0
        knots = sorted(set(self.breakpoints(start, end)) | set(other.breakpoints(start, end)))
        total = 0.0
        for a, b in zip(knots[:-1], knots[1:]):
            mid = 0.5 * (a + b)
            total += self.value(mid) * other.value(mid) * (b - a)
        return total

    def black_volatility(self, t: float) -> float:
        """Root-mean-square volatility to time t."""
        if t <= 0.0:
            return float(self.values[0])
        return math.sqrt(self.integrated_variance(0.0, t) / t)

    def scaled(self, factor: float) -> "VolatilityCurve":
        return VolatilityCurve(self.times, self.values * factor)

    def __len__(self) -> int:
        return len(self.times)

    def __repr__(self) -> str:
        return f"VolatilityCurve(times={list(self.times)}, values={list(self.values)})"
