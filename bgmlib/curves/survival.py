"""
Piecewise constant hazard-rate survival curve.

The survival curve is a thin collaborator: it provides survival
probabilities, a protection leg value used to adjust exercise economics, and
a parallel hazard bump for survival spread solving.
"""
import bisect
import copy
import math
from datetime import date
from typing import List, Sequence, Union

from bgmlib.conventions.daycount import ACT_365F, DayCountConvention
from bgmlib.errors import InvalidInputError

from .base import BaseCurve, TimeLike
from .discount import DiscountCurve


class SurvivalCurve(BaseCurve):
    """Survival probabilities from piecewise constant hazard rates.

    ``hazard_rates[i]`` applies on ``(pillar_times[i-1], pillar_times[i]]``
    and the last rate is extended beyond the last pillar.
    """

    def __init__(
        self,
        reference_date: date,
        pillar_times: Sequence[float],
        hazard_rates: Sequence[float],
        recovery_rate: float = 0.4,
        shift: float = 0.0,
        name: str = "SURVIVAL",
        time_day_count: Union[str, DayCountConvention] = ACT_365F,
    ):
        super().__init__(reference_date, name, time_day_count)
        if len(pillar_times) != len(hazard_rates) or not pillar_times:
            raise InvalidInputError("Pillar times and hazard rates must have same non-zero length")
        for i in range(1, len(pillar_times)):
            if pillar_times[i] <= pillar_times[i - 1]:
                raise InvalidInputError(f"Survival pillar out of order at index {i}")
        if not 0.0 <= recovery_rate < 1.0:
            raise InvalidInputError(f"Recovery rate must be in [0, 1): {recovery_rate}")
        self.pillar_times: List[float] = [float(t) for t in pillar_times]
        self.hazard_rates: List[float] = [float(h) for h in hazard_rates]
        self.recovery_rate = recovery_rate
        self.shift = float(shift)
        if not self.is_feasible(0.0):
            raise InvalidInputError("Shifted hazard rates must be non-negative")

    @classmethod
    def flat(cls, reference_date: date, hazard_rate: float, recovery_rate: float = 0.4) -> "SurvivalCurve":
        return cls(reference_date, [50.0], [hazard_rate], recovery_rate)

    def cumulative_hazard(self, t: float) -> float:
        if t <= 0.0:
            return 0.0
        total, prev = 0.0, 0.0
        for pillar, rate in zip(self.pillar_times, self.hazard_rates):
            end = min(t, pillar)
            total += (rate + self.shift) * (end - prev)
            prev = end
            if t <= pillar:
                return total
        return total + (self.hazard_rates[-1] + self.shift) * (t - prev)

    def df(self, t: TimeLike) -> float:
        """Survival probability to time t."""
        return math.exp(-self.cumulative_hazard(self.to_time(t)))

    survival_probability = df

    def protection_value(
        self,
        discount_curve: DiscountCurve,
        start: TimeLike,
        end: TimeLike,
        notional: float = 1.0,
        steps_per_year: int = 12,
    ) -> float:
        """PV of ``(1 - R) * notional`` paid on default in (start, end]."""
        t0, t1 = self.to_time(start), self.to_time(end)
        if t1 <= t0:
            return 0.0
        n = max(1, int(math.ceil((t1 - t0) * steps_per_year)))
        dt = (t1 - t0) / n
        value, s_prev = 0.0, self.df(t0)
        for k in range(1, n + 1):
            t = t0 + k * dt
            s = self.df(t)
            value += discount_curve.df(t - 0.5 * dt) * (s_prev - s)
            s_prev = s
        return (1.0 - self.recovery_rate) * notional * value

    def min_feasible_shift(self) -> float:
        """Most negative additional shift keeping every hazard rate >= 0."""
        return -min(h + self.shift for h in self.hazard_rates)

    def is_feasible(self, shift: float) -> bool:
        return all(h + self.shift + shift >= 0.0 for h in self.hazard_rates)

    def shifted(self, shift: float) -> "SurvivalCurve":
        """Copy with ``shift`` added to every hazard rate."""
        if not self.is_feasible(shift):
            raise InvalidInputError(f"Hazard shift {shift} gives negative hazard rates")
        bumped = copy.copy(self)
        bumped.shift = self.shift + shift
        return bumped

    def pillar_index(self, t: float) -> int:
        return min(bisect.bisect_left(self.pillar_times, t), len(self.pillar_times) - 1)
