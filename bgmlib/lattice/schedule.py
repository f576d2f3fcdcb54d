"""Tenor schedules and the node-date grid of a rate lattice."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date
from typing import List, Optional, Sequence, Tuple

from bgmlib.conventions.daycount import ACT_365F, DayCountConvention
from bgmlib.conventions.dates import to_date
from bgmlib.curves.base import Curve
from bgmlib.errors import InvalidInputError

# Times closer than this are the same lattice date
TIME_EPS = 1e-9


def validate_tenor_times(times: Sequence[float]) -> None:
    """Check a tenor axis has at least two strictly increasing times."""
    if len(times) < 2:
        raise InvalidInputError("At least two tenor dates are required to define a rate")
    for i in range(1, len(times)):
        if times[i] <= times[i - 1]:
            raise InvalidInputError(f"tenor out of order at index {i}")


@dataclass(frozen=True)
class TenorSchedule:
    """Reset/payment axis ``T0 < T1 < ... < Tn`` with initial forwards.

    Rate ``i`` resets at ``T_i`` and pays at ``T_{i+1}``, so there are
    ``n`` rates. ``discount_factors[i]`` is ``P(0, T_i)``.

    Attributes:
        times: Tenor times in years from the valuation date
        fractions: Accrual fractions, one per rate
        forwards: Initial simply compounded forward rates, one per rate
        discount_factors: Discount factors at the tenor times
        as_of: Valuation date (optional)
        dates: Tenor dates (optional)
    """

    times: Tuple[float, ...]
    fractions: Tuple[float, ...]
    forwards: Tuple[float, ...]
    discount_factors: Tuple[float, ...]
    as_of: Optional[date] = None
    dates: Optional[Tuple[date, ...]] = None

    def __post_init__(self):
        validate_tenor_times(self.times)
        if self.times[0] < -TIME_EPS:
            raise InvalidInputError("Tenor dates must not precede the valuation date")
        n = len(self.times) - 1
        if len(self.fractions) != n or len(self.forwards) != n:
            raise InvalidInputError(
                f"Expected {n} fractions and forwards, got "
                f"{len(self.fractions)} and {len(self.forwards)}"
            )
        if len(self.discount_factors) != n + 1:
            raise InvalidInputError("One discount factor per tenor date is required")
        for i, fraction in enumerate(self.fractions):
            if fraction <= 0:
                raise InvalidInputError(f"Accrual fraction must be positive at index {i}")

    @classmethod
    def from_curve(
        cls,
        as_of: date,
        dates: Sequence[date],
        discount_curve: Curve,
        accrual_day_count: DayCountConvention = ACT_365F,
        time_day_count: DayCountConvention = ACT_365F,
    ) -> "TenorSchedule":
        """Seed forwards and discount factors from a discount curve."""
        as_of = to_date(as_of)
        tenor_dates = [to_date(d) for d in dates]
        if len(tenor_dates) < 2:
            raise InvalidInputError("At least two tenor dates are required to define a rate")
        for i in range(1, len(tenor_dates)):
            if tenor_dates[i] <= tenor_dates[i - 1]:
                raise InvalidInputError(f"tenor out of order at index {i}")
        times = [time_day_count.year_fraction(as_of, d) for d in tenor_dates]
        fractions = [
            accrual_day_count.year_fraction(a, b)
            for a, b in zip(tenor_dates[:-1], tenor_dates[1:])
        ]
        dfs = [discount_curve.df(d) for d in tenor_dates]
        forwards = [
            (dfs[i] / dfs[i + 1] - 1.0) / fractions[i] for i in range(len(fractions))
        ]
        return cls(
            times=tuple(times),
            fractions=tuple(fractions),
            forwards=tuple(forwards),
            discount_factors=tuple(dfs),
            as_of=as_of,
            dates=tuple(tenor_dates),
        )

    @classmethod
    def from_forwards(
        cls,
        times: Sequence[float],
        forwards: Sequence[float],
        fractions: Optional[Sequence[float]] = None,
        start_discount: float = 1.0,
    ) -> "TenorSchedule":
        """Build a schedule from tenor times and forward rates.

        Accrual fractions default to the tenor time differences and the
        discount factor to the first tenor time to ``start_discount``.
        """
        validate_tenor_times(times)
        if fractions is None:
            fractions = [b - a for a, b in zip(times[:-1], times[1:])]
        if len(forwards) != len(times) - 1 or len(fractions) != len(times) - 1:
            raise InvalidInputError("One forward and one fraction per rate are required")
        return cls(
            times=tuple(float(t) for t in times),
            fractions=tuple(float(f) for f in fractions),
            forwards=tuple(float(f) for f in forwards),
            discount_factors=_chain_discounts(start_discount, fractions, forwards),
        )

    @property
    def rate_count(self) -> int:
        return len(self.times) - 1

    @property
    def numeraire_discount(self) -> float:
        """``P(0, T_n)``, the value of the terminal-measure numeraire."""
        return self.discount_factors[-1]

    def annuity(self, index: int) -> float:
        """``P(0, T_index) / P(0, T_n)``."""
        return self.discount_factors[index] / self.discount_factors[-1]

    def swap_rate_annuity(self, first: int, last: Optional[int] = None) -> Tuple[float, float]:
        """Forward swap rate and annuity (discounted) over rates ``first..last-1``."""
        last = self.rate_count if last is None else last
        level = sum(
            self.fractions[i] * self.discount_factors[i + 1] for i in range(first, last)
        )
        if level <= 0.0:
            return 0.0, 0.0
        floating = self.discount_factors[first] - self.discount_factors[last]
        return floating / level, level

    def with_forwards(self, forwards: Sequence[float]) -> "TenorSchedule":
        """Copy with new forwards; discount factors are re-chained from ``P(0, T0)``."""
        if len(forwards) != self.rate_count:
            raise InvalidInputError("One forward per rate is required")
        return replace(
            self,
            forwards=tuple(float(f) for f in forwards),
            discount_factors=_chain_discounts(
                self.discount_factors[0], self.fractions, forwards
            ),
        )

    def last_reset_index(self, t: float) -> int:
        """Index of the last rate reset at or before ``t`` (0 if none has)."""
        first = 0
        for i in range(self.rate_count):
            if self.times[i] <= t + TIME_EPS:
                first = i
        return first

    def period_index(self, t: float) -> int:
        """Index ``j`` of the period ``(T_{j-1}, T_j]`` holding ``t``."""
        for j in range(self.rate_count):
            if t <= self.times[j] + TIME_EPS:
                return j
        return self.rate_count - 1


def _chain_discounts(
    start: float, fractions: Sequence[float], forwards: Sequence[float]
) -> Tuple[float, ...]:
    dfs = [float(start)]
    for fraction, forward in zip(fractions, forwards):
        growth = 1.0 + fraction * forward
        if growth <= 0.0:
            raise InvalidInputError(f"Forward {forward} gives a non-positive discount factor")
        dfs.append(dfs[-1] / growth)
    return tuple(dfs)


@dataclass(frozen=True)
class NodeDate:
    """A lattice date.

    Attributes:
        index: Position in the node grid (0 is the valuation date)
        time: Time in years from the valuation date
        step: Number of binomial steps from the valuation date
        first: Index of the last rate reset at or before this date
        reset: Index of the rate resetting exactly at this date, if any
    """

    index: int
    time: float
    step: int
    first: int
    reset: Optional[int] = None


def build_node_grid(
    schedule: TenorSchedule,
    node_times: Optional[Sequence[float]] = None,
    steps_per_year: float = 50.0,
    total_steps: Optional[int] = None,
    min_steps_per_period: int = 1,
) -> Tuple[List[NodeDate], List[float]]:
    """Merge reset times with extra node times and lay binomial steps on them.

    Returns the node dates and the step times ``tau_0 = 0 < ... < tau_M``.
    Extra node times at or before the valuation date fold into date 0; node
    times after the last reset raise ``InvalidInputError``.
    """
    last_reset = schedule.times[schedule.rate_count - 1]
    candidates = [t for t in schedule.times[:-1] if t > TIME_EPS]
    for t in node_times or ():
        if t > last_reset + TIME_EPS:
            raise InvalidInputError(
                f"Node time {t:.6f} is after the last reset time {last_reset:.6f}"
            )
        if t > TIME_EPS:
            candidates.append(float(t))

    grid = [0.0]
    for t in sorted(candidates):
        if t - grid[-1] > TIME_EPS:
            grid.append(t)

    horizon = grid[-1]
    if total_steps is not None and horizon > 0.0:
        steps_per_year = total_steps / horizon
    if steps_per_year <= 0:
        raise InvalidInputError("Steps per year must be positive")

    step_times = [0.0]
    nodes: List[NodeDate] = []
    for index, t in enumerate(grid):
        if index > 0:
            span = t - grid[index - 1]
            count = max(min_steps_per_period, int(math.ceil(span * steps_per_year - 1e-9)))
            start = step_times[-1]
            step_times.extend(start + span * k / count for k in range(1, count))
            step_times.append(t)
        reset = None
        for i in range(schedule.rate_count):
            if abs(schedule.times[i] - t) <= TIME_EPS or (index == 0 and schedule.times[i] <= TIME_EPS):
                reset = i
        nodes.append(
            NodeDate(
                index=index,
                time=t,
                step=len(step_times) - 1,
                first=schedule.last_reset_index(t),
                reset=reset,
            )
        )
    return nodes, step_times
