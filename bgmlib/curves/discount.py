"""
Discount curve with interpolation and a continuously compounded spread.
"""
import copy
import logging
import math
from datetime import date
from typing import List, Optional, Sequence, Union

from bgmlib.conventions.daycount import ACT_365F, DayCountConvention
from bgmlib.interpolation import (
    DISCOUNT_FACTOR_METHODS,
    Interpolator,
    create_interpolator,
)

from .base import BaseCurve, TimeLike

logger = logging.getLogger(__name__)


class DiscountCurve(BaseCurve):
    """
    Discount curve built from pillar discount factors.

    The curve carries a parallel ``spread`` on continuously compounded zero
    rates, so ``df(t) = df_base(t) * exp(-spread * t)``. Spread-shifted copies
    are produced with :meth:`with_spread`; the instance itself is never
    mutated after construction.
    """

    def __init__(
        self,
        reference_date: date,
        pillar_times: Sequence[float],
        discount_factors: Sequence[float],
        interpolation_method: str = "LOGLINEAR_DF",
        spread: float = 0.0,
        name: str = "DISCOUNT",
        time_day_count: Union[str, DayCountConvention] = ACT_365F,
    ):
        """
        Initialize discount curve.

        Args:
            reference_date: Curve valuation date
            pillar_times: Pillar times in years from reference date
            discount_factors: Discount factors at pillar times
            interpolation_method: Method name passed to create_interpolator
            spread: Parallel continuously compounded zero-rate spread
            name: Curve name
            time_day_count: Day count turning dates into curve times
        """
        super().__init__(reference_date, name, time_day_count)

        if len(pillar_times) != len(discount_factors):
            raise ValueError("Pillar times and discount factors must have same length")
        if len(pillar_times) < 1:
            raise ValueError("Need at least 1 pillar point")
        for i, df in enumerate(discount_factors):
            if df <= 0:
                raise ValueError(f"Discount factor at pillar {i} must be positive: {df}")

        sorted_pairs = sorted(zip(pillar_times, discount_factors))
        for i in range(1, len(sorted_pairs)):
            increase = sorted_pairs[i][1] - sorted_pairs[i - 1][1]
            if increase > 1e-6:
                logger.warning(
                    "Discount factors increasing at pillar %s (increase = %.8f)",
                    i,
                    increase,
                )

        self.pillar_times: List[float] = [p[0] for p in sorted_pairs]
        self.discount_factors: List[float] = [p[1] for p in sorted_pairs]
        self.interpolation_method = interpolation_method.upper()
        if self.interpolation_method not in DISCOUNT_FACTOR_METHODS:
            raise ValueError(
                f"Interpolation method {interpolation_method} does not work on discount factors"
            )
        if len(self.pillar_times) == 1:
            # Single pillar: flat zero rate through the origin
            self.interpolator: Interpolator = create_interpolator(
                "LOGLINEAR_DF", self.pillar_times, self.discount_factors
            )
        else:
            self.interpolator = create_interpolator(
                self.interpolation_method, self.pillar_times, self.discount_factors
            )
        self.spread = float(spread)

    @classmethod
    def flat(
        cls,
        reference_date: date,
        rate: float,
        max_time: float = 50.0,
        name: str = "FLAT",
    ) -> "DiscountCurve":
        """Curve with a flat continuously compounded zero rate."""
        times = [0.25, 1.0, 5.0, 10.0, max_time]
        return cls(
            reference_date,
            times,
            [math.exp(-rate * t) for t in times],
            interpolation_method="LOGLINEAR_DF",
            name=name,
        )

    def df(self, t: TimeLike) -> float:
        """Get discount factor at time t."""
        time_frac = self.to_time(t)
        if time_frac <= 0:
            return 1.0
        base = self.interpolator.interpolate(time_frac)
        if self.spread:
            return base * math.exp(-self.spread * time_frac)
        return base

    def forward_rate(
        self, start: TimeLike, end: TimeLike, day_count: DayCountConvention = ACT_365F
    ) -> float:
        """Simply compounded forward rate between two dates."""
        if isinstance(start, (int, float)) or isinstance(end, (int, float)):
            alpha = self.to_time(end) - self.to_time(start)
        else:
            alpha = day_count.year_fraction(start, end)
        if alpha <= 0:
            raise ValueError("Forward period must be positive")
        return (self.df(start) / self.df(end) - 1.0) / alpha

    def with_spread(self, spread: float) -> "DiscountCurve":
        """Copy of the curve with the given total spread."""
        shifted = copy.copy(self)
        shifted.spread = float(spread)
        return shifted

    def shifted(self, shift: float) -> "DiscountCurve":
        """Copy of the curve with ``shift`` added to the current spread."""
        return self.with_spread(self.spread + shift)

    def shift_parallel(self, shift_bp: float) -> "DiscountCurve":
        """Parallel shift in basis points."""
        return self.shifted(shift_bp / 10000.0)

    def __repr__(self) -> str:
        return (
            f"DiscountCurve(reference_date={self.reference_date}, "
            f"pillars={len(self.pillar_times)}, "
            f"interpolation_method='{self.interpolation_method}', "
            f"spread={self.spread})"
        )
