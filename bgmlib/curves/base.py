"""
Base curve classes and protocols for discounting and survival curves.
"""

import math
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Protocol, Union

from bgmlib.conventions.daycount import DayCountConvention, get_day_count_convention

TimeLike = Union[datetime, date, float]


class Curve(Protocol):
    """Protocol defining the interface for discount curves."""

    reference_date: date

    def df(self, t: TimeLike) -> float:
        """Get discount factor at time t."""
        ...

    def discount_factor(self, start: TimeLike, end: TimeLike) -> float:
        """Get the forward discount factor from start to end."""
        ...


class BaseCurve(ABC):
    """Base implementation for curves indexed by time from a reference date."""

    def __init__(
        self,
        reference_date: date,
        name: str = "",
        time_day_count: Union[str, DayCountConvention] = "ACT/365F",
    ):
        """
        Initialize base curve.

        Args:
            reference_date: Curve reference/valuation date
            name: Optional curve name for identification
            time_day_count: Day-count convention to convert dates to curve times
        """
        self.reference_date = reference_date
        self.name = name
        self._time_day_count = get_day_count_convention(time_day_count)

    @property
    def time_day_count(self) -> DayCountConvention:
        return self._time_day_count

    def to_time(self, dt: TimeLike) -> float:
        """Convert a date or datetime to the curve's year fraction basis."""
        if isinstance(dt, (int, float)):
            return float(dt)
        if isinstance(dt, datetime):
            dt = dt.date()
        return self._time_day_count.year_fraction(self.reference_date, dt)

    @abstractmethod
    def df(self, t: TimeLike) -> float:
        """Get discount factor (or survival probability) at time t."""

    def discount_factor(self, start: TimeLike, end: TimeLike) -> float:
        """Ratio df(end) / df(start)."""
        return self.df(end) / self.df(start)

    def zero(self, t: TimeLike) -> float:
        """Get continuously compounded zero rate at time t."""
        time_frac = self.to_time(t)
        if time_frac <= 0:
            return 0.0

        df_val = self.df(time_frac)
        if df_val <= 0:
            raise ValueError(f"Non-positive discount factor: {df_val}")

        return -math.log(df_val) / time_frac

    def __str__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.name})"
            if self.name
            else self.__class__.__name__
        )
