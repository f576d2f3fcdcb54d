"""
QuantLib-backed day count conventions.

Day counts turn calendar dates into the year fractions used for tenor
accruals, lattice times and option expiries. ACT/365F is the time axis of
every curve and lattice in the package.
"""

from datetime import date, datetime
from typing import Dict, Union

import QuantLib as ql

DateInput = Union[date, datetime]


def _ql_date(dt: DateInput) -> ql.Date:
    d = dt.date() if isinstance(dt, datetime) else dt
    return ql.Date(d.day, d.month, d.year)


class DayCountConvention:
    """A named QuantLib day counter.

    Instances are stateless and shared; copying returns the same object.
    """

    def __init__(self, name: str, counter: ql.DayCounter):
        self.name = name
        self._counter = counter

    def year_fraction(self, start: DateInput, end: DateInput) -> float:
        """Year fraction from ``start`` to ``end``; negative when reversed."""
        ql_start, ql_end = _ql_date(start), _ql_date(end)
        if ql_end < ql_start:
            return -self._counter.yearFraction(ql_end, ql_start)
        return self._counter.yearFraction(ql_start, ql_end)

    def day_count(self, start: DateInput, end: DateInput) -> int:
        return self._counter.dayCount(_ql_date(start), _ql_date(end))

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"DayCountConvention({self.name!r})"

    def __copy__(self) -> "DayCountConvention":
        return self

    def __deepcopy__(self, memo) -> "DayCountConvention":
        return self


ACT_360 = DayCountConvention("ACT/360", ql.Actual360())
ACT_365F = DayCountConvention("ACT/365F", ql.Actual365Fixed())
THIRTY_360E = DayCountConvention("30E/360", ql.Thirty360(ql.Thirty360.European))
THIRTY_360U = DayCountConvention("30U/360", ql.Thirty360(ql.Thirty360.BondBasis))
ACT_ACT = DayCountConvention("ACT/ACT", ql.ActualActual(ql.ActualActual.ISDA))

# Accepted names, upper case
DAY_COUNT_CONVENTIONS: Dict[str, DayCountConvention] = {
    alias: convention
    for convention, aliases in (
        (ACT_360, ("ACT/360", "ACTUAL/360")),
        (ACT_365F, ("ACT/365F", "ACT/365", "ACTUAL/365F")),
        (THIRTY_360E, ("30E/360", "30/360E")),
        (THIRTY_360U, ("30U/360", "30/360")),
        (ACT_ACT, ("ACT/ACT", "ACTUAL/ACTUAL", "ACT/ACT ISDA")),
    )
    for alias in aliases
}


def get_day_count_convention(
    name: Union[str, DayCountConvention]
) -> DayCountConvention:
    """Look up a day count convention by name; instances pass through.

    Raises:
        ValueError: The name is not registered
    """
    if isinstance(name, DayCountConvention):
        return name
    try:
        return DAY_COUNT_CONVENTIONS[name.upper()]
    except KeyError:
        raise ValueError(
            f"Unknown day count convention: {name}. "
            f"Available: {sorted(DAY_COUNT_CONVENTIONS)}"
        ) from None
