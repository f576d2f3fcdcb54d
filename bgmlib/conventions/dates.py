"""Date helpers: date coercion, tenor arithmetic and lattice times."""

from datetime import date, datetime
from typing import List, Sequence, Union

from dateutil.relativedelta import relativedelta

from bgmlib.conventions.daycount import ACT_365F, DayCountConvention

DATE_FMT = "%Y-%m-%d"
COMPACT_FMT = "%Y%m%d"

DateLike = Union[str, date, datetime]


def to_date(date_like: DateLike) -> date:
    """
    Convert a string, date or datetime to a date.
    Accepts 'YYYY-MM-DD' and 'YYYYMMDD' string formats.
    """
    if isinstance(date_like, datetime):
        return date_like.date()
    if isinstance(date_like, date):
        return date_like
    if isinstance(date_like, str):
        for fmt in (DATE_FMT, COMPACT_FMT):
            try:
                return datetime.strptime(date_like, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Unsupported date string format: {date_like!r}")
    raise TypeError(f"Unsupported type for date: {type(date_like)}")


def parse_tenor(tenor: str) -> relativedelta:
    """Convert a tenor string ('1D', '2W', '3M', '10Y') to a relativedelta."""
    t = tenor.upper().strip()
    if len(t) < 2 or not t[:-1].isdigit():
        raise ValueError(f"Unsupported tenor: {tenor}")
    count, unit = int(t[:-1]), t[-1]
    if unit == "D":
        return relativedelta(days=count)
    if unit == "W":
        return relativedelta(weeks=count)
    if unit == "M":
        return relativedelta(months=count)
    if unit == "Y":
        return relativedelta(years=count)
    raise ValueError(f"Unsupported tenor: {tenor}")


def tenor_to_months(tenor: str) -> int:
    """Convert tenor string (e.g., '3M', '2Y') to number of months."""
    t = tenor.upper().strip()
    if t.endswith("M"):
        return int(t[:-1])
    if t.endswith("Y"):
        return int(t[:-1]) * 12
    raise ValueError(f"Unsupported tenor: {tenor}")


def add_tenor(start: DateLike, tenor: str) -> date:
    """Add a tenor to a date (no business day adjustment)."""
    return to_date(start) + parse_tenor(tenor)


def periodic_dates(start: DateLike, end: DateLike, months: int) -> List[date]:
    """Dates from start to end stepping by whole months, end included.

    The schedule is rolled forward from ``start``; a short final period is
    kept when ``end`` is not on the roll.
    """
    first, last = to_date(start), to_date(end)
    if months <= 0:
        raise ValueError("Period length in months must be positive")
    dates = [first]
    k = 1
    while True:
        nxt = first + relativedelta(months=months * k)
        if nxt >= last:
            break
        dates.append(nxt)
        k += 1
    if dates[-1] != last:
        dates.append(last)
    return dates


def year_fraction(
    start: DateLike, end: DateLike, day_count: DayCountConvention = ACT_365F
) -> float:
    """Year fraction between two date-likes under the given day count."""
    return day_count.year_fraction(to_date(start), to_date(end))


def times_from(
    as_of: DateLike, dates: Sequence[DateLike], day_count: DayCountConvention = ACT_365F
) -> List[float]:
    """Convert dates to times (years) measured from ``as_of``."""
    origin = to_date(as_of)
    return [day_count.year_fraction(origin, to_date(d)) for d in dates]
