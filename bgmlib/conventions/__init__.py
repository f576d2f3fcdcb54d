"""Market conventions: day counts, enums and tenor arithmetic."""

from .dates import (
    add_tenor,
    parse_tenor,
    periodic_dates,
    tenor_to_months,
    times_from,
    to_date,
    year_fraction,
)
from .daycount import (
    ACT_360,
    ACT_365F,
    ACT_ACT,
    THIRTY_360E,
    THIRTY_360U,
    DayCountConvention,
    get_day_count_convention,
)
from .types import (
    CalibrationMethod,
    CorrelationType,
    DistributionType,
    Frequency,
    OptionStyle,
    OptionType,
)

__all__ = [
    # Day counts
    "DayCountConvention",
    "get_day_count_convention",
    "ACT_360",
    "ACT_365F",
    "ACT_ACT",
    "THIRTY_360E",
    "THIRTY_360U",
    # Enums
    "CalibrationMethod",
    "CorrelationType",
    "DistributionType",
    "Frequency",
    "OptionStyle",
    "OptionType",
    # Dates
    "add_tenor",
    "parse_tenor",
    "periodic_dates",
    "tenor_to_months",
    "times_from",
    "to_date",
    "year_fraction",
]
