"""Shared fixtures: a flat discount curve, tenor schedules and lattices."""

from datetime import date

import pytest

from bgmlib.conventions.dates import add_tenor
from bgmlib.conventions.types import DistributionType, OptionType
from bgmlib.curves.discount import DiscountCurve
from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.lattice.builder import LatticeConfig, build_rate_lattice
from bgmlib.lattice.schedule import TenorSchedule
from bgmlib.models.black import option_price
from bgmlib.valuation.types import CashflowSchedule, ExercisePeriod, ExerciseSchedule, SwaptionInfo

AS_OF = date(2024, 1, 2)


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def flat_curve():
    return DiscountCurve.flat(AS_OF, 0.03)


@pytest.fixture
def annual_schedule():
    """Four annual rates resetting at 1Y..4Y, all at 3%."""
    return TenorSchedule.from_forwards([1.0, 2.0, 3.0, 4.0, 5.0], [0.03] * 4)


@pytest.fixture
def flat_lattice(annual_schedule):
    curves = [VolatilityCurve.flat(0.2)] * annual_schedule.rate_count
    return build_rate_lattice(annual_schedule, curves, config=LatticeConfig(steps_per_year=20))


def coterminal_records(schedule, strike=0.03, volatility=0.2, option_type=OptionType.CALL):
    """Records on the reset dates of ``schedule`` priced with Black at ``volatility``."""
    records = []
    for i in range(schedule.rate_count):
        rate, level = schedule.swap_rate_annuity(i)
        t = schedule.times[i]
        value = level * option_price(
            DistributionType.LOGNORMAL, rate, strike, t, volatility, option_type
        )
        records.append(
            SwaptionInfo(
                date=date(2024 + i + 1, 1, 2),
                time=t,
                level=level,
                rate=rate,
                coupon=strike,
                value=value,
                volatility=volatility,
                option_type=option_type,
            )
        )
    return records


@pytest.fixture
def make_records():
    return coterminal_records


@pytest.fixture
def records(annual_schedule):
    return coterminal_records(annual_schedule)


@pytest.fixture
def bond_cashflow():
    """Five-year annual 3% bullet starting on the valuation date."""
    dates = [AS_OF] + [add_tenor(AS_OF, f"{k}Y") for k in range(1, 6)]
    return CashflowSchedule.fixed_rate(dates, 0.03)


@pytest.fixture
def callable_schedule():
    """Callable at par on every coupon date from 1Y to 4Y."""
    return ExerciseSchedule((ExercisePeriod(add_tenor(AS_OF, "1Y"), add_tenor(AS_OF, "4Y")),))
