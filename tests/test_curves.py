import math
from datetime import date

import pytest

from bgmlib.conventions.dates import add_tenor, periodic_dates, tenor_to_months
from bgmlib.curves.discount import DiscountCurve
from bgmlib.curves.survival import SurvivalCurve
from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.errors import InvalidInputError


def test_tenor_arithmetic():
    start = date(2024, 1, 31)
    assert add_tenor(start, "1M") == date(2024, 2, 29)
    assert add_tenor("2024-01-02", "2Y") == date(2026, 1, 2)
    assert tenor_to_months("2Y") == 24
    with pytest.raises(ValueError):
        add_tenor(start, "Y")


def test_periodic_dates_keep_short_stub():
    dates = periodic_dates(date(2024, 1, 2), date(2024, 8, 15), 3)
    assert dates == [date(2024, 1, 2), date(2024, 4, 2), date(2024, 7, 2), date(2024, 8, 15)]


def test_flat_discount_curve_and_spreads(as_of):
    curve = DiscountCurve.flat(as_of, 0.03)
    assert curve.df(2.0) == pytest.approx(math.exp(-0.06))
    assert curve.df(as_of) == 1.0
    shifted = curve.shifted(0.01)
    assert shifted.df(2.0) == pytest.approx(math.exp(-0.08))
    assert curve.spread == 0.0
    assert shifted.with_spread(0.0).df(2.0) == pytest.approx(curve.df(2.0))
    assert curve.forward_rate(1.0, 2.0) == pytest.approx(math.exp(0.03) - 1.0)


def test_survival_curve_shifts(as_of):
    curve = SurvivalCurve.flat(as_of, 0.02, recovery_rate=0.4)
    assert curve.df(5.0) == pytest.approx(math.exp(-0.1))
    assert curve.min_feasible_shift() == pytest.approx(-0.02)
    assert curve.is_feasible(-0.02)
    assert not curve.is_feasible(-0.03)
    assert curve.shifted(0.01).df(5.0) == pytest.approx(math.exp(-0.15))
    with pytest.raises(InvalidInputError):
        curve.shifted(-0.05)


def test_protection_value_matches_default_probability(as_of):
    discount = DiscountCurve.flat(as_of, 0.0)
    survival = SurvivalCurve.flat(as_of, 0.05, recovery_rate=0.4)
    value = survival.protection_value(discount, 0.0, 2.0)
    assert value == pytest.approx(0.6 * (1.0 - math.exp(-0.1)))


def test_volatility_curve_integrals():
    curve = VolatilityCurve([1.0, 3.0], [0.2, 0.1])
    assert curve.value(1.0) == 0.2
    assert curve.value(1.5) == 0.1
    assert curve.value(10.0) == 0.1
    assert curve.integrated_variance(0.0, 3.0) == pytest.approx(0.04 + 0.02)
    assert curve.black_volatility(3.0) == pytest.approx(math.sqrt(0.06 / 3.0))
    other = VolatilityCurve.flat(0.3)
    assert curve.integrated_covariance(other, 0.5, 2.0) == pytest.approx(0.5 * 0.2 * 0.3 + 0.1 * 0.3)
    with pytest.raises(InvalidInputError):
        VolatilityCurve([0.0], [0.2])
