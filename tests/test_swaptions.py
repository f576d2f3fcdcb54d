import math
from datetime import date

import pytest

from bgmlib.conventions.dates import add_tenor
from bgmlib.conventions.types import DistributionType, OptionStyle, OptionType
from bgmlib.curves.survival import SurvivalCurve
from bgmlib.errors import InvalidInputError
from bgmlib.models.black import black_price
from bgmlib.valuation.cashflows import (
    cashflow_pv,
    coupon_pv,
    level_pv,
    principal_pv,
    protection_pv,
    recovery_pv,
)
from bgmlib.valuation.swaptions import (
    build_equivalent_swaptions,
    exercise_dates,
    is_option_effective,
)
from bgmlib.valuation.types import CashflowSchedule, ExercisePeriod, ExerciseSchedule
from bgmlib.volatility.sources import FlatVolatility


def _build(as_of, cashflow, schedule, curve, option_type=OptionType.CALL, **kwargs):
    return build_equivalent_swaptions(
        as_of, as_of, cashflow, schedule, option_type, curve, FlatVolatility(0.2), **kwargs
    )


def test_bullet_cashflow_values(as_of, flat_curve, bond_cashflow):
    maturity = bond_cashflow.maturity
    assert principal_pv(bond_cashflow, as_of, flat_curve) == pytest.approx(flat_curve.df(maturity))
    level = level_pv(bond_cashflow, as_of, flat_curve)
    assert coupon_pv(bond_cashflow, as_of, flat_curve) == pytest.approx(0.03 * level)
    assert cashflow_pv(bond_cashflow, as_of, flat_curve) == pytest.approx(
        0.03 * level + flat_curve.df(maturity)
    )
    after_two = add_tenor(as_of, "2Y")
    assert level_pv(bond_cashflow, after_two, flat_curve) < level
    assert protection_pv(bond_cashflow, as_of, flat_curve) == 0.0


def test_risky_cashflow_values(as_of, flat_curve, bond_cashflow):
    survival = SurvivalCurve.flat(as_of, 0.02, recovery_rate=0.4)
    protection = protection_pv(bond_cashflow, as_of, flat_curve, survival)
    assert protection > 0.0
    assert recovery_pv(bond_cashflow, as_of, flat_curve, survival) == pytest.approx(
        protection * 0.4 / 0.6
    )
    assert cashflow_pv(bond_cashflow, as_of, flat_curve, survival) < cashflow_pv(
        bond_cashflow, as_of, flat_curve
    )
    defaulted = CashflowSchedule(bond_cashflow.periods, defaulted=True)
    assert cashflow_pv(defaulted, as_of, flat_curve) == 0.0


def test_exercise_dates_on_coupon_dates(as_of, bond_cashflow, callable_schedule):
    dates = exercise_dates(as_of, bond_cashflow, callable_schedule)
    assert [d for d, _ in dates] == [add_tenor(as_of, f"{k}Y") for k in range(1, 5)]
    assert all(principal == 1.0 for _, principal in dates)
    later = exercise_dates(add_tenor(as_of, "2Y"), bond_cashflow, callable_schedule)
    assert [d for d, _ in later] == [add_tenor(as_of, f"{k}Y") for k in range(2, 5)]


def test_american_exercise_adds_period_ends(as_of, bond_cashflow):
    end = date(2027, 7, 2)
    schedule = ExerciseSchedule(
        (ExercisePeriod(add_tenor(as_of, "1Y"), end), ExercisePeriod(date(2028, 3, 1)))
    )
    bermudan = [d for d, _ in exercise_dates(as_of, bond_cashflow, schedule)]
    american = [d for d, _ in exercise_dates(as_of, bond_cashflow, schedule, OptionStyle.AMERICAN)]
    assert end not in bermudan
    assert end in american
    assert date(2028, 3, 1) in american
    assert american == sorted(american)


def test_records_match_the_forward_swap(as_of, flat_curve, bond_cashflow, callable_schedule):
    records = _build(as_of, bond_cashflow, callable_schedule, flat_curve)
    assert len(records) == 4
    maturity = bond_cashflow.maturity
    for record in records:
        level = level_pv(bond_cashflow, record.date, flat_curve)
        forward = (flat_curve.df(record.date) - flat_curve.df(maturity)) / level
        assert record.level == pytest.approx(level)
        assert record.rate == pytest.approx(forward)
        assert record.coupon == pytest.approx(0.03)
        assert record.time == pytest.approx((record.date - as_of).days / 365.0)
        assert record.value == pytest.approx(
            level * black_price(forward, 0.03, record.time, 0.2)
        )


def test_call_premium_raises_the_strike(as_of, flat_curve, bond_cashflow):
    schedule = ExerciseSchedule(
        (ExercisePeriod(add_tenor(as_of, "1Y"), add_tenor(as_of, "4Y"), price=1.02),)
    )
    calls = _build(as_of, bond_cashflow, schedule, flat_curve)
    puts = _build(as_of, bond_cashflow, schedule, flat_curve, OptionType.PUT)
    assert calls[0].coupon > 0.03
    assert puts[0].coupon < 0.03


def test_notice_before_pricing_date_skips_the_date(as_of, flat_curve, bond_cashflow):
    schedule = ExerciseSchedule(
        (ExercisePeriod(add_tenor(as_of, "1Y"), add_tenor(as_of, "4Y")),), notification_days=400
    )
    records = _build(as_of, bond_cashflow, schedule, flat_curve)
    assert records[0].date == add_tenor(as_of, "2Y")
    notice = schedule.notice_date(records[0].date)
    expected = 0.2 * math.sqrt((notice - as_of).days / 365.0 / records[0].time)
    assert records[0].volatility == pytest.approx(expected)


def test_survival_scales_the_level(as_of, flat_curve, bond_cashflow, callable_schedule):
    survival = SurvivalCurve.flat(as_of, 0.02)
    plain = _build(as_of, bond_cashflow, callable_schedule, flat_curve)
    risky = _build(as_of, bond_cashflow, callable_schedule, flat_curve, survival_curve=survival)
    assert len(risky) == len(plain)
    for p, r in zip(plain, risky):
        assert r.level < p.level


def test_far_out_of_the_money_dates_are_dropped(as_of, flat_curve, callable_schedule):
    dates = [as_of] + [add_tenor(as_of, f"{k}Y") for k in range(1, 6)]
    cashflow = CashflowSchedule.fixed_rate(dates, 0.5)
    assert _build(as_of, cashflow, callable_schedule, flat_curve) == []
    assert len(_build(as_of, cashflow, callable_schedule, flat_curve, OptionType.PUT)) == 4


def test_empty_inputs(as_of, flat_curve, callable_schedule, bond_cashflow):
    assert _build(as_of, CashflowSchedule(()), callable_schedule, flat_curve) == []
    assert _build(as_of, bond_cashflow, ExerciseSchedule(()), flat_curve) == []


def test_is_option_effective():
    assert not is_option_effective(0.03, 0.001, 1.0, DistributionType.LOGNORMAL, 0.2, OptionType.CALL)
    assert is_option_effective(0.03, 0.001, 1.0, DistributionType.LOGNORMAL, 0.2, OptionType.PUT)
    assert not is_option_effective(0.0, 0.03, 1.0, DistributionType.LOGNORMAL, 0.2)
    assert not is_option_effective(0.05, 0.03, 1.0, DistributionType.NORMAL, 0.001, OptionType.CALL)
    assert is_option_effective(0.05, 0.03, 1.0, DistributionType.NORMAL, 0.01, OptionType.CALL)


def test_schedule_validation(as_of):
    with pytest.raises(InvalidInputError):
        ExercisePeriod(add_tenor(as_of, "2Y"), add_tenor(as_of, "1Y"))
    with pytest.raises(InvalidInputError):
        ExerciseSchedule((), notification_days=-1)
    with pytest.raises(InvalidInputError):
        CashflowSchedule.fixed_rate([as_of], 0.03)
