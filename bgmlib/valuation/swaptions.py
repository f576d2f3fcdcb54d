"""
Co-terminal swaptions equivalent to the exercise rights of a callable schedule.

Calling the instrument at an exercise date is an option to enter (or leave)
the swap formed by its remaining cashflows. Each exercise date becomes a
European swaption with:

* ``level``: PV of the remaining unit coupons;
* ``coupon`` (strike): remaining fixed PV plus the exercise cost, per unit level;
* ``rate``: the equivalent forward swap rate of the remaining cashflows;
* ``value``: Black or Bachelier value at the source volatility.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import List, Optional, Tuple

from bgmlib.conventions.dates import to_date
from bgmlib.conventions.types import DistributionType, OptionStyle, OptionType
from bgmlib.curves.base import Curve
from bgmlib.curves.survival import SurvivalCurve
from bgmlib.errors import InvalidInputError
from bgmlib.models.black import option_price
from bgmlib.volatility.sources import VolatilitySource

from .cashflows import cashflow_pv, coupon_pv, level_pv, protection_pv
from .types import CashflowSchedule, ExerciseSchedule, SwaptionInfo

logger = logging.getLogger(__name__)

# Swaptions worth less than this many standard deviations out of the money are dropped
MONEYNESS_CUTOFF = 6.0


def exercise_dates(
    settle: date,
    cashflow: CashflowSchedule,
    exercise_schedule: ExerciseSchedule,
    style: OptionStyle = OptionStyle.BERMUDAN,
) -> List[Tuple[date, float]]:
    """Exercise dates from settle up to (not including) maturity with their principal.

    Bermudan and European rights are exercisable on coupon dates inside an
    exercise period. American rights add the single-date periods and the end
    of every (merged) period.
    """
    maturity = cashflow.maturity
    dates = {}
    for index, period in enumerate(cashflow):
        when = period.end_date
        if settle <= when < maturity and exercise_schedule.contains(when):
            dates[when] = cashflow.principal_at(index + 1)
    if style is OptionStyle.AMERICAN:
        schedule = exercise_schedule.merged()
        extra = [p.end for p in schedule] + [p.start for p in exercise_schedule if p.is_single_date]
        for when in extra:
            if settle <= when < maturity and when not in dates:
                dates[when] = _outstanding(cashflow, when)
    return sorted(dates.items())


def _outstanding(cashflow: CashflowSchedule, when: date) -> float:
    for period in cashflow:
        if period.payment_date > when:
            return period.notional
    return 0.0


def build_equivalent_swaptions(
    as_of: date,
    settle: date,
    cashflow: CashflowSchedule,
    exercise_schedule: ExerciseSchedule,
    option_type: OptionType,
    discount_curve: Curve,
    volatility_source: VolatilitySource,
    survival_curve: Optional[SurvivalCurve] = None,
    style: OptionStyle = OptionStyle.BERMUDAN,
    initial_steps: int = 0,
    middle_steps: int = 0,
    accuracy: float = 1e-6,
) -> List[SwaptionInfo]:
    """Build the co-terminal swaption records of a callable cashflow schedule.

    Args:
        as_of: Pricing date (the discount curve reference date)
        settle: Settlement date; earlier exercise dates are dropped
        cashflow: Fixed-rate cashflows of the instrument
        exercise_schedule: Exercise periods, prices and notice lag
        option_type: Call (payer) or put (receiver) on the swap rate
        discount_curve: Discount curve
        volatility_source: Swaption volatilities
        survival_curve: Optional issuer survival curve
        style: Exercise style, selects the candidate dates
        initial_steps: Lattice steps suggested before the first record
        middle_steps: Lattice steps suggested between later records
        accuracy: Calibration tolerance stamped on every record

    Returns:
        One record per effective exercise date, in date order

    Raises:
        InvalidInputError: A non-positive annuity at an exercise date
        NotSupportedError: A volatility source of unsupported distribution
    """
    as_of, settle = to_date(as_of), to_date(settle)
    if cashflow.is_empty:
        return []
    candidates = exercise_dates(settle, cashflow, exercise_schedule, style)
    if not candidates:
        logger.debug("No date exercisable")
        return []

    distribution = volatility_source.distribution
    records: List[SwaptionInfo] = []
    for expiry, principal in candidates:
        notice = exercise_schedule.notice_date(expiry)
        if notice <= as_of:
            continue

        df = discount_curve.df(expiry)
        if df < 1e-12:
            continue
        notional = df * principal

        survival = 1.0
        if survival_curve is not None:
            survival = survival_curve.df(expiry) / survival_curve.df(settle)
        if not survival > 1e-11:
            break

        # The exercise price is adjusted by the protection value
        protection = protection_pv(cashflow, expiry, discount_curve, survival_curve)
        price = exercise_schedule.price_at(expiry)
        cost = (price - 1.0) * notional + protection
        if option_type is OptionType.PUT:
            cost = -cost

        level = level_pv(cashflow, expiry, discount_curve, survival_curve)
        if not level > 1e-12:
            raise InvalidInputError(f"Invalid annuity {level} at date {expiry}")
        fixed_pv = coupon_pv(cashflow, expiry, discount_curve, survival_curve)
        strike = (fixed_pv + cost) / level

        pv = cashflow_pv(cashflow, expiry, discount_curve, survival_curve)
        rate = (notional + fixed_pv - protection - pv) / level
        _check_intrinsic_value(notional, pv, price, rate, strike, level)

        time = (expiry - settle).days / 365.0
        vol = volatility_source.get_volatility(as_of, expiry, cashflow, strike)
        if notice != expiry:
            vol = 0.0 if notice <= settle else vol * math.sqrt((notice - settle).days / 365.0 / time)

        if not is_option_effective(strike, rate, time, distribution, vol, option_type):
            logger.debug("Exercise on %s is too far out of the money; skipped", expiry)
            continue

        # The annuity carries the survival to expiry; the value follows it
        level *= survival
        value = level * option_price(distribution, rate, strike, time, vol, option_type)
        records.append(
            SwaptionInfo(
                date=expiry,
                time=time,
                level=level,
                rate=rate,
                coupon=strike,
                value=value,
                volatility=vol,
                option_type=option_type,
                steps=max(initial_steps if not records else middle_steps, 0),
                accuracy=accuracy,
            )
        )
    return records


def is_option_effective(
    strike: float,
    rate: float,
    time: float,
    distribution: DistributionType,
    volatility: float,
    option_type: OptionType = OptionType.PUT,
) -> bool:
    """False when the option is more than six standard deviations out of the money."""
    if distribution is DistributionType.LOGNORMAL:
        if strike <= 1e-16 or rate <= 1e-16:
            return False
        strike, rate = math.log(strike), math.log(rate)
    moneyness = option_type.sign * (rate - strike)
    return not moneyness < -MONEYNESS_CUTOFF * volatility * math.sqrt(time)


def _check_intrinsic_value(
    notional: float, pv: float, price: float, rate: float, strike: float, level: float
) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    expect = pv - price * notional
    actual = (strike - rate) * level
    if abs(actual - expect) > 1e-12:
        logger.debug("Intrinsic value: expect %.12g, actual %.12g", expect, actual)
