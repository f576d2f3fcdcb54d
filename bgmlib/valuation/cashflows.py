"""Present values of the cashflows paid after a date.

All values are as of the discount curve reference date. With a survival
curve, payments are weighted by the survival probability to their date and
principal lost on default is split into recovery and protection.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from bgmlib.curves.base import Curve
from bgmlib.curves.survival import SurvivalCurve

from .types import CashflowSchedule


def _risky_df(
    discount_curve: Curve, survival_curve: Optional[SurvivalCurve], when: date
) -> float:
    df = discount_curve.df(when)
    if survival_curve is not None:
        df *= survival_curve.df(when)
    return df


def coupon_pv(
    cashflow: CashflowSchedule,
    after: date,
    discount_curve: Curve,
    survival_curve: Optional[SurvivalCurve] = None,
    unit: bool = False,
) -> float:
    """PV of the coupons paid after ``after``; ``unit`` uses a coupon rate of 1."""
    total = 0.0
    for period in cashflow:
        if period.payment_date <= after:
            continue
        rate = 1.0 if unit else period.coupon
        total += (
            period.notional * rate * period.fraction
            * _risky_df(discount_curve, survival_curve, period.payment_date)
        )
    return total


def level_pv(
    cashflow: CashflowSchedule,
    after: date,
    discount_curve: Curve,
    survival_curve: Optional[SurvivalCurve] = None,
) -> float:
    """PV of unit coupons after ``after`` (the swaption annuity)."""
    return coupon_pv(cashflow, after, discount_curve, survival_curve, unit=True)


def principal_pv(
    cashflow: CashflowSchedule,
    after: date,
    discount_curve: Curve,
    survival_curve: Optional[SurvivalCurve] = None,
) -> float:
    total = 0.0
    for index, period in enumerate(cashflow):
        if period.payment_date <= after:
            continue
        total += cashflow.principal_payment(index) * _risky_df(
            discount_curve, survival_curve, period.payment_date
        )
    return total


def protection_pv(
    cashflow: CashflowSchedule,
    after: date,
    discount_curve: Curve,
    survival_curve: Optional[SurvivalCurve] = None,
) -> float:
    """PV of the principal lost on default after ``after``."""
    if survival_curve is None:
        return 0.0
    total = 0.0
    for period in cashflow:
        if period.accrual_end <= after:
            continue
        start = max(period.accrual_start, after)
        total += survival_curve.protection_value(
            discount_curve, start, period.accrual_end, notional=period.notional
        )
    return total


def recovery_pv(
    cashflow: CashflowSchedule,
    after: date,
    discount_curve: Curve,
    survival_curve: Optional[SurvivalCurve] = None,
) -> float:
    """PV of the recovered principal on default after ``after``."""
    if survival_curve is None:
        return 0.0
    loss = 1.0 - survival_curve.recovery_rate
    return protection_pv(cashflow, after, discount_curve, survival_curve) * (
        survival_curve.recovery_rate / loss
    )


def cashflow_pv(
    cashflow: CashflowSchedule,
    after: date,
    discount_curve: Curve,
    survival_curve: Optional[SurvivalCurve] = None,
) -> float:
    """Full PV (coupons, principal and recovery) of the payments after ``after``."""
    if cashflow.defaulted:
        return 0.0
    return (
        coupon_pv(cashflow, after, discount_curve, survival_curve)
        + principal_pv(cashflow, after, discount_curve, survival_curve)
        + recovery_pv(cashflow, after, discount_curve, survival_curve)
    )
