"""
Caplet volatility bootstrap from flat cap volatilities.

Each cap is a strip of caplets on a regular schedule starting at the
valuation date; the first period (already fixed) is excluded. Caplet
volatilities are piecewise flat between consecutive cap maturities and are
solved cap by cap so that the caplet strip reprices each cap.

Strikes are independent, so a surface is bootstrapped on a thread pool with
one task per strike. Every task works on its own copy of the discount curve.
"""

from __future__ import annotations

import copy
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from bgmlib.conventions.dates import add_tenor, periodic_dates, to_date
from bgmlib.conventions.daycount import ACT_365F, DayCountConvention
from bgmlib.conventions.types import DistributionType, OptionType
from bgmlib.curves.base import Curve
from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.errors import BracketError, CalibrationError, InvalidInputError
from bgmlib.models.black import option_price
from bgmlib.numerics.result import Result
from bgmlib.numerics.rootfinding import DEFAULT_ROOT_FINDER, RootFinder

logger = logging.getLogger(__name__)

MaturityLike = Union[str, date]

# Upper search bound of a caplet volatility by distribution
_MAX_VOLATILITY = {DistributionType.LOGNORMAL: 5.0, DistributionType.NORMAL: 1.0}


@dataclass(frozen=True)
class Caplet:
    expiry: float
    fraction: float
    forward: float
    discount: float

    def value(self, strike: float, volatility: float, distribution: DistributionType) -> float:
        return (
            self.discount
            * self.fraction
            * option_price(distribution, self.forward, strike, self.expiry, volatility, OptionType.CALL)
        )


@dataclass
class CapletCurveResult:
    """Bootstrapped caplet volatilities for one strike.

    Attributes:
        strike: Cap strike
        curve: Caplet volatility by caplet expiry time (piecewise flat)
        fit_errors: Model minus market cap price, one per cap
    """

    strike: float
    curve: VolatilityCurve
    fit_errors: List[float]


def build_caplets(
    as_of: date,
    end: date,
    discount_curve: Curve,
    frequency_months: int = 3,
    day_count: DayCountConvention = ACT_365F,
) -> List[Tuple[date, Caplet]]:
    """Caplet strip ``(payment_date, Caplet)`` from ``as_of`` to ``end``."""
    dates = periodic_dates(as_of, end, frequency_months)
    caplets = []
    for start, pay in zip(dates[1:-1], dates[2:]):
        fraction = day_count.year_fraction(start, pay)
        df_start, df_pay = discount_curve.df(start), discount_curve.df(pay)
        caplets.append(
            (
                pay,
                Caplet(
                    expiry=ACT_365F.year_fraction(as_of, start),
                    fraction=fraction,
                    forward=(df_start / df_pay - 1.0) / fraction,
                    discount=df_pay,
                ),
            )
        )
    return caplets


def bootstrap_caplet_curve(
    as_of: date,
    cap_maturities: Sequence[MaturityLike],
    cap_vols: Sequence[float],
    strike: float,
    discount_curve: Curve,
    frequency_months: int = 3,
    distribution: DistributionType = DistributionType.LOGNORMAL,
    day_count: DayCountConvention = ACT_365F,
    root_finder: RootFinder = DEFAULT_ROOT_FINDER,
) -> CapletCurveResult:
    """Bootstrap piecewise-flat caplet volatilities for one strike.

    Args:
        as_of: Valuation date (start of the caplet schedule)
        cap_maturities: Cap maturities, as tenors or dates, increasing
        cap_vols: Flat cap volatilities, one per maturity
        strike: Cap strike
        discount_curve: Curve giving forwards and discount factors
        frequency_months: Caplet period length in months
        distribution: Volatility type of the quotes
        day_count: Accrual day count of the caplets
        root_finder: 1-D root finding oracle

    Returns:
        The caplet volatility curve and per-cap repricing errors

    Raises:
        InvalidInputError: Mismatched inputs or a cap with no caplet
        CalibrationError: A cap price that no caplet volatility reproduces
    """
    as_of = to_date(as_of)
    if len(cap_maturities) != len(cap_vols) or not cap_vols:
        raise InvalidInputError("Cap maturities and volatilities must have same non-zero length")
    maturities = [
        add_tenor(as_of, m) if isinstance(m, str) else to_date(m) for m in cap_maturities
    ]
    for k in range(1, len(maturities)):
        if maturities[k] <= maturities[k - 1]:
            raise InvalidInputError(f"Cap maturity out of order at index {k}")

    caplets = build_caplets(as_of, maturities[-1], discount_curve, frequency_months, day_count)
    upper = _MAX_VOLATILITY.get(distribution, 5.0)
    knots: List[float] = []
    values: List[float] = []
    errors: List[float] = []
    done = 0
    for maturity, cap_vol in zip(maturities, cap_vols):
        strip = [c for pay, c in caplets if pay <= maturity]
        if len(strip) <= done:
            raise InvalidInputError(f"Cap maturing {maturity} adds no caplet")
        target = sum(c.value(strike, cap_vol, distribution) for c in strip)
        earlier = zip(strip[:done], _expand(strip[:done], knots, values))
        fixed = sum(c.value(strike, v, distribution) for c, v in earlier)
        segment = strip[done:]

        def objective(x: float) -> float:
            return fixed + sum(c.value(strike, x, distribution) for c in segment) - target

        try:
            result = root_finder.find_root(objective, 1e-8, upper, xtol=1e-12)
        except BracketError as exc:
            raise CalibrationError(
                f"No caplet volatility reproduces the {maturity} cap at strike {strike}",
                best_estimate=min((1e-8, upper), key=lambda x: abs(objective(x))),
            ) from exc
        knots.append(segment[-1].expiry)
        values.append(result.root)
        errors.append(objective(result.root))
        done = len(strip)
        logger.debug("Cap %s strike %s: caplet volatility %.6f", maturity, strike, result.root)

    return CapletCurveResult(strike, VolatilityCurve(knots, values), errors)


def _expand(strip: Sequence[Caplet], knots: Sequence[float], values: Sequence[float]) -> List[float]:
    curve = VolatilityCurve(knots, values) if knots else None
    return [curve.value(c.expiry) for c in strip] if curve is not None else []


def bootstrap_caplet_surface(
    as_of: date,
    cap_maturities: Sequence[MaturityLike],
    cap_vols_by_strike: Mapping[float, Sequence[float]],
    discount_curve: Curve,
    frequency_months: int = 3,
    distribution: DistributionType = DistributionType.LOGNORMAL,
    day_count: DayCountConvention = ACT_365F,
    max_workers: Optional[int] = None,
) -> List[CapletCurveResult]:
    """Bootstrap one caplet curve per strike on a thread pool.

    Returns:
        Results sorted by strike

    Raises:
        CalibrationError: If any strike fails; the message names the strike
    """

    def task(strike: float, vols: Sequence[float]) -> CapletCurveResult:
        curve = copy.deepcopy(discount_curve)
        return bootstrap_caplet_curve(
            as_of, cap_maturities, vols, strike, curve, frequency_months, distribution, day_count
        )

    strikes = sorted(cap_vols_by_strike)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            strike: executor.submit(Result.capture, lambda s=strike: task(s, cap_vols_by_strike[s]))
            for strike in strikes
        }
        results = {strike: future.result() for strike, future in futures.items()}

    outputs = []
    for strike in strikes:
        result = results[strike]
        if not result.ok:
            raise CalibrationError(
                f"Caplet bootstrap failed for strike {strike}: {result.error}"
            ) from result.error
        outputs.append(result.value)
    return outputs
