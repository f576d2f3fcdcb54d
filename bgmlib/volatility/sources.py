"""
Volatility sources used to value the co-terminal swaptions.

A source answers ``get_volatility(as_of, expiry, cashflow, strike)`` for a
swaption expiring at ``expiry`` into the remaining ``cashflow``, and states
the distribution its volatilities are quoted in.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

import numpy as np

from bgmlib.conventions.daycount import ACT_365F
from bgmlib.conventions.types import DistributionType
from bgmlib.curves.base import Curve
from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.errors import InvalidInputError

if TYPE_CHECKING:
    from bgmlib.calibration.results import CalibratedVolatilities
    from bgmlib.valuation.types import CashflowSchedule


class VolatilitySource(Protocol):
    """Protocol for swaption volatility providers."""

    distribution: DistributionType

    def get_volatility(
        self,
        as_of: date,
        expiry: date,
        cashflow: Optional["CashflowSchedule"],
        strike: float,
    ) -> float:
        ...


class FlatVolatility:
    """Same volatility for every expiry, tenor and strike."""

    def __init__(self, volatility: float, distribution: DistributionType = DistributionType.LOGNORMAL):
        if volatility < 0.0:
            raise InvalidInputError(f"Volatility must be non-negative: {volatility}")
        self.volatility = volatility
        self.distribution = distribution

    def get_volatility(self, as_of, expiry, cashflow, strike) -> float:
        return self.volatility

    def __repr__(self) -> str:
        return f"FlatVolatility({self.volatility}, {self.distribution.value})"


class TermStructureVolatility:
    """Volatility by time to expiry (ACT/365F from ``as_of``)."""

    def __init__(self, curve: VolatilityCurve, distribution: DistributionType = DistributionType.LOGNORMAL):
        self.curve = curve
        self.distribution = distribution

    def get_volatility(self, as_of, expiry, cashflow, strike) -> float:
        return self.curve.value(ACT_365F.year_fraction(as_of, expiry))


class SwaptionVolatilitySurface:
    """ATM swaption volatilities, bilinear in expiry and tenor (years).

    Flat extrapolation beyond the grid on both axes.
    """

    def __init__(
        self,
        expiry_times: Sequence[float],
        tenor_years: Sequence[float],
        volatilities: Sequence[Sequence[float]],
        distribution: DistributionType = DistributionType.LOGNORMAL,
    ):
        self.expiry_times = np.asarray(expiry_times, dtype=float)
        self.tenor_years = np.asarray(tenor_years, dtype=float)
        self.volatilities = np.asarray(volatilities, dtype=float)
        if self.volatilities.shape != (len(self.expiry_times), len(self.tenor_years)):
            raise InvalidInputError(
                f"Surface shape {self.volatilities.shape} does not match "
                f"{len(self.expiry_times)} expiries x {len(self.tenor_years)} tenors"
            )
        for axis in (self.expiry_times, self.tenor_years):
            if np.any(np.diff(axis) <= 0.0):
                raise InvalidInputError("Surface axes must be strictly increasing")
        self.distribution = distribution

    def value(self, expiry_time: float, tenor: float) -> float:
        by_expiry = [
            np.interp(expiry_time, self.expiry_times, self.volatilities[:, k])
            for k in range(len(self.tenor_years))
        ]
        return float(np.interp(tenor, self.tenor_years, by_expiry))

    def get_volatility(self, as_of, expiry, cashflow, strike) -> float:
        tenor = _tenor(expiry, cashflow, self.tenor_years[0])
        return self.value(ACT_365F.year_fraction(as_of, expiry), tenor)


class VolatilityCube:
    """ATM surface plus strike skew surfaces.

    ``skews[k]`` holds the volatility spread at strike ``forward + strike_offsets[k]``;
    spreads are interpolated linearly in the offset. The result is floored at zero.
    """

    def __init__(
        self,
        atm: SwaptionVolatilitySurface,
        strike_offsets: Sequence[float],
        skews: Sequence[SwaptionVolatilitySurface],
        discount_curve: Curve,
    ):
        if len(strike_offsets) != len(skews) or not skews:
            raise InvalidInputError("One skew surface per strike offset is required")
        if any(b <= a for a, b in zip(strike_offsets[:-1], strike_offsets[1:])):
            raise InvalidInputError("Strike offsets must be strictly increasing")
        self.atm = atm
        self.strike_offsets = np.asarray(strike_offsets, dtype=float)
        self.skews = list(skews)
        self.discount_curve = discount_curve
        self.distribution = atm.distribution

    def forward_swap_rate(self, expiry: date, cashflow: "CashflowSchedule") -> float:
        level = 0.0
        for period in cashflow:
            if period.payment_date > expiry:
                level += period.fraction * self.discount_curve.df(period.payment_date)
        if level <= 0.0:
            return 0.0
        return (self.discount_curve.df(expiry) - self.discount_curve.df(cashflow.maturity)) / level

    def get_volatility(self, as_of, expiry, cashflow, strike) -> float:
        t = ACT_365F.year_fraction(as_of, expiry)
        tenor = _tenor(expiry, cashflow, self.atm.tenor_years[0])
        atm = self.atm.value(t, tenor)
        if cashflow is None:
            return max(atm, 0.0)
        offset = strike - self.forward_swap_rate(expiry, cashflow)
        spreads = [skew.value(t, tenor) for skew in self.skews]
        return max(atm + float(np.interp(offset, self.strike_offsets, spreads)), 0.0)


class BgmVolatilitySurface:
    """Swaption volatilities implied by calibrated forward volatilities."""

    def __init__(self, calibrated: "CalibratedVolatilities"):
        self.calibrated = calibrated
        self.distribution = calibrated.distribution

    def get_volatility(self, as_of, expiry, cashflow, strike) -> float:
        n = self.calibrated.rate_count
        a = min(self.calibrated.date_index(expiry), n - 1)
        b = n if cashflow is None else min(self.calibrated.date_index(cashflow.maturity), n)
        if b <= a:
            b = a + 1
        return self.calibrated.swaption_volatility(a, b)


def _tenor(expiry: date, cashflow: Optional["CashflowSchedule"], default: float) -> float:
    if cashflow is None or cashflow.is_empty:
        return float(default)
    return max(ACT_365F.year_fraction(expiry, cashflow.maturity), 0.0)

