"""
Calibrated forward volatilities and the analytic LMM approximations on them.

The volatility of rate ``i`` over period ``j`` (the interval ``(T_{j-1}, T_j]``
ending at the reset of rate ``j``, with ``T_{-1} = 0``) is stored as
``volatilities[i, j]`` for ``j <= i``; the upper triangle is zero.
"""

from __future__ import annotations

import math
from datetime import date
from typing import List, Optional

import numpy as np

from bgmlib.conventions.dates import to_date
from bgmlib.conventions.types import CalibrationMethod, DistributionType
from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.errors import InvalidInputError
from bgmlib.lattice.schedule import TenorSchedule

from .correlation import Correlation


def period_lengths(schedule: TenorSchedule) -> np.ndarray:
    """Length of each volatility period, clipped at the valuation date."""
    ends = np.asarray(schedule.times[: schedule.rate_count], dtype=float)
    starts = np.concatenate(([0.0], ends[:-1]))
    return np.clip(ends - np.clip(starts, 0.0, None), 0.0, None)


def integrated_covariances(
    volatilities: np.ndarray, lengths: np.ndarray, rates: np.ndarray, expiry_index: int
) -> np.ndarray:
    """``∫_0^{T_e} σ_i σ_l dt`` for every pair of ``rates``."""
    block = np.nan_to_num(volatilities[np.ix_(rates, np.arange(expiry_index + 1))])
    return (block * lengths[: expiry_index + 1]) @ block.T


def analytic_swaption_volatility(
    schedule: TenorSchedule,
    volatilities: np.ndarray,
    correlation: np.ndarray,
    expiry_index: int,
    maturity_index: int,
) -> float:
    """Black volatility of the swap rate over rates ``expiry_index..maturity_index-1``.

    Frozen-weight (Rebonato) approximation::

        σ² T_e = Σ_ij (w_i L_i)(w_j L_j) ρ_ij ∫σ_iσ_j / S²

    with ``w_i = δ_i P(0, T_{i+1}) / level``.
    """
    a, b = expiry_index, maturity_index
    if not 0 <= a < b <= schedule.rate_count:
        raise InvalidInputError(f"Invalid swaption rate range [{a}, {b})")
    expiry = schedule.times[a]
    if expiry <= 0.0:
        return 0.0
    rates = np.arange(a, b)
    dfs = np.asarray(schedule.discount_factors)
    fractions = np.asarray(schedule.fractions)
    weights = fractions[rates] * dfs[rates + 1]
    level = weights.sum()
    swap_rate = (dfs[a] - dfs[b]) / level
    if swap_rate <= 0.0:
        return 0.0
    x = weights / level * np.asarray(schedule.forwards)[rates]
    cov = integrated_covariances(volatilities, period_lengths(schedule), rates, a)
    variance = x @ (correlation[np.ix_(rates, rates)] * cov) @ x
    return math.sqrt(max(variance, 0.0) / expiry) / swap_rate


def analytic_caplet_volatility(
    schedule: TenorSchedule,
    volatilities: np.ndarray,
    correlation: np.ndarray,
    expiry_index: int,
    maturity_index: int,
) -> float:
    """Black volatility of the compounded forward over ``T_e .. T_m``.

    Uses ``1 + δL = Π (1 + δ_i L_i)``; for a single period it is the
    root-mean-square volatility of that rate.
    """
    e, m = expiry_index, maturity_index
    if not 0 <= e < m <= schedule.rate_count:
        raise InvalidInputError(f"Invalid caplet rate range [{e}, {m})")
    expiry = schedule.times[e]
    if expiry <= 0.0:
        return 0.0
    rates = np.arange(e, m)
    growth = np.asarray(schedule.fractions)[rates] * np.asarray(schedule.forwards)[rates]
    total = np.prod(1.0 + growth) - 1.0
    if total <= 0.0:
        return 0.0
    y = growth / (1.0 + growth)
    cov = integrated_covariances(volatilities, period_lengths(schedule), rates, e)
    variance = y @ (correlation[np.ix_(rates, rates)] * cov) @ y
    return (1.0 + total) / total * math.sqrt(max(variance, 0.0) / expiry)


class CalibratedVolatilities:
    """Forward volatility matrix produced by the calibrator.

    Attributes:
        schedule: Rate grid the volatilities live on
        volatilities: ``[n, n]`` lower-triangular forward volatilities
        correlation: Correlation between the rates
        method: Calibration method used
        parameters: ``[n, 2]`` table ``(Phi, Psi)`` for piecewise fits
        fit_errors: Model minus market volatility per quote (NaN if unused)
        distribution: Distribution of the calibrated rates
    """

    def __init__(
        self,
        schedule: TenorSchedule,
        volatilities: np.ndarray,
        correlation: Correlation,
        method: CalibrationMethod,
        parameters: Optional[np.ndarray] = None,
        fit_errors: Optional[np.ndarray] = None,
        distribution: DistributionType = DistributionType.LOGNORMAL,
    ):
        n = schedule.rate_count
        vols = np.array(volatilities, dtype=float)
        if vols.shape != (n, n):
            raise InvalidInputError(f"Expected a {n}x{n} volatility matrix, got {vols.shape}")
        if correlation.size != n:
            raise InvalidInputError(
                f"Correlation covers {correlation.size} rates, schedule has {n}"
            )
        vols[np.triu_indices(n, 1)] = 0.0
        vols.setflags(write=False)
        self.schedule = schedule
        self._volatilities = vols
        self.correlation = correlation
        self._rho = correlation.matrix()
        self.method = method
        self.parameters = parameters
        self.fit_errors = fit_errors
        self.distribution = distribution

    @property
    def rate_count(self) -> int:
        return self.schedule.rate_count

    def forward_volatilities(self) -> np.ndarray:
        return self._volatilities.copy()

    def forward_volatility_curves(self) -> List[VolatilityCurve]:
        """One left-continuous flat curve per rate, ready for the lattice builder."""
        times = self.schedule.times
        curves = []
        for i in range(self.rate_count):
            knots: List[float] = []
            values: List[float] = []
            for j in range(i + 1):
                sigma = self._volatilities[i, j]
                if times[j] <= 0.0 or not sigma > 0.0:
                    continue
                if values and values[-1] == sigma:
                    knots[-1] = times[j]
                else:
                    knots.append(times[j])
                    values.append(float(sigma))
            curves.append(VolatilityCurve(knots, values) if knots else VolatilityCurve.flat(0.0))
        return curves

    def black_volatility_curves(self) -> List[VolatilityCurve]:
        """Root-mean-square volatility ``sqrt(Σσ²Δt / t)`` of each rate at every reset."""
        lengths = period_lengths(self.schedule)
        times = self.schedule.times
        curves = []
        for i in range(self.rate_count):
            variance = np.cumsum(self._volatilities[i, : i + 1] ** 2 * lengths[: i + 1])
            knots = [times[j] for j in range(i + 1) if times[j] > 0.0]
            values = [
                math.sqrt(variance[j] / times[j]) for j in range(i + 1) if times[j] > 0.0
            ]
            curves.append(VolatilityCurve(knots, values) if knots else VolatilityCurve.flat(0.0))
        return curves

    def swaption_volatility(self, expiry_index: int, maturity_index: int) -> float:
        return analytic_swaption_volatility(
            self.schedule, self._volatilities, self._rho, expiry_index, maturity_index
        )

    def caplet_volatility(self, expiry_index: int, maturity_index: Optional[int] = None) -> float:
        if maturity_index is None:
            maturity_index = expiry_index + 1
        return analytic_caplet_volatility(
            self.schedule, self._volatilities, self._rho, expiry_index, maturity_index
        )

    def date_index(self, when: date) -> int:
        """Index of the first grid date on or after ``when`` (clipped to the grid)."""
        if self.schedule.dates is None:
            raise InvalidInputError("Calibrated grid has no dates")
        target = to_date(when)
        for k, d in enumerate(self.schedule.dates):
            if d >= target:
                return k
        return len(self.schedule.dates) - 1

    def __repr__(self) -> str:
        return (
            f"CalibratedVolatilities(rates={self.rate_count}, method={self.method.value}, "
            f"correlation={self.correlation!r})"
        )
