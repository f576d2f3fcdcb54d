"""
Forward volatility calibration to a swaption volatility matrix.

Two families of methods are supported:

* Cascading: swaptions are stripped one at a time, in increasing expiry and
  then increasing tenor. Each quote fixes every forward volatility entry it
  depends on that is not yet set, all at one common value found by a 1-D
  root search.
* Piecewise constant: ``σ_ij = Ψ_i Φ_j`` (time homogeneous) or
  ``σ_ij = Ψ_i Φ_{i-j}`` (length homogeneous), fitted by bounded least
  squares, optionally together with the exponential correlation parameters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from bgmlib.conventions.dates import add_tenor, to_date
from bgmlib.conventions.daycount import ACT_365F, DayCountConvention
from bgmlib.conventions.types import CalibrationMethod, DistributionType
from bgmlib.curves.base import Curve
from bgmlib.errors import BracketError, CalibrationError, InvalidInputError, NotSupportedError
from bgmlib.lattice.schedule import TenorSchedule
from bgmlib.numerics.optimize import DEFAULT_OPTIMIZER, LeastSquaresOptimizer
from bgmlib.numerics.rootfinding import DEFAULT_ROOT_FINDER, RootFinder

from .correlation import (
    Correlation,
    ExponentialCorrelation,
    PerfectCorrelation,
    exponential_from_parameters,
)
from .results import CalibratedVolatilities, analytic_swaption_volatility

logger = logging.getLogger(__name__)

DateOrTenor = Union[str, date]

_NOT_ENOUGH_DATES = "Not enough rate maturities dates to calibrate all the swaptions."


@dataclass
class BgmCalibrationParameters:
    """Settings of the forward volatility calibration.

    ``tolerance`` is the root-search x-tolerance for the cascade and the
    least-squares tolerance for the piecewise fits. A piecewise fit whose
    worst quote error exceeds ``max_fit_error`` raises ``CalibrationError``
    carrying the parameter table; ``None`` accepts any fit.
    """

    method: CalibrationMethod = CalibrationMethod.CASCADING
    tolerance: float = 1e-10
    psi_bounds: Tuple[float, float] = (0.01, 10.0)
    phi_bounds: Tuple[float, float] = (1e-4, 5.0)
    max_iterations: Optional[int] = None
    fit_correlation: bool = False
    max_volatility: float = 5.0
    max_fit_error: Optional[float] = 1e-3


class SwaptionQuote(NamedTuple):
    """A usable market quote mapped onto the rate grid."""

    row: int
    column: int
    expiry_index: int
    maturity_index: int
    volatility: float


def calibrate_bgm(
    as_of: date,
    discount_curve: Curve,
    expiries: Sequence[DateOrTenor],
    tenors: Sequence[str],
    volatilities: Sequence[Sequence[float]],
    correlation: Optional[Correlation] = None,
    distribution: DistributionType = DistributionType.LOGNORMAL,
    parameters: BgmCalibrationParameters | None = None,
    rate_dates: Optional[Sequence[date]] = None,
    accrual_day_count: DayCountConvention = ACT_365F,
    root_finder: RootFinder = DEFAULT_ROOT_FINDER,
    optimizer: LeastSquaresOptimizer = DEFAULT_OPTIMIZER,
) -> CalibratedVolatilities:
    """Calibrate forward volatilities to a swaption volatility matrix.

    Args:
        as_of: Valuation date
        discount_curve: Curve seeding forwards and annuities
        expiries: Option expiries, as tenors ("1Y") or dates (matrix rows)
        tenors: Underlying swap tenors (matrix columns)
        volatilities: Black swaption volatilities; NaN or <= 0 marks a missing quote
        correlation: Correlation between rates (perfect if omitted)
        distribution: Volatility type of the quotes (lognormal only)
        parameters: Calibration settings
        rate_dates: Explicit rate grid; defaults to expiry and maturity dates
        accrual_day_count: Day count of the forward rate accruals
        root_finder: 1-D root finding oracle for the cascade
        optimizer: Least-squares oracle for the piecewise fits

    Returns:
        The calibrated volatilities

    Raises:
        InvalidInputError: Mismatched dimensions or a grid too short for the quotes
        NotSupportedError: Non-lognormal quotes or an unknown method
        CalibrationError: A quote that cannot be reproduced
    """
    parameters = parameters or BgmCalibrationParameters()
    if distribution is not DistributionType.LOGNORMAL:
        raise NotSupportedError(f"DistributionType {distribution} not supported by the calibrator")
    as_of = to_date(as_of)
    quotes_matrix = np.asarray(volatilities, dtype=float)
    if quotes_matrix.shape != (len(expiries), len(tenors)):
        raise InvalidInputError(
            f"Volatility matrix shape {quotes_matrix.shape} does not match "
            f"{len(expiries)} expiries x {len(tenors)} tenors"
        )

    expiry_dates = [_expiry_date(as_of, e) for e in expiries]
    maturity_dates = [[add_tenor(e, tenor) for tenor in tenors] for e in expiry_dates]
    if rate_dates is None:
        grid = sorted(set(expiry_dates) | {d for row in maturity_dates for d in row})
    else:
        grid = sorted({to_date(d) for d in rate_dates})
    grid = [d for d in grid if d >= as_of]
    schedule = TenorSchedule.from_curve(as_of, grid, discount_curve, accrual_day_count)
    n = schedule.rate_count

    quotes = _map_quotes(as_of, grid, expiry_dates, maturity_dates, quotes_matrix)
    if not quotes:
        raise CalibrationError("No usable swaption quote to calibrate")
    correlation = _align_correlation(correlation, schedule)
    logger.debug(
        "Calibrating %s rates to %s quotes with %s", n, len(quotes), parameters.method.value
    )

    if parameters.method is CalibrationMethod.CASCADING:
        vols = _cascade(schedule, correlation.matrix(), quotes, parameters, root_finder)
        table = None
    elif parameters.method in (
        CalibrationMethod.TIME_HOMOGENEOUS,
        CalibrationMethod.LENGTH_HOMOGENEOUS,
    ):
        vols, table, correlation = _piecewise_fit(
            schedule, correlation, quotes, parameters, optimizer
        )
    else:
        raise NotSupportedError(f"Calibration method {parameters.method} not supported")

    result = CalibratedVolatilities(
        schedule,
        vols,
        correlation,
        parameters.method,
        parameters=table,
        distribution=distribution,
    )
    result.fit_errors = _fit_errors(result, quotes, quotes_matrix.shape)
    return result


def _expiry_date(as_of: date, expiry: DateOrTenor) -> date:
    if isinstance(expiry, str) and expiry.strip()[-1:].upper() in ("D", "W", "M", "Y"):
        return add_tenor(as_of, expiry)
    return to_date(expiry)


def _grid_index(grid: List[date], when: date) -> int:
    for k, d in enumerate(grid):
        if d >= when:
            return k
    raise InvalidInputError(_NOT_ENOUGH_DATES)


def _map_quotes(
    as_of: date,
    grid: List[date],
    expiry_dates: List[date],
    maturity_dates: List[List[date]],
    matrix: np.ndarray,
) -> List[SwaptionQuote]:
    quotes = []
    for row, expiry in enumerate(expiry_dates):
        for column, maturity in enumerate(maturity_dates[row]):
            quote = matrix[row, column]
            if not quote > 0.0:
                continue
            if expiry <= as_of:
                logger.warning("Skipping swaption quote expiring on %s at or before %s", expiry, as_of)
                continue
            a = _grid_index(grid, expiry)
            b = _grid_index(grid, maturity)
            if b <= a:
                logger.warning("Swaption %s into %s covers no rate; quote skipped", expiry, maturity)
                continue
            quotes.append(SwaptionQuote(row, column, a, b, float(quote)))
    return sorted(quotes, key=lambda q: (q.expiry_index, q.maturity_index))


def _align_correlation(correlation: Optional[Correlation], schedule: TenorSchedule) -> Correlation:
    n = schedule.rate_count
    if correlation is None:
        return PerfectCorrelation(n)
    if isinstance(correlation, ExponentialCorrelation):
        return ExponentialCorrelation(schedule.times[:n], *correlation.parameters)
    if correlation.size < n:
        raise InvalidInputError(
            f"Correlation covers {correlation.size} rates, calibration needs {n}"
        )
    if correlation.size > n:
        return correlation.resize(n)
    return correlation


# ----------------------------------------------------------------------
# Cascading bootstrap
# ----------------------------------------------------------------------
def _cascade(
    schedule: TenorSchedule,
    rho: np.ndarray,
    quotes: List[SwaptionQuote],
    parameters: BgmCalibrationParameters,
    root_finder: RootFinder,
) -> np.ndarray:
    n = schedule.rate_count
    vols = np.full((n, n), np.nan)
    for quote in quotes:
        a, b = quote.expiry_index, quote.maturity_index
        unset = [(i, k) for i in range(a, b) for k in range(a + 1) if np.isnan(vols[i, k])]
        if not unset:
            logger.warning(
                "Swaption [%s, %s) adds no new volatility; quote %.6f skipped", a, b, quote.volatility
            )
            continue
        rows, cols = (np.array(idx) for idx in zip(*unset))
        trial = vols.copy()

        def objective(x: float) -> float:
            trial[rows, cols] = x
            return analytic_swaption_volatility(schedule, trial, rho, a, b) - quote.volatility

        lower, upper = 1e-8, parameters.max_volatility
        try:
            result = root_finder.find_root(objective, lower, upper, xtol=parameters.tolerance)
        except BracketError as exc:
            best = min((lower, upper), key=lambda x: abs(objective(x)))
            residual = objective(best)
            raise CalibrationError(
                f"No forward volatility reproduces swaption [{a}, {b}) quote {quote.volatility:.6f}",
                best_estimate=trial.copy(),
                tolerance=abs(residual),
            ) from exc
        vols[rows, cols] = result.root
        logger.debug("Swaption [%s, %s): %s entries set to %.6f", a, b, len(unset), result.root)
    return _fill(vols)


def _fill(vols: np.ndarray) -> np.ndarray:
    """Complete the lower triangle from the stripped entries."""
    n = vols.shape[0]
    lower = np.tril(np.ones((n, n), dtype=bool))
    if np.all(np.isnan(vols[lower])):
        raise CalibrationError("No forward volatility could be calibrated")
    filled = vols.copy()
    empty = []
    for i in range(n):
        row = filled[i, : i + 1]
        known = np.flatnonzero(~np.isnan(row))
        if known.size == 0:
            empty.append(i)
            continue
        row[: known[0]] = row[known[0]]
        for j in range(known[0] + 1, i + 1):
            if np.isnan(row[j]):
                row[j] = row[j - 1]
    first_known = min(i for i in range(n) if i not in empty)
    for i in empty:
        if i > first_known:
            filled[i, :i] = filled[i - 1, :i]
            filled[i, i] = filled[i - 1, i - 1]
    for i in reversed(empty):
        if i < first_known:
            filled[i, : i + 1] = filled[i + 1, : i + 1]
    filled[~lower] = 0.0
    return filled


# ----------------------------------------------------------------------
# Piecewise-constant fit
# ----------------------------------------------------------------------
def piecewise_volatilities(
    method: CalibrationMethod, phi: np.ndarray, psi: np.ndarray
) -> np.ndarray:
    """Forward volatility matrix of the ``Ψ·Φ`` parametrisations."""
    n = len(psi)
    i, j = np.tril_indices(n)
    vols = np.zeros((n, n))
    if method is CalibrationMethod.TIME_HOMOGENEOUS:
        vols[i, j] = psi[i] * phi[j]
    elif method is CalibrationMethod.LENGTH_HOMOGENEOUS:
        vols[i, j] = psi[i] * phi[i - j]
    else:
        raise NotSupportedError(f"Calibration method {method} is not piecewise constant")
    return vols


def _piecewise_fit(
    schedule: TenorSchedule,
    correlation: Correlation,
    quotes: List[SwaptionQuote],
    parameters: BgmCalibrationParameters,
    optimizer: LeastSquaresOptimizer,
) -> Tuple[np.ndarray, np.ndarray, Correlation]:
    n = schedule.rate_count
    method = parameters.method
    targets = np.array([q.volatility for q in quotes])
    fit_correlation = parameters.fit_correlation
    reset_times = schedule.times[:n]

    x0 = [float(np.clip(targets.mean(), *parameters.phi_bounds))] * n
    x0 += [float(np.clip(1.0, *parameters.psi_bounds))] * n
    lower = [parameters.phi_bounds[0]] * n + [parameters.psi_bounds[0]] * n
    upper = [parameters.phi_bounds[1]] * n + [parameters.psi_bounds[1]] * n
    rho = correlation.matrix()
    if fit_correlation:
        start = (
            correlation.parameters
            if isinstance(correlation, ExponentialCorrelation)
            else (0.0, 0.1, 1.0)
        )
        x0 += list(start)
        lower += [b[0] for b in ExponentialCorrelation.PARAMETER_BOUNDS]
        upper += [b[1] for b in ExponentialCorrelation.PARAMETER_BOUNDS]

    def unpack(x: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        vols = piecewise_volatilities(method, x[:n], x[n : 2 * n])
        matrix = (
            exponential_from_parameters(reset_times, x[2 * n :]).matrix()
            if fit_correlation
            else rho
        )
        return vols, matrix, x[2 * n :]

    def residuals(x: np.ndarray) -> np.ndarray:
        vols, matrix, _ = unpack(x)
        model = [
            analytic_swaption_volatility(schedule, vols, matrix, q.expiry_index, q.maturity_index)
            for q in quotes
        ]
        return np.asarray(model) - targets

    fit = optimizer.minimize(
        residuals,
        x0,
        lower,
        upper,
        tolerance=parameters.tolerance,
        max_iterations=parameters.max_iterations,
    )
    vols, _, corr_parameters = unpack(fit.x)
    if fit_correlation:
        correlation = exponential_from_parameters(reset_times, corr_parameters)
    table = np.column_stack((fit.x[:n], fit.x[n : 2 * n]))
    logger.debug(
        "Piecewise %s fit: max error %.3e after %s evaluations",
        method.value,
        fit.max_error,
        fit.iterations,
    )
    if not fit.converged:
        logger.warning("Piecewise volatility fit did not converge: %s", fit.message)
    if parameters.max_fit_error is not None and fit.max_error > parameters.max_fit_error:
        raise CalibrationError(
            f"Piecewise fit error {fit.max_error:.3e} exceeds {parameters.max_fit_error:.3e}",
            best_estimate=table,
            tolerance=fit.max_error,
        )
    return vols, table, correlation


def _fit_errors(
    result: CalibratedVolatilities, quotes: List[SwaptionQuote], shape: Tuple[int, int]
) -> np.ndarray:
    errors = np.full(shape, np.nan)
    for q in quotes:
        model = result.swaption_volatility(q.expiry_index, q.maturity_index)
        errors[q.row, q.column] = model - q.volatility
    return errors
