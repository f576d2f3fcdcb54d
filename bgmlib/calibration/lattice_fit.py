"""
Fit of the lattice common volatility to co-terminal swaption values.

Every rate of the co-terminal schedule shares one piecewise-flat volatility
curve with a value per exercise interval. The initial values strip the
Black variances of the records. Sequential sweeps solve each interval
volatility in turn so that the lattice European value of the matching
record equals the record value. The jump size of the lattice depends on
every interval, so the sweeps stop once the residual stalls and a joint
least-squares step over all intervals finishes the fit.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from bgmlib.conventions.types import DistributionType
from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.errors import InvalidInputError, SolverConvergenceError
from bgmlib.lattice.builder import LatticeConfig, build_rate_lattice
from bgmlib.lattice.exercise import european_value
from bgmlib.lattice.rate_lattice import RateLattice
from bgmlib.lattice.schedule import TenorSchedule
from bgmlib.numerics.optimize import DEFAULT_OPTIMIZER, LeastSquaresOptimizer
from bgmlib.numerics.rootfinding import DEFAULT_ROOT_FINDER, RootFinder

logger = logging.getLogger(__name__)

# Lowest interval volatility tried by the fit
MIN_VOLATILITY = 1e-8


@dataclass
class LatticeFitConfig:
    """Settings of the co-terminal lattice fit.

    Attributes:
        tolerance: Value error per unit level; a record's own ``accuracy``
            applies when it is larger
        max_sweeps: Sequential interval sweeps before the joint refinement
        stall_ratio: A sweep that does not shrink the worst error below this
            fraction of the previous one ends the sweeps
        xtol: Tolerance of the interval root searches and the joint step
        max_volatility: Upper bound of an interval volatility (defaults to
            5.0 lognormal, 1.0 normal)
        max_evaluations: Lattice builds allowed to the joint refinement
    """

    tolerance: float = 1e-6
    max_sweeps: int = 3
    stall_ratio: float = 0.5
    xtol: float = 1e-10
    max_volatility: Optional[float] = None
    max_evaluations: Optional[int] = None


def initial_volatilities(swaptions: Sequence) -> List[float]:
    """Interval volatilities stripped from the record variances ``σ² t``."""
    result = []
    prev_time, prev_var = 0.0, 0.0
    for swaption in swaptions:
        variance = swaption.volatility ** 2 * swaption.time
        span = swaption.time - prev_time
        increment = variance - prev_var
        if span > 0.0 and increment > 0.0:
            result.append(math.sqrt(increment / span))
        else:
            result.append(swaption.volatility)
        prev_time, prev_var = swaption.time, max(variance, prev_var)
    return result


def fit_coterminal_volatilities(
    schedule: TenorSchedule,
    swaptions: Sequence,
    lattice_config: LatticeConfig | None = None,
    config: LatticeFitConfig | None = None,
    node_times: Optional[Sequence[float]] = None,
    root_finder: RootFinder = DEFAULT_ROOT_FINDER,
    optimizer: LeastSquaresOptimizer = DEFAULT_OPTIMIZER,
) -> Tuple[List[VolatilityCurve], RateLattice]:
    """Fit per-interval volatilities so the lattice reprices every record.

    Args:
        schedule: Co-terminal schedule; rate ``i`` resets at record ``i``
        swaptions: Co-terminal swaption records, one per rate
        lattice_config: Lattice settings used for every trial lattice
        config: Fit settings
        node_times: Extra lattice dates (years), e.g. American exercise dates
        root_finder: Root finder of the sequential sweeps
        optimizer: Bounded least-squares strategy of the joint refinement

    Returns:
        The fitted volatility curves (one per rate) and the final lattice

    Raises:
        InvalidInputError: Records that do not match the schedule
        SolverConvergenceError: Values still off after the joint refinement
    """
    lattice_config = lattice_config or LatticeConfig()
    config = config or LatticeFitConfig()
    n = schedule.rate_count
    if len(swaptions) != n:
        raise InvalidInputError(f"Expected {n} swaption records, got {len(swaptions)}")

    upper = config.max_volatility
    if upper is None:
        upper = 5.0 if lattice_config.distribution is DistributionType.LOGNORMAL else 1.0
    knots = list(schedule.times[:n])
    limits = np.array([max(s.accuracy, config.tolerance) for s in swaptions])
    vols = [min(max(v, MIN_VOLATILITY), upper) for v in initial_volatilities(swaptions)]

    def build(values: Sequence[float]) -> RateLattice:
        curve = VolatilityCurve(knots, list(values))
        return build_rate_lattice(schedule, [curve] * n, node_times, config=lattice_config)

    def errors(lattice: RateLattice) -> np.ndarray:
        return np.array([
            (european_value(lattice, s) - s.value) / s.level if s.level > 0.0 else 0.0
            for s in swaptions
        ])

    def fitted(residuals: np.ndarray) -> bool:
        return bool(np.all(np.abs(residuals) <= limits))

    lattice = build(vols)
    residuals = errors(lattice)
    worst = float(np.max(np.abs(residuals)))
    for sweep in range(config.max_sweeps):
        if fitted(residuals):
            logger.debug("Lattice fit converged after %s sweeps", sweep)
            return [VolatilityCurve(knots, vols)] * n, lattice
        for i, swaption in enumerate(swaptions):
            vols[i] = _solve_interval(build, vols, i, swaption, upper, config, root_finder)
        lattice = build(vols)
        residuals = errors(lattice)
        previous, worst = worst, float(np.max(np.abs(residuals)))
        logger.debug("Lattice fit sweep %s: max error %.3e", sweep + 1, worst)
        if worst > config.stall_ratio * previous:
            break
    if fitted(residuals):
        return [VolatilityCurve(knots, vols)] * n, lattice

    fit = optimizer.minimize(
        lambda x: errors(build(x)),
        vols,
        [MIN_VOLATILITY] * n,
        [upper] * n,
        tolerance=config.xtol,
        max_iterations=config.max_evaluations,
    )
    logger.debug(
        "Joint lattice fit: max error %.3e after %s evaluations", fit.max_error, fit.iterations
    )
    if fit.max_error < worst:
        vols = [float(v) for v in fit.x]
        lattice = build(vols)
        residuals = errors(lattice)
        worst = float(np.max(np.abs(residuals)))
    if not fitted(residuals):
        raise SolverConvergenceError(
            f"Lattice fit did not reprice the records (max error {worst:.3e})",
            best_estimate=list(vols),
            tolerance=worst,
        )
    return [VolatilityCurve(knots, vols)] * n, lattice


def _solve_interval(build, vols, index, swaption, upper, config, root_finder) -> float:
    trial = list(vols)

    def objective(x: float) -> float:
        trial[index] = x
        return european_value(build(trial), swaption) - swaption.value

    low = objective(MIN_VOLATILITY)
    if low >= 0.0:
        return MIN_VOLATILITY
    high = objective(upper)
    if high <= 0.0:
        logger.warning(
            "Record on %s needs a volatility above %s; capped", swaption.date, upper
        )
        return upper
    result = root_finder.find_root(objective, MIN_VOLATILITY, upper, xtol=config.xtol)
    return result.root
