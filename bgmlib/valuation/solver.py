"""Numerical solvers for the spreads implied by a target price.

The discount spread solver scans a grid of shifts, interpolates the inverse
price function for a first guess and refines it with Brent. The survival
spread solver starts from a linear guess and keeps the hazard shift inside
the feasible region of the survival curve.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from scipy.interpolate import PchipInterpolator

from bgmlib.errors import (
    BracketError,
    FeasibleQuoteError,
    SolverConvergenceError,
    SpreadBracketError,
)
from bgmlib.numerics.rootfinding import DEFAULT_ROOT_FINDER, RootFinder, find_bracket

logger = logging.getLogger(__name__)

PriceFunction = Callable[[float], float]


@dataclass
class SpreadSolverConfig:
    """Search settings of the spread solvers.

    Attributes:
        grid_start: First shift of the scan grid
        grid_stop: Last shift of the scan grid (inclusive)
        grid_step: Distance between grid shifts
        window: Half width of the initial bracket around the guess
        xtol: Absolute tolerance on the spread
        ftol: Absolute tolerance on the price
        max_iterations: Iteration limit of the refinement and of the bracket widening
    """

    grid_start: float = 0.10
    grid_stop: float = -0.005
    grid_step: float = 0.005
    window: float = 0.002
    xtol: float = 1e-8
    ftol: float = 1e-6
    max_iterations: int = 100


@dataclass
class SpreadSolution:
    spread: float
    price: float
    iterations: int
    converged: bool


def _grid(config: SpreadSolverConfig) -> np.ndarray:
    count = int(round((config.grid_start - config.grid_stop) / config.grid_step)) + 1
    return config.grid_start - config.grid_step * np.arange(count)


def _refine(
    objective: PriceFunction,
    lower: float,
    upper: float,
    config: SpreadSolverConfig,
    root_finder: RootFinder,
    floor: float = -np.inf,
) -> tuple[float, int]:
    try:
        lower, upper = find_bracket(
            objective,
            lower,
            upper,
            max_iter=min(config.max_iterations, 60),
            floor=floor,
        )
    except BracketError as exc:
        if exc.bracket is not None and exc.values is not None:
            ends = list(zip(exc.bracket, exc.values))
        else:
            ends = [(x, objective(x)) for x in (lower, upper)]
        best, error = min(ends, key=lambda end: abs(end[1]))
        raise SpreadBracketError(
            f"Spread bracket does not contain a solution around "
            f"[{lower:.6f}, {upper:.6f}]: {exc}. "
            f"Check that the target price is reachable.",
            best_estimate=best,
            tolerance=abs(error),
        ) from exc
    if lower == upper:
        return lower, 0
    result = root_finder.find_root(
        objective,
        lower,
        upper,
        xtol=config.xtol,
        ftol=config.ftol,
        max_iter=config.max_iterations,
    )
    return result.root, result.iterations


def solve_discount_spread(
    price_fn: PriceFunction,
    target: float,
    config: SpreadSolverConfig | None = None,
    root_finder: RootFinder = DEFAULT_ROOT_FINDER,
) -> SpreadSolution:
    """Solve for the discount curve shift at which ``price_fn`` equals ``target``.

    Args:
        price_fn: Price as a function of the discount curve shift
        target: Target price
        config: Solver settings
        root_finder: Bracketing root finder used for the refinement

    Returns:
        The solved spread with the price it reproduces

    Raises:
        SpreadBracketError: No root near the interpolated guess
        SolverConvergenceError: The refinement failed to converge
    """
    config = config or SpreadSolverConfig()

    shifts, prices = [], []
    for shift in _grid(config):
        price = price_fn(float(shift))
        if any(abs(price - p) <= 1e-14 for p in prices):
            continue
        shifts.append(float(shift))
        prices.append(price)
    logger.debug("Spread grid: %s distinct prices", len(prices))

    if len(prices) >= 2:
        order = np.argsort(prices)
        inverse = PchipInterpolator(
            np.asarray(prices)[order], np.asarray(shifts)[order], extrapolate=True
        )
        guess = float(inverse(target))
    else:
        guess = shifts[0] if shifts else 0.0
    if not np.isfinite(guess) or guess < -1.0:
        guess = -0.5
    logger.debug("Spread initial guess %.8f for target %.8f", guess, target)

    def objective(shift: float) -> float:
        return price_fn(shift) - target

    spread, iterations = _refine(
        objective, guess - config.window, guess + config.window, config, root_finder
    )
    return _checked(price_fn, target, spread, iterations, config)


def solve_survival_spread(
    price_fn: PriceFunction,
    target: float,
    lower_bound: float = -1.0,
    is_feasible: Optional[Callable[[float], bool]] = None,
    config: SpreadSolverConfig | None = None,
    root_finder: RootFinder = DEFAULT_ROOT_FINDER,
) -> SpreadSolution:
    """Solve for the hazard rate shift at which ``price_fn`` equals ``target``.

    Args:
        price_fn: Price as a function of the hazard rate shift
        target: Target price
        lower_bound: Lowest shift allowed
        is_feasible: Whether a shift keeps the survival curve valid
        config: Solver settings
        root_finder: Bracketing root finder used for the refinement

    Raises:
        FeasibleQuoteError: No shift above ``lower_bound`` is feasible
        SpreadBracketError: No root above the feasible minimum
        SolverConvergenceError: The refinement failed to converge
    """
    config = config or SpreadSolverConfig()
    if is_feasible is not None:
        lower_bound = max(lower_bound, find_min_feasible_quote(is_feasible, lower_bound, 0.0))

    step = 0.001
    base = price_fn(0.0)
    slope = (price_fn(step) - base) / step
    guess = (target - base) / slope if slope != 0.0 else 0.0
    guess = max(guess, lower_bound)
    logger.debug("Survival spread initial guess %.8f (lower bound %.8f)", guess, lower_bound)

    def objective(shift: float) -> float:
        return price_fn(shift) - target

    spread, iterations = _refine(
        objective,
        guess - config.window,
        guess + config.window,
        config,
        root_finder,
        floor=lower_bound,
    )
    return _checked(price_fn, target, spread, iterations, config)


def find_min_feasible_quote(
    is_feasible: Callable[[float], bool],
    lower: float = -1.0,
    upper: float = 0.0,
    tolerance: float = 1e-3,
) -> float:
    """Lowest feasible shift in ``[lower, upper]``, found by bisection.

    Raises:
        FeasibleQuoteError: ``upper`` itself is infeasible
    """
    if not is_feasible(upper):
        raise FeasibleQuoteError(
            f"No feasible shift in [{lower:.6f}, {upper:.6f}]",
            best_estimate=upper,
        )
    if is_feasible(lower):
        return lower
    # Invariant: lower infeasible, upper feasible
    while upper - lower > tolerance:
        mid = 0.5 * (lower + upper)
        if is_feasible(mid):
            upper = mid
        else:
            lower = mid
    return upper


def _checked(
    price_fn: PriceFunction,
    target: float,
    spread: float,
    iterations: int,
    config: SpreadSolverConfig,
) -> SpreadSolution:
    price = price_fn(spread)
    error = abs(price - target)
    if not np.isfinite(price):
        raise SolverConvergenceError(
            f"Spread solver stopped at {spread:.8f} with a non-finite price.",
            best_estimate=spread,
            tolerance=error,
        )
    converged = error <= config.ftol
    if not converged:
        # Spread tolerance met first on a steep price function
        logger.warning(
            "Spread %.8f prices %.3e off target (ftol %.1e)", spread, error, config.ftol
        )
    logger.debug("Spread %.8f after %s iterations (error %.3e)", spread, iterations, error)
    return SpreadSolution(spread, price, iterations, converged)
