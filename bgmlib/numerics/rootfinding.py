"""Root-finding strategies (scipy Brent with bracketing helpers)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Protocol, Tuple

from scipy.optimize import brentq

from bgmlib.errors import BracketError, SolverConvergenceError

logger = logging.getLogger(__name__)

Func = Callable[[float], float]

RootFindingError = SolverConvergenceError


@dataclass
class RootResult:
    root: float
    iterations: int
    converged: bool
    method: str
    residual: float = math.nan


class RootFinder(Protocol):
    """One-dimensional bracketing root finder."""

    def find_root(
        self,
        func: Func,
        lower: float,
        upper: float,
        *,
        xtol: float = 1e-12,
        ftol: float = 0.0,
        max_iter: int = 100,
    ) -> RootResult:
        ...


def bisect(
    func: Func,
    lower: float,
    upper: float,
    tol: float = 1e-6,
    max_iter: int = 100,
) -> RootResult:
    """Plain bisection on a sign-changing bracket.

    Parameters
    ----------
    func:
        Function whose root is wanted.
    lower, upper:
        Bracket end points; ``func`` must change sign on it.
    tol:
        Absolute tolerance on the bracket width or the function value.
    """
    f_lower = func(lower)
    f_upper = func(upper)
    if f_lower == 0.0:
        return RootResult(lower, 0, True, "bisect", 0.0)
    if f_upper == 0.0:
        return RootResult(upper, 0, True, "bisect", 0.0)
    if f_lower * f_upper > 0:
        raise BracketError("Bisection requires a sign change in the bracket")

    for iteration in range(1, max_iter + 1):
        mid = 0.5 * (lower + upper)
        f_mid = func(mid)
        if abs(f_mid) <= tol or abs(upper - lower) <= tol:
            return RootResult(mid, iteration, True, "bisect", f_mid)
        if f_lower * f_mid < 0:
            upper, f_upper = mid, f_mid
        else:
            lower, f_lower = mid, f_mid
    raise RootFindingError(
        "Bisection failed to converge",
        best_estimate=0.5 * (lower + upper),
        tolerance=abs(upper - lower),
    )


def find_bracket(
    func: Func,
    lower: float,
    upper: float,
    *,
    expansion: float = 2.0,
    max_iter: int = 20,
    floor: float = -math.inf,
    cap: float = math.inf,
) -> Tuple[float, float]:
    """Widen ``[lower, upper]`` geometrically about its centre until ``func``
    changes sign. The window never leaves ``[floor, cap]``.
    """
    a, b = max(lower, floor), min(upper, cap)
    f_a, f_b = func(a), func(b)
    for iteration in range(max_iter):
        if f_a == 0.0:
            return a, a
        if f_b == 0.0:
            return b, b
        if f_a * f_b < 0:
            return a, b
        if a <= floor and b >= cap:
            break
        centre, half = 0.5 * (a + b), 0.5 * (b - a) * expansion
        a, b = max(centre - half, floor), min(centre + half, cap)
        f_a, f_b = func(a), func(b)
        logger.debug("Bracket widen %s: [%s, %s] -> (%s, %s)", iteration, a, b, f_a, f_b)
    if f_a * f_b < 0:
        return a, b
    raise BracketError(
        f"Failed to bracket the root: f({a:.6g})={f_a:.6e}, f({b:.6g})={f_b:.6e}",
        bracket=(a, b),
        values=(f_a, f_b),
    )


class BrentRootFinder:
    """Brent's method through :func:`scipy.optimize.brentq`.

    ``ftol`` short-cuts the search when an end point already satisfies
    ``|f| <= ftol``; the converged root is reported with its residual.
    """

    method = "brent"

    def find_root(
        self,
        func: Func,
        lower: float,
        upper: float,
        *,
        xtol: float = 1e-12,
        ftol: float = 0.0,
        max_iter: int = 100,
    ) -> RootResult:
        f_lower, f_upper = func(lower), func(upper)
        if abs(f_lower) <= ftol:
            return RootResult(lower, 0, True, self.method, f_lower)
        if abs(f_upper) <= ftol:
            return RootResult(upper, 0, True, self.method, f_upper)
        if f_lower * f_upper > 0:
            raise BracketError(
                f"Root is not bracketed: f({lower:.6g})={f_lower:.6e}, "
                f"f({upper:.6g})={f_upper:.6e}",
                bracket=(lower, upper),
                values=(f_lower, f_upper),
            )
        root, info = brentq(
            func, lower, upper, xtol=xtol, maxiter=max_iter, full_output=True, disp=False
        )
        residual = func(root)
        logger.debug(
            "Brent root %s after %s iterations (residual %.3e)",
            root,
            info.iterations,
            residual,
        )
        if not info.converged:
            raise RootFindingError(
                f"Brent failed to converge within {max_iter} iterations: {info.flag}",
                best_estimate=root,
                tolerance=abs(residual),
            )
        return RootResult(root, info.iterations, True, self.method, residual)


DEFAULT_ROOT_FINDER = BrentRootFinder()
