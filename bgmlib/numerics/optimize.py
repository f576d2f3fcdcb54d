"""Bounded non-linear least-squares strategies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

import numpy as np
from scipy.optimize import least_squares

logger = logging.getLogger(__name__)

Residuals = Callable[[np.ndarray], np.ndarray]


@dataclass
class FitResult:
    """Outcome of a least-squares fit.

    Attributes:
        x: Fitted parameters
        cost: Half the sum of squared residuals at ``x``
        max_error: Largest absolute residual at ``x``
        iterations: Function evaluations used
        converged: Whether the optimizer reported success
        message: Optimizer status message
    """

    x: np.ndarray
    cost: float
    max_error: float
    iterations: int
    converged: bool
    message: str = ""


class LeastSquaresOptimizer(Protocol):
    """Minimizes ``sum(residuals(x)**2)`` subject to box bounds."""

    def minimize(
        self,
        residuals: Residuals,
        x0: Sequence[float],
        lower: Sequence[float],
        upper: Sequence[float],
        *,
        tolerance: float = 1e-10,
        max_iterations: Optional[int] = None,
    ) -> FitResult:
        ...


class ScipyLeastSquares:
    """Trust-region reflective least squares (:func:`scipy.optimize.least_squares`)."""

    def __init__(self, method: str = "trf"):
        self.method = method

    def minimize(
        self,
        residuals: Residuals,
        x0: Sequence[float],
        lower: Sequence[float],
        upper: Sequence[float],
        *,
        tolerance: float = 1e-10,
        max_iterations: Optional[int] = None,
    ) -> FitResult:
        lo = np.asarray(lower, dtype=float)
        hi = np.asarray(upper, dtype=float)
        start = np.clip(np.asarray(x0, dtype=float), lo, hi)
        sol = least_squares(
            residuals,
            start,
            bounds=(lo, hi),
            method=self.method,
            xtol=tolerance,
            ftol=tolerance,
            gtol=tolerance,
            max_nfev=max_iterations,
        )
        max_error = float(np.max(np.abs(sol.fun))) if sol.fun.size else 0.0
        logger.debug(
            "least_squares finished: cost=%.3e max_error=%.3e nfev=%s status=%s",
            sol.cost,
            max_error,
            sol.nfev,
            sol.status,
        )
        return FitResult(
            x=sol.x,
            cost=float(sol.cost),
            max_error=max_error,
            iterations=int(sol.nfev),
            converged=bool(sol.success),
            message=str(sol.message),
        )


DEFAULT_OPTIMIZER = ScipyLeastSquares()
