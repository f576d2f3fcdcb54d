"""Exception types shared across the lattice, calibration and valuation code."""

from __future__ import annotations

from typing import Optional, Tuple


class BgmError(Exception):
    """Base class for all errors raised by bgmlib."""


class InvalidInputError(BgmError, ValueError):
    """Raised when schedules, dimensions or arguments are malformed."""


class NotSupportedError(BgmError, NotImplementedError):
    """Raised when a distribution or method is not supported by a component."""


class CalibrationError(BgmError, RuntimeError):
    """Raised when a calibration or solve fails to reach its tolerance.

    Attributes:
        best_estimate: Last estimate produced before giving up (if any)
        tolerance: Tolerance achieved by the last estimate (if known)
    """

    def __init__(
        self,
        message: str,
        best_estimate: Optional[object] = None,
        tolerance: Optional[float] = None,
    ):
        super().__init__(message)
        self.best_estimate = best_estimate
        self.tolerance = tolerance


class SolverConvergenceError(CalibrationError):
    """Raised when the solver fails to converge within iteration limit."""


class FeasibleQuoteError(CalibrationError):
    """Raised when no feasible curve bump can be found."""


class BracketError(BgmError, ValueError):
    """Raised when a root-finding window holds no sign change.

    Attributes:
        bracket: Last window tried, ``(lower, upper)`` (if known)
        values: Function values at the window ends (if known)
    """

    def __init__(
        self,
        message: str,
        bracket: Optional[Tuple[float, float]] = None,
        values: Optional[Tuple[float, float]] = None,
    ):
        super().__init__(message)
        self.bracket = bracket
        self.values = values


class SpreadBracketError(CalibrationError, BracketError):
    """Raised when no spread in the searched window reproduces the target price.

    ``best_estimate`` is the window end closest to the target and
    ``tolerance`` its price error.
    """
