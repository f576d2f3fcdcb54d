"""Numerical strategies: root finding, least squares and result records."""

from .optimize import (
    DEFAULT_OPTIMIZER,
    FitResult,
    LeastSquaresOptimizer,
    ScipyLeastSquares,
)
from .result import Result
from .rootfinding import (
    DEFAULT_ROOT_FINDER,
    BrentRootFinder,
    RootFinder,
    RootFindingError,
    RootResult,
    bisect,
    find_bracket,
)

__all__ = [
    # Root finding
    "RootFinder",
    "BrentRootFinder",
    "DEFAULT_ROOT_FINDER",
    "RootFindingError",
    "RootResult",
    "bisect",
    "find_bracket",
    # Least squares
    "LeastSquaresOptimizer",
    "ScipyLeastSquares",
    "DEFAULT_OPTIMIZER",
    "FitResult",
    # Results
    "Result",
]
