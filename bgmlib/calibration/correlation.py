"""
Correlation structures between forward rates.

Correlations are used by the analytic swaption and caplet volatilities of
the calibrator; the lattice itself is one-factor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

import numpy as np

from bgmlib.conventions.types import CorrelationType
from bgmlib.errors import InvalidInputError


# Eigenvalues above -PSD_TOLERANCE count as non-negative
PSD_TOLERANCE = 1e-10


class Correlation(ABC):
    """Symmetric correlation over ``size`` forward rates."""

    correlation_type: CorrelationType

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of rates covered."""

    @abstractmethod
    def matrix(self) -> np.ndarray:
        """Dense ``[size, size]`` correlation matrix."""

    @abstractmethod
    def resize(self, size: int) -> "Correlation":
        """Correlation of the last ``size`` rates (leading rates expired)."""

    def __getitem__(self, index: Tuple[int, int]) -> float:
        i, j = index
        return float(self.matrix()[i, j])

    def reduce_rank(self, rank: int) -> "MatrixCorrelation":
        """Best rank-``rank`` approximation with unit diagonal."""
        return MatrixCorrelation(reduce_rank(self.matrix(), rank))

    def _check_resize(self, size: int) -> None:
        if not 0 < size <= self.size:
            raise InvalidInputError(f"Cannot resize correlation of size {self.size} to {size}")


class PerfectCorrelation(Correlation):
    """All rates perfectly correlated."""

    correlation_type = CorrelationType.PERFECT

    def __init__(self, size: int):
        if size <= 0:
            raise InvalidInputError("Correlation size must be positive")
        self._size = size

    @property
    def size(self) -> int:
        return self._size

    def matrix(self) -> np.ndarray:
        return np.ones((self._size, self._size))

    def resize(self, size: int) -> "PerfectCorrelation":
        self._check_resize(size)
        return PerfectCorrelation(size)

    def __repr__(self) -> str:
        return f"PerfectCorrelation(size={self._size})"


class MatrixCorrelation(Correlation):
    """Full correlation matrix, validated symmetric positive semi-definite."""

    correlation_type = CorrelationType.MATRIX

    def __init__(self, matrix: Sequence[Sequence[float]]):
        data = np.array(matrix, dtype=float)
        if data.ndim != 2 or data.shape[0] != data.shape[1] or data.shape[0] == 0:
            raise InvalidInputError(f"Correlation matrix must be square, got shape {data.shape}")
        if not np.allclose(data, data.T, atol=1e-12):
            raise InvalidInputError("Correlation matrix must be symmetric")
        if not np.allclose(np.diag(data), 1.0, atol=1e-10):
            raise InvalidInputError("Correlation matrix must have a unit diagonal")
        if np.any(np.abs(data) > 1.0 + 1e-12):
            raise InvalidInputError("Correlations must lie in [-1, 1]")
        min_eig = float(np.linalg.eigvalsh(data).min())
        if min_eig < -PSD_TOLERANCE:
            raise InvalidInputError(
                f"Correlation matrix is not positive semi-definite (min eigenvalue {min_eig:.3e})"
            )
        data.setflags(write=False)
        self._matrix = data

    @property
    def size(self) -> int:
        return self._matrix.shape[0]

    def matrix(self) -> np.ndarray:
        return self._matrix.copy()

    def resize(self, size: int) -> "MatrixCorrelation":
        self._check_resize(size)
        return MatrixCorrelation(self._matrix[-size:, -size:])

    def __repr__(self) -> str:
        return f"MatrixCorrelation(size={self.size})"


class ExponentialCorrelation(Correlation):
    """``rho_ij = rho_inf + (1 - rho_inf) exp(-beta |T_i - T_j|^alpha)``.

    Args:
        times: Reset times of the rates
        rho_inf: Long-range correlation level in [0, 1]
        beta: Decay speed (>= 0)
        alpha: Distance exponent in (0, 2]
    """

    correlation_type = CorrelationType.EXPONENTIAL
    PARAMETER_BOUNDS = ((0.0, 1.0), (0.0, 10.0), (0.05, 2.0))

    def __init__(
        self,
        times: Sequence[float],
        rho_inf: float = 0.0,
        beta: float = 0.1,
        alpha: float = 1.0,
    ):
        if len(times) == 0:
            raise InvalidInputError("Exponential correlation needs at least one time")
        if not 0.0 <= rho_inf <= 1.0:
            raise InvalidInputError(f"rho_inf must be in [0, 1], got {rho_inf}")
        if beta < 0.0:
            raise InvalidInputError(f"beta must be non-negative, got {beta}")
        if not 0.0 < alpha <= 2.0:
            raise InvalidInputError(f"alpha must be in (0, 2], got {alpha}")
        self.times = tuple(float(t) for t in times)
        self.rho_inf = rho_inf
        self.beta = beta
        self.alpha = alpha

    @property
    def size(self) -> int:
        return len(self.times)

    @property
    def parameters(self) -> Tuple[float, float, float]:
        return (self.rho_inf, self.beta, self.alpha)

    def with_parameters(self, rho_inf: float, beta: float, alpha: float) -> "ExponentialCorrelation":
        return ExponentialCorrelation(self.times, rho_inf, beta, alpha)

    def matrix(self) -> np.ndarray:
        t = np.asarray(self.times)
        distance = np.abs(t[:, None] - t[None, :]) ** self.alpha
        return self.rho_inf + (1.0 - self.rho_inf) * np.exp(-self.beta * distance)

    def resize(self, size: int) -> "ExponentialCorrelation":
        self._check_resize(size)
        return ExponentialCorrelation(self.times[-size:], self.rho_inf, self.beta, self.alpha)

    def __repr__(self) -> str:
        return (
            f"ExponentialCorrelation(size={self.size}, rho_inf={self.rho_inf}, "
            f"beta={self.beta}, alpha={self.alpha})"
        )


def reduce_rank(matrix: np.ndarray, rank: int) -> np.ndarray:
    """Eigen-truncate a correlation matrix and rescale rows to unit length."""
    n = matrix.shape[0]
    if not 0 < rank <= n:
        raise InvalidInputError(f"Rank must be in [1, {n}], got {rank}")
    eigenvalues, eigenvectors = np.linalg.eigh(matrix)
    order = np.argsort(eigenvalues)[::-1][:rank]
    loadings = eigenvectors[:, order] * np.sqrt(np.clip(eigenvalues[order], 0.0, None))
    norms = np.linalg.norm(loadings, axis=1)
    if np.any(norms == 0.0):
        raise InvalidInputError("Rank reduction left a rate with no loading")
    loadings = loadings / norms[:, None]
    reduced = loadings @ loadings.T
    np.fill_diagonal(reduced, 1.0)
    return np.clip(0.5 * (reduced + reduced.T), -1.0, 1.0)


def create_correlation(
    correlation_type: CorrelationType,
    size: Optional[int] = None,
    times: Optional[Sequence[float]] = None,
    matrix: Optional[Sequence[Sequence[float]]] = None,
    parameters: Optional[Sequence[float]] = None,
) -> Correlation:
    """Create a correlation structure by type."""
    if correlation_type is CorrelationType.PERFECT:
        if size is None:
            size = len(times) if times is not None else None
        if size is None:
            raise InvalidInputError("Perfect correlation needs a size")
        return PerfectCorrelation(size)
    if correlation_type is CorrelationType.MATRIX:
        if matrix is None:
            raise InvalidInputError("Matrix correlation needs a matrix")
        return MatrixCorrelation(matrix)
    if correlation_type is CorrelationType.EXPONENTIAL:
        if times is None:
            raise InvalidInputError("Exponential correlation needs rate times")
        return ExponentialCorrelation(times, *(parameters or ()))
    raise InvalidInputError(f"Unknown correlation type: {correlation_type}")


def exponential_from_parameters(times: Sequence[float], parameters: Sequence[float]) -> ExponentialCorrelation:
    rho_inf, beta, alpha = (float(p) for p in parameters)
    return ExponentialCorrelation(times, min(max(rho_inf, 0.0), 1.0), max(beta, 0.0), min(max(alpha, 1e-6), 2.0))


