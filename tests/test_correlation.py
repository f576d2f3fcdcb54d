import numpy as np
import pytest

from bgmlib.calibration.correlation import (
    ExponentialCorrelation,
    MatrixCorrelation,
    PerfectCorrelation,
    create_correlation,
    exponential_from_parameters,
    reduce_rank,
)
from bgmlib.conventions.types import CorrelationType
from bgmlib.errors import InvalidInputError


def test_perfect_correlation():
    corr = PerfectCorrelation(3)
    np.testing.assert_array_equal(corr.matrix(), np.ones((3, 3)))
    assert corr.resize(2).size == 2
    with pytest.raises(InvalidInputError):
        corr.resize(4)


def test_exponential_correlation_decays_with_distance():
    corr = ExponentialCorrelation([1.0, 2.0, 5.0], rho_inf=0.2, beta=0.3)
    matrix = corr.matrix()
    np.testing.assert_allclose(np.diag(matrix), 1.0)
    assert matrix[0, 1] > matrix[0, 2] > 0.2
    assert corr[0, 1] == pytest.approx(0.2 + 0.8 * np.exp(-0.3))


def test_exponential_resize_keeps_last_rates():
    corr = ExponentialCorrelation([1.0, 2.0, 5.0], beta=0.3).resize(2)
    assert corr.times == (2.0, 5.0)
    assert corr[0, 1] == pytest.approx(np.exp(-0.9))


def test_matrix_correlation_validation():
    with pytest.raises(InvalidInputError):
        MatrixCorrelation([[1.0, 0.5], [0.4, 1.0]])
    with pytest.raises(InvalidInputError):
        MatrixCorrelation([[2.0, 0.5], [0.5, 1.0]])
    with pytest.raises(InvalidInputError):
        MatrixCorrelation([[1.0, 0.9, -0.9], [0.9, 1.0, 0.9], [-0.9, 0.9, 1.0]])
    corr = MatrixCorrelation([[1.0, 0.5, 0.2], [0.5, 1.0, 0.5], [0.2, 0.5, 1.0]])
    np.testing.assert_allclose(corr.resize(2).matrix(), [[1.0, 0.5], [0.5, 1.0]])


def test_reduce_rank_keeps_unit_diagonal():
    corr = ExponentialCorrelation([1.0, 2.0, 3.0, 4.0], beta=0.5)
    reduced = reduce_rank(corr.matrix(), 2)
    np.testing.assert_allclose(np.diag(reduced), 1.0)
    assert np.linalg.matrix_rank(reduced, tol=1e-8) == 2
    assert isinstance(corr.reduce_rank(1), MatrixCorrelation)
    np.testing.assert_allclose(np.abs(corr.reduce_rank(1).matrix()), 1.0, atol=1e-12)
    with pytest.raises(InvalidInputError):
        reduce_rank(corr.matrix(), 0)


def test_create_correlation():
    assert isinstance(create_correlation(CorrelationType.PERFECT, size=2), PerfectCorrelation)
    exp = create_correlation(CorrelationType.EXPONENTIAL, times=[1.0, 2.0], parameters=[0.1, 0.2, 1.0])
    assert exp.parameters == (0.1, 0.2, 1.0)
    with pytest.raises(InvalidInputError):
        create_correlation(CorrelationType.MATRIX)


def test_exponential_from_parameters_clips_to_bounds():
    corr = exponential_from_parameters([1.0, 2.0], [1.4, -0.5, 3.0])
    assert corr.parameters == (1.0, 0.0, 2.0)
