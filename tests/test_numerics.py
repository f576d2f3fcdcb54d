import math

import numpy as np
import pytest

from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.errors import BracketError, InvalidInputError
from bgmlib.interpolation import (
    LinearInterpolator,
    LogLinearDiscountInterpolator,
    MonotoneCubicInterpolator,
    PiecewiseConstantInterpolator,
    StepForwardContinuousInterpolator,
    create_interpolator,
    discount_factor_to_zero_rate,
)
from bgmlib.numerics import BrentRootFinder, Result, ScipyLeastSquares, bisect, find_bracket
from bgmlib.volatility.sources import (
    FlatVolatility,
    SwaptionVolatilitySurface,
    TermStructureVolatility,
    VolatilityCube,
)


class TestRootFinding:
    def test_bisect(self):
        result = bisect(lambda x: x * x - 2.0, 0.0, 2.0, tol=1e-10)
        assert result.converged
        assert result.root == pytest.approx(math.sqrt(2.0), abs=1e-8)

    def test_bisect_needs_a_sign_change(self):
        with pytest.raises(BracketError):
            bisect(lambda x: x * x + 1.0, -1.0, 1.0)

    def test_find_bracket_widens_the_window(self):
        a, b = find_bracket(lambda x: x - 5.0, 0.0, 1.0)
        assert a < 5.0 < b

    def test_find_bracket_respects_the_cap(self):
        with pytest.raises(BracketError):
            find_bracket(lambda x: x - 5.0, 0.0, 1.0, floor=0.0, cap=3.0)

    def test_brent(self):
        result = BrentRootFinder().find_root(math.cos, 0.0, 3.0)
        assert result.root == pytest.approx(math.pi / 2.0, abs=1e-10)
        assert result.method == "brent"
        with pytest.raises(BracketError):
            BrentRootFinder().find_root(math.cos, 0.0, 1.0)


def test_result_capture():
    assert Result.capture(lambda: 3).unwrap() == 3
    failed = Result.capture(lambda: 1 / 0)
    assert not failed.ok
    with pytest.raises(ZeroDivisionError):
        failed.unwrap()


def test_least_squares_with_bounds():
    target = np.array([1.0, 2.0])
    optimizer = ScipyLeastSquares()
    fit = optimizer.minimize(lambda x: x - target, [0.0, 0.0], [-5.0, -5.0], [5.0, 5.0])
    assert fit.x == pytest.approx(target, abs=1e-8)
    assert fit.max_error < 1e-8
    bounded = optimizer.minimize(lambda x: x - target, [0.0, 0.0], [1.5, -5.0], [5.0, 5.0])
    assert bounded.x[0] == pytest.approx(1.5)
    assert bounded.max_error == pytest.approx(0.5, abs=1e-8)


class TestInterpolation:
    def test_linear(self):
        interp = LinearInterpolator([2.0, 1.0], [3.0, 1.0])
        assert interp(1.5) == pytest.approx(2.0)
        assert interp(0.0) == 1.0
        assert interp(3.0) == 3.0

    def test_piecewise_constant(self):
        right = PiecewiseConstantInterpolator([1.0, 2.0], [0.1, 0.2])
        left = PiecewiseConstantInterpolator([1.0, 2.0], [0.1, 0.2], left_continuous=True)
        assert right(1.5) == 0.1
        assert left(1.5) == 0.2
        assert left(1.0) == 0.1
        assert left(2.0) == 0.2

    def test_log_linear_and_step_forward_agree_between_pillars(self):
        dfs = [math.exp(-0.03), math.exp(-0.07)]
        log_linear = LogLinearDiscountInterpolator([1.0, 2.0], dfs)
        step = StepForwardContinuousInterpolator([1.0, 2.0], dfs)
        assert log_linear(1.5) == pytest.approx(math.exp(-0.05))
        assert step(1.5) == pytest.approx(math.exp(-0.05))
        assert step.forward_rates == pytest.approx([0.03, 0.04])
        assert step.interpolate_zero_rate(1.5) == pytest.approx(0.05 / 1.5)
        assert log_linear(0.5) == pytest.approx(math.exp(-0.015))

    def test_monotone_cubic(self):
        interp = MonotoneCubicInterpolator([0.0, 1.0, 2.0], [0.0, 1.0, 4.0], extrapolate=False)
        samples = interp.interpolate_many(np.linspace(0.0, 2.0, 41))
        assert np.all(np.diff(samples) >= 0.0)
        assert interp(1.0) == pytest.approx(1.0)
        assert interp(3.0) == 4.0

    def test_factory(self):
        assert isinstance(create_interpolator("pchip", [0.0, 1.0], [0.0, 1.0]), MonotoneCubicInterpolator)
        with pytest.raises(ValueError):
            create_interpolator("spline", [0.0, 1.0], [0.0, 1.0])

    def test_validation(self):
        with pytest.raises(ValueError):
            LinearInterpolator([1.0, 1.0], [0.1, 0.2])
        with pytest.raises(ValueError):
            LogLinearDiscountInterpolator([1.0], [0.0])
        assert discount_factor_to_zero_rate(math.exp(-0.06), 2.0) == pytest.approx(0.03)


class TestVolatilitySources:
    def test_flat(self, as_of):
        assert FlatVolatility(0.2).get_volatility(as_of, as_of, None, 0.03) == 0.2
        with pytest.raises(InvalidInputError):
            FlatVolatility(-0.1)

    def test_term_structure(self, as_of):
        source = TermStructureVolatility(VolatilityCurve.flat(0.25))
        assert source.get_volatility(as_of, as_of.replace(year=2026), None, 0.03) == pytest.approx(0.25)

    def test_surface_interpolation(self):
        surface = SwaptionVolatilitySurface([1.0, 2.0], [1.0, 5.0], [[0.2, 0.3], [0.4, 0.5]])
        assert surface.value(1.5, 3.0) == pytest.approx(0.35)
        assert surface.value(0.5, 10.0) == pytest.approx(0.3)
        with pytest.raises(InvalidInputError):
            SwaptionVolatilitySurface([1.0, 2.0], [1.0], [[0.2, 0.3]])

    def test_cube_applies_the_skew(self, as_of, flat_curve, bond_cashflow):
        atm = SwaptionVolatilitySurface([1.0], [1.0], [[0.2]])
        skews = [
            SwaptionVolatilitySurface([1.0], [1.0], [[0.02]]),
            SwaptionVolatilitySurface([1.0], [1.0], [[-0.02]]),
        ]
        cube = VolatilityCube(atm, [-0.01, 0.01], skews, flat_curve)
        expiry = as_of.replace(year=2026)
        forward = cube.forward_swap_rate(expiry, bond_cashflow)
        assert forward > 0.0
        assert cube.get_volatility(as_of, expiry, None, 0.03) == pytest.approx(0.2)
        assert cube.get_volatility(as_of, expiry, bond_cashflow, forward) == pytest.approx(0.2)
        assert cube.get_volatility(as_of, expiry, bond_cashflow, forward + 0.01) == pytest.approx(0.18)
        assert cube.get_volatility(as_of, expiry, bond_cashflow, forward - 0.05) == pytest.approx(0.22)
        with pytest.raises(InvalidInputError):
            VolatilityCube(atm, [0.01, -0.01], skews, flat_curve)
