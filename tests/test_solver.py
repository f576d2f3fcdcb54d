import math

import pytest

from bgmlib.errors import CalibrationError, FeasibleQuoteError, SpreadBracketError
from bgmlib.valuation.solver import (
    SpreadSolverConfig,
    find_min_feasible_quote,
    solve_discount_spread,
    solve_survival_spread,
)


def _bond_price(shift: float) -> float:
    return 100.0 * math.exp(-5.0 * (0.03 + shift))


@pytest.mark.parametrize("spread", [0.0123, -0.004, 0.085])
def test_discount_spread_recovers_the_shift(spread):
    solution = solve_discount_spread(_bond_price, _bond_price(spread))
    assert solution.spread == pytest.approx(spread, abs=1e-7)
    assert solution.price == pytest.approx(_bond_price(spread), abs=1e-5)


def test_discount_spread_outside_the_grid():
    solution = solve_discount_spread(_bond_price, _bond_price(0.2))
    assert solution.spread == pytest.approx(0.2, abs=1e-7)


def test_discount_spread_flat_price_cannot_be_bracketed():
    config = SpreadSolverConfig(max_iterations=10)
    with pytest.raises(SpreadBracketError):
        solve_discount_spread(lambda shift: 99.0, 100.0, config)


def test_survival_spread_respects_the_feasible_region():
    seen = []

    def price(shift: float) -> float:
        seen.append(shift)
        return 100.0 * math.exp(-4.0 * (0.02 + shift))

    solution = solve_survival_spread(
        price, price(0.01), lower_bound=-1.0, is_feasible=lambda s: s >= -0.02
    )
    assert solution.spread == pytest.approx(0.01, abs=1e-7)
    assert min(seen) >= -0.02


def test_survival_spread_below_the_feasible_minimum():
    def price(shift: float) -> float:
        return 100.0 * math.exp(-4.0 * (0.02 + shift))

    with pytest.raises(SpreadBracketError):
        solve_survival_spread(price, price(-0.05), lower_bound=-0.02)


def test_find_min_feasible_quote():
    assert find_min_feasible_quote(lambda s: s > -0.3) == pytest.approx(-0.3, abs=1e-3)
    assert find_min_feasible_quote(lambda s: s > -0.3) > -0.3
    assert find_min_feasible_quote(lambda s: True, lower=-0.5) == -0.5
    with pytest.raises(FeasibleQuoteError):
        find_min_feasible_quote(lambda s: s > 0.1)


def test_unreachable_target_reports_the_closest_shift():
    config = SpreadSolverConfig(max_iterations=10)
    with pytest.raises(CalibrationError) as info:
        solve_discount_spread(lambda shift: 99.0 - shift, 1e9, config)
    error = info.value
    assert isinstance(error, SpreadBracketError)
    assert isinstance(error, ValueError)
    assert error.best_estimate is not None
    assert error.tolerance == pytest.approx(abs(99.0 - error.best_estimate - 1e9))
