import numpy as np
import pytest

from bgmlib.conventions.types import DistributionType, OptionType
from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.errors import InvalidInputError
from bgmlib.lattice import LatticeConfig, TenorSchedule, build_node_grid, build_rate_lattice
from bgmlib.models.black import bachelier_price, black_price
from bgmlib.valuation.evaluator import evaluate_bermudan, evaluate_caplet


def test_node_grid_merges_resets_and_extra_times(annual_schedule):
    nodes, step_times = build_node_grid(annual_schedule, [0.5, 2.0], steps_per_year=4)
    assert [n.time for n in nodes] == [0.0, 0.5, 1.0, 2.0, 3.0, 4.0]
    assert [n.reset for n in nodes] == [None, None, 0, 1, 2, 3]
    assert nodes[-1].step == len(step_times) - 1
    assert step_times[nodes[2].step] == pytest.approx(1.0)


def test_node_grid_rejects_times_after_last_reset(annual_schedule):
    with pytest.raises(InvalidInputError):
        build_node_grid(annual_schedule, [4.5])


def test_schedule_rejects_unordered_times():
    with pytest.raises(InvalidInputError):
        TenorSchedule.from_forwards([1.0, 3.0, 2.0], [0.03, 0.03])


def test_probabilities_sum_to_one(flat_lattice):
    for d in range(flat_lattice.date_count):
        assert flat_lattice.probabilities(d).sum() == pytest.approx(1.0, abs=1e-12)


def test_zero_coupon_bonds_are_martingales(flat_lattice, annual_schedule):
    dfs = annual_schedule.discount_factors
    for d, node in enumerate(flat_lattice.nodes):
        for i in range(node.first, flat_lattice.rate_count):
            expected = flat_lattice.numeraire_discount * flat_lattice.expectation(
                d, flat_lattice.annuities(d, i)
            )
            assert expected == pytest.approx(dfs[i + 1], rel=1e-10)


def test_forwards_are_martingales_until_reset(flat_lattice, annual_schedule):
    for i in range(flat_lattice.rate_count):
        reset = flat_lattice.reset_date(i)
        for d in range(reset + 1):
            if flat_lattice.nodes[d].first > i:
                continue
            value = flat_lattice.expectation(
                d, flat_lattice.rates(d, i) * flat_lattice.annuities(d, i)
            )
            expected = annual_schedule.forwards[i] * annual_schedule.annuity(i + 1)
            assert value == pytest.approx(expected, rel=1e-10)


def test_zero_volatility_reproduces_forwards(annual_schedule):
    curves = [VolatilityCurve.flat(0.0)] * annual_schedule.rate_count
    lattice = build_rate_lattice(annual_schedule, curves, config=LatticeConfig(steps_per_year=4))
    assert lattice.jump == 0.0
    for d, node in enumerate(lattice.nodes):
        for i in range(node.first, lattice.rate_count):
            np.testing.assert_allclose(lattice.rates(d, i), annual_schedule.forwards[i])


@pytest.mark.parametrize(
    "distribution, volatility, pricer",
    [
        (DistributionType.LOGNORMAL, 0.2, black_price),
        (DistributionType.NORMAL, 0.006, bachelier_price),
    ],
)
def test_caplet_matches_closed_form(distribution, volatility, pricer):
    schedule = TenorSchedule.from_forwards([1.0, 2.0], [0.03])
    lattice = build_rate_lattice(
        schedule,
        [VolatilityCurve.flat(volatility)],
        config=LatticeConfig(steps_per_year=200, distribution=distribution),
    )
    value = evaluate_caplet(lattice, 0, 0.03)
    expected = schedule.discount_factors[1] * pricer(0.03, 0.03, 1.0, volatility)
    assert value == pytest.approx(expected, rel=2e-2)


def test_caplet_put_call_parity(flat_lattice, annual_schedule):
    i, strike = 2, 0.035
    call = evaluate_caplet(flat_lattice, i, strike, OptionType.CALL)
    put = evaluate_caplet(flat_lattice, i, strike, OptionType.PUT)
    dfs = annual_schedule.discount_factors
    forward_value = dfs[i + 1] * annual_schedule.fractions[i] * (annual_schedule.forwards[i] - strike)
    assert call - put == pytest.approx(forward_value, abs=1e-10)


def test_views_are_read_only(flat_lattice):
    view = flat_lattice.rates_view(1, 0)
    assert len(view) == flat_lattice.get_state_count(1)
    assert view[0] == flat_lattice.get_rate(1, 0, 0)
    with pytest.raises(TypeError):
        view[0] = 1.0
    with pytest.raises(IndexError):
        flat_lattice.rates_view(3, 0)


def test_accessors_return_zero_outside_range(flat_lattice):
    assert flat_lattice.get_probability(0, 5) == 0.0
    assert flat_lattice.get_rate(0, 0, 99) == 0.0
    assert flat_lattice.get_swap_rate_annuity(1, 10_000) == (0.0, 0.0)


def test_find_date(flat_lattice):
    assert flat_lattice.find_date(2.0) == 2
    assert flat_lattice.find_date(2.5) is None
    assert flat_lattice.reset_date(0) == 1


def test_transition_rows_and_conditional_expectation(flat_lattice):
    forward = flat_lattice.transition(1, 3)
    np.testing.assert_allclose(forward.sum(axis=1), 1.0, atol=1e-10)
    backward = flat_lattice.transition(3, 1)
    np.testing.assert_allclose(backward.sum(axis=1), 1.0, atol=1e-10)
    ones = np.ones(flat_lattice.get_state_count(3))
    np.testing.assert_allclose(flat_lattice.conditional_expectation(1, 3, ones), 1.0)
    assert flat_lattice.get_conditional_probability(1, 0, 1, 0) == 1.0


def test_swap_rate_annuity_at_root_matches_schedule(flat_lattice, annual_schedule):
    rates, annuities = flat_lattice.swap_rates_annuities(0, first_rate=1)
    rate, level = annual_schedule.swap_rate_annuity(1)
    assert rates[0] == pytest.approx(rate)
    assert annuities[0] * flat_lattice.numeraire_discount == pytest.approx(level)


def test_builder_input_errors(annual_schedule):
    with pytest.raises(InvalidInputError):
        build_rate_lattice(annual_schedule, [VolatilityCurve.flat(0.2)])
    with pytest.raises(InvalidInputError):
        build_rate_lattice(
            annual_schedule,
            [VolatilityCurve.flat(0.2)] * 4,
            config=LatticeConfig(tail_cutoff=-1.0),
        )


def test_expectation_shape_mismatch(flat_lattice):
    with pytest.raises(InvalidInputError):
        flat_lattice.expectation(1, [1.0])
    with pytest.raises(InvalidInputError):
        flat_lattice.conditional_expectation(0, 1, [1.0])


def test_annuities_are_positive_and_shrink_with_the_tenor(flat_lattice):
    for d, node in enumerate(flat_lattice.nodes):
        previous = None
        for i in range(node.first, flat_lattice.rate_count):
            bonds = flat_lattice.annuities(d, i)
            assert np.all(bonds >= 0.0)
            if previous is not None:
                assert np.all(bonds <= previous + 1e-14)
            previous = bonds

        previous = None
        for first in range(node.first, flat_lattice.rate_count):
            _, annuities = flat_lattice.swap_rates_annuities(d, first_rate=first)
            assert np.all(annuities >= 0.0)
            if previous is not None:
                assert np.all(annuities <= previous + 1e-14)
            previous = annuities


def test_zero_volatility_bermudan_is_the_best_intrinsic_value(make_records):
    schedule = TenorSchedule.from_forwards([1.0, 2.0, 3.0, 4.0, 5.0], [0.02, 0.03, 0.04, 0.05])
    lattice = build_rate_lattice(
        schedule,
        [VolatilityCurve.flat(0.0)] * schedule.rate_count,
        config=LatticeConfig(steps_per_year=4),
    )
    records = make_records(schedule, strike=0.03, volatility=0.0)
    intrinsic = [r.level * max(r.rate - r.coupon, 0.0) for r in records]
    assert max(intrinsic) > intrinsic[0]
    result = evaluate_bermudan(lattice, records)
    assert result.value == pytest.approx(max(intrinsic), rel=1e-10)
