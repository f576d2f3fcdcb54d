from dataclasses import replace

import pytest

from bgmlib.conventions.types import OptionStyle, OptionType
from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.errors import InvalidInputError
from bgmlib.lattice import LatticeConfig, TenorSchedule, build_rate_lattice
from bgmlib.lattice.exercise import european_value
from bgmlib.valuation.evaluator import evaluate_bermudan, evaluate_caplet, find_override


def test_european_values_close_to_black(flat_lattice, records):
    for swaption in records:
        assert european_value(flat_lattice, swaption) == pytest.approx(swaption.value, rel=5e-2)


def test_bermudan_dominates_every_european(flat_lattice, records):
    result = evaluate_bermudan(flat_lattice, records)
    assert len(result.european_values) == len(records)
    assert result.value >= max(result.european_values) - 1e-12
    assert result.exercise_dates == (1, 2, 3, 4)


def test_european_style_uses_the_first_record(flat_lattice, records):
    result = evaluate_bermudan(flat_lattice, records, OptionStyle.EUROPEAN)
    assert result.value == pytest.approx(result.european_values[0], rel=1e-12)
    assert result.exercise_dates == (1,)


def test_american_dominates_bermudan(annual_schedule, records):
    curves = [VolatilityCurve.flat(0.2)] * annual_schedule.rate_count
    lattice = build_rate_lattice(
        annual_schedule, curves, [1.5, 2.5, 3.5], config=LatticeConfig(steps_per_year=20)
    )
    bermudan = evaluate_bermudan(lattice, records, OptionStyle.BERMUDAN)
    american = evaluate_bermudan(lattice, records, OptionStyle.AMERICAN)
    assert american.value >= bermudan.value - 1e-12
    assert len(american.exercise_dates) == 7


def test_put_records(flat_lattice, make_records, annual_schedule):
    puts = make_records(annual_schedule, strike=0.035, option_type=OptionType.PUT)
    result = evaluate_bermudan(flat_lattice, puts)
    assert result.value >= max(result.european_values) - 1e-12
    assert result.value > 0.0


def test_override_returns_record_value(flat_lattice, records):
    forced = list(records)
    forced[1] = replace(records[1], rate=1.0, level=1.5, value=0.42)
    assert find_override(forced) == 1
    assert find_override(records) is None
    assert evaluate_bermudan(flat_lattice, forced).value == 0.42


def test_empty_records(flat_lattice):
    result = evaluate_bermudan(flat_lattice, [])
    assert result.value == 0.0
    assert result.european_values == ()


def test_record_errors(flat_lattice, records):
    with pytest.raises(InvalidInputError):
        evaluate_bermudan(flat_lattice, [records[1], records[0]])
    with pytest.raises(InvalidInputError):
        evaluate_bermudan(flat_lattice, [replace(records[0], time=1.5)])


def test_call_probabilities(flat_lattice, records, annual_schedule):
    result = evaluate_bermudan(flat_lattice, records, track_call_probabilities=True)
    probabilities = result.call_probabilities
    assert len(probabilities) == len(records)
    assert [p.date for p in probabilities] == [s.date for s in records]
    assert all(0.0 <= p.probability <= 1.0 for p in probabilities)
    assert sum(p.probability for p in probabilities) <= 1.0 + 1e-10
    assert probabilities[0].probability > 0.0
    for i, p in enumerate(probabilities):
        assert p.zero_price == pytest.approx(annual_schedule.discount_factors[i], rel=1e-9)


def test_call_probabilities_not_tracked_by_default(flat_lattice, records):
    assert evaluate_bermudan(flat_lattice, records).call_probabilities is None


def test_caplet_index_out_of_range(flat_lattice):
    with pytest.raises(InvalidInputError):
        evaluate_caplet(flat_lattice, 4, 0.03)
    with pytest.raises(InvalidInputError):
        evaluate_caplet(flat_lattice, -1, 0.03)


def test_two_period_schedule_agrees_with_black(make_records):
    schedule = TenorSchedule.from_forwards([1.0, 2.0, 3.0], [0.03, 0.03])
    lattice = build_rate_lattice(
        schedule, [VolatilityCurve.flat(0.2)] * 2, config=LatticeConfig(steps_per_year=50)
    )
    for swaption in make_records(schedule):
        error = european_value(lattice, swaption) - swaption.value
        assert abs(error) <= 2e-4 * swaption.level


def test_at_the_money_payer_equals_receiver(flat_lattice, make_records, annual_schedule):
    payers = make_records(annual_schedule, strike=0.03)
    receivers = make_records(annual_schedule, strike=0.03, option_type=OptionType.PUT)
    for payer, receiver in zip(payers, receivers):
        assert payer.rate == pytest.approx(0.03, abs=1e-12)
        assert european_value(flat_lattice, payer) == pytest.approx(
            european_value(flat_lattice, receiver), abs=1e-10
        )
