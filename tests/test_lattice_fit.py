import inspect
from dataclasses import replace

import pytest

from bgmlib.calibration import lattice_fit
from bgmlib.calibration.lattice_fit import (
    LatticeFitConfig,
    fit_coterminal_volatilities,
    initial_volatilities,
)
from bgmlib.errors import InvalidInputError
from bgmlib.lattice import LatticeConfig
from bgmlib.lattice.exercise import european_value
from bgmlib.numerics.optimize import DEFAULT_OPTIMIZER


def test_initial_volatilities_strip_variances(records):
    assert initial_volatilities(records) == pytest.approx([0.2] * 4)
    rising = [replace(s, volatility=v) for s, v in zip(records, [0.2, 0.25, 0.25, 0.3])]
    stripped = initial_volatilities(rising)
    assert stripped[0] == pytest.approx(0.2)
    assert stripped[1] == pytest.approx((0.25 ** 2 * 2 - 0.04) ** 0.5)
    assert stripped[1] > 0.25


def test_initial_volatilities_fall_back_on_decreasing_variance(records):
    falling = [replace(s, volatility=v) for s, v in zip(records, [0.3, 0.1, 0.1, 0.1])]
    assert initial_volatilities(falling)[1] == pytest.approx(0.1)


def test_fit_reprices_every_record(annual_schedule, records):
    curves, lattice = fit_coterminal_volatilities(
        annual_schedule, records, LatticeConfig(steps_per_year=20)
    )
    assert len(curves) == annual_schedule.rate_count
    assert all(curve is curves[0] for curve in curves)
    for swaption in records:
        error = european_value(lattice, swaption) - swaption.value
        assert abs(error) <= 1.01e-6 * swaption.level


def test_fit_follows_a_volatility_term_structure(annual_schedule, make_records):
    records = make_records(annual_schedule, volatility=0.25)
    records[2:] = make_records(annual_schedule, volatility=0.22)[2:]
    curves, lattice = fit_coterminal_volatilities(
        annual_schedule, records, LatticeConfig(steps_per_year=20), LatticeFitConfig(tolerance=1e-6)
    )
    values = list(curves[0].values)
    assert values[0] > values[2]
    for swaption in records:
        assert european_value(lattice, swaption) == pytest.approx(
            swaption.value, abs=1.01e-6 * swaption.level
        )


def test_fit_rejects_record_count_mismatch(annual_schedule, records):
    with pytest.raises(InvalidInputError):
        fit_coterminal_volatilities(annual_schedule, records[:3])


class _CountingOptimizer:
    def __init__(self):
        self.calls = 0

    def minimize(self, *args, **kwargs):
        self.calls += 1
        return DEFAULT_OPTIMIZER.minimize(*args, **kwargs)


def test_joint_refinement_finishes_the_fit(annual_schedule, make_records):
    records = make_records(annual_schedule, volatility=0.25)
    records[2:] = make_records(annual_schedule, volatility=0.22)[2:]
    optimizer = _CountingOptimizer()
    curves, lattice = fit_coterminal_volatilities(
        annual_schedule,
        records,
        LatticeConfig(steps_per_year=20),
        LatticeFitConfig(max_sweeps=0),
        optimizer=optimizer,
    )
    assert optimizer.calls == 1
    assert list(curves[0].values)[0] > list(curves[0].values)[2]
    for swaption in records:
        error = european_value(lattice, swaption) - swaption.value
        assert abs(error) <= 1.01e-6 * swaption.level


def test_fit_reaches_the_default_tolerance_at_fine_steps(annual_schedule, records):
    _, lattice = fit_coterminal_volatilities(
        annual_schedule, records, LatticeConfig(steps_per_year=50)
    )
    for swaption in records:
        error = european_value(lattice, swaption) - swaption.value
        assert abs(error) <= 1.01e-6 * swaption.level


def test_fit_depends_on_the_lattice_layer_only():
    source = inspect.getsource(lattice_fit)
    assert "bgmlib.valuation" not in source
    assert lattice_fit.european_value is european_value
