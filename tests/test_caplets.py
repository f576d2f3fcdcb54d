import pytest

from bgmlib.calibration.caplets import (
    bootstrap_caplet_curve,
    bootstrap_caplet_surface,
    build_caplets,
)
from bgmlib.conventions.dates import add_tenor
from bgmlib.conventions.types import DistributionType
from bgmlib.errors import CalibrationError, InvalidInputError

MATURITIES = ["1Y", "2Y", "3Y"]


def test_build_caplets_skips_the_fixed_period(as_of, flat_curve):
    caplets = build_caplets(as_of, add_tenor(as_of, "1Y"), flat_curve, frequency_months=3)
    assert len(caplets) == 3
    pay, first = caplets[0]
    assert pay == add_tenor(as_of, "6M")
    assert first.expiry == pytest.approx((add_tenor(as_of, "3M") - as_of).days / 365.0)
    assert first.discount == pytest.approx(flat_curve.df(pay))


def test_flat_cap_volatilities_give_flat_caplets(as_of, flat_curve):
    result = bootstrap_caplet_curve(as_of, MATURITIES, [0.2, 0.2, 0.2], 0.03, flat_curve)
    assert len(result.curve) == 3
    for t in result.curve.times:
        assert result.curve.value(t) == pytest.approx(0.2, abs=1e-8)
    assert max(abs(e) for e in result.fit_errors) < 1e-10


def test_rising_cap_volatilities_give_steeper_caplets(as_of, flat_curve):
    result = bootstrap_caplet_curve(as_of, MATURITIES, [0.18, 0.2, 0.21], 0.03, flat_curve)
    values = list(result.curve.values)
    assert values[0] == pytest.approx(0.18, abs=1e-8)
    assert values[1] > 0.2
    assert values[2] > 0.21


def test_normal_cap_volatilities(as_of, flat_curve):
    result = bootstrap_caplet_curve(
        as_of, MATURITIES, [0.006] * 3, 0.03, flat_curve, distribution=DistributionType.NORMAL
    )
    assert list(result.curve.values) == pytest.approx([0.006] * 3, abs=1e-9)


def test_cap_inputs_are_validated(as_of, flat_curve):
    with pytest.raises(InvalidInputError):
        bootstrap_caplet_curve(as_of, MATURITIES, [0.2, 0.2], 0.03, flat_curve)
    with pytest.raises(InvalidInputError):
        bootstrap_caplet_curve(as_of, ["2Y", "1Y"], [0.2, 0.2], 0.03, flat_curve)


def test_surface_is_sorted_by_strike(as_of, flat_curve):
    surface = bootstrap_caplet_surface(
        as_of,
        MATURITIES,
        {0.04: [0.19, 0.19, 0.19], 0.02: [0.22, 0.22, 0.22], 0.03: [0.2, 0.2, 0.2]},
        flat_curve,
        max_workers=2,
    )
    assert [r.strike for r in surface] == [0.02, 0.03, 0.04]
    assert surface[0].curve.value(1.0) == pytest.approx(0.22, abs=1e-8)


def test_surface_failure_names_the_strike(as_of, flat_curve):
    with pytest.raises(CalibrationError, match="strike 0.05"):
        bootstrap_caplet_surface(
            as_of,
            MATURITIES,
            {0.03: [0.2, 0.2, 0.2], 0.05: [50.0, 50.0, 50.0]},
            flat_curve,
        )
