import math

import pytest

from bgmlib.conventions.types import DistributionType, OptionType
from bgmlib.errors import InvalidInputError, NotSupportedError
from bgmlib.models.black import (
    bachelier_price,
    bachelier_vega,
    black_price,
    black_vega,
    convert_volatility,
    implied_black_volatility,
    implied_normal_volatility,
    intrinsic_value,
    lognormal_to_normal_volatility,
    normal_to_lognormal_volatility,
    option_price,
)
from bgmlib.models.sabr import SabrParameters, sabr_lognormal_volatility, sabr_normal_volatility


@pytest.mark.parametrize("pricer, vol", [(black_price, 0.25), (bachelier_price, 0.008)])
@pytest.mark.parametrize("strike", [0.02, 0.03, 0.045])
def test_put_call_parity(pricer, vol, strike):
    forward, time = 0.03, 2.0
    call = pricer(forward, strike, time, vol, OptionType.CALL)
    put = pricer(forward, strike, time, vol, OptionType.PUT)
    assert call - put == pytest.approx(forward - strike, abs=1e-14)


def test_bachelier_at_the_money():
    assert bachelier_price(0.03, 0.03, 4.0, 0.01) == pytest.approx(0.02 / math.sqrt(2 * math.pi))


def test_degenerate_inputs_give_intrinsic_value():
    assert black_price(0.03, 0.02, 0.0, 0.2) == pytest.approx(0.01)
    assert black_price(-0.01, 0.02, 1.0, 0.2, OptionType.PUT) == pytest.approx(0.03)
    assert bachelier_price(0.03, 0.04, 1.0, 0.0, OptionType.PUT) == pytest.approx(0.01)
    assert intrinsic_value(0.03, 0.04, OptionType.CALL) == 0.0


def test_vegas_match_finite_differences():
    bump = 1e-6
    fd = (black_price(0.03, 0.035, 3.0, 0.2 + bump) - black_price(0.03, 0.035, 3.0, 0.2 - bump)) / (2 * bump)
    assert black_vega(0.03, 0.035, 3.0, 0.2) == pytest.approx(fd, rel=1e-6)
    fd = (bachelier_price(0.03, 0.035, 3.0, 0.01 + bump) - bachelier_price(0.03, 0.035, 3.0, 0.01 - bump)) / (2 * bump)
    assert bachelier_vega(0.03, 0.035, 3.0, 0.01) == pytest.approx(fd, rel=1e-6)


@pytest.mark.parametrize("option_type", [OptionType.CALL, OptionType.PUT])
def test_implied_volatility_round_trip(option_type):
    price = black_price(0.03, 0.032, 1.5, 0.27, option_type)
    assert implied_black_volatility(price, 0.03, 0.032, 1.5, option_type) == pytest.approx(0.27, abs=1e-10)
    price = bachelier_price(0.03, 0.032, 1.5, 0.0075, option_type)
    assert implied_normal_volatility(price, 0.03, 0.032, 1.5, option_type) == pytest.approx(0.0075, abs=1e-10)


def test_implied_volatility_errors():
    with pytest.raises(InvalidInputError):
        implied_black_volatility(0.001, 0.05, 0.03, 1.0)
    with pytest.raises(InvalidInputError):
        implied_black_volatility(0.01, -0.01, 0.03, 1.0)
    assert implied_black_volatility(0.02, 0.05, 0.03, 1.0) == 0.0


def test_volatility_conversions_round_trip():
    forward, strike, time = 0.03, 0.035, 2.0
    normal = lognormal_to_normal_volatility(forward, strike, time, 0.2)
    assert normal == pytest.approx(0.2 * math.sqrt(forward * strike), rel=2e-2)
    assert normal_to_lognormal_volatility(forward, strike, time, normal) == pytest.approx(0.2, abs=1e-9)
    assert convert_volatility(
        0.2, forward, strike, time, DistributionType.LOGNORMAL, DistributionType.LOGNORMAL
    ) == 0.2
    assert convert_volatility(
        0.2, forward, strike, time, DistributionType.LOGNORMAL, DistributionType.NORMAL
    ) == pytest.approx(normal)


def test_option_price_dispatch():
    assert option_price(DistributionType.NORMAL, 0.03, 0.03, 1.0, 0.01) == pytest.approx(
        bachelier_price(0.03, 0.03, 1.0, 0.01)
    )
    with pytest.raises(NotSupportedError):
        option_price("shifted", 0.03, 0.03, 1.0, 0.01)


def test_sabr_degenerate_cases():
    lognormal = SabrParameters(alpha=0.2, beta=1.0, rho=0.0, nu=0.0)
    assert sabr_lognormal_volatility(0.03, 0.04, 2.0, lognormal) == pytest.approx(0.2)
    normal = SabrParameters(alpha=0.008, beta=0.0, rho=0.0, nu=0.0)
    assert sabr_normal_volatility(-0.005, 0.01, 2.0, normal) == pytest.approx(0.008)


def test_sabr_smile_shape():
    params = SabrParameters(alpha=0.04, beta=0.5, rho=-0.3, nu=0.5)
    low = sabr_lognormal_volatility(0.03, 0.02, 1.0, params)
    atm = sabr_lognormal_volatility(0.03, 0.03, 1.0, params)
    assert low > atm
    assert sabr_normal_volatility(0.03, 0.03, 1.0, params) > 0.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"alpha": 0.2, "beta": 0.5, "rho": 1.0, "nu": 0.3},
        {"alpha": 0.0, "beta": 0.5, "rho": 0.0, "nu": 0.3},
        {"alpha": 0.2, "beta": 1.5, "rho": 0.0, "nu": 0.3},
        {"alpha": 0.2, "beta": 0.5, "rho": 0.0, "nu": -0.1},
    ],
)
def test_sabr_parameter_validation(kwargs):
    with pytest.raises(InvalidInputError):
        SabrParameters(**kwargs)
