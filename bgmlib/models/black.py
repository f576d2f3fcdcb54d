"""
Black (lognormal) and Bachelier (normal) option formulas on a forward rate.

Prices are per unit annuity and undiscounted: multiply by the swaption
level (or the caplet discount factor times accrual) to get a present value.
"""

import logging
import math

from scipy.stats import norm

from bgmlib.conventions.types import DistributionType, OptionType
from bgmlib.errors import BracketError, InvalidInputError, NotSupportedError
from bgmlib.numerics.rootfinding import DEFAULT_ROOT_FINDER, RootFinder

logger = logging.getLogger(__name__)


def intrinsic_value(forward: float, strike: float, option_type: OptionType) -> float:
    return max(option_type.sign * (forward - strike), 0.0)


def black_price(
    forward: float,
    strike: float,
    time: float,
    volatility: float,
    option_type: OptionType = OptionType.CALL,
) -> float:
    """Black price of an option on a lognormal forward.

    Non-positive forwards or strikes, expired options and zero volatility
    fall back to the intrinsic value.
    """
    if forward <= 0.0 or strike <= 0.0 or time <= 0.0 or volatility <= 0.0:
        return intrinsic_value(forward, strike, option_type)
    std = volatility * math.sqrt(time)
    d1 = math.log(forward / strike) / std + 0.5 * std
    d2 = d1 - std
    if option_type is OptionType.CALL:
        return forward * norm.cdf(d1) - strike * norm.cdf(d2)
    return strike * norm.cdf(-d2) - forward * norm.cdf(-d1)


def bachelier_price(
    forward: float,
    strike: float,
    time: float,
    volatility: float,
    option_type: OptionType = OptionType.CALL,
) -> float:
    """Bachelier price of an option on a normal forward."""
    if time <= 0.0 or volatility <= 0.0:
        return intrinsic_value(forward, strike, option_type)
    std = volatility * math.sqrt(time)
    moneyness = option_type.sign * (forward - strike)
    d = moneyness / std
    return moneyness * norm.cdf(d) + std * norm.pdf(d)


def black_vega(forward: float, strike: float, time: float, volatility: float) -> float:
    """dPrice/dVol of the Black formula (same for calls and puts)."""
    if forward <= 0.0 or strike <= 0.0 or time <= 0.0 or volatility <= 0.0:
        return 0.0
    std = volatility * math.sqrt(time)
    d1 = math.log(forward / strike) / std + 0.5 * std
    return forward * math.sqrt(time) * norm.pdf(d1)


def bachelier_vega(forward: float, strike: float, time: float, volatility: float) -> float:
    """dPrice/dVol of the Bachelier formula."""
    if time <= 0.0 or volatility <= 0.0:
        return 0.0
    std = volatility * math.sqrt(time)
    return math.sqrt(time) * norm.pdf((forward - strike) / std)


def option_price(
    distribution: DistributionType,
    forward: float,
    strike: float,
    time: float,
    volatility: float,
    option_type: OptionType = OptionType.CALL,
) -> float:
    """Dispatch to the Black or Bachelier formula."""
    if distribution is DistributionType.LOGNORMAL:
        return black_price(forward, strike, time, volatility, option_type)
    if distribution is DistributionType.NORMAL:
        return bachelier_price(forward, strike, time, volatility, option_type)
    raise NotSupportedError(f"DistributionType {distribution} not supported")


def _implied(
    pricer,
    price: float,
    forward: float,
    strike: float,
    time: float,
    option_type: OptionType,
    upper: float,
    root_finder: RootFinder,
) -> float:
    floor = pricer(forward, strike, time, 0.0, option_type)
    if price < floor - 1e-14:
        raise InvalidInputError(
            f"Price {price:.6e} is below intrinsic value {floor:.6e}"
        )
    if price <= floor:
        return 0.0
    try:
        result = root_finder.find_root(
            lambda v: pricer(forward, strike, time, v, option_type) - price,
            1e-12,
            upper,
            xtol=1e-14,
        )
    except BracketError as exc:
        raise InvalidInputError(
            f"No volatility below {upper} reproduces price {price:.6e}"
        ) from exc
    return result.root


def implied_black_volatility(
    price: float,
    forward: float,
    strike: float,
    time: float,
    option_type: OptionType = OptionType.CALL,
    upper: float = 10.0,
    root_finder: RootFinder = DEFAULT_ROOT_FINDER,
) -> float:
    """Lognormal volatility reproducing an undiscounted Black price."""
    if forward <= 0.0 or strike <= 0.0 or time <= 0.0:
        raise InvalidInputError("Black implied volatility needs positive forward, strike and time")
    return _implied(black_price, price, forward, strike, time, option_type, upper, root_finder)


def implied_normal_volatility(
    price: float,
    forward: float,
    strike: float,
    time: float,
    option_type: OptionType = OptionType.CALL,
    upper: float = 1.0,
    root_finder: RootFinder = DEFAULT_ROOT_FINDER,
) -> float:
    """Normal volatility reproducing an undiscounted Bachelier price."""
    if time <= 0.0:
        raise InvalidInputError("Normal implied volatility needs a positive time")
    return _implied(bachelier_price, price, forward, strike, time, option_type, upper, root_finder)


def implied_volatility(
    distribution: DistributionType,
    price: float,
    forward: float,
    strike: float,
    time: float,
    option_type: OptionType = OptionType.CALL,
) -> float:
    if distribution is DistributionType.LOGNORMAL:
        return implied_black_volatility(price, forward, strike, time, option_type)
    if distribution is DistributionType.NORMAL:
        return implied_normal_volatility(price, forward, strike, time, option_type)
    raise NotSupportedError(f"DistributionType {distribution} not supported")


def normal_to_lognormal_volatility(
    forward: float, strike: float, time: float, normal_volatility: float
) -> float:
    """Lognormal volatility giving the same out-of-the-money price as a normal one."""
    option_type = OptionType.CALL if strike >= forward else OptionType.PUT
    price = bachelier_price(forward, strike, time, normal_volatility, option_type)
    return implied_black_volatility(price, forward, strike, time, option_type)


def lognormal_to_normal_volatility(
    forward: float, strike: float, time: float, lognormal_volatility: float
) -> float:
    """Normal volatility giving the same out-of-the-money price as a lognormal one."""
    option_type = OptionType.CALL if strike >= forward else OptionType.PUT
    price = black_price(forward, strike, time, lognormal_volatility, option_type)
    return implied_normal_volatility(price, forward, strike, time, option_type)


def convert_volatility(
    volatility: float,
    forward: float,
    strike: float,
    time: float,
    source: DistributionType,
    target: DistributionType,
) -> float:
    """Convert a volatility between distributions by price matching."""
    if source is target:
        return volatility
    if source is DistributionType.NORMAL and target is DistributionType.LOGNORMAL:
        return normal_to_lognormal_volatility(forward, strike, time, volatility)
    if source is DistributionType.LOGNORMAL and target is DistributionType.NORMAL:
        return lognormal_to_normal_volatility(forward, strike, time, volatility)
    raise NotSupportedError(f"Cannot convert {source} volatility to {target}")
