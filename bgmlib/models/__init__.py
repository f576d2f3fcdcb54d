"""Closed-form option models used for quoting and calibration."""

from .black import (
    bachelier_price,
    bachelier_vega,
    black_price,
    black_vega,
    convert_volatility,
    implied_black_volatility,
    implied_normal_volatility,
    implied_volatility,
    intrinsic_value,
    lognormal_to_normal_volatility,
    normal_to_lognormal_volatility,
    option_price,
)
from .sabr import SabrParameters, sabr_lognormal_volatility, sabr_normal_volatility

__all__ = [
    # Black / Bachelier
    "bachelier_price",
    "bachelier_vega",
    "black_price",
    "black_vega",
    "intrinsic_value",
    "option_price",
    # Implied volatilities and conversions
    "convert_volatility",
    "implied_black_volatility",
    "implied_normal_volatility",
    "implied_volatility",
    "lognormal_to_normal_volatility",
    "normal_to_lognormal_volatility",
    # SABR
    "SabrParameters",
    "sabr_lognormal_volatility",
    "sabr_normal_volatility",
]
