"""
Factory functions and utilities for creating interpolators.
"""
import math
from typing import Sequence

from .base import Interpolator
from .linear import (
    LinearDiscountFactorInterpolator,
    LinearInterpolator,
    LogLinearDiscountInterpolator,
    PiecewiseConstantInterpolator,
)
from .monotone import MonotoneCubicInterpolator
from .step_forward import StepForwardContinuousInterpolator

# Methods whose values are discount factors
DISCOUNT_FACTOR_METHODS = ("LINEAR_DF", "LOGLINEAR_DF", "STEP_FORWARD", "STEP_FORWARD_CONTINUOUS")


def create_interpolator(
    method: str, pillars: Sequence[float], values: Sequence[float]
) -> Interpolator:
    """
    Create an interpolator based on method name.

    Args:
        method: Interpolation method name
        pillars: Time points
        values: Values to interpolate

    Returns:
        Configured interpolator
    """
    method_upper = method.upper()

    if method_upper == "LINEAR":
        return LinearInterpolator(pillars, values)
    if method_upper == "LINEAR_DF":
        return LinearDiscountFactorInterpolator(pillars, values)
    if method_upper == "LOGLINEAR_DF":
        return LogLinearDiscountInterpolator(pillars, values)
    if method_upper == "PIECEWISE_CONSTANT":
        return PiecewiseConstantInterpolator(pillars, values)
    if method_upper == "PIECEWISE_FLAT_LEFT":
        return PiecewiseConstantInterpolator(pillars, values, left_continuous=True)
    if method_upper in ("STEP_FORWARD", "STEP_FORWARD_CONTINUOUS"):
        return StepForwardContinuousInterpolator(pillars, values)
    if method_upper in ("PCHIP", "MONOTONE_CUBIC"):
        return MonotoneCubicInterpolator(pillars, values)
    raise ValueError(
        f"Unknown interpolation method: {method}. Available: LINEAR, LINEAR_DF, "
        "LOGLINEAR_DF, PIECEWISE_CONSTANT, PIECEWISE_FLAT_LEFT, STEP_FORWARD, PCHIP"
    )


def discount_factor_to_zero_rate(df: float, time: float) -> float:
    """Convert discount factor to continuously compounded zero rate."""
    if df <= 0:
        raise ValueError("Discount factor must be positive")
    if time <= 0:
        raise ValueError("Time must be positive")
    return -math.log(df) / time


def zero_rate_to_discount_factor(rate: float, time: float) -> float:
    """Convert zero rate to discount factor."""
    return math.exp(-rate * time)
