"""
Interpolation methods for discount and volatility curves.
"""

# Base classes
from .base import Interpolator

# Factory and utilities
from .factory import (
    DISCOUNT_FACTOR_METHODS,
    create_interpolator,
    discount_factor_to_zero_rate,
    zero_rate_to_discount_factor,
)

# Linear and step methods
from .linear import (
    LinearDiscountFactorInterpolator,
    LinearInterpolator,
    LogLinearDiscountInterpolator,
    PiecewiseConstantInterpolator,
)
from .monotone import MonotoneCubicInterpolator
from .step_forward import StepForwardContinuousInterpolator

__all__ = [
    # Base classes
    'Interpolator',

    # Linear and step methods
    'LinearInterpolator',
    'LinearDiscountFactorInterpolator',
    'LogLinearDiscountInterpolator',
    'PiecewiseConstantInterpolator',
    'StepForwardContinuousInterpolator',
    'MonotoneCubicInterpolator',

    # Factory and utilities
    'DISCOUNT_FACTOR_METHODS',
    'create_interpolator',
    'discount_factor_to_zero_rate',
    'zero_rate_to_discount_factor',
]
