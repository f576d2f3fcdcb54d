"""
Curves consumed by the lattice and valuation code.
"""

from .base import BaseCurve, Curve
from .discount import DiscountCurve
from .survival import SurvivalCurve
from .volatility import VolatilityCurve

__all__ = [
    # Protocols and base classes
    "Curve",
    "BaseCurve",
    # Implementations
    "DiscountCurve",
    "SurvivalCurve",
    "VolatilityCurve",
]
