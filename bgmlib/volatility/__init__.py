"""Volatility sources consumed by the swaption builder."""

from .sources import (
    BgmVolatilitySurface,
    FlatVolatility,
    SwaptionVolatilitySurface,
    TermStructureVolatility,
    VolatilityCube,
    VolatilitySource,
)

__all__ = [
    "VolatilitySource",
    # Market sources
    "FlatVolatility",
    "TermStructureVolatility",
    "SwaptionVolatilitySurface",
    "VolatilityCube",
    # Model source
    "BgmVolatilitySurface",
]
