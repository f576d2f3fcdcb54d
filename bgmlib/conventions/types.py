"""
Basic types and enums used across the lattice, calibration and valuation code.
"""

from enum import Enum


class DistributionType(Enum):
    """Distribution assumed for forward and swap rates."""

    LOGNORMAL = "LOGNORMAL"
    NORMAL = "NORMAL"


class OptionType(Enum):
    """Option right on the underlying swap rate.

    A call pays ``rate - strike`` (payer swaption), a put pays
    ``strike - rate`` (receiver swaption).
    """

    CALL = "CALL"
    PUT = "PUT"

    @property
    def sign(self) -> int:
        return 1 if self is OptionType.CALL else -1

    def flip(self) -> "OptionType":
        return OptionType.PUT if self is OptionType.CALL else OptionType.CALL


class OptionStyle(Enum):
    """Exercise style."""

    EUROPEAN = "EUROPEAN"
    BERMUDAN = "BERMUDAN"
    AMERICAN = "AMERICAN"


class CalibrationMethod(Enum):
    """Forward volatility calibration methods."""

    CASCADING = "CASCADING"
    TIME_HOMOGENEOUS = "TIME_HOMOGENEOUS"
    LENGTH_HOMOGENEOUS = "LENGTH_HOMOGENEOUS"


class CorrelationType(Enum):
    """Correlation structures between forward rates."""

    PERFECT = "PERFECT"
    MATRIX = "MATRIX"
    EXPONENTIAL = "EXPONENTIAL"


class Frequency(Enum):
    """Payment frequencies."""

    ANNUAL = 12
    SEMIANNUAL = 6
    QUARTERLY = 3
    MONTHLY = 1

    def months(self) -> int:
        return self.value
