"""
Calibration of forward rate volatilities and correlations.
"""

# Correlations
from .correlation import (
    Correlation,
    ExponentialCorrelation,
    MatrixCorrelation,
    PerfectCorrelation,
    create_correlation,
    exponential_from_parameters,
    reduce_rank,
)

# Swaption calibration
from .calibrator import (
    BgmCalibrationParameters,
    SwaptionQuote,
    calibrate_bgm,
    piecewise_volatilities,
)
from .results import (
    CalibratedVolatilities,
    analytic_caplet_volatility,
    analytic_swaption_volatility,
)

# Caplet bootstrap
from .caplets import (
    Caplet,
    CapletCurveResult,
    bootstrap_caplet_curve,
    bootstrap_caplet_surface,
    build_caplets,
)

# Lattice fit
from .lattice_fit import LatticeFitConfig, fit_coterminal_volatilities, initial_volatilities

__all__ = [
    # Correlations
    "Correlation",
    "PerfectCorrelation",
    "MatrixCorrelation",
    "ExponentialCorrelation",
    "create_correlation",
    "exponential_from_parameters",
    "reduce_rank",
    # Swaption calibration
    "BgmCalibrationParameters",
    "SwaptionQuote",
    "calibrate_bgm",
    "piecewise_volatilities",
    "CalibratedVolatilities",
    "analytic_caplet_volatility",
    "analytic_swaption_volatility",
    # Caplet bootstrap
    "Caplet",
    "CapletCurveResult",
    "build_caplets",
    "bootstrap_caplet_curve",
    "bootstrap_caplet_surface",
    # Lattice fit
    "LatticeFitConfig",
    "fit_coterminal_volatilities",
    "initial_volatilities",
]
