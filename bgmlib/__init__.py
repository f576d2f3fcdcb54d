"""BGM / LIBOR Market Model lattice pricing engine.

This package prices caplets and European, Bermudan and American swaptions on a
recombining binomial lattice of forward rates calibrated to market volatilities.

Key modules:
- lattice: Combinatorial probabilities, rate lattice and lattice builder
- calibration: Forward volatility calibration, correlations, caplet bootstrap
- valuation: Swaption representations, Bermudan evaluator, spread solver
- volatility: Volatility sources consumed by the pricer
- models: Black, Bachelier and SABR formulas
- curves: Discount, survival and volatility curves
- conventions: Day counts, enums and tenor arithmetic
"""

__version__ = "1.0.0"

__all__ = [
    "__version__",
    # Main modules are imported via subpackages
    "lattice",
    "calibration",
    "valuation",
    "volatility",
    "models",
    "curves",
    "conventions",
    "interpolation",
    "numerics",
    "errors",
]
