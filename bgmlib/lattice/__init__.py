"""
Recombining binomial lattice of forward rates.
"""

# Combinatorial probabilities
from .binomial import (
    binomial_probability,
    conditional_probability,
    log_binomial_coefficient,
    lookback_matrix,
    transition_matrix,
    transition_probabilities,
)

# Lattice construction
from .builder import LatticeConfig, build_rate_lattice
from .exercise import european_value, exercise_values, locate_record, swap_rate_annuity
from .rate_lattice import RateLattice, RateStep
from .schedule import NodeDate, TenorSchedule, build_node_grid, validate_tenor_times
from .views import ArrayView

__all__ = [
    # Combinatorial probabilities
    "binomial_probability",
    "conditional_probability",
    "log_binomial_coefficient",
    "lookback_matrix",
    "transition_matrix",
    "transition_probabilities",
    # Schedules
    "NodeDate",
    "TenorSchedule",
    "build_node_grid",
    "validate_tenor_times",
    # Lattice
    "ArrayView",
    "LatticeConfig",
    "RateLattice",
    "RateStep",
    "build_rate_lattice",
    # Exercise values
    "european_value",
    "exercise_values",
    "locate_record",
    "swap_rate_annuity",
]
