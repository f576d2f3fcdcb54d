"""
Swaption valuation on the rate lattice.

This module provides the co-terminal swaption representation of callable
fixed-rate cashflows, the Bermudan evaluator, the pricer wiring them to the
lattice fit, and the spread solvers.
"""

# Data types
from .types import (
    CallProbability,
    CashflowPeriod,
    CashflowSchedule,
    EvaluationResult,
    ExercisePeriod,
    ExerciseSchedule,
    SwaptionInfo,
)

# Cashflow values
from .cashflows import (
    cashflow_pv,
    coupon_pv,
    level_pv,
    principal_pv,
    protection_pv,
    recovery_pv,
)

# Co-terminal swaptions
from .swaptions import build_equivalent_swaptions, exercise_dates, is_option_effective

# Lattice evaluation
from .evaluator import (
    european_value,
    evaluate_bermudan,
    evaluate_caplet,
    find_override,
)

# Pricer
from .pricer import BermudanSwaptionPricer, PricerConfig, coterminal_schedule

# Solvers
from .solver import (
    SpreadSolution,
    SpreadSolverConfig,
    find_min_feasible_quote,
    solve_discount_spread,
    solve_survival_spread,
)

__all__ = [
    # Types
    "SwaptionInfo",
    "CashflowPeriod",
    "CashflowSchedule",
    "ExercisePeriod",
    "ExerciseSchedule",
    "CallProbability",
    "EvaluationResult",
    # Cashflows
    "coupon_pv",
    "level_pv",
    "principal_pv",
    "protection_pv",
    "recovery_pv",
    "cashflow_pv",
    # Swaptions
    "exercise_dates",
    "build_equivalent_swaptions",
    "is_option_effective",
    # Evaluation
    "find_override",
    "european_value",
    "evaluate_bermudan",
    "evaluate_caplet",
    # Pricer
    "BermudanSwaptionPricer",
    "PricerConfig",
    "coterminal_schedule",
    # Solvers
    "SpreadSolverConfig",
    "SpreadSolution",
    "solve_discount_spread",
    "solve_survival_spread",
    "find_min_feasible_quote",
]
