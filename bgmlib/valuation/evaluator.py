"""
European, Bermudan and American swaption evaluation on a rate lattice.

Values are carried in units of the terminal numeraire ``P(t, T_n)`` and
converted to currency with the lattice numeraire discount at the end.
Exercise values come from :mod:`bgmlib.lattice.exercise`.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from bgmlib.conventions.types import OptionStyle, OptionType
from bgmlib.errors import InvalidInputError
from bgmlib.lattice.exercise import (
    european_value,
    exercise_values,
    locate_record,
)
from bgmlib.lattice.rate_lattice import RateLattice

from .types import CallProbability, EvaluationResult, SwaptionInfo

logger = logging.getLogger(__name__)


def find_override(swaptions: Sequence[SwaptionInfo]) -> Optional[int]:
    """Index of the first record whose ``rate * level`` exceeds 1, if any.

    Such a date is always exercised, so the option collapses to it.
    """
    for index, swaption in enumerate(swaptions):
        if swaption.rate * swaption.level > 1.0:
            return index
    return None


def evaluate_bermudan(
    lattice: RateLattice,
    swaptions: Sequence[SwaptionInfo],
    style: OptionStyle = OptionStyle.BERMUDAN,
    track_call_probabilities: bool = False,
) -> EvaluationResult:
    """Value the option to exercise into any of the co-terminal swaptions.

    Args:
        lattice: Rate lattice holding every record date as a node date
        swaptions: Co-terminal swaption records in date order
        style: European (first record only), Bermudan (record dates) or
            American (every lattice date from the first record on)
        track_call_probabilities: Also compute exercise probabilities

    Returns:
        The evaluation result; values are per unit of the record levels

    Raises:
        InvalidInputError: Records out of order or off the lattice
    """
    if not swaptions:
        return EvaluationResult(0.0)
    for k in range(1, len(swaptions)):
        if swaptions[k].time <= swaptions[k - 1].time:
            raise InvalidInputError(f"Swaption records out of order at index {k}")

    located = [locate_record(lattice, s) for s in swaptions]
    europeans = tuple(european_value(lattice, s) for s in swaptions)

    override = find_override(swaptions)
    if override is not None:
        logger.debug("Record %s has rate * level > 1; exercised unconditionally", override)
        return EvaluationResult(
            swaptions[override].value, europeans, (located[override][0],)
        )

    plan = _exercise_plan(lattice, swaptions, located, style)
    dates = [d for d, _, _ in plan]

    # Backward pass: values and exercise decisions
    decisions: List[np.ndarray] = [None] * len(plan)  # type: ignore[list-item]
    mapped: List[np.ndarray] = [None] * len(plan)  # type: ignore[list-item]
    values = None
    for k in range(len(plan) - 1, -1, -1):
        d, record, first = plan[k]
        exercise, annuities = exercise_values(lattice, d, swaptions[record], first)
        mapped[k] = annuities
        if values is None:
            values = exercise
            decisions[k] = exercise > 0.0
        else:
            continuation = lattice.conditional_expectation(d, plan[k + 1][0], values)
            decisions[k] = (exercise >= continuation) & (exercise > 0.0)
            values = np.where(decisions[k], exercise, continuation)

    value = lattice.numeraire_discount * lattice.expectation(dates[0], values)
    logger.debug(
        "%s evaluation over %s exercise dates: %.10f", style.value, len(plan), value
    )

    probabilities = None
    if track_call_probabilities:
        probabilities = _call_probabilities(lattice, swaptions, plan, decisions, mapped)
    return EvaluationResult(value, europeans, tuple(dates), probabilities)


def _exercise_plan(
    lattice: RateLattice,
    swaptions: Sequence[SwaptionInfo],
    located: Sequence[Tuple[int, int]],
    style: OptionStyle,
) -> List[Tuple[int, int, int]]:
    """``(date index, record index, first rate)`` of each exercise opportunity."""
    if style is OptionStyle.EUROPEAN:
        if len(swaptions) > 1:
            logger.debug("European style uses the first of %s records", len(swaptions))
        d, first = located[0]
        return [(d, 0, first)]
    if style is OptionStyle.BERMUDAN:
        return [(d, k, first) for k, (d, first) in enumerate(located)]
    if style is OptionStyle.AMERICAN:
        plan = []
        record = 0
        for d in range(located[0][0], located[-1][0] + 1):
            while record + 1 < len(located) and located[record + 1][0] <= d:
                record += 1
            plan.append((d, record, located[record][1]))
        return plan
    raise InvalidInputError(f"Unknown option style: {style}")


def _call_probabilities(
    lattice: RateLattice,
    swaptions: Sequence[SwaptionInfo],
    plan: Sequence[Tuple[int, int, int]],
    decisions: Sequence[np.ndarray],
    annuities: Sequence[np.ndarray],
) -> Tuple[CallProbability, ...]:
    """Forward pass propagating the probability of not having been called."""
    numeraire = lattice.numeraire_discount
    alive = lattice.probabilities(plan[0][0])
    results = []
    for k, (d, record, first) in enumerate(plan):
        called = np.where(decisions[k], alive, 0.0)
        results.append(
            CallProbability(
                date=swaptions[record].date,
                zero_price=_zero_price(lattice, d, first),
                annuity=numeraire * float(called @ annuities[k]),
                probability=float(called.sum()),
            )
        )
        if k + 1 < len(plan):
            alive = (alive - called) @ lattice.transition(d, plan[k + 1][0])
    return tuple(results)


def _zero_price(lattice: RateLattice, d: int, first: int) -> float:
    """Zero-coupon bond price of the reset date of rate ``first``."""
    growth = 1.0 + lattice.get_fraction(first) * lattice.rates(d, first)
    return lattice.numeraire_discount * lattice.expectation(d, lattice.annuities(d, first) * growth)


def evaluate_caplet(
    lattice: RateLattice,
    rate_index: int,
    strike: float,
    option_type: OptionType = OptionType.CALL,
) -> float:
    """Value of a caplet (call) or floorlet (put) on one lattice rate.

    Raises:
        InvalidInputError: The rate index is out of range or its reset is not a lattice date
    """
    if not 0 <= rate_index < lattice.rate_count:
        raise InvalidInputError(f"Rate index {rate_index} out of range")
    d = lattice.reset_date(rate_index)
    if d is None:
        raise InvalidInputError(f"Rate {rate_index} does not reset on a lattice date")
    rates = lattice.rates(d, rate_index)
    payoff = np.maximum(option_type.sign * (rates - strike), 0.0)
    discounted = lattice.get_fraction(rate_index) * lattice.annuities(d, rate_index) * payoff
    return lattice.numeraire_discount * lattice.expectation(d, discounted)
