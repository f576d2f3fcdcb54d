"""
Swaption exercise values on the rate lattice.

On a lattice date the swap rate and annuity of a co-terminal swaption record
are the lattice swap rate and annuity over the record's rates, rescaled so
that they agree with the record at the valuation date: the rate
multiplicatively (lognormal) or additively (normal), the annuity
multiplicatively. Values are in units of the terminal numeraire until
``european_value`` discounts them.

A record is anything with ``date``, ``time``, ``level``, ``rate``,
``coupon`` and ``option_type`` attributes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Tuple

import numpy as np

from bgmlib.conventions.types import DistributionType
from bgmlib.errors import InvalidInputError

from .rate_lattice import RateLattice

if TYPE_CHECKING:
    from bgmlib.valuation.types import SwaptionInfo


def swap_rate_annuity(
    lattice: RateLattice, date_index: int, swaption: "SwaptionInfo", first_rate: int
) -> Tuple[np.ndarray, np.ndarray]:
    """Swap rates and annuities (numeraire units) mapped onto a record."""
    rates, annuities = lattice.swap_rates_annuities(date_index, first_rate=first_rate)
    base_rate, base_level = lattice.schedule.swap_rate_annuity(first_rate)
    if base_level > 0.0:
        annuities = annuities * (swaption.level / base_level)
    if lattice.distribution is DistributionType.LOGNORMAL and base_rate > 0.0:
        rates = rates * (swaption.rate / base_rate)
    else:
        rates = rates + (swaption.rate - base_rate)
    return rates, annuities


def exercise_values(
    lattice: RateLattice, date_index: int, swaption: "SwaptionInfo", first_rate: int
) -> Tuple[np.ndarray, np.ndarray]:
    """Immediate exercise values (numeraire units) and the mapped annuities."""
    rates, annuities = swap_rate_annuity(lattice, date_index, swaption, first_rate)
    payoff = swaption.option_type.sign * (rates - swaption.coupon) * annuities
    return np.maximum(payoff, 0.0), annuities


def locate_record(lattice: RateLattice, swaption: "SwaptionInfo") -> Tuple[int, int]:
    """Lattice date index of a record and the first rate of its swap.

    Raises:
        InvalidInputError: The record time is not a lattice date
    """
    d = lattice.find_date(swaption.time)
    if d is None:
        raise InvalidInputError(
            f"Exercise date {swaption.date} (t={swaption.time:.6f}) is not a lattice date"
        )
    node = lattice.nodes[d]
    first = node.reset if node.reset is not None else node.first
    return d, first


def european_value(lattice: RateLattice, swaption: "SwaptionInfo") -> float:
    """Lattice value of exercising a record's swaption at its own date only."""
    d, first = locate_record(lattice, swaption)
    values, _ = exercise_values(lattice, d, swaption, first)
    return lattice.numeraire_discount * lattice.expectation(d, values)
