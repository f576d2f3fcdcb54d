"""
Rate lattice: per-date, per-state forward rates and annuities.

Annuities are zero-coupon bond values expressed in units of the terminal
numeraire ``P(t, T_n)``; the annuity reported for rate ``i`` is the value of
a unit paid at its payment date ``T_{i+1}``. Values in numeraire units are
converted to currency by multiplying with :attr:`RateLattice.numeraire_discount`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from bgmlib.conventions.types import DistributionType
from bgmlib.errors import InvalidInputError

from .binomial import lookback_matrix, transition_matrix
from .schedule import TIME_EPS, NodeDate, TenorSchedule
from .views import ArrayView


@dataclass(frozen=True)
class RateStep:
    """Lattice content at one node date.

    Attributes:
        step: Binomial step index of the date
        time: Time of the date in years
        start: Level of the first retained state
        count: Number of retained states
        first: Index of the first live rate (the last reset rate)
        probabilities: Marginal state probabilities, shape ``[count]``
        rates: Forward rates, shape ``[count, live]``
        annuities: Annuities of the live rates, shape ``[count, live]``
    """

    step: int
    time: float
    start: int
    count: int
    first: int
    probabilities: np.ndarray
    rates: np.ndarray
    annuities: np.ndarray

    @property
    def live(self) -> int:
        return self.rates.shape[1]


class RateLattice:
    """Recombining lattice of forward rates under the terminal measure.

    The lattice owns its arrays; every accessor returns copies, scalars or
    read-only views.
    """

    def __init__(
        self,
        schedule: TenorSchedule,
        nodes: Sequence[NodeDate],
        steps: Sequence[RateStep],
        up_probabilities: np.ndarray,
        jump: float,
        distribution: DistributionType,
        tail_cutoff: float = 0.0,
    ):
        if len(nodes) != len(steps):
            raise InvalidInputError("One rate step per node date is required")
        self.schedule = schedule
        self.nodes: Tuple[NodeDate, ...] = tuple(nodes)
        self._steps: Tuple[RateStep, ...] = tuple(steps)
        self._up = np.asarray(up_probabilities, dtype=float)
        self._up.setflags(write=False)
        self.jump = jump
        self.distribution = distribution
        self.tail_cutoff = tail_cutoff
        self._forward_cache: Dict[Tuple[int, int], np.ndarray] = {}
        self._lookback_cache: Dict[Tuple[int, int], np.ndarray] = {}

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------
    @property
    def date_count(self) -> int:
        return len(self._steps)

    @property
    def rate_count(self) -> int:
        return self.schedule.rate_count

    @property
    def step_count(self) -> int:
        return len(self._up)

    @property
    def times(self) -> List[float]:
        return [node.time for node in self.nodes]

    @property
    def numeraire_discount(self) -> float:
        """``P(0, T_n)``: converts numeraire-unit values to currency."""
        return self.schedule.numeraire_discount

    def rate_step(self, d: int) -> RateStep:
        return self._steps[d]

    def get_time(self, d: int) -> float:
        return self._steps[d].time

    def get_step(self, d: int) -> int:
        return self._steps[d].step

    def get_state_count(self, d: int) -> int:
        return self._steps[d].count

    def get_start_level(self, d: int) -> int:
        return self._steps[d].start

    def get_last_reset_index(self, d: int) -> int:
        return self._steps[d].first

    def get_fraction(self, i: int) -> float:
        return self.schedule.fractions[i]

    def find_date(self, t: float, tolerance: float = 1e-6) -> Optional[int]:
        """Index of the node date at time ``t``, or None."""
        for d, node in enumerate(self.nodes):
            if abs(node.time - t) <= max(tolerance, TIME_EPS):
                return d
        return None

    def reset_date(self, rate_index: int) -> Optional[int]:
        """Node date at which ``rate_index`` resets."""
        for d, node in enumerate(self.nodes):
            if node.reset == rate_index:
                return d
        return None

    # ------------------------------------------------------------------
    # Scalar accessors (0 outside the stored range)
    # ------------------------------------------------------------------
    def get_probability(self, d: int, s: int) -> float:
        step = self._steps[d]
        if not 0 <= s < step.count:
            return 0.0
        return float(step.probabilities[s])

    def get_rate(self, d: int, s: int, i: int) -> float:
        step = self._steps[d]
        col = i - step.first
        if not (0 <= s < step.count and 0 <= col < step.live):
            return 0.0
        return float(step.rates[s, col])

    def get_annuity(self, d: int, s: int, i: int) -> float:
        step = self._steps[d]
        col = i - step.first
        if not (0 <= s < step.count and 0 <= col < step.live):
            return 0.0
        return float(step.annuities[s, col])

    def get_swap_rate_annuity(
        self, d: int, s: int, last_rate: Optional[int] = None, first_rate: Optional[int] = None
    ) -> Tuple[float, float]:
        """Swap rate and annuity (numeraire units) over rates ``first..last-1``."""
        rates, annuities = self.swap_rates_annuities(d, last_rate, first_rate)
        if not 0 <= s < len(rates):
            return 0.0, 0.0
        return float(rates[s]), float(annuities[s])

    # ------------------------------------------------------------------
    # Vector accessors
    # ------------------------------------------------------------------
    def swap_rates_annuities(
        self, d: int, last_rate: Optional[int] = None, first_rate: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Swap rates and annuities at every state of date ``d``."""
        step = self._steps[d]
        first = step.first if first_rate is None else max(first_rate, step.first)
        last = self.rate_count if last_rate is None else min(last_rate, self.rate_count)
        cols = slice(first - step.first, last - step.first)
        fractions = np.asarray(self.schedule.fractions[first:last])
        weights = step.annuities[:, cols] * fractions
        annuity = weights.sum(axis=1)
        floating = (weights * step.rates[:, cols]).sum(axis=1)
        rate = np.divide(floating, annuity, out=np.zeros_like(floating), where=annuity > 0)
        return rate, annuity

    def probabilities(self, d: int) -> np.ndarray:
        return self._steps[d].probabilities.copy()

    def rates(self, d: int, i: int) -> np.ndarray:
        step = self._steps[d]
        return step.rates[:, i - step.first].copy()

    def annuities(self, d: int, i: int) -> np.ndarray:
        step = self._steps[d]
        return step.annuities[:, i - step.first].copy()

    def probabilities_view(self, d: int) -> ArrayView:
        probs = self._steps[d].probabilities
        return ArrayView(lambda s: float(probs[s]), len(probs))

    def rates_view(self, d: int, i: int) -> ArrayView:
        step = self._steps[d]
        col = self._column(step, i)
        return ArrayView(lambda s: float(step.rates[s, col]), step.count)

    def annuities_view(self, d: int, i: int) -> ArrayView:
        step = self._steps[d]
        col = self._column(step, i)
        return ArrayView(lambda s: float(step.annuities[s, col]), step.count)

    @staticmethod
    def _column(step: RateStep, i: int) -> int:
        col = i - step.first
        if not 0 <= col < step.live:
            raise IndexError(f"Rate {i} is not live at step {step.step}")
        return col

    # ------------------------------------------------------------------
    # Probabilities between dates
    # ------------------------------------------------------------------
    def _forward(self, d1: int, d2: int) -> np.ndarray:
        key = (d1, d2)
        if key not in self._forward_cache:
            a, b = self._steps[d1], self._steps[d2]
            self._forward_cache[key] = transition_matrix(
                self._up[a.step:b.step], a.start, a.count, b.start, b.count
            )
        return self._forward_cache[key]

    def _lookback(self, d_later: int, d_earlier: int) -> np.ndarray:
        key = (d_later, d_earlier)
        if key not in self._lookback_cache:
            self._lookback_cache[key] = lookback_matrix(
                self._steps[d_earlier].probabilities, self._forward(d_earlier, d_later)
            )
        return self._lookback_cache[key]

    def transition(self, d_from: int, d_to: int) -> np.ndarray:
        """Matrix ``[count_from, count_to]`` of conditional probabilities."""
        if d_to == d_from:
            return np.eye(self._steps[d_from].count)
        if d_to > d_from:
            return self._forward(d_from, d_to).copy()
        return self._lookback(d_from, d_to).copy()

    def get_conditional_probability(self, d2: int, s2: int, d1: int, s1: int) -> float:
        """Probability of state ``s2`` at date ``d2`` given state ``s1`` at ``d1``.

        Forward in time this is the transition probability; backward it is
        the look-back probability. Out-of-range states give 0.
        """
        if not (0 <= s1 < self._steps[d1].count and 0 <= s2 < self._steps[d2].count):
            return 0.0
        if d1 == d2:
            return 1.0 if s1 == s2 else 0.0
        if d2 > d1:
            return float(self._forward(d1, d2)[s1, s2])
        return float(self._lookback(d1, d2)[s1, s2])

    def expectation(self, d: int, values: Sequence[float]) -> float:
        """Probability-weighted mean over retained states."""
        probs = self._steps[d].probabilities
        values = np.asarray(values, dtype=float)
        if values.shape != probs.shape:
            raise InvalidInputError(
                f"Expected {len(probs)} values at date {d}, got {values.shape}"
            )
        mass = probs.sum()
        return float(probs @ values / mass) if mass > 0 else 0.0

    def conditional_expectation(
        self, d_from: int, d_to: int, values: Sequence[float]
    ) -> np.ndarray:
        """Expectation of ``values`` at ``d_to`` for every state at ``d_from``.

        Weights are normalized by the retained probability mass of each row.
        """
        values = np.asarray(values, dtype=float)
        if values.shape != (self._steps[d_to].count,):
            raise InvalidInputError(
                f"Expected {self._steps[d_to].count} values at date {d_to}, got {values.shape}"
            )
        if d_from == d_to:
            return values.copy()
        matrix = self._forward(d_from, d_to) if d_to > d_from else self._lookback(d_from, d_to)
        mass = matrix.sum(axis=1)
        weighted = matrix @ values
        return np.divide(weighted, mass, out=np.zeros_like(weighted), where=mass > 0)

    def __repr__(self) -> str:
        return (
            f"RateLattice(dates={self.date_count}, rates={self.rate_count}, "
            f"steps={self.step_count}, distribution={self.distribution.value})"
        )
