"""
Construction of a one-factor recombining rate lattice.

The lattice is driven by a single binomial walk ``X`` with jump ``d``. The
common volatility over the period ``(T_{j-1}, T_j]`` is that of rate ``j``;
rate ``n`` loads on the walk with the factor ``beta_n`` that matches its own
integrated variance to ``T_n``. Step ``m`` carries variance ``v_m`` and
up-probability ``p_m = (1 - sqrt(1 - v_m / max v)) / 2`` so every step has
the same jump.

Rates are generated from the last one backwards under the terminal measure
(numeraire ``P(t, T_n)``). At its reset step rate ``n`` is

* lognormal: ``L_n = G_n exp(beta_n (k d - U_n))``
* normal: ``L_n = G_n + beta_n (k d - U_n)``

where ``U_n`` is the drift accumulated forward along the paths reaching each
state and ``G_n`` enforces ``E[L_n A_{n+1}] = L_n(0) A_{n+1}(0)``. The
annuities ``A_n = A_{n+1} (1 + delta_n L_n)`` are rolled back by backward
induction, so every ``L_i A_{i+1}`` and ``A_i`` is a lattice martingale.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Union

import numpy as np

from bgmlib.conventions.daycount import ACT_365F
from bgmlib.conventions.types import DistributionType
from bgmlib.curves.volatility import VolatilityCurve
from bgmlib.errors import CalibrationError, InvalidInputError, NotSupportedError

from .binomial import lookback_matrix, transition_matrix
from .rate_lattice import RateLattice, RateStep
from .schedule import NodeDate, TenorSchedule, build_node_grid

logger = logging.getLogger(__name__)


@dataclass
class LatticeConfig:
    """Configuration knobs for lattice construction.

    ``total_steps`` overrides ``steps_per_year`` when set. States whose
    probability is at most ``tail_cutoff`` are pruned at the band edges.
    """

    steps_per_year: float = 50.0
    total_steps: Optional[int] = None
    min_steps_per_period: int = 1
    tail_cutoff: float = 1e-22
    distribution: DistributionType = DistributionType.LOGNORMAL


def build_rate_lattice(
    schedule: TenorSchedule,
    volatility_curves: Sequence[VolatilityCurve],
    node_dates: Optional[Sequence[Union[date, float]]] = None,
    config: LatticeConfig | None = None,
) -> RateLattice:
    """Build a rate lattice.

    Args:
        schedule: Tenor schedule with initial forwards
        volatility_curves: One instantaneous volatility curve per rate
        node_dates: Extra lattice dates (dates or times), e.g. exercise dates
        config: Lattice configuration

    Returns:
        The rate lattice

    Raises:
        InvalidInputError: Malformed schedule, curve count or cutoff
        NotSupportedError: Unknown distribution type
    """
    config = config or LatticeConfig()
    if len(volatility_curves) != schedule.rate_count:
        raise InvalidInputError(
            f"Expected {schedule.rate_count} volatility curves, got {len(volatility_curves)}"
        )
    if config.tail_cutoff < 0:
        raise InvalidInputError(f"Tail cutoff must be non-negative: {config.tail_cutoff}")
    if config.distribution not in (DistributionType.LOGNORMAL, DistributionType.NORMAL):
        raise NotSupportedError(f"Unsupported distribution: {config.distribution}")

    node_times = [_to_time(schedule, d) for d in node_dates or ()]
    nodes, step_times = build_node_grid(
        schedule,
        node_times,
        steps_per_year=config.steps_per_year,
        total_steps=config.total_steps,
        min_steps_per_period=config.min_steps_per_period,
    )
    builder = _LatticeBuilder(schedule, list(volatility_curves), nodes, step_times, config)
    return builder.build()


def _to_time(schedule: TenorSchedule, node: Union[date, float]) -> float:
    if isinstance(node, (int, float)):
        return float(node)
    if schedule.as_of is None:
        raise InvalidInputError("Node dates given as dates need a schedule with an as-of date")
    return ACT_365F.year_fraction(schedule.as_of, node)


class _LatticeBuilder:
    """Holds the per-step bands while one lattice is built."""

    def __init__(
        self,
        schedule: TenorSchedule,
        curves: List[VolatilityCurve],
        nodes: List[NodeDate],
        step_times: List[float],
        config: LatticeConfig,
    ):
        self.schedule = schedule
        self.curves = curves
        self.nodes = nodes
        self.step_times = step_times
        self.config = config
        self.normal = config.distribution is DistributionType.NORMAL
        self.steps = len(step_times) - 1
        self.reset_steps = self._reset_steps()

    def _reset_steps(self) -> List[int]:
        steps = [0] * self.schedule.rate_count
        for node in self.nodes:
            if node.reset is not None:
                steps[node.reset] = node.step
        return steps

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------
    def _set_up_walk(self) -> None:
        variances = np.zeros(self.steps)
        for m in range(1, self.steps + 1):
            a, b = self.step_times[m - 1], self.step_times[m]
            j = self.schedule.period_index(b)
            variances[m - 1] = self.curves[j].integrated_variance(a, b)
        self.variances = variances

        max_var = float(variances.max()) if self.steps else 0.0
        if max_var > 0.0:
            self.jump = 2.0 * math.sqrt(max_var)
            ratio = np.clip(1.0 - variances / max_var, 0.0, 1.0)
            self.up = 0.5 * (1.0 - np.sqrt(ratio))
        else:
            self.jump = 0.0
            self.up = np.zeros(self.steps)

        cumulative = np.concatenate(([0.0], np.cumsum(variances)))
        self.betas = []
        for n, m_n in enumerate(self.reset_steps):
            common = cumulative[m_n]
            own = self.curves[n].integrated_variance(0.0, self.schedule.times[n])
            if common > 0.0:
                self.betas.append(math.sqrt(own / common))
            else:
                if own > 0.0:
                    logger.warning(
                        "Rate %s has variance %.3e but the driving walk has none before its reset",
                        n,
                        own,
                    )
                self.betas.append(0.0)

    def _set_up_bands(self) -> None:
        cutoff = self.config.tail_cutoff
        probs = [np.ones(1)]
        starts = [0]
        for m in range(1, self.steps + 1):
            p = self.up[m - 1]
            prev = probs[-1]
            nxt = np.zeros(len(prev) + 1)
            nxt[:-1] += prev * (1.0 - p)
            nxt[1:] += prev * p
            peak = int(np.argmax(nxt))
            lo, hi = 0, len(nxt) - 1
            while lo < peak and nxt[lo] <= cutoff:
                lo += 1
            while hi > peak and nxt[hi] <= cutoff:
                hi -= 1
            probs.append(nxt[lo:hi + 1].copy())
            starts.append(starts[-1] + lo)
        self.probs = probs
        self.starts = starts

        # Child indices of every parent state, clipped to the retained band
        self.down_idx = [None]
        self.up_idx = [None]
        for m in range(1, self.steps + 1):
            parents = starts[m - 1] + np.arange(len(probs[m - 1]))
            width = len(probs[m]) - 1
            self.down_idx.append(np.clip(parents - starts[m], 0, width))
            self.up_idx.append(np.clip(parents + 1 - starts[m], 0, width))

    # ------------------------------------------------------------------
    # Induction helpers
    # ------------------------------------------------------------------
    def _roll_back(self, terminal: np.ndarray, end: int) -> List[np.ndarray]:
        values: List[np.ndarray] = [None] * (end + 1)  # type: ignore[list-item]
        values[end] = terminal
        for m in range(end, 0, -1):
            p = self.up[m - 1]
            child = values[m]
            values[m - 1] = p * child[self.up_idx[m]] + (1.0 - p) * child[self.down_idx[m]]
        return values

    def _drift(self, loadings: List[np.ndarray], end: int) -> np.ndarray:
        """Path-averaged accumulated ``loading * v`` at every state of step ``end``."""
        drift = np.zeros(1)
        for m in range(1, end + 1):
            p = self.up[m - 1]
            accumulated = drift + loadings[m - 1] * self.variances[m - 1]
            parent_probs = np.concatenate(([0.0], self.probs[m - 1], [0.0]))
            padded = np.concatenate(([0.0], accumulated, [0.0]))
            offset = self.starts[m] - self.starts[m - 1]
            ks = np.arange(len(self.probs[m])) + offset
            w_up = p * parent_probs[ks]
            w_down = (1.0 - p) * parent_probs[ks + 1]
            total = w_up + w_down
            fallback = np.where(ks + 1 > len(self.probs[m - 1]), 1.0, 0.0)
            q = np.divide(w_up, total, out=fallback, where=total > 0.0)
            drift = q * padded[ks] + (1.0 - q) * padded[ks + 1]
        return drift

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------
    def build(self) -> RateLattice:
        self._set_up_walk()
        self._set_up_bands()
        schedule = self.schedule
        n_rates = schedule.rate_count
        last_step = self.reset_steps[-1]
        logger.debug(
            "Building lattice: %s rates, %s dates, %s steps, jump %.6f",
            n_rates,
            len(self.nodes),
            self.steps,
            self.jump,
        )

        rates = [np.zeros((len(self.probs[n.step]), n_rates - n.first)) for n in self.nodes]
        annuities = [np.zeros_like(r) for r in rates]

        annuity_next = [np.ones(len(self.probs[m])) for m in range(last_step + 1)]
        loading_next = [np.zeros(len(self.probs[m])) for m in range(last_step + 1)]

        for n in range(n_rates - 1, -1, -1):
            m_n = self.reset_steps[n]
            beta = self.betas[n]
            fraction = schedule.fractions[n]
            level = self.starts[m_n] + np.arange(len(self.probs[m_n]))
            shock = beta * (level * self.jump - self._drift(loading_next, m_n))
            root_annuity = annuity_next[0][0]
            target = schedule.forwards[n] * root_annuity

            if self.normal:
                shocked = self._roll_back(shock * annuity_next[m_n], m_n)
                scale = (target - shocked[0][0]) / root_annuity
                value = [scale * annuity_next[m] + shocked[m] for m in range(m_n + 1)]
            else:
                with np.errstate(over="raise"):
                    try:
                        growth = np.exp(shock)
                    except FloatingPointError as exc:
                        raise CalibrationError(
                            f"Rate {n} overflowed on the lattice; raise the tail cutoff"
                        ) from exc
                shocked = self._roll_back(growth * annuity_next[m_n], m_n)
                scale = target / shocked[0][0]
                value = [scale * w for w in shocked]

            terminal_rate = value[m_n] / annuity_next[m_n]
            self._store(n, value, annuity_next, terminal_rate, rates, annuities)

            annuity = [annuity_next[m] + fraction * value[m] for m in range(m_n + 1)]
            if n > 0:
                keep = self.reset_steps[n - 1] + 1
                if self.normal:
                    loading = [
                        loading_next[m] + beta * fraction * annuity_next[m] / annuity[m]
                        for m in range(keep)
                    ]
                else:
                    loading = [
                        loading_next[m] + beta * fraction * value[m] / annuity[m]
                        for m in range(keep)
                    ]
                loading_next = loading
            annuity_next = annuity

        steps = []
        for d, node in enumerate(self.nodes):
            probs = self.probs[node.step].copy()
            for array in (probs, rates[d], annuities[d]):
                array.setflags(write=False)
            steps.append(
                RateStep(
                    step=node.step,
                    time=node.time,
                    start=self.starts[node.step],
                    count=len(probs),
                    first=node.first,
                    probabilities=probs,
                    rates=rates[d],
                    annuities=annuities[d],
                )
            )
        return RateLattice(
            schedule,
            self.nodes,
            steps,
            self.up,
            self.jump,
            self.config.distribution,
            self.config.tail_cutoff,
        )

    def _store(
        self,
        n: int,
        value: List[np.ndarray],
        annuity_next: List[np.ndarray],
        terminal_rate: np.ndarray,
        rates: List[np.ndarray],
        annuities: List[np.ndarray],
    ) -> None:
        m_n = self.reset_steps[n]
        for d, node in enumerate(self.nodes):
            col = n - node.first
            if col < 0:
                continue
            m_d = node.step
            annuities[d][:, col] = annuity_next[m_d]
            if m_d <= m_n:
                rates[d][:, col] = value[m_d] / annuity_next[m_d]
            else:
                rates[d][:, col] = self._look_back(n, node) @ terminal_rate

    def _look_back(self, n: int, node: NodeDate) -> np.ndarray:
        """Look-back distribution from ``node`` to the reset step of rate ``n``."""
        m_n = self.reset_steps[n]
        m_d = node.step
        forward = transition_matrix(
            self.up[m_n:m_d],
            self.starts[m_n],
            len(self.probs[m_n]),
            self.starts[m_d],
            len(self.probs[m_d]),
        )
        return lookback_matrix(self.probs[m_n], forward)
