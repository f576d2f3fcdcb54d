"""Combinatorial probabilities for a recombining binary lattice.

Levels count up-moves: after ``step`` steps a path sits at a level in
``[0, step]``. With a constant up-probability ``p`` the closed forms are the
binomial distribution (forward) and the hypergeometric distribution
(look-back, which does not depend on ``p``). Everything is evaluated in log
space so several hundred steps stay well conditioned.

When the up-probability varies by step the number of ups is Poisson-binomial;
:func:`transition_probabilities` and :func:`lookback_matrix` cover that case
and reduce to the closed forms when every step shares one ``p``.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def log_binomial_coefficient(n: int, k: int) -> float:
    """log C(n, k); ``-inf`` outside ``0 <= k <= n``."""
    if k < 0 or k > n or n < 0:
        return -math.inf
    return math.lgamma(n + 1) - math.lgamma(k + 1) - math.lgamma(n - k + 1)


def binomial_probability(step: int, level: int, p: float = 0.5) -> float:
    """Probability of ``level`` ups after ``step`` steps with up-probability p."""
    if step < 0 or level < 0 or level > step:
        return 0.0
    if p <= 0.0:
        return 1.0 if level == 0 else 0.0
    if p >= 1.0:
        return 1.0 if level == step else 0.0
    log_prob = (
        log_binomial_coefficient(step, level)
        + level * math.log(p)
        + (step - level) * math.log1p(-p)
    )
    return math.exp(log_prob)


def conditional_probability(
    step2: int, level2: int, step1: int, level1: int, p: float = 0.5
) -> float:
    """Probability of ``(step2, level2)`` given ``(step1, level1)``.

    Forward in time this is the binomial transition of ``level2 - level1``
    ups in ``step2 - step1`` steps. Backward in time it is the hypergeometric
    look-back ``C(step2, level2) C(step1 - step2, level1 - level2) / C(step1,
    level1)``. At equal steps it is the indicator of equal levels. Levels
    outside ``[0, step]`` give 0.
    """
    if level1 < 0 or level1 > step1 or level2 < 0 or level2 > step2:
        return 0.0
    if step2 == step1:
        return 1.0 if level1 == level2 else 0.0
    if step2 > step1:
        return binomial_probability(step2 - step1, level2 - level1, p)

    ups_between = level1 - level2
    span = step1 - step2
    if ups_between < 0 or ups_between > span:
        return 0.0
    log_prob = (
        log_binomial_coefficient(step2, level2)
        + log_binomial_coefficient(span, ups_between)
        - log_binomial_coefficient(step1, level1)
    )
    return math.exp(log_prob)


def transition_probabilities(up_probabilities: Sequence[float]) -> np.ndarray:
    """Distribution of the number of ups over a run of steps.

    ``result[j]`` is the probability of exactly ``j`` ups across the steps
    whose up-probabilities are given.
    """
    dist = np.ones(1)
    for p in up_probabilities:
        nxt = np.zeros(len(dist) + 1)
        nxt[:-1] += dist * (1.0 - p)
        nxt[1:] += dist * p
        dist = nxt
    return dist


def transition_matrix(
    up_probabilities: Sequence[float],
    from_start: int,
    from_count: int,
    to_start: int,
    to_count: int,
) -> np.ndarray:
    """Forward transition probabilities between two bands of levels.

    Entry ``[i, j]`` is the probability of reaching level ``to_start + j``
    from level ``from_start + i`` over the given steps.
    """
    dist = transition_probabilities(up_probabilities)
    ups = (to_start + np.arange(to_count))[None, :] - (from_start + np.arange(from_count))[:, None]
    valid = (ups >= 0) & (ups < len(dist))
    matrix = np.zeros((from_count, to_count))
    matrix[valid] = dist[ups[valid]]
    return matrix


def lookback_matrix(prior: np.ndarray, forward: np.ndarray) -> np.ndarray:
    """Look-back probabilities by Bayes' rule.

    Args:
        prior: Marginal probabilities of the earlier band, shape ``[n1]``
        forward: Forward transitions earlier -> later, shape ``[n1, n2]``

    Returns:
        Matrix ``[n2, n1]`` whose row ``j`` is the distribution of the
        earlier level given the later level ``j``. Rows with no reachable
        earlier state are zero.
    """
    joint = prior[:, None] * forward
    mass = joint.sum(axis=0)
    out = np.zeros_like(joint.T)
    reachable = mass > 0.0
    out[reachable] = (joint[:, reachable] / mass[reachable]).T
    return out
