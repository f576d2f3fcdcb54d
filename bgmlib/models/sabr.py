"""
SABR smile (Hagan et al. 2002) in lognormal and normal volatility terms.

Dynamics: ``dF = a F^beta dW1``, ``da = nu a dW2``, ``dW1 dW2 = rho dt``.
"""

import math
from dataclasses import dataclass

from bgmlib.errors import InvalidInputError


@dataclass(frozen=True)
class SabrParameters:
    """
    SABR model parameters.

    Attributes:
        alpha: Initial volatility level (> 0)
        beta: CEV backbone exponent in [0, 1]
        rho: Spot-vol correlation in (-1, 1)
        nu: Volatility of volatility (>= 0)
    """

    alpha: float
    beta: float
    rho: float
    nu: float

    def __post_init__(self):
        if not 0.0 <= self.beta <= 1.0:
            raise InvalidInputError(f"beta must be in [0,1], got {self.beta}")
        if not -1.0 < self.rho < 1.0:
            raise InvalidInputError(f"rho must be in (-1,1), got {self.rho}")
        if self.alpha <= 0.0:
            raise InvalidInputError(f"alpha must be positive, got {self.alpha}")
        if self.nu < 0.0:
            raise InvalidInputError(f"nu must be non-negative, got {self.nu}")


def _z_over_chi(z: float, rho: float) -> float:
    if abs(z) < 1e-8:
        return 1.0 - 0.5 * rho * z
    root = math.sqrt(1.0 - 2.0 * rho * z + z * z)
    chi = math.log((root + z - rho) / (1.0 - rho))
    return z / chi


def sabr_lognormal_volatility(
    forward: float, strike: float, time: float, params: SabrParameters
) -> float:
    """Hagan lognormal (Black) implied volatility."""
    if forward <= 0.0 or strike <= 0.0:
        raise InvalidInputError("Lognormal SABR needs positive forward and strike")
    alpha, beta, rho, nu = params.alpha, params.beta, params.rho, params.nu
    one_beta = 1.0 - beta
    fk = forward * strike
    fk_beta = fk ** (0.5 * one_beta)
    log_fk = math.log(forward / strike)

    denominator = fk_beta * (
        1.0 + one_beta ** 2 / 24.0 * log_fk ** 2 + one_beta ** 4 / 1920.0 * log_fk ** 4
    )
    z = nu / alpha * fk_beta * log_fk
    correction = 1.0 + (
        one_beta ** 2 / 24.0 * alpha ** 2 / fk ** one_beta
        + 0.25 * rho * beta * nu * alpha / fk_beta
        + (2.0 - 3.0 * rho ** 2) / 24.0 * nu ** 2
    ) * time
    return alpha / denominator * _z_over_chi(z, rho) * correction


def sabr_normal_volatility(
    forward: float, strike: float, time: float, params: SabrParameters
) -> float:
    """Hagan normal (Bachelier) implied volatility.

    With ``beta = 0`` the formula is evaluated on ``forward - strike``
    directly and negative rates are allowed.
    """
    alpha, beta, rho, nu = params.alpha, params.beta, params.rho, params.nu
    gamma_term = (2.0 - 3.0 * rho ** 2) / 24.0 * nu ** 2
    if beta == 0.0:
        z = nu / alpha * (forward - strike)
        return alpha * _z_over_chi(z, rho) * (1.0 + gamma_term * time)

    if forward <= 0.0 or strike <= 0.0:
        raise InvalidInputError("Normal SABR with beta > 0 needs positive forward and strike")
    one_beta = 1.0 - beta
    fk = forward * strike
    fk_half = fk ** (0.5 * one_beta)
    log_fk = math.log(forward / strike)
    numerator = 1.0 + log_fk ** 2 / 24.0 + log_fk ** 4 / 1920.0
    denominator = 1.0 + one_beta ** 2 / 24.0 * log_fk ** 2 + one_beta ** 4 / 1920.0 * log_fk ** 4
    z = nu / alpha * fk_half * log_fk
    correction = 1.0 + (
        -beta * (2.0 - beta) / 24.0 * alpha ** 2 / fk ** one_beta
        + 0.25 * rho * beta * nu * alpha / fk_half
        + gamma_term
    ) * time
    return alpha * fk ** (0.5 * beta) * numerator / denominator * _z_over_chi(z, rho) * correction
