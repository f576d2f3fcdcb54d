"""Core data types for swaption valuation.

This module defines the records passed between the swaption builder, the
lattice evaluator and the pricer: cashflow periods and schedules of the
underlying instrument, exercise periods, the co-terminal swaption records
themselves and the evaluation results.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Iterator, List, Optional, Sequence, Tuple

from bgmlib.conventions.types import OptionType
from bgmlib.errors import InvalidInputError


@dataclass(frozen=True)
class SwaptionInfo:
    """European swaption equivalent to one exercise date.

    Attributes:
        date: Exercise date
        time: Time to expiry in years from settlement
        level: Annuity (PV of unit coupons after expiry)
        rate: Equivalent forward swap rate
        coupon: Effective strike including the exercise cost
        value: Black or Bachelier value of the swaption
        volatility: Volatility used for ``value``
        option_type: Call (payer) or put (receiver)
        steps: Suggested number of lattice steps before this date
        accuracy: Calibration tolerance of the lattice fit
    """

    date: date
    time: float
    level: float
    rate: float
    coupon: float
    value: float
    volatility: float
    option_type: OptionType = OptionType.CALL
    steps: int = 0
    accuracy: float = 1e-6

    def with_rate(self, rate: float) -> "SwaptionInfo":
        return replace(self, rate=rate)

    def with_volatility(self, volatility: float) -> "SwaptionInfo":
        return replace(self, volatility=volatility)


@dataclass(frozen=True)
class CashflowPeriod:
    """One coupon period of a fixed-rate instrument.

    Attributes:
        accrual_start: Accrual start date
        accrual_end: Accrual end date
        payment_date: Payment date of the coupon
        fraction: Accrual fraction
        notional: Outstanding principal during the period
        coupon: Fixed coupon rate
    """

    accrual_start: date
    accrual_end: date
    payment_date: date
    fraction: float
    notional: float
    coupon: float

    def __post_init__(self):
        if self.accrual_end <= self.accrual_start:
            raise InvalidInputError(
                f"Accrual end {self.accrual_end} must be after start {self.accrual_start}"
            )
        if self.fraction <= 0.0:
            raise InvalidInputError(f"Accrual fraction must be positive: {self.fraction}")
        if self.notional < 0.0:
            raise InvalidInputError(f"Notional must be non-negative: {self.notional}")

    @property
    def end_date(self) -> date:
        """Later of the accrual end and payment dates."""
        return max(self.accrual_end, self.payment_date)

    @property
    def coupon_amount(self) -> float:
        return self.notional * self.coupon * self.fraction


@dataclass(frozen=True)
class CashflowSchedule:
    """Ordered coupon periods; principal is repaid as the notional steps down.

    ``defaulted`` marks an instrument whose cashflows were wiped out by a
    credit event.
    """

    periods: Tuple[CashflowPeriod, ...]
    defaulted: bool = False

    def __post_init__(self):
        object.__setattr__(self, "periods", tuple(self.periods))
        for i in range(1, len(self.periods)):
            if self.periods[i].payment_date <= self.periods[i - 1].payment_date:
                raise InvalidInputError(f"Cashflow payment dates out of order at index {i}")

    @classmethod
    def fixed_rate(
        cls,
        dates: Sequence[date],
        coupon: float,
        notional: float = 1.0,
        fractions: Optional[Sequence[float]] = None,
    ) -> "CashflowSchedule":
        """Bullet fixed-rate schedule on ``dates`` (first date is the accrual start)."""
        if len(dates) < 2:
            raise InvalidInputError("A cashflow schedule needs at least two dates")
        if fractions is None:
            fractions = [(b - a).days / 365.0 for a, b in zip(dates[:-1], dates[1:])]
        return cls(
            tuple(
                CashflowPeriod(a, b, b, f, notional, coupon)
                for a, b, f in zip(dates[:-1], dates[1:], fractions)
            )
        )

    def __len__(self) -> int:
        return len(self.periods)

    def __iter__(self) -> Iterator[CashflowPeriod]:
        return iter(self.periods)

    def __getitem__(self, index: int) -> CashflowPeriod:
        return self.periods[index]

    @property
    def is_empty(self) -> bool:
        return not self.periods

    @property
    def maturity(self) -> date:
        return self.periods[-1].end_date

    def principal_payment(self, index: int) -> float:
        """Principal repaid at the payment date of period ``index``."""
        following = self.periods[index + 1].notional if index + 1 < len(self.periods) else 0.0
        return self.periods[index].notional - following

    def principal_at(self, index: int) -> float:
        return self.periods[index].notional


@dataclass(frozen=True)
class ExercisePeriod:
    """Window in which the option can be exercised at ``price`` (per unit principal).

    A period with no ``end`` is a single exercise date.
    """

    start: date
    end: Optional[date] = None
    price: float = 1.0

    def __post_init__(self):
        if self.end is None:
            object.__setattr__(self, "end", self.start)
        if self.end < self.start:
            raise InvalidInputError(f"Exercise period ends {self.end} before it starts {self.start}")

    def contains(self, when: date) -> bool:
        return self.start <= when <= self.end

    @property
    def is_single_date(self) -> bool:
        return self.start == self.end


@dataclass(frozen=True)
class ExerciseSchedule:
    """Exercise periods with the notice lag in calendar days."""

    periods: Tuple[ExercisePeriod, ...]
    notification_days: int = 0

    def __post_init__(self):
        object.__setattr__(
            self, "periods", tuple(sorted(self.periods, key=lambda p: p.start))
        )
        if self.notification_days < 0:
            raise InvalidInputError("Notification days must be non-negative")

    def __len__(self) -> int:
        return len(self.periods)

    def __iter__(self) -> Iterator[ExercisePeriod]:
        return iter(self.periods)

    def contains(self, when: date) -> bool:
        return any(p.contains(when) for p in self.periods)

    def price_at(self, when: date) -> float:
        for period in self.periods:
            if period.contains(when):
                return period.price
        raise InvalidInputError(f"{when} is not in the exercise schedule")

    def notice_date(self, expiry: date) -> date:
        return expiry - timedelta(days=self.notification_days)

    def merged(self) -> "ExerciseSchedule":
        """Overlapping periods merged (the price of the earlier period is kept)."""
        merged: List[ExercisePeriod] = []
        for period in self.periods:
            if merged and period.start <= merged[-1].end:
                last = merged[-1]
                merged[-1] = ExercisePeriod(last.start, max(last.end, period.end), last.price)
            else:
                merged.append(period)
        return ExerciseSchedule(tuple(merged), self.notification_days)


@dataclass(frozen=True)
class CallProbability:
    """Probability of the option being exercised exactly at ``date``.

    Attributes:
        date: Exercise date
        zero_price: Zero-coupon bond price of the date
        annuity: Probability-weighted annuity over the states called at the date
        probability: Probability of exercise at the date
    """

    date: date
    zero_price: float
    annuity: float
    probability: float


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of a lattice evaluation.

    Attributes:
        value: Option value per unit of the swaption levels
        european_values: Lattice value of each swaption exercised alone
        exercise_dates: Lattice date index of each exercise opportunity
        call_probabilities: Per-date exercise probabilities, when tracked
    """

    value: float
    european_values: Tuple[float, ...] = ()
    exercise_dates: Tuple[int, ...] = ()
    call_probabilities: Optional[Tuple[CallProbability, ...]] = field(default=None)
