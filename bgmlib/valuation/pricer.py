"""
Callable fixed-rate instruments priced on a BGM rate lattice.

The pipeline is:

1. the exercise rights become co-terminal swaption records;
2. a co-terminal tenor schedule is laid on the record dates and the
   instrument maturity;
3. the lattice volatilities are fitted so every record reprices;
4. the Bermudan (or European, American) evaluator values the option.

Sensitivities bump the records and rerun steps 2 to 4.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from bgmlib.calibration.lattice_fit import LatticeFitConfig, fit_coterminal_volatilities
from bgmlib.conventions.dates import to_date
from bgmlib.conventions.types import DistributionType, OptionStyle, OptionType
from bgmlib.curves.discount import DiscountCurve
from bgmlib.curves.survival import SurvivalCurve
from bgmlib.errors import InvalidInputError
from bgmlib.lattice.builder import LatticeConfig
from bgmlib.lattice.rate_lattice import RateLattice
from bgmlib.lattice.schedule import TenorSchedule
from bgmlib.models.black import option_price
from bgmlib.numerics.rootfinding import DEFAULT_ROOT_FINDER, RootFinder, find_bracket
from bgmlib.volatility.sources import FlatVolatility, VolatilitySource

from .cashflows import cashflow_pv
from .evaluator import evaluate_bermudan, find_override
from .solver import (
    SpreadSolution,
    SpreadSolverConfig,
    solve_discount_spread,
    solve_survival_spread,
)
from .swaptions import build_equivalent_swaptions
from .types import CallProbability, CashflowSchedule, EvaluationResult, ExerciseSchedule, SwaptionInfo

logger = logging.getLogger(__name__)


@dataclass
class PricerConfig:
    """Lattice, fit and sensitivity settings of the pricer.

    Attributes:
        steps_per_year: Binomial steps per year of the lattice
        initial_steps: Minimum steps before the first exercise date
        middle_steps: Minimum steps between later exercise dates
        tail_cutoff: Probability below which lattice states are pruned
        accuracy: Fit tolerance stamped on every swaption record
        american_node_days: Spacing of the extra American exercise dates
        spread_consistent: Strip the discount spread out of the swap rates
        vega_bump: Volatility bump (a fraction of the rate for normal volatilities)
        delta_bump: Swap rate bump of the deltas
        gamma_bump_bp: Swap rate bump (basis points) of the gammas
        fit: Co-terminal lattice fit settings
        solver: Spread solver settings
    """

    steps_per_year: float = 50.0
    initial_steps: int = 0
    middle_steps: int = 0
    tail_cutoff: float = 1e-22
    accuracy: float = 1e-6
    american_node_days: int = 30
    spread_consistent: bool = False
    vega_bump: float = 0.01
    delta_bump: float = 1e-4
    gamma_bump_bp: float = 1.0
    fit: LatticeFitConfig = field(default_factory=LatticeFitConfig)
    solver: SpreadSolverConfig = field(default_factory=SpreadSolverConfig)


def coterminal_schedule(
    settle: date, maturity: date, swaptions: Sequence[SwaptionInfo], discount_curve: DiscountCurve
) -> TenorSchedule:
    """Tenor schedule resetting on the record dates and ending at maturity.

    Times run from ``settle`` (days / 365) like the record times.
    """
    dates = [s.date for s in swaptions] + [maturity]
    times = [s.time for s in swaptions] + [(maturity - settle).days / 365.0]
    fractions = [b - a for a, b in zip(times[:-1], times[1:])]
    dfs = [discount_curve.df(d) for d in dates]
    forwards = [(dfs[i] / dfs[i + 1] - 1.0) / fractions[i] for i in range(len(fractions))]
    return TenorSchedule(
        times=tuple(times),
        fractions=tuple(fractions),
        forwards=tuple(forwards),
        discount_factors=tuple(dfs),
        as_of=settle,
        dates=tuple(dates),
    )


class BermudanSwaptionPricer:
    """Option value and sensitivities of a callable fixed-rate schedule.

    Args:
        as_of: Pricing date (the discount curve reference date)
        settle: Settlement date
        cashflow: Fixed-rate cashflows of the instrument
        exercise_schedule: Exercise periods, prices and notice lag
        option_type: Call (payer) or put (receiver) on the swap rate
        discount_curve: Discount curve
        volatility_source: Swaption volatilities
        survival_curve: Optional issuer survival curve
        style: European, Bermudan or American exercise
        config: Pricer settings
    """

    def __init__(
        self,
        as_of: date,
        settle: date,
        cashflow: CashflowSchedule,
        exercise_schedule: ExerciseSchedule,
        option_type: OptionType,
        discount_curve: DiscountCurve,
        volatility_source: VolatilitySource,
        survival_curve: Optional[SurvivalCurve] = None,
        style: OptionStyle = OptionStyle.BERMUDAN,
        config: PricerConfig | None = None,
    ):
        self.as_of = to_date(as_of)
        self.settle = to_date(settle)
        if self.settle < self.as_of:
            raise InvalidInputError(f"Settle {self.settle} is before the pricing date {self.as_of}")
        self.cashflow = cashflow
        self.exercise_schedule = exercise_schedule
        self.option_type = option_type
        self.discount_curve = discount_curve
        self.volatility_source = volatility_source
        self.survival_curve = survival_curve
        self.style = style
        self.config = config or PricerConfig()

    @property
    def distribution(self) -> DistributionType:
        return self.volatility_source.distribution

    def _replace(self, **changes) -> "BermudanSwaptionPricer":
        pricer = copy.copy(self)
        for name, value in changes.items():
            setattr(pricer, name, value)
        return pricer

    # ------------------------------------------------------------------
    # Swaption records
    # ------------------------------------------------------------------

    def _records(self, discount_curve: DiscountCurve) -> List[SwaptionInfo]:
        return build_equivalent_swaptions(
            self.as_of,
            self.settle,
            self.cashflow,
            self.exercise_schedule,
            self.option_type,
            discount_curve,
            self.volatility_source,
            survival_curve=self.survival_curve,
            style=self.style,
            initial_steps=self.config.initial_steps,
            middle_steps=self.config.middle_steps,
            accuracy=self.config.accuracy,
        )

    def build_swaptions(self) -> List[SwaptionInfo]:
        """Co-terminal swaption records of the exercise rights.

        In spread-consistent mode the discount spread is moved from the swap
        rate to the strike (keeping their difference) and the volatility is
        taken from the records built without the spread.
        """
        records = self._records(self.discount_curve)
        if not (self.config.spread_consistent and records and self.discount_curve.spread != 0.0):
            return records

        plain = {s.date: s for s in self._records(self.discount_curve.with_spread(0.0))}
        adjusted = []
        for swaption in records:
            reference = plain.get(swaption.date)
            if reference is None:
                adjusted.append(swaption)
                continue
            shift = reference.rate - swaption.rate
            rate, coupon = swaption.rate + shift, swaption.coupon + shift
            value = swaption.level * option_price(
                self.distribution, rate, coupon, swaption.time,
                reference.volatility, swaption.option_type,
            )
            adjusted.append(
                replace(
                    swaption,
                    rate=rate,
                    coupon=coupon,
                    volatility=reference.volatility,
                    value=value,
                )
            )
        return adjusted

    def next_notification_date(self) -> Optional[date]:
        records = self.build_swaptions()
        return records[0].date if records else None

    def effective_strike_at_next_call(self) -> float:
        records = self.build_swaptions()
        return records[0].coupon if records else 0.0

    # ------------------------------------------------------------------
    # Lattice valuation
    # ------------------------------------------------------------------

    def _revalue(
        self, swaptions: Sequence[SwaptionInfo], distribution: DistributionType
    ) -> List[SwaptionInfo]:
        return [
            replace(
                s,
                value=s.level * option_price(
                    distribution, s.rate, s.coupon, s.time, s.volatility, s.option_type
                ),
            )
            for s in swaptions
        ]

    def _american_nodes(self, swaptions: Sequence[SwaptionInfo]) -> List[float]:
        if self.style is not OptionStyle.AMERICAN or self.config.american_node_days <= 0:
            return []
        nodes = []
        step = timedelta(days=self.config.american_node_days)
        when = swaptions[0].date + step
        while when < swaptions[-1].date:
            if self.exercise_schedule.contains(when):
                nodes.append((when - self.settle).days / 365.0)
            when += step
        return nodes

    def rate_lattice(
        self,
        swaptions: Optional[Sequence[SwaptionInfo]] = None,
        distribution: Optional[DistributionType] = None,
    ) -> Tuple[List[SwaptionInfo], RateLattice]:
        """Fit the co-terminal lattice to the records.

        Returns:
            The revalued records and the fitted lattice

        Raises:
            InvalidInputError: There is no exercise record to fit
        """
        distribution = distribution or self.distribution
        if swaptions is None:
            swaptions = self.build_swaptions()
        if not swaptions:
            raise InvalidInputError("No exercise date to build a lattice on")
        records = self._revalue(swaptions, distribution)
        schedule = coterminal_schedule(
            self.settle, self.cashflow.maturity, records, self.discount_curve
        )
        lattice_config = LatticeConfig(
            steps_per_year=self.config.steps_per_year,
            min_steps_per_period=max([1] + [s.steps for s in records]),
            tail_cutoff=self.config.tail_cutoff,
            distribution=distribution,
        )
        # American exercise dates between the records join the lattice
        nodes = self._american_nodes(records)
        _, lattice = fit_coterminal_volatilities(
            schedule, records, lattice_config, self.config.fit, node_times=nodes
        )
        logger.debug(
            "Lattice with %s dates fitted to %s records", len(lattice.nodes), len(records)
        )
        return records, lattice

    def bermudan_evaluation(
        self,
        swaptions: Sequence[SwaptionInfo],
        distribution: Optional[DistributionType] = None,
        track_call_probabilities: bool = False,
    ) -> EvaluationResult:
        """Evaluate the option over the given records.

        A record on settle is exercisable at once: the value is the larger of
        its intrinsic value and the option over the later records.
        """
        if not swaptions:
            return EvaluationResult(0.0)
        if swaptions[0].date == self.settle:
            return self._immediate_exercise(swaptions, distribution, track_call_probabilities)
        records, lattice = self.rate_lattice(swaptions, distribution)
        return evaluate_bermudan(lattice, records, self.style, track_call_probabilities)

    def _immediate_exercise(
        self,
        swaptions: Sequence[SwaptionInfo],
        distribution: Optional[DistributionType],
        track_call_probabilities: bool,
    ) -> EvaluationResult:
        first = swaptions[0]
        immediate = first.level * max(first.option_type.sign * (first.rate - first.coupon), 0.0)
        later = self.bermudan_evaluation(swaptions[1:], distribution, track_call_probabilities)
        if later.value >= immediate:
            return later
        logger.debug("Exercise on settle %s beats the later dates", first.date)
        probabilities = None
        if track_call_probabilities:
            probabilities = (
                CallProbability(
                    date=first.date,
                    zero_price=self.discount_curve.df(first.date),
                    annuity=first.level,
                    probability=1.0,
                ),
            )
        return EvaluationResult(immediate, call_probabilities=probabilities)

    def bermudan_pv(
        self,
        swaptions: Sequence[SwaptionInfo],
        distribution: Optional[DistributionType] = None,
    ) -> float:
        return self.bermudan_evaluation(swaptions, distribution).value

    def evaluate(self, track_call_probabilities: bool = False) -> EvaluationResult:
        """Option value with the degenerate cases resolved.

        Raises:
            InvalidInputError: Empty cashflows on an instrument not in default
        """
        if len(self.exercise_schedule) == 0:
            logger.debug("Exercise schedule is empty")
            return EvaluationResult(0.0)
        if self.cashflow.is_empty:
            if self.cashflow.defaulted:
                return EvaluationResult(0.0)
            raise InvalidInputError("Cashflow is empty")

        records = self.build_swaptions()
        if not records:
            return EvaluationResult(0.0)

        override = find_override(records)
        if override is not None:
            logger.debug("Record on %s overrides the lattice", records[override].date)
            return EvaluationResult(records[override].value)

        return self.bermudan_evaluation(
            records, track_call_probabilities=track_call_probabilities
        )

    def option_value(self) -> float:
        return self.evaluate().value

    def call_probabilities(self) -> Tuple[CallProbability, ...]:
        return self.evaluate(track_call_probabilities=True).call_probabilities or ()

    def price_with_option(self) -> float:
        """PV of the cashflows after settle net of the option value."""
        pv = cashflow_pv(self.cashflow, self.settle, self.discount_curve, self.survival_curve)
        return pv - self.option_value()

    # ------------------------------------------------------------------
    # Sensitivities
    # ------------------------------------------------------------------

    def vega(self, bump: Optional[float] = None) -> float:
        """Value change for a parallel volatility bump.

        Normal volatilities are bumped by ``bump`` times the swap rate.
        """
        bump = self.config.vega_bump if bump is None else bump
        records = self.build_swaptions()
        if not records:
            return 0.0
        base = self.bermudan_pv(records)
        if self.distribution is DistributionType.NORMAL:
            bumped = [s.with_volatility(s.volatility + bump * s.rate) for s in records]
        else:
            bumped = [s.with_volatility(s.volatility + bump) for s in records]
        return self.bermudan_pv(bumped) - base

    def coterminal_vegas(self, bump: Optional[float] = None) -> List[float]:
        """Value change for a volatility bump of each record in turn."""
        bump = self.config.vega_bump if bump is None else bump
        records = self.build_swaptions()
        if not records:
            return []
        base = self.bermudan_pv(records)
        vegas = []
        for i, swaption in enumerate(records):
            bumped = list(records)
            bumped[i] = swaption.with_volatility(swaption.volatility + bump)
            vegas.append(self.bermudan_pv(bumped) - base)
        return vegas

    def _deltas(self, records: Sequence[SwaptionInfo], bump: float) -> List[float]:
        deltas = []
        for i, swaption in enumerate(records):
            down, up = list(records), list(records)
            down[i] = swaption.with_rate(swaption.rate - bump)
            up[i] = swaption.with_rate(swaption.rate + bump)
            deltas.append((self.bermudan_pv(up) - self.bermudan_pv(down)) / (2.0 * bump))
        return deltas

    def deltas(self, bump: Optional[float] = None) -> List[float]:
        """Central-difference deltas to each co-terminal swap rate."""
        bump = self.config.delta_bump if bump is None else bump
        return self._deltas(self.build_swaptions(), bump)

    def gamma(self, bump_bp: Optional[float] = None) -> List[float]:
        """Change of the deltas when every swap rate moves up by ``bump_bp``."""
        bump_bp = self.config.gamma_bump_bp if bump_bp is None else bump_bp
        records = self.build_swaptions()
        if not records:
            return []
        base = self._deltas(records, self.config.delta_bump)
        shifted = [s.with_rate(s.rate + bump_bp / 10000.0) for s in records]
        return [up - down for up, down in zip(self._deltas(shifted, self.config.delta_bump), base)]

    def delta_hedge(self) -> float:
        """Value change per unit level of the first record for a parallel rate bump."""
        records = self.build_swaptions()
        if not records:
            return 0.0
        bump = self.config.delta_bump
        up = self.bermudan_pv([s.with_rate(s.rate + bump) for s in records])
        return (up - self.bermudan_pv(records)) / records[0].level

    # ------------------------------------------------------------------
    # Implied quantities
    # ------------------------------------------------------------------

    def implied_flat_volatility(
        self,
        fair_value: float,
        distribution: Optional[DistributionType] = None,
        upper_bound: Optional[float] = None,
        root_finder: RootFinder = DEFAULT_ROOT_FINDER,
    ) -> float:
        """Flat volatility of ``distribution`` at which the option is worth ``fair_value``.

        The search starts on ``[x0 / 2, 2 x0]`` around the first record's
        volatility (converted at a 4% rate between distributions) and is
        capped at 2.0 (normal) or 20.0 (lognormal) unless ``upper_bound`` is given.
        """
        distribution = distribution or self.distribution
        records = self.build_swaptions()
        if not records or fair_value <= 0.0:
            return 0.0
        if upper_bound is None or upper_bound <= 0.0:
            upper_bound = 2.0 if distribution is DistributionType.NORMAL else 20.0

        x0 = records[0].volatility
        if self.distribution is DistributionType.LOGNORMAL and distribution is DistributionType.NORMAL:
            x0 *= 0.04
        elif self.distribution is DistributionType.NORMAL and distribution is DistributionType.LOGNORMAL:
            x0 /= 0.04
        if x0 <= 0.0:
            x0 = 0.5 * upper_bound

        flat = self._replace(volatility_source=FlatVolatility(x0, distribution))

        def objective(vol: float) -> float:
            bumped = [s.with_volatility(vol) for s in records]
            return flat.bermudan_pv(bumped, distribution) - fair_value

        lower, upper = find_bracket(
            objective, 0.5 * x0, min(2.0 * x0, upper_bound), floor=0.0, cap=upper_bound
        )
        if lower == upper:
            return lower
        return root_finder.find_root(objective, lower, upper, xtol=1e-6, ftol=1e-6).root

    def implied_discount_spread(
        self, target_price: float, config: SpreadSolverConfig | None = None
    ) -> SpreadSolution:
        """Shift of the discount curve at which ``price_with_option`` hits ``target_price``."""
        config = config or self.config.solver

        def price(shift: float) -> float:
            return self._replace(discount_curve=self.discount_curve.shifted(shift)).price_with_option()

        return solve_discount_spread(price, target_price, config)

    def implied_survival_spread(
        self, target_price: float, config: SpreadSolverConfig | None = None
    ) -> SpreadSolution:
        """Hazard rate shift at which ``price_with_option`` hits ``target_price``.

        Raises:
            InvalidInputError: The pricer has no survival curve
        """
        if self.survival_curve is None:
            raise InvalidInputError("A survival curve is required to solve for a survival spread")
        config = config or self.config.solver
        curve = self.survival_curve

        def price(shift: float) -> float:
            return self._replace(survival_curve=curve.shifted(shift)).price_with_option()

        return solve_survival_spread(
            price,
            target_price,
            lower_bound=curve.min_feasible_shift(),
            is_feasible=curve.is_feasible,
            config=config,
        )
