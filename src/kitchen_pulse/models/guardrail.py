"""Labor-cost guardrail: good / caution / bad status against day-type sales brackets."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum

from kitchen_pulse.config import GUARDRAIL_POLICY, ConfigurationError, DayType, GuardrailBracket
from kitchen_pulse.models.availability import Unavailable, degenerate, is_available

logger = logging.getLogger(__name__)


class GuardrailStatus(str, Enum):
    GOOD = "good"
    CAUTION = "caution"
    BAD = "bad"

    @property
    def label(self) -> str:
        return {"good": "ON TRACK", "caution": "WATCH", "bad": "OVER"}[self.value]

    @property
    def severity(self) -> int:
        return {"good": 0, "caution": 1, "bad": 2}[self.value]


def day_type_for(day: date) -> DayType:
    """Mon-Fri are weekdays; Sat and Sun are weekend days."""
    return DayType.WEEKEND if day.weekday() >= 5 else DayType.WEEKDAY


def _coerce_day_type(day_type: DayType | str) -> DayType:
    try:
        return DayType(day_type)
    except ValueError:
        logger.error("Unknown day type %r", day_type)
        raise ConfigurationError(f"unknown day type {day_type!r}") from None


def brackets_for(
    day_type: DayType | str,
    policy: dict[DayType, tuple[GuardrailBracket, ...]] = GUARDRAIL_POLICY,
) -> list[GuardrailBracket]:
    """Brackets for a day type ordered by `high_sales`; fails loudly when none exist."""
    dt = _coerce_day_type(day_type)
    brackets = policy.get(dt)
    if not brackets:
        logger.error("No guardrail brackets configured for %s", dt.value)
        raise ConfigurationError(f"no guardrail brackets configured for {dt.value}")
    return sorted(brackets, key=lambda b: b.high_sales)


def select_bracket(
    sales: float,
    day_type: DayType | str,
    policy: dict[DayType, tuple[GuardrailBracket, ...]] = GUARDRAIL_POLICY,
) -> GuardrailBracket:
    """First bracket whose upper sales bound covers `sales`; the top bracket above all."""
    brackets = brackets_for(day_type, policy)
    for bracket in brackets:
        if bracket.high_sales >= sales:
            return bracket
    return brackets[-1]


def classify_rate(rate: float, bracket: GuardrailBracket) -> GuardrailStatus:
    if rate > bracket.bad_rate:
        return GuardrailStatus.BAD
    if rate <= bracket.good_rate:
        return GuardrailStatus.GOOD
    return GuardrailStatus.CAUTION


@dataclass(frozen=True)
class GuardrailResult:
    day_type: DayType
    bracket: GuardrailBracket
    sales: float
    labor_cost: float
    labor_rate: float | Unavailable
    status: GuardrailStatus | Unavailable
    delta_to_good: float | Unavailable      # positive: over the good line
    delta_to_bad: float | Unavailable       # positive: over the bad line

    def __str__(self) -> str:
        if not is_available(self.status):
            return f"{self.day_type.value:<7} | labor rate -- | sales {self.sales:,.0f}"
        return (
            f"{self.day_type.value:<7} | {self.status.label:<8} | "
            f"rate {self.labor_rate:6.1%} | good <= {self.bracket.good_rate:.1%} "
            f"bad > {self.bracket.bad_rate:.1%}"
        )


def evaluate_guardrail(
    sales: float,
    labor_cost: float,
    day_type: DayType | str,
    reference_sales: float | None = None,
    policy: dict[DayType, tuple[GuardrailBracket, ...]] = GUARDRAIL_POLICY,
) -> GuardrailResult:
    """
    Classify labor cost against sales.

    The bracket is chosen by `reference_sales` (usually the day's forecast) and
    falls back to `sales`. With no sales the labor rate is undefined and every
    rate field is `Unavailable`.
    """
    if sales < 0 or labor_cost < 0:
        raise ValueError(f"sales and labor cost must not be negative (got {sales}, {labor_cost})")
    dt = _coerce_day_type(day_type)
    bracket = select_bracket(sales if reference_sales is None else reference_sales, dt, policy)

    if sales <= 0:
        missing = degenerate("labor rate undefined without sales")
        return GuardrailResult(dt, bracket, sales, labor_cost, missing, missing, missing, missing)

    rate = labor_cost / sales
    return GuardrailResult(
        day_type=dt,
        bracket=bracket,
        sales=sales,
        labor_cost=labor_cost,
        labor_rate=rate,
        status=classify_rate(rate, bracket),
        delta_to_good=rate - bracket.good_rate,
        delta_to_bad=rate - bracket.bad_rate,
    )


@dataclass(frozen=True)
class GuardrailProjection:
    """End-of-day projection of the labor rate from partial-day actuals."""
    business_date: date | None
    current_hour: float
    forecast_sales: float
    run_rate_sales: float
    projected: GuardrailResult
    good_rate_sales: float
    bad_rate_sales: float

    @property
    def projected_labor_rate(self) -> float | Unavailable:
        return self.projected.labor_rate

    @property
    def status(self) -> GuardrailStatus | Unavailable:
        return self.projected.status


def project_guardrail(
    day_type: DayType | str,
    forecast_sales: float,
    sales_so_far: float,
    labor_cost_so_far: float,
    planned_labor_cost: float,
    current_hour: float,
    business_date: date | None = None,
    policy: dict[DayType, tuple[GuardrailBracket, ...]] = GUARDRAIL_POLICY,
) -> GuardrailProjection:
    """
    Project the end-of-day labor rate.

    After opening, sales so far are extrapolated by 24 / current_hour and the
    actual labor cost so far is set against that run rate. At hour 0 nothing
    has happened yet, so the planned labor cost is set against the forecast.
    """
    if not 0 <= current_hour <= 24:
        raise ValueError(f"current_hour must be within 0..24 (got {current_hour})")

    if current_hour > 0:
        run_rate = sales_so_far * 24 / current_hour
        cost = labor_cost_so_far
    else:
        run_rate = forecast_sales
        cost = planned_labor_cost

    projected = evaluate_guardrail(run_rate, cost, day_type, reference_sales=forecast_sales, policy=policy)
    logger.debug("Guardrail projection at hour %.1f: run rate %.0f, cost %.0f, status %s",
                 current_hour, run_rate, cost, projected.status)
    return GuardrailProjection(
        business_date=business_date,
        current_hour=current_hour,
        forecast_sales=forecast_sales,
        run_rate_sales=run_rate,
        projected=projected,
        good_rate_sales=projected.bracket.high_sales,
        bad_rate_sales=projected.bracket.low_sales,
    )
