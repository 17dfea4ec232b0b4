"""
Query entry points over an event-log snapshot.

Every query recomputes from `(log, refs, store_id, date | period)`; nothing is
cached. `as_of` limits the snapshot to events recorded up to that instant and
closes open work sessions there.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import pandas as pd

from kitchen_pulse.config import GUARDRAIL_POLICY, PLANNED_SHIFT_HOURS, DEMAND_DROP_POLICY
from kitchen_pulse.data.event_log import EventLog, as_date
from kitchen_pulse.models.availability import Unavailable
from kitchen_pulse.models.awards import AWARD_CATEGORIES, AwardsMetrics, compute_awards
from kitchen_pulse.models.demand_drop import DemandDropResult, detect_demand_drops
from kitchen_pulse.models.events import EventType, ReferenceData, TimeBand
from kitchen_pulse.models.guardrail import GuardrailProjection, day_type_for, project_guardrail
from kitchen_pulse.models.labor import (
    LaborMetrics, WorkSession, fold_sessions, labor_cost, sessions_in_band, summarize_sessions,
)
from kitchen_pulse.models.quests import QuestState, fold_quests, quest_time_band
from kitchen_pulse.models.sales import DailySalesMetrics, daily_sales, forecast_for_date, sales_history
from kitchen_pulse.models.scoring import ScoreResult, TeamScore, compute_score, score_staff, score_team
from kitchen_pulse.models.weekly import WeeklyLaborMetrics, weekly_labor

logger = logging.getLogger(__name__)


def _store_log(log: EventLog, store_id: str, as_of: pd.Timestamp | None) -> EventLog:
    return log.for_store(store_id).until(as_of)


def _period_inputs(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    start: date,
    end: date,
    time_band: TimeBand,
    as_of: pd.Timestamp | None,
) -> tuple[EventLog, list[QuestState], list[WorkSession]]:
    """
    Store log plus quests (by first-event date) and sessions (by check-in date) in [start, end].

    A specific time band keeps the quests of that band and clips sessions to its hours.
    """
    store_log = _store_log(log, store_id, as_of)
    quests = [
        q for q in fold_quests(store_log)
        if start <= q.business_date <= end
        and (time_band == TimeBand.ALL or quest_time_band(q, refs) == time_band)
    ]
    sessions = [s for s in fold_sessions(store_log) if start <= s.business_date <= end]
    sessions = sessions_in_band(sessions, time_band, as_of)
    return store_log, quests, sessions


def daily_score(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    staff_id: str,
    day: date | str,
    time_band: TimeBand = TimeBand.ALL,
    as_of: pd.Timestamp | None = None,
) -> ScoreResult | Unavailable:
    """Score one staff member for one business date."""
    staff = refs.staff_member(staff_id)
    if staff is None:
        raise ValueError(f"unknown staff {staff_id!r}")
    d = as_date(day)
    _, quests, sessions = _period_inputs(log, refs, store_id, d, d, time_band, as_of)
    return score_staff(quests, sessions, staff, refs, d, d, as_of=as_of)


def team_score(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    day: date | str,
    time_band: TimeBand = TimeBand.ALL,
    as_of: pd.Timestamp | None = None,
) -> TeamScore:
    """Aggregate team score for a date, with per-staff scores alongside."""
    d = as_date(day)
    _, quests, sessions = _period_inputs(log, refs, store_id, d, d, time_band, as_of)
    return score_team(quests, sessions, refs.store_staff(store_id), refs, d, d, as_of=as_of)


def period_score(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    start: date | str,
    end: date | str,
    staff_id: str | None = None,
    time_band: TimeBand = TimeBand.ALL,
    as_of: pd.Timestamp | None = None,
) -> ScoreResult | Unavailable:
    """Score over a date range, for one staff member or (staff_id None) the whole team."""
    lo, hi = as_date(start), as_date(end)
    if lo > hi:
        raise ValueError(f"period start {lo} is after end {hi}")
    _, quests, sessions = _period_inputs(log, refs, store_id, lo, hi, time_band, as_of)
    if staff_id is None:
        return compute_score(quests, sessions, refs, lo, hi, as_of=as_of)
    staff = refs.staff_member(staff_id)
    if staff is None:
        raise ValueError(f"unknown staff {staff_id!r}")
    return score_staff(quests, sessions, staff, refs, lo, hi, as_of=as_of)


def labor_metrics(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    day: date | str,
    as_of: pd.Timestamp | None = None,
) -> LaborMetrics:
    d = as_date(day)
    _, _, sessions = _period_inputs(log, refs, store_id, d, d, TimeBand.ALL, as_of)
    return summarize_sessions(sessions, refs, as_of)


def daily_sales_metrics(
    log: EventLog,
    store_id: str,
    day: date | str,
    time_band: TimeBand = TimeBand.ALL,
    as_of: pd.Timestamp | None = None,
) -> DailySalesMetrics:
    return daily_sales(_store_log(log, store_id, as_of), store_id, day, time_band)


def labor_guardrail(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    day: date | str,
    as_of: pd.Timestamp,
    policy=GUARDRAIL_POLICY,
) -> GuardrailProjection:
    """
    Project today's end-of-day labor rate from what has been recorded by `as_of`.

    The bracket is picked by the day's forecast (actual sales when there is no
    forecast); planned cost is every store staff member for a planned shift.
    """
    d = as_date(day)
    store_log = _store_log(log, store_id, as_of)
    sales = daily_sales(store_log, store_id, d)
    forecast = forecast_for_date(store_log, store_id, d)
    forecast_sales = forecast.forecast_sales if forecast is not None else sales.actual_sales

    sessions = [s for s in fold_sessions(store_log) if s.business_date == d]
    cost_so_far = sum(labor_cost(s, refs, as_of) for s in sessions)
    planned = sum(s.wage * PLANNED_SHIFT_HOURS for s in refs.store_staff(store_id))

    if as_of.date() > d:
        hour = 24.0
    elif as_of.date() < d:
        hour = 0.0
    else:
        hour = as_of.hour + as_of.minute / 60
    return project_guardrail(
        day_type=day_type_for(d),
        forecast_sales=forecast_sales,
        sales_so_far=sales.actual_sales,
        labor_cost_so_far=cost_so_far,
        planned_labor_cost=planned,
        current_hour=hour,
        business_date=d,
        policy=policy,
    )


def demand_drops(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    day: date | str | None = None,
    policy=DEMAND_DROP_POLICY,
) -> list[DemandDropResult]:
    """Menu items whose recent demand dropped, using history up to `day`."""
    history = sales_history(log, store_id)
    return detect_demand_drops(history, refs, as_of=as_date(day) if day is not None else None, policy=policy)


def awards_metrics(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    start: date | str,
    end: date | str,
    as_of: pd.Timestamp | None = None,
    categories=AWARD_CATEGORIES,
) -> AwardsMetrics:
    lo, hi = as_date(start), as_date(end)
    store_log, quests, sessions = _period_inputs(log, refs, store_id, lo, hi, TimeBand.ALL, as_of)
    labor_events = [
        e for e in store_log.of_type(EventType.LABOR).between(lo, hi).chronological()
    ]
    return compute_awards(quests, sessions, labor_events, refs, store_id, lo, hi,
                          as_of=as_of, categories=categories)


def weekly_labor_metrics(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    week_start: date | str,
    as_of: pd.Timestamp | None = None,
) -> WeeklyLaborMetrics:
    return weekly_labor(_store_log(log, store_id, as_of), refs, store_id, as_date(week_start), as_of=as_of)


def week_of(day: date | str) -> date:
    """Monday of the week containing `day`."""
    d = as_date(day)
    return d - timedelta(days=d.weekday())
