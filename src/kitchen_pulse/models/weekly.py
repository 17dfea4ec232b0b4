"""Weekly labor review: seven daily rows folded into a week summary with highlights."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

import numpy as np
import pandas as pd

from kitchen_pulse.config import DAY_LABELS, WEEKLY_POLICY, WeeklyPolicy
from kitchen_pulse.data.event_log import EventLog
from kitchen_pulse.models.availability import Unavailable, insufficient, is_available, not_tracked
from kitchen_pulse.models.events import ReferenceData, TimeBand
from kitchen_pulse.models.labor import SkillMix, WorkSession, fold_sessions, skill_mix, summarize_sessions
from kitchen_pulse.models.quests import QuestState, fold_quests, quest_timing
from kitchen_pulse.models.sales import daily_sales
from kitchen_pulse.models.scoring import compute_score

logger = logging.getLogger(__name__)


def _value(x):
    return x if is_available(x) else np.nan


@dataclass(frozen=True)
class DailyLaborRow:
    date: date
    day_label: str
    sales: float | Unavailable
    labor_hours: float
    labor_cost: float
    labor_rate: float | Unavailable           # labor cost / sales
    sales_per_labor_cost: float | Unavailable
    staff_count: int
    skill_mix: SkillMix
    day_score: int | Unavailable
    overtime_minutes: int
    quest_delay_count: int

    def __str__(self) -> str:
        sales = f"{self.sales:,.0f}" if is_available(self.sales) else "--"
        rate = f"{self.labor_rate:.1%}" if is_available(self.labor_rate) else "--"
        return (
            f"{self.day_label} {self.date} | sales {sales:>10} | "
            f"{self.labor_hours:5.1f} h | rate {rate:>6} | score {str(self.day_score):>3}"
        )


@dataclass(frozen=True)
class WeekSummary:
    total_sales: float
    total_hours: float
    total_labor_cost: float
    total_overtime_minutes: int
    total_quest_delays: int
    avg_labor_rate: float | Unavailable       # weighted by sales
    avg_day_score: float | Unavailable        # over days that have a score
    sales_per_labor_cost: float | Unavailable
    staff_count_total: int
    star_mix_total: SkillMix


class WeakIssue(str, Enum):
    LOW_SCORE = "low_score"
    OVERTIME = "overtime"
    QUEST_DELAY = "quest_delay"


@dataclass(frozen=True)
class WeakSpot:
    date: date
    day_label: str
    issue: WeakIssue
    detail: str


@dataclass(frozen=True)
class WinningMix:
    date: date
    day_label: str
    day_score: int
    skill_mix: SkillMix


@dataclass(frozen=True)
class ChronicDelay:
    key: str
    title: str
    occurrences: int
    avg_delay_minutes: float


@dataclass(frozen=True)
class WeeklyHighlights:
    winning_mix: WinningMix | Unavailable
    weak_spots: tuple[WeakSpot, ...]
    chronic_delay_quests: tuple[ChronicDelay, ...]


@dataclass(frozen=True)
class WeeklyLaborMetrics:
    week_start: date
    week_end: date
    daily: tuple[DailyLaborRow, ...]
    summary: WeekSummary
    highlights: WeeklyHighlights

    def to_frame(self) -> pd.DataFrame:
        return daily_frame(self.daily)


def daily_frame(rows: tuple[DailyLaborRow, ...] | list[DailyLaborRow]) -> pd.DataFrame:
    """Daily rows as a DataFrame; unavailable values become NaN."""
    return pd.DataFrame([
        {
            "date": r.date,
            "day_label": r.day_label,
            "sales": _value(r.sales),
            "labor_hours": r.labor_hours,
            "labor_cost": r.labor_cost,
            "labor_rate": _value(r.labor_rate),
            "day_score": _value(r.day_score),
            "overtime_minutes": r.overtime_minutes,
            "quest_delay_count": r.quest_delay_count,
            "staff_count": r.staff_count,
        }
        for r in rows
    ])


# ── Daily rows ───────────────────────────────────────────────────────────────

def _daily_row(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    day: date,
    quests: list[QuestState],
    sessions: list[WorkSession],
    as_of: pd.Timestamp | None,
) -> DailyLaborRow:
    labor = summarize_sessions(sessions, refs, as_of)
    actual_sales = daily_sales(log, store_id, day, TimeBand.ALL, as_of).actual_sales
    if actual_sales > 0:
        sales: float | Unavailable = actual_sales
        rate: float | Unavailable = labor.labor_cost / actual_sales
    else:
        sales = rate = not_tracked(f"no sales on {day}")
    if labor.labor_cost > 0 and is_available(sales):
        per_cost: float | Unavailable = sales / labor.labor_cost
    else:
        per_cost = insufficient(f"no labor cost on {day}")

    score = compute_score(quests, sessions, refs, day, day, as_of=as_of)
    delays = sum(1 for q in quests if q.is_completed and quest_timing(q, refs).is_late)
    return DailyLaborRow(
        date=day,
        day_label=DAY_LABELS[day.weekday()],
        sales=sales,
        labor_hours=labor.total_hours,
        labor_cost=labor.labor_cost,
        labor_rate=rate,
        sales_per_labor_cost=per_cost,
        staff_count=len(labor.staff_ids),
        skill_mix=labor.skill_mix,
        day_score=score.total if is_available(score) else score,
        overtime_minutes=labor.overtime_minutes,
        quest_delay_count=delays,
    )


# ── Summary & highlights ─────────────────────────────────────────────────────

def summarize_week(rows: list[DailyLaborRow], staff_ids: set[str], refs: ReferenceData) -> WeekSummary:
    df = daily_frame(rows)
    total_sales = float(df["sales"].sum())           # NaN days skipped
    sold = df[df["sales"].notna()]
    total_cost = float(df["labor_cost"].sum())

    if total_sales > 0:
        avg_rate: float | Unavailable = float(sold["labor_cost"].sum()) / total_sales
    else:
        avg_rate = not_tracked("no sales this week")
    scored = df["day_score"].dropna()
    avg_score: float | Unavailable = float(scored.mean()) if len(scored) else not_tracked("no scored days this week")
    if total_cost > 0 and total_sales > 0:
        per_cost: float | Unavailable = total_sales / total_cost
    else:
        per_cost = insufficient("no labor cost or sales this week")

    return WeekSummary(
        total_sales=total_sales,
        total_hours=float(df["labor_hours"].sum()),
        total_labor_cost=total_cost,
        total_overtime_minutes=int(df["overtime_minutes"].sum()),
        total_quest_delays=int(df["quest_delay_count"].sum()),
        avg_labor_rate=avg_rate,
        avg_day_score=avg_score,
        sales_per_labor_cost=per_cost,
        staff_count_total=len(staff_ids),
        star_mix_total=skill_mix(staff_ids, refs),
    )


def chronic_delays(quests: list[QuestState], refs: ReferenceData, min_occurrences: int) -> list[ChronicDelay]:
    """Late quests grouped by task card (or title when there is none) that recur often enough."""
    rows = []
    for q in quests:
        if not q.is_completed:
            continue
        timing = quest_timing(q, refs)
        if timing.is_late:
            rows.append({"key": q.task_card_id or q.label, "title": q.label, "delay": timing.delay_minutes})
    if not rows:
        return []

    df = pd.DataFrame(rows)
    grouped = df.groupby("key").agg(
        title=("title", "first"),
        occurrences=("delay", "size"),
        avg_delay=("delay", "mean"),
    ).reset_index()
    grouped = grouped[grouped["occurrences"] >= min_occurrences]
    grouped = grouped.sort_values(["occurrences", "avg_delay", "key"], ascending=[False, False, True])
    return [
        ChronicDelay(key=r.key, title=r.title, occurrences=int(r.occurrences), avg_delay_minutes=float(r.avg_delay))
        for r in grouped.itertuples(index=False)
    ]


def week_highlights(
    rows: list[DailyLaborRow],
    quests: list[QuestState],
    refs: ReferenceData,
    policy: WeeklyPolicy = WEEKLY_POLICY,
) -> WeeklyHighlights:
    scored = [r for r in rows if is_available(r.day_score)]
    if scored:
        best = min(scored, key=lambda r: (-r.day_score, r.date))
        winning: WinningMix | Unavailable = WinningMix(best.date, best.day_label, best.day_score, best.skill_mix)
    else:
        winning = not_tracked("no scored days this week")

    weak = []
    for r in rows:
        if is_available(r.day_score) and r.day_score < policy.low_score:
            weak.append(WeakSpot(r.date, r.day_label, WeakIssue.LOW_SCORE, f"Score {r.day_score}"))
        if r.overtime_minutes > 0:
            weak.append(WeakSpot(r.date, r.day_label, WeakIssue.OVERTIME, f"Overtime {r.overtime_minutes} min"))
        if r.quest_delay_count > 0:
            weak.append(WeakSpot(r.date, r.day_label, WeakIssue.QUEST_DELAY, f"{r.quest_delay_count} late quests"))

    return WeeklyHighlights(
        winning_mix=winning,
        weak_spots=tuple(weak),
        chronic_delay_quests=tuple(chronic_delays(quests, refs, policy.chronic_delay_count)),
    )


def weekly_labor(
    log: EventLog,
    refs: ReferenceData,
    store_id: str,
    week_start: date,
    as_of: pd.Timestamp | None = None,
    policy: WeeklyPolicy = WEEKLY_POLICY,
) -> WeeklyLaborMetrics:
    """
    Seven daily rows starting at `week_start`, their summary and highlights.

    `log` should already be limited to what was recorded up to `as_of`.
    """
    days = [week_start + timedelta(days=i) for i in range(7)]
    store_log = log.for_store(store_id)
    all_quests = fold_quests(store_log)
    all_sessions = fold_sessions(store_log)

    rows = []
    week_quests = []
    staff_ids: set[str] = set()
    for day in days:
        quests = [q for q in all_quests if q.business_date == day]
        sessions = [s for s in all_sessions if s.business_date == day]
        row = _daily_row(store_log, refs, store_id, day, quests, sessions, as_of)
        rows.append(row)
        week_quests.extend(quests)
        staff_ids.update(s.staff_id for s in sessions if refs.staff_member(s.staff_id) is not None)

    logger.debug("Weekly labor %s: %d scored days", week_start,
                 sum(1 for r in rows if is_available(r.day_score)))
    return WeeklyLaborMetrics(
        week_start=days[0],
        week_end=days[-1],
        daily=tuple(rows),
        summary=summarize_week(rows, staff_ids, refs),
        highlights=week_highlights(rows, week_quests, refs, policy),
    )
