"""Gamified performance score (0-100) with explainable, event-linked deductions."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from enum import Enum

import numpy as np
import pandas as pd

from kitchen_pulse.config import (
    BOTTLENECK_CUTS, BREAK_COMPLIANCE_MAX, BREAK_INTERVAL_HOURS,
    DEDUCTION_DISPLAY_LIMIT, GRADE_FLOOR, GRADE_THRESHOLDS, NEEDS_SUPPORT_SCORE,
    OVERTIME_BLOCK_MINUTES, OVERTIME_POINTS_PER_BLOCK, PLANNED_SHIFT_HOURS,
    TASK_COMPLETION_MAX, TIME_TOLERANCE, TIME_VARIANCE_MAX, TOP_PERFORMER_SCORE,
    ZERO_OVERTIME_MAX,
)
from kitchen_pulse.models.availability import Unavailable, is_available, not_tracked
from kitchen_pulse.models.events import DecisionAction, EventType, ReferenceData, Staff
from kitchen_pulse.models.labor import WorkSession, group_by_staff_day
from kitchen_pulse.models.quests import QuestState, QuestTiming, quest_timing, quests_for_staff

logger = logging.getLogger(__name__)


class DeductionCategory(str, Enum):
    TASK = "task"
    TIME = "time"
    BREAK = "break"
    OVERTIME = "overtime"


CATEGORY_MAX = {
    DeductionCategory.TASK: TASK_COMPLETION_MAX,
    DeductionCategory.TIME: TIME_VARIANCE_MAX,
    DeductionCategory.BREAK: BREAK_COMPLIANCE_MAX,
    DeductionCategory.OVERTIME: ZERO_OVERTIME_MAX,
}


@dataclass(frozen=True)
class ScoreBreakdown:
    task_completion: int
    time_variance: int
    break_compliance: int
    zero_overtime: int

    @property
    def total(self) -> int:
        return self.task_completion + self.time_variance + self.break_compliance + self.zero_overtime

    def value(self, category: DeductionCategory) -> int:
        return {
            DeductionCategory.TASK: self.task_completion,
            DeductionCategory.TIME: self.time_variance,
            DeductionCategory.BREAK: self.break_compliance,
            DeductionCategory.OVERTIME: self.zero_overtime,
        }[category]


@dataclass(frozen=True)
class ScoreDeduction:
    """Points lost in one sub-score, linked back to the events that caused it."""
    id: str
    category: DeductionCategory
    points: int
    reason: str
    event_ids: tuple[str, ...]
    event_type: EventType
    timestamp: pd.Timestamp
    staff_id: str | None = None
    expected: str | None = None
    actual: str | None = None

    def __str__(self) -> str:
        return f"-{self.points:>2} {self.category.value:<8} | {self.reason}"


@dataclass(frozen=True)
class ScoreStats:
    total_quests: int
    completed_quests: int
    on_time_quests: int
    timed_quests: int
    breaks_taken: int
    breaks_expected: int
    planned_hours: float
    actual_hours: float
    overtime_minutes: int


@dataclass(frozen=True)
class ScoreResult:
    breakdown: ScoreBreakdown
    deductions: tuple[ScoreDeduction, ...]     # full list, sorted
    stats: ScoreStats
    start: date
    end: date
    staff_id: str | None = None                # None for team scores
    bottlenecks: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return self.breakdown.total

    @property
    def grade(self) -> str:
        return grade_for(self.total)

    @property
    def stars(self) -> int:
        return star_rating(self.total)

    @property
    def top_deductions(self) -> tuple[ScoreDeduction, ...]:
        return self.deductions[:DEDUCTION_DISPLAY_LIMIT]


def grade_for(total: float, thresholds: tuple[tuple[str, int], ...] = GRADE_THRESHOLDS,
              floor: str = GRADE_FLOOR) -> str:
    for grade, cut in thresholds:
        if total >= cut:
            return grade
    return floor


def star_rating(total: float) -> int:
    return math.ceil(total / 20)


def round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def allocate_points(lost: int, weights: list[float]) -> list[int]:
    """
    Split `lost` integer points across weights by largest remainder.

    The parts always sum to `lost` (when any weight is positive); ties go to
    the earlier position, so callers pass weights in chronological order.
    """
    w = np.asarray(weights, dtype=float)
    if lost <= 0 or w.size == 0 or w.sum() <= 0:
        return [0] * len(weights)
    raw = lost * w / w.sum()
    parts = np.floor(raw + 1e-9).astype(int)
    remainder = lost - int(parts.sum())
    order = sorted(range(len(w)), key=lambda i: (-(raw[i] - parts[i]), i))
    for i in order[:remainder]:
        parts[i] += 1
    return [int(p) for p in parts]


# ── Sub-scores ───────────────────────────────────────────────────────────────

def _fmt_minutes(minutes: float) -> str:
    return f"{minutes:.0f} min"


def _task_completion(assigned: list[QuestState], timings: dict[str, QuestTiming]):
    if not assigned:
        return TASK_COMPLETION_MAX, [], 0
    credited = [q for q in assigned if q.is_completed and not timings[q.proposal_id].is_late]
    score = round_half_up(TASK_COMPLETION_MAX * len(credited) / len(assigned))
    failed = [q for q in assigned if q not in credited]
    points = allocate_points(TASK_COMPLETION_MAX - score, [1.0] * len(failed))

    deductions = []
    for quest, pts in zip(failed, points):
        if pts <= 0:
            continue
        timing = timings[quest.proposal_id]
        expected = actual = None
        if quest.is_completed:
            reason = f"Completed late: {quest.label}"
            if timing.missed_deadline:
                expected = f"by {quest.deadline:%H:%M}"
                actual = f"{quest.completed_at:%H:%M}"
            else:
                expected = _fmt_minutes(timing.estimated * (1 + TIME_TOLERANCE))
                actual = _fmt_minutes(timing.actual)
        elif quest.status in (DecisionAction.STARTED, DecisionAction.PAUSED):
            reason = f"Not completed: {quest.label}"
        else:
            reason = f"Not started: {quest.label}"
        deductions.append(ScoreDeduction(
            id=f"task-{quest.proposal_id}",
            category=DeductionCategory.TASK,
            points=pts,
            reason=reason,
            event_ids=(quest.last_event_id,),
            event_type=EventType.DECISION,
            timestamp=quest.last_timestamp,
            staff_id=quest.assignee_id,
            expected=expected,
            actual=actual,
        ))
    return score, deductions, len(credited)


def _time_variance(completed: list[QuestState], timings: dict[str, QuestTiming]):
    timed = [timings[q.proposal_id] for q in completed
             if is_available(timings[q.proposal_id].estimated) and timings[q.proposal_id].actual is not None]
    if not timed:
        return TIME_VARIANCE_MAX, [], 0

    credits = []
    for t in timed:
        if not t.over_tolerance:
            credits.append(1.0)
        else:
            allowed = t.estimated * (1 + TIME_TOLERANCE)
            credits.append(max(0.0, 1 - (t.actual - allowed) / t.estimated))
    score = round_half_up(TIME_VARIANCE_MAX * float(np.mean(credits)))
    points = allocate_points(TIME_VARIANCE_MAX - score, [1 - c for c in credits])

    deductions = []
    for t, pts in zip(timed, points):
        if pts <= 0:
            continue
        q = t.quest
        deductions.append(ScoreDeduction(
            id=f"time-{q.proposal_id}",
            category=DeductionCategory.TIME,
            points=pts,
            reason=f"Over standard time: {q.label}",
            event_ids=(q.completed_event_id or q.last_event_id,),
            event_type=EventType.DECISION,
            timestamp=q.completed_at or q.last_timestamp,
            staff_id=q.assignee_id,
            expected=_fmt_minutes(t.estimated),
            actual=_fmt_minutes(t.actual),
        ))
    return score, deductions, len(timed)


def _break_compliance(sessions: list[WorkSession], as_of: pd.Timestamp | None):
    expected = [s.breaks_expected(as_of, BREAK_INTERVAL_HOURS) for s in sessions]
    taken = [s.breaks_taken for s in sessions]
    total_expected = sum(expected)
    if total_expected == 0:
        return BREAK_COMPLIANCE_MAX, [], sum(taken), 0

    shortfall = [max(0, e - t) for e, t in zip(expected, taken)]
    credit = 1 - sum(shortfall) / total_expected
    score = round_half_up(BREAK_COMPLIANCE_MAX * credit)
    points = allocate_points(BREAK_COMPLIANCE_MAX - score, [float(x) for x in shortfall])

    deductions = []
    for s, exp, tk, pts in zip(sessions, expected, taken, points):
        if pts <= 0:
            continue
        missed = exp - tk
        deductions.append(ScoreDeduction(
            id=f"break-{s.check_in.id}",
            category=DeductionCategory.BREAK,
            points=pts,
            reason=f"Breaks missed: {missed}",
            event_ids=(s.check_in.id,) + tuple(b.start_event_id for b in s.breaks),
            event_type=EventType.LABOR,
            timestamp=s.check_in.timestamp,
            staff_id=s.staff_id,
            expected=f"{exp} breaks",
            actual=f"{tk} breaks",
        ))
    return score, deductions, sum(taken), total_expected


def _zero_overtime(sessions: list[WorkSession], as_of: pd.Timestamp | None):
    groups = group_by_staff_day(sessions)
    keys = sorted(groups, key=lambda k: (groups[k][-1].closing_event.timestamp, k))

    overtime = []
    for key in keys:
        net = sum(s.net_minutes(as_of) for s in groups[key])
        overtime.append(max(0, round(net - PLANNED_SHIFT_HOURS * 60)))
    total_ot = sum(overtime)
    points_lost = min(ZERO_OVERTIME_MAX,
                      math.ceil(total_ot / OVERTIME_BLOCK_MINUTES) * OVERTIME_POINTS_PER_BLOCK)
    points = allocate_points(points_lost, [float(m) for m in overtime])

    deductions = []
    for key, ot, pts in zip(keys, overtime, points):
        if pts <= 0:
            continue
        staff_id, day = key
        closing = groups[key][-1].closing_event
        net_hours = sum(s.net_minutes(as_of) for s in groups[key]) / 60
        deductions.append(ScoreDeduction(
            id=f"overtime-{staff_id}-{day.isoformat()}",
            category=DeductionCategory.OVERTIME,
            points=pts,
            reason=f"Overtime: {ot} min",
            event_ids=(closing.id,),
            event_type=EventType.LABOR,
            timestamp=closing.timestamp,
            staff_id=staff_id,
            expected=f"{PLANNED_SHIFT_HOURS:.1f} h",
            actual=f"{net_hours:.1f} h",
        ))
    return ZERO_OVERTIME_MAX - points_lost, deductions, total_ot, len(keys)


def _bottlenecks(breakdown: ScoreBreakdown) -> tuple[tuple[str, ...], tuple[str, ...]]:
    values = {
        "task": breakdown.task_completion,
        "time": breakdown.time_variance,
        "break": breakdown.break_compliance,
        "overtime": breakdown.zero_overtime,
    }
    bottlenecks, improvements = [], []
    for key, (cut, bottleneck, improvement) in BOTTLENECK_CUTS.items():
        if values[key] < cut:
            bottlenecks.append(bottleneck)
            improvements.append(improvement)
    return tuple(bottlenecks), tuple(improvements)


# ── Entry points ─────────────────────────────────────────────────────────────

def compute_score(
    quests: list[QuestState],
    sessions: list[WorkSession],
    refs: ReferenceData,
    start: date,
    end: date,
    staff_id: str | None = None,
    as_of: pd.Timestamp | None = None,
) -> ScoreResult | Unavailable:
    """
    Score the given quests and work sessions as one pool.

    Team scores pass every quest and session of the store; the result is an
    aggregate over the pool, not an average of individual scores.
    """
    assigned = [q for q in quests if q.is_assigned]
    if not assigned and not sessions:
        who = staff_id or "team"
        return not_tracked(f"no quests or attendance for {who} between {start} and {end}")

    timings = {q.proposal_id: quest_timing(q, refs) for q in assigned}
    completed = [q for q in assigned if q.is_completed]

    task, task_d, on_time = _task_completion(assigned, timings)
    time_score, time_d, timed = _time_variance(completed, timings)
    brk, brk_d, breaks_taken, breaks_expected = _break_compliance(sessions, as_of)
    ot, ot_d, ot_minutes, staff_days = _zero_overtime(sessions, as_of)

    breakdown = ScoreBreakdown(task, time_score, brk, ot)
    deductions = sorted(
        task_d + time_d + brk_d + ot_d,
        key=lambda d: (-d.points, d.timestamp, d.id),
    )
    bottlenecks, improvements = _bottlenecks(breakdown)

    logger.debug("Score %s %s..%s: %d (%d deductions)", staff_id or "team", start, end,
                 breakdown.total, len(deductions))
    return ScoreResult(
        breakdown=breakdown,
        deductions=tuple(deductions),
        stats=ScoreStats(
            total_quests=len(assigned),
            completed_quests=len(completed),
            on_time_quests=on_time,
            timed_quests=timed,
            breaks_taken=breaks_taken,
            breaks_expected=breaks_expected,
            planned_hours=PLANNED_SHIFT_HOURS * staff_days,
            actual_hours=round(sum(s.net_minutes(as_of) for s in sessions) / 60, 1),
            overtime_minutes=ot_minutes,
        ),
        start=start,
        end=end,
        staff_id=staff_id,
        bottlenecks=bottlenecks,
        improvements=improvements,
    )


def score_staff(
    quests: list[QuestState],
    sessions: list[WorkSession],
    staff: Staff,
    refs: ReferenceData,
    start: date,
    end: date,
    as_of: pd.Timestamp | None = None,
) -> ScoreResult | Unavailable:
    """Score one staff member over [start, end] from store-wide quests and sessions."""
    own_quests = quests_for_staff(quests, staff)
    own_sessions = [s for s in sessions if s.staff_id == staff.id]
    return compute_score(own_quests, own_sessions, refs, start, end, staff_id=staff.id, as_of=as_of)


@dataclass(frozen=True)
class StaffScore:
    staff: Staff
    result: ScoreResult | Unavailable


@dataclass(frozen=True)
class TeamScore:
    team: ScoreResult | Unavailable
    staff_scores: tuple[StaffScore, ...] = ()
    top_performers: tuple[StaffScore, ...] = ()
    needs_support: tuple[tuple[StaffScore, str], ...] = ()


def score_team(
    quests: list[QuestState],
    sessions: list[WorkSession],
    staff: list[Staff],
    refs: ReferenceData,
    start: date,
    end: date,
    as_of: pd.Timestamp | None = None,
) -> TeamScore:
    team = compute_score(quests, sessions, refs, start, end, as_of=as_of)
    staff_scores = tuple(
        StaffScore(s, score_staff(quests, sessions, s, refs, start, end, as_of=as_of))
        for s in sorted(staff, key=lambda s: s.id)
    )
    tracked = [ss for ss in staff_scores if is_available(ss.result)]
    top = sorted(
        (ss for ss in tracked if ss.result.total >= TOP_PERFORMER_SCORE),
        key=lambda ss: (-ss.result.total, ss.staff.id),
    )[:3]
    support = tuple(
        (ss, ss.result.bottlenecks[0] if ss.result.bottlenecks else "Needs overall support")
        for ss in tracked
        if ss.result.total < NEEDS_SUPPORT_SCORE
    )
    return TeamScore(team=team, staff_scores=staff_scores, top_performers=tuple(top), needs_support=support)
