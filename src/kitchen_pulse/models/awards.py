"""Award rankings per category, with an evidence bundle for each winner."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable

import pandas as pd

from kitchen_pulse.config import TIME_MASTER_MIN_QUESTS
from kitchen_pulse.models.availability import Unavailable, is_available, not_tracked
from kitchen_pulse.models.events import LaborAction, LaborEvent, QualityStatus, ReferenceData
from kitchen_pulse.models.labor import WorkSession
from kitchen_pulse.models.quests import QuestState, estimated_minutes, quest_timing, quests_for_staff
from kitchen_pulse.models.scoring import ScoreBreakdown, ScoreResult, score_staff

logger = logging.getLogger(__name__)


class AwardStatus(str, Enum):
    AWARDED = "awarded"
    NO_WINNER = "no-winner"
    NOT_TRACKED = "not-tracked"


class RequiredSignal(str, Enum):
    QUESTS = "quests"
    LABOR = "labor"
    QUALITY = "quality"


@dataclass(frozen=True)
class AwardNominee:
    staff_id: str
    name: str
    star_level: int
    role_id: str
    score: int | Unavailable
    quests_done: int
    quests_assigned: int
    delay_rate: float | Unavailable      # percent of completed quests that ran late
    quality_ng_count: int
    quality_checked: int
    hours_worked: float | Unavailable

    def __str__(self) -> str:
        delay = f"{self.delay_rate:.0f}%" if is_available(self.delay_rate) else "--"
        hours = f"{self.hours_worked:.1f}" if is_available(self.hours_worked) else "--"
        return (
            f"{self.name:<14} | score {str(self.score):>3} | quests {self.quests_done:>2} | "
            f"delay {delay:>4} | NG {self.quality_ng_count} | hours {hours}"
        )


def _score(n: AwardNominee) -> int:
    return n.score if is_available(n.score) else -1


@dataclass(frozen=True)
class AwardCategory:
    key: str
    label: str
    rule: str
    signal: RequiredSignal
    eligible: Callable[[AwardNominee], bool]
    sort_key: Callable[[AwardNominee], tuple]


AWARD_CATEGORIES: tuple[AwardCategory, ...] = (
    AwardCategory(
        key="time-master",
        label="Time Master",
        rule=f"Lowest delay rate (at least {TIME_MASTER_MIN_QUESTS} completed quests), then higher score, then more quests",
        signal=RequiredSignal.QUESTS,
        eligible=lambda n: n.quests_done >= TIME_MASTER_MIN_QUESTS and is_available(n.delay_rate),
        sort_key=lambda n: (n.delay_rate, -_score(n), -n.quests_done, n.staff_id),
    ),
    AwardCategory(
        key="quest-finisher",
        label="Quest Finisher",
        rule="Most completed quests, then higher score",
        signal=RequiredSignal.QUESTS,
        eligible=lambda n: n.quests_done > 0,
        sort_key=lambda n: (-n.quests_done, -_score(n), n.staff_id),
    ),
    AwardCategory(
        key="team-saver",
        label="Team Saver",
        rule="Most hours worked, then higher score",
        signal=RequiredSignal.LABOR,
        eligible=lambda n: is_available(n.hours_worked) and n.hours_worked > 0,
        sort_key=lambda n: (-n.hours_worked, -_score(n), n.staff_id),
    ),
    AwardCategory(
        key="quality-keeper",
        label="Quality Keeper",
        rule="Fewest quality NG results among checked quests, then higher score",
        signal=RequiredSignal.QUALITY,
        eligible=lambda n: n.quality_checked > 0,
        sort_key=lambda n: (n.quality_ng_count, -_score(n), n.staff_id),
    ),
)


@dataclass(frozen=True)
class DataAvailability:
    has_labor_data: bool
    has_quest_data: bool
    has_quality_data: bool

    def has(self, signal: RequiredSignal) -> bool:
        return {
            RequiredSignal.QUESTS: self.has_quest_data,
            RequiredSignal.LABOR: self.has_labor_data,
            RequiredSignal.QUALITY: self.has_quality_data,
        }[signal]


@dataclass(frozen=True)
class QuestHistoryEntry:
    proposal_id: str
    title: str
    started_at: pd.Timestamp | None
    completed_at: pd.Timestamp | None
    duration_minutes: float | None
    estimated_minutes: float | Unavailable
    quality_status: QualityStatus | None


@dataclass(frozen=True)
class LaborTimelineEntry:
    event_id: str
    timestamp: pd.Timestamp
    action: LaborAction


@dataclass(frozen=True)
class AwardEvidence:
    score_breakdown: ScoreBreakdown | Unavailable
    quest_history: tuple[QuestHistoryEntry, ...]
    labor_timeline: tuple[LaborTimelineEntry, ...]
    reason_text: str


@dataclass(frozen=True)
class Award:
    category: str
    label: str
    rule: str
    status: AwardStatus
    winner: AwardNominee | None = None
    evidence: AwardEvidence | None = None
    evidence_bullets: tuple[str, ...] = ()
    not_tracked_reason: str | None = None

    def __str__(self) -> str:
        if self.status == AwardStatus.AWARDED:
            return f"{self.label:<15} | {self.winner.name}"
        return f"{self.label:<15} | {self.status.value}"


@dataclass(frozen=True)
class AwardsSnapshot:
    winners_count: int
    eligible_staff_count: int
    start: date
    end: date


@dataclass(frozen=True)
class AwardsMetrics:
    snapshot: AwardsSnapshot
    awards: tuple[Award, ...]
    nominees: tuple[AwardNominee, ...]
    data_availability: DataAvailability


# ── Nominees ─────────────────────────────────────────────────────────────────

def build_nominee(
    staff_id: str,
    quests: list[QuestState],
    sessions: list[WorkSession],
    refs: ReferenceData,
    score: ScoreResult | Unavailable,
    as_of: pd.Timestamp | None = None,
) -> AwardNominee:
    """Period figures for one staff member; quests and sessions are already the staff's own."""
    staff = refs.staff_member(staff_id)
    assigned = [q for q in quests if q.is_assigned]
    completed = [q for q in assigned if q.is_completed]
    late = sum(1 for q in completed if quest_timing(q, refs).is_late)
    checked = [q for q in assigned if q.quality_status is not None]

    if completed:
        delay_rate: float | Unavailable = late / len(completed) * 100
    else:
        delay_rate = not_tracked("no completed quests")
    if sessions:
        hours: float | Unavailable = sum(s.net_minutes(as_of) for s in sessions) / 60
    else:
        hours = not_tracked("no attendance")

    return AwardNominee(
        staff_id=staff_id,
        name=staff.display_name,
        star_level=staff.star_level,
        role_id=staff.role_id,
        score=score.total if is_available(score) else score,
        quests_done=len(completed),
        quests_assigned=len(assigned),
        delay_rate=delay_rate,
        quality_ng_count=sum(1 for q in checked if q.quality_status == QualityStatus.NG),
        quality_checked=len(checked),
        hours_worked=hours,
    )


def rank_category(category: AwardCategory, nominees: list[AwardNominee]) -> list[AwardNominee]:
    """Eligible nominees in award order; the sort key always ends with staff_id."""
    return sorted((n for n in nominees if category.eligible(n)), key=category.sort_key)


# ── Evidence ─────────────────────────────────────────────────────────────────

def _bullets(category: AwardCategory, winner: AwardNominee, runner_up: AwardNominee | None) -> tuple[str, ...]:
    score = f"Score {winner.score}" if is_available(winner.score) else "Score not tracked"
    if category.key == "time-master":
        lines = [f"Delay rate {winner.delay_rate:.0f}% over {winner.quests_done} completed quests"]
    elif category.key == "quest-finisher":
        lines = [f"{winner.quests_done} of {winner.quests_assigned} assigned quests completed"]
    elif category.key == "team-saver":
        lines = [f"{winner.hours_worked:.1f} hours worked"]
    elif category.key == "quality-keeper":
        lines = [f"{winner.quality_ng_count} NG in {winner.quality_checked} quality checks"]
    else:
        lines = []
    lines.append(score)
    if runner_up is not None:
        lines.append(f"Ahead of {runner_up.name}")
    return tuple(lines)


def _evidence(
    winner: AwardNominee,
    bullets: tuple[str, ...],
    quests: list[QuestState],
    labor_events: list[LaborEvent],
    refs: ReferenceData,
    score: ScoreResult | Unavailable,
) -> AwardEvidence:
    history = tuple(
        QuestHistoryEntry(
            proposal_id=q.proposal_id,
            title=q.label,
            started_at=q.started_at,
            completed_at=q.completed_at,
            duration_minutes=q.elapsed_minutes,
            estimated_minutes=estimated_minutes(q, refs),
            quality_status=q.quality_status,
        )
        for q in quests
        if q.is_assigned
    )
    timeline = tuple(
        LaborTimelineEntry(event_id=e.id, timestamp=e.timestamp, action=e.action)
        for e in labor_events
        if e.staff_id == winner.staff_id
    )
    return AwardEvidence(
        score_breakdown=score.breakdown if is_available(score) else score,
        quest_history=history,
        labor_timeline=timeline,
        reason_text=f"{winner.name}: " + "; ".join(bullets),
    )


# ── Entry point ──────────────────────────────────────────────────────────────

def compute_awards(
    quests: list[QuestState],
    sessions: list[WorkSession],
    labor_events: list[LaborEvent],
    refs: ReferenceData,
    store_id: str,
    start: date,
    end: date,
    as_of: pd.Timestamp | None = None,
    categories: tuple[AwardCategory, ...] = AWARD_CATEGORIES,
) -> AwardsMetrics:
    """
    Rank the store's staff active in [start, end] for every award category.

    Inputs are the period's quests, sessions and chronological labor events.
    """
    assigned = [q for q in quests if q.is_assigned]
    availability = DataAvailability(
        has_labor_data=bool(sessions),
        has_quest_data=bool(assigned),
        has_quality_data=any(q.quality_status is not None for q in assigned),
    )

    scores: dict[str, ScoreResult | Unavailable] = {}
    own_quests: dict[str, list[QuestState]] = {}
    nominees = []
    for staff in refs.store_staff(store_id):
        staff_quests = quests_for_staff(quests, staff)
        staff_sessions = [s for s in sessions if s.staff_id == staff.id]
        if not any(q.is_assigned for q in staff_quests) and not staff_sessions:
            continue
        scores[staff.id] = score_staff(quests, sessions, staff, refs, start, end, as_of=as_of)
        own_quests[staff.id] = staff_quests
        nominees.append(build_nominee(staff.id, staff_quests, staff_sessions, refs, scores[staff.id], as_of))

    awards = []
    for category in categories:
        if not availability.has(category.signal):
            awards.append(Award(
                category=category.key,
                label=category.label,
                rule=category.rule,
                status=AwardStatus.NOT_TRACKED,
                not_tracked_reason=f"no {category.signal.value} data for {start}..{end}",
            ))
            continue
        ranked = rank_category(category, nominees)
        if not ranked:
            awards.append(Award(category.key, category.label, category.rule, AwardStatus.NO_WINNER))
            continue

        winner = ranked[0]
        bullets = _bullets(category, winner, ranked[1] if len(ranked) > 1 else None)
        awards.append(Award(
            category=category.key,
            label=category.label,
            rule=category.rule,
            status=AwardStatus.AWARDED,
            winner=winner,
            evidence=_evidence(winner, bullets, own_quests[winner.staff_id], labor_events, refs,
                               scores[winner.staff_id]),
            evidence_bullets=bullets,
        ))
        logger.debug("Award %s -> %s", category.key, winner.staff_id)

    return AwardsMetrics(
        snapshot=AwardsSnapshot(
            winners_count=len({a.winner.staff_id for a in awards if a.winner is not None}),
            eligible_staff_count=len(nominees),
            start=start,
            end=end,
        ),
        awards=tuple(awards),
        nominees=tuple(sorted(nominees, key=lambda n: (-_score(n), n.staff_id))),
        data_availability=availability,
    )
