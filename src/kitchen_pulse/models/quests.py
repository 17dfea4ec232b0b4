"""Fold decision-event chains (shared proposal_id) into current quest state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date

import pandas as pd

from kitchen_pulse.config import TIME_TOLERANCE
from kitchen_pulse.data.event_log import EventLog
from kitchen_pulse.models.availability import Unavailable, is_available, not_tracked
from kitchen_pulse.models.events import (
    DecisionAction, DecisionEvent, EventType, Priority, QualityStatus,
    ReferenceData, Staff, TimeBand,
)

logger = logging.getLogger(__name__)

# Fields a later chain step may override when it carries a value
_CARRIED_FIELDS = (
    "title", "assignee_id", "distributed_to_roles", "task_card_id",
    "estimated_minutes", "actual_minutes", "deadline", "quality_status",
    "priority", "delay_reason",
)

_UNASSIGNED = (DecisionAction.PENDING, DecisionAction.REJECTED)


@dataclass(frozen=True)
class QuestState:
    """Current state of one quest after folding its whole chain."""
    proposal_id: str
    store_id: str
    status: DecisionAction
    business_date: date
    first_seen: pd.Timestamp
    last_event_id: str
    last_timestamp: pd.Timestamp
    event_ids: tuple[str, ...]
    time_band: TimeBand = TimeBand.ALL
    title: str | None = None
    assignee_id: str | None = None
    distributed_to_roles: tuple[str, ...] | None = None
    task_card_id: str | None = None
    estimated_minutes: float | None = None
    actual_minutes: float | None = None
    deadline: pd.Timestamp | None = None
    quality_status: QualityStatus | None = None
    priority: Priority | None = None
    delay_reason: str | None = None
    started_at: pd.Timestamp | None = None
    completed_at: pd.Timestamp | None = None
    completed_event_id: str | None = None

    @property
    def label(self) -> str:
        return self.title or self.proposal_id

    @property
    def is_assigned(self) -> bool:
        return self.status not in _UNASSIGNED

    @property
    def is_completed(self) -> bool:
        return self.status == DecisionAction.COMPLETED

    @property
    def elapsed_minutes(self) -> float | None:
        """Explicit actual minutes, else started -> completed wall time."""
        if self.actual_minutes is not None:
            return float(self.actual_minutes)
        if self.started_at is not None and self.completed_at is not None:
            return (self.completed_at - self.started_at).total_seconds() / 60
        return None


def _apply(state: QuestState | None, event: DecisionEvent) -> QuestState:
    """Reducer: one chain step applied to the running state."""
    if state is None:
        state = QuestState(
            proposal_id=event.proposal_id,
            store_id=event.store_id,
            status=event.action,
            business_date=event.timestamp.date(),
            first_seen=event.timestamp,
            last_event_id=event.id,
            last_timestamp=event.timestamp,
            event_ids=(),
            time_band=event.time_band,
        )
    updates = {
        name: getattr(event, name)
        for name in _CARRIED_FIELDS
        if getattr(event, name) is not None
    }
    if event.time_band != TimeBand.ALL:
        updates["time_band"] = event.time_band
    if event.action == DecisionAction.STARTED and state.started_at is None:
        updates["started_at"] = event.timestamp
    if event.action == DecisionAction.COMPLETED:
        updates["completed_at"] = event.timestamp
        updates["completed_event_id"] = event.id
    return replace(
        state,
        status=event.action,
        last_event_id=event.id,
        last_timestamp=event.timestamp,
        event_ids=state.event_ids + (event.id,),
        **updates,
    )


def fold_quests(log: EventLog) -> list[QuestState]:
    """Current state of every quest in the log, ordered by first appearance."""
    states: dict[str, QuestState] = {}
    for event in log.of_type(EventType.DECISION).chronological():
        states[event.proposal_id] = _apply(states.get(event.proposal_id), event)
    logger.debug("Folded %d quest chains", len(states))
    return sorted(states.values(), key=lambda q: (q.first_seen, q.proposal_id))


def quests_for_staff(quests: list[QuestState], staff: Staff) -> list[QuestState]:
    """Quests assigned to the staff member, by assignee or else by role distribution."""
    result = []
    for q in quests:
        if q.assignee_id is not None:
            if q.assignee_id == staff.id:
                result.append(q)
        elif q.distributed_to_roles and staff.role_id in q.distributed_to_roles:
            result.append(q)
    return result


def quest_time_band(quest: QuestState, refs: ReferenceData) -> TimeBand:
    """The quest's own band, else the band of the box template planning its task card."""
    if quest.time_band != TimeBand.ALL:
        return quest.time_band
    box = refs.box_for_task_card(quest.task_card_id)
    return box.time_band if box is not None else TimeBand.ALL


# ── Timing ───────────────────────────────────────────────────────────────────

def estimated_minutes(quest: QuestState, refs: ReferenceData) -> float | Unavailable:
    """Standard minutes of the originating task card, else the quest's own estimate."""
    card = refs.task_card(quest.task_card_id)
    if card is not None and card.standard_minutes > 0:
        return float(card.standard_minutes)
    if quest.estimated_minutes is not None and quest.estimated_minutes > 0:
        return float(quest.estimated_minutes)
    return not_tracked(f"no estimate for quest {quest.proposal_id}")


@dataclass(frozen=True)
class QuestTiming:
    quest: QuestState
    estimated: float | Unavailable
    actual: float | None
    overrun_minutes: float          # beyond the estimate, 0 when unknown
    minutes_past_deadline: float    # 0 when no deadline or met
    over_tolerance: bool
    missed_deadline: bool

    @property
    def is_late(self) -> bool:
        return self.over_tolerance or self.missed_deadline

    @property
    def delay_minutes(self) -> float:
        return max(self.overrun_minutes, self.minutes_past_deadline)


def quest_timing(quest: QuestState, refs: ReferenceData, tolerance: float = TIME_TOLERANCE) -> QuestTiming:
    est = estimated_minutes(quest, refs)
    actual = quest.elapsed_minutes
    overrun = 0.0
    over_tolerance = False
    if is_available(est) and actual is not None:
        overrun = max(0.0, actual - est)
        over_tolerance = actual > est * (1 + tolerance)

    past_deadline = 0.0
    if quest.deadline is not None and quest.completed_at is not None:
        past_deadline = max(0.0, (quest.completed_at - quest.deadline).total_seconds() / 60)

    return QuestTiming(
        quest=quest,
        estimated=est,
        actual=actual,
        overrun_minutes=overrun,
        minutes_past_deadline=past_deadline,
        over_tolerance=over_tolerance,
        missed_deadline=past_deadline > 0,
    )
