from datetime import date

import pandas as pd

from kitchen_pulse.models.availability import UnavailableKind, is_available
from kitchen_pulse.models.events import DecisionAction, QualityStatus, Staff, TimeBand
from kitchen_pulse.models.quests import estimated_minutes, fold_quests, quest_timing, quests_for_staff


def test_fold_carries_fields_forward(ev, refs, log_of):
    log = log_of(ev.quest("q1", "s-a", "2024-06-03 10:00", minutes=12, task_card_id="tc-15",
                          time_band=TimeBand.LUNCH))
    [q] = fold_quests(log)
    assert q.status == DecisionAction.COMPLETED
    assert q.assignee_id == "s-a"
    assert q.task_card_id == "tc-15"
    assert q.title == "q1"
    assert q.time_band == TimeBand.LUNCH
    assert q.business_date == date(2024, 6, 3)
    assert q.started_at == pd.Timestamp("2024-06-03 10:00")
    assert q.elapsed_minutes == 12
    assert len(q.event_ids) == 3
    assert q.completed_event_id == q.event_ids[-1]


def test_fold_ignores_array_order(ev, log_of):
    events = ev.quest("q1", "s-a", "2024-06-03 10:00", minutes=20)
    [q] = fold_quests(log_of(list(reversed(events))))
    assert q.status == DecisionAction.COMPLETED


def test_reassignment_moves_quest(ev, refs, log_of):
    events = ev.quest("q1", "s-a", "2024-06-03 10:00")
    events.append(ev.decision("q1", "started", "2024-06-03 10:30", assignee_id="s-b"))
    quests = fold_quests(log_of(events))
    assert quests_for_staff(quests, refs.staff_member("s-a")) == []
    assert [q.proposal_id for q in quests_for_staff(quests, refs.staff_member("s-b"))] == ["q1"]


def test_role_distribution_without_assignee(ev, refs, log_of):
    log = log_of(ev.decision("q1", "approved", "2024-06-03 10:00", distributed_to_roles=("floor",)))
    quests = fold_quests(log)
    assert quests_for_staff(quests, refs.staff_member("s-c")) == quests
    assert quests_for_staff(quests, refs.staff_member("s-a")) == []


def test_pending_and_rejected_are_not_assigned(ev, log_of):
    log = log_of(
        ev.decision("q1", "pending", "2024-06-03 09:00", assignee_id="s-a"),
        ev.decision("q2", "approved", "2024-06-03 09:00", assignee_id="s-a"),
        ev.decision("q2", "rejected", "2024-06-03 09:10"),
    )
    assert [q.is_assigned for q in fold_quests(log)] == [False, False]


def test_estimate_prefers_task_card(ev, refs, log_of):
    log = log_of(
        ev.quest("q1", "s-a", "2024-06-03 10:00", minutes=10, task_card_id="tc-30", estimated_minutes=5.0),
        ev.quest("q2", "s-a", "2024-06-03 11:00", minutes=10, estimated_minutes=12.0),
        ev.quest("q3", "s-a", "2024-06-03 12:00", minutes=10),
    )
    q1, q2, q3 = fold_quests(log)
    assert estimated_minutes(q1, refs) == 30
    assert estimated_minutes(q2, refs) == 12
    missing = estimated_minutes(q3, refs)
    assert not is_available(missing)
    assert missing.kind == UnavailableKind.NOT_TRACKED


def test_timing_tolerance_and_deadline(ev, refs, log_of):
    log = log_of(
        ev.quest("on-edge", "s-a", "2024-06-03 10:00", minutes=18, task_card_id="tc-15"),
        ev.quest("over", "s-a", "2024-06-03 11:00", minutes=19, task_card_id="tc-15"),
        ev.quest("deadline", "s-a", "2024-06-03 12:00", minutes=10, task_card_id="tc-15",
                 deadline=pd.Timestamp("2024-06-03 12:05")),
    )
    on_edge, over, deadline = (quest_timing(q, refs) for q in fold_quests(log))
    assert not on_edge.is_late
    assert over.over_tolerance and over.is_late
    assert over.overrun_minutes == 4
    assert deadline.missed_deadline and not deadline.over_tolerance
    assert deadline.minutes_past_deadline == 5
    assert deadline.delay_minutes == 5


def test_quality_status_carried(ev, log_of):
    events = ev.quest("q1", "s-a", "2024-06-03 10:00", minutes=10)
    events.append(ev.decision("q1", "completed", "2024-06-03 10:20", quality_status=QualityStatus.NG))
    [q] = fold_quests(log_of(events))
    assert q.quality_status == QualityStatus.NG
    assert q.actual_minutes == 10
    assert q.completed_at == pd.Timestamp("2024-06-03 10:20")


def test_unknown_staff_gets_no_quests(ev, log_of):
    quests = fold_quests(log_of(ev.quest("q1", "s-a", "2024-06-03 10:00")))
    assert quests_for_staff(quests, Staff("s-z", "store-1", 1, "kitchen")) == []
