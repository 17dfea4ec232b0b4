from dataclasses import replace
from datetime import date

import pytest

from kitchen_pulse.models.availability import UnavailableKind, is_available
from kitchen_pulse.models.events import BoxTemplate, TimeBand
from kitchen_pulse.models.labor import fold_sessions
from kitchen_pulse.models.quests import fold_quests
from kitchen_pulse.models.scoring import (
    CATEGORY_MAX, DeductionCategory, allocate_points, compute_score, grade_for,
    score_staff, score_team, star_rating,
)
from kitchen_pulse import queries

DAY = date(2024, 6, 3)


def one_late_quest_day(ev):
    """Five 15-minute quests, one finished in 35 minutes, and a 9 h shift with both breaks."""
    events = []
    for i, minutes in enumerate([15, 15, 15, 15, 35]):
        events += ev.quest(f"q{i}", "s-a", f"2024-06-03 {10 + i}:00", minutes=minutes, task_card_id="tc-15")
    events += ev.shift("s-a", "2024-06-03 09:00", 9, breaks=[(4, 30), (6.5, 30)])
    return events


def test_one_late_quest(ev, refs, log_of):
    log = log_of(one_late_quest_day(ev))
    result = queries.daily_score(log, refs, "store-1", "s-a", DAY)

    b = result.breakdown
    assert b.task_completion == 32
    assert b.time_variance == 20
    assert b.break_compliance == 15
    assert b.zero_overtime == 20
    assert result.total == 87
    assert result.grade == "A"
    assert result.stars == 5

    [late] = [q for q in fold_quests(log) if q.proposal_id == "q4"]
    time_deductions = [d for d in result.deductions if d.category == DeductionCategory.TIME]
    assert len(time_deductions) == 1
    assert time_deductions[0].event_ids == (late.completed_event_id,)
    assert time_deductions[0].points == 5
    assert [d.points for d in result.deductions] == [8, 5]
    assert result.stats.on_time_quests == 4


def test_deductions_account_for_every_lost_point(ev, refs, log_of):
    events = []
    events += ev.quest("done", "s-a", "2024-06-03 10:00", minutes=40, task_card_id="tc-15")
    events += ev.quest("open", "s-a", "2024-06-03 11:00", task_card_id="tc-30")
    events += ev.quest("late", "s-a", "2024-06-03 12:00", minutes=50, task_card_id="tc-30")
    events += ev.shift("s-a", "2024-06-03 08:00", 10.5, breaks=[(3, 20)])
    result = queries.daily_score(log_of(events), refs, "store-1", "s-a", DAY)

    for category, maximum in CATEGORY_MAX.items():
        lost = sum(d.points for d in result.deductions if d.category == category)
        assert lost == maximum - result.breakdown.value(category)
    assert result.total == sum(result.breakdown.value(c) for c in DeductionCategory)
    keys = [(-d.points, d.timestamp, d.id) for d in result.deductions]
    assert keys == sorted(keys)


@pytest.mark.parametrize("hours,breaks", [(4, []), (8, [(4, 30)]), (12, []), (14, [(4, 30), (8, 30)])])
def test_sub_scores_stay_in_bounds(ev, refs, log_of, hours, breaks):
    events = ev.shift("s-a", "2024-06-03 06:00", hours, breaks=breaks)
    for i in range(3):
        events += ev.quest(f"q{i}", "s-a", f"2024-06-03 1{i}:00", minutes=15 * (i + 1), task_card_id="tc-15")
    result = queries.daily_score(log_of(events), refs, "store-1", "s-a", DAY)
    for category, maximum in CATEGORY_MAX.items():
        assert 0 <= result.breakdown.value(category) <= maximum
    assert 0 <= result.total <= 100


def test_missed_breaks_and_overtime(ev, refs, log_of):
    log = log_of(ev.shift("s-a", "2024-06-03 08:00", 10))
    result = queries.daily_score(log, refs, "store-1", "s-a", DAY)
    assert result.breakdown.task_completion == 40
    assert result.breakdown.break_compliance == 0
    # 120 min over: 4 blocks of 30 min at 2 points each
    assert result.breakdown.zero_overtime == 12
    assert result.stats.overtime_minutes == 120
    overtime = [d for d in result.deductions if d.category == DeductionCategory.OVERTIME]
    assert [d.id for d in overtime] == ["overtime-s-a-2024-06-03"]
    assert overtime[0].points == 8


def test_overtime_points_are_capped(ev, refs, log_of):
    log = log_of(ev.shift("s-a", "2024-06-03 06:00", 16, breaks=[(4, 30), (8, 30), (12, 30)]))
    result = queries.daily_score(log, refs, "store-1", "s-a", DAY)
    assert result.breakdown.zero_overtime == 0


def test_team_score_is_not_an_average(ev, refs, log_of):
    events = ev.quest("qa", "s-a", "2024-06-03 10:00", task_card_id="tc-15")[:1]
    for i in range(3):
        events += ev.quest(f"qb{i}", "s-b", f"2024-06-03 1{i}:00", minutes=10, task_card_id="tc-15")
    team = queries.team_score(log_of(events), refs, "store-1", DAY)

    by_id = {ss.staff.id: ss.result for ss in team.staff_scores}
    assert by_id["s-a"].total == 60
    assert by_id["s-b"].total == 100
    assert not is_available(by_id["s-c"])
    assert team.team.breakdown.task_completion == 30
    assert team.team.total == 90
    assert team.team.total != (by_id["s-a"].total + by_id["s-b"].total) / 2
    assert [ss.staff.id for ss in team.top_performers] == ["s-b"]
    assert team.needs_support == ()


def test_not_tracked_without_activity(refs, log_of):
    result = queries.daily_score(log_of([]), refs, "store-1", "s-a", DAY)
    assert not is_available(result)
    assert result.kind == UnavailableKind.NOT_TRACKED


def test_unassigned_quests_do_not_count(ev, refs, log_of):
    log = log_of(ev.decision("q1", "pending", "2024-06-03 10:00", assignee_id="s-a"))
    result = queries.daily_score(log, refs, "store-1", "s-a", DAY)
    assert not is_available(result)


def test_unknown_staff_raises(refs, log_of):
    with pytest.raises(ValueError):
        queries.daily_score(log_of([]), refs, "store-1", "nobody", DAY)


def test_period_score_rejects_reversed_range(refs, log_of):
    with pytest.raises(ValueError):
        queries.period_score(log_of([]), refs, "store-1", "2024-06-05", "2024-06-03")


def test_period_score_spans_days(ev, refs, log_of):
    events = ev.quest("q1", "s-a", "2024-06-03 10:00", minutes=10, task_card_id="tc-15")
    events += ev.quest("q2", "s-a", "2024-06-04 10:00")
    result = queries.period_score(log_of(events), refs, "store-1", "2024-06-03", "2024-06-04", staff_id="s-a")
    assert result.stats.total_quests == 2
    assert result.breakdown.task_completion == 20


def test_compute_score_directly(ev, refs, log_of):
    log = log_of(one_late_quest_day(ev))
    quests, sessions = fold_quests(log), fold_sessions(log)
    direct = score_staff(quests, sessions, refs.staff_member("s-a"), refs, DAY, DAY)
    pooled = compute_score(quests, sessions, refs, DAY, DAY)
    assert direct.breakdown == pooled.breakdown
    assert score_team(quests, sessions, [], refs, DAY, DAY).staff_scores == ()


@pytest.mark.parametrize("total,grade", [
    (100, "S"), (90, "S"), (89, "A"), (80, "A"), (79, "B"), (70, "B"),
    (69, "C"), (60, "C"), (59, "D"), (0, "D"),
])
def test_grade_boundaries(total, grade):
    assert grade_for(total) == grade


def test_star_rating():
    assert [star_rating(t) for t in (0, 1, 20, 21, 80, 81, 100)] == [0, 1, 1, 2, 4, 5, 5]


def test_allocate_points_sums_exactly():
    assert allocate_points(5, [1, 1, 1]) == [2, 2, 1]
    assert sum(allocate_points(7, [0.2, 0.5, 0.3])) == 7
    assert allocate_points(0, [1, 2]) == [0, 0]
    assert allocate_points(4, [0, 0]) == [0, 0]
    assert allocate_points(3, []) == []


def test_band_score_clips_work_sessions(ev, refs, log_of):
    events = ev.quest("q-lunch", "s-a", "2024-06-03 12:00", minutes=10, task_card_id="tc-15",
                      time_band=TimeBand.LUNCH)
    events += ev.shift("s-a", "2024-06-03 09:00", 10)
    log = log_of(events)

    day = queries.daily_score(log, refs, "store-1", "s-a", DAY)
    assert (day.breakdown.break_compliance, day.breakdown.zero_overtime) == (0, 12)

    dinner = queries.daily_score(log, refs, "store-1", "s-a", DAY, time_band=TimeBand.DINNER)
    assert dinner.stats.total_quests == 0
    assert dinner.stats.actual_hours == 2.0
    assert dinner.stats.overtime_minutes == 0
    assert dinner.breakdown.break_compliance == 15
    assert dinner.breakdown.zero_overtime == 20

    lunch = queries.daily_score(log, refs, "store-1", "s-a", DAY, time_band=TimeBand.LUNCH)
    assert lunch.stats.total_quests == 1
    assert lunch.stats.actual_hours == 3.0
    assert lunch.total == 100


def test_band_without_activity_is_not_tracked(ev, refs, log_of):
    events = ev.quest("q-lunch", "s-b", "2024-06-03 12:00", minutes=10, task_card_id="tc-15",
                      time_band=TimeBand.LUNCH)
    events += ev.shift("s-b", "2024-06-03 09:00", 5)
    events += ev.shift("s-a", "2024-06-03 16:00", 5)
    log = log_of(events)

    result = queries.daily_score(log, refs, "store-1", "s-b", DAY, time_band=TimeBand.DINNER)
    assert not is_available(result)
    assert result.kind == UnavailableKind.NOT_TRACKED

    team = queries.team_score(log, refs, "store-1", DAY, time_band=TimeBand.DINNER)
    by_id = {ss.staff.id: ss.result for ss in team.staff_scores}
    assert is_available(by_id["s-a"])
    assert not is_available(by_id["s-b"])
    assert team.team.stats.actual_hours == 4.0


def test_band_of_unlabelled_quest_comes_from_its_box(ev, refs, log_of):
    refs = replace(refs, box_templates=(BoxTemplate("box-d", "Dinner prep", TimeBand.DINNER, ("tc-30",)),))
    events = ev.quest("q-stock", "s-a", "2024-06-03 17:30", minutes=30, task_card_id="tc-30")
    events += ev.quest("q-rice", "s-a", "2024-06-03 18:30", minutes=15, task_card_id="tc-15")
    log = log_of(events)

    dinner = queries.period_score(log, refs, "store-1", DAY, DAY, staff_id="s-a", time_band=TimeBand.DINNER)
    assert dinner.stats.total_quests == 1
    lunch = queries.period_score(log, refs, "store-1", DAY, DAY, staff_id="s-a", time_band=TimeBand.LUNCH)
    assert not is_available(lunch)
