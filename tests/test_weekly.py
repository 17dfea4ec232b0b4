from datetime import date

import pytest

from kitchen_pulse import queries
from kitchen_pulse.models.availability import is_available
from kitchen_pulse.models.quests import fold_quests
from kitchen_pulse.models.weekly import WeakIssue, chronic_delays

MON = date(2024, 6, 3)


def three_working_days(ev):
    events = []
    # Mon: clean day with sales
    events += ev.shift("s-a", "2024-06-03 09:00", 9, breaks=[(4, 30), (6.5, 30)])
    events += ev.quest("mon", "s-a", "2024-06-03 10:00", minutes=10, task_card_id="tc-15")
    events.append(ev.sale("m-1", MON, 50, price=2000.0))
    # Tue: 10 h without breaks
    events += ev.shift("s-a", "2024-06-04 08:00", 10)
    # Wed: one late quest
    events += ev.shift("s-b", "2024-06-05 09:00", 8, breaks=[(4, 30), (6, 30)])
    events += ev.quest("wed", "s-b", "2024-06-05 10:00", minutes=40, task_card_id="tc-15")
    return events


def test_daily_rows(ev, refs, log_of):
    week = queries.weekly_labor_metrics(log_of(three_working_days(ev)), refs, "store-1", MON)
    assert week.week_end == date(2024, 6, 9)
    assert [r.day_label for r in week.daily] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    assert [r.day_score for r in week.daily[:3]] == [100, 77, 35]
    assert not any(is_available(r.day_score) for r in week.daily[3:])

    mon, tue, wed = week.daily[:3]
    assert mon.sales == 100_000
    assert mon.labor_cost == 12_000
    assert mon.labor_rate == pytest.approx(0.12)
    assert mon.sales_per_labor_cost == pytest.approx(100_000 / 12_000)
    assert not is_available(tue.sales)
    assert not is_available(tue.labor_rate)
    assert tue.overtime_minutes == 120
    assert wed.quest_delay_count == 1
    assert wed.skill_mix.star2 == 1


def test_summary_skips_unavailable_days(ev, refs, log_of):
    week = queries.weekly_labor_metrics(log_of(three_working_days(ev)), refs, "store-1", MON)
    s = week.summary
    assert s.avg_day_score == pytest.approx((100 + 77 + 35) / 3)
    assert s.total_sales == 100_000
    assert s.avg_labor_rate == pytest.approx(0.12)
    assert s.total_labor_cost == 12_000 + 10 * 1500 + 7 * 1200
    assert s.total_overtime_minutes == 120
    assert s.total_quest_delays == 1
    assert s.staff_count_total == 2
    assert (s.star_mix_total.star3, s.star_mix_total.star2) == (1, 1)


def test_highlights(ev, refs, log_of):
    week = queries.weekly_labor_metrics(log_of(three_working_days(ev)), refs, "store-1", MON)
    h = week.highlights
    assert h.winning_mix.date == MON
    assert h.winning_mix.day_score == 100
    issues = [(w.day_label, w.issue) for w in h.weak_spots]
    assert issues == [
        ("Tue", WeakIssue.OVERTIME),
        ("Wed", WeakIssue.LOW_SCORE),
        ("Wed", WeakIssue.QUEST_DELAY),
    ]
    assert h.chronic_delay_quests == ()


def test_winning_mix_tie_goes_to_earliest_day(ev, refs, log_of):
    events = ev.quest("thu", "s-a", "2024-06-06 10:00", minutes=10, task_card_id="tc-15")
    events += ev.quest("tue", "s-a", "2024-06-04 10:00", minutes=10, task_card_id="tc-15")
    week = queries.weekly_labor_metrics(log_of(events), refs, "store-1", MON)
    assert week.highlights.winning_mix.date == date(2024, 6, 4)


def test_empty_week(refs, log_of):
    week = queries.weekly_labor_metrics(log_of([]), refs, "store-1", MON)
    assert not is_available(week.summary.avg_day_score)
    assert not is_available(week.summary.avg_labor_rate)
    assert not is_available(week.highlights.winning_mix)
    assert week.highlights.weak_spots == ()
    assert len(week.to_frame()) == 7


def test_chronic_delays_need_three_occurrences(ev, refs, log_of):
    events = []
    for day in (3, 4, 5):
        events += ev.quest(f"rice-{day}", "s-a", f"2024-06-0{day} 10:00", minutes=25, task_card_id="tc-15")
    for day in (3, 4):
        events += ev.quest(f"stock-{day}", "s-b", f"2024-06-0{day} 10:00", minutes=50, task_card_id="tc-30")
    quests = fold_quests(log_of(events))

    [chronic] = chronic_delays(quests, refs, min_occurrences=3)
    assert chronic.key == "tc-15"
    assert chronic.occurrences == 3
    assert chronic.avg_delay_minutes == pytest.approx(10)
    assert len(chronic_delays(quests, refs, min_occurrences=2)) == 2

    week = queries.weekly_labor_metrics(log_of(events), refs, "store-1", MON)
    assert [c.key for c in week.highlights.chronic_delay_quests] == ["tc-15"]


def test_week_of():
    assert queries.week_of("2024-06-06") == MON
    assert queries.week_of(MON) == MON
