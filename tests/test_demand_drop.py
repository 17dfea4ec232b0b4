from datetime import date

import pytest

from kitchen_pulse import queries
from kitchen_pulse.config import DROP_ACTIONS, DROP_HYPOTHESES, DemandDropPolicy
from kitchen_pulse.models.demand_drop import DropSeverity, build_drop_alerts, detect_demand_drops
from kitchen_pulse.models.sales import sales_history

STEADY = [20] * 10


def drops_for(ev, refs, log_of, series, channel="dine-in", as_of=None):
    log = log_of(ev.daily_sales(series, channel=channel))
    return detect_demand_drops(sales_history(log, "store-1"), refs, as_of=as_of)


def test_sharp_drop_is_critical(ev, refs, log_of):
    [d] = drops_for(ev, refs, log_of, {"m-1": [10, 10, 10, 10, 2, 2, 2]})
    assert d.menu_id == "m-1"
    assert d.menu_name == "Katsu Curry"
    assert d.avg7_day == pytest.approx(46 / 7)
    assert d.avg3_day == pytest.approx(2.0)
    assert d.drop_rate == pytest.approx(1 - 2 / (46 / 7))
    assert d.absolute_drop == pytest.approx(46 / 7 - 2)
    assert d.severity == DropSeverity.CRITICAL
    assert [c for c, _ in d.affected_channels] == ["dine-in"]
    assert [t for t, _ in d.affected_time_bands] == ["lunch"]


def test_moderate_drop_is_warning(ev, refs, log_of):
    [d] = drops_for(ev, refs, log_of, {"m-1": [10, 10, 10, 10, 6, 6, 6]})
    assert d.severity == DropSeverity.WARNING


def test_small_drop_is_ignored(ev, refs, log_of):
    # 1 - 7 / (61 / 7) is just under 0.20
    assert drops_for(ev, refs, log_of, {"m-1": [10, 10, 10, 10, 7, 7, 7]}) == []


def test_drop_of_exactly_warning_cut_is_warning(ev, refs, log_of):
    # avg7 20, avg3 16
    [d] = drops_for(ev, refs, log_of, {"m-1": [23, 23, 23, 23, 16, 16, 16]})
    assert d.drop_rate == 0.20
    assert d.severity == DropSeverity.WARNING


def test_drop_of_exactly_critical_cut_is_critical(ev, refs, log_of):
    # avg7 20, avg3 13
    [d] = drops_for(ev, refs, log_of, {"m-1": [26, 25, 25, 25, 13, 13, 13]})
    assert d.drop_rate == 0.35
    assert d.severity == DropSeverity.CRITICAL


def test_long_average_of_exactly_min_volume_is_excluded(ev, refs, log_of):
    # avg7 exactly 3.0 with a one-third drop
    assert drops_for(ev, refs, log_of, {"m-1": [4, 4, 4, 3, 2, 2, 2]}) == []
    [d] = drops_for(ev, refs, log_of, {"m-1": [4, 4, 4, 4, 2, 2, 2]})
    assert d.avg7_day == pytest.approx(22 / 7)


def test_absolute_drop_below_minimum_is_excluded(ev, refs, log_of):
    # avg7 30/7, avg3 10/3: a 0.22 drop but only 0.95 units per day
    series = {"m-1": [5, 5, 5, 5, 4, 3, 3]}
    assert drops_for(ev, refs, log_of, series) == []

    history = sales_history(log_of(ev.daily_sales(series)), "store-1")
    [d] = detect_demand_drops(history, refs, policy=DemandDropPolicy(min_absolute_drop=0.9))
    assert d.absolute_drop == pytest.approx(30 / 7 - 10 / 3)
    assert d.severity == DropSeverity.WARNING


def test_steady_sales_are_not_flagged(ev, refs, log_of):
    assert drops_for(ev, refs, log_of, {"m-1": [5] * 7}) == []


def test_zero_long_average_is_excluded(ev, refs, log_of):
    series = {"m-1": STEADY, "m-2": [20, 20, 20, 0, 0, 0, 0, 0, 0, 0]}
    assert drops_for(ev, refs, log_of, series) == []


def test_low_volume_items_are_excluded(ev, refs, log_of):
    series = {"m-1": [5] * 7, "m-3": [4, 4, 4, 4, 1, 1, 1]}
    assert drops_for(ev, refs, log_of, series) == []


def test_short_history_is_excluded(ev, refs, log_of):
    assert drops_for(ev, refs, log_of, {"m-1": [10, 10, 10, 2, 2, 2]}) == []


def test_item_newer_than_the_long_window_is_excluded(ev, refs, log_of):
    series = {"m-1": STEADY, "m-2": [0, 0, 0, 0, 30, 30, 30, 30, 5, 5]}
    assert drops_for(ev, refs, log_of, series) == []


def test_window_counts_business_days_only(ev, refs, log_of):
    # a closed day (no sales at all) does not count toward the window
    series = {"m-1": [10, 10, 0, 10, 10, 10, 2, 2, 2], "m-3": [5, 5, 0, 5, 5, 5, 5, 5, 5]}
    [d] = drops_for(ev, refs, log_of, series)
    assert d.avg7_day == pytest.approx(46 / 7)


def test_as_of_limits_history(ev, refs, log_of):
    series = {"m-1": [10, 10, 10, 10, 10, 10, 10, 2, 2, 2]}
    assert drops_for(ev, refs, log_of, series, as_of=date(2024, 6, 9)) == []
    assert len(drops_for(ev, refs, log_of, series)) == 1


def test_sorted_by_drop_rate(ev, refs, log_of):
    series = {
        "m-1": [10, 10, 10, 10, 6, 6, 6],
        "m-2": [10, 10, 10, 10, 2, 2, 2],
        "m-3": [10, 10, 10, 10, 4, 4, 4],
    }
    drops = drops_for(ev, refs, log_of, series)
    assert [d.menu_id for d in drops] == ["m-2", "m-3", "m-1"]
    rates = [d.drop_rate for d in drops]
    assert rates == sorted(rates, reverse=True)


def test_channel_breakdown(ev, refs, log_of):
    events = ev.daily_sales({"m-1": [8, 8, 8, 8, 8, 8, 8]}, channel="dine-in")
    events += ev.daily_sales({"m-1": [8, 8, 8, 8, 0, 0, 0]}, channel="delivery")
    [d] = detect_demand_drops(sales_history(log_of(events), "store-1"), refs)
    assert [c for c, _ in d.affected_channels] == ["delivery"]
    assert d.affected_channels[0][1] == pytest.approx(1.0)


def test_alerts_cap_suggestions(ev, refs, log_of):
    [d] = drops_for(ev, refs, log_of, {"m-1": [10, 10, 10, 10, 2, 2, 2]})
    [alert] = build_drop_alerts([d])
    assert alert.id == "drop-m-1"
    assert [h.id for h in alert.hypotheses] == ["h-competitor", "h-seasonal", "h-quality"]
    assert [a.id for a in alert.actions] == ["a-menu-restrict", "a-quality-check"]


def test_alerts_for_delivery_drop(ev, refs, log_of):
    [d] = drops_for(ev, refs, log_of, {"m-1": [20, 20, 20, 20, 11, 11, 11]}, channel="delivery")
    assert d.severity == DropSeverity.WARNING
    [alert] = build_drop_alerts([d], limit=5)
    assert [h.id for h in alert.hypotheses] == ["h-competitor", "h-seasonal", "h-price", "h-delivery-issue"]
    assert [a.id for a in alert.actions] == ["a-prep-adjust", "a-channel-switch"]


def test_demand_drops_query(ev, refs, log_of):
    log = log_of(ev.daily_sales({"m-1": [10, 10, 10, 10, 2, 2, 2]}))
    drops = queries.demand_drops(log, refs, "store-1")
    assert [d.menu_id for d in drops] == ["m-1"]
    assert queries.demand_drops(log, refs, "store-2") == []


def test_alert_tables_are_immutable(ev, refs, log_of):
    assert isinstance(DROP_HYPOTHESES, tuple)
    assert isinstance(DROP_ACTIONS, tuple)
    [d] = drops_for(ev, refs, log_of, {"m-1": [10, 10, 10, 10, 2, 2, 2]})
    [alert] = build_drop_alerts([d], hypotheses=DROP_HYPOTHESES[:1], actions=())
    assert [h.id for h in alert.hypotheses] == ["h-competitor"]
    assert alert.actions == ()
