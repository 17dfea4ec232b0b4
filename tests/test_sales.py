from datetime import date

import pandas as pd
import pytest

from kitchen_pulse import queries
from kitchen_pulse.models.availability import UnavailableKind, is_available
from kitchen_pulse.models.events import TimeBand
from kitchen_pulse.models.sales import forecast_for_date, menu_daily_quantities, sales_history

DAY = date(2024, 6, 3)


def test_latest_forecast_wins(ev, log_of):
    log = log_of(
        ev.forecast(DAY, 300_000, at="2024-06-02 18:00"),
        ev.forecast(DAY, 200_000, at="2024-06-01 18:00"),
    )
    assert forecast_for_date(log, "store-1", DAY).forecast_sales == 300_000


def test_whole_day_forecast_sums_bands(ev, log_of):
    log = log_of(
        ev.forecast(DAY, 120_000, customers=100, time_band=TimeBand.LUNCH),
        ev.forecast(DAY, 80_000, customers=60, time_band=TimeBand.DINNER),
    )
    cell = forecast_for_date(log, "store-1", DAY)
    assert cell.forecast_sales == 200_000
    assert cell.forecast_customers == 160
    assert cell.avg_spend == pytest.approx(1250)
    assert forecast_for_date(log, "store-1", DAY, TimeBand.DINNER).forecast_sales == 80_000
    assert forecast_for_date(log, "store-1", DAY, TimeBand.IDLE) is None
    assert forecast_for_date(log, "store-1", date(2024, 6, 4)) is None


def test_achievement_rate(ev, log_of):
    log = log_of(
        ev.forecast(DAY, 200_000),
        ev.sale("m-1", DAY, 30, price=1000.0),
        ev.sale("m-2", DAY, 20, price=500.0, time_band=TimeBand.DINNER, hour=19),
    )
    m = queries.daily_sales_metrics(log, "store-1", DAY)
    assert m.actual_sales == 40_000
    assert m.actual_customers == 50
    assert m.achievement_rate == pytest.approx(20.0)

    lunch = queries.daily_sales_metrics(log, "store-1", DAY, TimeBand.LUNCH)
    assert lunch.actual_sales == 30_000
    assert lunch.forecast_sales.kind == UnavailableKind.NOT_TRACKED

    early = queries.daily_sales_metrics(log, "store-1", DAY, as_of=pd.Timestamp("2024-06-03 13:00"))
    assert early.actual_sales == 30_000


def test_zero_forecast_is_degenerate(ev, log_of):
    log = log_of(ev.forecast(DAY, 0, customers=0), ev.sale("m-1", DAY, 1))
    m = queries.daily_sales_metrics(log, "store-1", DAY)
    assert m.forecast_sales == 0
    assert not is_available(m.achievement_rate)
    assert m.achievement_rate.kind == UnavailableKind.DEGENERATE


def test_sales_history_and_pivot(ev, log_of):
    log = log_of(ev.daily_sales({"m-1": [3, 0, 5], "m-2": [1, 2, 0]}))
    history = sales_history(log, "store-1")
    assert list(history.columns) == ["business_date", "menu_id", "channel", "time_band", "quantity", "total"]
    assert len(history) == 4

    table = menu_daily_quantities(history)
    assert list(table.loc["m-1"]) == [3, 0, 5]
    assert list(table.loc["m-2"]) == [1, 2, 0]
    assert sales_history(log, "store-2").empty
