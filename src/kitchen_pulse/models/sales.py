"""Sales and forecast read-models: forecast table, daily sales metrics, menu sales history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import pandas as pd

from kitchen_pulse.data.event_log import EventLog, as_date
from kitchen_pulse.models.availability import Unavailable, degenerate, is_available, not_tracked
from kitchen_pulse.models.events import EventType, TimeBand

HISTORY_COLUMNS = ["business_date", "menu_id", "channel", "time_band", "quantity", "total"]


@dataclass(frozen=True)
class ForecastCell:
    date: date
    time_band: TimeBand
    forecast_customers: int
    avg_spend: float
    forecast_sales: float


def forecast_table(log: EventLog, store_id: str) -> dict[tuple[date, TimeBand], ForecastCell]:
    """Latest forecast per (target date, time band); later writes replace earlier ones."""
    table: dict[tuple[date, TimeBand], ForecastCell] = {}
    for event in log.for_store(store_id).of_type(EventType.FORECAST).chronological():
        target = as_date(event.date)
        table[(target, event.time_band)] = ForecastCell(
            date=target,
            time_band=event.time_band,
            forecast_customers=event.forecast_customers,
            avg_spend=event.avg_spend,
            forecast_sales=event.forecast_sales,
        )
    return table


def forecast_for_date(
    log: EventLog,
    store_id: str,
    day: date | str,
    time_band: TimeBand = TimeBand.ALL,
) -> ForecastCell | None:
    """
    Forecast for one date.

    For `TimeBand.ALL` a whole-day forecast is used when one was written;
    otherwise the per-band cells are summed.
    """
    target = as_date(day)
    table = forecast_table(log, store_id)
    if time_band != TimeBand.ALL or (target, TimeBand.ALL) in table:
        return table.get((target, time_band))

    cells = [cell for (d, _), cell in table.items() if d == target]
    if not cells:
        return None
    customers = sum(c.forecast_customers for c in cells)
    sales = sum(c.forecast_sales for c in cells)
    return ForecastCell(
        date=target,
        time_band=TimeBand.ALL,
        forecast_customers=customers,
        avg_spend=sales / customers if customers > 0 else 0.0,
        forecast_sales=sales,
    )


@dataclass(frozen=True)
class DailySalesMetrics:
    date: date
    time_band: TimeBand
    forecast_customers: int | Unavailable
    forecast_sales: float | Unavailable
    actual_customers: int
    actual_sales: float
    achievement_rate: float | Unavailable    # percent of forecast

    def __str__(self) -> str:
        rate = f"{self.achievement_rate:.0f}%" if is_available(self.achievement_rate) else "--"
        return f"{self.date} {self.time_band.value:<6} | sales {self.actual_sales:>10,.0f} | vs forecast {rate}"


def daily_sales(
    log: EventLog,
    store_id: str,
    day: date | str,
    time_band: TimeBand = TimeBand.ALL,
    as_of: pd.Timestamp | None = None,
) -> DailySalesMetrics:
    target = as_date(day)
    sales = log.for_store(store_id).of_type(EventType.SALES).on_date(target).in_time_band(time_band).until(as_of)
    actual_sales = float(sum(e.total for e in sales))
    actual_customers = int(sum(e.quantity for e in sales))

    forecast = forecast_for_date(log, store_id, target, time_band)
    if forecast is None:
        missing = not_tracked(f"no forecast for {target}")
        return DailySalesMetrics(target, time_band, missing, missing, actual_customers, actual_sales, missing)

    if forecast.forecast_sales > 0:
        achievement: float | Unavailable = actual_sales / forecast.forecast_sales * 100
    else:
        achievement = degenerate(f"forecast sales for {target} is 0")
    return DailySalesMetrics(
        date=target,
        time_band=time_band,
        forecast_customers=forecast.forecast_customers,
        forecast_sales=forecast.forecast_sales,
        actual_customers=actual_customers,
        actual_sales=actual_sales,
        achievement_rate=achievement,
    )


def sales_history(log: EventLog, store_id: str) -> pd.DataFrame:
    """
    Flat sales history for a store.

    Returns DataFrame with columns:
    business_date, menu_id, channel, time_band, quantity, total
    """
    rows = [
        {
            "business_date": e.timestamp.normalize(),
            "menu_id": e.menu_id,
            "channel": e.channel,
            "time_band": e.time_band.value,
            "quantity": e.quantity,
            "total": e.total,
        }
        for e in log.for_store(store_id).of_type(EventType.SALES)
    ]
    if not rows:
        return pd.DataFrame(columns=HISTORY_COLUMNS)
    return pd.DataFrame(rows, columns=HISTORY_COLUMNS)


def menu_daily_quantities(history: pd.DataFrame, days: list[pd.Timestamp] | None = None) -> pd.DataFrame:
    """
    Pivot history into a menu x business-day quantity table.

    Days on which the store sold something but a menu did not are 0.
    Columns are business days in ascending order.
    """
    if history.empty:
        return pd.DataFrame()
    pivot = history.pivot_table(
        index="menu_id", columns="business_date", values="quantity",
        aggfunc="sum", fill_value=0,
    )
    if days is not None:
        pivot = pivot.reindex(columns=days, fill_value=0)
    return pivot.sort_index(axis=1)
