from datetime import date, timedelta

import pandas as pd
import pytest

from kitchen_pulse.data.event_log import EventLog
from kitchen_pulse.models.events import (
    DecisionAction, DecisionEvent, ForecastEvent, LaborAction, LaborEvent, Menu,
    ReferenceData, SalesEvent, Staff, TaskCard, TimeBand,
)

STORE = "store-1"
MONDAY = date(2024, 6, 3)


def ts(value) -> pd.Timestamp:
    return pd.Timestamp(value)


class EventFactory:
    """Builds events with sequential ids for one store."""

    def __init__(self, store_id: str = STORE):
        self.store_id = store_id
        self._n = 0

    def _id(self, prefix: str) -> str:
        self._n += 1
        return f"{prefix}-{self._n:04d}"

    def labor(self, staff_id, action, at):
        return LaborEvent(self._id("lab"), self.store_id, ts(at), staff_id, LaborAction(action))

    def shift(self, staff_id, start, hours, breaks=()):
        """check-in at `start`, breaks as (hours after start, minutes), check-out after `hours`."""
        start = ts(start)
        events = [self.labor(staff_id, "check-in", start)]
        for offset, minutes in breaks:
            b = start + pd.Timedelta(hours=offset)
            events.append(self.labor(staff_id, "break-start", b))
            events.append(self.labor(staff_id, "break-end", b + pd.Timedelta(minutes=minutes)))
        events.append(self.labor(staff_id, "check-out", start + pd.Timedelta(hours=hours)))
        return events

    def decision(self, proposal_id, action, at, **fields):
        return DecisionEvent(self._id("dec"), self.store_id, ts(at), proposal_id, DecisionAction(action), **fields)

    def quest(self, proposal_id, assignee_id, start, minutes=None, task_card_id=None, **fields):
        """approved -> started -> completed (when `minutes` is given) chain."""
        start = ts(start)
        events = [
            self.decision(proposal_id, "approved", start - pd.Timedelta(minutes=5),
                          assignee_id=assignee_id, task_card_id=task_card_id, title=proposal_id, **fields),
            self.decision(proposal_id, "started", start),
        ]
        if minutes is not None:
            events.append(self.decision(proposal_id, "completed", start + pd.Timedelta(minutes=minutes),
                                        actual_minutes=float(minutes)))
        return events

    def sale(self, menu_id, day, qty, channel="dine-in", time_band=TimeBand.LUNCH, price=100.0, hour=12):
        return SalesEvent(
            self._id("sale"), self.store_id, ts(day) + pd.Timedelta(hours=hour),
            menu_id, qty, price, qty * price, channel, time_band,
        )

    def forecast(self, day, sales, customers=100, time_band=TimeBand.ALL, at=None):
        at = ts(at) if at is not None else ts(day) - pd.Timedelta(hours=6)
        return ForecastEvent(
            self._id("fc"), self.store_id, at, day, customers,
            sales / customers if customers else 0.0, sales, time_band,
        )

    def daily_sales(self, series, start=MONDAY, channel="dine-in"):
        """{menu_id: [qty per day, oldest first]} -> sales events; zero days emit nothing."""
        events = []
        for menu_id, quantities in series.items():
            for i, qty in enumerate(quantities):
                if qty:
                    events.append(self.sale(menu_id, start + timedelta(days=i), qty, channel=channel))
        return events


@pytest.fixture
def ev():
    return EventFactory()


@pytest.fixture
def refs():
    return ReferenceData(
        staff=(
            Staff("s-a", STORE, 3, "kitchen", "Aoki", 1500.0),
            Staff("s-b", STORE, 2, "kitchen", "Baba", 1200.0),
            Staff("s-c", STORE, 1, "floor", "Chiba", 1000.0),
            Staff("s-x", "store-2", 2, "kitchen", "Other", 1100.0),
        ),
        task_cards=(
            TaskCard("tc-15", "prep", "Cook rice", "kitchen", 1, 15, 10),
            TaskCard("tc-30", "prep", "Soup stock", "kitchen", 2, 30, 20),
        ),
        menus=(
            Menu("m-1", "Katsu Curry", 1200.0, "main"),
            Menu("m-2", "Shoyu Ramen", 950.0, "main"),
            Menu("m-3", "Gyoza", 450.0, "side"),
        ),
    )


def make_log(*groups) -> EventLog:
    events = []
    for g in groups:
        events.extend(g if isinstance(g, list) else [g])
    return EventLog(events)


@pytest.fixture
def log_of():
    return make_log
