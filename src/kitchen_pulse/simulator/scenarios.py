"""Seeded sample store weeks for the demo CLI and smoke tests."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

import numpy as np
import pandas as pd

from kitchen_pulse.data.event_log import EventLog
from kitchen_pulse.models.events import (
    BoxTemplate, DecisionAction, DecisionEvent, ForecastEvent, LaborAction, LaborEvent,
    Menu, Priority, QualityStatus, ReferenceData, SalesEvent, Staff, TaskCard, TimeBand,
)

logger = logging.getLogger(__name__)

STORE_ID = "store-001"

STAFF = [
    # id, name, star level, role, hourly wage
    ("staff-01", "Aoki", 3, "kitchen", 1800),
    ("staff-02", "Baba", 2, "kitchen", 1400),
    ("staff-03", "Chiba", 1, "kitchen", 1150),
    ("staff-04", "Doi", 3, "floor", 1700),
    ("staff-05", "Endo", 2, "floor", 1300),
    ("staff-06", "Fujii", 1, "floor", 1100),
]

TASK_CARDS = [
    # id, category, name, role, star requirement, standard minutes, xp
    ("tc-rice", "prep", "Cook rice batch", "kitchen", 1, 15, 10),
    ("tc-stock", "prep", "Prepare soup stock", "kitchen", 2, 30, 20),
    ("tc-fry", "prep", "Par-fry cutlets", "kitchen", 2, 20, 15),
    ("tc-clean-hall", "cleaning", "Clean dining hall", "floor", 1, 20, 10),
    ("tc-setup", "service", "Set up tables", "floor", 1, 15, 10),
    ("tc-stocktake", "admin", "Count dry stock", "kitchen", 3, 25, 25),
]

MENUS = [
    # id, name, price, category, base daily quantity
    ("menu-katsu", "Katsu Curry", 1200, "main", 40),
    ("menu-ramen", "Shoyu Ramen", 950, "main", 55),
    ("menu-karaage", "Karaage Set", 1100, "main", 30),
    ("menu-gyoza", "Gyoza", 450, "side", 25),
    ("menu-salad", "Seasonal Salad", 600, "side", 8),
    ("menu-matcha", "Matcha Parfait", 700, "dessert", 2),
]

CHANNELS = {"dine-in": 0.7, "takeout": 0.2, "delivery": 0.1}
BANDS = {TimeBand.LUNCH: (11, 0.55), TimeBand.IDLE: (15, 0.1), TimeBand.DINNER: (18, 0.35)}


@dataclass
class SampleStore:
    """Event log plus reference data for one store over a sample period."""
    log: EventLog
    refs: ReferenceData
    store_id: str
    week_start: date
    as_of: pd.Timestamp


@dataclass
class Scenario:
    """A pre-configured sample store week."""
    name: str
    description: str
    seed: int = 7
    history_days: int = 14                     # days before the reviewed week
    drop_menu: str | None = None               # menu whose demand falls in the last 3 days
    drop_factor: float = 1.0
    overtime_minutes: int = 0                  # extra minutes for one closer per day
    late_probability: float = 0.1
    ng_probability: float = 0.05
    week_start: date = field(default_factory=lambda: date(2024, 6, 3))

    def build(self) -> SampleStore:
        return _generate(self)


def reference_data() -> ReferenceData:
    return ReferenceData(
        staff=tuple(Staff(i, STORE_ID, star, role, name, wage) for i, name, star, role, wage in STAFF),
        task_cards=tuple(TaskCard(*row) for row in TASK_CARDS),
        box_templates=(
            BoxTemplate("box-lunch-prep", "Lunch prep", TimeBand.LUNCH, ("tc-rice", "tc-fry", "tc-setup")),
            BoxTemplate("box-dinner-prep", "Dinner prep", TimeBand.DINNER, ("tc-stock", "tc-clean-hall")),
        ),
        menus=tuple(Menu(i, name, price, cat) for i, name, price, cat, _ in MENUS),
    )


def _generate(sc: Scenario) -> SampleStore:
    rng = np.random.default_rng(sc.seed)
    refs = reference_data()
    counter = itertools.count(1)
    events: list = []

    def next_id(prefix: str) -> str:
        return f"{prefix}-{next(counter):05d}"

    first_day = sc.week_start - timedelta(days=sc.history_days)
    last_day = sc.week_start + timedelta(days=6)
    n_days = (last_day - first_day).days + 1

    for offset in range(n_days):
        day = first_day + timedelta(days=offset)
        midnight = pd.Timestamp(day)
        weekend = day.weekday() >= 5
        dropping = offset >= n_days - 3

        # ── Forecast ─────────────────────────────────────────────────────
        for band, (hour, share) in BANDS.items():
            customers = int(round(320 * share * (1.3 if weekend else 1.0)))
            events.append(ForecastEvent(
                id=next_id("fc"), store_id=STORE_ID,
                timestamp=midnight - pd.Timedelta(hours=2),
                date=day, forecast_customers=customers, avg_spend=1050.0,
                forecast_sales=customers * 1050.0, time_band=band,
            ))

        # ── Sales ────────────────────────────────────────────────────────
        for menu_id, _, price, _, base in MENUS:
            factor = sc.drop_factor if (dropping and menu_id == sc.drop_menu) else 1.0
            for band, (hour, share) in BANDS.items():
                for channel, ch_share in CHANNELS.items():
                    qty = int(rng.poisson(base * share * ch_share * factor * (1.2 if weekend else 1.0)))
                    if qty == 0:
                        continue
                    ts = midnight + pd.Timedelta(hours=hour, minutes=int(rng.integers(0, 90)))
                    events.append(SalesEvent(
                        id=next_id("sale"), store_id=STORE_ID, timestamp=ts,
                        menu_id=menu_id, quantity=qty, unit_price=float(price),
                        total=float(qty * price), channel=channel, time_band=band,
                    ))

        # Labor and quests only for the reviewed week
        if day < sc.week_start:
            continue

        # ── Labor ────────────────────────────────────────────────────────
        on_shift = sorted(str(s) for s in rng.choice([s[0] for s in STAFF], size=4, replace=False))
        for i, staff_id in enumerate(on_shift):
            start = midnight + pd.Timedelta(hours=9 if i % 2 == 0 else 13)
            extra = sc.overtime_minutes if i == len(on_shift) - 1 else 0
            skip_break = rng.random() < 0.15
            marks = [(start, LaborAction.CHECK_IN)]
            for b in (4, 6.5):
                if b == 6.5 and skip_break:
                    continue
                b_start = start + pd.Timedelta(hours=b)
                marks.append((b_start, LaborAction.BREAK_START))
                marks.append((b_start + pd.Timedelta(minutes=30), LaborAction.BREAK_END))
            marks.append((start + pd.Timedelta(hours=9, minutes=extra), LaborAction.CHECK_OUT))
            for ts, action in marks:
                events.append(LaborEvent(id=next_id("lab"), store_id=STORE_ID, timestamp=ts,
                                         staff_id=staff_id, action=action))

            # ── Quests ───────────────────────────────────────────────────
            role = refs.staff_member(staff_id).role_id
            cards = [c for c in TASK_CARDS if c[3] == role]
            picks = rng.choice(len(cards), size=min(3, len(cards)), replace=False)
            cursor = start + pd.Timedelta(minutes=20)
            for k in sorted(picks):
                card_id, _, name, _, _, minutes, _ = cards[k]
                proposal = f"q-{day:%m%d}-{staff_id}-{card_id}"
                late = rng.random() < sc.late_probability
                duration = minutes * (1.6 if late else float(rng.uniform(0.8, 1.15)))
                quality = QualityStatus.NG if rng.random() < sc.ng_probability else QualityStatus.OK
                common = dict(store_id=STORE_ID, proposal_id=proposal)
                events.append(DecisionEvent(
                    id=next_id("dec"), timestamp=cursor - pd.Timedelta(minutes=10),
                    action=DecisionAction.APPROVED, title=name, assignee_id=staff_id,
                    task_card_id=card_id, estimated_minutes=float(minutes), priority=Priority.MEDIUM,
                    time_band=TimeBand.LUNCH if cursor.hour < 14 else TimeBand.DINNER, **common,
                ))
                events.append(DecisionEvent(id=next_id("dec"), timestamp=cursor,
                                            action=DecisionAction.STARTED, **common))
                done = cursor + pd.Timedelta(minutes=round(duration))
                events.append(DecisionEvent(
                    id=next_id("dec"), timestamp=done, action=DecisionAction.COMPLETED,
                    actual_minutes=float(round(duration)), quality_status=quality,
                    delay_reason="Short-handed" if late else None, **common,
                ))
                cursor = done + pd.Timedelta(minutes=15)

    # The store keeps its log in arrival order, not timestamp order
    order = rng.permutation(len(events))
    log = EventLog(events[i] for i in order)
    logger.info("Scenario %r: %d events over %d days", sc.name, len(events), n_days)
    return SampleStore(
        log=log,
        refs=refs,
        store_id=STORE_ID,
        week_start=sc.week_start,
        as_of=pd.Timestamp(last_day) + pd.Timedelta(hours=23, minutes=59),
    )


def get_scenarios() -> dict[str, Scenario]:
    """Return all pre-built sample scenarios."""
    return {
        "normal": Scenario(
            name="Normal Week",
            description="Steady demand, breaks mostly taken, occasional late quest.",
        ),
        "demand_drop": Scenario(
            name="Demand Drop",
            description="Karaage Set sales fall sharply over the last three days.",
            drop_menu="menu-karaage",
            drop_factor=0.35,
        ),
        "overtime_crunch": Scenario(
            name="Overtime Crunch",
            description="Closers stay late every day and quests run over.",
            overtime_minutes=75,
            late_probability=0.35,
            ng_probability=0.15,
        ),
    }
