"""Domain events (append-only log variants) and reference entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import ClassVar, Union

import pandas as pd


class EventType(str, Enum):
    SALES = "sales"
    FORECAST = "forecast"
    PREP = "prep"
    DELIVERY = "delivery"
    LABOR = "labor"
    DECISION = "decision"


class TimeBand(str, Enum):
    ALL = "all"
    LUNCH = "lunch"
    IDLE = "idle"
    DINNER = "dinner"


class LaborAction(str, Enum):
    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"
    BREAK_START = "break-start"
    BREAK_END = "break-end"


class DecisionAction(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    STARTED = "started"
    PAUSED = "paused"
    COMPLETED = "completed"


class QualityStatus(str, Enum):
    OK = "ok"
    NG = "ng"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PrepStatus(str, Enum):
    PLANNED = "planned"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeliveryStatus(str, Enum):
    SCHEDULED = "scheduled"
    DELAYED = "delayed"
    ARRIVED = "arrived"
    CANCELLED = "cancelled"


# ── Event variants ───────────────────────────────────────────────────────────
# Every variant starts with (id, store_id, timestamp) and ends with time_band.

@dataclass(frozen=True)
class SalesEvent:
    id: str
    store_id: str
    timestamp: pd.Timestamp
    menu_id: str
    quantity: int
    unit_price: float
    total: float
    channel: str = "dine-in"
    time_band: TimeBand = TimeBand.ALL
    type: ClassVar[EventType] = EventType.SALES


@dataclass(frozen=True)
class ForecastEvent:
    id: str
    store_id: str
    timestamp: pd.Timestamp
    date: date
    forecast_customers: int
    avg_spend: float
    forecast_sales: float
    time_band: TimeBand = TimeBand.ALL
    type: ClassVar[EventType] = EventType.FORECAST


@dataclass(frozen=True)
class PrepEvent:
    id: str
    store_id: str
    timestamp: pd.Timestamp
    prep_item_id: str
    quantity: int
    status: PrepStatus
    assigned_staff_id: str | None = None
    decision_id: str | None = None
    time_band: TimeBand = TimeBand.ALL
    type: ClassVar[EventType] = EventType.PREP


@dataclass(frozen=True)
class DeliveryEvent:
    id: str
    store_id: str
    timestamp: pd.Timestamp
    supplier_id: str
    item_name: str
    expected_at: pd.Timestamp
    status: DeliveryStatus
    actual_at: pd.Timestamp | None = None
    delay_minutes: int | None = None
    time_band: TimeBand = TimeBand.ALL
    type: ClassVar[EventType] = EventType.DELIVERY


@dataclass(frozen=True)
class LaborEvent:
    id: str
    store_id: str
    timestamp: pd.Timestamp
    staff_id: str
    action: LaborAction
    time_band: TimeBand = TimeBand.ALL
    type: ClassVar[EventType] = EventType.LABOR


@dataclass(frozen=True)
class DecisionEvent:
    """One step of a quest chain; steps share `proposal_id`.

    Optional fields left as None carry the previous step's value forward.
    """
    id: str
    store_id: str
    timestamp: pd.Timestamp
    proposal_id: str
    action: DecisionAction
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
    time_band: TimeBand = TimeBand.ALL
    type: ClassVar[EventType] = EventType.DECISION


DomainEvent = Union[SalesEvent, ForecastEvent, PrepEvent, DeliveryEvent, LaborEvent, DecisionEvent]

EVENT_CLASSES: dict[EventType, type] = {
    EventType.SALES: SalesEvent,
    EventType.FORECAST: ForecastEvent,
    EventType.PREP: PrepEvent,
    EventType.DELIVERY: DeliveryEvent,
    EventType.LABOR: LaborEvent,
    EventType.DECISION: DecisionEvent,
}


# ── Reference entities ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Staff:
    id: str
    store_id: str
    star_level: int
    role_id: str
    name: str = ""
    wage: float = 0.0   # hourly

    def __post_init__(self) -> None:
        if self.star_level not in (1, 2, 3):
            raise ValueError(f"star_level must be 1, 2 or 3 (got {self.star_level})")

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class TaskCard:
    id: str
    category_id: str
    name: str
    role: str
    star_requirement: int
    standard_minutes: float
    xp_reward: int
    enabled: bool = True


@dataclass(frozen=True)
class BoxTemplate:
    """A named bundle of task cards planned together for a time band."""
    id: str
    name: str
    time_band: TimeBand
    task_card_ids: tuple[str, ...] = ()
    enabled: bool = True


@dataclass(frozen=True)
class Menu:
    id: str
    name: str
    price: float = 0.0
    category: str = ""


@dataclass(frozen=True)
class ReferenceData:
    """Slowly-changing reference entities, read-only for the projections."""
    staff: tuple[Staff, ...] = ()
    task_cards: tuple[TaskCard, ...] = ()
    box_templates: tuple[BoxTemplate, ...] = ()
    menus: tuple[Menu, ...] = ()
    _staff_by_id: dict[str, Staff] = field(init=False, repr=False, compare=False)
    _cards_by_id: dict[str, TaskCard] = field(init=False, repr=False, compare=False)
    _menus_by_id: dict[str, Menu] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_staff_by_id", {s.id: s for s in self.staff})
        object.__setattr__(self, "_cards_by_id", {c.id: c for c in self.task_cards})
        object.__setattr__(self, "_menus_by_id", {m.id: m for m in self.menus})

    def staff_member(self, staff_id: str) -> Staff | None:
        return self._staff_by_id.get(staff_id)

    def task_card(self, task_card_id: str | None) -> TaskCard | None:
        if task_card_id is None:
            return None
        return self._cards_by_id.get(task_card_id)

    def menu_name(self, menu_id: str) -> str:
        menu = self._menus_by_id.get(menu_id)
        return menu.name if menu else menu_id

    def store_staff(self, store_id: str) -> list[Staff]:
        return sorted((s for s in self.staff if s.store_id == store_id), key=lambda s: s.id)

    def box_for_task_card(self, task_card_id: str | None) -> BoxTemplate | None:
        """First enabled box template (by id) containing the task card."""
        if task_card_id is None:
            return None
        for box in sorted(self.box_templates, key=lambda b: b.id):
            if box.enabled and task_card_id in box.task_card_ids:
                return box
        return None
