"""Parse camelCase event-log and reference-data records into typed events and entities."""

from __future__ import annotations

import json
import logging
from dataclasses import MISSING, fields
from enum import Enum
from pathlib import Path
from typing import Any

import pandas as pd

from kitchen_pulse.data.event_log import EventLog, as_date
from kitchen_pulse.models.events import (
    EVENT_CLASSES, BoxTemplate, DecisionAction, DeliveryStatus, EventType, LaborAction,
    Menu, PrepStatus, Priority, QualityStatus, ReferenceData, Staff, TaskCard, TimeBand,
)

logger = logging.getLogger(__name__)

_TIMESTAMP_FIELDS = {"timestamp", "deadline", "expected_at", "actual_at"}
_ENUM_FIELDS: dict[str, type[Enum]] = {
    "time_band": TimeBand,
    "quality_status": QualityStatus,
    "priority": Priority,
}
_ACTION_ENUMS = {EventType.LABOR: LaborAction, EventType.DECISION: DecisionAction}
_STATUS_ENUMS = {EventType.PREP: PrepStatus, EventType.DELIVERY: DeliveryStatus}
_TUPLE_FIELDS = {"distributed_to_roles", "task_card_ids"}


def camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_timestamp(value: Any) -> pd.Timestamp:
    """Parse an ISO instant; offsets are dropped, keeping the wall-clock time as written."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


def _coerce(name: str, value: Any, event_type: EventType | None) -> Any:
    if value is None:
        return None
    if name in _TIMESTAMP_FIELDS:
        return to_timestamp(value)
    if name == "date":
        return as_date(value)
    if name == "action" and event_type in _ACTION_ENUMS:
        return _ACTION_ENUMS[event_type](value)
    if name == "status" and event_type in _STATUS_ENUMS:
        return _STATUS_ENUMS[event_type](value)
    enum_cls = _ENUM_FIELDS.get(name)
    if enum_cls is not None:
        return enum_cls(value)
    if name in _TUPLE_FIELDS:
        return tuple(value)
    return value


def _build(cls: type, record: dict, event_type: EventType | None = None, what: str = "record"):
    kwargs = {}
    for f in fields(cls):
        if not f.init:
            continue
        key = camel(f.name)
        if key in record:
            raw = record[key]
        elif f.name in record:
            raw = record[f.name]
        elif f.default is MISSING and f.default_factory is MISSING:
            raise ValueError(f"{what} {record.get('id', '?')!r} is missing required field {key!r}")
        else:
            continue
        try:
            kwargs[f.name] = _coerce(f.name, raw, event_type)
        except ValueError as e:
            raise ValueError(f"{what} {record.get('id', '?')!r}: bad value for {key!r}: {e}") from e
    return cls(**kwargs)


def parse_event(record: dict):
    """One event record (camelCase keys, `type` discriminator) to its typed event."""
    try:
        event_type = EventType(record.get("type"))
    except ValueError:
        raise ValueError(f"event {record.get('id', '?')!r} has unknown type {record.get('type')!r}") from None
    return _build(EVENT_CLASSES[event_type], record, event_type, what=f"{event_type.value} event")


def parse_events(records: list[dict]) -> EventLog:
    events = [parse_event(r) for r in records]
    logger.info("Parsed %d events", len(events))
    return EventLog(events)


def parse_reference(payload: dict) -> ReferenceData:
    """Reference entities from a payload with `staff`, `taskCards`, `boxTemplates`, `menus` lists."""
    return ReferenceData(
        staff=tuple(_build(Staff, r, what="staff") for r in payload.get("staff", [])),
        task_cards=tuple(_build(TaskCard, r, what="task card") for r in payload.get("taskCards", [])),
        box_templates=tuple(_build(BoxTemplate, r, what="box template") for r in payload.get("boxTemplates", [])),
        menus=tuple(_build(Menu, r, what="menu") for r in payload.get("menus", [])),
    )


def load_snapshot(path: str | Path) -> tuple[EventLog, ReferenceData]:
    """Read a JSON snapshot holding `events` plus reference-data lists."""
    with open(path) as f:
        payload = json.load(f)
    return parse_events(payload.get("events", [])), parse_reference(payload)
