"""Immutable snapshot of the domain event log with filtering helpers."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Iterator

import pandas as pd

from kitchen_pulse.models.events import DomainEvent, EventType, TimeBand

logger = logging.getLogger(__name__)


def as_date(value: date | str | pd.Timestamp) -> date:
    """Normalize a business date given as date, ISO string or Timestamp."""
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


def business_date(event: DomainEvent) -> date:
    return event.timestamp.date()


class EventLog:
    """
    A consistent, read-only view of the log at call time.

    The store does not sort the log, so every temporal derivation goes through
    `chronological()`. Duplicate ids keep the later array position only.
    """

    def __init__(self, events: Iterable[DomainEvent]):
        items = list(events)
        last_position: dict[str, int] = {}
        for pos, event in enumerate(items):
            if event.id in last_position:
                logger.warning("Duplicate event id %s; later entry wins", event.id)
            last_position[event.id] = pos
        self._entries: tuple[tuple[int, DomainEvent], ...] = tuple(
            (pos, event) for pos, event in enumerate(items) if last_position[event.id] == pos
        )

    @classmethod
    def _from_entries(cls, entries: Iterable[tuple[int, DomainEvent]]) -> EventLog:
        log = cls.__new__(cls)
        log._entries = tuple(entries)
        return log

    def __iter__(self) -> Iterator[DomainEvent]:
        return (event for _, event in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def _filter(self, predicate) -> EventLog:
        return EventLog._from_entries(e for e in self._entries if predicate(e[1]))

    def for_store(self, store_id: str) -> EventLog:
        return self._filter(lambda e: e.store_id == store_id)

    def of_type(self, event_type: EventType) -> EventLog:
        return self._filter(lambda e: e.type == event_type)

    def on_date(self, day: date | str) -> EventLog:
        target = as_date(day)
        return self._filter(lambda e: business_date(e) == target)

    def between(self, start: date | str, end: date | str) -> EventLog:
        """Events whose business date falls in [start, end]."""
        lo, hi = as_date(start), as_date(end)
        return self._filter(lambda e: lo <= business_date(e) <= hi)

    def in_time_band(self, time_band: TimeBand) -> EventLog:
        if time_band == TimeBand.ALL:
            return self
        return self._filter(lambda e: e.time_band == time_band)

    def until(self, as_of: pd.Timestamp | None) -> EventLog:
        """Events recorded at or before `as_of` (all events when None)."""
        if as_of is None:
            return self
        return self._filter(lambda e: e.timestamp <= as_of)

    def chronological(self) -> list[DomainEvent]:
        """Stable order: timestamp, then array position."""
        return [event for _, event in sorted(self._entries, key=lambda e: (e[1].timestamp, e[0]))]

    def business_dates(self) -> list[date]:
        return sorted({business_date(e) for e in self})
