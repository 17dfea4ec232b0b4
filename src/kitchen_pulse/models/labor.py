"""Fold labor (timeclock) events into work sessions and daily labor metrics."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date

import pandas as pd

from kitchen_pulse.config import BREAK_INTERVAL_HOURS, PLANNED_SHIFT_HOURS, TIME_BAND_HOURS
from kitchen_pulse.data.event_log import EventLog
from kitchen_pulse.models.events import EventType, LaborAction, LaborEvent, ReferenceData, TimeBand

logger = logging.getLogger(__name__)


@dataclass
class BreakPeriod:
    start: pd.Timestamp
    end: pd.Timestamp | None = None
    start_event_id: str = ""


@dataclass
class WorkSession:
    """One check-in to check-out span for a staff member."""
    staff_id: str
    check_in: LaborEvent
    check_out: LaborEvent | None = None
    breaks: list[BreakPeriod] = field(default_factory=list)
    last_seen: pd.Timestamp | None = None

    @property
    def business_date(self) -> date:
        return self.check_in.timestamp.date()

    @property
    def is_open(self) -> bool:
        return self.check_out is None

    @property
    def on_break(self) -> bool:
        return self.is_open and bool(self.breaks) and self.breaks[-1].end is None

    def end_time(self, as_of: pd.Timestamp | None = None) -> pd.Timestamp:
        """Check-out, else `as_of` for open sessions, else the last recorded event."""
        if self.check_out is not None:
            return self.check_out.timestamp
        if as_of is not None and as_of >= self.check_in.timestamp:
            return as_of
        return self.last_seen or self.check_in.timestamp

    def gross_minutes(self, as_of: pd.Timestamp | None = None) -> float:
        return max(0.0, (self.end_time(as_of) - self.check_in.timestamp).total_seconds() / 60)

    def break_minutes(self, as_of: pd.Timestamp | None = None) -> float:
        end = self.end_time(as_of)
        total = 0.0
        for b in self.breaks:
            b_end = b.end if b.end is not None else end
            if b_end > b.start:
                total += (b_end - b.start).total_seconds() / 60
        return total

    def net_minutes(self, as_of: pd.Timestamp | None = None) -> float:
        return max(0.0, self.gross_minutes(as_of) - self.break_minutes(as_of))

    @property
    def breaks_taken(self) -> int:
        return sum(1 for b in self.breaks if b.end is not None)

    def breaks_expected(self, as_of: pd.Timestamp | None = None,
                        interval_hours: float = BREAK_INTERVAL_HOURS) -> int:
        return math.floor(self.gross_minutes(as_of) / 60 / interval_hours)

    @property
    def closing_event(self) -> LaborEvent:
        return self.check_out or self.check_in


def fold_sessions(log: EventLog) -> list[WorkSession]:
    """
    Replay labor events in time order into sessions.

    Out-of-order actions (break without check-in, double check-in, ...) are
    ignored; they do not open or close anything.
    """
    open_sessions: dict[str, WorkSession] = {}
    sessions: list[WorkSession] = []

    for event in log.of_type(EventType.LABOR).chronological():
        session = open_sessions.get(event.staff_id)
        if session is not None:
            session.last_seen = event.timestamp

        if event.action == LaborAction.CHECK_IN:
            if session is not None:
                logger.warning("Ignoring check-in %s: %s already checked in", event.id, event.staff_id)
                continue
            session = WorkSession(staff_id=event.staff_id, check_in=event, last_seen=event.timestamp)
            open_sessions[event.staff_id] = session
            sessions.append(session)

        elif session is None:
            logger.warning("Ignoring %s %s: %s is not checked in", event.action.value, event.id, event.staff_id)

        elif event.action == LaborAction.CHECK_OUT:
            if session.on_break:
                session.breaks[-1].end = event.timestamp
            session.check_out = event
            del open_sessions[event.staff_id]

        elif event.action == LaborAction.BREAK_START:
            if session.on_break:
                logger.warning("Ignoring break-start %s: already on break", event.id)
                continue
            session.breaks.append(BreakPeriod(start=event.timestamp, start_event_id=event.id))

        elif event.action == LaborAction.BREAK_END:
            if not session.on_break:
                logger.warning("Ignoring break-end %s: no open break", event.id)
                continue
            session.breaks[-1].end = event.timestamp

    return sessions


def band_window(day: date, time_band: TimeBand) -> tuple[pd.Timestamp, pd.Timestamp]:
    start_hour, end_hour = TIME_BAND_HOURS[time_band.value]
    midnight = pd.Timestamp(day)
    return midnight + pd.Timedelta(hours=start_hour), midnight + pd.Timedelta(hours=end_hour)


def clip_session(
    session: WorkSession,
    lo: pd.Timestamp,
    hi: pd.Timestamp,
    as_of: pd.Timestamp | None = None,
) -> WorkSession | None:
    """
    The part of a session inside [lo, hi), or None when they do not overlap.

    Clipped bounds reuse the original labor event ids so deductions still link
    back to real events. Breaks are cut to the window; one left open stays open.
    """
    end = session.end_time(as_of)
    start = max(session.check_in.timestamp, lo)
    clipped_end = min(end, hi)
    if clipped_end <= start:
        return None

    check_out = session.check_out
    if end > hi:
        check_out = replace(session.closing_event, action=LaborAction.CHECK_OUT, timestamp=clipped_end)

    breaks = []
    for b in session.breaks:
        b_start = max(b.start, start)
        b_end = None if b.end is None else min(b.end, clipped_end)
        if b_start >= clipped_end or (b_end is not None and b_end <= b_start):
            continue
        breaks.append(BreakPeriod(start=b_start, end=b_end, start_event_id=b.start_event_id))

    return WorkSession(
        staff_id=session.staff_id,
        check_in=replace(session.check_in, timestamp=start),
        check_out=check_out,
        breaks=breaks,
        last_seen=clipped_end,
    )


def sessions_in_band(
    sessions: list[WorkSession],
    time_band: TimeBand,
    as_of: pd.Timestamp | None = None,
) -> list[WorkSession]:
    """Sessions clipped to the band's hours on their own business date."""
    if time_band == TimeBand.ALL:
        return list(sessions)
    clipped = []
    for s in sessions:
        part = clip_session(s, *band_window(s.business_date, time_band), as_of=as_of)
        if part is not None:
            clipped.append(part)
    return clipped


def group_by_staff_day(sessions: list[WorkSession]) -> dict[tuple[str, date], list[WorkSession]]:
    """Sessions keyed by (staff_id, business date); planned hours apply per key."""
    groups: dict[tuple[str, date], list[WorkSession]] = {}
    for s in sessions:
        groups.setdefault((s.staff_id, s.business_date), []).append(s)
    return groups


def staff_day_overtime(sessions: list[WorkSession], as_of: pd.Timestamp | None = None,
                       planned_hours: float = PLANNED_SHIFT_HOURS) -> int:
    """Net minutes beyond the planned shift, summed over staff-days."""
    total = 0
    for group in group_by_staff_day(sessions).values():
        net = sum(s.net_minutes(as_of) for s in group)
        total += max(0, round(net - planned_hours * 60))
    return total


def labor_cost(session: WorkSession, refs: ReferenceData, as_of: pd.Timestamp | None = None) -> float:
    staff = refs.staff_member(session.staff_id)
    wage = staff.wage if staff is not None else 0.0
    return session.net_minutes(as_of) / 60 * wage


@dataclass(frozen=True)
class SkillMix:
    star3: int = 0
    star2: int = 0
    star1: int = 0

    @property
    def total(self) -> int:
        return self.star3 + self.star2 + self.star1

    def __add__(self, other: SkillMix) -> SkillMix:
        return SkillMix(self.star3 + other.star3, self.star2 + other.star2, self.star1 + other.star1)


def skill_mix(staff_ids: set[str], refs: ReferenceData) -> SkillMix:
    """Count each known staff member once by star level."""
    counts = {1: 0, 2: 0, 3: 0}
    for staff_id in staff_ids:
        staff = refs.staff_member(staff_id)
        if staff is not None:
            counts[staff.star_level] += 1
    return SkillMix(star3=counts[3], star2=counts[2], star1=counts[1])


@dataclass(frozen=True)
class LaborMetrics:
    active_staff_count: int
    on_break_count: int
    total_hours: float
    labor_cost: float
    overtime_minutes: int
    staff_ids: frozenset[str]
    skill_mix: SkillMix


def summarize_sessions(
    sessions: list[WorkSession],
    refs: ReferenceData,
    as_of: pd.Timestamp | None = None,
) -> LaborMetrics:
    """Aggregate sessions of known staff into one set of labor metrics."""
    known = [s for s in sessions if refs.staff_member(s.staff_id) is not None]
    staff_ids = {s.staff_id for s in known}
    return LaborMetrics(
        active_staff_count=sum(1 for s in known if s.is_open and not s.on_break),
        on_break_count=sum(1 for s in known if s.on_break),
        total_hours=sum(s.net_minutes(as_of) for s in known) / 60,
        labor_cost=sum(labor_cost(s, refs, as_of) for s in known),
        overtime_minutes=staff_day_overtime(known, as_of),
        staff_ids=frozenset(staff_ids),
        skill_mix=skill_mix(staff_ids, refs),
    )
