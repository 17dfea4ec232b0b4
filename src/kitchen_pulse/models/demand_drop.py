"""Demand-drop detection: recent 3-day vs 7-day average sold quantity per menu item."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum

import pandas as pd

from kitchen_pulse.config import (
    DEMAND_DROP_POLICY, DROP_ACTIONS, DROP_HYPOTHESES, MAX_DROP_SUGGESTIONS, DemandDropPolicy,
)
from kitchen_pulse.models.events import ReferenceData
from kitchen_pulse.models.sales import menu_daily_quantities

logger = logging.getLogger(__name__)


class DropSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class DemandDropResult:
    """A menu item whose recent demand fell below its weekly average."""
    menu_id: str
    menu_name: str
    avg3_day: float
    avg7_day: float
    drop_rate: float          # 1 - avg3 / avg7
    absolute_drop: float      # avg7 - avg3, units per day
    severity: DropSeverity
    affected_channels: tuple[tuple[str, float], ...] = ()
    affected_time_bands: tuple[tuple[str, float], ...] = ()

    def __str__(self) -> str:
        channels = ", ".join(c for c, _ in self.affected_channels) or "-"
        return (
            f"[{self.severity.value.upper():8}] {self.menu_name:<20} | "
            f"3d {self.avg3_day:5.1f} vs 7d {self.avg7_day:5.1f} | "
            f"{-self.drop_rate:+6.0%} | {channels}"
        )


def _segment_drops(
    history: pd.DataFrame,
    column: str,
    recent_days: list[pd.Timestamp],
    long_days: list[pd.Timestamp],
    policy: DemandDropPolicy,
) -> tuple[tuple[str, float], ...]:
    """Per-segment drop rate (short vs long window average), listing those above the cut."""
    if history.empty:
        return ()
    by_day = history.pivot_table(index=column, columns="business_date", values="quantity",
                                 aggfunc="sum", fill_value=0)
    by_day = by_day.reindex(columns=long_days, fill_value=0)
    long_avg = by_day.sum(axis=1) / policy.long_window
    short_avg = by_day[recent_days].sum(axis=1) / policy.short_window

    drops = []
    for segment in by_day.index:
        if long_avg[segment] <= 0:
            continue
        rate = float(1 - short_avg[segment] / long_avg[segment])
        if rate > policy.affected_cut:
            drops.append((str(segment), rate))
    return tuple(sorted(drops, key=lambda d: (-d[1], d[0])))


def detect_demand_drops(
    history: pd.DataFrame,
    refs: ReferenceData,
    as_of: date | None = None,
    policy: DemandDropPolicy = DEMAND_DROP_POLICY,
) -> list[DemandDropResult]:
    """
    Flag menu items whose short-window average fell against the long window.

    `history` is the flat sales history of one store (see `models.sales.sales_history`).
    Windows count the store's business days (days with any sales) up to `as_of`;
    the long window includes the short one.
    """
    if history.empty:
        return []
    if as_of is not None:
        history = history[history["business_date"] <= pd.Timestamp(as_of)]

    days = sorted(history["business_date"].unique())
    if len(days) < policy.long_window:
        logger.debug("Demand drop: only %d business days of history", len(days))
        return []
    long_days = [pd.Timestamp(d) for d in days[-policy.long_window:]]
    recent_days = long_days[-policy.short_window:]

    quantities = menu_daily_quantities(history, [pd.Timestamp(d) for d in days])
    first_sold = history.groupby("menu_id")["business_date"].min()

    results = []
    for menu_id, row in quantities.iterrows():
        if first_sold[menu_id] > long_days[0]:
            logger.debug("Demand drop: %s has fewer than %d days of history", menu_id, policy.long_window)
            continue
        avg7 = float(row[long_days].mean())
        avg3 = float(row[recent_days].mean())
        if avg7 <= 0 or avg7 <= policy.min_daily_volume:
            continue

        absolute_drop = avg7 - avg3
        drop_rate = absolute_drop / avg7
        if absolute_drop < policy.min_absolute_drop:
            continue
        if drop_rate >= policy.critical_drop:
            severity = DropSeverity.CRITICAL
        elif drop_rate >= policy.warning_drop:
            severity = DropSeverity.WARNING
        else:
            continue

        item = history[history["menu_id"] == menu_id]
        results.append(DemandDropResult(
            menu_id=str(menu_id),
            menu_name=refs.menu_name(str(menu_id)),
            avg3_day=avg3,
            avg7_day=avg7,
            drop_rate=drop_rate,
            absolute_drop=absolute_drop,
            severity=severity,
            affected_channels=_segment_drops(item, "channel", recent_days, long_days, policy),
            affected_time_bands=_segment_drops(item, "time_band", recent_days, long_days, policy),
        ))

    results.sort(key=lambda r: (-r.drop_rate, r.menu_name, r.menu_id))
    logger.debug("Demand drop: %d of %d menu items flagged", len(results), len(quantities))
    return results


# ── Alerts ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Hypothesis:
    id: str
    text: str
    confidence: str


@dataclass(frozen=True)
class SuggestedAction:
    id: str
    text: str
    proposal_type: str
    target_roles: tuple[str, ...]


@dataclass(frozen=True)
class DropAlert:
    id: str
    drop: DemandDropResult
    title: str
    hypotheses: tuple[Hypothesis, ...]
    actions: tuple[SuggestedAction, ...]


def _channel_matches(drop: DemandDropResult, condition: tuple[str, float] | None) -> bool:
    if condition is None:
        return True
    channel, min_rate = condition
    return any(c == channel and rate > min_rate for c, rate in drop.affected_channels)


def build_drop_alerts(
    drops: list[DemandDropResult],
    hypotheses: tuple[tuple, ...] = DROP_HYPOTHESES,
    actions: tuple[tuple, ...] = DROP_ACTIONS,
    limit: int = MAX_DROP_SUGGESTIONS,
) -> list[DropAlert]:
    """Attach condition-matched hypotheses and recommended actions to each drop."""
    alerts = []
    for drop in drops:
        matched_h = [
            Hypothesis(h_id, text, confidence)
            for h_id, min_drop, channel_cond, text, confidence in hypotheses
            if drop.drop_rate > min_drop and _channel_matches(drop, channel_cond)
        ]
        matched_a = [
            SuggestedAction(a_id, text, proposal_type, tuple(roles))
            for a_id, min_drop, min_abs, channel_cond, text, proposal_type, roles in actions
            if drop.drop_rate > min_drop and drop.absolute_drop > min_abs and _channel_matches(drop, channel_cond)
        ]
        alerts.append(DropAlert(
            id=f"drop-{drop.menu_id}",
            drop=drop,
            title=f"Demand drop: {drop.menu_name} ({drop.drop_rate:.0%})",
            hypotheses=tuple(matched_h[:limit]),
            actions=tuple(matched_a[:limit]),
        ))
    return alerts
