"""Explicit "no value" tag for metrics that cannot be computed."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class UnavailableKind(str, Enum):
    INSUFFICIENT_DATA = "insufficient-data"
    NOT_TRACKED = "not-tracked"
    DEGENERATE = "degenerate"


@dataclass(frozen=True)
class Unavailable:
    """Stands in for a metric value; never coerce to 0."""
    kind: UnavailableKind
    reason: str

    def __str__(self) -> str:
        return "--"


def is_available(value: object) -> bool:
    return not isinstance(value, Unavailable)


def not_tracked(reason: str) -> Unavailable:
    return Unavailable(UnavailableKind.NOT_TRACKED, reason)


def insufficient(reason: str) -> Unavailable:
    return Unavailable(UnavailableKind.INSUFFICIENT_DATA, reason)


def degenerate(reason: str) -> Unavailable:
    return Unavailable(UnavailableKind.DEGENERATE, reason)
