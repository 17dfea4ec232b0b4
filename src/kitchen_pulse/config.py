"""Policy tables: guardrail brackets, grade cut points, scoring and detection thresholds."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ConfigurationError(ValueError):
    """Required policy data is missing or malformed."""


class DayType(str, Enum):
    WEEKDAY = "weekday"
    WEEKEND = "weekend"


# ── Labor guardrails ─────────────────────────────────────────────────────────
@dataclass(frozen=True)
class GuardrailBracket:
    """Labor-cost-to-sales policy for one sales tier of a day type."""
    low_sales: float
    high_sales: float
    good_rate: float     # at or below: good
    bad_rate: float      # strictly above: bad

    def __post_init__(self) -> None:
        if not 0 <= self.good_rate <= self.bad_rate:
            raise ConfigurationError(
                f"good_rate {self.good_rate} must not exceed bad_rate {self.bad_rate}"
            )


GUARDRAIL_POLICY: dict[DayType, tuple[GuardrailBracket, ...]] = {
    DayType.WEEKDAY: (
        GuardrailBracket(150_000, 200_000, good_rate=0.14, bad_rate=0.19),
        GuardrailBracket(200_000, 300_000, good_rate=0.12, bad_rate=0.18),
        GuardrailBracket(300_000, 400_000, good_rate=0.105, bad_rate=0.14),
        GuardrailBracket(400_000, 500_000, good_rate=0.096, bad_rate=0.12),
    ),
    DayType.WEEKEND: (
        GuardrailBracket(450_000, 600_000, good_rate=0.08, bad_rate=0.107),
        GuardrailBracket(600_000, 800_000, good_rate=0.07, bad_rate=0.093),
        GuardrailBracket(800_000, 1_000_000, good_rate=0.062, bad_rate=0.078),
        GuardrailBracket(1_000_000, 1_200_000, good_rate=0.057, bad_rate=0.068),
    ),
}

# ── Score policy ─────────────────────────────────────────────────────────────
TASK_COMPLETION_MAX = 40
TIME_VARIANCE_MAX = 25
BREAK_COMPLIANCE_MAX = 15
ZERO_OVERTIME_MAX = 20

# A completed quest is on time while actual <= estimate * (1 + tolerance)
TIME_TOLERANCE = 0.20
BREAK_INTERVAL_HOURS = 4.0          # one break expected per 4 hours of shift
PLANNED_SHIFT_HOURS = 8.0           # net hours before overtime starts
OVERTIME_POINTS_PER_BLOCK = 2       # per started block of overtime
OVERTIME_BLOCK_MINUTES = 30
DEDUCTION_DISPLAY_LIMIT = 5

# Daypart hours [start, end) on the business date; band-scoped scores clip work sessions to these
TIME_BAND_HOURS: dict[str, tuple[int, int]] = {
    "lunch": (11, 14),
    "idle": (14, 17),
    "dinner": (17, 22),
}

# Ordered high to low; first cut point the total reaches wins
GRADE_THRESHOLDS: tuple[tuple[str, int], ...] = (
    ("S", 90),
    ("A", 80),
    ("B", 70),
    ("C", 60),
)
GRADE_FLOOR = "D"

# Sub-score levels under which a bottleneck is reported
BOTTLENECK_CUTS = {
    "task": (32, "Low task completion", "Start with the highest-priority quests"),
    "time": (20, "Frequent overruns on quest time", "Work to the standard minutes of each task card"),
    "break": (12, "Breaks not taken as planned", "Protect scheduled break time"),
    "overtime": (16, "Overtime recorded", "Aim to clock out on schedule"),
}
TOP_PERFORMER_SCORE = 80
NEEDS_SUPPORT_SCORE = 60


# ── Demand drop detection ────────────────────────────────────────────────────
@dataclass(frozen=True)
class DemandDropPolicy:
    short_window: int = 3
    long_window: int = 7
    warning_drop: float = 0.20
    critical_drop: float = 0.35
    min_daily_volume: float = 3.0      # long-window average must exceed this
    min_absolute_drop: float = 1.0     # units per day
    affected_cut: float = 0.10         # channel / time band drop to be listed

    def __post_init__(self) -> None:
        if not 0 < self.short_window < self.long_window:
            raise ConfigurationError("short_window must be positive and below long_window")
        if not 0 < self.warning_drop <= self.critical_drop <= 1:
            raise ConfigurationError("drop thresholds must satisfy 0 < warning <= critical <= 1")


DEMAND_DROP_POLICY = DemandDropPolicy()

# (id, minimum drop rate, channel condition, text, confidence)
# channel condition: None, or (channel, minimum channel drop rate)
DROP_HYPOTHESES: tuple[tuple, ...] = (
    ("h-competitor", 0.30, None, "A nearby competitor may have launched a new menu or promotion", "medium"),
    ("h-seasonal", 0.0, None, "Seasonal demand shift (weather change, end of a local event)", "medium"),
    ("h-quality", 0.0, ("dine-in", 0.25), "Guest dissatisfaction with quality or serving speed", "low"),
    ("h-price", 0.25, None, "Change in price sensitivity after a price change", "medium"),
    ("h-delivery-issue", 0.0, ("delivery", 0.30), "Lower ranking or delays on the delivery platform", "high"),
    ("h-social", 0.40, None, "Negative posts on social media or review sites", "low"),
)

# (id, minimum drop rate, minimum absolute drop, channel condition, text, proposal type, roles)
DROP_ACTIONS: tuple[tuple, ...] = (
    ("a-menu-restrict", 0.35, 0.0, None,
     "Temporarily restrict the menu to steer guests to other items", "menu-restriction", ("manager", "kitchen")),
    ("a-prep-adjust", 0.0, 5.0, None,
     "Reduce prep quantity to limit waste", "prep-amount-adjust", ("kitchen",)),
    ("a-quality-check", 0.0, 0.0, ("dine-in", 0.0),
     "Check cooking quality and serving operations", "quality-check", ("manager", "kitchen")),
    ("a-channel-switch", 0.0, 0.0, ("delivery", 0.25),
     "Focus promotion on channels other than delivery", "channel-switch", ("manager", "floor")),
)
MAX_DROP_SUGGESTIONS = 3

# ── Awards ───────────────────────────────────────────────────────────────────
TIME_MASTER_MIN_QUESTS = 3

# ── Weekly review ────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class WeeklyPolicy:
    low_score: float = 70
    chronic_delay_count: int = 3


WEEKLY_POLICY = WeeklyPolicy()

DAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
