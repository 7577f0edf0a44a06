"""Temporal policy: rolling windows, priming weights and decay constants.

Every window is measured backward from "now" and recomputed on each read.
There is no calendar-week semantics anywhere: a value never jumps at a
Monday boundary, it slides with the window.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

SECONDS_PER_DAY = 86_400

# ---------------------------------------------------------------------------
# Window buckets for game events (days, inclusive)
# ---------------------------------------------------------------------------

GAME_WINDOWS = {
    "STATE": 3,              # gating, sharpness, readiness
    "LOAD": 7,               # training capacity, SCI, RQ, weekly progress
    "DECAY_PREVENTION": 30,  # only keeps skill decay away
}

# ---------------------------------------------------------------------------
# Task priming (Reasoning Quality only)
# ---------------------------------------------------------------------------

TASK_PRIMING_WINDOW_DAYS = 7

# (max days ago, weight); first matching row wins, beyond the table -> 0
TASK_PRIMING_WEIGHTS: tuple[tuple[int, float], ...] = (
    (0, 1.0),
    (1, 0.9),
    (3, 0.7),
    (5, 0.4),
    (7, 0.2),
)

# ---------------------------------------------------------------------------
# Decay windows (days of inactivity before decay starts)
# ---------------------------------------------------------------------------

DECAY_WINDOWS = {
    "SKILL": 30,
    "RQ": 14,
    "SCI": 7,
    "COGNITIVE_AGE": 21,
}

# Skill decay (AE, RA, CT, IN)
SKILL_DECAY_THRESHOLD_DAYS = DECAY_WINDOWS["SKILL"]
SKILL_DECAY_INTERVAL_DAYS = 15
SKILL_DECAY_BASE_POINTS = 1
SKILL_DECAY_INTERVAL_POINTS = 1
SKILL_DECAY_MAX_POINTS = 3

# Recovery
LOW_RECOVERY_THRESHOLD = 40.0

# Readiness decay under sustained low recovery
READINESS_DECAY_TRIGGER_DAYS = 3
READINESS_DECAY_INITIAL_POINTS = 5
READINESS_DECAY_PER_DAY_POINTS = 2
READINESS_DECAY_MAX_WEEKLY = 15

# SCI decay
SCI_LOW_RECOVERY_DECAY = 5
SCI_NO_TRAINING_THRESHOLD_DAYS = DECAY_WINDOWS["SCI"]
SCI_NO_TRAINING_DECAY = 5
SCI_DECAY_MAX_WEEKLY = 10

# Dual-process imbalance decay
DUAL_PROCESS_IMBALANCE_RATIO = 2.0
DUAL_PROCESS_IMBALANCE_DECAY = 5
DUAL_PROCESS_DECAY_MAX_WEEKLY = 10

# Reasoning Quality decay
RQ_DECAY_INACTIVITY_DAYS = DECAY_WINDOWS["RQ"]
RQ_DECAY_PER_WEEK = 2
RQ_FLOOR_BELOW_S2 = 10

# Cognitive Age regression
COGNITIVE_AGE_DROP_THRESHOLD_POINTS = 10
COGNITIVE_AGE_DROP_DAYS = DECAY_WINDOWS["COGNITIVE_AGE"]
COGNITIVE_AGE_PRE_WARNING_DAYS = 14
COGNITIVE_AGE_REGRESSION_COOLDOWN_DAYS = 31
COGNITIVE_AGE_SHORT_WINDOW_DAYS = 30
COGNITIVE_AGE_LONG_WINDOW_DAYS = 180

# Baseline calibration: one canonical rule for every consumer
CALIBRATION_MIN_SPAN_DAYS = 21
CALIBRATION_MIN_SNAPSHOTS = 10

# Training capacity
TC_FLOOR = 30
TC_GROWTH_ALPHA = 0.06
TC_DECAY_PER_WEEK = 3
TC_INACTIVITY_THRESHOLD_DAYS = 7
TC_OPTIMAL_MIN_RATIO = 0.60
TC_OPTIMAL_MAX_RATIO = 0.85
TC_UPGRADE_HINT_THRESHOLD = 0.90

# Onboarding recovery placeholder
RRI_VALIDITY_HOURS = 72


# ---------------------------------------------------------------------------
# Window resolution
# ---------------------------------------------------------------------------

def elapsed_days(now: datetime, then: datetime) -> int:
    """Whole 24-hour periods between ``then`` and ``now`` (never negative)."""
    seconds = (now - then).total_seconds()
    if seconds <= 0:
        return 0
    return math.floor(seconds / SECONDS_PER_DAY)


def counts_for_window(days_ago: float, window: str) -> bool:
    """Whether an event ``days_ago`` old falls inside a game window bucket."""
    return days_ago <= GAME_WINDOWS[window]


@dataclass(frozen=True)
class WindowMembership:
    """Independent bucket flags for one event."""

    days_ago: int
    state: bool
    load: bool
    decay_prevention: bool

    def buckets(self) -> list[str]:
        names = []
        if self.state:
            names.append("STATE")
        if self.load:
            names.append("LOAD")
        if self.decay_prevention:
            names.append("DECAY_PREVENTION")
        return names


def classify_event(now: datetime, event_at: datetime) -> WindowMembership:
    """Classify an event's applicability into the STATE / LOAD / DECAY_PREVENTION buckets."""
    days_ago = elapsed_days(now, event_at)
    return WindowMembership(
        days_ago=days_ago,
        state=counts_for_window(days_ago, "STATE"),
        load=counts_for_window(days_ago, "LOAD"),
        decay_prevention=counts_for_window(days_ago, "DECAY_PREVENTION"),
    )


def task_priming_weight(days_ago: float) -> float:
    """Continuous priming weight of a task completed ``days_ago`` days ago."""
    for max_days, weight in TASK_PRIMING_WEIGHTS:
        if days_ago <= max_days:
            return weight
    return 0.0


# ---------------------------------------------------------------------------
# Rolling range helpers
# ---------------------------------------------------------------------------

def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo or timezone.utc)


def short_period_start(now: datetime) -> datetime:
    """Start of the day three days back."""
    return _start_of_day(now - timedelta(days=GAME_WINDOWS["STATE"]))


def medium_period_start(now: datetime) -> datetime:
    """Exactly seven days back from now."""
    return now - timedelta(days=GAME_WINDOWS["LOAD"])


def long_period_start(now: datetime, days: int) -> datetime:
    if days not in (14, 21, 30):
        raise ValueError(f"Long period must be 14, 21 or 30 days, got {days}")
    return now - timedelta(days=days)


def today_range(now: datetime) -> tuple[datetime, datetime]:
    """[start of today, start of tomorrow) in the timezone of ``now``."""
    start = _start_of_day(now)
    return start, start + timedelta(days=1)


def days_span(first: date, last: date) -> int:
    """Inclusive number of calendar days from ``first`` to ``last``."""
    return (last - first).days + 1
