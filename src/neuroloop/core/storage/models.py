"""Record types for the metrics persistence layer.

Rows are converted into these dataclasses by the repository; nothing above
the storage boundary sees a raw ``sqlite3.Row``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Enumerations owned by the storage contract
# ---------------------------------------------------------------------------

INTRADAY_EVENT_TYPES = (
    "decay",
    "task",
    "game",
    "detox",
    "walking",
    "app_open",
    "recharging",
)

TASK_TYPES = ("podcast", "article", "book")

DETOX_KINDS = ("detox", "walk")

DEFAULT_STATE_VALUE = 50.0


@dataclass
class MetricsRecord:
    """The single per-user metrics row.

    Skill columns keep their stored names; the state mapper translates them
    into AE / RA / CT / IN.
    """

    user_id: str

    focus_stability: float | None = DEFAULT_STATE_VALUE      # AE
    fast_thinking: float | None = DEFAULT_STATE_VALUE        # RA
    reasoning_accuracy: float | None = DEFAULT_STATE_VALUE   # CT
    slow_thinking: float | None = DEFAULT_STATE_VALUE        # IN

    baseline_focus: float | None = None
    baseline_fast_thinking: float | None = None
    baseline_reasoning: float | None = None
    baseline_slow_thinking: float | None = None
    baseline_cognitive_age: float | None = None

    # ISO 8601 timestamps of the last XP-earning event per state
    last_ae_xp_at: str | None = None
    last_ra_xp_at: str | None = None
    last_ct_xp_at: str | None = None
    last_in_xp_at: str | None = None
    last_xp_at: str | None = None

    training_plan: str | None = None
    training_capacity: float | None = None

    rec_snapshot_date: str | None = None  # YYYY-MM-DD
    rec_snapshot_value: float | None = None
    low_rec_streak_days: int = 0

    created_at: str = ""
    updated_at: str = ""


@dataclass
class DailyMetricSnapshot:
    """One row per (user, calendar day)."""

    user_id: str
    snapshot_date: str  # YYYY-MM-DD
    readiness: float | None = None
    sharpness: float | None = None
    recovery: float | None = None
    reasoning_quality: float | None = None
    s1: float | None = None
    s2: float | None = None
    ae: float | None = None
    ra: float | None = None
    ct: float | None = None
    in_score: float | None = None
    created_at: str = ""
    updated_at: str = ""

    def metric_values(self) -> dict[str, float | None]:
        """Return the stored values keyed by column name."""
        return {
            "readiness": self.readiness,
            "sharpness": self.sharpness,
            "recovery": self.recovery,
            "reasoning_quality": self.reasoning_quality,
            "s1": self.s1,
            "s2": self.s2,
            "ae": self.ae,
            "ra": self.ra,
            "ct": self.ct,
            "in_score": self.in_score,
        }


@dataclass
class IntradayMetricEvent:
    """Append-only log entry capturing the four scalar metrics at a moment."""

    id: str
    user_id: str
    event_date: str        # YYYY-MM-DD
    event_timestamp: str   # ISO 8601
    event_type: str        # one of INTRADAY_EVENT_TYPES
    readiness: float | None = None
    sharpness: float | None = None
    recovery: float | None = None
    reasoning_quality: float | None = None
    event_details: dict[str, Any] | None = None  # stored encrypted


@dataclass
class ExerciseCompletion:
    """A completed game exercise and the XP it earned."""

    id: str
    user_id: str
    completed_at: str
    area: str           # 'focus' | 'reasoning' | 'creativity' | 'insight'
    thinking_mode: str  # 'fast' | 'slow'
    difficulty: str     # 'easy' | 'medium' | 'hard'
    xp_earned: float
    score: float | None = None


@dataclass
class TaskCompletion:
    """A completed reading or listening task (primes Reasoning Quality)."""

    id: str
    user_id: str
    task_type: str  # one of TASK_TYPES
    completed_at: str


@dataclass
class DetoxSession:
    """A completed digital-detox or walking session (feeds Recovery)."""

    id: str
    user_id: str
    kind: str  # one of DETOX_KINDS
    duration_minutes: float
    completed_at: str


@dataclass
class WearableSnapshot:
    """Daily physiological readings from a wearable."""

    user_id: str
    snapshot_date: str
    hrv_ms: float | None = None
    resting_hr: float | None = None
    sleep_duration_min: float | None = None
    sleep_efficiency: float | None = None
    raw_data: dict[str, Any] | None = None  # stored encrypted
    created_at: str = ""


@dataclass
class OnboardingProfile:
    """Onboarding answers used for the temporary recovery estimate."""

    user_id: str
    completed_at: str
    chronological_age: int | None = None
    answers: dict[str, Any] = field(default_factory=dict)  # stored encrypted


@dataclass
class CognitiveBaseline:
    """Calibration state for Cognitive Age."""

    user_id: str
    chrono_age_at_onboarding: int
    baseline_score_90d: float | None = None
    baseline_rq_90d: float | None = None
    baseline_start_date: str | None = None
    baseline_end_date: str | None = None
    days_with_data: int = 0
    is_baseline_calibrated: bool = False
    updated_at: str = ""


@dataclass
class CognitiveAgeDaily:
    """Daily Cognitive Age computation with regression tracking."""

    user_id: str
    calc_date: str
    perf_daily: float | None = None
    perf_21d: float | None = None
    perf_30d: float | None = None
    perf_180d: float | None = None
    below_threshold: bool = False
    regression_streak_days: int = 0
    regression_penalty_years: float = 0.0
    last_regression_trigger_at: str | None = None
    cognitive_age: float | None = None
    pace_of_aging: float | None = None
    rq_today: float | None = None
