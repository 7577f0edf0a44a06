"""Baseline calibration and the daily Cognitive Age job.

Both jobs are externally triggered (app start, onboarding, a daily scheduler)
and safe to run repeatedly: every write is an upsert keyed on the user, or on
(user, calc_date) for the daily rows.

Calibration uses one canonical rule everywhere: at least 21 days between the
first and last snapshot with data AND at least 10 such snapshots.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from neuroloop.core.storage.models import CognitiveAgeDaily, CognitiveBaseline, DailyMetricSnapshot
from neuroloop.core.storage.repository import MetricsRepository
from neuroloop.domains.cognition.domain_logic.metric_models import clamp, round1
from neuroloop.domains.cognition.domain_logic.scores import (
    COGNITIVE_AGE_CAP_YEARS,
    COGNITIVE_AGE_POINTS_PER_YEAR,
    rq_multiplier,
)
from neuroloop.domains.cognition.domain_logic.temporal_policy import (
    CALIBRATION_MIN_SNAPSHOTS,
    CALIBRATION_MIN_SPAN_DAYS,
    COGNITIVE_AGE_DROP_DAYS,
    COGNITIVE_AGE_DROP_THRESHOLD_POINTS,
    COGNITIVE_AGE_LONG_WINDOW_DAYS,
    COGNITIVE_AGE_PRE_WARNING_DAYS,
    COGNITIVE_AGE_REGRESSION_COOLDOWN_DAYS,
    COGNITIVE_AGE_SHORT_WINDOW_DAYS,
    days_span,
)

logger = logging.getLogger(__name__)

BASELINE_LOOKBACK_DAYS = 90
BASELINE_WINDOW_START_OFFSET_DAYS = 14
BASELINE_WINDOW_END_OFFSET_DAYS = 90
BASELINE_MIN_VALUES = 10

COGNITIVE_AGE_MIN_SNAPSHOTS = 10
DAILY_PERF_MIN_STATES = 2
PACE_RANGE = (0.5, 2.5)

_STATE_FIELDS = ("ae", "ra", "ct", "in_score")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def snapshot_skill_values(snapshot: DailyMetricSnapshot) -> list[float]:
    """Present skill values of a snapshot (the four states plus S2)."""
    raw = (snapshot.ae, snapshot.ra, snapshot.ct, snapshot.in_score, snapshot.s2)
    return [float(v) for v in raw if v is not None]


def days_with_data(snapshots: Sequence[DailyMetricSnapshot]) -> list[DailyMetricSnapshot]:
    return [s for s in snapshots if snapshot_skill_values(s)]


def is_calibrated(snapshots: Sequence[DailyMetricSnapshot]) -> bool:
    """The canonical calibration rule, applied to snapshots with data."""
    valid = days_with_data(snapshots)
    if len(valid) < CALIBRATION_MIN_SNAPSHOTS:
        return False
    dates = sorted(date.fromisoformat(s.snapshot_date) for s in valid)
    return days_span(dates[0], dates[-1]) >= CALIBRATION_MIN_SPAN_DAYS


def daily_performance(snapshot: DailyMetricSnapshot) -> float | None:
    """Mean of the four states present on a day; None with fewer than two."""
    values = [float(getattr(snapshot, f)) for f in _STATE_FIELDS if getattr(snapshot, f) is not None]
    if len(values) < DAILY_PERF_MIN_STATES:
        return None
    return statistics.mean(values)


def rolling_average(values_newest_first: Sequence[float | None], days: int) -> float | None:
    """Mean over the newest ``days`` entries, None below min(10, days / 3) values."""
    window = [v for v in values_newest_first[:days] if v is not None]
    if not window or len(window) < min(10, days / 3):
        return None
    return statistics.mean(window)


def pace_of_aging(perf_30d: float | None, perf_180d: float | None) -> float | None:
    """1.0 = aging at calendar pace; below 1 = recent improvement."""
    if perf_30d is None or perf_180d is None:
        return None
    return clamp(1 - (perf_30d - perf_180d) / COGNITIVE_AGE_POINTS_PER_YEAR, *PACE_RANGE)


def regression_risk(streak_days: int) -> str:
    if streak_days >= COGNITIVE_AGE_DROP_DAYS:
        return "high"
    if streak_days >= COGNITIVE_AGE_PRE_WARNING_DAYS:
        return "medium"
    return "low"


# ---------------------------------------------------------------------------
# Baseline calibration job
# ---------------------------------------------------------------------------

def initialize_cognitive_baseline(
    repository: MetricsRepository,
    user_id: str,
    today: date,
    *,
    default_chronological_age: int,
) -> CognitiveBaseline:
    """Compute and upsert the user's baseline row.

    Once calibrated, the per-state baselines (mean of each state over the
    calibration window) and the baseline cognitive age are written into the
    metrics record.
    """
    profile = repository.get_onboarding_profile(user_id)
    if profile is not None:
        onboarding_date = date.fromisoformat(profile.completed_at[:10])
        chrono_age = profile.chronological_age or default_chronological_age
    else:
        onboarding_date = today - timedelta(days=BASELINE_LOOKBACK_DAYS)
        chrono_age = default_chronological_age

    snapshots = repository.get_daily_snapshots(
        user_id, since=onboarding_date.isoformat(), until=today.isoformat()
    )
    valid = days_with_data(snapshots)
    calibrated = is_calibrated(snapshots)

    baseline_score = None
    baseline_rq = None
    if len(valid) >= BASELINE_MIN_VALUES:
        baseline_score = round1(statistics.mean([statistics.mean(snapshot_skill_values(s)) for s in valid]))
        rq_values = [s.reasoning_quality for s in valid if s.reasoning_quality is not None]
        if len(rq_values) >= BASELINE_MIN_VALUES:
            baseline_rq = round1(statistics.mean(rq_values))

    baseline = CognitiveBaseline(
        user_id=user_id,
        chrono_age_at_onboarding=int(chrono_age),
        baseline_score_90d=baseline_score,
        baseline_rq_90d=baseline_rq,
        baseline_start_date=(onboarding_date + timedelta(days=BASELINE_WINDOW_START_OFFSET_DAYS)).isoformat(),
        baseline_end_date=(onboarding_date + timedelta(days=BASELINE_WINDOW_END_OFFSET_DAYS)).isoformat(),
        days_with_data=len(valid),
        is_baseline_calibrated=calibrated,
    )
    repository.upsert_baseline(baseline)

    if calibrated:
        _write_state_baselines(repository, user_id, valid, chrono_age)
    logger.info(
        "Baseline for user %s: %d days with data, calibrated=%s", user_id, len(valid), calibrated
    )
    return baseline


def _write_state_baselines(
    repository: MetricsRepository,
    user_id: str,
    snapshots: Sequence[DailyMetricSnapshot],
    chrono_age: float,
) -> None:
    record = repository.get_metrics(user_id) or repository.create_default_metrics(user_id)
    columns = {
        "ae": "baseline_focus",
        "ra": "baseline_fast_thinking",
        "ct": "baseline_reasoning",
        "in_score": "baseline_slow_thinking",
    }
    for snapshot_field, column in columns.items():
        values = [getattr(s, snapshot_field) for s in snapshots if getattr(s, snapshot_field) is not None]
        if values:
            setattr(record, column, round1(statistics.mean(values)))
    record.baseline_cognitive_age = float(chrono_age)
    repository.save_metrics(record)


# ---------------------------------------------------------------------------
# Daily Cognitive Age job
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CognitiveAgeDailyResult:
    record: CognitiveAgeDaily
    penalty_applied: bool
    regression_risk: str
    pre_regression_warning: str | None

    def to_dict(self) -> dict:
        r = self.record
        return {
            "calc_date": r.calc_date,
            "cognitive_age": r.cognitive_age,
            "pace_of_aging": r.pace_of_aging,
            "perf_daily": r.perf_daily,
            "perf_21d": r.perf_21d,
            "perf_30d": r.perf_30d,
            "perf_180d": r.perf_180d,
            "rq_today": r.rq_today,
            "below_threshold": r.below_threshold,
            "regression_streak_days": r.regression_streak_days,
            "regression_penalty_years": r.regression_penalty_years,
            "penalty_applied": self.penalty_applied,
            "regression_risk": self.regression_risk,
            "pre_regression_warning": self.pre_regression_warning,
        }


def _maybe_round(value: float | None) -> float | None:
    return round1(value) if value is not None else None


def compute_cognitive_age_daily(
    repository: MetricsRepository,
    user_id: str,
    today: date,
) -> CognitiveAgeDailyResult | None:
    """Run the daily Cognitive Age computation for one user.

    Returns None when the user has no baseline row or fewer than ten
    snapshots in the last 180 days. Re-running on the same day recomputes
    from the previous day's row, so the result is the same.
    """
    baseline = repository.get_baseline(user_id)
    if baseline is None:
        logger.debug("No baseline for user %s, skipping cognitive age", user_id)
        return None

    since = today - timedelta(days=COGNITIVE_AGE_LONG_WINDOW_DAYS)
    snapshots = repository.get_daily_snapshots(
        user_id, since=since.isoformat(), until=today.isoformat()
    )
    if len(snapshots) < COGNITIVE_AGE_MIN_SNAPSHOTS:
        logger.debug("User %s has %d snapshots, skipping cognitive age", user_id, len(snapshots))
        return None

    newest_first = list(reversed(snapshots))
    perf_values = [daily_performance(s) for s in newest_first]
    perf_21d = rolling_average(perf_values, COGNITIVE_AGE_DROP_DAYS)
    perf_30d = rolling_average(perf_values, COGNITIVE_AGE_SHORT_WINDOW_DAYS)
    perf_180d = rolling_average(perf_values, COGNITIVE_AGE_LONG_WINDOW_DAYS)
    rq_today = newest_first[0].reasoning_quality
    if rq_today is None:
        rq_today = 50.0

    previous = repository.get_latest_cognitive_age_daily(user_id, before=today.isoformat())
    prev_streak = previous.regression_streak_days if previous else 0
    prev_penalty = previous.regression_penalty_years if previous else 0.0
    last_trigger = previous.last_regression_trigger_at if previous else None

    baseline_perf = baseline.baseline_score_90d
    below = (
        baseline_perf is not None
        and perf_21d is not None
        and perf_21d <= baseline_perf - COGNITIVE_AGE_DROP_THRESHOLD_POINTS
    )
    streak = prev_streak + 1 if below else 0

    days_since_trigger = (
        (today - date.fromisoformat(last_trigger)).days if last_trigger else None
    )
    cooled_down = days_since_trigger is None or days_since_trigger >= COGNITIVE_AGE_REGRESSION_COOLDOWN_DAYS
    penalty_applied = below and streak >= COGNITIVE_AGE_DROP_DAYS and cooled_down
    penalty = prev_penalty + 1 if penalty_applied else prev_penalty
    if penalty_applied:
        last_trigger = today.isoformat()
        logger.info("Cognitive age regression penalty for user %s (total %.0f years)", user_id, penalty)

    cognitive_age = None
    chrono_age = float(baseline.chrono_age_at_onboarding)
    if perf_180d is not None and baseline_perf is not None:
        improvement = perf_180d - baseline_perf
        raw_age = chrono_age - (improvement / COGNITIVE_AGE_POINTS_PER_YEAR) * rq_multiplier(rq_today) + penalty
        cognitive_age = clamp(
            clamp(raw_age, chrono_age - COGNITIVE_AGE_CAP_YEARS, chrono_age + COGNITIVE_AGE_CAP_YEARS)
        )

    warning = None
    if below and COGNITIVE_AGE_PRE_WARNING_DAYS <= streak < COGNITIVE_AGE_DROP_DAYS:
        remaining = COGNITIVE_AGE_DROP_DAYS - streak
        warning = (
            f"Performance has been {COGNITIVE_AGE_DROP_THRESHOLD_POINTS}+ points below baseline for "
            f"{streak} days. If this continues for {remaining} more day(s), Cognitive Age will "
            "increase by 1 year."
        )

    record = CognitiveAgeDaily(
        user_id=user_id,
        calc_date=today.isoformat(),
        perf_daily=_maybe_round(perf_values[0]),
        perf_21d=_maybe_round(perf_21d),
        perf_30d=_maybe_round(perf_30d),
        perf_180d=_maybe_round(perf_180d),
        below_threshold=below,
        regression_streak_days=streak,
        regression_penalty_years=penalty,
        last_regression_trigger_at=last_trigger,
        cognitive_age=_maybe_round(cognitive_age),
        pace_of_aging=_maybe_round(pace_of_aging(perf_30d, perf_180d)),
        rq_today=rq_today,
    )
    repository.upsert_cognitive_age_daily(record)
    return CognitiveAgeDailyResult(
        record=record,
        penalty_applied=penalty_applied,
        regression_risk=regression_risk(streak),
        pre_regression_warning=warning,
    )
