"""Derived score calculators.

Pure functions: same inputs, same outputs, no I/O. Every function is total
over its input domain. ``None`` reads as the neutral default and every output
is clamped to its documented range, so pathological inputs (negative XP,
out-of-range wearable readings) never raise.
"""

from __future__ import annotations

from dataclasses import dataclass

from neuroloop.domains.cognition.domain_logic.metric_models import (
    BaselineStates,
    CognitiveStates,
    SystemScores,
    clamp,
    round1,
    to_number,
)
from neuroloop.domains.cognition.domain_logic.temporal_policy import (
    DUAL_PROCESS_DECAY_MAX_WEEKLY,
    DUAL_PROCESS_IMBALANCE_DECAY,
    DUAL_PROCESS_IMBALANCE_RATIO,
    LOW_RECOVERY_THRESHOLD,
    READINESS_DECAY_INITIAL_POINTS,
    READINESS_DECAY_MAX_WEEKLY,
    READINESS_DECAY_PER_DAY_POINTS,
    READINESS_DECAY_TRIGGER_DAYS,
    SCI_DECAY_MAX_WEEKLY,
    SCI_LOW_RECOVERY_DECAY,
    SCI_NO_TRAINING_DECAY,
    SCI_NO_TRAINING_THRESHOLD_DAYS,
    TC_DECAY_PER_WEEK,
    TC_FLOOR,
    TC_GROWTH_ALPHA,
    TC_INACTIVITY_THRESHOLD_DAYS,
    TC_OPTIMAL_MAX_RATIO,
    TC_OPTIMAL_MIN_RATIO,
)

# ---------------------------------------------------------------------------
# Weighting tables
# ---------------------------------------------------------------------------

# System composites
SYSTEM_WEIGHTS = {
    "S1": {"AE": 0.5, "RA": 0.5},
    "S2": {"CT": 0.5, "IN": 0.5},
}

WALK_TO_DETOX_RATIO = 0.5

SHARPNESS_S1_WEIGHT = 0.6
SHARPNESS_S2_WEIGHT = 0.4
SHARPNESS_RECOVERY_FLOOR = 0.75  # multiplier at REC = 0

READINESS_WEIGHTS_NO_WEARABLE = {"REC": 0.35, "S2": 0.35, "AE": 0.30}
READINESS_COGNITIVE_WEIGHTS = {"CT": 0.30, "AE": 0.25, "IN": 0.20, "S2": 0.15, "S1": 0.10}
READINESS_PHYSIO_SHARE = 0.5

# Physio component: (low, high) input ranges mapped to 0-100
HRV_RANGE_MS = (20.0, 120.0)
RESTING_HR_RANGE_BPM = (45.0, 90.0)  # inverted: lower is better
SLEEP_DURATION_RANGE_MIN = (300.0, 540.0)
SLEEP_EFFICIENCY_RANGE = (0.70, 0.98)
PHYSIO_WEIGHTS = {"hrv": 0.4, "rhr": 0.2, "sleep": 0.4}
SLEEP_WEIGHTS = {"duration": 0.6, "efficiency": 0.4}

DUAL_PROCESS_LEVELS = ((85.0, "elite"), (70.0, "good"))

SCI_WEIGHTS = {"performance": 0.5, "engagement": 0.3, "recovery": 0.2}
SCI_LEVELS = (
    (85.0, "elite"),
    (70.0, "high"),
    (55.0, "moderate"),
    (40.0, "developing"),
)

COGNITIVE_AGE_POINTS_PER_YEAR = 10.0
COGNITIVE_AGE_CAP_YEARS = 15.0
RQ_MULTIPLIER_MIN = 0.85
RQ_MULTIPLIER_MAX = 1.0


def _level(score: float, table: tuple[tuple[float, str], ...], default: str) -> str:
    for threshold, label in table:
        if score >= threshold:
            return label
    return default


def _scale(value: float, lo: float, hi: float) -> float:
    """Linear map of [lo, hi] onto [0, 100], clamped."""
    return clamp((value - lo) / (hi - lo) * 100)


# ---------------------------------------------------------------------------
# System scores, recovery, sharpness
# ---------------------------------------------------------------------------

def system_scores(states: CognitiveStates) -> SystemScores:
    values = states.as_dict()
    return SystemScores(
        s1=sum(values[k] * w for k, w in SYSTEM_WEIGHTS["S1"].items()),
        s2=sum(values[k] * w for k, w in SYSTEM_WEIGHTS["S2"].items()),
    )


def recovery_score(detox_minutes: float, walk_minutes: float, detox_target_minutes: float) -> float:
    """Recovery from rolling-window detox and walking minutes against the plan target."""
    target = to_number(detox_target_minutes, 0.0)
    if target <= 0:
        return 0.0
    recovery_input = max(0.0, to_number(detox_minutes, 0.0)) + WALK_TO_DETOX_RATIO * max(
        0.0, to_number(walk_minutes, 0.0)
    )
    return round1(clamp(recovery_input / target * 100))


def sharpness_score(states: CognitiveStates, recovery: float | None) -> float:
    scores = system_scores(states)
    rec = clamp(to_number(recovery))
    base = SHARPNESS_S1_WEIGHT * scores.s1 + SHARPNESS_S2_WEIGHT * scores.s2
    modulated = base * (SHARPNESS_RECOVERY_FLOOR + (1 - SHARPNESS_RECOVERY_FLOOR) * rec / 100)
    return clamp(round1(modulated))


def physio_component(
    hrv_ms: float | None,
    resting_hr: float | None,
    sleep_duration_min: float | None,
    sleep_efficiency: float | None,
) -> float | None:
    """Wearable contribution to readiness, or None when any reading is missing."""
    if None in (hrv_ms, resting_hr, sleep_duration_min, sleep_efficiency):
        return None

    hrv_score = _scale(to_number(hrv_ms, 0.0), *HRV_RANGE_MS)
    low_hr, high_hr = RESTING_HR_RANGE_BPM
    rhr_score = clamp((high_hr - to_number(resting_hr, high_hr)) / (high_hr - low_hr) * 100)

    duration_score = _scale(to_number(sleep_duration_min, 0.0), *SLEEP_DURATION_RANGE_MIN)
    efficiency = to_number(sleep_efficiency, 0.0)
    if efficiency > 1:
        efficiency = efficiency / 100
    efficiency_score = _scale(efficiency, *SLEEP_EFFICIENCY_RANGE)
    sleep_score = (
        SLEEP_WEIGHTS["duration"] * duration_score + SLEEP_WEIGHTS["efficiency"] * efficiency_score
    )

    combined = (
        PHYSIO_WEIGHTS["hrv"] * hrv_score
        + PHYSIO_WEIGHTS["rhr"] * rhr_score
        + PHYSIO_WEIGHTS["sleep"] * sleep_score
    )
    return clamp(round1(combined))


def readiness_score(
    states: CognitiveStates,
    recovery: float | None,
    physio: float | None = None,
) -> float:
    """Readiness with or without a wearable physio component."""
    scores = system_scores(states)
    if physio is None:
        w = READINESS_WEIGHTS_NO_WEARABLE
        readiness = w["REC"] * clamp(to_number(recovery)) + w["S2"] * scores.s2 + w["AE"] * states.ae
        return clamp(round1(readiness))

    w = READINESS_COGNITIVE_WEIGHTS
    cognitive = (
        w["CT"] * states.ct
        + w["AE"] * states.ae
        + w["IN"] * states.in_
        + w["S2"] * scores.s2
        + w["S1"] * scores.s1
    )
    readiness = READINESS_PHYSIO_SHARE * clamp(physio) + (1 - READINESS_PHYSIO_SHARE) * cognitive
    return clamp(round1(readiness))


def readiness_decay(consecutive_low_rec_days: int, decay_applied_this_week: float = 0.0) -> float:
    """Readiness penalty after three or more consecutive low-recovery days."""
    remaining = READINESS_DECAY_MAX_WEEKLY - max(0.0, decay_applied_this_week)
    if remaining <= 0 or consecutive_low_rec_days < READINESS_DECAY_TRIGGER_DAYS:
        return 0.0
    extra_days = consecutive_low_rec_days - READINESS_DECAY_TRIGGER_DAYS
    decay = READINESS_DECAY_INITIAL_POINTS + extra_days * READINESS_DECAY_PER_DAY_POINTS
    return float(min(decay, remaining))


def is_recovery_low(recovery: float | None) -> bool:
    return to_number(recovery) < LOW_RECOVERY_THRESHOLD


# ---------------------------------------------------------------------------
# Dual-process balance
# ---------------------------------------------------------------------------

def dual_process_balance(s1: float | None, s2: float | None) -> float:
    """100 minus the S1/S2 gap."""
    gap = abs(clamp(to_number(s1)) - clamp(to_number(s2)))
    return clamp(round1(100 - gap))


def dual_process_level(score: float) -> str:
    return _level(score, DUAL_PROCESS_LEVELS, "unbalanced")


def dual_process_decay(
    weekly_s1_xp: float, weekly_s2_xp: float, decay_applied_this_week: float = 0.0
) -> float:
    """Imbalance penalty when one system earns at least twice the XP of the other."""
    remaining = DUAL_PROCESS_DECAY_MAX_WEEKLY - max(0.0, decay_applied_this_week)
    s1_xp = max(0.0, to_number(weekly_s1_xp, 0.0))
    s2_xp = max(0.0, to_number(weekly_s2_xp, 0.0))
    if remaining <= 0 or (s1_xp == 0 and s2_xp == 0):
        return 0.0
    if s1_xp == 0 or s2_xp == 0:
        return float(min(DUAL_PROCESS_IMBALANCE_DECAY, remaining))
    ratio = s1_xp / s2_xp
    if ratio >= DUAL_PROCESS_IMBALANCE_RATIO or ratio <= 1 / DUAL_PROCESS_IMBALANCE_RATIO:
        return float(min(DUAL_PROCESS_IMBALANCE_DECAY, remaining))
    return 0.0


# ---------------------------------------------------------------------------
# Cognitive Network Index (SCI)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SCIResult:
    score: float
    level: str
    performance: float
    engagement: float
    recovery: float


def sci_score(
    states: CognitiveStates,
    weekly_games_xp: float | None,
    weekly_xp_target: float | None,
    recovery: float | None,
    decay: float = 0.0,
) -> SCIResult:
    """Composite of state performance, behavioral engagement and recovery."""
    s2 = system_scores(states).s2
    performance = (states.ae + states.ra + states.ct + states.in_ + s2) / 5

    target = to_number(weekly_xp_target, 0.0)
    games_xp = max(0.0, to_number(weekly_games_xp, 0.0))
    engagement = min(games_xp / target, 1.0) if target > 0 else 0.0

    rec = clamp(to_number(recovery))
    w = SCI_WEIGHTS
    raw = w["performance"] * performance + w["engagement"] * engagement * 100 + w["recovery"] * rec
    score = clamp(round1(raw - max(0.0, decay)))
    return SCIResult(
        score=score,
        level=sci_level(score),
        performance=round1(performance),
        engagement=round(engagement, 3),
        recovery=rec,
    )


def sci_level(score: float) -> str:
    return _level(score, SCI_LEVELS, "early")


def sci_decay(
    recovery: float | None, days_since_last_training: int | None, decay_applied_this_week: float = 0.0
) -> float:
    """Stacking penalties for low recovery and a week without training."""
    remaining = SCI_DECAY_MAX_WEEKLY - max(0.0, decay_applied_this_week)
    if remaining <= 0:
        return 0.0
    decay = 0.0
    if is_recovery_low(recovery):
        decay += SCI_LOW_RECOVERY_DECAY
    if days_since_last_training is not None and days_since_last_training >= SCI_NO_TRAINING_THRESHOLD_DAYS:
        decay += SCI_NO_TRAINING_DECAY
    return float(min(decay, remaining))


# ---------------------------------------------------------------------------
# Cognitive Age
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CognitiveAgeResult:
    cognitive_age: float
    delta: float  # anchor age minus cognitive age; positive = younger
    performance_avg: float
    baseline_performance_avg: float
    anchor_age: float
    calibrated: bool
    confidence: str  # 'high' | 'low'


def performance_average(states: CognitiveStates) -> float:
    s2 = system_scores(states).s2
    return (states.ae + states.ra + states.ct + states.in_ + s2) / 5


def rq_multiplier(rq: float | None) -> float:
    """How effectively improvement converts into younger age (0.85 when RQ is unknown)."""
    if rq is None:
        return RQ_MULTIPLIER_MIN
    return clamp(RQ_MULTIPLIER_MIN + 0.15 * to_number(rq) / 100, RQ_MULTIPLIER_MIN, RQ_MULTIPLIER_MAX)


def cognitive_age(
    states: CognitiveStates,
    baseline: BaselineStates,
    rq: float | None = None,
    *,
    calibrated: bool = False,
    penalty_years: float = 0.0,
) -> CognitiveAgeResult:
    """Age-equivalent of current performance relative to the baseline.

    A calibrated baseline anchors at the calibrated baseline age. Otherwise the
    result is an estimate anchored at chronological age and flagged as such.
    """
    anchor = baseline.baseline_cognitive_age if calibrated else baseline.chronological_age
    current = performance_average(states)
    reference = performance_average(baseline.states)
    improvement = current - reference

    raw_age = anchor - (improvement / COGNITIVE_AGE_POINTS_PER_YEAR) * rq_multiplier(rq)
    raw_age += max(0.0, penalty_years)
    age = clamp(raw_age, anchor - COGNITIVE_AGE_CAP_YEARS, anchor + COGNITIVE_AGE_CAP_YEARS)
    age = clamp(age)

    return CognitiveAgeResult(
        cognitive_age=round1(age),
        delta=round1(anchor - age),
        performance_avg=round1(current),
        baseline_performance_avg=round1(reference),
        anchor_age=anchor,
        calibrated=calibrated,
        confidence="high" if calibrated else "low",
    )


# ---------------------------------------------------------------------------
# Training capacity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OptimalRange:
    min: float
    max: float
    cap: float


def initial_training_capacity(states: CognitiveStates, plan_cap: float) -> float:
    scores = system_scores(states)
    base = (scores.s1 + scores.s2) / 2
    return float(clamp(round(base), TC_FLOOR, round(plan_cap * 0.6)))


def recovery_multiplier(avg_recovery: float | None) -> float:
    return clamp(0.6 + 0.006 * to_number(avg_recovery), 0.6, 1.2)


def update_training_capacity(
    current_tc: float,
    weekly_xp: float,
    avg_recovery: float | None,
    days_since_last_xp: int | None,
    plan_cap: float,
) -> float:
    """Weekly TC growth from effective XP, with a decay step after a week idle."""
    xp_effective = min(max(0.0, to_number(weekly_xp, 0.0)), plan_cap)
    growth = TC_GROWTH_ALPHA * xp_effective * recovery_multiplier(avg_recovery)
    idle = days_since_last_xp is not None and days_since_last_xp >= TC_INACTIVITY_THRESHOLD_DAYS
    decay = TC_DECAY_PER_WEEK if idle else 0
    return clamp(round1(to_number(current_tc, TC_FLOOR) + growth - decay), TC_FLOOR, plan_cap)


def dynamic_optimal_range(tc: float, plan_cap: float, weekly_xp_target: float | None = None) -> OptimalRange:
    raw_min = round(tc * TC_OPTIMAL_MIN_RATIO)
    raw_max = round(tc * TC_OPTIMAL_MAX_RATIO)
    upper = min(raw_max, weekly_xp_target) if weekly_xp_target else raw_max
    lower = min(raw_min, round(upper * 0.7))
    return OptimalRange(min=float(lower), max=float(upper), cap=float(plan_cap))
