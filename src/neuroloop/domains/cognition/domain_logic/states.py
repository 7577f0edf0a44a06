"""State mapper: stored skill columns -> cognitive states, XP routing and skill decay.

Decay is stateless. It is recomputed on every read from the stored value, the
``last_<state>_xp_at`` timestamp and "now"; nothing is written back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from neuroloop.core.storage.models import MetricsRecord
from neuroloop.domains.cognition.domain_logic.metric_models import (
    BASELINE_COLUMNS,
    LAST_XP_COLUMNS,
    STATE_COLUMNS,
    STATE_KEYS,
    BaselineStates,
    CognitiveStates,
    clamp,
    to_number,
)
from neuroloop.domains.cognition.domain_logic.temporal_policy import (
    SKILL_DECAY_BASE_POINTS,
    SKILL_DECAY_INTERVAL_DAYS,
    SKILL_DECAY_INTERVAL_POINTS,
    SKILL_DECAY_MAX_POINTS,
    SKILL_DECAY_THRESHOLD_DAYS,
    elapsed_days,
)
from neuroloop.domains.cognition.domain_logic.validation import (
    parse_timestamp,
    require_choice,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# XP policy
# ---------------------------------------------------------------------------

EXERCISE_AREAS = ("focus", "reasoning", "creativity", "insight")
THINKING_MODES = ("fast", "slow")
DIFFICULTIES = ("easy", "medium", "hard")

EXERCISE_XP = {"easy": 3, "medium": 5, "hard": 8}

# XP -> state points
XP_TO_STATE_FACTOR = 0.5

# (mode, area) -> state; unlisted areas fall back to the mode default
_XP_ROUTES = {
    ("fast", "focus"): "AE",
    ("fast", "creativity"): "RA",
    ("slow", "reasoning"): "CT",
    ("slow", "creativity"): "IN",
    ("slow", "insight"): "IN",
}
_MODE_DEFAULTS = {"fast": "AE", "slow": "CT"}


def exercise_xp(difficulty: str) -> int:
    """XP for one completed exercise at the given difficulty."""
    require_choice(difficulty, DIFFICULTIES, "difficulty")
    return EXERCISE_XP[difficulty]


def route_xp(area: str, thinking_mode: str) -> str:
    """Which canonical state an exercise's XP is credited to."""
    require_choice(area, EXERCISE_AREAS, "area")
    require_choice(thinking_mode, THINKING_MODES, "thinking_mode")
    return _XP_ROUTES.get((thinking_mode, area), _MODE_DEFAULTS[thinking_mode])


def apply_state_update(current_value: float, earned_xp: float) -> float:
    """New state value after earning XP, clamped to [0, 100]."""
    return clamp(to_number(current_value) + to_number(earned_xp, 0.0) * XP_TO_STATE_FACTOR)


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------

def map_record_to_states(record: MetricsRecord | None) -> CognitiveStates:
    """Map stored skill columns to {AE, RA, CT, IN}; missing values read as 50."""
    if record is None:
        return CognitiveStates()
    return CognitiveStates.from_dict(
        {key: to_number(getattr(record, column)) for key, column in STATE_COLUMNS.items()}
    )


def map_record_to_baseline(
    record: MetricsRecord | None, chronological_age: float
) -> BaselineStates:
    """Baseline states; missing values read as 50, missing age as chronological age."""
    values = {
        key: to_number(getattr(record, column, None) if record else None)
        for key, column in BASELINE_COLUMNS.items()
    }
    baseline_age = to_number(
        record.baseline_cognitive_age if record else None, float(chronological_age)
    )
    return BaselineStates(
        states=CognitiveStates.from_dict(values),
        baseline_cognitive_age=baseline_age,
        chronological_age=float(chronological_age),
    )


def has_stored_baseline(record: MetricsRecord | None) -> bool:
    return record is not None and all(
        getattr(record, column) is not None for column in BASELINE_COLUMNS.values()
    )


def last_xp_timestamps(record: MetricsRecord | None) -> dict[str, datetime | None]:
    """Parse the per-state last-XP timestamps of a record."""
    result: dict[str, datetime | None] = {}
    for key, column in LAST_XP_COLUMNS.items():
        raw = getattr(record, column) if record else None
        result[key] = parse_timestamp(raw, column) if raw else None
    return result


# ---------------------------------------------------------------------------
# Skill decay
# ---------------------------------------------------------------------------

def skill_decay_points(
    last_xp_at: datetime | None,
    now: datetime,
    *,
    current_value: float | None = None,
    baseline_value: float | None = None,
    respect_baseline: bool = False,
) -> float:
    """Points to subtract from a state after sustained inactivity.

    0 with no XP history or fewer than 30 inactive days, then 1 point plus 1
    per further 15 days, capped at 3. With ``respect_baseline`` the decay
    never takes the state below its baseline.
    """
    if last_xp_at is None:
        return 0.0
    days = elapsed_days(now, last_xp_at)
    if days < SKILL_DECAY_THRESHOLD_DAYS:
        return 0.0

    extra_intervals = (days - SKILL_DECAY_THRESHOLD_DAYS) // SKILL_DECAY_INTERVAL_DAYS
    decay = SKILL_DECAY_BASE_POINTS + extra_intervals * SKILL_DECAY_INTERVAL_POINTS
    decay = min(decay, SKILL_DECAY_MAX_POINTS)

    if respect_baseline and current_value is not None and baseline_value is not None:
        decay = min(decay, max(0.0, current_value - baseline_value))
    return float(decay)


@dataclass(frozen=True)
class DecayedStates:
    """States after inactivity decay, with the points removed per state."""

    states: CognitiveStates
    raw_states: CognitiveStates
    decay: dict[str, float]

    @property
    def is_decaying(self) -> bool:
        return any(points > 0 for points in self.decay.values())


def apply_skill_decay(
    record: MetricsRecord | None,
    now: datetime,
    *,
    respect_baseline: bool = False,
) -> DecayedStates:
    """Decay each state independently from its own last-XP timestamp."""
    raw = map_record_to_states(record)
    baseline = None
    if respect_baseline and has_stored_baseline(record):
        baseline = map_record_to_baseline(record, 0).states
    timestamps = last_xp_timestamps(record)

    decayed: dict[str, float] = {}
    points: dict[str, float] = {}
    for key in STATE_KEYS:
        current = raw.get(key)
        points[key] = skill_decay_points(
            timestamps[key],
            now,
            current_value=current,
            baseline_value=baseline.get(key) if baseline else None,
            respect_baseline=respect_baseline,
        )
        decayed[key] = clamp(current - points[key])

    if any(points.values()):
        logger.debug("Skill decay applied: %s", points)
    return DecayedStates(states=CognitiveStates.from_dict(decayed), raw_states=raw, decay=points)

