"""Cognitive state types, score domains and numeric helpers shared by the calculators."""

from __future__ import annotations

import math
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

STATE_KEYS = ("AE", "RA", "CT", "IN")

# Stored column -> canonical state
STATE_COLUMNS = {
    "AE": "focus_stability",
    "RA": "fast_thinking",
    "CT": "reasoning_accuracy",
    "IN": "slow_thinking",
}

BASELINE_COLUMNS = {
    "AE": "baseline_focus",
    "RA": "baseline_fast_thinking",
    "CT": "baseline_reasoning",
    "IN": "baseline_slow_thinking",
}

LAST_XP_COLUMNS = {
    "AE": "last_ae_xp_at",
    "RA": "last_ra_xp_at",
    "CT": "last_ct_xp_at",
    "IN": "last_in_xp_at",
}

SCORE_MIN = 0.0
SCORE_MAX = 100.0

# Neutral default for unknown or still-loading inputs
NEUTRAL_SCORE = 50.0


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def clamp(value: float, lo: float = SCORE_MIN, hi: float = SCORE_MAX) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


def to_number(val, default: float = NEUTRAL_SCORE) -> float:
    """Convert to float, returning ``default`` for None, NaN or non-numeric input."""
    if val is None:
        return default
    try:
        number = float(val)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number


def round1(value: float) -> float:
    """Round to one decimal, the display precision of every score."""
    return round(value * 10) / 10


# ---------------------------------------------------------------------------
# State types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CognitiveStates:
    """The four canonical states, each clamped to [0, 100] on construction."""

    ae: float = NEUTRAL_SCORE  # Attentional Efficiency
    ra: float = NEUTRAL_SCORE  # Rapid Association
    ct: float = NEUTRAL_SCORE  # Critical Thinking
    in_: float = NEUTRAL_SCORE  # Insight

    def __post_init__(self) -> None:
        for name in ("ae", "ra", "ct", "in_"):
            object.__setattr__(self, name, clamp(to_number(getattr(self, name))))

    def get(self, key: str) -> float:
        return self.as_dict()[key]

    def as_dict(self) -> dict[str, float]:
        return {"AE": self.ae, "RA": self.ra, "CT": self.ct, "IN": self.in_}

    @classmethod
    def from_dict(cls, values: dict[str, float]) -> CognitiveStates:
        return cls(
            ae=values.get("AE", NEUTRAL_SCORE),
            ra=values.get("RA", NEUTRAL_SCORE),
            ct=values.get("CT", NEUTRAL_SCORE),
            in_=values.get("IN", NEUTRAL_SCORE),
        )


@dataclass(frozen=True)
class BaselineStates:
    """Baseline states plus the age anchor used by Cognitive Age."""

    states: CognitiveStates
    baseline_cognitive_age: float
    chronological_age: float


@dataclass(frozen=True)
class SystemScores:
    """System-1 (fast) and System-2 (slow) composites."""

    s1: float
    s2: float
