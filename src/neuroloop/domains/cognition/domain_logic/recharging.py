"""Recharging: a short session-scoped cognitive reset scored from a pre/post check-in.

The session never touches long-term baselines. Its only effect outside the
result is a temporary Sharpness boost for the rest of the session.
"""

from __future__ import annotations

from dataclasses import dataclass

from neuroloop.domains.cognition.domain_logic.metric_models import clamp, to_number
from neuroloop.domains.cognition.domain_logic.validation import require_choice

RECHARGING_WEIGHTS = {"mental_noise": 0.35, "cognitive_fatigue": 0.35, "readiness_to_clear": 0.30}
READINESS_BONUS_MAX = 15.0
SHARPNESS_BOOST_MAX = 8.0

RECHARGING_LEVELS = ((60.0, "strong"), (35.0, "moderate"))

RECHARGING_MODES = {
    "overloaded": ("Overloaded", "Too much input, difficulty focusing"),
    "ruminating": ("Ruminating", "Stuck in repetitive thought loops"),
    "pre-decision": ("Pre-decision", "Need clarity before an important choice"),
    "end-of-day": ("End of day", "Processing the day's cognitive load"),
}

SESSION_DURATION_SECONDS = {"min": 600, "max": 900, "default": 720}


@dataclass(frozen=True)
class RechargingCheck:
    """One self-reported check-in, each field 0-100."""

    mental_noise: float
    cognitive_fatigue: float
    readiness_to_clear: float

    def __post_init__(self) -> None:
        for name in ("mental_noise", "cognitive_fatigue", "readiness_to_clear"):
            object.__setattr__(self, name, clamp(to_number(getattr(self, name))))

    @classmethod
    def from_dict(cls, data: dict) -> RechargingCheck:
        return cls(
            mental_noise=data.get("mental_noise"),
            cognitive_fatigue=data.get("cognitive_fatigue"),
            readiness_to_clear=data.get("readiness_to_clear"),
        )


@dataclass(frozen=True)
class RechargingResult:
    score: int
    level: str
    deltas: dict[str, float]
    sharpness_boost: float


def _headroom_ratio(delta: float, headroom: float) -> float:
    if delta <= 0 or headroom <= 0:
        return 0.0
    return min(1.0, delta / headroom)


def recharging_level(score: float) -> str:
    for threshold, label in RECHARGING_LEVELS:
        if score >= threshold:
            return label
    return "low"


def recharging_score(pre: RechargingCheck, post: RechargingCheck) -> RechargingResult:
    """Score a session from the improvement relative to the room there was to improve.

    Noise and fatigue reductions are measured against the pre-check level, the
    readiness gain against the distance to 100. Worsening counts as zero.
    """
    noise_delta = pre.mental_noise - post.mental_noise
    fatigue_delta = pre.cognitive_fatigue - post.cognitive_fatigue
    readiness_delta = post.readiness_to_clear - pre.readiness_to_clear

    w = RECHARGING_WEIGHTS
    raw = (
        w["mental_noise"] * _headroom_ratio(noise_delta, pre.mental_noise)
        + w["cognitive_fatigue"] * _headroom_ratio(fatigue_delta, pre.cognitive_fatigue)
        + w["readiness_to_clear"] * _headroom_ratio(readiness_delta, 100 - pre.readiness_to_clear)
    ) * 100
    bonus = post.readiness_to_clear / 100 * READINESS_BONUS_MAX

    score = int(clamp(round(raw + bonus)))
    return RechargingResult(
        score=score,
        level=recharging_level(score),
        deltas={
            "mental_noise": noise_delta,
            "cognitive_fatigue": fatigue_delta,
            "readiness_to_clear": readiness_delta,
        },
        sharpness_boost=sharpness_boost(score),
    )


def sharpness_boost(score: float) -> float:
    return round(clamp(to_number(score, 0.0)) / 100 * SHARPNESS_BOOST_MAX, 1)


def boosted_sharpness(sharpness: float, score: float) -> float:
    """Sharpness for the remainder of a session, never persisted."""
    return clamp(to_number(sharpness) + sharpness_boost(score))


def suggest_mode(pre: RechargingCheck) -> str:
    if pre.mental_noise >= 70 and pre.readiness_to_clear <= 40:
        return "overloaded"
    if pre.cognitive_fatigue >= 65 and pre.mental_noise >= 50:
        return "end-of-day"
    if pre.readiness_to_clear <= 50 and 40 <= pre.mental_noise <= 70:
        return "pre-decision"
    return "ruminating"


def validate_mode(mode: str) -> str:
    return require_choice(mode, RECHARGING_MODES, "recharging mode")
