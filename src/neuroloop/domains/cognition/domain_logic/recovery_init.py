"""Recovery Readiness Init (RRI).

A temporary Recovery placeholder derived from three onboarding answers. It
stands in for Recovery until the first detox or walk session is logged, or
for at most 72 hours after onboarding, whichever comes first. It is never
stored as a baseline.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from neuroloop.domains.cognition.domain_logic.metric_models import clamp
from neuroloop.domains.cognition.domain_logic.temporal_policy import RRI_VALIDITY_HOURS
from neuroloop.domains.cognition.domain_logic.validation import require_choice

RRI_BASE = 35
RRI_MIN = 35
RRI_MAX = 55

SLEEP_BONUS = {"<5h": 0, "5-6h": 0, "6-7h": 4, "7-8h": 8, ">8h": 8}
DETOX_BONUS = {"almost_none": 0, "<30min": 0, "30-60min": 3, "1-2h": 6, ">2h": 6}
MENTAL_STATE_BONUS = {"very_tired": 0, "bit_tired": 0, "ok": 2, "clear": 4, "very_clear": 4}


@dataclass(frozen=True)
class RRIAnswers:
    sleep_hours: str
    detox_hours: str
    mental_state: str

    def __post_init__(self) -> None:
        require_choice(self.sleep_hours, SLEEP_BONUS, "sleep_hours")
        require_choice(self.detox_hours, DETOX_BONUS, "detox_hours")
        require_choice(self.mental_state, MENTAL_STATE_BONUS, "mental_state")

    @classmethod
    def from_dict(cls, data: dict) -> RRIAnswers:
        return cls(
            sleep_hours=data.get("sleep_hours", ""),
            detox_hours=data.get("detox_hours", ""),
            mental_state=data.get("mental_state", ""),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "sleep_hours": self.sleep_hours,
            "detox_hours": self.detox_hours,
            "mental_state": self.mental_state,
        }


@dataclass(frozen=True)
class RRIResult:
    value: float
    base: int
    sleep_bonus: int
    detox_bonus: int
    mental_state_bonus: int


def compute_rri(answers: RRIAnswers) -> RRIResult:
    sleep = SLEEP_BONUS[answers.sleep_hours]
    detox = DETOX_BONUS[answers.detox_hours]
    mental = MENTAL_STATE_BONUS[answers.mental_state]
    return RRIResult(
        value=clamp(RRI_BASE + sleep + detox + mental, RRI_MIN, RRI_MAX),
        base=RRI_BASE,
        sleep_bonus=sleep,
        detox_bonus=detox,
        mental_state_bonus=mental,
    )


def is_rri_active(onboarded_at: datetime | None, now: datetime, has_real_recovery_data: bool) -> bool:
    if onboarded_at is None or has_real_recovery_data:
        return False
    return now - onboarded_at < timedelta(hours=RRI_VALIDITY_HOURS)
