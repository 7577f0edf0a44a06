"""Readiness/difficulty engine.

A pure decision function over recovery, sharpness, readiness, weekly load,
training capacity and plan. It produces a recommended tier plus the status
of every tier. Evaluation order:

1. Safety override: recovery below 40 locks medium and hard, nothing else runs.
2. Hard locks on medium (load above capacity) and hard (recovery, load, readiness).
3. A plan-specific soft suggestion.
4. A locked suggestion is downgraded to the next unlocked tier.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from neuroloop.domains.cognition.domain_logic.metric_models import clamp, to_number
from neuroloop.domains.cognition.domain_logic.temporal_policy import (
    LOW_RECOVERY_THRESHOLD,
    TC_OPTIMAL_MAX_RATIO,
    TC_OPTIMAL_MIN_RATIO,
)
from neuroloop.domains.cognition.domain_logic.validation import require_choice

TIERS = ("easy", "medium", "hard")
PLAN_IDS = ("light", "expert", "superhuman")

SAFETY_LABEL = "Light mode enabled for safety"

HARD_MIN_RECOVERY = 55.0
HARD_MIN_READINESS = 45.0

# Codes tied to load or readiness; test mode lifts these, never the recovery ones
SOFT_LOCK_CODES = frozenset({"LOAD_EXCEEDS_TC", "LOAD_TOO_HIGH", "READINESS_TOO_LOW"})


@dataclass(frozen=True)
class LockReason:
    code: str
    message: str


REC_VERY_LOW = LockReason("REC_VERY_LOW", "Recovery below 40%")
LOAD_EXCEEDS_TC = LockReason("LOAD_EXCEEDS_TC", "Weekly load exceeds capacity")
REC_TOO_LOW = LockReason("REC_TOO_LOW", "Recovery below 55%")
LOAD_TOO_HIGH = LockReason("LOAD_TOO_HIGH", "Weekly load exceeds optimal range")
READINESS_TOO_LOW = LockReason("READINESS_TOO_LOW", "Readiness below 45%")


@dataclass(frozen=True)
class DifficultyInput:
    recovery: float | None
    sharpness: float | None
    readiness: float | None
    weekly_xp: float | None
    training_capacity: float | None
    training_plan: str = "expert"

    def __post_init__(self) -> None:
        require_choice(self.training_plan, PLAN_IDS, "training_plan")


@dataclass(frozen=True)
class DifficultyOption:
    difficulty: str
    status: str  # 'recommended' | 'enabled' | 'locked'
    lock_reason: LockReason | None = None

    def to_dict(self) -> dict:
        data = {"difficulty": self.difficulty, "status": self.status}
        if self.lock_reason is not None:
            data["lock_reason"] = {"code": self.lock_reason.code, "message": self.lock_reason.message}
        return data


@dataclass(frozen=True)
class DifficultyResult:
    recommended: str
    options: list[DifficultyOption]
    rationale: str
    safety_mode_active: bool
    safety_label: str | None = None
    debug: dict = field(default_factory=dict)

    def is_available(self, difficulty: str) -> bool:
        return any(o.difficulty == difficulty and o.status != "locked" for o in self.options)

    def to_dict(self) -> dict:
        return {
            "recommended": self.recommended,
            "options": [o.to_dict() for o in self.options],
            "rationale": self.rationale,
            "safety_mode_active": self.safety_mode_active,
            "safety_label": self.safety_label,
            "inputs": self.debug,
        }


@dataclass(frozen=True)
class _Signals:
    recovery: float
    sharpness: float
    readiness: float
    weekly_xp: float
    tc: float
    opt_min: float
    opt_max: float


# ---------------------------------------------------------------------------
# Locks
# ---------------------------------------------------------------------------

def _medium_lock(s: _Signals) -> LockReason | None:
    if s.weekly_xp > s.tc:
        return LOAD_EXCEEDS_TC
    return None


def _hard_lock(s: _Signals) -> LockReason | None:
    if s.recovery < HARD_MIN_RECOVERY:
        return REC_TOO_LOW
    if s.weekly_xp > s.opt_max:
        return LOAD_TOO_HIGH
    if s.readiness < HARD_MIN_READINESS:
        return READINESS_TOO_LOW
    return None


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------

def _suggest_light(s: _Signals) -> str:
    if s.recovery >= 60 and s.sharpness >= 60 and s.weekly_xp <= s.opt_max:
        return "medium"
    return "easy"


def _suggest_superhuman(s: _Signals) -> str:
    if s.recovery >= 65 and s.weekly_xp <= s.opt_max and s.sharpness >= 65 and s.readiness >= 55:
        return "hard"
    return "medium"


def _suggest_expert(s: _Signals) -> str:
    if s.recovery < 45 or s.weekly_xp < s.opt_min or s.sharpness < 55:
        return "easy"
    if s.recovery >= 70 and s.weekly_xp <= s.opt_max and s.sharpness >= 70 and s.readiness >= 60:
        return "hard"
    if (
        45 <= s.recovery < 70
        and s.opt_min <= s.weekly_xp <= s.opt_max
        and 55 <= s.sharpness < 70
    ):
        return "medium"
    return "easy"


_SUGGESTERS = {
    "light": _suggest_light,
    "expert": _suggest_expert,
    "superhuman": _suggest_superhuman,
}


def _rationale(recommended: str, suggested: str, s: _Signals, plan: str) -> str:
    if recommended != suggested:
        return f"{suggested.capitalize()} is locked right now, so {recommended} is recommended instead."
    if recommended == "hard":
        return "Current state supports a hard session."
    if recommended == "medium":
        return f"Conditions support a steady medium session on the {plan} plan."
    if s.weekly_xp < s.opt_min:
        return "Weekly load is still below your optimal range. Build up with easy sessions."
    return "Current signals favor an easy session."


def _lift_soft_lock(lock: LockReason | None) -> LockReason | None:
    if lock is not None and lock.code in SOFT_LOCK_CODES:
        return None
    return lock


def _option(tier: str, recommended: str, lock: LockReason | None) -> DifficultyOption:
    if lock is not None:
        return DifficultyOption(tier, "locked", lock)
    return DifficultyOption(tier, "recommended" if tier == recommended else "enabled")


def recommend_difficulty(inputs: DifficultyInput, *, test_mode: bool = False) -> DifficultyResult:
    """Recommended exercise tier with the status of every tier.

    ``test_mode`` lifts load and readiness locks for QA; the low-recovery
    safety override and recovery locks always apply.
    """
    tc = max(0.0, to_number(inputs.training_capacity, 0.0))
    s = _Signals(
        recovery=clamp(to_number(inputs.recovery)),
        sharpness=clamp(to_number(inputs.sharpness)),
        readiness=clamp(to_number(inputs.readiness)),
        weekly_xp=max(0.0, to_number(inputs.weekly_xp, 0.0)),
        tc=tc,
        opt_min=tc * TC_OPTIMAL_MIN_RATIO,
        opt_max=tc * TC_OPTIMAL_MAX_RATIO,
    )
    debug = {
        "recovery": s.recovery,
        "sharpness": s.sharpness,
        "readiness": s.readiness,
        "weekly_xp": s.weekly_xp,
        "training_capacity": s.tc,
        "optimal_min": round(s.opt_min),
        "optimal_max": round(s.opt_max),
        "training_plan": inputs.training_plan,
    }

    if s.recovery < LOW_RECOVERY_THRESHOLD:
        return DifficultyResult(
            recommended="easy",
            options=[
                DifficultyOption("easy", "recommended"),
                DifficultyOption("medium", "locked", REC_VERY_LOW),
                DifficultyOption("hard", "locked", REC_VERY_LOW),
            ],
            rationale="Recovery is below 40. Only easy sessions are available until you recover.",
            safety_mode_active=True,
            safety_label=SAFETY_LABEL,
            debug=debug,
        )

    medium_lock = _medium_lock(s)
    own_hard_lock = _hard_lock(s)
    if test_mode:
        medium_lock = _lift_soft_lock(medium_lock)
        own_hard_lock = _lift_soft_lock(own_hard_lock)
    hard_lock = medium_lock or own_hard_lock

    suggested = _SUGGESTERS[inputs.training_plan](s)
    recommended = suggested
    if recommended == "hard" and hard_lock:
        recommended = "medium"
    if recommended == "medium" and medium_lock:
        recommended = "easy"

    safety = medium_lock is not None
    return DifficultyResult(
        recommended=recommended,
        options=[
            _option("easy", recommended, None),
            _option("medium", recommended, medium_lock),
            _option("hard", recommended, hard_lock),
        ],
        rationale=_rationale(recommended, suggested, s, inputs.training_plan),
        safety_mode_active=safety,
        safety_label=SAFETY_LABEL if safety else None,
        debug=debug,
    )
