"""Reasoning Quality (RQ).

RQ measures the quality of System-2 reasoning. It does not earn XP of its own:
S2 games reach it only through S2 consistency, tasks only through priming.

    RQ = clamp(0.50 * S2 + 0.30 * S2_consistency + 0.20 * task_priming - decay, floor, 100)

with ``floor = max(0, S2 - 10)``.
"""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from neuroloop.domains.cognition.domain_logic.metric_models import clamp, round1, to_number
from neuroloop.domains.cognition.domain_logic.temporal_policy import (
    RQ_DECAY_INACTIVITY_DAYS,
    RQ_DECAY_PER_WEEK,
    RQ_FLOOR_BELOW_S2,
    TASK_PRIMING_WINDOW_DAYS,
    elapsed_days,
    task_priming_weight,
)

RQ_WEIGHTS = {"s2_core": 0.50, "s2_consistency": 0.30, "task_priming": 0.20}

S2_CONSISTENCY_WINDOW = 10
S2_CONSISTENCY_MIN_SESSIONS = 5
S2_CONSISTENCY_FALLBACK = 50.0
S2_CONSISTENCY_STDDEV_SCALE = 50.0

TASK_TYPE_WEIGHTS = {"podcast": 12.0, "article": 15.0, "book": 20.0}
TASK_POINTS_PER_EFFECTIVE_TASK = 20.0
TASK_FULL_WEIGHT_COUNT = 5


@dataclass(frozen=True)
class PrimingTask:
    task_type: str
    completed_at: datetime


@dataclass(frozen=True)
class RQResult:
    rq: float
    s2_core: float
    s2_consistency: float
    task_priming: float
    decay: float
    floor: float

    @property
    def is_decaying(self) -> bool:
        return self.decay > 0

    def to_dict(self) -> dict:
        return {
            "rq": self.rq,
            "s2_core": self.s2_core,
            "s2_consistency": self.s2_consistency,
            "task_priming": self.task_priming,
            "contributions": {
                "s2_core": round1(self.s2_core * RQ_WEIGHTS["s2_core"]),
                "s2_consistency": round1(self.s2_consistency * RQ_WEIGHTS["s2_consistency"]),
                "task_priming": round1(self.task_priming * RQ_WEIGHTS["task_priming"]),
            },
            "decay": self.decay,
            "is_decaying": self.is_decaying,
        }


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

def s2_consistency(scores: Sequence[float]) -> float:
    """100 minus the normalized spread of the last ten S2 game scores.

    Fewer than five sessions is not enough signal and reads as 50.
    """
    values = [clamp(to_number(s)) for s in scores]
    if len(values) < S2_CONSISTENCY_MIN_SESSIONS:
        return S2_CONSISTENCY_FALLBACK
    recent = values[-S2_CONSISTENCY_WINDOW:]
    std_dev = statistics.pstdev(recent)
    return clamp(100 - clamp(std_dev / S2_CONSISTENCY_STDDEV_SCALE * 100))


def s2_session_quality(accuracy: float, consistency: float, coherence: float) -> float:
    """Quality of one S2 session in [0, 1]."""
    return (
        0.5 * clamp(to_number(accuracy, 0.0) / 100, 0, 1)
        + 0.3 * clamp(to_number(consistency, 0.0) / 100, 0, 1)
        + 0.2 * clamp(to_number(coherence, 0.0) / 100, 0, 1)
    )


def s2_consistency_delta(session_quality: float) -> int:
    if session_quality >= 0.70:
        return 2
    if session_quality >= 0.50:
        return 0
    return -1


def task_priming(tasks: Sequence[PrimingTask], now: datetime) -> float:
    """Recency-weighted priming from tasks in the last seven days.

    Five tasks count fully, further tasks at half weight.
    """
    total = 0.0
    counted = 0
    for task in tasks:
        days_ago = elapsed_days(now, task.completed_at)
        if task.completed_at > now or days_ago > TASK_PRIMING_WINDOW_DAYS:
            continue
        total += TASK_TYPE_WEIGHTS.get(task.task_type, TASK_TYPE_WEIGHTS["podcast"]) * task_priming_weight(
            days_ago
        )
        counted += 1
    if counted == 0:
        return 0.0
    effective = min(counted, TASK_FULL_WEIGHT_COUNT) + 0.5 * max(0, counted - TASK_FULL_WEIGHT_COUNT)
    return clamp(min(total, effective * TASK_POINTS_PER_EFFECTIVE_TASK))


def rq_decay(
    last_s2_game_at: datetime | None, last_task_at: datetime | None, now: datetime
) -> float:
    """2 points per week once neither an S2 game nor a task happened for 14 days."""
    candidates = [ts for ts in (last_s2_game_at, last_task_at) if ts is not None]
    if not candidates:
        return 0.0
    days = elapsed_days(now, max(candidates))
    if days < RQ_DECAY_INACTIVITY_DAYS:
        return 0.0
    weeks = (days - RQ_DECAY_INACTIVITY_DAYS) // 7 + 1
    return float(weeks * RQ_DECAY_PER_WEEK)


# ---------------------------------------------------------------------------
# RQ
# ---------------------------------------------------------------------------

def reasoning_quality(
    s2: float | None,
    s2_game_scores: Sequence[float],
    tasks: Sequence[PrimingTask],
    now: datetime,
    *,
    last_s2_game_at: datetime | None = None,
    last_task_at: datetime | None = None,
) -> RQResult:
    s2_core = clamp(to_number(s2))
    consistency = s2_consistency(s2_game_scores)
    priming = task_priming(tasks, now)

    base = (
        RQ_WEIGHTS["s2_core"] * s2_core
        + RQ_WEIGHTS["s2_consistency"] * consistency
        + RQ_WEIGHTS["task_priming"] * priming
    )
    decay = rq_decay(last_s2_game_at, last_task_at, now)
    floor = max(0.0, s2_core - RQ_FLOOR_BELOW_S2)
    rq = clamp(base - decay, floor, 100)

    return RQResult(
        rq=round1(rq),
        s2_core=round1(s2_core),
        s2_consistency=round1(consistency),
        task_priming=round1(priming),
        decay=decay,
        floor=round1(floor),
    )
