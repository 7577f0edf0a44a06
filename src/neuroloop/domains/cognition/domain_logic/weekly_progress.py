"""Weekly capped progress over the rolling LOAD window.

XP beyond a category's target does not count towards the total.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from neuroloop.domains.cognition.domain_logic.metric_models import to_number
from neuroloop.domains.cognition.domain_logic.plan_loader import TrainingPlan

# Tasks are counted for adherence only and earn no XP
TASKS_XP_TARGET = 0


def safe_progress(value: float, target: float) -> float:
    """Percent of target reached, 0 when the target is 0, capped at 100."""
    if target <= 0:
        return 0.0
    return min(100.0, max(0.0, value) / target * 100)


def detox_xp(detox_minutes: float, plan: TrainingPlan) -> int:
    return round(max(0.0, to_number(detox_minutes, 0.0)) * plan.detox.xp_per_minute)


@dataclass(frozen=True)
class WeeklyProgress:
    raw_games_xp: float
    raw_tasks_xp: float
    raw_detox_xp: float
    capped_games_xp: float
    capped_tasks_xp: float
    capped_detox_xp: float
    games_xp_target: float
    tasks_xp_target: float
    detox_xp_target: float
    capped_total_xp: float
    total_xp_target: float
    games_complete: bool
    tasks_complete: bool
    detox_complete: bool
    all_categories_complete: bool
    games_progress: float
    tasks_progress: float
    detox_progress: float
    total_progress: float

    def to_dict(self) -> dict:
        return asdict(self)


def weekly_progress(
    plan: TrainingPlan,
    games_xp: float | None,
    tasks_xp: float | None,
    detox_xp_earned: float | None,
) -> WeeklyProgress:
    detox_target = round(plan.detox.weekly_minutes * plan.detox.xp_per_minute)
    tasks_target = TASKS_XP_TARGET
    games_target = max(0, plan.xp_target_week - detox_target - tasks_target)

    raw_games = max(0.0, to_number(games_xp, 0.0))
    raw_tasks = max(0.0, to_number(tasks_xp, 0.0))
    raw_detox = max(0.0, to_number(detox_xp_earned, 0.0))

    capped_games = min(raw_games, games_target)
    capped_tasks = min(raw_tasks, tasks_target)
    capped_detox = min(raw_detox, detox_target)
    capped_total = min(capped_games + capped_tasks + capped_detox, plan.xp_target_week)

    games_complete = games_target > 0 and raw_games >= games_target
    tasks_complete = tasks_target > 0 and raw_tasks >= tasks_target
    detox_complete = detox_target > 0 and raw_detox >= detox_target
    # Categories without a target never gate overall completion
    gated = [
        done
        for done, target in (
            (games_complete, games_target),
            (tasks_complete, tasks_target),
            (detox_complete, detox_target),
        )
        if target > 0
    ]

    return WeeklyProgress(
        raw_games_xp=raw_games,
        raw_tasks_xp=raw_tasks,
        raw_detox_xp=raw_detox,
        capped_games_xp=capped_games,
        capped_tasks_xp=capped_tasks,
        capped_detox_xp=capped_detox,
        games_xp_target=games_target,
        tasks_xp_target=tasks_target,
        detox_xp_target=detox_target,
        capped_total_xp=capped_total,
        total_xp_target=plan.xp_target_week,
        games_complete=games_complete,
        tasks_complete=tasks_complete,
        detox_complete=detox_complete,
        all_categories_complete=bool(gated) and all(gated),
        games_progress=safe_progress(capped_games, games_target),
        tasks_progress=safe_progress(capped_tasks, tasks_target),
        detox_progress=safe_progress(capped_detox, detox_target),
        total_progress=safe_progress(capped_total, plan.xp_target_week),
    )
