"""Consecutive low-recovery day tracking.

The streak advances at most once per calendar day: a second call on the same
day returns the stored values untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from neuroloop.core.storage.models import MetricsRecord
from neuroloop.domains.cognition.domain_logic.metric_models import clamp, to_number
from neuroloop.domains.cognition.domain_logic.temporal_policy import LOW_RECOVERY_THRESHOLD


@dataclass(frozen=True)
class RecoveryStreak:
    rec_snapshot_date: str | None
    rec_snapshot_value: float | None
    low_rec_streak_days: int
    advanced: bool


def next_recovery_streak(record: MetricsRecord | None, today: date, recovery: float | None) -> RecoveryStreak:
    """Streak after observing today's recovery value."""
    today_str = today.isoformat()
    current_days = record.low_rec_streak_days if record else 0
    if record is not None and record.rec_snapshot_date == today_str:
        return RecoveryStreak(
            rec_snapshot_date=record.rec_snapshot_date,
            rec_snapshot_value=record.rec_snapshot_value,
            low_rec_streak_days=current_days,
            advanced=False,
        )

    rec = clamp(to_number(recovery))
    days = current_days + 1 if rec < LOW_RECOVERY_THRESHOLD else 0
    return RecoveryStreak(
        rec_snapshot_date=today_str,
        rec_snapshot_value=rec,
        low_rec_streak_days=days,
        advanced=True,
    )
