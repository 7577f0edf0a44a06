"""MCP tools for logging training activity.

Games credit XP to one cognitive state. Tasks prime Reasoning Quality.
Detox and walking sessions feed Recovery. Wearable readings feed the
physiological part of Readiness.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from neuroloop.domains.cognition.domain_logic.validation import InvalidInputError

if TYPE_CHECKING:
    from neuroloop.domains.cognition.domain_logic.metrics_service import MetricsService

logger = logging.getLogger(__name__)


def register_activity_tools(mcp: FastMCP, service: MetricsService) -> None:
    """Register activity logging tools on the MCP server."""

    @mcp.tool
    async def record_exercise_completion(
        ctx: Context,
        user_id: str,
        area: str,
        thinking_mode: str,
        difficulty: str,
        score: float | None = None,
        completed_at: str = "",
    ) -> str:
        """Record a completed training game and credit its XP.

        Args:
            user_id: The user who played.
            area: Training area: 'focus', 'reasoning', 'creativity' or 'insight'.
            thinking_mode: 'fast' (System 1) or 'slow' (System 2).
            difficulty: 'easy' (3 XP), 'medium' (5 XP) or 'hard' (8 XP).
            score: Optional session score 0-100, used by Reasoning Quality.
            completed_at: ISO 8601 completion time. Defaults to now.
        """
        try:
            result = service.record_exercise(
                user_id,
                area=area,
                thinking_mode=thinking_mode,
                difficulty=difficulty,
                score=score,
                completed_at=completed_at or None,
            )
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "saved", **result})

    @mcp.tool
    async def record_task_completion(
        ctx: Context,
        user_id: str,
        task_type: str,
        completed_at: str = "",
    ) -> str:
        """Record a completed reading or listening task.

        Args:
            user_id: The user who completed the task.
            task_type: 'podcast', 'article' or 'book'.
            completed_at: ISO 8601 completion time. Defaults to now.
        """
        try:
            result = service.record_task(user_id, task_type, completed_at or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "saved", **result})

    @mcp.tool
    async def record_detox_session(
        ctx: Context,
        user_id: str,
        duration_minutes: float,
        kind: str = "detox",
        completed_at: str = "",
    ) -> str:
        """Record a digital-detox or walking session.

        Walking minutes count at half weight towards Recovery.

        Args:
            user_id: The user who completed the session.
            duration_minutes: Session length in minutes.
            kind: 'detox' or 'walk'.
            completed_at: ISO 8601 completion time. Defaults to now.
        """
        try:
            result = service.record_detox(user_id, kind, duration_minutes, completed_at or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "saved", **result})

    @mcp.tool
    async def record_wearable_snapshot(
        ctx: Context,
        user_id: str,
        snapshot_date: str,
        hrv_ms: float | None = None,
        resting_hr: float | None = None,
        sleep_duration_min: float | None = None,
        sleep_efficiency: float | None = None,
    ) -> str:
        """Store one day of wearable readings.

        Args:
            user_id: The wearer.
            snapshot_date: Day of the readings (YYYY-MM-DD).
            hrv_ms: Heart rate variability in milliseconds.
            resting_hr: Resting heart rate in BPM.
            sleep_duration_min: Total sleep in minutes.
            sleep_efficiency: Sleep efficiency percentage.
        """
        try:
            result = service.record_wearable(
                user_id,
                snapshot_date,
                hrv_ms=hrv_ms,
                resting_hr=resting_hr,
                sleep_duration_min=sleep_duration_min,
                sleep_efficiency=sleep_efficiency,
            )
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "saved", **result})

    @mcp.tool
    async def complete_onboarding(
        ctx: Context,
        user_id: str,
        sleep_hours: str,
        detox_hours: str,
        mental_state: str,
        chronological_age: int | None = None,
        training_plan: str = "",
        completed_at: str = "",
    ) -> str:
        """Store onboarding answers and seed the user's metrics.

        The answers produce a temporary Recovery estimate that is used for up to
        72 hours, until real detox or walking data exists.

        Args:
            user_id: The new user.
            sleep_hours: Typical sleep: "<5h", "5-6h", "6-7h", "7-8h" or ">8h".
            detox_hours: Daily screen-free time: "almost_none", "<30min", "30-60min", "1-2h" or ">2h".
            mental_state: "very_tired", "bit_tired", "ok", "clear" or "very_clear".
            chronological_age: Age in years, anchors Cognitive Age.
            training_plan: 'light', 'expert' or 'superhuman'. Defaults to the server default.
            completed_at: ISO 8601 completion time. Defaults to now.
        """
        try:
            result = service.complete_onboarding(
                user_id,
                answers={
                    "sleep_hours": sleep_hours,
                    "detox_hours": detox_hours,
                    "mental_state": mental_state,
                },
                chronological_age=chronological_age,
                training_plan=training_plan or None,
                completed_at=completed_at or None,
            )
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        logger.info("Onboarding completed for user %s", user_id)
        return json.dumps({"status": "saved", "user_id": user_id, **result})
