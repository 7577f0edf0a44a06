"""MCP tools for reading derived cognitive metrics.

Every tool recomputes from storage at call time; nothing here caches a
report between calls.
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


def register_metrics_tools(mcp: FastMCP, service: MetricsService) -> None:
    """Register the metric read tools on the MCP server."""

    @mcp.tool
    async def get_cognitive_metrics(
        ctx: Context,
        user_id: str,
        at: str = "",
    ) -> str:
        """Compute every cognitive metric for a user.

        Returns the four cognitive states after inactivity decay, System 1 and
        System 2 scores, Recovery, Sharpness, Readiness, Dual-Process balance,
        the Cognitive Network Index, Reasoning Quality, Cognitive Age, Training
        Capacity, weekly progress and today's briefing.

        Args:
            user_id: The user to compute metrics for.
            at: Optional ISO 8601 timestamp to compute at. Defaults to now.
        """
        try:
            report = service.compute_report(user_id, at or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "ok", **report.to_dict()})

    @mcp.tool
    async def recommend_exercise_difficulty(
        ctx: Context,
        user_id: str,
        at: str = "",
    ) -> str:
        """Recommend an exercise difficulty and list which levels are locked.

        Args:
            user_id: The user to recommend for.
            at: Optional ISO 8601 timestamp. Defaults to now.
        """
        try:
            result = service.recommend_difficulty(user_id, at or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "ok", **result.to_dict()})

    @mcp.tool
    async def get_daily_briefing(
        ctx: Context,
        user_id: str,
        at: str = "",
    ) -> str:
        """Return the one-line daily briefing for the user's current state.

        Args:
            user_id: The user to brief.
            at: Optional ISO 8601 timestamp. Defaults to now.
        """
        try:
            briefing = service.daily_briefing(user_id, at or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "ok", **briefing.to_dict()})

    @mcp.tool
    async def get_weekly_progress(
        ctx: Context,
        user_id: str,
        at: str = "",
    ) -> str:
        """Return capped XP progress per category over the last 7 days.

        Args:
            user_id: The user to report on.
            at: Optional ISO 8601 timestamp. Defaults to now.
        """
        try:
            progress = service.weekly_progress(user_id, at or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "ok", **progress.to_dict()})

    @mcp.tool
    async def set_training_plan(
        ctx: Context,
        user_id: str,
        plan_id: str,
    ) -> str:
        """Switch a user to another training plan.

        Args:
            user_id: The user to update.
            plan_id: One of the registered plan ids (light, expert, superhuman).
        """
        try:
            plan = service.set_training_plan(user_id, plan_id)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({
            "status": "updated",
            "user_id": user_id,
            "training_plan": plan.id,
            "xp_target_week": plan.xp_target_week,
            "tc_cap": plan.tc_cap,
        })
