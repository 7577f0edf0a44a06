"""MCP tools for recharging sessions and the onboarding recovery estimate.

These work with or without storage. Without a service the recharging score
is returned but not logged, and no session Sharpness is reported.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from neuroloop.domains.cognition.domain_logic.recharging import (
    RECHARGING_MODES,
    RechargingCheck,
    recharging_score,
    suggest_mode,
    validate_mode,
)
from neuroloop.domains.cognition.domain_logic.recovery_init import RRIAnswers, compute_rri
from neuroloop.domains.cognition.domain_logic.validation import InvalidInputError

if TYPE_CHECKING:
    from neuroloop.domains.cognition.domain_logic.metrics_service import MetricsService

logger = logging.getLogger(__name__)


def register_recharging_tools(mcp: FastMCP, service: MetricsService | None = None) -> None:
    """Register recharging and recovery-estimate tools on the MCP server."""

    @mcp.tool
    async def score_recharging_session(
        ctx: Context,
        user_id: str,
        pre_mental_noise: float,
        pre_cognitive_fatigue: float,
        pre_readiness_to_clear: float,
        post_mental_noise: float,
        post_cognitive_fatigue: float,
        post_readiness_to_clear: float,
        mode: str = "",
    ) -> str:
        """Score a recharging session from its pre and post check-ins.

        Each check-in value is 0-100. The score rewards lower noise and
        fatigue and a higher readiness to clear, relative to the room there
        was to improve.

        Args:
            user_id: The user who ran the session.
            pre_mental_noise: Mental noise before the session.
            pre_cognitive_fatigue: Cognitive fatigue before the session.
            pre_readiness_to_clear: Readiness to clear before the session.
            post_mental_noise: Mental noise after the session.
            post_cognitive_fatigue: Cognitive fatigue after the session.
            post_readiness_to_clear: Readiness to clear after the session.
            mode: 'overloaded', 'ruminating', 'pre-decision' or 'end-of-day'.
                Suggested from the pre check-in when empty.
        """
        pre = {
            "mental_noise": pre_mental_noise,
            "cognitive_fatigue": pre_cognitive_fatigue,
            "readiness_to_clear": pre_readiness_to_clear,
        }
        post = {
            "mental_noise": post_mental_noise,
            "cognitive_fatigue": post_cognitive_fatigue,
            "readiness_to_clear": post_readiness_to_clear,
        }
        try:
            if service is not None:
                result = service.score_recharging(user_id, pre, post, mode or None)
            else:
                pre_check = RechargingCheck.from_dict(pre)
                scored = recharging_score(pre_check, RechargingCheck.from_dict(post))
                result = {
                    "score": scored.score,
                    "level": scored.level,
                    "mode": validate_mode(mode) if mode else suggest_mode(pre_check),
                    "deltas": scored.deltas,
                    "sharpness_boost": scored.sharpness_boost,
                }
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})

        logger.info("Recharging session for user %s scored %d", user_id, result["score"])
        return json.dumps({"status": "ok", "user_id": user_id, **result})

    @mcp.tool
    async def list_recharging_modes(ctx: Context) -> str:
        """List the recharging modes with a short description of each."""
        return json.dumps({
            "modes": [
                {"id": mode_id, "label": label, "description": description}
                for mode_id, (label, description) in RECHARGING_MODES.items()
            ]
        })

    @mcp.tool
    async def estimate_recovery_readiness(
        ctx: Context,
        sleep_hours: str,
        detox_hours: str,
        mental_state: str,
    ) -> str:
        """Preview the temporary Recovery estimate from onboarding answers.

        Nothing is stored. The value is always between 35 and 55.

        Args:
            sleep_hours: "<5h", "5-6h", "6-7h", "7-8h" or ">8h".
            detox_hours: "almost_none", "<30min", "30-60min", "1-2h" or ">2h".
            mental_state: "very_tired", "bit_tired", "ok", "clear" or "very_clear".
        """
        try:
            rri = compute_rri(
                RRIAnswers(sleep_hours=sleep_hours, detox_hours=detox_hours, mental_state=mental_state)
            )
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({
            "status": "ok",
            "value": rri.value,
            "base": rri.base,
            "sleep_bonus": rri.sleep_bonus,
            "detox_bonus": rri.detox_bonus,
            "mental_state_bonus": rri.mental_state_bonus,
        })
