"""MCP Prompts for the daily and weekly training journeys."""

from __future__ import annotations

from fastmcp import FastMCP


def register_cognition_prompts(mcp: FastMCP) -> None:
    """Register cognition domain MCP prompts."""

    @mcp.prompt()
    def daily_check_in_prompt(user_id: str) -> str:
        """Prompt template for the start-of-day check-in."""
        return f"""Start my daily check-in (user id: {user_id}).

1. Capture today's snapshot of my cognitive metrics
2. Tell me my Sharpness, Readiness, Recovery and Reasoning Quality
3. Read me today's briefing
4. Recommend a difficulty for my first training session and explain any locks

Keep it short. If my Recovery is low, say so first."""

    @mcp.prompt()
    def weekly_review_prompt(user_id: str) -> str:
        """Prompt template for reviewing the last seven days of training."""
        return f"""Let's review my training week (user id: {user_id}). I'd like to:

1. See my capped XP progress for games and detox against my plan's targets
2. Check how my daily snapshots moved over the week
3. Know whether my training load sits inside my optimal range
4. Decide whether to stay on my current plan or switch

Please base everything on my stored metrics."""
