"""MCP tools for daily snapshots, intraday history and the scheduled jobs.

A host scheduler (or the client on app open) calls ``capture_daily_snapshot``
and ``run_baseline_jobs`` once a day and ``update_training_capacity`` once a
week. All three are safe to repeat.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from neuroloop.domains.cognition.domain_logic.validation import InvalidInputError

if TYPE_CHECKING:
    from neuroloop.domains.cognition.domain_logic.metrics_service import MetricsService

logger = logging.getLogger(__name__)


def register_snapshot_tools(mcp: FastMCP, service: MetricsService) -> None:
    """Register snapshot, history and job tools on the MCP server."""

    @mcp.tool
    async def capture_daily_snapshot(
        ctx: Context,
        user_id: str,
        at: str = "",
    ) -> str:
        """Store today's metric snapshot and advance the low-recovery streak.

        Repeated calls on the same day refresh the snapshot and never advance
        the streak twice.

        Args:
            user_id: The user to snapshot.
            at: Optional ISO 8601 timestamp. Defaults to now.
        """
        try:
            result = service.capture_daily_snapshot(user_id, at or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"user_id": user_id, **result})

    @mcp.tool
    async def get_snapshot_history(
        ctx: Context,
        user_id: str,
        since: str = "",
        until: str = "",
    ) -> str:
        """List daily snapshots, oldest first.

        Args:
            user_id: The user to list.
            since: Optional first day (YYYY-MM-DD), inclusive.
            until: Optional last day (YYYY-MM-DD), inclusive.
        """
        try:
            snapshots = service.snapshot_history(user_id, since or None, until or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({
            "user_id": user_id,
            "count": len(snapshots),
            "snapshots": [asdict(s) for s in snapshots],
        })

    @mcp.tool
    async def get_intraday_events(
        ctx: Context,
        user_id: str,
        event_date: str,
    ) -> str:
        """List the metric events logged on one day, in time order.

        Args:
            user_id: The user to list.
            event_date: The day to list (YYYY-MM-DD).
        """
        try:
            events = service.intraday_events(user_id, event_date)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({
            "user_id": user_id,
            "event_date": event_date,
            "count": len(events),
            "events": [asdict(e) for e in events],
        })

    @mcp.tool
    async def run_baseline_jobs(
        ctx: Context,
        user_id: str,
        today: str = "",
    ) -> str:
        """Refresh the Cognitive Age baseline and today's regression tracking.

        Args:
            user_id: The user to process.
            today: Optional day to process (YYYY-MM-DD). Defaults to today (UTC).
        """
        try:
            result = service.run_baseline_jobs(user_id, today or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "ok", "user_id": user_id, **result})

    @mcp.tool
    async def update_training_capacity(
        ctx: Context,
        user_id: str,
        at: str = "",
    ) -> str:
        """Apply the weekly Training Capacity adaptation.

        Args:
            user_id: The user to update.
            at: Optional ISO 8601 timestamp. Defaults to now.
        """
        try:
            result = service.update_training_capacity(user_id, at or None)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps({"status": "updated", "user_id": user_id, **result})
