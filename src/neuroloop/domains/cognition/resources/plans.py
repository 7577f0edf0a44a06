"""MCP Resources for training plan discovery."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from fastmcp import FastMCP

from neuroloop.domains.cognition.domain_logic.validation import InvalidInputError

if TYPE_CHECKING:
    from neuroloop.domains.cognition.domain_logic.plan_loader import PlanRegistry


def register_plan_resources(mcp: FastMCP, registry: PlanRegistry) -> None:
    """Register training plan resources on the MCP server."""

    @mcp.resource("plans://cognition/registry")
    def training_plan_registry_resource() -> str:
        """Discover the available training plans and their weekly targets."""
        plans = registry.all()
        return json.dumps(
            {
                "domain": "cognition",
                "plan_count": len(plans),
                "plans": [p.to_dict() for p in plans],
            },
            indent=2,
        )

    @mcp.resource("plans://cognition/{plan_id}")
    def training_plan_resource(plan_id: str) -> str:
        """Full definition of one training plan."""
        try:
            plan = registry.get(plan_id)
        except InvalidInputError as exc:
            return json.dumps({"status": "error", "message": str(exc)})
        return json.dumps(plan.to_dict(), indent=2)
