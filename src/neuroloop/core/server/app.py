"""NeuroLoop Cognitive Metrics MCP Server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery (`fastmcp run src/neuroloop/core/server/app.py:mcp`)
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from neuroloop.core.config.settings import EngineConfig, get_settings
from neuroloop.core.storage.database import MetricsDatabase
from neuroloop.core.storage.encryption import EncryptionError, FieldEncryptor
from neuroloop.core.storage.repository import MetricsRepository
from neuroloop.domains.cognition.domain_logic.metrics_service import MetricsService
from neuroloop.domains.cognition.domain_logic.plan_loader import PlanRegistry, build_plan_registry
from neuroloop.domains.cognition.prompts.cognition_prompts import register_cognition_prompts
from neuroloop.domains.cognition.resources.plans import register_plan_resources
from neuroloop.domains.cognition.tools.recharging_tools import register_recharging_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "NeuroLoop Cognitive Metrics"
SERVER_VERSION = "0.1.0"


def _split_keys(raw: str) -> list[str]:
    return [k.strip() for k in raw.split(",") if k.strip()]


def create_app(
    *,
    repository_override: MetricsRepository | None = None,
    engine_config_override: EngineConfig | None = None,
    plan_registry_override: PlanRegistry | None = None,
) -> FastMCP:
    """Create and configure the NeuroLoop metrics MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Loads the training plan registry
    3. Initializes the encrypted storage layer (metrics data bank)
    4. Builds the metrics service on top of storage
    5. Registers all tools, resources, and prompts
    """
    settings = get_settings()
    config = engine_config_override or EngineConfig.from_settings(settings)

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "NeuroLoop cognitive training server. Tracks four cognitive states, "
            "derives Sharpness, Readiness, Recovery, Reasoning Quality and Cognitive Age, "
            "and recommends exercise difficulty from the user's current load and recovery."
        ),
    )

    # --- Training plans ---
    if plan_registry_override is not None:
        plans = plan_registry_override
    else:
        plans = build_plan_registry(settings.plans_dir or None)
    logger.info("Loaded %d training plans", len(plans))
    if config.default_training_plan not in plans.ids():
        logger.warning(
            "Default training plan %r is not in the registry", config.default_training_plan
        )

    # --- Initialize encrypted storage (metrics data bank) ---
    repository: MetricsRepository | None = None
    if repository_override is not None:
        repository = repository_override
    elif settings.encryption_key:
        try:
            retired_keys = _split_keys(settings.encryption_previous_keys)
            encryptor = FieldEncryptor(settings.encryption_key, retired_keys)
            metrics_db = MetricsDatabase(settings.db_path)
            metrics_db.initialize()
            repository = MetricsRepository(metrics_db, encryptor)
            if retired_keys:
                repository.reencrypt_payloads()
            logger.info(
                "Metrics data bank initialized: %s (schema v%d)",
                settings.db_path,
                metrics_db.get_schema_version(),
            )
        except EncryptionError as exc:
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence, metric tools are disabled")
    else:
        logger.info(
            "No ENCRYPTION_KEY configured, running without persistence. "
            "Set ENCRYPTION_KEY to enable the metrics data bank."
        )

    service = MetricsService(repository, config, plans) if repository is not None else None

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "plans_loaded": len(plans),
            "default_training_plan": config.default_training_plan,
            "test_mode": config.test_mode,
            "storage_enabled": repository is not None,
        }
        if repository is not None:
            status["users_tracked"] = repository.count_users()
        return status

    register_recharging_tools(server, service)
    logger.info("Recharging tools registered")

    # --- Register metric, activity and snapshot tools (requires storage) ---
    if service is not None:
        from neuroloop.domains.cognition.tools.activity_tools import register_activity_tools
        from neuroloop.domains.cognition.tools.metrics_tools import register_metrics_tools
        from neuroloop.domains.cognition.tools.snapshot_tools import register_snapshot_tools

        register_metrics_tools(server, service)
        register_activity_tools(server, service)
        register_snapshot_tools(server, service)
        logger.info("Metric, activity and snapshot tools registered")

    # --- Register resources ---
    register_plan_resources(server, plans)

    # --- Register prompts ---
    register_cognition_prompts(server)

    return server


# Module-level instance for FastMCP discovery (`fastmcp run .../app.py:mcp`).
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
