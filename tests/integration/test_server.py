"""Integration tests for the NeuroLoop metrics MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client, FastMCP

from neuroloop.core.config.settings import EngineConfig
from neuroloop.core.server.app import SERVER_NAME, create_app
from neuroloop.core.server.main import _is_loopback_host
from neuroloop.core.storage.database import MetricsDatabase
from neuroloop.core.storage.encryption import FieldEncryptor
from neuroloop.core.storage.models import OnboardingProfile
from neuroloop.core.storage.repository import MetricsRepository


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# Registered with or without storage
ALWAYS_EXPECTED_TOOLS = [
    "health_check",
    "score_recharging_session",
    "list_recharging_modes",
    "estimate_recovery_readiness",
]

# Registered only when the metrics data bank is available
STORAGE_TOOLS = [
    "get_cognitive_metrics",
    "recommend_exercise_difficulty",
    "get_daily_briefing",
    "get_weekly_progress",
    "set_training_plan",
    "record_exercise_completion",
    "record_task_completion",
    "record_detox_session",
    "record_wearable_snapshot",
    "complete_onboarding",
    "capture_daily_snapshot",
    "get_snapshot_history",
    "get_intraday_events",
    "run_baseline_jobs",
    "update_training_capacity",
]


@pytest.fixture
def client(metrics_repository):
    """Create an MCP client connected to a server with in-memory storage."""
    mcp = create_app(repository_override=metrics_repository)
    return Client(mcp)


@pytest.fixture
def stateless_client():
    """Server without ENCRYPTION_KEY: no persistence, no metric tools."""
    return Client(create_app())


def _tool_names(client) -> list[str]:
    async def _check():
        async with client:
            return [t.name for t in await client.list_tools()]
    return _run(_check())


def _health(client) -> dict:
    async def _check():
        async with client:
            result = await client.call_tool("health_check", {})
            return json.loads(result.content[0].text)
    return _run(_check())


def test_server_starts_and_lists_tools(client):
    """Server should start and expose all registered tools."""
    tool_names = _tool_names(client)
    for expected in ALWAYS_EXPECTED_TOOLS + STORAGE_TOOLS:
        assert expected in tool_names, f"Missing tool: {expected}"


def test_storage_tools_absent_without_storage(stateless_client):
    """Without a data bank only the stateless tools are registered."""
    tool_names = _tool_names(stateless_client)
    for expected in ALWAYS_EXPECTED_TOOLS:
        assert expected in tool_names
    for missing in STORAGE_TOOLS:
        assert missing not in tool_names


def test_health_check_returns_ok(client):
    """health_check should report status, plans and storage."""
    status = _health(client)
    assert status["status"] == "ok"
    assert status["server"] == SERVER_NAME
    assert status["plans_loaded"] == 3
    assert status["storage_enabled"] is True
    assert status["users_tracked"] == 0


def test_health_check_without_storage(stateless_client):
    status = _health(stateless_client)
    assert status["storage_enabled"] is False
    assert "users_tracked" not in status


def test_health_check_reports_engine_config(metrics_repository):
    mcp = create_app(
        repository_override=metrics_repository,
        engine_config_override=EngineConfig(test_mode=True, default_training_plan="light"),
    )
    status = _health(Client(mcp))
    assert status["test_mode"] is True
    assert status["default_training_plan"] == "light"


def test_storage_from_environment(monkeypatch, fernet_key, tmp_path):
    """ENCRYPTION_KEY plus DB_PATH enables the data bank without overrides."""
    monkeypatch.setenv("ENCRYPTION_KEY", fernet_key)
    monkeypatch.setenv("DB_PATH", str(tmp_path / "metrics.db"))
    status = _health(Client(create_app()))
    assert status["storage_enabled"] is True
    assert (tmp_path / "metrics.db").exists()


def test_retired_key_payloads_reencrypted_on_startup(monkeypatch, fernet_key, tmp_path):
    """Data written under a retired key is readable with the new key alone after startup."""
    db_path = str(tmp_path / "metrics.db")
    old_db = MetricsDatabase(db_path)
    old_db.initialize()
    MetricsRepository(old_db, FieldEncryptor(fernet_key)).save_onboarding_profile(
        OnboardingProfile(user_id="u1", completed_at="2026-03-10T08:00:00+00:00",
                          answers={"sleep_hours": "7-8h"})
    )
    old_db.close()

    new_key = FieldEncryptor.generate_key()
    monkeypatch.setenv("ENCRYPTION_KEY", new_key)
    monkeypatch.setenv("ENCRYPTION_PREVIOUS_KEYS", fernet_key)
    monkeypatch.setenv("DB_PATH", db_path)
    assert _health(Client(create_app()))["storage_enabled"] is True

    db = MetricsDatabase(db_path)
    db.initialize()
    profile = MetricsRepository(db, FieldEncryptor(new_key)).get_onboarding_profile("u1")
    db.close()
    assert profile.answers == {"sleep_hours": "7-8h"}


def test_invalid_key_disables_storage(monkeypatch):
    monkeypatch.setenv("ENCRYPTION_KEY", "not-a-fernet-key")
    assert _health(Client(create_app()))["storage_enabled"] is False


def test_plan_resources(client):
    async def _check():
        async with client:
            registry = await client.read_resource("plans://cognition/registry")
            expert = await client.read_resource("plans://cognition/expert")
            return json.loads(registry[0].text), json.loads(expert[0].text)

    registry, expert = _run(_check())
    assert registry["plan_count"] == 3
    assert {p["id"] for p in registry["plans"]} == {"light", "expert", "superhuman"}
    assert expert["xp_target_week"] == 200


def test_prompts(client):
    async def _check():
        async with client:
            prompts = await client.list_prompts()
            result = await client.get_prompt("daily_check_in_prompt", {"user_id": "u1"})
            return [p.name for p in prompts], result.messages[0].content.text

    names, text = _run(_check())
    assert "daily_check_in_prompt" in names
    assert "weekly_review_prompt" in names
    assert "u1" in text


def test_full_day_flow(client):
    """Onboard, train, snapshot and read the report through the server."""
    async def _check():
        async with client:
            await client.call_tool("complete_onboarding", {
                "user_id": "u1", "sleep_hours": "7-8h", "detox_hours": "30-60min",
                "mental_state": "ok", "completed_at": "2026-03-10T08:00:00+00:00",
            })
            await client.call_tool("record_exercise_completion", {
                "user_id": "u1", "area": "reasoning", "thinking_mode": "slow",
                "difficulty": "hard", "score": 80, "completed_at": "2026-03-10T09:00:00+00:00",
            })
            await client.call_tool("capture_daily_snapshot", {"user_id": "u1", "at": "2026-03-10T10:00:00+00:00"})
            result = await client.call_tool(
                "get_cognitive_metrics", {"user_id": "u1", "at": "2026-03-10T10:00:00+00:00"}
            )
            return json.loads(result.content[0].text)

    report = _run(_check())
    assert report["states"]["CT"] == 54
    assert report["recovery"]["source"] == "rri"
    assert report["recovery"]["value"] == 48
    assert report["training_capacity"]["weekly_xp"] == 8


@pytest.mark.parametrize(
    "host, loopback",
    [("127.0.0.1", True), ("localhost", True), ("::1", True), ("0.0.0.0", False), ("10.0.0.5", False)],
)
def test_loopback_detection(host, loopback):
    assert _is_loopback_host(host) is loopback


def test_module_level_mcp_for_fastmcp_run():
    """`fastmcp run .../app.py:mcp` resolves the lazily created server."""
    from neuroloop.core.server import app as app_module

    assert isinstance(app_module.mcp, FastMCP)
    assert app_module.mcp is app_module.mcp
