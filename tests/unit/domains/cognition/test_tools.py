"""Unit tests for the cognition MCP tools, called through an in-process client."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from neuroloop.core.server.app import create_app

AT = "2026-03-10T12:00:00+00:00"

RECHARGING_ARGS = {
    "user_id": "u1",
    "pre_mental_noise": 80,
    "pre_cognitive_fatigue": 70,
    "pre_readiness_to_clear": 20,
    "post_mental_noise": 30,
    "post_cognitive_fatigue": 25,
    "post_readiness_to_clear": 70,
}


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    return json.loads(result.content[0].text)


@pytest.fixture
def client(metrics_repository):
    """MCP client over a server backed by in-memory storage."""
    return Client(create_app(repository_override=metrics_repository))


@pytest.fixture
def stateless_client():
    """MCP client over a server without persistence."""
    return Client(create_app())


def _call(client, tool: str, args: dict) -> dict:
    async def _check():
        async with client:
            return _payload(await client.call_tool(tool, args))
    return _run(_check())


class TestMetricTools:
    def test_get_cognitive_metrics(self, client):
        data = _call(client, "get_cognitive_metrics", {"user_id": "u1", "at": AT})
        assert data["status"] == "ok"
        assert data["states"] == {"AE": 50, "RA": 50, "CT": 50, "IN": 50}
        assert data["sharpness"] == 37.5
        assert data["briefing"]["rule"] == "recovery_critical"

    def test_malformed_timestamp_is_reported(self, client):
        data = _call(client, "get_cognitive_metrics", {"user_id": "u1", "at": "soon"})
        assert data["status"] == "error"
        assert "ISO 8601" in data["message"]

    def test_recommend_difficulty_in_safety_mode(self, client):
        data = _call(client, "recommend_exercise_difficulty", {"user_id": "u1", "at": AT})
        assert data["recommended"] == "easy"
        assert data["safety_mode_active"] is True
        assert data["options"][2]["lock_reason"]["code"] == "REC_VERY_LOW"

    def test_briefing_and_progress(self, client):
        assert _call(client, "get_daily_briefing", {"user_id": "u1", "at": AT})["priority"] == 1
        progress = _call(client, "get_weekly_progress", {"user_id": "u1", "at": AT})
        assert progress["games_xp_target"] == 158
        assert progress["detox_xp_target"] == 42

    def test_set_training_plan(self, client):
        data = _call(client, "set_training_plan", {"user_id": "u1", "plan_id": "superhuman"})
        assert data == {
            "status": "updated",
            "user_id": "u1",
            "training_plan": "superhuman",
            "xp_target_week": 300,
            "tc_cap": 220,
        }
        error = _call(client, "set_training_plan", {"user_id": "u1", "plan_id": "olympian"})
        assert error["status"] == "error"


class TestActivityTools:
    def test_record_exercise(self, client, metrics_repository):
        data = _call(client, "record_exercise_completion", {
            "user_id": "u1", "area": "creativity", "thinking_mode": "slow",
            "difficulty": "easy", "completed_at": AT,
        })
        assert data["status"] == "saved"
        assert data["state"] == "IN"
        assert data["xp_earned"] == 3
        assert metrics_repository.get_metrics("u1").slow_thinking == 51.5

    def test_invalid_enum_is_reported_not_raised(self, client):
        data = _call(client, "record_exercise_completion", {
            "user_id": "u1", "area": "memory", "thinking_mode": "fast", "difficulty": "easy",
        })
        assert data["status"] == "error"
        assert "area" in data["message"]

    def test_record_task_and_detox(self, client):
        task = _call(client, "record_task_completion", {"user_id": "u1", "task_type": "article", "completed_at": AT})
        assert task["rq"]["task_priming"] == 15
        detox = _call(client, "record_detox_session", {"user_id": "u1", "duration_minutes": 420, "completed_at": AT})
        assert detox["kind"] == "detox"
        assert detox["recovery"] == 50

    def test_record_wearable(self, client):
        data = _call(client, "record_wearable_snapshot", {
            "user_id": "u1", "snapshot_date": "2026-03-10", "hrv_ms": 120, "resting_hr": 45,
            "sleep_duration_min": 540, "sleep_efficiency": 98,
        })
        assert data["physio_component"] == 100

    def test_complete_onboarding(self, client):
        data = _call(client, "complete_onboarding", {
            "user_id": "u1", "sleep_hours": ">8h", "detox_hours": "1-2h", "mental_state": "clear",
            "chronological_age": 38, "completed_at": AT,
        })
        assert data["status"] == "saved"
        assert data["rri"]["value"] == 53
        assert data["training_plan"] == "expert"


class TestSnapshotTools:
    def test_capture_twice_then_history(self, client):
        async def _check():
            async with client:
                first = _payload(await client.call_tool("capture_daily_snapshot", {"user_id": "u1", "at": AT}))
                second = _payload(await client.call_tool("capture_daily_snapshot", {"user_id": "u1", "at": AT}))
                history = _payload(await client.call_tool("get_snapshot_history", {"user_id": "u1"}))
                events = _payload(await client.call_tool(
                    "get_intraday_events", {"user_id": "u1", "event_date": "2026-03-10"}
                ))
                return first, second, history, events

        first, second, history, events = _run(_check())
        assert (first["status"], second["status"]) == ("inserted", "unchanged")
        assert history["count"] == 1
        assert history["snapshots"][0]["snapshot_date"] == "2026-03-10"
        assert [e["event_type"] for e in events["events"]] == ["app_open"]

    def test_bad_history_range(self, client):
        data = _call(client, "get_snapshot_history", {"user_id": "u1", "since": "yesterday"})
        assert data["status"] == "error"

    def test_jobs(self, client):
        jobs = _call(client, "run_baseline_jobs", {"user_id": "u1", "today": "2026-03-10"})
        assert jobs["baseline"]["is_baseline_calibrated"] is False
        assert jobs["cognitive_age_daily"] is None

        capacity = _call(client, "update_training_capacity", {"user_id": "u1", "at": AT})
        assert capacity["status"] == "updated"
        assert capacity["training_capacity"] == 50


class TestRechargingTools:
    def test_score_with_storage_logs_session(self, client):
        data = _call(client, "score_recharging_session", RECHARGING_ARGS)
        assert data["score"] == 74
        assert data["level"] == "strong"
        assert data["mode"] == "overloaded"
        assert "session_sharpness" in data

    def test_score_without_storage(self, stateless_client):
        data = _call(stateless_client, "score_recharging_session", {**RECHARGING_ARGS, "mode": "end-of-day"})
        assert data["score"] == 74
        assert data["mode"] == "end-of-day"
        assert "session_sharpness" not in data

    def test_unknown_mode(self, stateless_client):
        data = _call(stateless_client, "score_recharging_session", {**RECHARGING_ARGS, "mode": "nap"})
        assert data["status"] == "error"

    def test_list_modes(self, stateless_client):
        modes = _call(stateless_client, "list_recharging_modes", {})["modes"]
        assert [m["id"] for m in modes] == ["overloaded", "ruminating", "pre-decision", "end-of-day"]

    def test_estimate_recovery_readiness(self, stateless_client):
        data = _call(stateless_client, "estimate_recovery_readiness", {
            "sleep_hours": ">8h", "detox_hours": "1-2h", "mental_state": "clear",
        })
        assert data["value"] == 53
        bad = _call(stateless_client, "estimate_recovery_readiness", {
            "sleep_hours": "plenty", "detox_hours": "1-2h", "mental_state": "clear",
        })
        assert bad["status"] == "error"
