"""Tests for MetricsRepository: CRUD with in-memory SQLite."""

from __future__ import annotations

from datetime import date

import pytest

from conftest import make_snapshot
from neuroloop.core.storage.encryption import FieldEncryptor
from neuroloop.core.storage.models import (
    CognitiveAgeDaily,
    CognitiveBaseline,
    DetoxSession,
    ExerciseCompletion,
    IntradayMetricEvent,
    OnboardingProfile,
    TaskCompletion,
    WearableSnapshot,
)
from neuroloop.core.storage.repository import MetricsRepository, RepositoryError


@pytest.fixture
def repo(metrics_repository: MetricsRepository) -> MetricsRepository:
    return metrics_repository


def _event(**overrides) -> IntradayMetricEvent:
    defaults = dict(
        id="",
        user_id="u1",
        event_date="2026-03-01",
        event_timestamp="2026-03-01T09:00:00+00:00",
        event_type="game",
        readiness=61.0,
        sharpness=58.0,
        recovery=44.0,
        reasoning_quality=52.0,
        event_details={"xp": 5},
    )
    defaults.update(overrides)
    return IntradayMetricEvent(**defaults)


class TestMetricsRecord:
    def test_missing_record_is_none(self, repo):
        assert repo.get_metrics("nobody") is None

    def test_default_record_has_all_states_at_50(self, repo):
        record = repo.create_default_metrics("u1", "expert")
        assert record.focus_stability == 50
        assert record.fast_thinking == 50
        assert record.reasoning_accuracy == 50
        assert record.slow_thinking == 50
        assert record.training_plan == "expert"
        assert record.low_rec_streak_days == 0

    def test_create_default_leaves_existing_record(self, repo):
        record = repo.create_default_metrics("u1")
        record.focus_stability = 72.5
        repo.save_metrics(record)

        again = repo.create_default_metrics("u1")
        assert again.focus_stability == 72.5
        assert repo.count_users() == 1

    def test_save_and_reload(self, repo):
        record = repo.create_default_metrics("u1")
        record.slow_thinking = 64.0
        record.last_in_xp_at = "2026-03-01T08:00:00+00:00"
        record.training_capacity = 95.0
        repo.save_metrics(record)

        loaded = repo.get_metrics("u1")
        assert loaded.slow_thinking == 64.0
        assert loaded.last_in_xp_at == "2026-03-01T08:00:00+00:00"
        assert loaded.training_capacity == 95.0

    def test_save_rejects_malformed_timestamp(self, repo):
        record = repo.create_default_metrics("u1")
        record.last_xp_at = "yesterday"
        with pytest.raises(RepositoryError, match="last_xp_at"):
            repo.save_metrics(record)

    def test_update_recovery_streak(self, repo):
        repo.create_default_metrics("u1")
        repo.update_recovery_streak(
            "u1", rec_snapshot_date="2026-03-02", rec_snapshot_value=31.0, low_rec_streak_days=2
        )
        loaded = repo.get_metrics("u1")
        assert loaded.rec_snapshot_date == "2026-03-02"
        assert loaded.rec_snapshot_value == 31.0
        assert loaded.low_rec_streak_days == 2

    def test_update_recovery_streak_without_record_raises(self, repo):
        with pytest.raises(RepositoryError, match="No metrics record"):
            repo.update_recovery_streak(
                "ghost", rec_snapshot_date="2026-03-02", rec_snapshot_value=31.0, low_rec_streak_days=1
            )


class TestDailySnapshots:
    def test_first_write_inserts(self, repo):
        assert repo.upsert_daily_snapshot(make_snapshot("u1", date(2026, 3, 1))) == "inserted"

    def test_identical_second_write_leaves_row_unchanged(self, repo):
        snapshot = make_snapshot("u1", date(2026, 3, 1), 61.0)
        repo.upsert_daily_snapshot(snapshot)
        before = repo.get_daily_snapshot("u1", "2026-03-01")

        assert repo.upsert_daily_snapshot(snapshot) == "unchanged"
        after = repo.get_daily_snapshot("u1", "2026-03-01")
        assert after == before

    def test_changed_value_updates_in_place(self, repo):
        repo.upsert_daily_snapshot(make_snapshot("u1", date(2026, 3, 1), 61.0))
        status = repo.upsert_daily_snapshot(make_snapshot("u1", date(2026, 3, 1), 61.0, readiness=70.0))

        assert status == "updated"
        assert repo.get_daily_snapshot("u1", "2026-03-01").readiness == 70.0
        assert len(repo.get_daily_snapshots("u1")) == 1

    def test_range_query_is_inclusive_and_ascending(self, repo):
        for day in (5, 1, 3, 7):
            repo.upsert_daily_snapshot(make_snapshot("u1", date(2026, 3, day)))
        repo.upsert_daily_snapshot(make_snapshot("u2", date(2026, 3, 3)))

        rows = repo.get_daily_snapshots("u1", since="2026-03-03", until="2026-03-07")
        assert [r.snapshot_date for r in rows] == ["2026-03-03", "2026-03-05", "2026-03-07"]

    def test_malformed_date_rejected(self, repo):
        with pytest.raises(RepositoryError, match="snapshot_date"):
            repo.upsert_daily_snapshot(make_snapshot("u1", date(2026, 3, 1), snapshot_date="03/01/2026"))

    def test_metric_values_exposes_every_column(self):
        values = make_snapshot("u1", date(2026, 3, 1), 42.0).metric_values()
        assert set(values) == {
            "readiness", "sharpness", "recovery", "reasoning_quality",
            "s1", "s2", "ae", "ra", "ct", "in_score",
        }


class TestIntradayEvents:
    def test_events_ordered_by_timestamp(self, repo):
        repo.append_intraday_event(_event(event_timestamp="2026-03-01T18:00:00+00:00", event_type="task"))
        repo.append_intraday_event(_event(event_timestamp="2026-03-01T07:00:00+00:00", event_type="app_open"))
        repo.append_intraday_event(_event(event_timestamp="2026-03-01T12:00:00+00:00"))

        events = repo.get_intraday_events("u1", "2026-03-01")
        assert [e.event_type for e in events] == ["app_open", "game", "task"]

    def test_details_are_encrypted_at_rest(self, repo, metrics_db):
        repo.append_intraday_event(_event(event_details={"state": "CT", "xp": 8}))
        raw = metrics_db.connection.execute(
            "SELECT event_details_enc FROM intraday_metric_events"
        ).fetchone()[0]
        assert "CT" not in raw
        assert repo.get_intraday_events("u1", "2026-03-01")[0].event_details == {"state": "CT", "xp": 8}

    def test_events_are_append_only(self, repo):
        repo.append_intraday_event(_event())
        repo.append_intraday_event(_event())
        assert len(repo.get_intraday_events("u1", "2026-03-01")) == 2

    def test_unknown_event_type_rejected(self, repo):
        with pytest.raises(RepositoryError, match="event_type"):
            repo.append_intraday_event(_event(event_type="nap"))


class TestCompletions:
    def test_exercise_since_and_limit(self, repo):
        for day in range(1, 6):
            repo.add_exercise_completion(
                ExerciseCompletion(
                    id="",
                    user_id="u1",
                    completed_at=f"2026-03-0{day}T10:00:00+00:00",
                    area="reasoning",
                    thinking_mode="slow",
                    difficulty="medium",
                    xp_earned=5,
                    score=60 + day,
                )
            )
        recent = repo.get_exercise_completions("u1", since="2026-03-03T00:00:00+00:00")
        assert [c.score for c in recent] == [63, 64, 65]
        assert [c.score for c in repo.get_exercise_completions("u1", limit=2)] == [64, 65]

    def test_tasks_and_last_task(self, repo):
        assert repo.get_last_task_at("u1") is None
        repo.add_task_completion(TaskCompletion("", "u1", "book", "2026-03-01T10:00:00+00:00"))
        repo.add_task_completion(TaskCompletion("", "u1", "podcast", "2026-03-04T10:00:00+00:00"))

        assert repo.get_last_task_at("u1") == "2026-03-04T10:00:00+00:00"
        assert repo.get_last_task_at("u1", until="2026-03-03T00:00:00+00:00") == "2026-03-01T10:00:00+00:00"
        assert [t.task_type for t in repo.get_task_completions("u1")] == ["book", "podcast"]

    def test_unknown_task_type_rejected(self, repo):
        with pytest.raises(RepositoryError, match="task_type"):
            repo.add_task_completion(TaskCompletion("", "u1", "movie", "2026-03-01T10:00:00+00:00"))

    def test_detox_sessions_mark_recovery_data(self, repo):
        assert repo.has_recovery_data("u1") is False
        repo.add_detox_session(DetoxSession("", "u1", "walk", 40, "2026-03-01T10:00:00+00:00"))

        assert repo.has_recovery_data("u1") is True
        sessions = repo.get_detox_sessions("u1", since="2026-03-01T00:00:00+00:00")
        assert sessions[0].kind == "walk"
        assert sessions[0].duration_minutes == 40


class TestWearablesAndOnboarding:
    def test_latest_wearable_on_or_before(self, repo):
        for day, hrv in ((1, 40.0), (3, 55.0), (6, 70.0)):
            repo.upsert_wearable_snapshot(
                WearableSnapshot(user_id="u1", snapshot_date=f"2026-03-0{day}", hrv_ms=hrv)
            )
        latest = repo.get_latest_wearable_snapshot("u1", "2026-03-05")
        assert latest.snapshot_date == "2026-03-03"
        assert latest.hrv_ms == 55.0

    def test_wearable_upsert_replaces_day(self, repo):
        repo.upsert_wearable_snapshot(WearableSnapshot(user_id="u1", snapshot_date="2026-03-01", hrv_ms=40.0))
        repo.upsert_wearable_snapshot(
            WearableSnapshot(user_id="u1", snapshot_date="2026-03-01", hrv_ms=48.0, raw_data={"device": "ring"})
        )
        latest = repo.get_latest_wearable_snapshot("u1", "2026-03-01")
        assert latest.hrv_ms == 48.0
        assert latest.raw_data == {"device": "ring"}

    def test_onboarding_answers_round_trip_encrypted(self, repo, metrics_db):
        answers = {"sleep_hours": ">8h", "detox_hours": "1-2h", "mental_state": "clear"}
        repo.save_onboarding_profile(
            OnboardingProfile(user_id="u1", completed_at="2026-03-01T09:00:00+00:00",
                              chronological_age=41, answers=answers)
        )
        raw = metrics_db.connection.execute("SELECT answers_enc FROM onboarding_profiles").fetchone()[0]
        assert ">8h" not in raw

        profile = repo.get_onboarding_profile("u1")
        assert profile.answers == answers
        assert profile.chronological_age == 41


class TestKeyRotation:
    def test_reencrypt_moves_payloads_to_primary_key(self, repo, metrics_db, fernet_key):
        repo.save_onboarding_profile(
            OnboardingProfile(user_id="u1", completed_at="2026-03-01T09:00:00+00:00",
                              chronological_age=41, answers={"sleep_hours": "7-8h"})
        )
        repo.append_intraday_event(_event())
        repo.upsert_wearable_snapshot(
            WearableSnapshot(user_id="u1", snapshot_date="2026-03-01", raw_data={"device": "ring"})
        )

        primary = FieldEncryptor.generate_key()
        rotating = MetricsRepository(metrics_db, FieldEncryptor(primary, [fernet_key]))
        assert rotating.reencrypt_payloads() == 3

        primary_only = MetricsRepository(metrics_db, FieldEncryptor(primary))
        assert primary_only.get_onboarding_profile("u1").answers == {"sleep_hours": "7-8h"}
        assert primary_only.get_intraday_events("u1", "2026-03-01")[0].event_details == {"xp": 5}
        assert primary_only.get_latest_wearable_snapshot("u1", "2026-03-01").raw_data == {"device": "ring"}

    def test_empty_payloads_are_skipped(self, repo):
        repo.upsert_wearable_snapshot(WearableSnapshot(user_id="u1", snapshot_date="2026-03-01", hrv_ms=40.0))
        assert repo.reencrypt_payloads() == 0


class TestBaselineTables:
    def test_baseline_upsert_is_keyed_on_user(self, repo):
        repo.upsert_baseline(CognitiveBaseline(user_id="u1", chrono_age_at_onboarding=35, days_with_data=4))
        repo.upsert_baseline(
            CognitiveBaseline(user_id="u1", chrono_age_at_onboarding=35, days_with_data=12,
                              is_baseline_calibrated=True)
        )
        baseline = repo.get_baseline("u1")
        assert baseline.days_with_data == 12
        assert baseline.is_baseline_calibrated is True

    def test_latest_cognitive_age_strictly_before(self, repo):
        for day in ("2026-03-01", "2026-03-02", "2026-03-03"):
            repo.upsert_cognitive_age_daily(CognitiveAgeDaily(user_id="u1", calc_date=day))

        assert repo.get_latest_cognitive_age_daily("u1").calc_date == "2026-03-03"
        assert repo.get_latest_cognitive_age_daily("u1", before="2026-03-03").calc_date == "2026-03-02"
        assert repo.get_latest_cognitive_age_daily("u1", before="2026-03-01") is None
        assert repo.get_latest_cognitive_age_daily("u1", on_or_before="2026-03-02").calc_date == "2026-03-02"
