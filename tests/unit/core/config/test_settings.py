"""Tests for Settings and the process-scoped EngineConfig."""

from __future__ import annotations

import dataclasses

import pytest
from pydantic import ValidationError

from neuroloop.core.config.settings import EngineConfig, Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DB_PATH", raising=False)
        settings = Settings(_env_file=None)
        assert settings.neuroloop_host == "127.0.0.1"
        assert settings.neuroloop_port == 8010
        assert settings.neuroloop_allow_insecure_bind is False
        assert settings.db_path == "~/.neuroloop/metrics.db"
        assert settings.default_training_plan == "expert"
        assert settings.default_chronological_age == 35
        assert settings.test_mode is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("TEST_MODE", "true")
        monkeypatch.setenv("DEFAULT_TRAINING_PLAN", "superhuman")
        monkeypatch.setenv("NEUROLOOP_PORT", "9100")
        settings = get_settings()
        assert settings.test_mode is True
        assert settings.default_training_plan == "superhuman"
        assert settings.neuroloop_port == 9100

    def test_unknown_plan_rejected(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_TRAINING_PLAN", "olympian")
        with pytest.raises(ValidationError):
            get_settings()


class TestEngineConfig:
    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("TEST_MODE", "true")
        monkeypatch.setenv("DECAY_BASELINE_FLOOR", "true")
        monkeypatch.setenv("DEFAULT_CHRONOLOGICAL_AGE", "42")
        config = EngineConfig.from_settings(get_settings())
        assert config.test_mode is True
        assert config.decay_baseline_floor is True
        assert config.default_chronological_age == 42

    def test_is_immutable(self):
        config = EngineConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.test_mode = True  # type: ignore[misc]

    def test_defaults_are_conservative(self):
        config = EngineConfig()
        assert config.test_mode is False
        assert config.decay_baseline_floor is False
        assert config.seed_missing_records is True
