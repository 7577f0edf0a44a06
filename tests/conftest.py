"""Shared test fixtures for NeuroLoop metrics tests."""

from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("ENCRYPTION_PREVIOUS_KEYS", "")
    monkeypatch.setenv("PLANS_DIR", "")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("TEST_MODE", "false")
    monkeypatch.setenv("DEFAULT_TRAINING_PLAN", "expert")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from neuroloop.core.config.settings import EngineConfig  # noqa: E402
from neuroloop.core.storage.models import DailyMetricSnapshot  # noqa: E402
from neuroloop.domains.cognition.domain_logic.plan_loader import (  # noqa: E402
    PlanRegistry,
    build_plan_registry,
)


def make_snapshot(user_id: str, day: date, value: float = 60.0, **overrides) -> DailyMetricSnapshot:
    """A daily snapshot with every skill column set to ``value``."""
    defaults = dict(
        user_id=user_id,
        snapshot_date=day.isoformat(),
        readiness=value,
        sharpness=value,
        recovery=value,
        reasoning_quality=value,
        s1=value,
        s2=value,
        ae=value,
        ra=value,
        ct=value,
        in_score=value,
    )
    defaults.update(overrides)
    return DailyMetricSnapshot(**defaults)


def seed_daily_snapshots(repository, user_id: str, start: date, days: int, value: float = 60.0) -> None:
    """Store one snapshot per day for ``days`` consecutive days from ``start``."""
    for offset in range(days):
        repository.upsert_daily_snapshot(make_snapshot(user_id, start + timedelta(days=offset), value))


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def metrics_db():
    """Create an in-memory MetricsDatabase for testing."""
    from neuroloop.core.storage.database import MetricsDatabase

    db = MetricsDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def fernet_key() -> str:
    from cryptography.fernet import Fernet

    return Fernet.generate_key().decode()


@pytest.fixture
def field_encryptor(fernet_key: str):
    """Create a FieldEncryptor with a test key."""
    from neuroloop.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(fernet_key)


@pytest.fixture
def metrics_repository(metrics_db, field_encryptor):
    """Create a MetricsRepository backed by in-memory SQLite."""
    from neuroloop.core.storage.repository import MetricsRepository

    return MetricsRepository(metrics_db, field_encryptor)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def plan_registry() -> PlanRegistry:
    """The bundled light / expert / superhuman plans."""
    return build_plan_registry()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def metrics_service(metrics_repository, engine_config, plan_registry):
    """A MetricsService over in-memory storage and the bundled plans."""
    from neuroloop.domains.cognition.domain_logic.metrics_service import MetricsService

    return MetricsService(metrics_repository, engine_config, plan_registry)
