"""Application settings loaded from environment variables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic_settings import BaseSettings

PlanId = Literal["light", "expert", "superhuman"]


class Settings(BaseSettings):
    """NeuroLoop metrics server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default. There is no auth layer in front of the tools, so
    # binding anything else requires NEUROLOOP_ALLOW_INSECURE_BIND=true.
    neuroloop_host: str = "127.0.0.1"
    neuroloop_port: int = 8010
    neuroloop_log_level: str = "info"
    neuroloop_allow_insecure_bind: bool = False

    # Storage (metrics data bank)
    db_path: str = "~/.neuroloop/metrics.db"

    # Encryption (onboarding answers, wearable payloads, event details)
    encryption_key: str = ""
    # Comma-separated retired keys, still accepted for decryption
    encryption_previous_keys: str = ""

    # Training plans
    plans_dir: str = ""
    default_training_plan: PlanId = "expert"

    # Engine policy
    default_chronological_age: int = 35
    decay_baseline_floor: bool = False
    test_mode: bool = False
    seed_missing_records: bool = True


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()


@dataclass(frozen=True)
class EngineConfig:
    """Process-scoped engine policy, owned by the host application.

    Passed explicitly to the metrics service and the tool registrars instead
    of living in module-level flags.
    """

    default_training_plan: str = "expert"
    default_chronological_age: int = 35
    # Open product decision: False clamps decayed states to [0, 100] only.
    decay_baseline_floor: bool = False
    # QA mode: soft difficulty locks are lifted, the low-recovery override is not.
    test_mode: bool = False
    seed_missing_records: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineConfig:
        return cls(
            default_training_plan=settings.default_training_plan,
            default_chronological_age=settings.default_chronological_age,
            decay_baseline_floor=settings.decay_baseline_floor,
            test_mode=settings.test_mode,
            seed_missing_records=settings.seed_missing_records,
        )
