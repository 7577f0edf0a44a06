"""Training plans: YAML definitions, loader and in-memory registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from neuroloop.domains.cognition.domain_logic.validation import InvalidInputError

logger = logging.getLogger(__name__)

BUNDLED_PLANS_DIR = Path(__file__).resolve().parent.parent / "plans"


@dataclass
class DetoxTargets:
    weekly_minutes: int = 0
    daily_minimum_minutes: int = 30
    min_session_minutes: int = 30
    xp_per_minute: float = 0.05
    bonus_xp: int = 0
    walking_min_minutes: int = 30


@dataclass
class GamesGating:
    s2_threshold_modifier: int = 0
    require_rec_for_s2: int = 50
    insight_max_per_week: int = 3
    s2_max_per_week: int = 7


@dataclass
class TrainingPlan:
    """A named training tier and its numeric targets."""

    id: str
    display_name: str
    xp_target_week: int
    tc_cap: int
    sessions_per_week: int = 3
    content_per_week: int = 1
    version: str = ""
    tagline: str = ""
    description: str = ""
    intensity: str = ""
    session_duration: str = ""
    detox: DetoxTargets = field(default_factory=DetoxTargets)
    games_gating: GamesGating = field(default_factory=GamesGating)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "tagline": self.tagline,
            "description": self.description,
            "intensity": self.intensity,
            "sessions_per_week": self.sessions_per_week,
            "session_duration": self.session_duration,
            "content_per_week": self.content_per_week,
            "xp_target_week": self.xp_target_week,
            "tc_cap": self.tc_cap,
            "detox": vars(self.detox).copy(),
            "games_gating": vars(self.games_gating).copy(),
        }


class PlanRegistry:
    """In-memory registry of loaded training plans."""

    def __init__(self) -> None:
        self._plans: dict[str, TrainingPlan] = {}

    def register(self, plan: TrainingPlan) -> None:
        if plan.id in self._plans:
            raise ValueError(f"Duplicate training plan id registered: {plan.id!r}")
        self._plans[plan.id] = plan

    def get(self, plan_id: str) -> TrainingPlan:
        """Look up a plan; an unknown id is a validation error."""
        plan = self._plans.get(plan_id)
        if plan is None:
            raise InvalidInputError(
                f"Invalid training_plan {plan_id!r}. Expected one of: {', '.join(self.ids())}."
            )
        return plan

    def ids(self) -> list[str]:
        return list(self._plans)

    def all(self) -> list[TrainingPlan]:
        return list(self._plans.values())

    def __len__(self) -> int:
        return len(self._plans)


def load_plan_directory(directory: str | Path, registry: PlanRegistry) -> int:
    """Load every ``*.yaml`` plan in a directory. Returns the number loaded.

    Files starting with an underscore are skipped.
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning("Plan directory does not exist: %s", directory)
        return 0

    count = 0
    for path in sorted(directory.glob("*.yaml")):
        if path.name.startswith("_"):
            continue
        try:
            plan = load_plan_file(path)
            registry.register(plan)
            count += 1
            logger.info("Loaded training plan: %s (v%s)", plan.id, plan.version)
        except (OSError, KeyError, TypeError, ValueError, yaml.YAMLError):
            logger.exception("Failed to load training plan from %s", path)
    return count


def load_plan_file(path: Path) -> TrainingPlan:
    """Parse a YAML file into a TrainingPlan."""
    with open(path) as f:
        data: dict[str, Any] = yaml.safe_load(f)

    detox_data = data.get("detox", {})
    gating_data = data.get("games_gating", {})

    return TrainingPlan(
        id=data["id"],
        display_name=data["display_name"],
        xp_target_week=int(data["xp_target_week"]),
        tc_cap=int(data["tc_cap"]),
        sessions_per_week=int(data.get("sessions_per_week", 3)),
        content_per_week=int(data.get("content_per_week", 1)),
        version=str(data.get("version", "")),
        tagline=data.get("tagline", ""),
        description=data.get("description", "").strip(),
        intensity=data.get("intensity", ""),
        session_duration=data.get("session_duration", ""),
        detox=DetoxTargets(
            weekly_minutes=int(detox_data.get("weekly_minutes", 0)),
            daily_minimum_minutes=int(detox_data.get("daily_minimum_minutes", 30)),
            min_session_minutes=int(detox_data.get("min_session_minutes", 30)),
            xp_per_minute=float(detox_data.get("xp_per_minute", 0.05)),
            bonus_xp=int(detox_data.get("bonus_xp", 0)),
            walking_min_minutes=int(detox_data.get("walking_min_minutes", 30)),
        ),
        games_gating=GamesGating(
            s2_threshold_modifier=int(gating_data.get("s2_threshold_modifier", 0)),
            require_rec_for_s2=int(gating_data.get("require_rec_for_s2", 50)),
            insight_max_per_week=int(gating_data.get("insight_max_per_week", 3)),
            s2_max_per_week=int(gating_data.get("s2_max_per_week", 7)),
        ),
    )


def build_plan_registry(plans_dir: str | Path | None = None) -> PlanRegistry:
    """Registry loaded from ``plans_dir``, or the bundled plans when it is empty."""
    registry = PlanRegistry()
    load_plan_directory(Path(plans_dir).expanduser() if plans_dir else BUNDLED_PLANS_DIR, registry)
    return registry
