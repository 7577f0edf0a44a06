"""Daily briefing: a fixed-priority decision table, first match wins.

The order of the rules is part of the contract. The recovery-critical rule
is always checked first.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from neuroloop.domains.cognition.domain_logic.metric_models import to_number


@dataclass(frozen=True)
class BriefingInputs:
    sharpness: float
    readiness: float
    recovery: float
    reasoning_quality: float


@dataclass(frozen=True)
class Briefing:
    rule: str
    priority: int
    headline: str
    action: str
    tone: str  # 'peak' | 'good' | 'stable' | 'caution' | 'avoid'

    def to_dict(self) -> dict:
        return {
            "rule": self.rule,
            "priority": self.priority,
            "headline": self.headline,
            "action": self.action,
            "tone": self.tone,
        }


@dataclass(frozen=True)
class BriefingRule:
    name: str
    condition: Callable[[BriefingInputs], bool]
    headline: str
    action: str
    tone: str


BRIEFING_RULES: tuple[BriefingRule, ...] = (
    BriefingRule(
        "recovery_critical",
        lambda m: m.recovery < 40,
        "Recovery is limiting you.",
        "Rest before training.",
        "avoid",
    ),
    BriefingRule(
        "peak_state",
        lambda m: m.sharpness >= 70 and m.readiness >= 70 and m.recovery >= 60,
        "Peak state.",
        "Schedule your hardest thinking now.",
        "peak",
    ),
    BriefingRule(
        "capacity_limited",
        lambda m: m.recovery < 50 and m.reasoning_quality < 45,
        "Mental capacity is limited.",
        "Postpone complex analysis.",
        "avoid",
    ),
    BriefingRule(
        "reasoning_high",
        lambda m: m.reasoning_quality >= 65 and m.recovery >= 55,
        "Reasoning quality is high.",
        "Use this window for deep analysis.",
        "good",
    ),
    BriefingRule(
        "quick_bursts",
        lambda m: m.sharpness >= 70 and m.readiness < 55,
        "Quick bursts available.",
        "Keep decisions short.",
        "caution",
    ),
    BriefingRule(
        "endurance_over_clarity",
        lambda m: m.readiness >= 70 and m.sharpness < 55,
        "Endurance is good, clarity is moderate.",
        "Favor routine work.",
        "caution",
    ),
    BriefingRule(
        "reasoning_limited",
        lambda m: m.reasoning_quality < 40 and m.recovery >= 55,
        "Reasoning depth is limited.",
        "Avoid complex evaluations.",
        "caution",
    ),
    BriefingRule(
        "low_output",
        lambda m: m.sharpness < 45 and m.readiness < 45,
        "Low cognitive output.",
        "Keep training light today.",
        "caution",
    ),
)

DEFAULT_BRIEFING = Briefing(
    rule="stable",
    priority=len(BRIEFING_RULES) + 1,
    headline="Stable baseline.",
    action="Proceed with your normal workload.",
    tone="stable",
)


def daily_briefing(
    sharpness: float | None,
    readiness: float | None,
    recovery: float | None,
    reasoning_quality: float | None,
) -> Briefing:
    """Select the briefing for today's metrics. Unknown inputs read as 50."""
    inputs = BriefingInputs(
        sharpness=to_number(sharpness),
        readiness=to_number(readiness),
        recovery=to_number(recovery),
        reasoning_quality=to_number(reasoning_quality),
    )
    for priority, rule in enumerate(BRIEFING_RULES, start=1):
        if rule.condition(inputs):
            return Briefing(rule.name, priority, rule.headline, rule.action, rule.tone)
    return DEFAULT_BRIEFING
