"""Tests for the daily briefing decision table."""

from __future__ import annotations

import pytest

from neuroloop.domains.cognition.domain_logic.briefing import BRIEFING_RULES, daily_briefing


class TestDailyBriefing:
    def test_low_recovery_wins_over_everything(self):
        briefing = daily_briefing(sharpness=95, readiness=95, recovery=35, reasoning_quality=95)
        assert briefing.rule == "recovery_critical"
        assert briefing.priority == 1
        assert (briefing.headline, briefing.action) == ("Recovery is limiting you.", "Rest before training.")

    def test_peak_state(self):
        briefing = daily_briefing(sharpness=75, readiness=72, recovery=80, reasoning_quality=50)
        assert briefing.rule == "peak_state"
        assert briefing.priority == 2
        assert briefing.tone == "peak"

    @pytest.mark.parametrize(
        "metrics, rule",
        [
            ((50, 50, 45, 40), "capacity_limited"),
            ((60, 60, 60, 70), "reasoning_high"),
            ((75, 50, 55, 50), "quick_bursts"),
            ((50, 75, 60, 50), "endurance_over_clarity"),
            ((60, 60, 60, 30), "reasoning_limited"),
            ((40, 40, 52, 50), "low_output"),
        ],
    )
    def test_each_rule_reachable(self, metrics, rule):
        assert daily_briefing(*metrics).rule == rule

    def test_first_match_wins(self):
        # Also matches quick_bursts, but capacity_limited is earlier
        briefing = daily_briefing(sharpness=80, readiness=40, recovery=45, reasoning_quality=40)
        assert briefing.rule == "capacity_limited"

    def test_default_is_stable(self):
        briefing = daily_briefing(sharpness=60, readiness=60, recovery=60, reasoning_quality=50)
        assert briefing.rule == "stable"
        assert briefing.priority == len(BRIEFING_RULES) + 1

    def test_unknown_inputs_read_as_neutral(self):
        assert daily_briefing(None, None, None, None).rule == "stable"

    def test_to_dict(self):
        assert set(daily_briefing(60, 60, 60, 50).to_dict()) == {"rule", "priority", "headline", "action", "tone"}
