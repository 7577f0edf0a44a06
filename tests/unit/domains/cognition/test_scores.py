"""Tests for the derived score calculators."""

from __future__ import annotations

import pytest

from neuroloop.domains.cognition.domain_logic.metric_models import BaselineStates, CognitiveStates
from neuroloop.domains.cognition.domain_logic.scores import (
    cognitive_age,
    dual_process_balance,
    dual_process_decay,
    dual_process_level,
    dynamic_optimal_range,
    initial_training_capacity,
    is_recovery_low,
    physio_component,
    readiness_decay,
    readiness_score,
    recovery_multiplier,
    recovery_score,
    sci_decay,
    sci_level,
    sci_score,
    sharpness_score,
    system_scores,
    update_training_capacity,
)

NEUTRAL = CognitiveStates()


def _baseline(value: float = 50.0, *, age: float = 40.0, calibrated_age: float | None = None) -> BaselineStates:
    return BaselineStates(
        states=CognitiveStates(value, value, value, value),
        baseline_cognitive_age=calibrated_age if calibrated_age is not None else age,
        chronological_age=age,
    )


class TestSystemScores:
    def test_halves(self):
        scores = system_scores(CognitiveStates(ae=60, ra=40, ct=80, in_=20))
        assert scores.s1 == 50
        assert scores.s2 == 50


class TestRecovery:
    def test_walking_counts_half(self):
        assert recovery_score(30, 20, 60) == 66.7

    def test_clamped_at_100(self):
        assert recovery_score(500, 0, 60) == 100

    def test_zero_target_reads_as_zero(self):
        assert recovery_score(30, 30, 0) == 0

    def test_negative_minutes_ignored(self):
        assert recovery_score(-40, -10, 60) == 0

    def test_low_threshold(self):
        assert is_recovery_low(39.9) is True
        assert is_recovery_low(40) is False


class TestSharpness:
    def test_full_recovery_keeps_base(self):
        assert sharpness_score(NEUTRAL, 100) == 50

    def test_zero_recovery_floors_at_three_quarters(self):
        assert sharpness_score(NEUTRAL, 0) == 37.5

    def test_unknown_recovery_is_neutral(self):
        assert sharpness_score(NEUTRAL, None) == sharpness_score(NEUTRAL, 50)


class TestPhysioAndReadiness:
    def test_best_readings_score_100(self):
        assert physio_component(120, 45, 540, 0.98) == 100

    def test_missing_reading_disables_component(self):
        assert physio_component(60, 55, None, 0.9) is None

    def test_pathological_readings_stay_in_range(self):
        value = physio_component(1000, -10, -5, 250)
        assert 0 <= value <= 100
        assert physio_component(0, 300, 0, 0) == 0

    def test_percent_efficiency_accepted(self):
        assert physio_component(60, 60, 420, 90) == physio_component(60, 60, 420, 0.90)

    def test_readiness_without_wearable(self):
        assert readiness_score(NEUTRAL, 50) == 50
        assert readiness_score(CognitiveStates(80, 50, 80, 80), 100) == 87

    def test_readiness_with_wearable_splits_half_and_half(self):
        assert readiness_score(NEUTRAL, 10, physio=100) == 75

    @pytest.mark.parametrize(
        "days, applied, expected",
        [(2, 0, 0), (3, 0, 5), (5, 0, 9), (10, 0, 15), (5, 12, 3), (5, 15, 0)],
    )
    def test_readiness_decay(self, days, applied, expected):
        assert readiness_decay(days, applied) == expected


class TestDualProcess:
    def test_balance_and_levels(self):
        assert dual_process_balance(70, 40) == 70
        assert dual_process_level(85) == "elite"
        assert dual_process_level(70) == "good"
        assert dual_process_level(69.9) == "unbalanced"

    def test_balance_clamps_inputs(self):
        assert dual_process_balance(-50, 500) == 0
        assert dual_process_balance(None, None) == 100

    @pytest.mark.parametrize(
        "s1, s2, applied, expected",
        [(10, 4, 0, 5), (10, 6, 0, 0), (0, 0, 0, 0), (10, 0, 0, 5), (4, 10, 8, 2), (-5, -5, 0, 0)],
    )
    def test_imbalance_decay(self, s1, s2, applied, expected):
        assert dual_process_decay(s1, s2, applied) == expected


class TestSCI:
    def test_composite(self):
        result = sci_score(NEUTRAL, 100, 100, 50)
        assert result.score == 65
        assert result.level == "moderate"
        assert result.engagement == 1.0

    def test_engagement_is_capped(self):
        assert sci_score(NEUTRAL, 1000, 100, 50).score == 65

    def test_pathological_inputs(self):
        result = sci_score(NEUTRAL, -300, 0, None, decay=-5)
        assert result.engagement == 0
        assert result.score == 35

    def test_decay_subtracts(self):
        assert sci_score(NEUTRAL, 100, 100, 50, decay=10).score == 55

    @pytest.mark.parametrize(
        "score, level",
        [(85, "elite"), (70, "high"), (55, "moderate"), (40, "developing"), (39.9, "early")],
    )
    def test_levels(self, score, level):
        assert sci_level(score) == level

    def test_decay_rules_stack_with_weekly_cap(self):
        assert sci_decay(30, 8) == 10
        assert sci_decay(50, 3) == 0
        assert sci_decay(30, None) == 5
        assert sci_decay(30, 8, decay_applied_this_week=8) == 2


class TestCognitiveAge:
    def test_improvement_makes_younger(self):
        result = cognitive_age(CognitiveStates(70, 70, 70, 70), _baseline())
        assert result.cognitive_age == 38.3
        assert result.delta == 1.7
        assert result.confidence == "low"

    def test_rq_scales_conversion(self):
        assert cognitive_age(CognitiveStates(70, 70, 70, 70), _baseline(), rq=100).cognitive_age == 38

    def test_calibrated_anchor(self):
        result = cognitive_age(NEUTRAL, _baseline(age=40, calibrated_age=36), calibrated=True)
        assert result.cognitive_age == 36
        assert result.anchor_age == 36
        assert result.confidence == "high"

    def test_penalty_is_capped(self):
        assert cognitive_age(NEUTRAL, _baseline(), penalty_years=20).cognitive_age == 55

    def test_never_negative(self):
        strong = CognitiveStates(100, 100, 100, 100)
        result = cognitive_age(strong, _baseline(0, age=5), rq=100)
        assert result.cognitive_age == 0


class TestTrainingCapacity:
    def test_initial_capacity_bounds(self):
        assert initial_training_capacity(NEUTRAL, 150) == 50
        assert initial_training_capacity(CognitiveStates(10, 10, 10, 10), 150) == 30
        assert initial_training_capacity(CognitiveStates(100, 100, 100, 100), 100) == 60

    def test_growth_with_recovery(self):
        assert update_training_capacity(50, 100, 50, 1, 150) == 55.4

    def test_idle_week_decays_to_floor(self):
        assert update_training_capacity(50, 0, 50, 8, 150) == 47
        assert update_training_capacity(31, 0, 50, 8, 150) == 30

    def test_capped_at_plan(self):
        assert update_training_capacity(149, 150, 100, 0, 150) == 150

    def test_recovery_multiplier_range(self):
        assert recovery_multiplier(None) == pytest.approx(0.9)
        assert recovery_multiplier(200) == 1.2
        assert recovery_multiplier(-100) == 0.6

    def test_optimal_range(self):
        window = dynamic_optimal_range(100, 150, weekly_xp_target=70)
        assert (window.min, window.max, window.cap) == (49, 70, 150)
        for tc in range(30, 151, 7):
            window = dynamic_optimal_range(tc, 150)
            assert window.min <= window.max
