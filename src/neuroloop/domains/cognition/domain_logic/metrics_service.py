"""Metrics service: fetches inputs from the repository and runs the calculators.

The calculators are pure; this module is the only place where they meet
storage. Every entry point takes an optional ``now`` so callers (and tests)
control the clock. Store failures propagate unchanged; nothing here retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from neuroloop.core.config.settings import EngineConfig
from neuroloop.core.storage.models import (
    DETOX_KINDS,
    TASK_TYPES,
    DailyMetricSnapshot,
    DetoxSession,
    ExerciseCompletion,
    IntradayMetricEvent,
    MetricsRecord,
    OnboardingProfile,
    TaskCompletion,
    WearableSnapshot,
)
from neuroloop.core.storage.repository import MetricsRepository
from neuroloop.domains.cognition.domain_logic import baseline as baseline_jobs
from neuroloop.domains.cognition.domain_logic.briefing import Briefing, daily_briefing
from neuroloop.domains.cognition.domain_logic.difficulty import (
    DifficultyInput,
    DifficultyResult,
    recommend_difficulty,
)
from neuroloop.domains.cognition.domain_logic.metric_models import (
    LAST_XP_COLUMNS,
    STATE_COLUMNS,
    clamp,
    round1,
    to_number,
)
from neuroloop.domains.cognition.domain_logic.plan_loader import PlanRegistry, TrainingPlan
from neuroloop.domains.cognition.domain_logic.reasoning_quality import (
    PrimingTask,
    RQResult,
    reasoning_quality,
)
from neuroloop.domains.cognition.domain_logic.recharging import (
    RechargingCheck,
    boosted_sharpness,
    recharging_score,
    suggest_mode,
    validate_mode,
)
from neuroloop.domains.cognition.domain_logic.recovery_init import (
    RRIAnswers,
    compute_rri,
    is_rri_active,
)
from neuroloop.domains.cognition.domain_logic.recovery_streak import (
    RecoveryStreak,
    next_recovery_streak,
)
from neuroloop.domains.cognition.domain_logic.scores import (
    CognitiveAgeResult,
    OptimalRange,
    SCIResult,
    cognitive_age,
    dual_process_balance,
    dual_process_decay,
    dual_process_level,
    dynamic_optimal_range,
    initial_training_capacity,
    physio_component,
    readiness_decay,
    readiness_score,
    recovery_score,
    sci_decay,
    sci_score,
    sharpness_score,
    system_scores,
    update_training_capacity,
)
from neuroloop.domains.cognition.domain_logic.states import (
    DecayedStates,
    apply_skill_decay,
    apply_state_update,
    exercise_xp,
    has_stored_baseline,
    map_record_to_baseline,
    route_xp,
)
from neuroloop.domains.cognition.domain_logic.temporal_policy import (
    TASK_PRIMING_WINDOW_DAYS,
    elapsed_days,
    medium_period_start,
)
from neuroloop.domains.cognition.domain_logic.validation import (
    InvalidInputError,
    parse_date,
    parse_timestamp,
    require_choice,
    to_utc_iso,
)
from neuroloop.domains.cognition.domain_logic.weekly_progress import (
    WeeklyProgress,
    detox_xp,
    weekly_progress,
)

logger = logging.getLogger(__name__)

S2_SCORE_HISTORY_LIMIT = 50
WEARABLE_MAX_AGE_DAYS = 1


@dataclass
class MetricsReport:
    """Every derived metric for one user at one moment."""

    user_id: str
    computed_at: str
    training_plan: str
    decayed: DecayedStates
    s1: float
    s2: float
    recovery: float
    recovery_source: str  # 'activity' | 'rri'
    sharpness: float
    readiness: float
    readiness_decay: float
    physio: float | None
    dual_process: float
    dual_process_level: str
    dual_process_decay: float
    sci: SCIResult
    rq: RQResult
    cognitive_age: CognitiveAgeResult
    training_capacity: float
    optimal_range: OptimalRange
    weekly_xp: float
    progress: WeeklyProgress
    briefing: Briefing
    low_rec_streak_days: int = 0

    def metric_values(self) -> dict[str, float]:
        return {
            "readiness": self.readiness,
            "sharpness": self.sharpness,
            "recovery": self.recovery,
            "reasoning_quality": self.rq.rq,
        }

    def to_dict(self) -> dict[str, Any]:
        states = self.decayed.states
        return {
            "user_id": self.user_id,
            "computed_at": self.computed_at,
            "training_plan": self.training_plan,
            "states": states.as_dict(),
            "skill_decay": self.decayed.decay,
            "system_scores": {"s1": round1(self.s1), "s2": round1(self.s2)},
            "recovery": {
                "value": self.recovery,
                "source": self.recovery_source,
                "low_recovery_streak_days": self.low_rec_streak_days,
            },
            "sharpness": self.sharpness,
            "readiness": {
                "value": self.readiness,
                "decay": self.readiness_decay,
                "physio_component": self.physio,
            },
            "dual_process": {
                "balance": self.dual_process,
                "level": self.dual_process_level,
                "decay": self.dual_process_decay,
            },
            "cognitive_network_index": {
                "score": self.sci.score,
                "level": self.sci.level,
                "performance": self.sci.performance,
                "engagement": self.sci.engagement,
                "recovery": self.sci.recovery,
            },
            "reasoning_quality": self.rq.to_dict(),
            "cognitive_age": {
                "value": self.cognitive_age.cognitive_age,
                "delta_years": self.cognitive_age.delta,
                "anchor_age": self.cognitive_age.anchor_age,
                "calibrated": self.cognitive_age.calibrated,
                "confidence": self.cognitive_age.confidence,
            },
            "training_capacity": {
                "value": self.training_capacity,
                "optimal_min": self.optimal_range.min,
                "optimal_max": self.optimal_range.max,
                "cap": self.optimal_range.cap,
                "weekly_xp": self.weekly_xp,
            },
            "weekly_progress": self.progress.to_dict(),
            "briefing": self.briefing.to_dict(),
        }


def _resolve_now(now: str | datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return parse_timestamp(now, "now")


class MetricsService:
    """Entry points of the cognitive metrics engine.

    Usage::

        service = MetricsService(repository, EngineConfig(), build_plan_registry())
        service.record_exercise("user-1", area="focus", thinking_mode="fast", difficulty="medium")
        report = service.compute_report("user-1")
    """

    def __init__(
        self,
        repository: MetricsRepository,
        config: EngineConfig,
        plans: PlanRegistry,
    ) -> None:
        self._repo = repository
        self._config = config
        self._plans = plans

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def plans(self) -> PlanRegistry:
        return self._plans

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    def load_record(self, user_id: str) -> MetricsRecord:
        """The user's metrics record, seeding the default one when absent."""
        record = self._repo.get_metrics(user_id)
        if record is not None:
            return record
        if self._config.seed_missing_records:
            return self._repo.create_default_metrics(user_id, self._config.default_training_plan)
        return MetricsRecord(user_id=user_id, training_plan=self._config.default_training_plan)

    def plan_for(self, record: MetricsRecord) -> TrainingPlan:
        return self._plans.get(record.training_plan or self._config.default_training_plan)

    def set_training_plan(self, user_id: str, plan_id: str) -> TrainingPlan:
        plan = self._plans.get(plan_id)
        record = self.load_record(user_id)
        record.training_plan = plan.id
        if record.training_capacity is None:
            record.training_capacity = initial_training_capacity(
                apply_skill_decay(record, datetime.now(timezone.utc)).states, plan.tc_cap
            )
        else:
            record.training_capacity = min(record.training_capacity, float(plan.tc_cap))
        self._repo.save_metrics(record)
        logger.info("User %s switched to the %s plan", user_id, plan.id)
        return plan

    def _chronological_age(self, user_id: str) -> float:
        profile = self._repo.get_onboarding_profile(user_id)
        if profile is not None and profile.chronological_age:
            return float(profile.chronological_age)
        return float(self._config.default_chronological_age)

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def _recovery(
        self, user_id: str, plan: TrainingPlan, load_start: datetime, now: datetime
    ) -> tuple[float, str, float]:
        sessions = [
            s
            for s in self._repo.get_detox_sessions(user_id, since=to_utc_iso(load_start))
            if parse_timestamp(s.completed_at) <= now
        ]
        detox_minutes = sum(s.duration_minutes for s in sessions if s.kind == "detox")
        walk_minutes = sum(s.duration_minutes for s in sessions if s.kind == "walk")

        if not sessions:
            profile = self._repo.get_onboarding_profile(user_id)
            if profile is not None and profile.answers:
                onboarded_at = parse_timestamp(profile.completed_at, "completed_at")
                if is_rri_active(onboarded_at, now, self._repo.has_recovery_data(user_id)):
                    rri = compute_rri(RRIAnswers.from_dict(profile.answers))
                    return rri.value, "rri", 0.0

        recovery = recovery_score(detox_minutes, walk_minutes, plan.detox.weekly_minutes)
        return recovery, "activity", detox_minutes

    def _physio(self, user_id: str, today: date) -> float | None:
        wearable = self._repo.get_latest_wearable_snapshot(user_id, today.isoformat())
        if wearable is None:
            return None
        if (today - date.fromisoformat(wearable.snapshot_date)).days > WEARABLE_MAX_AGE_DAYS:
            return None
        return physio_component(
            wearable.hrv_ms, wearable.resting_hr, wearable.sleep_duration_min, wearable.sleep_efficiency
        )

    def _reasoning_quality(self, user_id: str, s2: float, now: datetime) -> RQResult:
        history = [
            c
            for c in self._repo.get_exercise_completions(user_id)
            if parse_timestamp(c.completed_at, "completed_at") <= now
        ][-S2_SCORE_HISTORY_LIMIT:]
        s2_sessions = [c for c in history if c.thinking_mode == "slow"]
        s2_scores = [c.score for c in s2_sessions if c.score is not None]
        last_s2_game_at = (
            parse_timestamp(s2_sessions[-1].completed_at, "completed_at") if s2_sessions else None
        )

        task_since = now - timedelta(days=TASK_PRIMING_WINDOW_DAYS + 1)
        tasks = [
            PrimingTask(t.task_type, parse_timestamp(t.completed_at, "completed_at"))
            for t in self._repo.get_task_completions(user_id, since=to_utc_iso(task_since))
        ]
        tasks = [t for t in tasks if t.completed_at <= now]
        last_task_raw = self._repo.get_last_task_at(user_id, until=to_utc_iso(now))
        last_task_at = parse_timestamp(last_task_raw, "completed_at") if last_task_raw else None

        return reasoning_quality(
            s2,
            s2_scores,
            tasks,
            now,
            last_s2_game_at=last_s2_game_at,
            last_task_at=last_task_at,
        )

    def _is_calibrated(self, user_id: str, record: MetricsRecord) -> bool:
        row = self._repo.get_baseline(user_id)
        return bool(row and row.is_baseline_calibrated and has_stored_baseline(record))

    def compute_report(self, user_id: str, now: str | datetime | None = None) -> MetricsReport:
        """Compute every metric for a user from current storage."""
        now = _resolve_now(now)
        today = now.date()
        record = self.load_record(user_id)
        plan = self.plan_for(record)

        decayed = apply_skill_decay(
            record, now, respect_baseline=self._config.decay_baseline_floor
        )
        states = decayed.states
        systems = system_scores(states)

        load_start = medium_period_start(now)
        exercises = self._repo.get_exercise_completions(user_id, since=to_utc_iso(load_start))
        exercises = [e for e in exercises if parse_timestamp(e.completed_at) <= now]
        weekly_xp = sum(e.xp_earned for e in exercises)
        s1_xp = sum(e.xp_earned for e in exercises if e.thinking_mode == "fast")
        s2_xp = sum(e.xp_earned for e in exercises if e.thinking_mode == "slow")

        recovery, recovery_source, detox_minutes = self._recovery(user_id, plan, load_start, now)
        sharpness = sharpness_score(states, recovery)

        physio = self._physio(user_id, today)
        # Today's observation counts toward the streak whether or not it is stored yet
        streak = next_recovery_streak(record, today, recovery)
        r_decay = readiness_decay(streak.low_rec_streak_days)
        readiness = clamp(round1(readiness_score(states, recovery, physio) - r_decay))

        days_idle = (
            elapsed_days(now, parse_timestamp(record.last_xp_at, "last_xp_at"))
            if record.last_xp_at
            else None
        )
        sci = sci_score(
            states,
            weekly_xp,
            plan.xp_target_week,
            recovery,
            decay=sci_decay(recovery, days_idle),
        )

        dp_decay = dual_process_decay(s1_xp, s2_xp)
        dual = clamp(dual_process_balance(systems.s1, systems.s2) - dp_decay)

        rq = self._reasoning_quality(user_id, systems.s2, now)

        calibrated = self._is_calibrated(user_id, record)
        baseline_states = map_record_to_baseline(record, self._chronological_age(user_id))
        age_row = self._repo.get_latest_cognitive_age_daily(user_id, on_or_before=today.isoformat())
        age = cognitive_age(
            states,
            baseline_states,
            rq.rq,
            calibrated=calibrated,
            penalty_years=age_row.regression_penalty_years if age_row else 0.0,
        )

        tc = record.training_capacity
        if tc is None:
            tc = initial_training_capacity(states, plan.tc_cap)
        optimal = dynamic_optimal_range(tc, plan.tc_cap, plan.xp_target_week)

        progress = weekly_progress(plan, weekly_xp, 0, detox_xp(detox_minutes, plan))
        briefing = daily_briefing(sharpness, readiness, recovery, rq.rq)

        logger.debug("Computed metrics for user %s at %s", user_id, now.isoformat())
        return MetricsReport(
            user_id=user_id,
            computed_at=now.isoformat(),
            training_plan=plan.id,
            decayed=decayed,
            s1=systems.s1,
            s2=systems.s2,
            recovery=recovery,
            recovery_source=recovery_source,
            sharpness=sharpness,
            readiness=readiness,
            readiness_decay=r_decay,
            physio=physio,
            dual_process=dual,
            dual_process_level=dual_process_level(dual),
            dual_process_decay=dp_decay,
            sci=sci,
            rq=rq,
            cognitive_age=age,
            training_capacity=tc,
            optimal_range=optimal,
            weekly_xp=weekly_xp,
            progress=progress,
            briefing=briefing,
            low_rec_streak_days=streak.low_rec_streak_days,
        )

    def recommend_difficulty(self, user_id: str, now: str | datetime | None = None) -> DifficultyResult:
        report = self.compute_report(user_id, now)
        return recommend_difficulty(
            DifficultyInput(
                recovery=report.recovery,
                sharpness=report.sharpness,
                readiness=report.readiness,
                weekly_xp=report.weekly_xp,
                training_capacity=report.training_capacity,
                training_plan=report.training_plan,
            ),
            test_mode=self._config.test_mode,
        )

    def daily_briefing(self, user_id: str, now: str | datetime | None = None) -> Briefing:
        return self.compute_report(user_id, now).briefing

    def weekly_progress(self, user_id: str, now: str | datetime | None = None) -> WeeklyProgress:
        return self.compute_report(user_id, now).progress

    # ------------------------------------------------------------------
    # State-changing operations
    # ------------------------------------------------------------------

    def _append_event(
        self,
        user_id: str,
        event_type: str,
        now: datetime,
        details: dict[str, Any] | None = None,
        report: MetricsReport | None = None,
    ) -> MetricsReport:
        report = report or self.compute_report(user_id, now)
        values = report.metric_values()
        self._repo.append_intraday_event(
            IntradayMetricEvent(
                id="",
                user_id=user_id,
                event_date=now.date().isoformat(),
                event_timestamp=to_utc_iso(now),
                event_type=event_type,
                event_details=details,
                **values,
            )
        )
        return report

    def record_exercise(
        self,
        user_id: str,
        *,
        area: str,
        thinking_mode: str,
        difficulty: str,
        score: float | None = None,
        completed_at: str | datetime | None = None,
    ) -> dict[str, Any]:
        """Credit a completed exercise: XP to one state, completion log, intraday event."""
        state_key = route_xp(area, thinking_mode)
        xp = exercise_xp(difficulty)
        now = _resolve_now(completed_at)
        stamp = to_utc_iso(now)

        record = self.load_record(user_id)
        column = STATE_COLUMNS[state_key]
        before = getattr(record, column)
        setattr(record, column, apply_state_update(before, xp))
        setattr(record, LAST_XP_COLUMNS[state_key], stamp)
        record.last_xp_at = stamp
        self._repo.save_metrics(record)

        self._repo.add_exercise_completion(
            ExerciseCompletion(
                id="",
                user_id=user_id,
                completed_at=stamp,
                area=area,
                thinking_mode=thinking_mode,
                difficulty=difficulty,
                xp_earned=xp,
                score=clamp(to_number(score)) if score is not None else None,
            )
        )
        report = self._append_event(
            user_id, "game", now, {"state": state_key, "xp": xp, "difficulty": difficulty}
        )
        logger.info("User %s earned %d XP on %s", user_id, xp, state_key)
        return {
            "state": state_key,
            "xp_earned": xp,
            "previous_value": before,
            "new_value": getattr(record, column),
            "metrics": report.metric_values(),
        }

    def record_task(
        self, user_id: str, task_type: str, completed_at: str | datetime | None = None
    ) -> dict[str, Any]:
        """Log a reading or listening task; it primes Reasoning Quality only."""
        require_choice(task_type, TASK_TYPES, "task_type")
        now = _resolve_now(completed_at)
        self.load_record(user_id)
        self._repo.add_task_completion(
            TaskCompletion(id="", user_id=user_id, task_type=task_type, completed_at=to_utc_iso(now))
        )
        report = self._append_event(user_id, "task", now, {"task_type": task_type})
        return {"task_type": task_type, "rq": report.rq.to_dict(), "metrics": report.metric_values()}

    def record_detox(
        self,
        user_id: str,
        kind: str,
        duration_minutes: float,
        completed_at: str | datetime | None = None,
    ) -> dict[str, Any]:
        """Log a detox or walking session; it feeds Recovery."""
        require_choice(kind, DETOX_KINDS, "kind")
        if duration_minutes is None or duration_minutes < 0:
            raise InvalidInputError(
                f"Invalid duration_minutes {duration_minutes!r}. Must be zero or more."
            )
        now = _resolve_now(completed_at)
        self.load_record(user_id)
        self._repo.add_detox_session(
            DetoxSession(
                id="",
                user_id=user_id,
                kind=kind,
                duration_minutes=float(duration_minutes),
                completed_at=to_utc_iso(now),
            )
        )
        event_type = "detox" if kind == "detox" else "walking"
        report = self._append_event(
            user_id, event_type, now, {"duration_minutes": float(duration_minutes)}
        )
        return {"kind": kind, "recovery": report.recovery, "metrics": report.metric_values()}

    def record_wearable(
        self,
        user_id: str,
        snapshot_date: str | date,
        *,
        hrv_ms: float | None = None,
        resting_hr: float | None = None,
        sleep_duration_min: float | None = None,
        sleep_efficiency: float | None = None,
        raw_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        day = parse_date(snapshot_date, "snapshot_date")
        self._repo.upsert_wearable_snapshot(
            WearableSnapshot(
                user_id=user_id,
                snapshot_date=day.isoformat(),
                hrv_ms=hrv_ms,
                resting_hr=resting_hr,
                sleep_duration_min=sleep_duration_min,
                sleep_efficiency=sleep_efficiency,
                raw_data=raw_data,
            )
        )
        physio = physio_component(hrv_ms, resting_hr, sleep_duration_min, sleep_efficiency)
        return {"snapshot_date": day.isoformat(), "physio_component": physio}

    def complete_onboarding(
        self,
        user_id: str,
        *,
        answers: dict[str, str],
        chronological_age: int | None = None,
        training_plan: str | None = None,
        completed_at: str | datetime | None = None,
    ) -> dict[str, Any]:
        """Store onboarding answers, seed the metrics record and start the baseline."""
        rri_answers = RRIAnswers.from_dict(answers)
        plan = self._plans.get(training_plan or self._config.default_training_plan)
        if chronological_age is not None and not 0 < chronological_age < 120:
            raise InvalidInputError(f"Invalid chronological_age {chronological_age!r}.")
        now = _resolve_now(completed_at)

        self._repo.save_onboarding_profile(
            OnboardingProfile(
                user_id=user_id,
                completed_at=to_utc_iso(now),
                chronological_age=chronological_age,
                answers=rri_answers.to_dict(),
            )
        )
        self._repo.create_default_metrics(user_id, plan.id)
        self.set_training_plan(user_id, plan.id)
        baseline = baseline_jobs.initialize_cognitive_baseline(
            self._repo,
            user_id,
            now.date(),
            default_chronological_age=self._config.default_chronological_age,
        )
        rri = compute_rri(rri_answers)
        return {
            "training_plan": plan.id,
            "rri": {
                "value": rri.value,
                "base": rri.base,
                "sleep_bonus": rri.sleep_bonus,
                "detox_bonus": rri.detox_bonus,
                "mental_state_bonus": rri.mental_state_bonus,
            },
            "baseline_calibrated": baseline.is_baseline_calibrated,
        }

    def update_recovery_streak(
        self, user_id: str, today: str | date, recovery: float | None
    ) -> RecoveryStreak:
        """Advance the low-recovery streak once per calendar day."""
        day = parse_date(today, "today")
        record = self.load_record(user_id)
        streak = next_recovery_streak(record, day, recovery)
        if streak.advanced:
            self._repo.update_recovery_streak(
                user_id,
                rec_snapshot_date=streak.rec_snapshot_date,
                rec_snapshot_value=streak.rec_snapshot_value,
                low_rec_streak_days=streak.low_rec_streak_days,
            )
            logger.info(
                "Recovery streak for user %s on %s: %d day(s)",
                user_id,
                streak.rec_snapshot_date,
                streak.low_rec_streak_days,
            )
        return streak

    def capture_daily_snapshot(
        self, user_id: str, now: str | datetime | None = None
    ) -> dict[str, Any]:
        """Upsert today's snapshot and advance the recovery streak.

        Safe to call any number of times per day: the snapshot is keyed on
        (user, date) and the streak advances at most once.
        """
        now = _resolve_now(now)
        report = self.compute_report(user_id, now)
        today = now.date()
        states = report.decayed.states

        status = self._repo.upsert_daily_snapshot(
            DailyMetricSnapshot(
                user_id=user_id,
                snapshot_date=today.isoformat(),
                readiness=report.readiness,
                sharpness=report.sharpness,
                recovery=report.recovery,
                reasoning_quality=report.rq.rq,
                s1=round1(report.s1),
                s2=round1(report.s2),
                ae=states.ae,
                ra=states.ra,
                ct=states.ct,
                in_score=states.in_,
            )
        )
        streak = self.update_recovery_streak(user_id, today, report.recovery)

        if status == "inserted":
            self._append_event(user_id, "app_open", now, report=report)
            if report.decayed.is_decaying:
                self._append_event(user_id, "decay", now, {"decay": report.decayed.decay}, report=report)
        return {
            "snapshot_date": today.isoformat(),
            "status": status,
            "metrics": report.metric_values(),
            "low_rec_streak_days": streak.low_rec_streak_days,
        }

    def score_recharging(
        self,
        user_id: str,
        pre: dict[str, float],
        post: dict[str, float],
        mode: str | None = None,
        now: str | datetime | None = None,
    ) -> dict[str, Any]:
        """Score a recharging session. Only the intraday log records it."""
        pre_check = RechargingCheck.from_dict(pre)
        post_check = RechargingCheck.from_dict(post)
        chosen_mode = validate_mode(mode) if mode else suggest_mode(pre_check)
        now = _resolve_now(now)

        result = recharging_score(pre_check, post_check)
        report = self._append_event(
            user_id, "recharging", now, {"mode": chosen_mode, "score": result.score}
        )
        return {
            "score": result.score,
            "level": result.level,
            "mode": chosen_mode,
            "deltas": result.deltas,
            "sharpness_boost": result.sharpness_boost,
            "session_sharpness": boosted_sharpness(report.sharpness, result.score),
        }

    def update_training_capacity(
        self, user_id: str, now: str | datetime | None = None
    ) -> dict[str, Any]:
        """Apply the weekly training-capacity update and persist it."""
        now = _resolve_now(now)
        report = self.compute_report(user_id, now)
        record = self.load_record(user_id)
        plan = self.plan_for(record)

        since = (now.date() - timedelta(days=7)).isoformat()
        recoveries = [
            s.recovery for s in self._repo.get_daily_snapshots(user_id, since=since) if s.recovery is not None
        ]
        avg_recovery = sum(recoveries) / len(recoveries) if recoveries else report.recovery
        days_idle = (
            elapsed_days(now, parse_timestamp(record.last_xp_at, "last_xp_at"))
            if record.last_xp_at
            else None
        )
        previous = report.training_capacity
        record.training_capacity = update_training_capacity(
            previous, report.weekly_xp, avg_recovery, days_idle, plan.tc_cap
        )
        self._repo.save_metrics(record)
        logger.info(
            "Training capacity for user %s: %.1f -> %.1f", user_id, previous, record.training_capacity
        )
        optimal = dynamic_optimal_range(record.training_capacity, plan.tc_cap, plan.xp_target_week)
        return {
            "previous": previous,
            "training_capacity": record.training_capacity,
            "optimal_min": optimal.min,
            "optimal_max": optimal.max,
            "cap": optimal.cap,
        }

    # ------------------------------------------------------------------
    # Baseline jobs and history
    # ------------------------------------------------------------------

    def run_baseline_jobs(self, user_id: str, today: str | date | None = None) -> dict[str, Any]:
        day = parse_date(today, "today") if today else datetime.now(timezone.utc).date()
        self.load_record(user_id)
        baseline = baseline_jobs.initialize_cognitive_baseline(
            self._repo,
            user_id,
            day,
            default_chronological_age=self._config.default_chronological_age,
        )
        daily = baseline_jobs.compute_cognitive_age_daily(self._repo, user_id, day)
        return {
            "baseline": {
                "days_with_data": baseline.days_with_data,
                "is_baseline_calibrated": baseline.is_baseline_calibrated,
                "baseline_score_90d": baseline.baseline_score_90d,
                "baseline_rq_90d": baseline.baseline_rq_90d,
                "baseline_start_date": baseline.baseline_start_date,
                "baseline_end_date": baseline.baseline_end_date,
            },
            "cognitive_age_daily": daily.to_dict() if daily else None,
        }

    def snapshot_history(
        self, user_id: str, since: str | None = None, until: str | None = None
    ) -> list[DailyMetricSnapshot]:
        since_day = parse_date(since, "since").isoformat() if since else None
        until_day = parse_date(until, "until").isoformat() if until else None
        return self._repo.get_daily_snapshots(user_id, since=since_day, until=until_day)

    def intraday_events(self, user_id: str, event_date: str) -> list[IntradayMetricEvent]:
        day = parse_date(event_date, "event_date")
        return self._repo.get_intraday_events(user_id, day.isoformat())
