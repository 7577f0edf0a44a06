"""Metrics repository: the narrow storage adapter for the metrics engine.

The repository mediates between typed records (MetricsRecord,
DailyMetricSnapshot, ...) and the SQLite database. Every row is validated on
its way in and out, and self-reported or wearable payloads pass through
FieldEncryptor.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any

from neuroloop.core.storage.database import MetricsDatabase
from neuroloop.core.storage.encryption import FieldEncryptor
from neuroloop.core.storage.models import (
    DETOX_KINDS,
    INTRADAY_EVENT_TYPES,
    TASK_TYPES,
    CognitiveAgeDaily,
    CognitiveBaseline,
    DailyMetricSnapshot,
    DetoxSession,
    ExerciseCompletion,
    IntradayMetricEvent,
    MetricsRecord,
    OnboardingProfile,
    TaskCompletion,
    WearableSnapshot,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when a record violates the storage contract."""


_METRICS_COLUMNS = (
    "focus_stability",
    "fast_thinking",
    "reasoning_accuracy",
    "slow_thinking",
    "baseline_focus",
    "baseline_fast_thinking",
    "baseline_reasoning",
    "baseline_slow_thinking",
    "baseline_cognitive_age",
    "last_ae_xp_at",
    "last_ra_xp_at",
    "last_ct_xp_at",
    "last_in_xp_at",
    "last_xp_at",
    "training_plan",
    "training_capacity",
    "rec_snapshot_date",
    "rec_snapshot_value",
    "low_rec_streak_days",
)

_SNAPSHOT_VALUE_COLUMNS = (
    "readiness",
    "sharpness",
    "recovery",
    "reasoning_quality",
    "s1",
    "s2",
    "ae",
    "ra",
    "ct",
    "in_score",
)


def _require_date(value: str | None, field_name: str, *, nullable: bool = False) -> str | None:
    """Validate a YYYY-MM-DD string at the storage boundary."""
    if value is None and nullable:
        return None
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError as exc:
        raise RepositoryError(f"{field_name} must be an ISO date, got {value!r}") from exc


def _require_timestamp(value: str | None, field_name: str, *, nullable: bool = False) -> str | None:
    """Validate an ISO 8601 timestamp at the storage boundary."""
    if value is None and nullable:
        return None
    try:
        datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise RepositoryError(f"{field_name} must be an ISO timestamp, got {value!r}") from exc
    return str(value)


def _require_choice(value: str, allowed: tuple[str, ...], field_name: str) -> str:
    if value not in allowed:
        raise RepositoryError(f"{field_name} must be one of {allowed}, got {value!r}")
    return value


class MetricsRepository:
    """CRUD repository for per-user metrics, snapshots and activity events.

    Usage::

        db = MetricsDatabase(":memory:")
        db.initialize()
        encryptor = FieldEncryptor(key="...")
        repo = MetricsRepository(db, encryptor)

        record = repo.get_metrics("user-1") or repo.create_default_metrics("user-1")
        repo.upsert_daily_snapshot(snapshot)
    """

    def __init__(self, database: MetricsDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # ------------------------------------------------------------------
    # Metrics record (one row per user)
    # ------------------------------------------------------------------

    def get_metrics(self, user_id: str) -> MetricsRecord | None:
        """Fetch the metrics record for a user, or None if none exists."""
        row = self._db.connection.execute(
            "SELECT * FROM user_metrics WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_metrics(row)

    def create_default_metrics(
        self, user_id: str, training_plan: str | None = None
    ) -> MetricsRecord:
        """Create the default record (all four states at 50) if absent.

        Returns the stored record. An existing record is left untouched.
        """
        conn = self._db.connection
        now = self._now_iso()
        cursor = conn.execute(
            """INSERT INTO user_metrics (
                user_id, focus_stability, fast_thinking, reasoning_accuracy, slow_thinking,
                training_plan, created_at, updated_at
            ) VALUES (?, 50, 50, 50, 50, ?, ?, ?)
            ON CONFLICT(user_id) DO NOTHING""",
            (user_id, training_plan, now, now),
        )
        conn.commit()
        if cursor.rowcount:
            logger.info("Created default metrics record for user %s", user_id)
        record = self.get_metrics(user_id)
        if record is None:  # pragma: no cover
            raise RepositoryError(f"Metrics record for {user_id!r} vanished after insert")
        return record

    def save_metrics(self, record: MetricsRecord) -> None:
        """Upsert the full metrics record keyed on user_id."""
        for name in ("rec_snapshot_date",):
            _require_date(getattr(record, name), name, nullable=True)
        for name in ("last_ae_xp_at", "last_ra_xp_at", "last_ct_xp_at", "last_in_xp_at", "last_xp_at"):
            _require_timestamp(getattr(record, name), name, nullable=True)

        now = self._now_iso()
        values = [getattr(record, c) for c in _METRICS_COLUMNS]
        columns = ", ".join(_METRICS_COLUMNS)
        placeholders = ", ".join("?" for _ in _METRICS_COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in _METRICS_COLUMNS)

        conn = self._db.connection
        conn.execute(
            f"""INSERT INTO user_metrics (user_id, {columns}, created_at, updated_at)
                VALUES (?, {placeholders}, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET {updates}, updated_at = excluded.updated_at""",
            (record.user_id, *values, record.created_at or now, now),
        )
        conn.commit()
        logger.debug("Saved metrics record for user %s", record.user_id)

    def update_recovery_streak(
        self,
        user_id: str,
        *,
        rec_snapshot_date: str,
        rec_snapshot_value: float,
        low_rec_streak_days: int,
    ) -> None:
        """Persist the recovery streak fields of an existing record."""
        _require_date(rec_snapshot_date, "rec_snapshot_date")
        conn = self._db.connection
        cursor = conn.execute(
            """UPDATE user_metrics
               SET rec_snapshot_date = ?, rec_snapshot_value = ?,
                   low_rec_streak_days = ?, updated_at = ?
               WHERE user_id = ?""",
            (rec_snapshot_date, rec_snapshot_value, low_rec_streak_days, self._now_iso(), user_id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise RepositoryError(f"No metrics record for user {user_id!r}")

    def count_users(self) -> int:
        """Return the number of users with a metrics record."""
        row = self._db.connection.execute("SELECT COUNT(*) FROM user_metrics").fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Key rotation
    # ------------------------------------------------------------------

    _ENCRYPTED_COLUMNS = (
        ("intraday_metric_events", "event_details_enc"),
        ("wearable_snapshots", "raw_enc"),
        ("onboarding_profiles", "answers_enc"),
    )

    def reencrypt_payloads(self) -> int:
        """Re-encrypt every stored payload under the primary key.

        Tokens written with a retired key stay readable through the
        encryptor's fallback keys; after this pass they no longer need them.
        Returns the number of rows rewritten.
        """
        conn = self._db.connection
        rewritten = 0
        for table, column in self._ENCRYPTED_COLUMNS:
            rows = conn.execute(
                f"SELECT rowid, {column} FROM {table} WHERE {column} IS NOT NULL AND {column} != ''"
            ).fetchall()
            for row in rows:
                conn.execute(
                    f"UPDATE {table} SET {column} = ? WHERE rowid = ?",
                    (self._enc.rotate(row[1]), row[0]),
                )
            rewritten += len(rows)
        conn.commit()
        logger.info("Re-encrypted %d stored payload(s) under the primary key", rewritten)
        return rewritten

    # ------------------------------------------------------------------
    # Daily snapshots (one row per user and calendar day)
    # ------------------------------------------------------------------

    def upsert_daily_snapshot(self, snapshot: DailyMetricSnapshot) -> str:
        """Insert or update the snapshot for (user_id, snapshot_date).

        An identical second write is a no-op: the conflict clause only updates
        when at least one value differs.

        Returns:
            ``"inserted"``, ``"updated"`` or ``"unchanged"``.
        """
        snapshot_date = _require_date(snapshot.snapshot_date, "snapshot_date")
        conn = self._db.connection
        existed = (
            conn.execute(
                "SELECT 1 FROM daily_metric_snapshots WHERE user_id = ? AND snapshot_date = ?",
                (snapshot.user_id, snapshot_date),
            ).fetchone()
            is not None
        )

        columns = ", ".join(_SNAPSHOT_VALUE_COLUMNS)
        placeholders = ", ".join("?" for _ in _SNAPSHOT_VALUE_COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in _SNAPSHOT_VALUE_COLUMNS)
        changed = " OR ".join(
            f"daily_metric_snapshots.{c} IS NOT excluded.{c}" for c in _SNAPSHOT_VALUE_COLUMNS
        )
        now = self._now_iso()
        cursor = conn.execute(
            f"""INSERT INTO daily_metric_snapshots
                    (user_id, snapshot_date, {columns}, created_at, updated_at)
                VALUES (?, ?, {placeholders}, ?, ?)
                ON CONFLICT(user_id, snapshot_date) DO UPDATE
                    SET {updates}, updated_at = excluded.updated_at
                    WHERE {changed}""",
            (
                snapshot.user_id,
                snapshot_date,
                *(getattr(snapshot, c) for c in _SNAPSHOT_VALUE_COLUMNS),
                now,
                now,
            ),
        )
        conn.commit()

        if not existed:
            status = "inserted"
        elif cursor.rowcount:
            status = "updated"
        else:
            status = "unchanged"
        logger.info(
            "Daily snapshot %s for user %s on %s", status, snapshot.user_id, snapshot_date
        )
        return status

    def get_daily_snapshot(self, user_id: str, snapshot_date: str) -> DailyMetricSnapshot | None:
        row = self._db.connection.execute(
            "SELECT * FROM daily_metric_snapshots WHERE user_id = ? AND snapshot_date = ?",
            (user_id, _require_date(snapshot_date, "snapshot_date")),
        ).fetchone()
        return self._row_to_snapshot(row) if row is not None else None

    def get_daily_snapshots(
        self,
        user_id: str,
        *,
        since: str | None = None,
        until: str | None = None,
    ) -> list[DailyMetricSnapshot]:
        """Query daily snapshots for a user, oldest first.

        Args:
            user_id: Owner of the snapshots.
            since: Inclusive lower bound (YYYY-MM-DD).
            until: Inclusive upper bound (YYYY-MM-DD).
        """
        query = "SELECT * FROM daily_metric_snapshots WHERE user_id = ?"
        params: list[Any] = [user_id]
        if since:
            query += " AND snapshot_date >= ?"
            params.append(_require_date(since, "since"))
        if until:
            query += " AND snapshot_date <= ?"
            params.append(_require_date(until, "until"))
        query += " ORDER BY snapshot_date ASC"

        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_snapshot(r) for r in rows]

    # ------------------------------------------------------------------
    # Intraday events (append-only)
    # ------------------------------------------------------------------

    def append_intraday_event(self, event: IntradayMetricEvent) -> str:
        """Insert an intraday event. Events are never updated."""
        _require_choice(event.event_type, INTRADAY_EVENT_TYPES, "event_type")
        event_date = _require_date(event.event_date, "event_date")
        _require_timestamp(event.event_timestamp, "event_timestamp")

        eid = event.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO intraday_metric_events (
                id, user_id, event_date, event_timestamp, event_type,
                readiness, sharpness, recovery, reasoning_quality, event_details_enc
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                eid,
                event.user_id,
                event_date,
                event.event_timestamp,
                event.event_type,
                event.readiness,
                event.sharpness,
                event.recovery,
                event.reasoning_quality,
                self._enc.encrypt(event.event_details),
            ),
        )
        conn.commit()
        logger.debug("Recorded %s event for user %s", event.event_type, event.user_id)
        return eid

    def get_intraday_events(self, user_id: str, event_date: str) -> list[IntradayMetricEvent]:
        """Events for one user and day, ordered by timestamp ascending."""
        rows = self._db.connection.execute(
            """SELECT * FROM intraday_metric_events
               WHERE user_id = ? AND event_date = ?
               ORDER BY event_timestamp ASC""",
            (user_id, _require_date(event_date, "event_date")),
        ).fetchall()
        return [self._row_to_event(r) for r in rows]

    # ------------------------------------------------------------------
    # Completion events
    # ------------------------------------------------------------------

    def add_exercise_completion(self, completion: ExerciseCompletion) -> str:
        _require_timestamp(completion.completed_at, "completed_at")
        cid = completion.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO exercise_completions
               (id, user_id, completed_at, area, thinking_mode, difficulty, xp_earned, score)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                cid,
                completion.user_id,
                completion.completed_at,
                completion.area,
                completion.thinking_mode,
                completion.difficulty,
                completion.xp_earned,
                completion.score,
            ),
        )
        conn.commit()
        return cid

    def get_exercise_completions(
        self, user_id: str, *, since: str | None = None, limit: int | None = None
    ) -> list[ExerciseCompletion]:
        """Exercise completions for a user, oldest first."""
        query = "SELECT * FROM exercise_completions WHERE user_id = ?"
        params: list[Any] = [user_id]
        if since:
            query += " AND completed_at >= ?"
            params.append(_require_timestamp(since, "since"))
        query += " ORDER BY completed_at ASC"
        rows = self._db.connection.execute(query, params).fetchall()
        completions = [self._row_to_exercise(r) for r in rows]
        if limit is not None:
            completions = completions[-limit:]
        return completions

    def add_task_completion(self, task: TaskCompletion) -> str:
        _require_choice(task.task_type, TASK_TYPES, "task_type")
        _require_timestamp(task.completed_at, "completed_at")
        tid = task.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            "INSERT INTO task_completions (id, user_id, task_type, completed_at) VALUES (?, ?, ?, ?)",
            (tid, task.user_id, task.task_type, task.completed_at),
        )
        conn.commit()
        return tid

    def get_task_completions(self, user_id: str, *, since: str | None = None) -> list[TaskCompletion]:
        query = "SELECT * FROM task_completions WHERE user_id = ?"
        params: list[Any] = [user_id]
        if since:
            query += " AND completed_at >= ?"
            params.append(_require_timestamp(since, "since"))
        query += " ORDER BY completed_at ASC"
        rows = self._db.connection.execute(query, params).fetchall()
        return [
            TaskCompletion(
                id=r["id"],
                user_id=r["user_id"],
                task_type=_require_choice(r["task_type"], TASK_TYPES, "task_type"),
                completed_at=r["completed_at"],
            )
            for r in rows
        ]

    def get_last_task_at(self, user_id: str, *, until: str | None = None) -> str | None:
        query = "SELECT MAX(completed_at) FROM task_completions WHERE user_id = ?"
        params: list[Any] = [user_id]
        if until:
            query += " AND completed_at <= ?"
            params.append(_require_timestamp(until, "until"))
        row = self._db.connection.execute(query, params).fetchone()
        return row[0]

    def add_detox_session(self, session: DetoxSession) -> str:
        _require_choice(session.kind, DETOX_KINDS, "kind")
        _require_timestamp(session.completed_at, "completed_at")
        sid = session.id or self._new_id()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO detox_sessions (id, user_id, kind, duration_minutes, completed_at)
               VALUES (?, ?, ?, ?, ?)""",
            (sid, session.user_id, session.kind, session.duration_minutes, session.completed_at),
        )
        conn.commit()
        return sid

    def get_detox_sessions(self, user_id: str, *, since: str | None = None) -> list[DetoxSession]:
        query = "SELECT * FROM detox_sessions WHERE user_id = ?"
        params: list[Any] = [user_id]
        if since:
            query += " AND completed_at >= ?"
            params.append(_require_timestamp(since, "since"))
        query += " ORDER BY completed_at ASC"
        rows = self._db.connection.execute(query, params).fetchall()
        return [
            DetoxSession(
                id=r["id"],
                user_id=r["user_id"],
                kind=_require_choice(r["kind"], DETOX_KINDS, "kind"),
                duration_minutes=r["duration_minutes"],
                completed_at=r["completed_at"],
            )
            for r in rows
        ]

    def has_recovery_data(self, user_id: str) -> bool:
        """Whether any real detox or walking session exists for the user."""
        row = self._db.connection.execute(
            "SELECT 1 FROM detox_sessions WHERE user_id = ? LIMIT 1", (user_id,)
        ).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Wearables and onboarding
    # ------------------------------------------------------------------

    def upsert_wearable_snapshot(self, snapshot: WearableSnapshot) -> None:
        snapshot_date = _require_date(snapshot.snapshot_date, "snapshot_date")
        conn = self._db.connection
        conn.execute(
            """INSERT INTO wearable_snapshots (
                user_id, snapshot_date, hrv_ms, resting_hr,
                sleep_duration_min, sleep_efficiency, raw_enc, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, snapshot_date) DO UPDATE SET
                hrv_ms = excluded.hrv_ms,
                resting_hr = excluded.resting_hr,
                sleep_duration_min = excluded.sleep_duration_min,
                sleep_efficiency = excluded.sleep_efficiency,
                raw_enc = excluded.raw_enc""",
            (
                snapshot.user_id,
                snapshot_date,
                snapshot.hrv_ms,
                snapshot.resting_hr,
                snapshot.sleep_duration_min,
                snapshot.sleep_efficiency,
                self._enc.encrypt(snapshot.raw_data),
                snapshot.created_at or self._now_iso(),
            ),
        )
        conn.commit()
        logger.info("Saved wearable snapshot for user %s on %s", snapshot.user_id, snapshot_date)

    def get_latest_wearable_snapshot(
        self, user_id: str, on_or_before: str
    ) -> WearableSnapshot | None:
        row = self._db.connection.execute(
            """SELECT * FROM wearable_snapshots
               WHERE user_id = ? AND snapshot_date <= ?
               ORDER BY snapshot_date DESC LIMIT 1""",
            (user_id, _require_date(on_or_before, "on_or_before")),
        ).fetchone()
        if row is None:
            return None
        return WearableSnapshot(
            user_id=row["user_id"],
            snapshot_date=row["snapshot_date"],
            hrv_ms=row["hrv_ms"],
            resting_hr=row["resting_hr"],
            sleep_duration_min=row["sleep_duration_min"],
            sleep_efficiency=row["sleep_efficiency"],
            raw_data=self._enc.decrypt(row["raw_enc"]),
            created_at=row["created_at"],
        )

    def save_onboarding_profile(self, profile: OnboardingProfile) -> None:
        _require_timestamp(profile.completed_at, "completed_at")
        conn = self._db.connection
        conn.execute(
            """INSERT INTO onboarding_profiles (user_id, chronological_age, answers_enc, completed_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   chronological_age = excluded.chronological_age,
                   answers_enc = excluded.answers_enc,
                   completed_at = excluded.completed_at""",
            (
                profile.user_id,
                profile.chronological_age,
                self._enc.encrypt(profile.answers),
                profile.completed_at,
            ),
        )
        conn.commit()
        logger.info("Saved onboarding profile for user %s", profile.user_id)

    def get_onboarding_profile(self, user_id: str) -> OnboardingProfile | None:
        row = self._db.connection.execute(
            "SELECT * FROM onboarding_profiles WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return OnboardingProfile(
            user_id=row["user_id"],
            completed_at=row["completed_at"],
            chronological_age=row["chronological_age"],
            answers=self._enc.decrypt(row["answers_enc"]) or {},
        )

    # ------------------------------------------------------------------
    # Baseline calibration and cognitive age tracking
    # ------------------------------------------------------------------

    def upsert_baseline(self, baseline: CognitiveBaseline) -> None:
        """Insert or update the baseline row keyed on user_id."""
        _require_date(baseline.baseline_start_date, "baseline_start_date", nullable=True)
        _require_date(baseline.baseline_end_date, "baseline_end_date", nullable=True)
        conn = self._db.connection
        conn.execute(
            """INSERT INTO cognitive_baselines (
                user_id, chrono_age_at_onboarding, baseline_score_90d, baseline_rq_90d,
                baseline_start_date, baseline_end_date, days_with_data,
                is_baseline_calibrated, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                chrono_age_at_onboarding = excluded.chrono_age_at_onboarding,
                baseline_score_90d = excluded.baseline_score_90d,
                baseline_rq_90d = excluded.baseline_rq_90d,
                baseline_start_date = excluded.baseline_start_date,
                baseline_end_date = excluded.baseline_end_date,
                days_with_data = excluded.days_with_data,
                is_baseline_calibrated = excluded.is_baseline_calibrated,
                updated_at = excluded.updated_at""",
            (
                baseline.user_id,
                baseline.chrono_age_at_onboarding,
                baseline.baseline_score_90d,
                baseline.baseline_rq_90d,
                baseline.baseline_start_date,
                baseline.baseline_end_date,
                baseline.days_with_data,
                int(baseline.is_baseline_calibrated),
                self._now_iso(),
            ),
        )
        conn.commit()

    def get_baseline(self, user_id: str) -> CognitiveBaseline | None:
        row = self._db.connection.execute(
            "SELECT * FROM cognitive_baselines WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return CognitiveBaseline(
            user_id=row["user_id"],
            chrono_age_at_onboarding=row["chrono_age_at_onboarding"],
            baseline_score_90d=row["baseline_score_90d"],
            baseline_rq_90d=row["baseline_rq_90d"],
            baseline_start_date=row["baseline_start_date"],
            baseline_end_date=row["baseline_end_date"],
            days_with_data=row["days_with_data"],
            is_baseline_calibrated=bool(row["is_baseline_calibrated"]),
            updated_at=row["updated_at"],
        )

    def upsert_cognitive_age_daily(self, record: CognitiveAgeDaily) -> None:
        calc_date = _require_date(record.calc_date, "calc_date")
        conn = self._db.connection
        conn.execute(
            """INSERT INTO cognitive_age_daily (
                user_id, calc_date, perf_daily, perf_21d, perf_30d, perf_180d,
                below_threshold, regression_streak_days, regression_penalty_years,
                last_regression_trigger_at, cognitive_age, pace_of_aging, rq_today
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, calc_date) DO UPDATE SET
                perf_daily = excluded.perf_daily,
                perf_21d = excluded.perf_21d,
                perf_30d = excluded.perf_30d,
                perf_180d = excluded.perf_180d,
                below_threshold = excluded.below_threshold,
                regression_streak_days = excluded.regression_streak_days,
                regression_penalty_years = excluded.regression_penalty_years,
                last_regression_trigger_at = excluded.last_regression_trigger_at,
                cognitive_age = excluded.cognitive_age,
                pace_of_aging = excluded.pace_of_aging,
                rq_today = excluded.rq_today""",
            (
                record.user_id,
                calc_date,
                record.perf_daily,
                record.perf_21d,
                record.perf_30d,
                record.perf_180d,
                int(record.below_threshold),
                record.regression_streak_days,
                record.regression_penalty_years,
                record.last_regression_trigger_at,
                record.cognitive_age,
                record.pace_of_aging,
                record.rq_today,
            ),
        )
        conn.commit()

    def get_latest_cognitive_age_daily(
        self, user_id: str, *, before: str | None = None, on_or_before: str | None = None
    ) -> CognitiveAgeDaily | None:
        """Most recent cognitive age row, optionally bounded by a date."""
        query = "SELECT * FROM cognitive_age_daily WHERE user_id = ?"
        params: list[Any] = [user_id]
        if before:
            query += " AND calc_date < ?"
            params.append(_require_date(before, "before"))
        if on_or_before:
            query += " AND calc_date <= ?"
            params.append(_require_date(on_or_before, "on_or_before"))
        query += " ORDER BY calc_date DESC LIMIT 1"
        row = self._db.connection.execute(query, params).fetchone()
        if row is None:
            return None
        return CognitiveAgeDaily(
            user_id=row["user_id"],
            calc_date=row["calc_date"],
            perf_daily=row["perf_daily"],
            perf_21d=row["perf_21d"],
            perf_30d=row["perf_30d"],
            perf_180d=row["perf_180d"],
            below_threshold=bool(row["below_threshold"]),
            regression_streak_days=row["regression_streak_days"],
            regression_penalty_years=row["regression_penalty_years"],
            last_regression_trigger_at=row["last_regression_trigger_at"],
            cognitive_age=row["cognitive_age"],
            pace_of_aging=row["pace_of_aging"],
            rq_today=row["rq_today"],
        )

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _row_to_metrics(self, row) -> MetricsRecord:
        data = {c: row[c] for c in _METRICS_COLUMNS}
        _require_date(data["rec_snapshot_date"], "rec_snapshot_date", nullable=True)
        data["low_rec_streak_days"] = int(data["low_rec_streak_days"] or 0)
        return MetricsRecord(
            user_id=row["user_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **data,
        )

    @staticmethod
    def _row_to_snapshot(row) -> DailyMetricSnapshot:
        return DailyMetricSnapshot(
            user_id=row["user_id"],
            snapshot_date=row["snapshot_date"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **{c: row[c] for c in _SNAPSHOT_VALUE_COLUMNS},
        )

    def _row_to_event(self, row) -> IntradayMetricEvent:
        return IntradayMetricEvent(
            id=row["id"],
            user_id=row["user_id"],
            event_date=row["event_date"],
            event_timestamp=row["event_timestamp"],
            event_type=_require_choice(row["event_type"], INTRADAY_EVENT_TYPES, "event_type"),
            readiness=row["readiness"],
            sharpness=row["sharpness"],
            recovery=row["recovery"],
            reasoning_quality=row["reasoning_quality"],
            event_details=self._enc.decrypt(row["event_details_enc"]),
        )

    @staticmethod
    def _row_to_exercise(row) -> ExerciseCompletion:
        return ExerciseCompletion(
            id=row["id"],
            user_id=row["user_id"],
            completed_at=row["completed_at"],
            area=row["area"],
            thinking_mode=row["thinking_mode"],
            difficulty=row["difficulty"],
            xp_earned=row["xp_earned"],
            score=row["score"],
        )
