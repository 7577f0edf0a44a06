"""SQLite database management for the NeuroLoop metrics data bank.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per user: current states, baselines, activity timestamps, streak
CREATE TABLE IF NOT EXISTS user_metrics (
    user_id                 TEXT PRIMARY KEY,

    -- Stored skill columns (mapped to AE / RA / CT / IN)
    focus_stability         REAL,
    fast_thinking           REAL,
    reasoning_accuracy      REAL,
    slow_thinking           REAL,

    baseline_focus          REAL,
    baseline_fast_thinking  REAL,
    baseline_reasoning      REAL,
    baseline_slow_thinking  REAL,
    baseline_cognitive_age  REAL,

    last_ae_xp_at           TEXT,
    last_ra_xp_at           TEXT,
    last_ct_xp_at           TEXT,
    last_in_xp_at           TEXT,
    last_xp_at              TEXT,

    training_plan           TEXT,
    training_capacity       REAL,

    -- Recovery streak tracking (advanced at most once per calendar day)
    rec_snapshot_date       TEXT,
    rec_snapshot_value      REAL,
    low_rec_streak_days     INTEGER NOT NULL DEFAULT 0,

    created_at              TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at              TEXT NOT NULL DEFAULT (datetime('now'))
);

-- At most one row per (user, calendar day)
CREATE TABLE IF NOT EXISTS daily_metric_snapshots (
    user_id           TEXT NOT NULL,
    snapshot_date     TEXT NOT NULL,
    readiness         REAL,
    sharpness         REAL,
    recovery          REAL,
    reasoning_quality REAL,
    s1                REAL,
    s2                REAL,
    ae                REAL,
    ra                REAL,
    ct                REAL,
    in_score          REAL,
    created_at        TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at        TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (user_id, snapshot_date)
);

-- Append-only log, never updated
CREATE TABLE IF NOT EXISTS intraday_metric_events (
    id                TEXT PRIMARY KEY,
    user_id           TEXT NOT NULL,
    event_date        TEXT NOT NULL,
    event_timestamp   TEXT NOT NULL,
    event_type        TEXT NOT NULL,
    readiness         REAL,
    sharpness         REAL,
    recovery          REAL,
    reasoning_quality REAL,
    event_details_enc TEXT
);

CREATE TABLE IF NOT EXISTS exercise_completions (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    completed_at  TEXT NOT NULL,
    area          TEXT NOT NULL,
    thinking_mode TEXT NOT NULL,
    difficulty    TEXT NOT NULL,
    xp_earned     REAL NOT NULL,
    score         REAL
);

CREATE TABLE IF NOT EXISTS task_completions (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    task_type    TEXT NOT NULL,
    completed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS detox_sessions (
    id               TEXT PRIMARY KEY,
    user_id          TEXT NOT NULL,
    kind             TEXT NOT NULL,
    duration_minutes REAL NOT NULL,
    completed_at     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Indexes for common query patterns
CREATE INDEX IF NOT EXISTS idx_snapshots_user_date ON daily_metric_snapshots(user_id, snapshot_date);
CREATE INDEX IF NOT EXISTS idx_events_user_date    ON intraday_metric_events(user_id, event_date, event_timestamp);
CREATE INDEX IF NOT EXISTS idx_exercises_user_ts   ON exercise_completions(user_id, completed_at);
CREATE INDEX IF NOT EXISTS idx_tasks_user_ts       ON task_completions(user_id, completed_at);
CREATE INDEX IF NOT EXISTS idx_detox_user_ts       ON detox_sessions(user_id, completed_at);
"""

# ---------------------------------------------------------------------------
# V2: Onboarding, wearables, baseline calibration, cognitive age tracking
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS onboarding_profiles (
    user_id           TEXT PRIMARY KEY,
    chronological_age INTEGER,
    answers_enc       TEXT,
    completed_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS wearable_snapshots (
    user_id            TEXT NOT NULL,
    snapshot_date      TEXT NOT NULL,
    hrv_ms             REAL,
    resting_hr         REAL,
    sleep_duration_min REAL,
    sleep_efficiency   REAL,
    raw_enc            TEXT,
    created_at         TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (user_id, snapshot_date)
);

CREATE TABLE IF NOT EXISTS cognitive_baselines (
    user_id                  TEXT PRIMARY KEY,
    chrono_age_at_onboarding INTEGER NOT NULL,
    baseline_score_90d       REAL,
    baseline_rq_90d          REAL,
    baseline_start_date      TEXT,
    baseline_end_date        TEXT,
    days_with_data           INTEGER NOT NULL DEFAULT 0,
    is_baseline_calibrated   INTEGER NOT NULL DEFAULT 0,
    updated_at               TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS cognitive_age_daily (
    user_id                    TEXT NOT NULL,
    calc_date                  TEXT NOT NULL,
    perf_daily                 REAL,
    perf_21d                   REAL,
    perf_30d                   REAL,
    perf_180d                  REAL,
    below_threshold            INTEGER NOT NULL DEFAULT 0,
    regression_streak_days     INTEGER NOT NULL DEFAULT 0,
    regression_penalty_years   REAL NOT NULL DEFAULT 0,
    last_regression_trigger_at TEXT,
    cognitive_age              REAL,
    pace_of_aging              REAL,
    rq_today                   REAL,
    PRIMARY KEY (user_id, calc_date)
);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class MetricsDatabase:
    """SQLite database manager for the NeuroLoop metrics data bank.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = MetricsDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return  # Already initialized

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file), check_same_thread=False)
        else:
            self._conn = sqlite3.connect(":memory:", check_same_thread=False)

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Metrics database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection

        # V1: Core tables (CREATE IF NOT EXISTS is idempotent)
        conn.executescript(_SCHEMA_V1)

        cursor = conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        current_version = row[0] if row[0] is not None else 0

        # V2: Onboarding, wearables, baselines, cognitive age
        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: baseline and cognitive age tables")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Metrics database closed")

    def __enter__(self) -> MetricsDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
