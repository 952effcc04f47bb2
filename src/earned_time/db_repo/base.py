from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

# Import order matters: definitions before the rows that reference them.
LEDGER_TABLES: tuple[str, ...] = (
    "task_definitions",
    "task_executions",
    "reward_definitions",
    "reward_redemptions",
    "tracked_apps",
    "app_usage_aggregates",
    "app_usage_purchases",
)


class BaseDatabase:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE task_definitions (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        category TEXT NOT NULL DEFAULT '',
                        mandatory INTEGER NOT NULL DEFAULT 0,
                        reward_coins INTEGER NOT NULL DEFAULT 0,
                        recurring_reward_coins INTEGER,
                        recurrence_type TEXT NOT NULL DEFAULT 'DAILY'
                            CHECK(recurrence_type IN ('ONE_TIME', 'DAILY', 'UNLIMITED_PER_DAY', 'LIMITED_PER_DAY')),
                        max_executions_per_day INTEGER,
                        archived INTEGER NOT NULL DEFAULT 0
                    );

                    CREATE TABLE task_executions (
                        id TEXT PRIMARY KEY,
                        task_definition_id TEXT NOT NULL,
                        date TEXT NOT NULL,
                        time TEXT,
                        status TEXT NOT NULL CHECK(status IN ('DONE', 'SKIPPED')),
                        coins_awarded INTEGER NOT NULL DEFAULT 0
                    );

                    CREATE INDEX idx_task_executions_task_date ON task_executions(task_definition_id, date);
                    CREATE INDEX idx_task_executions_date ON task_executions(date);

                    CREATE TABLE reward_definitions (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        coin_cost INTEGER NOT NULL DEFAULT 0,
                        archived INTEGER NOT NULL DEFAULT 0
                    );

                    CREATE TABLE reward_redemptions (
                        id TEXT PRIMARY KEY,
                        reward_definition_id TEXT NOT NULL,
                        redemption_date_time TEXT NOT NULL,
                        coins_spent INTEGER NOT NULL
                    );
                """,
                2: """
                    CREATE TABLE tracked_apps (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        package_name TEXT NOT NULL UNIQUE,
                        cost_per_minute REAL NOT NULL DEFAULT 0,
                        purchased_minutes_total INTEGER NOT NULL DEFAULT 0,
                        is_blocked INTEGER NOT NULL DEFAULT 0,
                        night_override_enabled INTEGER NOT NULL DEFAULT 0,
                        night_override_activated_at TEXT
                    );

                    CREATE TABLE app_usage_aggregates (
                        id TEXT PRIMARY KEY,
                        app_id TEXT NOT NULL,
                        date TEXT NOT NULL,
                        used_minutes_automatic INTEGER NOT NULL DEFAULT 0,
                        UNIQUE(app_id, date)
                    );

                    CREATE TABLE app_usage_purchases (
                        id TEXT PRIMARY KEY,
                        app_id TEXT NOT NULL,
                        minutes_purchased INTEGER NOT NULL,
                        coins_spent INTEGER NOT NULL,
                        purchase_date_time TEXT NOT NULL
                    );

                    CREATE INDEX idx_app_usage_purchases_app ON app_usage_purchases(app_id);
                """,
                3: """
                    CREATE TABLE housekeeping (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                """,
            }

            now = datetime.now().isoformat(timespec="seconds")
            for version in sorted(migrations):
                if version in current:
                    continue
                conn.executescript(migrations[version])
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )
