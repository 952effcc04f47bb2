from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Protocol

from earned_time.db_converters import _row_to_tracked_app, _row_to_usage_aggregate, _row_to_usage_purchase
from earned_time.db_models import AppUsageAggregate, AppUsagePurchase, TrackedApp


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class AppMixin:
    def upsert_tracked_app(self: DbProtocol, app: TrackedApp) -> TrackedApp:
        activated = app.night_override_activated_at.isoformat() if app.night_override_activated_at else None
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tracked_apps(
                    id, name, package_name, cost_per_minute, purchased_minutes_total,
                    is_blocked, night_override_enabled, night_override_activated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    package_name=excluded.package_name,
                    cost_per_minute=excluded.cost_per_minute,
                    purchased_minutes_total=excluded.purchased_minutes_total,
                    is_blocked=excluded.is_blocked,
                    night_override_enabled=excluded.night_override_enabled,
                    night_override_activated_at=excluded.night_override_activated_at
                """,
                (
                    app.id,
                    app.name,
                    app.package_name,
                    app.cost_per_minute,
                    app.purchased_minutes_total,
                    1 if app.is_blocked else 0,
                    1 if app.night_override_enabled else 0,
                    activated,
                ),
            )
            row = conn.execute("SELECT * FROM tracked_apps WHERE id = ?", (app.id,)).fetchone()
        assert row is not None
        return _row_to_tracked_app(row)

    def get_tracked_app(self: DbProtocol, app_id: str) -> TrackedApp | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tracked_apps WHERE id = ?", (app_id,)).fetchone()
        return _row_to_tracked_app(row) if row else None

    def find_tracked_app_by_package(self: DbProtocol, package_name: str) -> TrackedApp | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tracked_apps WHERE package_name = ?", (package_name,)).fetchone()
        return _row_to_tracked_app(row) if row else None

    def list_tracked_apps(self: DbProtocol) -> list[TrackedApp]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM tracked_apps ORDER BY name ASC, id ASC").fetchall()
        return [_row_to_tracked_app(r) for r in rows]

    def set_night_override(self: DbProtocol, app_id: str, activated_at: datetime | None) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE tracked_apps
                SET night_override_enabled = ?, night_override_activated_at = ?
                WHERE id = ?
                """,
                (
                    1 if activated_at is not None else 0,
                    activated_at.isoformat() if activated_at is not None else None,
                    app_id,
                ),
            )
        return cur.rowcount > 0

    def upsert_usage_aggregate(self: DbProtocol, aggregate_id: str, app_id: str, day: date, minutes: int) -> AppUsageAggregate:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO app_usage_aggregates(id, app_id, date, used_minutes_automatic)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(app_id, date) DO UPDATE SET
                    used_minutes_automatic=excluded.used_minutes_automatic
                """,
                (aggregate_id, app_id, day.isoformat(), minutes),
            )
            row = conn.execute(
                "SELECT * FROM app_usage_aggregates WHERE app_id = ? AND date = ?",
                (app_id, day.isoformat()),
            ).fetchone()
        assert row is not None
        return _row_to_usage_aggregate(row)

    def get_usage_aggregate(self: DbProtocol, app_id: str, day: date) -> AppUsageAggregate | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM app_usage_aggregates WHERE app_id = ? AND date = ?",
                (app_id, day.isoformat()),
            ).fetchone()
        return _row_to_usage_aggregate(row) if row else None

    def list_usage_aggregates(self: DbProtocol, day: date | None = None) -> list[AppUsageAggregate]:
        with self._connect() as conn:
            if day is None:
                rows = conn.execute("SELECT * FROM app_usage_aggregates ORDER BY date ASC, app_id ASC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM app_usage_aggregates WHERE date = ? ORDER BY app_id ASC",
                    (day.isoformat(),),
                ).fetchall()
        return [_row_to_usage_aggregate(r) for r in rows]

    def add_usage_purchase(self: DbProtocol, purchase: AppUsagePurchase) -> AppUsagePurchase:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO app_usage_purchases(id, app_id, minutes_purchased, coins_spent, purchase_date_time)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    purchase.id,
                    purchase.app_id,
                    purchase.minutes_purchased,
                    purchase.coins_spent,
                    purchase.purchase_date_time.isoformat(),
                ),
            )
        return purchase

    def list_usage_purchases(self: DbProtocol, app_id: str | None = None) -> list[AppUsagePurchase]:
        with self._connect() as conn:
            if app_id is None:
                rows = conn.execute(
                    "SELECT * FROM app_usage_purchases ORDER BY purchase_date_time ASC, rowid ASC"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM app_usage_purchases WHERE app_id = ? ORDER BY purchase_date_time ASC, rowid ASC",
                    (app_id,),
                ).fetchall()
        return [_row_to_usage_purchase(r) for r in rows]

    def delete_all_usage_purchases(
        self: DbProtocol,
        settlement_id: str,
        settlement_reward_id: str,
        settled_at: datetime,
    ) -> tuple[int, int]:
        """Delete every purchase, booking their coins as one redemption.

        Returns ``(rows_removed, coins_settled)``. Both writes share one
        transaction.
        """
        with self._connect() as conn:
            # take the write lock before reading the total to settle
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT COUNT(*) AS c, COALESCE(SUM(coins_spent), 0) AS total FROM app_usage_purchases"
            ).fetchone()
            count = int(row["c"]) if row else 0
            total = int(row["total"]) if row else 0
            if count == 0:
                return 0, 0
            if total != 0:
                conn.execute(
                    """
                    INSERT INTO reward_redemptions(id, reward_definition_id, redemption_date_time, coins_spent)
                    VALUES (?, ?, ?, ?)
                    """,
                    (settlement_id, settlement_reward_id, settled_at.isoformat(), total),
                )
            conn.execute("DELETE FROM app_usage_purchases")
        return count, total
