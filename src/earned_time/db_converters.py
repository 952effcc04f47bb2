from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, time

from earned_time.db_models import (
    AppUsageAggregate,
    AppUsagePurchase,
    RewardDefinition,
    RewardRedemption,
    TaskDefinition,
    TaskExecution,
    TrackedApp,
)

logger = logging.getLogger(__name__)


def _parse_optional_instant(raw: str | None, field: str, record_id: str) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        logger.warning("unparseable %s=%r on record %s, ignoring", field, raw, record_id)
        return None


def _row_to_task_definition(row: sqlite3.Row) -> TaskDefinition:
    max_per_day = row["max_executions_per_day"]
    recurring = row["recurring_reward_coins"]
    return TaskDefinition(
        id=row["id"],
        name=row["name"],
        category=row["category"] or "",
        mandatory=bool(row["mandatory"]),
        reward_coins=int(row["reward_coins"]),
        recurring_reward_coins=int(recurring) if recurring is not None else None,
        recurrence_type=row["recurrence_type"],
        max_executions_per_day=int(max_per_day) if max_per_day is not None else None,
        archived=bool(row["archived"]),
    )


def _row_to_task_execution(row: sqlite3.Row) -> TaskExecution:
    return TaskExecution(
        id=row["id"],
        task_definition_id=row["task_definition_id"],
        date=date.fromisoformat(row["date"]),
        time=time.fromisoformat(row["time"]) if row["time"] else None,
        status=row["status"],
        coins_awarded=int(row["coins_awarded"]),
    )


def _row_to_reward_definition(row: sqlite3.Row) -> RewardDefinition:
    return RewardDefinition(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        coin_cost=int(row["coin_cost"]),
        archived=bool(row["archived"]),
    )


def _row_to_reward_redemption(row: sqlite3.Row) -> RewardRedemption:
    return RewardRedemption(
        id=row["id"],
        reward_definition_id=row["reward_definition_id"],
        redemption_date_time=datetime.fromisoformat(row["redemption_date_time"]),
        coins_spent=int(row["coins_spent"]),
    )


def _row_to_tracked_app(row: sqlite3.Row) -> TrackedApp:
    return TrackedApp(
        id=row["id"],
        name=row["name"],
        package_name=row["package_name"],
        cost_per_minute=float(row["cost_per_minute"]),
        purchased_minutes_total=int(row["purchased_minutes_total"]),
        is_blocked=bool(row["is_blocked"]),
        night_override_enabled=bool(row["night_override_enabled"]),
        night_override_activated_at=_parse_optional_instant(
            row["night_override_activated_at"], "night_override_activated_at", row["id"]
        ),
    )


def _row_to_usage_aggregate(row: sqlite3.Row) -> AppUsageAggregate:
    return AppUsageAggregate(
        id=row["id"],
        app_id=row["app_id"],
        date=date.fromisoformat(row["date"]),
        used_minutes_automatic=int(row["used_minutes_automatic"]),
    )


def _row_to_usage_purchase(row: sqlite3.Row) -> AppUsagePurchase:
    return AppUsagePurchase(
        id=row["id"],
        app_id=row["app_id"],
        minutes_purchased=int(row["minutes_purchased"]),
        coins_spent=int(row["coins_spent"]),
        purchase_date_time=datetime.fromisoformat(row["purchase_date_time"]),
    )
