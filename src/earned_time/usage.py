from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any

from earned_time.db import AppUsageAggregate, AppUsagePurchase, Database, TrackedApp
from earned_time.db_constants import PURCHASE_SETTLEMENT_REWARD_ID
from earned_time.economy import coins_for_minutes
from earned_time.rewards import ensure_system_reward
from earned_time.tasks import new_id

logger = logging.getLogger(__name__)

REJECT_UNKNOWN_APP = "unknown_app"
REJECT_INVALID_MINUTES = "invalid_minutes"
REJECT_FREE = "zero_cost"
REJECT_INSUFFICIENT_FUNDS = "insufficient_funds"


@dataclass(frozen=True)
class PurchaseResult:
    ok: bool
    coins_required: int
    purchase: AppUsagePurchase | None = None
    reason: str | None = None
    message: str = ""


def effective_limit(app: TrackedApp, purchases: Iterable[AppUsagePurchase]) -> int:
    """A configured hard cap wins; otherwise the cap is what was bought."""
    if app.purchased_minutes_total > 0:
        return app.purchased_minutes_total
    return sum(p.minutes_purchased for p in purchases)


def remaining_minutes_for(db: Database, app: TrackedApp, day: date) -> int:
    limit = effective_limit(app, db.list_usage_purchases(app.id))
    aggregate = db.get_usage_aggregate(app.id, day)
    used = aggregate.used_minutes_automatic if aggregate else 0
    return limit - used


def remaining_minutes(db: Database, app_id: str, day: date) -> int | None:
    app = db.get_tracked_app(app_id)
    if app is None:
        return None
    return remaining_minutes_for(db, app, day)


def purchase_minutes(
    db: Database,
    app_id: str,
    minutes: int,
    current_balance: int,
    now: datetime,
) -> PurchaseResult:
    app = db.get_tracked_app(app_id)
    if app is None:
        return PurchaseResult(
            ok=False, coins_required=0, reason=REJECT_UNKNOWN_APP, message=f"Unknown tracked app: {app_id}"
        )
    if minutes <= 0:
        return PurchaseResult(
            ok=False, coins_required=0, reason=REJECT_INVALID_MINUTES, message="Minutes must be positive."
        )

    coins_required = coins_for_minutes(app.cost_per_minute, minutes)
    if coins_required <= 0:
        return PurchaseResult(
            ok=False,
            coins_required=coins_required,
            reason=REJECT_FREE,
            message=f"{minutes} min of {app.name} costs nothing; set a cost per minute first.",
        )
    if coins_required > current_balance:
        logger.info(
            "purchase rejected app_id=%s minutes=%s required=%s balance=%s",
            app.id,
            minutes,
            coins_required,
            current_balance,
        )
        return PurchaseResult(
            ok=False,
            coins_required=coins_required,
            reason=REJECT_INSUFFICIENT_FUNDS,
            message=f"Not enough coins: {minutes} min of {app.name} costs {coins_required}, you have {current_balance}.",
        )

    purchase = AppUsagePurchase(
        id=new_id(),
        app_id=app.id,
        minutes_purchased=minutes,
        coins_spent=coins_required,
        purchase_date_time=now,
    )
    db.add_usage_purchase(purchase)
    logger.info("purchase recorded app_id=%s minutes=%s coins=%s", app.id, minutes, coins_required)
    return PurchaseResult(
        ok=True,
        coins_required=coins_required,
        purchase=purchase,
        message=f"Bought {minutes} min of {app.name} for {coins_required} coins.",
    )


def record_daily_usage(db: Database, app_id: str, day: date, minutes: int) -> AppUsageAggregate:
    # The poller reports the day's cumulative total, so this overwrites.
    return db.upsert_usage_aggregate(new_id(), app_id, day, max(minutes, 0))


def sync_usage(db: Database, usage_by_package: Mapping[str, int], day: date) -> list[AppUsageAggregate]:
    updated: list[AppUsageAggregate] = []
    for app in db.list_tracked_apps():
        minutes = int(usage_by_package.get(app.package_name, 0))
        updated.append(record_daily_usage(db, app.id, day, minutes))
    logger.debug("usage synced for %s tracked apps on %s", len(updated), day.isoformat())
    return updated


def clear_all_purchases(db: Database, now: datetime) -> int:
    """Drop every purchase for every app.

    The coins those purchases cost stay spent: they are booked as a single
    settlement redemption in the same transaction.
    """
    ensure_system_reward(db, PURCHASE_SETTLEMENT_REWARD_ID, "Purchased time settlement")
    removed, coins = db.delete_all_usage_purchases(new_id(), PURCHASE_SETTLEMENT_REWARD_ID, now)
    logger.info("cleared %s usage purchases, settled %s coins", removed, coins)
    return removed


def add_tracked_app(
    db: Database,
    name: str,
    package_name: str,
    cost_per_minute: float = 0.0,
    purchased_minutes_total: int = 0,
    app_id: str | None = None,
) -> TrackedApp:
    app = TrackedApp(
        id=app_id or new_id(),
        name=name.strip(),
        package_name=package_name.strip(),
        cost_per_minute=cost_per_minute,
        purchased_minutes_total=purchased_minutes_total,
        is_blocked=False,
        night_override_enabled=False,
        night_override_activated_at=None,
    )
    return db.upsert_tracked_app(app)


def update_tracked_app(db: Database, app_id: str, **changes: Any) -> TrackedApp | None:
    app = db.get_tracked_app(app_id)
    if app is None:
        return None
    return db.upsert_tracked_app(replace(app, **changes))


def find_tracked_app_by_package(db: Database, package_name: str) -> TrackedApp | None:
    return db.find_tracked_app_by_package(package_name)


def activate_night_override(db: Database, app_id: str, now: datetime) -> bool:
    return db.set_night_override(app_id, now)


def clear_night_override(db: Database, app_id: str) -> bool:
    return db.set_night_override(app_id, None)
