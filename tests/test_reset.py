from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from earned_time.db import Database, RewardRedemption
from earned_time.db_constants import (
    HOUSEKEEPING_DAILY_PURCHASE_RESET,
    HOUSEKEEPING_WEEKLY_ZERO_RESET,
    WEEKLY_RESET_REWARD_ID,
)
from earned_time.economy import get_balance
from earned_time.reset import ResetCoordinator
from earned_time.tasks import grant_bonus_coins
from earned_time.usage import add_tracked_app, purchase_minutes


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def _buy(db: Database, app_id: str, now: datetime) -> None:
    assert purchase_minutes(db, app_id, 5, get_balance(db), now).ok


def test_daily_reset_runs_once_per_logical_day(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    app = add_tracked_app(db, "Video", "com.example.video", cost_per_minute=1.0)
    grant_bonus_coins(db, "Seed", 100, _dt(2026, 3, 2, 6, 30))
    coordinator = ResetCoordinator(db)

    runs = []
    for now in (_dt(2026, 3, 2, 7), _dt(2026, 3, 2, 12), _dt(2026, 3, 3, 5, 59)):
        _buy(db, app.id, now)
        runs.append(coordinator.perform_resets_if_needed(now).daily_purchase_reset)

    assert runs == [True, False, False]
    # only the first purchase was cleared
    assert len(db.list_usage_purchases()) == 2
    assert get_balance(db) == 85


def test_daily_reset_fires_again_after_six(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    app = add_tracked_app(db, "Video", "com.example.video", cost_per_minute=1.0)
    grant_bonus_coins(db, "Seed", 100, _dt(2026, 3, 2))
    coordinator = ResetCoordinator(db)

    _buy(db, app.id, _dt(2026, 3, 3, 5))
    first = coordinator.perform_resets_if_needed(_dt(2026, 3, 3, 5, 30))
    _buy(db, app.id, _dt(2026, 3, 3, 5, 45))
    second = coordinator.perform_resets_if_needed(_dt(2026, 3, 3, 6, 30))
    third = coordinator.perform_resets_if_needed(_dt(2026, 3, 3, 7))

    assert [first.daily_purchase_reset, second.daily_purchase_reset, third.daily_purchase_reset] == [
        True,
        True,
        False,
    ]
    assert first.purchases_cleared == 1
    assert second.purchases_cleared == 1
    assert db.list_usage_purchases() == []
    assert get_balance(db) == 90
    last = db.get_housekeeping_instant(HOUSEKEEPING_DAILY_PURCHASE_RESET)
    assert last == _dt(2026, 3, 3, 6, 30)


def test_weekly_routines_skip_weekdays(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    grant_bonus_coins(db, "Seed", 40, _dt(2026, 3, 2))
    report = ResetCoordinator(db).perform_resets_if_needed(_dt(2026, 3, 7, 12))  # Saturday
    assert report.weekly_recalculation is False
    assert report.weekly_zero_reset is False
    assert get_balance(db) == 40


def test_weekly_zero_reset_once_per_sunday(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    grant_bonus_coins(db, "Seed", 40, _dt(2026, 3, 2))
    coordinator = ResetCoordinator(db)

    report = coordinator.perform_resets_if_needed(_dt(2026, 3, 8, 9))
    assert report.weekly_recalculation is True
    assert report.weekly_zero_reset is True
    assert report.coins_neutralized == 40
    assert report.balance == 0
    assert get_balance(db) == 0

    grant_bonus_coins(db, "Later", 15, _dt(2026, 3, 8, 12))
    again = coordinator.perform_resets_if_needed(_dt(2026, 3, 8, 20))
    assert again.weekly_recalculation is False
    assert again.weekly_zero_reset is False
    assert get_balance(db) == 15

    assert db.get_housekeeping_instant(HOUSEKEEPING_WEEKLY_ZERO_RESET) == _dt(2026, 3, 8, 0)

    next_week = coordinator.perform_resets_if_needed(_dt(2026, 3, 15, 9))
    assert next_week.weekly_recalculation is True
    assert next_week.weekly_zero_reset is True
    assert get_balance(db) == 0

    neutralizers = [r for r in db.list_reward_redemptions() if r.reward_definition_id == WEEKLY_RESET_REWARD_ID]
    assert [r.coins_spent for r in neutralizers] == [40, 15]


def test_zero_reset_restores_negative_balance(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    grant_bonus_coins(db, "Seed", 10, _dt(2026, 3, 2))
    db.add_reward_redemption(
        RewardRedemption(
            id="legacy",
            reward_definition_id="imported",
            redemption_date_time=_dt(2026, 3, 3),
            coins_spent=25,
        )
    )
    assert get_balance(db) == -15

    report = ResetCoordinator(db).perform_resets_if_needed(_dt(2026, 3, 8, 9))
    assert report.coins_neutralized == -15
    assert get_balance(db) == 0


def test_zero_reset_with_zero_balance_writes_nothing(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    coordinator = ResetCoordinator(db)
    report = coordinator.perform_resets_if_needed(_dt(2026, 3, 8, 9))
    assert report.weekly_zero_reset is True
    assert report.coins_neutralized == 0
    assert db.list_reward_redemptions() == []
    assert coordinator.perform_resets_if_needed(_dt(2026, 3, 8, 10)).weekly_zero_reset is False


def test_resets_are_idempotent_across_many_calls(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    app = add_tracked_app(db, "Video", "com.example.video", cost_per_minute=1.0)
    grant_bonus_coins(db, "Seed", 100, _dt(2026, 3, 7))
    coordinator = ResetCoordinator(db)
    coordinator.perform_resets_if_needed(_dt(2026, 3, 8, 8))
    grant_bonus_coins(db, "More", 30, _dt(2026, 3, 8, 9))
    _buy(db, app.id, _dt(2026, 3, 8, 9))

    for minute in range(0, 60, 5):
        coordinator.perform_resets_if_needed(_dt(2026, 3, 8, 11, minute))

    assert len(db.list_usage_purchases()) == 1
    assert get_balance(db) == 25
