from __future__ import annotations

import random
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from earned_time.db import AppUsagePurchase, Database, RewardRedemption
from earned_time.db_constants import RECURRENCE_UNLIMITED
from earned_time.economy import coins_for_minutes, compute_balance, get_balance, summarize_ledger
from earned_time.rewards import add_reward_definition, redeem
from earned_time.tasks import add_task_definition, complete_task
from earned_time.usage import add_tracked_app, purchase_minutes


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def test_empty_history_has_zero_balance(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    assert get_balance(db) == 0
    summary = summarize_ledger(db)
    assert summary.earned_coins == 0
    assert summary.balance == 0


def test_balance_matches_reference_accumulator(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    rng = random.Random(7)
    task = add_task_definition(db, "Pushups", reward_coins=4, recurrence_type=RECURRENCE_UNLIMITED)
    reward = add_reward_definition(db, "Dessert", coin_cost=3)
    app = add_tracked_app(db, "Video", "com.example.video", cost_per_minute=0.5)

    expected = 0
    for i in range(60):
        now = _dt(2026, 3, 2, 8, i % 60)
        op = rng.choice(["task", "redeem", "purchase"])
        if op == "task":
            expected += complete_task(db, task.id, now).coins_awarded
        elif op == "redeem":
            redemption = redeem(db, reward.id, expected, now)
            if redemption is not None:
                expected -= redemption.coins_spent
        else:
            result = purchase_minutes(db, app.id, rng.randint(1, 10), expected, now)
            if result.ok:
                expected -= result.coins_required
        assert get_balance(db) == expected

    summary = summarize_ledger(db)
    assert summary.balance == expected
    assert summary.earned_coins - summary.spent_on_rewards - summary.spent_on_time == expected


def test_compute_balance_is_a_pure_sum() -> None:
    now = _dt(2026, 3, 2)
    redemptions = [RewardRedemption(id="r1", reward_definition_id="x", redemption_date_time=now, coins_spent=-5)]
    purchases = [
        AppUsagePurchase(id="p1", app_id="a", minutes_purchased=10, coins_spent=7, purchase_date_time=now)
    ]
    assert compute_balance([], redemptions, purchases) == -2


@pytest.mark.parametrize(
    ("cost", "minutes", "expected"),
    [
        (1.0, 10, 10),
        (0.5, 3, 1),
        (0.25, 3, 0),
        (2.0, 15, 30),
        (0.0, 60, 0),
        (0.29, 100, 29),
        (0.57, 100, 57),
        (1.1, 3, 3),
    ],
)
def test_coins_for_minutes_truncates(cost: float, minutes: int, expected: int) -> None:
    assert coins_for_minutes(cost, minutes) == expected
