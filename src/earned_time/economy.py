from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from earned_time.db import AppUsagePurchase, Database, RewardRedemption, TaskExecution


@dataclass(frozen=True)
class LedgerSummary:
    earned_coins: int
    spent_on_rewards: int
    spent_on_time: int
    balance: int


def compute_balance(
    executions: Iterable[TaskExecution],
    redemptions: Iterable[RewardRedemption],
    purchases: Iterable[AppUsagePurchase],
) -> int:
    earned = sum(e.coins_awarded for e in executions)
    spent_rewards = sum(r.coins_spent for r in redemptions)
    spent_time = sum(p.coins_spent for p in purchases)
    return earned - spent_rewards - spent_time


def summarize_ledger(db: Database) -> LedgerSummary:
    earned = sum(e.coins_awarded for e in db.list_task_executions())
    spent_rewards = sum(r.coins_spent for r in db.list_reward_redemptions())
    spent_time = sum(p.coins_spent for p in db.list_usage_purchases())
    return LedgerSummary(
        earned_coins=earned,
        spent_on_rewards=spent_rewards,
        spent_on_time=spent_time,
        balance=earned - spent_rewards - spent_time,
    )


def get_balance(db: Database) -> int:
    return compute_balance(
        db.list_task_executions(),
        db.list_reward_redemptions(),
        db.list_usage_purchases(),
    )


def coins_for_minutes(cost_per_minute: float, minutes: int) -> int:
    # exact decimal product, so 0.29 * 100 floors to 29
    return math.floor(Decimal(str(cost_per_minute)) * minutes)
