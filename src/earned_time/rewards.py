from __future__ import annotations

import logging
from datetime import datetime

from earned_time.db import Database, RewardDefinition, RewardRedemption
from earned_time.economy import get_balance
from earned_time.tasks import new_id

logger = logging.getLogger(__name__)


def add_reward_definition(
    db: Database,
    name: str,
    coin_cost: int,
    description: str = "",
    reward_id: str | None = None,
) -> RewardDefinition:
    reward = RewardDefinition(
        id=reward_id or new_id(),
        name=name.strip(),
        description=description,
        coin_cost=coin_cost,
        archived=False,
    )
    return db.upsert_reward_definition(reward)


def list_rewards(db: Database) -> list[RewardDefinition]:
    return db.list_reward_definitions(include_archived=False)


def archive_reward(db: Database, reward_id: str) -> None:
    db.set_reward_archived(reward_id, True)


def redeem(db: Database, reward_id: str, current_balance: int, now: datetime) -> RewardRedemption | None:
    """Spend ``coin_cost`` coins on a reward if ``current_balance`` covers it.

    Returns None, writing nothing, when the reward is unknown or archived, has
    no positive cost, or costs more than the balance.
    """
    reward = db.get_reward_definition(reward_id)
    if reward is None or reward.archived:
        logger.info("redeem rejected: reward %s not found", reward_id)
        return None
    if reward.coin_cost <= 0 or current_balance < reward.coin_cost:
        logger.info(
            "redeem rejected: reward_id=%s cost=%s balance=%s", reward_id, reward.coin_cost, current_balance
        )
        return None
    redemption = RewardRedemption(
        id=new_id(),
        reward_definition_id=reward.id,
        redemption_date_time=now,
        coins_spent=reward.coin_cost,
    )
    db.add_reward_redemption(redemption)
    logger.info("reward redeemed reward_id=%s coins=%s", reward.id, reward.coin_cost)
    return redemption


def redeem_with_balance(db: Database, reward_id: str, now: datetime) -> RewardRedemption | None:
    return redeem(db, reward_id, get_balance(db), now)


def ensure_system_reward(db: Database, reward_id: str, name: str) -> RewardDefinition:
    """Archived zero-cost definition that system-written redemptions point at."""
    existing = db.get_reward_definition(reward_id)
    if existing is not None:
        return existing
    return db.upsert_reward_definition(
        RewardDefinition(id=reward_id, name=name, description="System record", coin_cost=0, archived=True)
    )
