from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from earned_time.db import Database, RewardRedemption
from earned_time.db_constants import (
    HOUSEKEEPING_DAILY_PURCHASE_RESET,
    HOUSEKEEPING_WEEKLY_COIN_RESET,
    HOUSEKEEPING_WEEKLY_ZERO_RESET,
    WEEKLY_RESET_REWARD_ID,
)
from earned_time.economy import get_balance
from earned_time.rewards import ensure_system_reward
from earned_time.tasks import new_id
from earned_time.time_utils import DEFAULT_TZ, logical_date, start_of_day, week_start_date
from earned_time.usage import clear_all_purchases

logger = logging.getLogger(__name__)

SUNDAY = 6


@dataclass(frozen=True)
class ResetReport:
    daily_purchase_reset: bool = False
    weekly_recalculation: bool = False
    weekly_zero_reset: bool = False
    purchases_cleared: int = 0
    coins_neutralized: int = 0
    balance: int | None = None


def neutralize_balance(db: Database, now: datetime) -> RewardRedemption | None:
    """Bring the derived balance back to exactly zero with one redemption.

    A negative balance yields a negative ``coins_spent``. Returns None when the
    balance is already zero.
    """
    balance = get_balance(db)
    if balance == 0:
        return None
    ensure_system_reward(db, WEEKLY_RESET_REWARD_ID, "Weekly coin reset")
    redemption = RewardRedemption(
        id=new_id(),
        reward_definition_id=WEEKLY_RESET_REWARD_ID,
        redemption_date_time=now,
        coins_spent=balance,
    )
    db.add_reward_redemption(redemption)
    logger.info("balance neutralized coins=%s", balance)
    return redemption


class ResetCoordinator:
    """Runs the daily and weekly housekeeping routines when they are due.

    Each routine remembers when it last ran in the ``housekeeping`` table, so
    calling ``perform_resets_if_needed`` on every blocker tick is safe.
    """

    def __init__(self, db: Database, tz_name: str = DEFAULT_TZ) -> None:
        self.db = db
        self.tz = ZoneInfo(tz_name)

    def _last_run(self, key: str) -> datetime | None:
        last = self.db.get_housekeeping_instant(key)
        if last is None:
            return None
        if last.tzinfo is None:
            return last.replace(tzinfo=self.tz)
        return last.astimezone(self.tz)

    def perform_resets_if_needed(self, now: datetime) -> ResetReport:
        if now.tzinfo is None:
            now = now.replace(tzinfo=self.tz)
        else:
            now = now.astimezone(self.tz)
        cleared = self._daily_purchase_reset(now)
        recalculated = False
        neutralized: RewardRedemption | None = None
        zeroed = False
        if now.weekday() == SUNDAY:
            recalculated = self._weekly_recalculation(now)
            zeroed, neutralized = self._weekly_zero_reset(now)

        return ResetReport(
            daily_purchase_reset=cleared is not None,
            weekly_recalculation=recalculated,
            weekly_zero_reset=zeroed,
            purchases_cleared=cleared or 0,
            coins_neutralized=neutralized.coins_spent if neutralized else 0,
            balance=get_balance(self.db) if (cleared is not None or recalculated or zeroed) else None,
        )

    def _daily_purchase_reset(self, now: datetime) -> int | None:
        last = self._last_run(HOUSEKEEPING_DAILY_PURCHASE_RESET)
        if last is not None and logical_date(last) >= logical_date(now):
            return None
        removed = clear_all_purchases(self.db, now)
        self.db.set_housekeeping_instant(HOUSEKEEPING_DAILY_PURCHASE_RESET, now)
        logger.info("daily purchase reset ran for logical day %s", logical_date(now).isoformat())
        return removed

    def _weekly_recalculation(self, now: datetime) -> bool:
        week_start = week_start_date(now.date())
        last = self._last_run(HOUSEKEEPING_WEEKLY_COIN_RESET)
        if last is not None and last.date() >= week_start:
            return False
        balance = get_balance(self.db)
        self.db.set_housekeeping_instant(HOUSEKEEPING_WEEKLY_COIN_RESET, now)
        logger.info("weekly recalculation for week %s balance=%s", week_start.isoformat(), balance)
        return True

    def _weekly_zero_reset(self, now: datetime) -> tuple[bool, RewardRedemption | None]:
        last = self._last_run(HOUSEKEEPING_WEEKLY_ZERO_RESET)
        if last is not None and last.date() == now.date():
            return False, None
        redemption = neutralize_balance(self.db, now)
        self.db.set_housekeeping_instant(HOUSEKEEPING_WEEKLY_ZERO_RESET, start_of_day(now))
        return True, redemption
