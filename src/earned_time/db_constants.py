from __future__ import annotations

RECURRENCE_ONE_TIME = "ONE_TIME"
RECURRENCE_DAILY = "DAILY"
RECURRENCE_UNLIMITED = "UNLIMITED_PER_DAY"
RECURRENCE_LIMITED = "LIMITED_PER_DAY"

RECURRENCE_TYPES = (
    RECURRENCE_ONE_TIME,
    RECURRENCE_DAILY,
    RECURRENCE_UNLIMITED,
    RECURRENCE_LIMITED,
)

STATUS_DONE = "DONE"
STATUS_SKIPPED = "SKIPPED"

# Reserved ids for records the system writes on its own behalf.
BONUS_TASK_ID = "settings_single_use_reward"
WEEKLY_RESET_REWARD_ID = "weekly-coin-reset"
PURCHASE_SETTLEMENT_REWARD_ID = "daily-purchase-settlement"

HOUSEKEEPING_DAILY_PURCHASE_RESET = "last_daily_purchase_reset"
HOUSEKEEPING_WEEKLY_COIN_RESET = "last_weekly_coin_reset"
HOUSEKEEPING_WEEKLY_ZERO_RESET = "last_weekly_zero_reset"

HOUSEKEEPING_KEYS = (
    HOUSEKEEPING_DAILY_PURCHASE_RESET,
    HOUSEKEEPING_WEEKLY_COIN_RESET,
    HOUSEKEEPING_WEEKLY_ZERO_RESET,
)

# Logical day boundary for purchases and night override expiry.
DAY_BOUNDARY_HOUR = 6
