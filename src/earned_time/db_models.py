from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time


@dataclass(frozen=True)
class TaskDefinition:
    id: str
    name: str
    category: str
    mandatory: bool
    reward_coins: int
    recurring_reward_coins: int | None
    recurrence_type: str
    max_executions_per_day: int | None
    archived: bool


@dataclass(frozen=True)
class TaskExecution:
    id: str
    task_definition_id: str
    date: date
    time: time | None
    status: str
    coins_awarded: int


@dataclass(frozen=True)
class RewardDefinition:
    id: str
    name: str
    description: str
    coin_cost: int
    archived: bool


@dataclass(frozen=True)
class RewardRedemption:
    id: str
    reward_definition_id: str
    redemption_date_time: datetime
    coins_spent: int


@dataclass(frozen=True)
class TrackedApp:
    id: str
    name: str
    package_name: str
    cost_per_minute: float
    purchased_minutes_total: int
    is_blocked: bool
    night_override_enabled: bool
    night_override_activated_at: datetime | None


@dataclass(frozen=True)
class AppUsageAggregate:
    id: str
    app_id: str
    date: date
    used_minutes_automatic: int


@dataclass(frozen=True)
class AppUsagePurchase:
    id: str
    app_id: str
    minutes_purchased: int
    coins_spent: int
    purchase_date_time: datetime
