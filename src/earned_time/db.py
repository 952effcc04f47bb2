from __future__ import annotations

from earned_time.db_models import (
    AppUsageAggregate,
    AppUsagePurchase,
    RewardDefinition,
    RewardRedemption,
    TaskDefinition,
    TaskExecution,
    TrackedApp,
)
from earned_time.db_repo import AppMixin, BaseDatabase, RewardMixin, SystemMixin, TaskMixin

__all__ = [
    "Database",
    "AppUsageAggregate",
    "AppUsagePurchase",
    "RewardDefinition",
    "RewardRedemption",
    "TaskDefinition",
    "TaskExecution",
    "TrackedApp",
]


class Database(BaseDatabase, TaskMixin, RewardMixin, AppMixin, SystemMixin):
    pass
