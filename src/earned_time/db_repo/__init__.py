from .base import LEDGER_TABLES, BaseDatabase
from .tasks import TaskMixin
from .rewards import RewardMixin
from .apps import AppMixin
from .system import SystemMixin

__all__ = [
    "LEDGER_TABLES",
    "BaseDatabase",
    "TaskMixin",
    "RewardMixin",
    "AppMixin",
    "SystemMixin",
]
