from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from earned_time.db import Database, TaskDefinition, TaskExecution
from earned_time.db_constants import (
    BONUS_TASK_ID,
    RECURRENCE_DAILY,
    RECURRENCE_LIMITED,
    RECURRENCE_ONE_TIME,
    RECURRENCE_TYPES,
    STATUS_DONE,
    STATUS_SKIPPED,
)

logger = logging.getLogger(__name__)


class TaskNotFoundError(LookupError):
    pass


class CapReachedError(ValueError):
    def __init__(self, task: TaskDefinition, day: date, done_count: int) -> None:
        super().__init__(
            f"task '{task.name}' ({task.recurrence_type}) already completed {done_count}x on {day.isoformat()}"
        )
        self.task = task
        self.day = day
        self.done_count = done_count


def new_id() -> str:
    return uuid.uuid4().hex


def daily_cap(task: TaskDefinition) -> int | None:
    """Maximum DONE executions per day, or None when unbounded."""
    if task.recurrence_type in (RECURRENCE_ONE_TIME, RECURRENCE_DAILY):
        return 1
    if task.recurrence_type == RECURRENCE_LIMITED:
        return max(task.max_executions_per_day or 0, 0)
    return None


def remaining_executions(db: Database, task: TaskDefinition, day: date) -> int | None:
    cap = daily_cap(task)
    if cap is None:
        return None
    return max(cap - db.count_done_executions(task.id, day), 0)


def add_task_definition(
    db: Database,
    name: str,
    reward_coins: int,
    recurrence_type: str = RECURRENCE_DAILY,
    mandatory: bool = False,
    recurring_reward_coins: int | None = None,
    max_executions_per_day: int | None = None,
    category: str = "",
    task_id: str | None = None,
) -> TaskDefinition:
    if recurrence_type not in RECURRENCE_TYPES:
        raise ValueError(f"recurrence_type must be one of {', '.join(RECURRENCE_TYPES)}")
    if recurrence_type == RECURRENCE_LIMITED and not max_executions_per_day:
        raise ValueError("LIMITED_PER_DAY tasks need max_executions_per_day")
    task = TaskDefinition(
        id=task_id or new_id(),
        name=name.strip(),
        category=category,
        mandatory=mandatory,
        reward_coins=reward_coins,
        recurring_reward_coins=recurring_reward_coins,
        recurrence_type=recurrence_type,
        max_executions_per_day=max_executions_per_day if recurrence_type == RECURRENCE_LIMITED else None,
        archived=False,
    )
    return db.upsert_task_definition(task)


def update_task_definition(db: Database, task_id: str, **changes: Any) -> TaskDefinition | None:
    task = db.get_task_definition(task_id)
    if task is None:
        return None
    updated = replace(task, **changes)
    if updated.recurrence_type not in RECURRENCE_TYPES:
        raise ValueError(f"recurrence_type must be one of {', '.join(RECURRENCE_TYPES)}")
    if updated.recurrence_type == RECURRENCE_LIMITED and not updated.max_executions_per_day:
        raise ValueError("LIMITED_PER_DAY tasks need max_executions_per_day")
    return db.upsert_task_definition(updated)


def list_active_tasks(db: Database) -> list[TaskDefinition]:
    return db.list_task_definitions(include_archived=False)


def executions_for_date(db: Database, day: date) -> list[TaskExecution]:
    return db.list_task_executions(day=day)


def archive_task(db: Database, task_id: str) -> None:
    if not db.set_task_archived(task_id, True):
        logger.debug("archive_task: no task with id=%s", task_id)


def complete_task(
    db: Database,
    task_id: str,
    now: datetime,
    skipped: bool = False,
    enforce_cap: bool = True,
) -> TaskExecution:
    """Append one execution of ``task_id`` for ``now``'s calendar day.

    The first DONE execution of the day awards ``reward_coins``. Later DONE
    executions award ``recurring_reward_coins`` when the task defines it and
    ``reward_coins`` otherwise. Skipped executions award nothing and never
    count towards the recurrence cap.

    Raises ``TaskNotFoundError`` for unknown or archived tasks and, when
    ``enforce_cap`` is set, ``CapReachedError`` once the day's DONE cap is
    used up. Nothing is written in either case.
    """
    task = db.get_task_definition(task_id)
    if task is None or task.archived:
        raise TaskNotFoundError(f"TaskDefinition not found for id={task_id}")

    today = now.date()
    if skipped:
        coins = 0
        status = STATUS_SKIPPED
    else:
        done_today = db.count_done_executions(task.id, today)
        cap = daily_cap(task)
        if enforce_cap and cap is not None and done_today >= cap:
            raise CapReachedError(task, today, done_today)
        if task.recurring_reward_coins is not None and done_today > 0:
            coins = task.recurring_reward_coins
        else:
            coins = task.reward_coins
        status = STATUS_DONE

    execution = TaskExecution(
        id=new_id(),
        task_definition_id=task.id,
        date=today,
        time=now.time().replace(microsecond=0),
        status=status,
        coins_awarded=coins,
    )
    db.add_task_execution(execution)
    logger.info("task completed task_id=%s status=%s coins=%s", task.id, status, coins)
    return execution


def mandatory_gate_satisfied(db: Database, day: date) -> bool:
    handled = db.task_ids_with_execution_on(day)
    for task in db.list_task_definitions(include_archived=False):
        if task.mandatory and task.id not in handled:
            return False
    return True


def grant_bonus_coins(db: Database, name: str, coins: int, now: datetime) -> TaskExecution:
    """Credit coins outside the task catalog, e.g. a one-off reward from settings.

    Recorded as an execution of a reserved ONE_TIME task so it shows up in
    history and in the balance like any other earning.
    """
    task = db.get_task_definition(BONUS_TASK_ID)
    if task is None:
        task = add_task_definition(
            db,
            name=name.strip() or "Settings reward",
            reward_coins=coins,
            recurrence_type=RECURRENCE_ONE_TIME,
            category="REWARD",
            task_id=BONUS_TASK_ID,
        )
    execution = TaskExecution(
        id=new_id(),
        task_definition_id=task.id,
        date=now.date(),
        time=now.time().replace(microsecond=0),
        status=STATUS_DONE,
        coins_awarded=coins,
    )
    db.add_task_execution(execution)
    logger.info("bonus coins granted coins=%s", coins)
    return execution
