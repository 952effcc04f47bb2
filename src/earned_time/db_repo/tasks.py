from __future__ import annotations

import sqlite3
from datetime import date
from typing import Protocol

from earned_time.db_constants import STATUS_DONE
from earned_time.db_converters import _row_to_task_definition, _row_to_task_execution
from earned_time.db_models import TaskDefinition, TaskExecution


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class TaskMixin:
    def upsert_task_definition(self: DbProtocol, task: TaskDefinition) -> TaskDefinition:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO task_definitions(
                    id, name, category, mandatory, reward_coins, recurring_reward_coins,
                    recurrence_type, max_executions_per_day, archived
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    category=excluded.category,
                    mandatory=excluded.mandatory,
                    reward_coins=excluded.reward_coins,
                    recurring_reward_coins=excluded.recurring_reward_coins,
                    recurrence_type=excluded.recurrence_type,
                    max_executions_per_day=excluded.max_executions_per_day,
                    archived=excluded.archived
                """,
                (
                    task.id,
                    task.name,
                    task.category,
                    1 if task.mandatory else 0,
                    task.reward_coins,
                    task.recurring_reward_coins,
                    task.recurrence_type,
                    task.max_executions_per_day,
                    1 if task.archived else 0,
                ),
            )
            row = conn.execute("SELECT * FROM task_definitions WHERE id = ?", (task.id,)).fetchone()
        assert row is not None
        return _row_to_task_definition(row)

    def get_task_definition(self: DbProtocol, task_id: str) -> TaskDefinition | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM task_definitions WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task_definition(row) if row else None

    def list_task_definitions(self: DbProtocol, include_archived: bool = False) -> list[TaskDefinition]:
        with self._connect() as conn:
            if include_archived:
                rows = conn.execute("SELECT * FROM task_definitions ORDER BY name ASC, id ASC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM task_definitions WHERE archived = 0 ORDER BY name ASC, id ASC"
                ).fetchall()
        return [_row_to_task_definition(r) for r in rows]

    def set_task_archived(self: DbProtocol, task_id: str, archived: bool = True) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE task_definitions SET archived = ? WHERE id = ?",
                (1 if archived else 0, task_id),
            )
        return cur.rowcount > 0

    def add_task_execution(self: DbProtocol, execution: TaskExecution) -> TaskExecution:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO task_executions(id, task_definition_id, date, time, status, coins_awarded)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    execution.id,
                    execution.task_definition_id,
                    execution.date.isoformat(),
                    execution.time.isoformat(timespec="seconds") if execution.time else None,
                    execution.status,
                    execution.coins_awarded,
                ),
            )
        return execution

    def list_task_executions(
        self: DbProtocol,
        task_id: str | None = None,
        day: date | None = None,
        status: str | None = None,
    ) -> list[TaskExecution]:
        conditions: list[str] = []
        params: list[str] = []
        if task_id is not None:
            conditions.append("task_definition_id = ?")
            params.append(task_id)
        if day is not None:
            conditions.append("date = ?")
            params.append(day.isoformat())
        if status is not None:
            conditions.append("status = ?")
            params.append(status)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"SELECT * FROM task_executions {where} ORDER BY date ASC, time ASC, rowid ASC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_task_execution(r) for r in rows]

    def count_done_executions(self: DbProtocol, task_id: str, day: date) -> int:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS c FROM task_executions
                WHERE task_definition_id = ? AND date = ? AND status = ?
                """,
                (task_id, day.isoformat(), STATUS_DONE),
            ).fetchone()
        return int(row["c"]) if row else 0

    def task_ids_with_execution_on(self: DbProtocol, day: date) -> set[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT task_definition_id FROM task_executions WHERE date = ?",
                (day.isoformat(),),
            ).fetchall()
        return {str(r["task_definition_id"]) for r in rows}
