from __future__ import annotations

import datetime as dt
import logging
import sqlite3
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from earned_time.db import Database

logger = logging.getLogger(__name__)


class ImportFormatError(ValueError):
    pass


class _Row(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TaskDefinitionRow(_Row):
    id: str
    name: str
    category: str = ""
    mandatory: bool = False
    reward_coins: int = 0
    recurring_reward_coins: int | None = None
    recurrence_type: Literal["ONE_TIME", "DAILY", "UNLIMITED_PER_DAY", "LIMITED_PER_DAY"] = "DAILY"
    max_executions_per_day: int | None = None
    archived: bool = False


class TaskExecutionRow(_Row):
    id: str
    task_definition_id: str
    date: dt.date
    time: dt.time | None = None
    status: Literal["DONE", "SKIPPED"]
    coins_awarded: int = 0


class RewardDefinitionRow(_Row):
    id: str
    name: str
    description: str = ""
    coin_cost: int = 0
    archived: bool = False


class RewardRedemptionRow(_Row):
    id: str
    reward_definition_id: str
    redemption_date_time: dt.datetime
    coins_spent: int


class TrackedAppRow(_Row):
    id: str
    name: str
    package_name: str
    cost_per_minute: float = 0.0
    purchased_minutes_total: int = 0
    is_blocked: bool = False
    night_override_enabled: bool = False
    # Carried verbatim; a bad value only disables the override for that app.
    night_override_activated_at: str | None = None


class AppUsageAggregateRow(_Row):
    id: str
    app_id: str
    date: dt.date
    used_minutes_automatic: int = 0


class AppUsagePurchaseRow(_Row):
    id: str
    app_id: str
    minutes_purchased: int
    coins_spent: int
    purchase_date_time: dt.datetime


class LedgerDocument(_Row):
    # a table missing from an older export imports as empty
    task_definitions: list[TaskDefinitionRow] = []
    task_executions: list[TaskExecutionRow] = []
    reward_definitions: list[RewardDefinitionRow] = []
    reward_redemptions: list[RewardRedemptionRow] = []
    tracked_apps: list[TrackedAppRow] = []
    app_usage_aggregates: list[AppUsageAggregateRow] = []
    app_usage_purchases: list[AppUsagePurchaseRow] = []


def _tables_of(document: LedgerDocument) -> dict[str, list[dict[str, Any]]]:
    dumped = document.model_dump(mode="json")
    return {table: list(rows) for table, rows in dumped.items()}


def export_state(db: Database) -> str:
    """Serialize all seven ledger tables into one JSON document."""
    try:
        document = LedgerDocument.model_validate(db.dump_ledger_tables())
    except ValidationError as exc:
        raise ImportFormatError(f"stored ledger cannot be exported: {exc}") from exc
    payload = document.model_dump_json(by_alias=True, indent=2)
    logger.info(
        "exported ledger tasks=%s executions=%s redemptions=%s purchases=%s",
        len(document.task_definitions),
        len(document.task_executions),
        len(document.reward_redemptions),
        len(document.app_usage_purchases),
    )
    return payload


def parse_document(serialized: str) -> LedgerDocument:
    if not serialized or not serialized.strip():
        raise ImportFormatError("import document is empty")
    try:
        return LedgerDocument.model_validate_json(serialized)
    except ValidationError as exc:
        raise ImportFormatError(f"invalid import document: {exc.error_count()} error(s)\n{exc}") from exc


def import_state(db: Database, serialized: str) -> LedgerDocument:
    """Replace every ledger table with the document's rows, all or nothing.

    Validation happens before anything is written; a constraint violation
    during the write rolls the whole import back.
    """
    document = parse_document(serialized)
    try:
        db.replace_ledger_tables(_tables_of(document))
    except sqlite3.IntegrityError as exc:
        raise ImportFormatError(f"import rejected by the store: {exc}") from exc
    logger.info(
        "imported ledger tasks=%s executions=%s redemptions=%s purchases=%s",
        len(document.task_definitions),
        len(document.task_executions),
        len(document.reward_redemptions),
        len(document.app_usage_purchases),
    )
    return document


def export_to_path(db: Database, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_state(db), encoding="utf-8")
    return path


def import_from_path(db: Database, path: Path) -> LedgerDocument:
    return import_state(db, path.read_text(encoding="utf-8"))
