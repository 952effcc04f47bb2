from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from earned_time.db import Database, RewardDefinition, TaskDefinition, TrackedApp
from earned_time.db_constants import RECURRENCE_DAILY, RECURRENCE_LIMITED, RECURRENCE_TYPES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogSeed:
    tasks: tuple[TaskDefinition, ...] = ()
    rewards: tuple[RewardDefinition, ...] = ()
    tracked_apps: tuple[TrackedApp, ...] = ()


def _entries(raw: dict[str, Any], key: str) -> list[dict[str, Any]]:
    items = raw.get(key, [])
    if not isinstance(items, list):
        logger.warning("catalog section %s is not a list, ignoring", key)
        return []
    entries = []
    for item in items:
        if not isinstance(item, dict) or not str(item.get("id", "")).strip():
            logger.warning("catalog %s entry without id skipped: %r", key, item)
            continue
        entries.append(item)
    return entries


def _task_from(item: dict[str, Any]) -> TaskDefinition:
    recurrence = str(item.get("recurrence_type", RECURRENCE_DAILY)).strip().upper()
    if recurrence not in RECURRENCE_TYPES:
        raise ValueError(f"unknown recurrence_type {recurrence!r}")
    max_per_day = item.get("max_executions_per_day")
    if recurrence == RECURRENCE_LIMITED and not max_per_day:
        raise ValueError("LIMITED_PER_DAY needs max_executions_per_day")
    recurring = item.get("recurring_reward_coins")
    return TaskDefinition(
        id=str(item["id"]).strip(),
        name=str(item.get("name", item["id"])).strip(),
        category=str(item.get("category", "")),
        mandatory=bool(item.get("mandatory", False)),
        reward_coins=int(item.get("reward_coins", 0)),
        recurring_reward_coins=int(recurring) if recurring is not None else None,
        recurrence_type=recurrence,
        max_executions_per_day=int(max_per_day) if recurrence == RECURRENCE_LIMITED else None,
        archived=bool(item.get("archived", False)),
    )


def _reward_from(item: dict[str, Any]) -> RewardDefinition:
    return RewardDefinition(
        id=str(item["id"]).strip(),
        name=str(item.get("name", item["id"])).strip(),
        description=str(item.get("description", "")),
        coin_cost=int(item.get("coin_cost", 0)),
        archived=bool(item.get("archived", False)),
    )


def _app_from(item: dict[str, Any]) -> TrackedApp:
    package = str(item.get("package_name", "")).strip()
    if not package:
        raise ValueError("package_name is required")
    return TrackedApp(
        id=str(item["id"]).strip(),
        name=str(item.get("name", package)).strip(),
        package_name=package,
        cost_per_minute=float(item.get("cost_per_minute", 0)),
        purchased_minutes_total=int(item.get("purchased_minutes_total", 0)),
        is_blocked=bool(item.get("is_blocked", False)),
        night_override_enabled=False,
        night_override_activated_at=None,
    )


def load_catalog(path: Path) -> CatalogSeed:
    if not path.exists():
        return CatalogSeed()

    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        logger.warning("catalog %s is not a mapping, ignoring", path)
        return CatalogSeed()

    tasks: list[TaskDefinition] = []
    for item in _entries(raw, "tasks"):
        try:
            tasks.append(_task_from(item))
        except (TypeError, ValueError) as exc:
            logger.warning("catalog task %s skipped: %s", item.get("id"), exc)

    rewards: list[RewardDefinition] = []
    for item in _entries(raw, "rewards"):
        try:
            rewards.append(_reward_from(item))
        except (TypeError, ValueError) as exc:
            logger.warning("catalog reward %s skipped: %s", item.get("id"), exc)

    apps: list[TrackedApp] = []
    for item in _entries(raw, "tracked_apps"):
        try:
            apps.append(_app_from(item))
        except (TypeError, ValueError) as exc:
            logger.warning("catalog app %s skipped: %s", item.get("id"), exc)

    return CatalogSeed(tasks=tuple(tasks), rewards=tuple(rewards), tracked_apps=tuple(apps))


def apply_catalog(db: Database, seed: CatalogSeed) -> None:
    """Upsert catalog entries by id.

    Night override state on an existing tracked app is left as it is.
    """
    for task in seed.tasks:
        db.upsert_task_definition(task)
    for reward in seed.rewards:
        db.upsert_reward_definition(reward)
    for app in seed.tracked_apps:
        existing = db.get_tracked_app(app.id)
        if existing is not None:
            app = replace(
                app,
                night_override_enabled=existing.night_override_enabled,
                night_override_activated_at=existing.night_override_activated_at,
            )
        try:
            db.upsert_tracked_app(app)
        except sqlite3.IntegrityError:
            logger.warning("catalog app %s skipped: package %s belongs to another app", app.id, app.package_name)
    logger.info(
        "catalog applied tasks=%s rewards=%s apps=%s",
        len(seed.tasks),
        len(seed.rewards),
        len(seed.tracked_apps),
    )


def seed_from_file(db: Database, path: Path) -> CatalogSeed:
    seed = load_catalog(path)
    apply_catalog(db, seed)
    return seed
