from __future__ import annotations

import json
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from earned_time.db import Database
from earned_time.db_constants import RECURRENCE_LIMITED
from earned_time.economy import get_balance
from earned_time.rewards import add_reward_definition, redeem_with_balance
from earned_time.tasks import add_task_definition, complete_task
from earned_time.transfer import ImportFormatError, export_state, export_to_path, import_from_path, import_state
from earned_time.usage import activate_night_override, add_tracked_app, purchase_minutes, record_daily_usage


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def _populate(db: Database) -> None:
    task = add_task_definition(db, "Read", reward_coins=20, recurring_reward_coins=2, mandatory=True)
    limited = add_task_definition(
        db, "Stretch", reward_coins=3, recurrence_type=RECURRENCE_LIMITED, max_executions_per_day=2
    )
    complete_task(db, task.id, _dt(2026, 3, 2, 8))
    complete_task(db, limited.id, _dt(2026, 3, 2, 9), skipped=True)
    reward = add_reward_definition(db, "Snack", coin_cost=4, description="small one")
    redeem_with_balance(db, reward.id, _dt(2026, 3, 2, 12))
    app = add_tracked_app(db, "Video", "com.example.video", cost_per_minute=0.5, purchased_minutes_total=0)
    purchase_minutes(db, app.id, 10, get_balance(db), _dt(2026, 3, 2, 13))
    record_daily_usage(db, app.id, _dt(2026, 3, 2).date(), 7)
    activate_night_override(db, app.id, _dt(2026, 3, 2, 23))


def _snapshot(db: Database) -> dict[str, list]:
    return {table: sorted(rows, key=lambda r: r["id"]) for table, rows in db.dump_ledger_tables().items()}


def test_export_uses_camel_case_keys(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    _populate(db)
    document = json.loads(export_state(db))
    assert set(document) == {
        "taskDefinitions",
        "taskExecutions",
        "rewardDefinitions",
        "rewardRedemptions",
        "trackedApps",
        "appUsageAggregates",
        "appUsagePurchases",
    }
    execution = document["taskExecutions"][0]
    assert "taskDefinitionId" in execution
    assert "coinsAwarded" in execution
    assert document["trackedApps"][0]["packageName"] == "com.example.video"


def test_export_import_round_trip(tmp_path) -> None:
    source = Database(tmp_path / "a.db")
    _populate(source)
    payload = export_state(source)

    target = Database(tmp_path / "b.db")
    add_task_definition(target, "Will be replaced", reward_coins=99)
    import_state(target, payload)

    assert _snapshot(target) == _snapshot(source)
    assert get_balance(target) == get_balance(source)
    assert target.get_tracked_app(source.list_tracked_apps()[0].id).night_override_enabled is True


def test_round_trip_through_file(tmp_path) -> None:
    source = Database(tmp_path / "a.db")
    _populate(source)
    path = export_to_path(source, tmp_path / "exports" / "ledger.json")
    target = Database(tmp_path / "b.db")
    import_from_path(target, path)
    assert _snapshot(target) == _snapshot(source)


def test_missing_table_imports_as_empty(tmp_path) -> None:
    source = Database(tmp_path / "a.db")
    _populate(source)
    document = json.loads(export_state(source))
    del document["appUsageAggregates"]

    target = Database(tmp_path / "b.db")
    import_state(target, json.dumps(document))
    assert target.list_usage_aggregates() == []
    assert get_balance(target) == get_balance(source)
    assert len(target.list_tracked_apps()) == 1


@pytest.mark.parametrize(
    "payload",
    [
        "",
        "   ",
        "not json",
        "[]",
        '{"taskDefinitions": "none"}',
    ],
)
def test_malformed_document_leaves_store_untouched(tmp_path, payload: str) -> None:
    db = Database(tmp_path / "app.db")
    _populate(db)
    before = _snapshot(db)
    with pytest.raises(ImportFormatError):
        import_state(db, payload)
    assert _snapshot(db) == before


def test_invalid_row_aborts_whole_import(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    _populate(db)
    before = _snapshot(db)
    document = json.loads(export_state(db))
    document["taskExecutions"].append(
        {"id": "x", "taskDefinitionId": "t", "date": "2026-03-02", "status": "MAYBE", "coinsAwarded": 1}
    )
    with pytest.raises(ImportFormatError):
        import_state(db, json.dumps(document))
    assert _snapshot(db) == before


def test_constraint_violation_rolls_back(tmp_path) -> None:
    db = Database(tmp_path / "app.db")
    _populate(db)
    before = _snapshot(db)
    document = json.loads(export_state(db))
    duplicate = dict(document["trackedApps"][0])
    duplicate["id"] = "other"
    document["trackedApps"].append(duplicate)
    with pytest.raises(ImportFormatError):
        import_state(db, json.dumps(document))
    assert _snapshot(db) == before
