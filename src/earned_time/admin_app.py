from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date, datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel, Field

from earned_time.blocker import BlockerStatus, buy_more_time
from earned_time.catalog import seed_from_file
from earned_time.config import load_settings
from earned_time.db import Database, TrackedApp
from earned_time.db_constants import RECURRENCE_DAILY
from earned_time.economy import get_balance, summarize_ledger
from earned_time.logging_setup import setup_logging
from earned_time.reset import ResetCoordinator
from earned_time.rewards import add_reward_definition, archive_reward, list_rewards, redeem
from earned_time.runner import TickerRunner
from earned_time.tasks import (
    CapReachedError,
    TaskNotFoundError,
    add_task_definition,
    archive_task,
    complete_task,
    executions_for_date,
    grant_bonus_coins,
    list_active_tasks,
    mandatory_gate_satisfied,
    remaining_executions,
)
from earned_time.time_utils import DEFAULT_TZ, now_local
from earned_time.transfer import ImportFormatError, export_state, import_state
from earned_time.usage import (
    REJECT_INSUFFICIENT_FUNDS,
    REJECT_UNKNOWN_APP,
    PurchaseResult,
    activate_night_override,
    add_tracked_app,
    clear_night_override,
    purchase_minutes,
    record_daily_usage,
    remaining_minutes_for,
)


def _require_auth(request: Request, token: str | None) -> None:
    if not token:
        return
    header = request.headers.get("x-admin-token")
    query = request.query_params.get("token")
    if header == token or query == token:
        return
    raise HTTPException(status_code=401, detail="Unauthorized")


class TaskCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    reward_coins: int = 0
    recurrence_type: str = RECURRENCE_DAILY
    mandatory: bool = False
    recurring_reward_coins: int | None = None
    max_executions_per_day: int | None = None
    category: str = ""
    id: str | None = None


class TaskCompleteRequest(BaseModel):
    skipped: bool = False


class RewardCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    coin_cost: int
    description: str = ""
    id: str | None = None


class TrackedAppCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    package_name: str = Field(min_length=1)
    cost_per_minute: float = 0.0
    purchased_minutes_total: int = 0
    id: str | None = None


class PurchaseRequest(BaseModel):
    minutes: int


class BuyMoreTimeRequest(BaseModel):
    package_name: str
    minutes: int


class UsageRequest(BaseModel):
    minutes: int
    day: date | None = None


class BonusRequest(BaseModel):
    coins: int
    name: str = "Settings reward"


def _purchase_response(result: PurchaseResult) -> dict[str, Any]:
    if result.ok:
        return {
            "ok": True,
            "coins_spent": result.coins_required,
            "purchase": asdict(result.purchase) if result.purchase else None,
            "message": result.message,
        }
    if result.reason == REJECT_UNKNOWN_APP:
        raise HTTPException(status_code=404, detail=result.message)
    if result.reason == REJECT_INSUFFICIENT_FUNDS:
        raise HTTPException(status_code=402, detail=result.message)
    raise HTTPException(status_code=400, detail=result.message)


def build_admin_app(
    db: Database,
    admin_token: str | None,
    runner: TickerRunner | None = None,
    tz: str = DEFAULT_TZ,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    now_fn = clock or (lambda: now_local(tz))

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if runner is not None:
            runner.start()
        try:
            yield
        finally:
            if runner is not None:
                await runner.stop()

    app = FastAPI(title="Earned Time", version="1.0.0", lifespan=lifespan)

    def _app_view(tracked: TrackedApp, day: date) -> dict[str, Any]:
        view = asdict(tracked)
        view["remaining_minutes"] = remaining_minutes_for(db, tracked, day)
        return view

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> str:
        _require_auth(request, admin_token)
        return """
<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Earned Time</title>
  <style>
    body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif; margin: 24px; background: #f5f7fb; }
    h1, h2 { margin: 0 0 12px; }
    .card { background: #fff; border-radius: 12px; padding: 16px; margin-bottom: 16px; box-shadow: 0 2px 12px rgba(0,0,0,0.08); }
    pre { white-space: pre-wrap; background: #0f172a; color: #e2e8f0; padding: 12px; border-radius: 8px; max-height: 320px; overflow: auto; }
  </style>
</head>
<body>
  <h1>Earned Time</h1>
  <div class="card"><h2>Status</h2><pre id="status"></pre></div>
  <div class="card"><h2>Today's tasks</h2><pre id="tasks"></pre></div>
  <div class="card"><h2>Tracked apps</h2><pre id="apps"></pre></div>
  <script>
    const params = new URLSearchParams(window.location.search);
    const token = params.get("token");
    function withToken(url) {
      if (!token) return url;
      return `${url}?token=${encodeURIComponent(token)}`;
    }
    async function show(id, url) {
      const res = await fetch(withToken(url));
      document.getElementById(id).textContent = JSON.stringify(await res.json(), null, 2);
    }
    show("status", "/api/status");
    show("tasks", "/api/tasks/today");
    show("apps", "/api/apps");
  </script>
</body>
</html>
"""

    @app.get("/api/status")
    async def api_status(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        status = runner.engine.status if runner is not None else BlockerStatus()
        return {
            "ledger": asdict(summarize_ledger(db)),
            "blocker": asdict(status),
            "tickers_attached": runner is not None,
        }

    @app.get("/api/balance")
    async def api_balance(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return asdict(summarize_ledger(db))

    @app.get("/api/tasks")
    async def api_tasks(request: Request, include_archived: bool = False) -> dict[str, Any]:
        _require_auth(request, admin_token)
        tasks = db.list_task_definitions(include_archived=include_archived)
        return {"tasks": [asdict(t) for t in tasks]}

    @app.post("/api/tasks")
    async def api_create_task(request: Request, payload: TaskCreateRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        try:
            task = add_task_definition(
                db,
                name=payload.name,
                reward_coins=payload.reward_coins,
                recurrence_type=payload.recurrence_type,
                mandatory=payload.mandatory,
                recurring_reward_coins=payload.recurring_reward_coins,
                max_executions_per_day=payload.max_executions_per_day,
                category=payload.category,
                task_id=payload.id,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"ok": True, "task": asdict(task)}

    @app.get("/api/tasks/today")
    async def api_tasks_today(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        today = now_fn().date()
        return {
            "date": today.isoformat(),
            "mandatory_gate_satisfied": mandatory_gate_satisfied(db, today),
            "tasks": [
                {**asdict(t), "remaining_executions": remaining_executions(db, t, today)}
                for t in list_active_tasks(db)
            ],
            "executions": [asdict(e) for e in executions_for_date(db, today)],
        }

    @app.post("/api/tasks/{task_id}/complete")
    async def api_complete_task(
        task_id: str, request: Request, payload: TaskCompleteRequest | None = None
    ) -> dict[str, Any]:
        _require_auth(request, admin_token)
        skipped = payload.skipped if payload is not None else False
        try:
            execution = complete_task(db, task_id, now_fn(), skipped=skipped)
        except TaskNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except CapReachedError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"ok": True, "execution": asdict(execution), "balance": get_balance(db)}

    @app.post("/api/tasks/{task_id}/archive")
    async def api_archive_task(task_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        archive_task(db, task_id)
        return {"ok": True}

    @app.get("/api/rewards")
    async def api_rewards(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return {"rewards": [asdict(r) for r in list_rewards(db)]}

    @app.post("/api/rewards")
    async def api_create_reward(request: Request, payload: RewardCreateRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        reward = add_reward_definition(
            db,
            name=payload.name,
            coin_cost=payload.coin_cost,
            description=payload.description,
            reward_id=payload.id,
        )
        return {"ok": True, "reward": asdict(reward)}

    @app.post("/api/rewards/{reward_id}/redeem")
    async def api_redeem(reward_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        reward = db.get_reward_definition(reward_id)
        if reward is None or reward.archived:
            raise HTTPException(status_code=404, detail="Reward not found")
        balance = get_balance(db)
        redemption = redeem(db, reward_id, balance, now_fn())
        if redemption is None:
            raise HTTPException(
                status_code=402,
                detail=f"Cannot redeem {reward.name}: costs {reward.coin_cost}, balance is {balance}.",
            )
        return {"ok": True, "redemption": asdict(redemption), "balance": get_balance(db)}

    @app.post("/api/rewards/{reward_id}/archive")
    async def api_archive_reward(reward_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        archive_reward(db, reward_id)
        return {"ok": True}

    @app.get("/api/apps")
    async def api_apps(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        today = now_fn().date()
        return {"apps": [_app_view(a, today) for a in db.list_tracked_apps()]}

    @app.post("/api/apps")
    async def api_create_app(request: Request, payload: TrackedAppCreateRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        existing = db.find_tracked_app_by_package(payload.package_name.strip())
        if existing is not None and existing.id != payload.id:
            raise HTTPException(status_code=409, detail=f"{payload.package_name} is already tracked")
        tracked = add_tracked_app(
            db,
            name=payload.name,
            package_name=payload.package_name,
            cost_per_minute=payload.cost_per_minute,
            purchased_minutes_total=payload.purchased_minutes_total,
            app_id=payload.id,
        )
        return {"ok": True, "app": _app_view(tracked, now_fn().date())}

    @app.post("/api/apps/{app_id}/purchase")
    async def api_purchase(app_id: str, request: Request, payload: PurchaseRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return _purchase_response(purchase_minutes(db, app_id, payload.minutes, get_balance(db), now_fn()))

    @app.post("/api/buy-more-time")
    async def api_buy_more_time(request: Request, payload: BuyMoreTimeRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        return _purchase_response(buy_more_time(db, payload.package_name, payload.minutes, now_fn()))

    @app.post("/api/apps/{app_id}/usage")
    async def api_record_usage(app_id: str, request: Request, payload: UsageRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        tracked = db.get_tracked_app(app_id)
        if tracked is None:
            raise HTTPException(status_code=404, detail="Tracked app not found")
        day = payload.day or now_fn().date()
        aggregate = record_daily_usage(db, app_id, day, payload.minutes)
        return {"ok": True, "usage": asdict(aggregate), "remaining_minutes": remaining_minutes_for(db, tracked, day)}

    @app.post("/api/apps/{app_id}/night-override")
    async def api_activate_override(app_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        if not activate_night_override(db, app_id, now_fn()):
            raise HTTPException(status_code=404, detail="Tracked app not found")
        return {"ok": True}

    @app.delete("/api/apps/{app_id}/night-override")
    async def api_clear_override(app_id: str, request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        if not clear_night_override(db, app_id):
            raise HTTPException(status_code=404, detail="Tracked app not found")
        return {"ok": True}

    @app.post("/api/bonus")
    async def api_bonus(request: Request, payload: BonusRequest) -> dict[str, Any]:
        _require_auth(request, admin_token)
        if payload.coins <= 0:
            raise HTTPException(status_code=400, detail="coins must be positive")
        execution = grant_bonus_coins(db, payload.name, payload.coins, now_fn())
        return {"ok": True, "execution": asdict(execution), "balance": get_balance(db)}

    @app.post("/api/resets")
    async def api_resets(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        report = ResetCoordinator(db, tz).perform_resets_if_needed(now_fn())
        return asdict(report)

    @app.get("/api/export")
    async def api_export(request: Request) -> Response:
        _require_auth(request, admin_token)
        try:
            payload = export_state(db)
        except ImportFormatError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return Response(content=payload, media_type="application/json")

    @app.post("/api/import")
    async def api_import(request: Request) -> dict[str, Any]:
        _require_auth(request, admin_token)
        raw = await request.body()
        try:
            document = import_state(db, raw.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise HTTPException(status_code=400, detail="import document must be UTF-8") from exc
        except ImportFormatError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {
            "ok": True,
            "task_definitions": len(document.task_definitions),
            "tracked_apps": len(document.tracked_apps),
            "balance": get_balance(db),
        }

    return app


def run_admin() -> None:
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file)
    db = Database(settings.database_path)
    seed_from_file(db, settings.catalog_path)
    runner = TickerRunner(db, settings)
    app = build_admin_app(db, settings.admin_panel_token, runner=runner, tz=settings.tz)
    uvicorn.run(app, host=settings.admin_host, port=settings.admin_port)
