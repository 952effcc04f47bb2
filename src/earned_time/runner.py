from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from earned_time.blocker import BlockingEngine, CycleOutcome
from earned_time.config import Settings
from earned_time.db import AppUsageAggregate, Database
from earned_time.platform_hooks import (
    Enforcer,
    FileUsageSource,
    ForegroundResolver,
    LoggingEnforcer,
    NullForegroundResolver,
    NullUsageSource,
    UsageSource,
)
from earned_time.reset import ResetCoordinator
from earned_time.time_utils import now_local
from earned_time.transfer import export_to_path, import_from_path
from earned_time.usage import sync_usage

logger = logging.getLogger(__name__)

JOB_NAMES = ("resets", "usage", "export", "import")


def usage_source_for(settings: Settings) -> UsageSource:
    if settings.usage_report_path is not None:
        return FileUsageSource(settings.usage_report_path)
    return NullUsageSource()


class TickerRunner:
    """Drives the blocker and usage tickers on one asyncio loop.

    Each tick is synchronous and self-contained; an exception is logged and
    the ticker keeps its schedule.
    """

    def __init__(
        self,
        db: Database,
        settings: Settings,
        resolver: ForegroundResolver | None = None,
        enforcer: Enforcer | None = None,
        usage_source: UsageSource | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.settings = settings
        self.usage_source = usage_source or usage_source_for(settings)
        self.clock = clock or (lambda: now_local(settings.tz))
        self.engine = BlockingEngine(
            db,
            resolver or NullForegroundResolver(),
            enforcer or LoggingEnforcer(),
            ResetCoordinator(db, settings.tz),
        )
        self._tasks: list[asyncio.Task[None]] = []

    def blocker_tick(self) -> CycleOutcome:
        outcome = self.engine.run_cycle(self.clock())
        if outcome.decision is not None:
            logger.debug(
                "cycle state=%s action=%s package=%s",
                outcome.state,
                outcome.decision.action,
                outcome.decision.package,
            )
        return outcome

    def usage_tick(self) -> list[AppUsageAggregate]:
        now = self.clock()
        report = self.usage_source.daily_usage_minutes(now.date())
        if report is None:
            logger.debug("usage source reported nothing, keeping stored usage")
            return []
        return sync_usage(self.db, report, now.date())

    async def _tick_forever(self, name: str, interval: int, step: Callable[[], Any]) -> None:
        while True:
            try:
                step()
            except Exception:
                logger.exception("%s tick failed", name)
            await asyncio.sleep(interval)

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(
                self._tick_forever("blocker", self.settings.blocker_interval_seconds, self.blocker_tick),
                name="blocker-ticker",
            ),
            asyncio.create_task(
                self._tick_forever("usage", self.settings.usage_interval_seconds, self.usage_tick),
                name="usage-ticker",
            ),
        ]
        logger.info(
            "tickers started blocker=%ss usage=%ss",
            self.settings.blocker_interval_seconds,
            self.settings.usage_interval_seconds,
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("tickers stopped")

    async def run_forever(self) -> None:
        self.start()
        try:
            await asyncio.gather(*self._tasks)
        finally:
            await self.stop()


def run_job(job_name: str, db: Database, settings: Settings, args: list[str] | None = None) -> None:
    args = args or []
    now = now_local(settings.tz)
    if job_name == "resets":
        report = ResetCoordinator(db, settings.tz).perform_resets_if_needed(now)
        logger.info("resets done: %s", report)
    elif job_name == "usage":
        source: UsageSource = FileUsageSource(Path(args[0])) if args else usage_source_for(settings)
        report_minutes = source.daily_usage_minutes(now.date())
        if report_minutes is None:
            logger.info("usage job: no usage report available")
            return
        updated = sync_usage(db, report_minutes, now.date())
        logger.info("usage job: %s tracked apps updated", len(updated))
    elif job_name in ("export", "import"):
        if len(args) != 1:
            raise SystemExit(f"Usage: python jobs.py {job_name} PATH")
        path = Path(args[0])
        if job_name == "export":
            export_to_path(db, path)
            logger.info("exported ledger to %s", path)
        else:
            import_from_path(db, path)
            logger.info("imported ledger from %s", path)
    else:
        raise SystemExit(f"Unknown job '{job_name}'. Expected one of: {', '.join(JOB_NAMES)}")
