from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime

from earned_time.db import Database, TrackedApp
from earned_time.economy import get_balance
from earned_time.platform_hooks import (
    FOREGROUND_WINDOW_LONG,
    FOREGROUND_WINDOW_SHORT,
    Enforcer,
    ForegroundResolver,
)
from earned_time.reset import ResetCoordinator
from earned_time.tasks import mandatory_gate_satisfied
from earned_time.time_utils import night_override_expiry
from earned_time.usage import REJECT_UNKNOWN_APP, PurchaseResult, purchase_minutes, remaining_minutes_for

logger = logging.getLogger(__name__)

STATE_NO_OBSERVATION = "NO_OBSERVATION"
STATE_UNMATCHED = "UNMATCHED"
STATE_MANDATORY_PENDING = "MANDATORY_PENDING"
STATE_NIGHT_OVERRIDE_ACTIVE = "NIGHT_OVERRIDE_ACTIVE"
STATE_TIME_AVAILABLE = "TIME_AVAILABLE"
STATE_TIME_EXHAUSTED = "TIME_EXHAUSTED"

ACTION_ALLOW = "ALLOW"
ACTION_BLOCK = "BLOCK"

REASON_TIME_EXHAUSTED = "TIME_EXHAUSTED"
REASON_MANDATORY_PENDING = "MANDATORY_PENDING"

MANDATORY_PENDING_MESSAGE = "mandatory tasks incomplete"


@dataclass(frozen=True)
class BlockDecision:
    action: str
    package: str
    tracked_app_name: str
    reason: str | None = None
    dismiss: bool = False
    message: str = ""


@dataclass(frozen=True)
class BlockerStatus:
    has_usage_access: bool = False
    last_checked_package: str | None = None
    last_tracked_app_name: str | None = None
    last_remaining_minutes: int | None = None
    last_block_action_package: str | None = None


@dataclass(frozen=True)
class CycleOutcome:
    state: str
    status: BlockerStatus
    decision: BlockDecision | None = None


class BlockingEngine:
    """One foreground evaluation per ``run_cycle`` call.

    The engine owns its ``BlockerStatus``; callers read it through ``status``.
    Failures of the resolver or enforcer never escape a cycle.
    """

    def __init__(
        self,
        db: Database,
        resolver: ForegroundResolver,
        enforcer: Enforcer,
        reset_coordinator: ResetCoordinator,
        status: BlockerStatus | None = None,
    ) -> None:
        self.db = db
        self.resolver = resolver
        self.enforcer = enforcer
        self.reset_coordinator = reset_coordinator
        self._status = status or BlockerStatus()
        self._blocked: set[str] = set()

    @property
    def status(self) -> BlockerStatus:
        return self._status

    def run_cycle(self, now: datetime) -> CycleOutcome:
        tz = self.reset_coordinator.tz
        now = now.replace(tzinfo=tz) if now.tzinfo is None else now.astimezone(tz)
        self.reset_coordinator.perform_resets_if_needed(now)

        package = self._resolve_foreground()
        if package is None:
            self._status = replace(self._status, last_checked_package=None)
            return CycleOutcome(state=STATE_NO_OBSERVATION, status=self._status)
        self._status = replace(self._status, last_checked_package=package)

        app = self.db.find_tracked_app_by_package(package)
        if app is None:
            return CycleOutcome(state=STATE_UNMATCHED, status=self._status)
        self._status = replace(self._status, last_tracked_app_name=app.name)

        if self._night_override_active(app, now):
            dismiss = package in self._blocked
            self._blocked.discard(package)
            decision = BlockDecision(
                action=ACTION_ALLOW, package=package, tracked_app_name=app.name, dismiss=dismiss
            )
            return CycleOutcome(state=STATE_NIGHT_OVERRIDE_ACTIVE, status=self._status, decision=decision)

        if not mandatory_gate_satisfied(self.db, now.date()):
            decision = self._block(app, REASON_MANDATORY_PENDING, MANDATORY_PENDING_MESSAGE)
            return CycleOutcome(state=STATE_MANDATORY_PENDING, status=self._status, decision=decision)

        remaining = remaining_minutes_for(self.db, app, now.date())
        self._status = replace(self._status, last_remaining_minutes=remaining)
        if remaining <= 0:
            decision = self._block(app, REASON_TIME_EXHAUSTED, f"{app.name} is out of time")
            return CycleOutcome(state=STATE_TIME_EXHAUSTED, status=self._status, decision=decision)

        dismiss = package in self._blocked
        self._blocked.discard(package)
        decision = BlockDecision(
            action=ACTION_ALLOW,
            package=package,
            tracked_app_name=app.name,
            dismiss=dismiss,
            message=f"{remaining} min left",
        )
        return CycleOutcome(state=STATE_TIME_AVAILABLE, status=self._status, decision=decision)

    def _resolve_foreground(self) -> str | None:
        try:
            has_access = bool(self.resolver.has_usage_access())
            self._status = replace(self._status, has_usage_access=has_access)
            return self.resolver.resolve_foreground_package(FOREGROUND_WINDOW_SHORT, FOREGROUND_WINDOW_LONG)
        except Exception:
            logger.warning("foreground resolver failed, skipping this cycle", exc_info=True)
            return None

    def _night_override_active(self, app: TrackedApp, now: datetime) -> bool:
        if not app.night_override_enabled:
            return False
        activated_at = app.night_override_activated_at
        if activated_at is None:
            # Enabled without a usable timestamp: treat as expired.
            logger.warning("night override for %s has no activation time, clearing", app.package_name)
            self.db.set_night_override(app.id, None)
            return False
        if activated_at.tzinfo is None and now.tzinfo is not None:
            activated_at = activated_at.replace(tzinfo=now.tzinfo)
        expires_at = night_override_expiry(activated_at)
        if now < expires_at:
            return True
        self.db.set_night_override(app.id, None)
        logger.info("night override for %s expired at %s", app.package_name, expires_at.isoformat())
        return False

    def _block(self, app: TrackedApp, reason: str, message: str) -> BlockDecision:
        self._blocked.add(app.package_name)
        self._status = replace(self._status, last_block_action_package=app.package_name)
        try:
            hidden = self.enforcer.hide_application(app.package_name)
        except Exception:
            logger.warning("enforcer failed to hide %s", app.package_name, exc_info=True)
        else:
            if not hidden:
                logger.info("enforcer did not hide %s", app.package_name)
        return BlockDecision(
            action=ACTION_BLOCK,
            package=app.package_name,
            tracked_app_name=app.name,
            reason=reason,
            message=message,
        )


def buy_more_time(db: Database, package: str, minutes: int, now: datetime) -> PurchaseResult:
    """The block overlay's purchase path: same rules as any other purchase."""
    app = db.find_tracked_app_by_package(package)
    if app is None:
        return PurchaseResult(
            ok=False, coins_required=0, reason=REJECT_UNKNOWN_APP, message=f"{package} is not a tracked app."
        )
    return purchase_minutes(db, app.id, minutes, get_balance(db), now)
