from __future__ import annotations

import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Protocol

import yaml

logger = logging.getLogger(__name__)

FOREGROUND_WINDOW_SHORT = timedelta(seconds=60)
FOREGROUND_WINDOW_LONG = timedelta(hours=24)


class ForegroundResolver(Protocol):
    def has_usage_access(self) -> bool: ...

    def resolve_foreground_package(self, window_short: timedelta, window_long: timedelta) -> str | None: ...


class Enforcer(Protocol):
    def hide_application(self, package: str) -> bool: ...


class UsageSource(Protocol):
    def daily_usage_minutes(self, day: date) -> dict[str, int] | None: ...


class NullForegroundResolver:
    """Never observes a foreground app. Used when no platform hook is wired."""

    def has_usage_access(self) -> bool:
        return False

    def resolve_foreground_package(self, window_short: timedelta, window_long: timedelta) -> str | None:
        return None


class LoggingEnforcer:
    def hide_application(self, package: str) -> bool:
        logger.warning("no enforcement backend configured, cannot hide %s", package)
        return False


class NullUsageSource:
    """Reports no observation, so stored usage is left untouched."""

    def daily_usage_minutes(self, day: date) -> dict[str, int] | None:
        return None


class FileUsageSource:
    """Reads cumulative minutes per package from a YAML mapping file.

    Either a flat ``{package: minutes}`` mapping or one keyed by ISO date.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def daily_usage_minutes(self, day: date) -> dict[str, int] | None:
        if not self.path.exists():
            return None
        raw = yaml.safe_load(self.path.read_text()) or {}
        if not isinstance(raw, dict):
            logger.warning("usage report %s is not a mapping", self.path)
            return None
        # yaml turns ISO date keys into date objects
        raw = {str(k): v for k, v in raw.items()}
        if day.isoformat() in raw:
            raw = raw[day.isoformat()] or {}
        elif any(isinstance(v, dict) for v in raw.values()):
            return None
        if not isinstance(raw, dict):
            return None
        usage: dict[str, int] = {}
        for package, minutes in raw.items():
            try:
                usage[str(package)] = int(minutes)
            except (TypeError, ValueError):
                logger.warning("usage report %s: bad minutes for %s", self.path, package)
        return usage
