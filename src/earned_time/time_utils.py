from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from earned_time.db_constants import DAY_BOUNDARY_HOUR

DEFAULT_TZ = "Europe/Oslo"
DAY_BOUNDARY = time(hour=DAY_BOUNDARY_HOUR)


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def week_start_date(day: date) -> date:
    return day - timedelta(days=day.weekday())


def logical_date(dt: datetime) -> date:
    """Calendar date with the day boundary moved from midnight to 06:00."""
    if dt.time() < DAY_BOUNDARY:
        return dt.date() - timedelta(days=1)
    return dt.date()


def night_override_expiry(activated_at: datetime) -> datetime:
    boundary_today = activated_at.replace(hour=DAY_BOUNDARY_HOUR, minute=0, second=0, microsecond=0)
    if activated_at <= boundary_today:
        return boundary_today
    return boundary_today + timedelta(days=1)
