from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    database_path: Path
    tz: str
    catalog_path: Path
    usage_report_path: Path | None
    blocker_interval_seconds: int
    usage_interval_seconds: int
    admin_panel_token: str | None
    admin_host: str
    admin_port: int
    log_level: str
    log_file: Path | None


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _parse_int(value: str | None, default: int, minimum: int = 1) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def load_settings(env_file: Path = Path(".env")) -> Settings:
    _load_env_file(env_file)

    log_file = os.getenv("LOG_FILE", "").strip()
    usage_report = os.getenv("USAGE_REPORT_PATH", "").strip()
    return Settings(
        database_path=Path(os.getenv("DATABASE_PATH", "./data/earned_time.db")),
        tz=os.getenv("TZ", "Europe/Oslo"),
        catalog_path=Path(os.getenv("CATALOG_PATH", "./catalog.yaml")),
        usage_report_path=Path(usage_report) if usage_report else None,
        blocker_interval_seconds=_parse_int(os.getenv("BLOCKER_INTERVAL_SECONDS"), 5),
        usage_interval_seconds=_parse_int(os.getenv("USAGE_INTERVAL_SECONDS"), 900),
        admin_panel_token=os.getenv("ADMIN_PANEL_TOKEN") or None,
        admin_host=os.getenv("ADMIN_HOST", "127.0.0.1"),
        admin_port=_parse_int(os.getenv("ADMIN_PORT"), 8080),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        log_file=Path(log_file) if log_file else None,
    )
