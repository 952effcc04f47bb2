from __future__ import annotations

from pathlib import Path

import pytest

from earned_time.config import load_settings

ENV_KEYS = (
    "DATABASE_PATH",
    "TZ",
    "CATALOG_PATH",
    "USAGE_REPORT_PATH",
    "BLOCKER_INTERVAL_SECONDS",
    "USAGE_INTERVAL_SECONDS",
    "ADMIN_PANEL_TOKEN",
    "ADMIN_HOST",
    "ADMIN_PORT",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    # setenv first so teardown also removes whatever a .env file loaded
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_defaults(tmp_path) -> None:
    settings = load_settings(tmp_path / "missing.env")
    assert settings.database_path == Path("./data/earned_time.db")
    assert settings.tz == "Europe/Oslo"
    assert settings.blocker_interval_seconds == 5
    assert settings.usage_interval_seconds == 900
    assert settings.admin_panel_token is None
    assert settings.admin_port == 8080
    assert settings.log_level == "INFO"
    assert settings.log_file is None
    assert settings.usage_report_path is None


def test_env_file_does_not_override_environment(tmp_path, monkeypatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# local overrides\n"
        "DATABASE_PATH=/tmp/ledger.db\n"
        "ADMIN_PANEL_TOKEN='secret'\n"
        "ADMIN_PORT=9000\n"
    )
    monkeypatch.setenv("ADMIN_PORT", "9100")
    settings = load_settings(env_file)
    assert settings.database_path == Path("/tmp/ledger.db")
    assert settings.admin_panel_token == "secret"
    assert settings.admin_port == 9100


@pytest.mark.parametrize("raw", ["abc", "0", "-3"])
def test_invalid_intervals_fall_back(tmp_path, monkeypatch, raw: str) -> None:
    monkeypatch.setenv("BLOCKER_INTERVAL_SECONDS", raw)
    monkeypatch.setenv("ADMIN_PORT", raw)
    settings = load_settings(tmp_path / "missing.env")
    assert settings.blocker_interval_seconds == 5
    assert settings.admin_port == 8080
