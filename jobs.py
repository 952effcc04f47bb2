from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from earned_time.config import load_settings
from earned_time.db import Database
from earned_time.logging_setup import setup_logging
from earned_time.runner import run_job


def main() -> None:
    if len(sys.argv) < 2:
        raise SystemExit("Usage: python jobs.py <resets|usage [PATH]|export PATH|import PATH>")

    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file)
    db = Database(settings.database_path)
    run_job(sys.argv[1], db, settings, sys.argv[2:])


if __name__ == "__main__":
    main()
