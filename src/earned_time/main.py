from __future__ import annotations

import asyncio
import logging

from earned_time.catalog import seed_from_file
from earned_time.config import load_settings
from earned_time.db import Database
from earned_time.logging_setup import setup_logging
from earned_time.runner import TickerRunner

logger = logging.getLogger(__name__)


def run_daemon() -> None:
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file)
    db = Database(settings.database_path)
    seed_from_file(db, settings.catalog_path)

    runner = TickerRunner(db, settings)
    try:
        asyncio.run(runner.run_forever())
    except KeyboardInterrupt:
        logger.info("daemon interrupted, shutting down")
