#!/usr/bin/env python3
"""
Economic Calendar Rolling Refresh Job (cron: intraday)
Re-scrapes today's window so actual values published since the morning sweep
reach the cache
"""

import sys
import asyncio
import argparse
import logging
import uuid
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from econ_calendar.cache_store import get_cache_store
from econ_calendar.config import get_config, setup_logging
from econ_calendar.coordinator import RefreshCoordinator
from econ_calendar.scraper import CalendarScraper

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Refresh today's calendar window")
    parser.add_argument('--window', default=None, help="Window to refresh (default: ROLLING_WINDOWS)")
    args = parser.parse_args()

    config = get_config()
    setup_logging(config, log_file='rolling_refresh.log')
    run_id = str(uuid.uuid4())[:8]
    logger.info(f"ROLLING REFRESH - run {run_id}")

    windows = (args.window,) if args.window else config.ROLLING_WINDOWS

    try:
        store = get_cache_store(config)
    except Exception as e:
        logger.error(f"Failed to initialize cache store: {e}")
        return 1

    coordinator = RefreshCoordinator(CalendarScraper.from_config(config), store, config)
    try:
        results = asyncio.run(coordinator.refresh_windows(windows))
    finally:
        store.close()

    failed = [window for window, written in results.items() if written is None]
    if failed:
        logger.error(f"Rolling refresh failed for: {', '.join(failed)}")
        return 1

    logger.info(f"✓ Rolling refresh complete: {results}")
    return 0


if __name__ == '__main__':
    exit(main())
