#!/usr/bin/env python3
"""
Economic Calendar Full Sweep Job (cron: once per day)
Scrapes lastWeek, yesterday, today, tomorrow, thisWeek and nextWeek in one
pass, upserts everything and prunes rows past the retention window
"""

import sys
import asyncio
import argparse
import logging
import uuid
from pathlib import Path
from datetime import datetime

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from econ_calendar.cache_store import get_cache_store
from econ_calendar.config import get_config, setup_logging
from econ_calendar.coordinator import RefreshCoordinator
from econ_calendar.scraper import CalendarScraper

logger = logging.getLogger(__name__)


def main():
    """Main execution"""
    parser = argparse.ArgumentParser(description="Scrape every sweep window and prune old rows")
    parser.add_argument('--windows', default=None,
                        help="Comma-separated windows to scrape (default: SWEEP_WINDOWS)")
    parser.add_argument('--no-prune', action='store_true', help="Skip retention pruning")
    args = parser.parse_args()

    config = get_config()
    setup_logging(config, log_file='full_sweep.log')
    run_id = str(uuid.uuid4())[:8]

    logger.info("="*70)
    logger.info("ECONOMIC CALENDAR FULL SWEEP")
    logger.info("="*70)
    logger.info(f"Run ID: {run_id}")
    logger.info(f"Start Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info(f"Cache: {config.describe_db()}")

    if args.windows:
        config.SWEEP_WINDOWS = tuple(w.strip() for w in args.windows.split(',') if w.strip())

    try:
        store = get_cache_store(config)
    except Exception as e:
        logger.error(f"Failed to initialize cache store: {e}")
        return 1

    coordinator = RefreshCoordinator(CalendarScraper.from_config(config), store, config)

    try:
        if args.no_prune:
            results = asyncio.run(coordinator.refresh_windows(config.SWEEP_WINDOWS))
        else:
            results = asyncio.run(coordinator.full_sweep())
    finally:
        store.close()

    failed = [window for window, written in results.items() if written is None]
    total = sum(written for written in results.values() if written)

    logger.info("\n" + "="*70)
    logger.info(f"Sweep finished: {total} events written, {len(failed)} of {len(results)} windows failed")
    logger.info("="*70)

    # Partial progress is kept; only a sweep with nothing written is a failure
    return 1 if results and len(failed) == len(results) else 0


if __name__ == '__main__':
    exit(main())
