#!/usr/bin/env python3
"""
Delete cached events older than the retention window
"""

import sys
import argparse
import logging
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from econ_calendar.cache_store import get_cache_store
from econ_calendar.config import get_config, setup_logging

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Prune old cached events")
    parser.add_argument('--days', type=int, default=None, help="Keep this many days (default: RETENTION_DAYS)")
    args = parser.parse_args()

    config = get_config()
    setup_logging(config, log_file='prune_cache.log')
    days = args.days if args.days is not None else config.RETENTION_DAYS

    if days < 0:
        logger.error(f"--days must be non-negative, got {days}")
        return 1

    try:
        store = get_cache_store(config)
    except Exception as e:
        logger.error(f"Failed to initialize cache store: {e}")
        return 1

    try:
        deleted = store.prune_older_than(days)
        logger.info(f"✓ Removed {deleted} events, {store.count()} remain (latest date: {store.latest_date()})")
    finally:
        store.close()
    return 0


if __name__ == '__main__':
    exit(main())
