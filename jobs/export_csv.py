#!/usr/bin/env python3
"""
Export Cached Events to CSV
Reads a relative period from the cache (no scraping) and writes a clean,
timestamped CSV under CSV_OUTPUT_DIR
"""

import sys
import argparse
import logging
from pathlib import Path
from datetime import datetime

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from econ_calendar.cache_store import get_cache_store
from econ_calendar.config import get_config, setup_logging
from econ_calendar.date_range import PERIODS, resolve_range
from econ_calendar.export import export_events_csv
from econ_calendar.service import split_csv

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Export cached calendar events to CSV")
    parser.add_argument('--period', default='thisWeek', choices=PERIODS, help="Relative period")
    parser.add_argument('--timezone', default='UTC', help="Viewer timezone for the period")
    parser.add_argument('--countries', default=None, help="Comma-separated ISO-3 codes")
    parser.add_argument('--impacts', default=None, help="Comma-separated impacts (high,medium,low)")
    parser.add_argument('--output', default=None, help="Output file (default: timestamped file in CSV_OUTPUT_DIR)")
    args = parser.parse_args()

    config = get_config()
    setup_logging(config, log_file='export_csv.log')

    bounds = resolve_range(args.period, args.timezone)
    logger.info(f"Exporting {args.period}: {bounds.start_date} -> {bounds.end_date} ({args.timezone})")

    try:
        store = get_cache_store(config)
    except Exception as e:
        logger.error(f"Failed to initialize cache store: {e}")
        return 1

    try:
        events = store.query(
            start_date=bounds.start_date,
            end_date=bounds.end_date,
            countries=[c.upper() for c in split_csv(args.countries)],
            impacts=[i.lower() for i in split_csv(args.impacts)],
        )
    finally:
        store.close()

    if not events:
        logger.warning("No cached events in that period")
        return 0

    output = args.output
    if not output:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output = Path(config.CSV_OUTPUT_DIR) / f"events_{args.period}_{timestamp}.csv"

    export_events_csv(events, output)
    return 0


if __name__ == '__main__':
    exit(main())
