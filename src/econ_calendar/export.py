#!/usr/bin/env python3
"""
CSV export of cached events
Flattens CanonicalEvent records into a pandas DataFrame with display columns
"""

import logging
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)

# Store field -> CSV header
COLUMNS_MAP = {
    'date': 'Date',
    'time': 'Time',
    'event_timestamp': 'TimestampUTC',
    'country': 'Country',
    'country_name': 'CountryName',
    'impact': 'Impact',
    'event': 'Event',
    'event_original': 'EventOriginal',
    'category': 'Category',
    'actual': 'Actual',
    'forecast': 'Forecast',
    'previous': 'Previous',
    'id': 'Id',
}


def events_to_frame(events):
    """CanonicalEvent list -> DataFrame with the CSV headers, sorted by UTC instant"""
    records = [event.to_row() for event in events]
    df = pd.DataFrame(records, columns=list(COLUMNS_MAP))

    for col in ['actual', 'forecast', 'previous', 'category']:
        df[col] = df[col].fillna('')

    df = df.sort_values(['event_timestamp', 'id'], na_position='last')
    return df.rename(columns=COLUMNS_MAP).reset_index(drop=True)


def events_to_csv_text(events):
    return events_to_frame(events).to_csv(index=False)


def export_events_csv(events, output_csv):
    """
    Write events to a UTF-8 CSV file.

    Returns:
        Path of the written file
    """
    df = events_to_frame(events)
    output_path = Path(output_csv)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False, encoding='utf-8')

    file_size_kb = output_path.stat().st_size / 1024
    logger.info(f"CSV saved: {output_path.name} ({file_size_kb:.1f} KB, {len(df)} records)")
    if not df.empty:
        by_impact = ', '.join(f"{k}={v}" for k, v in df['Impact'].value_counts().items())
        logger.info(f"Events by impact: {by_impact}")
    return output_path
