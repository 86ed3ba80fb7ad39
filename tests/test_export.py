#!/usr/bin/env python3
"""CSV export tests"""

import tempfile
import unittest
from pathlib import Path

import pandas as pd

from econ_calendar.export import events_to_frame, export_events_csv
from econ_calendar.models import Impact

from helpers import make_event


class TestExport(unittest.TestCase):

    def setUp(self):
        self.events = [
            make_event(time="14:30:00", country="USA", name="Nonfarm Payrolls", actual="256K"),
            make_event(time="11:00:00", country="EUR", name="Core CPI (YoY)", impact=Impact.MEDIUM),
        ]

    def test_frame_sorted_by_timestamp(self):
        df = events_to_frame(self.events)
        self.assertEqual(list(df['Country']), ["EUR", "USA"])
        self.assertEqual(list(df['Impact']), ["medium", "high"])

    def test_missing_values_blank(self):
        df = events_to_frame(self.events)
        self.assertEqual(df.loc[0, 'Actual'], '')
        self.assertEqual(df.loc[1, 'Actual'], '256K')

    def test_empty(self):
        df = events_to_frame([])
        self.assertTrue(df.empty)
        self.assertIn('Date', df.columns)

    def test_write_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = export_events_csv(self.events, Path(tmp) / 'nested' / 'events.csv')
            df = pd.read_csv(path, keep_default_na=False)

        self.assertEqual(len(df), 2)
        self.assertEqual(list(df['Event']), ["Subyacente IPC (Anual)", "Nóminas No Agrícolas"])


if __name__ == '__main__':
    unittest.main()
