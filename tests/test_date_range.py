#!/usr/bin/env python3
"""
Relative period resolution tests

The viewer's wall clock decides which day "today" is, and weeks run Monday to
Sunday whatever the reference instant.
"""

import unittest
from datetime import date, datetime, timedelta, timezone

from econ_calendar.date_range import PERIODS, load_timezone, period_bounds, resolve_range


class TestResolveRange(unittest.TestCase):

    def test_today_before_utc_midnight_in_bogota(self):
        """23:30 in Bogota on Mar 9 is already Mar 10 in UTC"""
        now = datetime(2025, 3, 10, 4, 30, tzinfo=timezone.utc)

        bounds = resolve_range("today", "America/Bogota", now)

        self.assertEqual(bounds.start_date, "2025-03-09")
        self.assertEqual(bounds.end_date, "2025-03-09")
        self.assertEqual(bounds.start_utc, datetime(2025, 3, 9, 5, 0, tzinfo=timezone.utc))
        self.assertEqual(bounds.end_utc.date(), date(2025, 3, 10))
        self.assertEqual((bounds.end_utc.hour, bounds.end_utc.minute), (4, 59))

    def test_today_in_utc(self):
        now = datetime(2025, 3, 10, 4, 30, tzinfo=timezone.utc)
        bounds = resolve_range("today", "UTC", now)
        self.assertEqual(bounds.start_date, "2025-03-10")

    def test_this_week_is_monday_to_sunday(self):
        base = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
        for hours in range(0, 24 * 21, 7):
            now = base + timedelta(hours=hours)
            for tz in ("UTC", "America/Bogota", "Asia/Tokyo"):
                bounds = resolve_range("thisWeek", tz, now)
                self.assertEqual(bounds.start.weekday(), 0, f"{now} {tz}")
                self.assertEqual(bounds.end.weekday(), 6, f"{now} {tz}")
                self.assertEqual((bounds.end - bounds.start).days, 6)
                local_today = now.astimezone(load_timezone(tz)).date()
                self.assertTrue(bounds.start <= local_today <= bounds.end)

    def test_next_and_last_week(self):
        now = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)  # Wednesday

        next_week = resolve_range("nextWeek", "UTC", now)
        last_week = resolve_range("lastWeek", "UTC", now)

        self.assertEqual((next_week.start_date, next_week.end_date), ("2025-03-17", "2025-03-23"))
        self.assertEqual((last_week.start_date, last_week.end_date), ("2025-03-03", "2025-03-09"))

    def test_yesterday_and_tomorrow(self):
        now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(resolve_range("yesterday", "UTC", now).start_date, "2025-02-28")
        self.assertEqual(resolve_range("tomorrow", "UTC", now).end_date, "2025-03-02")

    def test_this_month(self):
        now = datetime(2024, 2, 15, 12, 0, tzinfo=timezone.utc)
        bounds = resolve_range("thisMonth", "UTC", now)
        self.assertEqual((bounds.start_date, bounds.end_date), ("2024-02-01", "2024-02-29"))

    def test_unknown_period_falls_back_to_today(self):
        now = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(resolve_range("fortnight", "UTC", now), resolve_range("today", "UTC", now))

    def test_unknown_timezone_falls_back_to_utc(self):
        now = datetime(2025, 3, 10, 23, 0, tzinfo=timezone.utc)
        with self.assertLogs('econ_calendar.date_range', level='WARNING'):
            bounds = resolve_range("today", "Mars/Olympus_Mons", now)
        self.assertEqual(bounds.start_date, "2025-03-10")

    def test_naive_now_is_treated_as_utc(self):
        naive = datetime(2025, 3, 10, 4, 30)
        aware = naive.replace(tzinfo=timezone.utc)
        self.assertEqual(
            resolve_range("today", "America/Bogota", naive),
            resolve_range("today", "America/Bogota", aware),
        )


class TestPeriodBounds(unittest.TestCase):

    def test_every_period_resolves(self):
        today = date(2025, 6, 15)  # Sunday
        for period in PERIODS:
            start, end = period_bounds(period, today)
            self.assertLessEqual(start, end, period)

    def test_sunday_belongs_to_the_week_that_started_monday(self):
        start, end = period_bounds("thisWeek", date(2025, 6, 15))
        self.assertEqual((start, end), (date(2025, 6, 9), date(2025, 6, 15)))


if __name__ == '__main__':
    unittest.main()
