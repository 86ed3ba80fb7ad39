#!/usr/bin/env python3
"""
Query service tests

A never-populated cache bootstraps exactly once; a populated cache with no
events in the period answers empty without scraping.
"""

import asyncio
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from econ_calendar.cache_store import SQLiteCacheStore
from econ_calendar.coordinator import RefreshCoordinator
from econ_calendar.errors import BootstrapFailedError, ScrapeTimeoutError
from econ_calendar.models import Impact
from econ_calendar.service import QueryService, filter_by_search, split_csv

from helpers import FakeScraper, make_config, make_event

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def todays_events():
    return [
        make_event(date="2025-03-10", time="14:30:00", country="USA", name="Nonfarm Payrolls"),
        make_event(date="2025-03-10", time="11:00:00", country="EUR", name="Core CPI (YoY)",
                   impact=Impact.MEDIUM),
        make_event(date="2025-03-10", time="10:30:00", country="GBR", name="Manufacturing PMI",
                   impact=Impact.LOW),
    ]


class ServiceTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.store = SQLiteCacheStore(":memory:")
        self.config = make_config()

    def tearDown(self):
        self.store.close()

    def make_service(self, scraper):
        coordinator = RefreshCoordinator(scraper, self.store, self.config, now_fn=lambda: NOW)
        return QueryService(self.store, coordinator, now_fn=lambda: NOW)


class TestColdStart(ServiceTestCase):

    async def test_empty_cache_bootstraps_once(self):
        scraper = FakeScraper(events=todays_events())
        service = self.make_service(scraper)

        events = await service.get_events("today", "UTC")

        self.assertEqual(len(events), 3)
        self.assertEqual(len(scraper.scrape_dates_calls), 1)
        self.assertEqual(scraper.scrape_calls, [])

    async def test_concurrent_queries_share_the_bootstrap(self):
        scraper = FakeScraper(events=todays_events(), delay=0.05)
        service = self.make_service(scraper)

        first, second = await asyncio.gather(
            service.get_events("today", "UTC"),
            service.get_events("today", "UTC", countries=["USA"]),
        )

        self.assertEqual(len(scraper.scrape_dates_calls), 1)
        self.assertEqual(len(first), 3)
        self.assertEqual([e.country for e in second], ["USA"])

    async def test_bootstrap_failure_propagates(self):
        service = self.make_service(FakeScraper(error=ScrapeTimeoutError("navigation timeout")))

        with self.assertRaises(BootstrapFailedError):
            await service.get_events("today", "UTC")

    async def test_empty_bootstrap_is_an_error_not_an_empty_answer(self):
        scraper = FakeScraper(events=[])
        service = self.make_service(scraper)

        for _ in range(2):
            with self.assertRaises(BootstrapFailedError):
                await service.get_events("today", "UTC")

        self.assertEqual(len(scraper.scrape_dates_calls), 2)
        self.assertIsNone(self.store.latest_date())


class TestPopulatedCache(ServiceTestCase):

    async def test_empty_period_does_not_scrape(self):
        self.store.upsert([make_event(date="2025-01-01")])
        coordinator = MagicMock()
        coordinator.bootstrap = AsyncMock()
        service = QueryService(self.store, coordinator,
                               now_fn=lambda: datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))

        events = await service.get_events("today", "UTC")

        self.assertEqual(events, [])
        coordinator.bootstrap.assert_not_awaited()

    async def test_filters(self):
        self.store.upsert(todays_events())
        service = self.make_service(FakeScraper())

        by_country = await service.get_events("today", "UTC", countries=["usa", "gbr"])
        self.assertEqual([e.country for e in by_country], ["GBR", "USA"])

        by_impact = await service.get_events("today", "UTC", impacts=["HIGH"])
        self.assertEqual([e.event_original for e in by_impact], ["Nonfarm Payrolls"])

        by_category = await service.get_events("today", "UTC", categories=["inflation"])
        self.assertEqual([e.event_original for e in by_category], ["Core CPI (YoY)"])

        by_search = await service.get_events("today", "UTC", search="reino")
        self.assertEqual(by_search, [])
        by_search = await service.get_events("today", "UTC", search="united king")
        self.assertEqual([e.country for e in by_search], ["GBR"])

    async def test_period_resolved_in_viewer_timezone(self):
        self.store.upsert(todays_events())
        service = QueryService(
            self.store, MagicMock(),
            now_fn=lambda: datetime(2025, 3, 11, 3, 0, tzinfo=timezone.utc),
        )

        # 22:00 on Mar 10 in Bogota, already Mar 11 in UTC
        bogota = await service.get_events("today", "America/Bogota")
        utc = await service.get_events("yesterday", "UTC")

        self.assertEqual(len(bogota), 3)
        self.assertEqual([e.id for e in bogota], [e.id for e in utc])


class TestHelpers(unittest.TestCase):

    def test_split_csv(self):
        self.assertEqual(split_csv("USA, EUR,,"), ["USA", "EUR"])
        self.assertEqual(split_csv(None), [])
        self.assertEqual(split_csv(""), [])

    def test_search_matches_translated_name(self):
        events = todays_events()
        self.assertEqual(len(filter_by_search(events, "nóminas")), 1)
        self.assertEqual(len(filter_by_search(events, "  ")), 3)


if __name__ == '__main__':
    unittest.main()
