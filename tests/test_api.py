#!/usr/bin/env python3
"""HTTP layer tests with FastAPI's TestClient; the scheduler stays off"""

import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from fastapi.testclient import TestClient

from econ_calendar.api import create_app
from econ_calendar.cache_store import SQLiteCacheStore
from econ_calendar.errors import ScrapeStructureError
from econ_calendar.models import Impact

from helpers import FakeScraper, make_config, make_event


def today_utc():
    return datetime.now(timezone.utc).date().isoformat()


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.store = SQLiteCacheStore(":memory:")
        self.today = today_utc()
        self.events = [
            make_event(date=self.today, time="14:30:00", country="USA", name="Nonfarm Payrolls",
                       actual="256K", forecast="164K"),
            make_event(date=self.today, time="11:00:00", country="EUR", name="Core CPI (YoY)",
                       impact=Impact.MEDIUM),
        ]

    def make_client(self, scraper=None, **kwargs):
        self.scraper = scraper or FakeScraper(events=self.events)
        app = create_app(make_config(), store=self.store, scraper=self.scraper)
        return TestClient(app, **kwargs)


class TestEventsEndpoint(ApiTestCase):

    def test_returns_camel_case_events(self):
        self.store.upsert(self.events)
        with self.make_client() as client:
            response = client.get("/events", params={"dateRange": "today", "timezone": "UTC"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body), 2)
        nfp = body[1]
        self.assertEqual(nfp["eventOriginal"], "Nonfarm Payrolls")
        self.assertEqual(nfp["countryName"], "United States")
        self.assertEqual(nfp["impact"], "high")
        self.assertEqual(nfp["actual"], "256K")
        self.assertIn("eventTimestamp", nfp)
        self.assertIn("fetchedAt", nfp)

    def test_csv_filters(self):
        self.store.upsert(self.events)
        with self.make_client() as client:
            response = client.get("/events", params={"countries": "USA", "impacts": "high,medium"})

        self.assertEqual([e["country"] for e in response.json()], ["USA"])

    def test_cold_start_bootstraps(self):
        with self.make_client() as client:
            response = client.get("/events")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 2)
        self.assertEqual(len(self.scraper.scrape_dates_calls), 1)

    def test_bootstrap_failure_is_503(self):
        scraper = FakeScraper(error=ScrapeStructureError("calendar table missing"))
        with self.make_client(scraper) as client:
            response = client.get("/events")

        self.assertEqual(response.status_code, 503)
        body = response.json()
        self.assertIn("warming up", body["error"])
        self.assertIn("calendar table missing", body["details"])

    def test_unexpected_failure_is_500(self):
        with self.make_client(raise_server_exceptions=False) as client:
            with patch.object(self.store, 'query', side_effect=RuntimeError("database gone")):
                response = client.get("/events")

        self.assertEqual(response.status_code, 500)

    def test_csv_export(self):
        self.store.upsert(self.events)
        with self.make_client() as client:
            response = client.get("/events.csv")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))
        lines = response.text.strip().splitlines()
        self.assertTrue(lines[0].startswith("Date,Time,TimestampUTC,Country"))
        self.assertEqual(len(lines), 3)


class TestAdminEndpoints(ApiTestCase):

    def test_cache_status(self):
        self.store.upsert(self.events)
        with self.make_client() as client:
            body = client.get("/cache/status").json()

        self.assertEqual(body["eventCount"], 2)
        self.assertEqual(body["latestDate"], self.today)
        self.assertEqual(body["lastRefreshAge"], "Never")
        self.assertFalse(body["isRefreshing"])

    def test_refresh_window(self):
        with self.make_client() as client:
            response = client.post("/cache/refresh", params={"window": "today"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"window": "today", "written": 2})
        self.assertEqual(self.scraper.scrape_calls, ["today"])

    def test_refresh_unknown_window(self):
        with self.make_client() as client:
            response = client.post("/cache/refresh", params={"window": "nextYear"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.scraper.scrape_calls, [])

    def test_refresh_failure_is_502(self):
        scraper = FakeScraper(fail_windows={"today"}, error=ScrapeStructureError("no table"))
        with self.make_client(scraper) as client:
            response = client.post("/cache/refresh", params={"window": "today"})

        self.assertEqual(response.status_code, 502)

    def test_clear_cache(self):
        self.store.upsert(self.events)
        with self.make_client() as client:
            response = client.delete("/cache")

        self.assertEqual(response.json(), {"deleted": 2})

    def test_health(self):
        with self.make_client() as client:
            response = client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "running")


if __name__ == '__main__':
    unittest.main()
