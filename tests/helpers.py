"""Shared builders and fakes for the test suite"""

import asyncio
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

from econ_calendar.config import Config
from econ_calendar.models import CanonicalEvent, Impact
from econ_calendar.taxonomy import primary_category, translate

FIXTURES = Path(__file__).parent / 'fixtures'
MADRID = ZoneInfo("Europe/Madrid")


def load_fixture(name):
    return (FIXTURES / name).read_text(encoding='utf-8')


def make_config(**overrides):
    config = Config()
    config.SCHEDULER_ENABLED = False
    config.SWEEP_WINDOW_DELAY = 0
    config.REQUEUE_DELAY = 0.01
    config.SCRAPER_RETRY_BACKOFF = 0
    config.ALLOWED_ORIGINS = ('*',)
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def make_event(date="2025-01-01", time="14:30:00", country="USA", name="Nonfarm Payrolls",
               impact=Impact.HIGH, actual=None, forecast=None, previous=None,
               country_name=None, fetched_at=None):
    local = datetime.fromisoformat(f"{date}T{time}").replace(tzinfo=MADRID)
    event_id = hashlib.sha256(f"{date}-{time}-{country}-{name}".encode('utf-8')).hexdigest()[:32]
    return CanonicalEvent(
        id=event_id,
        event_timestamp=local.astimezone(timezone.utc),
        date=date,
        time=time,
        country=country,
        country_name=country_name or {"USA": "United States", "EUR": "Eurozone",
                                      "GBR": "United Kingdom", "JPN": "Japan"}.get(country, country),
        event=translate(name),
        event_original=name,
        impact=impact,
        actual=actual,
        forecast=forecast,
        previous=previous,
        category=primary_category(name),
        fetched_at=fetched_at,
    )


class FakeScraper:
    """Stands in for CalendarScraper; records calls, never opens a browser"""

    def __init__(self, events=None, window_events=None, fail_windows=(), error=None, delay=0.0):
        self.events = list(events or [])
        self.window_events = dict(window_events or {})
        self.fail_windows = set(fail_windows)
        self.error = error
        self.delay = delay
        self.scrape_calls = []
        self.scrape_dates_calls = []

    async def scrape(self, window, now=None):
        self.scrape_calls.append(window)
        if self.delay:
            await asyncio.sleep(self.delay)
        if window in self.fail_windows:
            raise self.error
        return list(self.window_events.get(window, self.events))

    async def scrape_dates(self, start, end, label=None):
        self.scrape_dates_calls.append((start, end, label))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None and not self.fail_windows:
            raise self.error
        return list(self.events)
