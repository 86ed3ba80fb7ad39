#!/usr/bin/env python3
"""
Query service
Resolves a relative period for the viewer's timezone, reads the cache and
applies the in-memory filters. An empty cache that has never been populated
is filled through the coordinator's bootstrap before answering.
"""

import asyncio
import logging
from datetime import datetime, timezone

from .date_range import DEFAULT_PERIOD, resolve_range
from .taxonomy import categorize

logger = logging.getLogger(__name__)


def split_csv(value):
    """'USA, EUR,,' -> ['USA', 'EUR']; None/'' -> []"""
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def filter_by_categories(events, categories):
    wanted = {c.lower() for c in categories}
    matched = []
    for event in events:
        tags = set(categorize(event.event_original))
        if event.category:
            tags.add(event.category)
        if tags & wanted:
            matched.append(event)
    return matched


def filter_by_search(events, search):
    needle = search.strip().lower()
    if not needle:
        return list(events)
    return [
        event for event in events
        if needle in event.event.lower()
        or needle in event.country.lower()
        or needle in event.country_name.lower()
    ]


class QueryService:
    """Read path for the HTTP layer"""

    def __init__(self, store, coordinator, now_fn=None):
        self.store = store
        self.coordinator = coordinator
        self.now_fn = now_fn or (lambda: datetime.now(timezone.utc))

    async def _query(self, bounds, countries, impacts):
        return await asyncio.to_thread(
            self.store.query,
            start_date=bounds.start_date,
            end_date=bounds.end_date,
            countries=countries,
            impacts=impacts,
        )

    async def get_events(self, period=DEFAULT_PERIOD, timezone_name="UTC", countries=None,
                         impacts=None, categories=None, search=None):
        """
        Events for a relative period as seen from timezone_name.

        Returns:
            List[CanonicalEvent] ordered by event_timestamp; empty when the
            period simply has no events

        Raises:
            BootstrapFailedError: the cache was empty and could not be filled
        """
        bounds = resolve_range(period or DEFAULT_PERIOD, timezone_name, self.now_fn())
        countries = [c.upper() for c in countries or []]
        impacts = [i.lower() for i in impacts or []]

        events = await self._query(bounds, countries, impacts)

        if not events:
            latest = await asyncio.to_thread(self.store.latest_date)
            if latest is None:
                logger.info(f"Cache never populated, bootstrapping for {period} ({timezone_name})")
                await self.coordinator.bootstrap()
                events = await self._query(bounds, countries, impacts)

        if categories:
            events = filter_by_categories(events, categories)
        if search:
            events = filter_by_search(events, search)

        logger.info(
            f"{period} [{bounds.start_date} -> {bounds.end_date}, {timezone_name}]: {len(events)} events"
        )
        return events
