#!/usr/bin/env python3
"""
Refresh coordinator
Owns every decision about when the scraper runs: cold-start bootstrap, the
daily full sweep, the intraday rolling refresh and retention pruning.

State is per instance (built once at startup and handed to the query service):
    - in-flight futures per scrape key (single-flight)
    - a browser lock, since only one Chrome session may run at a time
    - is_refreshing, a coarse lock between scheduled jobs; the loser is re-queued
    - last_refresh_time for health reporting
"""

import asyncio
import logging
import uuid
from datetime import datetime, time, timedelta, timezone

from cachetools import TTLCache

from .date_range import load_timezone, period_bounds
from .errors import BootstrapFailedError, CacheWriteError, ScrapeError

logger = logging.getLogger(__name__)

BOOTSTRAP_KEY = "bootstrap"


def next_run_at(at, tz_name, after):
    """First HH:MM wall-clock time in tz_name strictly after the given instant, in UTC"""
    tz = load_timezone(tz_name)
    local = after.astimezone(tz)
    hours, minutes = (int(part) for part in at.split(':'))
    target = datetime.combine(local.date(), time(hours, minutes), tzinfo=tz)
    if target <= local:
        target = datetime.combine(local.date() + timedelta(days=1), time(hours, minutes), tzinfo=tz)
    return target.astimezone(timezone.utc)


def seconds_until(at, tz_name, now=None):
    """Seconds from now until the next HH:MM wall-clock time in tz_name"""
    now = now or datetime.now(timezone.utc)
    return (next_run_at(at, tz_name, now) - now.astimezone(timezone.utc)).total_seconds()


class RefreshCoordinator:
    """Scrape orchestration with single-flight, a global job lock and timers"""

    def __init__(self, scraper, store, config, now_fn=None):
        self.scraper = scraper
        self.store = store
        self.config = config
        self.now_fn = now_fn or (lambda: datetime.now(timezone.utc))

        self.is_refreshing = False
        self.last_refresh_time = None

        self._in_flight = {}
        self._browser_lock = asyncio.Lock()
        self._recent_windows = TTLCache(maxsize=64, ttl=max(1, config.WINDOW_MIN_INTERVAL))
        self._tasks = set()

    # ===== SINGLE-FLIGHT =====

    async def _single_flight(self, key, factory):
        """Run factory() once per key; concurrent callers await the same result"""
        running = self._in_flight.get(key)
        if running is not None:
            logger.info(f"Waiting for in-flight refresh: {key}")
            return await asyncio.shield(running)

        task = asyncio.ensure_future(factory())
        self._in_flight[key] = task
        task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        return await asyncio.shield(task)

    def in_flight_keys(self):
        return sorted(self._in_flight)

    # ===== SCRAPE + WRITE =====

    async def _scrape_and_store(self, scrape_coro_factory, label):
        async with self._browser_lock:
            events = await scrape_coro_factory()
        written = await asyncio.to_thread(self.store.upsert, events)
        self.last_refresh_time = self.now_fn()
        logger.info(f"[{label}] cached {written} events")
        return written

    async def refresh_window(self, window, force=False):
        """
        Scrape one named window and upsert the result.

        Returns:
            Rows written; 0 when the window was refreshed within
            WINDOW_MIN_INTERVAL and force is False

        Raises:
            ScrapeError, CacheWriteError
        """
        if not force and window in self._recent_windows:
            logger.info(f"Window '{window}' refreshed recently, skipping")
            return 0

        async def run():
            written = await self._scrape_and_store(
                lambda: self.scraper.scrape(window, now=self.now_fn()), window
            )
            self._recent_windows[window] = self.now_fn()
            return written

        return await self._single_flight(f"window:{window}", run)

    async def bootstrap(self):
        """
        Fill an empty cache before a query is answered.

        Scrapes yesterday..tomorrow (source-local dates) as one range, in one
        browser session. Concurrent callers share the same scrape.

        Raises:
            BootstrapFailedError: the scrape failed or found no events, or the
                write failed
        """
        async def run():
            async with self._browser_lock:
                # A sweep may have filled the cache while we waited for the browser
                if await asyncio.to_thread(self.store.latest_date) is not None:
                    logger.info("Cache populated while waiting, bootstrap not needed")
                    return 0

                today = self.now_fn().astimezone(load_timezone(self.config.SOURCE_TIMEZONE)).date()
                start, _ = period_bounds("yesterday", today)
                _, end = period_bounds("tomorrow", today)
                logger.info(f"Cache empty, bootstrapping {start} -> {end}")

                try:
                    events = await self.scraper.scrape_dates(start, end, label=BOOTSTRAP_KEY)
                except ScrapeError as e:
                    logger.error(f"Bootstrap scrape failed: {e}")
                    raise BootstrapFailedError(
                        "Cache is warming up, retry shortly", details=str(e)
                    ) from e

                if not events:
                    logger.error(f"Bootstrap scrape of {start} -> {end} returned no events")
                    raise BootstrapFailedError(
                        "Cache is warming up, retry shortly",
                        details=f"Scrape of {start} -> {end} returned no events",
                    )

            try:
                written = await asyncio.to_thread(self.store.upsert, events)
            except CacheWriteError as e:
                logger.error(f"Bootstrap write failed: {e} ({e.failed_rows}/{e.total_rows} rows)")
                raise BootstrapFailedError(
                    "Cache is warming up, retry shortly", details=str(e)
                ) from e

            self.last_refresh_time = self.now_fn()
            logger.info(f"Bootstrap complete: {written} events cached")
            return written

        return await self._single_flight(BOOTSTRAP_KEY, run)

    # ===== SCHEDULED JOBS =====

    async def run_job(self, name, job):
        """
        Run a scheduled job under the global is_refreshing lock.

        A job that finds another one running is re-queued after REQUEUE_DELAY.
        Exceptions are logged here and never escape.

        Returns:
            True if the job ran, False if it was re-queued
        """
        if self.is_refreshing:
            logger.info(
                f"{name} skipped: another refresh is in progress - "
                f"will retry in {self.config.REQUEUE_DELAY:.0f}s"
            )
            self.spawn(self._requeue(name, job))
            return False

        run_id = str(uuid.uuid4())[:8]
        self.is_refreshing = True
        logger.info("=" * 70)
        logger.info(f"{name.upper()} START (run {run_id})")
        logger.info("=" * 70)
        try:
            await job()
            logger.info(f"✓ {name} complete (run {run_id})")
        except Exception as e:
            logger.error(f"{name} failed (run {run_id}): {e}", exc_info=True)
        finally:
            self.is_refreshing = False
        return True

    async def _requeue(self, name, job):
        await asyncio.sleep(self.config.REQUEUE_DELAY)
        await self.run_job(name, job)

    async def refresh_windows(self, windows, force=False):
        """
        Refresh windows one after another with a courtesy delay in between.

        A failing window is logged and skipped; the rest still run.

        Returns:
            dict window -> rows written (0 when skipped as fresh, None when failed)
        """
        results = {}
        for index, window in enumerate(windows):
            if index:
                await asyncio.sleep(self.config.SWEEP_WINDOW_DELAY)
            try:
                results[window] = await self.refresh_window(window, force=force)
            except ScrapeError as e:
                kind = type(e).__name__
                logger.error(f"💀 Window '{window}' failed after retries ({kind}): {e}")
                results[window] = None
            except CacheWriteError as e:
                logger.error(f"Window '{window}' partially written: {e.failed_rows}/{e.total_rows} rows failed")
                results[window] = None
        return results

    async def full_sweep(self):
        """All sweep windows, then retention pruning"""
        results = await self.refresh_windows(self.config.SWEEP_WINDOWS)
        failed = [w for w, written in results.items() if written is None]
        if failed:
            logger.warning(f"Sweep finished with failed windows: {', '.join(failed)}")
        await asyncio.to_thread(self.store.prune_older_than, self.config.RETENTION_DAYS)
        return results

    async def rolling_refresh(self):
        return await self.refresh_windows(self.config.ROLLING_WINDOWS)

    async def scheduled_sweep(self):
        return await self.run_job("full sweep", self.full_sweep)

    async def scheduled_rolling(self):
        return await self.run_job("rolling refresh", self.rolling_refresh)

    # ===== TIMERS =====

    def spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _daily(self, at, job):
        tz_name = self.config.SCHEDULE_TIMEZONE
        target = next_run_at(at, tz_name, self.now_fn())
        while True:
            delay = max(0.0, (target - self.now_fn()).total_seconds())
            logger.info(f"Next run at {at} {tz_name} (in {delay / 3600:.1f}h)")
            await asyncio.sleep(delay)
            await job()
            # Next slot comes from the one just served, never from the clock
            target = next_run_at(at, tz_name, target)

    async def startup_check(self):
        """Empty cache -> full sweep; populated cache -> rolling refresh"""
        latest = await asyncio.to_thread(self.store.latest_date)
        if latest is None:
            logger.info("No cached data found, running initial sweep")
            await self.scheduled_sweep()
        else:
            logger.info(f"Latest cached date: {latest}, running rolling refresh")
            await self.scheduled_rolling()

    def start(self):
        """Start the daily timers and the startup check on the running loop"""
        logger.info(
            f"Scheduling sweep at {self.config.SWEEP_AT} and rolling refresh at "
            f"{self.config.ROLLING_AT} ({self.config.SCHEDULE_TIMEZONE})"
        )
        self.spawn(self._daily(self.config.SWEEP_AT, self.scheduled_sweep))
        self.spawn(self._daily(self.config.ROLLING_AT, self.scheduled_rolling))
        self.spawn(self.startup_check())

    async def stop(self):
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ===== HEALTH =====

    def cache_status(self):
        """Snapshot of refresh state and cache freshness"""
        now = self.now_fn()
        latest_fetch = self.store.latest_fetched_at()
        stale = latest_fetch is None or (now - latest_fetch) > timedelta(hours=self.config.STALE_AFTER_HOURS)

        if self.last_refresh_time:
            minutes = round((now - self.last_refresh_time).total_seconds() / 60)
            age = f"{minutes} minutes ago"
        else:
            age = "Never"

        return {
            "isRefreshing": self.is_refreshing,
            "lastRefreshTime": self.last_refresh_time.isoformat() if self.last_refresh_time else None,
            "lastRefreshAge": age,
            "latestDate": self.store.latest_date(),
            "lastFetchedAt": latest_fetch.isoformat() if latest_fetch else None,
            "eventCount": self.store.count(),
            "inFlight": self.in_flight_keys(),
            "stale": stale,
        }
