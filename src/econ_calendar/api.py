"""
Economic Calendar HTTP API
Serves cached events for a relative period in the viewer's timezone, plus a
small admin surface for cache health and manual refreshes.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import __version__
from .cache_store import get_cache_store
from .config import SWEEP_WINDOWS, get_config
from .coordinator import RefreshCoordinator
from .date_range import DEFAULT_PERIOD
from .errors import BootstrapFailedError, CacheWriteError, ScrapeError
from .export import events_to_csv_text
from .service import QueryService, split_csv

logger = logging.getLogger(__name__)


def create_app(config=None, store=None, scraper=None):
    """
    Build the FastAPI application.

    store and scraper default to the configured backends; tests pass fakes.
    """
    config = config or get_config()
    if store is None:
        store = get_cache_store(config)
    if scraper is None:
        from .scraper import CalendarScraper
        scraper = CalendarScraper.from_config(config)

    coordinator = RefreshCoordinator(scraper, store, config)
    service = QueryService(store, coordinator)

    @asynccontextmanager
    async def lifespan(app):
        if config.SCHEDULER_ENABLED:
            coordinator.start()
        else:
            logger.info("Scheduler disabled, cache refreshes only on demand")
        yield
        await coordinator.stop()
        store.close()

    app = FastAPI(title="Economic Calendar", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.coordinator = coordinator
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.ALLOWED_ORIGINS),
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    @app.exception_handler(BootstrapFailedError)
    async def bootstrap_failed(request: Request, exc: BootstrapFailedError):
        return JSONResponse(status_code=503, content={"error": str(exc), "details": exc.details})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(exc)})

    async def run_query(date_range, timezone, countries, impacts, categories, search):
        return await service.get_events(
            period=date_range,
            timezone_name=timezone,
            countries=split_csv(countries),
            impacts=split_csv(impacts),
            categories=split_csv(categories),
            search=search,
        )

    @app.get("/events")
    async def get_events(
        date_range: str = Query(default=DEFAULT_PERIOD, alias="dateRange"),
        timezone: str = Query(default="UTC"),
        countries: Optional[str] = Query(default=None),
        impacts: Optional[str] = Query(default=None),
        categories: Optional[str] = Query(default=None),
        search: Optional[str] = Query(default=None),
    ):
        events = await run_query(date_range, timezone, countries, impacts, categories, search)
        return [event.model_dump(mode="json", by_alias=True) for event in events]

    @app.get("/events.csv")
    async def get_events_csv(
        date_range: str = Query(default=DEFAULT_PERIOD, alias="dateRange"),
        timezone: str = Query(default="UTC"),
        countries: Optional[str] = Query(default=None),
        impacts: Optional[str] = Query(default=None),
        categories: Optional[str] = Query(default=None),
        search: Optional[str] = Query(default=None),
    ):
        events = await run_query(date_range, timezone, countries, impacts, categories, search)
        return Response(
            content=events_to_csv_text(events),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="events_{date_range}.csv"'},
        )

    @app.get("/cache/status")
    async def cache_status():
        return await asyncio.to_thread(coordinator.cache_status)

    @app.post("/cache/refresh")
    async def refresh_cache(window: str = Query(default="today")):
        if window not in SWEEP_WINDOWS:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown window '{window}', expected one of: {', '.join(SWEEP_WINDOWS)}",
            )
        try:
            written = await coordinator.refresh_window(window, force=True)
        except ScrapeError as e:
            raise HTTPException(status_code=502, detail=f"Scrape failed: {e}")
        except CacheWriteError as e:
            raise HTTPException(status_code=500, detail=f"Cache write failed: {e}")
        return {"window": window, "written": written}

    @app.post("/cache/sweep", status_code=202)
    async def sweep_cache():
        if coordinator.is_refreshing:
            return {"status": "already_running"}
        coordinator.spawn(coordinator.scheduled_sweep())
        return {"status": "started"}

    @app.delete("/cache")
    async def clear_cache():
        deleted = await asyncio.to_thread(store.clear)
        return {"deleted": deleted}

    @app.get("/health")
    async def health():
        return {"service": "econ-calendar", "status": "running", "version": __version__}

    return app
