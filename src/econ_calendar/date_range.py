"""
Relative period -> concrete date range resolution

Periods are computed on the viewer's wall clock: "today" in America/Bogota at
23:30 local is still the Bogota date even though UTC has already rolled over.
The returned local date strings are what the cache filters on; the UTC
instants are kept for callers that only have timestamps.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

PERIODS = ("yesterday", "today", "tomorrow", "thisWeek", "nextWeek", "lastWeek", "thisMonth")
DEFAULT_PERIOD = "today"


@dataclass(frozen=True)
class DateRange:
    start_utc: datetime
    end_utc: datetime
    start_date: str
    end_date: str

    @property
    def start(self) -> date:
        return date.fromisoformat(self.start_date)

    @property
    def end(self) -> date:
        return date.fromisoformat(self.end_date)


def load_timezone(name: Optional[str]) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name, falling back to UTC."""
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}', falling back to UTC")
        return ZoneInfo("UTC")


def period_bounds(period: str, today: date) -> Tuple[date, date]:
    """Local first/last day of a period; weeks run Monday to Sunday."""
    monday = today - timedelta(days=today.weekday())

    if period == "yesterday":
        day = today - timedelta(days=1)
        return day, day
    if period == "tomorrow":
        day = today + timedelta(days=1)
        return day, day
    if period == "thisWeek":
        return monday, monday + timedelta(days=6)
    if period == "nextWeek":
        start = monday + timedelta(days=7)
        return start, start + timedelta(days=6)
    if period == "lastWeek":
        start = monday - timedelta(days=7)
        return start, start + timedelta(days=6)
    if period == "thisMonth":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last_day)
    if period != "today":
        logger.debug(f"Unknown period '{period}', using today")
    return today, today


def local_day_bounds_utc(start: date, end: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """UTC instants of local start-of-day(start) and end-of-day(end) in tz."""
    start_local = datetime.combine(start, time.min, tzinfo=tz)
    end_local = datetime.combine(end, time.max, tzinfo=tz)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)


def resolve_range(period: str, tz_name: str = "UTC", now: Optional[datetime] = None) -> DateRange:
    """
    Resolve a relative period for a viewer timezone.

    Args:
        period: yesterday | today | tomorrow | thisWeek | nextWeek | lastWeek | thisMonth
                (anything else resolves as today)
        tz_name: IANA timezone of the viewer
        now: reference instant, defaults to the current time

    Returns:
        DateRange with UTC instants and local YYYY-MM-DD bounds
    """
    tz = load_timezone(tz_name)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local_today = now.astimezone(tz).date()
    start, end = period_bounds(period, local_today)
    start_utc, end_utc = local_day_bounds_utc(start, end, tz)

    return DateRange(
        start_utc=start_utc,
        end_utc=end_utc,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
    )
