"""Data models for scraped and cached calendar events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_icon_count(cls, count: int) -> "Impact":
        if count >= 3:
            return cls.HIGH
        if count == 2:
            return cls.MEDIUM
        return cls.LOW


@dataclass
class RawRow:
    """One event row exactly as it reads in the calendar markup."""
    row_id: str
    date_label: str
    time_text: str
    country_name: str
    currency: str
    event_name: str
    icon_count: int
    actual: str
    forecast: str
    previous: str


STORE_COLUMNS = (
    "id", "event_timestamp", "date", "time", "country", "country_name",
    "event", "event_original", "impact", "actual", "forecast", "previous",
    "category", "fetched_at",
)


def _as_utc(value: Any) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CanonicalEvent(BaseModel):
    """Normalized calendar event, the unit of the cache.

    Attributes are snake_case; JSON uses camelCase (eventTimestamp, countryName...).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    event_timestamp: datetime
    date: str
    time: str
    country: str
    country_name: str
    event: str
    event_original: str
    impact: Impact
    actual: Optional[str] = None
    forecast: Optional[str] = None
    previous: Optional[str] = None
    category: Optional[str] = None
    fetched_at: Optional[datetime] = None

    def to_row(self) -> Dict[str, Any]:
        """Flatten to store columns; instants become UTC ISO strings."""
        row = self.model_dump()
        row["impact"] = self.impact.value
        row["event_timestamp"] = _as_utc(self.event_timestamp).isoformat()
        row["fetched_at"] = _as_utc(self.fetched_at).isoformat() if self.fetched_at else None
        return {column: row[column] for column in STORE_COLUMNS}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CanonicalEvent":
        data = dict(row)
        data["event_timestamp"] = _as_utc(data["event_timestamp"])
        if data.get("fetched_at"):
            data["fetched_at"] = _as_utc(data["fetched_at"])
        # Postgres hands back DATE objects; the cache contract is a YYYY-MM-DD string
        if not isinstance(data["date"], str):
            data["date"] = data["date"].isoformat()
        if not isinstance(data["time"], str):
            data["time"] = data["time"].strftime("%H:%M:%S")
        return cls(**data)
