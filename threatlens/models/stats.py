from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from threatlens.models.analysis import Severity
from threatlens.models.event import EventCategory, SecurityEvent


class DailyStats(BaseModel):
    """Event counts for one UTC calendar day."""

    date: dt.date
    events: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class EventStats(BaseModel):
    """Aggregate view over the store at a point in time."""

    total_events: int = 0
    recent_events: int = 0
    weekly_events: int = 0
    critical_events: int = 0
    high_events: int = 0
    resolved_events: int = 0
    new_events: int = 0
    events_by_category: dict[str, int] = Field(default_factory=dict)
    events_by_severity: dict[str, int] = Field(default_factory=dict)
    events_by_status: dict[str, int] = Field(default_factory=dict)
    daily_stats: list[DailyStats] = Field(default_factory=list)
    generated_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )


class ThreatSummary(BaseModel):
    category: EventCategory
    severity: Severity
    count: int


class EventPage(BaseModel):
    events: list[SecurityEvent] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False


class SimilarityMatch(BaseModel):
    event: SecurityEvent
    similarity: float
