"""Single-pass aggregate views over a snapshot of stored events."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from threatlens.models import (
    DailyStats,
    EventCategory,
    EventStats,
    EventStatus,
    SecurityEvent,
    Severity,
    ThreatSummary,
)

DAILY_BUCKETS = 7


def compute_stats(
    events: Iterable[SecurityEvent],
    now: datetime | None = None,
) -> EventStats:
    if now is None:
        now = datetime.now(timezone.utc)
    day_ago = now - timedelta(days=1)
    week_ago = now - timedelta(days=7)

    today = now.astimezone(timezone.utc).date()
    buckets = {
        today - timedelta(days=offset): DailyStats(date=today - timedelta(days=offset))
        for offset in range(DAILY_BUCKETS - 1, -1, -1)
    }

    stats = EventStats(
        events_by_category={c.value: 0 for c in EventCategory},
        events_by_severity={s.value: 0 for s in Severity},
        events_by_status={s.value: 0 for s in EventStatus},
        generated_at=now,
    )

    for event in events:
        stats.total_events += 1
        stats.events_by_category[event.category.value] += 1
        stats.events_by_severity[event.severity.value] += 1
        stats.events_by_status[event.status.value] += 1

        if event.timestamp > day_ago:
            stats.recent_events += 1
        if event.timestamp > week_ago:
            stats.weekly_events += 1

        bucket = buckets.get(event.timestamp.astimezone(timezone.utc).date())
        if bucket is not None:
            bucket.events += 1
            setattr(bucket, event.severity.value, getattr(bucket, event.severity.value) + 1)

    stats.critical_events = stats.events_by_severity[Severity.CRITICAL.value]
    stats.high_events = stats.events_by_severity[Severity.HIGH.value]
    stats.resolved_events = stats.events_by_status[EventStatus.RESOLVED.value]
    stats.new_events = stats.events_by_status[EventStatus.NEW.value]
    stats.daily_stats = list(buckets.values())
    return stats


def top_threats(events: Iterable[SecurityEvent], limit: int = 5) -> list[ThreatSummary]:
    """Most frequent (category, severity) pairs, ties kept in first-seen order."""
    counts: dict[tuple[EventCategory, Severity], int] = {}
    for event in events:
        key = (event.category, event.severity)
        counts[key] = counts.get(key, 0) + 1

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [
        ThreatSummary(category=category, severity=severity, count=count)
        for (category, severity), count in ranked[: max(limit, 0)]
    ]


def recent(
    events: Sequence[SecurityEvent],
    hours: float = 24,
    now: datetime | None = None,
) -> list[SecurityEvent]:
    if now is None:
        now = datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=hours)
    return [e for e in events if e.timestamp > cutoff]
