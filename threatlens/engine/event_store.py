from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime
from enum import StrEnum
from typing import Any, Iterable, TypeVar

from pydantic import ValidationError

from threatlens.engine import aggregator
from threatlens.engine.pipeline import EnrichmentPipeline
from threatlens.engine.similarity import cosine_similarity
from threatlens.errors import EventNotFound, InvalidEvent
from threatlens.models import (
    EventCategory,
    EventCreate,
    EventPage,
    EventStats,
    EventStatus,
    SecurityEvent,
    Severity,
    SimilarityMatch,
    ThreatAnalysis,
    ThreatSummary,
    new_event_id,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=StrEnum)


class EventStore:
    """Bounded, insertion-ordered in-memory store of enriched security events.

    Newest insertions sit at the front. Once ``capacity`` is exceeded the
    oldest insertion is evicted, regardless of event timestamps. Every
    mutation runs under one ``asyncio.Lock``; reads scan an immutable
    snapshot of the collection.
    """

    def __init__(
        self,
        capacity: int = 1000,
        pipeline: EnrichmentPipeline | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._pipeline = pipeline
        self._events: deque[SecurityEvent] = deque()
        self._index: dict[str, SecurityEvent] = {}
        self._lock = asyncio.Lock()
        self._evicted = 0

    # ── lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        if self._pipeline:
            await self._pipeline.start()

    async def stop(self) -> None:
        if self._pipeline:
            await self._pipeline.stop()

    # ── writes ──────────────────────────────────────────

    async def ingest(self, partial: EventCreate | dict[str, Any]) -> str:
        """Store a new event and queue it for enrichment. Returns its id immediately."""
        if not isinstance(partial, EventCreate):
            try:
                partial = EventCreate.model_validate(partial)
            except ValidationError as exc:
                errors = exc.errors(include_url=False, include_context=False)
                raise InvalidEvent(str(exc), errors) from exc

        data = partial.model_dump(exclude={"timestamp"})
        if partial.timestamp is not None:
            data["timestamp"] = partial.timestamp
        event = SecurityEvent(**data)

        async with self._lock:
            while event.id in self._index:
                event.id = new_event_id()
            self._events.appendleft(event)
            self._index[event.id] = event
            while len(self._events) > self.capacity:
                evicted = self._events.pop()
                del self._index[evicted.id]
                self._evicted += 1
                logger.info(
                    "Store at capacity (%d), evicted event %s", self.capacity, evicted.id
                )

        if self._pipeline:
            self._pipeline.submit(event, self._apply_analysis, self._apply_embedding)
        return event.id

    async def seed(self, events: Iterable[EventCreate | dict[str, Any]]) -> list[str]:
        return [await self.ingest(e) for e in events]

    async def update_status(
        self,
        event_id: str,
        status: EventStatus | str,
        analysis: ThreatAnalysis | None = None,
        reanalyze: bool = False,
    ) -> bool:
        """Set an event's status, optionally replacing its analysis.

        With ``reanalyze`` the enrichment provider classifies the event again
        before the write. Returns False when the id is unknown.
        """
        status = _coerce(EventStatus, status, "status")

        if reanalyze and analysis is None:
            current = self._index.get(event_id)
            if current is None:
                return False
            if self._pipeline:
                analysis = await self._pipeline.analyze(current)
            else:
                logger.warning("Re-analysis requested for %s but no enrichment pipeline", event_id)

        async with self._lock:
            event = self._index.get(event_id)
            if event is None:
                return False
            event.status = status
            if analysis is not None:
                event.analysis = analysis
                event.confidence_score = analysis.confidence_score
        return True

    async def _apply_analysis(self, event_id: str, analysis: ThreatAnalysis) -> None:
        async with self._lock:
            event = self._index.get(event_id)
            if event is None:
                logger.debug("Event %s evicted before classification completed", event_id)
                return
            if event.analysis is not None:
                return
            event.analysis = analysis
            event.confidence_score = analysis.confidence_score

    async def _apply_embedding(self, event_id: str, embedding: list[float]) -> None:
        async with self._lock:
            event = self._index.get(event_id)
            if event is None:
                logger.debug("Event %s evicted before embedding completed", event_id)
                return
            if event.embedding is not None:
                return
            event.embedding = embedding

    # ── reads ───────────────────────────────────────────

    def snapshot(self) -> tuple[SecurityEvent, ...]:
        return tuple(self._events)

    def get(self, event_id: str) -> SecurityEvent:
        event = self._index.get(event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event

    def list_events(
        self,
        limit: int = 50,
        offset: int = 0,
        category: EventCategory | str | None = None,
        severity: Severity | str | None = None,
        status: EventStatus | str | None = None,
    ) -> EventPage:
        """Newest-insertion-first page of events; filters apply before pagination."""
        if limit < 0 or offset < 0:
            raise InvalidEvent("limit and offset must be non-negative")
        category = _coerce(EventCategory, category, "category") if category else None
        severity = _coerce(Severity, severity, "severity") if severity else None
        status = _coerce(EventStatus, status, "status") if status else None

        matched = [
            e
            for e in self.snapshot()
            if (category is None or e.category == category)
            and (severity is None or e.severity == severity)
            and (status is None or e.status == status)
        ]
        return EventPage(
            events=matched[offset : offset + limit],
            total=len(matched),
            has_more=offset + limit < len(matched),
        )

    def find_similar(
        self,
        event_id: str,
        threshold: float = 0.7,
        limit: int = 10,
    ) -> list[SimilarityMatch]:
        """Other embedded events with cosine similarity above ``threshold``, best first."""
        target = self.get(event_id)
        if target.embedding is None:
            return []

        matches = []
        for event in self.snapshot():
            if event.id == target.id or event.embedding is None:
                continue
            score = cosine_similarity(target.embedding, event.embedding)
            if score > threshold:
                matches.append(SimilarityMatch(event=event, similarity=score))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[: max(limit, 0)]

    def stats(self, now: datetime | None = None) -> EventStats:
        return aggregator.compute_stats(self.snapshot(), now)

    def top_threats(self, limit: int = 5) -> list[ThreatSummary]:
        return aggregator.top_threats(self.snapshot(), limit)

    def recent(self, hours: float = 24, now: datetime | None = None) -> list[SecurityEvent]:
        return aggregator.recent(self.snapshot(), hours, now)

    # ── introspection ───────────────────────────────────

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._index

    @property
    def evicted_count(self) -> int:
        return self._evicted

    @property
    def pending_enrichments(self) -> int:
        return self._pipeline.pending if self._pipeline else 0

    @property
    def pipeline(self) -> EnrichmentPipeline | None:
        return self._pipeline


def _coerce(enum_cls: type[E], value: E | str, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise InvalidEvent(f"Unknown {field}: {value!r}") from exc
