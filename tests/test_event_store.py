"""Tests for threatlens.engine.event_store."""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest

from threatlens.config import RULES_DIR
from threatlens.engine.event_store import EventStore
from threatlens.engine.generator import EventGenerator
from threatlens.engine.pipeline import EnrichmentPipeline
from threatlens.enrichment import EnrichmentProvider, FallbackProvider
from threatlens.errors import EventNotFound, InvalidEvent
from threatlens.models import (
    EventCategory,
    EventCreate,
    EventStatus,
    SecurityEvent,
    Severity,
    ThreatAnalysis,
)

FALLBACK_FILE = RULES_DIR / "fallback_analyses.yaml"


class VectorProvider(EnrichmentProvider):
    """Returns a fixed embedding chosen by the event description's first word."""

    name = "vectors"

    def __init__(self, vectors: dict[str, list[float] | None]) -> None:
        self.vectors = vectors

    async def classify(self, event: SecurityEvent) -> ThreatAnalysis:
        return ThreatAnalysis(threat_type=f"classified {event.category.value}")

    async def embed(self, text: str) -> list[float]:
        vector = self.vectors[text.split()[0]]
        if vector is None:
            raise RuntimeError("no embedding for this event")
        return vector


def _make_create(**overrides) -> EventCreate:
    defaults = dict(
        category=EventCategory.INTRUSION,
        severity=Severity.MEDIUM,
        source_ip="203.0.113.5",
        destination_ip="10.0.0.5",
        description="alpha login failures",
        raw_data={"attempts": 8},
        tags=["brute_force"],
    )
    defaults.update(overrides)
    return EventCreate(**defaults)


def _make_pipeline(provider: EnrichmentProvider | None = None) -> EnrichmentPipeline:
    fallback = FallbackProvider.from_yaml(FALLBACK_FILE, dimensions=4, rng=random.Random(0))
    return EnrichmentPipeline(provider or fallback, fallback, timeout=1.0, workers=2)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


# ── ingest / get ──────────────────────────────────────


@pytest.mark.asyncio
async def test_ingest_assigns_id_and_defaults():
    store = EventStore()
    event_id = await store.ingest(_make_create())

    event = store.get(event_id)
    assert event.id == event_id
    assert event.status == EventStatus.NEW
    assert event.timestamp.tzinfo is not None
    assert event.tags == ["brute_force"]
    assert len(store) == 1


@pytest.mark.asyncio
async def test_ingest_keeps_supplied_timestamp():
    ts = datetime(2024, 12, 24, 8, 30, tzinfo=timezone.utc)
    store = EventStore()
    event_id = await store.ingest(_make_create(timestamp=ts))
    assert store.get(event_id).timestamp == ts


@pytest.mark.asyncio
async def test_ingest_accepts_dict():
    store = EventStore()
    event_id = await store.ingest(
        {
            "category": "phishing",
            "severity": "high",
            "source_ip": "10.0.0.5",
            "description": "Malicious email clicked",
            "tags": ["phishing", "phishing"],
        }
    )
    event = store.get(event_id)
    assert event.category == EventCategory.PHISHING
    assert event.tags == ["phishing"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"severity": "high", "source_ip": "10.0.0.5", "description": "no category"},
        {"category": "ransom_note", "severity": "high", "source_ip": "x", "description": "d"},
        {"category": "malware", "severity": "extreme", "source_ip": "x", "description": "d"},
    ],
)
async def test_ingest_rejects_invalid_partial(payload):
    store = EventStore()
    with pytest.raises(InvalidEvent) as exc_info:
        await store.ingest(payload)
    assert exc_info.value.errors
    assert len(store) == 0


@pytest.mark.asyncio
async def test_ids_unique():
    store = EventStore()
    ids = [await store.ingest(_make_create()) for _ in range(200)]
    assert len(set(ids)) == 200


def test_get_unknown_raises_not_found():
    store = EventStore()
    with pytest.raises(EventNotFound) as exc_info:
        store.get("does-not-exist")
    assert exc_info.value.event_id == "does-not-exist"


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        EventStore(capacity=0)


# ── ordering and capacity ─────────────────────────────


@pytest.mark.asyncio
async def test_newest_insertion_first():
    store = EventStore()
    first = await store.ingest(_make_create(description="first"))
    second = await store.ingest(_make_create(description="second"))
    assert [e.id for e in store.list_events().events] == [second, first]


@pytest.mark.asyncio
async def test_eviction_by_insertion_order_not_timestamp():
    store = EventStore(capacity=2)
    now = datetime.now(timezone.utc)
    old_ts = await store.ingest(_make_create(timestamp=now - timedelta(days=30)))
    newest_ts = await store.ingest(_make_create(timestamp=now))
    await store.ingest(_make_create(timestamp=now - timedelta(days=60)))

    assert len(store) == 2
    assert old_ts not in store
    assert newest_ts in store
    assert store.evicted_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", [0, 1, 2, 3])
async def test_capacity_property_random_sequences(seed):
    """The store keeps exactly the most recent ``capacity`` insertions."""
    rng = random.Random(seed)
    capacity = rng.randint(1, 15)
    store = EventStore(capacity=capacity)
    generator = EventGenerator(rng=rng)

    inserted: list[str] = []
    for _ in range(rng.randint(0, 60)):
        inserted.append(await store.ingest(generator.generate()))
        assert len(store) <= capacity

    expected = list(reversed(inserted))[:capacity]
    assert [e.id for e in store.snapshot()] == expected


# ── list / filters / pagination ───────────────────────


@pytest.mark.asyncio
async def test_list_filters_before_pagination():
    store = EventStore()
    for i in range(6):
        await store.ingest(_make_create(category=EventCategory.MALWARE, description=f"m{i}"))
        await store.ingest(_make_create(category=EventCategory.PHISHING, description=f"p{i}"))

    page = store.list_events(limit=4, offset=0, category="malware")
    assert page.total == 6
    assert page.has_more is True
    assert [e.description for e in page.events] == ["m5", "m4", "m3", "m2"]

    page = store.list_events(limit=4, offset=4, category=EventCategory.MALWARE)
    assert [e.description for e in page.events] == ["m1", "m0"]
    assert page.has_more is False


@pytest.mark.asyncio
async def test_list_combined_filters():
    store = EventStore()
    target = await store.ingest(_make_create(severity=Severity.CRITICAL))
    await store.ingest(_make_create(severity=Severity.LOW))
    await store.update_status(target, EventStatus.INVESTIGATING)

    page = store.list_events(severity="critical", status="investigating")
    assert [e.id for e in page.events] == [target]
    assert store.list_events(severity="critical", status="resolved").total == 0


@pytest.mark.asyncio
async def test_list_past_end_returns_empty():
    store = EventStore()
    await store.ingest(_make_create())
    page = store.list_events(limit=10, offset=50)
    assert page.events == []
    assert page.total == 1
    assert page.has_more is False


def test_list_rejects_unknown_filter_values():
    store = EventStore()
    with pytest.raises(InvalidEvent):
        store.list_events(category="ransom_note")
    with pytest.raises(InvalidEvent):
        store.list_events(status="closed")
    with pytest.raises(InvalidEvent):
        store.list_events(limit=-1)


# ── update_status ─────────────────────────────────────


@pytest.mark.asyncio
async def test_update_status_mutates_in_place():
    store = EventStore()
    event_id = await store.ingest(_make_create())
    event = store.get(event_id)

    assert await store.update_status(event_id, "resolved") is True
    assert event.status == EventStatus.RESOLVED

    assert await store.update_status(event_id, EventStatus.NEW) is True
    assert event.status == EventStatus.NEW


@pytest.mark.asyncio
async def test_update_status_unknown_id_leaves_store_unchanged():
    store = EventStore()
    await store.ingest(_make_create())
    before = [(e.id, e.status) for e in store.snapshot()]

    assert await store.update_status("fabricated-id", EventStatus.RESOLVED) is False
    assert [(e.id, e.status) for e in store.snapshot()] == before


@pytest.mark.asyncio
async def test_update_status_with_explicit_analysis():
    store = EventStore()
    event_id = await store.ingest(_make_create())
    analysis = ThreatAnalysis(threat_type="Manual triage", confidence_score=0.3)

    assert await store.update_status(event_id, "investigating", analysis=analysis)
    event = store.get(event_id)
    assert event.analysis == analysis
    assert event.confidence_score == 0.3


@pytest.mark.asyncio
async def test_update_status_rejects_unknown_status():
    store = EventStore()
    event_id = await store.ingest(_make_create())
    with pytest.raises(InvalidEvent):
        await store.update_status(event_id, "closed")


# ── similarity search ─────────────────────────────────


@pytest.mark.asyncio
async def test_similarity_ranks_identical_embedding_first():
    provider = VectorProvider(
        {
            "target": [1.0, 0.0, 0.0, 0.0],
            "twin": [1.0, 0.0, 0.0, 0.0],
            "near": [0.9, 0.1, 0.0, 0.0],
            "far": [0.0, 1.0, 0.0, 0.0],
        }
    )
    store = EventStore(pipeline=_make_pipeline(provider))
    await store.start()
    try:
        target = await store.ingest(_make_create(description="target event"))
        near = await store.ingest(_make_create(description="near event"))
        twin = await store.ingest(_make_create(description="twin event"))
        await store.ingest(_make_create(description="far event"))
        await store.pipeline.join()

        matches = store.find_similar(target, threshold=0.5, limit=10)
        assert [m.event.id for m in matches] == [twin, near]
        assert matches[0].similarity == pytest.approx(1.0)
        assert target not in [m.event.id for m in matches]

        assert [m.event.id for m in store.find_similar(target, threshold=0.5, limit=1)] == [twin]
        assert store.find_similar(target, threshold=1.0) == []
    finally:
        await store.stop()


@pytest.mark.asyncio
async def test_similarity_is_symmetric_across_stored_pairs():
    provider = VectorProvider(
        {"a": [1.0, 2.0, 0.5, 0.0], "b": [0.5, 1.0, 2.0, 1.0], "c": [2.0, 1.5, 0.1, 0.2]}
    )
    store = EventStore(pipeline=_make_pipeline(provider))
    await store.start()
    try:
        ids = {
            name: await store.ingest(_make_create(description=f"{name} event"))
            for name in ("a", "b", "c")
        }
        await store.pipeline.join()

        def score(src: str, dst: str) -> float:
            matches = store.find_similar(ids[src], threshold=-1.0)
            return next(m.similarity for m in matches if m.event.id == ids[dst])

        for x, y in [("a", "b"), ("a", "c"), ("b", "c")]:
            assert score(x, y) == score(y, x)
    finally:
        await store.stop()


@pytest.mark.asyncio
async def test_similarity_excludes_zero_norm_and_missing_embeddings():
    provider = VectorProvider(
        {"target": [1.0, 0.0, 0.0, 0.0], "zero": [0.0, 0.0, 0.0, 0.0], "same": [2.0, 0.0, 0.0, 0.0]}
    )
    store = EventStore(pipeline=_make_pipeline(provider))
    await store.start()
    try:
        target = await store.ingest(_make_create(description="target"))
        await store.ingest(_make_create(description="zero vector"))
        same = await store.ingest(_make_create(description="same direction"))
        await store.pipeline.join()

        matches = store.find_similar(target, threshold=-0.5)
        scores = {m.event.id: m.similarity for m in matches}
        assert scores[same] == pytest.approx(1.0)
        assert 0.0 in scores.values()
    finally:
        await store.stop()


@pytest.mark.asyncio
async def test_similarity_target_without_embedding_returns_empty():
    store = EventStore()
    event_id = await store.ingest(_make_create())
    assert store.find_similar(event_id, threshold=0.0) == []


def test_similarity_unknown_target_raises():
    with pytest.raises(EventNotFound):
        EventStore().find_similar("missing")


# ── stats / top threats ───────────────────────────────


@pytest.mark.asyncio
async def test_stats_match_store_contents():
    store = EventStore(capacity=30)
    generator = EventGenerator(rng=random.Random(5))
    await store.seed(generator.generate_batch(45, spread=timedelta(days=10)))
    ids = [e.id for e in store.snapshot()]
    await store.update_status(ids[0], EventStatus.RESOLVED)
    await store.update_status(ids[1], EventStatus.FALSE_POSITIVE)

    stats = store.stats()
    assert stats.total_events == len(store) == 30
    assert sum(stats.events_by_severity.values()) == stats.total_events
    assert sum(stats.events_by_status.values()) == stats.total_events
    assert stats.resolved_events == 1
    assert stats.new_events == 28


@pytest.mark.asyncio
async def test_top_threats_through_store():
    store = EventStore()
    for _ in range(3):
        await store.ingest(_make_create(category=EventCategory.DOS_ATTACK, severity=Severity.HIGH))
    await store.ingest(_make_create(category=EventCategory.MALWARE, severity=Severity.CRITICAL))

    threats = store.top_threats(limit=1)
    assert len(threats) == 1
    assert threats[0].category == EventCategory.DOS_ATTACK
    assert threats[0].count == 3


@pytest.mark.asyncio
async def test_reads_consistent_during_concurrent_ingest():
    store = EventStore(capacity=50)
    generator = EventGenerator(rng=random.Random(3))

    async def writer() -> None:
        for _ in range(200):
            await store.ingest(generator.generate())
            await asyncio.sleep(0)

    async def reader() -> None:
        for _ in range(200):
            stats = store.stats()
            assert stats.total_events <= 50
            assert sum(stats.events_by_severity.values()) == stats.total_events
            assert sum(stats.events_by_status.values()) == stats.total_events
            await asyncio.sleep(0)

    await asyncio.gather(writer(), reader(), reader())
    assert len(store) == 50


@pytest.mark.asyncio
async def test_recent_activity():
    store = EventStore()
    now = datetime.now(timezone.utc)
    fresh = await store.ingest(_make_create(timestamp=now - timedelta(hours=1)))
    await store.ingest(_make_create(timestamp=now - timedelta(days=3)))
    assert [e.id for e in store.recent(24, now)] == [fresh]
