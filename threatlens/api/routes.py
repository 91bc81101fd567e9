from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from threatlens.engine import EventGenerator, EventStore, GenerationScheduler
from threatlens.engine.reports import ReportType, build_report, events_to_csv, filter_events
from threatlens.errors import EventNotFound, InvalidEvent
from threatlens.models import EventCategory, EventStatus, SecurityEvent, Severity

logger = logging.getLogger(__name__)

router = APIRouter()


class StatusUpdate(BaseModel):
    status: EventStatus
    request_analysis: bool = False


class GenerationStart(BaseModel):
    interval_ms: int = Field(default=5000, gt=0)


# ── helpers ───────────────────────────────────────────


def _store(request: Request) -> EventStore:
    return request.app.state.store


def _event_json(event: SecurityEvent) -> dict[str, Any]:
    data = event.model_dump(mode="json", exclude={"embedding"})
    data["has_embedding"] = event.embedding is not None
    return data


def _get_or_404(store: EventStore, event_id: str) -> SecurityEvent:
    try:
        return store.get(event_id)
    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")


# ── events ────────────────────────────────────────────


@router.get("/api/events")
async def list_events(
    request: Request,
    limit: int = 50,
    offset: int = 0,
    category: EventCategory | None = None,
    severity: Severity | None = None,
    status: EventStatus | None = None,
) -> dict:
    try:
        page = _store(request).list_events(
            limit=limit, offset=offset, category=category, severity=severity, status=status
        )
    except InvalidEvent as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {
        "events": [_event_json(e) for e in page.events],
        "total": page.total,
        "has_more": page.has_more,
    }


@router.post("/api/events")
async def create_event(request: Request, body: dict[str, Any] = Body(...)) -> dict:
    store = _store(request)
    action = body.pop("action", None)
    if action == "generate":
        generator: EventGenerator = request.app.state.generator
        try:
            partial = generator.generate(body.get("category"))
        except ValueError:
            raise HTTPException(status_code=422, detail="Unknown category")
    else:
        partial = body

    try:
        event_id = await store.ingest(partial)
    except InvalidEvent as exc:
        raise HTTPException(status_code=422, detail=exc.errors or str(exc))
    return {"event": _event_json(store.get(event_id))}


@router.get("/api/events/{event_id}")
async def get_event(request: Request, event_id: str) -> dict:
    return {"event": _event_json(_get_or_404(_store(request), event_id))}


@router.patch("/api/events/{event_id}")
async def update_event(request: Request, event_id: str, update: StatusUpdate) -> dict:
    store = _store(request)
    ok = await store.update_status(
        event_id, update.status, reanalyze=update.request_analysis
    )
    if not ok:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"event": _event_json(store.get(event_id))}


@router.get("/api/events/{event_id}/similar")
async def find_similar(
    request: Request,
    event_id: str,
    threshold: float = 0.7,
    limit: int = 10,
) -> dict:
    store = _store(request)
    target = _get_or_404(store, event_id)
    matches = store.find_similar(event_id, threshold=threshold, limit=limit)
    return {
        "target_event": {
            "id": target.id,
            "description": target.description,
            "category": target.category.value,
            "severity": target.severity.value,
        },
        "similar_events": [
            {
                "id": m.event.id,
                "description": m.event.description,
                "category": m.event.category.value,
                "severity": m.event.severity.value,
                "timestamp": m.event.timestamp.isoformat(),
                "source_ip": m.event.source_ip,
                "similarity": m.similarity,
            }
            for m in matches
        ],
        "threshold": threshold,
        "count": len(matches),
    }


# ── aggregates ────────────────────────────────────────


@router.get("/api/stats")
async def get_stats(request: Request) -> dict:
    store = _store(request)
    now = datetime.now(timezone.utc)
    data = store.stats(now).model_dump(mode="json")
    data["top_threats"] = [t.model_dump(mode="json") for t in store.top_threats(5)]
    data["recent_activity_count"] = len(store.recent(24, now))
    data["last_updated"] = now.isoformat()
    return data


@router.get("/api/threats/top")
async def get_top_threats(request: Request, limit: int = 5) -> list[dict]:
    return [t.model_dump(mode="json") for t in _store(request).top_threats(limit)]


# ── reports ───────────────────────────────────────────


@router.get("/api/reports")
async def get_report(
    request: Request,
    report_type: ReportType = Query(ReportType.SUMMARY, alias="type"),
    severity: Severity | None = None,
    category: EventCategory | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict:
    events = filter_events(
        _store(request).snapshot(), severity, category, start_date, end_date
    )
    payload = build_report(report_type, events)
    payload["metadata"]["filters"] = {
        "severity": severity,
        "category": category,
        "start_date": start_date.isoformat() if start_date else None,
        "end_date": end_date.isoformat() if end_date else None,
    }
    return payload


@router.get("/api/reports/export.csv")
async def export_csv(
    request: Request,
    severity: Severity | None = None,
    category: EventCategory | None = None,
) -> Response:
    events = filter_events(_store(request).snapshot(), severity, category)
    return Response(
        content=events_to_csv(events),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="security-events.csv"'},
    )


# ── generation ────────────────────────────────────────


@router.post("/api/generation/start")
async def start_generation(request: Request, body: GenerationStart | None = None) -> dict:
    scheduler: GenerationScheduler = request.app.state.scheduler
    interval_ms = body.interval_ms if body else 5000
    started = await scheduler.start(interval=interval_ms / 1000)
    return {"running": scheduler.running, "started": started, "interval": scheduler.interval}


@router.post("/api/generation/stop")
async def stop_generation(request: Request) -> dict:
    scheduler: GenerationScheduler = request.app.state.scheduler
    await scheduler.stop()
    return {"running": scheduler.running, "generated": scheduler.ticks}


# ── status ────────────────────────────────────────────


@router.get("/api/status")
async def get_status(request: Request) -> dict:
    state = request.app.state
    store: EventStore = state.store
    pipeline = store.pipeline
    return {
        "status": "running",
        "events": len(store),
        "capacity": store.capacity,
        "evicted": store.evicted_count,
        "pending_enrichments": store.pending_enrichments,
        "enrichment_running": pipeline.running if pipeline else False,
        "provider": pipeline.provider.name if pipeline else None,
        "generation_running": state.scheduler.running,
    }
