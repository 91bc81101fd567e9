from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from threatlens.api.routes import router
from threatlens.config import Settings, settings
from threatlens.engine import EnrichmentPipeline, EventGenerator, EventStore, GenerationScheduler
from threatlens.enrichment import build_fallback, build_provider

logger = logging.getLogger(__name__)


def build_components(cfg: Settings) -> tuple[EventStore, EventGenerator, GenerationScheduler]:
    """Wire store, pipeline, generator and scheduler from configuration."""
    fallback = build_fallback(cfg)
    provider = build_provider(cfg, fallback=fallback)
    pipeline = EnrichmentPipeline(
        provider,
        fallback,
        timeout=cfg.enrichment_timeout,
        workers=cfg.enrichment_workers,
    )
    store = EventStore(capacity=cfg.capacity, pipeline=pipeline)
    generator = EventGenerator()
    scheduler = GenerationScheduler(store, generator, interval=cfg.generation_interval)
    return store, generator, scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── startup ───────────────────────────────────────
    store, generator, scheduler = build_components(settings)
    await store.start()

    if settings.seed_events:
        await store.seed(
            generator.generate_batch(
                settings.seed_events,
                spread=timedelta(days=settings.seed_spread_days),
            )
        )
    if settings.auto_generate:
        await scheduler.start()

    app.state.store = store
    app.state.generator = generator
    app.state.scheduler = scheduler

    logger.info(
        "ThreatLens started with %d seeded events (capacity %d)",
        len(store),
        store.capacity,
    )

    yield

    # ── shutdown ──────────────────────────────────────
    await scheduler.stop()
    await store.stop()
    if store.pipeline:
        await store.pipeline.provider.aclose()
    logger.info("ThreatLens shut down")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


def run() -> None:
    import uvicorn

    uvicorn.run("threatlens.main:app", host=settings.host, port=settings.port)
