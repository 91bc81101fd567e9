"""Event generation simulator for ThreatLens.

Builds a store with the configured enrichment provider, seeds it with
back-dated sample events, runs continuous generation for a while and
prints the resulting statistics.

Usage:
    python simulator/simulate.py                     # 50 seed events, 10s of generation
    python simulator/simulate.py --category malware --count 20
    python simulator/simulate.py --seconds 30 --interval 0.5 --seed 42
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
from datetime import timedelta

from threatlens.config import settings
from threatlens.engine import EnrichmentPipeline, EventGenerator, EventStore, GenerationScheduler
from threatlens.enrichment import build_fallback, build_provider
from threatlens.models import EventCategory

logging.basicConfig(level=logging.INFO, format="%(asctime)s [SIM] %(message)s")
logger = logging.getLogger("simulator")


async def main() -> None:
    parser = argparse.ArgumentParser(description="ThreatLens event simulator")
    parser.add_argument("--count", type=int, default=settings.seed_events, help="Seed events")
    parser.add_argument("--category", choices=[c.value for c in EventCategory])
    parser.add_argument("--seconds", type=float, default=10.0, help="Continuous generation time")
    parser.add_argument("--interval", type=float, default=1.0, help="Base generation interval")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible events")
    args = parser.parse_args()

    rng = random.Random(args.seed)
    fallback = build_fallback(settings, rng=random.Random(args.seed))
    pipeline = EnrichmentPipeline(
        build_provider(settings, fallback=fallback),
        fallback,
        timeout=settings.enrichment_timeout,
        workers=settings.enrichment_workers,
    )
    store = EventStore(capacity=settings.capacity, pipeline=pipeline)
    generator = EventGenerator(rng=rng)
    scheduler = GenerationScheduler(store, generator, interval=args.interval, rng=rng)

    await store.start()

    if args.category:
        logger.info("Seeding %d %s events", args.count, args.category)
        await store.seed(generator.generate(args.category) for _ in range(args.count))
    else:
        logger.info("Seeding %d random events", args.count)
        await store.seed(generator.generate_batch(args.count, spread=timedelta(days=7)))

    if args.seconds > 0:
        await scheduler.start()
        await asyncio.sleep(args.seconds)
        await scheduler.stop()

    # Let the enrichment queue drain
    await pipeline.join()
    await store.stop()

    stats = store.stats()
    print(json.dumps(stats.model_dump(mode="json"), indent=2))
    print(json.dumps([t.model_dump(mode="json") for t in store.top_threats(5)], indent=2))
    logger.info("Simulator finished with %d events in store.", len(store))


if __name__ == "__main__":
    asyncio.run(main())
