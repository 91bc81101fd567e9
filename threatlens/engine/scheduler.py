from __future__ import annotations

import asyncio
import logging
import random

from threatlens.engine.event_store import EventStore
from threatlens.engine.generator import EventGenerator

logger = logging.getLogger(__name__)


class GenerationScheduler:
    """Background loop feeding generated events into the store.

    Each iteration ingests one random-category event, then sleeps for
    ``interval + uniform(0, interval)`` seconds. ``stop()`` wakes the sleep
    immediately; an iteration already ingesting may finish, but no new
    iteration starts afterwards.
    """

    name: str = "generation"

    def __init__(
        self,
        store: EventStore,
        generator: EventGenerator,
        interval: float = 5.0,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._generator = generator
        self.interval = interval
        self._rng = rng or random.Random()
        self._running = False
        self._stop_signal = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.ticks = 0

    # ── lifecycle ────────────────────────────────────────

    async def start(self, interval: float | None = None) -> bool:
        """Start generating. Returns False (and changes nothing) if already running."""
        if self._running:
            return False
        if interval is not None:
            self.interval = interval
        self._running = True
        self._stop_signal = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._stop_signal))
        logger.info("Scheduler [%s] started (interval=%.2fs)", self.name, self.interval)
        return True

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._stop_signal.set()
        if self._task:
            task, self._task = self._task, None
            await task
        logger.info("Scheduler [%s] stopped after %d events", self.name, self.ticks)

    # ── internals ───────────────────────────────────────

    async def _loop(self, stop_signal: asyncio.Event) -> None:
        while not stop_signal.is_set():
            try:
                event_id = await self._store.ingest(self._generator.generate())
                self.ticks += 1
                logger.debug("Scheduler [%s] generated event %s", self.name, event_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Scheduler [%s] error during generation", self.name)
            delay = self.interval + self._rng.uniform(0, self.interval)
            try:
                await asyncio.wait_for(stop_signal.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue

    @property
    def running(self) -> bool:
        return self._running
