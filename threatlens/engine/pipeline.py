from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine

from threatlens.enrichment.base import EnrichmentProvider
from threatlens.errors import EnrichmentUnavailable
from threatlens.models import SecurityEvent, ThreatAnalysis

logger = logging.getLogger(__name__)

AnalysisSink = Callable[[str, ThreatAnalysis], Awaitable[None]]
EmbeddingSink = Callable[[str, list[float]], Awaitable[None]]


@dataclass
class EnrichmentJob:
    """One queued enrichment request. ``done`` resolves once both results are applied."""

    event: SecurityEvent
    apply_analysis: AnalysisSink
    apply_embedding: EmbeddingSink
    done: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())


class EnrichmentPipeline:
    """Worker pool that classifies and embeds ingested events off the caller's path.

    Provider calls are bounded by ``timeout``; any failure or timeout degrades
    to ``fallback`` so a job always produces an analysis and an embedding.
    """

    def __init__(
        self,
        provider: EnrichmentProvider,
        fallback: EnrichmentProvider,
        timeout: float = 10.0,
        workers: int = 4,
    ) -> None:
        self.provider = provider
        self.fallback = fallback
        self.timeout = timeout
        self.worker_count = max(1, workers)
        self._queue: asyncio.Queue[EnrichmentJob] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self._running = False

    # ── lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker_loop(n), name=f"enrichment-worker-{n}")
            for n in range(self.worker_count)
        ]
        logger.info(
            "EnrichmentPipeline started (provider=%s, workers=%d)",
            self.provider.name,
            self.worker_count,
        )

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        while not self._queue.empty():
            job = self._queue.get_nowait()
            job.done.cancel()
            self._queue.task_done()
        logger.info("EnrichmentPipeline stopped")

    # ── submission ──────────────────────────────────────

    def submit(
        self,
        event: SecurityEvent,
        apply_analysis: AnalysisSink,
        apply_embedding: EmbeddingSink,
    ) -> asyncio.Future:
        """Queue ``event`` for enrichment without waiting. Returns the job's future.

        While the pipeline is not running the job is dropped and its future
        comes back already cancelled.
        """
        job = EnrichmentJob(event, apply_analysis, apply_embedding)
        if not self._running:
            logger.debug("EnrichmentPipeline not running, skipping event %s", event.id)
            job.done.cancel()
            return job.done
        self._queue.put_nowait(job)
        return job.done

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    # ── provider calls with fallback ────────────────────

    async def analyze(self, event: SecurityEvent) -> ThreatAnalysis:
        try:
            return await self._bounded(self.provider.classify(event))
        except EnrichmentUnavailable as exc:
            logger.warning("Classification unavailable for event %s: %s", event.id, exc)
            return await self.fallback.classify(event)

    async def embed(self, event: SecurityEvent) -> list[float]:
        try:
            return await self._bounded(self.provider.embed(event.embedding_text()))
        except EnrichmentUnavailable as exc:
            logger.warning("Embedding unavailable for event %s: %s", event.id, exc)
            return await self.fallback.embed(event.embedding_text())

    async def _bounded(self, call: Coroutine[Any, Any, Any]) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise EnrichmentUnavailable(
                f"{self.provider.name} timed out after {self.timeout:.1f}s"
            ) from exc
        except EnrichmentUnavailable:
            raise
        except Exception as exc:
            raise EnrichmentUnavailable(f"{self.provider.name} failed: {exc!r}") from exc

    # ── internals ───────────────────────────────────────

    async def _worker_loop(self, n: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._process(job)
                if not job.done.done():
                    job.done.set_result(job.event.id)
            except asyncio.CancelledError:
                job.done.cancel()
                raise
            except Exception:
                logger.exception("Enrichment worker %d failed for event %s", n, job.event.id)
                job.done.cancel()
            finally:
                self._queue.task_done()

    async def _process(self, job: EnrichmentJob) -> None:
        async def classify() -> None:
            await job.apply_analysis(job.event.id, await self.analyze(job.event))

        async def embed() -> None:
            await job.apply_embedding(job.event.id, await self.embed(job.event))

        await asyncio.gather(classify(), embed())

    # ── introspection ───────────────────────────────────

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._running
