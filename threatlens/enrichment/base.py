from __future__ import annotations

from abc import ABC, abstractmethod

from threatlens.models import SecurityEvent, ThreatAnalysis


class EnrichmentProvider(ABC):
    """Classifier + embedding service consulted for every ingested event.

    Implementations may raise on any failure; the enrichment pipeline bounds
    each call with a timeout and substitutes the fallback provider's output.
    """

    name: str = "base"

    @abstractmethod
    async def classify(self, event: SecurityEvent) -> ThreatAnalysis:
        """Return a threat classification for ``event``."""
        ...

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return an embedding vector for ``text``."""
        ...

    async def aclose(self) -> None:
        """Release any client resources. Default is a no-op."""
