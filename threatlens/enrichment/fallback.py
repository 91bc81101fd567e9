from __future__ import annotations

import logging
import random
from pathlib import Path

import yaml
from pydantic import ValidationError

from threatlens.enrichment.base import EnrichmentProvider
from threatlens.models import SecurityEvent, ThreatAnalysis

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"

_UNCLASSIFIED = ThreatAnalysis(
    threat_type="Unclassified Security Event",
    severity_justification="Automated classification unavailable",
)


class FallbackProvider(EnrichmentProvider):
    """Deterministic classifications from a YAML table, random placeholder embeddings.

    The embeddings are uniform noise in [-1, 1]; they have the right shape but
    carry no semantic meaning.
    """

    name = "fallback"

    def __init__(
        self,
        table: dict[str, ThreatAnalysis],
        dimensions: int = 1536,
        rng: random.Random | None = None,
    ) -> None:
        self.table = table
        self.dimensions = dimensions
        self._rng = rng or random.Random()

    @classmethod
    def from_yaml(
        cls,
        path: str | Path,
        dimensions: int = 1536,
        rng: random.Random | None = None,
    ) -> FallbackProvider:
        return cls(load_fallback_table(path), dimensions=dimensions, rng=rng)

    def analysis_for(self, category: str) -> ThreatAnalysis:
        entry = self.table.get(category) or self.table.get(DEFAULT_KEY) or _UNCLASSIFIED
        return entry.model_copy(deep=True)

    async def classify(self, event: SecurityEvent) -> ThreatAnalysis:
        return self.analysis_for(event.category.value)

    async def embed(self, text: str) -> list[float]:
        return [self._rng.uniform(-1.0, 1.0) for _ in range(self.dimensions)]


def load_fallback_table(path: str | Path) -> dict[str, ThreatAnalysis]:
    raw = yaml.safe_load(Path(path).read_text())
    entries = raw.get("analyses", {}) if isinstance(raw, dict) else {}
    table: dict[str, ThreatAnalysis] = {}
    for key, entry in entries.items():
        try:
            table[key] = ThreatAnalysis(**entry)
        except (TypeError, ValidationError):
            logger.warning("Skipping invalid fallback analysis: %s", key)
    if DEFAULT_KEY not in table:
        logger.warning("Fallback table %s has no '%s' entry", path, DEFAULT_KEY)
    return table
