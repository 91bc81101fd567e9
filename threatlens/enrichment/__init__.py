from __future__ import annotations

import random

from .base import EnrichmentProvider
from .fallback import FallbackProvider, load_fallback_table
from .openai_provider import OpenAIProvider

__all__ = [
    "EnrichmentProvider",
    "FallbackProvider",
    "OpenAIProvider",
    "build_fallback",
    "build_provider",
    "load_fallback_table",
]


def build_fallback(settings, rng: random.Random | None = None) -> FallbackProvider:
    return FallbackProvider.from_yaml(
        settings.fallback_analyses_file,
        dimensions=settings.embedding_dim,
        rng=rng,
    )


def build_provider(settings, fallback: FallbackProvider | None = None) -> EnrichmentProvider:
    """Real provider when an API key is configured, otherwise the fallback."""
    if settings.openai_api_key:
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            embedding_model=settings.embedding_model,
            dimensions=settings.embedding_dim,
        )
    return fallback or build_fallback(settings)
