from .pipeline import EnrichmentPipeline
from .event_store import EventStore
from .generator import EventGenerator
from .scheduler import GenerationScheduler
from .similarity import cosine_similarity

__all__ = [
    "EnrichmentPipeline",
    "EventStore",
    "EventGenerator",
    "GenerationScheduler",
    "cosine_similarity",
]
