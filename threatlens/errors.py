from __future__ import annotations


class ThreatLensError(Exception):
    """Base class for errors raised by the event store and its collaborators."""


class EventNotFound(ThreatLensError):
    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class InvalidEvent(ThreatLensError):
    """Partial event failed validation (missing field or unknown enum value)."""

    def __init__(self, message: str, errors: list[dict] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class EnrichmentUnavailable(ThreatLensError):
    """Enrichment provider failed or timed out. Always recovered via fallback."""
