from .analysis import Severity, SEVERITY_RANK, ThreatAnalysis
from .event import EventCategory, EventCreate, EventStatus, SecurityEvent, new_event_id
from .stats import DailyStats, EventPage, EventStats, SimilarityMatch, ThreatSummary

__all__ = [
    "Severity",
    "SEVERITY_RANK",
    "ThreatAnalysis",
    "EventCategory",
    "EventCreate",
    "EventStatus",
    "SecurityEvent",
    "new_event_id",
    "DailyStats",
    "EventPage",
    "EventStats",
    "SimilarityMatch",
    "ThreatSummary",
]
