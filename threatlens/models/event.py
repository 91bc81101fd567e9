from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from threatlens.models.analysis import Severity, ThreatAnalysis


def new_event_id() -> str:
    return uuid.uuid4().hex


class EventCategory(StrEnum):
    INTRUSION = "intrusion"
    MALWARE = "malware"
    NETWORK_ANOMALY = "network_anomaly"
    DATA_BREACH = "data_breach"
    PHISHING = "phishing"
    DOS_ATTACK = "dos_attack"


class EventStatus(StrEnum):
    NEW = "new"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"


class EventCreate(BaseModel):
    """Partial event handed to the store before an id is assigned."""

    category: EventCategory
    severity: Severity
    source_ip: str
    destination_ip: str | None = None
    description: str
    raw_data: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    timestamp: datetime | None = None

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, tags: list[str]) -> list[str]:
        return list(dict.fromkeys(tags))

    @field_validator("timestamp")
    @classmethod
    def _aware_timestamp(cls, ts: datetime | None) -> datetime | None:
        if ts is not None and ts.tzinfo is None:
            return ts.replace(tzinfo=timezone.utc)
        return ts


class SecurityEvent(EventCreate):
    """Stored security event. Only status, analysis and embedding change after ingest."""

    id: str = Field(default_factory=new_event_id)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    status: EventStatus = EventStatus.NEW
    analysis: ThreatAnalysis | None = None
    confidence_score: float | None = None
    embedding: list[float] | None = None

    def embedding_text(self) -> str:
        """Text representation sent to the embedding provider."""
        return f"{self.description} {json.dumps(self.raw_data, default=str, sort_keys=True)}"
