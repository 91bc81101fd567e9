from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class ThreatAnalysis(BaseModel):
    """Threat classification attached to an event by the enrichment pipeline."""

    threat_type: str
    severity_justification: str = ""
    recommended_actions: list[str] = Field(default_factory=list)
    confidence_score: float = Field(default=0.5, ge=0.0, le=1.0)
    risk_level: Severity = Severity.MEDIUM
    similar_attacks: list[str] = Field(default_factory=list)
    indicators_of_compromise: list[str] = Field(default_factory=list)
