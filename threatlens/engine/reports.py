"""Report payloads and CSV export built from a filtered list of events."""

from __future__ import annotations

import csv
import io
import json
from collections import Counter
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Callable, Sequence
from urllib.parse import urlsplit

from threatlens.engine import aggregator
from threatlens.models import (
    SEVERITY_RANK,
    EventCategory,
    EventStats,
    EventStatus,
    SecurityEvent,
    Severity,
)


class ReportType(StrEnum):
    SUMMARY = "summary"
    INCIDENT = "incident"
    EXECUTIVE = "executive"
    COMPLIANCE = "compliance"
    DETAILED = "detailed"


CSV_COLUMNS = [
    "id",
    "timestamp",
    "category",
    "severity",
    "status",
    "source_ip",
    "destination_ip",
    "description",
    "threat_type",
    "confidence_score",
    "tags",
]


def filter_events(
    events: Sequence[SecurityEvent],
    severity: Severity | None = None,
    category: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[SecurityEvent]:
    """Events matching every given criterion. Naive bounds are taken as UTC."""
    start = _as_utc(start)
    end = _as_utc(end)
    return [
        e
        for e in events
        if (severity is None or e.severity == severity)
        and (category is None or e.category == category)
        and (start is None or e.timestamp >= start)
        and (end is None or e.timestamp <= end)
    ]


def _as_utc(ts: datetime | None) -> datetime | None:
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def resolution_rate(stats: EventStats) -> float:
    if not stats.total_events:
        return 0.0
    return stats.resolved_events / stats.total_events


def threat_level(stats: EventStats) -> str:
    if stats.critical_events > 0:
        return "High"
    if stats.high_events > 10:
        return "Medium"
    return "Low"


def _event_brief(event: SecurityEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "timestamp": event.timestamp.isoformat(),
        "category": event.category.value,
        "severity": event.severity.value,
        "status": event.status.value,
        "source_ip": event.source_ip,
        "description": event.description,
    }


def _top_sources(events: Sequence[SecurityEvent], limit: int = 10) -> list[dict[str, Any]]:
    counts = Counter(e.source_ip for e in events)
    return [{"ip": ip, "count": count} for ip, count in counts.most_common(limit)]


def _top_categories(events: Sequence[SecurityEvent], limit: int = 5) -> list[dict[str, Any]]:
    counts = Counter(e.category.value for e in events)
    return [
        {"category": category, "count": count}
        for category, count in counts.most_common(limit)
    ]


def summary_report(events: Sequence[SecurityEvent], stats: EventStats) -> dict[str, Any]:
    return {
        "title": "Security Summary Report",
        "overview": {
            "total_events": stats.total_events,
            "critical_events": stats.critical_events,
            "high_events": stats.high_events,
            "resolved_events": stats.resolved_events,
            "resolution_rate": f"{resolution_rate(stats) * 100:.1f}%",
        },
        "top_threats": _top_categories(events),
        "recent_activity": [_event_brief(e) for e in events[:20]],
        "threat_level": threat_level(stats),
    }


def incident_report(events: Sequence[SecurityEvent], stats: EventStats) -> dict[str, Any]:
    critical = [e for e in events if e.severity == Severity.CRITICAL]
    high = [e for e in events if e.severity == Severity.HIGH]
    urgent = sorted(
        (e for e in events if SEVERITY_RANK[e.severity] >= SEVERITY_RANK[Severity.HIGH]),
        key=lambda e: SEVERITY_RANK[e.severity],
        reverse=True,
    )
    detailed = []
    for incident in urgent[:10]:
        entry = _event_brief(incident)
        entry["analysis"] = (
            incident.analysis.model_dump(mode="json") if incident.analysis else None
        )
        detailed.append(entry)

    return {
        "title": "Security Incident Analysis Report",
        "summary": {
            "total_incidents": len(events),
            "critical_incidents": len(critical),
            "high_priority_incidents": len(high),
            "resolved_incidents": stats.resolved_events,
            "pending_incidents": stats.new_events,
            "false_positives": sum(1 for e in events if e.status == EventStatus.FALSE_POSITIVE),
        },
        "incident_breakdown": {
            "by_category": stats.events_by_category,
            "by_severity": stats.events_by_severity,
            "by_status": stats.events_by_status,
        },
        "detailed_incidents": detailed,
        "trends": {
            "daily_incidents": [d.model_dump(mode="json") for d in stats.daily_stats],
            "common_sources": _top_sources(events),
        },
    }


def executive_report(events: Sequence[SecurityEvent], stats: EventStats) -> dict[str, Any]:
    if stats.critical_events == 0:
        posture = "Strong"
    elif stats.critical_events < 5:
        posture = "Good"
    else:
        posture = "Needs Attention"

    timestamps = [e.timestamp for e in events]
    return {
        "title": "Executive Security Summary",
        "period": {
            "start": min(timestamps).isoformat() if timestamps else None,
            "end": max(timestamps).isoformat() if timestamps else None,
        },
        "key_metrics": {
            "total_security_events": stats.total_events,
            "critical_incidents": stats.critical_events,
            "high_priority_events": stats.high_events,
            "resolution_rate": f"{resolution_rate(stats) * 100:.1f}%",
            "security_posture": posture,
        },
        "threat_summary": {
            "top_threats": _top_categories(events),
            "top_category_severity": [
                t.model_dump(mode="json") for t in aggregator.top_threats(events, 5)
            ],
            "common_sources": _top_sources(events, limit=5),
        },
        "prevented_data_breaches": sum(
            1
            for e in events
            if e.category == EventCategory.DATA_BREACH and e.status == EventStatus.RESOLVED
        ),
    }


def compliance_report(events: Sequence[SecurityEvent], stats: EventStats) -> dict[str, Any]:
    rate = resolution_rate(stats)
    score = max(0, 100 - (stats.critical_events * 10 + stats.high_events * 5))
    return {
        "title": "Compliance Status Report",
        "summary": {
            "soc2_score": score,
            "soc2_status": "Compliant" if stats.critical_events == 0 else "Non-Compliant",
            "incident_response": "Compliant" if rate > 0.8 else "Needs Improvement",
            "critical_issues": stats.critical_events,
            "open_findings": stats.new_events,
        },
        "risk_assessment": {
            "overall_risk": threat_level(stats),
            "mitigation_status": f"{rate * 100:.1f}% of incidents resolved",
        },
        "audit_trail": [
            {
                "timestamp": e.timestamp.isoformat(),
                "category": e.category.value,
                "severity": e.severity.value,
                "status": e.status.value,
                "compliance_impact": {
                    Severity.CRITICAL: "High",
                    Severity.HIGH: "Medium",
                }.get(e.severity, "Low"),
            }
            for e in events[:20]
        ],
    }


def extract_iocs(events: Sequence[SecurityEvent]) -> dict[str, list[str]]:
    """Indicators gathered from high and critical events and their analyses."""
    ips: dict[str, None] = {}
    domains: dict[str, None] = {}
    hashes: dict[str, None] = {}
    urls: dict[str, None] = {}
    analysed: dict[str, None] = {}

    for e in events:
        if e.analysis:
            analysed.update(dict.fromkeys(e.analysis.indicators_of_compromise))
        if SEVERITY_RANK[e.severity] < SEVERITY_RANK[Severity.HIGH]:
            continue
        ips[e.source_ip] = None
        for key, value in e.raw_data.items():
            if not isinstance(value, str):
                continue
            if key.endswith("hash"):
                hashes[value] = None
            elif key.endswith("url"):
                urls[value] = None
                host = urlsplit(value).hostname
                if host:
                    domains[host] = None

    return {
        "ip_addresses": list(ips),
        "domains": list(domains),
        "file_hashes": list(hashes),
        "urls": list(urls),
        "analysis_indicators": list(analysed),
    }


def _immediate_actions(stats: EventStats) -> list[str]:
    actions = []
    if stats.critical_events > 0:
        actions.append("Address all critical security events within 24 hours")
    if stats.new_events > 20:
        actions.append("Triage pending incidents and assign appropriate resources")
    actions.append("Verify all security controls are functioning properly")
    return actions


def detailed_report(events: Sequence[SecurityEvent], stats: EventStats) -> dict[str, Any]:
    return {
        "title": "Comprehensive Security Analysis Report",
        "executive_summary": executive_report(events, stats),
        "technical_analysis": {
            "indicators_of_compromise": extract_iocs(events),
            "top_category_severity": [
                t.model_dump(mode="json") for t in aggregator.top_threats(events, 10)
            ],
        },
        "compliance_status": compliance_report(events, stats),
        "incident_details": incident_report(events, stats),
        "recommendations": {"immediate_actions": _immediate_actions(stats)},
        "appendix": {"raw_events": [_event_brief(e) for e in events[:50]]},
    }


BUILDERS: dict[ReportType, Callable[[Sequence[SecurityEvent], EventStats], dict[str, Any]]] = {
    ReportType.SUMMARY: summary_report,
    ReportType.INCIDENT: incident_report,
    ReportType.EXECUTIVE: executive_report,
    ReportType.COMPLIANCE: compliance_report,
    ReportType.DETAILED: detailed_report,
}


def build_report(
    report_type: ReportType | str,
    events: Sequence[SecurityEvent],
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build a report over ``events`` plus metadata. Stats cover the same events."""
    report_type = ReportType(report_type)
    now = now or datetime.now(timezone.utc)
    stats = aggregator.compute_stats(events, now)
    return {
        "report": BUILDERS[report_type](events, stats),
        "metadata": {
            "generated_at": now.isoformat(),
            "report_type": report_type.value,
            "total_events": len(events),
        },
    }


def events_to_csv(events: Sequence[SecurityEvent]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for e in events:
        writer.writerow(
            {
                "id": e.id,
                "timestamp": e.timestamp.isoformat(),
                "category": e.category.value,
                "severity": e.severity.value,
                "status": e.status.value,
                "source_ip": e.source_ip,
                "destination_ip": e.destination_ip or "",
                "description": e.description,
                "threat_type": e.analysis.threat_type if e.analysis else "",
                "confidence_score": "" if e.confidence_score is None else e.confidence_score,
                "tags": json.dumps(e.tags),
            }
        )
    return buf.getvalue()
