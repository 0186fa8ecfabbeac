"""
Event Normalization

One conversion per source shape, each producing the canonical
``SecurityEventContext`` that matching and escalation work from.
"""

from typing import Optional, Union

from soar_engine.store.models import (
    EventType,
    SecurityEventContext,
    SecurityIncident,
    Severity,
    ThreatDetection,
    Vulnerability,
)


RISK_SCORE_BANDS = {
    Severity.CRITICAL: 95.0,
    Severity.HIGH: 80.0,
    Severity.MEDIUM: 60.0,
    Severity.LOW: 30.0,
}

# Incidents carry no detector confidence of their own
DEFAULT_INCIDENT_CONFIDENCE = 0.9

SecurityEvent = Union[SecurityIncident, ThreatDetection, Vulnerability]


def risk_score_for(severity: Severity, ml_score: Optional[float] = None) -> float:
    """Severity band, or a model score scaled to 0-100 when one is given."""
    if ml_score is not None:
        return max(0.0, min(100.0, ml_score * 100))
    return RISK_SCORE_BANDS[severity]


def _business_impact(severity: Severity) -> str:
    if severity == Severity.CRITICAL:
        return "critical"
    if severity == Severity.HIGH:
        return "high"
    return "medium"


def context_from_incident(incident: SecurityIncident) -> SecurityEventContext:
    return SecurityEventContext(
        event_id=incident.incident_id,
        timestamp=incident.created_at,
        source="soar_engine",
        type=EventType.INCIDENT,
        severity=incident.severity,
        confidence=DEFAULT_INCIDENT_CONFIDENCE,
        risk_score=risk_score_for(incident.severity),
        affected_systems=list(incident.affected_systems),
        affected_assets=list(incident.affected_systems),
        affected_services=list(incident.affected_systems),
        business_impact=_business_impact(incident.severity),
        metadata={"incident_type": incident.type, "title": incident.title},
    )


def context_from_threat(threat: ThreatDetection) -> SecurityEventContext:
    endpoint = threat.target.endpoint
    return SecurityEventContext(
        event_id=threat.threat_id,
        timestamp=threat.detected_at,
        source=threat.source.ip,
        type=EventType.THREAT,
        severity=threat.severity,
        confidence=threat.confidence,
        risk_score=risk_score_for(threat.severity, threat.ml_score),
        affected_systems=[endpoint],
        affected_users=[threat.source.user_id] if threat.source.user_id else [],
        affected_assets=[endpoint],
        affected_services=[endpoint],
        source_ip=threat.source.ip,
        endpoint=endpoint,
        method=threat.target.method,
        user_agent=threat.source.user_agent,
        geolocation=threat.source.location,
        detection_method="machine_learning",
        indicators=list(threat.indicators),
        business_impact="critical" if threat.severity == Severity.CRITICAL else "medium",
        metadata={
            "threat_type": threat.type,
            "ml_score": threat.ml_score,
            "blocked": threat.blocked,
        },
    )


def context_from_vulnerability(vulnerability: Vulnerability) -> SecurityEventContext:
    location = vulnerability.location
    files = [location.file] if location.file else []
    endpoints = [location.endpoint] if location.endpoint else []
    return SecurityEventContext(
        event_id=vulnerability.id,
        timestamp=vulnerability.detected_at,
        source="vulnerability_scanner",
        type=EventType.VULNERABILITY,
        severity=vulnerability.severity,
        confidence=vulnerability.confidence,
        risk_score=risk_score_for(vulnerability.severity),
        affected_systems=files,
        affected_assets=files,
        affected_services=endpoints,
        endpoint=location.endpoint,
        detection_method="signature_based",
        evidence_files=list(vulnerability.evidence),
        business_impact="critical" if vulnerability.severity == Severity.CRITICAL else "medium",
        metadata={
            "vulnerability_type": vulnerability.type,
            "title": vulnerability.title,
            "description": vulnerability.description,
            "location": location.to_dict(),
            "impact": vulnerability.impact,
            "recommendation": vulnerability.recommendation,
            "mitigated": vulnerability.mitigated,
        },
    )


def to_event_context(event: SecurityEvent) -> SecurityEventContext:
    """Dispatch on the source shape."""
    if isinstance(event, SecurityIncident):
        return context_from_incident(event)
    if isinstance(event, ThreatDetection):
        return context_from_threat(event)
    if isinstance(event, Vulnerability):
        return context_from_vulnerability(event)
    raise TypeError(f"Unsupported event type: {type(event).__name__}")
