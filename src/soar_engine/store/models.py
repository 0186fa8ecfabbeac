"""
Data Models for the SOAR Engine

Defines the data structures used throughout the engine for
incoming security events, the canonical event context,
playbook executions and response action records.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import uuid


class Severity(str, Enum):
    """Event severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_ORDER.index(self)


SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


class Priority(str, Enum):
    """Playbook priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER.index(self)


PRIORITY_ORDER = [Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.CRITICAL]


class EventType(str, Enum):
    """What kind of event triggered a response."""
    INCIDENT = "incident"
    THREAT = "threat"
    VULNERABILITY = "vulnerability"
    MANUAL = "manual"


class StepType(str, Enum):
    """Incident response phase of a playbook step."""
    DETECTION = "detection"
    ANALYSIS = "analysis"
    CONTAINMENT = "containment"
    ERADICATION = "eradication"
    RECOVERY = "recovery"
    NOTIFICATION = "notification"
    DOCUMENTATION = "documentation"
    VERIFICATION = "verification"


# Failing one of these after all retries fails the whole execution
CRITICAL_STEP_TYPES = frozenset({StepType.CONTAINMENT, StepType.ERADICATION})


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ExecutionStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED)


def generate_id(prefix: str = "", length: int = 16) -> str:
    """Generate a random hex ID with optional prefix."""
    uid = uuid.uuid4().hex[:length]
    return f"{prefix}_{uid}" if prefix else uid


def now_ts() -> float:
    """Current time as epoch seconds."""
    return datetime.now(timezone.utc).timestamp()


def to_iso(ts: Optional[float]) -> Optional[str]:
    """Format an epoch timestamp as ISO 8601, passing None through."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first key present; inputs may arrive snake_case or camelCase."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _require(data: dict[str, Any], kind: str, *keys: str) -> Any:
    """Like _pick, but a missing field is a ValueError naming it."""
    value = _pick(data, *keys)
    if value is None:
        raise ValueError(f"{kind} is missing required field '{keys[0]}'")
    return value


# ============================================================================
# Input shapes produced by upstream detectors
# ============================================================================

@dataclass
class SecurityIncident:
    """An incident opened by an upstream detector or analyst."""
    incident_id: str
    severity: Severity
    type: str = "security_breach"
    created_at: float = field(default_factory=now_ts)
    affected_systems: list[str] = field(default_factory=list)
    title: str = ""
    description: str = ""

    def __post_init__(self):
        self.severity = Severity(self.severity)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SecurityIncident":
        if not isinstance(data, dict):
            raise ValueError("Incident payload must be an object")
        return cls(
            incident_id=_require(data, "Incident", "incident_id", "incidentId", "id"),
            severity=Severity(_require(data, "Incident", "severity")),
            type=data.get("type", "security_breach"),
            created_at=_pick(data, "created_at", "createdAt", default=now_ts()),
            affected_systems=list(_pick(data, "affected_systems", "affectedSystems", default=[])),
            title=data.get("title", ""),
            description=data.get("description", ""),
        )


@dataclass
class GeoLocation:
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"country": self.country, "region": self.region, "city": self.city}


@dataclass
class ThreatSource:
    ip: str
    user_agent: Optional[str] = None
    user_id: Optional[str] = None
    location: Optional[GeoLocation] = None


@dataclass
class ThreatTarget:
    endpoint: str
    method: str = "GET"
    resource: Optional[str] = None


@dataclass
class ThreatDetection:
    """A live threat detection (brute force, injection attempt, ...)."""
    threat_id: str
    type: str
    severity: Severity
    confidence: float
    source: ThreatSource
    target: ThreatTarget
    detected_at: float = field(default_factory=now_ts)
    indicators: list[str] = field(default_factory=list)
    ml_score: Optional[float] = None
    blocked: bool = False

    def __post_init__(self):
        self.severity = Severity(self.severity)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ThreatDetection":
        if not isinstance(data, dict):
            raise ValueError("Threat payload must be an object")
        src = data.get("source") or {}
        loc = src.get("location")
        tgt = data.get("target") or {}
        try:
            location = GeoLocation(**loc) if loc else None
        except TypeError as e:
            raise ValueError(f"Invalid threat source location: {e}") from e
        return cls(
            threat_id=_require(data, "Threat", "threat_id", "threatId", "id"),
            type=_require(data, "Threat", "type"),
            severity=Severity(_require(data, "Threat", "severity")),
            confidence=float(data.get("confidence", 0.0)),
            source=ThreatSource(
                ip=src.get("ip", ""),
                user_agent=_pick(src, "user_agent", "userAgent"),
                user_id=_pick(src, "user_id", "userId"),
                location=location,
            ),
            target=ThreatTarget(
                endpoint=tgt.get("endpoint", ""),
                method=tgt.get("method", "GET"),
                resource=tgt.get("resource"),
            ),
            detected_at=_pick(data, "detected_at", "detectedAt", default=now_ts()),
            indicators=list(data.get("indicators", [])),
            ml_score=_pick(data, "ml_score", "mlScore"),
            blocked=bool(data.get("blocked", False)),
        )


@dataclass
class VulnerabilityLocation:
    file: Optional[str] = None
    line: Optional[int] = None
    endpoint: Optional[str] = None
    dependency: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in {
            "file": self.file,
            "line": self.line,
            "endpoint": self.endpoint,
            "dependency": self.dependency,
        }.items() if v is not None}


@dataclass
class Vulnerability:
    """A vulnerability finding from a scanner."""
    id: str
    severity: Severity
    confidence: float
    title: str
    location: VulnerabilityLocation = field(default_factory=VulnerabilityLocation)
    type: str = "security_misconfiguration"
    description: str = ""
    impact: str = ""
    recommendation: str = ""
    detected_at: float = field(default_factory=now_ts)
    evidence: list[str] = field(default_factory=list)
    mitigated: bool = False

    def __post_init__(self):
        self.severity = Severity(self.severity)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Vulnerability":
        if not isinstance(data, dict):
            raise ValueError("Vulnerability payload must be an object")
        try:
            location = VulnerabilityLocation(**(data.get("location") or {}))
        except TypeError as e:
            raise ValueError(f"Invalid vulnerability location: {e}") from e
        return cls(
            id=_require(data, "Vulnerability", "id"),
            severity=Severity(_require(data, "Vulnerability", "severity")),
            confidence=float(data.get("confidence", 0.0)),
            title=data.get("title", ""),
            location=location,
            type=data.get("type", "security_misconfiguration"),
            description=data.get("description", ""),
            impact=data.get("impact", ""),
            recommendation=data.get("recommendation", ""),
            detected_at=_pick(data, "detected_at", "detectedAt", default=now_ts()),
            evidence=list(data.get("evidence", [])),
            mitigated=bool(data.get("mitigated", False)),
        )


# ============================================================================
# Canonical event context
# ============================================================================

@dataclass(frozen=True)
class SecurityEventContext:
    """
    Canonical description of any triggering event.

    Built once per incoming incident, threat or vulnerability and never
    mutated afterwards. Severity and confidence drive both playbook
    matching and escalation.
    """
    event_id: str
    timestamp: float
    source: str
    type: EventType
    severity: Severity
    confidence: float
    risk_score: float
    affected_systems: list[str] = field(default_factory=list)
    affected_users: list[str] = field(default_factory=list)
    affected_assets: list[str] = field(default_factory=list)
    affected_services: list[str] = field(default_factory=list)
    source_ip: Optional[str] = None
    endpoint: Optional[str] = None
    method: Optional[str] = None
    user_agent: Optional[str] = None
    geolocation: Optional[GeoLocation] = None
    detection_method: Optional[str] = None
    indicators: list[str] = field(default_factory=list)
    evidence_files: list[str] = field(default_factory=list)
    business_impact: str = "medium"
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "timestamp": to_iso(self.timestamp),
            "source": self.source,
            "type": self.type.value,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "risk_score": self.risk_score,
            "affected_systems": list(self.affected_systems),
            "affected_users": list(self.affected_users),
            "affected_assets": list(self.affected_assets),
            "affected_services": list(self.affected_services),
            "source_ip": self.source_ip,
            "endpoint": self.endpoint,
            "method": self.method,
            "user_agent": self.user_agent,
            "geolocation": self.geolocation.to_dict() if self.geolocation else None,
            "detection_method": self.detection_method,
            "indicators": list(self.indicators),
            "evidence_files": list(self.evidence_files),
            "business_impact": self.business_impact,
            "metadata": dict(self.metadata),
        }


# ============================================================================
# Execution records
# ============================================================================

@dataclass
class TriggerRef:
    """What started an execution."""
    type: EventType
    id: str

    def __post_init__(self):
        self.type = EventType(self.type)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "id": self.id}


@dataclass
class StepExecution:
    """
    Runtime record of one playbook step.

    Carries its own retry budget so the catalog step stays untouched.
    """
    step_id: str
    status: StepStatus = StepStatus.RUNNING
    started_at: float = field(default_factory=now_ts)
    completed_at: Optional[float] = None
    output: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    retries_remaining: int = 0
    automated: bool = True
    action_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "status": self.status.value,
            "started_at": to_iso(self.started_at),
            "completed_at": to_iso(self.completed_at),
            "output": self.output,
            "error": self.error,
            "attempts": self.attempts,
            "retries_remaining": self.retries_remaining,
            "automated": self.automated,
            "action_ids": list(self.action_ids),
        }


@dataclass
class ExecutionResults:
    containment_success: bool = False
    threat_neutralized: bool = False
    systems_restored: bool = False
    evidence_collected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "containment_success": self.containment_success,
            "threat_neutralized": self.threat_neutralized,
            "systems_restored": self.systems_restored,
            "evidence_collected": self.evidence_collected,
        }


@dataclass
class ExecutionMetrics:
    automated_steps: int = 0
    manual_steps: int = 0
    total_duration: Optional[float] = None  # milliseconds
    success_rate: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "automated_steps": self.automated_steps,
            "manual_steps": self.manual_steps,
            "total_duration": self.total_duration,
            "success_rate": self.success_rate,
        }


@dataclass
class PlaybookExecution:
    """One run of one playbook against one triggering event."""
    playbook_id: str
    triggered_by: TriggerRef
    execution_id: str = field(default_factory=lambda: generate_id("exec"))
    status: ExecutionStatus = ExecutionStatus.QUEUED
    started_at: float = field(default_factory=now_ts)
    completed_at: Optional[float] = None
    current_step: Optional[str] = None
    executed_steps: list[StepExecution] = field(default_factory=list)
    results: ExecutionResults = field(default_factory=ExecutionResults)
    metrics: ExecutionMetrics = field(default_factory=ExecutionMetrics)
    error: Optional[str] = None

    def step(self, step_id: str) -> Optional[StepExecution]:
        """Latest record for a step id."""
        for record in reversed(self.executed_steps):
            if record.step_id == step_id:
                return record
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "playbook_id": self.playbook_id,
            "triggered_by": self.triggered_by.to_dict(),
            "status": self.status.value,
            "started_at": to_iso(self.started_at),
            "completed_at": to_iso(self.completed_at),
            "current_step": self.current_step,
            "executed_steps": [s.to_dict() for s in self.executed_steps],
            "results": self.results.to_dict(),
            "metrics": self.metrics.to_dict(),
            "error": self.error,
        }


@dataclass(frozen=True)
class ResponseAction:
    """Audit record of one atomic response action."""
    action_id: str
    type: str
    target: str
    automated: bool
    success: bool
    executed_at: float = field(default_factory=now_ts)
    executed_by: str = "soar_engine"
    parameters: dict[str, Any] = field(default_factory=dict)
    output: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action_id": self.action_id,
            "type": self.type,
            "target": self.target,
            "automated": self.automated,
            "success": self.success,
            "executed_at": to_iso(self.executed_at),
            "executed_by": self.executed_by,
            "parameters": dict(self.parameters),
            "output": self.output,
            "error": self.error,
        }
