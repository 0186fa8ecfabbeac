"""
Record Store Module

Data models for events, executions and response actions, and the
in-memory catalog and ledgers that hold them.
"""

from soar_engine.store.ledger import ActionLedger, ExecutionLedger, PlaybookCatalog
from soar_engine.store.models import (
    EventType,
    ExecutionMetrics,
    ExecutionResults,
    ExecutionStatus,
    GeoLocation,
    PlaybookExecution,
    Priority,
    ResponseAction,
    SecurityEventContext,
    SecurityIncident,
    Severity,
    StepExecution,
    StepStatus,
    StepType,
    ThreatDetection,
    ThreatSource,
    ThreatTarget,
    TriggerRef,
    Vulnerability,
    VulnerabilityLocation,
)

__all__ = [
    # Stores
    "ActionLedger",
    "ExecutionLedger",
    "PlaybookCatalog",
    # Models
    "EventType",
    "Severity",
    "Priority",
    "StepType",
    "StepStatus",
    "ExecutionStatus",
    "SecurityIncident",
    "ThreatDetection",
    "ThreatSource",
    "ThreatTarget",
    "GeoLocation",
    "Vulnerability",
    "VulnerabilityLocation",
    "SecurityEventContext",
    "TriggerRef",
    "StepExecution",
    "ExecutionResults",
    "ExecutionMetrics",
    "PlaybookExecution",
    "ResponseAction",
]
