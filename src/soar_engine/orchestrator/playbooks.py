"""
Playbook Definitions

Defines automated response playbooks for security events.
Playbooks specify triggers, ordered steps, and the actions each step runs.
Definitions are validated on construction and immutable afterwards.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

from soar_engine.errors import PlaybookValidationError
from soar_engine.orchestrator.conditions import evaluate_conditions
from soar_engine.store.models import (
    EventType,
    Priority,
    SecurityEventContext,
    StepType,
    now_ts,
)


class PlaybookCategory(str, Enum):
    """Categories that can be switched off in configuration."""
    CONTAINMENT = "containment"
    THREAT_HUNTING = "threat_hunting"
    FORENSICS = "forensics"
    RECOVERY = "recovery"


_MODEL_CONFIG = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class PlaybookTrigger(BaseModel):
    """Trigger clause: an event type plus conditions that must all hold."""
    model_config = _MODEL_CONFIG

    type: EventType
    conditions: tuple[str, ...] = ()

    def matches(self, trigger_type: EventType, context: SecurityEventContext) -> bool:
        if self.type != trigger_type:
            return False
        return evaluate_conditions(self.conditions, context)


class PlaybookStep(BaseModel):
    """
    One unit of work in a playbook.

    ``retries`` is the retry budget granted to every execution of the step;
    the step itself never changes at runtime.
    """
    model_config = _MODEL_CONFIG

    id: str = Field(min_length=1, validation_alias=AliasChoices("id", "step_id", "stepId"))
    name: str = Field(min_length=1)
    description: str = ""
    type: StepType
    automated: bool = True
    conditions: tuple[str, ...] = ()
    actions: tuple[str, ...] = ()
    timeout: Optional[float] = Field(default=None, gt=0, description="Seconds")
    retries: int = Field(default=0, ge=0)
    dependencies: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()


class Playbook(BaseModel):
    """
    Security playbook definition.

    Playbooks define automated responses to security events.
    """
    model_config = _MODEL_CONFIG

    id: str = Field(min_length=1, validation_alias=AliasChoices("id", "playbook_id", "playbookId"))
    name: str = Field(min_length=1)
    description: str = ""
    version: str = "1.0.0"
    priority: Priority = Priority.MEDIUM
    category: Optional[PlaybookCategory] = None
    triggers: tuple[PlaybookTrigger, ...] = ()
    steps: tuple[PlaybookStep, ...] = Field(min_length=1)
    required_permissions: tuple[str, ...] = ()
    estimated_duration: int = Field(default=15, ge=0, description="Minutes")
    created_by: str = "system"
    created_at: float = Field(default_factory=now_ts)
    updated_at: float = Field(default_factory=now_ts)
    approved_by: Optional[str] = None

    @model_validator(mode="after")
    def _check_steps(self) -> "Playbook":
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"duplicate step id '{step.id}'")
            for dep in step.dependencies:
                if dep not in seen:
                    raise ValueError(
                        f"step '{step.id}' depends on '{dep}', which is not an earlier step"
                    )
            seen.add(step.id)
        return self

    def matches(self, trigger_type: EventType, context: SecurityEventContext) -> bool:
        """True if any trigger clause of this type is fully satisfied."""
        return any(t.matches(trigger_type, context) for t in self.triggers)

    def get_step(self, step_id: str) -> Optional[PlaybookStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def validate_playbook(data: Union[dict[str, Any], Playbook]) -> Playbook:
    """Validate a playbook definition, raising PlaybookValidationError."""
    if isinstance(data, Playbook):
        return data
    try:
        return Playbook.model_validate(data)
    except ValidationError as e:
        playbook_id = None
        if isinstance(data, dict):
            playbook_id = data.get("id") or data.get("playbook_id") or data.get("playbookId")
        raise PlaybookValidationError(
            f"Invalid playbook {playbook_id or '<unnamed>'}: {e}",
            playbook_id=playbook_id,
        ) from e


def load_playbooks_from_file(path: Union[str, Path]) -> list[Playbook]:
    """
    Load playbook definitions from a JSON or YAML file.

    The file holds either a list of playbooks or a mapping with a
    ``playbooks`` key.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()

    if suffix == ".json":
        data = json.loads(text)
    elif suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        raise PlaybookValidationError(f"Unsupported playbook file format: {suffix}")

    if isinstance(data, dict):
        data = data.get("playbooks", [])
    if not isinstance(data, list):
        raise PlaybookValidationError(f"{path} does not contain a list of playbooks")

    return [validate_playbook(item) for item in data]


# ============================================================================
# Standard Playbooks
# ============================================================================

STANDARD_PLAYBOOKS = {
    "critical-incident-response": Playbook(
        id="critical-incident-response",
        name="Critical Incident Response",
        description="Automated containment and notification for critical security incidents",
        priority=Priority.CRITICAL,
        category=PlaybookCategory.CONTAINMENT,
        triggers=[
            PlaybookTrigger(type=EventType.INCIDENT, conditions=["severity=critical"]),
        ],
        steps=[
            PlaybookStep(
                id="detect-validate",
                name="Detect and Validate",
                description="Confirm the detection and capture initial evidence",
                type=StepType.DETECTION,
                actions=["validate_detection", "collect_initial_evidence"],
                timeout=120,
                retries=2,
                outputs=["validated_detection", "initial_evidence"],
            ),
            PlaybookStep(
                id="immediate-containment",
                name="Immediate Containment",
                description="Isolate affected systems and cut off the attacker",
                type=StepType.CONTAINMENT,
                actions=["isolate_system", "block_ip", "quarantine_user"],
                timeout=300,
                retries=2,
                dependencies=["detect-validate"],
                outputs=["containment_status"],
            ),
            PlaybookStep(
                id="notify-stakeholders",
                name="Stakeholder Notification",
                description="Notify the security team and stakeholders",
                type=StepType.NOTIFICATION,
                actions=["notify_stakeholders"],
                timeout=60,
                retries=3,
            ),
        ],
        required_permissions=["security:incident:manage"],
        estimated_duration=15,
        approved_by="security-operations",
    ),

    "incident-forensic-collection": Playbook(
        id="incident-forensic-collection",
        name="Incident Forensic Collection",
        description="Preserve evidence and assess impact for high severity incidents",
        priority=Priority.MEDIUM,
        category=PlaybookCategory.FORENSICS,
        triggers=[
            PlaybookTrigger(type=EventType.INCIDENT, conditions=["severity=high"]),
        ],
        steps=[
            PlaybookStep(
                id="collect-evidence",
                name="Collect Evidence",
                type=StepType.ANALYSIS,
                actions=["collect_evidence"],
                retries=1,
            ),
            PlaybookStep(
                id="assess-impact",
                name="Assess Impact",
                type=StepType.ANALYSIS,
                actions=["assess_impact"],
                retries=1,
            ),
            PlaybookStep(
                id="document-incident",
                name="Document Incident",
                type=StepType.DOCUMENTATION,
                actions=["document_incident", "create_ticket"],
            ),
        ],
        required_permissions=["security:forensics:collect"],
        estimated_duration=45,
    ),

    "automated-threat-hunting": Playbook(
        id="automated-threat-hunting",
        name="Automated Threat Hunting",
        description="Proactive threat hunting and analysis",
        priority=Priority.HIGH,
        category=PlaybookCategory.THREAT_HUNTING,
        triggers=[
            PlaybookTrigger(type=EventType.THREAT, conditions=["confidence>0.8"]),
        ],
        steps=[
            PlaybookStep(
                id="analyze-threat",
                name="Analyze Threat",
                description="Perform automated threat analysis",
                type=StepType.ANALYSIS,
                actions=["analyze_indicators"],
                retries=2,
            ),
            PlaybookStep(
                id="correlate-events",
                name="Correlate Events",
                type=StepType.ANALYSIS,
                actions=["correlate_events"],
                retries=2,
            ),
            PlaybookStep(
                id="hunt-similar",
                name="Hunt Similar Threats",
                description="Search for similar threat patterns",
                type=StepType.DETECTION,
                conditions=["risk_score>=60"],
                actions=["scan_network", "check_compromised_accounts"],
                retries=2,
            ),
        ],
        required_permissions=["security:threat:hunt"],
        estimated_duration=30,
    ),

    "vulnerability-management": Playbook(
        id="vulnerability-management",
        name="Vulnerability Management",
        description="Automated vulnerability assessment and remediation",
        priority=Priority.MEDIUM,
        category=PlaybookCategory.RECOVERY,
        triggers=[
            PlaybookTrigger(type=EventType.VULNERABILITY, conditions=["severity=high"]),
        ],
        steps=[
            PlaybookStep(
                id="assess-impact",
                name="Assess Impact",
                description="Evaluate vulnerability impact",
                type=StepType.ANALYSIS,
                actions=["assess_impact"],
                retries=2,
            ),
            PlaybookStep(
                id="plan-remediation",
                name="Plan Remediation",
                description="Patch or mitigate the vulnerability",
                type=StepType.ERADICATION,
                automated=False,
                actions=["patch_vulnerability"],
                timeout=3600,
                retries=1,
            ),
            PlaybookStep(
                id="verify-fix",
                name="Verify Fix",
                type=StepType.VERIFICATION,
                actions=["verify_integrity"],
                dependencies=["plan-remediation"],
            ),
        ],
        required_permissions=["security:vulnerability:manage"],
        estimated_duration=60,
    ),
}


def get_playbook(playbook_id: str) -> Optional[Playbook]:
    """Get a standard playbook by ID."""
    return STANDARD_PLAYBOOKS.get(playbook_id)


def get_all_playbooks() -> dict[str, Playbook]:
    """Get all standard playbooks."""
    return STANDARD_PLAYBOOKS.copy()
