"""
Response Orchestrator Module

Provides automated response orchestration for security events:
- Playbook definitions, matching and execution
- Response action execution and ledger
- Engine lifecycle, event normalization and escalation
"""

from soar_engine.orchestrator.actions import (
    ActionInvoker,
    ActionKind,
    ResponseActionExecutor,
    SimulatedActionInvoker,
)
from soar_engine.orchestrator.conditions import (
    Condition,
    ConditionOperator,
    ContextConditionEvaluator,
    RandomConditionEvaluator,
    StepConditionEvaluator,
    evaluate_conditions,
    parse_condition,
)
from soar_engine.orchestrator.engine import SOAREngine, create_soar_engine
from soar_engine.orchestrator.events import (
    context_from_incident,
    context_from_threat,
    context_from_vulnerability,
    to_event_context,
)
from soar_engine.orchestrator.executor import PlaybookExecutor
from soar_engine.orchestrator.playbooks import (
    Playbook,
    PlaybookCategory,
    PlaybookStep,
    PlaybookTrigger,
    get_all_playbooks,
    get_playbook,
    load_playbooks_from_file,
    validate_playbook,
)

__all__ = [
    # Playbooks
    "Playbook",
    "PlaybookCategory",
    "PlaybookStep",
    "PlaybookTrigger",
    "get_playbook",
    "get_all_playbooks",
    "load_playbooks_from_file",
    "validate_playbook",
    # Conditions
    "Condition",
    "ConditionOperator",
    "StepConditionEvaluator",
    "ContextConditionEvaluator",
    "RandomConditionEvaluator",
    "parse_condition",
    "evaluate_conditions",
    # Actions
    "ActionInvoker",
    "ActionKind",
    "ResponseActionExecutor",
    "SimulatedActionInvoker",
    # Events
    "context_from_incident",
    "context_from_threat",
    "context_from_vulnerability",
    "to_event_context",
    # Execution
    "PlaybookExecutor",
    "SOAREngine",
    "create_soar_engine",
]
