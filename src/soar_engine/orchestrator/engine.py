"""
SOAR Engine

External-facing coordinator. Normalizes incidents, threats and
vulnerabilities into one event context, runs the matching playbooks, and
fires a fixed escalation sequence for the most severe events alongside
whatever the playbooks already do.
"""

import threading
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from soar_engine.config.settings import SOARConfig
from soar_engine.errors import EngineAlreadyRunningError, EngineNotRunningError
from soar_engine.orchestrator.actions import (
    ActionInvoker,
    ActionKind,
    ResponseActionExecutor,
)
from soar_engine.orchestrator.conditions import StepConditionEvaluator
from soar_engine.orchestrator.events import (
    context_from_incident,
    context_from_threat,
    context_from_vulnerability,
)
from soar_engine.orchestrator.executor import PlaybookExecutor, TriggerLike
from soar_engine.orchestrator.playbooks import Playbook, load_playbooks_from_file
from soar_engine.store.models import (
    EventType,
    ExecutionStatus,
    PlaybookExecution,
    ResponseAction,
    SecurityEventContext,
    SecurityIncident,
    Severity,
    ThreatDetection,
    TriggerRef,
    Vulnerability,
)


logger = structlog.get_logger(__name__)


CRITICAL_INCIDENT_ACTIONS = [
    ActionKind.ESCALATE_INCIDENT.value,
    ActionKind.NOTIFY_STAKEHOLDERS.value,
    ActionKind.COLLECT_EVIDENCE.value,
]

# Immediate response per threat type; anything else gets DEFAULT_THREAT_ACTIONS
THREAT_RESPONSE_ACTIONS = {
    "brute_force": [ActionKind.BLOCK_IP.value],
    "rate_limit_abuse": [ActionKind.BLOCK_IP.value],
    "sql_injection_attempt": [ActionKind.BLOCK_IP.value, ActionKind.COLLECT_EVIDENCE.value],
    "xss_attempt": [ActionKind.BLOCK_IP.value, ActionKind.COLLECT_EVIDENCE.value],
    "privilege_escalation": [
        ActionKind.QUARANTINE_USER.value,
        ActionKind.COLLECT_EVIDENCE.value,
        ActionKind.ESCALATE_INCIDENT.value,
    ],
}
DEFAULT_THREAT_ACTIONS = [ActionKind.COLLECT_EVIDENCE.value]


class SOAREngine:
    """
    Security orchestration, automation and response engine.

    Owns the playbook executor and the response action executor; both share
    the engine's configuration. Processing methods require ``start()``.
    """

    def __init__(
        self,
        config: Optional[Union[SOARConfig, dict[str, Any]]] = None,
        invoker: Optional[ActionInvoker] = None,
        condition_evaluator: Optional[StepConditionEvaluator] = None,
    ):
        if not isinstance(config, SOARConfig):
            config = SOARConfig.from_partial(config)
        self.config = config
        self.response_actions = ResponseActionExecutor(invoker=invoker, config=config)
        self.playbooks = PlaybookExecutor(
            config=config,
            action_executor=self.response_actions,
            condition_evaluator=condition_evaluator,
        )
        self._running = False
        self._lifecycle_lock = threading.Lock()

    # === Lifecycle ===

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._running:
                raise EngineAlreadyRunningError()
            self._running = True
        logger.info(
            "soar_engine_started",
            automation_level=self.config.automation.max_automation_level.value,
            automated_response=self.config.automation.enable_automated_response,
        )

    def stop(self) -> None:
        with self._lifecycle_lock:
            self._running = False
        logger.info("soar_engine_stopped")

    def shutdown(self) -> None:
        """Stop and drop all in-memory state. For teardown, not normal use."""
        self.stop()
        self.response_actions.clear_response_actions()
        self.playbooks.clear_executions()
        self.playbooks.clear_playbooks()

    def _require_running(self) -> None:
        if not self._running:
            raise EngineNotRunningError()

    # === Event processing ===

    def process_incident(self, incident: SecurityIncident) -> list[PlaybookExecution]:
        """Run matching playbooks; escalate critical incidents."""
        self._require_running()
        context = context_from_incident(incident)
        executions = self._run_playbooks(EventType.INCIDENT, incident.incident_id, context)

        if (
            incident.severity == Severity.CRITICAL
            and self.config.automation.enable_automated_response
        ):
            self._run_action_sequence(CRITICAL_INCIDENT_ACTIONS, incident.incident_id, context)

        return executions

    def process_threat(self, threat: ThreatDetection) -> list[PlaybookExecution]:
        """Run matching playbooks; respond immediately to severe or confident threats."""
        self._require_running()
        context = context_from_threat(threat)
        executions = self._run_playbooks(EventType.THREAT, threat.threat_id, context)

        if (
            threat.severity == Severity.CRITICAL
            or threat.confidence >= self.config.thresholds.automated_response_threshold
        ):
            actions = THREAT_RESPONSE_ACTIONS.get(threat.type, DEFAULT_THREAT_ACTIONS)
            self._run_action_sequence(actions, threat.source.ip, context)

        return executions

    def process_vulnerability(self, vulnerability: Vulnerability) -> list[PlaybookExecution]:
        """Run matching playbooks. Vulnerabilities are never escalated directly."""
        self._require_running()
        context = context_from_vulnerability(vulnerability)
        return self._run_playbooks(EventType.VULNERABILITY, vulnerability.id, context)

    def _run_playbooks(
        self,
        trigger_type: EventType,
        trigger_id: str,
        context: SecurityEventContext,
    ) -> list[PlaybookExecution]:
        if not self.config.automation.enable_playbook_execution:
            logger.info("playbook_execution_disabled", event_id=trigger_id)
            return []

        playbooks = self.playbooks.find_applicable_playbooks(trigger_type, context)
        logger.info(
            "playbooks_matched",
            event_type=trigger_type.value,
            event_id=trigger_id,
            severity=context.severity.value,
            playbooks=[p.id for p in playbooks],
        )

        trigger = TriggerRef(type=trigger_type, id=trigger_id)
        return [
            self.playbooks.execute_playbook(playbook, trigger, context)
            for playbook in playbooks
        ]

    def _run_action_sequence(
        self,
        actions: list[str],
        target: str,
        context: SecurityEventContext,
    ) -> list[ResponseAction]:
        logger.warning(
            "escalation_triggered",
            event_type=context.type.value,
            event_id=context.event_id,
            severity=context.severity.value,
            actions=actions,
        )
        return [
            self.response_actions.execute_response_action(
                action,
                target,
                automated=True,
                parameters={"event_id": context.event_id, "escalation": True},
            )
            for action in actions
        ]

    # === Metrics ===

    def get_soar_metrics(self) -> dict[str, Any]:
        """Rollup computed from the in-memory ledgers."""
        status_counts = self.playbooks.executions.count_by_status()
        actions = self.response_actions.get_response_actions()
        return {
            "playbooks": {
                "total": len(self.playbooks.catalog),
                "executions": sum(status_counts.values()),
                "successful": status_counts[ExecutionStatus.COMPLETED],
                "failed": status_counts[ExecutionStatus.FAILED],
                "running": status_counts[ExecutionStatus.RUNNING],
            },
            "actions": {
                "total": len(actions),
                "successful": sum(1 for a in actions if a.success),
                "failed": sum(1 for a in actions if not a.success),
                "automated": sum(1 for a in actions if a.automated),
                "manual": sum(1 for a in actions if not a.automated),
            },
            "automation": {
                "is_running": self._running,
                "level": self.config.automation.max_automation_level.value,
                "enabled": self.config.automation.enable_automated_response,
            },
        }

    # === Pass-throughs ===

    def get_playbooks(self) -> list[Playbook]:
        return self.playbooks.get_playbooks()

    def get_executions(self) -> list[PlaybookExecution]:
        return self.playbooks.get_executions()

    def get_response_actions(self) -> list[ResponseAction]:
        return self.response_actions.get_response_actions()

    def clear_response_actions(self) -> None:
        self.response_actions.clear_response_actions()

    def register_playbook(self, playbook: Union[Playbook, dict[str, Any]]) -> Playbook:
        return self.playbooks.register_playbook(playbook)

    def load_playbooks(self, path: Union[str, Path]) -> list[Playbook]:
        """Register every playbook defined in a JSON or YAML file."""
        return [self.register_playbook(p) for p in load_playbooks_from_file(path)]

    def execute_playbook(
        self,
        playbook: Playbook,
        trigger: TriggerLike,
        context: Optional[SecurityEventContext] = None,
    ) -> PlaybookExecution:
        return self.playbooks.execute_playbook(playbook, trigger, context)

    def execute_response_action(
        self,
        action_type: str,
        target: str,
        automated: bool,
        parameters: Optional[dict[str, Any]] = None,
    ) -> ResponseAction:
        return self.response_actions.execute_response_action(
            action_type, target, automated, parameters=parameters
        )


def create_soar_engine(config: Optional[Union[SOARConfig, dict[str, Any]]] = None) -> SOAREngine:
    """Factory for a new engine instance."""
    return SOAREngine(config)
