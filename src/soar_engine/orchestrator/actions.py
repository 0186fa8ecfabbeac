"""
Response Action Executor

Runs atomic response actions (block an address, quarantine a user,
collect evidence, ...) and keeps an append-only ledger of every action
executed. The side effects themselves sit behind an ``ActionInvoker``;
the default ``SimulatedActionInvoker`` stands in for real integrations.
"""

import time
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import structlog

from soar_engine.config.settings import NotificationConfig, SOARConfig
from soar_engine.errors import UnknownActionError
from soar_engine.store.ledger import ActionLedger
from soar_engine.store.models import ResponseAction, generate_id


logger = structlog.get_logger(__name__)


class ActionKind(str, Enum):
    """Known response action types."""
    # Containment
    BLOCK_IP = "block_ip"
    BLOCK_THREAT = "block_threat"
    QUARANTINE_USER = "quarantine_user"
    DISABLE_ACCOUNT = "disable_account"
    ISOLATE_SYSTEM = "isolate_system"
    REVOKE_SESSIONS = "revoke_sessions"
    UPDATE_FIREWALL_RULES = "update_firewall_rules"
    # Eradication / recovery
    PATCH_VULNERABILITY = "patch_vulnerability"
    ROTATE_CREDENTIALS = "rotate_credentials"
    RESET_PASSWORD = "reset_password"
    RESTORE_FROM_BACKUP = "restore_from_backup"
    # Communication
    NOTIFY_STAKEHOLDERS = "notify_stakeholders"
    SEND_NOTIFICATION = "send_notification"
    ESCALATE_INCIDENT = "escalate_incident"
    CREATE_TICKET = "create_ticket"
    DOCUMENT_INCIDENT = "document_incident"
    # Forensics / analysis
    COLLECT_EVIDENCE = "collect_evidence"
    VALIDATE_DETECTION = "validate_detection"
    COLLECT_INITIAL_EVIDENCE = "collect_initial_evidence"
    ANALYZE_INDICATORS = "analyze_indicators"
    CORRELATE_EVENTS = "correlate_events"
    SCAN_NETWORK = "scan_network"
    CHECK_COMPROMISED_ACCOUNTS = "check_compromised_accounts"
    ASSESS_IMPACT = "assess_impact"
    VERIFY_INTEGRITY = "verify_integrity"


EVIDENCE_ACTIONS = frozenset({
    ActionKind.COLLECT_EVIDENCE.value,
    ActionKind.COLLECT_INITIAL_EVIDENCE.value,
})


class ActionInvoker(Protocol):
    """Performs the side effect of one action and describes the outcome."""

    def invoke(self, action_type: str, target: str, parameters: dict[str, Any]) -> str:
        ...


_OUTPUT_TEMPLATES: dict[ActionKind, str] = {
    ActionKind.BLOCK_IP: "IP {target} blocked successfully",
    ActionKind.BLOCK_THREAT: "Threat {target} blocked automatically",
    ActionKind.QUARANTINE_USER: "User {target} quarantined successfully",
    ActionKind.DISABLE_ACCOUNT: "Account {target} disabled successfully",
    ActionKind.ISOLATE_SYSTEM: "System {target} isolated successfully",
    ActionKind.REVOKE_SESSIONS: "Active sessions for {target} revoked",
    ActionKind.UPDATE_FIREWALL_RULES: "Firewall rules updated for {target}",
    ActionKind.PATCH_VULNERABILITY: "Patch applied for vulnerability {target}",
    ActionKind.ROTATE_CREDENTIALS: "Credentials rotated for {target}",
    ActionKind.RESET_PASSWORD: "Password reset forced for {target}",
    ActionKind.RESTORE_FROM_BACKUP: "System {target} restored from last known good backup",
    ActionKind.CREATE_TICKET: "Ticket created for {target}",
    ActionKind.DOCUMENT_INCIDENT: "Incident report drafted for {target}",
    ActionKind.COLLECT_EVIDENCE: "Evidence collection initiated for {target}",
    ActionKind.VALIDATE_DETECTION: "Detection for {target} validated",
    ActionKind.COLLECT_INITIAL_EVIDENCE: "Initial evidence captured for {target}",
    ActionKind.ANALYZE_INDICATORS: "Indicators for {target} analyzed",
    ActionKind.CORRELATE_EVENTS: "Related events correlated for {target}",
    ActionKind.SCAN_NETWORK: "Network scan completed around {target}",
    ActionKind.CHECK_COMPROMISED_ACCOUNTS: "Account compromise check completed for {target}",
    ActionKind.ASSESS_IMPACT: "Impact assessment completed for {target}",
    ActionKind.VERIFY_INTEGRITY: "Integrity verified for {target}",
}


class SimulatedActionInvoker:
    """
    Stand-in for real integrations (firewall, IAM, ticketing).

    Every action waits ``delay`` seconds and returns a description of what a
    real integration would have done.
    """

    def __init__(
        self,
        delay: float = 0.01,
        notifications: Optional[NotificationConfig] = None,
    ):
        self.delay = delay
        self.notifications = notifications or NotificationConfig()
        self._action_handlers: dict[str, Callable[[str, dict[str, Any]], str]] = {
            kind.value: self._templated(template) for kind, template in _OUTPUT_TEMPLATES.items()
        }
        self._action_handlers[ActionKind.NOTIFY_STAKEHOLDERS.value] = self._handle_notify
        self._action_handlers[ActionKind.SEND_NOTIFICATION.value] = self._handle_notify
        self._action_handlers[ActionKind.ESCALATE_INCIDENT.value] = self._handle_escalate

    @property
    def supported_actions(self) -> list[str]:
        return sorted(self._action_handlers)

    def invoke(self, action_type: str, target: str, parameters: dict[str, Any]) -> str:
        handler = self._action_handlers.get(action_type)
        if handler is None:
            raise UnknownActionError(action_type)
        if self.delay:
            time.sleep(self.delay)
        return handler(target, parameters)

    @staticmethod
    def _templated(template: str) -> Callable[[str, dict[str, Any]], str]:
        def handler(target: str, parameters: dict[str, Any]) -> str:
            return template.format(target=target)
        return handler

    def _handle_notify(self, target: str, parameters: dict[str, Any]) -> str:
        channels = parameters.get("channels") or self.notifications.enabled_channels()
        if not channels:
            return f"Stakeholders for {target} not notified: no channels enabled"
        return f"Stakeholders notified about {target} via {', '.join(channels)}"

    def _handle_escalate(self, target: str, parameters: dict[str, Any]) -> str:
        tier = parameters.get("tier", "SOC")
        return f"Incident {target} escalated to {tier}"


class ResponseActionExecutor:
    """
    Executes response actions and records each one.

    The executor does not de-duplicate: running the same action against the
    same target twice produces two records.
    """

    def __init__(
        self,
        invoker: Optional[ActionInvoker] = None,
        ledger: Optional[ActionLedger] = None,
        config: Optional[SOARConfig] = None,
    ):
        config = config or SOARConfig()
        self.invoker = invoker or SimulatedActionInvoker(
            delay=config.execution.action_delay,
            notifications=config.notifications,
        )
        self.ledger = ledger if ledger is not None else ActionLedger()

    def execute_response_action(
        self,
        action_type: str,
        target: str,
        automated: bool,
        parameters: Optional[dict[str, Any]] = None,
        executed_by: str = "soar_engine",
    ) -> ResponseAction:
        """
        Execute one action and append its record to the ledger.

        Failures, including unknown action types, are captured on the
        returned record rather than raised.
        """
        action_id = generate_id("act")
        parameters = dict(parameters or {})
        success = True
        output: Optional[str] = None
        error: Optional[str] = None

        try:
            output = self.invoker.invoke(action_type, target, parameters)
        except Exception as e:
            success = False
            error = str(e)
            logger.warning(
                "response_action_failed",
                action_id=action_id,
                action_type=action_type,
                target=target,
                error=error,
            )

        action = ResponseAction(
            action_id=action_id,
            type=action_type,
            target=target,
            automated=automated,
            success=success,
            executed_by=executed_by,
            parameters=parameters,
            output=output,
            error=error,
        )
        self.ledger.append(action)

        if success:
            logger.info(
                "response_action_executed",
                action_id=action_id,
                action_type=action_type,
                target=target,
                automated=automated,
            )
        return action

    def get_response_actions(self) -> list[ResponseAction]:
        return self.ledger.all()

    def clear_response_actions(self) -> None:
        self.ledger.clear()
