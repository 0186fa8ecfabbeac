"""
Playbook Executor

Owns the playbook catalog, matches playbooks to incoming events and runs
their steps in order against the response action executor. Each run is
recorded as a ``PlaybookExecution`` in the execution ledger.
"""

import threading
import time
from typing import Any, Optional, Union

import structlog

from soar_engine.config.settings import AutomationLevel, SOARConfig
from soar_engine.errors import ActionExecutionError, StepTimeoutError
from soar_engine.orchestrator.actions import EVIDENCE_ACTIONS, ActionKind, ResponseActionExecutor
from soar_engine.orchestrator.conditions import ContextConditionEvaluator, StepConditionEvaluator
from soar_engine.orchestrator.playbooks import (
    Playbook,
    PlaybookCategory,
    PlaybookStep,
    get_all_playbooks,
    validate_playbook,
)
from soar_engine.store.ledger import ExecutionLedger, PlaybookCatalog
from soar_engine.store.models import (
    CRITICAL_STEP_TYPES,
    EventType,
    ExecutionStatus,
    PlaybookExecution,
    SecurityEventContext,
    StepExecution,
    StepStatus,
    StepType,
    TriggerRef,
    now_ts,
)


logger = structlog.get_logger(__name__)


# Step types that may run unattended at each automation level
_LOW_LEVEL_TYPES = frozenset({
    StepType.DETECTION,
    StepType.ANALYSIS,
    StepType.NOTIFICATION,
    StepType.DOCUMENTATION,
    StepType.VERIFICATION,
})

AUTOMATABLE_STEP_TYPES = {
    AutomationLevel.LOW: _LOW_LEVEL_TYPES,
    AutomationLevel.MEDIUM: _LOW_LEVEL_TYPES | {StepType.CONTAINMENT},
    AutomationLevel.HIGH: frozenset(StepType),
}

# Which context field an action is aimed at, when the context has one
_IP_ACTIONS = frozenset({
    ActionKind.BLOCK_IP.value,
    ActionKind.BLOCK_THREAT.value,
    ActionKind.UPDATE_FIREWALL_RULES.value,
})
_SYSTEM_ACTIONS = frozenset({
    ActionKind.ISOLATE_SYSTEM.value,
    ActionKind.RESTORE_FROM_BACKUP.value,
    ActionKind.VERIFY_INTEGRITY.value,
    ActionKind.SCAN_NETWORK.value,
})
_USER_ACTIONS = frozenset({
    ActionKind.QUARANTINE_USER.value,
    ActionKind.DISABLE_ACCOUNT.value,
    ActionKind.RESET_PASSWORD.value,
    ActionKind.REVOKE_SESSIONS.value,
    ActionKind.ROTATE_CREDENTIALS.value,
})

_STOPPED = (ExecutionStatus.CANCELLED, ExecutionStatus.FAILED)

TriggerLike = Union[TriggerRef, dict[str, Any]]


def _coerce_trigger(trigger: TriggerLike) -> TriggerRef:
    if isinstance(trigger, TriggerRef):
        return trigger
    return TriggerRef(type=EventType(trigger["type"]), id=str(trigger["id"]))


class PlaybookExecutor:
    """
    Executor for security playbooks.

    Steps run strictly in list order, each one finishing before the next
    starts. Retry budgets live on the step's execution record, so running a
    playbook never changes the catalog entry.
    """

    def __init__(
        self,
        config: Optional[SOARConfig] = None,
        action_executor: Optional[ResponseActionExecutor] = None,
        condition_evaluator: Optional[StepConditionEvaluator] = None,
        catalog: Optional[PlaybookCatalog] = None,
        executions: Optional[ExecutionLedger] = None,
        load_defaults: bool = True,
    ):
        self.config = config or SOARConfig()
        self.action_executor = action_executor or ResponseActionExecutor(config=self.config)
        self.condition_evaluator = condition_evaluator or ContextConditionEvaluator()
        self.catalog = catalog if catalog is not None else PlaybookCatalog()
        self.executions = executions if executions is not None else ExecutionLedger()
        self._state_lock = threading.Lock()

        if load_defaults:
            for playbook in get_all_playbooks().values():
                self.catalog.register(playbook)

    # === Catalog ===

    def register_playbook(self, playbook: Union[Playbook, dict[str, Any]]) -> Playbook:
        """Add a playbook, replacing any existing entry with the same id."""
        playbook = validate_playbook(playbook)
        previous = self.catalog.register(playbook)
        logger.info(
            "playbook_registered",
            playbook_id=playbook.id,
            version=playbook.version,
            replaced=previous is not None,
        )
        return playbook

    def get_playbook(self, playbook_id: str) -> Optional[Playbook]:
        return self.catalog.get(playbook_id)

    def get_playbooks(self) -> list[Playbook]:
        return self.catalog.all()

    def clear_playbooks(self) -> None:
        self.catalog.clear()

    # === Executions ===

    def get_executions(self) -> list[PlaybookExecution]:
        return self.executions.all()

    def get_execution(self, execution_id: str) -> Optional[PlaybookExecution]:
        return self.executions.get(execution_id)

    def clear_executions(self) -> None:
        self.executions.clear()

    def cancel_execution(self, execution_id: str) -> bool:
        """
        Cancel a queued or running execution.

        The step in flight finishes; no further steps start.
        """
        execution = self.executions.get(execution_id)
        if execution is None:
            return False
        with self._state_lock:
            if execution.status.is_terminal:
                return False
            execution.status = ExecutionStatus.CANCELLED
        logger.info("playbook_execution_cancelled", execution_id=execution_id)
        return True

    # === Matching ===

    def _category_enabled(self, category: Optional[PlaybookCategory]) -> bool:
        toggles = self.config.playbooks
        if category == PlaybookCategory.CONTAINMENT:
            return toggles.enable_incident_containment
        if category == PlaybookCategory.THREAT_HUNTING:
            return toggles.enable_threat_hunting
        if category == PlaybookCategory.FORENSICS:
            return toggles.enable_forensic_collection
        if category == PlaybookCategory.RECOVERY:
            return toggles.enable_recovery_procedures
        return True

    def find_applicable_playbooks(
        self,
        trigger_type: Union[EventType, str],
        context: SecurityEventContext,
    ) -> list[Playbook]:
        """
        Playbooks with at least one fully satisfied trigger clause of this
        type, highest priority first. Equal priorities keep catalog order.
        """
        trigger_type = EventType(trigger_type)
        matching = [
            playbook for playbook in self.catalog.all()
            if self._category_enabled(playbook.category)
            and playbook.matches(trigger_type, context)
        ]
        return sorted(matching, key=lambda p: p.priority.rank, reverse=True)

    # === Execution ===

    def execute_playbook(
        self,
        playbook: Playbook,
        trigger: TriggerLike,
        context: Optional[SecurityEventContext] = None,
    ) -> PlaybookExecution:
        """
        Run a playbook to completion.

        Always returns the execution record; failures are reported through
        its status rather than raised.
        """
        trigger_ref = _coerce_trigger(trigger)
        execution = PlaybookExecution(playbook_id=playbook.id, triggered_by=trigger_ref)
        self.executions.append(execution)

        log = logger.bind(
            execution_id=execution.execution_id,
            playbook_id=playbook.id,
            trigger_type=trigger_ref.type.value,
            trigger_id=trigger_ref.id,
        )

        with self._state_lock:
            if execution.status == ExecutionStatus.QUEUED:
                execution.status = ExecutionStatus.RUNNING
        log.info("playbook_execution_started", steps=len(playbook.steps))

        try:
            for step in playbook.steps:
                if execution.status in _STOPPED:
                    break
                self.execute_playbook_step(execution, step, trigger_ref, context)
            with self._state_lock:
                if execution.status == ExecutionStatus.RUNNING:
                    execution.status = ExecutionStatus.COMPLETED
        except Exception as e:
            log.exception("playbook_execution_error", error=str(e))
            with self._state_lock:
                execution.status = ExecutionStatus.FAILED
                execution.error = str(e)

        self._finalize(execution)
        log.info(
            "playbook_execution_finished",
            status=execution.status.value,
            success_rate=execution.metrics.success_rate,
            duration_ms=execution.metrics.total_duration,
        )
        return execution

    def _finalize(self, execution: PlaybookExecution) -> None:
        execution.completed_at = now_ts()
        execution.metrics.total_duration = (execution.completed_at - execution.started_at) * 1000
        executed = execution.executed_steps
        completed = sum(1 for s in executed if s.status == StepStatus.COMPLETED)
        execution.metrics.success_rate = completed / len(executed) if executed else 0.0

    def is_automated(self, step: PlaybookStep) -> bool:
        """Whether a step runs unattended under the current configuration."""
        automation = self.config.automation
        if not step.automated or not automation.enable_automated_response:
            return False
        if not automation.enforce_automation_level:
            return True
        return step.type in AUTOMATABLE_STEP_TYPES[automation.max_automation_level]

    def execute_playbook_step(
        self,
        execution: PlaybookExecution,
        step: PlaybookStep,
        trigger: TriggerRef,
        context: Optional[SecurityEventContext] = None,
    ) -> StepExecution:
        """Run one step, retrying within its own budget."""
        record = StepExecution(
            step_id=step.id,
            retries_remaining=step.retries,
            automated=self.is_automated(step),
        )
        execution.executed_steps.append(record)
        execution.current_step = step.id
        log = logger.bind(execution_id=execution.execution_id, step_id=step.id)

        unmet = [
            dep for dep in step.dependencies
            if (dep_record := execution.step(dep)) is None
            or dep_record.status != StepStatus.COMPLETED
        ]
        if unmet:
            self._skip(record, f"Dependencies not completed: {', '.join(unmet)}")
            log.info("step_skipped", reason="dependencies", unmet=unmet)
            return record

        if not self.condition_evaluator.evaluate(step, context):
            self._skip(record, "Step conditions not met")
            log.info("step_skipped", reason="conditions")
            return record

        if record.automated:
            execution.metrics.automated_steps += 1
        else:
            execution.metrics.manual_steps += 1

        while True:
            record.attempts += 1
            record.status = StepStatus.RUNNING
            try:
                if record.automated:
                    record.output = self._run_automated(execution, step, record, trigger, context)
                else:
                    record.output = self._run_manual(execution, step)
            except Exception as e:
                record.status = StepStatus.FAILED
                record.error = str(e)
                if record.retries_remaining > 0 and execution.status not in _STOPPED:
                    record.retries_remaining -= 1
                    log.warning(
                        "step_retry",
                        attempt=record.attempts,
                        retries_remaining=record.retries_remaining,
                        error=record.error,
                    )
                    continue
                record.completed_at = now_ts()
                log.error("step_failed", step_type=step.type.value, attempts=record.attempts, error=record.error)
                if step.type in CRITICAL_STEP_TYPES:
                    with self._state_lock:
                        if not execution.status.is_terminal:
                            execution.status = ExecutionStatus.FAILED
                            execution.error = f"Critical step {step.id} failed: {record.error}"
                return record

            record.status = StepStatus.COMPLETED
            record.error = None
            record.completed_at = now_ts()
            self._record_results(execution, step)
            log.info("step_completed", attempts=record.attempts, automated=record.automated)
            return record

    def _skip(self, record: StepExecution, reason: str) -> None:
        record.status = StepStatus.SKIPPED
        record.output = reason
        record.completed_at = now_ts()

    def _run_automated(
        self,
        execution: PlaybookExecution,
        step: PlaybookStep,
        record: StepExecution,
        trigger: TriggerRef,
        context: Optional[SecurityEventContext],
    ) -> str:
        deadline = time.monotonic() + step.timeout if step.timeout else None
        outputs = []

        for action_type in step.actions:
            self._check_deadline(step, deadline)
            action = self.action_executor.execute_response_action(
                action_type,
                self.resolve_target(action_type, trigger, context),
                automated=True,
                parameters={
                    "execution_id": execution.execution_id,
                    "playbook_id": execution.playbook_id,
                    "step_id": step.id,
                },
            )
            record.action_ids.append(action.action_id)
            if not action.success:
                raise ActionExecutionError(
                    action.error or f"Action {action_type} failed",
                    action_type=action_type,
                    action_id=action.action_id,
                )
            if action_type in EVIDENCE_ACTIONS:
                execution.results.evidence_collected = True
            outputs.append(action.output)

        self._check_deadline(step, deadline)
        return "; ".join(o for o in outputs if o) or f"Step {step.name} executed successfully"

    @staticmethod
    def _check_deadline(step: PlaybookStep, deadline: Optional[float]) -> None:
        if deadline is not None and time.monotonic() > deadline:
            raise StepTimeoutError(step.id, step.timeout)

    def _run_manual(self, execution: PlaybookExecution, step: PlaybookStep) -> str:
        logger.warning(
            "manual_step_required",
            execution_id=execution.execution_id,
            step_id=step.id,
            step_name=step.name,
            actions=list(step.actions),
        )
        wait = self.config.execution.manual_step_wait
        if step.timeout is not None:
            wait = min(wait, step.timeout)
        if wait:
            time.sleep(wait)
        return f"Manual step {step.name} completed by analyst"

    @staticmethod
    def resolve_target(
        action_type: str,
        trigger: TriggerRef,
        context: Optional[SecurityEventContext],
    ) -> str:
        """Pick what an action is aimed at, falling back to the trigger id."""
        if context is not None:
            if action_type in _IP_ACTIONS and context.source_ip:
                return context.source_ip
            if action_type in _SYSTEM_ACTIONS and context.affected_systems:
                return context.affected_systems[0]
            if action_type in _USER_ACTIONS and context.affected_users:
                return context.affected_users[0]
        return trigger.id

    @staticmethod
    def _record_results(execution: PlaybookExecution, step: PlaybookStep) -> None:
        results = execution.results
        if step.type == StepType.CONTAINMENT:
            results.containment_success = True
        elif step.type == StepType.ERADICATION:
            results.threat_neutralized = True
        elif step.type == StepType.RECOVERY:
            results.systems_restored = True
