"""
Tests for Response Actions

Tests for the simulated invoker and the response action executor.
"""

import pytest


class TestSimulatedActionInvoker:
    """Tests for the simulated integrations."""

    @pytest.fixture
    def invoker(self):
        from soar_engine.orchestrator.actions import SimulatedActionInvoker
        return SimulatedActionInvoker(delay=0)

    def test_block_ip(self, invoker):
        assert invoker.invoke("block_ip", "10.0.0.1", {}) == "IP 10.0.0.1 blocked successfully"

    def test_every_kind_supported(self, invoker):
        from soar_engine.orchestrator.actions import ActionKind

        assert set(invoker.supported_actions) == {k.value for k in ActionKind}

    def test_notify_uses_enabled_channels(self):
        from soar_engine.config.settings import NotificationConfig
        from soar_engine.orchestrator.actions import SimulatedActionInvoker

        invoker = SimulatedActionInvoker(
            delay=0,
            notifications=NotificationConfig(enable_slack_integration=True, enable_webhook_notifications=False),
        )
        output = invoker.invoke("notify_stakeholders", "inc-1", {})
        assert output == "Stakeholders notified about inc-1 via slack, email"

    def test_notify_without_channels(self):
        from soar_engine.config.settings import NotificationConfig
        from soar_engine.orchestrator.actions import SimulatedActionInvoker

        invoker = SimulatedActionInvoker(
            delay=0,
            notifications=NotificationConfig(enable_email_alerts=False, enable_webhook_notifications=False),
        )
        assert "no channels enabled" in invoker.invoke("send_notification", "inc-1", {})

    def test_escalate(self, invoker):
        assert invoker.invoke("escalate_incident", "inc-9", {}) == "Incident inc-9 escalated to SOC"

    def test_unknown_action(self, invoker):
        from soar_engine.errors import UnknownActionError

        with pytest.raises(UnknownActionError):
            invoker.invoke("launch_missiles", "x", {})


class TestResponseActionExecutor:
    """Tests for executing and recording actions."""

    @pytest.fixture
    def action_executor(self, fast_config):
        from soar_engine.orchestrator.actions import ResponseActionExecutor
        return ResponseActionExecutor(config=fast_config)

    def test_execute_records_success(self, action_executor):
        action = action_executor.execute_response_action(
            "quarantine_user", "user-42", automated=True, parameters={"reason": "test"},
        )

        assert action.success
        assert action.action_id.startswith("act_")
        assert action.output == "User user-42 quarantined successfully"
        assert action.executed_by == "soar_engine"
        assert action.parameters == {"reason": "test"}
        assert action_executor.get_response_actions() == [action]

    def test_unknown_action_recorded_as_failure(self, action_executor):
        action = action_executor.execute_response_action("launch_missiles", "x", automated=False)

        assert not action.success
        assert action.error == "Unknown action type: launch_missiles"
        assert action.output is None
        assert len(action_executor.get_response_actions()) == 1

    def test_invoker_exception_captured(self, fast_config, make_invoker):
        from soar_engine.orchestrator.actions import ResponseActionExecutor

        action_executor = ResponseActionExecutor(
            invoker=make_invoker(fail_actions={"block_ip"}), config=fast_config,
        )
        action = action_executor.execute_response_action("block_ip", "1.2.3.4", automated=True)

        assert not action.success
        assert "unavailable" in action.error

    def test_no_deduplication(self, action_executor):
        action_executor.execute_response_action("block_ip", "1.2.3.4", automated=True)
        action_executor.execute_response_action("block_ip", "1.2.3.4", automated=True)

        actions = action_executor.get_response_actions()
        assert len(actions) == 2
        assert actions[0].action_id != actions[1].action_id

    def test_clear(self, action_executor):
        action_executor.execute_response_action("block_ip", "1.2.3.4", automated=True)
        action_executor.clear_response_actions()
        assert action_executor.get_response_actions() == []

    def test_ledger_snapshot(self, action_executor):
        snapshot = action_executor.get_response_actions()
        action_executor.execute_response_action("block_ip", "1.2.3.4", automated=True)
        assert snapshot == []

    def test_to_dict(self, action_executor):
        data = action_executor.execute_response_action("block_ip", "1.2.3.4", automated=True).to_dict()
        assert data["type"] == "block_ip"
        assert data["executed_at"].endswith("Z")
