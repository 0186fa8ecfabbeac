"""
SOAR Engine Test Configuration and Fixtures
"""

import os
import time

import pytest

# Set test environment variables before importing modules
os.environ["SOAR_LOG_LEVEL"] = "WARNING"
os.environ["SOAR_LOG_JSON"] = "false"


class RecordingInvoker:
    """Action invoker that records calls and fails on demand."""

    def __init__(self, fail_actions=None, fail_times=None, delay=0.0, on_invoke=None):
        self.calls = []
        # fail_actions always fail; fail_times maps action type -> failures before success
        self.fail_actions = set(fail_actions or [])
        self.fail_times = dict(fail_times or {})
        self.delay = delay
        self.on_invoke = on_invoke

    def invoke(self, action_type, target, parameters):
        self.calls.append((action_type, target, dict(parameters)))
        if self.on_invoke is not None:
            self.on_invoke(action_type, target, parameters)
        if self.delay:
            time.sleep(self.delay)
        if action_type in self.fail_actions:
            raise RuntimeError(f"{action_type} integration unavailable")
        remaining = self.fail_times.get(action_type, 0)
        if remaining > 0:
            self.fail_times[action_type] = remaining - 1
            raise RuntimeError(f"{action_type} transient failure")
        return f"{action_type} -> {target}"

    def called(self, action_type):
        return [c for c in self.calls if c[0] == action_type]


@pytest.fixture
def fast_config():
    """Engine configuration with simulated delays switched off."""
    from soar_engine.config.settings import SOARConfig

    return SOARConfig.from_partial({
        "execution": {"action_delay": 0, "manual_step_wait": 0},
    })


@pytest.fixture
def invoker():
    """Recording action invoker."""
    return RecordingInvoker()


@pytest.fixture
def engine(fast_config, invoker):
    """Started engine backed by the recording invoker."""
    from soar_engine.orchestrator.engine import SOAREngine

    eng = SOAREngine(fast_config, invoker=invoker)
    eng.start()
    yield eng
    eng.shutdown()


@pytest.fixture
def executor(fast_config, invoker):
    """Playbook executor with the standard catalog loaded."""
    from soar_engine.orchestrator.actions import ResponseActionExecutor
    from soar_engine.orchestrator.executor import PlaybookExecutor

    return PlaybookExecutor(
        config=fast_config,
        action_executor=ResponseActionExecutor(invoker=invoker, config=fast_config),
    )


@pytest.fixture
def critical_incident():
    """Critical incident affecting two systems."""
    from soar_engine.store.models import SecurityIncident

    return SecurityIncident(
        incident_id="inc-001",
        severity="critical",
        type="security_breach",
        affected_systems=["web-server-01", "db-server-01"],
        title="Credential dump on web tier",
    )


@pytest.fixture
def sample_threat():
    """High-confidence privilege escalation attempt."""
    from soar_engine.store.models import ThreatDetection

    return ThreatDetection.from_dict({
        "threatId": "thr-001",
        "type": "privilege_escalation",
        "severity": "high",
        "confidence": 0.92,
        "source": {"ip": "203.0.113.5", "userAgent": "curl/8.0", "userId": "svc-backup"},
        "target": {"endpoint": "/api/admin/users", "method": "POST"},
        "indicators": ["role_change"],
    })


@pytest.fixture
def high_vulnerability():
    """High severity SQL injection finding."""
    from soar_engine.store.models import Vulnerability

    return Vulnerability.from_dict({
        "id": "vuln-001",
        "severity": "high",
        "confidence": 0.85,
        "title": "SQL injection in search endpoint",
        "type": "sql_injection",
        "location": {"file": "app/search.py", "line": 42, "endpoint": "/api/search"},
        "evidence": ["payload: ' OR 1=1 --"],
    })


@pytest.fixture
def simple_playbook():
    """Minimal two-step playbook triggered manually."""
    from soar_engine.orchestrator.playbooks import Playbook

    return Playbook.model_validate({
        "id": "simple",
        "name": "Simple Playbook",
        "priority": "low",
        "triggers": [{"type": "manual"}],
        "steps": [
            {"id": "analyze", "name": "Analyze", "type": "analysis", "actions": ["analyze_indicators"]},
            {"id": "notify", "name": "Notify", "type": "notification", "actions": ["send_notification"]},
        ],
    })


@pytest.fixture
def make_invoker():
    """Factory for recording invokers with custom failure behaviour."""
    return RecordingInvoker
