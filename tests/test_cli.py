"""
Tests for the Command Line Interface
"""

import json
import logging

import pytest


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def fast_config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"execution": {"action_delay": 0, "manual_step_wait": 0}}))
    return str(path)


def run_cli(capsys, *argv):
    from soar_engine.cli import main

    code = main(list(argv))
    return code, capsys.readouterr()


class TestCLI:
    """Tests for CLI commands."""

    def test_no_command_prints_help(self, capsys):
        code, out = run_cli(capsys)
        assert code == 0
        assert "playbooks" in out.out

    def test_list_playbooks(self, capsys):
        code, out = run_cli(capsys, "playbooks")

        assert code == 0
        ids = [p["id"] for p in json.loads(out.out)]
        assert ids == [
            "critical-incident-response",
            "incident-forensic-collection",
            "automated-threat-hunting",
            "vulnerability-management",
        ]

    def test_list_with_extra_file(self, capsys, tmp_path):
        path = tmp_path / "extra.yaml"
        path.write_text(
            "- id: extra\n"
            "  name: Extra\n"
            "  steps:\n"
            "    - {id: s, name: S, type: analysis}\n"
        )

        code, out = run_cli(capsys, "--file", str(path), "playbooks")

        assert code == 0
        assert json.loads(out.out)[-1]["id"] == "extra"

    def test_process_incident(self, capsys, tmp_path, fast_config_file):
        event = tmp_path / "incident.json"
        event.write_text(json.dumps({
            "incidentId": "inc-cli",
            "severity": "critical",
            "affectedSystems": ["host-1"],
        }))

        code, out = run_cli(capsys, "--config", fast_config_file, "process", "incident", str(event))

        assert code == 0
        result = json.loads(out.out)
        assert [e["playbook_id"] for e in result["executions"]] == [
            "critical-incident-response",
            "incident-forensic-collection",
        ]
        assert result["metrics"]["automation"]["is_running"] is False
        assert result["actions"][-3]["type"] == "escalate_incident"

    def test_demo(self, capsys, fast_config_file):
        code, out = run_cli(capsys, "--config", fast_config_file, "demo")

        assert code == 0
        result = json.loads(out.out)
        assert [r["event"] for r in result["results"]] == ["incident", "threat", "vulnerability"]
        assert result["metrics"]["playbooks"]["executions"] == 4

    def test_missing_event_file(self, capsys, tmp_path):
        code, out = run_cli(capsys, "process", "threat", str(tmp_path / "missing.json"))

        assert code == 1
        assert "[ERROR]" in out.err

    @pytest.mark.parametrize("kind, payload", [
        ("incident", {"incidentId": "inc-cli"}),
        ("threat", {"threatId": "thr-cli", "severity": "high"}),
        ("vulnerability", {"id": "v-cli", "severity": "low", "location": {"column": 3}}),
    ])
    def test_malformed_event(self, capsys, tmp_path, kind, payload):
        event = tmp_path / "event.json"
        event.write_text(json.dumps(payload))

        code, out = run_cli(capsys, "process", kind, str(event))

        assert code == 1
        assert out.err.startswith("[ERROR]")
        assert "Traceback" not in out.err

    def test_invalid_playbook_file(self, capsys, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"id": "bad", "name": "Bad", "steps": []}]))

        code, out = run_cli(capsys, "--file", str(path), "playbooks")

        assert code == 1
        assert "Invalid playbook bad" in out.err

    def test_metrics(self, capsys, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"automation": {"max_automation_level": "low"}}))

        code, out = run_cli(capsys, "--config", str(config), "metrics")

        assert code == 0
        metrics = json.loads(out.out)
        assert metrics["playbooks"]["total"] == 4
        assert metrics["automation"] == {"is_running": False, "level": "low", "enabled": True}
