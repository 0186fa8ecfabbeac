#!/usr/bin/env python3
"""
SOAR Engine Command Line Interface

Usage:
    soar [--file PATH] playbooks                     # List the playbook catalog
    soar process incident|threat|vulnerability FILE  # Run the engine on one event
    soar demo                                        # Process a sample event of each kind
    soar metrics                                     # Catalog and automation snapshot
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from soar_engine.config.settings import SOARConfig, settings
from soar_engine.errors import SOARError
from soar_engine.logging_config import configure_logging
from soar_engine.orchestrator.engine import SOAREngine
from soar_engine.store.models import (
    SecurityIncident,
    ThreatDetection,
    Vulnerability,
    now_ts,
)


EVENT_LOADERS = {
    "incident": SecurityIncident.from_dict,
    "threat": ThreatDetection.from_dict,
    "vulnerability": Vulnerability.from_dict,
}


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _build_engine(args) -> SOAREngine:
    config = settings.engine
    if getattr(args, "config", None):
        config = SOARConfig.from_partial(
            json.loads(Path(args.config).read_text(encoding="utf-8"))
        )
    engine = SOAREngine(config)
    if getattr(args, "file", None):
        engine.load_playbooks(args.file)
    return engine


def _process(engine: SOAREngine, kind: str, event: Any) -> list[dict[str, Any]]:
    if kind == "incident":
        executions = engine.process_incident(event)
    elif kind == "threat":
        executions = engine.process_threat(event)
    else:
        executions = engine.process_vulnerability(event)
    return [e.to_dict() for e in executions]


def cmd_playbooks(args) -> int:
    engine = _build_engine(args)
    _print_json([
        {
            "id": p.id,
            "name": p.name,
            "version": p.version,
            "priority": p.priority.value,
            "category": p.category.value if p.category else None,
            "triggers": [
                {"type": t.type.value, "conditions": list(t.conditions)} for t in p.triggers
            ],
            "steps": [s.id for s in p.steps],
        }
        for p in engine.get_playbooks()
    ])
    return 0


def cmd_process(args) -> int:
    engine = _build_engine(args)
    data = json.loads(Path(args.event_file).read_text(encoding="utf-8"))
    event = EVENT_LOADERS[args.kind](data)

    engine.start()
    try:
        executions = _process(engine, args.kind, event)
    finally:
        engine.stop()

    _print_json({
        "executions": executions,
        "actions": [a.to_dict() for a in engine.get_response_actions()],
        "metrics": engine.get_soar_metrics(),
    })
    return 0


def cmd_demo(args) -> int:
    engine = _build_engine(args)
    now = now_ts()
    events = [
        ("incident", SecurityIncident.from_dict({
            "incident_id": "inc-demo-001",
            "type": "security_breach",
            "severity": "critical",
            "created_at": now,
            "affected_systems": ["web-server-01", "db-server-01"],
            "title": "Database credentials exfiltrated",
        })),
        ("threat", ThreatDetection.from_dict({
            "threat_id": "thr-demo-001",
            "type": "privilege_escalation",
            "severity": "high",
            "confidence": 0.92,
            "detected_at": now,
            "source": {"ip": "203.0.113.5", "user_agent": "curl/8.0", "user_id": "svc-backup"},
            "target": {"endpoint": "/api/admin/users", "method": "POST"},
            "indicators": ["role_change", "unusual_hour"],
        })),
        ("vulnerability", Vulnerability.from_dict({
            "id": "vuln-demo-001",
            "severity": "high",
            "confidence": 0.85,
            "title": "SQL injection in search endpoint",
            "location": {"file": "app/search.py", "endpoint": "/api/search"},
            "evidence": ["payload: ' OR 1=1 --"],
            "detected_at": now,
        })),
    ]

    engine.start()
    results = []
    try:
        for kind, event in events:
            results.append({"event": kind, "executions": _process(engine, kind, event)})
    finally:
        engine.stop()

    _print_json({
        "results": results,
        "actions": [a.to_dict() for a in engine.get_response_actions()],
        "metrics": engine.get_soar_metrics(),
    })
    return 0


def cmd_metrics(args) -> int:
    engine = _build_engine(args)
    _print_json(engine.get_soar_metrics())
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="soar",
        description="Security orchestration, automation and response engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", default=None, help="Override SOAR_LOG_LEVEL")
    parser.add_argument("--config", help="JSON file with engine configuration overrides")
    parser.add_argument("--file", help="JSON or YAML file with extra playbooks")

    subparsers = parser.add_subparsers(dest="command")

    playbooks_p = subparsers.add_parser("playbooks", help="List the playbook catalog")
    playbooks_p.set_defaults(func=cmd_playbooks)

    process_p = subparsers.add_parser("process", help="Process one event from a JSON file")
    process_p.add_argument("kind", choices=sorted(EVENT_LOADERS))
    process_p.add_argument("event_file")
    process_p.set_defaults(func=cmd_process)

    demo_p = subparsers.add_parser("demo", help="Process one sample event of each kind")
    demo_p.set_defaults(func=cmd_demo)

    metrics_p = subparsers.add_parser("metrics", help="Show catalog and automation metrics")
    metrics_p.set_defaults(func=cmd_metrics)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(args.log_level)
    try:
        return args.func(args)
    except (SOARError, OSError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
