"""
Tests for Condition Evaluation

Tests for condition parsing, severity ordering, numeric comparisons
and the step condition evaluators.
"""

import random

import pytest

from soar_engine.store.models import EventType, SecurityEventContext, Severity


def make_context(severity="high", confidence=0.85, risk_score=80.0, type=EventType.THREAT):
    return SecurityEventContext(
        event_id="evt-1",
        timestamp=0.0,
        source="test",
        type=type,
        severity=Severity(severity),
        confidence=confidence,
        risk_score=risk_score,
    )


class TestParseCondition:
    """Tests for condition parsing."""

    def test_parse_equality(self):
        from soar_engine.orchestrator.conditions import ConditionOperator, parse_condition

        cond = parse_condition("severity=critical")
        assert cond.field == "severity"
        assert cond.operator == ConditionOperator.EQ
        assert cond.value == "critical"

    def test_parse_colon_forms(self):
        from soar_engine.orchestrator.conditions import ConditionOperator, parse_condition

        assert parse_condition("severity:critical").operator == ConditionOperator.EQ
        cond = parse_condition("confidence:>0.8")
        assert cond.operator == ConditionOperator.GT
        assert cond.value == "0.8"

    def test_parse_camel_case_field(self):
        from soar_engine.orchestrator.conditions import parse_condition

        assert parse_condition("riskScore>=60").field == "risk_score"

    def test_parse_malformed(self):
        from soar_engine.orchestrator.conditions import parse_condition

        assert parse_condition("not a condition") is None
        assert parse_condition("") is None


class TestEvaluateCondition:
    """Tests for single-condition evaluation."""

    def test_severity_equals_means_at_least(self):
        from soar_engine.orchestrator.conditions import evaluate_condition

        assert evaluate_condition("severity=high", make_context("critical"))
        assert evaluate_condition("severity=high", make_context("high"))
        assert not evaluate_condition("severity=high", make_context("medium"))

    def test_severity_ordering_operators(self):
        from soar_engine.orchestrator.conditions import evaluate_condition

        ctx = make_context("medium")
        assert evaluate_condition("severity<high", ctx)
        assert evaluate_condition("severity<=medium", ctx)
        assert not evaluate_condition("severity>medium", ctx)
        assert evaluate_condition("severity!=low", ctx)

    def test_confidence_threshold(self):
        from soar_engine.orchestrator.conditions import evaluate_condition

        assert evaluate_condition("confidence>0.8", make_context(confidence=0.85))
        assert not evaluate_condition("confidence>0.8", make_context(confidence=0.8))
        assert evaluate_condition("confidence>=0.8", make_context(confidence=0.8))

    def test_risk_score(self):
        from soar_engine.orchestrator.conditions import evaluate_condition

        assert evaluate_condition("risk_score>=60", make_context(risk_score=60.0))
        assert not evaluate_condition("risk_score>=60", make_context(risk_score=30.0))

    def test_type_equality(self):
        from soar_engine.orchestrator.conditions import evaluate_condition

        assert evaluate_condition("type=threat", make_context())
        assert not evaluate_condition("type=incident", make_context())

    def test_unknown_and_malformed_are_permissive(self):
        from soar_engine.orchestrator.conditions import evaluate_condition

        ctx = make_context("low", confidence=0.1)
        assert evaluate_condition("asset_tier=gold", ctx)
        assert evaluate_condition("severity=catastrophic", ctx)
        assert evaluate_condition("confidence>high", ctx)
        assert evaluate_condition("???", ctx)

    def test_all_conditions_must_hold(self):
        from soar_engine.orchestrator.conditions import evaluate_conditions

        ctx = make_context("high", confidence=0.7)
        assert evaluate_conditions([], ctx)
        assert evaluate_conditions(["severity=high"], ctx)
        assert not evaluate_conditions(["severity=high", "confidence>0.8"], ctx)


class TestStepConditionEvaluators:
    """Tests for step condition evaluators."""

    @pytest.fixture
    def conditional_step(self):
        from soar_engine.orchestrator.playbooks import PlaybookStep

        return PlaybookStep(
            id="hunt",
            name="Hunt",
            type="detection",
            conditions=["risk_score>=60"],
            actions=["scan_network"],
        )

    def test_context_evaluator(self, conditional_step):
        from soar_engine.orchestrator.conditions import ContextConditionEvaluator

        evaluator = ContextConditionEvaluator()
        assert evaluator.evaluate(conditional_step, make_context(risk_score=80.0))
        assert not evaluator.evaluate(conditional_step, make_context(risk_score=30.0))

    def test_context_evaluator_without_context(self, conditional_step):
        from soar_engine.orchestrator.conditions import ContextConditionEvaluator

        assert ContextConditionEvaluator().evaluate(conditional_step, None)

    def test_random_evaluator_bounds(self, conditional_step):
        from soar_engine.orchestrator.conditions import RandomConditionEvaluator

        assert RandomConditionEvaluator(1.0).evaluate(conditional_step, None)
        assert not RandomConditionEvaluator(0.0).evaluate(conditional_step, None)

    def test_random_evaluator_seeded(self, conditional_step):
        from soar_engine.orchestrator.conditions import RandomConditionEvaluator

        a = RandomConditionEvaluator(0.5, rng=random.Random(7))
        b = RandomConditionEvaluator(0.5, rng=random.Random(7))
        first = [a.evaluate(conditional_step, None) for _ in range(20)]
        second = [b.evaluate(conditional_step, None) for _ in range(20)]
        assert first == second

    def test_random_evaluator_rejects_bad_probability(self):
        from soar_engine.orchestrator.conditions import RandomConditionEvaluator

        with pytest.raises(ValueError):
            RandomConditionEvaluator(1.5)

    def test_unconditional_step_always_runs(self):
        from soar_engine.orchestrator.conditions import RandomConditionEvaluator
        from soar_engine.orchestrator.playbooks import PlaybookStep

        step = PlaybookStep(id="s", name="S", type="analysis")
        assert RandomConditionEvaluator(0.0).evaluate(step, None)
