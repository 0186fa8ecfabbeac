"""
Condition Evaluation

Trigger and step conditions are short structured comparisons written as
strings, for example ``severity=critical`` or ``confidence>0.8``. The legacy
colon form (``severity:critical``, ``confidence:>0.8``) is also accepted.

Conditions that cannot be understood (unknown field, malformed string,
non-numeric value for a numeric field) never disqualify: evaluation is
permissive so a typo in a catalog entry does not silently disable a response.
"""

import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Optional, Protocol

import structlog

from soar_engine.store.models import SecurityEventContext, Severity

if TYPE_CHECKING:
    from soar_engine.orchestrator.playbooks import PlaybookStep


logger = structlog.get_logger(__name__)


class ConditionOperator(str, Enum):
    """Operators for condition evaluation."""
    EQ = "="
    NE = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="


_CONDITION_RE = re.compile(
    r"^\s*(?P<field>[A-Za-z_][A-Za-z0-9_]*)\s*"
    r"(?P<op>:>=|:<=|:!=|:>|:<|>=|<=|!=|=|>|<|:)\s*"
    r"(?P<value>\S.*?)\s*$"
)

# Field name as written -> context attribute
FIELD_ALIASES = {
    "severity": "severity",
    "confidence": "confidence",
    "risk_score": "risk_score",
    "riskscore": "risk_score",
    "type": "type",
}

NUMERIC_FIELDS = frozenset({"confidence", "risk_score"})


@dataclass(frozen=True)
class Condition:
    """A parsed condition."""
    field: str
    operator: ConditionOperator
    value: str
    raw: str

    @property
    def is_known_field(self) -> bool:
        return self.field in FIELD_ALIASES.values()

    def evaluate(self, context: SecurityEventContext) -> bool:
        """Evaluate against an event context. Unknown fields pass."""
        if not self.is_known_field:
            return True

        if self.field == "severity":
            return self._evaluate_severity(context.severity)
        if self.field in NUMERIC_FIELDS:
            return self._evaluate_numeric(getattr(context, self.field))
        return self._evaluate_text(getattr(context, self.field))

    def _evaluate_severity(self, actual: Severity) -> bool:
        try:
            expected = Severity(self.value.lower())
        except ValueError:
            return True

        op = self.operator
        # "severity=high" reads as "at least high"
        if op == ConditionOperator.EQ:
            return actual.rank >= expected.rank
        if op == ConditionOperator.NE:
            return actual != expected
        if op == ConditionOperator.GT:
            return actual.rank > expected.rank
        if op == ConditionOperator.GTE:
            return actual.rank >= expected.rank
        if op == ConditionOperator.LT:
            return actual.rank < expected.rank
        if op == ConditionOperator.LTE:
            return actual.rank <= expected.rank
        return True

    def _evaluate_numeric(self, actual: Any) -> bool:
        try:
            expected = float(self.value)
        except ValueError:
            return True
        if actual is None:
            return False

        op = self.operator
        if op == ConditionOperator.EQ:
            return actual == expected
        if op == ConditionOperator.NE:
            return actual != expected
        if op == ConditionOperator.GT:
            return actual > expected
        if op == ConditionOperator.GTE:
            return actual >= expected
        if op == ConditionOperator.LT:
            return actual < expected
        if op == ConditionOperator.LTE:
            return actual <= expected
        return True

    def _evaluate_text(self, actual: Any) -> bool:
        actual_value = actual.value if isinstance(actual, Enum) else str(actual)
        if self.operator == ConditionOperator.EQ:
            return actual_value == self.value
        if self.operator == ConditionOperator.NE:
            return actual_value != self.value
        return True


def parse_condition(raw: str) -> Optional[Condition]:
    """Parse a condition string. Returns None when it is malformed."""
    match = _CONDITION_RE.match(raw)
    if not match:
        return None

    op = match.group("op")
    if op == ":":
        op = "="
    op = op.lstrip(":")

    field_name = match.group("field").lower()
    return Condition(
        field=FIELD_ALIASES.get(field_name, field_name),
        operator=ConditionOperator(op),
        value=match.group("value"),
        raw=raw,
    )


def evaluate_condition(raw: str, context: SecurityEventContext) -> bool:
    condition = parse_condition(raw)
    if condition is None:
        logger.debug("condition_unparseable", condition=raw)
        return True
    return condition.evaluate(context)


def evaluate_conditions(conditions: Iterable[str], context: SecurityEventContext) -> bool:
    """True when every condition holds. An empty list holds."""
    return all(evaluate_condition(c, context) for c in conditions)


# ============================================================================
# Step condition evaluators
# ============================================================================

class StepConditionEvaluator(Protocol):
    """Decides whether a step's preconditions hold before it runs."""

    def evaluate(
        self,
        step: "PlaybookStep",
        context: Optional[SecurityEventContext],
    ) -> bool:
        ...


class ContextConditionEvaluator:
    """
    Evaluates step conditions against the triggering event context.

    Steps without conditions always run. Without a context (a playbook run
    by hand) there is nothing to inspect, so conditions are treated as met.
    """

    def evaluate(
        self,
        step: "PlaybookStep",
        context: Optional[SecurityEventContext],
    ) -> bool:
        if not step.conditions:
            return True
        if context is None:
            return True
        return evaluate_conditions(step.conditions, context)


class RandomConditionEvaluator:
    """
    Treats declared conditions as met with a fixed probability.

    Intended for chaos testing of playbooks; steps without conditions
    always run.
    """

    def __init__(self, probability: float = 0.9, rng: Optional[random.Random] = None):
        if not 0.0 <= probability <= 1.0:
            raise ValueError("probability must be between 0 and 1")
        self.probability = probability
        self._rng = rng or random.Random()

    def evaluate(
        self,
        step: "PlaybookStep",
        context: Optional[SecurityEventContext],
    ) -> bool:
        if not step.conditions:
            return True
        return self._rng.random() < self.probability
