"""
Ordered rule tables with first-match-wins evaluation.

Classification decisions (severity, root cause) and the remediation strategy
are each expressed as a tuple of ``Rule`` entries. Rules are sorted by
priority (lowest first) and evaluated top to bottom; the first rule whose
predicate holds decides the outcome and later rules are never consulted.
Duplicate priorities are rejected when the table is built.

Example:
    >>> table = RuleTable("parity", [
    ...     Rule(10, "even", lambda n: n % 2 == 0, "even"),
    ...     Rule(20, "odd", lambda n: True, "odd"),
    ... ])
    >>> table.evaluate(3)
    'odd'
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

C = TypeVar('C')
O = TypeVar('O')


@dataclass(frozen=True)
class Rule(Generic[C, O]):
    """
    One row of a rule table.

    Attributes:
        priority: Evaluation order, lowest first
        name: Identifier reported by ``RuleTable.explain``
        predicate: Test applied to the evaluation context
        outcome: Value returned when the predicate holds
    """
    priority: int
    name: str
    predicate: Callable[[C], bool]
    outcome: O


class RuleTable(Generic[C, O]):
    """Immutable, priority-ordered collection of rules."""

    def __init__(
        self,
        name: str,
        rules: Iterable[Rule[C, O]],
        default: Optional[O] = None,
    ):
        self.name = name
        self.rules: Tuple[Rule[C, O], ...] = tuple(
            sorted(rules, key=lambda r: r.priority)
        )
        self.default = default

        priorities = [r.priority for r in self.rules]
        if len(priorities) != len(set(priorities)):
            raise ValueError(f"Rule table '{name}' has duplicate priorities")

    def first_match(self, context: C) -> Optional[Rule[C, O]]:
        """Return the first rule whose predicate holds, or ``None``."""
        for rule in self.rules:
            if rule.predicate(context):
                logger.debug(f"{self.name}: rule '{rule.name}' matched")
                return rule
        return None

    def evaluate(self, context: C) -> Optional[O]:
        """Outcome of the first matching rule, else the table default."""
        rule = self.first_match(context)
        return rule.outcome if rule is not None else self.default

    def explain(self, context: C) -> str:
        """Name of the rule that decides ``context``, or ``default``."""
        rule = self.first_match(context)
        return rule.name if rule is not None else "default"

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        names = ", ".join(f"{r.priority}:{r.name}" for r in self.rules)
        return f"RuleTable({self.name!r}, [{names}])"


def contains_any(text: str, needles: Iterable[str]) -> bool:
    """Case-insensitive substring test against any of ``needles``."""
    lower = text.lower()
    return any(needle.lower() in lower for needle in needles)


def always(_: Any) -> bool:
    return True
