"""Ordered rule lists for heuristic classification.

Every classification question (is this visible? what icon is this? which menu
type?) is answered by a ``RuleList``: predicate -> result pairs evaluated in a
fixed order. The first rule whose predicate holds decides; when none does the
list's default applies.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

import structlog

logger = structlog.get_logger()

C = TypeVar("C")
R = TypeVar("R")


@dataclass(frozen=True)
class Rule(Generic[C, R]):
    """A named predicate and the answer it gives when it holds."""
    name: str
    when: Callable[[C], bool]
    then: R

    def apply(self, context: C) -> Optional[R]:
        """Return the rule's answer, or None for "no opinion"."""
        return self.then if self.when(context) else None


@dataclass(frozen=True)
class Verdict(Generic[R]):
    """The answer and the rule that produced it (``default`` when none fired)."""
    result: R
    rule: str


class RuleList(Generic[C, R]):
    """Priority-ordered rules with a hard default."""

    def __init__(self, name: str, rules: list[Rule[C, R]], default: R):
        self.name = name
        self.rules = list(rules)
        self.default = default

    def evaluate(self, context: C) -> Verdict[R]:
        for rule in self.rules:
            if rule.when(context):
                return Verdict(rule.then, rule.name)
        return Verdict(self.default, "default")

    def decide(self, context: C) -> R:
        return self.evaluate(context).result

    @property
    def rule_names(self) -> list[str]:
        return [rule.name for rule in self.rules]

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        return f"RuleList({self.name!r}, rules={self.rule_names}, default={self.default!r})"


def has_token(values, *needles: str) -> bool:
    """True when any class token contains any needle (case-insensitive)."""
    lowered = [str(v).lower() for v in values or []]
    return any(needle in value for value in lowered for needle in needles)
