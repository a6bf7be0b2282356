"""
Rule condition expressions.

Prescription rules are stored as data, so their predicates are short
expression strings rather than code, e.g.

    "bmi >= 28 AND systolic >= 140 OR bmi >= 28 AND diastolic >= 90"
    "has diabetes OR fasting_glucose >= 7.0"
    "sex == 'male' AND waist_cm >= 90"

Grammar (AND binds tighter than OR, no parentheses):

    expression := clause (" OR " clause)*
    clause     := predicate (" AND " predicate)*
    predicate  := "true" | "false"
                | "has <tag>" | "not has <tag>"
                | "<fact> <op> <literal>"       op in >=, <=, >, <, ==, !=

A comparison against a missing (None) fact is always false, so a rule that
depends on an absent measurement simply does not trigger.
"""

import ast
from typing import Any, Collection, Dict, List, Optional, Tuple

from exercise_rx.exceptions import RuleCatalogError

# Longest operators first so ">=" is not read as ">"
_OPERATORS = (">=", "<=", "==", "!=", ">", "<")

Predicate = Tuple[str, str, Any]


class ConditionExpression:
    """A parsed rule condition that can be evaluated against a facts mapping."""

    def __init__(self, source: str, clauses: List[List[Predicate]]):
        self.source = source
        self.clauses = clauses

    def __repr__(self) -> str:
        return f"ConditionExpression({self.source!r})"

    @classmethod
    def parse(
        cls, source: str, allowed_facts: Optional[Collection[str]] = None
    ) -> "ConditionExpression":
        """
        Parse an expression string.

        Args:
            source: Expression text
            allowed_facts: If given, fact names outside this set are rejected

        Raises:
            RuleCatalogError: If the expression cannot be parsed
        """
        text = (source or "").strip()
        if not text:
            raise RuleCatalogError("Empty rule condition")

        clauses = []
        for clause_text in text.split(" OR "):
            predicates = [
                cls._parse_predicate(part.strip(), allowed_facts)
                for part in clause_text.split(" AND ")
            ]
            clauses.append(predicates)
        return cls(text, clauses)

    @staticmethod
    def _parse_predicate(
        text: str, allowed_facts: Optional[Collection[str]]
    ) -> Predicate:
        if not text:
            raise RuleCatalogError("Empty predicate in rule condition")

        lowered = text.lower()
        if lowered in ("true", "false"):
            return ("const", "==", lowered == "true")

        if lowered.startswith("not has "):
            return ("not_has", "", text[8:].strip())
        if lowered.startswith("has "):
            return ("has", "", text[4:].strip())

        for op in _OPERATORS:
            if op in text:
                fact, literal = (s.strip() for s in text.split(op, 1))
                break
        else:
            raise RuleCatalogError(f"Unrecognized predicate: {text!r}")

        if not fact.isidentifier():
            raise RuleCatalogError(f"Invalid fact name in predicate: {text!r}")
        if allowed_facts is not None and fact not in allowed_facts:
            raise RuleCatalogError(f"Unknown fact '{fact}' in predicate: {text!r}")

        try:
            value = ast.literal_eval(literal)
        except (ValueError, SyntaxError):
            raise RuleCatalogError(f"Invalid literal in predicate: {text!r}")
        if not isinstance(value, (int, float, str)) or isinstance(value, bool):
            raise RuleCatalogError(f"Literal must be a number or string: {text!r}")

        return (fact, op, value)

    def evaluate(self, facts: Dict[str, Any]) -> bool:
        """
        Evaluate against a facts mapping.

        The mapping must contain a "conditions" collection for `has` predicates.
        """
        return any(
            all(self._evaluate_predicate(p, facts) for p in clause)
            for clause in self.clauses
        )

    @staticmethod
    def _evaluate_predicate(predicate: Predicate, facts: Dict[str, Any]) -> bool:
        name, op, target = predicate

        if name == "const":
            return target
        if name == "has":
            return target in facts.get("conditions", ())
        if name == "not_has":
            return target not in facts.get("conditions", ())

        value = facts.get(name)
        if value is None:
            return False
        value = value.value if hasattr(value, "value") else value

        if isinstance(target, str):
            value = str(value)
        elif isinstance(value, bool) or not isinstance(value, (int, float)):
            return False

        if op == ">=":
            return value >= target
        if op == "<=":
            return value <= target
        if op == ">":
            return value > target
        if op == "<":
            return value < target
        if op == "==":
            return value == target
        return value != target
