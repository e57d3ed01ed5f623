"""Conditional rule evaluation against a draft value set."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

from field_types import to_number


Rule = Dict[str, Any]
FieldDescriptor = Dict[str, Any]

STRICT = "strict"
LOOSE = "loose"

ALLOWED_OPS = {
    "eq",
    "neq",
    "in",
    "nin",
    "exists",
    "gt",
    "lt",
    "gte",
    "lte",
}

_logger = logging.getLogger("crmforms.rules")


def default_equality() -> str:
    policy = (os.getenv("CRM_EQUALITY_POLICY") or STRICT).strip().lower()
    return policy if policy in (STRICT, LOOSE) else STRICT


def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "other"


def strict_equal(left: Any, right: Any) -> bool:
    if _kind(left) != _kind(right):
        return False
    return left == right


def loose_equal(left: Any, right: Any) -> bool:
    """``==`` as the legacy form renderer applied it: ``"1"`` equals ``1``."""
    left_kind, right_kind = _kind(left), _kind(right)
    if left_kind == right_kind:
        return left == right
    if "null" in (left_kind, right_kind) or "other" in (left_kind, right_kind):
        return False
    return to_number(left) == to_number(right)


def _contains(items: List[Any], value: Any) -> bool:
    return any(strict_equal(item, value) for item in items)


def evaluate_rule(rule: Rule, draft: dict, equality: str | None = None) -> bool:
    if not isinstance(rule, dict):
        _logger.warning("rule_malformed rule=%r", rule)
        return False
    op = rule.get("operator") or rule.get("op")
    if op not in ALLOWED_OPS:
        _logger.warning("rule_operator_unknown op=%r field=%s", op, rule.get("field"))
        return False

    dep = draft.get(rule.get("field")) if isinstance(draft, dict) else None
    expected = rule.get("value")

    if op == "exists":
        return dep is not None and dep != ""
    if op in ("eq", "neq"):
        equal = loose_equal if (equality or default_equality()) == LOOSE else strict_equal
        result = equal(dep, expected)
        return result if op == "eq" else not result
    if op in ("in", "nin"):
        if not isinstance(expected, list):
            _logger.warning("rule_value_not_list op=%s field=%s", op, rule.get("field"))
            return False
        found = _contains(expected, dep)
        return found if op == "in" else not found

    left = to_number(dep)
    right = to_number(expected)
    # NaN on either side compares false
    if op == "gt":
        return left > right
    if op == "gte":
        return left >= right
    if op == "lt":
        return left < right
    return left <= right


def evaluate_rules(rules: List[Rule] | None, draft: dict, equality: str | None = None) -> bool:
    """AND of every rule; stops at the first failing one."""
    return all(evaluate_rule(rule, draft, equality) for rule in rules or [])


def conditional_required_rules(field: FieldDescriptor) -> List[Rule]:
    validation = field.get("validation")
    if not isinstance(validation, dict):
        return []
    rules = validation.get("conditional_required")
    return rules if isinstance(rules, list) else []


def is_conditionally_required(field: FieldDescriptor, draft: dict, equality: str | None = None) -> bool:
    rules = conditional_required_rules(field)
    if not rules:
        return False
    return evaluate_rules(rules, draft, equality)


def is_conditionally_visible(field: FieldDescriptor, draft: dict, equality: str | None = None) -> bool:
    rules = field.get("visibility_rules")
    if not isinstance(rules, list) or not rules:
        return True
    return evaluate_rules(rules, draft, equality)
