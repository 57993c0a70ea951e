"""
Condition evaluation for compatibility rules.

Conditions are evaluated against a caller-supplied context map, never
against the service identifiers themselves. Missing keys, unparseable
numbers and bad patterns are non-matches, not errors. An explicit ``None``
is a value rather than a missing key.
"""

import re
from typing import Any, Callable, Dict, Iterable, Mapping

from shared.logging import get_logger
from .models import Condition, ConditionLogic, ConditionOperator, Threshold, extract_number

logger = get_logger("compatibility.conditions")

_MISSING = object()


def resolve_path(key: str, context: Mapping[str, Any]) -> Any:
    """Look up ``key`` directly, then as a dotted path through nested mappings."""
    if key in context:
        return context[key]

    if "." not in key:
        return _MISSING

    value: Any = context
    for part in key.split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        else:
            return _MISSING
    return value


def _strict_equals(left: Any, right: Any) -> bool:
    # True == 1 in Python; keep booleans and numbers apart
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    return left == right


def _is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _contains(actual: Any, expected: Any) -> bool:
    if actual is None:
        return _is_collection(expected) and any(item is None for item in expected)
    if _is_collection(expected):
        return any(_strict_equals(actual, item) for item in expected)
    if _is_collection(actual):
        return any(_strict_equals(item, expected) for item in actual)
    return str(expected) in str(actual)


def _equals(actual: Any, expected: Any) -> bool:
    return _strict_equals(actual, expected)


def _not_equals(actual: Any, expected: Any) -> bool:
    return not _strict_equals(actual, expected)


def _not_contains(actual: Any, expected: Any) -> bool:
    return not _contains(actual, expected)


def _regex(actual: Any, expected: Any) -> bool:
    if actual is None:
        return False
    try:
        return re.search(str(expected), str(actual)) is not None
    except re.error as e:
        logger.warning("Invalid condition pattern", pattern=str(expected), error=str(e))
        return False


def _version(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, Threshold):
        return False
    number = extract_number(actual)
    if number is None:
        return False
    return expected.compare(number)


_OPERATORS: Dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: _equals,
    ConditionOperator.NOT_EQUALS: _not_equals,
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.NOT_CONTAINS: _not_contains,
    ConditionOperator.REGEX: _regex,
    ConditionOperator.VERSION: _version,
}


def evaluate_condition(condition: Condition, context: Mapping[str, Any]) -> bool:
    """Evaluate a single condition against the context."""
    actual = resolve_path(condition.key, context)
    if actual is _MISSING:
        return False

    handler = _OPERATORS.get(condition.operator)
    if handler is None:
        logger.warning("Unknown condition operator", operator=str(condition.operator))
        return False

    return handler(actual, condition.value)


def evaluate_conditions(
    conditions: Iterable[Condition],
    logic: ConditionLogic,
    context: Mapping[str, Any]
) -> bool:
    """Combine a rule's conditions; an empty list always applies."""
    conditions = list(conditions)
    if not conditions:
        return True

    results = (evaluate_condition(c, context) for c in conditions)
    if logic == ConditionLogic.OR:
        return any(results)
    return all(results)
