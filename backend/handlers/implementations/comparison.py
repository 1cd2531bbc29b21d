"""Value comparison shared by the condition and filter handlers.

Operators are the canonical names produced by the config normalizer.
Ordering operators compare numerically when both sides parse as numbers.
"""

import re
from typing import Any, Optional

from workflow.errors import ErrorType, WorkflowExecutionError


def to_number(value: Any) -> Optional[float]:
    """Parse ``value`` as a number, or None. Booleans are not numbers."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def values_equal(left: Any, right: Any) -> bool:
    left_number, right_number = to_number(left), to_number(right)
    if left_number is not None and right_number is not None:
        return left_number == right_number
    return left == right or to_text(left) == to_text(right)


def _ordered(left: Any, right: Any, operator: str) -> bool:
    left_number, right_number = to_number(left), to_number(right)
    if left_number is not None and right_number is not None:
        left, right = left_number, right_number
    try:
        if operator == "greater_than":
            return left > right
        if operator == "greater_than_or_equal":
            return left >= right
        if operator == "less_than":
            return left < right
        return left <= right
    except TypeError:
        return False


def compare(left: Any, operator: str, right: Any, case_sensitive: bool = True) -> bool:
    """Evaluate ``left <operator> right``.

    Raises:
        WorkflowExecutionError: the operator is unknown.
    """
    if operator == "equals":
        return values_equal(left, right)
    if operator == "not_equals":
        return not values_equal(left, right)
    if operator in ("greater_than", "greater_than_or_equal", "less_than", "less_than_or_equal"):
        return _ordered(left, right, operator)

    if operator == "is_empty":
        return not left
    if operator == "is_not_empty":
        return bool(left)
    if operator == "exists":
        return left is not None
    if operator in ("not_exists", "notExists"):
        return left is None

    left_text, right_text = to_text(left), to_text(right)
    if not case_sensitive:
        left_text, right_text = left_text.lower(), right_text.lower()

    if operator == "contains":
        return right_text in left_text
    if operator == "not_contains":
        return right_text not in left_text
    if operator == "starts_with":
        return left_text.startswith(right_text)
    if operator == "ends_with":
        return left_text.endswith(right_text)
    if operator == "regex":
        try:
            return re.search(to_text(right), to_text(left)) is not None
        except re.error:
            return False

    raise WorkflowExecutionError(f"Unknown operator: {operator}", ErrorType.VALIDATION_ERROR)


def get_path(obj: Any, path: Optional[str]) -> Any:
    """Dot-notation lookup into nested dicts and lists."""
    if not path:
        return obj
    current = obj
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list):
            try:
                current = current[int(key)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current
