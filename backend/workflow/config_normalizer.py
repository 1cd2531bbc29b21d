"""Node configuration normalization.

Runs between variable-free raw config and the handler: fills defaults,
maps operator aliases onto their canonical names and coerces loosely typed
fields. normalize_config() is pure and idempotent.
"""

import json
import math
from typing import Any, Optional

DEFAULT_OPERATOR = "equals"

OPERATOR_MAP: dict[str, str] = {
    # Short forms
    "eq": "equals",
    "ne": "not_equals",
    "gt": "greater_than",
    "gte": "greater_than_or_equal",
    "lt": "less_than",
    "lte": "less_than_or_equal",
    # Symbols
    "==": "equals",
    "===": "equals",
    "!=": "not_equals",
    "!==": "not_equals",
    ">": "greater_than",
    ">=": "greater_than_or_equal",
    "<": "less_than",
    "<=": "less_than_or_equal",
    # camelCase
    "startsWith": "starts_with",
    "endsWith": "ends_with",
    "isEmpty": "is_empty",
    "isNotEmpty": "is_not_empty",
    # Canonical
    "equals": "equals",
    "not_equals": "not_equals",
    "greater_than": "greater_than",
    "greater_than_or_equal": "greater_than_or_equal",
    "less_than": "less_than",
    "less_than_or_equal": "less_than_or_equal",
    "contains": "contains",
    "not_contains": "not_contains",
    "starts_with": "starts_with",
    "ends_with": "ends_with",
    "is_empty": "is_empty",
    "is_not_empty": "is_not_empty",
}

NODE_DEFAULTS: dict[str, dict[str, Any]] = {
    "delay": {"unit": "seconds", "duration": 5},
    "condition": {"operator": DEFAULT_OPERATOR},
    "filter": {"operator": DEFAULT_OPERATOR},
    "loop:foreach": {"itemVariable": "item", "maxIterations": 100},
    "loop:repeat": {"indexVariable": "index", "count": 1},
    "http:request": {"method": "POST", "timeout": 30000},
    "openai:chat": {"model": "gpt-4o-mini", "maxTokens": 1000, "temperature": 0.7},
    "anthropic:claude": {"model": "claude-3-5-sonnet-20241022", "maxTokens": 1000, "temperature": 0.7},
    "stripe:create-payment-intent": {"currency": "usd"},
    "trigger:webhook": {"authentication": "none"},
    "trigger:schedule": {"timezone": "UTC"},
}

FIELD_TYPE_COERCIONS: dict[str, dict[str, str]] = {
    "delay": {"duration": "number"},
    "loop:foreach": {"maxIterations": "number"},
    "loop:repeat": {"count": "number"},
    "http:request": {"timeout": "number", "headers": "json", "body": "json"},
    "openai:chat": {"maxTokens": "number", "temperature": "number"},
    "anthropic:claude": {"maxTokens": "number", "temperature": "number"},
    "stripe:create-payment-intent": {"amount": "number"},
    "stripe:refund": {"amount": "number"},
    "trigger:webhook": {"webhookHeaders": "json"},
    "webhook:send": {"webhookHeaders": "json"},
}

COMPARISON_NODE_TYPES = ("condition", "filter")


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def normalize_operator(operator: Optional[str]) -> str:
    """Map an operator alias onto its canonical name. Unknown operators pass through."""
    if not operator:
        return DEFAULT_OPERATOR
    return OPERATOR_MAP.get(operator, operator)


def coerce_value(value: Any, target_type: str) -> Any:
    """Coerce ``value`` to ``target_type``, returning it unchanged when that fails."""
    if value is None:
        return value

    if target_type == "number":
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            number = value
        elif isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                return value
        else:
            return value
        if not math.isfinite(number):
            return value
        if isinstance(number, float) and number.is_integer():
            return int(number)
        return number

    if target_type == "boolean":
        if isinstance(value, bool):
            return value
        if value in ("true", "1"):
            return True
        if value in ("false", "0"):
            return False
        return bool(value)

    if target_type == "string":
        return value if isinstance(value, str) else str(value)

    if target_type == "json":
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except ValueError:
                return value
            # A JSON-encoded string stays encoded so a second pass is a no-op
            return value if isinstance(parsed, str) else parsed
        return value

    return value


def normalize_config(handler_type: str, raw_config: Optional[dict]) -> dict:
    """Return a normalized copy of ``raw_config`` for ``handler_type``."""
    if raw_config is None:
        return {}

    normalized = dict(raw_config)

    for key, default in NODE_DEFAULTS.get(handler_type, {}).items():
        if _is_blank(normalized.get(key)):
            normalized[key] = default

    if normalized.get("operator"):
        normalized["operator"] = normalize_operator(normalized["operator"])

    if isinstance(normalized.get("conditions"), list):
        normalized["conditions"] = [
            {**condition, "operator": normalize_operator(condition.get("operator"))}
            if isinstance(condition, dict) else condition
            for condition in normalized["conditions"]
        ]

    for field_name, target_type in FIELD_TYPE_COERCIONS.get(handler_type, {}).items():
        if field_name in normalized:
            normalized[field_name] = coerce_value(normalized[field_name], target_type)

    if handler_type in COMPARISON_NODE_TYPES:
        if normalized.get("field") and not normalized.get("left"):
            normalized["left"] = normalized["field"]
        if "value" in normalized and normalized.get("right") is None:
            normalized["right"] = normalized["value"]

    return normalized


def validate_required_fields(config: dict, required_fields: list[str]) -> list[str]:
    """Return the required fields that are absent, None or empty."""
    return [name for name in required_fields if _is_blank((config or {}).get(name))]


def is_config_complete(config: dict, required_fields: list[str]) -> bool:
    return not validate_required_fields(config, required_fields)
