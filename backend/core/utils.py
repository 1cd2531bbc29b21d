"""
Utility functions for the workflow execution engine.

Includes:
- Label slug generation
- UTC datetime helpers
- JSON-safe serialization for persisted summaries
"""

import json
import re
from datetime import datetime, timezone
from typing import Any

LABEL_SLUG_MAX_LENGTH = 20


def label_to_slug(label: str) -> str:
    """
    Convert a node label into the slug used by ``$steps.<slug>`` references.

    Lowercases, collapses every run of non-alphanumeric characters into a
    single underscore, trims leading/trailing underscores and caps the
    result at 20 characters.

    Args:
        label: Node display label

    Returns:
        Identifier-safe slug
    """
    if not label:
        return ""
    slug = re.sub(r"[^a-z0-9]+", "_", label.lower())
    slug = slug.strip("_")
    return slug[:LABEL_SLUG_MAX_LENGTH]


def utc_now() -> datetime:
    """
    Get the current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def safe_serialize(obj: Any, max_chars: int = 10000, depth: int = 0) -> Any:
    """Recursively ensure all values are JSON-serializable."""
    if depth > 10:
        return str(obj)
    if obj is None or isinstance(obj, (bool, int, float)):
        return obj
    if isinstance(obj, str):
        return obj[:max_chars] if len(obj) > max_chars else obj
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): safe_serialize(v, max_chars, depth + 1) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [safe_serialize(v, max_chars, depth + 1) for v in obj]
    if hasattr(obj, "to_dict"):
        return safe_serialize(obj.to_dict(), max_chars, depth + 1)
    return str(obj)


def serialize_output_summary(output: Any, max_chars: int = 10000) -> str | None:
    """Serialize a step output for the ``output_summary`` column."""
    if output is None:
        return None
    return json.dumps(safe_serialize(output, max_chars))
