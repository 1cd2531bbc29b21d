"""Canonical workflow graph model and the raw-shape adapter.

Workflow graphs reach the engine in several historical encodings:

    # Flat (stored graphs)
    {"id": "n1", "type": "trigger", "label": "Webhook", "config": {...}}

    # Nested (editor nodes)
    {"id": "n1", "type": "custom", "data": {"nodeType": "trigger", "label": "Webhook"}}

    # Direct
    {"id": "n1", "nodeType": "trigger", "label": "Webhook"}

normalize_node() is the only place that knows about these shapes. Everything
downstream (planner, engine, handlers) works with WorkflowNode.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from core.exceptions import ValidationError

DEFAULT_NODE_TYPE = "action"
DEFAULT_NODE_LABEL = "Unknown"


@dataclass
class WorkflowNode:
    """A single step definition with a resolved declared type."""
    id: str
    node_type: str
    label: str = DEFAULT_NODE_LABEL
    icon: Optional[str] = None
    config: dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nodeType": self.node_type,
            "label": self.label,
            "icon": self.icon,
            "config": self.config,
            "description": self.description,
        }


@dataclass
class WorkflowEdge:
    """Directed connection between two nodes, optionally tagged with a branch."""
    id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    label: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "sourceHandle": self.source_handle,
            "label": self.label,
        }


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def normalize_node(raw: Any) -> WorkflowNode:
    """Convert any accepted node shape into a WorkflowNode.

    Type precedence: ``nodeType`` > ``data.nodeType`` > ``type``. Editor
    nodes carry a rendering type (e.g. "custom") in ``type``, so the
    explicit node type always wins.
    """
    if isinstance(raw, WorkflowNode):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError(f"Unsupported node shape: {type(raw).__name__}")

    data = raw.get("data") if isinstance(raw.get("data"), dict) else {}

    node_type = (
        _non_empty_str(raw.get("nodeType"))
        or _non_empty_str(data.get("nodeType"))
        or _non_empty_str(raw.get("type"))
        or DEFAULT_NODE_TYPE
    )
    label = _non_empty_str(raw.get("label")) or _non_empty_str(data.get("label")) or DEFAULT_NODE_LABEL
    icon = _non_empty_str(raw.get("icon")) or _non_empty_str(data.get("icon"))

    config = raw.get("config")
    if not isinstance(config, dict):
        config = data.get("config")
    if not isinstance(config, dict):
        config = {}

    description = raw.get("description", data.get("description"))

    return WorkflowNode(
        id=str(raw.get("id") or ""),
        node_type=node_type,
        label=label,
        icon=icon,
        config=dict(config),
        description=description,
    )


def normalize_edge(raw: Any) -> WorkflowEdge:
    """Convert a raw edge dict into a WorkflowEdge."""
    if isinstance(raw, WorkflowEdge):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError(f"Unsupported edge shape: {type(raw).__name__}")

    source = str(raw.get("source") or "")
    target = str(raw.get("target") or "")
    return WorkflowEdge(
        id=str(raw.get("id") or f"{source}->{target}"),
        source=source,
        target=target,
        source_handle=_non_empty_str(raw.get("sourceHandle")),
        label=raw.get("label"),
    )


def normalize_graph(
    nodes: Iterable[Any], edges: Iterable[Any]
) -> tuple[list[WorkflowNode], list[WorkflowEdge]]:
    """Normalize a whole raw graph."""
    return [normalize_node(n) for n in nodes or []], [normalize_edge(e) for e in edges or []]
