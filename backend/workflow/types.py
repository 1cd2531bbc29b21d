"""Runtime types shared by the planner, the engine and the handlers."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from core.utils import label_to_slug, utc_now
from workflow.graph import WorkflowEdge, WorkflowNode


# ─── Results ──────────────────────────────────────────────────

@dataclass(frozen=True)
class NodeExecutionResult:
    """Outcome of executing (or skipping) one node.

    Frozen: once recorded in an ExecutionContext a result never changes.
    """
    success: bool
    output: Any = None
    error: Optional[str] = None
    duration_ms: int = 0
    started_at: datetime = field(default_factory=utc_now)
    completed_at: datetime = field(default_factory=utc_now)
    node_label: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return isinstance(self.output, dict) and self.output.get("skipped") is True

    def with_label(self, label: Optional[str]) -> "NodeExecutionResult":
        return replace(self, node_label=label)

    def to_dict(self) -> dict:
        """Variable-facing view: ``$node.<id>.<key>`` reads these keys."""
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "duration": self.duration_ms,
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat(),
            "nodeLabel": self.node_label,
            "errorType": self.error_type,
        }


# ─── Execution Context ────────────────────────────────────────

@dataclass
class ExecutionContext:
    """Per-run state threaded through every step.

    Owned by the engine driving the run. Never shared between runs.
    """

    workflow_id: str
    execution_id: str
    user_id: Optional[str] = None
    trigger_data: Any = None
    variables: dict[str, Any] = field(default_factory=dict)
    results: dict[str, NodeExecutionResult] = field(default_factory=dict)
    steps_by_label: dict[str, NodeExecutionResult] = field(default_factory=dict)
    current_step: Optional[int] = None

    def record_result(self, node_id: str, result: NodeExecutionResult) -> None:
        """Store a result under its node id and, when labelled, its label slug."""
        self.results[node_id] = result
        if result.node_label:
            slug = label_to_slug(result.node_label)
            if slug:
                self.steps_by_label[slug] = result

    def set_variable(self, key: str, value: Any) -> None:
        self.variables[key] = value

    def get_variable(self, key: str, default: Any = None) -> Any:
        return self.variables.get(key, default)

    def get_node_output(self, node_id: str) -> Any:
        """Get the output of a previously executed node."""
        result = self.results.get(node_id)
        return result.output if result else None

    def to_dict(self) -> dict:
        return {
            "workflow_id": self.workflow_id,
            "execution_id": self.execution_id,
            "user_id": self.user_id,
            "trigger_data": self.trigger_data,
            "variables": self.variables,
            "results": {nid: r.to_dict() for nid, r in self.results.items()},
            "current_step": self.current_step,
        }


# ─── Plan ─────────────────────────────────────────────────────

@dataclass
class ExecutionStep:
    """A node placed in execution order with its graph neighbourhood."""
    step_order: int
    node_id: str
    node: WorkflowNode
    dependencies: list[str] = field(default_factory=list)
    edges: list[WorkflowEdge] = field(default_factory=list)


@dataclass
class ExecutionPlan:
    """Topologically ordered steps for a single run."""
    steps: list[ExecutionStep] = field(default_factory=list)
    _index: dict[str, ExecutionStep] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._index = {step.node_id: step for step in self.steps}

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def node_ids(self) -> list[str]:
        return [step.node_id for step in self.steps]

    def get_step(self, node_id: str) -> Optional[ExecutionStep]:
        return self._index.get(node_id)


@dataclass
class ValidationResult:
    """Outcome of structural graph validation. Errors are collected, not short-circuited."""
    valid: bool
    errors: list[str] = field(default_factory=list)
