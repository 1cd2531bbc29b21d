"""Constants and enums for the workflow execution engine."""

from enum import Enum


class ExecutionStatus(str, Enum):
    """Workflow execution status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(str, Enum):
    """Status of a single persisted execution step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class NodeType(str, Enum):
    """Declared node types as they appear in a workflow graph."""

    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    DELAY = "delay"
    LOOP = "loop"
    FILTER = "filter"
    SWITCH = "switch"
    TRANSFORM = "transform"


# Skip reasons recorded in a step's output
SKIP_REASON_BRANCH = "Conditional branch not taken"
SKIP_REASON_NO_HANDLER = "No handler available"
