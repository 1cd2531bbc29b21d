"""Condition handler: evaluates a comparison and picks the yes/no branch."""

from typing import Any, Dict

import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from handlers.implementations.comparison import compare
from workflow.errors import ErrorType, WorkflowExecutionError
from workflow.graph import WorkflowNode
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)

BRANCH_YES = "yes"
BRANCH_NO = "no"


class ConditionHandler(BaseHandler):
    """Evaluate ``left <operator> right``.

    Config:
        left: Value to test (``field`` is accepted as an alias)
        operator: Canonical operator name (default: equals)
        right: Value to compare against (``value`` is accepted as an alias)

    Output:
        {"result": bool, "branch": "yes" | "no", "left", "operator", "right"}
    """

    handler_type = "condition"
    display_name = "Condition"
    description = "Branch the workflow on a comparison"

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()

        left = config.get("left", config.get("field"))
        operator = config.get("operator")
        right = config.get("right", config.get("value"))

        logger.info("Evaluating condition", node_id=node.id, left=left, operator=operator, right=right)

        if left is None:
            return self.failure(
                WorkflowExecutionError("Left value is required", ErrorType.VALIDATION_ERROR), started_at
            )
        if not operator:
            return self.failure(
                WorkflowExecutionError("Operator is required", ErrorType.VALIDATION_ERROR), started_at
            )

        try:
            result = compare(left, operator, right)
        except WorkflowExecutionError as e:
            return self.failure(e, started_at)

        return self.success(
            {
                "result": result,
                "branch": BRANCH_YES if result else BRANCH_NO,
                "left": left,
                "operator": operator,
                "right": right,
            },
            started_at,
        )

    def validate(self, node: WorkflowNode) -> bool:
        config = node.config or {}
        return config.get("left", config.get("field")) is not None
