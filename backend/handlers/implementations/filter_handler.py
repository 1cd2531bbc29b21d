"""Filter handler: keeps the array items whose field passes a comparison."""

import json
from typing import Any, Dict

import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from handlers.implementations.comparison import compare, get_path
from workflow.errors import ErrorType, WorkflowExecutionError
from workflow.graph import WorkflowNode
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)


class FilterHandler(BaseHandler):
    """Filter an array of items.

    Config:
        array: List of items, or a JSON string holding one
        field: Dot path into each item (empty compares the item itself)
        operator: Canonical operator, plus exists / not_exists / regex (default: equals)
        filterValue: Value to compare against (``value`` is accepted as an alias)

    Text operators (contains, starts_with, ends_with) ignore case.
    """

    handler_type = "filter"
    display_name = "Filter"
    description = "Keep only the items matching a condition"

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()
        items = config.get("array")

        if isinstance(items, str):
            try:
                items = json.loads(items)
            except ValueError:
                return self.failure(
                    WorkflowExecutionError("Invalid array data: could not parse", ErrorType.VALIDATION_ERROR),
                    started_at,
                )

        if not isinstance(items, list):
            return self.failure(
                WorkflowExecutionError("Input is not an array", ErrorType.VALIDATION_ERROR), started_at
            )

        field_path = config.get("field")
        operator = config.get("operator") or "equals"
        filter_value = config.get("filterValue", config.get("value"))

        logger.info(
            "Executing filter",
            node_id=node.id,
            input_count=len(items),
            field=field_path,
            operator=operator,
        )

        try:
            kept = [
                item for item in items
                if compare(get_path(item, field_path), operator, filter_value, case_sensitive=False)
            ]
        except WorkflowExecutionError as e:
            return self.failure(e, started_at)

        logger.info("Filter complete", input_count=len(items), output_count=len(kept))

        return self.success(
            {
                "items": kept,
                "count": len(kept),
                "originalCount": len(items),
                "filtered": len(items) - len(kept),
            },
            started_at,
        )
