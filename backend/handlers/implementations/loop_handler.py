"""Loop handlers.

Loops produce iteration descriptors. The engine runs each step once, so
downstream steps read the descriptors (``items``, ``iterations``) rather
than being re-executed per item.
"""

import json
from typing import Any, Dict

import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from workflow.errors import ErrorType, WorkflowExecutionError
from workflow.graph import WorkflowNode
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 1000


class ForEachLoopHandler(BaseHandler):
    """Describe an iteration over an array.

    Config:
        array: List, or a JSON string holding one (a plain string becomes a single item)
        itemVariable: Name downstream steps use for the current item (default: item)
        maxIterations: Items beyond this count are dropped (default: 100)
    """

    handler_type = "loop:foreach"
    display_name = "For Each"
    description = "Iterate over the items of an array"

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()
        items = config.get("array")

        if isinstance(items, str):
            try:
                items = json.loads(items)
            except ValueError:
                items = [items]

        if not isinstance(items, list):
            return self.failure(
                WorkflowExecutionError("Array to iterate is not an array", ErrorType.VALIDATION_ERROR),
                started_at,
            )

        max_iterations = config.get("maxIterations")
        if isinstance(max_iterations, int) and 0 < max_iterations < len(items):
            logger.warning(
                "For-each items truncated to maximum",
                node_id=node.id,
                requested=len(items),
                max=max_iterations,
            )
            items = items[:max_iterations]

        logger.info("Executing for-each loop", node_id=node.id, item_count=len(items))

        return self.success(
            {
                "items": items,
                "count": len(items),
                "results": [{"item": item, "index": index} for index, item in enumerate(items)],
                "itemVariable": config.get("itemVariable", "item"),
                "currentItem": items[0] if items else None,
                "currentIndex": 0,
            },
            started_at,
        )


class RepeatLoopHandler(BaseHandler):
    """Describe a fixed number of iterations.

    Config:
        count: Number of iterations, at least 1 and capped at the handler maximum
        indexVariable: Name downstream steps use for the index (default: index)
    """

    handler_type = "loop:repeat"
    display_name = "Repeat"
    description = "Repeat a number of times"

    def __init__(self, max_iterations: int = DEFAULT_MAX_ITERATIONS):
        self.max_iterations = max_iterations

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()

        count = config.get("count")
        try:
            count = int(count)
        except (TypeError, ValueError):
            count = 1
        if count < 1:
            count = 1

        if count > self.max_iterations:
            logger.warning(
                "Repeat count capped at maximum",
                node_id=node.id,
                requested=count,
                max=self.max_iterations,
            )
            count = self.max_iterations

        logger.info("Executing repeat loop", node_id=node.id, count=count)

        return self.success(
            {
                "count": count,
                "iterations": list(range(count)),
                "indexVariable": config.get("indexVariable", "index"),
                "currentIndex": 0,
            },
            started_at,
        )
