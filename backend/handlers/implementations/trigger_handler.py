"""Trigger handler.

Trigger nodes run no action of their own: they surface the payload the
run was started with (webhook body, form submission, schedule tick).
"""

from typing import Any, Dict

import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from workflow.graph import WorkflowNode
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)


class TriggerHandler(BaseHandler):
    """Pass trigger data through as the step output."""

    handler_type = "trigger"
    display_name = "Trigger"
    description = "Start a workflow with the received trigger data"

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()
        trigger_data = context.trigger_data if context.trigger_data is not None else {}

        logger.info(
            "Processing trigger node",
            node_id=node.id,
            trigger_data_keys=list(trigger_data.keys()) if isinstance(trigger_data, dict) else None,
        )

        return self.success(
            {
                "data": trigger_data,
                "message": "Trigger data passed through successfully",
            },
            started_at,
        )
