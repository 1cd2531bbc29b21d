"""Delay handler: pauses the run for a configured duration."""

import asyncio
import math
from typing import Any, Dict

import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from workflow.errors import ErrorType, WorkflowExecutionError
from workflow.graph import WorkflowNode
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)

UNIT_MULTIPLIERS_MS = {
    "milliseconds": 1,
    "seconds": 1000,
    "minutes": 60 * 1000,
    "hours": 60 * 60 * 1000,
}

MAX_DELAY_MS = 3_600_000


class DelayHandler(BaseHandler):
    """Wait before continuing.

    Config:
        duration: Amount of time to wait (default: 1000)
        unit: milliseconds | seconds | minutes | hours (default: milliseconds)

    The wait is an asyncio sleep: other runs keep executing meanwhile.
    """

    handler_type = "delay"
    display_name = "Delay"
    description = "Wait for a duration before the next step"

    def __init__(self, max_delay_ms: int = MAX_DELAY_MS):
        self.max_delay_ms = max_delay_ms

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()

        duration = config.get("duration", 1000)
        unit = config.get("unit") or "milliseconds"

        if (
            isinstance(duration, bool)
            or not isinstance(duration, (int, float))
            or not math.isfinite(duration)
            or duration < 0
        ):
            return self.failure(
                WorkflowExecutionError(
                    f"Invalid delay duration: {duration!r}", ErrorType.VALIDATION_ERROR
                ),
                started_at,
            )

        delay_ms = int(duration * UNIT_MULTIPLIERS_MS.get(unit, 1))
        if delay_ms > self.max_delay_ms:
            return self.failure(
                WorkflowExecutionError(
                    f"Maximum delay is {self.max_delay_ms // 60000} minutes",
                    ErrorType.VALIDATION_ERROR,
                ),
                started_at,
            )

        logger.info(f"Delaying for {delay_ms}ms", node_id=node.id, delay_ms=delay_ms)
        await asyncio.sleep(delay_ms / 1000)

        return self.success({"delayMs": delay_ms, "unit": unit, "duration": duration}, started_at)
