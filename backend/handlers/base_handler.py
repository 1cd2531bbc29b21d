"""
Base handler interface for all workflow step handlers.

Every step type (condition, HTTP request, Slack message, etc.)
must inherit from BaseHandler and implement the execute() method.
Expected failures are returned as unsuccessful results, never raised.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict

import structlog

from core.utils import utc_now
from workflow.errors import classify_error
from workflow.graph import WorkflowNode
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)


def _elapsed_ms(started_at: datetime) -> int:
    return int((utc_now() - started_at).total_seconds() * 1000)


class BaseHandler(ABC):
    """
    Abstract base class for all step handlers.

    Subclasses must implement:
    - execute(node, context, config) -> NodeExecutionResult
    - handler_type (class attribute)
    - display_name (class attribute)
    """

    handler_type: str = "base"
    display_name: str = "Base Handler"
    description: str = "Abstract base handler"

    @abstractmethod
    async def execute(
        self,
        node: WorkflowNode,
        context: ExecutionContext,
        config: Dict[str, Any],
    ) -> NodeExecutionResult:
        """
        Execute the step with its normalized, variable-resolved configuration.

        Args:
            node: The step definition
            context: Execution context of the current run
            config: Step configuration, ready to use

        Returns:
            NodeExecutionResult with output or error
        """

    def validate(self, node: WorkflowNode) -> bool:
        """Check a node's static configuration. Override where a handler can tell early."""
        return True

    async def run(
        self,
        node: WorkflowNode,
        context: ExecutionContext,
        config: Dict[str, Any],
    ) -> NodeExecutionResult:
        """
        Run the handler with timing and error handling.

        This is the main entry point called by the workflow engine.
        """
        start = time.monotonic()
        started_at = utc_now()
        logger.info(
            "Handler starting",
            handler_type=self.handler_type,
            node_id=node.id,
            node_label=node.label,
        )

        try:
            result = await self.execute(node, context, config)
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            classification = classify_error(e)
            logger.error(
                "Handler raised",
                handler_type=self.handler_type,
                node_id=node.id,
                error=classification.message,
                error_type=classification.type.value,
                duration_ms=duration_ms,
            )
            return NodeExecutionResult(
                success=False,
                error=classification.message,
                duration_ms=duration_ms,
                started_at=started_at,
                completed_at=utc_now(),
                error_type=classification.type.value,
            )

        if not result.success and result.error_type is None:
            result = replace(result, error_type=classify_error(result.error).type.value)

        logger.info(
            "Handler completed",
            handler_type=self.handler_type,
            node_id=node.id,
            success=result.success,
            duration_ms=result.duration_ms,
        )
        return result

    # ─── Result helpers ───────────────────────────────────────

    def success(self, output: Any, started_at: datetime) -> NodeExecutionResult:
        return NodeExecutionResult(
            success=True,
            output=output,
            duration_ms=_elapsed_ms(started_at),
            started_at=started_at,
            completed_at=utc_now(),
        )

    def failure(self, error: Any, started_at: datetime) -> NodeExecutionResult:
        """Build a failed result, classifying ``error`` (exception or text)."""
        classification = classify_error(error)
        logger.warning(
            "Handler failed",
            handler_type=self.handler_type,
            error=classification.message,
            error_type=classification.type.value,
        )
        return NodeExecutionResult(
            success=False,
            output=None,
            error=classification.message,
            duration_ms=_elapsed_ms(started_at),
            started_at=started_at,
            completed_at=utc_now(),
            error_type=classification.type.value,
        )
