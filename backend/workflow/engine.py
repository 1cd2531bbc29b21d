"""
Workflow Engine - Core orchestrator for workflow execution.

Runs a workflow graph as a single sequential pass: validate, plan,
then execute every step in topological order. Each step goes through
handler-type resolution, config normalization, variable resolution and
the retry wrapper before its result is recorded in the run's
ExecutionContext. Condition nodes prune the branches they did not take.

The engine holds no per-run state; concurrent runs each get their own
ExecutionContext.
"""

import time
from typing import Any, Iterator, Optional
from uuid import uuid4

import structlog

from app.config import get_settings
from core.constants import (
    SKIP_REASON_BRANCH,
    SKIP_REASON_NO_HANDLER,
    ExecutionStatus,
    NodeType,
    StepStatus,
)
from core.exceptions import (
    EngineException,
    NotFoundError,
    StepExecutionError,
    WorkflowValidationError,
)
from core.logging_config import bind_execution_context, clear_execution_context
from core.utils import serialize_output_summary, utc_now
from db.store import ExecutionRecord, ExecutionStore, StepRecord
from handlers.handler_types import determine_handler_type
from handlers.registry import HandlerRegistry
from workflow.config_normalizer import normalize_config
from workflow.errors import ErrorType, WorkflowExecutionError, classify_error, is_retryable_type
from workflow.graph import WorkflowNode
from workflow.planner import ExecutionPlanner
from workflow.retry_strategies import RetryPolicy, with_retry
from workflow.types import ExecutionContext, ExecutionPlan, ExecutionStep, NodeExecutionResult
from workflow.variables import VariableResolver

logger = structlog.get_logger(__name__)


class _RetryableStepFailure(WorkflowExecutionError):
    """Carries a failed handler result through the retry wrapper."""

    def __init__(self, result: NodeExecutionResult, error_type: ErrorType):
        self.result = result
        super().__init__(result.error or "Step failed", error_type=error_type, retryable=True)


def _iter_strings(value: Any) -> Iterator[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _iter_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_strings(item)


def _error_type_of(result: NodeExecutionResult) -> ErrorType:
    if result.error_type in ErrorType._value2member_map_:
        return ErrorType(result.error_type)
    # Unknown or missing type: fall back to the message
    return classify_error(result.error).type


class WorkflowEngine:
    """Executes workflow graphs step by step.

    Usage:
        engine = WorkflowEngine(registry=create_default_registry(), store=InMemoryExecutionStore())
        context = await engine.execute_workflow(workflow_id, trigger_data={"amount": 750})
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        store: ExecutionStore,
        resolver: Optional[VariableResolver] = None,
        retry_policy: Optional[RetryPolicy] = None,
        settings=None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry
        self.store = store
        self.resolver = resolver or VariableResolver()
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)

    # ─── Entry points ─────────────────────────────────────────

    async def execute_workflow(
        self,
        workflow_id: str,
        execution_id: Optional[str] = None,
        trigger_data: Any = None,
        user_id: Optional[str] = None,
    ) -> ExecutionContext:
        """Load a stored workflow and run it.

        Raises:
            NotFoundError: The workflow does not exist (the run is recorded as failed).
            WorkflowValidationError: The graph failed validation.
            StepExecutionError: A step failed.
        """
        execution_id = execution_id or str(uuid4())
        graph = await self.store.get_workflow_graph(workflow_id)
        if graph is None:
            message = f"Workflow not found: {workflow_id}"
            now = utc_now()
            await self.store.save_execution(ExecutionRecord(
                execution_id=execution_id,
                workflow_id=workflow_id,
                status=ExecutionStatus.FAILED.value,
                started_at=now,
                completed_at=now,
                duration_ms=0,
                error=message,
            ))
            logger.error("Workflow not found", workflow_id=workflow_id, execution_id=execution_id)
            raise NotFoundError(message)

        return await self.execute_graph(
            graph.nodes,
            graph.edges,
            workflow_id=workflow_id,
            execution_id=execution_id,
            trigger_data=trigger_data,
            user_id=user_id,
        )

    async def execute_graph(
        self,
        nodes: list,
        edges: list,
        *,
        workflow_id: str,
        execution_id: Optional[str] = None,
        trigger_data: Any = None,
        user_id: Optional[str] = None,
    ) -> ExecutionContext:
        """Validate, plan and execute a raw node/edge graph.

        Returns:
            The run's ExecutionContext with every step result recorded.
        """
        execution_id = execution_id or str(uuid4())
        bind_execution_context(workflow_id, execution_id)
        start = time.monotonic()
        started_at = utc_now()

        try:
            await self.store.save_execution(ExecutionRecord(
                execution_id=execution_id,
                workflow_id=workflow_id,
                status=ExecutionStatus.RUNNING.value,
                started_at=started_at,
            ))
            logger.info("Workflow execution started", node_count=len(nodes), edge_count=len(edges))

            context = ExecutionContext(
                workflow_id=workflow_id,
                execution_id=execution_id,
                user_id=user_id,
                trigger_data=trigger_data,
            )

            try:
                validation = ExecutionPlanner.validate(nodes, edges)
                if not validation.valid:
                    raise WorkflowValidationError(validation.errors)

                plan = ExecutionPlanner.create_plan(nodes, edges)
                await self.execute_plan(plan, context)
            except Exception as e:
                completed_at = utc_now()
                message = e.message if isinstance(e, EngineException) else str(e)
                await self.store.save_execution(ExecutionRecord(
                    execution_id=execution_id,
                    workflow_id=workflow_id,
                    status=ExecutionStatus.FAILED.value,
                    completed_at=completed_at,
                    duration_ms=int((time.monotonic() - start) * 1000),
                    error=message,
                ))
                logger.error("Workflow execution failed", error=message, error_class=type(e).__name__)
                raise

            completed_at = utc_now()
            duration_ms = int((time.monotonic() - start) * 1000)
            await self.store.save_execution(ExecutionRecord(
                execution_id=execution_id,
                workflow_id=workflow_id,
                status=ExecutionStatus.COMPLETED.value,
                completed_at=completed_at,
                duration_ms=duration_ms,
            ))
            await self.store.record_workflow_run(workflow_id, completed_at)
            logger.info(
                "Workflow execution completed",
                steps=plan.total_steps,
                duration_ms=duration_ms,
            )
            return context
        finally:
            clear_execution_context()

    async def execute_plan(self, plan: ExecutionPlan, context: ExecutionContext) -> ExecutionContext:
        """Execute planned steps in order, stopping at the first failure.

        Raises:
            StepExecutionError: A step returned an unsuccessful result.
        """
        skipped: set[str] = set()

        for step in plan.steps:
            context.current_step = step.step_order
            node = step.node

            if step.node_id in skipped:
                result = NodeExecutionResult(
                    success=True,
                    output={"skipped": True, "reason": SKIP_REASON_BRANCH},
                    node_label=node.label,
                )
                context.record_result(node.id, result)
                await self._save_step(context, step, StepStatus.SKIPPED, result)
                logger.info("Step skipped", node_id=node.id, node_label=node.label, reason=SKIP_REASON_BRANCH)
                continue

            result = await self._execute_step(step, context)
            context.record_result(node.id, result)

            if not result.success:
                raise StepExecutionError(node.label, result.error, result.error_type, node_id=node.id)

            if node.node_type == NodeType.CONDITION.value and isinstance(result.output, dict):
                branch = result.output.get("branch")
                if branch:
                    for edge in step.edges:
                        if edge.source_handle and edge.source_handle != branch:
                            self._mark_branch_for_skipping(edge.target, node.id, plan, skipped)

        return context

    # ─── Steps ────────────────────────────────────────────────

    async def _execute_step(self, step: ExecutionStep, context: ExecutionContext) -> NodeExecutionResult:
        node = step.node
        handler_type = determine_handler_type(node)
        started_at = utc_now()
        start = time.monotonic()

        await self._save_step(context, step, StepStatus.RUNNING, started_at=started_at)
        logger.info(
            "Executing step",
            step=step.step_order,
            node_id=node.id,
            node_label=node.label,
            handler_type=handler_type,
        )

        try:
            config = normalize_config(handler_type, node.config)
            self._warn_unresolved(node, config, context)
            config = self.resolver.resolve_value(config, context)

            handler = self.registry.get(handler_type)
            if handler is None:
                logger.warning("No handler available", node_id=node.id, handler_type=handler_type)
                result = NodeExecutionResult(
                    success=True,
                    output={"skipped": True, "reason": SKIP_REASON_NO_HANDLER},
                    started_at=started_at,
                    completed_at=utc_now(),
                    node_label=node.label,
                )
                await self._save_step(context, step, StepStatus.SKIPPED, result)
                return result

            if not handler.validate(node):
                logger.warning("Handler rejected node configuration", node_id=node.id, handler_type=handler_type)

            policy = self._policy_for(config)

            async def attempt() -> NodeExecutionResult:
                outcome = await handler.run(node, context, config)
                if not outcome.success:
                    error_type = _error_type_of(outcome)
                    if is_retryable_type(error_type):
                        raise _RetryableStepFailure(outcome, error_type)
                return outcome

            try:
                result = await with_retry(
                    attempt,
                    policy,
                    context={"node_id": node.id, "handler_type": handler_type},
                )
            except _RetryableStepFailure as e:
                result = e.result
        except Exception as e:
            classification = classify_error(e)
            logger.error(
                "Step raised",
                node_id=node.id,
                error=classification.message,
                error_type=classification.type.value,
            )
            result = NodeExecutionResult(
                success=False,
                error=classification.message,
                duration_ms=int((time.monotonic() - start) * 1000),
                started_at=started_at,
                completed_at=utc_now(),
                error_type=classification.type.value,
            )

        result = result.with_label(node.label)
        status = StepStatus.COMPLETED if result.success else StepStatus.FAILED
        await self._save_step(context, step, status, result)
        return result

    def _policy_for(self, config: dict) -> RetryPolicy:
        override = config.get("retry")
        if isinstance(override, dict):
            return RetryPolicy.from_dict(override, base=self.retry_policy)
        return self.retry_policy

    def _warn_unresolved(self, node: WorkflowNode, config: dict, context: ExecutionContext) -> None:
        missing: list[str] = []
        for text in _iter_strings(config):
            ok, unresolved = self.resolver.validate_variables(text, context)
            if not ok:
                missing.extend(v for v in unresolved if v not in missing)
        if missing:
            logger.warning("Unresolvable variables in step config", node_id=node.id, variables=missing)

    async def _save_step(
        self,
        context: ExecutionContext,
        step: ExecutionStep,
        status: StepStatus,
        result: Optional[NodeExecutionResult] = None,
        started_at=None,
    ) -> None:
        record = StepRecord(
            execution_id=context.execution_id,
            node_id=step.node_id,
            name=step.node.label,
            type=step.node.node_type,
            status=status.value,
            started_at=started_at,
            step_order=step.step_order,
        )
        if result is not None:
            record.started_at = started_at or result.started_at
            record.completed_at = result.completed_at
            record.duration_ms = result.duration_ms
            record.output_summary = serialize_output_summary(result.output, self.settings.OUTPUT_SUMMARY_MAX_CHARS)
            record.error = result.error
        await self.store.save_step(record)

    # ─── Branch skipping ──────────────────────────────────────

    @staticmethod
    def _mark_branch_for_skipping(
        node_id: str,
        condition_node_id: str,
        plan: ExecutionPlan,
        skipped: set[str],
    ) -> None:
        """Mark ``node_id`` and its descendants skipped unless another live path reaches them.

        A node stays live while any of its dependencies is neither the
        condition node nor already skipped.
        """
        stack = [node_id]
        while stack:
            current = stack.pop()
            if current in skipped:
                continue
            step = plan.get_step(current)
            if step is None:
                continue

            active = [
                dep for dep in step.dependencies
                if dep != condition_node_id and dep not in skipped
            ]
            if active:
                continue

            skipped.add(current)
            for edge in reversed(step.edges):
                stack.append(edge.target)
