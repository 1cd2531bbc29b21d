"""Execution persistence.

ExecutionStore is the engine's only view of storage: workflow graph
lookup, run statistics, and upserts of execution and step records.
Writes are upserts keyed by execution id and by (execution id, node id);
fields passed as None leave the stored value unchanged.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

import structlog
from sqlalchemy import select

from db.models import Execution, ExecutionStep, Workflow

logger = structlog.get_logger(__name__)


@dataclass
class WorkflowGraph:
    """Stored graph of a workflow, in its raw node/edge shape."""
    workflow_id: str
    nodes: list = field(default_factory=list)
    edges: list = field(default_factory=list)
    name: Optional[str] = None


@dataclass
class ExecutionRecord:
    execution_id: str
    workflow_id: str
    status: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None


@dataclass
class StepRecord:
    execution_id: str
    node_id: str
    name: str
    type: str
    status: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    output_summary: Optional[str] = None
    error: Optional[str] = None
    step_order: int = 0


@dataclass
class WorkflowStats:
    execution_count: int = 0
    last_run_at: Optional[datetime] = None


def _merge(existing, update):
    """Overlay the non-None fields of ``update`` onto ``existing``."""
    changes = {f.name: getattr(update, f.name) for f in fields(update) if getattr(update, f.name) is not None}
    return replace(existing, **changes)


class ExecutionStore(ABC):
    """Persistence contract used by the workflow engine."""

    @abstractmethod
    async def get_workflow_graph(self, workflow_id: str) -> Optional[WorkflowGraph]:
        """Load a workflow's graph, or None if the workflow does not exist."""

    @abstractmethod
    async def save_execution(self, record: ExecutionRecord) -> None:
        """Insert or update an execution record."""

    @abstractmethod
    async def save_step(self, record: StepRecord) -> None:
        """Insert or update the record of one step of a run."""

    @abstractmethod
    async def record_workflow_run(self, workflow_id: str, completed_at: datetime) -> None:
        """Count a successful run in the workflow's statistics."""

    @abstractmethod
    async def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        ...

    @abstractmethod
    async def list_steps(self, execution_id: str) -> list[StepRecord]:
        """Step records of a run, in plan order."""

    @abstractmethod
    async def get_workflow_stats(self, workflow_id: str) -> Optional[WorkflowStats]:
        ...


# ─── In-memory ────────────────────────────────────────────────

class InMemoryExecutionStore(ExecutionStore):
    """Dict-backed store for tests and single-process use."""

    def __init__(self):
        self.workflows: dict[str, WorkflowGraph] = {}
        self.stats: dict[str, WorkflowStats] = {}
        self.executions: dict[str, ExecutionRecord] = {}
        self.steps: dict[tuple[str, str], StepRecord] = {}

    def add_workflow(self, nodes: list, edges: list, workflow_id: Optional[str] = None, name: Optional[str] = None) -> str:
        workflow_id = workflow_id or str(uuid4())
        self.workflows[workflow_id] = WorkflowGraph(workflow_id, list(nodes), list(edges), name)
        self.stats.setdefault(workflow_id, WorkflowStats())
        return workflow_id

    async def get_workflow_graph(self, workflow_id: str) -> Optional[WorkflowGraph]:
        return self.workflows.get(workflow_id)

    async def save_execution(self, record: ExecutionRecord) -> None:
        existing = self.executions.get(record.execution_id)
        self.executions[record.execution_id] = _merge(existing, record) if existing else replace(record)

    async def save_step(self, record: StepRecord) -> None:
        key = (record.execution_id, record.node_id)
        existing = self.steps.get(key)
        self.steps[key] = _merge(existing, record) if existing else replace(record)

    async def record_workflow_run(self, workflow_id: str, completed_at: datetime) -> None:
        stats = self.stats.setdefault(workflow_id, WorkflowStats())
        stats.execution_count += 1
        stats.last_run_at = completed_at

    async def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        return self.executions.get(execution_id)

    async def list_steps(self, execution_id: str) -> list[StepRecord]:
        steps = [s for (eid, _), s in self.steps.items() if eid == execution_id]
        return sorted(steps, key=lambda s: s.step_order)

    async def get_workflow_stats(self, workflow_id: str) -> Optional[WorkflowStats]:
        return self.stats.get(workflow_id)


# ─── SQLAlchemy ───────────────────────────────────────────────

def _apply(model: Any, record: Any, skip: tuple[str, ...]) -> None:
    for f in fields(record):
        if f.name in skip:
            continue
        value = getattr(record, f.name)
        if value is not None:
            setattr(model, f.name, value)


class SqlAlchemyExecutionStore(ExecutionStore):
    """Store backed by the ``workflows``, ``executions`` and ``execution_steps`` tables.

    Every call runs in its own session and commits before returning, so
    concurrent runs never share a session.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def add_workflow(
        self,
        nodes: list,
        edges: list,
        workflow_id: Optional[str] = None,
        name: str = "Untitled workflow",
        user_id: Optional[str] = None,
    ) -> str:
        async with self.session_factory() as session:
            workflow = Workflow(
                id=workflow_id or str(uuid4()),
                name=name,
                user_id=user_id,
                nodes=list(nodes),
                edges=list(edges),
                node_count=len(nodes),
            )
            session.add(workflow)
            await session.commit()
            return workflow.id

    async def get_workflow_graph(self, workflow_id: str) -> Optional[WorkflowGraph]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Workflow).where(Workflow.id == workflow_id, Workflow.is_deleted == False)  # noqa: E712
            )
            workflow = result.scalar_one_or_none()
            if workflow is None:
                return None
            return WorkflowGraph(workflow.id, list(workflow.nodes or []), list(workflow.edges or []), workflow.name)

    async def save_execution(self, record: ExecutionRecord) -> None:
        async with self.session_factory() as session:
            execution = await session.get(Execution, record.execution_id)
            if execution is None:
                execution = Execution(id=record.execution_id, workflow_id=record.workflow_id)
                session.add(execution)
            _apply(execution, record, skip=("execution_id", "workflow_id"))
            await session.commit()

    async def save_step(self, record: StepRecord) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ExecutionStep).where(
                    ExecutionStep.execution_id == record.execution_id,
                    ExecutionStep.node_id == record.node_id,
                )
            )
            step = result.scalar_one_or_none()
            if step is None:
                step = ExecutionStep(execution_id=record.execution_id, node_id=record.node_id)
                session.add(step)
            _apply(step, record, skip=("execution_id", "node_id"))
            await session.commit()

    async def record_workflow_run(self, workflow_id: str, completed_at: datetime) -> None:
        async with self.session_factory() as session:
            workflow = await session.get(Workflow, workflow_id)
            if workflow is None:
                logger.warning("Run statistics skipped, workflow not stored", workflow_id=workflow_id)
                return
            workflow.execution_count = (workflow.execution_count or 0) + 1
            workflow.last_run_at = completed_at
            await session.commit()

    async def get_execution(self, execution_id: str) -> Optional[ExecutionRecord]:
        async with self.session_factory() as session:
            execution = await session.get(Execution, execution_id)
            if execution is None:
                return None
            return ExecutionRecord(
                execution_id=execution.id,
                workflow_id=execution.workflow_id,
                status=execution.status,
                started_at=execution.started_at,
                completed_at=execution.completed_at,
                duration_ms=execution.duration_ms,
                error=execution.error,
            )

    async def list_steps(self, execution_id: str) -> list[StepRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ExecutionStep)
                .where(ExecutionStep.execution_id == execution_id)
                .order_by(ExecutionStep.step_order)
            )
            return [
                StepRecord(
                    execution_id=s.execution_id,
                    node_id=s.node_id,
                    name=s.name,
                    type=s.type,
                    status=s.status,
                    started_at=s.started_at,
                    completed_at=s.completed_at,
                    duration_ms=s.duration_ms,
                    output_summary=s.output_summary,
                    error=s.error,
                    step_order=s.step_order,
                )
                for s in result.scalars().all()
            ]

    async def get_workflow_stats(self, workflow_id: str) -> Optional[WorkflowStats]:
        async with self.session_factory() as session:
            workflow = await session.get(Workflow, workflow_id)
            if workflow is None:
                return None
            return WorkflowStats(workflow.execution_count or 0, workflow.last_run_at)
