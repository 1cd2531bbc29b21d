"""Shared helper to execute a stored workflow in one call.

Wires settings, the handler registry, the execution store and
the WorkflowEngine, runs a single execution and returns a JSON-safe
summary. Failures are reported in the summary rather than raised, so
callers in background threads never lose a run silently.

Usage from an async context::

    from worker.run_workflow import run_workflow_async
    summary = await run_workflow_async(workflow_id, trigger_data={"amount": 750})

Usage from a synchronous context (thread / script)::

    from worker.run_workflow import run_workflow_sync
    summary = run_workflow_sync(workflow_id, trigger_data={"amount": 750})
"""

import asyncio
import time
from typing import Any, Optional
from uuid import uuid4

import structlog

from app.config import get_settings
from core.constants import ExecutionStatus
from core.exceptions import EngineException, WorkflowValidationError
from core.logging_config import setup_logging
from core.utils import safe_serialize
from db.database import close_db, create_db_engine, create_session_factory, init_db
from db.store import ExecutionStore, SqlAlchemyExecutionStore
from handlers.registry import HandlerRegistry, create_default_registry
from workflow.engine import WorkflowEngine
from workflow.error_messages import format_error_for_display
from workflow.types import ExecutionContext

logger = structlog.get_logger(__name__)


def _summarize_context(context: ExecutionContext, max_chars: int) -> dict:
    return {
        nid: {
            "success": r.success,
            "label": r.node_label,
            "output": safe_serialize(r.output, max_chars),
            "error": r.error,
            "duration_ms": r.duration_ms,
        }
        for nid, r in context.results.items()
    }


# ── Core async runner ───────────────────────────────────────────

async def run_workflow_async(
    workflow_id: str,
    trigger_data: Any = None,
    execution_id: Optional[str] = None,
    user_id: Optional[str] = None,
    *,
    store: Optional[ExecutionStore] = None,
    registry: Optional[HandlerRegistry] = None,
    settings=None,
) -> dict:
    """Run one execution of a stored workflow.

    Without an injected ``store`` a fresh database engine is created for
    the run and disposed afterwards (safe for background threads).

    Returns:
        Summary dict with execution_id, status, duration_ms, error and
        per-step results.
    """
    settings = settings or get_settings()
    execution_id = execution_id or str(uuid4())
    db_engine = None

    if store is None:
        db_engine = create_db_engine(settings.DATABASE_URL)
        await init_db(db_engine)
        store = SqlAlchemyExecutionStore(create_session_factory(db_engine))

    engine = WorkflowEngine(
        registry=registry or create_default_registry(settings=settings),
        store=store,
        settings=settings,
    )

    start = time.monotonic()
    summary: dict = {
        "execution_id": execution_id,
        "workflow_id": workflow_id,
        "status": ExecutionStatus.RUNNING.value,
        "error": None,
        "steps": {},
    }
    logger.info("Running workflow", workflow_id=workflow_id, execution_id=execution_id)

    try:
        context = await engine.execute_workflow(
            workflow_id,
            execution_id=execution_id,
            trigger_data=trigger_data,
            user_id=user_id,
        )
        summary["status"] = ExecutionStatus.COMPLETED.value
        summary["steps"] = _summarize_context(context, settings.OUTPUT_SUMMARY_MAX_CHARS)
    except EngineException as e:
        summary["status"] = ExecutionStatus.FAILED.value
        summary["error"] = e.message
        summary["error_display"] = format_error_for_display(e.message)
        if isinstance(e, WorkflowValidationError):
            summary["validation_errors"] = list(e.errors)
        logger.error("Workflow run failed", execution_id=execution_id, error=e.message)
    except Exception as e:
        summary["status"] = ExecutionStatus.FAILED.value
        summary["error"] = str(e)
        summary["error_display"] = format_error_for_display(e)
        logger.exception("Workflow run crashed", execution_id=execution_id, error_class=type(e).__name__)
    finally:
        summary["duration_ms"] = int((time.monotonic() - start) * 1000)
        if db_engine is not None:
            await close_db(db_engine)

    logger.info(
        "Workflow run finished",
        execution_id=execution_id,
        status=summary["status"],
        duration_ms=summary["duration_ms"],
    )
    return summary


# ── Sync wrapper ────────────────────────────────────────────────

def run_workflow_sync(
    workflow_id: str,
    trigger_data: Any = None,
    execution_id: Optional[str] = None,
    user_id: Optional[str] = None,
    **kwargs,
) -> dict:
    """Run a workflow synchronously (blocks until done).

    Configures logging and creates its own event loop, so it is safe to
    call from a thread or a script entry point.
    """
    setup_logging()
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(
            run_workflow_async(
                workflow_id,
                trigger_data=trigger_data,
                execution_id=execution_id,
                user_id=user_id,
                **kwargs,
            )
        )
    finally:
        loop.close()
