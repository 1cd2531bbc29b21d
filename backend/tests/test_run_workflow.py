"""Tests for the one-call workflow runner and user-facing error text."""

import pytest

from conftest import edge, node
from db.store import InMemoryExecutionStore
from worker.run_workflow import run_workflow_async, run_workflow_sync
from workflow.error_messages import format_error_for_display, get_user_friendly_error


@pytest.mark.unit
class TestRunWorkflow:
    @pytest.mark.asyncio
    async def test_completed_summary(self, memory_store, registry, amount_graph):
        workflow_id = memory_store.add_workflow(*amount_graph)

        summary = await run_workflow_async(
            workflow_id, {"data": {"amount": 900}}, "ex-1", store=memory_store, registry=registry
        )

        assert summary["status"] == "completed"
        assert summary["execution_id"] == "ex-1"
        assert summary["error"] is None
        assert summary["steps"]["vip"]["output"]["data"] == "VIP order of 900"
        assert summary["steps"]["standard"]["output"]["skipped"] is True
        assert summary["duration_ms"] >= 0

    @pytest.mark.asyncio
    async def test_missing_workflow_reported(self, memory_store, registry):
        summary = await run_workflow_async("ghost", store=memory_store, registry=registry)
        assert summary["status"] == "failed"
        assert summary["error"] == "Workflow not found: ghost"

    @pytest.mark.asyncio
    async def test_validation_errors_reported(self, memory_store, registry):
        workflow_id = memory_store.add_workflow([node("a"), node("b")], [edge("a", "b")])
        summary = await run_workflow_async(workflow_id, store=memory_store, registry=registry)
        assert summary["status"] == "failed"
        assert "Workflow must have at least one trigger node" in summary["validation_errors"]

    @pytest.mark.asyncio
    async def test_malformed_stored_node_reported(self, memory_store, registry):
        workflow_id = memory_store.add_workflow(["not-a-node"], [])
        summary = await run_workflow_async(workflow_id, store=memory_store, registry=registry)
        assert summary["status"] == "failed"
        assert "Unsupported node shape: str" in summary["validation_errors"]
        assert (await memory_store.get_execution(summary["execution_id"])).status == "failed"

    @pytest.mark.asyncio
    async def test_unexpected_error_reported(self, registry):
        class BrokenStore(InMemoryExecutionStore):
            async def get_workflow_graph(self, workflow_id):
                raise RuntimeError("database is locked")

        summary = await run_workflow_async("wf-1", store=BrokenStore(), registry=registry)
        assert summary["status"] == "failed"
        assert summary["error"] == "database is locked"
        assert "error_display" in summary

    @pytest.mark.asyncio
    async def test_database_backed_run(self, registry, amount_graph, tmp_path):
        from app.config import Settings
        from db.database import create_db_engine, create_session_factory, init_db
        from db.store import SqlAlchemyExecutionStore

        settings = Settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'runs.db'}")
        seed_engine = create_db_engine(settings.DATABASE_URL)
        await init_db(seed_engine)
        workflow_id = await SqlAlchemyExecutionStore(create_session_factory(seed_engine)).add_workflow(*amount_graph)
        await seed_engine.dispose()

        summary = await run_workflow_async(
            workflow_id, {"data": {"amount": 10}}, registry=registry, settings=settings
        )
        assert summary["status"] == "completed"
        assert summary["steps"]["standard"]["output"]["data"] == "Standard order of 10"

    def test_sync_wrapper(self, memory_store, registry, amount_graph):
        workflow_id = memory_store.add_workflow(*amount_graph)
        summary = run_workflow_sync(
            workflow_id, {"data": {"amount": 501}}, store=memory_store, registry=registry
        )
        assert summary["status"] == "completed"
        assert summary["steps"]["vip"]["output"]["data"] == "VIP order of 501"


@pytest.mark.unit
class TestUserFriendlyErrors:
    @pytest.mark.parametrize("error,message", [
        ("Integration ID is required", "Please connect your integration first"),
        ("Slack authentication error: invalid_auth", "Your account connection has expired"),
        ("Slack API error: channel_not_found", "Slack returned an error: Channel not found"),
        ("HTTP 503 Service Unavailable", "The server returned an error (503)"),
        ("Request timeout after 30000ms", "The operation took too long"),
        ("Step not found: build_greeting", "A variable couldn't be found in the data"),
        ("Something new", "Something went wrong"),
    ])
    def test_messages(self, error, message):
        assert get_user_friendly_error(error).message == message

    def test_http_recoverability(self):
        assert get_user_friendly_error("HTTP 502").recoverable is True
        assert get_user_friendly_error("HTTP 404").recoverable is False

    def test_display_includes_technical_text(self):
        display = format_error_for_display(Exception("Channel is required"))
        assert display["title"] == "Please specify which channel to post to"
        assert display["description"] == "Technical: Channel is required"
        assert display["severity"] == "warning"
