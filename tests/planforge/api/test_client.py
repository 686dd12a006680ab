"""
Tests for DatabaseAPI and AIClient.

The clients talk to the real FastAPI app through httpx.ASGITransport, so
the read-degrade / write-raise policy is checked end to end.
"""

from __future__ import annotations

import httpx
import pytest
from conftest import TEST_API_KEY, api_error
from httpx import ASGITransport, AsyncClient

from planforge.api import create_app
from planforge.api.client import AIClient, BridgeError, DatabaseAPI
from planforge.api.context import AppContext


@pytest.fixture()
async def offline_http(app_context):
    context = AppContext(config=app_context.config, db=None, ai=app_context.ai)
    transport = ASGITransport(app=create_app(context))
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture()
def database_api(client) -> DatabaseAPI:
    return DatabaseAPI(client=client)


@pytest.fixture()
def ai_client(client) -> AIClient:
    return AIClient(client=client)


class TestDatabaseAPI:
    """Round trips through the service."""

    @pytest.mark.asyncio
    async def test_plan_round_trip(self, database_api) -> None:
        plan = await database_api.create_plan({"title": "Write a novel", "goal": "50k words"})
        task = await database_api.create_task({"plan_id": plan["id"], "title": "Outline"})
        await database_api.update_task(task["id"], {"status": "COMPLETED"})

        fetched = await database_api.get_plan(plan["id"])
        assert fetched["progress"] == 100
        assert [p["id"] for p in await database_api.get_plans()] == [plan["id"]]

        stats = await database_api.get_plan_stats(plan["id"])
        assert stats["completed_tasks"] == 1

    @pytest.mark.asyncio
    async def test_test_connection(self, database_api) -> None:
        assert await database_api.test_connection() == {"success": True}

    @pytest.mark.asyncio
    async def test_missing_plan_reads_none(self, database_api) -> None:
        assert await database_api.get_plan("missing") is None
        assert await database_api.get_plan_stats("missing") is None

    @pytest.mark.asyncio
    async def test_write_error_raises_with_code(self, database_api) -> None:
        with pytest.raises(BridgeError) as exc_info:
            await database_api.update_plan("missing", {"title": "x"})
        assert exc_info.value.code == "NOT_FOUND"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_validation_error_code(self, database_api) -> None:
        with pytest.raises(BridgeError) as exc_info:
            await database_api.create_plan({"title": "No goal"})
        assert exc_info.value.code == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_backup_round_trip(self, database_api, db) -> None:
        plan = await database_api.create_plan({"title": "P", "goal": "G"})
        document = await database_api.export_backup()
        await database_api.delete_plan(plan["id"])

        result = await database_api.import_backup(document)

        assert result["plans_imported"] == 1
        assert db.get_plan(plan["id"])["title"] == "P"


class TestDatabaseUnavailable:
    """Reads degrade to defaults; writes raise."""

    @pytest.mark.asyncio
    async def test_reads_degrade(self, offline_http) -> None:
        api = DatabaseAPI(client=offline_http)

        assert await api.get_plans() == []
        assert await api.get_plan("any") is None
        settings = await api.get_settings()
        assert settings["theme"] == "system"
        assert settings["has_openai_api_key"] is False
        stats = await api.get_dashboard_stats()
        assert stats["total_plans"] == 0
        assert stats["task_completion_rate"] == 0

    @pytest.mark.asyncio
    async def test_test_connection_reports_failure(self, offline_http) -> None:
        result = await DatabaseAPI(client=offline_http).test_connection()
        assert result["success"] is False
        assert "Database not initialized" in result["error"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call",
        [
            lambda api: api.create_plan({"title": "T", "goal": "G"}),
            lambda api: api.update_settings({"theme": "dark"}),
            lambda api: api.delete_task("x"),
            lambda api: api.import_backup({"version": "1.0", "data": {"plans": []}}),
        ],
    )
    async def test_writes_raise(self, offline_http, call) -> None:
        with pytest.raises(BridgeError) as exc_info:
            await call(DatabaseAPI(client=offline_http))
        assert exc_info.value.code == "DATABASE_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_export_raises(self, offline_http) -> None:
        with pytest.raises(BridgeError) as exc_info:
            await DatabaseAPI(client=offline_http).export_backup()
        assert exc_info.value.code == "DATABASE_UNAVAILABLE"


class TestTransportFailure:
    @pytest.mark.asyncio
    async def test_unreachable_service(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with AsyncClient(
            transport=httpx.MockTransport(refuse), base_url="http://testserver"
        ) as http:
            api = DatabaseAPI(client=http)
            assert await api.get_plans() == []
            with pytest.raises(BridgeError) as exc_info:
                await api.create_plan({"title": "T", "goal": "G"})
        assert exc_info.value.code == "TRANSPORT_ERROR"


class TestAIClient:
    """AI operations and the client's initialized flag."""

    @pytest.mark.asyncio
    async def test_set_api_key_initializes(self, ai_client, credential_store) -> None:
        assert await ai_client.set_api_key(TEST_API_KEY) is True
        assert ai_client.initialized is True
        assert credential_store.secret == TEST_API_KEY
        assert await ai_client.get_api_key() == TEST_API_KEY

    @pytest.mark.asyncio
    async def test_delete_api_key_marks_uninitialized(self, ai_client, db) -> None:
        await ai_client.set_api_key(TEST_API_KEY)
        await ai_client.delete_api_key()

        assert ai_client.initialized is False
        assert await ai_client.get_api_key() is None
        assert db.get_openai_api_key() is None

    @pytest.mark.asyncio
    async def test_initialize_failure(self, ai_client, fake_openai) -> None:
        fake_openai.models_response = api_error(429, code="insufficient_quota")
        with pytest.raises(BridgeError) as exc_info:
            await ai_client.initialize(TEST_API_KEY)
        assert exc_info.value.code == "QUOTA_EXCEEDED"
        assert ai_client.initialized is False

    @pytest.mark.asyncio
    async def test_missing_key(self, ai_client) -> None:
        with pytest.raises(BridgeError) as exc_info:
            await ai_client.generate_plan("Write a novel")
        assert exc_info.value.code == "MISSING_API_KEY"
        assert "configure in Settings" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_generation_calls(self, ai_client, credential_store, fake_openai) -> None:
        credential_store.secret = TEST_API_KEY
        fake_openai.completions.extend(
            [
                '{"description": "Plot beats", "estimatedHours": 4}',
                '["Write chapter one"]',
                '[{"title": "Name characters", "priority": "LOW"}]',
            ]
        )

        enhanced = await ai_client.enhance_task("Outline", "Novel")
        steps = await ai_client.suggest_next_steps("Novel", ["Outline"], ["Draft"])
        tasks = await ai_client.generate_tasks("Novel", "50k words", ["Outline"], count=1)

        assert enhanced["estimated_hours"] == 4
        assert steps == ["Write chapter one"]
        assert tasks[0]["priority"] == "LOW"

    @pytest.mark.asyncio
    async def test_draft_saved_through_database_api(
        self, ai_client, database_api, credential_store, fake_openai
    ) -> None:
        credential_store.secret = TEST_API_KEY
        fake_openai.completions.append(
            '{"title": "Novel", "milestones": [{"title": "Draft"}],'
            ' "tasks": [{"title": "Chapter 1", "milestoneIndex": 0}]}'
        )

        draft = await ai_client.generate_plan("Write a novel", "1 year")
        plan = await database_api.create_plan_from_draft(draft, "Write a novel", "1 year")

        assert plan["timeframe"] == "1 year"
        assert plan["tasks"][0]["milestone_id"] == plan["milestones"][0]["id"]
