"""
Shared test fixtures for PlanForge.

This module provides common fixtures used across all test modules:
- Database service (in-memory SQLite)
- In-memory credential store standing in for the OS keychain
- Fake completion API served through httpx.MockTransport
- AI manager, application context, FastAPI app and HTTP client

Usage:
    All fixtures are automatically available to any test in the tests/ directory.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from planforge.ai.manager import AIServiceManager
from planforge.api import create_app
from planforge.api.context import AppContext
from planforge.config.settings import AIConfig, AppConfig
from planforge.services.database import DatabaseService

TEST_API_KEY = "sk-test-key-1234567890"
TEST_AI_BASE_URL = "https://ai.test/v1"


# ---------------------------------------------------------------------------
# 1. Credential store
# ---------------------------------------------------------------------------


class InMemoryCredentialStore:
    """CredentialStore double; ``fail`` makes every call raise."""

    def __init__(self, secret: str | None = None, fail: bool = False) -> None:
        self.secret = secret
        self.fail = fail
        self.calls: list[str] = []

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if self.fail:
            raise RuntimeError("No recommended backend was available")

    def get_secret(self) -> str | None:
        self._check("get")
        return self.secret

    def set_secret(self, value: str) -> None:
        self._check("set")
        self.secret = value

    def delete_secret(self) -> None:
        self._check("delete")
        self.secret = None


# ---------------------------------------------------------------------------
# 2. Fake completion API
# ---------------------------------------------------------------------------


class FakeOpenAI:
    """
    Minimal OpenAI-compatible server for httpx.MockTransport.

    ``models_response`` is returned for GET /models. Each POST
    /chat/completions pops the next entry of ``completions``: a string is
    returned as the message content, an ``httpx.Response`` as-is.
    """

    def __init__(self) -> None:
        self.models_response = httpx.Response(200, json={"data": [{"id": "gpt-4"}]})
        self.completions: list[str | httpx.Response | None] = []
        self.requests: list[httpx.Request] = []

    @property
    def model_list_calls(self) -> int:
        return sum(1 for r in self.requests if r.url.path.endswith("/models"))

    @property
    def chat_requests(self) -> list[dict[str, Any]]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.url.path.endswith("/chat/completions")
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/models"):
            return self.models_response
        if request.url.path.endswith("/chat/completions"):
            reply = self.completions.pop(0) if self.completions else None
            if isinstance(reply, httpx.Response):
                return reply
            return httpx.Response(
                200,
                json={"choices": [{"message": {"role": "assistant", "content": reply}}]},
            )
        return httpx.Response(404, json={"error": {"message": "not found"}})


def api_error(status: int, code: str | None = None, message: str = "error") -> httpx.Response:
    """OpenAI-style error response."""
    return httpx.Response(status, json={"error": {"message": message, "code": code}})


# ---------------------------------------------------------------------------
# 3. Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def db():
    """
    Provide an initialized DatabaseService on in-memory SQLite.

    A fresh database is created for every test.
    """
    service = DatabaseService("sqlite:///:memory:")
    service.initialize()
    yield service
    service.disconnect()


@pytest.fixture()
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture()
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture()
def ai_config() -> AIConfig:
    return AIConfig(base_url=TEST_AI_BASE_URL, model="gpt-4", temperature=0.7, timeout=5.0)


@pytest.fixture()
def ai_manager(ai_config, credential_store, db, fake_openai) -> AIServiceManager:
    """AIServiceManager wired to the fake API, fake keychain and test database."""
    return AIServiceManager(
        ai_config,
        credential_store=credential_store,
        settings_store=db,
        transport=httpx.MockTransport(fake_openai.handler),
    )


# ---------------------------------------------------------------------------
# 4. Application
# ---------------------------------------------------------------------------


@pytest.fixture()
def app_context(ai_config, db, ai_manager) -> AppContext:
    config = AppConfig(database_url="sqlite:///:memory:", ai=ai_config)
    return AppContext(config=config, db=db, ai=ai_manager)


@pytest.fixture()
def app(app_context):
    """Create a fresh FastAPI application for each test."""
    return create_app(app_context)


@pytest.fixture()
async def client(app):
    """Async HTTP client wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
