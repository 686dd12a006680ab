"""
AI Service Manager for PlanForge.

Owns the completion-API client and the OpenAI key. Every generation call
auto-initializes the client on first use, resolving the key from:

1. the OS credential store (keyring)
2. the ``Settings`` row in the database
3. otherwise AIServiceError(MISSING_API_KEY), with no network call

Usage:
    manager = AIServiceManager(config.ai, KeyringCredentialStore(), db)
    plan = await manager.generate_plan("Launch a podcast", "3 months")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from planforge.ai.credentials import (
    ApiKeySettingsStore,
    CredentialStore,
    KeyringCredentialStore,
)
from planforge.ai.openai_client import OpenAIClient
from planforge.ai.parsing import parse_as
from planforge.ai.prompts import (
    build_enhance_prompt,
    build_next_steps_prompt,
    build_plan_prompt,
    build_tasks_prompt,
)
from planforge.ai.schemas import GeneratedPlan, GeneratedTask, TaskEnhancement
from planforge.config.settings import AIConfig
from planforge.lib.errors import CONFIGURATION_ERROR, get_error_message
from planforge.lib.exceptions import (
    AIErrorKind,
    AIServiceError,
    ConfigurationError,
    PlanForgeException,
)
from planforge.lib.logging import mask_secret

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "sk-"

PLAN_MAX_TOKENS = 3000
ENHANCE_TEMPERATURE = 0.5
ENHANCE_MAX_TOKENS = 500
NEXT_STEPS_TEMPERATURE = 0.7
NEXT_STEPS_MAX_TOKENS = 300
TASKS_TEMPERATURE = 0.7
TASKS_MAX_TOKENS = 1000


class AIServiceManager:
    """
    Key management plus plan/task generation over the completion API.

    Args:
        config: Endpoint and model settings
        credential_store: Primary key storage (defaults to keyring)
        settings_store: Database fallback for the key (DatabaseService)
        transport: Optional httpx transport passed to every client
    """

    def __init__(
        self,
        config: AIConfig | None = None,
        credential_store: CredentialStore | None = None,
        settings_store: ApiKeySettingsStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or AIConfig()
        self._credentials = credential_store or KeyringCredentialStore()
        self._settings_store = settings_store
        self._transport = transport
        self._client: OpenAIClient | None = None
        self._init_lock = asyncio.Lock()

    def is_initialized(self) -> bool:
        return self._client is not None

    # =========================================================================
    # Initialization
    # =========================================================================

    async def initialize(self, api_key: str | None = None) -> bool:
        """
        Validate a key with one ``GET /models`` call and keep the client.

        An empty ``api_key`` triggers key resolution from storage.

        Raises:
            AIServiceError: MISSING_API_KEY, INVALID_KEY_FORMAT, or the
                check's failure kind. The manager stays uninitialized.
        """
        key = (api_key or "").strip() or await self.get_api_key()
        if not key:
            raise AIServiceError(
                AIErrorKind.MISSING_API_KEY,
                get_error_message(AIErrorKind.MISSING_API_KEY),
            )
        if not key.startswith(API_KEY_PREFIX):
            raise AIServiceError(
                AIErrorKind.INVALID_KEY_FORMAT,
                get_error_message(AIErrorKind.INVALID_KEY_FORMAT),
            )

        client = OpenAIClient(key, self._config, transport=self._transport)
        try:
            await client.list_models()
        except AIServiceError as e:
            await client.aclose()
            await self._reset_client()
            logger.error(
                "AI service initialization failed",
                extra={"kind": str(e.kind), "api_key": mask_secret(key)},
            )
            raise

        previous, self._client = self._client, client
        if previous is not None:
            await previous.aclose()
        logger.info(
            "AI service initialized",
            extra={"model": self._config.model, "api_key": mask_secret(key)},
        )
        return True

    async def _ensure_client(self) -> OpenAIClient:
        if self._client is None:
            async with self._init_lock:
                if self._client is None:
                    logger.info("AI service not initialized, attempting auto-initialization")
                    await self.initialize()
        assert self._client is not None
        return self._client

    async def _reset_client(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def aclose(self) -> None:
        await self._reset_client()

    # =========================================================================
    # Key storage
    # =========================================================================

    async def get_api_key(self) -> str | None:
        """Resolve the key: credential store first, then the database."""
        try:
            key = self._credentials.get_secret()
            if key:
                logger.debug("API key loaded from credential store")
                return key
        except Exception as e:
            logger.warning("Failed to read API key from credential store: %s", e)

        if self._settings_store is not None:
            try:
                key = self._settings_store.get_openai_api_key()
                if key:
                    logger.debug("API key loaded from settings")
                    return key
            except PlanForgeException as e:
                logger.warning("Failed to read API key from settings: %s", e)

        return None

    async def set_api_key(self, api_key: str) -> dict[str, bool]:
        """
        Store the key in the credential store and in the database.

        Each write runs regardless of the other's outcome. The current
        client is dropped so the next call initializes with the new key.

        Returns:
            Which stores accepted the key.

        Raises:
            ConfigurationError: If neither store accepted it.
        """
        key = api_key.strip()
        stored = {"credential_store": False, "database": False}

        try:
            self._credentials.set_secret(key)
            stored["credential_store"] = True
        except Exception as e:
            logger.error("Failed to save API key to credential store: %s", e)

        if self._settings_store is not None:
            try:
                self._settings_store.set_openai_api_key(key)
                stored["database"] = True
            except PlanForgeException as e:
                logger.error("Failed to save API key to settings: %s", e)

        await self._reset_client()
        if not any(stored.values()):
            raise ConfigurationError(get_error_message(CONFIGURATION_ERROR))
        logger.info("API key stored", extra={"api_key": mask_secret(key), **stored})
        return stored

    async def delete_api_key(self) -> None:
        """Clear the key from both stores; each failure is only logged."""
        try:
            self._credentials.delete_secret()
        except Exception as e:
            logger.error("Failed to delete API key from credential store: %s", e)

        if self._settings_store is not None:
            try:
                self._settings_store.set_openai_api_key(None)
            except PlanForgeException as e:
                logger.error("Failed to delete API key from settings: %s", e)

        await self._reset_client()
        logger.info("API key deleted")

    # =========================================================================
    # Generation
    # =========================================================================

    async def _complete(
        self,
        operation: str,
        prompts: tuple[str, str],
        temperature: float,
        max_tokens: int,
    ) -> str:
        client = await self._ensure_client()
        system_prompt, user_prompt = prompts
        logger.info("Requesting AI completion", extra={"operation": operation})
        content = await client.chat_completion(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if not content or not content.strip():
            raise AIServiceError(
                AIErrorKind.EMPTY_RESPONSE,
                get_error_message(AIErrorKind.EMPTY_RESPONSE),
            )
        return content

    async def generate_plan(self, goal: str, timeframe: str | None = None) -> GeneratedPlan:
        """Draft a full plan (milestones, tasks, tips) for a goal."""
        content = await self._complete(
            "generate_plan",
            build_plan_prompt(goal, timeframe),
            self._config.temperature,
            PLAN_MAX_TOKENS,
        )
        plan = parse_as(content, GeneratedPlan)
        logger.info(
            "Plan generated",
            extra={"milestones": len(plan.milestones), "tasks": len(plan.tasks)},
        )
        return plan

    async def enhance_task(self, task_title: str, context: str = "") -> TaskEnhancement:
        content = await self._complete(
            "enhance_task",
            build_enhance_prompt(task_title, context),
            ENHANCE_TEMPERATURE,
            ENHANCE_MAX_TOKENS,
        )
        return parse_as(content, TaskEnhancement)

    async def suggest_next_steps(
        self,
        plan_title: str,
        completed_tasks: list[str],
        remaining_tasks: list[str],
    ) -> list[str]:
        content = await self._complete(
            "suggest_next_steps",
            build_next_steps_prompt(plan_title, completed_tasks, remaining_tasks),
            NEXT_STEPS_TEMPERATURE,
            NEXT_STEPS_MAX_TOKENS,
        )
        return parse_as(content, list[str])

    async def generate_tasks(
        self,
        plan_title: str,
        plan_goal: str,
        existing_tasks: list[str],
        existing_milestones: list[str] | None = None,
        count: int | None = None,
    ) -> list[GeneratedTask]:
        """Propose additional tasks, each optionally naming a milestone."""
        content = await self._complete(
            "generate_tasks",
            build_tasks_prompt(
                plan_title, plan_goal, existing_tasks, existing_milestones or [], count
            ),
            TASKS_TEMPERATURE,
            TASKS_MAX_TOKENS,
        )
        return parse_as(content, list[GeneratedTask])

    def status(self) -> dict[str, Any]:
        return {"initialized": self.is_initialized(), "model": self._config.model}


__all__ = ["AIServiceManager", "API_KEY_PREFIX"]
