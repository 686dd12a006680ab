"""
Client side of the PlanForge API.

DatabaseAPI and AIClient wrap an ``httpx.AsyncClient`` pointed at a
running PlanForge service (or, in tests, at the app through
``httpx.ASGITransport``).

Policy: read operations degrade to an empty or default value and log a
warning; write operations raise BridgeError carrying the error code and
message from the response envelope.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx

from planforge.lib.errors import INTERNAL_ERROR, TRANSPORT_ERROR, get_error_message
from planforge.lib.exceptions import PlanForgeException
from planforge.models.settings import default_settings_dict
from planforge.services.progress import empty_dashboard_stats

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
DEFAULT_BASE_URL = "http://127.0.0.1:8765"

T = TypeVar("T")


class BridgeError(PlanForgeException):
    """A request across the process boundary failed.

    ``code`` is the closed error code from the envelope (or
    TRANSPORT_ERROR when no envelope arrived).
    """

    def __init__(self, code: str, message: str, status_code: int | None = None) -> None:
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class _APIClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, path: str, payload: Any = None) -> Any:
        """Send a request and unwrap the envelope's ``data``."""
        try:
            response = await self._client.request(
                method, f"{API_PREFIX}{path}", json=payload
            )
        except httpx.HTTPError as e:
            raise BridgeError(TRANSPORT_ERROR, get_error_message(TRANSPORT_ERROR)) from e

        try:
            body = response.json()
        except ValueError as e:
            raise BridgeError(
                TRANSPORT_ERROR,
                f"Unexpected response from PlanForge service ({response.status_code})",
                status_code=response.status_code,
            ) from e

        if not isinstance(body, dict) or not body.get("success"):
            error = (body.get("error") if isinstance(body, dict) else None) or {}
            code = error.get("code", INTERNAL_ERROR)
            raise BridgeError(
                code,
                error.get("message") or get_error_message(code),
                status_code=response.status_code,
            )
        return body.get("data")

    async def _read(self, method: str, path: str, fallback: T, payload: Any = None) -> T:
        """Like _call, but log and return ``fallback`` on failure."""
        try:
            return await self._call(method, path, payload)
        except BridgeError as e:
            logger.warning(
                "Read %s %s failed, using fallback: %s",
                method,
                path,
                e,
                extra={"error_code": e.code},
            )
            return fallback


class DatabaseAPI(_APIClient):
    """Persistence operations over the API."""

    async def test_connection(self) -> dict[str, Any]:
        try:
            return await self._call("GET", "/db/test-connection")
        except BridgeError as e:
            logger.warning("Database connection test failed: %s", e)
            return {"success": False, "error": str(e)}

    # Plans
    async def get_plans(self) -> list[dict[str, Any]]:
        return await self._read("GET", "/plans", [])

    async def get_plan(self, plan_id: str) -> dict[str, Any] | None:
        return await self._read("GET", f"/plans/{plan_id}", None)

    async def create_plan(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("POST", "/plans", data)

    async def update_plan(self, plan_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("PATCH", f"/plans/{plan_id}", data)

    async def delete_plan(self, plan_id: str) -> dict[str, Any]:
        return await self._call("DELETE", f"/plans/{plan_id}")

    async def create_plan_from_draft(
        self, draft: dict[str, Any], goal: str, timeframe: str | None = None
    ) -> dict[str, Any]:
        return await self._call(
            "POST", "/plans/from-draft", {"plan": draft, "goal": goal, "timeframe": timeframe}
        )

    async def generate_tasks_for_plan(
        self, plan_id: str, count: int | None = None
    ) -> list[dict[str, Any]]:
        return await self._call("POST", f"/plans/{plan_id}/generate-tasks", {"count": count})

    # Milestones
    async def create_milestone(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("POST", "/milestones", data)

    async def update_milestone(self, milestone_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("PATCH", f"/milestones/{milestone_id}", data)

    async def delete_milestone(self, milestone_id: str) -> dict[str, Any]:
        return await self._call("DELETE", f"/milestones/{milestone_id}")

    # Tasks
    async def create_task(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("POST", "/tasks", data)

    async def update_task(self, task_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("PATCH", f"/tasks/{task_id}", data)

    async def delete_task(self, task_id: str) -> dict[str, Any]:
        return await self._call("DELETE", f"/tasks/{task_id}")

    async def create_task_dependency(
        self, dependent_id: str, prerequisite_id: str
    ) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/task-dependencies",
            {"dependent_id": dependent_id, "prerequisite_id": prerequisite_id},
        )

    async def delete_task_dependency(
        self, dependent_id: str, prerequisite_id: str
    ) -> dict[str, Any]:
        return await self._call(
            "DELETE", f"/task-dependencies/{dependent_id}/{prerequisite_id}"
        )

    # Resources
    async def create_resource(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("POST", "/resources", data)

    async def update_resource(self, resource_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("PATCH", f"/resources/{resource_id}", data)

    async def delete_resource(self, resource_id: str) -> dict[str, Any]:
        return await self._call("DELETE", f"/resources/{resource_id}")

    # Settings & statistics
    async def get_settings(self) -> dict[str, Any]:
        return await self._read("GET", "/settings", default_settings_dict())

    async def update_settings(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._call("PATCH", "/settings", data)

    async def get_plan_stats(self, plan_id: str) -> dict[str, Any] | None:
        return await self._read("GET", f"/plans/{plan_id}/stats", None)

    async def get_dashboard_stats(self) -> dict[str, Any]:
        return await self._read("GET", "/stats/dashboard", empty_dashboard_stats())

    # Backup
    async def export_backup(self) -> dict[str, Any]:
        """Fetch the backup document (the export route is not enveloped)."""
        try:
            response = await self._client.get(f"{API_PREFIX}/backup/export")
        except httpx.HTTPError as e:
            raise BridgeError(TRANSPORT_ERROR, get_error_message(TRANSPORT_ERROR)) from e
        body = response.json()
        if response.is_error:
            error = body.get("error") or {}
            raise BridgeError(
                error.get("code", INTERNAL_ERROR),
                error.get("message", "Export failed"),
                status_code=response.status_code,
            )
        return body

    async def import_backup(self, document: dict[str, Any]) -> dict[str, Any]:
        return await self._call("POST", "/backup/import", document)


class AIClient(_APIClient):
    """AI operations over the API."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.initialized = False

    async def initialize(self, api_key: str | None = None) -> bool:
        try:
            await self._call("POST", "/ai/initialize", {"api_key": api_key})
        except BridgeError:
            self.initialized = False
            raise
        self.initialized = True
        return True

    async def generate_plan(self, goal: str, timeframe: str | None = None) -> dict[str, Any]:
        return await self._call(
            "POST", "/ai/generate-plan", {"goal": goal, "timeframe": timeframe}
        )

    async def enhance_task(self, task_title: str, context: str = "") -> dict[str, Any]:
        return await self._call(
            "POST", "/ai/enhance-task", {"task_title": task_title, "context": context}
        )

    async def suggest_next_steps(
        self, plan_title: str, completed_tasks: list[str], remaining_tasks: list[str]
    ) -> list[str]:
        return await self._call(
            "POST",
            "/ai/suggest-next-steps",
            {
                "plan_title": plan_title,
                "completed_tasks": completed_tasks,
                "remaining_tasks": remaining_tasks,
            },
        )

    async def generate_tasks(
        self,
        plan_title: str,
        plan_goal: str,
        existing_tasks: list[str],
        existing_milestones: list[str] | None = None,
        count: int | None = None,
    ) -> list[dict[str, Any]]:
        return await self._call(
            "POST",
            "/ai/generate-tasks",
            {
                "plan_title": plan_title,
                "plan_goal": plan_goal,
                "existing_tasks": existing_tasks,
                "existing_milestones": existing_milestones or [],
                "count": count,
            },
        )

    async def get_api_key(self) -> str | None:
        data = await self._read("GET", "/ai/api-key", {"api_key": None})
        return data.get("api_key")

    async def set_api_key(self, api_key: str) -> bool:
        """Store the key, then re-initialize the service with it."""
        await self._call("PUT", "/ai/api-key", {"api_key": api_key})
        return await self.initialize(api_key)

    async def delete_api_key(self) -> None:
        await self._call("DELETE", "/ai/api-key")
        self.initialized = False


__all__ = ["BridgeError", "DatabaseAPI", "AIClient", "API_PREFIX"]
