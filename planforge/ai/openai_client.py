"""
Thin async client for an OpenAI-compatible completion API.

Only two endpoints are used:
- GET  {base_url}/models            (credential check)
- POST {base_url}/chat/completions  (all generation)

Failures are classified from the HTTP status and the structured error
body into AIServiceError kinds; message text is never inspected.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from planforge.config.settings import AIConfig
from planforge.lib.errors import get_error_message
from planforge.lib.exceptions import AIErrorKind, AIServiceError

logger = logging.getLogger(__name__)


def _error_details(response: httpx.Response) -> tuple[str | None, str]:
    """Extract (code_or_type, message) from an OpenAI-style error body."""
    try:
        body = response.json()
    except ValueError:
        return None, response.text[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return None, str(body)[:200]
    code = error.get("code") or error.get("type")
    return code, str(error.get("message") or "")


def classify_http_error(response: httpx.Response) -> AIServiceError:
    """
    Map a failed response to an AIServiceError.

    ``insufficient_quota`` is reported with status 429 by the hosted API,
    so the body code is checked before the status.
    """
    status = response.status_code
    code, message = _error_details(response)

    if code == "insufficient_quota":
        kind = AIErrorKind.QUOTA_EXCEEDED
    elif status == 401:
        kind = AIErrorKind.INVALID_API_KEY
    elif status == 429:
        kind = AIErrorKind.RATE_LIMITED
    else:
        kind = None
    if kind is not None:
        return AIServiceError(kind, get_error_message(kind), status_code=status)
    return AIServiceError(
        AIErrorKind.API_ERROR,
        f"OpenAI API error ({status}): {message or response.reason_phrase}",
        status_code=status,
    )


class OpenAIClient:
    """
    Authenticated httpx client bound to one API key.

    Args:
        api_key: Bearer token for the hosted API
        config: Endpoint, model and timeout settings
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str,
        config: AIConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=config.timeout,
            transport=transport,
        )

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.TimeoutException as e:
            raise AIServiceError(
                AIErrorKind.CONNECTION_ERROR,
                f"OpenAI API request timed out after {self._config.timeout}s",
            ) from e
        except httpx.HTTPError as e:
            raise AIServiceError(
                AIErrorKind.CONNECTION_ERROR,
                f"Failed to connect to OpenAI API: {e}",
            ) from e

        if response.is_error:
            error = classify_http_error(response)
            logger.warning(
                "OpenAI API request failed",
                extra={"path": path, "status": response.status_code, "kind": str(error.kind)},
            )
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise AIServiceError(
                AIErrorKind.API_ERROR,
                "OpenAI API returned a non-JSON response",
                status_code=response.status_code,
            ) from e

    async def list_models(self) -> list[str]:
        """List model ids; used as the lightweight credential check."""
        body = await self._request("GET", "/models")
        return [item.get("id", "") for item in body.get("data") or []]

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> str | None:
        """Run a chat completion and return the first choice's content."""
        body = await self._request(
            "POST",
            "/chat/completions",
            {
                "model": self._config.model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )
        choices = body.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("message") or {}).get("content")

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["OpenAIClient", "classify_http_error"]
