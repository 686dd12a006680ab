"""
Response envelope for the PlanForge REST API.

Every route answers with:

    {"success": bool, "data": ..., "error": {"code", "message"} | None,
     "meta": {"timestamp": ISO-8601}}
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from planforge.lib.errors import build_error_response

# =============================================================================
# Envelope builders
# =============================================================================


def _meta() -> dict[str, str]:
    return {"timestamp": datetime.now(UTC).isoformat()}


def success_response(data: Any = None) -> dict[str, Any]:
    """Wrap a payload in a success envelope."""
    return {"success": True, "data": data, "error": None, "meta": _meta()}


def error_response(
    code: str,
    message: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Wrap an error code (and optional message override) in an envelope."""
    return {
        "success": False,
        "data": None,
        "error": build_error_response(code, message, details),
        "meta": _meta(),
    }


__all__ = [
    "success_response",
    "error_response",
]
