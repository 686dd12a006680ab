"""
Cleanup and parsing of model output.

Models are asked for JSON only, but frequently wrap it in a Markdown
fence. The fence is stripped; anything else that is not valid JSON of
the expected shape is a PARSE_ERROR. No repair or retry is attempted.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from planforge.lib.exceptions import AIErrorKind, AIServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OPENING_FENCE = re.compile(r"^```(?:json)?[ \t]*\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\n?```$")

PARSE_ERROR_MESSAGE = "Failed to parse AI response as JSON"


def strip_code_fence(content: str) -> str:
    """Remove a surrounding ```json ... ``` fence, if present."""
    cleaned = content.strip()
    cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
    cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_json_content(content: str) -> Any:
    """
    Parse a model reply as JSON after fence cleanup.

    Raises:
        AIServiceError: PARSE_ERROR when the text is not valid JSON.
    """
    try:
        return json.loads(strip_code_fence(content))
    except json.JSONDecodeError as e:
        logger.error("Failed to parse AI response", extra={"length": len(content)})
        raise AIServiceError(AIErrorKind.PARSE_ERROR, PARSE_ERROR_MESSAGE) from e


def parse_as(content: str, target: type[T] | Any) -> T:
    """
    Parse a model reply and validate it against ``target``.

    ``target`` is anything pydantic's TypeAdapter accepts: a model class,
    ``list[str]``, ``list[GeneratedTask]``...

    Raises:
        AIServiceError: PARSE_ERROR on invalid JSON or unexpected shape.
    """
    data = parse_json_content(content)
    try:
        return TypeAdapter(target).validate_python(data)
    except PydanticValidationError as e:
        logger.error(
            "AI response has unexpected shape",
            extra={"errors": e.error_count()},
        )
        raise AIServiceError(AIErrorKind.PARSE_ERROR, PARSE_ERROR_MESSAGE) from e


__all__ = ["strip_code_fence", "parse_json_content", "parse_as", "PARSE_ERROR_MESSAGE"]
