"""
Custom exception hierarchy for PlanForge.

Provides structured exception types for all subsystems:
- Configuration, persistence, validation
- Backup serialization
- AI orchestration (with a closed set of error kinds)

All exceptions inherit from PlanForgeException, enabling
catch-all for PlanForge-specific errors while keeping the
ability to catch specific error types.
"""

from __future__ import annotations

from enum import StrEnum


class PlanForgeException(Exception):
    """Base exception for all PlanForge errors."""


class ConfigurationError(PlanForgeException):
    """Missing environment variables, invalid config values, or startup failures."""


class DatabaseError(PlanForgeException):
    """Database connection, query, or schema failures."""


class DatabaseUnavailableError(DatabaseError):
    """The database was never initialized or has been disconnected."""


class NotFoundError(PlanForgeException):
    """A plan, milestone, task, dependency or resource does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ValidationError(PlanForgeException):
    """Input validation or invariant failures (cross-plan links, cycles)."""


class SerializationError(PlanForgeException):
    """JSON encode/decode, data serialization/deserialization failures."""


class BackupFormatError(SerializationError):
    """A backup document is missing required structure."""


class AIErrorKind(StrEnum):
    """Closed set of AI failure categories surfaced to callers."""

    MISSING_API_KEY = "MISSING_API_KEY"
    INVALID_KEY_FORMAT = "INVALID_KEY_FORMAT"
    INVALID_API_KEY = "INVALID_API_KEY"
    RATE_LIMITED = "RATE_LIMITED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    API_ERROR = "API_ERROR"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    PARSE_ERROR = "PARSE_ERROR"


class AIServiceError(PlanForgeException):
    """AI orchestration failure tagged with an AIErrorKind.

    Callers branch on ``kind`` (and ``status_code`` when the hosted API
    answered), never on the message text.
    """

    def __init__(
        self,
        kind: AIErrorKind,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_configuration_error(self) -> bool:
        """True when the user has to fix the key in Settings."""
        return self.kind in (
            AIErrorKind.MISSING_API_KEY,
            AIErrorKind.INVALID_KEY_FORMAT,
            AIErrorKind.INVALID_API_KEY,
        )


__all__ = [
    "PlanForgeException",
    "ConfigurationError",
    "DatabaseError",
    "DatabaseUnavailableError",
    "NotFoundError",
    "ValidationError",
    "SerializationError",
    "BackupFormatError",
    "AIErrorKind",
    "AIServiceError",
]
