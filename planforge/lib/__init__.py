"""
Lib package for PlanForge.

Contains shared utilities:
- exceptions.py: Exception hierarchy and AI error kinds
- errors.py: Centralized error response builder with i18n
- logging.py: structlog configuration
"""

from planforge.lib.errors import (
    BACKUP_FORMAT_ERROR,
    CONFIGURATION_ERROR,
    DATABASE_ERROR,
    DATABASE_UNAVAILABLE,
    INTERNAL_ERROR,
    NOT_FOUND,
    TRANSPORT_ERROR,
    VALIDATION_ERROR,
    build_error_response,
    error_code_for,
    get_error_message,
    http_status_for,
)
from planforge.lib.exceptions import (
    AIErrorKind,
    AIServiceError,
    BackupFormatError,
    ConfigurationError,
    DatabaseError,
    DatabaseUnavailableError,
    NotFoundError,
    PlanForgeException,
    SerializationError,
    ValidationError,
)

__all__ = [
    "BACKUP_FORMAT_ERROR",
    "CONFIGURATION_ERROR",
    "DATABASE_ERROR",
    "DATABASE_UNAVAILABLE",
    "INTERNAL_ERROR",
    "NOT_FOUND",
    "TRANSPORT_ERROR",
    "VALIDATION_ERROR",
    "build_error_response",
    "error_code_for",
    "get_error_message",
    "http_status_for",
    "AIErrorKind",
    "AIServiceError",
    "BackupFormatError",
    "ConfigurationError",
    "DatabaseError",
    "DatabaseUnavailableError",
    "NotFoundError",
    "PlanForgeException",
    "SerializationError",
    "ValidationError",
]
