"""
Centralized Error Response Builder for PlanForge.

Provides consistent error codes, messages, and i18n-ready error responses
for use across the API and client layers.

Error codes are constants that map to translatable message strings.
The builder returns structured error dicts compatible with the API
response envelope. AI failures reuse the AIErrorKind values as codes.
"""

from __future__ import annotations

from typing import Any

from planforge.lib.exceptions import (
    AIErrorKind,
    AIServiceError,
    BackupFormatError,
    ConfigurationError,
    DatabaseError,
    DatabaseUnavailableError,
    NotFoundError,
    PlanForgeException,
    ValidationError,
)

# =============================================================================
# Error Code Constants
# =============================================================================

NOT_FOUND = "NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
DATABASE_ERROR = "DATABASE_ERROR"
DATABASE_UNAVAILABLE = "DATABASE_UNAVAILABLE"
BACKUP_FORMAT_ERROR = "BACKUP_FORMAT_ERROR"
CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"
TRANSPORT_ERROR = "TRANSPORT_ERROR"

# =============================================================================
# i18n Message Registry
#
# Maps (error_code, language) -> translated message string.
# Falls back to "en" if a translation is missing for the requested language.
# =============================================================================

_ERROR_MESSAGES: dict[str, dict[str, str]] = {
    NOT_FOUND: {
        "en": "The requested item was not found.",
        "de": "Der angeforderte Eintrag wurde nicht gefunden.",
    },
    VALIDATION_ERROR: {
        "en": "Invalid input. Please check your request.",
        "de": "Ungueltige Eingabe. Bitte ueberpruefen Sie Ihre Anfrage.",
    },
    DATABASE_ERROR: {
        "en": "The database operation failed.",
        "de": "Der Datenbankzugriff ist fehlgeschlagen.",
    },
    DATABASE_UNAVAILABLE: {
        "en": "Database not initialized. Please restart the application.",
        "de": "Datenbank nicht initialisiert. Bitte starten Sie die Anwendung neu.",
    },
    BACKUP_FORMAT_ERROR: {
        "en": "Invalid backup file format.",
        "de": "Ungueltiges Format der Sicherungsdatei.",
    },
    CONFIGURATION_ERROR: {
        "en": "The API key could not be stored. Please check your Settings and try again.",
        "de": "Der API-Schluessel konnte nicht gespeichert werden. Bitte die Einstellungen pruefen.",
    },
    INTERNAL_ERROR: {
        "en": "An internal error occurred. Please try again.",
        "de": "Ein interner Fehler ist aufgetreten. Bitte erneut versuchen.",
    },
    TRANSPORT_ERROR: {
        "en": "The PlanForge service could not be reached.",
        "de": "Der PlanForge-Dienst ist nicht erreichbar.",
    },
    AIErrorKind.MISSING_API_KEY: {
        "en": "AI features require OpenAI API key. Please configure in Settings.",
        "de": "KI-Funktionen benoetigen einen OpenAI-API-Schluessel. Bitte in den Einstellungen hinterlegen.",
    },
    AIErrorKind.INVALID_KEY_FORMAT: {
        "en": "Invalid API key format. OpenAI API keys should start with 'sk-'",
    },
    AIErrorKind.INVALID_API_KEY: {
        "en": "Invalid API key. Please check your OpenAI API key and try again.",
    },
    AIErrorKind.RATE_LIMITED: {
        "en": "API rate limit exceeded. Please try again later.",
    },
    AIErrorKind.QUOTA_EXCEEDED: {
        "en": "Insufficient quota. Please check your OpenAI account billing.",
    },
    AIErrorKind.EMPTY_RESPONSE: {
        "en": "No response from OpenAI",
    },
    AIErrorKind.PARSE_ERROR: {
        "en": "Failed to parse AI response as JSON",
    },
}

# HTTP status used by the API for each code
_HTTP_STATUS: dict[str, int] = {
    NOT_FOUND: 404,
    VALIDATION_ERROR: 422,
    BACKUP_FORMAT_ERROR: 422,
    DATABASE_ERROR: 500,
    DATABASE_UNAVAILABLE: 503,
    CONFIGURATION_ERROR: 500,
    INTERNAL_ERROR: 500,
    AIErrorKind.MISSING_API_KEY: 400,
    AIErrorKind.INVALID_KEY_FORMAT: 400,
    AIErrorKind.INVALID_API_KEY: 401,
    AIErrorKind.RATE_LIMITED: 429,
    AIErrorKind.QUOTA_EXCEEDED: 402,
    AIErrorKind.CONNECTION_ERROR: 502,
    AIErrorKind.API_ERROR: 502,
    AIErrorKind.EMPTY_RESPONSE: 502,
    AIErrorKind.PARSE_ERROR: 502,
}

# Default fallback language
_DEFAULT_LANG = "en"


# =============================================================================
# Error Response Builder
# =============================================================================


def get_error_message(code: str, lang: str = "en") -> str:
    """
    Get a translated error message for a given error code.

    Falls back to English if the requested language is not available.
    Falls back to a generic message if the error code is unknown.
    """
    messages = _ERROR_MESSAGES.get(code, {})
    return messages.get(lang, messages.get(_DEFAULT_LANG, "An error occurred."))


def http_status_for(code: str) -> int:
    """HTTP status the API answers with for an error code."""
    return _HTTP_STATUS.get(code, 500)


def error_code_for(exc: PlanForgeException) -> str:
    """Map an exception onto its error code."""
    if isinstance(exc, AIServiceError):
        return str(exc.kind)
    if isinstance(exc, NotFoundError):
        return NOT_FOUND
    if isinstance(exc, BackupFormatError):
        return BACKUP_FORMAT_ERROR
    if isinstance(exc, ValidationError):
        return VALIDATION_ERROR
    if isinstance(exc, DatabaseUnavailableError):
        return DATABASE_UNAVAILABLE
    if isinstance(exc, DatabaseError):
        return DATABASE_ERROR
    if isinstance(exc, ConfigurationError):
        return CONFIGURATION_ERROR
    return INTERNAL_ERROR


def build_error_response(
    code: str,
    message: str | None = None,
    details: dict[str, Any] | None = None,
    lang: str = "en",
) -> dict[str, Any]:
    """
    Build a structured error response dict.

    The returned dict is compatible with the API envelope error field:
    { "code": "...", "message": "..." }

    If no message is provided, the i18n-translated message for the error code
    and language is used automatically.

    Args:
        code: Error code constant (e.g. NOT_FOUND, DATABASE_UNAVAILABLE)
        message: Optional override message (bypasses i18n lookup)
        details: Optional additional error details
        lang: ISO 639-1 language code for i18n message lookup

    Returns:
        Structured error dict: {"code": str, "message": str, "details": dict | None}
    """
    resolved_message = message if message is not None else get_error_message(code, lang)
    error: dict[str, Any] = {
        "code": code,
        "message": resolved_message,
    }
    if details is not None:
        error["details"] = details
    return error


__all__ = [
    # Error code constants
    "NOT_FOUND",
    "VALIDATION_ERROR",
    "DATABASE_ERROR",
    "DATABASE_UNAVAILABLE",
    "BACKUP_FORMAT_ERROR",
    "CONFIGURATION_ERROR",
    "INTERNAL_ERROR",
    "TRANSPORT_ERROR",
    # Functions
    "get_error_message",
    "http_status_for",
    "error_code_for",
    "build_error_response",
]
