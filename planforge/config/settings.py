"""
Runtime configuration for PlanForge.

All values come from environment variables so the service can be started
the same way from a desktop launcher, a shell or the test suite.

Variables:
- PLANFORGE_DATABASE_URL: SQLAlchemy URL (default: SQLite under ~/.planforge)
- PLANFORGE_AI_BASE_URL: hosted completion API root
- PLANFORGE_AI_MODEL / PLANFORGE_AI_TEMPERATURE / PLANFORGE_AI_TIMEOUT
- PLANFORGE_HOST / PLANFORGE_PORT: bind address for uvicorn
- PLANFORGE_DEV_MODE: "1" enables console logging and auto-reload
- PLANFORGE_CORS_ORIGINS: comma-separated list of allowed origins
- LOG_LEVEL: stdlib level name
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from planforge.lib.exceptions import ConfigurationError

APP_NAME = "PlanForge"

# Secure credential store address for the AI key
CREDENTIAL_SERVICE_NAME = "PlanForge"
CREDENTIAL_ACCOUNT_NAME = "OpenAI_API_Key"

DEFAULT_AI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_AI_MODEL = "gpt-4"
DEFAULT_AI_TEMPERATURE = 0.7
DEFAULT_AI_TIMEOUT = 60.0


def default_database_url() -> str:
    """SQLite file in the user's home directory."""
    data_dir = Path.home() / ".planforge"
    return f"sqlite:///{data_dir / 'planforge.db'}"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class AIConfig:
    """Settings for the hosted completion API."""

    base_url: str = DEFAULT_AI_BASE_URL
    model: str = DEFAULT_AI_MODEL
    temperature: float = DEFAULT_AI_TEMPERATURE
    timeout: float = DEFAULT_AI_TIMEOUT


@dataclass(frozen=True)
class AppConfig:
    """Process-wide configuration, built once at startup."""

    database_url: str = field(default_factory=default_database_url)
    ai: AIConfig = field(default_factory=AIConfig)
    host: str = "127.0.0.1"
    port: int = 8765
    dev_mode: bool = False
    cors_origins: tuple[str, ...] = ()
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> AppConfig:
        """
        Build configuration from environment variables.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed.
        """
        temperature = _float_env("PLANFORGE_AI_TEMPERATURE", DEFAULT_AI_TEMPERATURE)
        if not 0.0 <= temperature <= 2.0:
            raise ConfigurationError(
                f"PLANFORGE_AI_TEMPERATURE must be between 0 and 2, got {temperature}"
            )

        cors_env = os.getenv("PLANFORGE_CORS_ORIGINS", "")
        cors_origins = tuple(
            origin.strip() for origin in cors_env.split(",") if origin.strip()
        )

        return cls(
            database_url=os.getenv("PLANFORGE_DATABASE_URL") or default_database_url(),
            ai=AIConfig(
                base_url=os.getenv("PLANFORGE_AI_BASE_URL", DEFAULT_AI_BASE_URL).rstrip("/"),
                model=os.getenv("PLANFORGE_AI_MODEL", DEFAULT_AI_MODEL),
                temperature=temperature,
                timeout=_float_env("PLANFORGE_AI_TIMEOUT", DEFAULT_AI_TIMEOUT),
            ),
            host=os.getenv("PLANFORGE_HOST", "127.0.0.1"),
            port=_int_env("PLANFORGE_PORT", 8765),
            dev_mode=os.getenv("PLANFORGE_DEV_MODE", "0") == "1",
            cors_origins=cors_origins,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


__all__ = [
    "APP_NAME",
    "CREDENTIAL_SERVICE_NAME",
    "CREDENTIAL_ACCOUNT_NAME",
    "AIConfig",
    "AppConfig",
    "default_database_url",
]
