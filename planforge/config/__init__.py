"""Configuration package for PlanForge."""

from planforge.config.settings import AIConfig, AppConfig

__all__ = ["AIConfig", "AppConfig"]
