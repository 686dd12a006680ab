"""
Settings Model for PlanForge.

Singleton row (id = "default") holding UI preferences and, as a fallback
to the OS credential store, the OpenAI API key.

Data Classification: SENSITIVE (openai_api_key)
- The key is never part of to_dict(); callers ask for it explicitly.
"""

from typing import Any

from sqlalchemy import Column, DateTime, String, Text

from planforge.models.base import Base, isoformat, utcnow

SETTINGS_ID = "default"
DEFAULT_THEME = "system"
DEFAULT_LANGUAGE = "en"


class Settings(Base):
    """Application settings (one row)."""

    __tablename__ = "settings"

    id = Column(String(36), primary_key=True, default=SETTINGS_ID)
    theme = Column(String(20), default=DEFAULT_THEME, nullable=False)
    language = Column(String(10), default=DEFAULT_LANGUAGE, nullable=False)
    openai_api_key = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "theme": self.theme,
            "language": self.language,
            "has_openai_api_key": bool(self.openai_api_key),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Settings(theme={self.theme}, language={self.language})>"


def default_settings_dict() -> dict[str, Any]:
    """What readers fall back to when settings cannot be loaded."""
    now = isoformat(utcnow())
    return {
        "id": SETTINGS_ID,
        "theme": DEFAULT_THEME,
        "language": DEFAULT_LANGUAGE,
        "has_openai_api_key": False,
        "created_at": now,
        "updated_at": now,
    }


__all__ = ["Settings", "SETTINGS_ID", "default_settings_dict"]
