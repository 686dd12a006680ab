"""
SQLAlchemy Base for PlanForge.

This module provides the declarative base for all SQLAlchemy models and
the small helpers every model shares (id generation, UTC timestamps,
ISO serialization).

Usage:
    from planforge.models.base import Base

    class MyModel(Base):
        __tablename__ = "my_table"
        ...
"""

import uuid
from datetime import UTC, date, datetime

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base shared by every PlanForge table."""


def new_id() -> str:
    """Generate a primary key for a new row."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Timezone-aware current time used for all timestamps."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def isoformat(value: datetime | date | None) -> str | None:
    """Serialize a timestamp for the plain-dict representation."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value.isoformat()


def parse_datetime(value: datetime | str | None) -> datetime | None:
    """Accept either a datetime or an ISO-8601 string (as found in backups)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(value))


__all__ = ["Base", "new_id", "utcnow", "as_utc", "isoformat", "parse_datetime"]
