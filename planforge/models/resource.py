"""
Resource Model for PlanForge.

Reference material (articles, videos, tools...) attached to a plan.
"""

from enum import StrEnum
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from planforge.models.base import Base, isoformat, new_id, utcnow


class ResourceType(StrEnum):
    """Kind of resource."""

    ARTICLE = "ARTICLE"
    VIDEO = "VIDEO"
    BOOK = "BOOK"
    COURSE = "COURSE"
    TOOL = "TOOL"
    LINK = "LINK"
    OTHER = "OTHER"


class Resource(Base):
    """Resource model belonging to exactly one plan."""

    __tablename__ = "resources"

    plan = relationship("Plan", back_populates="resources")

    id = Column(String(36), primary_key=True, default=new_id)
    plan_id = Column(
        String(36),
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    url = Column(String(2048), nullable=True)
    type = Column(String(20), default=ResourceType.LINK.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "plan_id": self.plan_id,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "type": self.type,
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Resource(id={self.id}, plan_id={self.plan_id}, type={self.type})>"


__all__ = ["Resource", "ResourceType"]
