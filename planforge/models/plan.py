"""
Plan Model for PlanForge.

A plan is the top-level container for a user goal. It owns its
milestones, tasks and resources; deleting a plan deletes all of them.
"""

from enum import StrEnum
from typing import Any

from sqlalchemy import Column, DateTime, Index, String, Text
from sqlalchemy.orm import relationship

from planforge.models.base import Base, isoformat, new_id, utcnow


class PlanStatus(StrEnum):
    """Stored plan status. The displayed status is derived, see services.progress."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"


class Plan(Base):
    """
    Plan model.

    Attributes:
        id: Primary key (UUID string)
        title: Short plan title
        description: Optional longer description
        goal: The free-text goal the plan was created for
        timeframe: Optional free-text timeframe ("2 months")
        status: Stored status (ACTIVE | COMPLETED | PAUSED | CANCELLED)
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "plans"

    # Relationships
    milestones = relationship(
        "Milestone",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="Milestone.order",
        lazy="selectin",
    )
    tasks = relationship(
        "Task",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="Task.order",
        lazy="selectin",
    )
    resources = relationship(
        "Resource",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="Resource.created_at",
        lazy="selectin",
    )

    # Columns
    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    goal = Column(Text, nullable=False)
    timeframe = Column(String(100), nullable=True)
    status = Column(String(20), default=PlanStatus.ACTIVE.value, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("idx_plan_status", "status"),
        Index("idx_plan_created_at", "created_at"),
    )

    def to_dict(self, include_children: bool = True) -> dict[str, Any]:
        """Plain-data representation, children ordered by their `order`."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "goal": self.goal,
            "timeframe": self.timeframe,
            "status": self.status,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_children:
            data["milestones"] = [m.to_dict() for m in self.milestones]
            data["tasks"] = [t.to_dict() for t in self.tasks]
            data["resources"] = [r.to_dict() for r in self.resources]
        return data

    def __repr__(self) -> str:
        return f"<Plan(id={self.id}, status={self.status})>"


__all__ = ["Plan", "PlanStatus"]
