"""
Milestone Model for PlanForge.

A milestone is an ordered phase of a plan. Tasks may be grouped under
one; deleting the milestone deletes those tasks too.
"""

from enum import StrEnum
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from planforge.models.base import Base, isoformat, new_id, utcnow


class MilestoneStatus(StrEnum):
    """Milestone status."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Milestone(Base):
    """
    Milestone model.

    Attributes:
        id: Primary key (UUID string)
        plan_id: Foreign key to plans.id
        title: Milestone title
        description: Optional description
        target_date: Optional target date
        status: PENDING | IN_PROGRESS | COMPLETED
        order: Sequence position within the plan
    """

    __tablename__ = "milestones"

    # Relationships
    plan = relationship("Plan", back_populates="milestones")
    tasks = relationship(
        "Task",
        back_populates="milestone",
        cascade="all, delete",
        order_by="Task.order",
    )

    # Columns
    id = Column(String(36), primary_key=True, default=new_id)
    plan_id = Column(
        String(36),
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    target_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), default=MilestoneStatus.PENDING.value, nullable=False)
    order = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("idx_milestone_plan_order", "plan_id", "order"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "plan_id": self.plan_id,
            "title": self.title,
            "description": self.description,
            "target_date": isoformat(self.target_date),
            "status": self.status,
            "order": self.order,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Milestone(id={self.id}, plan_id={self.plan_id}, order={self.order})>"


__all__ = ["Milestone", "MilestoneStatus"]
