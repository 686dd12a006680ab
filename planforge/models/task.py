"""
Task and TaskDependency Models for PlanForge.

Task status:
- TODO: Not yet started
- IN_PROGRESS: Currently being worked on
- PAUSED: Put on hold
- COMPLETED: Task finished (stamps completed_at)

A TaskDependency is an advisory directed edge: `dependent` should be
done after `prerequisite`. Edges never gate status changes.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from planforge.models.base import Base, isoformat, new_id, utcnow


class TaskStatus(StrEnum):
    """Task status."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class TaskPriority(StrEnum):
    """Task priority."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Task(Base):
    """
    Task model.

    Attributes:
        id: Primary key (UUID string)
        plan_id: Foreign key to plans.id
        milestone_id: Foreign key to milestones.id (optional, same plan)
        title: Task title
        description: Optional description
        status: TODO | IN_PROGRESS | PAUSED | COMPLETED
        priority: HIGH | MEDIUM | LOW
        estimated_hours: Optional estimate
        actual_hours: Optional time spent
        due_date: Optional due date
        completed_at: Set when the task is completed
        order: Sequence position within the plan
    """

    __tablename__ = "tasks"

    # Relationships
    plan = relationship("Plan", back_populates="tasks")
    milestone = relationship("Milestone", back_populates="tasks")
    # Edges where this task waits on another
    depends_on = relationship(
        "TaskDependency",
        foreign_keys="TaskDependency.dependent_id",
        back_populates="dependent",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    # Edges where another task waits on this one
    dependents = relationship(
        "TaskDependency",
        foreign_keys="TaskDependency.prerequisite_id",
        back_populates="prerequisite",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    # Columns
    id = Column(String(36), primary_key=True, default=new_id)
    plan_id = Column(
        String(36),
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    milestone_id = Column(
        String(36),
        ForeignKey("milestones.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default=TaskStatus.TODO.value, nullable=False)
    priority = Column(String(10), default=TaskPriority.MEDIUM.value, nullable=False)
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
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
        Index("idx_task_plan_status", "plan_id", "status"),
        Index("idx_task_plan_order", "plan_id", "order"),
        Index("idx_task_due_date", "due_date"),
    )

    def apply_status(self, status: str, completed_at: datetime | None = None) -> None:
        """Set status, keeping completed_at consistent with it."""
        self.status = status
        if status == TaskStatus.COMPLETED:
            if completed_at is not None:
                self.completed_at = completed_at
            elif self.completed_at is None:
                self.completed_at = utcnow()
        else:
            self.completed_at = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "plan_id": self.plan_id,
            "milestone_id": self.milestone_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "due_date": isoformat(self.due_date),
            "completed_at": isoformat(self.completed_at),
            "order": self.order,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            "depends_on": [edge.to_dict() for edge in self.depends_on],
            "dependents": [edge.to_dict() for edge in self.dependents],
        }

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, plan_id={self.plan_id}, status={self.status}, priority={self.priority})>"


class TaskDependency(Base):
    """
    Advisory edge between two tasks of the same plan.

    Attributes:
        id: Primary key (UUID string)
        dependent_id: The task that waits
        prerequisite_id: The task that should be done first
    """

    __tablename__ = "task_dependencies"

    dependent = relationship(
        "Task", foreign_keys="TaskDependency.dependent_id", back_populates="depends_on"
    )
    prerequisite = relationship(
        "Task", foreign_keys="TaskDependency.prerequisite_id", back_populates="dependents"
    )

    id = Column(String(36), primary_key=True, default=new_id)
    dependent_id = Column(
        String(36),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    prerequisite_id = Column(
        String(36),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("dependent_id", "prerequisite_id", name="uq_task_dependency_pair"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "dependent_id": self.dependent_id,
            "prerequisite_id": self.prerequisite_id,
        }

    def __repr__(self) -> str:
        return f"<TaskDependency({self.dependent_id} -> {self.prerequisite_id})>"


__all__ = ["Task", "TaskDependency", "TaskPriority", "TaskStatus"]
