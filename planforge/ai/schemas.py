"""
Shapes of AI-generated content.

The completion API answers in camelCase JSON (``estimatedHours``,
``milestoneIndex``); the models accept both spellings and dump
snake_case.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from planforge.models.task import TaskPriority


class _GeneratedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GeneratedMilestone(_GeneratedModel):
    """Milestone proposed by the model."""

    title: str = Field(..., min_length=1)
    description: str = ""
    order: int = 0
    estimated_duration: str | None = Field(default=None, alias="estimatedDuration")


class GeneratedTask(_GeneratedModel):
    """Task proposed by the model."""

    title: str = Field(..., min_length=1)
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_hours: float | None = Field(default=None, ge=0, alias="estimatedHours")
    milestone_index: int | None = Field(default=None, alias="milestoneIndex")
    milestone_name: str | None = Field(default=None, alias="milestoneName")
    order: int = 0
    prerequisites: list[str] = Field(default_factory=list)

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: Any) -> Any:
        if isinstance(value, str):
            upper = value.strip().upper()
            return upper if upper in TaskPriority.__members__ else TaskPriority.MEDIUM
        return value


class GeneratedPlan(_GeneratedModel):
    """A complete plan draft. title, milestones and tasks are required."""

    title: str = Field(..., min_length=1)
    description: str = ""
    milestones: list[GeneratedMilestone]
    tasks: list[GeneratedTask]
    estimated_timeframe: str | None = Field(default=None, alias="estimatedTimeframe")
    tips: list[str] = Field(default_factory=list)


class TaskEnhancement(_GeneratedModel):
    """Extra detail for an existing task."""

    description: str
    estimated_hours: float | None = Field(default=None, alias="estimatedHours")
    tips: list[str] = Field(default_factory=list)


__all__ = [
    "GeneratedMilestone",
    "GeneratedTask",
    "GeneratedPlan",
    "TaskEnhancement",
]
