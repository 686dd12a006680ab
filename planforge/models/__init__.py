"""
Models package for PlanForge.

This package exports all SQLAlchemy models.

Usage:
    from planforge.models import Plan, Milestone, Task, TaskDependency, Resource, Settings
"""

from planforge.models.base import Base
from planforge.models.milestone import Milestone, MilestoneStatus
from planforge.models.plan import Plan, PlanStatus
from planforge.models.resource import Resource, ResourceType
from planforge.models.settings import SETTINGS_ID, Settings, default_settings_dict
from planforge.models.task import Task, TaskDependency, TaskPriority, TaskStatus

__all__ = [
    # Base
    "Base",
    # Core Models
    "Plan",
    "Milestone",
    "Task",
    "TaskDependency",
    "Resource",
    "Settings",
    # Enums
    "PlanStatus",
    "MilestoneStatus",
    "TaskStatus",
    "TaskPriority",
    "ResourceType",
    # Helpers
    "SETTINGS_ID",
    "default_settings_dict",
]
