"""
REST API Routes for PlanForge.

All responses use the envelope from planforge.api.schemas. Domain errors
are raised as PlanForgeException subclasses and turned into error
envelopes by the handlers registered in create_app().

Endpoints (all under /api/v1 prefix):
- /app/version, /app/platform - Application info
- /db/test-connection - Database connectivity check
- /plans, /milestones, /tasks, /task-dependencies, /resources - CRUD
- /settings - Display settings (never returns the API key)
- /plans/{id}/stats, /stats/dashboard - Derived statistics
- /ai/* - Key management and generation
- /plans/from-draft, /plans/{id}/generate-tasks - Apply AI output
- /backup/export, /backup/import - JSON backups
"""

from __future__ import annotations

import logging
import platform
import sys
from datetime import datetime
from typing import Any, ClassVar

from fastapi import APIRouter as FastAPIRouter
from fastapi import Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from planforge import __version__
from planforge.ai.manager import AIServiceManager
from planforge.ai.schemas import GeneratedPlan
from planforge.api.dependencies import get_ai_manager, require_database
from planforge.api.schemas import success_response
from planforge.lib.exceptions import NotFoundError
from planforge.models import (
    MilestoneStatus,
    PlanStatus,
    ResourceType,
    TaskPriority,
    TaskStatus,
)
from planforge.services import backup
from planforge.services.database import DatabaseService
from planforge.services.generation import save_generated_plan, save_generated_tasks

logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Request Models for API Input Validation
# =============================================================================


class PartialUpdate(BaseModel):
    """PATCH body: omitted fields stay unchanged, but some may not be cleared."""

    not_nullable: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            nulls = [name for name in cls.not_nullable if name in data and data[name] is None]
            if nulls:
                raise ValueError(f"Field(s) may not be null: {', '.join(nulls)}")
        return data


class CreatePlanRequest(BaseModel):
    """Validated input for creating a plan."""
    title: str = Field(..., min_length=1, max_length=500)
    goal: str = Field(..., min_length=1, max_length=5000)
    description: str | None = Field(default=None, max_length=5000)
    timeframe: str | None = Field(default=None, max_length=200)
    status: PlanStatus | None = None


class UpdatePlanRequest(PartialUpdate):
    not_nullable = ("title", "goal", "status")

    title: str | None = Field(default=None, min_length=1, max_length=500)
    goal: str | None = Field(default=None, min_length=1, max_length=5000)
    description: str | None = Field(default=None, max_length=5000)
    timeframe: str | None = Field(default=None, max_length=200)
    status: PlanStatus | None = None


class CreateMilestoneRequest(BaseModel):
    """Validated input for creating a milestone."""
    plan_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    target_date: datetime | None = None
    status: MilestoneStatus | None = None
    order: int | None = Field(default=None, ge=0)


class UpdateMilestoneRequest(PartialUpdate):
    not_nullable = ("title", "status", "order")

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    target_date: datetime | None = None
    status: MilestoneStatus | None = None
    order: int | None = Field(default=None, ge=0)


class CreateTaskRequest(BaseModel):
    """Validated input for creating a task."""
    plan_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    due_date: datetime | None = None
    completed_at: datetime | None = None
    order: int | None = Field(default=None, ge=0)
    milestone_id: str | None = None


class UpdateTaskRequest(PartialUpdate):
    not_nullable = ("title", "status", "priority", "order")

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    due_date: datetime | None = None
    completed_at: datetime | None = None
    order: int | None = Field(default=None, ge=0)
    milestone_id: str | None = None


class CreateTaskDependencyRequest(BaseModel):
    dependent_id: str = Field(..., min_length=1)
    prerequisite_id: str = Field(..., min_length=1)


class CreateResourceRequest(BaseModel):
    """Validated input for creating a resource."""
    plan_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    url: str | None = Field(default=None, max_length=2000)
    type: ResourceType | None = None


class UpdateResourceRequest(PartialUpdate):
    not_nullable = ("title", "type")

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    url: str | None = Field(default=None, max_length=2000)
    type: ResourceType | None = None


class UpdateSettingsRequest(PartialUpdate):
    """Validated input for updating settings."""
    not_nullable = ("theme", "language")

    theme: str | None = Field(default=None, max_length=50)
    language: str | None = Field(default=None, max_length=10)
    openai_api_key: str | None = Field(default=None, max_length=500)


class InitializeAIRequest(BaseModel):
    api_key: str | None = Field(default=None, max_length=500)


class GeneratePlanRequest(BaseModel):
    goal: str = Field(..., min_length=1, max_length=5000)
    timeframe: str | None = Field(default=None, max_length=200)


class EnhanceTaskRequest(BaseModel):
    task_title: str = Field(..., min_length=1, max_length=500)
    context: str = Field(default="", max_length=5000)


class SuggestNextStepsRequest(BaseModel):
    plan_title: str = Field(..., min_length=1, max_length=500)
    completed_tasks: list[str] = Field(default_factory=list)
    remaining_tasks: list[str] = Field(default_factory=list)


class GenerateTasksRequest(BaseModel):
    plan_title: str = Field(..., min_length=1, max_length=500)
    plan_goal: str = Field(..., min_length=1, max_length=5000)
    existing_tasks: list[str] = Field(default_factory=list)
    existing_milestones: list[str] = Field(default_factory=list)
    count: int | None = Field(default=None, ge=1, le=20)


class ApiKeyRequest(BaseModel):
    api_key: str = Field(..., min_length=1, max_length=500)


class SaveDraftRequest(BaseModel):
    """A generated plan plus the goal it was generated for."""
    goal: str = Field(..., min_length=1, max_length=5000)
    timeframe: str | None = Field(default=None, max_length=200)
    plan: GeneratedPlan


class GenerateIntoPlanRequest(BaseModel):
    count: int | None = Field(default=None, ge=1, le=20)


# =============================================================================
# FastAPI Router with /api/v1 prefix
# =============================================================================

router = FastAPIRouter(prefix="/api/v1")


# =============================================================================
# Application Endpoints
# =============================================================================


@router.get("/app/version")
async def get_app_version() -> dict[str, Any]:
    return success_response({"version": __version__})


@router.get("/app/platform")
async def get_platform() -> dict[str, Any]:
    return success_response({"platform": sys.platform, "system": platform.system()})


@router.get("/db/test-connection")
async def test_database_connection(
    db: DatabaseService = Depends(require_database),
) -> dict[str, Any]:
    """
    Check the database with a trivial query.

    Returns:
        Envelope with {"success": bool, "error"?: str}
    """
    return success_response(db.test_connection())


# =============================================================================
# Plan Endpoints
# =============================================================================


@router.post("/plans")
async def create_plan(
    data: CreatePlanRequest, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    return success_response(db.create_plan(data.model_dump(exclude_none=True)))


@router.get("/plans")
async def list_plans(db: DatabaseService = Depends(require_database)) -> dict[str, Any]:
    """
    List all plans, newest first.

    Each plan carries its milestones, tasks and resources plus the
    derived ``dynamic_status`` and ``progress``.
    """
    return success_response(db.get_plans())


@router.post("/plans/from-draft")
async def create_plan_from_draft(
    data: SaveDraftRequest, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    """
    Persist an AI-generated plan draft.

    Args:
        data: The draft as returned by /ai/generate-plan, plus its goal

    Returns:
        Envelope with the stored plan
    """
    return success_response(save_generated_plan(db, data.plan, data.goal, data.timeframe))


@router.get("/plans/{plan_id}")
async def get_plan(plan_id: str, db: DatabaseService = Depends(require_database)) -> dict[str, Any]:
    plan = db.get_plan(plan_id)
    if plan is None:
        raise NotFoundError("Plan", plan_id)
    return success_response(plan)


@router.patch("/plans/{plan_id}")
async def update_plan(
    plan_id: str, data: UpdatePlanRequest, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    return success_response(db.update_plan(plan_id, data.model_dump(exclude_unset=True)))


@router.delete("/plans/{plan_id}")
async def delete_plan(plan_id: str, db: DatabaseService = Depends(require_database)) -> dict[str, Any]:
    return success_response(db.delete_plan(plan_id))


@router.get("/plans/{plan_id}/stats")
async def get_plan_stats(
    plan_id: str, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    return success_response(db.get_plan_stats(plan_id))


@router.post("/plans/{plan_id}/generate-tasks")
async def generate_tasks_for_plan(
    plan_id: str,
    data: GenerateIntoPlanRequest | None = None,
    db: DatabaseService = Depends(require_database),
    ai: AIServiceManager = Depends(get_ai_manager),
) -> dict[str, Any]:
    """
    Generate tasks for a stored plan and save them.

    Existing task titles and milestone names are sent to the model;
    returned tasks are attached to milestones by name, creating missing
    milestones.

    Returns:
        Envelope with the created tasks
    """
    plan = db.get_plan(plan_id)
    if plan is None:
        raise NotFoundError("Plan", plan_id)
    tasks = await ai.generate_tasks(
        plan["title"],
        plan["goal"],
        [t["title"] for t in plan["tasks"]],
        [m["title"] for m in plan["milestones"]],
        count=data.count if data else None,
    )
    return success_response(save_generated_tasks(db, plan_id, tasks))


# =============================================================================
# Milestone Endpoints
# =============================================================================


@router.post("/milestones")
async def create_milestone(
    data: CreateMilestoneRequest, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    return success_response(db.create_milestone(data.model_dump(exclude_none=True)))


@router.patch("/milestones/{milestone_id}")
async def update_milestone(
    milestone_id: str,
    data: UpdateMilestoneRequest,
    db: DatabaseService = Depends(require_database),
) -> dict[str, Any]:
    return success_response(
        db.update_milestone(milestone_id, data.model_dump(exclude_unset=True))
    )


@router.delete("/milestones/{milestone_id}")
async def delete_milestone(
    milestone_id: str, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    """Delete a milestone and every task assigned to it."""
    return success_response(db.delete_milestone(milestone_id))


# =============================================================================
# Task Endpoints
# =============================================================================


@router.post("/tasks")
async def create_task(
    data: CreateTaskRequest, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    return success_response(db.create_task(data.model_dump(exclude_none=True)))


@router.patch("/tasks/{task_id}")
async def update_task(
    task_id: str, data: UpdateTaskRequest, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    """
    Update a task.

    Moving to COMPLETED stamps ``completed_at`` unless one is given;
    leaving COMPLETED clears it. Prerequisites never block a change.
    """
    return success_response(db.update_task(task_id, data.model_dump(exclude_unset=True)))


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, db: DatabaseService = Depends(require_database)) -> dict[str, Any]:
    return success_response(db.delete_task(task_id))


@router.post("/task-dependencies")
async def create_task_dependency(
    data: CreateTaskDependencyRequest, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    return success_response(db.create_task_dependency(data.dependent_id, data.prerequisite_id))


@router.delete("/task-dependencies/{dependent_id}/{prerequisite_id}")
async def delete_task_dependency(
    dependent_id: str,
    prerequisite_id: str,
    db: DatabaseService = Depends(require_database),
) -> dict[str, Any]:
    return success_response(db.delete_task_dependency(dependent_id, prerequisite_id))


# =============================================================================
# Resource Endpoints
# =============================================================================


@router.post("/resources")
async def create_resource(
    data: CreateResourceRequest, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    return success_response(db.create_resource(data.model_dump(exclude_none=True)))


@router.patch("/resources/{resource_id}")
async def update_resource(
    resource_id: str,
    data: UpdateResourceRequest,
    db: DatabaseService = Depends(require_database),
) -> dict[str, Any]:
    return success_response(db.update_resource(resource_id, data.model_dump(exclude_unset=True)))


@router.delete("/resources/{resource_id}")
async def delete_resource(
    resource_id: str, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    return success_response(db.delete_resource(resource_id))


# =============================================================================
# Settings & Statistics Endpoints
# =============================================================================


@router.get("/settings")
async def get_settings(db: DatabaseService = Depends(require_database)) -> dict[str, Any]:
    return success_response(db.get_settings())


@router.patch("/settings")
async def update_settings(
    data: UpdateSettingsRequest, db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    """
    Update display settings.

    The response reports ``has_openai_api_key`` and never the key itself.
    """
    return success_response(db.update_settings(data.model_dump(exclude_unset=True)))


@router.get("/stats/dashboard")
async def get_dashboard_stats(db: DatabaseService = Depends(require_database)) -> dict[str, Any]:
    return success_response(db.get_dashboard_stats())


# =============================================================================
# AI Endpoints
# =============================================================================


@router.post("/ai/initialize")
async def initialize_ai(
    data: InitializeAIRequest | None = None,
    ai: AIServiceManager = Depends(get_ai_manager),
) -> dict[str, Any]:
    """
    Validate a key (or the stored one) against the completion API.

    Returns:
        Envelope with {"initialized": true}, or an AI error kind
    """
    await ai.initialize(data.api_key if data else None)
    return success_response({"initialized": True})


@router.get("/ai/status")
async def get_ai_status(ai: AIServiceManager = Depends(get_ai_manager)) -> dict[str, Any]:
    return success_response(ai.status())


@router.post("/ai/generate-plan")
async def generate_plan(
    data: GeneratePlanRequest, ai: AIServiceManager = Depends(get_ai_manager)
) -> dict[str, Any]:
    """
    Draft a plan for a goal. Nothing is saved; see /plans/from-draft.
    """
    plan = await ai.generate_plan(data.goal, data.timeframe)
    return success_response(plan.model_dump())


@router.post("/ai/enhance-task")
async def enhance_task(
    data: EnhanceTaskRequest, ai: AIServiceManager = Depends(get_ai_manager)
) -> dict[str, Any]:
    enhancement = await ai.enhance_task(data.task_title, data.context)
    return success_response(enhancement.model_dump())


@router.post("/ai/suggest-next-steps")
async def suggest_next_steps(
    data: SuggestNextStepsRequest, ai: AIServiceManager = Depends(get_ai_manager)
) -> dict[str, Any]:
    steps = await ai.suggest_next_steps(
        data.plan_title, data.completed_tasks, data.remaining_tasks
    )
    return success_response(steps)


@router.post("/ai/generate-tasks")
async def generate_tasks(
    data: GenerateTasksRequest, ai: AIServiceManager = Depends(get_ai_manager)
) -> dict[str, Any]:
    tasks = await ai.generate_tasks(
        data.plan_title,
        data.plan_goal,
        data.existing_tasks,
        data.existing_milestones,
        data.count,
    )
    return success_response([task.model_dump() for task in tasks])


@router.get("/ai/api-key")
async def get_api_key(ai: AIServiceManager = Depends(get_ai_manager)) -> dict[str, Any]:
    """The only route that returns the stored key."""
    return success_response({"api_key": await ai.get_api_key()})


@router.put("/ai/api-key")
async def set_api_key(
    data: ApiKeyRequest, ai: AIServiceManager = Depends(get_ai_manager)
) -> dict[str, Any]:
    """
    Store the key in the credential store and in the database.

    Returns:
        Envelope with which stores accepted the key
    """
    return success_response(await ai.set_api_key(data.api_key))


@router.delete("/ai/api-key")
async def delete_api_key(ai: AIServiceManager = Depends(get_ai_manager)) -> dict[str, Any]:
    await ai.delete_api_key()
    return success_response({"deleted": True})


# =============================================================================
# Backup Endpoints
# =============================================================================


@router.get("/backup/export")
async def export_backup(db: DatabaseService = Depends(require_database)) -> JSONResponse:
    """
    Download every plan and the display settings as one JSON document.

    The response body is the backup document itself (not enveloped) with
    a ``planforge-backup-YYYY-MM-DD.json`` attachment name.
    """
    document = backup.export_data(db)
    filename = backup.backup_filename()
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/backup/import")
async def import_backup(
    document: dict[str, Any], db: DatabaseService = Depends(require_database)
) -> dict[str, Any]:
    """
    Restore a backup document.

    Only ``data.plans`` being a list is required; an unknown version is
    imported with a warning.
    """
    return success_response(backup.import_data(db, document).to_dict())


__all__ = ["router"]
