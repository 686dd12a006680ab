"""
Applying AI drafts to the database.

A GeneratedPlan becomes a plan with milestones, tasks (assigned through
``milestone_index``) and dependencies (from ``prerequisites`` titles).
Generated tasks for an existing plan are attached to milestones by
``milestone_name``; unknown names create new milestones at the end.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from planforge.ai.schemas import GeneratedPlan, GeneratedTask
from planforge.lib.exceptions import NotFoundError, PlanForgeException, ValidationError
from planforge.services.database import DatabaseService

logger = logging.getLogger(__name__)


def _title_key(title: str) -> str:
    return title.strip().casefold()


def _task_payload(plan_id: str, task: GeneratedTask, milestone_id: str | None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "plan_id": plan_id,
        "title": task.title,
        "description": task.description,
        "priority": task.priority,
        "estimated_hours": task.estimated_hours,
        "milestone_id": milestone_id,
    }
    if task.order:
        payload["order"] = task.order
    return payload


def save_generated_plan(
    db: DatabaseService,
    draft: GeneratedPlan,
    goal: str,
    timeframe: str | None = None,
) -> dict[str, Any]:
    """
    Persist a generated plan and return the stored plan dict.

    Tasks whose ``milestone_index`` is out of range stay unassigned.
    Prerequisite titles that match no task, or that would create a
    cycle, are skipped with a warning. If any write fails the partially
    created plan is removed before the error propagates.
    """
    plan = db.create_plan(
        {
            "title": draft.title,
            "description": draft.description,
            "goal": goal,
            "timeframe": timeframe or draft.estimated_timeframe,
        }
    )
    plan_id = plan["id"]

    try:
        milestone_ids: list[str] = []
        for index, milestone in enumerate(draft.milestones):
            created = db.create_milestone(
                {
                    "plan_id": plan_id,
                    "title": milestone.title,
                    "description": milestone.description,
                    "order": milestone.order or index + 1,
                }
            )
            milestone_ids.append(created["id"])

        task_ids: dict[str, str] = {}
        created_tasks: list[tuple[GeneratedTask, str]] = []
        for task in draft.tasks:
            milestone_id = None
            if task.milestone_index is not None and 0 <= task.milestone_index < len(milestone_ids):
                milestone_id = milestone_ids[task.milestone_index]
            created = db.create_task(_task_payload(plan_id, task, milestone_id))
            task_ids.setdefault(_title_key(task.title), created["id"])
            created_tasks.append((task, created["id"]))

        for task, task_id in created_tasks:
            for title in task.prerequisites:
                prerequisite_id = task_ids.get(_title_key(title))
                if prerequisite_id is None:
                    logger.warning(
                        "Skipping unknown prerequisite",
                        extra={"task": task.title, "prerequisite": title},
                    )
                    continue
                try:
                    db.create_task_dependency(task_id, prerequisite_id)
                except ValidationError as e:
                    logger.warning("Skipping invalid prerequisite: %s", e)
    except PlanForgeException:
        logger.error("Failed to save generated plan, rolling back", extra={"plan_id": plan_id})
        db.delete_plan(plan_id)
        raise

    logger.info(
        "Generated plan saved",
        extra={
            "plan_id": plan_id,
            "milestones": len(draft.milestones),
            "tasks": len(draft.tasks),
        },
    )
    saved = db.get_plan(plan_id)
    if saved is None:
        raise NotFoundError("Plan", plan_id)
    return saved


def save_generated_tasks(
    db: DatabaseService,
    plan_id: str,
    tasks: Sequence[GeneratedTask],
) -> list[dict[str, Any]]:
    """
    Add generated tasks to an existing plan.

    ``milestone_name`` is matched case-insensitively against the plan's
    milestones; a name with no match creates a milestone ordered after
    the existing ones.

    Raises:
        NotFoundError: If the plan does not exist.
    """
    plan = db.get_plan(plan_id)
    if plan is None:
        raise NotFoundError("Plan", plan_id)

    milestones = {_title_key(m["title"]): m["id"] for m in plan["milestones"]}
    milestone_count = len(plan["milestones"])

    created: list[dict[str, Any]] = []
    for task in tasks:
        milestone_id = None
        if task.milestone_name and task.milestone_name.strip():
            key = _title_key(task.milestone_name)
            milestone_id = milestones.get(key)
            if milestone_id is None:
                milestone = db.create_milestone(
                    {
                        "plan_id": plan_id,
                        "title": task.milestone_name.strip(),
                        "order": milestone_count + 1,
                    }
                )
                milestone_count += 1
                milestone_id = milestones[key] = milestone["id"]
                logger.info(
                    "Created milestone for generated task",
                    extra={"plan_id": plan_id, "milestone": milestone["title"]},
                )
        created.append(db.create_task(_task_payload(plan_id, task, milestone_id)))

    logger.info("Generated tasks saved", extra={"plan_id": plan_id, "count": len(created)})
    return created


__all__ = ["save_generated_plan", "save_generated_tasks"]
