"""
Progress rollups for PlanForge.

Single home for every value derived from a plan's tasks and milestones:
dynamic status, completion percentage, per-plan statistics and the
dashboard summary. All functions are pure and work on the plain dicts
produced by the models' ``to_dict()``.

Dynamic status rules:
- CANCELLED and PAUSED are sticky (stored status wins)
- no tasks: the stored status is returned unchanged
- otherwise COMPLETED iff every task is COMPLETED, else ACTIVE
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from planforge.models.base import parse_datetime, utcnow
from planforge.models.milestone import MilestoneStatus
from planforge.models.plan import PlanStatus
from planforge.models.task import TaskStatus
from planforge.services.dependencies import plan_edges, unmet_prerequisites

_STICKY_STATUSES = frozenset({PlanStatus.CANCELLED, PlanStatus.PAUSED})


@dataclass(frozen=True)
class PlanStats:
    """Statistics for a single plan."""

    total_tasks: int = 0
    completed_tasks: int = 0
    task_progress: int = 0
    total_milestones: int = 0
    completed_milestones: int = 0
    milestone_progress: int = 0
    total_estimated_hours: float = 0.0
    total_actual_hours: float = 0.0
    overall_progress: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DashboardStats:
    """Summary across all plans."""

    total_plans: int = 0
    active_plans: int = 0
    completed_plans: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    task_completion_rate: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MilestoneGroup:
    """A milestone with the tasks assigned to it."""

    milestone: Mapping[str, Any]
    tasks: list[Mapping[str, Any]]


def round_percent(part: int, whole: int) -> int:
    """Percentage rounded half-up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return math.floor(part * 100 / whole + 0.5)


def _is_completed(item: Mapping[str, Any]) -> bool:
    return item.get("status") == TaskStatus.COMPLETED


def count_completed(tasks: Iterable[Mapping[str, Any]]) -> int:
    return sum(1 for task in tasks if _is_completed(task))


def calculate_dynamic_status(
    stored_status: str, tasks: Sequence[Mapping[str, Any]] | None
) -> str:
    """Displayed status of a plan, derived from its stored status and tasks."""
    if stored_status in _STICKY_STATUSES:
        return stored_status
    if not tasks:
        return stored_status
    if count_completed(tasks) == len(tasks):
        return PlanStatus.COMPLETED.value
    return PlanStatus.ACTIVE.value


def calculate_progress(tasks: Sequence[Mapping[str, Any]] | None) -> int:
    """round(100 * completed / total), 0 for a plan without tasks."""
    if not tasks:
        return 0
    return round_percent(count_completed(tasks), len(tasks))


def group_tasks_by_milestone(
    milestones: Sequence[Mapping[str, Any]],
    tasks: Sequence[Mapping[str, Any]],
) -> tuple[list[MilestoneGroup], list[Mapping[str, Any]]]:
    """
    Bucket tasks under their milestones.

    Returns:
        (groups in milestone order, tasks without a milestone). A task whose
        milestone_id matches none of the milestones is reported with the
        unassigned ones.
    """
    ordered = sorted(milestones, key=lambda m: m.get("order", 0))
    known_ids = {m["id"] for m in ordered}
    groups = [
        MilestoneGroup(
            milestone=milestone,
            tasks=[t for t in tasks if t.get("milestone_id") == milestone["id"]],
        )
        for milestone in ordered
    ]
    unassigned = [t for t in tasks if t.get("milestone_id") not in known_ids]
    return groups, unassigned


def calculate_plan_stats(plan: Mapping[str, Any]) -> PlanStats:
    """Statistics for one plan dict (as returned by Plan.to_dict())."""
    tasks = plan.get("tasks") or []
    milestones = plan.get("milestones") or []

    completed_tasks = count_completed(tasks)
    completed_milestones = sum(
        1 for m in milestones if m.get("status") == MilestoneStatus.COMPLETED
    )
    task_progress = round_percent(completed_tasks, len(tasks))
    milestone_progress = round_percent(completed_milestones, len(milestones))

    if milestones:
        overall_progress = math.floor((task_progress + milestone_progress) / 2 + 0.5)
    else:
        overall_progress = task_progress

    return PlanStats(
        total_tasks=len(tasks),
        completed_tasks=completed_tasks,
        task_progress=task_progress,
        total_milestones=len(milestones),
        completed_milestones=completed_milestones,
        milestone_progress=milestone_progress,
        total_estimated_hours=float(sum(t.get("estimated_hours") or 0 for t in tasks)),
        total_actual_hours=float(sum(t.get("actual_hours") or 0 for t in tasks)),
        overall_progress=overall_progress,
    )


def is_overdue(task: Mapping[str, Any], now: datetime) -> bool:
    """A task is overdue when its due date has passed and it is not completed."""
    if _is_completed(task):
        return False
    due = parse_datetime(task.get("due_date"))
    return due is not None and due < now


def calculate_dashboard_stats(
    plans: Sequence[Mapping[str, Any]], now: datetime | None = None
) -> DashboardStats:
    """Summary across plans; plan counts use the dynamic status."""
    now = now or utcnow()
    statuses = [
        calculate_dynamic_status(p.get("status", PlanStatus.ACTIVE), p.get("tasks"))
        for p in plans
    ]
    all_tasks = [task for p in plans for task in (p.get("tasks") or [])]
    completed_tasks = count_completed(all_tasks)

    return DashboardStats(
        total_plans=len(plans),
        active_plans=statuses.count(PlanStatus.ACTIVE),
        completed_plans=statuses.count(PlanStatus.COMPLETED),
        total_tasks=len(all_tasks),
        completed_tasks=completed_tasks,
        overdue_tasks=sum(1 for task in all_tasks if is_overdue(task, now)),
        task_completion_rate=round_percent(completed_tasks, len(all_tasks)),
    )


def empty_dashboard_stats() -> dict[str, Any]:
    """Zeroed dashboard stats for readers that must not fail."""
    return DashboardStats().to_dict()


def annotate_plan(plan: dict[str, Any]) -> dict[str, Any]:
    """
    Attach derived fields to a plan dict (in place).

    The plan gets dynamic_status and progress; each task gets blocked_by,
    the ids of its prerequisites that are not completed yet.
    """
    tasks = plan.get("tasks") or []
    plan["dynamic_status"] = calculate_dynamic_status(plan["status"], tasks)
    plan["progress"] = calculate_progress(tasks)
    edges = plan_edges(tasks)
    for task in tasks:
        task["blocked_by"] = [p["id"] for p in unmet_prerequisites(task["id"], tasks, edges)]
    return plan


__all__ = [
    "PlanStats",
    "DashboardStats",
    "MilestoneGroup",
    "round_percent",
    "count_completed",
    "calculate_dynamic_status",
    "calculate_progress",
    "group_tasks_by_milestone",
    "calculate_plan_stats",
    "is_overdue",
    "calculate_dashboard_stats",
    "empty_dashboard_stats",
    "annotate_plan",
]
