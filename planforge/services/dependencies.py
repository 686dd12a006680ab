"""
Task dependency checks for PlanForge.

Dependencies are advisory: they are shown to the user but never block a
status change. What is enforced is that the dependency graph of a plan
stays a DAG: no self-edges, no cross-plan edges, no cycles.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from planforge.lib.exceptions import ValidationError
from planforge.models.task import TaskStatus

# (dependent_id, prerequisite_id)
Edge = tuple[str, str]


def _adjacency(edges: Iterable[Edge]) -> dict[str, set[str]]:
    graph: dict[str, set[str]] = defaultdict(set)
    for dependent_id, prerequisite_id in edges:
        graph[dependent_id].add(prerequisite_id)
    return graph


def would_create_cycle(edges: Iterable[Edge], dependent_id: str, prerequisite_id: str) -> bool:
    """
    True if adding dependent -> prerequisite closes a cycle.

    That happens exactly when the prerequisite already (transitively)
    depends on the dependent.
    """
    if dependent_id == prerequisite_id:
        return True
    graph = _adjacency(edges)
    stack = [prerequisite_id]
    seen: set[str] = set()
    while stack:
        node = stack.pop()
        if node == dependent_id:
            return True
        if node in seen:
            continue
        seen.add(node)
        stack.extend(graph.get(node, ()))
    return False


def validate_new_dependency(
    dependent: Mapping[str, Any],
    prerequisite: Mapping[str, Any],
    existing_edges: Iterable[Edge],
) -> None:
    """
    Check that a new edge keeps the plan's dependency graph valid.

    Raises:
        ValidationError: Self-dependency, cross-plan edge, or cycle.
    """
    if dependent["id"] == prerequisite["id"]:
        raise ValidationError("A task cannot depend on itself")
    if dependent["plan_id"] != prerequisite["plan_id"]:
        raise ValidationError("Dependent tasks must belong to the same plan")
    if would_create_cycle(existing_edges, dependent["id"], prerequisite["id"]):
        raise ValidationError(
            f"Dependency {dependent['id']} -> {prerequisite['id']} would create a cycle"
        )


def unmet_prerequisites(
    task_id: str,
    tasks: Sequence[Mapping[str, Any]],
    edges: Iterable[Edge],
) -> list[Mapping[str, Any]]:
    """Prerequisites of a task that are not completed yet (for display)."""
    by_id = {t["id"]: t for t in tasks}
    prerequisite_ids = [p for d, p in edges if d == task_id]
    return [
        by_id[p]
        for p in prerequisite_ids
        if p in by_id and by_id[p].get("status") != TaskStatus.COMPLETED
    ]


def plan_edges(tasks: Sequence[Mapping[str, Any]]) -> list[Edge]:
    """Collect all edges from task dicts (Task.to_dict() includes depends_on)."""
    return [
        (edge["dependent_id"], edge["prerequisite_id"])
        for task in tasks
        for edge in task.get("depends_on") or []
    ]


__all__ = [
    "Edge",
    "would_create_cycle",
    "validate_new_dependency",
    "unmet_prerequisites",
    "plan_edges",
]
