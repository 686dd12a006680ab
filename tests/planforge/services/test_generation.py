"""
Tests for persisting AI drafts.
"""

from __future__ import annotations

import pytest

from planforge.ai.schemas import GeneratedPlan, GeneratedTask
from planforge.lib.exceptions import NotFoundError
from planforge.services.generation import save_generated_plan, save_generated_tasks


@pytest.fixture()
def draft() -> GeneratedPlan:
    return GeneratedPlan.model_validate(
        {
            "title": "Launch a Podcast",
            "description": "From idea to first episode.",
            "milestones": [
                {"title": "Planning", "description": "Concept", "order": 1},
                {"title": "Recording", "description": "Make episodes", "order": 2},
            ],
            "tasks": [
                {"title": "Pick a topic", "priority": "HIGH", "estimatedHours": 2, "milestoneIndex": 0},
                {"title": "Buy a microphone", "priority": "MEDIUM", "milestoneIndex": 0},
                {
                    "title": "Record pilot",
                    "priority": "high",
                    "estimatedHours": 4,
                    "milestoneIndex": 1,
                    "prerequisites": ["Pick a topic", "buy a microphone", "Nonexistent"],
                },
                {"title": "Stray task", "milestoneIndex": 7},
            ],
            "estimatedTimeframe": "3 months",
            "tips": ["Keep episodes short"],
        }
    )


class TestSaveGeneratedPlan:
    """A draft becomes a plan with milestones, tasks and dependencies."""

    def test_structure(self, db, draft) -> None:
        plan = save_generated_plan(db, draft, goal="Start a podcast")

        assert plan["title"] == "Launch a Podcast"
        assert plan["goal"] == "Start a podcast"
        assert plan["timeframe"] == "3 months"
        assert [m["title"] for m in plan["milestones"]] == ["Planning", "Recording"]
        assert len(plan["tasks"]) == 4

    def test_milestone_index_mapping(self, db, draft) -> None:
        plan = save_generated_plan(db, draft, goal="g")
        milestone_ids = [m["id"] for m in plan["milestones"]]
        by_title = {t["title"]: t for t in plan["tasks"]}

        assert by_title["Pick a topic"]["milestone_id"] == milestone_ids[0]
        assert by_title["Record pilot"]["milestone_id"] == milestone_ids[1]
        assert by_title["Record pilot"]["priority"] == "HIGH"
        assert by_title["Stray task"]["milestone_id"] is None

    def test_prerequisites_become_dependencies(self, db, draft) -> None:
        plan = save_generated_plan(db, draft, goal="g")
        by_title = {t["title"]: t for t in plan["tasks"]}
        prerequisites = {e["prerequisite_id"] for e in by_title["Record pilot"]["depends_on"]}
        assert prerequisites == {by_title["Pick a topic"]["id"], by_title["Buy a microphone"]["id"]}

    def test_explicit_timeframe_wins(self, db, draft) -> None:
        plan = save_generated_plan(db, draft, goal="g", timeframe="6 weeks")
        assert plan["timeframe"] == "6 weeks"


class TestSaveGeneratedTasks:
    """Generated tasks attach to milestones by name."""

    def test_matches_existing_and_creates_missing(self, db) -> None:
        plan = db.create_plan({"title": "P", "goal": "g"})
        existing = db.create_milestone({"plan_id": plan["id"], "title": "Existing Milestone"})

        tasks = [
            GeneratedTask(title="Task 1", milestone_name="existing milestone"),
            GeneratedTask(title="Task 2", milestone_name="New Milestone"),
            GeneratedTask(title="Task 3", milestone_name="NEW MILESTONE"),
            GeneratedTask(title="Task 4"),
        ]
        created = save_generated_tasks(db, plan["id"], tasks)

        reloaded = db.get_plan(plan["id"])
        milestones = {m["title"]: m for m in reloaded["milestones"]}
        assert set(milestones) == {"Existing Milestone", "New Milestone"}
        assert milestones["New Milestone"]["order"] == 2

        by_title = {t["title"]: t for t in created}
        assert by_title["Task 1"]["milestone_id"] == existing["id"]
        assert by_title["Task 2"]["milestone_id"] == milestones["New Milestone"]["id"]
        assert by_title["Task 3"]["milestone_id"] == milestones["New Milestone"]["id"]
        assert by_title["Task 4"]["milestone_id"] is None

    def test_missing_plan(self, db) -> None:
        with pytest.raises(NotFoundError):
            save_generated_tasks(db, "missing", [GeneratedTask(title="T")])
