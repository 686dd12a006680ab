"""
Tests for DatabaseService against in-memory SQLite.

Covers:
- Plan/milestone/task/resource CRUD and ordering
- Cascades (plan -> children, milestone -> its tasks, task -> edges)
- Same-plan milestone invariant
- completed_at stamping and clearing
- Dependency validation and idempotency
- Settings (key never serialized) and statistics
- Uninitialized service raises DatabaseUnavailableError
"""

from __future__ import annotations

import pytest

from planforge.lib.errors import DATABASE_ERROR, get_error_message
from planforge.lib.exceptions import (
    DatabaseError,
    DatabaseUnavailableError,
    NotFoundError,
    ValidationError,
)
from planforge.services.database import DatabaseService


@pytest.fixture()
def plan(db):
    return db.create_plan({"title": "Learn Spanish", "goal": "Hold a conversation"})


class TestLifecycle:
    def test_uninitialized_raises(self) -> None:
        service = DatabaseService("sqlite:///:memory:")
        assert not service.is_initialized
        with pytest.raises(DatabaseUnavailableError, match="Please restart the application"):
            service.get_plans()

    def test_test_connection(self, db) -> None:
        assert db.test_connection() == {"success": True}

    def test_test_connection_never_raises(self) -> None:
        result = DatabaseService("sqlite:///:memory:").test_connection()
        assert result["success"] is False
        assert "not initialized" in result["error"]

    def test_initialize_is_idempotent(self, db) -> None:
        db.initialize()
        assert db.get_settings()["id"] == "default"

    def test_file_database_creates_directory(self, tmp_path) -> None:
        path = tmp_path / "nested" / "planforge.db"
        service = DatabaseService(f"sqlite:///{path}")
        service.initialize()
        try:
            service.create_plan({"title": "t", "goal": "g"})
            assert path.exists()
        finally:
            service.disconnect()


class TestPlans:
    """Plan CRUD."""

    def test_create_defaults(self, plan) -> None:
        assert plan["status"] == "ACTIVE"
        assert plan["dynamic_status"] == "ACTIVE"
        assert plan["progress"] == 0
        assert plan["milestones"] == [] and plan["tasks"] == [] and plan["resources"] == []
        assert plan["created_at"] is not None

    def test_requires_title_and_goal(self, db) -> None:
        with pytest.raises(ValidationError, match="goal"):
            db.create_plan({"title": "No goal"})

    def test_invalid_status(self, db) -> None:
        with pytest.raises(ValidationError, match="status"):
            db.create_plan({"title": "t", "goal": "g", "status": "DONE"})

    def test_get_plans_newest_first(self, db) -> None:
        first = db.create_plan({"title": "first", "goal": "g"})
        second = db.create_plan({"title": "second", "goal": "g"})
        ids = [p["id"] for p in db.get_plans()]
        assert ids.index(second["id"]) < ids.index(first["id"])

    def test_get_missing_plan_is_none(self, db) -> None:
        assert db.get_plan("missing") is None

    def test_update(self, db, plan) -> None:
        updated = db.update_plan(plan["id"], {"status": "PAUSED", "timeframe": "6 months"})
        assert updated["status"] == "PAUSED"
        assert updated["timeframe"] == "6 months"
        assert updated["title"] == "Learn Spanish"

    def test_update_missing_raises(self, db) -> None:
        with pytest.raises(NotFoundError):
            db.update_plan("missing", {"title": "x"})

    def test_update_rejects_null_required_fields(self, db, plan) -> None:
        with pytest.raises(ValidationError, match="title, goal"):
            db.update_plan(plan["id"], {"title": None, "goal": None})
        assert db.get_plan(plan["id"])["title"] == "Learn Spanish"

    def test_update_clears_optional_field(self, db, plan) -> None:
        db.update_plan(plan["id"], {"timeframe": "6 months"})
        assert db.update_plan(plan["id"], {"timeframe": None})["timeframe"] is None

    def test_delete_cascades(self, db, plan) -> None:
        milestone = db.create_milestone({"plan_id": plan["id"], "title": "M"})
        a = db.create_task({"plan_id": plan["id"], "title": "A", "milestone_id": milestone["id"]})
        b = db.create_task({"plan_id": plan["id"], "title": "B"})
        db.create_task_dependency(b["id"], a["id"])
        db.create_resource({"plan_id": plan["id"], "title": "Docs"})

        db.delete_plan(plan["id"])

        assert db.get_plan(plan["id"]) is None
        assert db.get_plans() == []
        with pytest.raises(NotFoundError):
            db.update_task(a["id"], {"title": "x"})


class TestMilestones:
    def test_order_is_appended(self, db, plan) -> None:
        m1 = db.create_milestone({"plan_id": plan["id"], "title": "One"})
        m2 = db.create_milestone({"plan_id": plan["id"], "title": "Two"})
        assert (m1["order"], m2["order"]) == (1, 2)
        assert m1["status"] == "PENDING"

    def test_missing_plan(self, db) -> None:
        with pytest.raises(NotFoundError):
            db.create_milestone({"plan_id": "missing", "title": "M"})

    def test_target_date_accepts_iso_string(self, db, plan) -> None:
        milestone = db.create_milestone(
            {"plan_id": plan["id"], "title": "M", "target_date": "2026-06-01T00:00:00+00:00"}
        )
        assert milestone["target_date"].startswith("2026-06-01")

    def test_delete_removes_its_tasks_only(self, db, plan) -> None:
        milestone = db.create_milestone({"plan_id": plan["id"], "title": "M"})
        for i in range(3):
            db.create_task(
                {"plan_id": plan["id"], "title": f"T{i}", "milestone_id": milestone["id"]}
            )
        loose = db.create_task({"plan_id": plan["id"], "title": "Loose"})

        db.delete_milestone(milestone["id"])

        remaining = db.get_plan(plan["id"])
        assert remaining["milestones"] == []
        assert [t["id"] for t in remaining["tasks"]] == [loose["id"]]


class TestTasks:
    """Task CRUD and invariants."""

    def test_defaults(self, db, plan) -> None:
        task = db.create_task({"plan_id": plan["id"], "title": "Buy a book"})
        assert task["status"] == "TODO"
        assert task["priority"] == "MEDIUM"
        assert task["completed_at"] is None
        assert task["order"] == 1

    def test_milestone_from_other_plan_rejected(self, db, plan) -> None:
        other = db.create_plan({"title": "Other", "goal": "g"})
        foreign = db.create_milestone({"plan_id": other["id"], "title": "Foreign"})
        with pytest.raises(ValidationError, match="different plan"):
            db.create_task(
                {"plan_id": plan["id"], "title": "T", "milestone_id": foreign["id"]}
            )

        task = db.create_task({"plan_id": plan["id"], "title": "T"})
        with pytest.raises(ValidationError):
            db.update_task(task["id"], {"milestone_id": foreign["id"]})

    def test_completed_at_stamped_and_cleared(self, db, plan) -> None:
        task = db.create_task({"plan_id": plan["id"], "title": "T"})

        done = db.update_task(task["id"], {"status": "COMPLETED"})
        assert done["completed_at"] is not None

        reopened = db.update_task(task["id"], {"status": "IN_PROGRESS"})
        assert reopened["completed_at"] is None

    def test_explicit_completed_at_kept(self, db, plan) -> None:
        task = db.create_task(
            {
                "plan_id": plan["id"],
                "title": "T",
                "status": "COMPLETED",
                "completed_at": "2026-01-02T03:04:05+00:00",
            }
        )
        assert task["completed_at"].startswith("2026-01-02T03:04:05")

    def test_completing_all_tasks_completes_plan(self, db, plan) -> None:
        task = db.create_task({"plan_id": plan["id"], "title": "Only"})
        db.update_task(task["id"], {"status": "COMPLETED"})
        reloaded = db.get_plan(plan["id"])
        assert reloaded["status"] == "ACTIVE"
        assert reloaded["dynamic_status"] == "COMPLETED"
        assert reloaded["progress"] == 100

    def test_invalid_priority(self, db, plan) -> None:
        with pytest.raises(ValidationError, match="priority"):
            db.create_task({"plan_id": plan["id"], "title": "T", "priority": "URGENT"})

    def test_update_null_order_rejected(self, db, plan) -> None:
        task = db.create_task({"plan_id": plan["id"], "title": "A"})
        with pytest.raises(ValidationError, match="order"):
            db.update_task(task["id"], {"order": None})


class TestTaskDependencies:
    """Advisory edges between tasks."""

    @pytest.fixture()
    def tasks(self, db, plan):
        return [db.create_task({"plan_id": plan["id"], "title": t}) for t in "ABC"]

    def test_create_and_serialize(self, db, plan, tasks) -> None:
        a, b, _ = tasks
        edge = db.create_task_dependency(b["id"], a["id"])
        assert edge["dependent_id"] == b["id"]
        assert edge["prerequisite_id"] == a["id"]

        by_id = {t["id"]: t for t in db.get_plan(plan["id"])["tasks"]}
        assert by_id[b["id"]]["depends_on"][0]["prerequisite_id"] == a["id"]
        assert by_id[a["id"]]["dependents"][0]["dependent_id"] == b["id"]

    def test_idempotent(self, db, tasks) -> None:
        a, b, _ = tasks
        first = db.create_task_dependency(b["id"], a["id"])
        second = db.create_task_dependency(b["id"], a["id"])
        assert first["id"] == second["id"]

    def test_cycle_rejected(self, db, tasks) -> None:
        a, b, c = tasks
        db.create_task_dependency(b["id"], a["id"])
        db.create_task_dependency(c["id"], b["id"])
        with pytest.raises(ValidationError, match="cycle"):
            db.create_task_dependency(a["id"], c["id"])

    def test_cross_plan_rejected(self, db, tasks) -> None:
        other = db.create_plan({"title": "Other", "goal": "g"})
        foreign = db.create_task({"plan_id": other["id"], "title": "X"})
        with pytest.raises(ValidationError, match="same plan"):
            db.create_task_dependency(tasks[0]["id"], foreign["id"])

    def test_delete(self, db, tasks) -> None:
        a, b, _ = tasks
        db.create_task_dependency(b["id"], a["id"])
        db.delete_task_dependency(b["id"], a["id"])
        with pytest.raises(NotFoundError):
            db.delete_task_dependency(b["id"], a["id"])

    def test_deleting_task_removes_edges(self, db, plan, tasks) -> None:
        a, b, _ = tasks
        db.create_task_dependency(b["id"], a["id"])
        db.delete_task(a["id"])
        by_id = {t["id"]: t for t in db.get_plan(plan["id"])["tasks"]}
        assert by_id[b["id"]]["depends_on"] == []

    def test_prerequisites_do_not_block_status(self, db, tasks) -> None:
        a, b, _ = tasks
        db.create_task_dependency(b["id"], a["id"])
        assert db.update_task(b["id"], {"status": "COMPLETED"})["status"] == "COMPLETED"

    def test_plan_shows_unmet_prerequisites(self, db, plan, tasks) -> None:
        a, b, _ = tasks
        db.create_task_dependency(b["id"], a["id"])
        by_id = {t["id"]: t for t in db.get_plan(plan["id"])["tasks"]}
        assert by_id[b["id"]]["blocked_by"] == [a["id"]]

        db.update_task(a["id"], {"status": "COMPLETED"})
        by_id = {t["id"]: t for t in db.get_plan(plan["id"])["tasks"]}
        assert by_id[b["id"]]["blocked_by"] == []


class TestResources:
    def test_crud(self, db, plan) -> None:
        resource = db.create_resource(
            {"plan_id": plan["id"], "title": "Duolingo", "url": "https://duolingo.com", "type": "TOOL"}
        )
        assert resource["type"] == "TOOL"
        updated = db.update_resource(resource["id"], {"title": "Duolingo app"})
        assert updated["title"] == "Duolingo app"
        db.delete_resource(resource["id"])
        assert db.get_plan(plan["id"])["resources"] == []

    def test_default_type_is_link(self, db, plan) -> None:
        assert db.create_resource({"plan_id": plan["id"], "title": "R"})["type"] == "LINK"

    def test_store_failure_hides_sql(self, db, plan) -> None:
        resource = db.create_resource({"plan_id": plan["id"], "title": "R"})
        with pytest.raises(DatabaseError) as exc_info:
            db.create_resource({"plan_id": plan["id"], "title": "Dup", "id": resource["id"]})
        assert str(exc_info.value) == get_error_message(DATABASE_ERROR)
        assert "INSERT" not in str(exc_info.value)


class TestSettings:
    """Singleton settings row."""

    def test_defaults(self, db) -> None:
        settings = db.get_settings()
        assert settings["theme"] == "system"
        assert settings["language"] == "en"
        assert settings["has_openai_api_key"] is False

    def test_key_never_serialized(self, db) -> None:
        settings = db.update_settings({"theme": "dark", "openai_api_key": "sk-secret"})
        assert settings["theme"] == "dark"
        assert settings["has_openai_api_key"] is True
        assert "openai_api_key" not in settings
        assert "sk-secret" not in str(settings)
        assert db.get_openai_api_key() == "sk-secret"

    def test_empty_key_clears(self, db) -> None:
        db.set_openai_api_key("sk-secret")
        db.update_settings({"openai_api_key": ""})
        assert db.get_openai_api_key() is None

    def test_theme_cannot_be_cleared(self, db) -> None:
        with pytest.raises(ValidationError):
            db.update_settings({"theme": None})


class TestStats:
    def test_plan_stats(self, db, plan) -> None:
        m = db.create_milestone({"plan_id": plan["id"], "title": "M", "status": "COMPLETED"})
        db.create_task({"plan_id": plan["id"], "title": "A", "milestone_id": m["id"], "status": "COMPLETED"})
        db.create_task({"plan_id": plan["id"], "title": "B", "estimated_hours": 3})
        stats = db.get_plan_stats(plan["id"])
        assert stats["task_progress"] == 50
        assert stats["milestone_progress"] == 100
        assert stats["overall_progress"] == 75
        assert stats["total_estimated_hours"] == 3.0

    def test_plan_stats_missing(self, db) -> None:
        with pytest.raises(NotFoundError):
            db.get_plan_stats("missing")

    def test_dashboard(self, db, plan) -> None:
        db.create_task({"plan_id": plan["id"], "title": "A", "status": "COMPLETED"})
        db.create_plan({"title": "Empty", "goal": "g"})
        stats = db.get_dashboard_stats()
        assert stats["total_plans"] == 2
        assert stats["completed_plans"] == 1
        assert stats["active_plans"] == 1
        assert stats["task_completion_rate"] == 100
