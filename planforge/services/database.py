"""
Persistence access for PlanForge.

DatabaseService owns the SQLAlchemy engine and hands out one short-lived
session per operation. Every operation accepts plain data (mappings) and
returns plain dicts, so results can cross the API boundary unchanged.

Error contract (all operations):
- NotFoundError: an id does not exist (get_plan returns None instead)
- ValidationError: an invariant would be broken (cross-plan milestone,
  dependency cycle, unknown enum value, missing required field)
- DatabaseError: the underlying store failed
- DatabaseUnavailableError: initialize() has not succeeded

Usage:
    db = DatabaseService("sqlite:///planforge.db")
    db.initialize()
    plan = db.create_plan({"title": "Podcast", "goal": "Launch a podcast"})
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from enum import StrEnum
from pathlib import Path
from typing import Any, TypeVar

from sqlalchemy import create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from planforge.lib.errors import DATABASE_ERROR, get_error_message
from planforge.lib.exceptions import (
    BackupFormatError,
    DatabaseError,
    DatabaseUnavailableError,
    NotFoundError,
    ValidationError,
)
from planforge.models import (
    SETTINGS_ID,
    Base,
    Milestone,
    MilestoneStatus,
    Plan,
    PlanStatus,
    Resource,
    ResourceType,
    Settings,
    Task,
    TaskDependency,
    TaskPriority,
    TaskStatus,
)
from planforge.models.base import new_id, parse_datetime
from planforge.services.dependencies import validate_new_dependency
from planforge.services.progress import (
    annotate_plan,
    calculate_dashboard_stats,
    calculate_plan_stats,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=StrEnum)

_PLAN_FIELDS = ("title", "description", "goal", "timeframe", "status")
_MILESTONE_FIELDS = ("title", "description", "target_date", "status", "order")
_TASK_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "estimated_hours",
    "actual_hours",
    "due_date",
    "completed_at",
    "order",
    "milestone_id",
)
_RESOURCE_FIELDS = ("title", "description", "url", "type")
_SETTINGS_FIELDS = ("theme", "language", "openai_api_key")
_DATE_FIELDS = frozenset({"target_date", "due_date", "completed_at"})

# Fields an update may omit but never clear
_PLAN_NOT_NULL = ("title", "goal", "status")
_MILESTONE_NOT_NULL = ("title", "status", "order")
_TASK_NOT_NULL = ("title", "status", "priority", "order")
_RESOURCE_NOT_NULL = ("title", "type")
_SETTINGS_NOT_NULL = ("theme", "language")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _coerce_enum(enum_cls: type[E], value: Any, field: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field} {value!r}; expected one of: {allowed}") from e


def _require(data: Mapping[str, Any], *fields: str) -> None:
    missing = [f for f in fields if not data.get(f)]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def _reject_nulls(fields: Mapping[str, Any], names: tuple[str, ...]) -> None:
    nulls = [name for name in names if name in fields and fields[name] is None]
    if nulls:
        raise ValidationError(f"Field(s) may not be null: {', '.join(nulls)}")


def _pick(data: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
    """Keep only known fields that the caller actually sent."""
    picked = {key: data[key] for key in fields if key in data}
    for key in _DATE_FIELDS.intersection(picked):
        try:
            picked[key] = parse_datetime(picked[key])
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid date for {key}: {picked[key]!r}") from e
    return picked


def _backup_fields(item: Any, kind: str, index: int, fields: tuple[str, ...]) -> dict[str, Any]:
    """Pick a backup child's columns; unset defaults replace nulls."""
    if not isinstance(item, Mapping) or not item.get("title"):
        raise BackupFormatError(
            f"Invalid backup file format: {kind} #{index + 1} must be an object with a title"
        )
    return {key: value for key, value in _pick(item, fields).items() if value is not None}


class DatabaseService:
    """
    CRUD and statistics over the PlanForge schema.

    A single engine is shared by all operations; for in-memory SQLite a
    StaticPool keeps one connection alive so every session sees the same
    database.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self._database_url = database_url
        self._echo = echo
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def is_initialized(self) -> bool:
        return self._session_factory is not None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Create the engine, tables and the default settings row.

        Safe to call again on an initialized service.

        Raises:
            DatabaseError: If the database cannot be opened or migrated.
        """
        if self.is_initialized:
            return

        url = make_url(self._database_url)
        kwargs: dict[str, Any] = {"echo": self._echo}
        if url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                kwargs["poolclass"] = StaticPool
            else:
                Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

        try:
            engine = create_engine(url, **kwargs)
            if url.get_backend_name() == "sqlite":
                event.listen(engine, "connect", _enable_sqlite_foreign_keys)
            Base.metadata.create_all(engine)
            session_factory = sessionmaker(bind=engine, expire_on_commit=False)
            with session_factory() as session:
                if session.get(Settings, SETTINGS_ID) is None:
                    session.add(Settings(id=SETTINGS_ID))
                    session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to initialize database: %s", e)
            raise DatabaseError(f"Failed to initialize database: {e}") from e

        self._engine = engine
        self._session_factory = session_factory
        logger.info("Database initialized", extra={"backend": url.get_backend_name()})

    def test_connection(self) -> dict[str, Any]:
        """Run a trivial query; never raises."""
        try:
            with self._session() as session:
                session.execute(text("SELECT 1"))
            return {"success": True}
        except DatabaseError as e:
            logger.error("Database connection test failed: %s", e)
            return {"success": False, "error": str(e)}

    def disconnect(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database disconnected")

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._session_factory is None:
            raise DatabaseUnavailableError(
                "Database not initialized. Please restart the application."
            )
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Database operation failed: %s", e, exc_info=True)
            raise DatabaseError(get_error_message(DATABASE_ERROR)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _get_or_raise(session: Session, model: type[Base], entity_id: str) -> Any:
        instance = session.get(model, entity_id)
        if instance is None:
            raise NotFoundError(model.__name__, entity_id)
        return instance

    @staticmethod
    def _next_order(session: Session, model: type[Milestone] | type[Task], plan_id: str) -> int:
        current = session.scalar(
            select(func.max(model.order)).where(model.plan_id == plan_id)
        )
        return (current or 0) + 1

    @staticmethod
    def _check_milestone(session: Session, plan_id: str, milestone_id: str | None) -> None:
        if milestone_id is None:
            return
        milestone = session.get(Milestone, milestone_id)
        if milestone is None:
            raise NotFoundError("Milestone", milestone_id)
        if milestone.plan_id != plan_id:
            raise ValidationError(
                f"Milestone {milestone_id} belongs to a different plan than the task"
            )

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------

    def create_plan(self, data: Mapping[str, Any]) -> dict[str, Any]:
        _require(data, "title", "goal")
        fields = _pick(data, _PLAN_FIELDS)
        fields["status"] = _coerce_enum(
            PlanStatus, fields.get("status") or PlanStatus.ACTIVE, "status"
        )
        with self._session() as session:
            plan = Plan(**fields)
            session.add(plan)
            session.flush()
            logger.info("Plan created", extra={"plan_id": plan.id})
            return annotate_plan(plan.to_dict())

    def get_plans(self) -> list[dict[str, Any]]:
        with self._session() as session:
            plans = session.scalars(select(Plan).order_by(Plan.created_at.desc())).all()
            return [annotate_plan(plan.to_dict()) for plan in plans]

    def get_plan(self, plan_id: str) -> dict[str, Any] | None:
        with self._session() as session:
            plan = session.get(Plan, plan_id)
            return annotate_plan(plan.to_dict()) if plan is not None else None

    def update_plan(self, plan_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        fields = _pick(data, _PLAN_FIELDS)
        _reject_nulls(fields, _PLAN_NOT_NULL)
        if "status" in fields:
            fields["status"] = _coerce_enum(PlanStatus, fields["status"], "status")
        with self._session() as session:
            plan = self._get_or_raise(session, Plan, plan_id)
            for key, value in fields.items():
                setattr(plan, key, value)
            session.flush()
            return annotate_plan(plan.to_dict())

    def delete_plan(self, plan_id: str) -> dict[str, Any]:
        with self._session() as session:
            plan = self._get_or_raise(session, Plan, plan_id)
            snapshot = plan.to_dict(include_children=False)
            session.delete(plan)
            logger.info("Plan deleted", extra={"plan_id": plan_id})
            return snapshot

    # -------------------------------------------------------------------------
    # Milestones
    # -------------------------------------------------------------------------

    def create_milestone(self, data: Mapping[str, Any]) -> dict[str, Any]:
        _require(data, "title", "plan_id")
        fields = _pick(data, _MILESTONE_FIELDS)
        fields["status"] = _coerce_enum(
            MilestoneStatus, fields.get("status") or MilestoneStatus.PENDING, "status"
        )
        with self._session() as session:
            self._get_or_raise(session, Plan, data["plan_id"])
            if fields.get("order") is None:
                fields["order"] = self._next_order(session, Milestone, data["plan_id"])
            milestone = Milestone(plan_id=data["plan_id"], **fields)
            session.add(milestone)
            session.flush()
            return milestone.to_dict()

    def update_milestone(self, milestone_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        fields = _pick(data, _MILESTONE_FIELDS)
        _reject_nulls(fields, _MILESTONE_NOT_NULL)
        if "status" in fields:
            fields["status"] = _coerce_enum(MilestoneStatus, fields["status"], "status")
        with self._session() as session:
            milestone = self._get_or_raise(session, Milestone, milestone_id)
            for key, value in fields.items():
                setattr(milestone, key, value)
            session.flush()
            return milestone.to_dict()

    def delete_milestone(self, milestone_id: str) -> dict[str, Any]:
        """Delete a milestone together with every task assigned to it."""
        with self._session() as session:
            milestone = self._get_or_raise(session, Milestone, milestone_id)
            snapshot = milestone.to_dict()
            task_count = len(milestone.tasks)
            session.delete(milestone)
            logger.info(
                "Milestone deleted",
                extra={"milestone_id": milestone_id, "deleted_tasks": task_count},
            )
            return snapshot

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def create_task(self, data: Mapping[str, Any]) -> dict[str, Any]:
        _require(data, "title", "plan_id")
        fields = _pick(data, _TASK_FIELDS)
        status = _coerce_enum(
            TaskStatus, fields.pop("status", None) or TaskStatus.TODO, "status"
        )
        completed_at = fields.pop("completed_at", None)
        fields["priority"] = _coerce_enum(
            TaskPriority, fields.get("priority") or TaskPriority.MEDIUM, "priority"
        )
        with self._session() as session:
            self._get_or_raise(session, Plan, data["plan_id"])
            self._check_milestone(session, data["plan_id"], fields.get("milestone_id"))
            if fields.get("order") is None:
                fields["order"] = self._next_order(session, Task, data["plan_id"])
            task = Task(plan_id=data["plan_id"], **fields)
            task.apply_status(status, completed_at)
            session.add(task)
            session.flush()
            return task.to_dict()

    def update_task(self, task_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        fields = _pick(data, _TASK_FIELDS)
        _reject_nulls(fields, _TASK_NOT_NULL)
        if "priority" in fields:
            fields["priority"] = _coerce_enum(TaskPriority, fields["priority"], "priority")
        status = fields.pop("status", None)
        if status is not None:
            status = _coerce_enum(TaskStatus, status, "status")
        completed_at = fields.pop("completed_at", None)
        with self._session() as session:
            task = self._get_or_raise(session, Task, task_id)
            if "milestone_id" in fields:
                self._check_milestone(session, task.plan_id, fields["milestone_id"])
            for key, value in fields.items():
                setattr(task, key, value)
            if status is not None:
                task.apply_status(status, completed_at)
            elif completed_at is not None:
                task.completed_at = completed_at
            session.flush()
            return task.to_dict()

    def delete_task(self, task_id: str) -> dict[str, Any]:
        with self._session() as session:
            task = self._get_or_raise(session, Task, task_id)
            snapshot = task.to_dict()
            session.delete(task)
            return snapshot

    # -------------------------------------------------------------------------
    # Task dependencies
    # -------------------------------------------------------------------------

    def create_task_dependency(self, dependent_id: str, prerequisite_id: str) -> dict[str, Any]:
        """
        Record that dependent_id should wait for prerequisite_id.

        Idempotent for an existing pair.

        Raises:
            ValidationError: Self-edge, cross-plan edge, or cycle.
        """
        with self._session() as session:
            dependent = self._get_or_raise(session, Task, dependent_id)
            prerequisite = self._get_or_raise(session, Task, prerequisite_id)

            existing = session.scalar(
                select(TaskDependency).where(
                    TaskDependency.dependent_id == dependent_id,
                    TaskDependency.prerequisite_id == prerequisite_id,
                )
            )
            if existing is not None:
                return existing.to_dict()

            edges = session.execute(
                select(TaskDependency.dependent_id, TaskDependency.prerequisite_id)
                .join(Task, Task.id == TaskDependency.dependent_id)
                .where(Task.plan_id == dependent.plan_id)
            ).all()
            validate_new_dependency(
                {"id": dependent.id, "plan_id": dependent.plan_id},
                {"id": prerequisite.id, "plan_id": prerequisite.plan_id},
                [(d, p) for d, p in edges],
            )

            edge = TaskDependency(dependent_id=dependent_id, prerequisite_id=prerequisite_id)
            session.add(edge)
            session.flush()
            return edge.to_dict()

    def delete_task_dependency(self, dependent_id: str, prerequisite_id: str) -> dict[str, Any]:
        with self._session() as session:
            edge = session.scalar(
                select(TaskDependency).where(
                    TaskDependency.dependent_id == dependent_id,
                    TaskDependency.prerequisite_id == prerequisite_id,
                )
            )
            if edge is None:
                raise NotFoundError("TaskDependency", f"{dependent_id}->{prerequisite_id}")
            snapshot = edge.to_dict()
            session.delete(edge)
            return snapshot

    # -------------------------------------------------------------------------
    # Resources
    # -------------------------------------------------------------------------

    def create_resource(self, data: Mapping[str, Any]) -> dict[str, Any]:
        _require(data, "title", "plan_id")
        fields = _pick(data, _RESOURCE_FIELDS)
        fields["type"] = _coerce_enum(
            ResourceType, fields.get("type") or ResourceType.LINK, "type"
        )
        with self._session() as session:
            self._get_or_raise(session, Plan, data["plan_id"])
            resource = Resource(plan_id=data["plan_id"], **fields)
            if data.get("id"):
                resource.id = data["id"]
            session.add(resource)
            session.flush()
            return resource.to_dict()

    def update_resource(self, resource_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        fields = _pick(data, _RESOURCE_FIELDS)
        _reject_nulls(fields, _RESOURCE_NOT_NULL)
        if "type" in fields:
            fields["type"] = _coerce_enum(ResourceType, fields["type"], "type")
        with self._session() as session:
            resource = self._get_or_raise(session, Resource, resource_id)
            for key, value in fields.items():
                setattr(resource, key, value)
            session.flush()
            return resource.to_dict()

    def delete_resource(self, resource_id: str) -> dict[str, Any]:
        with self._session() as session:
            resource = self._get_or_raise(session, Resource, resource_id)
            snapshot = resource.to_dict()
            session.delete(resource)
            return snapshot

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def _settings_row(self, session: Session) -> Settings:
        settings = session.get(Settings, SETTINGS_ID)
        if settings is None:
            settings = Settings(id=SETTINGS_ID)
            session.add(settings)
            session.flush()
        return settings

    def get_settings(self) -> dict[str, Any]:
        with self._session() as session:
            return self._settings_row(session).to_dict()

    def update_settings(self, data: Mapping[str, Any]) -> dict[str, Any]:
        fields = _pick(data, _SETTINGS_FIELDS)
        _reject_nulls(fields, _SETTINGS_NOT_NULL)
        if "openai_api_key" in fields and not fields["openai_api_key"]:
            fields["openai_api_key"] = None
        with self._session() as session:
            settings = self._settings_row(session)
            for key, value in fields.items():
                setattr(settings, key, value)
            session.flush()
            return settings.to_dict()

    def get_openai_api_key(self) -> str | None:
        """Fallback copy of the AI key kept in the settings row."""
        with self._session() as session:
            return self._settings_row(session).openai_api_key or None

    def set_openai_api_key(self, api_key: str | None) -> None:
        self.update_settings({"openai_api_key": api_key})

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_plan_stats(self, plan_id: str) -> dict[str, Any]:
        with self._session() as session:
            plan = self._get_or_raise(session, Plan, plan_id)
            return calculate_plan_stats(plan.to_dict()).to_dict()

    def get_dashboard_stats(self) -> dict[str, Any]:
        return calculate_dashboard_stats(self.get_plans()).to_dict()

    # -------------------------------------------------------------------------
    # Restore (backup import)
    # -------------------------------------------------------------------------

    def restore_plan(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """
        Recreate a plan and all of its children with their original ids.

        An existing plan with the same id is replaced. Timestamps are
        re-stamped. Runs as one transaction.
        Children without an id get a fresh one.

        Raises:
            BackupFormatError: A child entry is malformed or references a
                milestone or task that is not part of the plan.
        """
        _require(data, "id", "title", "goal")
        with self._session() as session:
            existing = session.get(Plan, data["id"])
            if existing is not None:
                session.delete(existing)
                session.flush()

            plan_fields = _pick(data, _PLAN_FIELDS)
            plan_fields["status"] = _coerce_enum(
                PlanStatus, plan_fields.get("status") or PlanStatus.ACTIVE, "status"
            )
            plan = Plan(id=data["id"], **plan_fields)
            session.add(plan)

            milestone_ids: set[str] = set()
            for index, item in enumerate(data.get("milestones") or []):
                fields = _backup_fields(item, "milestone", index, _MILESTONE_FIELDS)
                fields["status"] = _coerce_enum(
                    MilestoneStatus, fields.get("status") or MilestoneStatus.PENDING, "status"
                )
                milestone = Milestone(id=item.get("id") or new_id(), plan_id=plan.id, **fields)
                milestone_ids.add(milestone.id)
                session.add(milestone)

            task_ids: set[str] = set()
            edges: list[tuple[str, str]] = []
            for index, item in enumerate(data.get("tasks") or []):
                fields = _backup_fields(item, "task", index, _TASK_FIELDS)
                if fields.get("milestone_id") not in (None, *milestone_ids):
                    raise BackupFormatError(
                        f"Invalid backup file format: task #{index + 1} references "
                        f"unknown milestone {fields['milestone_id']!r}"
                    )
                status = _coerce_enum(
                    TaskStatus, fields.pop("status", None) or TaskStatus.TODO, "status"
                )
                completed_at = fields.pop("completed_at", None)
                fields["priority"] = _coerce_enum(
                    TaskPriority, fields.get("priority") or TaskPriority.MEDIUM, "priority"
                )
                task = Task(id=item.get("id") or new_id(), plan_id=plan.id, **fields)
                task.apply_status(status, completed_at)
                task_ids.add(task.id)
                session.add(task)
                for edge in item.get("depends_on") or []:
                    if not isinstance(edge, Mapping):
                        raise BackupFormatError(
                            f"Invalid backup file format: task #{index + 1} "
                            "has a malformed dependency"
                        )
                    edges.append((edge.get("dependent_id"), edge.get("prerequisite_id")))

            for index, item in enumerate(data.get("resources") or []):
                fields = _backup_fields(item, "resource", index, _RESOURCE_FIELDS)
                fields["type"] = _coerce_enum(
                    ResourceType, fields.get("type") or ResourceType.LINK, "type"
                )
                session.add(Resource(id=item.get("id") or new_id(), plan_id=plan.id, **fields))

            session.flush()
            for dependent_id, prerequisite_id in edges:
                if dependent_id not in task_ids or prerequisite_id not in task_ids:
                    raise BackupFormatError(
                        "Invalid backup file format: dependency "
                        f"{dependent_id!r} -> {prerequisite_id!r} references an unknown task"
                    )
                session.add(
                    TaskDependency(dependent_id=dependent_id, prerequisite_id=prerequisite_id)
                )
            session.flush()
            session.expire_all()
            return annotate_plan(plan.to_dict())


__all__ = ["DatabaseService"]
