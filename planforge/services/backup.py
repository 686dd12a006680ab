"""
Backup export and import for PlanForge.

A backup is a single JSON document:

    {
      "version": "1.0",
      "exported_at": "2026-01-31T12:00:00+00:00",
      "data": {
        "plans": [ ...Plan.to_dict() with milestones, tasks, resources... ],
        "settings": {"theme": "system", "language": "en"}
      }
    }

The API key is never exported. Import recreates plans with their
original ids (replacing a plan with the same id) and re-stamps
timestamps.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from planforge.lib.exceptions import BackupFormatError, SerializationError
from planforge.models.base import isoformat, utcnow
from planforge.services.database import DatabaseService

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
_EXPORTED_SETTINGS = ("theme", "language")
# Derived fields added by annotate_plan; recomputed on read
_DERIVED_PLAN_FIELDS = ("dynamic_status", "progress")
_DERIVED_TASK_FIELDS = ("blocked_by",)


@dataclass
class ImportResult:
    """Outcome of a backup import."""

    plans_imported: int
    settings_applied: bool
    version: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def backup_filename(now: datetime | None = None) -> str:
    """Default file name, e.g. ``planforge-backup-2026-01-31.json``."""
    return f"planforge-backup-{(now or utcnow()).strftime('%Y-%m-%d')}.json"


def export_data(db: DatabaseService) -> dict[str, Any]:
    """Build a backup document of every plan and the display settings."""
    plans = db.get_plans()
    for plan in plans:
        for field in _DERIVED_PLAN_FIELDS:
            plan.pop(field, None)
        for task in plan.get("tasks") or []:
            for field in _DERIVED_TASK_FIELDS:
                task.pop(field, None)
    settings = db.get_settings()
    document = {
        "version": BACKUP_VERSION,
        "exported_at": isoformat(utcnow()),
        "data": {
            "plans": plans,
            "settings": {key: settings.get(key) for key in _EXPORTED_SETTINGS},
        },
    }
    logger.info("Backup exported", extra={"plans": len(plans)})
    return document


def validate_backup(document: Any) -> list[dict[str, Any]]:
    """
    Check the minimal backup structure and return the plan list.

    Raises:
        BackupFormatError: If ``data.plans`` is missing or not a list.
    """
    data = document.get("data") if isinstance(document, dict) else None
    plans = data.get("plans") if isinstance(data, dict) else None
    if not isinstance(plans, list):
        raise BackupFormatError("Invalid backup file format: data.plans must be a list")
    if document.get("version") != BACKUP_VERSION:
        logger.warning(
            "Unknown backup version, importing anyway",
            extra={"version": document.get("version")},
        )
    return plans


def import_data(db: DatabaseService, document: Any) -> ImportResult:
    """
    Restore a backup document into the database.

    Each plan is restored in its own transaction; a failing plan stops
    the import and the error propagates.

    Raises:
        BackupFormatError: If the document structure is invalid.
    """
    plans = validate_backup(document)
    for plan in plans:
        if not isinstance(plan, dict):
            raise BackupFormatError("Invalid backup file format: plan entries must be objects")
        db.restore_plan(plan)

    settings = document["data"].get("settings")
    applied = False
    if isinstance(settings, dict):
        update = {k: settings[k] for k in _EXPORTED_SETTINGS if settings.get(k)}
        if update:
            db.update_settings(update)
            applied = True

    logger.info("Backup imported", extra={"plans": len(plans), "settings": applied})
    return ImportResult(
        plans_imported=len(plans),
        settings_applied=applied,
        version=document.get("version"),
    )


def write_backup(db: DatabaseService, directory: str | Path, now: datetime | None = None) -> Path:
    """Export to ``directory/planforge-backup-YYYY-MM-DD.json``."""
    target_dir = Path(directory).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / backup_filename(now)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(export_data(db), f, indent=2)
    logger.info("Backup written", extra={"path": str(path)})
    return path


def read_backup(db: DatabaseService, path: str | Path) -> ImportResult:
    """
    Import a backup file.

    Raises:
        SerializationError: If the file is not valid JSON.
        BackupFormatError: If the structure is invalid.
    """
    try:
        with open(Path(path).expanduser(), encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Backup file is not valid JSON: {e}") from e
    return import_data(db, document)


__all__ = [
    "BACKUP_VERSION",
    "ImportResult",
    "backup_filename",
    "export_data",
    "validate_backup",
    "import_data",
    "write_backup",
    "read_backup",
]
