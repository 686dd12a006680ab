"""Domain services: persistence, derived statistics, dependencies, backups."""

from planforge.services.database import DatabaseService
from planforge.services.progress import (
    annotate_plan,
    calculate_dashboard_stats,
    calculate_dynamic_status,
    calculate_plan_stats,
    calculate_progress,
)

__all__ = [
    "DatabaseService",
    "annotate_plan",
    "calculate_dashboard_stats",
    "calculate_dynamic_status",
    "calculate_plan_stats",
    "calculate_progress",
]
