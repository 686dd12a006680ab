"""
Backup commands for PlanForge.

Works directly on the database, so backups can be taken or restored
while the service is stopped.

Usage:
    planforge-backup export ~/Backups
    planforge-backup import ~/Backups/planforge-backup-2026-03-04.json
    planforge-backup --database-url sqlite:///other.db export .
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from planforge.config.settings import AppConfig
from planforge.lib.exceptions import PlanForgeException
from planforge.lib.logging import setup_logging
from planforge.services.backup import read_backup, write_backup
from planforge.services.database import DatabaseService

logger = logging.getLogger(__name__)


def _cmd_export(db: DatabaseService, args: argparse.Namespace) -> None:
    path = write_backup(db, args.directory)
    print(path)


def _cmd_import(db: DatabaseService, args: argparse.Namespace) -> None:
    result = read_backup(db, args.path)
    settings = " and settings" if result.settings_applied else ""
    print(f"Imported {result.plans_imported} plan(s){settings} from {args.path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="planforge-backup", description="Export or import PlanForge backups"
    )
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy URL (default: PLANFORGE_DATABASE_URL or the per-user database)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Write planforge-backup-YYYY-MM-DD.json")
    export.add_argument("directory", help="Target directory (created if missing)")
    export.set_defaults(func=_cmd_export)

    restore = sub.add_parser("import", help="Restore plans and settings from a backup file")
    restore.add_argument("path", help="Backup file to read")
    restore.set_defaults(func=_cmd_import)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run one backup command; returns the process exit status."""
    args = build_parser().parse_args(argv)
    try:
        config = AppConfig.from_env()
        setup_logging(dev_mode=config.dev_mode, log_level=config.log_level)
        db = DatabaseService(args.database_url or config.database_url)
        db.initialize()
    except PlanForgeException as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    try:
        args.func(db, args)
    except (PlanForgeException, OSError) as e:
        logger.error("Backup %s failed: %s", args.command, e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        db.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(main())
