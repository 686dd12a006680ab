"""
Application context shared by all routes.

Built once at startup and stored on ``app.state.context``. A database that
failed to initialize is kept as ``None`` so the API still starts and
answers DATABASE_UNAVAILABLE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from planforge.ai.credentials import CredentialStore, KeyringCredentialStore
from planforge.ai.manager import AIServiceManager
from planforge.config.settings import AppConfig
from planforge.lib.exceptions import DatabaseError
from planforge.services.database import DatabaseService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a request handler needs."""

    config: AppConfig
    db: DatabaseService | None
    ai: AIServiceManager

    async def aclose(self) -> None:
        await self.ai.aclose()
        if self.db is not None:
            self.db.disconnect()


def build_context(
    config: AppConfig,
    credential_store: CredentialStore | None = None,
) -> AppContext:
    """
    Open the database and wire the AI manager to it.

    Database failures are logged, not raised: the service keeps running
    without persistence.
    """
    db: DatabaseService | None = DatabaseService(config.database_url, echo=False)
    try:
        db.initialize()
    except DatabaseError as e:
        logger.error("Database initialization failed, continuing without persistence: %s", e)
        db = None

    ai = AIServiceManager(
        config.ai,
        credential_store=credential_store or KeyringCredentialStore(),
        settings_store=db,
    )
    return AppContext(config=config, db=db, ai=ai)


__all__ = ["AppContext", "build_context"]
