"""
FastAPI dependencies for the PlanForge API.
"""

import logging

from fastapi import Depends, Request

from planforge.ai.manager import AIServiceManager
from planforge.api.context import AppContext
from planforge.lib.errors import DATABASE_UNAVAILABLE, get_error_message
from planforge.lib.exceptions import DatabaseUnavailableError
from planforge.services.database import DatabaseService

logger = logging.getLogger(__name__)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def require_database(context: AppContext = Depends(get_context)) -> DatabaseService:
    """
    Dependency returning the initialized database.

    Raises DatabaseUnavailableError when startup failed to open it, which
    the exception handler turns into a DATABASE_UNAVAILABLE envelope.
    """
    if context.db is None or not context.db.is_initialized:
        logger.warning("Database request while database is unavailable")
        raise DatabaseUnavailableError(get_error_message(DATABASE_UNAVAILABLE))
    return context.db


def get_ai_manager(context: AppContext = Depends(get_context)) -> AIServiceManager:
    return context.ai


__all__ = ["get_context", "require_database", "get_ai_manager"]
