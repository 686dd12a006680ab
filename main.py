"""
PlanForge -- Application Entry Point.

Starts the local FastAPI service via uvicorn.

Usage:
    python main.py              # Development (reload with PLANFORGE_DEV_MODE=1)
    uvicorn main:app --host 127.0.0.1 --port 8765
"""

from __future__ import annotations

import logging
import sys
import threading
from types import TracebackType

import uvicorn

from planforge.api import create_app
from planforge.api.context import build_context
from planforge.config.settings import AppConfig
from planforge.lib.logging import setup_logging

logger = logging.getLogger("planforge.main")


def _log_fatal(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_traceback: TracebackType | None,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical(
        "Uncaught exception, shutting down",
        exc_info=(exc_type, exc_value, exc_traceback),
    )


def _log_fatal_thread(args: threading.ExceptHookArgs) -> None:
    logger.critical(
        "Uncaught exception in thread %s",
        args.thread.name if args.thread else "?",
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )


def install_fatal_handlers() -> None:
    """Log uncaught exceptions as critical; the interpreter then exits with status 1."""
    sys.excepthook = _log_fatal
    threading.excepthook = _log_fatal_thread


config = AppConfig.from_env()
setup_logging(dev_mode=config.dev_mode, log_level=config.log_level)
install_fatal_handlers()

app = create_app(build_context(config))


if __name__ == "__main__":
    logger.info("Starting PlanForge on %s:%d", config.host, config.port)
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.dev_mode,
        log_level=config.log_level.lower(),
    )
