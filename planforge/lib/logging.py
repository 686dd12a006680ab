"""
Logging setup for PlanForge.

All modules log through stdlib ``logging.getLogger(__name__)`` and attach
context with ``extra=``. The root handler renders every record, together
with its extra fields, through structlog: JSON lines by default, colored
console output when PLANFORGE_DEV_MODE=1.

Usage:
    from planforge.lib.logging import setup_logging

    setup_logging()  # Call once at application startup
"""

import logging
import os
import sys
from typing import TextIO

import structlog

# Libraries that log every request or statement at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "keyring", "sqlalchemy.engine")


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.ExtraAdder(),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def build_formatter(dev_mode: bool) -> structlog.stdlib.ProcessorFormatter:
    """Formatter that turns stdlib records (extras included) into one line each."""
    if dev_mode:
        render: list[structlog.types.Processor] = [structlog.dev.ConsoleRenderer()]
    else:
        render = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *render],
    )


def setup_logging(
    dev_mode: bool | None = None,
    log_level: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    Route stdlib and structlog loggers through one root handler.

    Args:
        dev_mode: Console output instead of JSON. Read from
            PLANFORGE_DEV_MODE when omitted.
        log_level: Level name for the root logger. Read from LOG_LEVEL
            when omitted.
        stream: Where records are written (stderr by default).
    """
    if dev_mode is None:
        dev_mode = os.environ.get("PLANFORGE_DEV_MODE") == "1"
    level_name = (log_level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(build_formatter(dev_mode))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def mask_secret(value: str | None) -> str:
    """Render a secret for logs without revealing it."""
    if not value:
        return "missing"
    return f"present (length: {len(value)})"
