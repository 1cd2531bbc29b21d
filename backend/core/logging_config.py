"""Structured logging configuration using structlog.

Provides consistent, machine-parsable JSON logs in production
and human-readable colored output in development.
"""

import logging
import sys

import structlog
from app.config import get_settings


def setup_logging() -> None:
    """Configure structured logging for the engine process.

    In development: colored, human-readable console output
    Otherwise: JSON-formatted logs for log aggregation
    """
    settings = get_settings()

    # Shared processors, applied to every log entry
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.LOG_FORMAT == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure stdlib logging to use structlog formatter
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # Reduce noise from third-party libraries
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if settings.SQLALCHEMY_ECHO else logging.WARNING
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def bind_execution_context(workflow_id: str, execution_id: str) -> None:
    """Attach run identifiers to every log line emitted by the current task."""
    structlog.contextvars.bind_contextvars(
        workflow_id=workflow_id,
        execution_id=execution_id,
    )


def clear_execution_context() -> None:
    """Drop run identifiers bound by bind_execution_context."""
    structlog.contextvars.unbind_contextvars("workflow_id", "execution_id")
