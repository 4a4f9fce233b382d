"""Logging configuration utilities."""

import logging
import sys
from typing import Optional

import structlog

from .config import settings

# Chatty libraries whose request-level output is only useful while debugging.
QUIET_LOGGERS = ("httpx", "httpcore", "celery.app.trace")


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def configure_logging(level: int | str | None = None, json_output: bool | None = None) -> None:
    """Configure structlog over the stdlib root logger.

    JSON lines are emitted everywhere except a development environment, which
    gets the console renderer unless ``json_output`` says otherwise.
    """

    log_level = level or (logging.DEBUG if settings.debug else logging.INFO)
    if json_output is None:
        json_output = settings.environment != "development"

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_service,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stdout,
    )
    if not settings.debug:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Create a structured logger."""

    return structlog.get_logger(name or "pagecss")


def bind_job_context(**values):
    """Attach job fields to every log line emitted inside the ``with`` block."""

    return structlog.contextvars.bound_contextvars(**values)
