"""
Structured Logging

structlog configuration for the API, the ingestion worker, the monitor DAG
and the operator scripts. Events are snake_case names with keyword context;
a job run binds ``job_id`` so every line it emits can be grouped.
"""
import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from config.settings import settings

SERVICE_NAME = "leadintake"


def add_service_fields(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    event_dict["environment"] = settings.environment
    return event_dict


def setup_logging() -> structlog.BoundLogger:
    """
    Route structlog through stdlib logging at ``settings.log_level``.

    ``settings.log_format`` picks the renderer: ``json`` for deployed
    workers, anything else for the console renderer used locally.

    Returns:
        Root structlog logger
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_service_fields,
    ]

    if settings.log_format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.processors.ExceptionRenderer(), structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


def get_logger(name: str = None) -> structlog.BoundLogger:
    """Module logger; pass ``__name__``."""
    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_job_context(job_id: int, **extra: Any) -> None:
    """Bind the upload job id to every log line emitted by the current context."""
    structlog.contextvars.bind_contextvars(job_id=job_id, **extra)


def clear_job_context() -> None:
    structlog.contextvars.clear_contextvars()
