"""
Logging Configuration for the Stock Ledger Service

Every log line is a structlog event. Stdlib loggers (uvicorn, gunicorn,
SQLAlchemy) are routed through the same formatter so the output stays a
single stream: JSON lines in deployed environments, colored console output
during development.

Each event is stamped with the service name and environment, and with the
request id and user id that RequestLoggingMiddleware binds into the
contextvars for the duration of a request.
"""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import ProcessorFormatter, add_log_level
from structlog.typing import EventDict, Processor, WrappedLogger

from stockledger.config.settings import Settings, get_settings

# Server loggers that would otherwise install their own handlers
ROUTED_LOGGERS = ["uvicorn", "uvicorn.error", "uvicorn.access", "gunicorn.error", "gunicorn.access"]

# Driver loggers held at WARNING unless SQL echo is on
QUIET_LOGGERS = ["sqlalchemy.engine", "aiosqlite", "asyncpg"]


def _service_context(settings: Settings) -> Processor:
    service = settings.app_name
    environment = settings.app_env

    def add_service_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_service_context


def _renderer(fmt: str) -> Processor:
    if fmt == "json":
        return JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def _shared_processors(settings: Settings) -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        _service_context(settings),
        TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> Dict[str, Any]:
    """
    Configure structured logging for the API process or a batch script.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Override renderer ("json" or "text")

    Returns:
        The effective level and format.
    """
    settings = get_settings()
    level = (log_level or settings.monitoring.log_level).upper()
    fmt = log_format or settings.monitoring.log_format
    numeric_level = getattr(logging, level, logging.INFO)

    shared = _shared_processors(settings)
    structlog.configure(
        processors=shared + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processor=_renderer(fmt), foreign_pre_chain=shared))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(numeric_level)

    for name in ROUTED_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers = []
        server_logger.propagate = True
        server_logger.setLevel(numeric_level)

    quiet_level = logging.INFO if settings.database.echo else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    structlog.get_logger(__name__).info("Logging configured", level=level, format=fmt)
    return {"level": level, "format": fmt}
