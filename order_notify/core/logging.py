"""
structlog setup shared by the API, the queue scheduler and the transport.
JSON lines when ENVIRONMENT=production, coloured console output otherwise.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from asgi_correlation_id import correlation_id

from order_notify.config import Settings, get_settings

NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default", "sqlalchemy.engine")


def add_correlation_id(logger, method_name, event_dict):
    """Attach the current request id (if any) to every log event."""
    request_id = correlation_id.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure structured logging for structlog and the stdlib root logger."""
    settings = settings or get_settings()
    production = settings.ENVIRONMENT == "production"

    shared_processors: list[Any] = [
        add_correlation_id,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        # JSON logs for production (ELK / Datadog compatible)
        final_processors: list[Any] = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        final_processors = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Route stdlib records (httpx, apscheduler, our transport client) through the same renderer
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final_processors],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.LOG_LEVEL.upper())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
