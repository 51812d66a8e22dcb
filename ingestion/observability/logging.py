"""
structlog configuration for the ingestion core.

Every event carries the service name and pipeline version so log lines from
different deployments can be told apart. JSON output unless DEBUG is set.
"""

import logging
import sys
from typing import IO, Optional

import structlog

from ingestion.config import Settings, settings as default_settings


def service_fields(settings: Settings):
    """Processor stamping app, version and pipeline_version on each event."""
    fields = {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "pipeline_version": settings.PIPELINE_VERSION,
    }

    def processor(logger, method_name, event_dict):
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return processor


def setup_logging(settings: Optional[Settings] = None, stream: Optional[IO[str]] = None) -> None:
    """
    Route structlog through stdlib logging.

    `stream` defaults to stdout; the CLI passes stderr so that stdout holds
    only ingestion results.
    """
    settings = settings or default_settings

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        service_fields(settings),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer = structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        # stdlib records (SQLAlchemy) get the same shape as structlog events
        foreign_pre_chain=shared_processors,
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DB_ECHO else logging.WARNING)
