"""
Logging Configuration for PredictIQ

structlog events rendered through one standard-library handler, so uvicorn
and the analytics modules share a format. Every event is stamped with the
service name and environment. The ``predictiq`` package logs at its own
level, which lets a deployment trace pipeline runs at DEBUG while the web
server stays at INFO.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import ProcessorFormatter, add_log_level, add_logger_name

from predictiq.config.settings import get_settings

HANDLER_NAME = "predictiq"
PACKAGE_LOGGER = "predictiq"
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def add_service_context(service: str, environment: str):
    """Processor stamping each event with the service and environment"""
    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        event_dict.setdefault("environment", environment)
        return event_dict

    return processor


def _numeric_level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    pipeline_log_level: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Configure structured logging for the application.

    Arguments override the monitoring settings. Reconfiguring replaces the
    previously installed handler; handlers installed by others are kept.

    Returns:
        The installed handler
    """
    settings = get_settings()
    monitoring = settings.monitoring

    level_name = log_level or monitoring.log_level
    package_level_name = pipeline_log_level or monitoring.pipeline_log_level or level_name
    output_format = (log_format or monitoring.log_format).lower()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        add_logger_name,
        add_log_level,
        add_service_context(settings.app_name, settings.app_env),
        TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if output_format == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(ProcessorFormatter(
        processors=[ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=shared_processors,
    ))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == HANDLER_NAME:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(_numeric_level(level_name))

    logging.getLogger(PACKAGE_LOGGER).setLevel(_numeric_level(package_level_name))

    # uvicorn installs its own handlers; send its records to ours instead
    for logger_name in SERVER_LOGGERS:
        server_logger = logging.getLogger(logger_name)
        server_logger.handlers = []
        server_logger.propagate = True
        server_logger.setLevel(_numeric_level(level_name))

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=level_name,
        pipeline_level=package_level_name,
        format=output_format,
    )
    return handler
