"""
Logging configuration for the Producer Service.

This module sets up structlog on top of the standard library logging module.
Every event carries the emitting service's name, version and environment so
that logs from several producer instances can be told apart.
"""

import logging
import sys
import time
from typing import Any, Dict, Optional

import structlog
from structlog.stdlib import LoggerFactory
from structlog.types import Processor

from producer.core.config import Environment, LogLevel, Settings, settings as default_settings

# Client libraries that log every connection event at INFO
_QUIET_LOGGERS = ("aiormq", "aio_pika")


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value))


def add_timestamp(logger: Any, name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add an ISO-8601 UTC timestamp to the event dict."""
    event_dict["timestamp"] = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime())
    return event_dict


def service_info_processor(settings: Settings) -> Processor:
    """
    Build a processor stamping events with the service identity.

    Args:
        settings: Settings the service runs with

    Returns:
        structlog processor
    """
    service_info = {
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "environment": _enum_value(settings.ENVIRONMENT),
    }

    def add_service_info(logger: Any, name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in service_info.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_info


def configure_logging(
        log_level: Optional[str] = None,
        settings: Optional[Settings] = None,
) -> None:
    """
    Configure structured logging for the service.

    Development environments get a console renderer; every other
    environment gets one JSON object per line.

    Args:
        log_level: Logging level; defaults to the settings' LOG_LEVEL
        settings: Settings the service runs with; defaults to the environment settings
    """
    settings = settings or default_settings
    level = _enum_value(log_level or settings.LOG_LEVEL or LogLevel.INFO).upper()

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_timestamp,
        service_info_processor(settings),
    ]

    if _enum_value(settings.ENVIRONMENT) == Environment.DEVELOPMENT.value:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.extend([
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
