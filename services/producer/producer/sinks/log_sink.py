"""
Logging sink writing every delivered tick to the structured log.
"""

import logging

import structlog

from producer.sinks.base_sink import DeliverySink

logger = structlog.get_logger(__name__)


class LoggingSink(DeliverySink):
    """Sink that only logs the values it receives."""

    def __init__(self, level: str = "info") -> None:
        numeric_level = logging.getLevelName(level.upper())
        if not isinstance(numeric_level, int):
            raise ValueError(f"Unknown log level: {level}")
        self.level = numeric_level

    async def deliver(self, value: int) -> None:
        logger.log(self.level, "Tick delivered", value=value)
