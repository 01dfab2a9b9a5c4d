"""
Producer service wiring configuration, sink and emitter together.

This module builds the configured delivery sink, starts the interval emitter
and keeps the process alive until SIGINT/SIGTERM or a delivery failure.
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional, Set

import structlog

from producer.core.config import LogLevel, Settings, SinkType, settings as default_settings
from producer.emitter.interval_emitter import EmitterHandle, IntervalEmitter
from producer.sinks.base_sink import DeliverySink
from producer.sinks.log_sink import LoggingSink
from producer.sinks.rabbitmq_sink import RabbitMQSink
from producer.utils.logging import configure_logging
from producer.utils.metrics import setup_metrics_server

logger = structlog.get_logger(__name__)


def build_sink(settings: Settings) -> DeliverySink:
    """
    Create the delivery sink selected by the settings.

    Args:
        settings: Service settings

    Returns:
        Delivery sink instance

    Raises:
        ValueError: If the sink type is not supported
    """
    sink_type = str(getattr(settings.SINK_TYPE, "value", settings.SINK_TYPE)).lower()

    if sink_type == SinkType.RABBITMQ.value:
        return RabbitMQSink(
            host=settings.RABBITMQ_HOST,
            port=settings.RABBITMQ_PORT,
            username=settings.RABBITMQ_USER,
            password=settings.RABBITMQ_PASSWORD.get_secret_value(),
            exchange=settings.RABBITMQ_EXCHANGE,
            routing_key=settings.RABBITMQ_ROUTING_KEY,
            virtual_host=settings.RABBITMQ_VIRTUAL_HOST,
            connection_timeout=settings.RABBITMQ_CONNECTION_TIMEOUT,
            required_groups=settings.RABBITMQ_REQUIRED_GROUPS,
        )
    if sink_type == SinkType.LOG.value:
        return LoggingSink()

    raise ValueError(
        f"Unsupported sink type: {sink_type}. "
        f"Supported types: {', '.join(t.value for t in SinkType)}"
    )


class ProducerService:
    """Service emitting one tick per interval into a delivery sink."""

    def __init__(self, settings: Settings, sink: Optional[DeliverySink] = None) -> None:
        """
        Initialize the producer service.

        Args:
            settings: Service settings
            sink: Delivery sink; built from the settings when omitted
        """
        self.settings = settings
        self.sink = sink or build_sink(settings)
        self.emitter = IntervalEmitter(
            interval=settings.EMIT_INTERVAL_SECONDS,
            sink=self.sink,
            name=settings.EMITTER_NAME,
        )
        self.handle: Optional[EmitterHandle] = None
        self._closed = False
        self._stop_requested = False
        self._stop_lock = asyncio.Lock()

        logger.info(
            "Initialized producer service",
            sink=type(self.sink).__name__,
            interval=self.emitter.interval,
        )

    async def start(self) -> None:
        """
        Open the sink and start the emitter.

        If stop() is called while the sink is opening, the freshly opened
        sink is closed again and the emitter never starts.
        """
        logger.info("Starting producer service", emitter=self.emitter.name)
        await self.sink.open()

        if self._stop_requested:
            logger.info("Stop requested while opening the sink, emitter not started")
            await self.sink.close()
            return

        self.handle = self.emitter.start()

    async def run(self) -> None:
        """
        Start the service and wait until the emitter ends.

        Raises:
            Exception: Whatever the sink raised if delivery failed
        """
        await self.start()
        if self.handle is None:
            return
        try:
            await self.handle.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the emitter and close the sink."""
        self._stop_requested = True
        async with self._stop_lock:
            if self._closed:
                return

            logger.info("Stopping producer service")
            if self.handle is not None:
                await self.handle.stop()
            await self.sink.close()
            self._closed = True


async def run_service(settings: Settings = default_settings) -> int:
    """
    Run the producer service until it is stopped.

    Args:
        settings: Service settings

    Returns:
        Process exit code: 0 after a clean stop, 1 after a failure
    """
    configure_logging(settings.LOG_LEVEL, settings)

    if settings.METRICS_ENABLED:
        setup_metrics_server(settings.METRICS_PORT, settings.VERSION, settings.ENVIRONMENT)

    service = ProducerService(settings)
    shutdown_tasks = install_signal_handlers(asyncio.get_running_loop(), service)

    try:
        await service.run()
    except asyncio.CancelledError:
        logger.info("Service cancelled")
    except Exception as e:
        logger.exception("Producer service failed", error=str(e))
        return 1
    finally:
        await service.stop()
        if shutdown_tasks:
            await asyncio.gather(*shutdown_tasks, return_exceptions=True)

    return 0


def install_signal_handlers(
        loop: asyncio.AbstractEventLoop, service: ProducerService
) -> Set[asyncio.Task]:
    """
    Stop the service on SIGINT and SIGTERM.

    Args:
        loop: Running event loop
        service: Service to stop

    Returns:
        The set holding in-flight shutdown tasks until they finish
    """
    shutdown_tasks: Set[asyncio.Task] = set()

    def request_stop() -> None:
        logger.info("Shutdown signal received")
        task = loop.create_task(service.stop())
        shutdown_tasks.add(task)
        task.add_done_callback(shutdown_tasks.discard)

    for signal_name in ("SIGINT", "SIGTERM"):
        try:
            loop.add_signal_handler(getattr(signal, signal_name), request_stop)
        except (NotImplementedError, AttributeError):
            # Signal handling is not available on Windows
            pass

    return shutdown_tasks


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Periodic tick producer")
    parser.add_argument(
        "--sink",
        choices=[t.value for t in SinkType],
        help="Delivery sink (overrides SINK_TYPE)"
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between ticks (overrides EMIT_INTERVAL_SECONDS)"
    )
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Log level (overrides LOG_LEVEL)"
    )

    args = parser.parse_args(argv)
    if args.interval is not None and args.interval <= 0:
        parser.error("--interval must be positive")
    return args


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """
    Return a copy of the settings with command line overrides applied.

    Args:
        settings: Settings loaded from the environment
        args: Parsed command line arguments

    Returns:
        Updated settings
    """
    overrides = {}
    if args.sink is not None:
        overrides["SINK_TYPE"] = args.sink
    if args.interval is not None:
        overrides["EMIT_INTERVAL_SECONDS"] = args.interval
    if args.log_level is not None:
        overrides["LOG_LEVEL"] = args.log_level
    return settings.model_copy(update=overrides)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the service."""
    args = parse_args(argv)
    settings = apply_overrides(default_settings, args)

    try:
        exit_code = asyncio.run(run_service(settings))
    except KeyboardInterrupt:
        logger.info("Service interrupted")
        exit_code = 0

    if exit_code:
        sys.exit(exit_code)
