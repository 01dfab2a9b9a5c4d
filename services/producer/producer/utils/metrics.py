"""
Metrics utilities for the Producer Service.

This module defines the Prometheus collectors for the interval emitter and
provides a helper to expose them over HTTP.
"""

import structlog
from prometheus_client import (
    Counter, Gauge, Histogram, CollectorRegistry, start_http_server
)

logger = structlog.get_logger(__name__)

# Keep producer collectors off the global registry so that several emitters
# (and test runs) can share one process
custom_registry = CollectorRegistry()

# System metrics
SYSTEM_INFO = Gauge(
    "producer_system_info",
    "Information about the producer service",
    ["version", "environment"],
    registry=custom_registry
)

# Emitter metrics
TICKS_EMITTED = Counter(
    "producer_ticks_emitted_total",
    "Total number of ticks handed to the delivery sink",
    ["emitter"],
    registry=custom_registry
)
TICK_DELIVERY_FAILURES = Counter(
    "producer_tick_delivery_failures_total",
    "Total number of ticks the delivery sink failed to accept",
    ["emitter"],
    registry=custom_registry
)
TICK_SLOTS_SKIPPED = Counter(
    "producer_tick_slots_skipped_total",
    "Total number of interval slots skipped because a delivery overran",
    ["emitter"],
    registry=custom_registry
)
TICK_DELIVERY_TIME = Histogram(
    "producer_tick_delivery_time_seconds",
    "Time spent in the delivery sink per tick",
    ["emitter"],
    registry=custom_registry
)
LAST_SEQUENCE_NUMBER = Gauge(
    "producer_last_sequence_number",
    "Sequence number of the most recently emitted tick",
    ["emitter"],
    registry=custom_registry
)


def setup_metrics_server(port: int, version: str, environment: str) -> None:
    """
    Start the HTTP endpoint for Prometheus scraping.

    Args:
        port: Port to listen on
        version: Service version for the info gauge
        environment: Deployment environment for the info gauge
    """
    start_http_server(port, registry=custom_registry)

    SYSTEM_INFO.labels(version=version, environment=environment).set(1)

    logger.info("Metrics endpoint started", port=port)


def record_tick_emitted(emitter: str, sequence_number: int, duration: float) -> None:
    """
    Record a successfully delivered tick.

    Args:
        emitter: Emitter name
        sequence_number: Sequence number of the tick
        duration: Time spent delivering, in seconds
    """
    TICKS_EMITTED.labels(emitter=emitter).inc()
    TICK_DELIVERY_TIME.labels(emitter=emitter).observe(duration)
    LAST_SEQUENCE_NUMBER.labels(emitter=emitter).set(sequence_number)


def record_delivery_failure(emitter: str) -> None:
    """Record a tick the sink rejected."""
    TICK_DELIVERY_FAILURES.labels(emitter=emitter).inc()


def record_slots_skipped(emitter: str, count: int) -> None:
    TICK_SLOTS_SKIPPED.labels(emitter=emitter).inc(count)
