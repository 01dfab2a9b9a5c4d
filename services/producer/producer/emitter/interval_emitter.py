"""
Interval emitter producing an incrementing sequence of ticks.

This module provides the emitter that drives the producer: one asyncio task
per emitter owns the counter, sleeps until the next interval deadline and
hands each value to a delivery sink. Deadlines are measured from the start
time, so delivery delays do not accumulate drift; slots that a slow delivery
overruns are skipped rather than replayed.
"""

import asyncio
import math
import time
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Optional, Union

import structlog

from producer.exceptions import EmitterStateError
from producer.models.tick import Tick
from producer.sinks.base_sink import DeliverySink
from producer.sinks.callback_sink import CallbackSink
from producer.utils.metrics import (
    record_delivery_failure,
    record_slots_skipped,
    record_tick_emitted,
)

logger = structlog.get_logger(__name__)

Interval = Union[int, float, timedelta]


class EmitterState(str, Enum):
    """Lifecycle states of an interval emitter."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def _interval_seconds(interval: Interval) -> float:
    """
    Normalize an interval to seconds.

    Args:
        interval: Seconds or a timedelta

    Returns:
        The interval in seconds

    Raises:
        TypeError: If the interval is not a number or timedelta
        ValueError: If the interval is not positive
    """
    if isinstance(interval, timedelta):
        seconds = interval.total_seconds()
    elif isinstance(interval, (int, float)) and not isinstance(interval, bool):
        seconds = float(interval)
    else:
        raise TypeError(f"Interval must be seconds or a timedelta, got {type(interval).__name__}")

    if not math.isfinite(seconds) or seconds <= 0:
        raise ValueError(f"Interval must be positive, got {interval!r}")
    return seconds


def _as_sink(sink: Union[DeliverySink, Callable[[int], Any]]) -> DeliverySink:
    if isinstance(sink, DeliverySink):
        return sink
    if callable(sink):
        return CallbackSink(sink)
    raise TypeError(f"Sink must be a DeliverySink or a callable, got {type(sink).__name__}")


class IntervalEmitter:
    """Emits 0, 1, 2, ... to a sink, one value per interval."""

    def __init__(
            self,
            interval: Interval = 1.0,
            sink: Union[DeliverySink, Callable[[int], Any], None] = None,
            name: str = "producer",
    ) -> None:
        """
        Initialize the interval emitter.

        Args:
            interval: Time between emissions, in seconds or as a timedelta
            sink: Delivery sink, or a callable wrapped into one
            name: Emitter name used in logs and metrics
        """
        if sink is None:
            raise TypeError("An interval emitter needs a sink")

        self.interval = _interval_seconds(interval)
        self.sink = _as_sink(sink)
        self.name = name

        self.state = EmitterState.IDLE
        self.last_sequence_number: Optional[int] = None
        self.emitted = 0
        self.skipped = 0

        self._started_at: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "EmitterHandle":
        """
        Start emitting on the running event loop.

        The first tick (0) is emitted immediately; tick k is due at
        start + k * interval.

        Returns:
            Handle for stopping and awaiting the emitter

        Raises:
            EmitterStateError: If the emitter was already started
            RuntimeError: If no event loop is running
        """
        if self.state is not EmitterState.IDLE:
            raise EmitterStateError(f"Emitter '{self.name}' is {self.state.value}; emitters start only once")

        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        self.state = EmitterState.RUNNING
        self._task = loop.create_task(self._run(), name=f"interval-emitter-{self.name}")

        logger.info("Emitter started", emitter=self.name, interval=self.interval)
        return EmitterHandle(self, self._task)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        slot = 0

        try:
            while True:
                delay = self._started_at + slot * self.interval - loop.time()
                if delay > 0:
                    await asyncio.sleep(delay)

                await self._emit(Tick(sequence_number=self.emitted))

                # Next due slot that is not already in the past
                elapsed = loop.time() - self._started_at
                next_slot = max(slot + 1, math.ceil(elapsed / self.interval))
                missed = next_slot - slot - 1
                if missed:
                    self.skipped += missed
                    record_slots_skipped(self.name, missed)
                    logger.warning(
                        "Delivery overran the interval, skipping slots",
                        emitter=self.name,
                        skipped=missed,
                        sequence_number=self.last_sequence_number,
                    )
                slot = next_slot
        finally:
            self.state = EmitterState.STOPPED
            logger.info(
                "Emitter stopped",
                emitter=self.name,
                emitted=self.emitted,
                skipped=self.skipped,
                last_sequence_number=self.last_sequence_number,
            )

    async def _emit(self, tick: Tick) -> None:
        """Log a tick and hand it to the sink."""
        self.last_sequence_number = tick.sequence_number
        logger.info("Tick emitted", emitter=self.name, sequence_number=tick.sequence_number)

        start_time = time.perf_counter()
        try:
            await self.sink.deliver(tick.sequence_number)
        except Exception as e:
            record_delivery_failure(self.name)
            logger.error(
                "Delivery failed",
                emitter=self.name,
                sequence_number=tick.sequence_number,
                error=str(e),
            )
            raise

        self.emitted += 1
        record_tick_emitted(self.name, tick.sequence_number, time.perf_counter() - start_time)


class EmitterHandle:
    """Handle to a running interval emitter."""

    def __init__(self, emitter: IntervalEmitter, task: asyncio.Task) -> None:
        self.emitter = emitter
        self._task = task
        self._stop_requested = False

    @property
    def state(self) -> EmitterState:
        return self.emitter.state

    @property
    def running(self) -> bool:
        return not self._task.done()

    @property
    def last_sequence_number(self) -> Optional[int]:
        return self.emitter.last_sequence_number

    @property
    def emitted(self) -> int:
        return self.emitter.emitted

    @property
    def skipped(self) -> int:
        return self.emitter.skipped

    async def stop(self) -> None:
        """
        Stop the emitter.

        No delivery starts after this returns. Calling stop() on an emitter
        that already ended is a no-op; a sink failure is reported by wait().
        """
        self._stop_requested = True
        if self._task.done():
            return

        self._task.cancel()
        await asyncio.wait({self._task})
        # A task cancelled before its first step never runs its own cleanup
        self.emitter.state = EmitterState.STOPPED

    async def wait(self) -> None:
        """
        Wait until the emitter ends.

        Returns normally once stop() was called.

        Raises:
            Exception: Whatever the sink raised if delivery failed
        """
        await asyncio.wait({self._task})
        if self._task.cancelled():
            if self._stop_requested:
                return
            raise asyncio.CancelledError()
        exc = self._task.exception()
        if exc is not None:
            raise exc


def start(
        interval: Interval,
        sink: Union[DeliverySink, Callable[[int], Any]],
        name: str = "producer",
) -> EmitterHandle:
    """
    Create an interval emitter and start it.

    Args:
        interval: Time between emissions, in seconds or as a timedelta
        sink: Delivery sink, or a callable wrapped into one
        name: Emitter name used in logs and metrics

    Returns:
        Handle to the running emitter
    """
    return IntervalEmitter(interval=interval, sink=sink, name=name).start()
