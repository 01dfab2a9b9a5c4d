"""
Unit tests for the interval emitter.

This module contains tests for the IntervalEmitter and EmitterHandle classes,
covering sequence numbering, timing, stopping and sink failures.
"""

import asyncio
import unittest
from datetime import timedelta

from producer.emitter import EmitterState, IntervalEmitter, start
from producer.exceptions import EmitterStateError
from producer.models.tick import Tick
from producer.sinks import CallbackSink, DeliverySink
from producer.utils.metrics import custom_registry


class RecordingSink(DeliverySink):
    """Sink that remembers every value and when it arrived."""

    def __init__(self, delay: float = 0.0) -> None:
        self.values = []
        self.times = []
        self.delay = delay

    async def deliver(self, value: int) -> None:
        self.values.append(value)
        self.times.append(asyncio.get_running_loop().time())
        if self.delay:
            await asyncio.sleep(self.delay)


class TestIntervalEmitterArguments(unittest.TestCase):
    """Unit tests for emitter construction."""

    def test_interval_accepts_seconds_and_timedelta(self):
        """Test that intervals are normalized to seconds."""
        self.assertEqual(IntervalEmitter(2, RecordingSink()).interval, 2.0)
        self.assertEqual(IntervalEmitter(0.25, RecordingSink()).interval, 0.25)
        self.assertEqual(
            IntervalEmitter(timedelta(milliseconds=500), RecordingSink()).interval, 0.5
        )

    def test_non_positive_interval_rejected(self):
        """Test that zero and negative intervals raise ValueError."""
        for interval in (0, -1, 0.0, timedelta(0), float("nan")):
            with self.assertRaises(ValueError):
                IntervalEmitter(interval, RecordingSink())

    def test_invalid_interval_type_rejected(self):
        """Test that non-numeric intervals raise TypeError."""
        with self.assertRaises(TypeError):
            IntervalEmitter("1s", RecordingSink())
        with self.assertRaises(TypeError):
            IntervalEmitter(True, RecordingSink())

    def test_callable_sink_is_wrapped(self):
        """Test that a plain callable becomes a CallbackSink."""
        emitter = IntervalEmitter(1, lambda value: None)
        self.assertIsInstance(emitter.sink, CallbackSink)

    def test_invalid_sink_rejected(self):
        """Test that missing or non-callable sinks raise TypeError."""
        with self.assertRaises(TypeError):
            IntervalEmitter(1, None)
        with self.assertRaises(TypeError):
            IntervalEmitter(1, 42)

    def test_new_emitter_is_idle(self):
        """Test the initial emitter state."""
        emitter = IntervalEmitter(1, RecordingSink())
        self.assertEqual(emitter.state, EmitterState.IDLE)
        self.assertIsNone(emitter.last_sequence_number)
        self.assertEqual(emitter.emitted, 0)

    def test_start_requires_running_loop(self):
        """Test that start() outside an event loop fails."""
        with self.assertRaises(RuntimeError):
            IntervalEmitter(1, RecordingSink()).start()

    def test_tick_is_immutable(self):
        """Test that ticks are frozen and non-negative."""
        tick = Tick(sequence_number=3)
        with self.assertRaises(Exception):
            tick.sequence_number = 4
        with self.assertRaises(ValueError):
            Tick(sequence_number=-1)


class TestIntervalEmitter(unittest.IsolatedAsyncioTestCase):
    """Unit tests for a running interval emitter."""

    async def asyncSetUp(self):
        """Set up the test environment."""
        self.sink = RecordingSink()
        self.handles = []

    async def asyncTearDown(self):
        """Stop every emitter started by a test."""
        for handle in self.handles:
            await handle.stop()

    def _start(self, interval, sink=None, name="test"):
        handle = IntervalEmitter(interval, sink or self.sink, name=name).start()
        self.handles.append(handle)
        return handle

    async def test_sequence_starts_at_zero_and_is_gap_free(self):
        """Test that the k-th emission carries value k."""
        handle = self._start(0.02)
        await asyncio.sleep(0.15)
        await handle.stop()

        self.assertGreaterEqual(len(self.sink.values), 3)
        self.assertEqual(self.sink.values, list(range(len(self.sink.values))))
        self.assertEqual(handle.last_sequence_number, self.sink.values[-1])
        self.assertEqual(handle.emitted, len(self.sink.values))

    async def test_first_tick_is_immediate(self):
        """Test that value 0 is delivered at start time."""
        self._start(10)
        await asyncio.sleep(0.05)

        self.assertEqual(self.sink.values, [0])

    async def test_three_and_a_half_intervals(self):
        """Test that 3.5 intervals produce 3 or 4 increasing deliveries."""
        handle = self._start(0.2)
        await asyncio.sleep(0.7)
        await handle.stop()

        self.assertIn(len(self.sink.values), (3, 4))
        self.assertEqual(self.sink.values[:3], [0, 1, 2])
        for earlier, later in zip(self.sink.values, self.sink.values[1:]):
            self.assertGreater(later, earlier)

    async def test_spacing_follows_interval(self):
        """Test that deliveries are due at start + k * interval."""
        interval = 0.05
        handle = self._start(interval)
        await asyncio.sleep(0.33)
        await handle.stop()

        self.assertGreaterEqual(len(self.sink.times), 4)
        first = self.sink.times[0]
        for k, delivered_at in enumerate(self.sink.times):
            # Never early; late only by scheduling jitter
            self.assertGreaterEqual(delivered_at - first, k * interval - 0.005)
        average = (self.sink.times[-1] - first) / (len(self.sink.times) - 1)
        self.assertAlmostEqual(average, interval, delta=0.02)

    async def test_independent_instances(self):
        """Test that two emitters keep separate zero-based sequences."""
        other = RecordingSink()
        first = self._start(0.02, name="first")
        await asyncio.sleep(0.05)
        second = self._start(0.02, sink=other, name="second")
        await asyncio.sleep(0.05)
        await first.stop()
        await second.stop()

        self.assertEqual(self.sink.values[0], 0)
        self.assertEqual(other.values[0], 0)
        self.assertEqual(other.values, list(range(len(other.values))))
        self.assertGreater(len(self.sink.values), len(other.values))

    async def test_stop_halts_deliveries(self):
        """Test that no delivery happens after stop()."""
        handle = self._start(0.02)
        await asyncio.sleep(0.07)
        await handle.stop()
        delivered = len(self.sink.values)

        await asyncio.sleep(0.1)

        self.assertEqual(len(self.sink.values), delivered)
        self.assertEqual(handle.state, EmitterState.STOPPED)
        self.assertFalse(handle.running)

    async def test_stop_is_idempotent_and_wait_returns(self):
        """Test repeated stop() calls and wait() after stop()."""
        handle = self._start(0.02)
        await asyncio.sleep(0.03)
        await handle.stop()
        await handle.stop()

        await handle.wait()
        self.assertEqual(handle.state, EmitterState.STOPPED)

    async def test_stop_before_first_step(self):
        """Test stopping an emitter whose task never ran."""
        handle = self._start(0.02)
        await handle.stop()

        self.assertEqual(self.sink.values, [])
        self.assertEqual(handle.state, EmitterState.STOPPED)

    async def test_wait_unblocks_on_stop(self):
        """Test that a pending wait() returns when the emitter is stopped."""
        handle = self._start(0.02)
        waiter = asyncio.create_task(handle.wait())
        await asyncio.sleep(0.05)

        await handle.stop()
        await asyncio.wait_for(waiter, timeout=1)

    async def test_emitter_starts_once(self):
        """Test that restarting an emitter raises EmitterStateError."""
        emitter = IntervalEmitter(0.02, self.sink)
        self.handles.append(emitter.start())

        with self.assertRaises(EmitterStateError):
            emitter.start()

    async def test_slow_sink_skips_slots_without_value_gaps(self):
        """Test that overrun slots are skipped, not replayed."""
        slow = RecordingSink(delay=0.12)
        handle = self._start(0.05, sink=slow, name="slow")
        await asyncio.sleep(0.4)
        await handle.stop()

        self.assertGreaterEqual(handle.skipped, 1)
        self.assertEqual(slow.values, list(range(len(slow.values))))
        # One delivery per 0.15 s at most, never a catch-up burst
        self.assertLessEqual(len(slow.values), 4)

    async def test_sink_failure_stops_emitter(self):
        """Test that a sink exception ends the emitter and surfaces from wait()."""
        received = []

        def flaky(value):
            received.append(value)
            if value == 2:
                raise ConnectionError("broker unavailable")

        handle = self._start(0.01, sink=flaky, name="flaky")

        with self.assertRaises(ConnectionError):
            await asyncio.wait_for(handle.wait(), timeout=1)

        self.assertEqual(received, [0, 1, 2])
        self.assertEqual(handle.state, EmitterState.STOPPED)
        self.assertEqual(handle.emitted, 2)
        self.assertEqual(handle.last_sequence_number, 2)

        # stop() after a failure is harmless
        await handle.stop()

    async def test_async_callback_sink(self):
        """Test that coroutine callbacks are awaited."""
        received = []

        async def deliver(value):
            await asyncio.sleep(0)
            received.append(value)

        handle = start(0.02, deliver, name="async-callback")
        self.handles.append(handle)
        await asyncio.sleep(0.05)
        await handle.stop()

        self.assertEqual(received[:2], [0, 1])

    async def test_metrics_recorded(self):
        """Test that emitted ticks are counted per emitter."""
        handle = self._start(0.02, name="metrics-test")
        await asyncio.sleep(0.05)
        await handle.stop()

        emitted = custom_registry.get_sample_value(
            "producer_ticks_emitted_total", {"emitter": "metrics-test"}
        )
        last = custom_registry.get_sample_value(
            "producer_last_sequence_number", {"emitter": "metrics-test"}
        )
        self.assertEqual(emitted, handle.emitted)
        self.assertEqual(last, handle.last_sequence_number)


if __name__ == "__main__":
    unittest.main()
