"""
Callback sink adapting a plain function or coroutine function into a sink.
"""

import inspect
from typing import Any, Callable

from producer.sinks.base_sink import DeliverySink


class CallbackSink(DeliverySink):
    """Sink that forwards each value to a callable."""

    def __init__(self, callback: Callable[[int], Any]) -> None:
        """
        Initialize the callback sink.

        Args:
            callback: Called with every value; awaited when it returns an awaitable
        """
        if not callable(callback):
            raise TypeError(f"Callback must be callable, got {type(callback).__name__}")
        self.callback = callback

    async def deliver(self, value: int) -> None:
        result = self.callback(value)
        if inspect.isawaitable(result):
            await result
