"""
Base sink for abstracting tick delivery.

This module defines the abstract base class for delivery sinks, ensuring a
consistent interface between the interval emitter and the transports that
carry its values.
"""

import abc


class DeliverySink(abc.ABC):
    """Abstract base class for delivery sinks."""

    async def open(self) -> None:
        """
        Acquire whatever the sink needs before the first delivery.

        The default implementation does nothing.
        """

    @abc.abstractmethod
    async def deliver(self, value: int) -> None:
        """
        Hand a produced value to the sink.

        Args:
            value: Sequence number of the tick being delivered

        Raises:
            Exception: Any failure of the underlying transport
        """
        pass

    async def close(self) -> None:
        """Release resources acquired by open()."""

    async def __aenter__(self) -> "DeliverySink":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
