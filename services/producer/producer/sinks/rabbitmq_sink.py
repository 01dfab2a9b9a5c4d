"""
RabbitMQ sink for publishing ticks.

This module provides a delivery sink that publishes every produced value to a
RabbitMQ topic exchange (the destination) for consumption by other services.
"""

import json
from typing import Optional, Sequence

import aio_pika
import structlog

from producer.sinks.base_sink import DeliverySink

logger = structlog.get_logger(__name__)


class RabbitMQSink(DeliverySink):
    """Sink publishing JSON encoded integers to RabbitMQ."""

    def __init__(
            self,
            host: str,
            port: int = 5672,
            username: str = "guest",
            password: str = "guest",
            exchange: str = "producer-out-0",
            routing_key: Optional[str] = None,
            virtual_host: str = "/",
            connection_timeout: float = 5.0,
            required_groups: Sequence[str] = (),
    ) -> None:
        """
        Initialize the RabbitMQ sink.

        Args:
            host: RabbitMQ host
            port: RabbitMQ port
            username: RabbitMQ username
            password: RabbitMQ password
            exchange: Destination exchange name
            routing_key: Routing key for published messages (defaults to the exchange name)
            virtual_host: RabbitMQ virtual host
            connection_timeout: Connection timeout in seconds
            required_groups: Consumer groups whose queues are declared up front
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.exchange_name = exchange
        self.routing_key = routing_key or exchange
        self.virtual_host = virtual_host
        self.connection_timeout = connection_timeout
        self.required_groups = list(required_groups)

        self.connection: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self.channel: Optional[aio_pika.abc.AbstractChannel] = None
        self.exchange: Optional[aio_pika.abc.AbstractExchange] = None

    @property
    def connection_string(self) -> str:
        vhost = self.virtual_host.replace("/", "%2F")
        return f"amqp://{self.username}:{self.password}@{self.host}:{self.port}/{vhost}"

    async def open(self) -> None:
        """
        Connect to RabbitMQ and declare the destination exchange.

        Raises:
            ConnectionError: If connection fails
        """
        try:
            self.connection = await aio_pika.connect_robust(
                self.connection_string, timeout=self.connection_timeout
            )

            self.channel = await self.connection.channel()

            self.exchange = await self.channel.declare_exchange(
                self.exchange_name, type=aio_pika.ExchangeType.TOPIC, durable=True
            )

            # Queues for required groups retain values published before a consumer subscribes
            for group in self.required_groups:
                queue = await self.channel.declare_queue(
                    f"{self.exchange_name}.{group}", durable=True
                )
                await queue.bind(self.exchange, routing_key="#")

            logger.info(
                "Connected to RabbitMQ",
                host=self.host,
                port=self.port,
                exchange=self.exchange_name,
                required_groups=self.required_groups,
            )

        except Exception as e:
            logger.error("Failed to connect to RabbitMQ", host=self.host, port=self.port, error=str(e))
            raise ConnectionError(f"Failed to connect to RabbitMQ: {str(e)}") from e

    async def deliver(self, value: int) -> None:
        """
        Publish a value to the destination exchange.

        Args:
            value: Value to publish (encoded as JSON)

        Raises:
            RuntimeError: If not connected to RabbitMQ
            ValueError: If message serialization fails
        """
        if not self.channel or not self.exchange:
            raise RuntimeError("Not connected to RabbitMQ. Call open() first.")

        try:
            body = json.dumps(value).encode("utf-8")
        except (TypeError, ValueError) as e:
            logger.error("Failed to serialize value", error=str(e))
            raise ValueError(f"Failed to serialize value: {str(e)}") from e

        message = aio_pika.Message(
            body=body,
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            content_type="application/json",
        )

        try:
            await self.exchange.publish(message, routing_key=self.routing_key)
        except Exception as e:
            logger.error("Failed to publish value", value=value, routing_key=self.routing_key, error=str(e))
            raise

        logger.debug("Published value", value=value, routing_key=self.routing_key)

    async def close(self) -> None:
        """
        Close the connection to RabbitMQ.

        This should be called when shutting down the service.
        """
        if self.connection:
            try:
                await self.connection.close()
                logger.info("Closed RabbitMQ connection")
            except Exception as e:
                logger.error("Error closing RabbitMQ connection", error=str(e))

        self.connection = None
        self.channel = None
        self.exchange = None
