"""
Sinks package for delivering produced ticks.

This package provides the delivery sink interface and its implementations:
RabbitMQ publishing, structured logging and plain callbacks.
"""

from producer.sinks.base_sink import DeliverySink
from producer.sinks.callback_sink import CallbackSink
from producer.sinks.log_sink import LoggingSink
from producer.sinks.rabbitmq_sink import RabbitMQSink

__all__ = ["DeliverySink", "CallbackSink", "LoggingSink", "RabbitMQSink"]
