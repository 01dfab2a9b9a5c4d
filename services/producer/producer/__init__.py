"""Producer Service.

This service emits an incrementing sequence number once per interval and
publishes every value to a delivery sink such as a RabbitMQ exchange.
"""
