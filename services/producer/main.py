"""
Main module for the Producer Service.

This module serves as the entry point for the producer service, which emits an
incrementing sequence number once per interval and publishes each value to
RabbitMQ (or the log) for consumption by other services.
"""

from dotenv import load_dotenv

load_dotenv()

from producer.service import main  # noqa: E402


if __name__ == "__main__":
    main()
