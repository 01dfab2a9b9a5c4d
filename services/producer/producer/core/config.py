"""
Configuration module for the Producer Service.

This module defines the settings and configuration parameters for the producer.
It uses Pydantic's Settings management to load configuration from environment variables.
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Log level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Environment(str, Enum):
    """Environment enumeration."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class SinkType(str, Enum):
    """Delivery sink enumeration."""
    RABBITMQ = "rabbitmq"
    LOG = "log"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    This class defines all configuration parameters for the producer service,
    with appropriate defaults and validation.
    """
    # General settings
    PROJECT_NAME: str = "Producer Service"
    VERSION: str = "0.1.0"
    ENVIRONMENT: Environment = Environment.DEVELOPMENT
    LOG_LEVEL: LogLevel = LogLevel.INFO

    # Emitter settings
    EMIT_INTERVAL_SECONDS: float = Field(default=1.0, gt=0)
    EMITTER_NAME: str = "producer"
    SINK_TYPE: SinkType = SinkType.RABBITMQ

    # RabbitMQ settings
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: SecretStr = Field(default=SecretStr("guest"))
    RABBITMQ_VIRTUAL_HOST: str = "/"
    RABBITMQ_EXCHANGE: str = "producer-out-0"
    RABBITMQ_ROUTING_KEY: Optional[str] = None
    RABBITMQ_REQUIRED_GROUPS: List[str] = Field(default_factory=list)
    RABBITMQ_CONNECTION_TIMEOUT: float = Field(default=5.0, gt=0)

    # Metrics settings
    METRICS_ENABLED: bool = False
    METRICS_PORT: int = 9100

    @field_validator("RABBITMQ_EXCHANGE")
    def exchange_not_blank(cls, v: str) -> str:
        """
        Reject an empty destination.

        Args:
            v: The value to validate

        Returns:
            The stripped exchange name
        """
        v = v.strip()
        if not v:
            raise ValueError("RABBITMQ_EXCHANGE must not be empty")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        use_enum_values=True,
        extra="ignore",
    )


# Create global settings instance
settings = Settings()
