"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class WorkerConfig(BaseModel):
    """Queue consumption settings."""

    batch_size: int = Field(10, ge=1, le=100, description="Queue entries leased per cycle")
    visibility_timeout: int = Field(
        60, ge=5, le=3600, description="Seconds a leased entry stays hidden from other consumers"
    )
    default_max_retries: int = Field(
        3, ge=1, le=20, description="Retry budget for jobs that do not set max_retries"
    )
    cycle_timeout_seconds: int = Field(
        50, ge=1, le=900, description="Cooperative deadline for one consumer cycle"
    )
    promotion_batch_limit: int = Field(
        100, ge=1, le=1000, description="Maximum jobs promoted onto the queue per invocation"
    )
    poll_interval: str = Field("1m", description="Daemon-mode interval between invocations")

    # Computed field
    poll_interval_seconds: Optional[int] = None

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: str) -> str:
        """Validate the poll interval parses and is in range."""
        try:
            validate_duration_range(parse_duration(v), min_seconds=10, max_seconds=3600,
                                    label="Poll interval")
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def compute_poll_interval_seconds(self):
        """Store the parsed poll interval."""
        self.poll_interval_seconds = parse_duration(self.poll_interval)
        return self


class RetryConfig(BaseModel):
    """Backoff schedule for failed-but-retryable jobs."""

    initial_delay_seconds: int = Field(60, ge=1, le=3600)
    backoff_multiplier: float = Field(2.0, ge=1.0, le=10.0)
    max_delay_seconds: int = Field(3600, ge=1, le=86400)

    @model_validator(mode="after")
    def validate_delays(self):
        if self.max_delay_seconds < self.initial_delay_seconds:
            raise ValueError("max_delay_seconds must be >= initial_delay_seconds")
        return self


class ProvidersConfig(BaseModel):
    """HTTP settings shared by the external delivery channels."""

    base_url: str = Field(
        "https://control.msg91.com/api/v5", min_length=1, description="Provider API root"
    )
    http_request_timeout: int = Field(
        30, ge=1, le=120, description="Timeout for provider API calls (seconds)"
    )
    user_agent: str = Field(
        "NotificationDispatchWorker/1.0",
        min_length=1,
        description="User-Agent string for provider requests",
    )
    default_country_code: str = Field("91", pattern=r"^\d{1,4}$")
    sms_route: str = Field("4", pattern=r"^\d+$")
    whatsapp_language: str = Field("en", min_length=2)

    @field_validator("base_url", "user_agent")
    @classmethod
    def strip_value(cls, v: str) -> str:
        """Strip whitespace and trailing slashes."""
        stripped = v.strip().rstrip("/")
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped


class ServerConfig(BaseModel):
    """HTTP trigger server settings."""

    host: str = Field("0.0.0.0", min_length=1)
    port: int = Field(8000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the notification dispatch worker."""

    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
