"""Configuration management for the notification dispatch worker."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_app_config, validate_config_file
from .models import (
    AppConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    ProvidersConfig,
    RetryConfig,
    ServerConfig,
    WorkerConfig,
)

__all__ = [
    "load_config",
    "parse_app_config",
    "validate_config_file",
    "load_environment_config",
    "AppConfig",
    "WorkerConfig",
    "RetryConfig",
    "ProvidersConfig",
    "ServerConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    "LogLevel",
    "LogFormat",
    "ConfigurationError",
]
