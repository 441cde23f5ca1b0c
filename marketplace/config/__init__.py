"""Configuration management for the marketplace notifier."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_app_config, load_config, validate_config_file
from .models import (
    AppConfig,
    EmailConfig,
    LocalizationConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MatchingConfig,
    RemindersConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "load_app_config",
    "validate_config_file",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "MatchingConfig",
    "LocalizationConfig",
    "RemindersConfig",
    "EmailConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
