"""Configuration management package for the toolchain installer."""

from .exceptions import ConfigurationError
from .settings import (
    CommandsConfig,
    LayoutConfig,
    LoggingConfig,
    Settings,
    load_settings,
)

__all__ = [
    "CommandsConfig",
    "ConfigurationError",
    "LayoutConfig",
    "LoggingConfig",
    "Settings",
    "load_settings",
]
