"""Configuration management for sqlidem."""

from sqlidem.config.models import (
    DatabaseConfig,
    EnvironmentSettings,
    SQLIdemConfig,
)
from sqlidem.config.parser import ConfigParser, load_config

__all__ = [
    # Models
    "DatabaseConfig",
    "EnvironmentSettings",
    "SQLIdemConfig",
    # Parser
    "ConfigParser",
    "load_config",
]
