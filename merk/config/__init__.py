"""
Configuration management for Merk.

Handles loading and validation of configuration files.
"""

from merk.config.settings import (
    DatabaseConfig,
    LoggingConfig,
    MerkConfig,
    MetricsConfig,
    RedisConfig,
    StoreConfig,
    apply_config,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "DatabaseConfig",
    "LoggingConfig",
    "MerkConfig",
    "MetricsConfig",
    "RedisConfig",
    "StoreConfig",
    "apply_config",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
