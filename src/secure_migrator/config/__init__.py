"""Configuration management: settings, connection descriptors, TOML loading.

Usage:
    >>> from secure_migrator.config import load_config, SourceConnection, Settings
"""

from secure_migrator.config.loader import load_config
from secure_migrator.config.models import (
    MigratorConfig,
    Settings,
    SourceConnection,
    StorageSettings,
    TargetConnection,
)

__all__ = [
    "load_config",
    "MigratorConfig",
    "Settings",
    "SourceConnection",
    "StorageSettings",
    "TargetConnection",
]
