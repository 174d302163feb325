"""Configuration module for the app migrator.

Provides centralized configuration management with type-safe enums.

Usage:
    from app_migrator.core.config import settings, LogLevel

    if settings.log_level == LogLevel.DEBUG:
        ...
"""

from app_migrator.core.config.enums import LogLevel, MigrationDirection
from app_migrator.core.config.settings import ControlPlaneConfig, MigratorSettings

__all__ = [
    "ControlPlaneConfig",
    "LogLevel",
    "MigrationDirection",
    "MigratorSettings",
    "settings",
]

# Singleton settings instance
settings = MigratorSettings()
