"""Configuration enums for type-safe settings.

These enums provide type safety and IDE autocomplete for configuration values.
They inherit from str to maintain JSON serialization compatibility.
"""

from enum import Enum


class LogLevel(str, Enum):
    """Log levels accepted by the migrator.

    Mirrors the standard library level names so the value can be handed
    straight to ``logging.getLevelName``.
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class MigrationDirection(str, Enum):
    """Which control plane a client talks to."""

    SOURCE = "source"
    TARGET = "target"
