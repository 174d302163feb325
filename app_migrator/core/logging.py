"""Logging for the app migrator.

Every component receives a ``ContextualLogger``: a ``LoggerAdapter`` that
carries a dict of dimensions (org, space, page, ...) which is merged into the
``extra`` of each record. Records are rendered as one JSON object per line.

Usage:
    from app_migrator.core.logging import logger

    space_logger = logger.with_context(org="acme", space="dev")
    space_logger.info("Exporting space")
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

from app_migrator.core import config
from app_migrator.core.config import MigratorSettings

LOGGER_NAME = "app_migrator"

# Attributes every LogRecord has; anything else arrived through ``extra``.
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys() | {"message", "asctime"}
)


class JSONFormatter(logging.Formatter):
    """Render a record and its context dimensions as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the record."""
        payload: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that carries context dimensions and an optional prefix."""

    def __init__(
        self,
        logger: logging.Logger,
        dimensions: Optional[Dict[str, Any]] = None,
        prefix: str = "",
    ):
        """Create a contextual logger.

        Args:
            logger: Underlying standard library logger
            dimensions: Key/value pairs attached to every record
            prefix: Text prepended to every message
        """
        super().__init__(logger, dict(dimensions or {}))
        self.dimensions: Dict[str, Any] = dict(dimensions or {})
        self.prefix = prefix

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, Any]:
        """Merge dimensions into ``extra`` and apply the prefix."""
        extra = dict(self.dimensions)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return f"{self.prefix}{msg}", kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a new logger with additional dimensions."""
        merged = {**self.dimensions, **dimensions}
        return ContextualLogger(self.logger, merged, self.prefix)

    def with_prefix(self, prefix: str) -> "ContextualLogger":
        """Return a new logger that prefixes every message."""
        return ContextualLogger(self.logger, self.dimensions, prefix)


def configure_logging(settings: Optional[MigratorSettings] = None) -> ContextualLogger:
    """Point the migrator logger at the configured file and level.

    Args:
        settings: log_file, log_level and debug; defaults to the global settings

    Returns:
        The root contextual logger.
    """
    settings = settings or config.settings
    base = logging.getLogger(LOGGER_NAME)
    for handler in list(base.handlers):
        base.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(settings.log_file, mode="a", encoding="utf-8")
    handler.setFormatter(JSONFormatter())
    base.addHandler(handler)

    level = logging.getLevelName(str(getattr(settings.effective_log_level, "value", "")))
    base.setLevel(level if isinstance(level, int) else logging.INFO)
    base.propagate = False

    return logger


logger = ContextualLogger(logging.getLogger(LOGGER_NAME))
