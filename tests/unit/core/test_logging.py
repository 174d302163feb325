"""Tests for the contextual logger and JSON formatter."""

import json
import logging
import sys

from app_migrator.core.config import LogLevel, MigratorSettings
from app_migrator.core.logging import (
    LOGGER_NAME,
    ContextualLogger,
    JSONFormatter,
    configure_logging,
)


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def _logger_with_handler(name: str):
    base = logging.getLogger(name)
    base.setLevel(logging.DEBUG)
    base.propagate = False
    handler = _ListHandler()
    base.handlers = [handler]
    return ContextualLogger(base), handler


class TestContextualLogger:
    """Test dimension and prefix handling."""

    def test_with_context_adds_dimensions(self):
        """Dimensions are attached to every record as extras."""
        logger, handler = _logger_with_handler("test_app_migrator.context")

        logger.with_context(org="acme").with_context(space="dev").info("exporting")

        record = handler.records[0]
        assert record.org == "acme"
        assert record.space == "dev"
        assert record.getMessage() == "exporting"

    def test_with_context_does_not_mutate_parent(self):
        """Child loggers leave the parent's dimensions alone."""
        parent = ContextualLogger(logging.getLogger("test_app_migrator.parent"), {"a": 1})

        child = parent.with_context(b=2)

        assert parent.dimensions == {"a": 1}
        assert child.dimensions == {"a": 1, "b": 2}

    def test_call_extra_overrides_dimensions(self):
        """Per-call extras win over logger dimensions."""
        logger, handler = _logger_with_handler("test_app_migrator.override")

        logger.with_context(page=1).info("page", extra={"page": 2})

        assert handler.records[0].page == 2

    def test_with_prefix(self):
        """A prefix is prepended to each message and kept by with_context."""
        logger, handler = _logger_with_handler("test_app_migrator.prefix")

        logger.with_prefix("[dev] ").with_context(app="web").warning("retrying")

        assert handler.records[0].getMessage() == "[dev] retrying"


class TestJSONFormatter:
    """Test JSON rendering."""

    def test_renders_fields_and_extras(self):
        """The line holds level, logger, message and extras."""
        record = logging.LogRecord(
            "app_migrator", logging.INFO, __file__, 1, "hello %s", ("world",), None
        )
        record.org = "acme"

        payload = json.loads(JSONFormatter().format(record))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "app_migrator"
        assert payload["msg"] == "hello world"
        assert payload["org"] == "acme"
        assert "error" not in payload

    def test_renders_exception(self):
        """Exception info is rendered under ``error``."""
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                "app_migrator", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        payload = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in payload["error"]


class TestConfigureLogging:
    """Test file handler setup."""

    def test_writes_json_lines_to_log_file(self, tmp_path):
        """Records go to the configured file at the configured level."""
        log_file = tmp_path / "migrator.log"
        settings = MigratorSettings(log_file=log_file, log_level=LogLevel.WARNING)

        logger = configure_logging(settings)
        logger.info("dropped")
        logger.with_context(org="acme").warning("kept")
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.flush()

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["org"] == "acme"

    def test_debug_setting_lowers_level(self, tmp_path):
        """debug=True logs at DEBUG."""
        settings = MigratorSettings(log_file=tmp_path / "debug.log", debug=True)

        configure_logging(settings)

        assert logging.getLogger(LOGGER_NAME).level == logging.DEBUG
