"""Root conftest for pytest configuration and shared fixtures."""

import os
from unittest.mock import MagicMock

import pytest

# Register pytest-asyncio plugin at the root level
pytest_plugins = ("pytest_asyncio",)

# ---------------------------------------------------------------------------
# Environment variables: must be set before any app_migrator module import
# ---------------------------------------------------------------------------
os.environ.setdefault("APP_MIGRATOR__LOG_FILE", os.devnull)


# ---------------------------------------------------------------------------
# Shared fake fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_control_plane():
    """Fake ControlPlaneClient that records calls."""
    from app_migrator.adapters.control_plane.fake import FakeControlPlane

    return FakeControlPlane()


@pytest.fixture
def in_memory_ledger_store():
    """In-memory LedgerStore that records saves."""
    from app_migrator.adapters.ledger_store.fake import InMemoryLedgerStore

    return InMemoryLedgerStore()


@pytest.fixture
def mock_logger():
    """ContextualLogger stand-in that accepts any call."""
    logger = MagicMock()
    logger.with_context.return_value = logger
    logger.with_prefix.return_value = logger
    return logger


@pytest.fixture
def fast_transport(mock_logger):
    """RetryingTransport with a 3ms pause and a 100ms budget."""
    from app_migrator.platform.transport import RetryingTransport

    return RetryingTransport(pause_seconds=0.003, timeout_seconds=0.1, logger=mock_logger)
