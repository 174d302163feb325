"""Retrying transport for control-plane calls."""

from app_migrator.platform.transport.retry import (
    RetryingTransport,
    is_name_resolution_error,
    is_server_error,
    is_transient_error,
    raise_for_retryable_status,
)

__all__ = [
    "RetryingTransport",
    "is_name_resolution_error",
    "is_server_error",
    "is_transient_error",
    "raise_for_retryable_status",
]
