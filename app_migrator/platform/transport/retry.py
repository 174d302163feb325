"""Retrying transport for control-plane calls.

Wraps a single remote call and retries it with a fixed pause while the failure
is transient (name resolution, explicit ``RetryableError``, 5xx responses).
The whole loop is bounded by a total time budget; running out of budget turns
the last transient error into a ``RetryTimeoutError``.

No jitter is applied: many workers retrying the same failing endpoint retry in
lock-step.
"""

import asyncio
import socket
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    wait_fixed,
)

from app_migrator.core.config.settings import (
    DEFAULT_RETRY_PAUSE_SECONDS,
    DEFAULT_RETRY_TIMEOUT_SECONDS,
)
from app_migrator.core.exceptions import RetryableError, RetryTimeoutError
from app_migrator.core.logging import ContextualLogger
from app_migrator.core.logging import logger as default_logger

T = TypeVar("T")

_NAME_RESOLUTION_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated with hostname",
)


def _iter_cause_chain(exception: BaseException):
    seen = set()
    current: Optional[BaseException] = exception
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def is_name_resolution_error(exception: BaseException) -> bool:
    """Check if the call failed because the host name could not be resolved.

    Args:
        exception: Exception to check

    Returns:
        True if a ``socket.gaierror`` is anywhere in the cause chain, or an
        ``httpx.ConnectError`` reports a resolution failure.
    """
    for exc in _iter_cause_chain(exception):
        if isinstance(exc, socket.gaierror):
            return True
        if isinstance(exc, httpx.ConnectError):
            message = str(exc).lower()
            if any(marker in message for marker in _NAME_RESOLUTION_MARKERS):
                return True
    return False


def is_server_error(exception: BaseException) -> bool:
    """Check if exception is an HTTP 5xx response."""
    if isinstance(exception, httpx.HTTPStatusError):
        return 500 <= exception.response.status_code <= 599
    return False


def is_transient_error(exception: BaseException) -> bool:
    """Combined retry condition used by the transport.

    Handles:
    - Explicit ``RetryableError`` raised by the operation
    - Name resolution failures
    - 5xx responses surfaced as ``httpx.HTTPStatusError``
    """
    return (
        isinstance(exception, RetryableError)
        or is_name_resolution_error(exception)
        or is_server_error(exception)
    )


def raise_for_retryable_status(response: httpx.Response) -> httpx.Response:
    """Raise ``RetryableError`` for 5xx and ``HTTPStatusError`` for other errors.

    Args:
        response: Response to check

    Returns:
        The response, unchanged, when it is not an error.
    """
    if 500 <= response.status_code <= 599:
        raise RetryableError(
            f"{response.request.method} {response.request.url} returned "
            f"{response.status_code}",
            status_code=response.status_code,
        )
    response.raise_for_status()
    return response


class _RetryBudget:
    """Time budget for one ``do_with_retry`` call.

    Pauses are charged at their nominal length so that event-loop sleep
    overshoot does not eat into the budget; time spent inside the operation is
    charged as measured. Retrying stops once the next pause would overrun the
    budget, so a failure that stays transient gets ``timeout / pause`` attempts
    (rounded up) when the operation itself is fast.
    """

    def __init__(self, timeout_seconds: float, pause_seconds: float):
        self.timeout_seconds = timeout_seconds
        self.pause_seconds = pause_seconds
        self.started = time.monotonic()
        self._oversleep = 0.0

    @property
    def elapsed(self) -> float:
        """Wall-clock seconds since the first attempt started."""
        return time.monotonic() - self.started

    @property
    def charged(self) -> float:
        """Seconds counted against the budget."""
        return self.elapsed - self._oversleep

    async def sleep(self, seconds: float) -> None:
        """Sleep between attempts, remembering any overshoot."""
        before = time.monotonic()
        await asyncio.sleep(seconds)
        self._oversleep += max(0.0, time.monotonic() - before - seconds)

    def exhausted(self, retry_state: RetryCallState) -> bool:
        """Stop condition: the next pause would end past the budget."""
        return self.charged + self.pause_seconds > self.timeout_seconds


class RetryingTransport:
    """Executes remote operations with fixed-pause retries under a time budget."""

    def __init__(
        self,
        pause_seconds: float = DEFAULT_RETRY_PAUSE_SECONDS,
        timeout_seconds: float = DEFAULT_RETRY_TIMEOUT_SECONDS,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the transport.

        Args:
            pause_seconds: Fixed sleep between attempts
            timeout_seconds: Total elapsed-time budget for one call, retries included
            logger: Contextual logger for retry attempts
        """
        self.pause_seconds = pause_seconds
        self.timeout_seconds = timeout_seconds
        self.logger = logger or default_logger.with_context(component="retrying_transport")

    @classmethod
    def from_settings(cls, settings, logger: Optional[ContextualLogger] = None):
        """Build a transport from MigratorSettings."""
        return cls(
            pause_seconds=settings.retry_pause_seconds,
            timeout_seconds=settings.retry_timeout_seconds,
            logger=logger,
        )

    async def do_with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` until it succeeds, fails permanently, or the budget runs out.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            Whatever the operation returns on its successful attempt.

        Raises:
            RetryTimeoutError: The budget ran out while the failure was transient.
            Exception: Any non-transient error, unchanged.
        """
        budget = _RetryBudget(self.timeout_seconds, self.pause_seconds)
        retrying = AsyncRetrying(
            stop=budget.exhausted,
            wait=wait_fixed(self.pause_seconds),
            sleep=budget.sleep,
            retry=retry_if_exception(is_transient_error),
            before_sleep=self._log_retry_attempt,
            reraise=False,
        )
        try:
            return await retrying(operation)
        except RetryError as retry_error:
            last_attempt = retry_error.last_attempt
            cause = last_attempt.exception()
            elapsed = budget.elapsed
            self.logger.error(
                f"Giving up after {last_attempt.attempt_number} attempts "
                f"({elapsed:.2f}s): {cause}",
                extra={"attempts": last_attempt.attempt_number},
            )
            raise RetryTimeoutError(
                cause, elapsed=elapsed, attempts=last_attempt.attempt_number
            ) from cause

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Retry a client call, treating 5xx ``HTTPStatusError`` as ``RetryableError``.

        Args:
            fn: Client coroutine function
            *args: Arguments passed on every attempt
        """

        async def operation() -> T:
            try:
                return await fn(*args)
            except httpx.HTTPStatusError as e:
                if is_server_error(e):
                    raise RetryableError(str(e), status_code=e.response.status_code) from e
                raise

        return await self.do_with_retry(operation)

    def _log_retry_attempt(self, retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None

        if isinstance(exception, httpx.HTTPStatusError):
            error_desc = f"HTTP {exception.response.status_code}"
        elif isinstance(exception, RetryableError) and exception.status_code:
            error_desc = f"HTTP {exception.status_code}"
        elif isinstance(exception, httpx.RequestError):
            error_desc = f"connection error ({type(exception).__name__})"
        else:
            error_desc = f"{type(exception).__name__}: {exception}"

        self.logger.warning(
            f"🔄 Control plane request failed ({error_desc}), "
            f"retrying in {self.pause_seconds:.3f}s (attempt {retry_state.attempt_number})"
        )
