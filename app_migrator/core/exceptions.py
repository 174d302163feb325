"""Shared exceptions module."""

from typing import Any, Optional


class MigratorException(Exception):
    """Base exception for the app migrator."""

    pass


class RetryableError(MigratorException):
    """Raised by an operation to ask the retrying transport for another attempt.

    Typically signals a 5xx response from the control plane.
    """

    def __init__(self, message: str = "retryable error", status_code: Optional[int] = None):
        """Create a new RetryableError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.
            status_code (int, optional): HTTP status that triggered the retry.

        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class RetryTimeoutError(MigratorException):
    """Raised when the retry budget is exhausted while the failure is still transient."""

    def __init__(self, cause: BaseException, elapsed: float = 0.0, attempts: int = 0):
        """Create a new RetryTimeoutError instance.

        Args:
        ----
            cause (BaseException): The last transient error seen.
            elapsed (float): Seconds spent retrying.
            attempts (int): Number of attempts made.

        """
        self.cause = cause
        self.elapsed = elapsed
        self.attempts = attempts
        super().__init__(f"timed out retrying operation, {cause}")


class NotFoundException(MigratorException):
    """Exception raised when an object is not found."""

    def __init__(self, message: Optional[str] = "Object not found"):
        """Create a new NotFoundException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class EntityNotFoundError(NotFoundException):
    """The control plane returned zero (or more than one) match for a lookup."""

    def __init__(self, kind: str, name: str, scope: Optional[str] = None, count: int = 0):
        """Create a new EntityNotFoundError instance.

        Args:
        ----
            kind (str): Entity kind, e.g. "app" or "stack".
            name (str): Name that was looked up.
            scope (str, optional): Parent scope the lookup was restricted to.
            count (int): Number of matches the control plane returned.

        """
        self.kind = kind
        self.name = name
        self.scope = scope
        self.count = count
        where = f" in {scope}" if scope else ""
        super().__init__(
            f"Expected to find one {kind} named {name}{where}, but found {count}"
        )


def is_not_found(exc: BaseException) -> bool:
    """Whether an exception means "does not exist" rather than "call failed"."""
    return isinstance(exc, NotFoundException)


class EmptyWorkSetError(MigratorException):
    """Raised when a query reports zero items to process."""

    def __init__(self, message: str = "list of apps is empty"):
        """Create a new EmptyWorkSetError instance."""
        self.message = message
        super().__init__(self.message)


class ItemProcessingError(MigratorException):
    """A single work item failed; recorded and isolated from the rest of the batch."""

    def __init__(self, item: Any, cause: BaseException):
        """Create a new ItemProcessingError instance.

        Args:
        ----
            item (Any): The work item that failed.
            cause (BaseException): The underlying error.

        """
        self.item = item
        self.cause = cause
        super().__init__(str(cause))


class QueryFailureError(MigratorException):
    """The listing call feeding the pipeline failed; the whole operation aborts."""

    def __init__(self, cause: BaseException, page: Optional[int] = None):
        """Create a new QueryFailureError instance.

        Args:
        ----
            cause (BaseException): The error raised by the query function.
            page (int, optional): Page being fetched when the query failed.

        """
        self.cause = cause
        self.page = page
        where = f" (page {page})" if page is not None else ""
        super().__init__(f"query failed{where}: {cause}")


class CollectorClosedError(MigratorException):
    """Raised when adding a result to a collector that has been closed."""

    pass


class LedgerError(MigratorException):
    """Raised for malformed ledger data or unparseable timestamps."""

    pass
