"""Exception taxonomy for backup and restore runs.

Configuration problems are raised before any remote call.  Errors coming
from the Google SDKs are not wrapped -- they propagate to the caller as-is.
The classes here cover what this package itself detects: operations that
finished in an error state, waits that gave up, and failed integrity checks.

Usage:
    from cloudsql_exporter.errors import OperationFailedError, OperationTimeoutError

    try:
        await waiter.wait(operation, poll_interval=60)
    except OperationTimeoutError:
        ...  # still running remotely, we stopped waiting
    except OperationFailedError as e:
        print(e.messages)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cloudsql_exporter.backup.models import RowCountMismatch


class ExporterError(Exception):
    """Base class for all errors raised by cloudsql-exporter."""

    pass


class ConfigurationError(ExporterError):
    """Raised when options or artifact references are invalid."""

    pass


class InvalidLocationError(ConfigurationError):
    """Raised when an artifact path cannot be parsed."""

    def __init__(self, location: str, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(f"Invalid backup location '{location}': {reason}")


class OperationFailedError(ExporterError):
    """Raised when a remote operation reaches a terminal error state.

    Attributes:
        operation: Remote operation name.
        messages: Every error message reported by the operation.
    """

    def __init__(self, operation: str, messages: list[str]) -> None:
        self.operation = operation
        self.messages = list(messages)
        super().__init__(
            f"Operation {operation} failed: {'; '.join(self.messages)}"
        )


class OperationTimeoutError(ExporterError):
    """Raised when waiting stops before the operation reached a terminal state.

    The remote operation may still be running.  Raised both when the deadline
    elapses and when the shared cancellation event is set.
    """

    def __init__(self, operation: str, reason: str = "deadline elapsed") -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Gave up waiting for operation {operation}: {reason}")


class InstanceNotFoundError(ExporterError):
    """Raised when a Cloud SQL instance does not exist."""

    def __init__(self, instance: str) -> None:
        self.instance = instance
        super().__init__(f"Cloud SQL instance not found: {instance}")


class SecretNotFoundError(ExporterError):
    """Raised when the stored root credential of a restore instance is missing."""

    def __init__(self, secret_id: str) -> None:
        self.secret_id = secret_id
        super().__init__(f"Secret not found: {secret_id}")


class MissingTableStatisticError(ExporterError):
    """Raised when a backed-up table has no statistics after restore."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"No statistics for table '{table}' in restored database")


class IntegrityValidationError(ExporterError):
    """Raised when restored row counts differ from the backup statistics.

    Carries every mismatch found, not only the first one.
    """

    def __init__(self, mismatches: list[RowCountMismatch]) -> None:
        self.mismatches = list(mismatches)
        details = "; ".join(
            f"{m.table}: expected {m.expected}, got {m.actual}"
            for m in self.mismatches
        )
        super().__init__(
            f"Row count mismatch in {len(self.mismatches)} table(s): {details}"
        )
