"""Completion polling for long-running Cloud SQL Admin operations.

Export, import and instance/database/user creation all return an operation
handle immediately.  ``OperationWaiter`` re-fetches the handle at a fixed
interval until the remote side reports a terminal state::

    PENDING --(poll, not terminal)-----------> PENDING
    PENDING --(poll, DONE, no errors)--------> DONE
    PENDING --(poll, error list non-empty)---> FAILED     (OperationFailedError)
    PENDING --(deadline elapsed / cancelled)-> TIMED_OUT  (OperationTimeoutError)

The interval is fixed -- no backoff, no jitter.  Only the polling is
retried; the call that created the operation never is.

Usage:
    waiter = OperationWaiter(sqladmin, "my-project", cancel_event=cancel)
    op = await sqladmin.export_sql(project, instance, database, uri)
    await waiter.wait(op, poll_interval=60)
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable

from cloudsql_exporter.adapters.base import Operation, SqlAdminClient
from cloudsql_exporter.errors import OperationFailedError, OperationTimeoutError

logger = logging.getLogger(__name__)


class OperationState(str, Enum):
    """Waiter-side state of an operation."""

    PENDING = "PENDING"
    DONE = "DONE"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"


def operation_state(operation: Operation) -> OperationState:
    """Classify a freshly polled operation.

    Errors win over the status field: an operation carrying error messages is
    FAILED whatever its status says.
    """
    if operation.error_messages:
        return OperationState.FAILED
    if operation.done:
        return OperationState.DONE
    return OperationState.PENDING


class OperationWaiter:
    """Polls operations of one project until they finish.

    Args:
        sqladmin: Client used to re-fetch operation status.
        project: GCP project owning the operations.
        cancel_event: Shared cancellation signal.  Once set, any wait in
            progress stops promptly with ``OperationTimeoutError``.
        deadline: Absolute deadline on the ``clock`` timeline, shared by all
            waits of the run.  ``None`` waits until a terminal state.
        clock: Monotonic time source (seconds).
    """

    def __init__(
        self,
        sqladmin: SqlAdminClient,
        project: str,
        cancel_event: asyncio.Event | None = None,
        deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sqladmin = sqladmin
        self._project = project
        self._cancel_event = cancel_event or asyncio.Event()
        self._deadline = deadline
        self._clock = clock

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return self._deadline - self._clock()

    async def _sleep(self, seconds: float) -> bool:
        """Sleep ``seconds`` unless cancelled first.  Returns True if cancelled."""
        if self._cancel_event.is_set():
            return True
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def wait(self, operation: Operation | None, poll_interval: float) -> Operation:
        """Wait until ``operation`` reaches a terminal state.

        Args:
            operation: Handle returned by the triggering call.
            poll_interval: Seconds between status polls.

        Returns:
            The final ``Operation`` with status ``DONE``.

        Raises:
            ValueError: If ``operation`` is ``None`` (nothing is polled).
            OperationFailedError: If the operation finished with errors.
            OperationTimeoutError: If the deadline elapsed or the run was
                cancelled before a terminal state was observed.
        """
        if operation is None:
            raise ValueError("got nil operation")

        name = operation.name
        while True:
            remaining = self._remaining()
            if remaining is not None and remaining <= 0:
                raise OperationTimeoutError(name)

            interval = poll_interval if remaining is None else min(poll_interval, remaining)
            if await self._sleep(interval):
                logger.warning(f"Stopped waiting for operation {name}: cancelled")
                raise OperationTimeoutError(name, reason="cancelled")

            remaining = self._remaining()
            if remaining is not None and remaining <= 0:
                raise OperationTimeoutError(name)

            operation = await self._sqladmin.get_operation(self._project, name)
            state = operation_state(operation)
            logger.debug(f"Operation {name} ({operation.operation_type}): {operation.status}")

            if state is OperationState.FAILED:
                raise OperationFailedError(name, operation.error_messages)
            if state is OperationState.DONE:
                return operation
