"""Locking, retry and cancellation primitives.

Every primitive here is owned by an engine instance; nothing is shared at
module level.
"""

import threading
from collections.abc import Callable, Hashable, Iterator  # noqa: TC003
from contextlib import ExitStack, contextmanager
from typing import TYPE_CHECKING, Final

from reqctl.exceptions import ConcurrencyConflictError, OperationCancelledError

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

__all__ = ["CancellationToken", "LockRegistry", "check_cancelled", "retry_on_conflict"]


class LockRegistry:
    """Hands out one lock per key, creating locks on first use.

    Keys are usually ``(project_id, entity_id)`` tuples so that mutations of a
    single entity are serialized while different entities proceed in
    parallel.
    """

    __slots__: Final = ("_guard", "_locks")

    _guard: threading.Lock
    _locks: dict[Hashable, threading.Lock]

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._guard = threading.Lock()
        self._locks = {}

    def lock_for(self, *key: Hashable) -> threading.Lock:
        """Return the lock for ``key``."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, project_id: str, *entity_ids: str | None) -> Iterator[None]:
        """Hold the locks of several entities of one project.

        Locks are taken in sorted id order, so two callers holding overlapping
        sets cannot deadlock. None ids are skipped.
        """
        with ExitStack() as stack:
            for entity_id in sorted({e for e in entity_ids if e is not None}):
                _ = stack.enter_context(self.lock_for(project_id, entity_id))
            yield

    def __len__(self) -> int:
        """Return the number of locks created so far."""
        with self._guard:
            return len(self._locks)


class CancellationToken:
    """Cooperative cancellation signal for long-running reads.

    Example:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    __slots__: Final = ("_event",)

    _event: threading.Event

    def __init__(self) -> None:
        """Initialize an uncancelled token."""
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Return True once cancellation was requested."""
        return self._event.is_set()

    def raise_if_cancelled(self, operation: str) -> None:
        """Raise OperationCancelledError if cancellation was requested.

        Args:
            operation: Name of the operation being abandoned.

        Raises:
            OperationCancelledError: If the token was cancelled.
        """
        if self._event.is_set():
            msg = f"Operation cancelled: {operation}"
            raise OperationCancelledError(msg)


def check_cancelled(cancel: CancellationToken | None, operation: str) -> None:
    """Raise if ``cancel`` is set; a None token never cancels."""
    if cancel is not None:
        cancel.raise_if_cancelled(operation)


def retry_on_conflict[T](
    operation: Callable[[], T],
    *,
    attempts: int,
    logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    operation_name: str = "",
) -> T:
    """Run ``operation``, re-running it after concurrency conflicts.

    Only ConcurrencyConflictError is retried; every other error propagates
    immediately.

    Args:
        operation: Read-validate-write callable; must re-read state each call.
        attempts: Number of retries after the first attempt.
        logger: Optional logger for retry warnings.
        operation_name: Name used in log entries.

    Returns:
        The operation's result.

    Raises:
        ConcurrencyConflictError: If the last allowed attempt still conflicts.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except ConcurrencyConflictError as e:
            if attempt >= attempts:
                raise
            attempt += 1
            if logger:
                logger.warning(
                    "concurrency_retry",
                    operation=operation_name,
                    entity_id=e.entity_id,
                    attempt=attempt,
                    expected=e.expected,
                    actual=e.actual,
                )
