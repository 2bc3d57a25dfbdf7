"""
OrderLockRegistry -- per-order mutual exclusion.

Responsibility:
    Serializes every mutation of one purchase order (receipt confirmation,
    order confirmation and cancellation, order edits) inside this process.
    Mutations of different orders proceed in parallel.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Combined with
    ``SELECT ... FOR UPDATE`` on the order row, which extends the
    exclusion across processes on PostgreSQL.

Invariants enforced:
    SERIALIZED_ORDER_MUTATION -- at most one thread holds the scope for a
        given order id.  The scope covers validate -> apply -> resolve ->
        recompute -> commit.

Failure modes:
    - ConcurrencyTimeoutError (retryable) when the lock is not acquired
      within ``timeout_seconds``.
"""

import threading
import time
from contextlib import contextmanager
from typing import Generator
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_kernel.exceptions import ConcurrencyTimeoutError
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.order_lock")


class _LockEntry:
    """A lock plus the number of threads holding or waiting on it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class OrderLockRegistry:
    """
    Process-wide registry of per-order re-entrant locks.

    Guarantees:
        - While any thread holds or waits on an order's scope, every caller
          for that order id gets the same lock object.
        - Locks are re-entrant, so a service holding an order's scope may
          call another service that takes the same scope.
        - An entry is dropped when its last holder or waiter leaves, so the
          registry only holds orders that are in use.
    """

    def __init__(self):
        self._entries: dict[str, _LockEntry] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: str) -> _LockEntry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _LockEntry()
                self._entries[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _LockEntry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def acquire(
        self,
        order_id: UUID | str,
        timeout_seconds: float,
    ) -> Generator[None, None, None]:
        """
        Hold the order's lock for the duration of the block.

        Raises:
            ConcurrencyTimeoutError: if the lock is not free in time.
        """
        key = str(order_id)
        entry = self._checkout(key)
        try:
            started = time.monotonic()
            if not entry.lock.acquire(timeout=timeout_seconds):
                logger.warning(
                    "order_lock_timeout",
                    extra={
                        "order_id": key,
                        "timeout_seconds": timeout_seconds,
                    },
                )
                raise ConcurrencyTimeoutError(key, timeout_seconds)
            logger.debug(
                "order_lock_acquired",
                extra={
                    "order_id": key,
                    "waited_ms": round((time.monotonic() - started) * 1000, 2),
                },
            )
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    @contextmanager
    def transaction(
        self,
        session: Session,
        order_id: UUID | str,
        timeout_seconds: float,
        auto_commit: bool = True,
    ) -> Generator[None, None, None]:
        """
        Serialization scope that also owns the transaction boundary.

        The commit happens while the lock is still held, so the next
        holder always reads the committed ledger.  On any exception the
        session is rolled back (when ``auto_commit``) and the error
        re-raised.
        """
        with self.acquire(order_id, timeout_seconds):
            try:
                yield
                if auto_commit:
                    session.commit()
            except Exception:
                if auto_commit:
                    session.rollback()
                raise


_default_registry = OrderLockRegistry()


def default_registry() -> OrderLockRegistry:
    return _default_registry
