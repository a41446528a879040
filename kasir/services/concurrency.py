"""
Concurrency guard for product rows.

Two layers, always used together by the ledger operations:

1. An in-process lock per (tenant_id, product_id), acquired in sorted order
   with a bounded wait. This serializes read-modify-write inside one worker
   and on backends without row locks (SQLite).
2. ``SELECT ... FOR UPDATE`` on the product rows, again in id order, with a
   PostgreSQL ``lock_timeout`` so a blocked worker gives up instead of
   waiting forever.

Either layer timing out surfaces as ConflictError; the caller may retry the
whole operation from scratch with ``run_with_retry``.
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterable, List, Tuple

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from kasir.exceptions import ConflictError

logger = logging.getLogger(__name__)

LockKey = Tuple[str, int]


class ProductLockRegistry:
    """Named locks keyed by (tenant_id, product_id)."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[LockKey, threading.Lock] = {}

    def _lock_for(self, key: LockKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def acquire_all(self, keys: Iterable[LockKey], timeout: float) -> List[threading.Lock]:
        """
        Acquire every key in sorted order within ``timeout`` seconds overall.

        Sorted acquisition keeps two multi-line sales sharing products from
        deadlocking each other. On timeout everything taken so far is
        released and ConflictError is raised.
        """
        deadline = time.monotonic() + timeout
        held: List[threading.Lock] = []
        for key in sorted(set(keys)):
            lock = self._lock_for(key)
            remaining = max(deadline - time.monotonic(), 0)
            if not lock.acquire(timeout=remaining):
                for taken in reversed(held):
                    taken.release()
                logger.warning(f"[LOCK] Timed out after {timeout}s waiting for product {key[1]} (tenant {key[0]})")
                raise ConflictError(
                    f'Product {key[1]} is busy, try again',
                    payload={'product_id': key[1]}
                )
            held.append(lock)
        return held

    @contextmanager
    def hold(self, tenant_id: str, product_ids: Iterable[int], timeout: float):
        held = self.acquire_all(((tenant_id, pid) for pid in product_ids), timeout)
        try:
            yield
        finally:
            for lock in reversed(held):
                lock.release()


# Process-wide registry; locks must be shared by every session in the worker
product_locks = ProductLockRegistry()


def apply_lock_timeout(session, timeout: float) -> None:
    """Bound row-lock waits for the current transaction (PostgreSQL only)."""
    bind = session.get_bind()
    if bind.dialect.name == 'postgresql':
        # SET cannot take bind parameters; only an int reaches the statement
        timeout_ms = int(float(timeout) * 1000)
        session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the in-process registry
    covers it there.
    """
    return query.populate_existing().with_for_update()


def is_lock_timeout(exc: OperationalError) -> bool:
    message = str(getattr(exc, 'orig', exc)).lower()
    return any(marker in message for marker in (
        'lock timeout', 'could not obtain lock', 'lock_not_available',
        'database is locked', 'deadlock detected',
    ))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a whole ledger operation, re-running it on ConflictError.

    Each attempt starts from scratch so current stock and cost are re-read;
    any other error propagates on the first occurrence.
    """
    for attempt in range(attempts):
        try:
            return func()
        except ConflictError:
            if attempt >= attempts - 1:
                raise
            logger.info(f"[LOCK] Conflict on attempt {attempt + 1}/{attempts}, retrying")
            time.sleep(backoff_base * (2 ** attempt))
