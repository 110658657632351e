"""
KeyedLockRegistry -- one mutual-exclusion lock per product.

Responsibility:
    Serializes writers of the same product inside one process while letting
    writers of different products proceed in parallel.  Acquisition is
    bounded by a timeout so a stuck writer surfaces as a BUSY error instead
    of hanging the caller.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Used by LedgerEngine around every read-modify-write of a StockRecord.

Invariants enforced:
    - At most one holder per key at a time.
    - Entries are reference counted and dropped once no thread holds or
      waits on them, so the registry does not grow with the catalog.

Failure modes:
    - LockTimeoutError (code BUSY) when the lock cannot be acquired within
      the timeout.  The registry entry is released on that path too.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from inventory_kernel.exceptions import LockTimeoutError
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.lock_registry")


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    refs: int = 0


class KeyedLockRegistry:
    """
    Registry of per-key locks.

    Usage:
        registry = KeyedLockRegistry(timeout_seconds=5.0)
        with registry.hold("SKU-1"):
            ...  # exclusive for SKU-1
    """

    def __init__(self, timeout_seconds: float = 5.0):
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self._timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.refs += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.refs -= 1
            if entry.refs == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, key: str, timeout_seconds: float | None = None) -> Iterator[None]:
        """
        Hold the lock for ``key`` for the duration of the block.

        Raises:
            LockTimeoutError: If the lock is not acquired in time.
        """
        timeout = self._timeout_seconds if timeout_seconds is None else timeout_seconds
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=timeout):
                logger.warning(
                    "product_lock_timeout",
                    extra={"product_id": key, "timeout_seconds": timeout},
                )
                raise LockTimeoutError(key, timeout)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    def active_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)
