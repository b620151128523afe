from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from .errors import StorageError


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    # Threads holding or waiting for the lock.
    users: int = 0


class AccountLocks:
    """In-process locks keyed by account id.

    Locks are always taken in ascending id order so two transfers over the
    same pair (in either direction) cannot deadlock each other. An entry only
    lives while some thread holds or waits for it. The store's transaction
    isolation stays the source of truth; these only keep concurrent requests
    in one process from racing each other into it.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[int, _LockEntry] = {}

    def active(self) -> int:
        """Number of account ids currently held or waited on."""
        with self._guard:
            return len(self._locks)

    def _checkout(self, account_id: int) -> _LockEntry:
        with self._guard:
            entry = self._locks.get(account_id)
            if entry is None:
                entry = self._locks[account_id] = _LockEntry()
            entry.users += 1
            return entry

    def _checkin(self, account_id: int, entry: _LockEntry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[account_id]

    @contextmanager
    def hold(self, *account_ids: int) -> Iterator[None]:
        acquired: list[tuple[int, _LockEntry]] = []
        try:
            for account_id in sorted(set(account_ids)):
                entry = self._checkout(account_id)
                if not entry.lock.acquire(timeout=self.timeout):
                    self._checkin(account_id, entry)
                    raise StorageError(
                        f"timed out waiting for a lock on account {account_id}"
                    )
                acquired.append((account_id, entry))
            yield
        finally:
            for account_id, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(account_id, entry)


class NullLocks(AccountLocks):
    """Drop-in replacement used when in-process locking is switched off."""

    @contextmanager
    def hold(self, *account_ids: int) -> Iterator[None]:
        yield
