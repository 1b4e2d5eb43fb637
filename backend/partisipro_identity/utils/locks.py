"""
Keyed Locks — per-identity mutual exclusion for claim-affecting writes.

Two writers touching the same identity serialize; writers on different
identities never contend. Entries are reference counted and dropped once
no thread holds or waits on them.
"""
import threading
from contextlib import contextmanager
from typing import Dict, List


class KeyedLock:
    """A lazily-created lock per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}  # key -> [lock, refcount]

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1

        lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)


# Shared by ClaimLedger and IdentityRegistry
identity_locks = KeyedLock()
