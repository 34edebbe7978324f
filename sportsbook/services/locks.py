"""
Keyed in-process locks.

One lock per key (game id, user id) so that work on the same record
serializes while work on different records runs in parallel.  Used together
with ``SELECT ... FOR UPDATE`` row locks: the row lock covers other processes
on backends that support it, this covers threads inside one process on every
backend (SQLite ignores FOR UPDATE).
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """Registry of re-entrant locks created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
