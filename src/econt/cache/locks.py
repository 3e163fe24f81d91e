"""Per-key writer locks.

Writers of the same cache key (a miss-triggered refresh and the bulk
export) serialize on one :class:`threading.Lock`; writers of different
keys proceed independently.  Readers of fresh entries never take a lock.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class KeyLocks:
    """Lazily created registry of one lock per cache key."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the writer lock of *key* for the duration of the block."""
        lock = self.get(key)
        with lock:
            yield
