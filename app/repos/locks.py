"""Per-key locking for the read-check-write scheduling sequence."""

from __future__ import annotations

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Hashable, Iterable, Iterator


class KeyedLock:
    """A family of mutexes addressed by key.

    ``hold`` acquires the locks for all given keys in sorted order, so two
    callers asking for overlapping key sets can never deadlock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = defaultdict(threading.Lock)

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            return self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[Hashable]) -> Iterator[None]:
        ordered = sorted(set(keys), key=repr)
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
