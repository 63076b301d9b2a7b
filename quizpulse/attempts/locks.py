"""Per-attempt mutexes for serializing the record-and-complete sequence."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class AttemptLocks:
    """
    Keyed lock registry.

    Locks are reference counted and discarded once no thread holds or waits
    on them, so the registry does not grow with the number of attempts.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, attempt_id: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(attempt_id, (threading.Lock(), 0))
            self._locks[attempt_id] = (lock, users + 1)

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                lock, users = self._locks[attempt_id]
                if users <= 1:
                    del self._locks[attempt_id]
                else:
                    self._locks[attempt_id] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
