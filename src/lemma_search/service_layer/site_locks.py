"""Per-site mutual exclusion for lemma frequency updates."""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from contextlib import contextmanager
import threading
import time

from lemma_search.observability.metrics import LEMMA_LOCK_WAIT


class SiteLockRegistry:
    """Keyed lock map: one ``threading.Lock`` per site, created on demand.

    Holding the lock of one site never blocks writers of another site.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _get_or_create_lock(self, key: Hashable) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock of ``key`` for the duration of the block."""
        lock = self._get_or_create_lock(key)
        started = time.perf_counter()
        with lock:
            LEMMA_LOCK_WAIT.observe(time.perf_counter() - started)
            yield

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def __contains__(self, key: object) -> bool:
        with self._registry_lock:
            return key in self._locks
