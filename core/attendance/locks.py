"""Per-key in-process locks for attendance writes."""
import contextlib
import logging
import threading
from collections import defaultdict
from typing import Dict, Hashable, Iterator

logger = logging.getLogger(__name__)


class KeyedLock:
    """
    Registry of one lock per key, created on first use.

    A holder count per key lets idle entries be dropped so the registry
    does not grow with every (volunteer, event) pair ever touched.
    """

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._holders: Dict[Hashable, int] = defaultdict(int)

    @contextlib.contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._holders[key] += 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._registry_lock:
                self._holders[key] -= 1
                if self._holders[key] <= 0:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
