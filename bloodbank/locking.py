import threading
from contextlib import contextmanager

from bloodbank.errors import StorageUnavailableError


class KeyedLock:
    """Mutual exclusion per key, e.g. per (bank_id, blood_group).

    Locks are created on first use and kept for the life of the process;
    the key space is bounded by banks x blood groups.
    """

    def __init__(self, timeout=None):
        self._guard = threading.Lock()
        self._locks = {}
        self.timeout = timeout

    def _lock_for(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key):
        lock = self._lock_for(key)
        timeout = -1 if self.timeout is None else self.timeout
        if not lock.acquire(timeout=timeout):
            raise StorageUnavailableError(f"Timed out waiting for inventory lock {key}")
        try:
            yield
        finally:
            lock.release()
