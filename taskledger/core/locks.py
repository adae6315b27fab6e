"""
Keyed Locks - Mutual exclusion scoped to a key instead of the whole process
"""

from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List, Optional
import logging
import threading

from taskledger.core.exceptions import ConflictError

logger = logging.getLogger(__name__)


class KeyedLock:
    """
    One lock per key, created on demand and discarded once nobody holds or waits for it.

    Usage:
        user_locks = KeyedLock()
        with user_locks.hold(user_id):
            ...  # read-then-write sequence for this user only
    """

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = timeout
        self._guard = threading.Lock()  # Protects the _locks table itself
        self._locks: Dict[Hashable, List] = {}  # key -> [lock, holders + waiters]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """
        Hold the lock for `key`.

        Raises:
            ConflictError: If the lock could not be acquired within the timeout
        """
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1

        acquired = entry[0].acquire(timeout=self._timeout if self._timeout is not None else -1)
        try:
            if not acquired:
                logger.warning(f"⚠️  Timed out waiting for lock {key}")
                raise ConflictError("Another operation for this user is in progress. Please retry.")
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
