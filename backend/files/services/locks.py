"""
Per-digest locks.

Serializes the upload put+insert sequence with the delete
count+reclaim sequence for the same content digest.
"""

import logging
import threading
from contextlib import contextmanager

from ..exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


DEFAULT_LOCK_TIMEOUT = 30.0


class _Entry:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class DigestLocks:
    """
    Registry of re-entrant locks keyed by digest.

    Entries are created on demand and dropped once no thread holds or
    waits for them, so the registry stays proportional to in-flight work.
    """

    def __init__(self, timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.timeout = timeout
        self._guard = threading.Lock()
        self._entries = {}

    @contextmanager
    def hold(self, digest: str, timeout: float = None):
        """
        Hold the lock for `digest` for the duration of the block.

        Raises:
            LockTimeoutError: If the lock is not acquired within `timeout`
                (defaults to the registry timeout)
        """
        wait = self.timeout if timeout is None else timeout
        with self._guard:
            entry = self._entries.get(digest)
            if entry is None:
                entry = self._entries[digest] = _Entry()
            entry.users += 1

        acquired = entry.lock.acquire(timeout=wait)
        try:
            if not acquired:
                logger.error(f"Lock timeout on digest {digest[:12]} after {wait}s")
                raise LockTimeoutError(digest, wait)
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[digest]

    def __len__(self):
        with self._guard:
            return len(self._entries)
