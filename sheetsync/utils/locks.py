import threading
from typing import Dict
from contextlib import contextmanager
import logging

logger = logging.getLogger(__name__)


class ImportLockManager:
    """
    Keyed in-process locks for import commits.

    Two commits of the same file content for the same entity would both upsert
    rows and race on the ledger update; holding the ``(entity, file_hash)`` lock
    for the duration of the commit serialises them within one worker process.
    Cross-process exclusion still relies on the ledger's unique constraint.

    Keys are unbounded (one per uploaded file), so each lock is reference
    counted and dropped once no caller holds or waits on it.
    """
    _locks: Dict[str, threading.Lock] = {}
    _refcounts: Dict[str, int] = {}
    _global_lock = threading.Lock()

    @staticmethod
    def key_for(entity: str, file_hash: str) -> str:
        return f"{entity}:{file_hash}"

    @classmethod
    def _checkout(cls, key: str) -> threading.Lock:
        """Get or create the lock for a key and register one more user."""
        with cls._global_lock:
            lock = cls._locks.get(key)
            if lock is None:
                lock = cls._locks[key] = threading.Lock()
            cls._refcounts[key] = cls._refcounts.get(key, 0) + 1
            return lock

    @classmethod
    def _checkin(cls, key: str) -> None:
        with cls._global_lock:
            remaining = cls._refcounts.get(key, 1) - 1
            if remaining <= 0:
                cls._refcounts.pop(key, None)
                cls._locks.pop(key, None)
            else:
                cls._refcounts[key] = remaining

    @classmethod
    def active_keys(cls) -> int:
        """Number of keys currently held or waited on."""
        with cls._global_lock:
            return len(cls._locks)

    @classmethod
    @contextmanager
    def acquire(cls, entity: str, file_hash: str):
        """Context manager to acquire and release the commit lock for a file."""
        key = cls.key_for(entity, file_hash)
        lock = cls._checkout(key)
        try:
            logger.debug("Waiting for import lock '%s'", key[:80])
            lock.acquire()
            logger.debug("Acquired import lock '%s'", key[:80])
            try:
                yield
            finally:
                lock.release()
                logger.debug("Released import lock '%s'", key[:80])
        finally:
            cls._checkin(key)
