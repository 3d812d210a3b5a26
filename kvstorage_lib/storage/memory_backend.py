"""Simple memory-backed storage backend

This backend keeps values in a dict `{<key>: <bytes>}` guarded by a lock.
Listing and advisory locks behave exactly as for the remote backend.
"""
from datetime import timedelta
from threading import RLock
from typing import Callable, Dict, List
import time

from kvstorage_lib.registry import ModuleInfo

from .base import StorageBackend
from .errors import KeyNotFoundError, raise_if_cancelled
from .listing import filter_keys
from .locking import LockManager, STALE_AFTER

MODULE_ID = "caddy.storage.memory"


class MemoryStorage(StorageBackend):
    def __init__(self, *, stale_after: timedelta = STALE_AFTER, clock: Callable[[], int] = time.time_ns):
        self._lock = RLock()
        self._store: Dict[str, bytes] = {}
        self.locks = LockManager(self, stale_after=stale_after, clock=clock)

    @staticmethod
    def module_info() -> ModuleInfo:
        return ModuleInfo(id=MODULE_ID, new=MemoryStorage)

    def store(self, key: str, value: bytes, *, cancel=None) -> None:
        raise_if_cancelled(cancel, "store", key)
        with self._lock:
            self._store[key] = bytes(value)

    def load(self, key: str, *, cancel=None) -> bytes:
        raise_if_cancelled(cancel, "load", key)
        with self._lock:
            if key not in self._store:
                raise KeyNotFoundError(key, operation="load")
            return self._store[key]

    def delete(self, key: str, *, cancel=None) -> None:
        raise_if_cancelled(cancel, "delete", key)
        with self._lock:
            if key not in self._store:
                raise KeyNotFoundError(key, operation="delete")
            del self._store[key]

    def list(self, prefix: str, recursive: bool, *, cancel=None) -> List[str]:
        raise_if_cancelled(cancel, "list")
        with self._lock:
            keys = list(self._store)
        return filter_keys(keys, prefix, recursive)

    def lock(self, key: str, *, cancel=None) -> None:
        # Serialise local acquirers; the protocol itself is the same as remote.
        with self._lock:
            self.locks.acquire(key, cancel=cancel)

    def unlock(self, key: str, *, cancel=None) -> None:
        self.locks.release(key, cancel=cancel)

    def configure(self, **options) -> None:
        # Nothing to configure for the in-memory backend; accept options
        # so registry callers can treat every module the same way.
        return
