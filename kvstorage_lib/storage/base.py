"""Storage backend interface definitions.

Defines the StorageBackend abstract class a host server uses to persist
certificates, OCSP staples and other state. Keys are path-like strings
(``/`` separates hierarchy levels) and values are opaque bytes.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
import logging

from .errors import KeyNotFoundError, OperationCancelled, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyInfo:
    """Descriptor returned by `StorageBackend.stat`.

    Backends that cannot report size or modification time leave them at
    their zero values.
    """

    key: str
    modified: Optional[datetime] = None
    size: int = 0
    is_terminal: bool = True


class StorageBackend(ABC):
    """Abstract storage backend.

    Every operation accepts an optional keyword-only `cancel` signal: any
    object with an ``is_set()`` method (e.g. `threading.Event`). A backend
    raises `OperationCancelled` when it observes the signal set.
    """

    @abstractmethod
    def store(self, key: str, value: bytes, *, cancel=None) -> None:
        """Store `value` under `key`, overwriting any previous value."""

    @abstractmethod
    def load(self, key: str, *, cancel=None) -> bytes:
        """Return the bytes stored under `key`.

        Raises `KeyNotFoundError` if the key does not exist.
        """

    @abstractmethod
    def delete(self, key: str, *, cancel=None) -> None:
        """Delete `key`. Raises `KeyNotFoundError` if not found."""

    @abstractmethod
    def list(self, prefix: str, recursive: bool, *, cancel=None) -> List[str]:
        """Return keys starting with `prefix`.

        With `recursive` false only keys at most one path level below the
        prefix are returned. No ordering is guaranteed.
        """

    @abstractmethod
    def lock(self, key: str, *, cancel=None) -> None:
        """Acquire the advisory lock for `key` or raise `LockContentionError`."""

    @abstractmethod
    def unlock(self, key: str, *, cancel=None) -> None:
        """Release the advisory lock for `key`. Releasing a free lock is a no-op."""

    def exists(self, key: str, *, cancel=None) -> bool:
        """Return True if `key` can be loaded.

        Any storage failure other than cancellation counts as "does not
        exist"; it is logged rather than raised.
        """
        try:
            self.load(key, cancel=cancel)
        except KeyNotFoundError:
            return False
        except OperationCancelled:
            raise
        except StorageError as e:
            logger.warning("exists check for %s failed: %s", key, e)
            return False
        return True

    def stat(self, key: str, *, cancel=None) -> KeyInfo:
        """Return a minimal `KeyInfo` for an existing key.

        The default implementation loads the value to prove it exists;
        `KeyNotFoundError` and any other failure propagate unchanged.
        """
        self.load(key, cancel=cancel)
        return KeyInfo(key=key, size=0, is_terminal=True)

    def as_storage(self) -> "StorageBackend":
        """Conversion hook used by hosts that ask a module for its storage."""
        return self
