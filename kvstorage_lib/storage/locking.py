"""Advisory, TTL-based locks built from ordinary key writes.

A lock on ``key`` is the record ``key + ".lock"`` whose value is the
decimal nanosecond epoch at which it was taken. A record younger than
the staleness threshold is live; an older one is presumed abandoned and
may be overwritten.

This only narrows race windows. The backing API has no compare-and-set,
so two acquirers can both pass the existence check, and the verifying
read after our write can itself race with a further overwrite. There is
no fencing token and lock age depends on the local wall clock. Use it to
serialise maintenance work (e.g. certificate issuance), never for
correctness-critical exclusion; that needs a conditional write primitive
the service does not expose.
"""
from __future__ import annotations
from datetime import timedelta
from typing import Callable, Optional
import logging
import time

from .errors import (
    KeyNotFoundError,
    LockContentionError,
    OperationCancelled,
    StorageError,
    raise_if_cancelled,
)

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
STALE_AFTER = timedelta(minutes=5)


def lock_key_for(key: str) -> str:
    return key + LOCK_SUFFIX


def parse_lock_timestamp(raw: bytes) -> Optional[int]:
    """Return the nanosecond timestamp stored in a lock record, or None."""
    try:
        return int(raw.decode("ascii").strip())
    except (UnicodeDecodeError, ValueError):
        return None


class LockManager:
    """Acquire/release protocol on top of a backend's store/load/delete.

    `storage` is any object providing ``store``, ``load`` and ``delete``
    with the `StorageBackend` semantics; the manager keeps no state of its
    own between calls.
    """

    def __init__(
        self,
        storage,
        *,
        stale_after: timedelta = STALE_AFTER,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self.storage = storage
        self.stale_after = stale_after
        self.clock = clock

    def lock_age(self, timestamp_ns: int) -> timedelta:
        return timedelta(microseconds=(self.clock() - timestamp_ns) / 1000)

    def acquire(self, key: str, *, cancel=None) -> None:
        lock_key = lock_key_for(key)

        try:
            existing = self.storage.load(lock_key, cancel=cancel)
        except KeyNotFoundError:
            existing = None

        if existing is not None:
            ts = parse_lock_timestamp(existing)
            if ts is None:
                # Opaque record: staleness cannot be judged, assume it is live.
                logger.info("lock %s holds an unparseable value; treating it as held", lock_key)
                raise LockContentionError(key, "held")
            age = self.lock_age(ts)
            if age < self.stale_after:
                logger.info("lock %s is held (age %s)", lock_key, age)
                raise LockContentionError(key, "held")
            logger.warning("overwriting stale lock %s (age %s)", lock_key, age)

        raise_if_cancelled(cancel, "lock", key)
        token = str(self.clock()).encode("ascii")
        self.storage.store(lock_key, token, cancel=cancel)

        try:
            raise_if_cancelled(cancel, "lock", key)
            try:
                current = self.storage.load(lock_key, cancel=cancel)
            except KeyNotFoundError:
                # Released by someone else between our write and this read.
                current = None
        except OperationCancelled:
            self._discard(lock_key, token)
            raise
        if current != token:
            logger.info("lock %s was taken by another process during acquisition", lock_key)
            raise LockContentionError(key, "raced")
        logger.debug("acquired lock %s", lock_key)

    def _discard(self, lock_key: str, token: bytes) -> None:
        """Best-effort removal of a record we wrote, if it still holds our token."""
        try:
            if self.storage.load(lock_key) == token:
                self.storage.delete(lock_key)
        except KeyNotFoundError:
            return
        except StorageError as e:
            logger.warning("could not remove lock %s after cancellation: %s", lock_key, e)
            return
        logger.debug("removed lock %s after cancellation", lock_key)

    def release(self, key: str, *, cancel=None) -> None:
        lock_key = lock_key_for(key)
        try:
            self.storage.delete(lock_key, cancel=cancel)
        except KeyNotFoundError:
            logger.debug("lock %s was not held", lock_key)
            return
        logger.debug("released lock %s", lock_key)
