"""Exception hierarchy for storage backends.

Callers mostly care about one distinction: a key that does not exist
(`KeyNotFoundError`, which is also a `KeyError` so code written against a
dict-like backend keeps working) versus everything else. The remaining
classes carry enough context (operation, key, status code) for a caller
to decide whether to retry.
"""
from __future__ import annotations
from typing import Optional


class StorageError(Exception):
    """Base class for all storage failures."""

    def __init__(self, message: str, *, operation: str = "", key: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.key = key

    def __str__(self) -> str:
        return self.message


class KeyNotFoundError(StorageError, KeyError):
    """The remote service reports the key as absent."""

    def __init__(self, key: str, *, operation: str = "") -> None:
        super().__init__(f"key not found: {key}", operation=operation, key=key)


class TransportError(StorageError):
    """Request could not be built or sent, or no response arrived in time."""


class RemoteError(StorageError):
    """The remote service answered with an unexpected status code."""

    def __init__(self, status_code: int, message: str, *, operation: str = "", key: Optional[str] = None) -> None:
        self.status_code = status_code
        self.detail = message
        super().__init__(
            f"{operation or 'storage'} request failed with status {status_code}: {message}",
            operation=operation,
            key=key,
        )


class DecodeError(StorageError):
    """A successful response carried a body that is not the expected envelope."""


class LockContentionError(StorageError):
    """A lock could not be acquired because another holder owns it.

    `reason` is ``"held"`` when a live lock record was found and ``"raced"``
    when our write was overwritten before the verification read.
    """

    def __init__(self, key: str, reason: str) -> None:
        self.reason = reason
        if reason == "raced":
            msg = "failed to acquire lock: lock was acquired by another process"
        else:
            msg = "failed to acquire lock: lock already exists"
        super().__init__(msg, operation="lock", key=key)


class OperationCancelled(StorageError):
    """The caller's cancellation signal was set while the operation ran."""

    def __init__(self, operation: str, key: Optional[str] = None) -> None:
        super().__init__(f"{operation} cancelled", operation=operation, key=key)


def raise_if_cancelled(cancel, operation: str, key: Optional[str] = None) -> None:
    """Raise `OperationCancelled` if the optional `cancel` signal is set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelled(operation, key)
