"""Storage abstraction package for the key-value storage module."""

from .base import KeyInfo, StorageBackend
from .errors import (
    DecodeError,
    KeyNotFoundError,
    LockContentionError,
    OperationCancelled,
    RemoteError,
    StorageError,
    TransportError,
)
from .kv_backend import KVStorage
from .memory_backend import MemoryStorage

__all__ = [
    "KeyInfo",
    "StorageBackend",
    "KVStorage",
    "MemoryStorage",
    "StorageError",
    "KeyNotFoundError",
    "TransportError",
    "RemoteError",
    "DecodeError",
    "LockContentionError",
    "OperationCancelled",
]
