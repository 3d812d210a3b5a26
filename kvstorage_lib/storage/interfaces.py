from typing import Protocol, List, runtime_checkable

from .base import KeyInfo


@runtime_checkable
class StorageProtocol(Protocol):
    """Storage protocol mirroring `kvstorage_lib.storage.StorageBackend`.

    Hosts type against this protocol; implementations should follow the
    semantics documented on the abstract base class in
    `kvstorage_lib.storage.base` (KeyNotFoundError for missing keys,
    idempotent unlock, etc.).
    """

    def store(self, key: str, value: bytes, *, cancel=None) -> None: ...

    def load(self, key: str, *, cancel=None) -> bytes: ...

    def delete(self, key: str, *, cancel=None) -> None: ...

    def exists(self, key: str, *, cancel=None) -> bool: ...

    def stat(self, key: str, *, cancel=None) -> KeyInfo: ...

    def list(self, prefix: str, recursive: bool, *, cancel=None) -> List[str]: ...

    def lock(self, key: str, *, cancel=None) -> None: ...

    def unlock(self, key: str, *, cancel=None) -> None: ...


@runtime_checkable
class StorageConverter(Protocol):
    """A configured module that can hand out its storage implementation."""

    def as_storage(self) -> StorageProtocol: ...


@runtime_checkable
class CancelSignal(Protocol):
    def is_set(self) -> bool: ...
