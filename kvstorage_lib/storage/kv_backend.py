"""Storage backend persisting into the remote key-value HTTP service.

Composes `KVClient` for raw I/O, `filter_keys` for listing and
`LockManager` for advisory locks. Static configuration is fixed after
`provision()`; the instance holds no other mutable state.
"""
from __future__ import annotations
from datetime import timedelta
from typing import Callable, List, Optional
import logging
import time

import requests

from kvstorage_lib.config.config import KVStorageConfig, config_from_mapping
from kvstorage_lib.registry import ModuleInfo

from .base import StorageBackend
from .kv_client import KVClient
from .listing import filter_keys
from .locking import LockManager

logger = logging.getLogger(__name__)

MODULE_ID = "caddy.storage.enzonix_kv"


class KVStorage(StorageBackend):
    """Remote KV storage for certificates, OCSP staples and config state.

    Lifecycle mirrors the host's module loading: construct, optionally
    `configure(**options)`, `provision()`, `validate()`. Operations on an
    instance that was never provisioned provision it on first use.
    """

    def __init__(
        self,
        config: Optional[KVStorageConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self.config = config or KVStorageConfig()
        self._session = session
        self._clock = clock
        self._client: Optional[KVClient] = None
        self._locks: Optional[LockManager] = None

    @staticmethod
    def module_info() -> ModuleInfo:
        return ModuleInfo(id=MODULE_ID, new=KVStorage)

    def configure(self, **options) -> None:
        """Merge host options into the configuration. Must precede `provision()`."""
        if self._client is not None:
            raise RuntimeError("KVStorage is already provisioned")
        merged = self.config.model_dump()
        merged.update(options)
        self.config = config_from_mapping(merged)

    def provision(self) -> None:
        self.config = self.config.normalized()
        self._client = KVClient(
            self.config.endpoint,
            self.config.namespace,
            self.config.api_key,
            timeout=self.config.timeout,
            session=self._session,
        )
        self._locks = LockManager(
            self,
            stale_after=timedelta(seconds=self.config.lock_stale_after),
            clock=self._clock,
        )
        cfg = self.config.redacted()
        logger.info("KV storage provisioned: endpoint=%s namespace=%s", cfg["endpoint"], cfg["namespace"])
        logger.debug("KV storage config: %s", cfg)

    def validate(self) -> None:
        self.config.validate_required()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    @property
    def client(self) -> KVClient:
        if self._client is None:
            self.provision()
        assert self._client is not None
        return self._client

    @property
    def locks(self) -> LockManager:
        if self._locks is None:
            self.provision()
        assert self._locks is not None
        return self._locks

    def store(self, key: str, value: bytes, *, cancel=None) -> None:
        self.client.write(key, bytes(value), cancel=cancel)

    def load(self, key: str, *, cancel=None) -> bytes:
        return self.client.read(key, cancel=cancel)

    def delete(self, key: str, *, cancel=None) -> None:
        self.client.delete(key, cancel=cancel)

    def list(self, prefix: str, recursive: bool, *, cancel=None) -> List[str]:
        return filter_keys(self.client.read_all(cancel=cancel), prefix, recursive)

    def lock(self, key: str, *, cancel=None) -> None:
        self.locks.acquire(key, cancel=cancel)

    def unlock(self, key: str, *, cancel=None) -> None:
        self.locks.release(key, cancel=cancel)
