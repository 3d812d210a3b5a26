"""Named storage module registry.

Hosts discover storage implementations by module id and instantiate them
from a plain options mapping. A registry is an ordinary object; callers
own their instance instead of sharing a process-wide singleton.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleInfo:
    """Module id plus a zero-argument constructor for a fresh instance."""

    id: str
    new: Callable[[], Any]


class StorageRegistry:
    """A tiny, explicit registry of storage modules keyed by id.

    `create` runs the module lifecycle in the order hosts expect:
    instantiate, configure, provision, validate. Steps a module does not
    implement are skipped.
    """

    def __init__(self) -> None:
        self._modules: Dict[str, ModuleInfo] = {}

    def register(self, info: ModuleInfo) -> None:
        if info.id in self._modules:
            raise ValueError(f"module already registered: {info.id}")
        self._modules[info.id] = info
        logger.debug("Registered storage module %s", info.id)

    def get(self, module_id: str) -> ModuleInfo:
        try:
            return self._modules[module_id]
        except KeyError:
            raise KeyError(f"No storage module registered for id '{module_id}'") from None

    def modules(self) -> List[str]:
        return sorted(self._modules)

    def create(self, module_id: str, options: Optional[Mapping[str, Any]] = None):
        inst = self.get(module_id).new()
        configure = getattr(inst, "configure", None)
        if options and not callable(configure):
            raise ValueError(f"module {module_id} does not accept options")
        if callable(configure):
            configure(**dict(options or {}))
        try:
            for step in ("provision", "validate"):
                fn = getattr(inst, step, None)
                if callable(fn):
                    fn()
        except Exception:
            close = getattr(inst, "close", None)
            if callable(close):
                close()
            raise
        as_storage = getattr(inst, "as_storage", None)
        return as_storage() if callable(as_storage) else inst


def default_registry() -> StorageRegistry:
    """Return a new registry holding the built-in storage modules."""
    from kvstorage_lib.storage.kv_backend import KVStorage
    from kvstorage_lib.storage.memory_backend import MemoryStorage

    reg = StorageRegistry()
    reg.register(KVStorage.module_info())
    reg.register(MemoryStorage.module_info())
    return reg
