"""Configuration loading for the storage modules."""

from .config import ConfigError, KVStorageConfig, load_config

__all__ = ["ConfigError", "KVStorageConfig", "load_config"]
