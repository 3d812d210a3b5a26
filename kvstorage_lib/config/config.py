"""Configuration for the key-value storage module.

The host supplies options as a mapping using the JSON keys `endpoint`,
`namespace` and `api_key`. For standalone use the same mapping can live
in a YAML file (top level or under a `storage:` key), and the `KV_*`
environment variables override it.
"""
from __future__ import annotations
from pathlib import Path
from typing import Any, Mapping, Optional
import logging
import os

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Invalid storage configuration."""


DEFAULT_ENDPOINT = "https://us-east-1.kv.enzonix.com"
DEFAULT_CONFIG_PATH = Path("data/config/storage.yml")

ENV_OVERRIDES = {
    "KV_ENDPOINT": "endpoint",
    "KV_NAMESPACE": "namespace",
    "KV_API_KEY": "api_key",
}


class KVStorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    endpoint: str = DEFAULT_ENDPOINT
    namespace: str = ""
    api_key: str = ""
    timeout: float = 30.0
    lock_stale_after: float = 300.0

    def normalized(self) -> "KVStorageConfig":
        """Return a copy with the default endpoint applied and no trailing slash."""
        endpoint = (self.endpoint or DEFAULT_ENDPOINT).rstrip("/")
        return self.model_copy(update={"endpoint": endpoint})

    def validate_required(self) -> None:
        if not self.namespace:
            raise ConfigError("namespace is required")
        if not self.api_key:
            raise ConfigError("api_key is required")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.lock_stale_after <= 0:
            raise ConfigError("lock_stale_after must be positive")

    def redacted(self) -> dict:
        """Config as a dict safe to log."""
        data = self.model_dump()
        if data.get("api_key"):
            data["api_key"] = "***"
        return data


def config_from_mapping(options: Mapping[str, Any]) -> KVStorageConfig:
    """Build a config from host options, rejecting unknown keys."""
    try:
        return KVStorageConfig.model_validate(dict(options))
    except ValidationError as e:
        problems = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()))
            if err.get("type") == "extra_forbidden":
                problems.append(f"unrecognized option: {loc}")
            else:
                problems.append(f"{loc}: {err.get('msg')}")
        raise ConfigError("; ".join(problems)) from e


def load_config(path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> KVStorageConfig:
    """Load configuration from YAML and the environment.

    A missing file is not an error when the environment provides the
    required values; validation of required fields is left to the caller
    (see `KVStorageConfig.validate_required`).
    """
    env = os.environ if env is None else env
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data: dict = {}
    if cfg_path.exists():
        try:
            with cfg_path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid config format: parse error in {cfg_path}") from e
        if not isinstance(raw, dict):
            raise ConfigError("invalid config format: expected mapping")
        section = raw.get("storage", raw)
        if not isinstance(section, dict):
            raise ConfigError("invalid config format: 'storage' must be a mapping")
        data.update(section)
        data.pop("log_level", None)
        logger.debug("Loaded storage config from %s", cfg_path)
    elif path is not None:
        raise ConfigError(f"config file not found: {cfg_path}")

    for var, field in ENV_OVERRIDES.items():
        val = env.get(var)
        if val:
            data[field] = val
    return config_from_mapping(data)
