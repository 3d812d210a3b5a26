from __future__ import annotations
import logging
from pathlib import Path
import yaml
from typing import Optional

from kvstorage_lib.config.config import DEFAULT_CONFIG_PATH


def configure_logging(config_path: Optional[Path] = None) -> logging.Logger:
    """Configure root logging for the storage tools.

    Reads `log_level` from the YAML config when present (default WARNING)
    and reconfigures the root logger with that level. Returns a module
    logger for the caller.
    """
    DEFAULT_LOG_LEVEL = logging.WARNING

    cfg_path = config_path or DEFAULT_CONFIG_PATH
    if cfg_path.exists():
        try:
            with cfg_path.open('r', encoding='utf-8') as _f:
                _cfg = yaml.safe_load(_f) or {}
        except (OSError, yaml.YAMLError):
            # If config parse fails, fall back to default level
            _cfg = {}
        _lvl = _cfg.get('log_level') if isinstance(_cfg, dict) else None
        if isinstance(_lvl, str):
            _numeric = getattr(logging, _lvl.upper(), None)
            if isinstance(_numeric, int):
                DEFAULT_LOG_LEVEL = _numeric

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    logging.basicConfig(level=DEFAULT_LOG_LEVEL, format='%(asctime)s %(levelname)s [%(name)s]: %(message)s')
    logger = logging.getLogger(__name__)

    # Keep known noisy libraries quiet by default
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logger.debug("Log level set to %s", logging.getLevelName(DEFAULT_LOG_LEVEL))

    return logger
