"""Storage health utilities.

Provides a simple `get_health` function returning process start time,
uptime in seconds and whether the configured backend answers.
"""
from datetime import datetime, timezone
import logging
import time

from kvstorage_lib.storage.errors import StorageError

logger = logging.getLogger(__name__)

# record process start time at import
_START_TIME = time.time()


def get_health(storage, *, cancel=None) -> dict:
    """Return a dict representing storage health.

    Fields:
    - status: 'ok' or 'error'
    - start_time: ISO 8601 UTC timestamp when the process started
    - uptime_seconds: integer seconds since start
    - backend: class name of the probed backend
    - error: failure text, only present when status is 'error'

    The probe is a single non-recursive listing of the root prefix.
    """
    now = time.time()
    start_dt = datetime.fromtimestamp(_START_TIME, tz=timezone.utc)
    out = {
        "status": "ok",
        "start_time": start_dt.isoformat(),
        "uptime_seconds": int(now - _START_TIME),
        "backend": type(storage).__name__,
    }
    try:
        storage.list("", False, cancel=cancel)
    except StorageError as e:
        logger.warning("Storage health probe failed: %s", e)
        out["status"] = "error"
        out["error"] = str(e)
    return out
