"""In-process fake of the remote key-value HTTP API for tests.

`FakeKVSession` stands in for `requests.Session`: it answers the four
wire operations from a dict and returns real `requests.Response` objects
so JSON decoding behaves exactly as in production.
"""
import base64
import json
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import unquote, urlsplit

import requests
from requests.structures import CaseInsensitiveDict


def make_response(status: int, body: Any = None, *, raw: Optional[bytes] = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    if raw is not None:
        resp._content = raw
    elif body is None:
        resp._content = b""
    else:
        resp._content = json.dumps(body).encode("utf-8")
    resp.encoding = "utf-8"
    return resp


class FakeKVSession:
    def __init__(self, namespace: str = "owner:certs") -> None:
        self.namespace = namespace
        self.headers: CaseInsensitiveDict = CaseInsensitiveDict()
        # key -> stored text exactly as the service would keep it
        self.values: Dict[str, str] = {}
        self.calls: List[dict] = []
        self.queued: List[Any] = []
        self.after_write: Dict[str, Callable[[], None]] = {}
        self.closed = False

    # test helpers -------------------------------------------------------

    def put_bytes(self, key: str, value: bytes) -> None:
        self.values[key] = base64.b64encode(value).decode("ascii")

    def put_text(self, key: str, text: str) -> None:
        """Store a legacy, not base64 encoded value."""
        self.values[key] = text

    def get_bytes(self, key: str) -> bytes:
        return base64.b64decode(self.values[key])

    def queue(self, item: Any) -> None:
        """Queue a canned Response (returned) or exception (raised) for the next call."""
        self.queued.append(item)

    # requests.Session surface -------------------------------------------

    def close(self) -> None:
        self.closed = True

    def request(self, method: str, url: str, json: Any = None, timeout: Any = None, **kwargs) -> requests.Response:
        self.calls.append({
            "method": method,
            "url": url,
            "json": json,
            "timeout": timeout,
            "headers": dict(self.headers),
        })
        if self.queued:
            item = self.queued.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        return self._dispatch(method, url, json)

    def _dispatch(self, method: str, url: str, body: Any) -> requests.Response:
        parts = urlsplit(url).path.split("/")
        # ['', 'api', action, namespace, (key)]
        action = parts[2]
        namespace = unquote(parts[3])
        if namespace != self.namespace:
            return make_response(403, {"error": "forbidden namespace"})
        if len(parts) == 4:
            if method == "GET" and action == "read":
                return make_response(200, {"namespace": namespace, "keys": list(self.values)})
            return make_response(405, {"error": "method not allowed"})
        key = unquote(parts[4])
        if method == "POST" and action == "write":
            self.values[key] = body["value"]
            hook = self.after_write.pop(key, None)
            if hook is not None:
                hook()
            return make_response(200, {"status": "ok", "key": key})
        if method == "GET" and action == "read":
            if key not in self.values:
                return make_response(404, {"error": "key not found"})
            return make_response(200, {"key": key, "value": self.values[key]})
        if method == "DELETE" and action == "write":
            if key not in self.values:
                return make_response(404, {"error": "key not found"})
            del self.values[key]
            return make_response(200, {"status": "ok", "key": key})
        return make_response(405, {"error": "method not allowed"})


class FakeClock:
    """Nanosecond clock under test control."""

    def __init__(self, start_ns: int = 1_700_000_000_000_000_000) -> None:
        self.now = start_ns

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1_000_000_000)
