"""HTTP client for the namespaced key-value API.

Wire format (all bodies JSON, bearer authorization on every request):

    POST   /api/write/{namespace}/{key}   {"value": "<base64>"}
    GET    /api/read/{namespace}/{key}    -> {"key": ..., "value": "<base64 or legacy text>"}
    DELETE /api/write/{namespace}/{key}
    GET    /api/read/{namespace}          -> {"namespace": ..., "keys": [...]}

Error responses carry ``{"error": "message"}``. Values are base64 encoded
on the way out so binary certificate material survives the JSON text
transport; on the way in, values that are not valid base64 are returned
as their raw text bytes (values written before encoding was introduced).
"""
from __future__ import annotations
import base64
import binascii
import json
import logging
from typing import Any, List, Optional
from urllib.parse import quote

import requests

from .errors import (
    DecodeError,
    KeyNotFoundError,
    RemoteError,
    TransportError,
    raise_if_cancelled,
)
from .interfaces import CancelSignal

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
# Characters a URL path segment may carry unescaped besides the unreserved set
_PATH_SEGMENT_SAFE = "$&+,:;=@"


def escape_segment(segment: str) -> str:
    """Percent-escape `segment` for use as a single URL path segment.

    ``/`` is escaped so hierarchical keys stay one segment.
    """
    return quote(segment, safe=_PATH_SEGMENT_SAFE)


def encode_value(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def decode_value(text: str) -> bytes:
    """Decode a stored value, falling back to raw text for legacy entries."""
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return text.encode("utf-8")


def parse_error_response(body: str) -> str:
    """Extract the message of an ``{"error": ...}`` envelope.

    Falls back to the raw body when it is not JSON or has no error field.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return body
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, str) and err:
            return err
    return body


class KVClient:
    """Issues the four primitive requests against one namespace.

    A single `requests.Session` is created per client and reused for
    every call; it carries the authorization header. The client holds no
    other mutable state and is safe to share between threads as far as
    `requests` allows.
    """

    def __init__(
        self,
        endpoint: str,
        namespace: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.namespace = namespace
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers["Authorization"] = f"Bearer {api_key}"

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "KVClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _key_url(self, action: str, key: str) -> str:
        return f"{self.endpoint}/api/{action}/{escape_segment(self.namespace)}/{escape_segment(key)}"

    def _namespace_url(self) -> str:
        return f"{self.endpoint}/api/read/{escape_segment(self.namespace)}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        key: Optional[str] = None,
        cancel: Optional[CancelSignal] = None,
        body: Optional[dict] = None,
    ) -> requests.Response:
        raise_if_cancelled(cancel, operation, key)
        logger.debug("%s %s (key=%s)", method, url, key)
        try:
            resp = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(
                f"failed to execute {operation} request: {e}", operation=operation, key=key
            ) from e
        if method == "GET":
            # A completed write or delete is reported as done, not cancelled.
            raise_if_cancelled(cancel, operation, key)
        return resp

    def _remote_error(self, resp: requests.Response, operation: str, key: Optional[str]) -> RemoteError:
        return RemoteError(resp.status_code, parse_error_response(resp.text), operation=operation, key=key)

    def _json(self, resp: requests.Response, operation: str, key: Optional[str]) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise DecodeError(f"failed to decode {operation} response: {e}", operation=operation, key=key) from e

    def write(self, key: str, value: bytes, *, cancel: Optional[CancelSignal] = None) -> None:
        resp = self._request(
            "POST",
            self._key_url("write", key),
            operation="store",
            key=key,
            cancel=cancel,
            body={"value": encode_value(value)},
        )
        if resp.status_code != 200:
            raise self._remote_error(resp, "store", key)
        # The success envelope is advisory; only flag an unexpected status.
        try:
            result = resp.json()
        except ValueError:
            return
        if isinstance(result, dict) and result.get("status") != "ok":
            logger.warning("unexpected response status %r for key %s", result.get("status"), key)

    def read(self, key: str, *, cancel: Optional[CancelSignal] = None) -> bytes:
        resp = self._request("GET", self._key_url("read", key), operation="load", key=key, cancel=cancel)
        if resp.status_code == 404:
            raise KeyNotFoundError(key, operation="load")
        if resp.status_code != 200:
            raise self._remote_error(resp, "load", key)
        result = self._json(resp, "load", key)
        if not isinstance(result, dict):
            raise DecodeError("failed to decode load response: expected an object", operation="load", key=key)
        if "value" not in result:
            raise DecodeError("failed to decode load response: missing value", operation="load", key=key)
        value = result["value"]
        if not isinstance(value, str):
            raise DecodeError("failed to decode load response: value is not a string", operation="load", key=key)
        return decode_value(value)

    def delete(self, key: str, *, cancel: Optional[CancelSignal] = None) -> None:
        resp = self._request("DELETE", self._key_url("write", key), operation="delete", key=key, cancel=cancel)
        if resp.status_code == 404:
            raise KeyNotFoundError(key, operation="delete")
        if resp.status_code != 200:
            raise self._remote_error(resp, "delete", key)

    def read_all(self, *, cancel: Optional[CancelSignal] = None) -> List[str]:
        """Return every key of the namespace in the order the service sent them."""
        resp = self._request("GET", self._namespace_url(), operation="list", cancel=cancel)
        if resp.status_code != 200:
            raise self._remote_error(resp, "list", None)
        result = self._json(resp, "list", None)
        if not isinstance(result, dict):
            raise DecodeError("failed to decode list response: expected an object", operation="list")
        keys = result.get("keys") or []
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            raise DecodeError("failed to decode list response: keys is not a list of strings", operation="list")
        return keys
