import threading

import pytest

from kvstorage_lib.config.config import ConfigError, KVStorageConfig
from kvstorage_lib.storage.base import KeyInfo
from kvstorage_lib.storage.errors import (
    KeyNotFoundError,
    LockContentionError,
    OperationCancelled,
    RemoteError,
)
from kvstorage_lib.storage.interfaces import StorageConverter, StorageProtocol
from kvstorage_lib.storage.kv_backend import MODULE_ID, KVStorage
from tests.helpers import FakeKVSession, make_response


@pytest.mark.parametrize("value", [
    b"",
    b"\x00" * 64,
    bytes(range(256)),
    b"\xff\xfe\xfd not utf-8 \x80",
    "-----BEGIN CERTIFICATE-----\nMIIB...\n".encode("utf-8"),
])
def test_store_load_round_trip(kv_storage, value):
    kv_storage.store("certs/example.com/example.com.crt", value)
    assert kv_storage.load("certs/example.com/example.com.crt") == value


def test_store_overwrites(kv_storage):
    kv_storage.store("k", b"one")
    kv_storage.store("k", b"two")
    assert kv_storage.load("k") == b"two"


def test_load_legacy_plain_text(kv_storage, fake_session):
    fake_session.put_text("config/autosave.json", '{"apps": {}}')
    assert kv_storage.load("config/autosave.json") == b'{"apps": {}}'


def test_not_found_semantics(kv_storage):
    with pytest.raises(KeyNotFoundError):
        kv_storage.load("never-written")
    with pytest.raises(KeyNotFoundError):
        kv_storage.delete("never-written")


def test_delete_then_load(kv_storage):
    kv_storage.store("k", b"v")
    kv_storage.delete("k")
    with pytest.raises(KeyNotFoundError):
        kv_storage.load("k")


def test_exists(kv_storage, fake_session):
    kv_storage.store("k", b"v")
    assert kv_storage.exists("k") is True
    assert kv_storage.exists("missing") is False
    fake_session.queue(make_response(500, {"error": "boom"}))
    assert kv_storage.exists("k") is False


def test_stat_contract(kv_storage, fake_session):
    kv_storage.store("certs/a.crt", b"data")
    info = kv_storage.stat("certs/a.crt")
    assert info == KeyInfo(key="certs/a.crt", modified=None, size=0, is_terminal=True)
    with pytest.raises(KeyNotFoundError):
        kv_storage.stat("certs/missing.crt")
    fake_session.queue(make_response(500, {"error": "boom"}))
    with pytest.raises(RemoteError):
        kv_storage.stat("certs/a.crt")


def test_list_filters_remote_keys(kv_storage):
    for k in ("a", "a/b", "a/b/c", "ab", "z"):
        kv_storage.store(k, b"x")
    assert set(kv_storage.list("a", False)) == {"a", "a/b", "ab"}
    assert set(kv_storage.list("a", True)) == {"a", "a/b", "a/b/c", "ab"}


def test_list_error_propagates(kv_storage, fake_session):
    fake_session.queue(make_response(403, {"error": "forbidden"}))
    with pytest.raises(RemoteError) as ei:
        kv_storage.list("", True)
    assert ei.value.detail == "forbidden"


def test_lock_mutual_exclusion(kv_storage, clock):
    kv_storage.lock("issue_cert_example.com")
    clock.advance(30)
    with pytest.raises(LockContentionError):
        kv_storage.lock("issue_cert_example.com")


def test_lock_staleness_override(kv_storage, fake_session, clock):
    fake_session.put_bytes("issue.lock", str(clock.now).encode())
    clock.advance(6 * 60)
    kv_storage.lock("issue")
    assert fake_session.get_bytes("issue.lock") == str(clock.now).encode()


def test_lock_race_detected(kv_storage, fake_session):
    fake_session.after_write["issue.lock"] = lambda: fake_session.put_bytes("issue.lock", b"123")
    with pytest.raises(LockContentionError) as ei:
        kv_storage.lock("issue")
    assert ei.value.reason == "raced"


def test_unlock_releases_and_is_idempotent(kv_storage, fake_session, clock):
    kv_storage.lock("issue")
    kv_storage.unlock("issue")
    assert "issue.lock" not in fake_session.values
    kv_storage.unlock("issue")
    kv_storage.lock("issue")


def test_cancelled_operation(kv_storage, fake_session):
    ev = threading.Event()
    ev.set()
    with pytest.raises(OperationCancelled) as ei:
        kv_storage.store("k", b"v", cancel=ev)
    assert not isinstance(ei.value, RemoteError)
    assert fake_session.calls == []


def test_provision_normalizes_endpoint_and_uses_auth(kv_storage, fake_session):
    assert kv_storage.config.endpoint == "https://kv.example.test"
    kv_storage.store("k", b"v")
    assert fake_session.calls[0]["url"].startswith("https://kv.example.test/api/write/")
    assert fake_session.calls[0]["headers"]["Authorization"] == "Bearer secret-key"


def test_default_endpoint_applied():
    s = KVStorage(KVStorageConfig(endpoint="", namespace="n", api_key="k"), session=FakeKVSession("n"))
    s.provision()
    assert s.config.endpoint == "https://us-east-1.kv.enzonix.com"


def test_validate_requires_namespace_and_key():
    with pytest.raises(ConfigError, match="namespace is required"):
        KVStorage(KVStorageConfig(api_key="k")).validate()
    with pytest.raises(ConfigError, match="api_key is required"):
        KVStorage(KVStorageConfig(namespace="n")).validate()


def test_configure_merges_options():
    s = KVStorage(session=FakeKVSession("o:c"))
    s.configure(namespace="o:c", api_key="k", endpoint="https://kv.local/")
    s.provision()
    s.validate()
    assert s.config.namespace == "o:c"
    assert s.config.endpoint == "https://kv.local"
    with pytest.raises(RuntimeError):
        s.configure(namespace="other")


def test_configure_rejects_unknown_option():
    with pytest.raises(ConfigError, match="unrecognized option: bucket"):
        KVStorage().configure(bucket="x")


def test_lazy_provision_on_first_use():
    session = FakeKVSession("o:c")
    s = KVStorage(KVStorageConfig(namespace="o:c", api_key="k"), session=session)
    s.store("k", b"v")
    assert session.calls[0]["url"] == "https://us-east-1.kv.enzonix.com/api/write/o:c/k"


def test_host_facing_contract(kv_storage):
    assert isinstance(kv_storage, StorageProtocol)
    assert isinstance(kv_storage, StorageConverter)
    assert kv_storage.as_storage() is kv_storage
    info = KVStorage.module_info()
    assert info.id == MODULE_ID == "caddy.storage.enzonix_kv"
    assert isinstance(info.new(), KVStorage)


def test_close_closes_session(kv_storage, fake_session):
    kv_storage.close()
    assert fake_session.closed is True


class SetAfterWrite:
    """Cancel signal that becomes set once a POST has gone out."""

    def __init__(self, session):
        self.session = session

    def is_set(self):
        return any(c["method"] == "POST" for c in self.session.calls)


def test_lock_cancelled_after_write_leaves_no_record(kv_storage, fake_session):
    with pytest.raises(OperationCancelled):
        kv_storage.lock("issue", cancel=SetAfterWrite(fake_session))
    assert "issue.lock" not in fake_session.values
    kv_storage.lock("issue")


def test_lock_cancel_cleanup_keeps_foreign_record(kv_storage, fake_session):
    fake_session.after_write["issue.lock"] = lambda: fake_session.put_bytes("issue.lock", b"123")
    with pytest.raises(OperationCancelled):
        kv_storage.lock("issue", cancel=SetAfterWrite(fake_session))
    assert fake_session.get_bytes("issue.lock") == b"123"


def test_provision_log_hides_api_key(fake_session, caplog):
    import logging
    caplog.set_level(logging.DEBUG, logger="kvstorage_lib.storage.kv_backend")
    s = KVStorage(KVStorageConfig(namespace="owner:certs", api_key="secret-key"), session=fake_session)
    s.provision()
    assert "owner:certs" in caplog.text
    assert "secret-key" not in caplog.text
