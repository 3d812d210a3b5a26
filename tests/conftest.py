"""Pytest configuration and shared fixtures.

Ensure the project root is on sys.path so tests can import the package
without requiring PYTHONPATH to be set externally.
"""
import sys
from pathlib import Path

import pytest


def pytest_configure(config):
    # Insert repo root (one level up from tests/) to sys.path
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))


@pytest.fixture
def fake_session():
    from tests.helpers import FakeKVSession
    return FakeKVSession(namespace="owner:certs")


@pytest.fixture
def clock():
    from tests.helpers import FakeClock
    return FakeClock()


@pytest.fixture
def kv_storage(fake_session, clock):
    from kvstorage_lib.config.config import KVStorageConfig
    from kvstorage_lib.storage.kv_backend import KVStorage

    cfg = KVStorageConfig(endpoint="https://kv.example.test/", namespace="owner:certs", api_key="secret-key")
    s = KVStorage(cfg, session=fake_session, clock=clock)
    s.provision()
    s.validate()
    return s
