"""Shared fixtures for certledger unit tests."""

import pytest

from certledger.services.ledger import CertificateLedger
from certledger.services.serial import RetryPolicy, SerialAllocator
from certledger.services.store import SQLiteStore

from .helpers import FakeClock


@pytest.fixture
def store():
    store = SQLiteStore()
    yield store
    store.close()


@pytest.fixture
def file_store(tmp_path):
    store = SQLiteStore(str(tmp_path / "ledger.db"))
    yield store
    store.close()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_allocator(sleeps):
    """Build allocators that never really sleep."""
    def _make(store, *clock_values, **policy):
        return SerialAllocator(
            store,
            RetryPolicy(**policy),
            clock=FakeClock(*clock_values),
            sleep=sleeps.append,
            rand=lambda: 0.0,
        )
    return _make


@pytest.fixture
def ledger(store):
    return CertificateLedger(store)
