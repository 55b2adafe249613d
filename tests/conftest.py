import pytest
from pytest_socket import disable_socket

from sinks.sqlite_store import RecordStore


def pytest_runtest_setup():
    """
    Runs before every test.
    We disable network access; the meter and the database are local.
    Unix sockets stay allowed for the asyncio event loop.
    """
    disable_socket(allow_unix_socket=True)


@pytest.fixture
def store(tmp_path):
    """Fresh on-disk record store per test"""
    store = RecordStore(tmp_path / "p1.db")
    yield store
    store.close()
