"""
Shared fixtures: one schedule store per backend.
"""

import pytest

from clinicslots.adapters.memory_store import InMemoryScheduleStore
from clinicslots.adapters.sql_store import SqlScheduleStore

TENANT = "clinic-1"
STAFF = "dr-lee"


@pytest.fixture
def sql_store(tmp_path):
    """SQLite file store; a file rather than :memory: so worker threads share it."""
    store = SqlScheduleStore.from_url(f"sqlite:///{tmp_path / 'clinicslots.db'}")
    store.create_schema()
    store.add_staff(STAFF, TENANT, [1, 2, 3, 4, 5])
    yield store
    store.engine.dispose()


@pytest.fixture
def memory_store():
    store = InMemoryScheduleStore()
    store.add_staff(STAFF, TENANT, [1, 2, 3, 4, 5])
    return store


@pytest.fixture(params=["memory", "sql"])
def booking_store(request):
    """Runs a test against both storage backends."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture(params=["memory", "sql"])
def time_off_store(request):
    """Runs a time-off test against both storage backends."""
    return request.getfixturevalue(f"{request.param}_store")
