"""Tests for the Postgres-backed schedule store's error mapping."""

from datetime import datetime, timezone

import asyncpg
import pytest

from renewals import Database, ScheduleStore
from renewals.errors import SchedulingError, StoreIOError
from renewals.models import SlotKind


class BrokenPool:
    def __init__(self, error):
        self.error = error

    def acquire(self):
        raise self.error


def broken_store(error):
    db = Database("postgresql://renewals@localhost:5432/unused")
    db._pool = BrokenPool(error)
    return ScheduleStore(db)


@pytest.mark.asyncio
async def test_connection_failure_becomes_store_error():
    store = broken_store(OSError("connection refused"))

    with pytest.raises(StoreIOError) as excinfo:
        await store.list_scheduled()
    assert isinstance(excinfo.value, SchedulingError)
    assert isinstance(excinfo.value.__cause__, OSError)


@pytest.mark.asyncio
async def test_driver_failure_on_write_becomes_store_error():
    store = broken_store(asyncpg.InterfaceError("pool is closed"))

    with pytest.raises(StoreIOError):
        await store.record_scheduled("doc1", SlotKind.PRIMARY, 98, datetime(2025, 5, 25, 9, tzinfo=timezone.utc))


@pytest.mark.asyncio
async def test_uninitialized_database_is_not_masked():
    store = ScheduleStore(Database("postgresql://renewals@localhost:5432/unused"))

    with pytest.raises(RuntimeError):
        await store.clear_scheduled("doc1")
