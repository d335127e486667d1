"""Tests for database operations (requires test database)."""

import os
from datetime import datetime, time, timedelta, timezone

import pytest

from renewals import Database, ScheduleStore
from renewals.models import SlotKind

pytestmark = pytest.mark.skipif(
    not os.getenv("TEST_DATABASE_URL"),
    reason="TEST_DATABASE_URL not set",
)


@pytest.mark.asyncio
async def test_database_init(test_db_url):
    """Test database initialization."""
    db = Database(test_db_url)
    try:
        await db.init()
        # Verify connection works
        result = await db.execute("SELECT 1 as test", fetchone=True)
        assert result is not None
        assert result["test"] == 1
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_settings_defaults_and_updates(test_db_url, sample_owner_id):
    db = Database(test_db_url, default_timezone="Europe/London")
    try:
        await db.init()
        await db.execute("DELETE FROM settings WHERE owner_id = $1", (sample_owner_id,))

        settings = await db.get_settings(sample_owner_id)
        assert settings["notifications_enabled"] is True
        assert settings["timezone"] == "Europe/London"

        await db.update_settings(sample_owner_id, timezone="Asia/Tokyo", default_reminder_time="07:30", bogus="x")
        await db.set_notifications(sample_owner_id, False)
        settings = await db.get_settings(sample_owner_id)
        assert settings["timezone"] == "Asia/Tokyo"
        assert settings["default_reminder_time"] == "07:30"
        assert settings["notifications_enabled"] is False
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_document_lifecycle(test_db_url):
    db = Database(test_db_url)
    try:
        await db.init()
        expiry = datetime(2031, 3, 31, tzinfo=timezone.utc)
        document = await db.create_document("Passport", expiry, "6_months", doc_type="passport", reminder_time=time(8, 0))
        assert document.expiry_date == expiry
        assert document.reminder_time == time(8, 0)

        updated = await db.update_document(document.id, name="Passport (renewed)", reminder_period="1_month", notes=None)
        assert updated.name == "Passport (renewed)"
        assert updated.reminder_period.value == "1_month"

        assert await db.mark_document_handled(document.id) is True
        assert (await db.get_document(document.id)).is_handled is True
        listed = {doc.id: doc for doc in await db.list_documents()}
        assert listed[document.id].is_handled is True

        assert await db.delete_document(document.id) is True
        assert await db.get_document(document.id) is None
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_schedule_store_round_trip(test_db_url):
    db = Database(test_db_url)
    store = ScheduleStore(db)
    try:
        await db.init()
        await store.clear_scheduled("db-test-doc")
        fires_at = datetime(2031, 3, 1, 9, 0, tzinfo=timezone.utc)
        await store.record_scheduled("db-test-doc", SlotKind.PRIMARY, 11, fires_at)
        await store.record_scheduled("db-test-doc", SlotKind.PRIMARY, 11, fires_at + timedelta(days=1))
        await store.record_scheduled("db-test-doc", SlotKind.FOLLOW_UP, 10011, fires_at + timedelta(days=2))

        entries = await store.list_for_document("db-test-doc")
        assert [(e.slot_kind, e.fires_at) for e in entries] == [
            (SlotKind.PRIMARY, fires_at + timedelta(days=1)),
            (SlotKind.FOLLOW_UP, fires_at + timedelta(days=2)),
        ]

        assert await store.clear_scheduled("db-test-doc", SlotKind.PRIMARY) == 1
        assert await store.clear_scheduled("db-test-doc") == 1
        assert await store.list_for_document("db-test-doc") == []
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_outbox_delivery_respects_reschedule(test_db_url):
    db = Database(test_db_url)
    try:
        await db.init()
        fires_at = datetime(2020, 1, 1, 9, 0, tzinfo=timezone.utc)
        await db.upsert_pending(424242, fires_at, "title", "body", {"document_id": "db-test-doc"})

        due = [n for n in await db.fetch_pending(due_before=datetime.now(timezone.utc)) if n.id == 424242]
        assert due and due[0].document_id == "db-test-doc"

        # a reschedule between fetch and delivery keeps the new row
        await db.upsert_pending(424242, fires_at + timedelta(days=1), "title", "body", {"document_id": "db-test-doc"})
        assert await db.delete_delivered(424242, fires_at) is False
        assert await db.delete_pending([424242]) == 1
    finally:
        await db.close()

