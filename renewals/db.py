from __future__ import annotations

import json
import uuid
from datetime import datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import asyncpg

from .models import Document, PendingNotification, ReminderPeriod, ScheduledReminder, SlotKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_command_tag(tag: str) -> int:
    try:
        return int(tag.rsplit(" ", 1)[1])
    except (IndexError, ValueError):
        return 0


def _load_payload(value: Any) -> Dict[str, Any]:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return {}
    return dict(value or {})


class Database:
    """Async wrapper around PostgreSQL with helper methods for the renewal bot.

    Serves as the document repository (``list_documents``/``get_document``)
    and holds the tables behind the schedule store and the DM outbox.
    """

    def __init__(
        self,
        dsn: str,
        *,
        default_reminder: str = "09:00",
        default_timezone: str = "UTC",
        default_period: str = ReminderPeriod.ONE_MONTH.value,
    ) -> None:
        self.dsn = dsn
        self.default_reminder = default_reminder
        self.default_timezone = default_timezone
        self.default_period = default_period
        self._pool: Optional[asyncpg.Pool] = None

    async def init(self) -> None:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self.dsn, min_size=1, max_size=10, timeout=10.0)
        async with self._pool.acquire() as conn:
            schema_statements = [
                """
                CREATE TABLE IF NOT EXISTS settings (
                    owner_id BIGINT PRIMARY KEY,
                    notifications_enabled BOOLEAN NOT NULL DEFAULT TRUE,
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    default_reminder_period TEXT NOT NULL DEFAULT '1_month',
                    default_reminder_time TEXT NOT NULL DEFAULT '09:00'
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    doc_type TEXT NOT NULL DEFAULT 'other',
                    expiry_date TIMESTAMPTZ NOT NULL,
                    reminder_period TEXT NOT NULL,
                    reminder_time TIME,
                    notes TEXT,
                    is_handled BOOLEAN NOT NULL DEFAULT FALSE,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS scheduled_reminders (
                    document_id TEXT NOT NULL,
                    slot_kind TEXT NOT NULL,
                    notification_id INTEGER NOT NULL,
                    fires_at TIMESTAMPTZ NOT NULL,
                    PRIMARY KEY (document_id, slot_kind)
                )
                """,
                """
                CREATE TABLE IF NOT EXISTS pending_notifications (
                    id INTEGER PRIMARY KEY,
                    fires_at TIMESTAMPTZ NOT NULL,
                    title TEXT NOT NULL,
                    body TEXT NOT NULL,
                    payload JSONB NOT NULL DEFAULT '{}'::jsonb
                )
                """,
                "CREATE INDEX IF NOT EXISTS idx_documents_expiry ON documents(expiry_date)",
                "CREATE INDEX IF NOT EXISTS idx_pending_fires_at ON pending_notifications(fires_at)",
                "ALTER TABLE documents ADD COLUMN IF NOT EXISTS reminder_time TIME",
            ]
            for statement in schema_statements:
                await conn.execute(statement)

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None

    # Settings

    async def ensure_settings(self, owner_id: int) -> None:
        await self.execute(
            """
            INSERT INTO settings (owner_id, timezone, default_reminder_period, default_reminder_time)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT(owner_id) DO NOTHING
            """,
            (owner_id, self.default_timezone, self.default_period, self.default_reminder),
        )

    async def get_settings(self, owner_id: int) -> Dict[str, Any]:
        await self.ensure_settings(owner_id)
        row = await self.execute(
            "SELECT * FROM settings WHERE owner_id = $1",
            (owner_id,),
            fetchone=True,
        )
        return dict(row) if row else {}

    async def set_notifications(self, owner_id: int, enabled: bool) -> None:
        await self.ensure_settings(owner_id)
        await self.execute(
            "UPDATE settings SET notifications_enabled = $1 WHERE owner_id = $2",
            (enabled, owner_id),
        )

    async def update_settings(self, owner_id: int, **fields: Any) -> None:
        allowed = {"timezone", "default_reminder_period", "default_reminder_time"}
        updates = {key: value for key, value in fields.items() if key in allowed and value is not None}
        if not updates:
            return
        await self.ensure_settings(owner_id)
        assignments = ", ".join(f"{key} = ${index}" for index, key in enumerate(updates, start=1))
        await self.execute(
            f"UPDATE settings SET {assignments} WHERE owner_id = ${len(updates) + 1}",
            (*updates.values(), owner_id),
        )

    # Documents

    async def create_document(
        self,
        name: str,
        expiry_date: datetime,
        reminder_period: str,
        *,
        doc_type: str = "other",
        reminder_time: Optional[time] = None,
        notes: Optional[str] = None,
    ) -> Document:
        document_id = str(uuid.uuid4())
        now = _utcnow()
        row = await self.execute(
            """
            INSERT INTO documents (id, name, doc_type, expiry_date, reminder_period, reminder_time, notes, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $8)
            RETURNING *
            """,
            (document_id, name, doc_type, expiry_date, reminder_period, reminder_time, notes, now),
            fetchone=True,
        )
        if not row:
            raise RuntimeError("Failed to create document")
        return Document.from_row(dict(row))

    async def update_document(self, document_id: str, **fields: Any) -> Optional[Document]:
        allowed = {"name", "doc_type", "expiry_date", "reminder_period", "reminder_time", "notes", "is_handled"}
        updates = {key: value for key, value in fields.items() if key in allowed and value is not None}
        if not updates:
            return await self.get_document(document_id)
        updates["updated_at"] = _utcnow()
        assignments = ", ".join(f"{key} = ${index}" for index, key in enumerate(updates, start=1))
        row = await self.execute(
            f"UPDATE documents SET {assignments} WHERE id = ${len(updates) + 1} RETURNING *",
            (*updates.values(), document_id),
            fetchone=True,
        )
        return Document.from_row(dict(row)) if row else None

    async def mark_document_handled(self, document_id: str, handled: bool = True) -> bool:
        result = await self.execute(
            "UPDATE documents SET is_handled = $1, updated_at = $2 WHERE id = $3",
            (handled, _utcnow(), document_id),
            rowcount=True,
        )
        return bool(result)

    async def delete_document(self, document_id: str) -> bool:
        result = await self.execute(
            "DELETE FROM documents WHERE id = $1",
            (document_id,),
            rowcount=True,
        )
        return bool(result)

    async def get_document(self, document_id: str) -> Optional[Document]:
        row = await self.execute(
            "SELECT * FROM documents WHERE id = $1",
            (document_id,),
            fetchone=True,
        )
        return Document.from_row(dict(row)) if row else None

    async def list_documents(self) -> List[Document]:
        rows = await self.execute("SELECT * FROM documents ORDER BY expiry_date", fetchall=True)
        return [Document.from_row(dict(row)) for row in rows or []]

    # Schedule store

    async def upsert_scheduled(
        self,
        document_id: str,
        slot_kind: str,
        notification_id: int,
        fires_at: datetime,
    ) -> None:
        await self.execute(
            """
            INSERT INTO scheduled_reminders (document_id, slot_kind, notification_id, fires_at)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (document_id, slot_kind)
            DO UPDATE SET notification_id = EXCLUDED.notification_id, fires_at = EXCLUDED.fires_at
            """,
            (document_id, slot_kind, notification_id, fires_at),
        )

    async def delete_scheduled(self, document_id: str, slot_kind: Optional[str] = None) -> int:
        if slot_kind is None:
            return await self.execute(
                "DELETE FROM scheduled_reminders WHERE document_id = $1",
                (document_id,),
                rowcount=True,
            )
        return await self.execute(
            "DELETE FROM scheduled_reminders WHERE document_id = $1 AND slot_kind = $2",
            (document_id, slot_kind),
            rowcount=True,
        )

    async def fetch_scheduled(self, document_id: Optional[str] = None) -> List[ScheduledReminder]:
        if document_id is None:
            rows = await self.execute(
                "SELECT * FROM scheduled_reminders ORDER BY fires_at",
                fetchall=True,
            )
        else:
            rows = await self.execute(
                "SELECT * FROM scheduled_reminders WHERE document_id = $1 ORDER BY fires_at",
                (document_id,),
                fetchall=True,
            )
        return [
            ScheduledReminder(
                document_id=row["document_id"],
                slot_kind=SlotKind(row["slot_kind"]),
                notification_id=row["notification_id"],
                fires_at=row["fires_at"],
            )
            for row in rows or []
        ]

    # Notification outbox

    async def upsert_pending(
        self,
        notification_id: int,
        fires_at: datetime,
        title: str,
        body: str,
        payload: Dict[str, Any],
    ) -> None:
        await self.execute(
            """
            INSERT INTO pending_notifications (id, fires_at, title, body, payload)
            VALUES ($1, $2, $3, $4, $5::jsonb)
            ON CONFLICT (id)
            DO UPDATE SET fires_at = EXCLUDED.fires_at, title = EXCLUDED.title,
                          body = EXCLUDED.body, payload = EXCLUDED.payload
            """,
            (notification_id, fires_at, title, body, json.dumps(payload, default=str)),
        )

    async def delete_pending(self, notification_ids: Sequence[int]) -> int:
        if not notification_ids:
            return 0
        return await self.execute(
            "DELETE FROM pending_notifications WHERE id = ANY($1::int[])",
            (list(notification_ids),),
            rowcount=True,
        )

    async def delete_delivered(self, notification_id: int, fires_at: datetime) -> bool:
        """Remove a delivered row unless it was rescheduled while being sent."""
        result = await self.execute(
            "DELETE FROM pending_notifications WHERE id = $1 AND fires_at = $2",
            (notification_id, fires_at),
            rowcount=True,
        )
        return bool(result)

    async def fetch_pending(self, *, due_before: Optional[datetime] = None) -> List[PendingNotification]:
        if due_before is None:
            rows = await self.execute(
                "SELECT * FROM pending_notifications ORDER BY fires_at",
                fetchall=True,
            )
        else:
            rows = await self.execute(
                "SELECT * FROM pending_notifications WHERE fires_at <= $1 ORDER BY fires_at",
                (due_before,),
                fetchall=True,
            )
        return [
            PendingNotification(
                id=row["id"],
                fires_at=row["fires_at"],
                title=row["title"],
                body=row["body"],
                payload=_load_payload(row["payload"]),
            )
            for row in rows or []
        ]

    async def execute(
        self,
        query: str,
        params: Iterable[Any] = (),
        *,
        fetchone: bool = False,
        fetchall: bool = False,
        rowcount: bool = False,
    ) -> Any:
        if self._pool is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        params_seq: Sequence[Any] = tuple(params)
        async with self._pool.acquire() as conn:
            if fetchone:
                return await conn.fetchrow(query, *params_seq)
            if fetchall:
                return await conn.fetch(query, *params_seq)
            status = await conn.execute(query, *params_seq)
            if rowcount:
                return _parse_command_tag(status)
            return status
