"""Durable bookkeeping of which reminder slots are scheduled per document.

Rows live in the ``scheduled_reminders`` table keyed by
``(document_id, slot_kind)`` with ``{notification_id, fires_at}`` as value.

The store is a cache: the notifier's pending list decides what will actually
fire, and a full reschedule pass reconciles the two.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, List, Optional

import asyncpg

from .db import Database
from .errors import StoreIOError
from .models import ScheduledReminder, SlotKind

logger = logging.getLogger(__name__)

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class ScheduleStore:
    """Postgres-backed schedule store; every driver failure becomes StoreIOError."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def _guard(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except STORE_ERRORS as e:
            logger.error(f"Schedule store {operation} failed: {e}", exc_info=True)
            raise StoreIOError(f"Cannot {operation} scheduled reminders: {e}") from e

    async def record_scheduled(
        self,
        document_id: str,
        slot_kind: SlotKind,
        notification_id: int,
        fires_at: datetime,
    ) -> None:
        await self._guard(
            "record",
            self.db.upsert_scheduled(document_id, SlotKind(slot_kind).value, notification_id, fires_at),
        )
        logger.debug(f"Recorded {document_id}/{SlotKind(slot_kind).value} -> {notification_id} at {fires_at}")

    async def clear_scheduled(self, document_id: str, slot_kind: Optional[SlotKind] = None) -> int:
        """Clear one slot, or every slot of the document when ``slot_kind`` is omitted."""
        kind = SlotKind(slot_kind).value if slot_kind is not None else None
        return await self._guard("clear", self.db.delete_scheduled(document_id, kind))

    async def list_scheduled(self) -> List[ScheduledReminder]:
        return await self._guard("list", self.db.fetch_scheduled())

    async def list_for_document(self, document_id: str) -> List[ScheduledReminder]:
        return await self._guard("list", self.db.fetch_scheduled(document_id))
