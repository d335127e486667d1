"""Reminder scheduling engine.

Turns documents into notification slots, keeps the notifier's outbox and the
schedule store in step with the document repository, and reconciles drift on
every full pass.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .calculator import (
    as_local,
    days_until_expiry,
    final_warning_instant,
    follow_up_instant,
    parse_time_of_day,
    reminder_instant,
    resolve_timezone,
)
from .errors import PlatformScheduleError, SchedulingError, StoreIOError
from .identity import slot_id, slot_ids
from .models import Document, ScheduledReminder, SlotKind

logger = logging.getLogger(__name__)

URGENT_ALERT_DELAY = timedelta(seconds=1)


class Clock:
    """Wall clock; tests substitute a fixed one."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PlannedSlot:
    slot_kind: SlotKind
    notification_id: int
    fires_at: datetime


@dataclass
class RescheduleReport:
    """Outcome of a full reschedule pass."""

    total: int = 0
    scheduled: int = 0
    skipped: int = 0
    cancelled: int = 0
    failed: int = 0
    permission_denied: bool = False


def _days_phrase(days_left: int) -> str:
    if days_left <= 0:
        return "today"
    if days_left == 1:
        return "tomorrow"
    return f"in {days_left} days"


def notification_text(document: Document, slot_kind: SlotKind, days_left: int) -> Tuple[str, str]:
    """Title and body shown for a slot, phrased for the moment it fires."""
    when = _days_phrase(days_left)
    if slot_kind is SlotKind.URGENT_ALERT:
        return "🚨🚨 URGENT: Document Expiring! 🚨🚨", f"{document.name} expires {when}!"
    if slot_kind is SlotKind.FINAL_WARNING:
        return "⚠️ Final Warning", f"Your {document.name} expires {when}. Renew it now!"
    if slot_kind is SlotKind.FOLLOW_UP:
        return "⏰ Renewal Reminder", f"Don't forget: your {document.name} expires {when}."
    return "🚨 Document Expiring Soon!", f"Your {document.name} expires {when}."


class ReminderScheduler:
    """Schedules, cancels and reconciles reminder notifications per document.

    Collaborators are injected: ``notifier`` exposes request_permission /
    schedule / cancel / list_pending, ``repository`` exposes list_documents /
    get_document, and ``store`` is the schedule store.
    """

    def __init__(
        self,
        clock: Clock,
        notifier: Any,
        repository: Any,
        store: Any,
        *,
        tz: Any = "UTC",
        default_reminder_time: Optional[time] = None,
        call_timeout: float = 5.0,
    ) -> None:
        self.clock = clock
        self.notifier = notifier
        self.repository = repository
        self.store = store
        self.tz = resolve_timezone(tz)
        self.default_reminder_time = default_reminder_time or parse_time_of_day(None)
        self.call_timeout = call_timeout
        self._permission: Optional[bool] = None

    async def _platform(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self.call_timeout)
        except asyncio.TimeoutError as e:
            raise PlatformScheduleError(f"{operation} timed out after {self.call_timeout}s") from e
        except SchedulingError:
            raise
        except Exception as e:
            raise PlatformScheduleError(f"{operation} failed: {e}") from e

    async def ensure_permission(self) -> bool:
        """Ask the notifier once per session whether notifications are allowed."""
        if self._permission is None:
            try:
                granted = bool(await self._platform("request permission", self.notifier.request_permission()))
            except PlatformScheduleError as e:
                logger.warning(f"Permission check failed, treating as denied for now: {e}")
                return False
            self._permission = granted
            if not granted:
                logger.warning("Notification permission denied; reminders will not be scheduled")
        return self._permission

    def reset_permission(self) -> None:
        self._permission = None

    def _expiry(self, document: Document) -> datetime:
        return as_local(document.expiry_date, self.tz)

    def plan_for_document(
        self,
        document: Document,
        now: datetime,
        current: Sequence[ScheduledReminder] = (),
    ) -> List[PlannedSlot]:
        """Slots that should be pending for ``document`` as of ``now``.

        Follow-up depends on the primary; the final warning does not, so a
        document whose lead time has already passed still gets it. Once the
        primary has fired, a follow-up already recorded in ``current`` for the
        same primary is kept until it fires too.
        """
        ids = slot_ids(document.id)
        time_of_day = document.reminder_time or self.default_reminder_time
        planned: List[PlannedSlot] = []

        primary = reminder_instant(document.expiry_date, document.reminder_period, time_of_day, self.tz)
        follow_up = follow_up_instant(primary, self.tz)
        if primary > now:
            planned.append(PlannedSlot(SlotKind.PRIMARY, ids[SlotKind.PRIMARY], primary))
            planned.append(PlannedSlot(SlotKind.FOLLOW_UP, ids[SlotKind.FOLLOW_UP], follow_up))
        elif follow_up > now and any(
            entry.slot_kind is SlotKind.FOLLOW_UP and entry.fires_at == follow_up for entry in current
        ):
            planned.append(PlannedSlot(SlotKind.FOLLOW_UP, ids[SlotKind.FOLLOW_UP], follow_up))

        final = final_warning_instant(document.expiry_date, time_of_day, now, self.tz)
        if final is not None and final > now:
            planned.append(PlannedSlot(SlotKind.FINAL_WARNING, ids[SlotKind.FINAL_WARNING], final))
        return planned

    def _payload(self, document: Document, slot_kind: SlotKind) -> Dict[str, Any]:
        return {
            "document_id": document.id,
            "slot_kind": slot_kind.value,
            "document_name": document.name,
            "expiry_date": self._expiry(document).isoformat(),
        }

    async def schedule_for_document(
        self,
        document: Document,
        now: Optional[datetime] = None,
        *,
        force: bool = False,
    ) -> bool:
        """Bring the pending notifications of one document in line with its data.

        Returns False when permission is denied or the notifier failed; the
        store then reflects exactly what did get scheduled. StoreIOError
        propagates. ``force`` rewrites the slots even when their instants are
        unchanged, so edited names reach the pending notifications.
        """
        return await self._schedule(document, now or self.clock.now(), force) is not None

    async def _schedule(self, document: Document, now: datetime, force: bool) -> Optional[int]:
        """Number of upcoming slots for the document, or None on failure."""
        if document.is_handled or self._expiry(document) <= now:
            return 0 if await self.cancel_for_document(document.id) else None

        if not await self.ensure_permission():
            return None

        current = await self.store.list_for_document(document.id)
        planned = self.plan_for_document(document, now, current)
        upcoming = {(e.slot_kind, e.notification_id, e.fires_at) for e in current if e.fires_at > now}
        if not force and upcoming == {(s.slot_kind, s.notification_id, s.fires_at) for s in planned}:
            logger.debug(f"Schedule for {document.id} unchanged, skipping")
            return len(planned)

        # Past-due slots still awaiting delivery belong to the delivery loop.
        planned_kinds = {s.slot_kind for s in planned}
        in_delivery = {e.slot_kind for e in current if e.fires_at <= now} - planned_kinds
        ids = slot_ids(document.id)
        stale_kinds = [kind for kind in SlotKind if kind not in in_delivery]

        try:
            await self._platform("cancel", self.notifier.cancel([ids[kind] for kind in stale_kinds]))
        except PlatformScheduleError as e:
            logger.warning(f"Could not cancel stale reminders for {document.id}: {e}")
            return None
        for kind in stale_kinds:
            await self.store.clear_scheduled(document.id, kind)

        for slot in planned:
            days_left = days_until_expiry(document.expiry_date, slot.fires_at, self.tz)
            title, body = notification_text(document, slot.slot_kind, days_left)
            try:
                await self._platform(
                    "schedule",
                    self.notifier.schedule(
                        slot.notification_id,
                        slot.fires_at,
                        title,
                        body,
                        self._payload(document, slot.slot_kind),
                    ),
                )
            except PlatformScheduleError as e:
                logger.warning(f"Failed to schedule {slot.slot_kind.value} for {document.id}: {e}")
                return None
            await self.store.record_scheduled(document.id, slot.slot_kind, slot.notification_id, slot.fires_at)

        logger.info(
            f"Scheduled {len(planned)} reminder(s) for {document.id}: "
            + (", ".join(f"{s.slot_kind.value}@{s.fires_at.isoformat()}" for s in planned) or "none")
        )
        return len(planned)

    async def cancel_for_document(self, document_id: str) -> bool:
        """Cancel all four slots of a document. Safe when nothing is scheduled."""
        try:
            await self._platform("cancel", self.notifier.cancel(list(slot_ids(document_id).values())))
        except PlatformScheduleError as e:
            logger.warning(f"Could not cancel reminders for {document_id}: {e}")
            return False
        cleared = await self.store.clear_scheduled(document_id)
        if cleared:
            logger.info(f"Cancelled reminders for {document_id}")
        return True

    async def _reconcile(self, active_ids: Set[str]) -> Set[str]:
        """Drop bookkeeping for fired notifications; return documents to cancel."""
        stored: List[ScheduledReminder] = await self.store.list_scheduled()
        stale_documents = {entry.document_id for entry in stored if entry.document_id not in active_ids}

        try:
            pending = await self._platform("list pending", self.notifier.list_pending())
        except PlatformScheduleError as e:
            logger.warning(f"Could not list pending notifications, skipping reconciliation: {e}")
            return stale_documents

        pending_ids = {notification.id for notification in pending}
        for entry in stored:
            if entry.document_id in active_ids and entry.notification_id not in pending_ids:
                await self.store.clear_scheduled(entry.document_id, entry.slot_kind)
        for notification in pending:
            document_id = notification.document_id
            if document_id and document_id not in active_ids:
                stale_documents.add(document_id)
        return stale_documents

    async def reschedule_all(
        self,
        now: Optional[datetime] = None,
        *,
        force: Iterable[str] = (),
    ) -> RescheduleReport:
        """Full reconciliation pass over every document in the repository.

        Documents whose IDs are in ``force`` have their slots rewritten even
        when the cache says they are unchanged.
        """
        now = now or self.clock.now()
        forced = set(force)
        documents: List[Document] = list(await self.repository.list_documents())
        active = [doc for doc in documents if not doc.is_handled and self._expiry(doc) > now]
        report = RescheduleReport(total=len(documents))

        for document_id in await self._reconcile({doc.id for doc in active}):
            if await self.cancel_for_document(document_id):
                report.cancelled += 1
            else:
                report.failed += 1

        if not await self.ensure_permission():
            report.permission_denied = True
            logger.info(f"Reschedule pass finished without permission: {report}")
            return report

        for document in active:
            try:
                upcoming = await self._schedule(document, now, document.id in forced)
                if upcoming is None:
                    report.failed += 1
                elif upcoming:
                    report.scheduled += 1
                else:
                    report.skipped += 1
            except StoreIOError:
                raise
            except Exception as e:
                report.failed += 1
                logger.error(f"Unexpected error scheduling {document.id}: {e}", exc_info=True)
            await asyncio.sleep(0)

        logger.info(
            "Reschedule pass: %s documents, %s scheduled, %s with nothing upcoming, %s cancelled, %s failed",
            report.total,
            report.scheduled,
            report.skipped,
            report.cancelled,
            report.failed,
        )
        return report

    async def send_immediate_urgent_alert(self, document: Document, now: Optional[datetime] = None) -> bool:
        """Fire an urgent alert about one second from now, replacing any earlier one."""
        now = now or self.clock.now()
        if not await self.ensure_permission():
            return False
        notification_id = slot_id(document.id, SlotKind.URGENT_ALERT)
        title, body = notification_text(
            document,
            SlotKind.URGENT_ALERT,
            days_until_expiry(document.expiry_date, now, self.tz),
        )
        try:
            await self._platform("cancel", self.notifier.cancel([notification_id]))
            await self._platform(
                "schedule",
                self.notifier.schedule(
                    notification_id,
                    now + URGENT_ALERT_DELAY,
                    title,
                    body,
                    self._payload(document, SlotKind.URGENT_ALERT),
                ),
            )
        except PlatformScheduleError as e:
            logger.warning(f"Failed to send urgent alert for {document.id}: {e}")
            return False
        logger.info(f"Urgent alert queued for {document.id}")
        return True
