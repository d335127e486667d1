"""Entry points that keep reminders in sync with app and data events.

Every hook goes through one in-flight guard. A full-pass request that arrives
while a pass is running is coalesced into a single rerun when it finishes,
and single-document events during a pass mark it dirty rather than touching
the store concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from .models import Document
from .scheduler import ReminderScheduler, RescheduleReport

logger = logging.getLogger(__name__)


class LifecycleHooks:
    """Serializes scheduler work triggered by foreground, data and permission events."""

    def __init__(self, scheduler: ReminderScheduler) -> None:
        self.scheduler = scheduler
        self._lock = asyncio.Lock()
        self._pass_running = False
        self._rerun_requested = False
        self._dirty: Set[str] = set()

    @property
    def busy(self) -> bool:
        return self._pass_running

    async def _full_pass(self, reason: str) -> Optional[RescheduleReport]:
        if self._pass_running:
            logger.info(f"Reschedule pass already running; coalescing request ({reason})")
            self._rerun_requested = True
            return None

        self._pass_running = True
        try:
            async with self._lock:
                while True:
                    self._rerun_requested = False
                    dirty, self._dirty = self._dirty, set()
                    logger.info(f"Starting reschedule pass ({reason})")
                    report = await self.scheduler.reschedule_all(force=dirty)
                    if not self._rerun_requested:
                        return report
                    reason = "changes during previous pass"
        finally:
            self._pass_running = False

    async def _single(
        self,
        reason: str,
        operation: Callable[[], Awaitable[bool]],
        document_id: Optional[str] = None,
    ) -> Optional[bool]:
        """Run one document operation, or fold it into the running pass.

        Returns None when the work was deferred to the rerun of that pass.
        """
        if self._pass_running:
            # The rerun re-reads the repository, which already holds this change.
            self._rerun_requested = True
            if document_id is not None:
                self._dirty.add(document_id)
            logger.info(f"Deferring {reason} to the running reschedule pass")
            return None
        async with self._lock:
            return await operation()

    async def on_app_foreground(self) -> Optional[RescheduleReport]:
        return await self._full_pass("foreground")

    async def on_permission_granted(self) -> Optional[RescheduleReport]:
        self.scheduler.reset_permission()
        return await self._full_pass("permission granted")

    async def on_settings_changed(self) -> Optional[RescheduleReport]:
        return await self._full_pass("settings changed")

    async def on_document_saved(self, document: Document) -> Optional[bool]:
        return await self._single(
            f"save of {document.id}",
            lambda: self.scheduler.schedule_for_document(document, force=True),
            document.id,
        )

    async def on_document_deleted(self, document_id: str) -> Optional[bool]:
        return await self._single(
            f"delete of {document_id}",
            lambda: self.scheduler.cancel_for_document(document_id),
        )

    async def on_document_marked_handled(self, document_id: str) -> Optional[bool]:
        return await self._single(
            f"handled {document_id}",
            lambda: self.scheduler.cancel_for_document(document_id),
        )

    async def request_immediate_alert(self, document: Document) -> bool:
        async with self._lock:
            return await self.scheduler.send_immediate_urgent_alert(document)
