"""Notification backend that delivers reminders as Discord direct messages.

Scheduled notifications are rows in the ``pending_notifications`` outbox, so
they survive the bot being restarted; a background loop sends every row whose
``fires_at`` has passed and removes it once delivered. Scheduling a row with
an ID that already exists replaces it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional

import discord

from .db import Database
from .embeds import EmbedFactory
from .models import PendingNotification

if TYPE_CHECKING:
    from discord.ext import commands

logger = logging.getLogger(__name__)


class DiscordNotifier:
    """Persistent notification outbox plus a DM delivery loop."""

    def __init__(
        self,
        bot: commands.Bot,
        db: Database,
        embeds: EmbedFactory,
        owner_id: int,
        *,
        interval: float = 30,
        on_revoked: Optional[Callable[[], None]] = None,
    ) -> None:
        self.bot = bot
        self.db = db
        self.embeds = embeds
        self.owner_id = owner_id
        self.interval = interval
        # Called after a closed DM channel disables notifications.
        self.on_revoked = on_revoked
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()

    async def request_permission(self) -> bool:
        """True when the owner has notifications enabled."""
        settings = await self.db.get_settings(self.owner_id)
        return bool(settings.get("notifications_enabled", True))

    async def schedule(
        self,
        notification_id: int,
        fires_at: datetime,
        title: str,
        body: str,
        payload: Dict[str, Any],
    ) -> None:
        await self.db.upsert_pending(notification_id, fires_at, title, body, payload)

    async def cancel(self, notification_ids: Iterable[int]) -> None:
        await self.db.delete_pending(list(notification_ids))

    async def list_pending(self) -> List[PendingNotification]:
        return await self.db.fetch_pending()

    async def start(self) -> None:
        if self._task and not self._task.done():
            logger.warning("Notification delivery already running, stopping existing task")
            await self.stop()
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="renewals-delivery-loop")
        logger.info("Notification delivery started")

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def _run(self) -> None:
        await self.bot.wait_until_ready()
        while not self._stop.is_set():
            try:
                await self.deliver_due()
            except Exception as exc:  # pragma: no cover
                logger.exception("Notification delivery tick failed: %s", exc)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    async def deliver_due(self, now: Optional[datetime] = None) -> int:
        """Send every notification that is due. Returns the number delivered.

        Nothing is sent while the owner has notifications disabled. A closed DM
        channel revokes permission and ends the tick, leaving the rest queued.
        """
        if not await self.request_permission():
            return 0
        now = now or datetime.now(timezone.utc)
        due = await self.db.fetch_pending(due_before=now)
        delivered = 0
        for notification in due:
            try:
                if not await self._send_dm(notification):
                    continue
            except discord.Forbidden:
                await self._revoke()
                break
            await self.db.delete_delivered(notification.id, notification.fires_at)
            delivered += 1
        if delivered:
            logger.info("Delivered %s reminder notification(s)", delivered)
        return delivered

    async def _revoke(self) -> None:
        logger.warning(f"Cannot send DM to owner {self.owner_id} (DMs disabled), disabling notifications")
        await self.db.set_notifications(self.owner_id, False)
        if self.on_revoked is not None:
            self.on_revoked()

    async def _send_dm(self, notification: PendingNotification) -> bool:
        embed = self.embeds.reminder(notification.title, notification.body, notification.payload)
        try:
            user = await self.bot.fetch_user(self.owner_id)
            await user.send(embed=embed)
            logger.info(f"Sent DM notification {notification.id} to owner {self.owner_id}")
            return True
        except discord.Forbidden:
            raise
        except discord.HTTPException as e:
            logger.error(f"Failed to send DM notification {notification.id}: {e}")
        return False
