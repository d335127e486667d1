"""Notification settings cog.

Provides slash commands for the owner to enable reminders, pick a timezone and
default reminder policy, and inspect what is scheduled for a document.
"""

from __future__ import annotations

import logging
from typing import List

import discord
from discord import app_commands
from discord.ext import commands

from renewals import Database, EmbedFactory, LifecycleHooks, ReminderScheduler, ScheduleStore, Validator
from renewals.calculator import parse_time_of_day
from renewals.models import ReminderPeriod
from renewals.preference_manager import PreferenceManager


class NotificationsCog(commands.Cog):
    """Cog for managing reminder notification settings."""

    def __init__(
        self,
        bot: commands.Bot,
        db: Database,
        embeds: EmbedFactory,
        hooks: LifecycleHooks,
        scheduler: ReminderScheduler,
        store: ScheduleStore,
        pref_manager: PreferenceManager,
    ) -> None:
        self.bot = bot
        self.db = db
        self.embeds = embeds
        self.hooks = hooks
        self.scheduler = scheduler
        self.store = store
        self.pref_manager = pref_manager
        self.logger = logging.getLogger("renewals.notifications")

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id == self.pref_manager.owner_id:
            return True
        await interaction.response.send_message(
            embed=self.embeds.message("Owner Only", "This tracker belongs to someone else.", emoji="🚫"),
            ephemeral=True,
        )
        return False

    async def _apply_settings(self) -> None:
        """Push the stored timezone and default time into the scheduler, then resync."""
        self.scheduler.tz = await self.pref_manager.get_timezone()
        self.scheduler.default_reminder_time = await self.pref_manager.get_default_reminder_time()
        await self.hooks.on_settings_changed()

    @app_commands.command(name="notifications", description="Turn reminder DMs on or off")
    @app_commands.describe(enabled="Whether reminder DMs should be sent")
    @app_commands.checks.cooldown(1, 3.0)
    async def notifications(self, interaction: discord.Interaction, enabled: bool) -> None:
        await interaction.response.defer(thinking=True, ephemeral=True)
        await self.db.set_notifications(self.pref_manager.owner_id, enabled)
        if enabled:
            report = await self.hooks.on_permission_granted()
            detail = "Reminders have been rescheduled."
            if report is not None:
                detail = f"Rescheduled {report.scheduled} document(s)"
                if report.failed:
                    detail += f", {report.failed} failed"
                detail += "."
            embed = self.embeds.message("Notifications Enabled", detail, emoji="🔔")
        else:
            self.scheduler.reset_permission()
            embed = self.embeds.message(
                "Notifications Disabled",
                "No new reminders will be scheduled. Already queued ones stay until you re-enable and resync.",
                emoji="🔕",
            )
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.command(name="set-timezone", description="Set your timezone for reminder times")
    @app_commands.describe(timezone="Your timezone (e.g., America/New_York, Europe/London, UTC)")
    @app_commands.checks.cooldown(1, 3.0)
    async def set_timezone(self, interaction: discord.Interaction, timezone: str) -> None:
        result = Validator.timezone(timezone)
        if not result.ok:
            await interaction.response.send_message(
                embed=self.embeds.message(
                    "Invalid Timezone",
                    f"{result.message}\n\nExamples:\n• America/New_York\n• Europe/London\n• Asia/Tokyo\n• UTC",
                    emoji="⚠️",
                ),
                ephemeral=True,
            )
            return

        await interaction.response.defer(thinking=True)
        await self.db.update_settings(self.pref_manager.owner_id, timezone=timezone)
        await self._apply_settings()
        await interaction.followup.send(
            embed=self.embeds.message(
                "Timezone Updated",
                f"Your timezone has been set to **{timezone}**\n\nReminders now fire at your local time.",
                emoji="🌍",
            ),
        )

    @app_commands.command(name="set-default-reminder", description="Set the default reminder lead time and time of day")
    @app_commands.describe(
        period="Default lead time for new documents",
        reminder_time="Default time of day (HH:MM, 24h)",
    )
    @app_commands.choices(period=[app_commands.Choice(name=p.label, value=p.value) for p in ReminderPeriod])
    @app_commands.checks.cooldown(1, 3.0)
    async def set_default_reminder(
        self,
        interaction: discord.Interaction,
        period: app_commands.Choice[str],
        reminder_time: str = "09:00",
    ) -> None:
        result = Validator.reminder_time(reminder_time)
        if not result.ok:
            await interaction.response.send_message(
                embed=self.embeds.message("Invalid Time Format", result.message or "Use HH:MM.", emoji="⚠️"),
                ephemeral=True,
            )
            return

        await interaction.response.defer(thinking=True)
        await self.db.update_settings(
            self.pref_manager.owner_id,
            default_reminder_period=period.value,
            default_reminder_time=reminder_time,
        )
        await self._apply_settings()
        await interaction.followup.send(
            embed=self.embeds.message(
                "Defaults Updated",
                f"New documents remind you **{period.name.lower()}** at **{parse_time_of_day(reminder_time):%H:%M}**.",
                emoji="⏰",
            ),
        )

    async def document_autocomplete(self, interaction: discord.Interaction, current: str) -> List[app_commands.Choice[str]]:
        documents = await self.db.list_documents()
        needle = current.lower()
        return [
            app_commands.Choice(name=document.name[:100], value=document.id)
            for document in documents
            if not needle or needle in document.name.lower()
        ][:25]

    @app_commands.command(name="reminder-status", description="Show which reminders are scheduled for a document")
    @app_commands.autocomplete(document=document_autocomplete)
    @app_commands.checks.cooldown(1, 3.0)
    async def reminder_status(self, interaction: discord.Interaction, document: str) -> None:
        existing = await self.db.get_document(document)
        if existing is None:
            await interaction.response.send_message(
                embed=self.embeds.message("Not Found", "No document with that ID.", emoji="⚠️"),
                ephemeral=True,
            )
            return
        scheduled = await self.store.list_for_document(document)
        await interaction.response.send_message(
            embed=self.embeds.schedule_status(
                existing,
                scheduled,
                now=self.scheduler.clock.now(),
                tz=await self.pref_manager.get_timezone(),
            ),
        )
