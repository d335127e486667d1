from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from renewals import Database, EmbedFactory, LifecycleHooks, Validator
from renewals.calculator import parse_time_of_day
from renewals.models import Document, ReminderPeriod
from renewals.preference_manager import PreferenceManager

PERIOD_CHOICES = [app_commands.Choice(name=period.label, value=period.value) for period in ReminderPeriod]


class DocumentsCog(commands.Cog):
    def __init__(
        self,
        bot: commands.Bot,
        db: Database,
        embeds: EmbedFactory,
        hooks: LifecycleHooks,
        pref_manager: PreferenceManager,
    ) -> None:
        self.bot = bot
        self.db = db
        self.embeds = embeds
        self.hooks = hooks
        self.pref_manager = pref_manager
        self.logger = logging.getLogger("renewals.documents")

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id == self.pref_manager.owner_id:
            return True
        await interaction.response.send_message(
            embed=self.embeds.message("Owner Only", "This tracker belongs to someone else.", emoji="🚫"),
            ephemeral=True,
        )
        return False

    async def document_autocomplete(self, interaction: discord.Interaction, current: str) -> List[app_commands.Choice[str]]:
        documents = await self.db.list_documents()
        needle = current.lower()
        results: List[app_commands.Choice[str]] = []
        for document in documents:
            if needle and needle not in document.name.lower():
                continue
            label = f"{document.name} · {document.expiry_date:%Y-%m-%d}"
            if document.is_handled:
                label += " · handled"
            results.append(app_commands.Choice(name=label[:100], value=document.id))
            if len(results) >= 25:
                break
        return results

    async def _reject(self, interaction: discord.Interaction, title: str, message: str) -> None:
        await interaction.response.send_message(
            embed=self.embeds.message(title, message, emoji="⚠️"),
            ephemeral=True,
        )

    async def _load(self, interaction: discord.Interaction, document_id: str) -> Optional[Document]:
        document = await self.db.get_document(document_id)
        if document is None:
            await self._reject(interaction, "Not Found", "No document with that ID.")
        return document

    def _scheduling_note(self, ok: Optional[bool]) -> str:
        if ok is None:
            return "Reminders will be updated when the sync in progress finishes."
        if ok:
            return "Reminders are scheduled."
        return "Reminders could not be scheduled. Check `/notifications` is enabled."

    @app_commands.command(name="add-document", description="Track a document and its expiry date")
    @app_commands.describe(
        name="Document name, e.g. Passport",
        expiry_date="Expiry date, e.g. 2026-03-31",
        reminder_period="How long before expiry to remind you",
        reminder_time="Time of day for reminders (HH:MM, 24h)",
        doc_type="Kind of document (passport, insurance, ...)",
        notes="Optional notes",
    )
    @app_commands.choices(reminder_period=PERIOD_CHOICES)
    @app_commands.checks.cooldown(1, 3.0)
    async def add_document(
        self,
        interaction: discord.Interaction,
        name: str,
        expiry_date: str,
        reminder_period: Optional[app_commands.Choice[str]] = None,
        reminder_time: Optional[str] = None,
        doc_type: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        name = Validator.sanitize(name) or ""
        checks = [Validator.document_name(name), Validator.notes(notes)]
        if doc_type:
            checks.append(Validator.document_type(doc_type))
        if reminder_time:
            checks.append(Validator.reminder_time(reminder_time))
        for result in checks:
            if not result.ok:
                await self._reject(interaction, "Invalid Input", result.message or "Invalid input.")
                return

        tz = await self.pref_manager.get_timezone()
        try:
            expiry = Validator.parse_expiry_date(expiry_date, tz)
        except ValueError as exc:
            await self._reject(interaction, "Invalid Date", str(exc))
            return
        if expiry is None:
            await self._reject(interaction, "Invalid Date", "Expiry date is required.")
            return

        period = reminder_period.value if reminder_period else (await self.pref_manager.get_default_period()).value
        document = await self.db.create_document(
            name,
            expiry,
            period,
            doc_type=Validator.sanitize(doc_type) or "other",
            reminder_time=parse_time_of_day(reminder_time) if reminder_time else None,
            notes=Validator.sanitize(notes),
        )
        ok = await self.hooks.on_document_saved(document)
        self.logger.info("Document %s created (%s)", document.id, document.name)
        await interaction.response.send_message(
            embed=self.embeds.message(
                "Document Added",
                f"**{document.name}** expires {expiry:%b %d, %Y}.\n{self._scheduling_note(ok)}\nID: `{document.id}`",
                emoji="✅",
            ),
        )

    @app_commands.command(name="edit-document", description="Change a tracked document")
    @app_commands.describe(
        document="Document to edit",
        expiry_date="New expiry date",
        reminder_period="New reminder lead time",
        reminder_time="New time of day for reminders (HH:MM)",
        name="New name",
    )
    @app_commands.autocomplete(document=document_autocomplete)
    @app_commands.choices(reminder_period=PERIOD_CHOICES)
    @app_commands.checks.cooldown(1, 3.0)
    async def edit_document(
        self,
        interaction: discord.Interaction,
        document: str,
        expiry_date: Optional[str] = None,
        reminder_period: Optional[app_commands.Choice[str]] = None,
        reminder_time: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        if await self._load(interaction, document) is None:
            return
        if name is not None:
            result = Validator.document_name(name)
            if not result.ok:
                await self._reject(interaction, "Invalid Input", result.message or "Invalid name.")
                return
        if reminder_time is not None:
            result = Validator.reminder_time(reminder_time)
            if not result.ok:
                await self._reject(interaction, "Invalid Input", result.message or "Invalid time.")
                return
        try:
            expiry = Validator.parse_expiry_date(expiry_date, await self.pref_manager.get_timezone())
        except ValueError as exc:
            await self._reject(interaction, "Invalid Date", str(exc))
            return

        updated = await self.db.update_document(
            document,
            name=Validator.sanitize(name),
            expiry_date=expiry,
            reminder_period=reminder_period.value if reminder_period else None,
            reminder_time=parse_time_of_day(reminder_time) if reminder_time else None,
        )
        if updated is None:
            await self._reject(interaction, "Not Found", "The document was removed meanwhile.")
            return
        ok = await self.hooks.on_document_saved(updated)
        await interaction.response.send_message(
            embed=self.embeds.message(
                "Document Updated",
                f"**{updated.name}** saved.\n{self._scheduling_note(ok)}",
                emoji="✅",
            ),
        )

    @app_commands.command(name="delete-document", description="Stop tracking a document")
    @app_commands.autocomplete(document=document_autocomplete)
    @app_commands.checks.cooldown(1, 3.0)
    async def delete_document(self, interaction: discord.Interaction, document: str) -> None:
        existing = await self._load(interaction, document)
        if existing is None:
            return
        await self.db.delete_document(document)
        await self.hooks.on_document_deleted(document)
        self.logger.info("Document %s deleted", document)
        await interaction.response.send_message(
            embed=self.embeds.message("Document Deleted", f"**{existing.name}** and its reminders are gone.", emoji="🗑️"),
        )

    @app_commands.command(name="mark-handled", description="Mark a document as renewed; its reminders are cancelled")
    @app_commands.autocomplete(document=document_autocomplete)
    @app_commands.checks.cooldown(1, 3.0)
    async def mark_handled(self, interaction: discord.Interaction, document: str) -> None:
        existing = await self._load(interaction, document)
        if existing is None:
            return
        await self.db.mark_document_handled(document)
        await self.hooks.on_document_marked_handled(document)
        await interaction.response.send_message(
            embed=self.embeds.message("Marked Handled", f"**{existing.name}** will not remind you again.", emoji="✅"),
        )

    @app_commands.command(name="list-documents", description="List tracked documents by urgency")
    @app_commands.checks.cooldown(1, 3.0)
    async def list_documents(self, interaction: discord.Interaction) -> None:
        documents = await self.db.list_documents()
        tz = await self.pref_manager.get_timezone()
        await interaction.response.send_message(
            embed=self.embeds.document_list(documents, now=datetime.now(timezone.utc), tz=tz),
        )

    @app_commands.command(name="notify-now", description="Send an urgent reminder about a document right away")
    @app_commands.autocomplete(document=document_autocomplete)
    @app_commands.checks.cooldown(1, 10.0)
    async def notify_now(self, interaction: discord.Interaction, document: str) -> None:
        existing = await self._load(interaction, document)
        if existing is None:
            return
        ok = await self.hooks.request_immediate_alert(existing)
        if ok:
            embed = self.embeds.message("Alert Queued", "Check your DMs in a moment.", emoji="🔔")
        else:
            embed = self.embeds.message(
                "Notifications Off",
                "Enable them with `/notifications enabled:True` and try again.",
                emoji="🚫",
            )
        await interaction.response.send_message(embed=embed, ephemeral=True)
