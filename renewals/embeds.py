from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import discord

from .calculator import days_until_expiry, resolve_timezone, urgency
from .models import Document, ScheduledReminder, SlotKind, Urgency

DATE_FORMAT = "%b %d, %Y"
DATETIME_FORMAT = "%b %d, %Y %H:%M %Z"
FOOTER_TEXT = "renewals"
DEFAULT_COLOR = discord.Color.from_rgb(118, 75, 162)

URGENCY_COLORS = {
    Urgency.SAFE: discord.Color.from_rgb(46, 204, 113),  # Green
    Urgency.WARNING: discord.Color.from_rgb(243, 156, 18),  # Yellow
    Urgency.DANGER: discord.Color.from_rgb(231, 76, 60),  # Red
    Urgency.EXPIRED: discord.Color.from_rgb(146, 43, 33),  # Dark red
}

URGENCY_EMOJI = {
    Urgency.SAFE: "🟢",
    Urgency.WARNING: "🟡",
    Urgency.DANGER: "🔴",
    Urgency.EXPIRED: "⛔",
}

SLOT_LABELS = {
    SlotKind.PRIMARY: "Reminder",
    SlotKind.FOLLOW_UP: "Follow-up",
    SlotKind.FINAL_WARNING: "Final warning",
    SlotKind.URGENT_ALERT: "Urgent alert",
}

URGENCY_ORDER = [Urgency.EXPIRED, Urgency.DANGER, Urgency.WARNING, Urgency.SAFE]


def _format_days_left(days_left: int) -> str:
    """Format a day count as 'in 3 days', 'today' or '2 days ago'."""
    if days_left == 0:
        return "today"
    if days_left > 0:
        return f"in {days_left} day{'s' if days_left != 1 else ''}"
    overdue = abs(days_left)
    return f"{overdue} day{'s' if overdue != 1 else ''} ago"


def _format_local(value: datetime, tz: Any, fmt: str = DATETIME_FORMAT) -> str:
    return value.astimezone(resolve_timezone(tz)).strftime(fmt)


class EmbedFactory:
    def __init__(self, color: Optional[discord.Color] = None) -> None:
        self.color = color or DEFAULT_COLOR

    def _finalize(self, embed: discord.Embed) -> discord.Embed:
        embed.timestamp = datetime.now(timezone.utc)
        embed.set_footer(text=FOOTER_TEXT)
        return embed

    def message(
        self,
        title: str,
        description: str,
        *,
        emoji: Optional[str] = None,
        color: Optional[discord.Color] = None,
    ) -> discord.Embed:
        """Create a standardized message embed with emoji title and appropriate color."""
        heading = f"{emoji} {title}" if emoji else title

        if color is None:
            if emoji in ["✅", "✨", "🎉", "👍"]:
                color = discord.Color.from_rgb(46, 204, 113)  # Green - success
            elif emoji in ["⚠️", "🛑", "🔔"]:
                color = discord.Color.from_rgb(243, 156, 18)  # Yellow - warning
            elif emoji in ["🔥", "❌", "🚫"]:
                color = discord.Color.from_rgb(231, 76, 60)  # Red - error
            else:
                color = self.color

        embed = discord.Embed(title=heading, description=description, color=color)
        return self._finalize(embed)

    def reminder(self, title: str, body: str, payload: Dict[str, Any]) -> discord.Embed:
        """Embed delivered as the DM for a due notification."""
        slot_kind = payload.get("slot_kind")
        if slot_kind == SlotKind.URGENT_ALERT.value:
            color = URGENCY_COLORS[Urgency.DANGER]
        elif slot_kind == SlotKind.FINAL_WARNING.value:
            color = URGENCY_COLORS[Urgency.DANGER]
        else:
            color = URGENCY_COLORS[Urgency.WARNING]

        embed = discord.Embed(title=title, description=body, color=color)
        if payload.get("document_name"):
            embed.add_field(name="Document", value=payload["document_name"], inline=True)
        if payload.get("expiry_date"):
            embed.add_field(name="Expires", value=str(payload["expiry_date"])[:10], inline=True)
        if payload.get("document_id"):
            embed.add_field(name="ID", value=f"`{payload['document_id']}`", inline=False)
        return self._finalize(embed)

    def document_list(
        self,
        documents: Iterable[Document],
        *,
        now: datetime,
        tz: Any = None,
    ) -> discord.Embed:
        """List documents grouped by urgency, most urgent first."""
        grouped: Dict[Urgency, List[Document]] = {level: [] for level in URGENCY_ORDER}
        handled: List[Document] = []
        for document in documents:
            if document.is_handled:
                handled.append(document)
                continue
            grouped[urgency(document.expiry_date, now, tz)].append(document)

        active_count = sum(len(docs) for docs in grouped.values())
        worst = next((level for level in URGENCY_ORDER if grouped[level]), Urgency.SAFE)
        embed = discord.Embed(
            title="🗂️ Your Documents",
            description=f"**{active_count}** active document{'s' if active_count != 1 else ''}"
            + (f" · {len(handled)} handled" if handled else ""),
            color=URGENCY_COLORS[worst] if active_count else self.color,
        )

        for level in URGENCY_ORDER:
            docs = sorted(grouped[level], key=lambda d: d.expiry_date)
            if not docs:
                continue
            lines = [self._format_document_line(doc, now=now, tz=tz) for doc in docs[:10]]
            if len(docs) > 10:
                lines.append(f"...and {len(docs) - 10} more")
            embed.add_field(
                name=f"{URGENCY_EMOJI[level]} {level.value.title()} ({len(docs)})",
                value="\n".join(lines),
                inline=False,
            )

        if not active_count:
            embed.description = "🎉 Nothing to renew. Add one with `/add-document`."
        return self._finalize(embed)

    def _format_document_line(self, document: Document, *, now: datetime, tz: Any) -> str:
        days_left = days_until_expiry(document.expiry_date, now, tz)
        expires = _format_local(document.expiry_date, tz, DATE_FORMAT)
        return (
            f"**{document.name}** · {document.doc_type} · expires {expires} "
            f"({_format_days_left(days_left)}) · `{document.id[:8]}`"
        )

    def schedule_status(
        self,
        document: Document,
        scheduled: List[ScheduledReminder],
        *,
        now: datetime,
        tz: Any = None,
    ) -> discord.Embed:
        level = urgency(document.expiry_date, now, tz)
        embed = discord.Embed(
            title=f"{URGENCY_EMOJI[level]} {document.name}",
            description=(
                f"Expires {_format_local(document.expiry_date, tz, DATE_FORMAT)} "
                f"({_format_days_left(days_until_expiry(document.expiry_date, now, tz))})\n"
                f"Reminder: {document.reminder_period.label}"
            ),
            color=URGENCY_COLORS[level],
        )
        if document.is_handled:
            embed.add_field(name="Status", value="✅ Handled, no reminders", inline=False)
        elif not scheduled:
            embed.add_field(name="Scheduled", value="Nothing pending", inline=False)
        for entry in sorted(scheduled, key=lambda s: s.fires_at):
            embed.add_field(
                name=SLOT_LABELS[entry.slot_kind],
                value=_format_local(entry.fires_at, tz),
                inline=True,
            )
        return self._finalize(embed)
