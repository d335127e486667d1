"""Data structures shared by the reminder engine.

Documents are owned by the repository; scheduled reminders and pending
notifications are owned by the engine and the notifier respectively.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Any, Dict, Optional


class ReminderPeriod(Enum):
    """Lead time before expiry at which the primary reminder fires."""

    ONE_WEEK = "1_week"
    TWO_WEEKS = "2_weeks"
    ONE_MONTH = "1_month"
    TWO_MONTHS = "2_months"
    THREE_MONTHS = "3_months"
    SIX_MONTHS = "6_months"
    NINE_MONTHS = "9_months"
    TWELVE_MONTHS = "12_months"
    CUSTOM = "custom"

    @property
    def label(self) -> str:
        return PERIOD_LABELS[self]


PERIOD_LABELS = {
    ReminderPeriod.ONE_WEEK: "1 Week Before",
    ReminderPeriod.TWO_WEEKS: "2 Weeks Before",
    ReminderPeriod.ONE_MONTH: "1 Month Before",
    ReminderPeriod.TWO_MONTHS: "2 Months Before",
    ReminderPeriod.THREE_MONTHS: "3 Months Before",
    ReminderPeriod.SIX_MONTHS: "6 Months Before",
    ReminderPeriod.NINE_MONTHS: "9 Months Before",
    ReminderPeriod.TWELVE_MONTHS: "12 Months Before",
    ReminderPeriod.CUSTOM: "Custom",
}


class SlotKind(Enum):
    """The four reminder roles a document can hold at once."""

    PRIMARY = "primary"
    FOLLOW_UP = "follow_up"
    FINAL_WARNING = "final_warning"
    URGENT_ALERT = "urgent_alert"


class Urgency(Enum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"
    EXPIRED = "expired"


@dataclass
class Document:
    """A tracked document as read from the repository."""

    id: str
    name: str
    expiry_date: datetime
    reminder_period: ReminderPeriod = ReminderPeriod.ONE_MONTH
    reminder_time: Optional[time] = None
    is_handled: bool = False
    doc_type: str = "other"
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Document ID cannot be empty")
        if not isinstance(self.expiry_date, datetime):
            raise TypeError("expiry_date must be datetime")
        if isinstance(self.reminder_period, str):
            self.reminder_period = ReminderPeriod(self.reminder_period)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Document":
        """Build a Document from a ``documents`` table row."""
        return cls(
            id=row["id"],
            name=row["name"],
            doc_type=row.get("doc_type") or "other",
            expiry_date=row["expiry_date"],
            reminder_period=ReminderPeriod(row["reminder_period"]),
            reminder_time=row.get("reminder_time"),
            is_handled=bool(row.get("is_handled")),
            notes=row.get("notes"),
        )


@dataclass(frozen=True)
class ScheduledReminder:
    document_id: str
    slot_kind: SlotKind
    notification_id: int
    fires_at: datetime


@dataclass
class PendingNotification:
    """A notification waiting in the outbox for delivery."""

    id: int
    fires_at: datetime
    title: str = ""
    body: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def document_id(self) -> Optional[str]:
        return self.payload.get("document_id")
